"""Order-flow estimate from bar direction and close location.

Each bar's delta is a signed fraction of its volume: up bars count as
buying, down bars as selling, scaled by where the close sits in the bar's
range. Sub-scores measure conviction; net imbalance picks the side.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
import pandas as pd

from .base import Capability, MarketContext, clamp, insufficient, ratio
from .signal import Signal, Verdict


def bar_deltas(bars: pd.DataFrame) -> pd.DataFrame:
    """Per-bar delta, cumulative delta and delta acceleration.

    The first bar has no previous close and is dropped.
    """
    close = bars["close"].to_numpy(dtype=np.float64)
    high = bars["high"].to_numpy(dtype=np.float64)
    low = bars["low"].to_numpy(dtype=np.float64)
    volume = bars["volume"].to_numpy(dtype=np.float64)
    n = len(bars)

    delta = np.zeros(n - 1, dtype=np.float64)
    for i in range(1, n):
        change = close[i] - close[i - 1]
        rng = high[i] - low[i]
        loc = (close[i] - low[i]) / rng if rng > 0 else 0.5
        if change > 0:
            frac = 0.8 if loc > 0.7 else 0.5 if loc > 0.3 else 0.2
        elif change < 0:
            frac = -0.8 if loc < 0.3 else -0.5 if loc < 0.7 else -0.2
        else:
            frac = 0.0
        delta[i - 1] = frac * volume[i]

    change = np.diff(delta, prepend=0.0)
    accel = np.diff(change, prepend=0.0)
    return pd.DataFrame({
        "close": close[1:],
        "volume": volume[1:],
        "delta": delta,
        "cum_delta": np.cumsum(delta),
        "delta_change": change,
        "delta_accel": accel,
    })


def _slope(values: np.ndarray) -> float:
    if len(values) < 2:
        return 0.0
    return float(np.polyfit(np.arange(len(values), dtype=np.float64), values, 1)[0])


def net_imbalance(d: pd.DataFrame) -> float:
    """Buying minus selling delta as % of volume over the last 20 bars."""
    recent = d.tail(20)
    total = float(recent["volume"].sum())
    if total <= 0:
        return 0.0
    return float(recent["delta"].sum()) / total * 100


def trend_score(d: pd.DataFrame) -> float:
    recent = d.tail(20)
    if len(recent) < 10:
        return 50.0
    up = float((recent["delta"] > 0).mean())
    net = float(recent["delta"].sum())
    if (up > 0.7 and net > 0) or (up < 0.3 and net < 0):
        return 90.0
    if up > 0.6 or up < 0.4:
        return 75.0
    return 50.0


def momentum_score(d: pd.DataFrame) -> float:
    recent = d.tail(10)
    if len(recent) < 10:
        return 65.0
    if int((recent["delta_accel"] > 0).sum()) > 7:
        return 80.0
    if int((recent["delta_accel"] < 0).sum()) > 7:
        return 35.0
    if (recent["delta_accel"].abs() < recent["volume"].iloc[0] * 0.1).all():
        return 65.0
    return 20.0


def divergence_score(d: pd.DataFrame) -> float:
    recent = d.tail(20)
    if len(recent) < 20:
        return 50.0
    prices = recent["close"].to_numpy()
    price_trend = _slope(prices)
    delta_trend = _slope(recent["cum_delta"].to_numpy()) / max(float(recent["volume"].mean()), 1.0)
    volatility = ratio(float(prices.max() - prices.min()), float(prices.mean()), default=0.0)

    score = 50.0
    if (price_trend < 0 < delta_trend) or (price_trend > 0 > delta_trend):
        if abs(delta_trend) > 0.3:
            mult = 1.5 if abs(delta_trend) > 0.6 else 1.0
            score += min(90.0, 50 + abs(delta_trend) * 50) * mult * 0.3
    if volatility < 0.02 and abs(delta_trend) > 0.2:
        mult = 1.5 if abs(delta_trend) > 0.5 else 1.0
        score += min(85.0, 45 + abs(delta_trend) * 40) * mult * 0.3
    return clamp(score)


def absorption_score(d: pd.DataFrame) -> float:
    recent = d.tail(10)
    avg = float(recent["volume"].mean())
    if len(recent) < 10 or avg <= 0:
        return 50.0
    heavy = recent[(recent["volume"] > avg * 1.5) & (recent["delta_change"].abs() < avg * 0.1)]
    buying = heavy[heavy["delta"] > 0]
    selling = heavy[heavy["delta"] < 0]
    bars = buying if len(buying) >= 3 else selling if len(selling) >= 3 else None
    if bars is None:
        return 50.0
    strength = min(100.0, float(bars["volume"].mean()) / avg * 100)
    return clamp(50 + strength * 0.4)


def institutional_score(d: pd.DataFrame) -> float:
    recent = d.tail(20)
    avg = float(recent["volume"].mean())
    if len(recent) < 20 or avg <= 0:
        return 50.0
    size = recent["delta"].abs()
    large = int((size > avg * 0.6).sum())
    extreme = int((size > avg * 0.8).sum())
    if large < 3 and extreme < 1:
        return 50.0
    confidence = min(95.0, 30 + large * 5 + extreme * 10)
    score = 50 + confidence * 0.4 + 10
    if size.max() > avg * 0.6:
        score += 15
    return clamp(score)


@dataclass
class VolumeDeltaAgent:
    min_bars: int = 20
    window: int = 50
    _name: str = "VolumeDelta"

    @property
    def name(self) -> str:
        return self._name

    @property
    def requires(self) -> frozenset[Capability]:
        return frozenset()

    def analyze(self, ctx: MarketContext) -> Signal:
        if len(ctx.bars) < self.min_bars:
            return insufficient(
                self.name, f"insufficient data for delta analysis (need {self.min_bars}+ bars)"
            )

        d = bar_deltas(ctx.bars.tail(self.window))
        imbalance = net_imbalance(d)
        parts = {
            "trend": trend_score(d),
            "momentum": momentum_score(d),
            "divergence": divergence_score(d),
            "absorption": absorption_score(d),
            "institutional": institutional_score(d),
        }
        score = (
            parts["trend"] * 0.3
            + parts["momentum"] * 0.25
            + parts["divergence"] * 0.2
            + parts["absorption"] * 0.15
            + parts["institutional"] * 0.1
        )

        rationale = [
            f"cumulative delta {d['cum_delta'].iloc[-1]:.0f}",
            f"net imbalance {imbalance:.1f}%",
            ", ".join(f"{k} {v:.0f}" for k, v in parts.items()),
            f"overall {score:.1f}",
        ]
        detail = {"net_imbalance": imbalance, "score": score, **parts}

        if score >= 75 and abs(imbalance) > 20:
            verdict = Verdict.BUY_CALL if imbalance > 0 else Verdict.BUY_PUT
            rationale.append("strong one-sided order flow")
            return Signal(self.name, verdict, min(95.0, 65 + score * 0.3), rationale, detail)
        if score >= 60 and abs(imbalance) > 10:
            verdict = Verdict.BUY_CALL if imbalance > 0 else Verdict.BUY_PUT
            rationale.append("moderate one-sided order flow")
            return Signal(self.name, verdict, min(85.0, 55 + score * 0.25), rationale, detail)
        if score <= 30:
            rationale.append("weak or conflicting delta")
            return Signal(self.name, Verdict.NO_TRADE, 70.0, rationale, detail)
        rationale.append("balanced order flow")
        return Signal(self.name, Verdict.NO_TRADE, 60.0, rationale, detail)


def build(params: dict) -> VolumeDeltaAgent:
    return VolumeDeltaAgent(**params)
