from dataclasses import dataclass

import numpy as np
import pandas as pd

from consensus_engine.indicators import VWAP
from .base import Capability, MarketContext, clamp, insufficient, ratio
from .signal import Signal, Verdict


@dataclass(frozen=True)
class VWAPState:
    vwap: float
    price: float
    slope_pct: float        # volume-weighted regression slope, % of VWAP per bar
    distance_pct: float     # |price - vwap| / vwap * 100
    std: float              # volume-weighted std of typical price around VWAP
    volume_ratio: float     # last volume / window mean


def vwap_state(bars: pd.DataFrame, window: int) -> VWAPState:
    recent = bars.tail(window)
    vwap = float(VWAP(window).compute(recent).iloc[-1, 0])
    price = float(recent["close"].iloc[-1])

    typical = ((recent["high"] + recent["low"] + recent["close"]) / 3.0).to_numpy(dtype=np.float64)
    w = recent["volume"].to_numpy(dtype=np.float64)
    x = np.arange(len(recent), dtype=np.float64)
    total = w.sum()

    if total > 0:
        x_mean = (w * x).sum() / total
        y_mean = (w * typical).sum() / total
        var_x = (w * (x - x_mean) ** 2).sum()
        slope = (w * (x - x_mean) * (typical - y_mean)).sum() / var_x if var_x > 0 else 0.0
        std = float(np.sqrt((w * (typical - vwap) ** 2).sum() / total))
    else:
        slope, std = 0.0, 0.0

    return VWAPState(
        vwap=vwap,
        price=price,
        slope_pct=ratio(float(slope), vwap, default=0.0) * 100.0,
        distance_pct=ratio(abs(price - vwap), vwap, default=0.0) * 100.0,
        std=std,
        volume_ratio=ratio(float(w[-1]), total / len(w)),
    )


def mean_reversion_score(s: VWAPState) -> float:
    score = 50.0
    if s.distance_pct > 2.0:
        score += 30
    elif s.distance_pct > 1.0:
        score += 15
    elif s.distance_pct < 0.3:
        score -= 20

    deviation = abs(s.price - s.vwap)
    if s.std > 0 and deviation > 2 * s.std:
        score += 20
    elif s.std > 0 and deviation > s.std:
        score += 10

    if abs(s.slope_pct) < 0.05:
        score += 10
    elif abs(s.slope_pct) > 0.5:
        score -= 15
    return clamp(score)


def trend_confirmation_score(s: VWAPState) -> float:
    score = 50.0
    if s.slope_pct > 0.3:
        score += 25
    elif s.slope_pct > 0.1:
        score += 12
    elif s.slope_pct < -0.3:
        score -= 25
    elif s.slope_pct < -0.1:
        score -= 12

    if (s.slope_pct > 0 and s.price > s.vwap) or (s.slope_pct < 0 and s.price < s.vwap):
        score += 15
    elif abs(s.slope_pct) > 0.1:
        score -= 20
    return clamp(score)


def support_resistance_score(s: VWAPState) -> float:
    score = 50.0
    support = s.vwap - 1.5 * s.std
    resistance = s.vwap + 1.5 * s.std
    to_vwap = abs(s.price - s.vwap)
    if to_vwap < abs(s.price - support) or to_vwap < abs(s.price - resistance):
        score += 15

    if ratio(abs(s.price - support), s.price) * 100 < 0.5:
        score += 10
    elif ratio(abs(s.price - resistance), s.price) * 100 < 0.5:
        score -= 10
    return clamp(score)


@dataclass
class VWAPAgent:
    """
    Mean reversion toward VWAP, weighted with VWAP trend, volume and
    band-based support/resistance. Below VWAP leans calls, above leans puts.
    """
    min_bars: int = 50
    window: int = 100
    _name: str = "VWAPAnalyst"

    @property
    def name(self) -> str:
        return self._name

    @property
    def requires(self) -> frozenset[Capability]:
        return frozenset()

    def analyze(self, ctx: MarketContext) -> Signal:
        if len(ctx.bars) < self.min_bars:
            return insufficient(self.name, f"insufficient data for VWAP (need {self.min_bars}+ bars)")

        s = vwap_state(ctx.bars, self.window)
        reversion = mean_reversion_score(s)
        trend = trend_confirmation_score(s)
        volume = clamp(s.volume_ratio * 50)
        levels = support_resistance_score(s)
        score = 0.4 * reversion + 0.3 * trend + 0.2 * volume + 0.1 * levels

        rationale = [
            f"VWAP {s.vwap:.2f}, price {s.price:.2f} ({s.distance_pct:.2f}% away)",
            f"VWAP slope {s.slope_pct:.3f}%/bar",
            f"scores: reversion {reversion:.0f}, trend {trend:.0f}, volume {volume:.0f}, levels {levels:.0f}",
            f"overall {score:.1f}",
        ]
        detail = {"vwap": s.vwap, "slope_pct": s.slope_pct, "score": score}
        direction = Verdict.BUY_CALL if s.price < s.vwap else Verdict.BUY_PUT

        if score >= 70:
            rationale.append("strong mean reversion setup")
            return Signal(self.name, direction, min(95.0, 60 + score * 0.35), rationale, detail)
        if score >= 55:
            rationale.append("moderate mean reversion setup")
            return Signal(self.name, direction, min(85.0, 50 + score * 0.3), rationale, detail)
        if score <= 30:
            rationale.append("weak or conflicting VWAP structure")
            return Signal(self.name, Verdict.NO_TRADE, 70.0, rationale, detail)
        rationale.append("neutral VWAP position")
        return Signal(self.name, Verdict.NO_TRADE, 60.0, rationale, detail)


def build(params: dict) -> VWAPAgent:
    return VWAPAgent(**params)
