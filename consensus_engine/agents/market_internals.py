"""Market internals read from the instrument's own tape.

TICK, TRIN and cumulative delta are approximated from price and volume
of the primary bars; the volatility index contributes a contrarian
fear/greed point when present.
"""

from __future__ import annotations

from dataclasses import dataclass

import pandas as pd

from .base import Capability, MarketContext, ratio
from .signal import Signal, Verdict


def tick_proxy(bars: pd.DataFrame, lookback: int = 10) -> float:
    """Volume-weighted sum of percent close changes, scaled by 1000."""
    recent = bars.tail(lookback)
    change = recent["close"].pct_change().iloc[1:]
    volume = recent["volume"].iloc[1:]
    return ratio(float((change * volume).sum()), float(volume.sum()), default=0.0) * 1000.0


def trin_proxy(bars: pd.DataFrame, lookback: int = 5) -> float:
    """Volume dispersion over net move in range units; 1.0 is neutral."""
    recent = bars.tail(lookback)
    avg_range = float((recent["high"] - recent["low"]).mean())
    avg_volume = float(recent["volume"].mean())
    dispersion = float((recent["volume"] - avg_volume).abs().mean())
    volume_ratio = ratio(dispersion, avg_volume)
    move = ratio(float(recent["close"].iloc[-1] - recent["close"].iloc[0]), avg_range, default=0.0)
    return volume_ratio / move if move > 0 else 1.0


def cumulative_delta(bars: pd.DataFrame, lookback: int = 20) -> float:
    """Close-location weighted volume, in millions of shares."""
    recent = bars.tail(lookback)
    rng = recent["high"] - recent["low"]
    location = ((recent["close"] - recent["low"]) / rng.where(rng > 0)) - 0.5
    return float((location * recent["volume"]).sum(skipna=True)) / 1_000_000


@dataclass
class MarketInternalsAgent:
    min_bars: int = 20
    _name: str = "MarketInternals"

    @property
    def name(self) -> str:
        return self._name

    @property
    def requires(self) -> frozenset[Capability]:
        return frozenset({Capability.VOLATILITY_INDEX})

    def analyze(self, ctx: MarketContext) -> Signal:
        bars = ctx.bars
        if len(bars) < self.min_bars:
            return Signal(
                self.name, Verdict.NO_TRADE, 0.0,
                [f"insufficient data for internals (need {self.min_bars}+ bars)"],
            )

        tick = tick_proxy(bars)
        trin = trin_proxy(bars)
        delta = cumulative_delta(bars)
        vix = ctx.volatility_index
        rationale = [f"TICK {tick:.0f}", f"TRIN {trin:.3f}", f"cumulative delta {delta:.1f}M"]

        score = 0
        if tick > 200:
            score += 3
        elif tick > 50:
            score += 1
        elif tick < -200:
            score -= 3
        elif tick < -50:
            score -= 1

        if trin < 0.7:
            score += 2
        elif trin < 1.0:
            score += 1
        elif trin > 1.3:
            score -= 2
        elif trin > 1.0:
            score -= 1

        if delta > 50:
            score += 2
        elif delta > 10:
            score += 1
        elif delta < -50:
            score -= 2
        elif delta < -10:
            score -= 1

        if vix is not None:
            if vix > 25:
                score += 1
                rationale.append(f"VIX {vix:.1f}: fear, contrarian bullish")
            elif vix < 18:
                score -= 1
                rationale.append(f"VIX {vix:.1f}: greed, contrarian bearish")

        detail = {"tick": tick, "trin": trin, "cumulative_delta_m": delta, "score": score}
        if score >= 3:
            rationale.append("strong bullish internals")
            return Signal(self.name, Verdict.BUY_CALL, min(90.0, 60.0 + score * 8), rationale, detail)
        if score <= -3:
            rationale.append("strong bearish internals")
            return Signal(self.name, Verdict.BUY_PUT, min(90.0, 60.0 - score * 8), rationale, detail)
        if score != 0:
            rationale.append("moderate internals, needs confirmation")
            verdict = Verdict.BUY_CALL if score > 0 else Verdict.BUY_PUT
            return Signal(self.name, verdict, 60.0, rationale, detail)

        rationale.append("neutral internals")
        return Signal(self.name, Verdict.NO_TRADE, 75.0, rationale, detail)


def build(params: dict) -> MarketInternalsAgent:
    return MarketInternalsAgent(**params)
