from dataclasses import dataclass
from typing import Sequence

import pandas as pd

from consensus_engine.indicators import latest_snapshot
from .base import Capability, MarketContext, clamp, insufficient, ratio, round_half_up
from .signal import Signal, Verdict

_CONFLUENCE_MULTIPLIER = {"STRONG": 1.2, "MODERATE": 1.0, "WEAK": 0.7, "CONFLICTING": 0.3}


@dataclass(frozen=True)
class TimeframeRead:
    label: str
    trend: str          # BULLISH / BEARISH / NEUTRAL
    momentum: str       # STRONG / MODERATE / WEAK
    volume: str         # HIGH / NORMAL / LOW
    confidence: float


@dataclass
class MultiTimeframeAgent:
    """
    Trend, MACD momentum, volume and Bollinger position on the primary bars
    and each coarser frame, then a confluence vote across frames.

    A frame missing from ``ctx.higher_timeframes`` falls back to the primary
    bars.
    """
    timeframes: Sequence[str] = ("5min", "15min")
    min_bars: int = 20
    sma_band: float = 0.01
    _name: str = "MultiTimeframeAnalyst"

    @property
    def name(self) -> str:
        return self._name

    @property
    def requires(self) -> frozenset[Capability]:
        return frozenset({Capability.HIGHER_TIMEFRAMES})

    def analyze(self, ctx: MarketContext) -> Signal:
        if len(ctx.bars) < self.min_bars:
            return insufficient(
                self.name, f"insufficient data for timeframe analysis (need {self.min_bars}+ bars)"
            )

        frames = [("primary", ctx.bars)]
        for label in self.timeframes:
            frames.append((label, ctx.higher_timeframes.get(label, ctx.bars)))
        reads = [self._read(label, bars) for label, bars in frames]

        bull = sum(r.trend == "BULLISH" for r in reads)
        bear = sum(r.trend == "BEARISH" for r in reads)
        neutral = len(reads) - bull - bear
        alignment = (bull - bear) * 100.0 / len(reads)

        n, top = len(reads), max(bull, bear)
        if top == n and abs(alignment) > 80:
            strength = "STRONG"
        elif top == n - 1 and top > 1 and abs(alignment) > 40:
            strength = "MODERATE"
        elif top == 1 and abs(alignment) > 20:
            strength = "WEAK"
        else:
            strength = "CONFLICTING"

        if bull >= bear and bull >= neutral:
            recommendation = Verdict.BUY_CALL
        elif bear > bull and bear >= neutral:
            recommendation = Verdict.BUY_PUT
        else:
            recommendation = Verdict.NO_TRADE

        avg_conf = sum(r.confidence for r in reads) / len(reads)
        overall = round_half_up(avg_conf * _CONFLUENCE_MULTIPLIER[strength])

        rationale = [f"{r.label}: {r.trend} / {r.momentum} momentum / {r.volume} volume" for r in reads]
        rationale.append(f"confluence {strength}, alignment {alignment:.0f}%, confidence {overall}")
        detail = {"confluence": strength, "alignment": alignment, "timeframes": {r.label: r.trend for r in reads}}

        if strength == "STRONG" and overall >= 75:
            verdict, conf = recommendation, float(overall)
        elif strength == "MODERATE" and overall >= 65:
            verdict, conf = recommendation, overall * 0.8
        elif strength == "CONFLICTING":
            verdict, conf = Verdict.NO_TRADE, 80.0
            rationale.append("timeframes diverge")
        else:
            verdict, conf = Verdict.NO_TRADE, 70.0
            rationale.append("insufficient alignment")

        return Signal(self.name, verdict, clamp(conf), rationale, detail)

    def _read(self, label: str, bars: pd.DataFrame) -> TimeframeRead:
        if len(bars) < self.min_bars:
            return TimeframeRead(label, "NEUTRAL", "WEAK", "LOW", 0.0)
        snap = latest_snapshot(bars)
        if snap is None:
            return TimeframeRead(label, "NEUTRAL", "WEAK", "LOW", 0.0)

        price = float(bars["close"].iloc[-1])
        sma20 = float(bars["close"].tail(20).mean())
        if price > sma20 * (1 + self.sma_band):
            trend = "BULLISH"
        elif price < sma20 * (1 - self.sma_band):
            trend = "BEARISH"
        else:
            trend = "NEUTRAL"

        # Histogram as a fraction of price so thresholds hold across instruments
        hist = ratio(abs(snap.macd_hist), price, default=0.0)
        if hist > 0.001:
            momentum = "STRONG"
        elif hist > 0.0005:
            momentum = "MODERATE"
        else:
            momentum = "WEAK"

        vol_ratio = ratio(float(bars["volume"].iloc[-1]), float(bars["volume"].tail(20).mean()))
        volume = "HIGH" if vol_ratio > 1.5 else "LOW" if vol_ratio < 0.7 else "NORMAL"

        overbought = price > snap.bb_upper * 1.02
        oversold = price < snap.bb_lower * 0.98

        conf = 50.0
        if trend != "NEUTRAL":
            conf += 15
        if momentum == "STRONG":
            conf += 15
        if volume == "HIGH":
            conf += 10
        if overbought or oversold:
            conf += 10
        if (trend == "BULLISH" and overbought) or (trend == "BEARISH" and oversold):
            conf -= 10
        if (trend == "BULLISH" and snap.macd < snap.macd_signal) or (
            trend == "BEARISH" and snap.macd > snap.macd_signal
        ):
            conf -= 15

        return TimeframeRead(label, trend, momentum, volume, clamp(conf))


def build(params: dict) -> MultiTimeframeAgent:
    return MultiTimeframeAgent(**params)
