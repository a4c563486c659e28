"""Multi-window trend assessment on the primary bars.

Advisory only: the engine uses it to scale confidence, never to veto.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum

import pandas as pd

from consensus_engine.indicators import EMA, SMA, latest_snapshot
from .config import TrendConfig

log = logging.getLogger(__name__)


class TrendDirection(Enum):
    STRONG_BEARISH = "STRONG_BEARISH"
    BEARISH = "BEARISH"
    NEUTRAL = "NEUTRAL"
    BULLISH = "BULLISH"
    STRONG_BULLISH = "STRONG_BULLISH"

    @property
    def is_bullish(self) -> bool:
        return self in (TrendDirection.BULLISH, TrendDirection.STRONG_BULLISH)

    @property
    def is_bearish(self) -> bool:
        return self in (TrendDirection.BEARISH, TrendDirection.STRONG_BEARISH)


@dataclass(frozen=True)
class TrendAssessment:
    direction: TrendDirection
    strength: float                 # 0-100
    bullish_score: float = 0.0
    bearish_score: float = 0.0
    bullish_percentage: float = 50.0
    rationale: list[str] = field(default_factory=list)

    @classmethod
    def neutral(cls, reason: str) -> "TrendAssessment":
        return cls(TrendDirection.NEUTRAL, 50.0, rationale=[reason])


def classify(bullish_percentage: float) -> tuple[TrendDirection, float]:
    """Map a bullish percentage to (direction, strength)."""
    pct = bullish_percentage
    if pct >= 75:
        return TrendDirection.STRONG_BULLISH, pct
    if pct >= 60:
        return TrendDirection.BULLISH, pct
    if pct <= 25:
        return TrendDirection.STRONG_BEARISH, 100.0 - pct
    if pct <= 40:
        return TrendDirection.BEARISH, 100.0 - pct
    return TrendDirection.NEUTRAL, 50.0


class TrendAssessor:
    """Scores nested trailing windows and maps the result to a direction.

    Parameters
    ----------
    config : TrendConfig
        Windows, price band, RSI cut points and volume confirmation.
    """

    def __init__(self, config: TrendConfig | None = None) -> None:
        self.config = config or TrendConfig()

    def assess(self, bars: pd.DataFrame) -> TrendAssessment:
        cfg = self.config
        bull = bear = 0.0
        rationale: list[str] = []

        for length, weight in cfg.windows:
            window = bars.tail(length)
            if len(window) < cfg.min_window_bars:
                continue
            snap = latest_snapshot(window)
            if snap is None:
                log.debug("Trend window %d skipped: indicators unavailable", length)
                continue

            price = float(window["close"].iloc[-1])
            sma = float(SMA(20).compute(window).iloc[-1, 0])
            ema = float(EMA(10).compute(window).iloc[-1, 0])
            w_bull = w_bear = 0.0

            if price > sma * (1 + cfg.band):
                w_bull += 2 * weight
            elif price < sma * (1 - cfg.band):
                w_bear += 2 * weight
            if price > ema * (1 + cfg.band):
                w_bull += 2 * weight
            elif price < ema * (1 - cfg.band):
                w_bear += 2 * weight
            if snap.macd > snap.macd_signal:
                w_bull += 3 * weight
            elif snap.macd < snap.macd_signal:
                w_bear += 3 * weight
            if snap.rsi > cfg.rsi_bullish:
                w_bull += weight
            elif snap.rsi < cfg.rsi_bearish:
                w_bear += weight

            bull += w_bull
            bear += w_bear
            rationale.append(f"{length}-bar window: +{w_bull:g} bullish / +{w_bear:g} bearish")

        volume = bars["volume"].tail(cfg.volume_window)
        avg_volume = float(volume.mean())
        if avg_volume > 0 and float(volume.iloc[-1]) / avg_volume > cfg.volume_ratio:
            if bull > bear:
                bull += cfg.volume_bonus
                rationale.append("volume confirms bullish trend")
            elif bear > bull:
                bear += cfg.volume_bonus
                rationale.append("volume confirms bearish trend")

        total = bull + bear
        pct = bull / total * 100 if total > 0 else 50.0
        direction, strength = classify(pct)
        rationale.insert(0, f"trend {direction.value} ({pct:.0f}% bullish, strength {strength:.0f})")

        return TrendAssessment(
            direction=direction,
            strength=strength,
            bullish_score=bull,
            bearish_score=bear,
            bullish_percentage=pct,
            rationale=rationale,
        )
