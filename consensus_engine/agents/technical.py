from dataclasses import dataclass
from typing import Sequence

from consensus_engine.indicators import latest_snapshot
from .base import Capability, MarketContext, insufficient, ratio
from .signal import Signal, Verdict


@dataclass
class TechnicalAnalysisAgent:
    """
    RSI / MACD / Bollinger / momentum votes over nested trailing windows,
    confirmed by a volume spike on the last bar.
    """
    windows: Sequence[int] = (20, 50, 75)
    min_window_bars: int = 10
    momentum_bars: int = 5
    momentum_threshold: float = 0.001
    band_tolerance: float = 0.005
    spike_bars: int = 5
    _name: str = "TechnicalAnalysis"

    @property
    def name(self) -> str:
        return self._name

    @property
    def requires(self) -> frozenset[Capability]:
        return frozenset()

    def analyze(self, ctx: MarketContext) -> Signal:
        bars = ctx.bars
        if latest_snapshot(bars) is None:
            return insufficient(self.name, "technical indicators unavailable", 100.0)

        rationale: list[str] = []
        windows: dict[str, str] = {}
        bullish = bearish = 0

        for length in self.windows:
            data = bars.tail(length)
            label = f"last_{length}"
            if len(data) < self.min_window_bars:
                continue
            snap = latest_snapshot(data)
            if snap is None:
                windows[label] = "NEUTRAL"
                rationale.append(f"{label}: NEUTRAL (indicators unavailable)")
                continue

            price = float(data["close"].iloc[-1])
            recent = float(data["close"].tail(self.momentum_bars).mean())
            momentum = ratio(price - recent, recent, default=0.0)

            bull_votes = sum([
                snap.rsi > 45,
                snap.macd > snap.macd_signal,
                price < snap.bb_lower * (1 - self.band_tolerance),
                momentum > self.momentum_threshold,
            ])
            bear_votes = sum([
                snap.rsi < 55,
                snap.macd < snap.macd_signal,
                price > snap.bb_upper * (1 + self.band_tolerance),
                momentum < -self.momentum_threshold,
            ])

            if bull_votes >= 2:
                bullish += 1
                windows[label] = "BULLISH"
            elif bear_votes >= 2:
                bearish += 1
                windows[label] = "BEARISH"
            else:
                windows[label] = "NEUTRAL"
            rationale.append(
                f"{label}: {windows[label]} (RSI {snap.rsi:.1f}, "
                f"MACD-signal {snap.macd - snap.macd_signal:.4f})"
            )

        volume = bars["volume"]
        spike = ratio(float(volume.iloc[-1]), float(volume.tail(self.spike_bars).mean()))
        rationale.append(f"volume spike {spike:.1f}x")

        detail = {"windows": windows, "volume_spike": spike}
        if bullish >= 2 and spike > 1.2:
            conf = min(90.0, 70 + bullish * 5 + (10 if spike > 2.0 else 5))
            rationale.append("multi-window bullish confluence with volume")
            return Signal(self.name, Verdict.BUY_CALL, conf, rationale, detail)
        if bearish >= 2 and spike > 1.2:
            conf = min(90.0, 70 + bearish * 5 + (10 if spike > 2.0 else 5))
            rationale.append("multi-window bearish confluence with volume")
            return Signal(self.name, Verdict.BUY_PUT, conf, rationale, detail)
        if bullish >= 1 and spike > 1.5:
            rationale.append("single-window bullish with strong volume")
            return Signal(self.name, Verdict.BUY_CALL, 65.0, rationale, detail)
        if bearish >= 1 and spike > 1.5:
            rationale.append("single-window bearish with strong volume")
            return Signal(self.name, Verdict.BUY_PUT, 65.0, rationale, detail)

        rationale.append("insufficient multi-window confluence")
        return Signal(self.name, Verdict.NO_TRADE, 75.0, rationale, detail)


def build(params: dict) -> TechnicalAnalysisAgent:
    return TechnicalAnalysisAgent(**params)
