import math
from dataclasses import dataclass
from typing import Sequence

from .base import Capability, MarketContext, insufficient, ratio
from .signal import Signal, Verdict


@dataclass
class MarketMicrostructureAgent:
    """
    Ultra-short momentum, bar-to-bar volume spikes and position inside the
    recent range. Session windows (minutes after midnight, exchange time)
    raise the confidence floor; they are read from ``ctx.now``.
    """
    ultra_short_bars: int = 3
    short_bars: int = 8
    range_bars: int = 10
    session_floors: Sequence[tuple[int, int, float]] = (
        (570, 660, 60.0),   # 09:30-11:00
        (810, 900, 58.0),   # 13:30-15:00
        (901, 945, 62.0),   # 15:01-15:45
    )
    _name: str = "MarketMicrostructure"

    @property
    def name(self) -> str:
        return self._name

    @property
    def requires(self) -> frozenset[Capability]:
        return frozenset({Capability.CLOCK})

    def analyze(self, ctx: MarketContext) -> Signal:
        bars = ctx.bars
        if len(bars) < self.range_bars:
            return insufficient(
                self.name, f"insufficient data for microstructure (need {self.range_bars}+ bars)"
            )

        close = bars["close"]
        ultra = close.tail(self.ultra_short_bars)
        short = close.tail(self.short_bars)
        ultra_mom = ratio(float(ultra.iloc[-1] - ultra.iloc[0]), float(ultra.iloc[0]), default=0.0)
        short_mom = ratio(float(short.iloc[-1] - short.iloc[0]), float(short.iloc[0]), default=0.0)
        spike = ratio(float(bars["volume"].iloc[-1]), float(bars["volume"].iloc[-2]))

        rationale = [
            f"ultra-short momentum {ultra_mom:.3%}",
            f"short momentum {short_mom:.2%}",
            f"volume spike {spike:.1f}x",
        ]

        score = 0
        if ultra_mom > 0.0005:
            score += 3
        elif ultra_mom < -0.0005:
            score -= 3
        if short_mom > 0.001:
            score += 2
        elif short_mom < -0.001:
            score -= 2

        # Volume confirms whichever way momentum already points
        if score != 0:
            if spike > 2.0:
                score += int(math.copysign(2, score))
            elif spike > 1.5:
                score += int(math.copysign(1, score))

        recent = bars.tail(self.range_bars)
        high, low = float(recent["high"].max()), float(recent["low"].min())
        position = ratio(float(close.iloc[-1]) - low, high - low, default=0.5)
        rationale.append(f"price at {position:.0%} of recent range")
        if position > 0.85:
            score -= 1
        elif position < 0.15:
            score += 1

        if abs(score) >= 3:
            verdict = Verdict.BUY_CALL if score > 0 else Verdict.BUY_PUT
            conf = min(85.0, 65.0 + abs(score) * 5)
            rationale.append("strong short-term setup")
        elif abs(score) >= 1 and spike > 1.8:
            verdict = Verdict.BUY_CALL if score > 0 else Verdict.BUY_PUT
            conf = 68.0
            rationale.append("moderate momentum with strong volume")
        else:
            verdict, conf = Verdict.NO_TRADE, 70.0
            rationale.append("insufficient momentum/volume setup")

        if ctx.now is not None:
            minutes = ctx.now.hour * 60 + ctx.now.minute
            for start, end, floor in self.session_floors:
                if start <= minutes <= end:
                    conf = max(conf, floor)
                    rationale.append(f"active session window {start}-{end}")
                    break

        return Signal(self.name, verdict, conf, rationale, {"score": score, "volume_spike": spike})


def build(params: dict) -> MarketMicrostructureAgent:
    return MarketMicrostructureAgent(**params)
