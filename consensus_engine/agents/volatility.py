from dataclasses import dataclass

from .base import Capability, MarketContext, insufficient
from .signal import Signal, Verdict


@dataclass
class VolatilityAnalysisAgent:
    """
    Reads the volatility index as an implied-vol level and as a contrarian
    sentiment gauge: high fear leans long, complacency leans short.
    """
    low_iv: float = 0.12
    high_iv: float = 0.45
    fear_level: float = 25.0
    complacency_level: float = 18.0
    _name: str = "VolatilityAnalysis"

    @property
    def name(self) -> str:
        return self._name

    @property
    def requires(self) -> frozenset[Capability]:
        return frozenset({Capability.VOLATILITY_INDEX})

    def analyze(self, ctx: MarketContext) -> Signal:
        vix = ctx.volatility_index
        if vix is None or vix <= 0:
            return insufficient(self.name, "no volatility index available")

        iv = vix / 100.0
        verdict = Verdict.NO_TRADE
        conf = 50.0
        rationale = [f"implied volatility {iv:.1%}"]

        if iv < self.low_iv:
            verdict, conf = Verdict.NO_TRADE, 80.0
            rationale.append("low volatility, insufficient premium")
        elif iv <= self.high_iv:
            conf = max(conf, 65.0)
            rationale.append("volatility in tradable range")
        else:
            conf = max(conf, 60.0)
            rationale.append("extreme volatility")

        if vix > self.fear_level and verdict is not Verdict.BUY_PUT:
            verdict, conf = Verdict.BUY_CALL, max(conf, 68.0)
            rationale.append("elevated fear, contrarian bullish")
        elif vix < self.complacency_level and verdict is not Verdict.BUY_CALL:
            verdict, conf = Verdict.BUY_PUT, max(conf, 68.0)
            rationale.append("complacency, contrarian bearish")

        return Signal(self.name, verdict, conf, rationale, {"volatility_index": vix})


def build(params: dict) -> VolatilityAnalysisAgent:
    return VolatilityAnalysisAgent(**params)
