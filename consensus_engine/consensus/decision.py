"""Decision: the engine's single output per evaluation."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from consensus_engine.agents.base import round_half_up
from consensus_engine.agents.signal import Signal, Verdict
from .trend import TrendAssessment

NO_SIGNALS = "no agent signals available"


class RiskLevel(Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


@dataclass(frozen=True)
class Decision:
    """Weighted consensus of every surviving agent Signal.

    Attributes
    ----------
    verdict : Verdict
        Final action after trend alignment.
    confidence : float
        0-100, post-adjustment.
    vote_tally : dict[Verdict, int]
        Accumulated weight per verdict; sums to ``total_weight``.
        Empty only when no agent produced a Signal.
    rationale : list[str]
        Trend narrative, vote narrative, alignment narrative, in that order.
    signals : list[Signal]
        Surviving Signals in registry order.
    risk_level : RiskLevel
    recommendation : str
        Presentational summary; nothing downstream parses it.
    """

    verdict: Verdict
    confidence: float
    vote_tally: dict[Verdict, int]
    rationale: list[str]
    signals: list[Signal]
    risk_level: RiskLevel
    recommendation: str
    total_weight: int = 0
    trend: Optional[TrendAssessment] = None
    failed_agents: tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def no_signals(
        cls, trend: Optional[TrendAssessment] = None, failed_agents: tuple[str, ...] = ()
    ) -> "Decision":
        return cls(
            verdict=Verdict.NO_TRADE,
            confidence=0.0,
            vote_tally={},
            rationale=[NO_SIGNALS],
            signals=[],
            risk_level=RiskLevel.HIGH,
            recommendation=f"NO TRADE: {NO_SIGNALS}",
            total_weight=0,
            trend=trend,
            failed_agents=tuple(failed_agents),
        )

    @property
    def display_confidence(self) -> int:
        return round_half_up(self.confidence)

    def to_dict(self) -> dict[str, Any]:
        """Serialise to a plain dict (for JSON export)."""
        return {
            "verdict": self.verdict.value,
            "confidence": self.confidence,
            "display_confidence": self.display_confidence,
            "risk_level": self.risk_level.value,
            "recommendation": self.recommendation,
            "vote_tally": {v.value: w for v, w in self.vote_tally.items()},
            "total_weight": self.total_weight,
            "rationale": list(self.rationale),
            "failed_agents": list(self.failed_agents),
            "trend": None if self.trend is None else {
                "direction": self.trend.direction.value,
                "strength": self.trend.strength,
                "bullish_percentage": self.trend.bullish_percentage,
            },
            "signals": [
                {
                    "source": s.source,
                    "verdict": s.verdict.value,
                    "confidence": s.confidence,
                    "rationale": list(s.rationale),
                }
                for s in self.signals
            ],
        }
