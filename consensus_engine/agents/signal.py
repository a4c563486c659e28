"""Signal: the output of a single analysis agent."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class Verdict(Enum):
    BUY_CALL = "BUY_CALL"
    BUY_PUT = "BUY_PUT"
    NO_TRADE = "NO_TRADE"


@dataclass(frozen=True)
class Signal:
    """One agent's opinion about the instrument, NOT an order.

    The consensus engine weighs Signals from every agent into a Decision.

    Attributes
    ----------
    source : str
        Identifier of the producing agent.
    verdict : Verdict
        The recommended action.
    confidence : float
        0-100 conviction in ``verdict``.
    rationale : list[str]
        Human-readable audit trail, in the order it was produced.
    detail : dict
        Agent-specific diagnostics; forwarded untouched.
    """

    source: str
    verdict: Verdict
    confidence: float
    rationale: list[str] = field(default_factory=list)
    detail: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not isinstance(self.verdict, Verdict):
            raise ValueError(f"verdict must be a Verdict, got {self.verdict!r}")
        if not math.isfinite(self.confidence) or not 0.0 <= self.confidence <= 100.0:
            raise ValueError(
                f"confidence must be within [0, 100], got {self.confidence}"
            )
