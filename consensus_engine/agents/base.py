from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Iterable, Mapping, Optional, Protocol, runtime_checkable

import pandas as pd

from consensus_engine.indicators.core.interfaces import validate_ohlcv
from .signal import Signal, Verdict


class Capability(Enum):
    """Optional context inputs an agent may declare it needs."""

    VOLATILITY_INDEX = "volatility_index"
    HIGHER_TIMEFRAMES = "higher_timeframes"
    CLOCK = "clock"


@dataclass(frozen=True)
class MarketContext:
    """
    Immutable market snapshot handed to every agent for one evaluation.
    """
    bars: pd.DataFrame                                   # primary OHLCV bars, oldest first
    volatility_index: Optional[float] = None             # e.g. VIX level
    higher_timeframes: Mapping[str, pd.DataFrame] = field(default_factory=dict)
    now: Optional[datetime] = None                       # evaluation time, exchange-local

    def __post_init__(self) -> None:
        if self.bars is None or len(self.bars) == 0:
            raise ValueError("MarketContext requires at least one bar")
        validate_ohlcv(self.bars)

    def project(self, requires: Iterable[Capability]) -> "MarketContext":
        """
        Copy of this context holding only the optional inputs in ``requires``.
        Frames are copied so an agent cannot mutate what another agent sees.
        """
        requires = frozenset(requires)
        return MarketContext(
            bars=self.bars.copy(),
            volatility_index=(
                self.volatility_index if Capability.VOLATILITY_INDEX in requires else None
            ),
            higher_timeframes=(
                {k: v.copy() for k, v in self.higher_timeframes.items()}
                if Capability.HIGHER_TIMEFRAMES in requires else {}
            ),
            now=self.now if Capability.CLOCK in requires else None,
        )


@runtime_checkable
class Agent(Protocol):
    """
    Protocol for an independent analysis agent.
    """
    @property
    def name(self) -> str: ...

    @property
    def requires(self) -> frozenset[Capability]: ...

    def analyze(self, ctx: MarketContext) -> Signal:
        """
        Produces a Signal for the latest bar. Must not mutate ``ctx``.
        Insufficient data yields a NO_TRADE Signal, never an exception.
        """
        ...


def insufficient(source: str, reason: str, confidence: float = 0.0) -> Signal:
    """
    Helper for the "cannot speak" case: NO_TRADE with a rationale naming why.
    """
    return Signal(source, Verdict.NO_TRADE, confidence, [reason])


def clamp(value: float, lo: float = 0.0, hi: float = 100.0) -> float:
    return max(lo, min(hi, value))


def ratio(num: float, den: float, default: float = 1.0) -> float:
    """num / den, or ``default`` when the denominator is not positive."""
    return num / den if den > 0 else default


def round_half_up(value: float) -> int:
    """Round to the nearest integer with .5 going up (2.5 -> 3, -2.5 -> -2)."""
    return int(math.floor(value + 0.5))
