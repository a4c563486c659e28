"""Consensus thresholds, trend settings and the agent weight table."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from consensus_engine.errors import ConfigurationError

DEFAULT_WEIGHTS: dict[str, int] = {
    "MarketInternals": 2,
    "MultiTimeframeAnalyst": 2,
    "VWAPAnalyst": 2,
    "TechnicalAnalysis": 1,
    "VolatilityAnalysis": 1,
    "MarketMicrostructure": 1,
    "VolumeProfile": 1,
    "VolumeDelta": 1,
}


def _from_mapping(cls, raw: Optional[Mapping[str, Any]]):
    raw = dict(raw or {})
    known = {f.name for f in dataclasses.fields(cls)}
    unknown = sorted(set(raw) - known)
    if unknown:
        raise ConfigurationError(
            f"Unknown {cls.__name__} keys: {unknown}. Allowed: {sorted(known)}"
        )
    return cls(**raw)


@dataclass(frozen=True)
class ConsensusConfig:
    """Cut points and multipliers for vote resolution and trend alignment."""

    strong_fraction: float = 0.5
    moderate_fraction: float = 0.4
    moderate_penalty: float = 0.85
    fallback_confidence: float = 75.0

    strong_trend_strength: float = 70.0
    moderate_trend_strength: float = 55.0
    strong_align_boost: float = 1.15
    strong_align_cap: float = 95.0
    strong_oppose_factor: float = 0.65
    counter_trend_floor: float = 55.0
    moderate_align_boost: float = 1.05
    moderate_align_cap: float = 90.0
    moderate_oppose_factor: float = 0.85

    risk_low_above: float = 80.0
    risk_medium_above: float = 60.0

    def __post_init__(self) -> None:
        if not 0.0 < self.moderate_fraction <= self.strong_fraction <= 1.0:
            raise ConfigurationError(
                "thresholds must satisfy 0 < moderate_fraction <= strong_fraction <= 1, "
                f"got moderate={self.moderate_fraction}, strong={self.strong_fraction}"
            )
        for name in ("moderate_penalty", "strong_oppose_factor", "moderate_oppose_factor"):
            value = getattr(self, name)
            if not 0.0 < value <= 1.0:
                raise ConfigurationError(f"{name} must be in (0, 1], got {value}")
        for name in ("strong_align_boost", "moderate_align_boost"):
            value = getattr(self, name)
            if value < 1.0:
                raise ConfigurationError(f"{name} must be >= 1, got {value}")
        for name in (
            "fallback_confidence", "strong_align_cap", "moderate_align_cap",
            "counter_trend_floor", "risk_low_above", "risk_medium_above",
            "strong_trend_strength", "moderate_trend_strength",
        ):
            value = getattr(self, name)
            if not 0.0 <= value <= 100.0:
                raise ConfigurationError(f"{name} must be within [0, 100], got {value}")
        if self.moderate_trend_strength > self.strong_trend_strength:
            raise ConfigurationError("moderate_trend_strength must not exceed strong_trend_strength")
        if self.risk_medium_above > self.risk_low_above:
            raise ConfigurationError("risk_medium_above must not exceed risk_low_above")

    @classmethod
    def from_dict(cls, raw: Optional[Mapping[str, Any]]) -> "ConsensusConfig":
        return _from_mapping(cls, raw)


@dataclass(frozen=True)
class TrendConfig:
    """Windows and cut points for the trend assessor.

    ``windows`` holds ``(bars, weight)`` pairs; longer windows should carry
    larger weights.
    """

    windows: tuple[tuple[int, int], ...] = ((15, 1), (30, 2), (60, 3))
    min_window_bars: int = 10
    band: float = 0.005
    rsi_bullish: float = 55.0
    rsi_bearish: float = 45.0
    volume_window: int = 20
    volume_ratio: float = 1.5
    volume_bonus: float = 2.0

    def __post_init__(self) -> None:
        # YAML yields lists; normalise so the config stays hashable
        windows = tuple((int(length), int(weight)) for length, weight in self.windows)
        object.__setattr__(self, "windows", windows)
        if not windows:
            raise ConfigurationError("trend config needs at least one window")
        for length, weight in windows:
            if length <= 0 or weight <= 0:
                raise ConfigurationError(f"trend window ({length}, {weight}) must be positive")
        if self.rsi_bearish > self.rsi_bullish:
            raise ConfigurationError("rsi_bearish must not exceed rsi_bullish")

    @classmethod
    def from_dict(cls, raw: Optional[Mapping[str, Any]]) -> "TrendConfig":
        return _from_mapping(cls, raw)


class WeightTable:
    """Static agent id → positive integer weight mapping.

    Agents missing from the table fall back to ``default``.
    """

    def __init__(self, weights: Optional[Mapping[str, int]] = None, default: int = 1) -> None:
        table = dict(DEFAULT_WEIGHTS if weights is None else weights)
        for agent, weight in [*table.items(), ("<default>", default)]:
            if isinstance(weight, bool) or not isinstance(weight, int) or weight <= 0:
                raise ConfigurationError(
                    f"weight for '{agent}' must be a positive integer, got {weight!r}"
                )
        self._weights = table
        self._default = default

    @property
    def default(self) -> int:
        return self._default

    def weight(self, agent: str) -> int:
        return self._weights.get(agent, self._default)

    def __contains__(self, agent: str) -> bool:
        return agent in self._weights

    def as_dict(self) -> dict[str, int]:
        return dict(self._weights)

    def __repr__(self) -> str:
        return f"WeightTable({self._weights!r}, default={self._default})"
