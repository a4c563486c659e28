"""Latest-bar indicator snapshot shared by the trend assessor and agents."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

import pandas as pd

from .core.pipeline import FeaturePipeline, FeatureSpec
from .impl.bollinger import BollingerBands
from .impl.macd import MACD
from .impl.rsi import RSI

_PIPELINE = FeaturePipeline([
    FeatureSpec(RSI(14), alias="rsi"),
    FeatureSpec(MACD(12, 26, 9)),
    FeatureSpec(BollingerBands(20, 2.0)),
])

MIN_SNAPSHOT_BARS = _PIPELINE.min_bars


@dataclass(frozen=True)
class IndicatorSnapshot:
    """Indicator values on the most recent bar."""

    rsi: float
    macd: float
    macd_signal: float
    macd_hist: float
    bb_upper: float
    bb_middle: float
    bb_lower: float


def latest_snapshot(bars: pd.DataFrame) -> Optional[IndicatorSnapshot]:
    """Return the last-bar RSI / MACD / Bollinger values.

    Returns ``None`` when there are fewer than ``MIN_SNAPSHOT_BARS`` bars or
    any value on the last row is not finite, so callers can treat the
    window as unavailable instead of handling an exception.
    """
    last = _PIPELINE.latest(bars)
    if last is None:
        return None
    values = {field: last[field] for field in IndicatorSnapshot.__dataclass_fields__}
    if not all(math.isfinite(v) for v in values.values()):
        return None
    return IndicatorSnapshot(**values)
