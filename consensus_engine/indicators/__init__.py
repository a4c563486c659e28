from .core.interfaces import Indicator, validate_ohlcv
from .core.pipeline import FeaturePipeline, FeatureSpec
from .impl.averages import EMA, SMA
from .impl.rsi import RSI
from .impl.macd import MACD
from .impl.bollinger import BollingerBands
from .impl.vwap import VWAP
from .snapshot import IndicatorSnapshot, MIN_SNAPSHOT_BARS, latest_snapshot

__all__ = [
    "Indicator",
    "validate_ohlcv",
    "SMA",
    "EMA",
    "RSI",
    "MACD",
    "BollingerBands",
    "VWAP",
    "FeaturePipeline",
    "FeatureSpec",
    "IndicatorSnapshot",
    "MIN_SNAPSHOT_BARS",
    "latest_snapshot",
]
