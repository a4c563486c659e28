from dataclasses import dataclass
import pandas as pd


def source_column(ohlcv: pd.DataFrame, src: str) -> pd.Series:
    """Return ``ohlcv[src]`` or raise if the column is absent."""
    if src not in ohlcv.columns:
        raise ValueError(f"Source column '{src}' not found in input DataFrame.")
    return ohlcv[src]


@dataclass(frozen=True)
class SMA:
    """Simple moving average; NaN until ``period`` bars are available."""

    period: int
    src: str = "close"

    @property
    def name(self) -> str:
        return f"sma_{self.period}_{self.src}"

    @property
    def lookback(self) -> int:
        return self.period

    def compute(self, ohlcv: pd.DataFrame) -> pd.DataFrame:
        price = source_column(ohlcv, self.src)
        return price.rolling(window=self.period, min_periods=self.period).mean().to_frame(name=self.name)


@dataclass(frozen=True)
class EMA:
    """Exponential moving average with ``alpha = 2 / (period + 1)``.

    Recursive form (``adjust=False``) seeded with the first price, so values
    match a bar-by-bar update. NaN until ``period`` bars are available.
    """

    period: int
    src: str = "close"

    @property
    def name(self) -> str:
        return f"ema_{self.period}_{self.src}"

    @property
    def lookback(self) -> int:
        return self.period

    def compute(self, ohlcv: pd.DataFrame) -> pd.DataFrame:
        price = source_column(ohlcv, self.src)
        smoothed = price.ewm(span=self.period, min_periods=self.period, adjust=False).mean()
        return smoothed.to_frame(name=self.name)
