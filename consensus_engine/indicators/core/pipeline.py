from dataclasses import dataclass
from typing import Dict, List, Optional

import pandas as pd

from .interfaces import Indicator, validate_ohlcv


@dataclass(frozen=True)
class FeatureSpec:
    """An indicator plus the column name it should appear under.

    ``alias`` only applies to single-column indicators; multi-column ones
    (MACD, Bollinger) keep their own column names.
    """

    base: Indicator
    alias: Optional[str] = None

    @property
    def name(self) -> str:
        return self.alias or self.base.name

    def compute(self, ohlcv: pd.DataFrame) -> pd.DataFrame:
        out = self.base.compute(ohlcv)
        if len(out.columns) == 1:
            out.columns = [self.name]
        return out


@dataclass(frozen=True)
class FeaturePipeline:
    """Evaluates a fixed set of indicators over one bar frame."""

    specs: List[FeatureSpec]

    @property
    def max_lookback(self) -> int:
        return max((spec.base.lookback for spec in self.specs), default=0)

    @property
    def min_bars(self) -> int:
        """Bars needed before every feature has a value on the last row."""
        return self.max_lookback + 1

    def transform(self, ohlcv: pd.DataFrame) -> pd.DataFrame:
        """All feature columns on the input index, ordered by column name.

        Two specs producing the same column name is a ``ValueError``.
        """
        validate_ohlcv(ohlcv)
        if not self.specs:
            return pd.DataFrame(index=ohlcv.index)

        X = pd.concat([spec.compute(ohlcv) for spec in self.specs], axis=1)
        dupes = sorted(set(X.columns[X.columns.duplicated()]))
        if dupes:
            raise ValueError(f"Duplicate feature columns: {dupes}")
        return X.reindex(sorted(X.columns), axis=1)

    def latest(self, ohlcv: pd.DataFrame) -> Optional[Dict[str, float]]:
        """Feature values on the last bar, or ``None`` when the frame is
        shorter than ``min_bars``. The input index is ignored."""
        if len(ohlcv) < self.min_bars:
            return None
        last = self.transform(ohlcv.reset_index(drop=True)).iloc[-1]
        return {column: float(value) for column, value in last.items()}
