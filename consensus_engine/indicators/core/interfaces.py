from typing import Iterable, Protocol, runtime_checkable

import pandas as pd

OHLCV_COLUMNS = ("open", "high", "low", "close", "volume")


@runtime_checkable
class Indicator(Protocol):
    """A column-producing transform over a bar frame.

    ``lookback`` is the number of bars before the first fully-formed value;
    ``compute`` returns a frame on the input's index.
    """

    name: str
    lookback: int

    def compute(self, ohlcv: pd.DataFrame) -> pd.DataFrame: ...


def validate_ohlcv(df: pd.DataFrame, required: Iterable[str] = OHLCV_COLUMNS) -> None:
    """Raise ``ValueError`` naming any of ``required`` absent from ``df``."""
    missing = sorted(set(required) - set(df.columns))
    if missing:
        raise ValueError(f"Bar frame missing required columns: {missing}")
