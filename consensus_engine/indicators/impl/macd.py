from dataclasses import dataclass
import pandas as pd

from .averages import source_column


@dataclass(frozen=True)
class MACD:
    fast: int = 12
    slow: int = 26
    signal: int = 9
    src: str = "close"

    @property
    def name(self) -> str:
        return f"macd_{self.fast}_{self.slow}_{self.signal}"

    @property
    def lookback(self) -> int:
        return self.slow

    def compute(self, ohlcv: pd.DataFrame) -> pd.DataFrame:
        """
        Computes the MACD line, its signal line and the histogram.
        
        Args:
            ohlcv: A DataFrame containing OHLCV bars.
            
        Returns:
            A DataFrame with ``macd``, ``macd_signal`` and ``macd_hist`` columns.
            The signal line starts as soon as the MACD line has a value.
        """
        price = source_column(ohlcv, self.src)
        fast = price.ewm(span=self.fast, min_periods=self.fast, adjust=False).mean()
        slow = price.ewm(span=self.slow, min_periods=self.slow, adjust=False).mean()
        line = fast - slow
        signal = line.ewm(span=self.signal, adjust=False).mean()

        return pd.DataFrame(
            {"macd": line, "macd_signal": signal, "macd_hist": line - signal},
            index=ohlcv.index,
        )
