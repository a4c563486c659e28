from dataclasses import dataclass
import pandas as pd

from .averages import source_column


@dataclass(frozen=True)
class BollingerBands:
    period: int = 20
    num_std: float = 2.0
    src: str = "close"

    @property
    def name(self) -> str:
        return f"bb_{self.period}"

    @property
    def lookback(self) -> int:
        return self.period

    def compute(self, ohlcv: pd.DataFrame) -> pd.DataFrame:
        """
        Computes Bollinger Bands around a simple moving average.
        
        Args:
            ohlcv: A DataFrame containing OHLCV bars.
            
        Returns:
            A DataFrame with ``bb_upper``, ``bb_middle`` and ``bb_lower`` columns.
            The band width uses the population standard deviation.
        """
        rolling = source_column(ohlcv, self.src).rolling(window=self.period, min_periods=self.period)
        middle = rolling.mean()
        std = rolling.std(ddof=0)

        return pd.DataFrame(
            {
                "bb_upper": middle + self.num_std * std,
                "bb_middle": middle,
                "bb_lower": middle - self.num_std * std,
            },
            index=ohlcv.index,
        )
