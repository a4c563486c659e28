from dataclasses import dataclass

import numpy as np
import pandas as pd

from .averages import source_column


@dataclass(frozen=True)
class RSI:
    """Wilder's Relative Strength Index.

    The first average gain/loss is the simple mean of the first ``period``
    price changes; later values use Wilder's recursive smoothing. A zero
    average loss is floored at ``loss_floor`` so a one-way series reads
    close to 100 instead of dividing by zero.
    """

    period: int = 14
    src: str = "close"
    loss_floor: float = 0.01

    @property
    def name(self) -> str:
        return f"rsi_{self.period}"

    @property
    def lookback(self) -> int:
        return self.period + 1

    def compute(self, ohlcv: pd.DataFrame) -> pd.DataFrame:
        price = source_column(ohlcv, self.src).values.astype(np.float64)
        n = len(price)
        p = self.period
        rsi = np.full(n, np.nan, dtype=np.float64)

        if n > p:
            delta = np.diff(price)
            gains = np.where(delta > 0, delta, 0.0)
            losses = np.where(delta < 0, -delta, 0.0)

            avg_gain = np.mean(gains[:p])
            avg_loss = np.mean(losses[:p])
            rsi[p] = self._value(avg_gain, avg_loss)

            for i in range(p + 1, n):
                avg_gain = (avg_gain * (p - 1) + gains[i - 1]) / p
                avg_loss = (avg_loss * (p - 1) + losses[i - 1]) / p
                rsi[i] = self._value(avg_gain, avg_loss)

        return pd.DataFrame({self.name: rsi}, index=ohlcv.index)

    def _value(self, avg_gain: float, avg_loss: float) -> float:
        rs = avg_gain / (avg_loss if avg_loss > 0 else self.loss_floor)
        return 100.0 - 100.0 / (1.0 + rs)
