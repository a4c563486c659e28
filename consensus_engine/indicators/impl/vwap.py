from dataclasses import dataclass
import pandas as pd


@dataclass(frozen=True)
class VWAP:
    """Rolling volume-weighted average of the typical price (H+L+C)/3."""

    window: int = 100

    @property
    def name(self) -> str:
        return f"vwap_{self.window}"

    @property
    def lookback(self) -> int:
        return self.window

    def compute(self, ohlcv: pd.DataFrame) -> pd.DataFrame:
        for col in ("high", "low", "close", "volume"):
            if col not in ohlcv.columns:
                raise ValueError(f"Column '{col}' not found in input DataFrame.")

        typical = (ohlcv["high"] + ohlcv["low"] + ohlcv["close"]) / 3.0
        pv = (typical * ohlcv["volume"]).rolling(window=self.window, min_periods=1).sum()
        vol = ohlcv["volume"].rolling(window=self.window, min_periods=1).sum()
        # Zero traded volume falls back to the close
        vwap = (pv / vol.where(vol > 0)).fillna(ohlcv["close"])

        return vwap.to_frame(name=self.name)
