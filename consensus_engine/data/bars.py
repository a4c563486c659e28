"""Bar loading and fail-fast data-integrity checks."""

from __future__ import annotations

import logging
from pathlib import Path

import pandas as pd

log = logging.getLogger(__name__)


_PRICE_COLUMNS = ["open", "high", "low", "close"]


def validate_bars(df: pd.DataFrame) -> None:
    """Check a bar frame for integrity problems, in any row order.

    Raises ``ValueError`` on the first problem so malformed data never
    reaches the agents. Ordering is not checked here: ``load_bars`` sorts
    by time before validating.
    """
    missing = [c for c in ["time", *_PRICE_COLUMNS, "volume"] if c not in df.columns]
    if missing:
        raise ValueError(f"Missing columns: {missing}")

    # Timestamps: present and unique
    null_times = int(df["time"].isna().sum())
    if null_times:
        raise ValueError(f"Null timestamps found: {null_times} rows")
    n_dupes = int(pd.to_datetime(df["time"], utc=True).duplicated().sum())
    if n_dupes:
        raise ValueError(f"Duplicate timestamps found: {n_dupes}")

    # Prices: finite, positive, and high/low bracket open/close
    prices = df[_PRICE_COLUMNS]
    na_cols = [c for c in _PRICE_COLUMNS if prices[c].isna().any()]
    if na_cols:
        raise ValueError(f"NaN values in {na_cols}")
    non_positive = int((prices <= 0).any(axis=1).sum())
    if non_positive:
        raise ValueError(f"Non-positive prices found: {non_positive} rows")
    inverted = int((df["high"] < df["low"]).sum())
    if inverted:
        raise ValueError(f"High below low: {inverted} rows")
    outside = int(
        ((df["high"] < prices[["open", "close"]].max(axis=1))
         | (df["low"] > prices[["open", "close"]].min(axis=1))).sum()
    )
    if outside:
        raise ValueError(f"Open/close outside the high-low range: {outside} rows")

    # Volume: a non-negative count
    volume = df["volume"]
    if volume.isna().any():
        raise ValueError("NaN values in ['volume']")
    neg = int((volume < 0).sum())
    if neg:
        raise ValueError(f"Negative volume found: {neg} rows")
    fractional = int((volume != volume.round()).sum())
    if fractional:
        raise ValueError(f"Fractional volume found: {fractional} rows")


def load_bars(snapshot_dir: str | Path) -> pd.DataFrame:
    """Concatenate every CSV in ``snapshot_dir`` into one validated frame.

    ``tick_volume`` / ``real_volume`` are aliased to ``volume`` when the
    export has no ``volume`` column. Rows are sorted by time before
    validation; ``time`` is parsed to tz-aware UTC timestamps.
    """
    snapshot_dir = Path(snapshot_dir)
    csv_files = sorted(snapshot_dir.glob("*.csv"))
    if not csv_files:
        raise FileNotFoundError(f"No CSV files found in {snapshot_dir}")

    frames = []
    for csv_file in csv_files:
        df_part = pd.read_csv(csv_file)
        frames.append(df_part)
        log.info("  Loaded %s  (%s rows)", csv_file.name, f"{len(df_part):,}")

    df = pd.concat(frames, ignore_index=True)

    if "volume" not in df.columns:
        if "tick_volume" in df.columns:
            log.info("Aliasing 'tick_volume' to 'volume'")
            df["volume"] = df["tick_volume"]
        elif "real_volume" in df.columns:
            log.info("Aliasing 'real_volume' to 'volume'")
            df["volume"] = df["real_volume"]
        else:
            raise ValueError("No volume column found (expected volume, tick_volume or real_volume)")

    df["time"] = pd.to_datetime(df["time"], utc=True)
    df = df.sort_values("time", kind="stable").reset_index(drop=True)
    validate_bars(df)
    log.info("Loaded %s bars (%s → %s)", f"{len(df):,}", df["time"].iloc[0], df["time"].iloc[-1])
    return df


def resample_bars(df: pd.DataFrame, rule: str) -> pd.DataFrame:
    """Aggregate bars to a coarser timeframe (e.g. ``"5min"``).

    Open/high/low/close/volume follow the usual first/max/min/last/sum
    rules; empty buckets are dropped.
    """
    out = (
        df.set_index("time")[["open", "high", "low", "close", "volume"]]
        .resample(rule, label="left", closed="left")
        .agg({"open": "first", "high": "max", "low": "min", "close": "last", "volume": "sum"})
        .dropna(subset=["close"])
        .reset_index()
    )
    return out
