"""Shared fixtures: synthetic bar frames and scripted agents."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Optional

import numpy as np
import pandas as pd
import pytest

from consensus_engine.agents import Capability, MarketContext, Signal, Verdict


def bars_from_close(close, volume=None, spread: float = 0.5, start: str = "2024-03-04 14:30") -> pd.DataFrame:
    """One-minute OHLCV bars around a close series; open is the prior close."""
    close = np.asarray(close, dtype=np.float64)
    n = len(close)
    if volume is None:
        volume = np.full(n, 1000.0)
    opens = np.concatenate([[close[0]], close[:-1]])
    return pd.DataFrame({
        "time": pd.date_range(start, periods=n, freq="1min", tz="UTC"),
        "open": opens,
        "high": np.maximum(opens, close) + spread,
        "low": np.minimum(opens, close) - spread,
        "close": close,
        "volume": np.asarray(volume, dtype=np.float64),
    })


@pytest.fixture
def make_bars():
    return bars_from_close


@pytest.fixture
def flat_bars():
    return bars_from_close(np.full(80, 100.0))


@pytest.fixture
def uptrend_bars():
    return bars_from_close(np.linspace(100.0, 130.0, 80))


@pytest.fixture
def downtrend_bars():
    return bars_from_close(np.linspace(130.0, 100.0, 80))


@pytest.fixture
def ctx(flat_bars):
    return MarketContext(bars=flat_bars)


@dataclass
class ScriptedAgent:
    """Agent returning a fixed verdict, or raising when ``fail`` is set."""

    _name: str
    verdict: Verdict = Verdict.NO_TRADE
    confidence: float = 70.0
    fail: Optional[Exception] = None
    delay: float = 0.0
    needs: frozenset = frozenset()

    @property
    def name(self) -> str:
        return self._name

    @property
    def requires(self) -> frozenset[Capability]:
        return self.needs

    def analyze(self, ctx: MarketContext) -> Signal:
        if self.delay:
            time.sleep(self.delay)
        if self.fail is not None:
            raise self.fail
        return Signal(self._name, self.verdict, self.confidence, [f"{self._name} scripted"])


@pytest.fixture
def scripted():
    return ScriptedAgent
