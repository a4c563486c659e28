"""Periodic evaluation loop with an explicit start/stop lifecycle."""

from __future__ import annotations

import logging
import threading
from typing import Optional, Protocol, runtime_checkable

from consensus_engine.agents.base import MarketContext
from consensus_engine.consensus.decision import Decision
from consensus_engine.consensus.engine import ConsensusEngine

log = logging.getLogger(__name__)


@runtime_checkable
class ContextProvider(Protocol):
    """Abstraction over any market-data provider (broker feed, CSV replay, mock)."""

    def fetch(self) -> MarketContext: ...


@runtime_checkable
class DecisionSink(Protocol):
    """Consumer of decisions (execution layer, audit log, notifier)."""

    def publish(self, decision: Decision) -> None: ...


class ConsensusScheduler:
    """Runs ``engine.evaluate`` every ``interval`` seconds on a worker thread.

    A cycle asks ``provider`` for a fresh context, evaluates it and hands the
    Decision to ``sink``. A failing cycle is logged and the loop carries on;
    the engine itself never raises for agent faults.

    Parameters
    ----------
    engine : ConsensusEngine
    provider : ContextProvider
    sink : DecisionSink
    interval : float
        Seconds between the start of consecutive cycles.
    """

    def __init__(
        self,
        engine: ConsensusEngine,
        provider: ContextProvider,
        sink: DecisionSink,
        interval: float = 60.0,
    ) -> None:
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        self._engine = engine
        self._provider = provider
        self._sink = sink
        self._interval = interval
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()
        self.cycles = 0
        self.failures = 0

    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        with self._lock:
            if self.is_running():
                raise RuntimeError("scheduler is already running")
            self._stop.clear()
            self._thread = threading.Thread(
                target=self._loop, name="consensus-scheduler", daemon=True,
            )
            self._thread.start()
        log.info("Scheduler started (interval %.1fs)", self._interval)

    def stop(self, timeout: Optional[float] = None) -> None:
        """Signal the loop to exit and wait for the current cycle to finish."""
        with self._lock:
            thread = self._thread
            self._stop.set()
        if thread is not None:
            thread.join(timeout)
        with self._lock:
            if self._thread is thread and (thread is None or not thread.is_alive()):
                self._thread = None
        log.info("Scheduler stopped after %d cycle(s), %d failure(s)", self.cycles, self.failures)

    def run_once(self) -> Optional[Decision]:
        """One provider → engine → sink cycle. Returns ``None`` if it failed.

        Safe to call while the loop is running; the counters are shared.
        """
        with self._lock:
            self.cycles += 1
            cycle = self.cycles
        try:
            ctx = self._provider.fetch()
            decision = self._engine.evaluate(ctx)
            self._sink.publish(decision)
        except Exception:
            with self._lock:
                self.failures += 1
            log.exception("Scheduler cycle %d failed", cycle)
            return None
        return decision

    def _loop(self) -> None:
        while not self._stop.is_set():
            self.run_once()
            self._stop.wait(self._interval)
