"""Weighted-vote consensus over independent agent Signals.

One call to :meth:`ConsensusEngine.evaluate` is one pass:

1. run every agent on its projected context; faults are logged and excluded
2. tally weights per verdict
3. resolve the verdict by fixed priority (NO_TRADE, BUY_CALL, BUY_PUT at the
   strong tier, then the moderate tier, then the NO_TRADE fallback)
4. scale confidence by trend alignment
5. classify risk from the final confidence
6. render the recommendation text

The engine holds no state between calls beyond its configuration.
"""

from __future__ import annotations

import concurrent.futures
import logging
import time
from collections import Counter
from typing import Iterable, Mapping, Optional, Sequence, Union

from consensus_engine.agents.base import Agent, MarketContext, round_half_up
from consensus_engine.agents.signal import Signal, Verdict
from consensus_engine.errors import ConfigurationError
from .config import ConsensusConfig, WeightTable
from .decision import Decision, RiskLevel
from .trend import TrendAssessment, TrendAssessor

log = logging.getLogger(__name__)

_VERDICT_TEXT = {
    Verdict.BUY_CALL: "BUY CALL",
    Verdict.BUY_PUT: "BUY PUT",
    Verdict.NO_TRADE: "NO TRADE",
}


class ConsensusEngine:
    """Aggregates agent Signals into a single Decision.

    Parameters
    ----------
    agents : Sequence[Agent]
        Registered agents; their order fixes ``Decision.signals`` order.
    weights : WeightTable | Mapping[str, int] | None
        Agent id → positive integer weight. ``None`` uses the defaults.
    config : ConsensusConfig
        Vote thresholds and trend-alignment multipliers.
    trend_assessor : TrendAssessor
    max_workers : int
        ``1`` evaluates agents inline; more runs them on a thread pool.
    agent_timeout : float | None
        Seconds from submission that every agent has to finish; an overdue
        agent counts as a fault. Forces the thread-pool path.
        An overdue agent cannot be interrupted: its worker thread keeps
        running in the background and, as ``concurrent.futures`` workers
        are joined at interpreter exit, an agent that never returns keeps
        the process alive. Agents must terminate on their own.
    """

    def __init__(
        self,
        agents: Sequence[Agent],
        weights: Union[WeightTable, Mapping[str, int], None] = None,
        config: Optional[ConsensusConfig] = None,
        trend_assessor: Optional[TrendAssessor] = None,
        max_workers: int = 1,
        agent_timeout: Optional[float] = None,
    ) -> None:
        agents = list(agents)
        if not agents:
            raise ConfigurationError("agent registry is empty")
        for agent in agents:
            if not isinstance(agent, Agent):
                raise ConfigurationError(f"{agent!r} does not implement the Agent protocol")
        dupes = sorted(name for name, n in Counter(a.name for a in agents).items() if n > 1)
        if dupes:
            raise ConfigurationError(f"duplicate agent names: {dupes}")
        if max_workers < 1:
            raise ConfigurationError(f"max_workers must be >= 1, got {max_workers}")
        if agent_timeout is not None and agent_timeout <= 0:
            raise ConfigurationError(f"agent_timeout must be positive, got {agent_timeout}")

        self.agents = agents
        self.weights = weights if isinstance(weights, WeightTable) else WeightTable(weights)
        self.config = config or ConsensusConfig()
        self.trend_assessor = trend_assessor or TrendAssessor()
        self.max_workers = max_workers
        self.agent_timeout = agent_timeout

        for agent in agents:
            if agent.name not in self.weights:
                log.warning(
                    "No weight configured for agent %s; using default %d",
                    agent.name, self.weights.default,
                )

    @property
    def total_weight(self) -> int:
        return sum(self.weights.weight(a.name) for a in self.agents)

    # ── Evaluation ───────────────────────────────────────────────────

    def evaluate(self, ctx: MarketContext) -> Decision:
        trend = self._assess_trend(ctx)
        signals, failed = self._run_agents(ctx)
        if failed:
            log.warning("Excluded %d agent(s) from consensus: %s", len(failed), ", ".join(failed))
        decision = self.decide(signals, trend, failed)
        log.info(
            "Decision: %s (%d%%, risk %s) from %d/%d agents",
            decision.verdict.value, decision.display_confidence,
            decision.risk_level.value, len(signals), len(self.agents),
        )
        return decision

    def _assess_trend(self, ctx: MarketContext) -> TrendAssessment:
        try:
            return self.trend_assessor.assess(ctx.bars.copy())
        except Exception:
            log.exception("Trend assessment failed; continuing with a neutral trend")
            return TrendAssessment.neutral("trend assessment unavailable")

    def _run_agents(self, ctx: MarketContext) -> tuple[list[Signal], list[str]]:
        if self.max_workers == 1 and self.agent_timeout is None:
            outcomes = [self._run_one(agent, ctx) for agent in self.agents]
        else:
            outcomes = self._run_pooled(ctx)

        signals, failed = [], []
        for agent, signal in zip(self.agents, outcomes):
            if signal is None:
                failed.append(agent.name)
            else:
                signals.append(signal)
                log.debug("%s: %s (%.0f%%) %s", agent.name, signal.verdict.value,
                          signal.confidence, "; ".join(signal.rationale))
        return signals, failed

    def _run_one(self, agent: Agent, ctx: MarketContext) -> Optional[Signal]:
        try:
            return _invoke(agent, ctx.project(agent.requires))
        except Exception:
            log.exception("Agent %s failed; excluded from consensus", agent.name)
            return None

    def _run_pooled(self, ctx: MarketContext) -> list[Optional[Signal]]:
        pool = concurrent.futures.ThreadPoolExecutor(
            max_workers=min(self.max_workers, len(self.agents)),
            thread_name_prefix="agent",
        )
        try:
            futures = [
                pool.submit(_invoke, agent, ctx.project(agent.requires))
                for agent in self.agents
            ]
            deadline = (
                None if self.agent_timeout is None
                else time.monotonic() + self.agent_timeout
            )
            outcomes: list[Optional[Signal]] = []
            # Collect in registry order; completion order does not matter
            for agent, future in zip(self.agents, futures):
                remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
                try:
                    outcomes.append(future.result(timeout=remaining))
                except concurrent.futures.TimeoutError:
                    future.cancel()
                    log.error("Agent %s timed out after %.2fs; excluded from consensus",
                              agent.name, self.agent_timeout)
                    outcomes.append(None)
                except Exception:
                    log.exception("Agent %s failed; excluded from consensus", agent.name)
                    outcomes.append(None)
            return outcomes
        finally:
            # Abandon anything still queued or running; agents are pure
            pool.shutdown(wait=False, cancel_futures=True)

    # ── Aggregation ──────────────────────────────────────────────────

    def decide(
        self,
        signals: Iterable[Signal],
        trend: TrendAssessment,
        failed_agents: Iterable[str] = (),
    ) -> Decision:
        """Reduce already-computed Signals and a trend assessment to a Decision.

        Pure: the same inputs always give the same Decision.
        """
        signals = list(signals)
        failed = tuple(failed_agents)
        if not signals:
            return Decision.no_signals(trend, failed)

        cfg = self.config
        tally = {v: 0 for v in Verdict}
        total = 0
        weighted = 0.0
        for s in signals:
            w = self.weights.weight(s.source)
            tally[s.verdict] += w
            total += w
            weighted += s.confidence * w
        avg = weighted / total if total > 0 else 0.0

        strong = total * cfg.strong_fraction
        moderate = total * cfg.moderate_fraction
        calls, puts, passes = tally[Verdict.BUY_CALL], tally[Verdict.BUY_PUT], tally[Verdict.NO_TRADE]

        if passes >= strong:
            verdict, conf, reason = Verdict.NO_TRADE, avg, "strong consensus to avoid trading"
        elif calls >= strong:
            verdict, conf, reason = Verdict.BUY_CALL, avg, "strong consensus for calls"
        elif puts >= strong:
            verdict, conf, reason = Verdict.BUY_PUT, avg, "strong consensus for puts"
        elif calls >= moderate and puts < moderate:
            verdict, conf, reason = (
                Verdict.BUY_CALL, avg * cfg.moderate_penalty, "moderate consensus for calls"
            )
        elif puts >= moderate and calls < moderate:
            verdict, conf, reason = (
                Verdict.BUY_PUT, avg * cfg.moderate_penalty, "moderate consensus for puts"
            )
        else:
            verdict, conf, reason = (
                Verdict.NO_TRADE, cfg.fallback_confidence, "insufficient or conflicting consensus"
            )

        rationale = [trend.rationale[0] if trend.rationale else
                     f"trend {trend.direction.value} (strength {trend.strength:.0f})"]
        rationale.append(
            f"{reason}: CALL {calls} / PUT {puts} / NO_TRADE {passes} of {total}"
        )
        for s in signals:
            if s.verdict is not Verdict.NO_TRADE:
                rationale.append(f"{s.source}: {s.verdict.value} ({round_half_up(s.confidence)}%)")

        aligned_verdict, conf, note = self._align_with_trend(verdict, conf, trend)
        if note:
            rationale.append(note)
        if aligned_verdict is not verdict:
            verdict, reason = aligned_verdict, note

        conf = max(0.0, min(100.0, conf))
        risk = self.classify_risk(conf)
        return Decision(
            verdict=verdict,
            confidence=conf,
            vote_tally=tally,
            rationale=rationale,
            signals=signals,
            risk_level=risk,
            recommendation=_recommendation(verdict, conf, tally, reason),
            total_weight=total,
            trend=trend,
            failed_agents=failed,
        )

    def _align_with_trend(
        self, verdict: Verdict, conf: float, trend: TrendAssessment
    ) -> tuple[Verdict, float, Optional[str]]:
        if verdict is Verdict.NO_TRADE:
            return verdict, conf, None

        cfg = self.config
        bullish = verdict is Verdict.BUY_CALL
        aligned = trend.direction.is_bullish if bullish else trend.direction.is_bearish
        opposed = trend.direction.is_bearish if bullish else trend.direction.is_bullish

        if trend.strength >= cfg.strong_trend_strength:
            if aligned:
                return verdict, min(cfg.strong_align_cap, conf * cfg.strong_align_boost), \
                    "aligned with strong trend, confidence boosted"
            if opposed:
                reduced = round_half_up(conf * cfg.strong_oppose_factor)
                if reduced < cfg.counter_trend_floor:
                    return Verdict.NO_TRADE, cfg.fallback_confidence, \
                        "counter-trend confidence insufficient"
                return verdict, float(reduced), \
                    "counter-trend, reduced confidence allowed for mean reversion"
        elif trend.strength >= cfg.moderate_trend_strength:
            if aligned:
                return verdict, min(cfg.moderate_align_cap, conf * cfg.moderate_align_boost), \
                    "aligned with moderate trend"
            if opposed:
                return verdict, float(round_half_up(conf * cfg.moderate_oppose_factor)), \
                    "against moderate trend, confidence reduced"
        return verdict, conf, None

    def classify_risk(self, confidence: float) -> RiskLevel:
        if confidence > self.config.risk_low_above:
            return RiskLevel.LOW
        if confidence > self.config.risk_medium_above:
            return RiskLevel.MEDIUM
        return RiskLevel.HIGH


def _invoke(agent: Agent, ctx: MarketContext) -> Signal:
    signal = agent.analyze(ctx)
    if not isinstance(signal, Signal):
        raise TypeError(f"agent {agent.name} returned {type(signal).__name__}, not a Signal")
    if signal.source != agent.name:
        raise ValueError(f"agent {agent.name} returned a Signal from '{signal.source}'")
    return signal


def _recommendation(verdict: Verdict, conf: float, tally: Mapping[Verdict, int], reason: str) -> str:
    votes = (
        f"votes CALL {tally.get(Verdict.BUY_CALL, 0)} / PUT {tally.get(Verdict.BUY_PUT, 0)}"
        f" / NO_TRADE {tally.get(Verdict.NO_TRADE, 0)}"
    )
    shown = round_half_up(conf)
    if verdict is Verdict.NO_TRADE:
        return f"NO TRADE ({shown}% confidence): {reason}; {votes}"
    if conf > 80:
        tier = "STRONG"
    elif conf > 65:
        tier = "MODERATE"
    else:
        tier = "WEAK"
    return f"{tier} {_VERDICT_TEXT[verdict]} ({shown}% confidence); {votes}"
