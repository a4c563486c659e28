"""Tests for consensus_engine.consensus.engine.ConsensusEngine."""

from __future__ import annotations

import time

import pytest

from consensus_engine.agents import Capability, MarketContext, Signal, Verdict
from consensus_engine.consensus import (
    ConsensusConfig,
    ConsensusEngine,
    RiskLevel,
    TrendAssessment,
    TrendDirection,
)
from consensus_engine.consensus.decision import NO_SIGNALS
from consensus_engine.errors import ConfigurationError


class FixedTrend:
    def __init__(self, assessment: TrendAssessment):
        self.assessment = assessment

    def assess(self, bars):
        return self.assessment


class BrokenTrend:
    def assess(self, bars):
        raise RuntimeError("indicator blew up")


NEUTRAL = FixedTrend(TrendAssessment.neutral("trend NEUTRAL (test)"))


def _trend(direction: TrendDirection, strength: float) -> FixedTrend:
    return FixedTrend(TrendAssessment(direction, strength, rationale=[f"trend {direction.value}"]))


@pytest.fixture
def nine_agents(scripted):
    """Scenario A layout: weights {2,2,2,1,1,1,1,1,1}; CALL weight 7, NO_TRADE weight 5."""
    agents = [
        scripted("A1", Verdict.BUY_CALL, 80.0),
        scripted("A2", Verdict.BUY_CALL, 80.0),
        scripted("A3", Verdict.BUY_CALL, 80.0),
        scripted("A4", Verdict.BUY_CALL, 80.0),
        scripted("A5", Verdict.NO_TRADE, 60.0),
        scripted("A6", Verdict.NO_TRADE, 60.0),
        scripted("A7", Verdict.NO_TRADE, 60.0),
        scripted("A8", Verdict.NO_TRADE, 60.0),
        scripted("A9", Verdict.NO_TRADE, 60.0),
    ]
    weights = {"A1": 2, "A2": 2, "A3": 2, "A4": 1, "A5": 1, "A6": 1, "A7": 1, "A8": 1, "A9": 1}
    return agents, weights


SCENARIO_A_AVG = (7 * 80.0 + 5 * 60.0) / 12


# ---------------------------------------------------------------------------
# Reference scenarios
# ---------------------------------------------------------------------------

class TestScenarios:
    def test_a_strong_call_consensus_neutral_trend(self, nine_agents, ctx):
        agents, weights = nine_agents
        engine = ConsensusEngine(agents, weights, trend_assessor=NEUTRAL)
        d = engine.evaluate(ctx)

        assert d.verdict is Verdict.BUY_CALL
        assert d.confidence == pytest.approx(SCENARIO_A_AVG)
        assert d.vote_tally == {Verdict.BUY_CALL: 7, Verdict.BUY_PUT: 0, Verdict.NO_TRADE: 5}
        assert d.total_weight == 12
        assert d.risk_level is RiskLevel.MEDIUM
        assert d.recommendation == "MODERATE BUY CALL (72% confidence); votes CALL 7 / PUT 0 / NO_TRADE 5"

    def test_b_aligned_strong_trend_boosts(self, nine_agents, ctx):
        agents, weights = nine_agents
        engine = ConsensusEngine(agents, weights, trend_assessor=_trend(TrendDirection.STRONG_BULLISH, 80))
        d = engine.evaluate(ctx)

        assert d.verdict is Verdict.BUY_CALL
        assert d.confidence == pytest.approx(min(95.0, SCENARIO_A_AVG * 1.15))
        assert d.risk_level is RiskLevel.LOW
        assert d.rationale[-1] == "aligned with strong trend, confidence boosted"

    def test_c_counter_trend_below_floor_overrides(self, scripted, ctx):
        agents = [scripted(f"P{i}", Verdict.BUY_PUT, 70.0) for i in range(3)]
        engine = ConsensusEngine(agents, {}, trend_assessor=_trend(TrendDirection.STRONG_BULLISH, 80))
        d = engine.evaluate(ctx)

        # 70 * 0.65 = 45.5 -> 46 < 55
        assert d.verdict is Verdict.NO_TRADE
        assert d.confidence == 75.0
        assert d.vote_tally[Verdict.BUY_PUT] == 3
        assert "counter-trend confidence insufficient" in d.recommendation

    def test_d_faulting_agents_are_excluded(self, nine_agents, scripted, ctx):
        agents, weights = nine_agents
        agents[0] = scripted("A1", fail=RuntimeError("boom"))
        agents[4] = scripted("A5", fail=ValueError("bad data"))
        agents[8] = scripted("A9", fail=ZeroDivisionError())
        engine = ConsensusEngine(agents, weights, trend_assessor=NEUTRAL)
        d = engine.evaluate(ctx)

        assert len(d.signals) == 6
        assert d.total_weight == 12 - 2 - 1 - 1
        assert sum(d.vote_tally.values()) == d.total_weight
        assert d.failed_agents == ("A1", "A5", "A9")

    def test_e_all_agents_fault(self, scripted, ctx):
        agents = [scripted(f"X{i}", fail=RuntimeError("down")) for i in range(4)]
        engine = ConsensusEngine(agents, {}, trend_assessor=NEUTRAL)
        d = engine.evaluate(ctx)

        assert d.verdict is Verdict.NO_TRADE
        assert d.confidence == 0.0
        assert d.vote_tally == {}
        assert d.signals == []
        assert d.risk_level is RiskLevel.HIGH
        assert d.rationale == [NO_SIGNALS]


# ---------------------------------------------------------------------------
# Vote resolution
# ---------------------------------------------------------------------------

class TestVoteResolution:
    def _decide(self, scripted, verdicts, ctx, confidence=80.0):
        agents = [scripted(f"G{i}", v, confidence) for i, v in enumerate(verdicts)]
        return ConsensusEngine(agents, {}, trend_assessor=NEUTRAL).evaluate(ctx)

    def test_no_trade_wins_priority_at_strong_threshold(self, scripted, ctx):
        d = self._decide(scripted, [Verdict.BUY_CALL, Verdict.NO_TRADE], ctx)
        assert d.verdict is Verdict.NO_TRADE
        assert d.rationale[1].startswith("strong consensus to avoid trading")

    def test_call_beats_put_when_both_strong(self, scripted, ctx):
        d = self._decide(scripted, [Verdict.BUY_CALL, Verdict.BUY_PUT], ctx)
        assert d.verdict is Verdict.BUY_CALL

    def test_exact_strong_threshold_counts(self, scripted, ctx):
        d = self._decide(scripted, [Verdict.BUY_PUT] * 5 + [Verdict.NO_TRADE] * 2 + [Verdict.BUY_CALL] * 3, ctx)
        assert d.verdict is Verdict.BUY_PUT
        assert d.confidence == pytest.approx(80.0)

    def test_moderate_tier_applies_penalty(self, scripted, ctx):
        verdicts = [Verdict.BUY_CALL] * 4 + [Verdict.BUY_PUT] * 3 + [Verdict.NO_TRADE] * 3
        d = self._decide(scripted, verdicts, ctx)
        assert d.verdict is Verdict.BUY_CALL
        assert d.confidence == pytest.approx(80.0 * 0.85)
        assert d.rationale[1].startswith("moderate consensus for calls")

    def test_moderate_tie_falls_back_to_no_trade(self, scripted, ctx):
        verdicts = [Verdict.BUY_CALL] * 4 + [Verdict.BUY_PUT] * 4 + [Verdict.NO_TRADE] * 2
        d = self._decide(scripted, verdicts, ctx)
        assert d.verdict is Verdict.NO_TRADE
        assert d.confidence == 75.0
        assert d.recommendation.startswith("NO TRADE (75% confidence): insufficient or conflicting consensus")

    def test_weights_shift_the_outcome(self, scripted, ctx):
        agents = [
            scripted("Heavy", Verdict.BUY_PUT, 90.0),
            scripted("L1", Verdict.NO_TRADE, 60.0),
            scripted("L2", Verdict.BUY_CALL, 60.0),
        ]
        d = ConsensusEngine(agents, {"Heavy": 3}, trend_assessor=NEUTRAL).evaluate(ctx)
        assert d.verdict is Verdict.BUY_PUT
        assert d.confidence == pytest.approx((3 * 90.0 + 60.0 + 60.0) / 5)

    def test_custom_thresholds(self, scripted, ctx):
        agents = [scripted("C1", Verdict.BUY_CALL), scripted("N1"), scripted("N2")]
        cfg = ConsensusConfig(strong_fraction=0.3, moderate_fraction=0.2)
        d = ConsensusEngine(agents, {}, config=cfg, trend_assessor=NEUTRAL).evaluate(ctx)
        assert d.verdict is Verdict.NO_TRADE
        assert d.rationale[1].startswith("strong consensus to avoid trading")

    def test_rationale_lists_directional_agents(self, nine_agents, ctx):
        agents, weights = nine_agents
        d = ConsensusEngine(agents, weights, trend_assessor=NEUTRAL).evaluate(ctx)
        assert d.rationale[0] == "trend NEUTRAL (test)"
        assert d.rationale[1] == "strong consensus for calls: CALL 7 / PUT 0 / NO_TRADE 5 of 12"
        assert d.rationale[2:] == [f"A{i}: BUY_CALL (80%)" for i in range(1, 5)]


# ---------------------------------------------------------------------------
# Trend alignment
# ---------------------------------------------------------------------------

class TestTrendAlignment:
    def _engine(self, scripted, verdict, confidence, direction, strength):
        agents = [scripted(f"T{i}", verdict, confidence) for i in range(3)]
        return ConsensusEngine(agents, {}, trend_assessor=_trend(direction, strength))

    def test_strong_boost_is_capped(self, scripted, ctx):
        d = self._engine(scripted, Verdict.BUY_PUT, 90.0, TrendDirection.STRONG_BEARISH, 85).evaluate(ctx)
        assert d.verdict is Verdict.BUY_PUT
        assert d.confidence == 95.0

    def test_counter_trend_allowed_when_above_floor(self, scripted, ctx):
        d = self._engine(scripted, Verdict.BUY_PUT, 90.0, TrendDirection.STRONG_BULLISH, 80).evaluate(ctx)
        # 90 * 0.65 = 58.5 -> 59
        assert d.verdict is Verdict.BUY_PUT
        assert d.confidence == 59.0
        assert d.rationale[-1] == "counter-trend, reduced confidence allowed for mean reversion"

    def test_moderate_trend_aligned(self, scripted, ctx):
        d = self._engine(scripted, Verdict.BUY_CALL, 80.0, TrendDirection.BULLISH, 60).evaluate(ctx)
        assert d.confidence == pytest.approx(84.0)

    def test_moderate_trend_opposed(self, scripted, ctx):
        d = self._engine(scripted, Verdict.BUY_CALL, 80.0, TrendDirection.BEARISH, 60).evaluate(ctx)
        assert d.verdict is Verdict.BUY_CALL
        assert d.confidence == 68.0

    def test_weak_trend_leaves_confidence(self, scripted, ctx):
        d = self._engine(scripted, Verdict.BUY_CALL, 80.0, TrendDirection.NEUTRAL, 50).evaluate(ctx)
        assert d.confidence == pytest.approx(80.0)

    def test_no_trade_is_never_adjusted(self, scripted, ctx):
        d = self._engine(scripted, Verdict.NO_TRADE, 66.0, TrendDirection.STRONG_BULLISH, 90).evaluate(ctx)
        assert d.verdict is Verdict.NO_TRADE
        assert d.confidence == pytest.approx(66.0)

    def test_trend_failure_degrades_to_neutral(self, scripted, ctx):
        agents = [scripted("T1", Verdict.BUY_CALL, 80.0)]
        d = ConsensusEngine(agents, {}, trend_assessor=BrokenTrend()).evaluate(ctx)
        assert d.verdict is Verdict.BUY_CALL
        assert d.confidence == pytest.approx(80.0)
        assert d.trend.direction is TrendDirection.NEUTRAL


# ---------------------------------------------------------------------------
# Risk
# ---------------------------------------------------------------------------

class TestRisk:
    @pytest.mark.parametrize("confidence, expected", [
        (80.01, RiskLevel.LOW),
        (80.0, RiskLevel.MEDIUM),
        (60.01, RiskLevel.MEDIUM),
        (60.0, RiskLevel.HIGH),
        (0.0, RiskLevel.HIGH),
    ])
    def test_cut_points(self, scripted, confidence, expected):
        engine = ConsensusEngine([scripted("R")])
        assert engine.classify_risk(confidence) is expected


# ---------------------------------------------------------------------------
# Faults, context projection, concurrency
# ---------------------------------------------------------------------------

class WrongReturn:
    name = "Wrong"
    requires = frozenset()

    def analyze(self, ctx):
        return "BUY_CALL"


class Impostor:
    name = "Impostor"
    requires = frozenset()

    def analyze(self, ctx):
        return Signal("SomeoneElse", Verdict.BUY_CALL, 90.0)


class Recorder:
    """Captures the context it was given."""

    def __init__(self, name, needs=frozenset()):
        self.name = name
        self.requires = needs
        self.seen = None

    def analyze(self, ctx):
        self.seen = ctx
        ctx.bars.loc[:, "close"] = -1.0
        return Signal(self.name, Verdict.NO_TRADE, 50.0)


class TestFaultsAndIsolation:
    def test_non_signal_return_is_a_fault(self, scripted, ctx):
        engine = ConsensusEngine([WrongReturn(), scripted("OK", Verdict.BUY_CALL)], trend_assessor=NEUTRAL)
        d = engine.evaluate(ctx)
        assert d.failed_agents == ("Wrong",)
        assert [s.source for s in d.signals] == ["OK"]

    def test_foreign_source_is_a_fault(self, ctx):
        d = ConsensusEngine([Impostor()], trend_assessor=NEUTRAL).evaluate(ctx)
        assert d.failed_agents == ("Impostor",)
        assert d.vote_tally == {}

    def test_agents_see_only_declared_inputs(self, flat_bars):
        full = MarketContext(
            bars=flat_bars,
            volatility_index=22.0,
            higher_timeframes={"5min": flat_bars},
        )
        plain = Recorder("Plain")
        vol = Recorder("Vol", frozenset({Capability.VOLATILITY_INDEX}))
        ConsensusEngine([plain, vol], trend_assessor=NEUTRAL).evaluate(full)

        assert plain.seen.volatility_index is None
        assert plain.seen.higher_timeframes == {}
        assert vol.seen.volatility_index == 22.0

    def test_agent_mutation_does_not_leak(self, flat_bars):
        ctx = MarketContext(bars=flat_bars)
        first, second = Recorder("First"), Recorder("Second")
        ConsensusEngine([first, second], trend_assessor=NEUTRAL).evaluate(ctx)
        assert (ctx.bars["close"] == 100.0).all()
        assert (second.seen.bars["close"] == -1.0).all()

    def test_evaluate_is_idempotent(self, nine_agents, ctx):
        agents, weights = nine_agents
        engine = ConsensusEngine(agents, weights, trend_assessor=NEUTRAL)
        assert engine.evaluate(ctx).to_dict() == engine.evaluate(ctx).to_dict()

    def test_thread_pool_matches_inline(self, nine_agents, ctx):
        agents, weights = nine_agents
        inline = ConsensusEngine(agents, weights, trend_assessor=NEUTRAL).evaluate(ctx)
        pooled = ConsensusEngine(agents, weights, trend_assessor=NEUTRAL, max_workers=4).evaluate(ctx)
        assert pooled.to_dict() == inline.to_dict()

    def test_slow_agent_times_out(self, scripted, ctx):
        agents = [
            scripted("Fast", Verdict.BUY_CALL, 80.0),
            scripted("Slow", Verdict.BUY_PUT, 80.0, delay=1.0),
        ]
        engine = ConsensusEngine(agents, {}, trend_assessor=NEUTRAL, max_workers=2, agent_timeout=0.2)
        d = engine.evaluate(ctx)
        assert d.failed_agents == ("Slow",)
        assert d.verdict is Verdict.BUY_CALL

    def test_overdue_agent_is_abandoned(self, scripted, ctx):
        agents = [scripted("Fast", Verdict.BUY_CALL, 80.0), scripted("Hung", delay=3.0)]
        engine = ConsensusEngine(agents, {}, trend_assessor=NEUTRAL, max_workers=2, agent_timeout=0.2)
        started = time.monotonic()
        d = engine.evaluate(ctx)
        assert time.monotonic() - started < 2.0
        assert d.failed_agents == ("Hung",)


# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------

class TestConstruction:
    def test_empty_registry(self):
        with pytest.raises(ConfigurationError, match="empty"):
            ConsensusEngine([])

    def test_duplicate_names(self, scripted):
        with pytest.raises(ConfigurationError, match="duplicate agent names"):
            ConsensusEngine([scripted("Same"), scripted("Same")])

    def test_not_an_agent(self):
        with pytest.raises(ConfigurationError, match="does not implement"):
            ConsensusEngine([object()])

    def test_bad_worker_count(self, scripted):
        with pytest.raises(ConfigurationError, match="max_workers"):
            ConsensusEngine([scripted("A")], max_workers=0)

    def test_bad_timeout(self, scripted):
        with pytest.raises(ConfigurationError, match="agent_timeout"):
            ConsensusEngine([scripted("A")], agent_timeout=0)

    def test_total_weight_uses_defaults(self, scripted):
        engine = ConsensusEngine([scripted("A"), scripted("B")], {"A": 3})
        assert engine.total_weight == 4

    def test_missing_weight_is_logged(self, scripted, caplog):
        with caplog.at_level("WARNING"):
            ConsensusEngine([scripted("Unlisted")], {"A": 2})
        assert "No weight configured for agent Unlisted" in caplog.text
