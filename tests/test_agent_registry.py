"""Tests for the agent registry / factory pattern."""

import pytest

from consensus_engine.agents import (
    MultiTimeframeAgent,
    TechnicalAnalysisAgent,
    VWAPAgent,
    build_agent,
    build_agents,
)
from consensus_engine.agents.registry import registered_types
from consensus_engine.consensus import DEFAULT_WEIGHTS
from consensus_engine.errors import ConfigurationError


def test_all_reference_agents_registered():
    assert registered_types() == sorted([
        "technical", "volatility", "microstructure", "market_internals",
        "multi_timeframe", "vwap", "volume_profile", "volume_delta",
    ])


def test_default_ids_match_weight_table():
    agents = build_agents([{"type": t} for t in registered_types()])
    assert {a.name for a in agents} == set(DEFAULT_WEIGHTS)


def test_build_with_params():
    agent = build_agent({"type": "vwap", "window": 60, "min_bars": 30})
    assert isinstance(agent, VWAPAgent)
    assert agent.window == 60
    assert agent.min_bars == 30
    assert agent.name == "VWAPAnalyst"


def test_name_override():
    agent = build_agent({"type": "technical", "name": "TechFast", "windows": [20, 40]})
    assert isinstance(agent, TechnicalAnalysisAgent)
    assert agent.name == "TechFast"
    assert list(agent.windows) == [20, 40]


def test_caller_config_not_mutated():
    cfg = {"type": "multi_timeframe", "timeframes": ["5min"]}
    agent = build_agent(cfg)
    assert isinstance(agent, MultiTimeframeAgent)
    assert cfg == {"type": "multi_timeframe", "timeframes": ["5min"]}


def test_missing_type():
    with pytest.raises(ConfigurationError, match="must contain a 'type' key"):
        build_agent({"window": 5})


def test_unknown_type():
    with pytest.raises(ConfigurationError, match="Unknown agent type 'options_greeks'"):
        build_agent({"type": "options_greeks"})


def test_invalid_params():
    with pytest.raises(ConfigurationError, match="Invalid parameters for agent type 'vwap'"):
        build_agent({"type": "vwap", "lookback": 10})
