"""Agent registry: maps config type strings to builder functions."""

from __future__ import annotations

import dataclasses
from typing import Callable

from consensus_engine.errors import ConfigurationError
from .base import Agent

AgentBuilder = Callable[[dict], Agent]

_REGISTRY: dict[str, AgentBuilder] = {}


def register(name: str, builder: AgentBuilder) -> None:
    """Register an agent builder under the given name."""
    _REGISTRY[name] = builder


def build_agent(agent_cfg: dict) -> Agent:
    """Build one agent from an ``agents`` config entry.

    Parameters
    ----------
    agent_cfg : dict
        Must contain a ``type`` key that maps to a registered builder.
        An optional ``name`` overrides the agent identifier; remaining keys
        are passed as ``params`` to the builder.

    Returns
    -------
    Agent
    """
    cfg = dict(agent_cfg)  # shallow copy so we don't mutate caller's dict
    agent_type = cfg.pop("type", None)
    if agent_type is None:
        raise ConfigurationError("agent config must contain a 'type' key")
    if agent_type not in _REGISTRY:
        raise ConfigurationError(
            f"Unknown agent type '{agent_type}'. "
            f"Registered: {sorted(_REGISTRY)}"
        )
    name = cfg.pop("name", None)
    try:
        agent = _REGISTRY[agent_type](cfg)
    except TypeError as exc:
        raise ConfigurationError(f"Invalid parameters for agent type '{agent_type}': {exc}") from exc
    if name is not None:
        agent = dataclasses.replace(agent, _name=name)
    return agent


def build_agents(agent_cfgs: list[dict]) -> list[Agent]:
    return [build_agent(cfg) for cfg in agent_cfgs]


def registered_types() -> list[str]:
    return sorted(_REGISTRY)


# Auto-register built-in agents
from .technical import build as _build_technical  # noqa: E402
from .volatility import build as _build_volatility  # noqa: E402
from .microstructure import build as _build_microstructure  # noqa: E402
from .market_internals import build as _build_internals  # noqa: E402
from .multi_timeframe import build as _build_mtf  # noqa: E402
from .vwap import build as _build_vwap  # noqa: E402
from .volume_profile import build as _build_profile  # noqa: E402
from .volume_delta import build as _build_delta  # noqa: E402

register("technical", _build_technical)
register("volatility", _build_volatility)
register("microstructure", _build_microstructure)
register("market_internals", _build_internals)
register("multi_timeframe", _build_mtf)
register("vwap", _build_vwap)
register("volume_profile", _build_profile)
register("volume_delta", _build_delta)
