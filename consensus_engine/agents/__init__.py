from .signal import Signal, Verdict
from .base import Agent, Capability, MarketContext
from .technical import TechnicalAnalysisAgent
from .volatility import VolatilityAnalysisAgent
from .microstructure import MarketMicrostructureAgent
from .market_internals import MarketInternalsAgent
from .multi_timeframe import MultiTimeframeAgent
from .vwap import VWAPAgent
from .volume_profile import VolumeProfileAgent
from .volume_delta import VolumeDeltaAgent
from .registry import build_agent, build_agents, register

__all__ = [
    "Signal",
    "Verdict",
    "Agent",
    "Capability",
    "MarketContext",
    "TechnicalAnalysisAgent",
    "VolatilityAnalysisAgent",
    "MarketMicrostructureAgent",
    "MarketInternalsAgent",
    "MultiTimeframeAgent",
    "VWAPAgent",
    "VolumeProfileAgent",
    "VolumeDeltaAgent",
    "build_agent",
    "build_agents",
    "register",
]
