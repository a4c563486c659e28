"""Multi-signal consensus engine for intraday option-direction decisions."""

from consensus_engine.agents import MarketContext, Signal, Verdict
from consensus_engine.consensus import ConsensusEngine, Decision, RiskLevel
from consensus_engine.errors import ConfigurationError

__all__ = [
    "ConfigurationError",
    "ConsensusEngine",
    "Decision",
    "MarketContext",
    "RiskLevel",
    "Signal",
    "Verdict",
]
