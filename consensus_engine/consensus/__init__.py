from .config import ConsensusConfig, TrendConfig, WeightTable, DEFAULT_WEIGHTS
from .trend import TrendAssessment, TrendAssessor, TrendDirection
from .decision import Decision, RiskLevel
from .engine import ConsensusEngine

__all__ = [
    "ConsensusConfig",
    "TrendConfig",
    "WeightTable",
    "DEFAULT_WEIGHTS",
    "TrendAssessment",
    "TrendAssessor",
    "TrendDirection",
    "Decision",
    "RiskLevel",
    "ConsensusEngine",
]
