"""Change impact assessment: component synthesis, risk rules and effort estimation."""

from .assessor import ImpactAssessor
from .components import ComponentSynthesizer
from .estimator import BucketThresholds, EffortEstimator
from .rules import RiskKeywords, RiskRule

__all__ = [
    "BucketThresholds",
    "ComponentSynthesizer",
    "EffortEstimator",
    "ImpactAssessor",
    "RiskKeywords",
    "RiskRule",
]
