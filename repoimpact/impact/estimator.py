"""Risk-weighted effort scoring and bucketing."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, Optional

from ..config import EstimatorConfig
from ..logging import get_logger
from ..models import (
    ChangeKind,
    ComplexityFactors,
    ComponentType,
    Confidence,
    EffortBucket,
    EffortPlan,
    ImpactedComponent,
)

logger = get_logger("impact.estimator")

CHANGE_WEIGHTS: Dict[ChangeKind, float] = {
    ChangeKind.CREATE: 3,
    ChangeKind.MODIFY: 2,
    ChangeKind.REFACTOR: 4,
    ChangeKind.DELETE: 1,
}

TYPE_WEIGHTS: Dict[ComponentType, float] = {
    ComponentType.DATABASE: 3,
    ComponentType.INFRASTRUCTURE: 3,
    ComponentType.API: 2,
    ComponentType.SERVICE: 2,
    ComponentType.LIBRARY: 1,
    ComponentType.CONFIG: 1,
}

# Lower confidence means more unknowns, so it inflates the estimate.
CONFIDENCE_MULTIPLIERS: Dict[Confidence, float] = {
    Confidence.LOW: 1.5,
    Confidence.MEDIUM: 1.2,
    Confidence.HIGH: 1.0,
}

INTEGRATION_POINT_WEIGHT = 2
DATA_MIGRATION_WEIGHT = 10
BREAKING_CHANGES_WEIGHT = 8
COMPLIANCE_WEIGHT = 5

PLANS: Dict[EffortBucket, EffortPlan] = {
    EffortBucket.S: EffortPlan(
        phases=["Design", "Implementation", "Testing", "Deployment"],
        duration="1-2 weeks",
        resources="1-2 developers",
    ),
    EffortBucket.M: EffortPlan(
        phases=[
            "Design",
            "Proof of Concept",
            "Implementation",
            "Integration Testing",
            "UAT",
            "Deployment",
        ],
        duration="3-6 weeks",
        resources="2-3 developers",
    ),
    EffortBucket.L: EffortPlan(
        phases=[
            "Architecture Review",
            "Design",
            "Spike/PoC",
            "Phased Implementation",
            "Integration",
            "Performance Testing",
            "Security Review",
            "UAT",
            "Staged Rollout",
        ],
        duration="2-3 months",
        resources="3-5 developers, 1 architect",
    ),
    EffortBucket.XL: EffortPlan(
        phases=[
            "Architecture Board Review",
            "Detailed Design",
            "Multiple PoCs",
            "Phased Implementation",
            "Integration",
            "Load Testing",
            "Security Audit",
            "Compliance Review",
            "UAT",
            "Canary Deployment",
            "Full Rollout",
        ],
        duration="4-6 months",
        resources="5-8 developers, 2 architects, 1 PM",
    ),
}


@dataclass(frozen=True)
class BucketThresholds:
    """Exclusive upper score bounds for the S, M and L buckets."""

    s: float = 10
    m: float = 25
    l: float = 50

    def __post_init__(self) -> None:
        if not 0 < self.s < self.m < self.l:
            raise ValueError(
                f"Bucket thresholds must be positive and strictly increasing (got {self.s}, {self.m}, {self.l})"
            )

    @classmethod
    def from_config(cls, config: EstimatorConfig) -> "BucketThresholds":
        return cls(s=config.s, m=config.m, l=config.l)


class EffortEstimator:
    """Scores impacted components and maps the score onto an effort bucket."""

    def __init__(self, thresholds: Optional[BucketThresholds] = None) -> None:
        self.thresholds = thresholds or BucketThresholds()

    def score(
        self,
        components: Iterable[ImpactedComponent],
        factors: Optional[ComplexityFactors] = None,
    ) -> float:
        total = 0.0
        for component in components:
            total += (
                CHANGE_WEIGHTS[component.change]
                * TYPE_WEIGHTS[component.type]
                * CONFIDENCE_MULTIPLIERS[component.confidence]
            )
        if factors is not None:
            total += INTEGRATION_POINT_WEIGHT * max(factors.integration_points, 0)
            if factors.data_migration:
                total += DATA_MIGRATION_WEIGHT
            if factors.breaking_changes:
                total += BREAKING_CHANGES_WEIGHT
            if factors.compliance_required:
                total += COMPLIANCE_WEIGHT
        return round(total, 6)

    def bucket(self, score: float) -> EffortBucket:
        if score < self.thresholds.s:
            return EffortBucket.S
        if score < self.thresholds.m:
            return EffortBucket.M
        if score < self.thresholds.l:
            return EffortBucket.L
        return EffortBucket.XL

    def estimate(
        self,
        components: Iterable[ImpactedComponent],
        factors: Optional[ComplexityFactors] = None,
    ) -> EffortBucket:
        score = self.score(components, factors)
        bucket = self.bucket(score)
        logger.debug("Effort score %.2f -> %s", score, bucket.value)
        return bucket

    def generate_plan(self, bucket: EffortBucket) -> EffortPlan:
        plan = PLANS[bucket]
        return EffortPlan(phases=list(plan.phases), duration=plan.duration, resources=plan.resources)


__all__ = ["BucketThresholds", "EffortEstimator", "PLANS"]
