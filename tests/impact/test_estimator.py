"""Tests for effort scoring and bucketing."""

from __future__ import annotations

import pytest

from repoimpact.config import EstimatorConfig
from repoimpact.impact.estimator import PLANS, BucketThresholds, EffortEstimator
from repoimpact.models import (
    ChangeKind,
    ComplexityFactors,
    ComponentType,
    Confidence,
    EffortBucket,
    ImpactedComponent,
)


def _component(
    type_: ComponentType,
    change: ChangeKind = ChangeKind.MODIFY,
    confidence: Confidence = Confidence.HIGH,
) -> ImpactedComponent:
    return ImpactedComponent(component=f"{type_.value}-{change.value}", type=type_, change=change, confidence=confidence)


def test_database_migration_scores_sixteen_and_lands_in_m() -> None:
    estimator = EffortEstimator()
    components = [_component(ComponentType.DATABASE)]
    factors = ComplexityFactors(data_migration=True)

    assert estimator.score(components, factors) == 16
    assert estimator.estimate(components, factors) is EffortBucket.M


def test_component_weights_multiply() -> None:
    estimator = EffortEstimator()

    assert estimator.score([_component(ComponentType.SERVICE, ChangeKind.CREATE)]) == 6
    assert estimator.score([_component(ComponentType.INFRASTRUCTURE, ChangeKind.REFACTOR)]) == 12
    assert estimator.score([_component(ComponentType.CONFIG, ChangeKind.DELETE)]) == 1
    assert estimator.score([_component(ComponentType.API, confidence=Confidence.MEDIUM)]) == pytest.approx(4.8)
    assert estimator.score([_component(ComponentType.LIBRARY, confidence=Confidence.LOW)]) == pytest.approx(3.0)


def test_complexity_factors_add_fixed_amounts() -> None:
    estimator = EffortEstimator()
    factors = ComplexityFactors(
        integration_points=3, data_migration=True, breaking_changes=True, compliance_required=True
    )

    assert estimator.score([], factors) == 3 * 2 + 10 + 8 + 5


@pytest.mark.parametrize(
    ("score", "bucket"),
    [
        (0, EffortBucket.S),
        (9.999, EffortBucket.S),
        (10, EffortBucket.M),
        (24.999, EffortBucket.M),
        (25, EffortBucket.L),
        (49.999, EffortBucket.L),
        (50, EffortBucket.XL),
        (500, EffortBucket.XL),
    ],
)
def test_bucket_boundaries(score: float, bucket: EffortBucket) -> None:
    assert EffortEstimator().bucket(score) is bucket


def test_bucketing_is_monotonic() -> None:
    estimator = EffortEstimator()
    buckets = [estimator.bucket(step / 4) for step in range(0, 400)]

    assert all(earlier <= later for earlier, later in zip(buckets, buckets[1:]))
    assert EffortBucket.S < EffortBucket.M < EffortBucket.L < EffortBucket.XL


def test_adding_components_never_lowers_the_bucket() -> None:
    estimator = EffortEstimator()
    components = []
    previous = estimator.estimate(components)
    for type_ in ComponentType:
        components.append(_component(type_, confidence=Confidence.LOW))
        current = estimator.estimate(components)
        assert current >= previous
        previous = current


def test_custom_thresholds_from_config() -> None:
    estimator = EffortEstimator(BucketThresholds.from_config(EstimatorConfig(s=5, m=15, l=40)))

    assert estimator.bucket(6) is EffortBucket.M
    assert estimator.bucket(16) is EffortBucket.L
    assert estimator.bucket(40) is EffortBucket.XL


@pytest.mark.parametrize("values", [(0, 10, 20), (10, 10, 20), (30, 20, 50)])
def test_invalid_thresholds_are_rejected(values) -> None:
    s, m, l = values
    with pytest.raises(ValueError):
        BucketThresholds(s=s, m=m, l=l)


def test_generate_plan_returns_independent_copy() -> None:
    plan = EffortEstimator().generate_plan(EffortBucket.XL)
    plan.phases.append("Celebrate")

    assert "Celebrate" not in PLANS[EffortBucket.XL].phases
    assert plan.duration == "4-6 months"
