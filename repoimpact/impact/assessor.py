"""Impact assessment: dependencies, risks, test areas and delivery strategy."""

from __future__ import annotations

from typing import Iterable, List, Optional, Sequence

from ..logging import get_logger
from ..models import (
    AnalysisContext,
    ComplexityFactors,
    ComponentType,
    EffortBucket,
    ImpactAnalysis,
    ImpactedComponent,
    Requirement,
    Risk,
    dedupe,
)
from .estimator import EffortEstimator
from .rules import DEFAULT_RULES, RiskInputs, RiskKeywords, RiskRule

logger = get_logger("impact.assessor")

_TYPE_DEPENDENCIES = {
    ComponentType.API: ("API Clients", "API Documentation"),
    ComponentType.DATABASE: ("Data Access Layer", "Migration Scripts", "Backup/Restore"),
    ComponentType.SERVICE: ("Service Registry", "Load Balancer"),
}

_PHASED_ROLLOUT = (
    "Phased rollout with feature flags:\n"
    "1. Internal testing (1 week)\n"
    "2. Beta users (5% traffic, 1 week)\n"
    "3. Gradual rollout (25% → 50% → 100%, 2 weeks)\n"
    "4. Full deployment"
)


class ImpactAssessor:
    """Combines rule-based risk detection with effort estimation."""

    def __init__(
        self,
        estimator: Optional[EffortEstimator] = None,
        keywords: Optional[RiskKeywords] = None,
        rules: Optional[Sequence[RiskRule]] = None,
    ) -> None:
        self.estimator = estimator or EffortEstimator()
        self.keywords = keywords or RiskKeywords()
        self.rules = tuple(rules) if rules is not None else DEFAULT_RULES

    def identify_dependencies(self, components: Iterable[ImpactedComponent]) -> List[str]:
        dependencies: List[str] = []
        for component in components:
            dependencies.append(component.component)
            dependencies.extend(_TYPE_DEPENDENCIES.get(component.type, ()))
        return dedupe(dependencies)

    def assess_risks(
        self,
        requirement: Requirement,
        components: Sequence[ImpactedComponent],
        context: Optional[AnalysisContext] = None,
    ) -> List[Risk]:
        inputs = RiskInputs(
            requirement=requirement,
            components=components,
            context=context or AnalysisContext(),
            keywords=self.keywords,
        )
        risks: List[Risk] = []
        seen = set()
        for rule in self.rules:
            if rule.template.id in seen:
                continue
            risk = rule.apply(inputs)
            if risk is not None:
                risks.append(risk)
                seen.add(risk.id)
        return risks

    def identify_test_areas(
        self, components: Sequence[ImpactedComponent], requirement: Requirement
    ) -> List[str]:
        areas = ["Unit Tests", "Integration Tests"]
        types = {component.type for component in components}
        if ComponentType.API in types:
            areas.extend(["API Contract Tests", "API Performance Tests"])
        if ComponentType.DATABASE in types:
            areas.extend(["Data Migration Tests", "Data Integrity Tests"])
        if requirement.non_functional.security:
            areas.extend(["Security Tests", "Penetration Tests"])
        if requirement.non_functional.performance:
            areas.extend(["Load Tests", "Stress Tests"])
        if self.keywords.multi_tenant.lower() in requirement.summary.lower():
            areas.extend(["Tenant Isolation Tests", "Cross-tenant Security Tests"])
        areas.extend(["User Acceptance Tests", "Regression Tests"])
        return dedupe(areas)

    def determine_rollout_strategy(
        self, bucket: EffortBucket, context: Optional[AnalysisContext] = None
    ) -> str:
        if bucket is EffortBucket.S:
            return "Direct deployment to all environments"
        if bucket is EffortBucket.M:
            return "Staged rollout: Dev → Staging → Production"
        return _PHASED_ROLLOUT

    def determine_rollback_strategy(self, components: Sequence[ImpactedComponent]) -> str:
        steps = ["Feature flag disable (immediate)"]
        types = {component.type for component in components}
        if ComponentType.DATABASE in types:
            steps.append("Database rollback scripts prepared")
        if ComponentType.API in types:
            steps.append("API version fallback")
        steps.append("Previous version redeployment (30 minutes)")
        steps.append("Data recovery from backups (if needed)")
        return "\n".join(steps)

    def derive_complexity(
        self,
        requirement: Requirement,
        components: Sequence[ImpactedComponent],
        context: Optional[AnalysisContext] = None,
        dependencies: Optional[Sequence[str]] = None,
        overrides: Optional[dict] = None,
    ) -> ComplexityFactors:
        """Derive complexity factors; keys present in ``overrides`` win field by field."""
        context = context or AnalysisContext()
        if dependencies is None:
            dependencies = self.identify_dependencies(components)
        keyword = self.keywords.breaking_change.lower()
        factors = ComplexityFactors(
            integration_points=len(dependencies),
            data_migration=any(component.type is ComponentType.DATABASE for component in components),
            breaking_changes=any(keyword in constraint.lower() for constraint in requirement.constraints),
            compliance_required=bool(context.compliance),
        )
        for key, value in (overrides or {}).items():
            if key == "integration_points":
                factors.integration_points = max(int(value), 0)
            elif key in {"data_migration", "breaking_changes", "compliance_required"}:
                setattr(factors, key, bool(value))
        return factors

    def assess(
        self,
        requirement: Requirement,
        components: Sequence[ImpactedComponent],
        context: Optional[AnalysisContext] = None,
        overrides: Optional[dict] = None,
    ) -> ImpactAnalysis:
        context = context or AnalysisContext()
        logger.info("Assessing impact for %r (%d components)", requirement.summary, len(components))

        dependencies = self.identify_dependencies(components)
        risks = self.assess_risks(requirement, components, context)
        factors = self.derive_complexity(requirement, components, context, dependencies, overrides)

        score = self.estimator.score(components, factors)
        bucket = self.estimator.bucket(score)

        analysis = ImpactAnalysis(
            dependencies=dependencies,
            risks=risks,
            effort_bucket=bucket,
            test_areas=self.identify_test_areas(components, requirement),
            rollout_strategy=self.determine_rollout_strategy(bucket, context),
            rollback_strategy=self.determine_rollback_strategy(components),
            score=score,
            plan=self.estimator.generate_plan(bucket),
        )
        logger.info("Impact assessment complete: %s effort (score %.1f)", bucket.value, score)
        return analysis


__all__ = ["ImpactAssessor"]
