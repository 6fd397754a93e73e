"""Keyword triggers and risk templates used by the impact assessor."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, List, Sequence, Tuple

from ..config import RiskConfig
from ..models import (
    AnalysisContext,
    ComponentType,
    ImpactedComponent,
    Level,
    Requirement,
    Risk,
)


@dataclass(frozen=True)
class RiskKeywords:
    """Configurable keyword triggers; matching is case-insensitive."""

    tenant: str = "tenant"
    multi_tenant: str = "multi-tenant"
    compliance_tags: Tuple[str, ...] = ("GDPR", "HIPAA", "CCPA")
    breaking_change: str = "no breaking api"

    @classmethod
    def from_config(cls, config: RiskConfig) -> "RiskKeywords":
        return cls(
            tenant=config.tenant_keyword,
            multi_tenant=config.multi_tenant_keyword,
            compliance_tags=tuple(config.compliance_tags),
            breaking_change=config.breaking_change_keyword,
        )

    def regulated(self, context: AnalysisContext) -> List[str]:
        tags = {tag.lower() for tag in self.compliance_tags}
        return [item for item in context.compliance if item.lower() in tags]


@dataclass(frozen=True)
class RiskTemplate:
    id: str
    category: str
    description: str
    likelihood: Level
    impact: Level
    mitigations: Tuple[str, ...] = field(default_factory=tuple)

    def build(self, description: str | None = None) -> Risk:
        return Risk(
            id=self.id,
            category=self.category,
            description=description or self.description,
            likelihood=self.likelihood,
            impact=self.impact,
            mitigations=list(self.mitigations),
        )


TENANT_ISOLATION = RiskTemplate(
    id="SEC-001",
    category="Security",
    description="Data isolation breach between tenants",
    likelihood=Level.MEDIUM,
    impact=Level.HIGH,
    mitigations=(
        "Implement row-level security",
        "Add tenant ID validation at all layers",
        "Comprehensive security testing",
        "Regular security audits",
    ),
)

DATA_MIGRATION = RiskTemplate(
    id="DATA-001",
    category="Data",
    description="Data migration failures or corruption",
    likelihood=Level.MEDIUM,
    impact=Level.HIGH,
    mitigations=(
        "Comprehensive backup before migration",
        "Rollback procedures",
        "Data validation scripts",
        "Staged migration approach",
    ),
)

API_BREAKAGE = RiskTemplate(
    id="INTEG-001",
    category="Integration",
    description="Breaking changes for API consumers",
    likelihood=Level.MEDIUM,
    impact=Level.HIGH,
    mitigations=(
        "API versioning strategy",
        "Deprecation notices",
        "Contract testing",
        "Client communication plan",
    ),
)

COMPLIANCE = RiskTemplate(
    id="COMP-001",
    category="Compliance",
    description="Compliance violations",
    likelihood=Level.LOW,
    impact=Level.HIGH,
    mitigations=(
        "Privacy impact assessment",
        "Data classification",
        "Encryption at rest and in transit",
        "Access control review",
    ),
)


@dataclass(frozen=True)
class RiskInputs:
    requirement: Requirement
    components: Sequence[ImpactedComponent]
    context: AnalysisContext
    keywords: RiskKeywords

    @property
    def text(self) -> str:
        return self.requirement.summary.lower()

    def has_type(self, component_type: ComponentType) -> bool:
        return any(component.type is component_type for component in self.components)


@dataclass(frozen=True)
class RiskRule:
    """Fires ``template`` when ``trigger`` holds; ``describe`` may tailor the text."""

    trigger: Callable[[RiskInputs], bool]
    template: RiskTemplate
    describe: Callable[[RiskInputs], str] | None = None

    def apply(self, inputs: RiskInputs) -> Risk | None:
        if not self.trigger(inputs):
            return None
        description = self.describe(inputs) if self.describe else None
        return self.template.build(description)


def _compliance_description(inputs: RiskInputs) -> str:
    return f"{', '.join(inputs.keywords.regulated(inputs.context))} compliance violations"


DEFAULT_RULES: Tuple[RiskRule, ...] = (
    RiskRule(lambda inputs: inputs.keywords.tenant.lower() in inputs.text, TENANT_ISOLATION),
    RiskRule(lambda inputs: inputs.has_type(ComponentType.DATABASE), DATA_MIGRATION),
    RiskRule(lambda inputs: inputs.has_type(ComponentType.API), API_BREAKAGE),
    RiskRule(
        lambda inputs: bool(inputs.keywords.regulated(inputs.context)),
        COMPLIANCE,
        _compliance_description,
    ),
)


__all__ = [
    "API_BREAKAGE",
    "COMPLIANCE",
    "DATA_MIGRATION",
    "DEFAULT_RULES",
    "RiskInputs",
    "RiskKeywords",
    "RiskRule",
    "RiskTemplate",
    "TENANT_ISOLATION",
]
