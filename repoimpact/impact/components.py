"""Derives impacted components from change text when none are supplied."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from ..analyzers.strategies import ContentExtractor, FileReader
from ..logging import get_logger
from ..models import (
    ChangeKind,
    ComponentType,
    Confidence,
    ImpactedComponent,
    RepoManifest,
    RepositoryFacts,
    dedupe,
)

logger = get_logger("impact.components")

_SYMBOL = re.compile(
    r"^\s*(?:export\s+)?(?:default\s+)?(?:abstract\s+)?(?:async\s+)?"
    r"(?P<kind>class|def|function|interface|type|struct|func)\s+(?P<name>[A-Za-z_]\w*)",
    re.MULTILINE,
)
_WORD = re.compile(r"[a-z][a-z0-9]{3,}")
_STOPWORDS = {
    "able", "also", "allow", "allows", "based", "been", "being", "change", "changes",
    "each", "every", "existing", "from", "have", "into", "make", "more", "must", "need",
    "needs", "only", "other", "over", "should", "some", "such", "support", "than",
    "that", "their", "them", "then", "there", "these", "they", "this", "those", "through",
    "update", "used", "user", "users", "using", "when", "where", "which", "while", "will",
    "with", "within", "without", "would",
}
_SOURCE_SUFFIXES = (".py", ".js", ".jsx", ".ts", ".tsx", ".java", ".kt", ".go", ".rb", ".php", ".cs")


@dataclass(frozen=True)
class ComponentTemplate:
    component: str
    type: ComponentType
    change: ChangeKind
    confidence: Confidence
    description: str

    def build(self, file_paths: Sequence[str] = ()) -> ImpactedComponent:
        return ImpactedComponent(
            component=self.component,
            type=self.type,
            change=self.change,
            confidence=self.confidence,
            file_paths=list(file_paths),
            description=self.description,
        )


@dataclass(frozen=True)
class KeywordRule:
    keywords: Tuple[str, ...]
    templates: Tuple[ComponentTemplate, ...]

    def matches(self, text: str) -> bool:
        return any(re.search(rf"\b{re.escape(keyword)}", text) for keyword in self.keywords)


KEYWORD_RULES: Tuple[KeywordRule, ...] = (
    KeywordRule(
        ("tenant",),
        (
            ComponentTemplate(
                "Authentication Service",
                ComponentType.SERVICE,
                ChangeKind.MODIFY,
                Confidence.HIGH,
                "Add tenant context to auth tokens",
            ),
            ComponentTemplate(
                "Database Schema",
                ComponentType.DATABASE,
                ChangeKind.MODIFY,
                Confidence.HIGH,
                "Add tenant_id column to all tables",
            ),
            ComponentTemplate(
                "API Gateway",
                ComponentType.API,
                ChangeKind.MODIFY,
                Confidence.MEDIUM,
                "Route requests based on tenant",
            ),
            ComponentTemplate(
                "Configuration Service",
                ComponentType.SERVICE,
                ChangeKind.CREATE,
                Confidence.HIGH,
                "New service for tenant-specific configuration",
            ),
        ),
    ),
    KeywordRule(
        ("database", "schema", "migration", "table", "column"),
        (
            ComponentTemplate(
                "Database Schema",
                ComponentType.DATABASE,
                ChangeKind.MODIFY,
                Confidence.HIGH,
                "Schema or data changes",
            ),
        ),
    ),
    KeywordRule(
        ("api", "endpoint", "route", "graphql", "webhook"),
        (
            ComponentTemplate(
                "API Layer",
                ComponentType.API,
                ChangeKind.MODIFY,
                Confidence.MEDIUM,
                "Endpoint contract changes",
            ),
        ),
    ),
    KeywordRule(
        ("auth", "login", "permission", "role", "sso", "oauth"),
        (
            ComponentTemplate(
                "Authentication Service",
                ComponentType.SERVICE,
                ChangeKind.MODIFY,
                Confidence.MEDIUM,
                "Authentication or authorization changes",
            ),
        ),
    ),
    KeywordRule(
        ("ui", "frontend", "page", "component", "screen", "dashboard"),
        (
            ComponentTemplate(
                "Frontend Application",
                ComponentType.LIBRARY,
                ChangeKind.MODIFY,
                Confidence.MEDIUM,
                "User interface changes",
            ),
        ),
    ),
    KeywordRule(
        ("deploy", "docker", "kubernetes", "infrastructure", "terraform", "pipeline"),
        (
            ComponentTemplate(
                "Deployment Infrastructure",
                ComponentType.INFRASTRUCTURE,
                ChangeKind.MODIFY,
                Confidence.MEDIUM,
                "Deployment or runtime environment changes",
            ),
        ),
    ),
    KeywordRule(
        ("config", "setting", "feature flag", "toggle"),
        (
            ComponentTemplate(
                "Configuration",
                ComponentType.CONFIG,
                ChangeKind.MODIFY,
                Confidence.MEDIUM,
                "Configuration changes",
            ),
        ),
    ),
)


def search_terms(change_text: str) -> List[str]:
    """Return the distinct 4+ letter words of ``change_text`` worth searching for."""
    return dedupe(word for word in _WORD.findall(change_text.lower()) if word not in _STOPWORDS)


class ComponentSynthesizer:
    """Maps change text onto likely components using keyword rules and a symbol search."""

    def __init__(
        self,
        rules: Sequence[KeywordRule] = KEYWORD_RULES,
        max_symbol_components: int = 10,
    ) -> None:
        self.rules = tuple(rules)
        self.max_symbol_components = max_symbol_components

    def synthesize(
        self,
        change_text: str,
        facts: Optional[RepositoryFacts] = None,
        manifest: Optional[RepoManifest] = None,
        reader: Optional[FileReader] = None,
    ) -> List[ImpactedComponent]:
        text = change_text.lower()
        components: List[ImpactedComponent] = []
        names = set()
        for rule in self.rules:
            if not rule.matches(text):
                continue
            for template in rule.templates:
                if template.component in names:
                    continue
                components.append(template.build(self._file_hints(template, facts)))
                names.add(template.component)

        if manifest is not None and reader is not None:
            for component in self._symbol_components(change_text, manifest, reader, components):
                if component.component not in names:
                    components.append(component)
                    names.add(component.component)

        logger.info("Identified %d impacted components", len(components))
        return components

    @staticmethod
    def _file_hints(template: ComponentTemplate, facts: Optional[RepositoryFacts]) -> List[str]:
        if facts is None:
            return []
        if template.type is ComponentType.DATABASE:
            return facts.database.migrations[:5]
        return []

    def _symbol_components(
        self,
        change_text: str,
        manifest: RepoManifest,
        reader: FileReader,
        existing: Sequence[ImpactedComponent],
    ) -> List[ImpactedComponent]:
        terms = search_terms(change_text)
        if not terms or self.max_symbol_components <= 0:
            return []
        claimed = {path for component in existing for path in component.file_paths}
        extractor = ContentExtractor(
            "symbols",
            lambda file, text: [],
            suffixes=_SOURCE_SUFFIXES,
            where=lambda file: file.role == "src" and file.path not in claimed,
        )

        found: List[ImpactedComponent] = []
        seen = {component.component for component in existing}
        for _, file, text in reader.iter_texts(manifest.files, [extractor]):
            for match in _SYMBOL.finditer(text):
                name = match.group("name")
                lowered = name.lower()
                if name in seen or not any(term in lowered for term in terms):
                    continue
                seen.add(name)
                found.append(
                    ImpactedComponent(
                        component=name,
                        type=ComponentType.LIBRARY,
                        change=ChangeKind.MODIFY,
                        confidence=Confidence.LOW,
                        file_paths=[file.path],
                        description=f"Potential impact on {match.group('kind')} {name}",
                    )
                )
                if len(found) >= self.max_symbol_components:
                    return found
        return found


__all__ = ["ComponentSynthesizer", "ComponentTemplate", "KEYWORD_RULES", "KeywordRule", "search_terms"]
