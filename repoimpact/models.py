"""Core data models shared across repoimpact components."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Type, TypeVar

_E = TypeVar("_E", bound=Enum)


def dedupe(values: Iterable[Optional[str]]) -> List[str]:
    """Return values without duplicates or blanks, keeping first-seen order."""
    return list(dict.fromkeys(value for value in values if value))


def _coerce_enum(enum_cls: Type[_E], value: Any, default: _E, field_name: str = "value") -> _E:
    """Map ``value`` onto ``enum_cls``; absent values take ``default``, unknown ones raise."""
    if isinstance(value, enum_cls):
        return value
    if value is None or (isinstance(value, str) and not value.strip()):
        return default
    try:
        return enum_cls(str(value).strip().lower())
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValueError(f"Unknown {field_name} {value!r} (expected one of: {allowed})") from None


def _str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, (list, tuple, set)):
        return [str(item) for item in value if isinstance(item, (str, int, float))]
    return []


def _str_map(value: Any) -> Dict[str, str]:
    if not isinstance(value, Mapping):
        return {}
    return {str(key): str(item) for key, item in value.items()}


def _opt_str(value: Any) -> Optional[str]:
    return value if isinstance(value, str) and value else None


# ---------------------------------------------------------------------------
# Repository manifest
# ---------------------------------------------------------------------------


@dataclass
class FileMeta:
    """Metadata for an individual repository file."""

    path: str
    size: int
    language: Optional[str]
    role: str
    mtime_ns: int = 0

    @property
    def name(self) -> str:
        return self.path.rsplit("/", 1)[-1]

    @property
    def suffix(self) -> str:
        name = self.name
        return name[name.rfind(".") :].lower() if "." in name else ""


@dataclass
class RepoManifest:
    """Normalized view of the repository for detectors."""

    root: str
    files: List[FileMeta]
    truncated: bool = False

    def paths(self) -> List[str]:
        return [file.path for file in self.files]

    def top_level_dirs(self) -> List[str]:
        """Return non-hidden top-level directories in first-seen order."""
        dirs = []
        for file in self.files:
            if "/" not in file.path:
                continue
            top = file.path.split("/", 1)[0]
            if not top.startswith("."):
                dirs.append(top)
        return dedupe(dirs)

    def fingerprint(self) -> str:
        """Stable digest of the file listing, used to detect tree changes."""
        digest = hashlib.sha256()
        for file in sorted(self.files, key=lambda item: item.path):
            digest.update(file.path.encode("utf-8"))
            digest.update(b"\0")
            digest.update(f"{file.size}:{file.mtime_ns}".encode("utf-8"))
            digest.update(b"\0")
        digest.update(str(len(self.files)).encode("utf-8"))
        return digest.hexdigest()


# ---------------------------------------------------------------------------
# Repository facts
# ---------------------------------------------------------------------------


@dataclass
class StructureFacts:
    type: str = "unknown"
    framework: Optional[str] = None
    languages: List[str] = field(default_factory=list)
    directories: List[str] = field(default_factory=list)
    entry_points: List[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.languages = dedupe(self.languages)
        self.directories = dedupe(self.directories)
        self.entry_points = dedupe(self.entry_points)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "framework": self.framework,
            "languages": list(self.languages),
            "directories": list(self.directories),
            "entry_points": list(self.entry_points),
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "StructureFacts":
        return cls(
            type=str(payload.get("type") or "unknown"),
            framework=_opt_str(payload.get("framework")),
            languages=_str_list(payload.get("languages")),
            directories=_str_list(payload.get("directories")),
            entry_points=_str_list(payload.get("entry_points")),
        )


@dataclass
class DatabaseFacts:
    type: Optional[str] = None
    tables: List[str] = field(default_factory=list)
    migrations: List[str] = field(default_factory=list)
    schemas: List[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.tables = dedupe(self.tables)
        self.migrations = dedupe(self.migrations)
        self.schemas = dedupe(self.schemas)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "tables": list(self.tables),
            "migrations": list(self.migrations),
            "schemas": list(self.schemas),
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "DatabaseFacts":
        return cls(
            type=_opt_str(payload.get("type")),
            tables=_str_list(payload.get("tables")),
            migrations=_str_list(payload.get("migrations")),
            schemas=_str_list(payload.get("schemas")),
        )


@dataclass
class ApiFacts:
    type: str = "REST"
    routes: List[str] = field(default_factory=list)
    controllers: List[str] = field(default_factory=list)
    services: List[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.routes = dedupe(self.routes)
        self.controllers = dedupe(self.controllers)
        self.services = dedupe(self.services)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "routes": list(self.routes),
            "controllers": list(self.controllers),
            "services": list(self.services),
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "ApiFacts":
        return cls(
            type=str(payload.get("type") or "REST"),
            routes=_str_list(payload.get("routes")),
            controllers=_str_list(payload.get("controllers")),
            services=_str_list(payload.get("services")),
        )


@dataclass
class FrontendFacts:
    framework: Optional[str] = None
    components: List[str] = field(default_factory=list)
    pages: List[str] = field(default_factory=list)
    state: Optional[str] = None
    styling: Optional[str] = None

    def __post_init__(self) -> None:
        self.components = dedupe(self.components)
        self.pages = dedupe(self.pages)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "framework": self.framework,
            "components": list(self.components),
            "pages": list(self.pages),
            "state": self.state,
            "styling": self.styling,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "FrontendFacts":
        return cls(
            framework=_opt_str(payload.get("framework")),
            components=_str_list(payload.get("components")),
            pages=_str_list(payload.get("pages")),
            state=_opt_str(payload.get("state")),
            styling=_opt_str(payload.get("styling")),
        )


@dataclass
class PatternFacts:
    architecture: str = "monolithic"
    testing: Optional[str] = None
    ci: Optional[str] = None
    containerization: bool = False
    authentication: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "architecture": self.architecture,
            "testing": self.testing,
            "ci": self.ci,
            "containerization": self.containerization,
            "authentication": self.authentication,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "PatternFacts":
        return cls(
            architecture=str(payload.get("architecture") or "monolithic"),
            testing=_opt_str(payload.get("testing")),
            ci=_opt_str(payload.get("ci")),
            containerization=bool(payload.get("containerization")),
            authentication=_opt_str(payload.get("authentication")),
        )


@dataclass
class DependencyFacts:
    production: Dict[str, str] = field(default_factory=dict)
    development: Dict[str, str] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return len(self.production) + len(self.development)

    def names(self) -> List[str]:
        return dedupe([*self.production, *self.development])

    def to_dict(self) -> Dict[str, Any]:
        return {
            "production": dict(self.production),
            "development": dict(self.development),
            "total": self.total,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "DependencyFacts":
        return cls(
            production=_str_map(payload.get("production")),
            development=_str_map(payload.get("development")),
        )


@dataclass
class RepositoryFacts:
    """Output of one analysis pass over a repository root."""

    structure: StructureFacts = field(default_factory=StructureFacts)
    database: DatabaseFacts = field(default_factory=DatabaseFacts)
    api: ApiFacts = field(default_factory=ApiFacts)
    frontend: FrontendFacts = field(default_factory=FrontendFacts)
    patterns: PatternFacts = field(default_factory=PatternFacts)
    dependencies: DependencyFacts = field(default_factory=DependencyFacts)
    bounded: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "structure": self.structure.to_dict(),
            "database": self.database.to_dict(),
            "api": self.api.to_dict(),
            "frontend": self.frontend.to_dict(),
            "patterns": self.patterns.to_dict(),
            "dependencies": self.dependencies.to_dict(),
            "bounded": self.bounded,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "RepositoryFacts":
        def _section(key: str) -> Mapping[str, Any]:
            value = payload.get(key)
            return value if isinstance(value, Mapping) else {}

        return cls(
            structure=StructureFacts.from_dict(_section("structure")),
            database=DatabaseFacts.from_dict(_section("database")),
            api=ApiFacts.from_dict(_section("api")),
            frontend=FrontendFacts.from_dict(_section("frontend")),
            patterns=PatternFacts.from_dict(_section("patterns")),
            dependencies=DependencyFacts.from_dict(_section("dependencies")),
            bounded=bool(payload.get("bounded")),
        )


# ---------------------------------------------------------------------------
# Change inputs
# ---------------------------------------------------------------------------


class ComponentType(Enum):
    SERVICE = "service"
    API = "api"
    DATABASE = "database"
    INFRASTRUCTURE = "infrastructure"
    LIBRARY = "library"
    CONFIG = "config"


class ChangeKind(Enum):
    CREATE = "create"
    MODIFY = "modify"
    DELETE = "delete"
    REFACTOR = "refactor"


class Confidence(Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class Level(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass
class ImpactedComponent:
    """A named system part flagged as touched by a change."""

    component: str
    type: ComponentType
    change: ChangeKind = ChangeKind.MODIFY
    confidence: Confidence = Confidence.MEDIUM
    file_paths: List[str] = field(default_factory=list)
    description: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "component": self.component,
            "type": self.type.value,
            "change": self.change.value,
            "confidence": self.confidence.value,
            "file_paths": list(self.file_paths),
            "description": self.description,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "ImpactedComponent":
        name = payload.get("component") or payload.get("name")
        if not isinstance(name, str) or not name.strip():
            raise ValueError("Impacted component requires a non-empty 'component' name")
        change = payload.get("change", payload.get("change_kind", payload.get("changeKind")))
        return cls(
            component=name.strip(),
            type=_coerce_enum(ComponentType, payload.get("type"), ComponentType.LIBRARY, "component type"),
            change=_coerce_enum(ChangeKind, change, ChangeKind.MODIFY, "change kind"),
            confidence=_coerce_enum(Confidence, payload.get("confidence"), Confidence.MEDIUM, "confidence"),
            file_paths=_str_list(payload.get("file_paths")),
            description=_opt_str(payload.get("description")),
        )


@dataclass
class ComplexityFactors:
    integration_points: int = 0
    data_migration: bool = False
    breaking_changes: bool = False
    compliance_required: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "integration_points": self.integration_points,
            "data_migration": self.data_migration,
            "breaking_changes": self.breaking_changes,
            "compliance_required": self.compliance_required,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "ComplexityFactors":
        points = payload.get("integration_points", payload.get("integrationPoints", 0))
        return cls(
            integration_points=max(int(points or 0), 0),
            data_migration=bool(payload.get("data_migration", payload.get("dataMigration"))),
            breaking_changes=bool(
                payload.get("breaking_changes", payload.get("breakingChanges"))
            ),
            compliance_required=bool(
                payload.get("compliance_required", payload.get("complianceRequired"))
            ),
        )


@dataclass
class NonFunctional:
    security: List[str] = field(default_factory=list)
    performance: Dict[str, Any] = field(default_factory=dict)
    availability_slo: Optional[str] = None


@dataclass
class Requirement:
    """Structured change request; only ``summary`` is required."""

    summary: str
    type: str = "feature"
    acceptance_criteria: List[str] = field(default_factory=list)
    non_functional: NonFunctional = field(default_factory=NonFunctional)
    constraints: List[str] = field(default_factory=list)
    deadline: Optional[str] = None

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Requirement":
        nfr = payload.get("non_functional")
        nfr = nfr if isinstance(nfr, Mapping) else {}
        performance = nfr.get("performance")
        return cls(
            summary=str(payload.get("summary") or ""),
            type=str(payload.get("type") or "feature"),
            acceptance_criteria=_str_list(payload.get("acceptance_criteria")),
            non_functional=NonFunctional(
                security=_str_list(nfr.get("security")),
                performance=dict(performance) if isinstance(performance, Mapping) else {},
                availability_slo=_opt_str(nfr.get("availability_slo")),
            ),
            constraints=_str_list(payload.get("constraints")),
            deadline=_opt_str(payload.get("deadline")),
        )


@dataclass
class AnalysisContext:
    compliance: List[str] = field(default_factory=list)
    architecture_style: Optional[str] = None
    cloud: Optional[str] = None
    target_envs: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "AnalysisContext":
        return cls(
            compliance=_str_list(payload.get("compliance")),
            architecture_style=_opt_str(payload.get("architecture_style")),
            cloud=_opt_str(payload.get("cloud")),
            target_envs=_str_list(payload.get("target_envs")),
        )


# ---------------------------------------------------------------------------
# Impact outputs
# ---------------------------------------------------------------------------


_BUCKET_RANK = {"S": 0, "M": 1, "L": 2, "XL": 3}


class EffortBucket(Enum):
    """Discrete effort size; ordered S < M < L < XL."""

    S = "S"
    M = "M"
    L = "L"
    XL = "XL"

    @property
    def rank(self) -> int:
        return _BUCKET_RANK[self.value]

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, EffortBucket):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: object) -> bool:
        if not isinstance(other, EffortBucket):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, EffortBucket):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, EffortBucket):
            return NotImplemented
        return self.rank >= other.rank


@dataclass
class EffortPlan:
    phases: List[str]
    duration: str
    resources: str

    def to_dict(self) -> Dict[str, Any]:
        return {"phases": list(self.phases), "duration": self.duration, "resources": self.resources}

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "EffortPlan":
        return cls(
            phases=_str_list(payload.get("phases")),
            duration=str(payload.get("duration") or ""),
            resources=str(payload.get("resources") or ""),
        )


@dataclass
class Risk:
    id: str
    category: str
    description: str
    likelihood: Level
    impact: Level
    mitigations: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "category": self.category,
            "description": self.description,
            "likelihood": self.likelihood.value,
            "impact": self.impact.value,
            "mitigations": list(self.mitigations),
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Risk":
        return cls(
            id=str(payload.get("id") or ""),
            category=str(payload.get("category") or ""),
            description=str(payload.get("description") or ""),
            likelihood=_coerce_enum(Level, payload.get("likelihood"), Level.MEDIUM, "likelihood"),
            impact=_coerce_enum(Level, payload.get("impact"), Level.MEDIUM, "impact"),
            mitigations=_str_list(payload.get("mitigations")),
        )


@dataclass
class ImpactAnalysis:
    dependencies: List[str]
    risks: List[Risk]
    effort_bucket: EffortBucket
    test_areas: List[str]
    rollout_strategy: str
    rollback_strategy: str
    score: float = 0.0
    plan: Optional[EffortPlan] = None

    def __post_init__(self) -> None:
        self.dependencies = dedupe(self.dependencies)
        self.test_areas = dedupe(self.test_areas)

    def risk_ids(self) -> List[str]:
        return [risk.id for risk in self.risks]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "dependencies": list(self.dependencies),
            "risks": [risk.to_dict() for risk in self.risks],
            "effort_bucket": self.effort_bucket.value,
            "test_areas": list(self.test_areas),
            "rollout_strategy": self.rollout_strategy,
            "rollback_strategy": self.rollback_strategy,
            "score": self.score,
            "plan": self.plan.to_dict() if self.plan else None,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "ImpactAnalysis":
        risks = payload.get("risks")
        plan = payload.get("plan")
        return cls(
            dependencies=_str_list(payload.get("dependencies")),
            risks=[Risk.from_dict(item) for item in risks or [] if isinstance(item, Mapping)],
            effort_bucket=EffortBucket(str(payload.get("effort_bucket") or "S")),
            test_areas=_str_list(payload.get("test_areas")),
            rollout_strategy=str(payload.get("rollout_strategy") or ""),
            rollback_strategy=str(payload.get("rollback_strategy") or ""),
            score=float(payload.get("score") or 0.0),
            plan=EffortPlan.from_dict(plan) if isinstance(plan, Mapping) else None,
        )
