"""Pipeline orchestration: facts, impact and artifact phases over a run registry."""

from __future__ import annotations

import asyncio
import functools
import json
import time
import uuid
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Set, Tuple

from .analyzers import assemble_facts, build_reader, discover_detectors, run_detector, scan_repository
from .analyzers.base import Detector
from .analyzers.strategies import FileReader
from .composer import ArtifactComposer, MarkdownReportComposer
from .config import RepoImpactConfig, load_config
from .impact import (
    BucketThresholds,
    ComponentSynthesizer,
    EffortEstimator,
    ImpactAssessor,
    RiskKeywords,
)
from .logging import get_logger, run_logger
from .models import (
    AnalysisContext,
    ImpactAnalysis,
    ImpactedComponent,
    RepoManifest,
    RepositoryFacts,
    Requirement,
    dedupe,
)
from .stores.analysis_cache import AnalysisCache, make_key

logger = get_logger("orchestrator")


class RunState(Enum):
    IDLE = "idle"
    ANALYZING_FACTS = "analyzing-facts"
    ANALYZING_IMPACT = "analyzing-impact"
    COMPOSING_ARTIFACTS = "composing-artifacts"
    COMPLETE = "complete"
    ERROR = "error"

    @property
    def terminal(self) -> bool:
        return self in (RunState.COMPLETE, RunState.ERROR)


_TRANSITIONS: Dict[RunState, Set[RunState]] = {
    RunState.IDLE: {RunState.ANALYZING_FACTS, RunState.ERROR},
    RunState.ANALYZING_FACTS: {RunState.ANALYZING_IMPACT, RunState.ERROR},
    RunState.ANALYZING_IMPACT: {RunState.COMPOSING_ARTIFACTS, RunState.ERROR},
    RunState.COMPOSING_ARTIFACTS: {RunState.COMPLETE, RunState.ERROR},
    RunState.COMPLETE: set(),
    RunState.ERROR: set(),
}


class InvalidTransitionError(RuntimeError):
    """Raised when a run is moved between states the pipeline does not connect."""


class StaleRunHandleError(LookupError):
    """Raised when a handle refers to a run that was torn down or replaced."""


@dataclass
class AnalysisRequest:
    """Inputs for one pipeline run; only ``root`` is required."""

    root: str
    change_text: str = ""
    requirement: Optional[Requirement] = None
    context: Optional[AnalysisContext] = None
    components: Optional[List[ImpactedComponent]] = None
    overrides: Optional[Dict[str, Any]] = None

    def text(self) -> str:
        """Change text plus the requirement summary; every keyword trigger reads this."""
        parts = [self.change_text.strip()]
        if self.requirement is not None:
            parts.append(self.requirement.summary.strip())
        return "\n".join(dedupe(parts))

    def resolved_requirement(self) -> Requirement:
        text = self.text()
        if self.requirement is None:
            return Requirement(summary=text)
        if text == self.requirement.summary:
            return self.requirement
        return replace(self.requirement, summary=text)

    def resolved_context(self) -> AnalysisContext:
        return self.context or AnalysisContext()

    def signature(self) -> str:
        """Text identifying the change for impact memoization."""
        requirement = self.resolved_requirement()
        parts: Dict[str, Any] = {
            "change": self.text(),
            "constraints": requirement.constraints,
            "security": requirement.non_functional.security,
            "performance": sorted(requirement.non_functional.performance),
            "compliance": sorted(self.resolved_context().compliance),
        }
        if self.components is not None:
            parts["components"] = [component.to_dict() for component in self.components]
        if self.overrides:
            parts["overrides"] = self.overrides
        return json.dumps(parts, sort_keys=True, default=str)


@dataclass(frozen=True)
class RunHandle:
    run_id: str
    generation: int


@dataclass
class RunRecord:
    run_id: str
    generation: int
    request: AnalysisRequest
    created_at: float
    updated_at: float
    state: RunState = RunState.IDLE
    facts: Optional[RepositoryFacts] = None
    impact: Optional[ImpactAnalysis] = None
    artifacts: List[str] = field(default_factory=list)
    completed_phases: List[str] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def handle(self) -> RunHandle:
        return RunHandle(self.run_id, self.generation)

    def transition(self, state: RunState, now: float) -> None:
        if state not in _TRANSITIONS[self.state]:
            raise InvalidTransitionError(
                f"Run {self.run_id} cannot move from {self.state.value} to {state.value}"
            )
        self.state = state
        self.updated_at = now


class RunRegistry:
    """Arena of pipeline runs keyed by run id and guarded by generation numbers."""

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._records: Dict[str, RunRecord] = {}
        self._generation = 0

    def now(self) -> float:
        return self._clock()

    def __len__(self) -> int:
        return len(self._records)

    def create(self, request: AnalysisRequest) -> RunHandle:
        self._generation += 1
        now = self._clock()
        record = RunRecord(
            run_id=uuid.uuid4().hex,
            generation=self._generation,
            request=request,
            created_at=now,
            updated_at=now,
        )
        self._records[record.run_id] = record
        return record.handle

    def get(self, handle: RunHandle) -> RunRecord:
        record = self._records.get(handle.run_id)
        if record is None or record.generation != handle.generation:
            raise StaleRunHandleError(f"Run handle {handle.run_id}#{handle.generation} is stale")
        return record

    def lookup(self, run_id: str) -> Optional[RunRecord]:
        return self._records.get(run_id)

    def teardown(self, run_id: str) -> bool:
        return self._records.pop(run_id, None) is not None

    def expire(self, ttl_seconds: float) -> List[str]:
        """Drop finished runs idle for longer than ``ttl_seconds``; return their ids."""
        now = self._clock()
        expired = [
            run_id
            for run_id, record in self._records.items()
            if record.state.terminal and now - record.updated_at > ttl_seconds
        ]
        for run_id in expired:
            del self._records[run_id]
        if expired:
            logger.debug("Expired %d finished runs", len(expired))
        return expired


@dataclass(frozen=True)
class Phase:
    """One pipeline step: ``tasks`` run concurrently, then ``finish`` records their results."""

    name: str
    state: RunState
    tasks: Callable[[RunRecord], Sequence[Awaitable[Any]]]
    finish: Callable[[RunRecord, List[Any]], None]


class Orchestrator:
    """Drives analysis runs and memoizes facts and impact in a shared cache."""

    def __init__(
        self,
        config: RepoImpactConfig | None = None,
        cache: AnalysisCache | None = None,
        detectors: Optional[Sequence[Detector]] = None,
        synthesizer: ComponentSynthesizer | None = None,
        assessor: ImpactAssessor | None = None,
        composer: ArtifactComposer | None = None,
        registry: RunRegistry | None = None,
    ) -> None:
        self._config = config
        if cache is None:
            cache_config = config.cache if config is not None else None
            cache = AnalysisCache(
                ttl_seconds=cache_config.ttl_seconds if cache_config else 3600.0,
                path=cache_config.path if cache_config else None,
            )
        self.cache = cache
        self.detectors = list(detectors) if detectors is not None else discover_detectors()
        self.synthesizer = synthesizer or ComponentSynthesizer()
        self._assessor = assessor
        self.composer: ArtifactComposer = composer or MarkdownReportComposer()
        self.registry = registry or RunRegistry()
        # In-memory only: manifests and readers are shared by the facts and impact phases.
        self._surveys = AnalysisCache(ttl_seconds=self.cache.ttl_seconds)
        self._tasks: Set[asyncio.Task[None]] = set()
        self.phases: List[Phase] = [
            Phase("facts", RunState.ANALYZING_FACTS, self._facts_tasks, self._record_facts),
            Phase("impact", RunState.ANALYZING_IMPACT, self._impact_tasks, self._record_impact),
            Phase("artifacts", RunState.COMPOSING_ARTIFACTS, self._compose_tasks, self._record_artifacts),
        ]

    # ------------------------------------------------------------------
    # Standalone operations

    def config_for(self, root: str | Path) -> RepoImpactConfig:
        if self._config is not None:
            return self._config
        return load_config(Path(root))

    def assessor_for(self, config: RepoImpactConfig) -> ImpactAssessor:
        if self._assessor is not None:
            return self._assessor
        return ImpactAssessor(
            estimator=EffortEstimator(BucketThresholds.from_config(config.estimator)),
            keywords=RiskKeywords.from_config(config.risk),
        )

    async def analyze_facts(self, root: str | Path) -> RepositoryFacts:
        """Scan ``root`` and run every detector concurrently; memoized per root and scan settings."""
        config = self.config_for(root)
        key = make_key(root, "", f"facts:{config.analysis.fingerprint()}")
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug("Using cached facts for %s", root)
            return cached

        manifest, reader = await self._survey(root, config)
        loop = asyncio.get_running_loop()
        results = await asyncio.gather(
            *(
                loop.run_in_executor(None, run_detector, detector, manifest, reader)
                for detector in self.detectors
            )
        )
        facts = assemble_facts(zip(self.detectors, results), bounded=reader.bounded)
        self.cache.set(key, facts)
        self.cache.persist()
        return facts

    async def assess_impact(
        self,
        request: AnalysisRequest,
        facts: Optional[RepositoryFacts] = None,
    ) -> ImpactAnalysis:
        """Assess the change in ``request``; memoized per root, scan settings and change signature."""
        config = self.config_for(request.root)
        key = make_key(request.root, request.signature(), f"impact:{config.analysis.fingerprint()}")
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug("Using cached impact analysis for %s", request.root)
            return cached

        loop = asyncio.get_running_loop()
        components = request.components
        if components is None:
            manifest, reader = await self._survey(request.root, config)
            components = await loop.run_in_executor(
                None,
                functools.partial(
                    self.synthesizer.synthesize,
                    request.text(),
                    facts=facts,
                    manifest=manifest,
                    reader=reader,
                ),
            )
        assessor = self.assessor_for(config)
        impact = await loop.run_in_executor(
            None,
            assessor.assess,
            request.resolved_requirement(),
            components,
            request.resolved_context(),
            request.overrides,
        )
        self.cache.set(key, impact)
        self.cache.persist()
        return impact

    async def _survey(
        self, root: str | Path, config: RepoImpactConfig
    ) -> Tuple[RepoManifest, FileReader]:
        """Walk ``root`` once per scan settings and share the manifest and reader."""
        key = make_key(root, "", f"survey:{config.analysis.fingerprint()}")
        cached = self._surveys.get(key)
        if cached is not None:
            return cached
        loop = asyncio.get_running_loop()
        manifest = await loop.run_in_executor(None, scan_repository, root, config.analysis)
        survey = (manifest, build_reader(manifest, config.analysis))
        self._surveys.set(key, survey)
        return survey

    # ------------------------------------------------------------------
    # Runs

    async def run(self, request: AnalysisRequest) -> RunRecord:
        """Create a run and drive it to a terminal state in the calling task."""
        handle = self.registry.create(request)
        await self._drive(handle)
        return self.registry.get(handle)

    def start(self, request: AnalysisRequest) -> str:
        """Schedule a run on the running event loop and return its id immediately."""
        self.registry.expire(self._run_ttl())
        handle = self.registry.create(request)
        task = asyncio.get_running_loop().create_task(self._drive(handle))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return handle.run_id

    def status(self, run_id: str) -> Dict[str, Any]:
        record = self.registry.lookup(run_id)
        if record is None:
            return {"run_id": run_id, "status": "not_found"}
        if record.state is RunState.COMPLETE and len(record.completed_phases) == len(self.phases):
            status = "complete"
        elif record.state is RunState.ERROR:
            status = "error"
        else:
            status = "in_progress"
        return {
            "run_id": run_id,
            "status": status,
            "state": record.state.value,
            "progress": f"{len(record.completed_phases)}/{len(self.phases)}",
            "completed_phases": list(record.completed_phases),
            "artifacts": list(record.artifacts),
            "error": record.error,
            "facts": record.facts.to_dict() if record.facts else None,
            "impact": record.impact.to_dict() if record.impact else None,
        }

    def _run_ttl(self) -> float:
        if self._config is not None:
            return self._config.run_ttl_seconds
        return self.cache.ttl_seconds

    async def _drive(self, handle: RunHandle) -> None:
        record = self.registry.get(handle)
        log = run_logger(logger, record.run_id)
        clock = self.registry.now
        try:
            for phase in self.phases:
                record.transition(phase.state, clock())
                log.info("%s", phase.state.value)
                results = await asyncio.gather(*phase.tasks(record))
                phase.finish(record, list(results))
                record.completed_phases.append(phase.name)
            record.transition(RunState.COMPLETE, clock())
            log.info("complete")
        except Exception as exc:
            failed = record.state.value
            record.error = str(exc) or exc.__class__.__name__
            record.transition(RunState.ERROR, clock())
            log.error("failed during %s: %s", failed, exc)
            log.debug("failure details", exc_info=True)

    # ------------------------------------------------------------------
    # Phase wiring

    def _facts_tasks(self, record: RunRecord) -> List[Awaitable[Any]]:
        return [self.analyze_facts(record.request.root)]

    def _record_facts(self, record: RunRecord, results: List[Any]) -> None:
        record.facts = results[0]

    def _impact_tasks(self, record: RunRecord) -> List[Awaitable[Any]]:
        return [self.assess_impact(record.request, record.facts)]

    def _record_impact(self, record: RunRecord, results: List[Any]) -> None:
        record.impact = results[0]

    def _compose_tasks(self, record: RunRecord) -> List[Awaitable[Any]]:
        loop = asyncio.get_running_loop()
        return [
            loop.run_in_executor(
                None,
                self.composer.compose,
                record.run_id,
                record.request.root,
                record.facts,
                record.impact,
                record.request.change_text,
            )
        ]

    def _record_artifacts(self, record: RunRecord, results: List[Any]) -> None:
        record.artifacts = [artifact for batch in results for artifact in batch]


__all__ = [
    "AnalysisRequest",
    "InvalidTransitionError",
    "Orchestrator",
    "Phase",
    "RunHandle",
    "RunRecord",
    "RunRegistry",
    "RunState",
    "StaleRunHandleError",
]
