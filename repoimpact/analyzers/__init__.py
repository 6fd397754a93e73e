"""Detector implementations, discovery, and fact assembly."""

from __future__ import annotations

import time
from importlib import metadata
from pathlib import Path
from typing import Any, Callable, Iterable, List, Optional, Sequence, Set

from ..config import AnalysisConfig
from ..logging import get_logger
from ..models import RepoManifest, RepositoryFacts
from ..path_guard import PathGuard
from ..repo_scanner import RepoScanner
from .api import ApiDetector
from .base import Detector
from .dependencies import DependencyDetector
from .frontend import FrontendDetector
from .patterns import PatternDetector
from .schema import SchemaDetector
from .strategies import FileReader, ScanBudget
from .structure import StructureDetector

logger = get_logger("analyzers")

_ENTRY_POINT_GROUP = "repoimpact.detectors"

_BUILTIN_FACTORIES: dict[str, Callable[[], Detector]] = {
    "structure": StructureDetector,
    "database": SchemaDetector,
    "api": ApiDetector,
    "frontend": FrontendDetector,
    "patterns": PatternDetector,
    "dependencies": DependencyDetector,
}

_SECTIONS = {"structure", "database", "api", "frontend", "patterns", "dependencies"}


def discover_detectors(enabled: Sequence[str] | None = None) -> List[Detector]:
    """Return instantiated detectors, honoring optional enabled names."""

    enabled_set: Set[str] | None = None
    if enabled is not None:
        enabled_set = {name.lower() for name in enabled}

    detectors: List[Detector] = []
    seen: Set[str] = set()

    def _add(name: str, factory: Callable[[], Detector]) -> None:
        key = name.lower()
        if enabled_set is not None and key not in enabled_set:
            return
        if key in seen:
            return
        instance = factory()
        if not isinstance(instance, Detector):
            raise TypeError(f"Detector factory for '{name}' did not return a Detector instance")
        if instance.section not in _SECTIONS:
            raise ValueError(f"Detector '{name}' targets unknown facts section '{instance.section}'")
        detectors.append(instance)
        seen.add(key)
        if enabled_set is not None:
            enabled_set.discard(key)

    for name, factory in _BUILTIN_FACTORIES.items():
        _add(name, factory)

    for entry in _iter_entry_points():
        try:
            loaded = entry.load()
        except Exception as exc:
            raise RuntimeError(f"Failed to load detector entry point '{entry.name}': {exc}") from exc

        def _factory(obj: object = loaded) -> Detector:
            return _coerce_detector(obj)

        _add(entry.name, _factory)

    if enabled_set:
        missing = ", ".join(sorted(enabled_set))
        raise ValueError(f"Unknown detectors requested: {missing}")

    return detectors


def _coerce_detector(obj: object) -> Detector:
    if isinstance(obj, Detector):
        return obj
    if isinstance(obj, type) and issubclass(obj, Detector):
        return obj()
    if callable(obj):
        instance = obj()
        if isinstance(instance, Detector):
            return instance
    raise TypeError("Detector entry point must be a Detector subclass or factory")


def _iter_entry_points() -> Iterable[metadata.EntryPoint]:
    return metadata.entry_points().select(group=_ENTRY_POINT_GROUP)


def run_detector(detector: Detector, manifest: RepoManifest, reader: FileReader) -> Any:
    """Run one detector, substituting its empty facts when it fails."""
    started = time.perf_counter()
    try:
        result = detector.detect(manifest, reader)
    except Exception:
        logger.exception("Detector %s failed; contributing empty facts", detector.name)
        return detector.empty()
    logger.debug("Detector %s finished in %.3fs", detector.name, time.perf_counter() - started)
    return result


def assemble_facts(
    results: Iterable[tuple[Detector, Any]], *, bounded: bool = False
) -> RepositoryFacts:
    """Merge per-detector sections into one ``RepositoryFacts``; later detectors win."""
    facts = RepositoryFacts(bounded=bounded)
    for detector, section in results:
        setattr(facts, detector.section, section)
    return facts


def build_reader(manifest: RepoManifest, config: Optional[AnalysisConfig] = None) -> FileReader:
    config = config or AnalysisConfig()
    budget = ScanBudget.for_manifest(config, manifest)
    if budget.bounded:
        logger.info(
            "Bounded scan enabled for %s (%d files, sample rate %.2f)",
            manifest.root,
            len(manifest.files),
            budget.sample_rate,
        )
    return FileReader(guard=PathGuard(manifest.root), budget=budget)


def scan_repository(root: str | Path, config: Optional[AnalysisConfig] = None) -> RepoManifest:
    config = config or AnalysisConfig()
    scanner = RepoScanner(exclude_paths=config.exclude_paths)
    return scanner.scan(root, max_depth=config.max_depth, max_files=config.max_files)


def collect_facts(
    root: str | Path,
    config: Optional[AnalysisConfig] = None,
    detectors: Optional[Sequence[Detector]] = None,
) -> RepositoryFacts:
    """Scan ``root`` and run every detector sequentially."""
    manifest = scan_repository(root, config)
    reader = build_reader(manifest, config)
    active = list(detectors) if detectors is not None else discover_detectors()
    results = [(detector, run_detector(detector, manifest, reader)) for detector in active]
    return assemble_facts(results, bounded=reader.bounded)


__all__ = [
    "Detector",
    "assemble_facts",
    "build_reader",
    "collect_facts",
    "discover_detectors",
    "run_detector",
    "scan_repository",
]