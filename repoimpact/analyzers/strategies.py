"""Detection strategy tables and the bounded file reader shared by detectors."""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Sequence, Set, Tuple

from ..config import AnalysisConfig
from ..logging import get_logger
from ..models import FileMeta, RepoManifest, dedupe
from ..path_guard import PathGuard, PathOutsideRootError

logger = get_logger("analyzers.strategies")

_SAMPLE_SEED = 1729


# ---------------------------------------------------------------------------
# Marker rules (single-valued signals)
# ---------------------------------------------------------------------------


@dataclass
class MarkerContext:
    """Precomputed lookups that marker predicates evaluate against."""

    paths: Set[str]
    names: Set[str]
    suffixes: Set[str]
    dependencies: Set[str]
    top_dirs: Set[str]

    @classmethod
    def build(cls, manifest: RepoManifest, dependencies: Iterable[str] = ()) -> "MarkerContext":
        return cls(
            paths=set(manifest.paths()),
            names={file.name for file in manifest.files},
            suffixes={file.suffix for file in manifest.files if file.suffix},
            dependencies={name.lower() for name in dependencies},
            top_dirs=set(manifest.top_level_dirs()),
        )

    def has_prefix(self, prefix: str) -> bool:
        return any(path.startswith(prefix) for path in self.paths)

    def has_segment(self, segment: str) -> bool:
        return any(segment in path.split("/")[:-1] for path in self.paths)


Predicate = Callable[[MarkerContext], bool]


@dataclass(frozen=True)
class MarkerRule:
    """One ``(predicate, label)`` pair in an ordered detection table."""

    label: str
    predicate: Predicate


def first_match(rules: Sequence[MarkerRule], context: MarkerContext) -> Optional[str]:
    """Return the label of the first rule whose predicate holds."""
    for rule in rules:
        if rule.predicate(context):
            return rule.label
    return None


def dependency(*names: str) -> Predicate:
    wanted = {name.lower() for name in names}
    return lambda ctx: bool(wanted & ctx.dependencies)


def dependency_containing(*fragments: str) -> Predicate:
    lowered = [fragment.lower() for fragment in fragments]
    return lambda ctx: any(fragment in dep for dep in ctx.dependencies for fragment in lowered)


def root_file(*names: str) -> Predicate:
    return lambda ctx: any(name in ctx.paths for name in names)


def file_named(*names: str) -> Predicate:
    return lambda ctx: any(name in ctx.names for name in names)


def file_name_prefix(*prefixes: str) -> Predicate:
    return lambda ctx: any(name.startswith(prefixes) for name in ctx.names)


def file_name_suffix(*endings: str) -> Predicate:
    return lambda ctx: any(name.endswith(endings) for name in ctx.names)


def suffix(*suffixes: str) -> Predicate:
    return lambda ctx: any(item in ctx.suffixes for item in suffixes)


def path_prefix(*prefixes: str) -> Predicate:
    return lambda ctx: any(ctx.has_prefix(prefix) for prefix in prefixes)


def top_dir(*names: str) -> Predicate:
    return lambda ctx: any(name in ctx.top_dirs for name in names)


# ---------------------------------------------------------------------------
# Content extractors (collection-valued signals)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ContentExtractor:
    """Pulls names out of file contents for files it is registered against."""

    name: str
    extract: Callable[[FileMeta, str], Iterable[str]]
    suffixes: Tuple[str, ...] = ()
    filenames: Tuple[str, ...] = ()
    where: Optional[Callable[[FileMeta], bool]] = None

    def accepts(self, file: FileMeta) -> bool:
        if self.suffixes or self.filenames:
            if file.suffix not in self.suffixes and file.name not in self.filenames:
                return False
        if self.where is not None and not self.where(file):
            return False
        return True


# ---------------------------------------------------------------------------
# Bounded reading
# ---------------------------------------------------------------------------


@dataclass
class ScanBudget:
    """Limits applied to content reads when bounded-cost mode is on."""

    bounded: bool = False
    max_files_per_category: int = 500
    max_file_size: int = 1024 * 1024
    sample_rate: float = 1.0
    seed: int = _SAMPLE_SEED

    @classmethod
    def for_manifest(cls, config: AnalysisConfig, manifest: RepoManifest) -> "ScanBudget":
        if config.bounded == "always":
            bounded = True
        elif config.bounded == "never":
            bounded = False
        else:
            bounded = len(manifest.files) > config.large_repo_threshold or manifest.truncated
        return cls(
            bounded=bounded,
            max_files_per_category=config.max_files_per_category,
            max_file_size=config.max_file_size,
            sample_rate=config.sample_rate,
        )

    def sampled(self, path: str) -> bool:
        if not self.bounded or self.sample_rate >= 1.0:
            return True
        return random.Random(f"{self.seed}:{path}").random() < self.sample_rate


@dataclass
class FileReader:
    """Reads repository files through a ``PathGuard`` within a ``ScanBudget``."""

    guard: PathGuard
    budget: ScanBudget = field(default_factory=ScanBudget)

    @property
    def bounded(self) -> bool:
        return self.budget.bounded

    def read_text(self, path: str, max_bytes: Optional[int] = None) -> Optional[str]:
        """Return file text, or None when the file is missing or unreadable."""
        try:
            return self.guard.read_text(path, max_bytes=max_bytes)
        except FileNotFoundError:
            return None
        except PathOutsideRootError as exc:
            logger.warning("Refusing to read %s: %s", path, exc)
            return None
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("Skipping unreadable file %s: %s", path, exc)
            return None

    def iter_texts(
        self, files: Iterable[FileMeta], extractors: Sequence[ContentExtractor]
    ) -> Iterator[Tuple[ContentExtractor, FileMeta, str]]:
        """Yield ``(extractor, file, text)`` for every accepted file, reading each once."""
        counts: Dict[str, int] = {}
        capped: Set[str] = set()
        for file in files:
            wanted: List[ContentExtractor] = []
            for extractor in extractors:
                if not extractor.accepts(file):
                    continue
                if self.budget.bounded:
                    used = counts.get(extractor.name, 0)
                    if used >= self.budget.max_files_per_category:
                        if extractor.name not in capped:
                            capped.add(extractor.name)
                            logger.info(
                                "Bounded scan: %s capped at %d files",
                                extractor.name,
                                self.budget.max_files_per_category,
                            )
                        continue
                wanted.append(extractor)
            if not wanted:
                continue
            if self.budget.bounded:
                if file.size > self.budget.max_file_size:
                    logger.debug("Bounded scan: skipping large file %s", file.path)
                    continue
                if not self.budget.sampled(file.path):
                    continue
            text = self.read_text(file.path)
            if text is None:
                continue
            for extractor in wanted:
                counts[extractor.name] = counts.get(extractor.name, 0) + 1
                yield extractor, file, text

    def collect(
        self, files: Iterable[FileMeta], extractors: Sequence[ContentExtractor]
    ) -> Dict[str, List[str]]:
        """Run extractors over one shared pass and return deduplicated names per extractor."""
        found: Dict[str, List[str]] = {extractor.name: [] for extractor in extractors}
        for extractor, file, text in self.iter_texts(files, extractors):
            found[extractor.name].extend(extractor.extract(file, text))
        return {name: dedupe(values) for name, values in found.items()}


__all__ = [
    "ContentExtractor",
    "FileReader",
    "MarkerContext",
    "MarkerRule",
    "ScanBudget",
    "dependency",
    "dependency_containing",
    "file_name_prefix",
    "file_name_suffix",
    "file_named",
    "first_match",
    "path_prefix",
    "root_file",
    "suffix",
    "top_dir",
]
