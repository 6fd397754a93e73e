"""Repository walking and manifest building utilities."""

from __future__ import annotations

import os
from dataclasses import dataclass
from fnmatch import fnmatchcase
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Sequence, Tuple

from .config import ConfigError, load_config
from .logging import get_logger
from .models import FileMeta, RepoManifest

logger = get_logger("repo_scanner")

_EXCLUDED_DIRS = {
    ".git",
    ".hg",
    ".svn",
    ".venv",
    "venv",
    "env",
    "node_modules",
    "bower_components",
    "vendor",
    "__pycache__",
    ".pytest_cache",
    ".mypy_cache",
    ".tox",
    ".idea",
    ".vscode",
    ".next",
    ".nuxt",
    "dist",
    "build",
    "target",
    "out",
    "coverage",
    ".gradle",
    ".terraform",
    ".repoimpact",
}

# Hidden directories that still carry CI signals.
_ALLOWED_HIDDEN_DIRS = {".github", ".circleci", ".gitlab"}

_EXCLUDED_FILES = {
    ".DS_Store",
    "Thumbs.db",
}

_LANGUAGE_BY_SUFFIX = {
    ".py": "Python",
    ".pyi": "Python",
    ".js": "JavaScript",
    ".mjs": "JavaScript",
    ".cjs": "JavaScript",
    ".jsx": "JavaScript",
    ".ts": "TypeScript",
    ".tsx": "TypeScript",
    ".vue": "Vue",
    ".svelte": "Svelte",
    ".java": "Java",
    ".kt": "Kotlin",
    ".kts": "Kotlin",
    ".go": "Go",
    ".rs": "Rust",
    ".rb": "Ruby",
    ".php": "PHP",
    ".cs": "C#",
    ".scala": "Scala",
    ".swift": "Swift",
    ".sql": "SQL",
    ".prisma": "Prisma",
    ".graphql": "GraphQL",
    ".gql": "GraphQL",
    ".proto": "Protocol Buffers",
    ".css": "CSS",
    ".scss": "SCSS",
    ".sass": "SCSS",
    ".html": "HTML",
    ".sh": "Shell",
    ".yaml": "YAML",
    ".yml": "YAML",
    ".json": "JSON",
    ".toml": "TOML",
}

_ROLE_RULES: Tuple[Tuple[str, str], ...] = (
    ("tests", "test"),
    ("test", "test"),
    ("__tests__", "test"),
    ("spec", "test"),
    ("docs", "docs"),
    ("doc", "docs"),
    ("examples", "examples"),
    ("example", "examples"),
    ("config", "config"),
    ("infra", "infra"),
    ("deploy", "infra"),
    (".github", "infra"),
    (".circleci", "infra"),
    (".gitlab", "infra"),
)

_INFRA_FILES = {"Dockerfile", "docker-compose.yml", "docker-compose.yaml", "Jenkinsfile"}


@dataclass
class IgnoreRule:
    """Represents an ignore rule parsed from .gitignore or .repoimpact.yml."""

    pattern: str
    directory_only: bool
    anchored: bool
    negate: bool
    has_slash: bool

    def matches(self, rel_path: str, is_dir: bool) -> bool:
        if not self.pattern:
            return False
        if self.directory_only and not is_dir:
            return False

        if self.anchored or self.has_slash:
            if fnmatchcase(rel_path, self.pattern):
                return True
            return self.directory_only and rel_path.startswith(f"{self.pattern}/")

        return any(fnmatchcase(part, self.pattern) for part in rel_path.split("/"))


def _build_ignore_rule(pattern: str, negate: bool = False) -> Optional[IgnoreRule]:
    pattern = pattern.strip()
    if not pattern:
        return None

    directory_only = pattern.endswith("/")
    if directory_only:
        pattern = pattern[:-1]

    anchored = pattern.startswith("/")
    if anchored:
        pattern = pattern[1:]

    return IgnoreRule(
        pattern=pattern,
        directory_only=directory_only,
        anchored=anchored,
        negate=negate,
        has_slash="/" in pattern,
    )


def _parse_gitignore(path: Path) -> List[IgnoreRule]:
    if not path.is_file():
        return []

    rules: List[IgnoreRule] = []
    try:
        lines = path.read_text(encoding="utf-8").splitlines()
    except (OSError, UnicodeDecodeError) as exc:
        logger.warning("Skipping unreadable %s: %s", path.name, exc)
        return []
    for raw_line in lines:
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        negate = line.startswith("!")
        if negate:
            line = line[1:]
        rule = _build_ignore_rule(line, negate=negate)
        if rule is not None:
            rules.append(rule)
    return rules


def _config_excludes(root: Path) -> List[str]:
    try:
        config = load_config(root)
    except ConfigError as exc:
        logger.warning("Ignoring exclude_paths from invalid config: %s", exc)
        return []
    return list(config.analysis.exclude_paths)


def _should_ignore(rel_path: str, is_dir: bool, rules: Sequence[IgnoreRule]) -> bool:
    ignored = False
    for rule in rules:
        if rule.matches(rel_path, is_dir):
            ignored = not rule.negate
    return ignored


def _keep_dir(name: str) -> bool:
    if name in _EXCLUDED_DIRS:
        return False
    if name.startswith(".") and name not in _ALLOWED_HIDDEN_DIRS:
        return False
    return True


def _detect_language(path: Path) -> Optional[str]:
    return _LANGUAGE_BY_SUFFIX.get(path.suffix.lower())


def _detect_role(relative_path: str) -> str:
    parts = relative_path.split("/")
    for segment, role in _ROLE_RULES:
        if segment in parts[:-1]:
            return role
    name = parts[-1]
    if name in _INFRA_FILES:
        return "infra"
    if ".test." in name or ".spec." in name or name.startswith("test_"):
        return "test"
    if name.endswith((".md", ".rst")):
        return "docs"
    return "src"


class _Walk:
    """Single walk over a root honouring ignore rules and ceilings."""

    def __init__(
        self,
        root: Path,
        rules: Sequence[IgnoreRule],
        max_depth: Optional[int],
        max_files: Optional[int],
    ) -> None:
        self.root = root
        self.rules = rules
        self.max_depth = max_depth
        self.max_files = max_files
        self.truncated = False

    def __iter__(self) -> Iterator[Path]:
        emitted = 0
        for dirpath, dirnames, filenames in os.walk(self.root):
            current_dir = Path(dirpath)
            rel_dir = current_dir.relative_to(self.root).as_posix() if current_dir != self.root else ""
            depth = len(rel_dir.split("/")) if rel_dir else 0

            kept_dirs = []
            for name in sorted(dirnames):
                if not _keep_dir(name):
                    continue
                rel_path = f"{rel_dir}/{name}" if rel_dir else name
                if _should_ignore(rel_path, True, self.rules):
                    continue
                kept_dirs.append(name)
            if self.max_depth is not None and depth >= self.max_depth and kept_dirs:
                self.truncated = True
                kept_dirs = []
            dirnames[:] = kept_dirs

            for filename in sorted(filenames):
                if filename in _EXCLUDED_FILES:
                    continue
                rel_path = f"{rel_dir}/{filename}" if rel_dir else filename
                if _should_ignore(rel_path, False, self.rules):
                    continue
                if self.max_files is not None and emitted >= self.max_files:
                    self.truncated = True
                    return
                emitted += 1
                yield current_dir / filename


class RepoScanner:
    """Walks the repository to produce a normalized manifest."""

    def __init__(self, exclude_paths: Optional[Iterable[str]] = None) -> None:
        self._extra_excludes = list(exclude_paths or [])

    def scan(
        self,
        root: str | Path,
        *,
        max_depth: Optional[int] = None,
        max_files: Optional[int] = None,
    ) -> RepoManifest:
        """Return a manifest describing project files and roles."""
        root_path = Path(root).expanduser().resolve()
        if not root_path.exists():
            raise FileNotFoundError(f"Repository path not found: {root}")
        if not root_path.is_dir():
            raise NotADirectoryError(f"Repository path is not a directory: {root}")

        rules = _parse_gitignore(root_path / ".gitignore")
        for pattern in [*_config_excludes(root_path), *self._extra_excludes]:
            rule = _build_ignore_rule(pattern)
            if rule is not None:
                rules.append(rule)

        walk = _Walk(root_path, rules, max_depth, max_files)
        files: List[FileMeta] = []
        for path in walk:
            rel_path = path.relative_to(root_path).as_posix()
            try:
                stat_result = path.stat()
            except OSError as exc:
                logger.warning("Skipping %s: %s", rel_path, exc)
                continue
            files.append(
                FileMeta(
                    path=rel_path,
                    size=stat_result.st_size,
                    language=_detect_language(path),
                    role=_detect_role(rel_path),
                    mtime_ns=stat_result.st_mtime_ns,
                )
            )

        if walk.truncated:
            logger.info("Walk of %s stopped at a ceiling after %d files", root_path, len(files))
        logger.debug("Scanned %d files under %s", len(files), root_path)
        return RepoManifest(root=str(root_path), files=files, truncated=walk.truncated)


__all__ = ["IgnoreRule", "RepoScanner"]
