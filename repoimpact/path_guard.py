"""Root-contained file access for detectors and artifact writers."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from .logging import get_logger

logger = get_logger("path_guard")


class PathOutsideRootError(ValueError):
    """Raised when a requested path resolves outside the guarded root."""


class PathGuard:
    """Resolves paths against a root and refuses anything that escapes it.

    Relative paths are joined to the root; absolute paths are accepted as long as
    they land inside it. Resolution follows symlinks, so a link pointing out of the
    tree is rejected the same way as a ``../`` traversal. All checks happen before
    any read or write is attempted.
    """

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root).expanduser().resolve()

    @property
    def root(self) -> Path:
        return self._root

    def resolve(self, path: str | Path) -> Path:
        candidate = Path(path).expanduser()
        if not candidate.is_absolute():
            candidate = self._root / candidate
        resolved = candidate.resolve()
        if resolved != self._root and not resolved.is_relative_to(self._root):
            raise PathOutsideRootError(f"Path {path} is outside of root directory {self._root}")
        return resolved

    def contains(self, path: str | Path) -> bool:
        try:
            self.resolve(path)
        except PathOutsideRootError:
            return False
        return True

    def relative(self, path: str | Path) -> str:
        return self.resolve(path).relative_to(self._root).as_posix()

    def exists(self, path: str | Path) -> bool:
        return self.resolve(path).exists()

    def read_bytes(self, path: str | Path, max_bytes: Optional[int] = None) -> bytes:
        target = self.resolve(path)
        if not target.is_file():
            raise FileNotFoundError(f"File not found: {path}")
        with target.open("rb") as handle:
            return handle.read() if max_bytes is None else handle.read(max_bytes)

    def read_text(self, path: str | Path, max_bytes: Optional[int] = None) -> str:
        return self.read_bytes(path, max_bytes=max_bytes).decode("utf-8")

    def write_text(self, path: str | Path, content: str) -> Path:
        target = self.resolve(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")
        logger.info("Wrote file: %s", self.relative(target))
        return target


__all__ = ["PathGuard", "PathOutsideRootError"]
