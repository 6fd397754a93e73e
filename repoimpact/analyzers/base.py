"""Base classes for detector plugins."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

from ..models import RepoManifest

if TYPE_CHECKING:
    from .strategies import FileReader


class Detector(ABC):
    """Contract for detectors that derive one section of the repository facts.

    ``section`` names the ``RepositoryFacts`` field the result is assigned to.
    Detectors treat missing files as absent signals and return empty facts
    rather than raising.
    """

    name: str = ""
    section: str = ""

    @abstractmethod
    def detect(self, manifest: RepoManifest, reader: "FileReader") -> Any:
        """Return the facts section for the repository described by ``manifest``."""

    @abstractmethod
    def empty(self) -> Any:
        """Return the facts section used when nothing could be detected."""
