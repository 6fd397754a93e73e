"""Dependency inventory detector."""

from __future__ import annotations

from .base import Detector
from .strategies import FileReader
from .utils import load_all_dependencies
from ..models import DependencyFacts, RepoManifest


class DependencyDetector(Detector):
    """Reads declared production and development dependencies from root manifests."""

    name = "dependencies"
    section = "dependencies"

    def detect(self, manifest: RepoManifest, reader: FileReader) -> DependencyFacts:
        production, development = load_all_dependencies(reader)
        return DependencyFacts(production=production, development=development)

    def empty(self) -> DependencyFacts:
        return DependencyFacts()
