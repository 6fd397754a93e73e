"""Detector for frontend framework, components, pages, state and styling."""

from __future__ import annotations

from typing import Iterable, List, Optional

from .base import Detector
from .strategies import (
    ContentExtractor,
    FileReader,
    MarkerContext,
    MarkerRule,
    dependency,
    file_name_prefix,
    file_named,
    first_match,
    suffix,
)
from .utils import dependency_names
from ..models import FileMeta, FrontendFacts, RepoManifest

_COMPONENT_SUFFIXES = (".jsx", ".tsx", ".vue", ".svelte")
_PAGE_SUFFIXES = (".jsx", ".tsx", ".js", ".ts", ".vue", ".svelte")

FRAMEWORK_RULES = (
    MarkerRule("Next.js", dependency("next")),
    MarkerRule("Nuxt", dependency("nuxt")),
    MarkerRule("React", dependency("react")),
    MarkerRule("Vue", dependency("vue")),
    MarkerRule("Angular", dependency("@angular/core")),
    MarkerRule("Svelte", dependency("svelte", "@sveltejs/kit")),
    MarkerRule("Angular", file_named("angular.json")),
    MarkerRule("Vue", suffix(".vue")),
    MarkerRule("Svelte", suffix(".svelte")),
)

STATE_RULES = (
    MarkerRule("Redux", dependency("redux", "@reduxjs/toolkit", "react-redux")),
    MarkerRule("Zustand", dependency("zustand")),
    MarkerRule("MobX", dependency("mobx")),
    MarkerRule("Recoil", dependency("recoil")),
    MarkerRule("Jotai", dependency("jotai")),
    MarkerRule("Pinia", dependency("pinia")),
    MarkerRule("Vuex", dependency("vuex")),
    MarkerRule("NgRx", dependency("@ngrx/store")),
)

STYLING_RULES = (
    MarkerRule("Tailwind CSS", dependency("tailwindcss")),
    MarkerRule("Styled Components", dependency("styled-components")),
    MarkerRule("Emotion", dependency("@emotion/react", "@emotion/styled")),
    MarkerRule("SCSS", dependency("sass", "node-sass")),
    MarkerRule("SCSS", suffix(".scss", ".sass")),
    MarkerRule("Tailwind CSS", file_name_prefix("tailwind.config")),
    MarkerRule("CSS", suffix(".css")),
)

# Keyword scan of store files when no state dependency is declared.
_STATE_KEYWORDS = (
    ("redux", "Redux"),
    ("zustand", "Zustand"),
    ("mobx", "MobX"),
    ("recoil", "Recoil"),
)


def _is_store_file(file: FileMeta) -> bool:
    return "store" in file.name.lower() and file.suffix in (".js", ".jsx", ".ts", ".tsx")


def _state_libraries(file: FileMeta, text: str) -> Iterable[str]:
    lowered = text.lower()
    return [label for keyword, label in _STATE_KEYWORDS if keyword in lowered]


EXTRACTORS = (ContentExtractor("state", _state_libraries, where=_is_store_file),)


class FrontendDetector(Detector):
    """Summarizes the UI layer from layout conventions and declared libraries."""

    name = "frontend"
    section = "frontend"

    def detect(self, manifest: RepoManifest, reader: FileReader) -> FrontendFacts:
        context = MarkerContext.build(manifest, dependency_names(reader))
        files = [file for file in manifest.files if file.role not in {"test", "docs"}]

        state = first_match(STATE_RULES, context)
        if state is None:
            state = self._state_from_store_files(files, reader)

        return FrontendFacts(
            framework=first_match(FRAMEWORK_RULES, context),
            components=self._components(files),
            pages=self._pages(files),
            state=state,
            styling=first_match(STYLING_RULES, context),
        )

    def empty(self) -> FrontendFacts:
        return FrontendFacts()

    @staticmethod
    def _components(files: Iterable[FileMeta]) -> List[str]:
        components: List[str] = []
        for file in files:
            if file.suffix not in _COMPONENT_SUFFIXES:
                continue
            directories = file.path.split("/")[:-1]
            if "components" in directories or "component" in file.path.lower():
                components.append(file.name)
        return components

    @staticmethod
    def _pages(files: Iterable[FileMeta]) -> List[str]:
        pages: List[str] = []
        for file in files:
            if file.suffix not in _PAGE_SUFFIXES:
                continue
            parts = file.path.split("/")
            if parts[0] == "src":
                parts = parts[1:]
            if len(parts) > 1 and parts[0] == "pages":
                pages.append("/".join(parts[1:]))
            elif len(parts) > 1 and parts[0] == "app" and file.name.startswith("page."):
                pages.append("/".join(parts[1:]))
        return pages

    @staticmethod
    def _state_from_store_files(files: List[FileMeta], reader: FileReader) -> Optional[str]:
        found = reader.collect(files, EXTRACTORS)["state"]
        return found[0] if found else None
