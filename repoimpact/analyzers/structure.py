"""Detector for project type, framework, languages and layout."""

from __future__ import annotations

from typing import List

from .base import Detector
from .strategies import (
    FileReader,
    MarkerContext,
    MarkerRule,
    dependency,
    dependency_containing,
    first_match,
    root_file,
    suffix,
)
from .utils import dependency_names, load_package_json
from ..models import RepoManifest, StructureFacts

# Ordered by precedence for polyglot roots: a Java service with a package.json for
# tooling is still a Java project.
PROJECT_TYPE_RULES = (
    MarkerRule("java", root_file("pom.xml", "build.gradle", "build.gradle.kts")),
    MarkerRule("python", root_file("requirements.txt", "setup.py", "pyproject.toml", "Pipfile")),
    MarkerRule("node", root_file("package.json")),
    MarkerRule("go", root_file("go.mod")),
    MarkerRule("rust", root_file("Cargo.toml")),
    MarkerRule("ruby", root_file("Gemfile")),
    MarkerRule("php", root_file("composer.json")),
    MarkerRule("dotnet", suffix(".csproj", ".sln")),
)

FRAMEWORK_RULES = (
    MarkerRule("Next.js", dependency("next")),
    MarkerRule("React", dependency("react")),
    MarkerRule("Vue", dependency("vue")),
    MarkerRule("Express", dependency("express")),
    MarkerRule("Fastify", dependency("fastify")),
    MarkerRule("NestJS", dependency("@nestjs/core")),
    MarkerRule("Django", dependency("django")),
    MarkerRule("FastAPI", dependency("fastapi")),
    MarkerRule("Flask", dependency("flask")),
    MarkerRule("Spring Boot", dependency_containing("spring-boot")),
    MarkerRule("Rails", dependency("rails")),
    MarkerRule("Maven", root_file("pom.xml")),
    MarkerRule("Gradle", root_file("build.gradle", "build.gradle.kts")),
)

_MANIFEST_LANGUAGES = {
    "node": "JavaScript",
    "python": "Python",
    "java": "Java",
    "go": "Go",
    "rust": "Rust",
    "ruby": "Ruby",
    "php": "PHP",
    "dotnet": "C#",
}

_NON_PROGRAMMING = {"JSON", "YAML", "TOML", "HTML", "CSS", "SCSS", "SQL", "Prisma", "GraphQL", "Protocol Buffers"}

_ENTRY_FILES = (
    "index.js",
    "index.ts",
    "server.js",
    "server.ts",
    "app.js",
    "app.ts",
    "main.js",
    "main.ts",
    "src/index.js",
    "src/index.ts",
    "src/main.js",
    "src/main.ts",
    "src/server.js",
    "src/server.ts",
    "src/app.ts",
    "main.py",
    "app.py",
    "manage.py",
    "wsgi.py",
    "asgi.py",
    "main.go",
)


class StructureDetector(Detector):
    """Classifies the repository by its root manifests and top-level layout."""

    name = "structure"
    section = "structure"

    def detect(self, manifest: RepoManifest, reader: FileReader) -> StructureFacts:
        context = MarkerContext.build(manifest, dependency_names(reader))

        matches = [rule.label for rule in PROJECT_TYPE_RULES if rule.predicate(context)]
        project_type = matches[0] if matches else "unknown"

        languages: List[str] = [_MANIFEST_LANGUAGES[label] for label in matches]
        for file in manifest.files:
            if file.language and file.language not in _NON_PROGRAMMING and file.role != "docs":
                languages.append(file.language)

        return StructureFacts(
            type=project_type,
            framework=first_match(FRAMEWORK_RULES, context),
            languages=languages,
            directories=manifest.top_level_dirs(),
            entry_points=self._entry_points(manifest, reader),
        )

    def empty(self) -> StructureFacts:
        return StructureFacts()

    def _entry_points(self, manifest: RepoManifest, reader: FileReader) -> List[str]:
        paths = set(manifest.paths())
        entries: List[str] = []

        package = load_package_json(reader)
        main = package.get("main")
        if isinstance(main, str):
            entries.append(main.removeprefix("./"))
        bins = package.get("bin")
        if isinstance(bins, str):
            entries.append(bins.removeprefix("./"))
        elif isinstance(bins, dict):
            entries.extend(value.removeprefix("./") for value in bins.values() if isinstance(value, str))

        entries.extend(candidate for candidate in _ENTRY_FILES if candidate in paths)
        entries.extend(
            path
            for path in sorted(paths)
            if path.endswith("/__main__.py") or (path.startswith("cmd/") and path.endswith("/main.go"))
        )
        return entries
