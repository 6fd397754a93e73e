"""Detector for architecture style, testing, CI, containers and auth."""

from __future__ import annotations

from typing import Iterable, List, Optional

from .base import Detector
from .strategies import (
    ContentExtractor,
    FileReader,
    MarkerContext,
    MarkerRule,
    dependency,
    dependency_containing,
    file_name_prefix,
    file_named,
    first_match,
    path_prefix,
    root_file,
    top_dir,
)
from .utils import dependency_names
from ..models import FileMeta, PatternFacts, RepoManifest


def _monorepo(ctx: MarkerContext) -> bool:
    workspace_markers = {"pnpm-workspace.yaml", "lerna.json", "turbo.json", "nx.json"}
    if workspace_markers & ctx.paths:
        return True
    return sum(1 for path in ctx.paths if path.endswith("/package.json")) > 1


ARCHITECTURE_RULES = (
    MarkerRule("serverless", root_file("serverless.yml", "serverless.yaml", "serverless.ts")),
    MarkerRule("serverless", dependency("serverless", "@serverless/core", "zappa", "chalice")),
    MarkerRule("serverless", top_dir("lambda", "lambdas", "functions")),
    MarkerRule(
        "event-driven",
        dependency_containing("kafka", "rabbitmq", "amqp", "eventbridge", "pubsub", "nats"),
    ),
    MarkerRule("microservices", top_dir("services", "packages")),
    MarkerRule("microservices", _monorepo),
)

TESTING_RULES = (
    MarkerRule("Jest", dependency("jest", "ts-jest")),
    MarkerRule("Vitest", dependency("vitest")),
    MarkerRule("Mocha", dependency("mocha")),
    MarkerRule("Jasmine", dependency("jasmine", "karma")),
    MarkerRule("Pytest", dependency("pytest")),
    MarkerRule("JUnit", dependency_containing("junit")),
    MarkerRule("Jest", file_name_prefix("jest.config")),
    MarkerRule("Vitest", file_name_prefix("vitest.config")),
    MarkerRule("Mocha", file_name_prefix(".mocharc")),
    MarkerRule("Pytest", file_named("pytest.ini", "conftest.py")),
)

CI_RULES = (
    MarkerRule("GitHub Actions", path_prefix(".github/workflows/")),
    MarkerRule("GitLab CI", root_file(".gitlab-ci.yml", ".gitlab-ci.yaml")),
    MarkerRule("Jenkins", root_file("Jenkinsfile")),
    MarkerRule("CircleCI", path_prefix(".circleci/")),
    MarkerRule("Azure Pipelines", root_file("azure-pipelines.yml")),
    MarkerRule("Bitbucket Pipelines", root_file("bitbucket-pipelines.yml")),
    MarkerRule("Travis CI", root_file(".travis.yml")),
)

AUTH_RULES = (
    MarkerRule(
        "JWT",
        dependency(
            "jsonwebtoken", "jose", "@nestjs/jwt", "passport-jwt", "pyjwt", "python-jose",
            "djangorestframework-simplejwt", "flask-jwt-extended",
        ),
    ),
    MarkerRule("OAuth", dependency("oauth", "oauth2-server", "openid-client", "authlib", "next-auth", "@auth0/auth0-react")),
    MarkerRule("Passport", dependency("passport")),
)

_CONTAINER_FILES = {"Dockerfile", "docker-compose.yml", "docker-compose.yaml", "compose.yml", "compose.yaml"}
_AUTH_FILE_HINTS = ("auth", "login", "jwt", "oauth", "passport")
_SOURCE_SUFFIXES = (".js", ".jsx", ".ts", ".tsx", ".mjs", ".cjs", ".py", ".java", ".go", ".rb", ".php")

# Content keywords, checked in order, for files whose names suggest auth or tests.
_AUTH_KEYWORDS = (("jwt", "JWT"), ("oauth", "OAuth"), ("passport", "Passport"))
_TEST_KEYWORDS = (("vitest", "Vitest"), ("jest", "Jest"), ("mocha", "Mocha"), ("pytest", "Pytest"))


def _is_test_file(file: FileMeta) -> bool:
    name = file.name
    return file.suffix in _SOURCE_SUFFIXES and (
        ".test." in name or ".spec." in name or name.startswith("test_")
    )


def _is_auth_file(file: FileMeta) -> bool:
    lowered = file.path.lower()
    return file.suffix in _SOURCE_SUFFIXES and any(hint in lowered for hint in _AUTH_FILE_HINTS)


def _auth_scheme(file: FileMeta, text: str) -> Iterable[str]:
    lowered = text.lower()
    for keyword, label in _AUTH_KEYWORDS:
        if keyword in lowered:
            return [label]
    return ["Custom"]


def _test_framework(file: FileMeta, text: str) -> Iterable[str]:
    lowered = text.lower()
    return [label for keyword, label in _TEST_KEYWORDS if keyword in lowered][:1]


EXTRACTORS = (
    ContentExtractor("auth", _auth_scheme, where=_is_auth_file),
    ContentExtractor("testing", _test_framework, where=_is_test_file),
)


class PatternDetector(Detector):
    """Infers architecture style and delivery tooling from layout and dependencies."""

    name = "patterns"
    section = "patterns"

    def detect(self, manifest: RepoManifest, reader: FileReader) -> PatternFacts:
        context = MarkerContext.build(manifest, dependency_names(reader))

        testing = first_match(TESTING_RULES, context)
        authentication = first_match(AUTH_RULES, context)
        if testing is None or authentication is None:
            found = reader.collect(manifest.files, EXTRACTORS)
            testing = testing or _first(found["testing"])
            authentication = authentication or _pick_auth(found["auth"])

        return PatternFacts(
            architecture=first_match(ARCHITECTURE_RULES, context) or "monolithic",
            testing=testing,
            ci=first_match(CI_RULES, context),
            containerization=bool(_CONTAINER_FILES & context.names),
            authentication=authentication,
        )

    def empty(self) -> PatternFacts:
        return PatternFacts()


def _first(values: List[str]) -> Optional[str]:
    return values[0] if values else None


def _pick_auth(values: List[str]) -> Optional[str]:
    for _, label in _AUTH_KEYWORDS:
        if label in values:
            return label
    return "Custom" if values else None
