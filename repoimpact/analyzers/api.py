"""Detector for API style, route signatures, controllers and services."""

from __future__ import annotations

import re
from typing import Iterable, Iterator, List, Optional, Tuple

from .base import Detector
from .strategies import (
    ContentExtractor,
    FileReader,
    MarkerContext,
    MarkerRule,
    dependency,
    file_named,
    first_match,
    suffix,
)
from .utils import dependency_names
from ..models import ApiFacts, FileMeta, RepoManifest

_VERBS = "get|post|put|delete|patch|options|head|all"

_CHAINED_CALL = re.compile(
    rf"\b(?:app|router|server|api|routes|fastify)\.(?P<verb>{_VERBS})\s*\(\s*(?P<quote>['\"`])(?P<path>[^'\"`]+)(?P=quote)",
    re.IGNORECASE,
)
_NEST_DECORATOR = re.compile(
    r"@(?P<verb>Get|Post|Put|Delete|Patch|Options|Head|All)\(\s*(?:(?P<quote>['\"`])(?P<path>[^'\"`]*)(?P=quote))?\s*\)"
)
_NEST_CONTROLLER = re.compile(r"@Controller\(\s*(?:(?P<quote>['\"`])(?P<path>[^'\"`]*)(?P=quote))?\s*\)")
_SPRING_SHORT = re.compile(
    r"@(?P<verb>Get|Post|Put|Delete|Patch)Mapping\s*\(\s*(?:(?:value|path)\s*=\s*)?(?P<quote>['\"])(?P<path>[^'\"]+)(?P=quote)"
)
_SPRING_CLASS = re.compile(
    r"@RequestMapping\s*\(\s*(?:(?:value|path)\s*=\s*)?(?P<quote>['\"])(?P<path>[^'\"]+)(?P=quote)[^)]*\)\s*(?:public\s+)?class"
)
_FLASK_ROUTE = re.compile(
    r"@(?P<router>\w+)\.route\(\s*(?P<quote>['\"])(?P<path>[^'\"]+)(?P=quote)(?:[^)]*?methods\s*=\s*[\[(](?P<methods>[^\])]*)[\])])?"
)
_OBJECT_METHOD_FIRST = re.compile(
    r"\bmethod\s*:\s*(?P<q1>['\"])(?P<verb>\w+)(?P=q1)[^{}]*?\b(?:url|path)\s*:\s*(?P<q2>['\"`])(?P<path>[^'\"`]+)(?P=q2)",
    re.IGNORECASE,
)
_OBJECT_PATH_FIRST = re.compile(
    r"\b(?:url|path)\s*:\s*(?P<q1>['\"`])(?P<path>[^'\"`]+)(?P=q1)[^{}]*?\bmethod\s*:\s*(?P<q2>['\"])(?P<verb>\w+)(?P=q2)",
    re.IGNORECASE,
)
_ROUTE_KEY = re.compile(r"\broute\s*:\s*(?P<quote>['\"`])(?P<path>[^'\"`]+)(?P=quote)")

_ROUTE_DIRS = {"routes", "api", "controllers", "endpoints", "server"}
_SOURCE_SUFFIXES = (
    ".js", ".jsx", ".ts", ".tsx", ".mjs", ".cjs", ".py", ".java", ".kt", ".go", ".rb", ".php",
)

API_TYPE_RULES = (
    MarkerRule("gRPC", suffix(".proto")),
    MarkerRule(
        "GraphQL",
        dependency(
            "graphql",
            "apollo-server",
            "apollo-server-express",
            "@apollo/server",
            "graphql-yoga",
            "type-graphql",
            "@nestjs/graphql",
            "graphene",
            "strawberry-graphql",
            "ariadne",
        ),
    ),
    MarkerRule("GraphQL", suffix(".graphql", ".gql")),
    MarkerRule("GraphQL", file_named("schema.gql")),
)


def normalize_path(path: str) -> str:
    """Return a route path with a single leading slash and no trailing slash."""
    result = path.strip()
    if not result.startswith("/"):
        result = "/" + result
    result = re.sub(r"/{2,}", "/", result)
    if len(result) > 1 and result.endswith("/"):
        result = result[:-1]
    return result


def join_paths(prefix: str, route: str) -> str:
    """Combine a controller-level prefix with a method-level path."""
    if not prefix:
        return normalize_path(route)
    if not route or route == "/":
        return normalize_path(prefix)
    return normalize_path(f"{normalize_path(prefix)}/{route}")


def _signature(verb: str, path: str) -> Optional[str]:
    if "*" in path:
        return None
    return f"{verb.upper()} {normalize_path(path)}"


def _iter_routes(text: str) -> Iterator[Tuple[str, str]]:
    for match in _CHAINED_CALL.finditer(text):
        yield match.group("verb"), match.group("path")

    controller = _NEST_CONTROLLER.search(text)
    prefix = (controller.group("path") or "") if controller else ""
    for match in _NEST_DECORATOR.finditer(text):
        yield match.group("verb"), join_paths(prefix, match.group("path") or "")

    spring_class = _SPRING_CLASS.search(text)
    spring_base = spring_class.group("path") if spring_class else ""
    for match in _SPRING_SHORT.finditer(text):
        yield match.group("verb"), join_paths(spring_base, match.group("path"))

    for match in _FLASK_ROUTE.finditer(text):
        methods = re.findall(r"['\"](\w+)['\"]", match.group("methods") or "") or ["GET"]
        for verb in methods:
            yield verb, match.group("path")

    for pattern in (_OBJECT_METHOD_FIRST, _OBJECT_PATH_FIRST):
        for match in pattern.finditer(text):
            yield match.group("verb"), match.group("path")

    for match in _ROUTE_KEY.finditer(text):
        yield "ALL", match.group("path")


def extract_routes(text: str) -> List[str]:
    """Return ``"METHOD /path"`` signatures matched in ``text``."""
    routes: List[str] = []
    for verb, path in _iter_routes(text):
        signature = _signature(verb, path)
        if signature:
            routes.append(signature)
    return routes


def is_route_file(file: FileMeta) -> bool:
    if file.suffix not in _SOURCE_SUFFIXES or file.role in {"test", "docs"}:
        return False
    if _ROUTE_DIRS.intersection(file.path.split("/")[:-1]):
        return True
    lowered = file.name.lower()
    return "route" in lowered or "controller" in lowered


def _routes_from(file: FileMeta, text: str) -> Iterable[str]:
    return extract_routes(text)


EXTRACTORS = (ContentExtractor("routes", _routes_from, where=is_route_file),)


class ApiDetector(Detector):
    """Collects route signatures from route files and classifies the API style."""

    name = "api"
    section = "api"

    def detect(self, manifest: RepoManifest, reader: FileReader) -> ApiFacts:
        found = reader.collect(manifest.files, EXTRACTORS)

        controllers: List[str] = []
        services: List[str] = []
        for file in manifest.files:
            if file.suffix not in _SOURCE_SUFFIXES or file.role in {"test", "docs"}:
                continue
            lowered = file.path.lower()
            if "controller" in lowered:
                controllers.append(file.name)
            if "service" in lowered.rsplit("/", 1)[-1]:
                services.append(file.name)

        context = MarkerContext.build(manifest, dependency_names(reader))
        return ApiFacts(
            type=first_match(API_TYPE_RULES, context) or "REST",
            routes=found["routes"],
            controllers=controllers,
            services=services,
        )

    def empty(self) -> ApiFacts:
        return ApiFacts()
