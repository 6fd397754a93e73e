"""Shared manifest loaders for detector implementations.

Every loader returns ``name -> version`` maps and treats a missing or malformed
manifest as contributing nothing.
"""

from __future__ import annotations

import json
import re
import tomllib
import xml.etree.ElementTree as ET
from typing import Any, Dict, Optional, Set, Tuple

from ..logging import get_logger
from .strategies import FileReader

logger = get_logger("analyzers.utils")

DependencyMaps = Tuple[Dict[str, str], Dict[str, str]]

_REQUIREMENT_SPLIT = re.compile(r"[<>=!~;\[\s@]")
_REQUIREMENT_VERSION = re.compile(r"([<>=!~]=?.*?)(?:;|$)")


# Node.js


def load_package_json(reader: FileReader) -> Dict[str, Any]:
    """Return the parsed package.json contents or an empty dict."""
    text = reader.read_text("package.json")
    if text is None:
        return {}
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        logger.warning("Ignoring malformed package.json: %s", exc)
        return {}
    return data if isinstance(data, dict) else {}


def load_node_dependencies(reader: FileReader) -> DependencyMaps:
    data = load_package_json(reader)

    def _extract(key: str) -> Dict[str, str]:
        deps = data.get(key, {})
        if isinstance(deps, dict):
            return {str(name): str(version) for name, version in deps.items()}
        return {}

    return _extract("dependencies"), _extract("devDependencies")


# Python


def load_python_dependencies(reader: FileReader) -> DependencyMaps:
    """Collect Python dependencies from requirements files and pyproject.toml."""
    production: Dict[str, str] = {}
    development: Dict[str, str] = {}

    production.update(_parse_requirements(reader.read_text("requirements.txt")))
    for name in ("requirements-dev.txt", "requirements_dev.txt", "requirements-test.txt"):
        development.update(_parse_requirements(reader.read_text(name)))

    text = reader.read_text("pyproject.toml")
    if text is not None:
        prod, dev = _parse_pyproject(text)
        production.update(prod)
        development.update(dev)
    return production, development


def _split_requirement(spec: str) -> Tuple[str, str]:
    name = _REQUIREMENT_SPLIT.split(spec, 1)[0].strip()
    rest = spec[len(name) :].strip()
    match = _REQUIREMENT_VERSION.search(rest)
    version = match.group(1).strip() if match else "*"
    return name, version or "*"


def _parse_requirements(text: Optional[str]) -> Dict[str, str]:
    packages: Dict[str, str] = {}
    if text is None:
        return packages
    for line in text.splitlines():
        stripped = line.split("#", 1)[0].strip()
        if not stripped or stripped.startswith("-"):
            continue
        name, version = _split_requirement(stripped)
        if name:
            packages[name] = version
    return packages


def _parse_pyproject(text: str) -> DependencyMaps:
    production: Dict[str, str] = {}
    development: Dict[str, str] = {}
    try:
        data = tomllib.loads(text)
    except tomllib.TOMLDecodeError as exc:
        logger.warning("Ignoring malformed pyproject.toml: %s", exc)
        return production, development

    project = data.get("project")
    if isinstance(project, dict):
        for dep in project.get("dependencies", []) or []:
            if isinstance(dep, str):
                name, version = _split_requirement(dep)
                if name:
                    production[name] = version
        optional = project.get("optional-dependencies", {}) or {}
        if isinstance(optional, dict):
            for values in optional.values():
                for dep in values or []:
                    if isinstance(dep, str):
                        name, version = _split_requirement(dep)
                        if name:
                            development[name] = version

    tool = data.get("tool")
    poetry = tool.get("poetry", {}) if isinstance(tool, dict) else {}
    if isinstance(poetry, dict):
        production.update(_poetry_table(poetry.get("dependencies")))
        development.update(_poetry_table(poetry.get("dev-dependencies")))
        groups = poetry.get("group", {})
        if isinstance(groups, dict):
            for group in groups.values():
                if isinstance(group, dict):
                    development.update(_poetry_table(group.get("dependencies")))
    return production, development


def _poetry_table(table: Any) -> Dict[str, str]:
    if not isinstance(table, dict):
        return {}
    packages: Dict[str, str] = {}
    for name, value in table.items():
        if str(name).lower() == "python":
            continue
        if isinstance(value, dict):
            value = value.get("version", "*")
        packages[str(name)] = str(value)
    return packages


# Java


def load_java_dependencies(reader: FileReader) -> Dict[str, str]:
    """Collect Java dependencies from pom.xml and Gradle build files."""
    deps: Dict[str, str] = {}
    pom = reader.read_text("pom.xml")
    if pom is not None:
        deps.update(_parse_pom_dependencies(pom))
    for name in ("build.gradle", "build.gradle.kts"):
        text = reader.read_text(name)
        if text is not None:
            deps.update(_parse_gradle_dependencies(text))
    return deps


def _parse_pom_dependencies(text: str) -> Dict[str, str]:
    deps: Dict[str, str] = {}
    try:
        root = ET.fromstring(text)
    except ET.ParseError as exc:
        logger.warning("Ignoring malformed pom.xml: %s", exc)
        return deps

    match = re.match(r"\{(.+)}", root.tag)
    prefix = f"{{{match.group(1)}}}" if match else ""
    for dep in root.iter(f"{prefix}dependency"):
        group = dep.findtext(f"{prefix}groupId", default="")
        artifact = dep.findtext(f"{prefix}artifactId", default="")
        version = dep.findtext(f"{prefix}version", default="") or "*"
        if group and artifact:
            deps[f"{group}:{artifact}"] = version
    return deps


_GRADLE_DEPENDENCY = re.compile(r"['\"]([\w\-.]+:[\w\-.]+)(?::([\w\-.]+))?['\"]")


def _parse_gradle_dependencies(content: str) -> Dict[str, str]:
    deps: Dict[str, str] = {}
    for line in content.splitlines():
        line = line.strip()
        if not line or line.startswith("//"):
            continue
        if any(token in line for token in ("implementation", "api", "compile", "runtimeOnly")):
            match = _GRADLE_DEPENDENCY.search(line)
            if match:
                deps[match.group(1)] = match.group(2) or "*"
    return deps


# Go


_GO_REQUIRE = re.compile(r"^\s*([\w.\-/]+)\s+(v[\w.\-+]+)")


def load_go_dependencies(reader: FileReader) -> Dict[str, str]:
    text = reader.read_text("go.mod")
    if text is None:
        return {}
    deps: Dict[str, str] = {}
    in_block = False
    for line in text.splitlines():
        stripped = line.strip()
        if stripped.startswith("require ("):
            in_block = True
            continue
        if in_block and stripped == ")":
            in_block = False
            continue
        if stripped.startswith("require "):
            stripped = stripped[len("require ") :]
        elif not in_block:
            continue
        match = _GO_REQUIRE.match(stripped)
        if match:
            deps[match.group(1)] = match.group(2)
    return deps


def load_all_dependencies(reader: FileReader) -> DependencyMaps:
    """Merge every supported ecosystem into production/development maps."""
    production: Dict[str, str] = {}
    development: Dict[str, str] = {}

    node_prod, node_dev = load_node_dependencies(reader)
    py_prod, py_dev = load_python_dependencies(reader)
    production.update(node_prod)
    production.update(py_prod)
    production.update(load_java_dependencies(reader))
    production.update(load_go_dependencies(reader))
    development.update(node_dev)
    development.update(py_dev)
    return production, development


def dependency_names(reader: FileReader) -> Set[str]:
    production, development = load_all_dependencies(reader)
    return {name.lower() for name in (*production, *development)}


__all__ = [
    "dependency_names",
    "load_all_dependencies",
    "load_go_dependencies",
    "load_java_dependencies",
    "load_node_dependencies",
    "load_package_json",
    "load_python_dependencies",
]
