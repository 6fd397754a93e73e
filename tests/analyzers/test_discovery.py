"""Tests for detector discovery, failure isolation and fact assembly."""

from __future__ import annotations

import json
from types import SimpleNamespace

import pytest

from repoimpact.analyzers import (
    Detector,
    assemble_facts,
    collect_facts,
    discover_detectors,
    run_detector,
)
from repoimpact.analyzers.structure import StructureDetector
from repoimpact.models import ApiFacts
from tests._fixtures.repo_builder import RepoBuilder


class DummyDetector(Detector):
    """Test detector used for plugin discovery validation."""

    name = "dummy"
    section = "api"

    def detect(self, manifest, reader):
        return ApiFacts(type="SOAP")

    def empty(self):
        return ApiFacts()


class ExplodingDetector(Detector):
    name = "exploding"
    section = "api"

    def detect(self, manifest, reader):
        raise RuntimeError("boom")

    def empty(self):
        return ApiFacts()


class WrongSectionDetector(DummyDetector):
    section = "billing"


def test_discover_detectors_returns_builtin_detectors() -> None:
    detectors = discover_detectors()
    sections = [detector.section for detector in detectors]
    assert sections == ["structure", "database", "api", "frontend", "patterns", "dependencies"]


def test_discover_detectors_respects_enabled_filter() -> None:
    detectors = discover_detectors(["structure"])
    assert len(detectors) == 1
    assert isinstance(detectors[0], StructureDetector)


def _patch_entry_points(monkeypatch, *entries) -> None:
    class DummyEntryPoints(list):
        def select(self, **kwargs):
            if kwargs.get("group") == "repoimpact.detectors":
                return self
            return []

    monkeypatch.setattr(
        "repoimpact.analyzers.metadata.entry_points",
        lambda: DummyEntryPoints(entries),
    )


def test_discover_detectors_loads_entry_points(monkeypatch) -> None:
    _patch_entry_points(monkeypatch, SimpleNamespace(name="dummy", load=lambda: DummyDetector))

    detectors = discover_detectors(["dummy"])
    assert len(detectors) == 1
    assert isinstance(detectors[0], DummyDetector)


def test_discover_detectors_rejects_unknown_section(monkeypatch) -> None:
    _patch_entry_points(monkeypatch, SimpleNamespace(name="wrong", load=lambda: WrongSectionDetector))

    with pytest.raises(ValueError):
        discover_detectors(["wrong"])


def test_discover_detectors_raises_for_unknown_name() -> None:
    with pytest.raises(ValueError):
        discover_detectors(["does-not-exist"])


def test_failing_detector_contributes_empty_facts(repo_builder: RepoBuilder) -> None:
    repo_builder.write({"app.js": "console.log(1)\n"})
    manifest = repo_builder.scan()

    result = run_detector(ExplodingDetector(), manifest, repo_builder.reader())

    assert result == ApiFacts()


def test_sibling_detectors_survive_a_failure(repo_builder: RepoBuilder) -> None:
    repo_builder.write({"package.json": json.dumps({"dependencies": {"express": "4.0.0"}})})

    facts = collect_facts(repo_builder.path(), detectors=[StructureDetector(), ExplodingDetector()])

    assert facts.structure.type == "node"
    assert facts.structure.framework == "Express"
    assert facts.api == ApiFacts()


def test_assemble_facts_later_detectors_win() -> None:
    facts = assemble_facts(
        [(ExplodingDetector(), ApiFacts(type="REST")), (DummyDetector(), ApiFacts(type="SOAP"))],
        bounded=True,
    )
    assert facts.api.type == "SOAP"
    assert facts.bounded is True


def test_full_stack_repository_end_to_end(repo_builder: RepoBuilder) -> None:
    repo_builder.write(
        {
            "package.json": json.dumps(
                {"dependencies": {"react": "^18.2.0", "express": "^4.18.0", "@prisma/client": "^5.0.0"}}
            ),
            "prisma/schema.prisma": """
                model User {
                  id Int @id
                }

                model Post {
                  id Int @id
                }
            """,
            "routes/users.js": "router.get('/users', (req, res) => res.json([]));\n",
            "src/components/UserList.jsx": "export const UserList = () => null;\n",
        }
    )

    facts = collect_facts(repo_builder.path())

    assert facts.structure.type == "node"
    assert facts.structure.framework == "React"
    assert facts.database.type == "prisma"
    assert len(facts.database.tables) == 2
    assert facts.api.routes == ["GET /users"]
    assert facts.frontend.framework == "React"
    assert facts.frontend.components == ["UserList.jsx"]
    assert facts.dependencies.total == 3
    assert facts.bounded is False


def test_collect_facts_is_deterministic(repo_builder: RepoBuilder) -> None:
    repo_builder.write(
        {
            "package.json": json.dumps({"dependencies": {"express": "^4.18.0"}}),
            "routes/a.js": "router.get('/a', h);\nrouter.post('/b', h);\n",
            "routes/b.js": "router.delete('/c', h);\n",
            "db/schema.sql": "CREATE TABLE a (id int);\nCREATE TABLE b (id int);\n",
        }
    )

    first = collect_facts(repo_builder.path())
    second = collect_facts(repo_builder.path())

    assert first.to_dict() == second.to_dict()
