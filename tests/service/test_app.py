"""Tests for the FastAPI service mode."""

from __future__ import annotations

import json
import time
from pathlib import Path
from typing import Any, Dict, Iterator

import pytest
from fastapi.testclient import TestClient

from repoimpact import __version__
from repoimpact.orchestrator import Orchestrator
from repoimpact.service.app import create_app
from tests._fixtures.repo_builder import RepoBuilder


@pytest.fixture
def client() -> Iterator[TestClient]:
    app = create_app(Orchestrator)
    # The context manager keeps one event loop alive so scheduled runs progress between requests.
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def repo(repo_builder: RepoBuilder) -> Path:
    repo_builder.write(
        {
            "package.json": json.dumps({"dependencies": {"react": "^18.2.0", "express": "^4.18.0"}}),
            "src/App.jsx": "export default function App() { return null; }\n",
        }
    )
    return repo_builder.path()


def _wait_for_run(client: TestClient, status_url: str, timeout: float = 10.0) -> Dict[str, Any]:
    deadline = time.monotonic() + timeout
    while True:
        payload = client.get(status_url).json()
        if payload["status"] != "in_progress" or time.monotonic() > deadline:
            return payload
        time.sleep(0.05)


def test_health_endpoint(client: TestClient) -> None:
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "version": __version__}


def test_facts_endpoint(client: TestClient, repo: Path) -> None:
    response = client.post("/facts", json={"path": str(repo)})
    assert response.status_code == 200
    data = response.json()
    assert data["frontend"]["framework"] == "React"
    assert data["dependencies"]["total"] == 2


def test_facts_endpoint_missing_repository(client: TestClient, tmp_path: Path) -> None:
    response = client.post("/facts", json={"path": str(tmp_path / "missing")})
    assert response.status_code == 404
    assert "not found" in response.json()["detail"]


def test_analyze_endpoint_runs_in_background(client: TestClient, repo: Path) -> None:
    response = client.post(
        "/analyze",
        json={"path": str(repo), "change": "Add tenant support to the dashboard", "compliance": ["GDPR"]},
    )
    assert response.status_code == 202
    body = response.json()
    assert body["status_url"] == f"/runs/{body['run_id']}"

    status = _wait_for_run(client, body["status_url"])
    assert status["status"] == "complete"
    assert status["progress"] == "3/3"
    risk_ids = [risk["id"] for risk in status["impact"]["risks"]]
    assert "SEC-001" in risk_ids
    assert "COMP-001" in risk_ids
    assert (repo / status["artifacts"][0]).is_file()


def test_analyze_endpoint_missing_repository(client: TestClient, tmp_path: Path) -> None:
    response = client.post("/analyze", json={"path": str(tmp_path / "missing"), "change": "x"})
    assert response.status_code == 404


def test_unknown_run_is_not_found(client: TestClient) -> None:
    response = client.get("/runs/does-not-exist")
    assert response.status_code == 404
    assert response.json() == {"run_id": "does-not-exist", "status": "not_found"}


def test_estimate_endpoint(client: TestClient) -> None:
    response = client.post(
        "/estimate",
        json={
            "components": [
                {"component": "Orders Schema", "type": "database", "change": "modify", "confidence": "high"}
            ],
            "factors": {"integration_points": 0, "data_migration": True},
        },
    )
    assert response.status_code == 200
    data = response.json()
    assert data["score"] == 16
    assert data["effort_bucket"] == "M"
    assert "Proof of Concept" in data["plan"]["phases"]


def test_estimate_endpoint_custom_thresholds(client: TestClient) -> None:
    response = client.post(
        "/estimate",
        json={
            "components": [{"component": "Orders Schema", "type": "database", "change": "modify"}],
            "thresholds": {"s": 5, "m": 6, "l": 7},
        },
    )
    assert response.status_code == 200
    assert response.json()["effort_bucket"] == "XL"


def test_estimate_endpoint_rejects_unordered_thresholds(client: TestClient) -> None:
    response = client.post(
        "/estimate",
        json={"components": [], "thresholds": {"s": 30, "m": 20, "l": 50}},
    )
    assert response.status_code == 400
    assert "strictly increasing" in response.json()["detail"]


def test_estimate_endpoint_rejects_unknown_component_type(client: TestClient) -> None:
    response = client.post(
        "/estimate",
        json={"components": [{"component": "Orders Schema", "type": "databse", "change": "modify"}]},
    )
    assert response.status_code == 400
    assert "databse" in response.json()["detail"]
