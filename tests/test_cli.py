"""CLI parser and command behaviour tests."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
import yaml

from repoimpact.cli import _build_parser, main
from tests._fixtures.repo_builder import RepoBuilder


def test_cli_accepts_verbose_before_command() -> None:
    parser = _build_parser()
    args = parser.parse_args(["--verbose", "facts"])
    assert args.verbose is True
    assert args.command == "facts"
    assert args.path == "."


def test_cli_accepts_verbose_after_command() -> None:
    parser = _build_parser()
    args = parser.parse_args(["facts", "--verbose"])
    assert args.verbose is True
    assert args.command == "facts"


def test_cli_accepts_analyze_flags() -> None:
    parser = _build_parser()
    args = parser.parse_args(
        ["analyze", "repo", "--change", "Add SSO", "--compliance", "GDPR", "HIPAA", "--bounded"]
    )
    assert args.command == "analyze"
    assert args.path == "repo"
    assert args.change == "Add SSO"
    assert args.compliance == ["GDPR", "HIPAA"]
    assert args.bounded is True
    assert args.requirement is None


def test_cli_estimate_requires_components() -> None:
    parser = _build_parser()
    with pytest.raises(SystemExit):
        parser.parse_args(["estimate"])


def test_facts_command_prints_json(repo_builder: RepoBuilder, capsys: pytest.CaptureFixture[str]) -> None:
    repo_builder.write(
        {
            "package.json": json.dumps({"dependencies": {"express": "^4.18.0"}}),
            "routes/users.js": "router.get('/users', list);\n",
        }
    )

    main(["facts", str(repo_builder.path())])

    facts = json.loads(capsys.readouterr().out)
    assert facts["api"]["type"] == "REST"
    assert facts["dependencies"]["total"] == 1


def test_facts_command_rejects_missing_path(tmp_path: Path) -> None:
    with pytest.raises(SystemExit) as excinfo:
        main(["facts", str(tmp_path / "missing")])
    assert excinfo.value.code == 1


def test_analyze_command_runs_pipeline(repo_builder: RepoBuilder, capsys: pytest.CaptureFixture[str]) -> None:
    repo_builder.write({"main.py": "print('hello')\n"})

    main(["analyze", str(repo_builder.path()), "--change", "Introduce tenant isolation"])

    status = json.loads(capsys.readouterr().out)
    assert status["status"] == "complete"
    assert "SEC-001" in [risk["id"] for risk in status["impact"]["risks"]]
    assert (repo_builder.path() / status["artifacts"][0]).is_file()


def test_analyze_command_requires_change_text(repo_builder: RepoBuilder) -> None:
    repo_builder.write({"main.py": "print('hello')\n"})
    with pytest.raises(SystemExit) as excinfo:
        main(["analyze", str(repo_builder.path())])
    assert excinfo.value.code == 2


def test_estimate_command_scores_component_file(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    source = tmp_path / "components.yaml"
    source.write_text(
        yaml.safe_dump(
            {
                "components": [
                    {"component": "Orders Schema", "type": "database", "change": "modify", "confidence": "high"}
                ],
                "factors": {"integration_points": 0, "data_migration": True},
            }
        ),
        encoding="utf-8",
    )

    main(["estimate", "--components", str(source)])

    result = json.loads(capsys.readouterr().out)
    assert result["score"] == 16
    assert result["effort_bucket"] == "M"
    assert result["plan"]["duration"] == "3-6 weeks"


def test_estimate_command_rejects_non_list(tmp_path: Path) -> None:
    source = tmp_path / "components.yaml"
    source.write_text("just a string\n", encoding="utf-8")
    with pytest.raises(SystemExit) as excinfo:
        main(["estimate", "--components", str(source)])
    assert excinfo.value.code == 1


def test_estimate_command_rejects_unknown_component_type(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    source = tmp_path / "components.yaml"
    source.write_text(yaml.safe_dump([{"component": "Orders", "type": "databse"}]), encoding="utf-8")

    with pytest.raises(SystemExit) as excinfo:
        main(["estimate", "--components", str(source)])

    assert excinfo.value.code == 1
    assert "databse" in capsys.readouterr().err


def test_cli_accepts_log_file_after_command() -> None:
    parser = _build_parser()
    args = parser.parse_args(["estimate", "--components", "c.yaml", "--log-file", "out.log"])
    assert args.log_file == Path("out.log")
    assert parser.parse_args(["facts"]).log_file is None


def test_log_file_records_run_phases(repo_builder: RepoBuilder, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    repo_builder.write({"main.py": "print('hello')\n"})
    log_file = tmp_path / "logs" / "repoimpact.log"

    main(["--log-file", str(log_file), "analyze", str(repo_builder.path()), "--change", "Add a settings page"])

    run_id = json.loads(capsys.readouterr().out)["run_id"]
    text = log_file.read_text(encoding="utf-8")
    assert f"Run {run_id}: analyzing-facts" in text
    assert f"Run {run_id}: complete" in text
