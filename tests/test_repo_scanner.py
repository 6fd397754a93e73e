"""Tests for repoimpact.repo_scanner."""

from __future__ import annotations

from pathlib import Path

import pytest

from repoimpact.repo_scanner import RepoScanner


def _write(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


def test_scan_builds_manifest_with_roles_and_language(tmp_path: Path) -> None:
    repo_root = tmp_path / "repo"
    repo_root.mkdir()

    _write(repo_root / "src" / "app.py", "print('hi')\n")
    _write(repo_root / "tests" / "test_app.py", "def test_ok():\n    assert True\n")
    _write(repo_root / "docs" / "overview.md", "# Overview\n")
    _write(repo_root / "config" / "settings.yaml", "debug: true\n")
    _write(repo_root / "infra" / "Dockerfile", "FROM python:3.11-slim\n")
    _write(repo_root / "web" / "Button.test.tsx", "it('renders', () => {})\n")
    _write(repo_root / ".venv" / "should_ignore.py", "print('nope')\n")
    _write(repo_root / "node_modules" / "left-pad" / "index.js", "module.exports = 1\n")

    manifest = RepoScanner().scan(str(repo_root))

    assert manifest.root == str(repo_root.resolve())
    assert manifest.truncated is False
    paths = {file.path: file for file in manifest.files}

    assert paths["src/app.py"].language == "Python"
    assert paths["src/app.py"].role == "src"
    assert paths["src/app.py"].size == len("print('hi')\n")
    assert paths["tests/test_app.py"].role == "test"
    assert paths["docs/overview.md"].role == "docs"
    assert paths["config/settings.yaml"].role == "config"
    assert paths["infra/Dockerfile"].role == "infra"
    assert paths["web/Button.test.tsx"].role == "test"
    assert paths["web/Button.test.tsx"].language == "TypeScript"

    assert ".venv/should_ignore.py" not in paths
    assert "node_modules/left-pad/index.js" not in paths


def test_scan_keeps_ci_directories_but_skips_other_hidden_dirs(tmp_path: Path) -> None:
    repo_root = tmp_path / "repo"
    _write(repo_root / ".github" / "workflows" / "ci.yml", "on: push\n")
    _write(repo_root / ".cache" / "blob.txt", "x\n")
    _write(repo_root / ".repoimpact" / "reports" / "old.md", "# old\n")

    paths = {file.path for file in RepoScanner().scan(repo_root).files}

    assert ".github/workflows/ci.yml" in paths
    assert ".cache/blob.txt" not in paths
    assert ".repoimpact/reports/old.md" not in paths


def test_scan_rejects_missing_directory(tmp_path: Path) -> None:
    missing = tmp_path / "missing"
    with pytest.raises(FileNotFoundError) as excinfo:
        RepoScanner().scan(str(missing))
    assert str(missing) in str(excinfo.value)


def test_scan_rejects_file_root(tmp_path: Path) -> None:
    target = tmp_path / "file.txt"
    target.write_text("x", encoding="utf-8")
    with pytest.raises(NotADirectoryError):
        RepoScanner().scan(target)


def test_scan_respects_gitignore(tmp_path: Path) -> None:
    repo_root = tmp_path / "repo"
    repo_root.mkdir()

    _write(repo_root / ".gitignore", "generated/\n*.log\n")
    _write(repo_root / "src" / "main.py", "print('ok')\n")
    _write(repo_root / "generated" / "artifact.txt", "binary data\n")
    _write(repo_root / "notes.log", "ignore me\n")

    paths = {file.path for file in RepoScanner().scan(str(repo_root)).files}

    assert "src/main.py" in paths
    assert "generated/artifact.txt" not in paths
    assert "notes.log" not in paths


def test_scan_respects_configured_and_explicit_excludes(tmp_path: Path) -> None:
    repo_root = tmp_path / "repo"
    _write(repo_root / ".repoimpact.yml", "analysis:\n  exclude_paths:\n    - fixtures/\n")
    _write(repo_root / "fixtures" / "big.sql", "CREATE TABLE junk (id int);\n")
    _write(repo_root / "sandbox" / "scratch.py", "x = 1\n")
    _write(repo_root / "app.py", "x = 2\n")

    paths = {file.path for file in RepoScanner(exclude_paths=["sandbox/"]).scan(repo_root).files}

    assert "app.py" in paths
    assert "fixtures/big.sql" not in paths
    assert "sandbox/scratch.py" not in paths


def test_scan_stops_at_depth_ceiling(tmp_path: Path) -> None:
    repo_root = tmp_path / "repo"
    _write(repo_root / "top.py", "x = 1\n")
    _write(repo_root / "src" / "a.py", "x = 1\n")
    _write(repo_root / "src" / "deep" / "b.py", "x = 1\n")

    manifest = RepoScanner().scan(repo_root, max_depth=1)
    paths = set(manifest.paths())

    assert paths == {"top.py", "src/a.py"}
    assert manifest.truncated is True


def test_scan_stops_at_file_ceiling(tmp_path: Path) -> None:
    repo_root = tmp_path / "repo"
    for name in ("a.py", "b.py", "c.py"):
        _write(repo_root / name, "x = 1\n")

    manifest = RepoScanner().scan(repo_root, max_files=2)

    assert manifest.paths() == ["a.py", "b.py"]
    assert manifest.truncated is True


def test_scan_is_deterministic(tmp_path: Path) -> None:
    repo_root = tmp_path / "repo"
    for relative in ("b/x.py", "a/y.py", "c.py", "a/z/w.ts"):
        _write(repo_root / relative, "pass\n")

    first = RepoScanner().scan(repo_root)
    second = RepoScanner().scan(repo_root)

    assert first.paths() == second.paths()
    assert first.fingerprint() == second.fingerprint()
