"""Tests for markdown report composition."""

from __future__ import annotations

from pathlib import Path

import pytest

from repoimpact.composer import MarkdownReportComposer, render_report
from repoimpact.models import (
    DatabaseFacts,
    EffortBucket,
    EffortPlan,
    ImpactAnalysis,
    Level,
    RepositoryFacts,
    Risk,
    StructureFacts,
)
from repoimpact.path_guard import PathOutsideRootError


def _facts() -> RepositoryFacts:
    return RepositoryFacts(
        structure=StructureFacts(type="monolith", framework="Express", languages=["JavaScript"]),
        database=DatabaseFacts(type="prisma", tables=["User", "Account"]),
        bounded=True,
    )


def _impact() -> ImpactAnalysis:
    return ImpactAnalysis(
        dependencies=["Database Schema", "Migration Scripts"],
        risks=[
            Risk(
                id="DATA-001",
                category="Data",
                description="Data migration failures or corruption",
                likelihood=Level.MEDIUM,
                impact=Level.HIGH,
                mitigations=["Rollback procedures"],
            )
        ],
        effort_bucket=EffortBucket.M,
        test_areas=[],
        rollout_strategy="Staged rollout: Dev → Staging → Production",
        rollback_strategy="Feature flag disable (immediate)\nDatabase rollback scripts prepared",
        score=16.0,
        plan=EffortPlan(phases=["Design", "Implementation"], duration="3-6 weeks", resources="2-3 developers"),
    )


def test_render_report_without_impact_lists_facts_only() -> None:
    report = render_report(_facts(), None, "  Add tenants  ")

    assert report.startswith("# Impact Report\n\n> Add tenants\n\n## Repository\n")
    assert "- Framework: Express" in report
    assert "- Languages: JavaScript" in report
    assert "- Database: prisma (2 tables)" in report
    assert "- Frontend: none" in report
    assert "- Note: bounded scan, some files were not read" in report
    assert "## Risks" not in report
    assert report.endswith("\n")


def test_render_report_with_impact() -> None:
    report = render_report(_facts(), _impact())

    assert "## Effort: M (score 16)" in report
    assert "3-6 weeks, 2-3 developers." in report
    assert "1. Design\n2. Implementation" in report
    assert "- **DATA-001** Data: Data migration failures or corruption (likelihood medium, impact high)" in report
    assert "  - Rollback procedures" in report
    assert "## Test Areas\n\n- (none detected)" in report
    assert "- Database rollback scripts prepared" in report


def test_composer_writes_report_inside_repository(tmp_path: Path) -> None:
    composer = MarkdownReportComposer()

    artifacts = composer.compose("run1", str(tmp_path), _facts(), _impact(), "Split names")

    assert artifacts == [".repoimpact/reports/run1.md"]
    assert "> Split names" in (tmp_path / artifacts[0]).read_text(encoding="utf-8")


def test_composer_refuses_report_dir_outside_repository(tmp_path: Path) -> None:
    composer = MarkdownReportComposer(report_dir="../outside")
    with pytest.raises(PathOutsideRootError):
        composer.compose("run1", str(tmp_path / "repo"), _facts(), None)


def test_composer_prefers_custom_templates(tmp_path: Path) -> None:
    templates = tmp_path / "templates"
    templates.mkdir()
    (templates / "impact_report.md.j2").write_text("Custom {{ facts.structure.type }}\n", encoding="utf-8")
    repo = tmp_path / "repo"
    repo.mkdir()

    artifacts = MarkdownReportComposer(templates_dir=templates).compose("r", str(repo), _facts(), None)

    assert (repo / artifacts[0]).read_text(encoding="utf-8") == "Custom monolith\n"
