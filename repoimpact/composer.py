"""Artifact composition for completed analyses."""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional, Protocol

from jinja2 import Environment, FileSystemLoader

from .models import ImpactAnalysis, RepositoryFacts
from .path_guard import PathGuard

REPORT_DIR = ".repoimpact/reports"
REPORT_TEMPLATE = "impact_report.md.j2"
DEFAULT_TEMPLATES_DIR = Path(__file__).with_name("templates")


class ArtifactComposer(Protocol):
    """Turns a fact model and impact record into artifacts; returns their locations."""

    def compose(
        self,
        run_id: str,
        root: str,
        facts: RepositoryFacts,
        impact: Optional[ImpactAnalysis],
        change_text: str = "",
    ) -> List[str]:
        ...


def create_environment(templates_dir: Path | None = None) -> Environment:
    """Template environment searching ``templates_dir`` before the bundled templates."""
    directories: List[str] = []
    if templates_dir is not None:
        directories.append(str(templates_dir))
    if str(DEFAULT_TEMPLATES_DIR) not in directories:
        directories.append(str(DEFAULT_TEMPLATES_DIR))
    return Environment(
        loader=FileSystemLoader(directories),
        autoescape=False,
        trim_blocks=True,
        lstrip_blocks=True,
    )


def render_report(
    facts: RepositoryFacts,
    impact: Optional[ImpactAnalysis],
    change_text: str = "",
    *,
    env: Environment | None = None,
) -> str:
    template = (env or create_environment()).get_template(REPORT_TEMPLATE)
    rendered = template.render(facts=facts, impact=impact, change_text=change_text.strip())
    return rendered.strip() + "\n"


class MarkdownReportComposer:
    """Writes a markdown summary under ``.repoimpact/reports`` in the repository."""

    def __init__(self, report_dir: str = REPORT_DIR, templates_dir: Path | None = None) -> None:
        self.report_dir = report_dir
        self._env = create_environment(templates_dir)

    def compose(
        self,
        run_id: str,
        root: str,
        facts: RepositoryFacts,
        impact: Optional[ImpactAnalysis],
        change_text: str = "",
    ) -> List[str]:
        guard = PathGuard(root)
        report = render_report(facts, impact, change_text, env=self._env)
        target = guard.write_text(f"{self.report_dir}/{run_id}.md", report)
        return [guard.relative(target)]


__all__ = ["ArtifactComposer", "MarkdownReportComposer", "create_environment", "render_report"]
