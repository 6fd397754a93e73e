"""Tests for component synthesis from change text."""

from __future__ import annotations

from repoimpact.impact.components import ComponentSynthesizer, search_terms
from repoimpact.models import (
    ChangeKind,
    ComponentType,
    Confidence,
    DatabaseFacts,
    RepositoryFacts,
)
from tests._fixtures.repo_builder import RepoBuilder


def _names(components) -> list[str]:
    return [component.component for component in components]


def test_tenant_change_maps_to_tenant_components() -> None:
    components = ComponentSynthesizer().synthesize("Introduce tenant isolation")

    assert _names(components) == [
        "Authentication Service",
        "Database Schema",
        "API Gateway",
        "Configuration Service",
    ]
    config_service = components[-1]
    assert config_service.change is ChangeKind.CREATE
    assert config_service.type is ComponentType.SERVICE


def test_keywords_select_components_without_duplicates() -> None:
    components = ComponentSynthesizer().synthesize(
        "Add a column to the orders table, expose it through a new API endpoint and show it on the dashboard"
    )

    assert _names(components) == ["Database Schema", "API Layer", "Frontend Application"]
    assert components[2].type is ComponentType.LIBRARY


def test_overlapping_rules_keep_first_component() -> None:
    components = ComponentSynthesizer().synthesize("Tenant aware database schema")

    assert _names(components).count("Database Schema") == 1
    assert len(components) == 4


def test_database_components_point_at_migrations() -> None:
    facts = RepositoryFacts(
        database=DatabaseFacts(migrations=[f"migrations/{index:03d}.sql" for index in range(8)])
    )

    components = ComponentSynthesizer().synthesize("Add a migration for invoices", facts=facts)

    assert components[0].component == "Database Schema"
    assert components[0].file_paths == [f"migrations/{index:03d}.sql" for index in range(5)]


def test_unmatched_text_yields_no_components() -> None:
    assert ComponentSynthesizer().synthesize("Polish wording") == []


def test_search_terms_drop_short_and_common_words() -> None:
    assert search_terms("Update the Invoice rendering for users with PDF") == ["invoice", "rendering"]


def test_symbol_search_finds_matching_definitions(repo_builder: RepoBuilder) -> None:
    repo_builder.write(
        {
            "src/billing/invoice.py": """
                class InvoiceRenderer:
                    pass

                def render_invoice(invoice):
                    return InvoiceRenderer()
            """,
            "src/billing/tax.py": "def compute_tax(amount):\n    return amount\n",
            "tests/test_invoice.py": "class InvoiceTests:\n    pass\n",
        }
    )

    components = ComponentSynthesizer().synthesize(
        "Refactor invoice rendering", manifest=repo_builder.scan(), reader=repo_builder.reader()
    )

    assert _names(components) == ["InvoiceRenderer", "render_invoice"]
    first = components[0]
    assert first.type is ComponentType.LIBRARY
    assert first.confidence is Confidence.LOW
    assert first.file_paths == ["src/billing/invoice.py"]
    assert first.description == "Potential impact on class InvoiceRenderer"


def test_symbol_search_is_capped(repo_builder: RepoBuilder) -> None:
    repo_builder.write(
        {"src/reports.py": "".join(f"def report_{index}():\n    pass\n" for index in range(20))}
    )

    components = ComponentSynthesizer(max_symbol_components=3).synthesize(
        "Speed up report exports", manifest=repo_builder.scan(), reader=repo_builder.reader()
    )

    assert _names(components) == ["report_0", "report_1", "report_2"]
