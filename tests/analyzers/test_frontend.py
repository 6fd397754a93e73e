"""Tests for the frontend surface detector."""

from __future__ import annotations

import json

from repoimpact.analyzers.frontend import FrontendDetector
from tests._fixtures.repo_builder import RepoBuilder


def _detect(repo_builder: RepoBuilder):
    return FrontendDetector().detect(repo_builder.scan(), repo_builder.reader())


def test_next_app_with_pages_components_and_tailwind(repo_builder: RepoBuilder) -> None:
    repo_builder.write(
        {
            "package.json": json.dumps(
                {
                    "dependencies": {"next": "14.0.0", "react": "18.2.0", "zustand": "^4.0.0"},
                    "devDependencies": {"tailwindcss": "^3.4.0"},
                }
            ),
            "src/pages/index.tsx": "export default function Home() { return null }\n",
            "src/pages/users/[id].tsx": "export default function User() { return null }\n",
            "src/components/Button.tsx": "export const Button = () => null\n",
            "src/components/Button.test.tsx": "it('renders', () => {})\n",
            "app/settings/page.tsx": "export default function Settings() { return null }\n",
            "app/settings/layout.tsx": "export default function Layout() { return null }\n",
        }
    )

    facts = _detect(repo_builder)

    assert facts.framework == "Next.js"
    assert facts.components == ["Button.tsx"]
    assert facts.pages == ["settings/page.tsx", "index.tsx", "users/[id].tsx"]
    assert facts.state == "Zustand"
    assert facts.styling == "Tailwind CSS"


def test_vue_files_without_manifest(repo_builder: RepoBuilder) -> None:
    repo_builder.write(
        {
            "src/components/NavBar.vue": "<template><nav /></template>\n",
            "src/styles/main.scss": "nav { color: red; }\n",
        }
    )

    facts = _detect(repo_builder)

    assert facts.framework == "Vue"
    assert facts.components == ["NavBar.vue"]
    assert facts.styling == "SCSS"


def test_state_library_inferred_from_store_files(repo_builder: RepoBuilder) -> None:
    repo_builder.write(
        {
            "package.json": json.dumps({"dependencies": {"react": "18.2.0"}}),
            "src/store.ts": "import { configureStore } from '@reduxjs/toolkit-lite-redux';\n",
        }
    )

    facts = _detect(repo_builder)

    assert facts.framework == "React"
    assert facts.state == "Redux"


def test_backend_only_repository_has_no_frontend(repo_builder: RepoBuilder) -> None:
    repo_builder.write({"requirements.txt": "flask\n", "app.py": "app = None\n"})

    facts = _detect(repo_builder)

    assert facts.framework is None
    assert facts.components == []
    assert facts.pages == []
    assert facts.state is None
    assert facts.styling is None
