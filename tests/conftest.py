"""Shared test fixtures."""

from collections.abc import Callable
from pathlib import Path

import pytest

from folio.models import KIND_CHAPTER
from folio.store import ProjectStore
from folio.workspace import Workspace


@pytest.fixture
def workspace(tmp_path: Path) -> Workspace:
    """An empty workspace rooted in a temporary directory."""
    return Workspace(tmp_path / "workspace")


@pytest.fixture
def store(workspace: Workspace) -> ProjectStore:
    return ProjectStore(workspace)


@pytest.fixture
def add_node(store: ProjectStore) -> Callable[..., str]:
    """Create a node through the store and return its new ID."""

    def _add(
        project_id: str,
        title: str,
        *,
        parent_id: str | None = None,
        kind: str = KIND_CHAPTER,
    ) -> str:
        before = store.get_project(project_id)
        assert before is not None
        known = {n.id for n, _ in before.record.tree.walk()}
        project = store.create_node(project_id, title, parent_id=parent_id, kind=kind)
        assert project is not None
        (new_id,) = {n.id for n, _ in project.record.tree.walk()} - known
        return new_id

    return _add
