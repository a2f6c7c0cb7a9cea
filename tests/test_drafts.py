"""Tests for DraftReconciler: which text a chapter shows on load."""

import os
from pathlib import Path

from folio.drafts import DraftReconciler
from folio.models import KIND_GROUP, Node
from folio.tree import NodeTree
from folio.workspace import Workspace, write_text

_T0 = 1_700_000_000  # seconds


def _set_mtime(path: Path, seconds: int) -> None:
    os.utime(path, ns=(seconds * 1_000_000_000, seconds * 1_000_000_000))


def _setup(workspace: Workspace, committed: str | None, autosave: str | None) -> DraftReconciler:
    if committed is not None:
        write_text(workspace.chapter_path("p1", "c1"), committed)
    if autosave is not None:
        write_text(workspace.autosave_path("p1", "c1"), autosave)
    return DraftReconciler(workspace)


def test_committed_text_when_no_autosave(workspace: Workspace) -> None:
    drafts = _setup(workspace, "committed", None)

    view = drafts.materialize("p1", Node(id="c1", title="Ch1"))

    assert view.draft == "committed"
    assert view.autosave_timestamp is None


def test_newer_autosave_wins(workspace: Workspace) -> None:
    drafts = _setup(workspace, "committed", "typing...")
    _set_mtime(workspace.chapter_path("p1", "c1"), _T0)
    _set_mtime(workspace.autosave_path("p1", "c1"), _T0 + 5)

    view = drafts.materialize("p1", Node(id="c1", title="Ch1"))

    assert view.draft == "typing..."
    assert view.autosave_timestamp == (_T0 + 5) * 1000


def test_older_autosave_is_ignored(workspace: Workspace) -> None:
    drafts = _setup(workspace, "committed", "stale")
    _set_mtime(workspace.chapter_path("p1", "c1"), _T0 + 5)
    _set_mtime(workspace.autosave_path("p1", "c1"), _T0)

    view = drafts.materialize("p1", Node(id="c1", title="Ch1"))

    assert view.draft == "committed"
    assert view.autosave_timestamp is None


def test_equal_mtimes_prefer_committed(workspace: Workspace) -> None:
    drafts = _setup(workspace, "committed", "same moment")
    _set_mtime(workspace.chapter_path("p1", "c1"), _T0)
    _set_mtime(workspace.autosave_path("p1", "c1"), _T0)

    assert drafts.materialize("p1", Node(id="c1", title="Ch1")).draft == "committed"


def test_autosave_without_committed_file_wins(workspace: Workspace) -> None:
    drafts = _setup(workspace, None, "only draft")

    view = drafts.materialize("p1", Node(id="c1", title="Ch1"))

    assert view.draft == "only draft"
    assert view.autosave_timestamp is not None


def test_missing_both_gives_empty_draft(workspace: Workspace) -> None:
    view = DraftReconciler(workspace).materialize("p1", Node(id="c1", title="Ch1"))

    assert view.draft == ""
    assert view.autosave_timestamp is None


def test_write_pending_discard(workspace: Workspace) -> None:
    drafts = DraftReconciler(workspace)

    ts = drafts.write("p1", "c1", "draft text")

    assert ts > 0
    assert drafts.pending("p1", "c1")
    drafts.discard("p1", "c1")
    assert not drafts.pending("p1", "c1")
    drafts.discard("p1", "c1")


def test_materialize_tree_nests_groups(workspace: Workspace) -> None:
    drafts = _setup(workspace, "text", None)
    tree = NodeTree.from_dicts([
        {"id": "g1", "title": "Part I", "kind": KIND_GROUP, "children": [
            {"id": "c1", "title": "Ch1"},
        ]},
        {"id": "c2", "title": "Ch2"},
    ])

    views = drafts.materialize_tree("p1", tree)

    assert [v.node.id for v in views] == ["g1", "c2"]
    assert views[0].draft == ""
    assert [c.node.id for c in views[0].children] == ["c1"]
    assert views[0].children[0].draft == "text"
    assert views[1].draft == ""
