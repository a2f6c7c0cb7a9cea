"""Autosave cache and draft reconciliation.

An autosave file is authoritative only while it is strictly newer (by mtime)
than the committed chapter file. A commit deletes the autosave, so recovery
after a restart needs no explicit "resume draft" step.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from folio.models import ChapterView
from folio.workspace import mtime_ns, read_text_if_exists, remove_file, write_text

if TYPE_CHECKING:
    from folio.models import Node
    from folio.tree import NodeTree
    from folio.workspace import Workspace


class DraftReconciler:
    def __init__(self, workspace: Workspace) -> None:
        self.workspace = workspace

    def materialize(self, project_id: str, node: Node) -> ChapterView:
        """Resolve the text a chapter should show: autosave if newer, else committed."""
        committed = self.workspace.chapter_path(project_id, node.id)
        autosave = self.workspace.autosave_path(project_id, node.id)
        autosave_ns = mtime_ns(autosave)
        if autosave_ns > mtime_ns(committed):
            return ChapterView(
                node=node,
                draft=read_text_if_exists(autosave),
                autosave_timestamp=autosave_ns // 1_000_000,
            )
        return ChapterView(node=node, draft=read_text_if_exists(committed))

    def materialize_tree(self, project_id: str, tree: NodeTree) -> list[ChapterView]:
        """Views for the whole forest, chapters resolved, groups nested."""
        views: dict[str, ChapterView] = {}
        roots: list[ChapterView] = []
        for node, _ in tree.walk():
            view = self.materialize(project_id, node) if node.is_leaf else ChapterView(node=node)
            views[node.id] = view
            parent_id = tree.parent_id(node.id)
            (roots if parent_id is None else views[parent_id].children).append(view)
        return roots

    def write(self, project_id: str, chapter_id: str, content: str) -> int:
        """Store an autosave; returns its timestamp (file mtime, epoch ms)."""
        path = self.workspace.autosave_path(project_id, chapter_id)
        write_text(path, content)
        return mtime_ns(path) // 1_000_000

    def pending(self, project_id: str, chapter_id: str) -> bool:
        return self.workspace.autosave_path(project_id, chapter_id).exists()

    def discard(self, project_id: str, chapter_id: str) -> None:
        remove_file(self.workspace.autosave_path(project_id, chapter_id))
