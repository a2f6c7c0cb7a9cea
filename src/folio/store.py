"""ProjectStore: the operations callers use.

    store = ProjectStore("/path/to/workspace")
    project = store.create_project("Novel A")
    project = store.create_node(project.id, "Ch1")
    chapter_id = project.chapters[0].node.id
    project = store.save_chapter(project.id, chapter_id, "Hello")
    store.list_snapshots(project.id, chapter_id)

Every mutating operation returns the refreshed, fully materialized Project,
or None when the project (or the node addressed) no longer exists.

Writes are plain read-modify-write sequences: one writer per project is
assumed, two concurrent writers to the same project race and the last
project.json write wins.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from folio.drafts import DraftReconciler
from folio.metadata import MetadataStore
from folio.models import KIND_CHAPTER, Node, count_words, new_id, now_ms
from folio.ordering import ProjectOrder
from folio.project import Project, ProjectRecord
from folio.timeline import MAX_SNAPSHOTS, PREVIEW_CHARS, SnapshotTimeline, is_unchanged
from folio.workspace import Workspace, read_text_if_exists, remove_file, write_text

if TYPE_CHECKING:
    from collections.abc import Iterable
    from pathlib import Path

    from folio.config import FolioConfig
    from folio.models import SnapshotInfo

logger = logging.getLogger("folio.store")


def _require_title(title: str) -> str:
    cleaned = title.strip()
    if not cleaned:
        msg = "Title must not be empty"
        raise ValueError(msg)
    return cleaned


class ProjectStore:
    """File-backed projects, chapters, drafts and snapshots."""

    def __init__(
        self,
        workspace: Workspace | Path | str,
        *,
        max_snapshots: int = MAX_SNAPSHOTS,
        preview_chars: int = PREVIEW_CHARS,
    ) -> None:
        self.workspace = workspace if isinstance(workspace, Workspace) else Workspace(workspace)
        self.workspace.projects_dir.mkdir(parents=True, exist_ok=True)
        self.meta = MetadataStore(self.workspace)
        self.drafts = DraftReconciler(self.workspace)
        self.timeline = SnapshotTimeline(
            self.workspace, max_snapshots=max_snapshots, preview_chars=preview_chars,
        )
        self.order = ProjectOrder(self.workspace)

    @classmethod
    def from_config(cls, cfg: FolioConfig) -> ProjectStore:
        return cls(
            cfg.workspace,
            max_snapshots=cfg.timeline.max_snapshots,
            preview_chars=cfg.timeline.preview_chars,
        )

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _materialize(self, record: ProjectRecord) -> Project:
        return Project(record=record, structure=self.drafts.materialize_tree(record.id, record.tree))

    def _apply(self, record: ProjectRecord) -> None:
        """Recompute aggregates, bump updatedAt and persist after a mutation."""
        record.recompute()
        self.meta.touch(record)
        self.meta.persist(record)

    def _commit(self, record: ProjectRecord) -> Project:
        self._apply(record)
        return self._materialize(record)

    def _load_all(self) -> dict[str, ProjectRecord]:
        records: dict[str, ProjectRecord] = {}
        for pid in self.meta.list_ids():
            record = self.meta.load(pid)
            if record is not None:
                records[pid] = record
        return records

    @staticmethod
    def _chapter(record: ProjectRecord, chapter_id: str) -> Node | None:
        node = record.tree.get(chapter_id)
        return node if node is not None and node.is_leaf else None

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    def get_project(self, project_id: str) -> Project | None:
        record = self.meta.load(project_id)
        return self._materialize(record) if record is not None else None

    def list_projects(self) -> list[Project]:
        """All readable projects in display order (order file self-heals)."""
        records = self._load_all()
        order = self.order.normalize({pid: r.created_at for pid, r in records.items()})
        return [self._materialize(records[pid]) for pid in order]

    def create_project(self, title: str, description: str = "") -> Project:
        record = ProjectRecord.new(new_id(), _require_title(title), description)
        self.workspace.ensure_project_dirs(record.id)
        self.meta.persist(record)
        self.order.append(record.id)
        logger.info("created project %s (%s)", record.id, record.title)
        return self._materialize(record)

    def rename_project(self, project_id: str, title: str) -> Project | None:
        title = _require_title(title)
        record = self.meta.load(project_id)
        if record is None:
            return None
        record.title = title
        return self._commit(record)

    def update_description(self, project_id: str, description: str) -> Project | None:
        record = self.meta.load(project_id)
        if record is None:
            return None
        record.description = description
        return self._commit(record)

    def delete_project(self, project_id: str) -> bool:
        removed = self.meta.remove(project_id)
        self.order.discard(project_id)
        if removed:
            logger.info("deleted project %s", project_id)
        return removed

    def reorder_projects(self, order: Iterable[str]) -> list[Project]:
        records = self._load_all()
        new_order = self.order.reorder(order, {pid: r.created_at for pid, r in records.items()})
        return [self._materialize(records[pid]) for pid in new_order]

    # ------------------------------------------------------------------
    # Nodes
    # ------------------------------------------------------------------

    def create_node(
        self,
        project_id: str,
        title: str,
        *,
        parent_id: str | None = None,
        kind: str = KIND_CHAPTER,
        variant: str | None = None,
    ) -> Project | None:
        """Append a chapter or group under parent_id (or at the root level).

        None if the project is gone or parent_id is not an existing group.
        """
        node = Node(id=new_id(), title=_require_title(title), kind=kind,
                    variant=variant or None, updated_at=now_ms())
        record = self.meta.load(project_id)
        if record is None or not record.tree.insert(parent_id, node):
            return None
        if node.is_leaf:
            write_text(self.workspace.chapter_path(project_id, node.id), "")
        logger.info("created %s %s in %s", node.kind, node.id, project_id)
        return self._commit(record)

    def rename_node(self, project_id: str, node_id: str, title: str) -> Project | None:
        title = _require_title(title)
        record = self.meta.load(project_id)
        node = record.tree.get(node_id) if record is not None else None
        if record is None or node is None:
            return None
        node.title = title
        node.updated_at = now_ms()
        return self._commit(record)

    def update_node(
        self,
        project_id: str,
        node_id: str,
        *,
        status: str | None = None,
        pace: str | None = None,
        mood: str | None = None,
        summary: str | None = None,
        variant: str | None = None,
    ) -> Project | None:
        """Change free-form node metadata; arguments left as None are kept."""
        record = self.meta.load(project_id)
        node = record.tree.get(node_id) if record is not None else None
        if record is None or node is None:
            return None
        if status is not None:
            node.status = status
        if pace is not None:
            node.pace = pace
        if mood is not None:
            node.mood = mood
        if summary is not None:
            node.summary = summary
        if variant is not None:
            node.variant = variant or None
        node.updated_at = now_ms()
        return self._commit(record)

    def delete_node(self, project_id: str, node_id: str) -> Project | None:
        """Remove a node with all descendants, their content, drafts and timelines."""
        record = self.meta.load(project_id)
        if record is None:
            return None
        leaf_ids = record.tree.collect_leaf_ids(node_id)
        if record.tree.remove(node_id) is None:
            return None
        self._apply(record)

        for chapter_id in leaf_ids:
            remove_file(self.workspace.chapter_path(project_id, chapter_id))
            self.drafts.discard(project_id, chapter_id)
            self.timeline.purge(project_id, chapter_id)
        logger.info("deleted node %s from %s (%d chapters)", node_id, project_id, len(leaf_ids))
        return self._materialize(record)

    def move_node(
        self, project_id: str, node_id: str, target_parent_id: str | None = None,
    ) -> Project | None:
        """Reparent a node as the last child of target_parent_id.

        A move that would create a cycle, or targets a chapter, is a no-op and
        returns the unchanged project. None if the node or target is unknown.
        """
        record = self.meta.load(project_id)
        if record is None or node_id not in record.tree:
            return None
        if target_parent_id is not None and target_parent_id not in record.tree:
            return None
        if not record.tree.move(node_id, target_parent_id):
            return self._materialize(record)
        return self._commit(record)

    def reorder_nodes(
        self, project_id: str, order: Iterable[str], *, parent_id: str | None = None,
    ) -> Project | None:
        """Reorder the children of parent_id (root level if None).

        Stale or partial ID lists are tolerated; nothing is dropped.
        """
        record = self.meta.load(project_id)
        if record is None or not record.tree.reorder_siblings(parent_id, order):
            return None
        return self._commit(record)

    # ------------------------------------------------------------------
    # Content
    # ------------------------------------------------------------------

    def autosave_chapter(self, project_id: str, chapter_id: str, content: str) -> int | None:
        """Cache uncommitted content; returns the autosave timestamp.

        Does not touch the committed file and records no snapshot.
        """
        record = self.meta.load(project_id)
        node = self._chapter(record, chapter_id) if record is not None else None
        if record is None or node is None:
            return None
        timestamp = self.drafts.write(project_id, chapter_id, content)
        node.words = count_words(content)
        node.updated_at = now_ms()
        self._apply(record)
        return timestamp

    def save_chapter(self, project_id: str, chapter_id: str, content: str) -> Project | None:
        """Commit content: write the chapter file and record a snapshot.

        Content equal to what is committed (ignoring trailing whitespace) is a
        no-op apart from dropping a pending autosave, which the save supersedes.
        """
        record = self.meta.load(project_id)
        node = self._chapter(record, chapter_id) if record is not None else None
        if record is None or node is None:
            return None
        path = self.workspace.chapter_path(project_id, chapter_id)
        committed = read_text_if_exists(path)

        if is_unchanged(committed, content):
            logger.debug("save of %s/%s unchanged, skipped", project_id, chapter_id)
            if self.drafts.pending(project_id, chapter_id):
                self.drafts.discard(project_id, chapter_id)
                # The autosave may have left its own word count behind.
                if node.words != count_words(committed):
                    node.words = count_words(committed)
                    record.recompute()
                    self.meta.persist(record)
            return self._materialize(record)

        node.words = count_words(content)
        node.updated_at = now_ms()
        self._apply(record)
        write_text(path, content)
        self.timeline.record(project_id, chapter_id, content)
        self.drafts.discard(project_id, chapter_id)
        return self._materialize(record)

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    def _has_chapter(self, project_id: str, chapter_id: str) -> bool:
        record = self.meta.load(project_id)
        return record is not None and self._chapter(record, chapter_id) is not None

    def list_snapshots(self, project_id: str, chapter_id: str) -> list[SnapshotInfo]:
        if not self._has_chapter(project_id, chapter_id):
            return []
        return self.timeline.entries(project_id, chapter_id)

    def read_snapshot(self, project_id: str, chapter_id: str, timestamp: int) -> str | None:
        if not self._has_chapter(project_id, chapter_id):
            return None
        return self.timeline.read(project_id, chapter_id, timestamp)

    def delete_snapshot(self, project_id: str, chapter_id: str, timestamp: int) -> bool:
        if not self._has_chapter(project_id, chapter_id):
            return False
        return self.timeline.delete(project_id, chapter_id, timestamp)

    def restore_snapshot(self, project_id: str, chapter_id: str, timestamp: int) -> Project | None:
        """Commit a snapshot's content as the chapter's current text."""
        content = self.read_snapshot(project_id, chapter_id, timestamp)
        if content is None:
            return None
        return self.save_chapter(project_id, chapter_id, content)
