"""Load, normalize and persist project.json records."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from folio.models import is_safe_id, now_ms
from folio.project import ProjectRecord, migrate_record
from folio.workspace import mtime_ns, read_json, remove_tree, write_json

if TYPE_CHECKING:
    from folio.workspace import Workspace

logger = logging.getLogger("folio.metadata")


class MetadataStore:
    """project.json access for every project in a workspace."""

    def __init__(self, workspace: Workspace) -> None:
        self.workspace = workspace

    def list_ids(self) -> list[str]:
        """IDs of every project directory holding a project.json."""
        pdir = self.workspace.projects_dir
        if not pdir.is_dir():
            return []
        return sorted(
            d.name for d in pdir.iterdir()
            if d.is_dir() and self.workspace.meta_path(d.name).exists()
        )

    def load(self, project_id: str) -> ProjectRecord | None:
        """Read, migrate and recompute a record. None if missing or corrupt.

        A record that needed defaults or had stale aggregates is written back.
        """
        if not is_safe_id(project_id):
            return None
        path = self.workspace.meta_path(project_id)
        raw = read_json(path)
        if raw is None:
            if path.exists():
                logger.warning("unreadable project record: %s", path)
            return None
        if not isinstance(raw, dict):
            logger.warning("project record is not an object: %s", path)
            return None

        fallback = mtime_ns(path) // 1_000_000 or now_ms()
        try:
            migrated, changed = migrate_record(raw, project_id=project_id, fallback_time=fallback)
            record = ProjectRecord.from_dict(migrated)
            if record.id != project_id:
                msg = f"id {record.id!r} does not match its directory"
                raise ValueError(msg)
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning("invalid project record %s: %s", path, exc)
            return None

        if record.recompute() or changed:
            logger.debug("normalized project record %s", project_id)
            self.persist(record)
        return record

    def persist(self, record: ProjectRecord) -> None:
        write_json(self.workspace.meta_path(record.id), record.to_dict())

    @staticmethod
    def touch(record: ProjectRecord) -> None:
        """Bump updatedAt; called after every mutation."""
        record.touch()

    def remove(self, project_id: str) -> bool:
        """Delete the whole project directory. Returns False if it did not exist."""
        if not is_safe_id(project_id):
            return False
        pdir = self.workspace.project_dir(project_id)
        if not pdir.exists():
            return False
        remove_tree(pdir)
        return True
