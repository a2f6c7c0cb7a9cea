"""Per-chapter snapshot timeline.

Each committed save that changes a chapter's text writes
timeline/<chapter_id>/<version>.snapshot. Versions are epoch milliseconds,
forced strictly increasing so two saves inside one millisecond (or a clock
step backwards) never overwrite each other. Retention is FIFO: once more
than max_snapshots exist the lowest versions are deleted.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from folio.models import SnapshotInfo, count_words, make_preview, now_ms
from folio.workspace import read_text_if_exists, remove_file, remove_tree

if TYPE_CHECKING:
    from pathlib import Path

    from folio.workspace import Workspace

logger = logging.getLogger("folio.timeline")

MAX_SNAPSHOTS = 20
PREVIEW_CHARS = 200
_SUFFIX = ".snapshot"


def normalize_content(text: str) -> str:
    """Form used to decide whether a save changes anything."""
    return text.rstrip()


def is_unchanged(old: str, new: str) -> bool:
    return normalize_content(old) == normalize_content(new)


@dataclass(frozen=True, order=True)
class SnapshotVersion:
    """Monotonic snapshot identity; rendered as a timestamp only in file names."""

    value: int

    def __post_init__(self) -> None:
        if self.value < 0:
            msg = f"Snapshot version must be non-negative, got {self.value}"
            raise ValueError(msg)

    @property
    def filename(self) -> str:
        return f"{self.value}{_SUFFIX}"

    @classmethod
    def from_filename(cls, name: str) -> SnapshotVersion | None:
        if not name.endswith(_SUFFIX):
            return None
        stem = name[: -len(_SUFFIX)]
        if not stem.isdigit():
            return None
        return cls(int(stem))

    @classmethod
    def next_after(cls, latest: SnapshotVersion | None, now: int) -> SnapshotVersion:
        if latest is not None and now <= latest.value:
            return cls(latest.value + 1)
        return cls(now)


class SnapshotTimeline:
    """Snapshot files for the chapters of a workspace."""

    def __init__(
        self,
        workspace: Workspace,
        *,
        max_snapshots: int = MAX_SNAPSHOTS,
        preview_chars: int = PREVIEW_CHARS,
    ) -> None:
        self.workspace = workspace
        self.max_snapshots = max_snapshots
        self.preview_chars = preview_chars

    def versions(self, project_id: str, chapter_id: str) -> list[SnapshotVersion]:
        """Existing versions, oldest first."""
        tdir = self.workspace.timeline_dir(project_id, chapter_id)
        if not tdir.is_dir():
            return []
        found = (SnapshotVersion.from_filename(p.name) for p in tdir.iterdir())
        return sorted(v for v in found if v is not None)

    def record(self, project_id: str, chapter_id: str, content: str) -> SnapshotVersion:
        """Write a new snapshot and evict beyond the retention cap."""
        tdir = self.workspace.timeline_dir(project_id, chapter_id)
        tdir.mkdir(parents=True, exist_ok=True)
        existing = self.versions(project_id, chapter_id)
        version = SnapshotVersion.next_after(existing[-1] if existing else None, now_ms())
        (tdir / version.filename).write_text(content, encoding="utf-8")
        logger.info("snapshot %s recorded for %s/%s", version.value, project_id, chapter_id)
        self._evict([*existing, version], project_id, chapter_id)
        return version

    def _evict(self, versions: list[SnapshotVersion], project_id: str, chapter_id: str) -> None:
        tdir = self.workspace.timeline_dir(project_id, chapter_id)
        excess = len(versions) - self.max_snapshots
        for version in versions[: max(0, excess)]:
            logger.debug("evicting snapshot %s of %s/%s", version.value, project_id, chapter_id)
            remove_file(tdir / version.filename)

    def entries(self, project_id: str, chapter_id: str) -> list[SnapshotInfo]:
        """Summaries of every snapshot, newest first."""
        tdir = self.workspace.timeline_dir(project_id, chapter_id)
        out: list[SnapshotInfo] = []
        for version in reversed(self.versions(project_id, chapter_id)):
            text = read_text_if_exists(tdir / version.filename)
            out.append(SnapshotInfo(
                timestamp=version.value,
                words=count_words(text),
                preview=make_preview(text, self.preview_chars),
            ))
        return out

    def _path_for(self, project_id: str, chapter_id: str, timestamp: int) -> Path | None:
        if timestamp < 0:
            return None
        return self.workspace.timeline_dir(project_id, chapter_id) / SnapshotVersion(timestamp).filename

    def read(self, project_id: str, chapter_id: str, timestamp: int) -> str | None:
        path = self._path_for(project_id, chapter_id, timestamp)
        if path is None or not path.is_file():
            return None
        try:
            return path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError):
            return None

    def delete(self, project_id: str, chapter_id: str, timestamp: int) -> bool:
        """Remove one snapshot. Never touches the committed chapter file."""
        path = self._path_for(project_id, chapter_id, timestamp)
        if path is None or not path.is_file():
            return False
        remove_file(path)
        return not path.exists()

    def purge(self, project_id: str, chapter_id: str) -> None:
        """Drop the chapter's whole timeline directory."""
        remove_tree(self.workspace.timeline_dir(project_id, chapter_id))
