"""Workspace layout and low-level file helpers.

Layout (all under the workspace root):

    projects.json                                # {"order": [project_id, ...]}
    projects/<project_id>/
        project.json                             # metadata record
        chapters/<chapter_id>.md                 # committed content
        autosave/<chapter_id>.draft              # pending uncommitted content
        timeline/<chapter_id>/<version>.snapshot # immutable versions

A Workspace is passed explicitly to every component; nothing resolves a
per-user data directory on its own.
"""

from __future__ import annotations

import contextlib
import fcntl
import json
import shutil
from pathlib import Path
from typing import Any

_ORDER_FILENAME = "projects.json"
_PROJECTS_DIRNAME = "projects"
_META_FILENAME = "project.json"


class Workspace:
    """Path arithmetic for one workspace root."""

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root)

    def __repr__(self) -> str:
        return f"Workspace({str(self.root)!r})"

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    @property
    def order_path(self) -> Path:
        return self.root / _ORDER_FILENAME

    @property
    def projects_dir(self) -> Path:
        return self.root / _PROJECTS_DIRNAME

    def project_dir(self, project_id: str) -> Path:
        return self.projects_dir / project_id

    def meta_path(self, project_id: str) -> Path:
        return self.project_dir(project_id) / _META_FILENAME

    def chapter_path(self, project_id: str, chapter_id: str) -> Path:
        return self.project_dir(project_id) / "chapters" / f"{chapter_id}.md"

    def autosave_path(self, project_id: str, chapter_id: str) -> Path:
        return self.project_dir(project_id) / "autosave" / f"{chapter_id}.draft"

    def timeline_dir(self, project_id: str, chapter_id: str) -> Path:
        return self.project_dir(project_id) / "timeline" / chapter_id

    def ensure_project_dirs(self, project_id: str) -> Path:
        """Create the project directory with its three content subdirectories."""
        pdir = self.project_dir(project_id)
        for sub in ("chapters", "autosave", "timeline"):
            (pdir / sub).mkdir(parents=True, exist_ok=True)
        return pdir


# ----------------------------------------------------------------------
# File helpers
# ----------------------------------------------------------------------


def read_text_if_exists(path: Path) -> str:
    """File contents, or "" if the file is missing or unreadable."""
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        return ""


def write_text(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


def mtime_ns(path: Path) -> int:
    """Modification time in nanoseconds; 0 (the epoch) if absent."""
    try:
        return path.stat().st_mtime_ns
    except OSError:
        return 0


def remove_file(path: Path) -> None:
    """Best-effort unlink."""
    with contextlib.suppress(OSError):
        path.unlink(missing_ok=True)


def remove_tree(path: Path) -> None:
    """Best-effort recursive delete."""
    with contextlib.suppress(OSError):
        shutil.rmtree(path)


def read_json(path: Path) -> Any | None:
    """Parsed JSON, or None if the file is missing, unreadable or corrupt."""
    try:
        with path.open(encoding="utf-8") as f:
            fcntl.flock(f, fcntl.LOCK_SH)
            return json.load(f)
    except (json.JSONDecodeError, UnicodeDecodeError, OSError):
        return None


def write_json(path: Path, data: Any) -> None:
    """Write JSON via a temp file and rename, under an exclusive flock."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    with tmp.open("w", encoding="utf-8") as f:
        fcntl.flock(f, fcntl.LOCK_EX)
        json.dump(data, f, indent=2, ensure_ascii=False)
    tmp.replace(path)
