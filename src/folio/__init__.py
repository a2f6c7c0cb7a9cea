"""File-backed store for hierarchical writing projects.

Layout:
    workspace/
        projects.json                         # display order of projects
        projects/<id>/project.json            # title, stats, chapter tree
        projects/<id>/chapters/<cid>.md       # committed chapter text
        projects/<id>/autosave/<cid>.draft    # newer uncommitted text, if any
        projects/<id>/timeline/<cid>/<ts>.snapshot

Saving a chapter commits its text and appends a snapshot (at most 20 kept per
chapter); autosaving only refreshes the draft cache, which wins on load while
it is newer than the committed file.
"""

from folio.config import FolioConfig, init_config, load_config
from folio.models import ChapterView, Node, SnapshotInfo
from folio.project import Project, ProjectRecord
from folio.store import ProjectStore
from folio.tree import NodeTree
from folio.workspace import Workspace

__all__ = [
    "ChapterView",
    "FolioConfig",
    "Node",
    "NodeTree",
    "Project",
    "ProjectRecord",
    "ProjectStore",
    "SnapshotInfo",
    "Workspace",
    "init_config",
    "load_config",
]
