"""Project records: the persisted project.json shape and its materialized form.

project.json layout:
    {
      "id": "...", "title": "...", "description": "",
      "createdAt": 1700000000000, "updatedAt": 1700000000000,
      "stats": {"words": 0, "characters": 0},
      "chapters": [ {node...}, {"kind": "group", ..., "children": [...]} ],
      "notes": [],
      "progress": {"overall": 0, "checkpoints": []}
    }

migrate_record() is the only place that knows about older layouts. It is pure:
callers decide whether a changed record gets written back.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from folio.models import (
    DEFAULT_MOOD,
    DEFAULT_PACE,
    DEFAULT_STATUS,
    KIND_CHAPTER,
    KIND_GROUP,
    ChapterView,
    now_ms,
)
from folio.tree import NodeTree

_NODE_DEFAULTS: dict[str, Any] = {
    "title": "",
    "words": 0,
    "status": DEFAULT_STATUS,
    "pace": DEFAULT_PACE,
    "mood": DEFAULT_MOOD,
    "summary": "",
}


def migrate_record(
    raw: dict[str, Any],
    *,
    project_id: str,
    fallback_time: int,
) -> tuple[dict[str, Any], bool]:
    """Fill in fields missing from older project.json files.

    Returns (record, changed). The input dict is not modified. Raises
    TypeError or ValueError for records too malformed to repair.
    """
    record = dict(raw)
    changed = False

    def default(key: str, value: Any) -> None:
        nonlocal changed
        if key not in record or record[key] is None:
            record[key] = value
            changed = True

    default("id", project_id)
    default("title", "Untitled")
    default("description", "")
    default("createdAt", fallback_time)
    default("updatedAt", record["createdAt"])
    default("notes", [])

    stats = record.get("stats")
    if not isinstance(stats, dict):
        stats = {}
        changed = True
    if "words" not in stats or "characters" not in stats:
        stats = {"words": 0, "characters": 0, **stats}
        changed = True
    record["stats"] = stats

    progress = record.get("progress")
    if not isinstance(progress, dict):
        progress = {"overall": 0, "checkpoints": []}
        changed = True
    record["progress"] = progress

    chapters = record.get("chapters")
    if not isinstance(chapters, list):
        chapters = []
        changed = True
    node_time = int(record["updatedAt"])
    migrated: list[dict[str, Any]] = []
    for item in chapters:
        node, node_changed = _migrate_node(item, node_time)
        changed = changed or node_changed
        migrated.append(node)
    record["chapters"] = migrated

    return record, changed


def _migrate_node(raw: dict[str, Any], fallback_time: int) -> tuple[dict[str, Any], bool]:
    if not isinstance(raw, dict):
        msg = f"chapter entry must be an object, got {type(raw).__name__}"
        raise TypeError(msg)
    node = dict(raw)
    changed = False
    for key, value in _NODE_DEFAULTS.items():
        if key not in node:
            node[key] = value
            changed = True
    if "updatedAt" not in node or node["updatedAt"] is None:
        node["updatedAt"] = fallback_time
        changed = True
    if "kind" not in node:
        # Records predating groups were flat chapter lists.
        node["kind"] = KIND_GROUP if node.get("children") else KIND_CHAPTER
        changed = True
    # Materialized fields never belong in project.json.
    for key in ("draft", "autosaveTimestamp"):
        if key in node:
            del node[key]
            changed = True

    if node["kind"] == KIND_GROUP:
        children = node.get("children")
        if not isinstance(children, list):
            children = []
            changed = True
        migrated = []
        for child in children:
            child_node, child_changed = _migrate_node(child, fallback_time)
            changed = changed or child_changed
            migrated.append(child_node)
        node["children"] = migrated
    elif "children" in node:
        del node["children"]
        changed = True
    return node, changed


@dataclass
class ProjectRecord:
    """In-memory form of project.json."""

    id: str
    title: str
    description: str = ""
    created_at: int = 0
    updated_at: int = 0
    words: int = 0
    characters: int = 0
    tree: NodeTree = field(default_factory=NodeTree)
    notes: list[dict[str, Any]] = field(default_factory=list)
    progress: dict[str, Any] = field(default_factory=lambda: {"overall": 0, "checkpoints": []})

    @classmethod
    def new(cls, project_id: str, title: str, description: str = "") -> ProjectRecord:
        ts = now_ms()
        return cls(id=project_id, title=title, description=description, created_at=ts, updated_at=ts)

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> ProjectRecord:
        """Build from an already migrated dict."""
        stats = d.get("stats", {})
        return cls(
            id=d["id"],
            title=d.get("title", ""),
            description=d.get("description", ""),
            created_at=int(d.get("createdAt", 0)),
            updated_at=int(d.get("updatedAt", 0)),
            words=int(stats.get("words", 0)),
            characters=int(stats.get("characters", 0)),
            tree=NodeTree.from_dicts(d.get("chapters", [])),
            notes=list(d.get("notes", [])),
            progress=dict(d.get("progress", {})),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "stats": {"words": self.words, "characters": self.characters},
            "chapters": self.tree.to_dicts(),
            "notes": self.notes,
            "progress": self.progress,
        }

    def recompute(self) -> bool:
        """Roll group and project word counts up from the chapters.

        Returns True if anything changed.
        """
        changed = self.tree.recompute_aggregates()
        total = self.tree.total_words()
        if total != self.words:
            self.words = total
            changed = True
        return changed

    def touch(self) -> None:
        self.updated_at = now_ms()


@dataclass
class Project:
    """A fully materialized project, as returned from every store operation.

    `structure` is the tree with resolved drafts; `chapters` is the same set
    of chapter views flattened in document order.
    """

    record: ProjectRecord
    structure: list[ChapterView] = field(default_factory=list)

    @property
    def id(self) -> str:
        return self.record.id

    @property
    def title(self) -> str:
        return self.record.title

    @property
    def chapters(self) -> list[ChapterView]:
        out: list[ChapterView] = []
        stack = list(reversed(self.structure))
        while stack:
            view = stack.pop()
            if view.node.is_leaf:
                out.append(view)
            stack.extend(reversed(view.children))
        return out

    def find(self, node_id: str) -> ChapterView | None:
        stack = list(self.structure)
        while stack:
            view = stack.pop()
            if view.node.id == node_id:
                return view
            stack.extend(view.children)
        return None

    def to_dict(self) -> dict[str, Any]:
        d = self.record.to_dict()
        d["structure"] = [v.to_dict() for v in self.structure]
        d["chapters"] = [v.to_dict() for v in self.chapters]
        return d
