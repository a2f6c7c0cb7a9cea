"""Data models for the project store."""

from __future__ import annotations

import re
import time
import uuid
from dataclasses import dataclass, field
from typing import Any

KIND_CHAPTER = "chapter"   # leaf: holds editable text
KIND_GROUP = "group"       # container: ordered children, no content
NODE_KINDS = (KIND_CHAPTER, KIND_GROUP)

STATUSES = ("outline", "draft", "final")
PACES = ("slow burn", "balanced", "fast")

DEFAULT_STATUS = "outline"
DEFAULT_PACE = "balanced"
DEFAULT_MOOD = "unset"

# Project and node IDs double as file and directory names.
_SAFE_ID_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_\-]*$")


def is_safe_id(value: str) -> bool:
    return isinstance(value, str) and bool(_SAFE_ID_RE.match(value))


def new_id() -> str:
    """Generate a random identity for a project or node."""
    return str(uuid.uuid4())


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return time.time_ns() // 1_000_000


def count_words(text: str) -> int:
    """Word count used throughout the store.

    Counts Unicode code points, so CJK prose (no spaces between words)
    gets a meaningful figure.
    """
    return len(text)


@dataclass
class Node:
    """A chapter or group as persisted in project.json (without children).

    Children live in the owning NodeTree, not on the node itself.
    """

    id: str
    title: str
    kind: str = KIND_CHAPTER
    variant: str | None = None        # optional sub-category label
    words: int = 0                    # authoritative for chapters, derived for groups
    status: str = DEFAULT_STATUS
    pace: str = DEFAULT_PACE
    mood: str = DEFAULT_MOOD
    summary: str = ""
    updated_at: int = 0

    def __post_init__(self) -> None:
        if not is_safe_id(self.id):
            msg = f"Unsafe node id: {self.id!r}"
            raise ValueError(msg)
        if self.kind not in NODE_KINDS:
            msg = f"Unknown node kind: {self.kind!r}"
            raise ValueError(msg)

    @property
    def is_leaf(self) -> bool:
        return self.kind == KIND_CHAPTER

    @property
    def is_group(self) -> bool:
        return self.kind == KIND_GROUP

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Node:
        return cls(
            id=d["id"],
            title=d.get("title", ""),
            kind=d.get("kind", KIND_CHAPTER),
            variant=d.get("variant") or None,
            words=int(d.get("words", 0)),
            status=d.get("status", DEFAULT_STATUS),
            pace=d.get("pace", DEFAULT_PACE),
            mood=d.get("mood", DEFAULT_MOOD),
            summary=d.get("summary", ""),
            updated_at=int(d.get("updatedAt", 0)),
        )

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "kind": self.kind,
            "words": self.words,
            "status": self.status,
            "pace": self.pace,
            "mood": self.mood,
            "summary": self.summary,
            "updatedAt": self.updated_at,
        }
        if self.variant:
            d["variant"] = self.variant
        return d


@dataclass
class ChapterView:
    """A node as handed to callers: metadata plus resolved content.

    `draft` is the authoritative text for chapters (committed or autosaved,
    see DraftReconciler); groups carry an empty draft and their children.
    """

    node: Node
    draft: str = ""
    autosave_timestamp: int | None = None   # set only while a newer draft is pending
    children: list[ChapterView] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        d = self.node.to_dict()
        d["draft"] = self.draft
        if self.autosave_timestamp is not None:
            d["autosaveTimestamp"] = self.autosave_timestamp
        if self.node.is_group:
            d["children"] = [c.to_dict() for c in self.children]
        return d


@dataclass(frozen=True)
class SnapshotInfo:
    """Summary of one timeline entry."""

    timestamp: int
    words: int
    preview: str

    def to_dict(self) -> dict[str, Any]:
        return {"timestamp": self.timestamp, "words": self.words, "preview": self.preview}


def make_preview(text: str, limit: int) -> str:
    """Collapse whitespace and truncate to `limit` characters with an ellipsis."""
    collapsed = " ".join(text.split())
    if len(collapsed) <= limit:
        return collapsed
    return collapsed[:limit].rstrip() + "…"
