"""User-controlled display order of projects (workspace/projects.json)."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from folio.workspace import read_json, write_json

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from folio.workspace import Workspace

logger = logging.getLogger("folio.ordering")


def validate_order(order: Iterable[str], known: Mapping[str, int]) -> list[str]:
    """Drop unknown and repeated IDs, then append missing ones by creation time.

    `known` maps project ID to createdAt.
    """
    kept: list[str] = []
    seen: set[str] = set()
    for pid in order:
        if pid in known and pid not in seen:
            kept.append(pid)
            seen.add(pid)
    missing = sorted((pid for pid in known if pid not in seen), key=lambda p: (known[p], p))
    return kept + missing


class ProjectOrder:
    def __init__(self, workspace: Workspace) -> None:
        self.workspace = workspace

    def load(self) -> list[str]:
        """Persisted order as stored; [] if missing or corrupt."""
        raw = read_json(self.workspace.order_path)
        if not isinstance(raw, dict):
            return []
        order = raw.get("order")
        if not isinstance(order, list):
            return []
        return [pid for pid in order if isinstance(pid, str)]

    def _persist(self, order: list[str]) -> None:
        write_json(self.workspace.order_path, {"order": order})

    def normalize(self, known: Mapping[str, int]) -> list[str]:
        """Validated order; rewritten on disk only if it drifted."""
        loaded = self.load()
        order = validate_order(loaded, known)
        if order != loaded:
            logger.info("project order repaired (%d -> %d entries)", len(loaded), len(order))
            self._persist(order)
        return order

    def reorder(self, new_order: Iterable[str], known: Mapping[str, int]) -> list[str]:
        """Apply a caller-supplied order.

        Unknown IDs are ignored; known IDs the caller left out follow in their
        previous relative order. Always persisted.
        """
        previous = validate_order(self.load(), known)
        head: list[str] = []
        for pid in new_order:
            if pid in known and pid not in head:
                head.append(pid)
        named = set(head)
        order = head + [pid for pid in previous if pid not in named]
        self._persist(order)
        return order

    def append(self, project_id: str) -> None:
        order = self.load()
        if project_id not in order:
            order.append(project_id)
            self._persist(order)

    def discard(self, project_id: str) -> None:
        order = self.load()
        if project_id in order:
            order.remove(project_id)
            self._persist(order)
