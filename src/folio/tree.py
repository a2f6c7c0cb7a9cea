"""Arena-backed chapter tree.

NodeTree keeps every node in a flat dict keyed by ID, plus two indexes:

    _parent[node_id]    -> parent ID, or None for a root
    _children[group_id] -> ordered child IDs (None holds the root sequence)

Moving a node is an index update (detach from one child list, append to
another), so ownership is never duplicated and cycle detection is a walk
up the parent index.

Structural operations never recompute group word counts themselves; call
recompute_aggregates() before persisting.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from folio.models import KIND_GROUP, Node

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

logger = logging.getLogger("folio.tree")


class NodeTree:
    """Ordered forest of chapters and groups."""

    def __init__(self) -> None:
        self._nodes: dict[str, Node] = {}
        self._parent: dict[str, str | None] = {}
        self._children: dict[str | None, list[str]] = {None: []}

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    @classmethod
    def from_dicts(cls, items: Iterable[dict[str, Any]]) -> NodeTree:
        """Build a tree from the nested `chapters` list of project.json."""
        tree = cls()
        for item in items:
            tree._load(None, item)
        return tree

    def _load(self, parent_id: str | None, item: dict[str, Any]) -> None:
        node = Node.from_dict(item)
        if node.id in self._nodes:
            logger.debug("duplicate node id %s ignored", node.id)
            return
        self._attach(parent_id, node)
        if node.is_group:
            for child in item.get("children") or []:
                self._load(node.id, child)

    def to_dicts(self) -> list[dict[str, Any]]:
        return [self._dump(nid) for nid in self._children[None]]

    def _dump(self, node_id: str) -> dict[str, Any]:
        node = self._nodes[node_id]
        d = node.to_dict()
        if node.is_group:
            d["children"] = [self._dump(cid) for cid in self._children[node_id]]
        return d

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._nodes

    @property
    def roots(self) -> list[Node]:
        return [self._nodes[nid] for nid in self._children[None]]

    def get(self, node_id: str) -> Node | None:
        return self._nodes.get(node_id)

    def find(self, node_id: str) -> tuple[Node, Node | None] | None:
        """Return (node, parent) or None. Parent is None for roots."""
        node = self._nodes.get(node_id)
        if node is None:
            return None
        parent_id = self._parent[node_id]
        return node, (self._nodes[parent_id] if parent_id is not None else None)

    def parent_id(self, node_id: str) -> str | None:
        return self._parent[node_id]

    def child_ids(self, parent_id: str | None) -> list[str]:
        """Ordered child IDs of a group (or of the root level). Empty if unknown."""
        return list(self._children.get(parent_id, ()))

    def children(self, parent_id: str | None) -> list[Node]:
        return [self._nodes[cid] for cid in self.child_ids(parent_id)]

    def is_descendant(self, node_id: str, ancestor_id: str) -> bool:
        """True if ancestor_id appears on node_id's parent chain."""
        current = self._parent.get(node_id)
        while current is not None:
            if current == ancestor_id:
                return True
            current = self._parent[current]
        return False

    def walk(self, parent_id: str | None = None) -> Iterator[tuple[Node, int]]:
        """Depth-first, document-order traversal yielding (node, depth)."""
        stack = [(cid, 0) for cid in reversed(self._children.get(parent_id, ()))]
        while stack:
            nid, depth = stack.pop()
            yield self._nodes[nid], depth
            stack.extend((cid, depth + 1) for cid in reversed(self._children.get(nid, ())))

    def leaves(self) -> list[Node]:
        """Chapters only, in document order."""
        return [node for node, _ in self.walk() if node.is_leaf]

    def total_words(self) -> int:
        return sum(n.words for n in self.leaves())

    def collect_leaf_ids(self, node_id: str) -> list[str]:
        """IDs of all chapters in the subtree rooted at node_id (itself if a chapter)."""
        node = self._nodes.get(node_id)
        if node is None:
            return []
        if node.is_leaf:
            return [node.id]
        return [n.id for n, _ in self.walk(node_id) if n.is_leaf]

    # ------------------------------------------------------------------
    # Aggregates
    # ------------------------------------------------------------------

    def recompute_aggregates(self) -> bool:
        """Set every group's words to the sum of its children's, bottom-up.

        Returns True if any group's count changed.
        """
        changed = False
        # Reverse pre-order visits every child before its parent.
        for node, _ in reversed(list(self.walk())):
            if not node.is_group:
                continue
            total = sum(self._nodes[cid].words for cid in self._children[node.id])
            if node.words != total:
                node.words = total
                changed = True
        return changed

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def _accepts_children(self, parent_id: str | None) -> bool:
        if parent_id is None:
            return True
        parent = self._nodes.get(parent_id)
        return parent is not None and parent.kind == KIND_GROUP

    def _attach(self, parent_id: str | None, node: Node) -> None:
        self._nodes[node.id] = node
        self._parent[node.id] = parent_id
        self._children[parent_id].append(node.id)
        if node.is_group:
            self._children[node.id] = []

    def insert(self, parent_id: str | None, node: Node) -> bool:
        """Append node as the last child of parent_id (or as a new root).

        Returns False without mutating if the parent is unknown or is a
        chapter, or if the node ID is already taken.
        """
        if node.id in self._nodes or not self._accepts_children(parent_id):
            return False
        self._attach(parent_id, node)
        return True

    def remove(self, node_id: str) -> NodeTree | None:
        """Detach the subtree rooted at node_id and return it as its own tree."""
        if node_id not in self._nodes:
            return None
        descendants = [node for node, _ in self.walk(node_id)]

        subtree = NodeTree()
        subtree._attach(None, self._nodes[node_id])
        for node in descendants:
            subtree._attach(self._parent[node.id], node)

        self._children[self._parent[node_id]].remove(node_id)
        for nid in [node_id, *(n.id for n in descendants)]:
            del self._nodes[nid]
            del self._parent[nid]
            self._children.pop(nid, None)
        return subtree

    def move(self, node_id: str, target_parent_id: str | None) -> bool:
        """Reparent node_id as the last child of target_parent_id.

        Rejected (False, tree untouched) when the node is unknown, the target
        is unknown or a chapter, or the target is the node itself or one of
        its descendants.
        """
        if node_id not in self._nodes:
            return False
        if target_parent_id is not None:
            if target_parent_id == node_id or self.is_descendant(target_parent_id, node_id):
                logger.debug("move of %s under %s rejected: cycle", node_id, target_parent_id)
                return False
        if not self._accepts_children(target_parent_id):
            return False
        self._children[self._parent[node_id]].remove(node_id)
        self._children[target_parent_id].append(node_id)
        self._parent[node_id] = target_parent_id
        return True

    def reorder_siblings(self, parent_id: str | None, ordered_ids: Iterable[str]) -> bool:
        """Reorder the children of parent_id.

        IDs in ordered_ids come first, in that order; children not named keep
        their prior relative order after them. Unknown or foreign IDs are
        ignored. Returns False only if parent_id does not name a group.
        """
        if parent_id not in self._children:
            return False
        current = self._children[parent_id]
        present = set(current)
        head: list[str] = []
        for nid in ordered_ids:
            if nid in present and nid not in head:
                head.append(nid)
        named = set(head)
        self._children[parent_id] = head + [nid for nid in current if nid not in named]
        return True
