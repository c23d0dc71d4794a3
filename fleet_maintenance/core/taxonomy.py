"""
Maintenance type taxonomy
─────────────────────────
Self-referential tree of maintenance types with a materialized path
(ancestor types joined by "/") and a depth level.

- build_tree / flatten convert between the flat list the API stores and the
  nested forest used for selection widgets.
- TaxonomyStore owns one user's flat list and enforces the structural rules
  on create / update / delete.
"""

import logging
import uuid
from typing import Iterable

from fleet_maintenance.schemas.maintenance_type import MaintenanceTypeNode
from fleet_maintenance.utils.dates import utcnow
from fleet_maintenance.utils.exceptions import (
    NotFoundException,
    InvalidFieldException,
    ParentNotFoundException,
    HasChildrenException,
    CyclicParentException,
)

logger = logging.getLogger(__name__)

PATH_SEPARATOR = "/"

# Marks "parent_id not supplied" in update(); None means "move to root"
UNSET = object()


# ─── Tree transforms ──────────────────────────────────────────────────────────
def build_tree(nodes: Iterable[MaintenanceTypeNode]) -> list[MaintenanceTypeNode]:
    """
    Link a flat list into a forest. Input nodes are copied, never mutated.

    A parent_id that does not resolve places the node at the root instead of
    dropping it. Nodes caught in a parent cycle are also promoted to roots.
    """
    index: dict[str, MaintenanceTypeNode] = {}
    for node in nodes:
        index[node.id] = node.model_copy(update={"children": []})

    forest: list[MaintenanceTypeNode] = []
    for node in index.values():
        parent = index.get(node.parent_id) if node.parent_id else None
        if parent is None or parent is node:
            forest.append(node)
        else:
            parent.children.append(node)

    # Anything unreachable from a root sits on a cycle
    reached = {n.id for n in _walk(forest)}
    if len(reached) < len(index):
        for node in index.values():
            if node.id in reached:
                continue
            logger.warning(f"Maintenance type {node.id} is part of a parent cycle; placing it at the root")
            parent = index[node.parent_id]
            parent.children = [c for c in parent.children if c.id != node.id]
            forest.append(node)
            reached.update(n.id for n in _walk([node]))
    return forest


def flatten(forest: Iterable[MaintenanceTypeNode]) -> list[MaintenanceTypeNode]:
    """Depth-first pre-order walk; each emitted node has its children stripped."""
    return [node.model_copy(update={"children": []}) for node in _walk(forest)]


def _walk(forest: Iterable[MaintenanceTypeNode]):
    stack = list(reversed(list(forest)))
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(node.children))


def child_path(parent: MaintenanceTypeNode | None) -> str | None:
    """Materialized path for a child of `parent` (None for a root)."""
    if parent is None:
        return None
    if parent.path:
        return f"{parent.path}{PATH_SEPARATOR}{parent.type}"
    return parent.type


def child_level(parent: MaintenanceTypeNode | None) -> int:
    return 0 if parent is None else parent.level + 1


# ─── Store ────────────────────────────────────────────────────────────────────
class TaxonomyStore:
    """
    Authoritative flat list of one user's maintenance types.

    Level and path are recomputed eagerly: re-parenting or renaming a node
    rewrites the placement of its whole subtree, and update() returns every
    node whose stored values changed so callers can persist them together.
    """

    def __init__(self, nodes: Iterable[MaintenanceTypeNode] = (), user_id: str | None = None):
        self.user_id = user_id
        self._nodes: dict[str, MaintenanceTypeNode] = {}
        for node in nodes:
            self._nodes[node.id] = node.model_copy(update={"children": []})

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, node_id: str) -> bool:
        return node_id in self._nodes

    # ─── Reads ────────────────────────────────────────────────────────────────
    def all(self) -> list[MaintenanceTypeNode]:
        return list(self._nodes.values())

    def find(self, node_id: str | None) -> MaintenanceTypeNode | None:
        if node_id is None:
            return None
        return self._nodes.get(node_id)

    def get(self, node_id: str) -> MaintenanceTypeNode:
        node = self.find(node_id)
        if node is None:
            raise NotFoundException("Maintenance type")
        return node

    def children_of(self, node_id: str) -> list[MaintenanceTypeNode]:
        return [n for n in self._nodes.values() if n.parent_id == node_id]

    def has_children(self, node_id: str) -> bool:
        return any(n.parent_id == node_id for n in self._nodes.values())

    def descendants_of(self, node_id: str) -> list[MaintenanceTypeNode]:
        """Breadth-first, so every node comes after its parent."""
        result = []
        frontier = [node_id]
        seen = {node_id}
        while frontier:
            current = frontier.pop(0)
            for child in self.children_of(current):
                if child.id in seen:
                    continue
                seen.add(child.id)
                result.append(child)
                frontier.append(child.id)
        return result

    def tree(self) -> list[MaintenanceTypeNode]:
        return build_tree(self.all())

    def resolve_parent(self, parent_id: str | None) -> MaintenanceTypeNode | None:
        if parent_id is None:
            return None
        parent = self.find(parent_id)
        if parent is None:
            raise ParentNotFoundException(parent_id)
        return parent

    # ─── Mutations ────────────────────────────────────────────────────────────
    def create(
        self,
        type_name: str,
        parent_id: str | None = None,
        node_id: str | None = None,
    ) -> MaintenanceTypeNode:
        type_name = (type_name or "").strip()
        if not type_name:
            raise InvalidFieldException("Type cannot be empty", field="type")
        parent = self.resolve_parent(parent_id)

        node = MaintenanceTypeNode(
            id=node_id or str(uuid.uuid4()),
            type=type_name,
            parent_id=parent.id if parent else None,
            level=child_level(parent),
            path=child_path(parent),
            user_id=self.user_id,
            created_at=utcnow(),
        )
        self._nodes[node.id] = node
        return node

    def update(self, node_id: str, type_name: str | None = None, parent_id=UNSET) -> list[MaintenanceTypeNode]:
        """
        Rename and/or re-parent a node. Returns the node followed by every
        descendant whose level or path changed.
        """
        node = self.get(node_id)
        changes: dict = {}

        if type_name is not None:
            type_name = type_name.strip()
            if not type_name:
                raise InvalidFieldException("Type cannot be empty", field="type")
            if type_name != node.type:
                changes["type"] = type_name

        if parent_id is not UNSET and parent_id != node.parent_id:
            if parent_id == node_id:
                raise CyclicParentException()
            parent = self.resolve_parent(parent_id)
            if parent is not None and parent.id in {d.id for d in self.descendants_of(node_id)}:
                raise CyclicParentException()
            changes["parent_id"] = parent_id
            changes["level"] = child_level(parent)
            changes["path"] = child_path(parent)

        if not changes:
            return [node]

        updated = node.model_copy(update={**changes, "updated_at": utcnow()})
        self._nodes[node_id] = updated
        return [updated] + self._propagate(updated)

    def _propagate(self, root: MaintenanceTypeNode) -> list[MaintenanceTypeNode]:
        changed = []
        for descendant in self.descendants_of(root.id):
            parent = self._nodes[descendant.parent_id]
            level, path = child_level(parent), child_path(parent)
            if descendant.level == level and descendant.path == path:
                continue
            moved = descendant.model_copy(update={"level": level, "path": path})
            self._nodes[moved.id] = moved
            changed.append(moved)
        if changed:
            logger.info(f"Recomputed placement of {len(changed)} descendant(s) of maintenance type {root.id}")
        return changed

    def delete(self, node_id: str) -> MaintenanceTypeNode:
        node = self.get(node_id)
        children = self.children_of(node_id)
        if children:
            raise HasChildrenException(len(children))
        del self._nodes[node_id]
        return node
