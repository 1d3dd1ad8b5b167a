"""
ShopLedger - Hierarchy Service

Tree rules shared by the chart of accounts and expense categories:
level computation, depth limits, cycle detection and tree assembly over a
flat table with parent links.
"""

import uuid
from dataclasses import dataclass, field
from typing import Dict, Generic, List, Optional, Sequence, Type, TypeVar

from sqlalchemy import and_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.models.base import HierarchyNodeMixin
from app.utils.error_handling import (
    CircularReferenceException,
    DepthExceededException,
    NotFoundException,
)

NodeT = TypeVar("NodeT", bound=HierarchyNodeMixin)


@dataclass
class TreeNode(Generic[NodeT]):
    """A node of an assembled tree; ``depth`` is zero-based."""
    item: NodeT
    depth: int = 0
    children: List["TreeNode[NodeT]"] = field(default_factory=list)

    @property
    def has_children(self) -> bool:
        return bool(self.children)

    def walk(self):
        yield self
        for child in self.children:
            yield from child.walk()


@dataclass
class Tree(Generic[NodeT]):
    roots: List[TreeNode[NodeT]]
    orphans: List[NodeT]

    def flatten(self) -> List[TreeNode[NodeT]]:
        return [node for root in self.roots for node in root.walk()]


def sort_key(node) -> tuple:
    """System entries first, then by code."""
    return (not node.is_system, node.code)


def assemble_tree(items: Sequence[NodeT]) -> Tree[NodeT]:
    """
    Link a flat list of nodes into a forest.

    A node whose parent is missing from ``items`` is reported as an orphan
    and placed at the root so that no data is hidden.
    """
    nodes: Dict[uuid.UUID, TreeNode[NodeT]] = {item.id: TreeNode(item=item) for item in items}
    roots: List[TreeNode[NodeT]] = []
    orphans: List[NodeT] = []

    for item in items:
        node = nodes[item.id]
        if item.parent_id is None:
            roots.append(node)
        elif item.parent_id in nodes and item.parent_id != item.id:
            nodes[item.parent_id].children.append(node)
        else:
            orphans.append(item)
            roots.append(node)

    def _finish(siblings: List[TreeNode[NodeT]], depth: int, seen: set) -> None:
        # A node already placed elsewhere in the forest keeps its subtree there
        siblings[:] = [n for n in siblings if n.item.id not in seen]
        siblings.sort(key=lambda n: sort_key(n.item))
        seen.update(n.item.id for n in siblings)
        for node in siblings:
            node.depth = depth
            _finish(node.children, depth + 1, seen)

    seen: set = set()
    _finish(roots, 0, seen)

    # Nodes caught in a parent loop are never reached from a root
    stranded = [nodes[item.id] for item in items if item.id not in seen]
    for node in stranded:
        if node.item.id in seen:
            continue
        orphans.append(node.item)
        roots.append(node)
        _finish([node], 0, seen)
    return Tree(roots=roots, orphans=orphans)


class HierarchyService(Generic[NodeT]):
    """Tree operations for one hierarchical model within a shop."""

    def __init__(self, db: AsyncSession, model: Type[NodeT], max_depth: Optional[int] = None):
        self.db = db
        self.model = model
        self.max_depth = max_depth or settings.max_hierarchy_depth

    @property
    def resource_type(self) -> str:
        return self.model.__name__

    async def get_node(self, node_id: uuid.UUID, shop_id: uuid.UUID) -> Optional[NodeT]:
        result = await self.db.execute(
            select(self.model).where(
                and_(self.model.id == node_id, self.model.shop_id == shop_id)
            )
        )
        return result.scalar_one_or_none()

    async def compute_level(self, parent_id: Optional[uuid.UUID], shop_id: uuid.UUID) -> int:
        """Level a new node would get under ``parent_id`` (1 for roots)."""
        if parent_id is None:
            return 1
        parent = await self.get_node(parent_id, shop_id)
        if not parent:
            raise NotFoundException(f"Parent {self.resource_type}", parent_id)
        return parent.level + 1

    def ensure_depth(self, level: int) -> None:
        if level > self.max_depth:
            raise DepthExceededException(self.resource_type, level, self.max_depth)

    async def level_for_parent(self, parent_id: Optional[uuid.UUID], shop_id: uuid.UUID) -> int:
        """Compute and depth-check the level of a node placed under ``parent_id``."""
        level = await self.compute_level(parent_id, shop_id)
        self.ensure_depth(level)
        return level

    async def _parent_map(self, shop_id: uuid.UUID) -> Dict[uuid.UUID, Optional[uuid.UUID]]:
        result = await self.db.execute(
            select(self.model.id, self.model.parent_id).where(self.model.shop_id == shop_id)
        )
        return {row.id: row.parent_id for row in result.all()}

    async def would_create_cycle(
        self,
        node_id: uuid.UUID,
        proposed_parent_id: Optional[uuid.UUID],
        shop_id: uuid.UUID,
    ) -> bool:
        """
        True if making ``proposed_parent_id`` the parent of ``node_id`` closes a loop.

        Walks up from the proposed parent; reaching ``node_id`` or revisiting
        any node (an existing corrupt loop) counts as a cycle.
        """
        if proposed_parent_id is None:
            return False
        if proposed_parent_id == node_id:
            return True

        parents = await self._parent_map(shop_id)
        visited = set()
        current: Optional[uuid.UUID] = proposed_parent_id
        while current is not None:
            if current == node_id or current in visited:
                return True
            visited.add(current)
            current = parents.get(current)
        return False

    async def ensure_no_cycle(
        self,
        node_id: uuid.UUID,
        proposed_parent_id: Optional[uuid.UUID],
        shop_id: uuid.UUID,
    ) -> None:
        if await self.would_create_cycle(node_id, proposed_parent_id, shop_id):
            raise CircularReferenceException(self.resource_type, node_id, proposed_parent_id)

    async def subtree_height(self, node_id: uuid.UUID, shop_id: uuid.UUID) -> int:
        """Number of levels in the subtree rooted at ``node_id`` (1 for a leaf)."""
        children_of: Dict[uuid.UUID, List[uuid.UUID]] = {}
        for child, parent in (await self._parent_map(shop_id)).items():
            if parent is not None:
                children_of.setdefault(parent, []).append(child)

        height = 0
        frontier = [node_id]
        seen = set()
        while frontier:
            height += 1
            seen.update(frontier)
            frontier = [c for n in frontier for c in children_of.get(n, []) if c not in seen]
        return height

    async def has_children(self, node_id: uuid.UUID, shop_id: uuid.UUID) -> bool:
        result = await self.db.execute(
            select(self.model.id).where(
                and_(self.model.parent_id == node_id, self.model.shop_id == shop_id)
            ).limit(1)
        )
        return result.first() is not None

    async def move(self, node: NodeT, new_parent_id: Optional[uuid.UUID]) -> None:
        """
        Re-parent ``node`` after checking for cycles and depth.

        Levels of the whole moved subtree are recomputed. The caller owns the
        surrounding unit of work.
        """
        if new_parent_id == node.parent_id:
            return
        await self.ensure_no_cycle(node.id, new_parent_id, node.shop_id)
        new_level = await self.compute_level(new_parent_id, node.shop_id)
        height = await self.subtree_height(node.id, node.shop_id)
        self.ensure_depth(new_level + height - 1)

        node.parent_id = new_parent_id
        shift = new_level - node.level
        node.level = new_level
        if shift:
            await self._shift_descendants(node.id, node.shop_id, shift)

    async def _shift_descendants(self, node_id: uuid.UUID, shop_id: uuid.UUID, shift: int) -> None:
        frontier = [node_id]
        while frontier:
            result = await self.db.execute(
                select(self.model.id).where(
                    and_(self.model.parent_id.in_(frontier), self.model.shop_id == shop_id)
                )
            )
            frontier = list(result.scalars().all())
            if frontier:
                await self.db.execute(
                    update(self.model)
                    .where(self.model.id.in_(frontier))
                    .values(level=self.model.level + shift)
                    .execution_options(synchronize_session="fetch")
                )

    async def load_all(self, shop_id: uuid.UUID) -> List[NodeT]:
        result = await self.db.execute(
            select(self.model).where(self.model.shop_id == shop_id).order_by(self.model.code)
        )
        return list(result.scalars().all())

    async def build_tree(self, shop_id: uuid.UUID) -> Tree[NodeT]:
        return assemble_tree(await self.load_all(shop_id))

    async def find_orphans(self, shop_id: uuid.UUID) -> List[NodeT]:
        return (await self.build_tree(shop_id)).orphans
