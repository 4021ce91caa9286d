"""Presentation-only state for groups, kept beside the tree and keyed by group id."""

import logging
import uuid
from dataclasses import dataclass, field

from frozendict import frozendict

from accounting import Node

_LOGGER = logging.getLogger("satisfactory_accounting")


@dataclass(frozen=True)
class NodeMeta:
    """Display state of one group"""

    collapsed: bool = False


@dataclass(frozen=True)
class NodeMetas:
    """Immutable overlay of NodeMeta by group id.

    Every update returns a new overlay. Ids without an entry read as the default
    NodeMeta.
    """

    metas: frozendict = field(default_factory=frozendict)

    def meta(self, group_id: uuid.UUID) -> NodeMeta:
        return self.metas.get(group_id, NodeMeta())

    def set_meta(self, group_id: uuid.UUID, meta: NodeMeta) -> "NodeMetas":
        return NodeMetas(self.metas.set(group_id, meta))

    def batch_update(self, updates: dict[uuid.UUID, NodeMeta]) -> "NodeMetas":
        """Apply many updates at once, producing a single new overlay."""
        if not updates:
            return self
        merged = dict(self.metas)
        merged.update(updates)
        return NodeMetas(frozendict(merged))

    def prune(self, root: Node) -> "NodeMetas":
        """Drop entries for groups that no longer appear under root.

        Precondition:
            root is the current root of the tree

        Postcondition:
            returns an overlay holding exactly the entries whose id is a group in root

        Args:
            root: live tree to keep entries for

        Returns:
            pruned overlay
        """
        live = {node.group.id for node in root.iter() if node.group is not None}
        kept = frozendict({gid: meta for gid, meta in self.metas.items() if gid in live})
        if len(kept) != len(self.metas):
            _LOGGER.info("Pruned %s stale node metadata entries", len(self.metas) - len(kept))
        return NodeMetas(kept)

    def __len__(self) -> int:
        return len(self.metas)

    def __contains__(self, group_id) -> bool:
        return group_id in self.metas
