"""Controller for editing one world - no GUI dependencies"""

import logging
from collections import deque
from typing import Callable, Deque, List, Optional, Sequence, Tuple, Union

import node_edits
from accounting import Building, Group, Node, ResourcePurity
from backdrive import BackdriveSettings, backdrive
from database import BuildingId, Database, DatabaseVersion, ItemId, RecipeId
from graph_manipulation import get_node, move_node, replace_at_path
from node_meta import NodeMeta, NodeMetas
from serialization import World

_LOGGER = logging.getLogger("satisfactory_accounting")

# Maximum number of prior states kept for undo.
MAX_UNDO = 100

DatabaseChoice = Union[DatabaseVersion, Database]
# (root, database choice) snapshot stored for undo and redo.
UndoState = Tuple[Node, DatabaseChoice]


class WorldController:
    """Stateful controller for one world - owns the root, the database choice, metadata and history"""

    def __init__(self, world: Optional[World] = None, backdrive_settings: Optional[BackdriveSettings] = None):
        """Initialize controller from a saved world.

        Precondition:
            world is None or a World whose root is a group node

        Postcondition:
            self._root is the world's root rebuilt against its database
            self._node_metas is the world's metadata pruned to the live tree
            undo and redo history are empty

        Args:
            world: world to edit, defaults to an empty world
            backdrive_settings: backdrive policy, defaults to BackdriveSettings()
        """
        if world is None:
            world = World()
        self._database_choice: DatabaseChoice = world.database
        self._root: Node = world.root.rebuild(self.get_database())
        self._node_metas: NodeMetas = world.node_metadata.prune(self._root)
        self._backdrive_settings = backdrive_settings if backdrive_settings is not None else BackdriveSettings()
        self._undo: Deque[UndoState] = deque(maxlen=MAX_UNDO)
        self._redo: Deque[UndoState] = deque(maxlen=MAX_UNDO)

    # ========== State Getters ==========

    def get_root(self) -> Node:
        return self._root

    def get_database_choice(self) -> DatabaseChoice:
        return self._database_choice

    def get_database(self) -> Database:
        """Database for the current choice, loading a bundled version if needed."""
        if isinstance(self._database_choice, DatabaseVersion):
            return self._database_choice.load_database()
        return self._database_choice

    def get_node_metas(self) -> NodeMetas:
        return self._node_metas

    def get_backdrive_settings(self) -> BackdriveSettings:
        return self._backdrive_settings

    def get_node(self, path: Sequence[int]) -> Optional[Node]:
        return get_node(self._root, path)

    def to_world(self) -> World:
        """Snapshot of the current state for saving."""
        return World(self._root, self._database_choice, self._node_metas)

    # ========== History ==========

    def _push_undo(self) -> None:
        if len(self._undo) == MAX_UNDO:
            _LOGGER.debug("Undo history full, dropping oldest state")
        self._undo.append((self._root, self._database_choice))
        self._redo.clear()

    def can_undo(self) -> bool:
        return bool(self._undo)

    def can_redo(self) -> bool:
        return bool(self._redo)

    def undo(self) -> bool:
        """Restore the previous state. Returns False if there is nothing to undo."""
        if not self._undo:
            return False
        self._redo.append((self._root, self._database_choice))
        self._root, self._database_choice = self._undo.pop()
        return True

    def redo(self) -> bool:
        """Re-apply the last undone state. Returns False if there is nothing to redo."""
        if not self._redo:
            return False
        self._undo.append((self._root, self._database_choice))
        self._root, self._database_choice = self._redo.pop()
        return True

    # ========== Whole-World Changes ==========

    def set_root(self, root: Node) -> bool:
        """Replace the root. The root must be a group.

        Precondition:
            root is a Node

        Postcondition:
            if root is a group: previous state is pushed to undo, redo is cleared, and
            self._root is root
            otherwise the change is logged and rejected

        Args:
            root: new root node

        Returns:
            True if the root was replaced
        """
        if root.group is None:
            _LOGGER.warning("Tried to set root to a non-group")
            return False
        self._push_undo()
        self._root = root
        return True

    def set_database(self, choice: DatabaseChoice) -> bool:
        """Switch to another database, rebuilding the tree against it.

        Unknown ids in the new database turn the affected nodes into warning nodes.
        The switch can be undone.
        """
        if choice == self._database_choice:
            return False
        self._push_undo()
        self._database_choice = choice
        self._root = self._root.rebuild(self.get_database())
        _LOGGER.info("Switched database and rebuilt tree")
        return True

    # ========== Path-Addressed Edits ==========

    def _apply(self, path: Sequence[int], edit: Callable[[Node], Optional[Node]]) -> bool:
        node = get_node(self._root, path)
        if node is None:
            _LOGGER.warning("No node at path %s", list(path))
            return False
        replacement = edit(node)
        if replacement is None:
            return False
        new_root = replace_at_path(self._root, path, replacement)
        if new_root is None:
            return False
        return self.set_root(new_root)

    def replace_node(self, path: Sequence[int], node: Node) -> bool:
        return self._apply(path, lambda _: node)

    def rename(self, path: Sequence[int], name: str) -> bool:
        return self._apply(path, lambda node: node_edits.rename(node, name))

    def set_copies(self, path: Sequence[int], copies: float) -> bool:
        return self._apply(path, lambda node: node_edits.set_copies(node, copies, self.get_database()))

    def add_child(self, parent_path: Sequence[int], child: Node) -> bool:
        return self._apply(parent_path, lambda node: node_edits.add_child(node, child))

    def add_group(self, parent_path: Sequence[int]) -> bool:
        """Append an empty group to the group at parent_path."""
        return self.add_child(parent_path, Group.empty_node())

    def add_building(self, parent_path: Sequence[int]) -> bool:
        """Append an unassigned building to the group at parent_path."""
        return self.add_child(parent_path, Building.empty_node())

    def delete_node(self, path: Sequence[int]) -> bool:
        """Delete the node at path. The root cannot be deleted."""
        if not path:
            _LOGGER.warning("Cannot delete the root")
            return False
        return self._apply(path[:-1], lambda node: node_edits.delete_child(node, path[-1]))

    def copy_node(self, path: Sequence[int]) -> bool:
        """Insert a copy of the node at path right after it, copying group metadata."""
        if not path:
            _LOGGER.warning("Cannot copy the root")
            return False
        copied_metas: List[NodeMetas] = []

        def edit(parent: Node) -> Optional[Node]:
            result = node_edits.copy_child(parent, path[-1], self._node_metas)
            if result is None:
                return None
            new_parent, metas = result
            copied_metas.append(metas)
            return new_parent

        if not self._apply(path[:-1], edit):
            return False
        self._node_metas = copied_metas[0]
        return True

    def move_node(self, src: Sequence[int], dest: Sequence[int]) -> bool:
        """Move the node at src to insertion path dest."""
        new_root = move_node(self._root, src, dest)
        if new_root is None:
            return False
        return self.set_root(new_root)

    def change_type(self, path: Sequence[int], building_id: BuildingId) -> bool:
        return self._apply(path, lambda node: node_edits.change_type(node, building_id, self.get_database()))

    def change_recipe(self, path: Sequence[int], recipe_id: RecipeId) -> bool:
        return self._apply(path, lambda node: node_edits.change_recipe(node, recipe_id, self.get_database()))

    def change_item(self, path: Sequence[int], item_id: ItemId) -> bool:
        return self._apply(path, lambda node: node_edits.change_item(node, item_id, self.get_database()))

    def change_item_or_power(self, path: Sequence[int], item_or_power: str) -> bool:
        return self._apply(
            path, lambda node: node_edits.change_item_or_power(node, item_or_power, self.get_database())
        )

    def change_clock_speed(self, path: Sequence[int], clock_speed: float) -> bool:
        return self._apply(
            path, lambda node: node_edits.change_clock_speed(node, clock_speed, self.get_database())
        )

    def change_purity(self, path: Sequence[int], purity: ResourcePurity) -> bool:
        return self._apply(path, lambda node: node_edits.change_purity(node, purity, self.get_database()))

    def change_pump_purity(self, path: Sequence[int], purity: ResourcePurity, num_pads: int) -> bool:
        return self._apply(
            path, lambda node: node_edits.change_pump_purity(node, purity, num_pads, self.get_database())
        )

    def change_rate(self, path: Sequence[int], rate: float) -> bool:
        return self._apply(path, lambda node: node_edits.change_rate(node, rate, self.get_database()))

    def backdrive(self, path: Sequence[int], target: str, rate: float) -> bool:
        """Backdrive the building at path so target (item id or POWER) reaches rate."""
        return self._apply(
            path,
            lambda node: backdrive(node, target, rate, self.get_database(), self._backdrive_settings),
        )

    # ========== Metadata ==========

    def is_collapsed(self, path: Sequence[int]) -> bool:
        node = get_node(self._root, path)
        if node is None or node.group is None:
            return False
        return self._node_metas.meta(node.group.id).collapsed

    def set_collapsed(self, path: Sequence[int], collapsed: bool) -> bool:
        """Set the collapse state of the group at path. Not recorded in undo history."""
        node = get_node(self._root, path)
        if node is None or node.group is None:
            _LOGGER.warning("Cannot collapse a non-group at path %s", list(path))
            return False
        self._node_metas = self._node_metas.set_meta(node.group.id, NodeMeta(collapsed=collapsed))
        return True

    def prune_metadata(self) -> int:
        """Drop metadata for groups not in the current tree. Returns how many were dropped."""
        before = len(self._node_metas)
        self._node_metas = self._node_metas.prune(self._root)
        return before - len(self._node_metas)
