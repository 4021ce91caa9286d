"""Path-addressed structural edits of the node tree.

A path is a sequence of child indices starting at some group. All functions here are
pure: they return replacement nodes and leave their inputs untouched. Stale or
mismatched paths are logged and reported by returning None.
"""

import logging
from dataclasses import dataclass, replace
from typing import Sequence

from accounting import Group, Node
from node_meta import NodeMeta, NodeMetas

_LOGGER = logging.getLogger("satisfactory_accounting")


def _with_children(group: Group, children: list[Node]) -> Node:
    return replace(group, children=tuple(children)).build_node()


def get_node(root: Node, path: Sequence[int]) -> Node | None:
    """Find the node at path under root, or None if the path does not resolve."""
    node = root
    for idx in path:
        group = node.group
        if group is None or not 0 <= idx < len(group.children):
            return None
        node = group.children[idx]
    return node


def replace_at_path(root: Node, path: Sequence[int], new_node: Node) -> Node | None:
    """Replace the node at path, rebuilding every ancestor's balance.

    Precondition:
        path addresses an existing node under root (the empty path is root itself)

    Postcondition:
        returns a new root in which the node at path is new_node and every group along
        the path has a recomputed balance
        returns None (after logging) if the path does not resolve

    Args:
        root: current root
        path: child indices from root
        new_node: replacement

    Returns:
        new root, or None
    """
    if not path:
        return new_node
    group = root.group
    idx = path[0]
    if group is None:
        _LOGGER.warning("Path %s passes through a building", list(path))
        return None
    if not 0 <= idx < len(group.children):
        _LOGGER.warning("Path %s is out of bounds", list(path))
        return None
    replacement = replace_at_path(group.children[idx], path[1:], new_node)
    if replacement is None:
        return None
    children = list(group.children)
    children[idx] = replacement
    return _with_children(group, children)


def remove_child(node: Node, path: Sequence[int]) -> tuple[Node, Node] | None:
    """Recursively remove the node at path.

    Precondition:
        path is non-empty and relative to node

    Postcondition:
        returns (replacement for node, removed node)
        returns None (after logging) if a traversed node is not a group or an index is
        out of bounds

    Args:
        node: group node to remove from
        path: child indices leading to the node to remove

    Returns:
        (replacement, removed) or None
    """
    group = node.group
    if group is None:
        _LOGGER.warning("Source for remove child did not point to a group")
        return None
    if not path:
        _LOGGER.warning("Cannot remove a child with an empty path")
        return None
    idx, rest = path[0], path[1:]
    if not 0 <= idx < len(group.children):
        _LOGGER.warning("Attempting to remove from an out of bounds index")
        return None

    children = list(group.children)
    if not rest:
        removed = children.pop(idx)
    else:
        result = remove_child(children[idx], rest)
        if result is None:
            return None
        children[idx], removed = result
    return _with_children(group, children), removed


def insert_child(node: Node, path: Sequence[int], moved: Node) -> Node | None:
    """Recursively insert moved before the position addressed by path.

    Precondition:
        path is non-empty and relative to node; the last index may equal the number of
        children to append

    Postcondition:
        returns the replacement for node with moved inserted
        returns None (after logging) if a traversed node is not a group or an index is
        out of bounds

    Args:
        node: group node to insert into
        path: child indices; the last one is the insertion index
        moved: node to insert

    Returns:
        replacement node or None
    """
    group = node.group
    if group is None:
        _LOGGER.warning("Destination for insert child did not point to a group")
        return None
    if not path:
        _LOGGER.warning("Cannot insert a child with an empty path")
        return None
    idx, rest = path[0], path[1:]
    children = list(group.children)
    if not rest:
        if not 0 <= idx <= len(children):
            _LOGGER.warning("Attempting to insert to an out of bounds index")
            return None
        children.insert(idx, moved)
    else:
        if not 0 <= idx < len(children):
            _LOGGER.warning("Attempting to insert to an out of bounds index")
            return None
        replacement = insert_child(children[idx], rest, moved)
        if replacement is None:
            return None
        children[idx] = replacement
    return _with_children(group, children)


def move_child(group: Group, src: Sequence[int], dest: Sequence[int]) -> Group | None:
    """Move a node from src to dest, both relative to group.

    group must be the lowest common ancestor of src and dest: below group the two paths
    have no parent in common.

    Precondition:
        src and dest are non-empty
        src[:-1] and dest[:-1] do not start with the same index

    Postcondition:
        returns a new Group with the node moved
        when src addresses a direct child and src[0] < dest[0], dest[0] is decremented
        first since removing src shifts later children left by one
        returns None (after logging) on an invalid path

    Args:
        group: lowest common ancestor
        src: path of the node to move
        dest: insertion path; the last index is "insert before"

    Returns:
        new Group, or None
    """
    if not src or not dest:
        _LOGGER.warning("Cannot move with an empty path")
        return None
    src_prefix, dest_prefix = src[:-1], dest[:-1]
    if src_prefix and dest_prefix and src_prefix[0] == dest_prefix[0]:
        _LOGGER.warning("Source %s and destination %s have overlapping prefixes", list(src), list(dest))
        return None

    src_first = src[0]
    dest_first = dest[0]
    if not src_prefix and src_first < dest_first:
        dest_first -= 1

    if not 0 <= src_first < len(group.children):
        _LOGGER.warning("Attempting to move from an out of bounds index")
        return None

    children = list(group.children)
    if not src_prefix:
        moved = children.pop(src_first)
    else:
        result = remove_child(children[src_first], src[1:])
        if result is None:
            return None
        children[src_first], moved = result

    if not dest_prefix:
        if not 0 <= dest_first <= len(children):
            _LOGGER.warning("Attempting to move to an out of bounds index")
            return None
        children.insert(dest_first, moved)
    else:
        if not 0 <= dest_first < len(children):
            _LOGGER.warning("Attempting to move to an out of bounds index")
            return None
        replacement = insert_child(children[dest_first], dest[1:], moved)
        if replacement is None:
            return None
        children[dest_first] = replacement

    return replace(group, children=tuple(children))


def move_node(root: Node, src: Sequence[int], dest: Sequence[int]) -> Node | None:
    """Move a node between any two positions in the tree.

    Finds the lowest common ancestor of src and dest, moves the node there with
    move_child and replaces that ancestor in the root, producing exactly one new root.

    Precondition:
        src and dest are non-empty paths relative to root

    Postcondition:
        returns the new root, or None (after logging) if dest lies inside the moved node
        or a path is invalid

    Args:
        root: current root
        src: path of the node to move
        dest: insertion path

    Returns:
        new root, or None
    """
    if not src or not dest:
        _LOGGER.warning("Cannot move with an empty path")
        return None
    if len(dest) > len(src) and list(dest[: len(src)]) == list(src):
        _LOGGER.warning("Cannot move node %s inside itself", list(src))
        return None

    prefix_len = 0
    limit = min(len(src), len(dest)) - 1
    while prefix_len < limit and src[prefix_len] == dest[prefix_len]:
        prefix_len += 1
    ancestor_path = src[:prefix_len]

    ancestor = get_node(root, ancestor_path)
    if ancestor is None or ancestor.group is None:
        _LOGGER.warning("Attempting to move nodes in a non-group")
        return None
    new_group = move_child(ancestor.group, src[prefix_len:], dest[prefix_len:])
    if new_group is None:
        return None
    return replace_at_path(root, ancestor_path, new_group.build_node())


@dataclass(frozen=True)
class InsertPos:
    """Where a dragged node would be dropped within a group"""

    index: int
    # True when the drop would leave the dragged node where it already is.
    stays_in_place: bool
    src_path: tuple[int, ...]


def choose_insert_pos(
    path: Sequence[int],
    src_path: Sequence[int],
    child_midpoints: Sequence[float],
    drop_y: float,
) -> InsertPos | None:
    """Choose the insertion index for a node dragged over the group at path.

    Precondition:
        child_midpoints are the vertical midpoints of the group's rendered children,
        top to bottom

    Postcondition:
        returns None if src_path equals path or is a prefix of it (dropping a node into
        itself or its own descendant)
        index is the number of leading children whose midpoint is at or above drop_y
        stays_in_place is True when src_path is a direct child at i and index is i or
        i + 1

    Args:
        path: path of the group being dragged over
        src_path: path of the dragged node
        child_midpoints: midpoint y of each child
        drop_y: pointer y

    Returns:
        InsertPos or None
    """
    path = tuple(path)
    src_path = tuple(src_path)
    if len(src_path) <= len(path) and src_path == path[: len(src_path)]:
        return None

    insert_idx = 0
    for midpoint in child_midpoints:
        if drop_y < midpoint:
            break
        insert_idx += 1

    if len(src_path) == len(path) + 1 and src_path[: len(path)] == path:
        child_idx = src_path[-1]
        if child_idx <= insert_idx <= child_idx + 1:
            return InsertPos(insert_idx, True, src_path)
    return InsertPos(insert_idx, False, src_path)


def copy_with_metadata(node: Node, metas: NodeMetas) -> tuple[Node, NodeMetas]:
    """Deep copy node and replicate the metadata of every copied group.

    Precondition:
        node is any node; metas is the current overlay

    Postcondition:
        every group in the copy has a fresh id
        the returned overlay holds, for each copied group, the metadata of its original,
        applied in a single batch update

    Args:
        node: subtree to copy
        metas: current metadata overlay

    Returns:
        (copied node, updated overlay)
    """
    updates: dict = {}

    def visit(original: Group, copy: Group) -> None:
        meta = metas.meta(original.id)
        if meta != NodeMeta():
            updates[copy.id] = meta

    copy = node.create_copy(visit)
    return copy, metas.batch_update(updates)
