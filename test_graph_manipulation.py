"""Tests for graph_manipulation module"""

from accounting import Building, Group, ManufacturerSettings
from database import BuildingId, RecipeId
from graph_manipulation import (
    InsertPos,
    choose_insert_pos,
    copy_with_metadata,
    get_node,
    insert_child,
    move_node,
    remove_child,
    replace_at_path,
)
from node_meta import NodeMeta, NodeMetas


def named(name, *children):
    return Group(name=name, children=tuple(children)).build_node()


def names(node):
    return [child.group.name for child in node.children]


def test_get_node():
    """get_node should follow child indices and return None off the tree"""
    root = named("root", named("a"), named("g", named("x")))
    assert get_node(root, ()) is root
    assert get_node(root, (1, 0)).group.name == "x"
    assert get_node(root, (5,)) is None
    assert get_node(root, (0, 0)) is None


def test_replace_at_path_rebuilds_ancestors(db):
    """replacing a leaf should refresh every balance up to the root"""
    root = named("root", named("g", named("x")))
    smelter = Building(BuildingId("Desc_SmelterMk1_C"), ManufacturerSettings(RecipeId("Recipe_IngotIron_C")))
    new_root = replace_at_path(root, (0, 0), smelter.build_node(db))
    assert new_root.balance.power == -4.0
    assert new_root.children[0].balance.power == -4.0
    assert root.balance.is_empty()


def test_replace_at_path_rejects_bad_path():
    root = named("root", named("a"))
    assert replace_at_path(root, (3,), named("b")) is None


def test_remove_and_insert_child():
    """remove_child should return the removed node; insert_child should put one back"""
    root = named("root", named("a"), named("g", named("x"), named("y")))
    new_root, removed = remove_child(root, (1, 0))
    assert removed.group.name == "x"
    assert names(new_root.children[1]) == ["y"]

    restored = insert_child(new_root, (1, 1), removed)
    assert names(restored.children[1]) == ["y", "x"]
    assert insert_child(new_root, (1, 5), removed) is None
    assert remove_child(root, (0, 0)) is None


def test_move_within_group():
    """moving forward within one group should account for the removed slot"""
    root = named("root", named("a"), named("b"), named("c"))
    assert names(move_node(root, (0,), (2,))) == ["b", "a", "c"]
    assert names(move_node(root, (2,), (0,))) == ["c", "a", "b"]
    assert names(move_node(root, (0,), (3,))) == ["b", "c", "a"]


def test_move_back_restores_order():
    """moving a node and then back to its old slot should restore the order"""
    root = named("root", named("a"), named("b"), named("c"))
    moved = move_node(root, (0,), (2,))
    restored = move_node(moved, (1,), (0,))
    assert names(restored) == ["a", "b", "c"]


def test_move_into_sibling_group():
    """moving a node into a later sibling group should land at the insertion index"""
    root = named("root", named("a"), named("g", named("x"), named("y")), named("c"))
    moved = move_node(root, (0,), (1, 2))
    assert names(moved) == ["g", "c"]
    assert names(moved.children[0]) == ["x", "y", "a"]


def test_move_out_of_group():
    """moving a nested node up should insert it in the ancestor"""
    root = named("root", named("a"), named("g", named("x"), named("y")), named("c"))
    moved = move_node(root, (1, 0), (0,))
    assert names(moved) == ["x", "a", "g", "c"]
    assert names(moved.children[2]) == ["y"]


def test_move_within_nested_group():
    """moves inside a nested group should happen at that group"""
    root = named("root", named("a"), named("g", named("x"), named("y")))
    moved = move_node(root, (1, 0), (1, 2))
    assert names(moved.children[1]) == ["y", "x"]
    assert names(moved) == ["a", "g"]


def test_move_into_itself_rejected():
    """a node cannot be moved inside its own subtree"""
    root = named("root", named("g", named("x")))
    assert move_node(root, (0,), (0, 0)) is None


def test_move_keeps_node_count():
    """a move should keep every node exactly once"""
    root = named("root", named("a"), named("g", named("x"), named("y")), named("c"))
    moved = move_node(root, (1, 1), (2,))
    before = sorted(node.group.name for node in root.iter())
    after = sorted(node.group.name for node in moved.iter())
    assert before == after


def test_choose_insert_pos():
    """drop position should count the midpoints above the pointer"""
    midpoints = [10.0, 30.0, 50.0]
    assert choose_insert_pos((), (0,), midpoints, 5.0) == InsertPos(0, True, (0,))
    assert choose_insert_pos((), (0,), midpoints, 20.0) == InsertPos(1, True, (0,))
    assert choose_insert_pos((), (0,), midpoints, 40.0) == InsertPos(2, False, (0,))
    assert choose_insert_pos((), (0,), midpoints, 60.0) == InsertPos(3, False, (0,))


def test_choose_insert_pos_from_other_group():
    """a node from another group never stays in place"""
    assert choose_insert_pos((1,), (0,), [10.0], 5.0) == InsertPos(0, False, (0,))


def test_choose_insert_pos_rejects_self():
    """a node cannot be dropped into itself or a descendant"""
    assert choose_insert_pos((0,), (0,), [], 0.0) is None
    assert choose_insert_pos((0, 1), (0,), [], 0.0) is None


def test_copy_with_metadata():
    """copies should carry over non-default metadata under fresh ids"""
    inner = named("inner")
    root = named("root", inner)
    metas = NodeMetas().set_meta(inner.group.id, NodeMeta(collapsed=True))
    copy, new_metas = copy_with_metadata(root, metas)
    copied_inner = copy.children[0].group
    assert copied_inner.id != inner.group.id
    assert new_metas.meta(copied_inner.id).collapsed
    assert not new_metas.meta(copy.group.id).collapsed
    assert copy.group.id not in new_metas
    assert new_metas.meta(inner.group.id).collapsed
