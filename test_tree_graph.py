"""Tests for tree_graph module"""

import graphviz

from accounting import Building, Group, ManufacturerSettings
from balance import Balance
from database import BuildingId, ItemId, RecipeId
from tree_graph import balance_lines, node_label, tree_to_digraph

SMELTER = BuildingId("Desc_SmelterMk1_C")


def sample_tree(db):
    good = Building(SMELTER, ManufacturerSettings(RecipeId("Recipe_IngotIron_C")), 2.0).build_node(db)
    bad = Building(SMELTER, ManufacturerSettings(RecipeId("Recipe_IronPlate_C"))).rebuild(db)
    inner = Group(name="Smelting", children=(good, bad)).build_node()
    return Group(children=(inner, Building.empty_node())).build_node()


def test_balance_lines(db):
    """power comes first, then items by id, with display names"""
    balance = Balance(-8.0, {ItemId("Desc_OreIron_C"): -60.0, ItemId("Desc_IronIngot_C"): 60.0})
    assert balance_lines(balance, db) == [
        "power: -8 MW",
        "Iron Ingot: +60/min",
        "Iron Ore: -60/min",
    ]


def test_balance_lines_fractional(db):
    lines = balance_lines(Balance(2.5, {ItemId("Desc_Unknown_C"): 0.125}), db)
    assert lines == ["power: +2.5 MW", "Desc_Unknown_C: +0.12/min"]


def test_node_label(db):
    """labels should name the node, show copies and warnings"""
    root = sample_tree(db)
    assert node_label(root, db).splitlines()[0] == "unnamed"
    good_label = node_label(root.children[0].children[0], db).splitlines()
    assert good_label[:2] == ["Smelter", "x2"]
    assert "warning: " in node_label(root.children[0].children[1], db)
    assert node_label(root.children[1], db).splitlines()[0] == "unassigned"


def test_tree_to_digraph(db):
    """every tree node should appear, named by its path"""
    dot = tree_to_digraph(sample_tree(db), db)
    assert isinstance(dot, graphviz.Digraph)
    source = dot.source
    for node_id in ("n", "n_0", "n_1", "n_0_0", "n_0_1"):
        assert f"\t{node_id} [" in source
    assert "n -> n_0" in source
    assert "n_0 -> n_0_1" in source
    assert "fillcolor=orange" in source
    assert "shape=folder" in source
