"""Tests for accounting_cli module."""

import json
import sys

from accounting import Building, Group, ManufacturerSettings, MinerSettings
from accounting_cli import format_tree, main
from database import BuildingId, ItemId, RecipeId, database_to_dict
from serialization import World, load_world, save_world


def write_world(db, path):
    """Save a small world with a smelter and a miner under one group"""
    smelter = Building(
        BuildingId("Desc_SmelterMk1_C"), ManufacturerSettings(RecipeId("Recipe_IngotIron_C"))
    ).build_node(db)
    miner = Building(BuildingId("Desc_MinerMk1_C"), MinerSettings(ItemId("Desc_OreIron_C"))).build_node(db)
    group = Group(name="Iron", children=(smelter, miner)).build_node()
    save_world(World(Group(name="Factory", children=(group,)).build_node()), str(path))


def test_format_tree(db):
    """format_tree should print paths with indentation"""
    group = Group(name="Iron", children=(Building.empty_node(),)).build_node()
    text = format_tree(Group(name="Factory", children=(group,)).build_node(), db)
    lines = text.splitlines()
    assert lines[0] == "/ Factory"
    assert "  /0 Iron" in lines
    assert "    /0/0 unassigned" in lines


def test_main_empty_world(monkeypatch, capsys):
    """main without arguments should print an empty world"""
    monkeypatch.setattr(sys, 'argv', ['accounting_cli.py'])
    assert main() == 0
    captured = capsys.readouterr()
    assert "/ unnamed" in captured.out
    assert "Total:" in captured.out
    assert "power: +0 MW" in captured.out


def test_main_prints_totals(db, monkeypatch, capsys, tmp_path):
    """main should print the root balance of a loaded world"""
    world_path = tmp_path / "world.json"
    write_world(db, world_path)
    monkeypatch.setattr(sys, 'argv', ['accounting_cli.py', '--world', str(world_path)])
    assert main() == 0
    captured = capsys.readouterr()
    assert "/0/0 Smelter" in captured.out
    assert "power: -9 MW" in captured.out
    assert "Iron Ore: +30/min" in captured.out


def test_main_backdrive_and_save(db, monkeypatch, capsys, tmp_path):
    """backdriving should change the saved world"""
    world_path = tmp_path / "world.json"
    out_path = tmp_path / "out.json"
    write_world(db, world_path)
    monkeypatch.setattr(sys, 'argv', [
        'accounting_cli.py',
        '--world', str(world_path),
        '--backdrive', '0/0', 'Iron Ingot:60',
        '--save', str(out_path),
    ])
    assert main() == 0
    captured = capsys.readouterr()
    assert "Iron Ore: +0/min" not in captured.out
    saved = load_world(str(out_path))
    assert saved.root.children[0].children[0].building.copies == 2.0


def test_main_backdrive_power(db, monkeypatch, tmp_path):
    world_path = tmp_path / "world.json"
    out_path = tmp_path / "out.json"
    write_world(db, world_path)
    monkeypatch.setattr(sys, 'argv', [
        'accounting_cli.py',
        '--world', str(world_path),
        '--backdrive', '0/0', 'power:-20',
        '--save', str(out_path),
    ])
    assert main() == 0
    assert load_world(str(out_path)).root.children[0].children[0].building.copies == 5.0


def test_main_invalid_backdrive(db, monkeypatch, capsys, tmp_path):
    """a backdrive that cannot apply should exit with an error"""
    world_path = tmp_path / "world.json"
    write_world(db, world_path)
    monkeypatch.setattr(sys, 'argv', [
        'accounting_cli.py', '--world', str(world_path), '--backdrive', '0', 'Iron Ingot:60',
    ])
    assert main() == 1
    captured = capsys.readouterr()
    assert "Error:" in captured.err


def test_main_invalid_item(db, monkeypatch, capsys, tmp_path):
    world_path = tmp_path / "world.json"
    write_world(db, world_path)
    monkeypatch.setattr(sys, 'argv', [
        'accounting_cli.py', '--world', str(world_path), '--backdrive', '0/0', 'Unobtainium:5',
    ])
    assert main() == 1
    assert "Unknown item" in capsys.readouterr().err


def test_main_missing_world(monkeypatch, capsys, tmp_path):
    monkeypatch.setattr(sys, 'argv', ['accounting_cli.py', '--world', str(tmp_path / "missing.json")])
    assert main() == 1
    assert "Error:" in capsys.readouterr().err


def test_main_custom_database(db, monkeypatch, capsys, tmp_path):
    """a custom database without the smelter should turn it into a warning"""
    world_path = tmp_path / "world.json"
    db_path = tmp_path / "db.json"
    write_world(db, world_path)
    raw = database_to_dict(db)
    del raw["buildings"]["Desc_SmelterMk1_C"]
    db_path.write_text(json.dumps(raw))
    monkeypatch.setattr(sys, 'argv', [
        'accounting_cli.py', '--world', str(world_path), '--database', str(db_path),
    ])
    assert main() == 0
    captured = capsys.readouterr()
    assert "warning: Building ID Desc_SmelterMk1_C is not in the database." in captured.out
    assert "power: -5 MW" in captured.out


def test_main_dot_output(db, monkeypatch, tmp_path):
    """--dot should write graphviz source"""
    world_path = tmp_path / "world.json"
    dot_path = tmp_path / "tree.dot"
    write_world(db, world_path)
    monkeypatch.setattr(sys, 'argv', [
        'accounting_cli.py', '--world', str(world_path), '--dot', str(dot_path),
    ])
    assert main() == 0
    source = dot_path.read_text()
    assert source.startswith("// Factory Accounting")
    assert "n_0 -> n_0_1" in source
