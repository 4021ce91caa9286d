"""Tests for serialization module"""

import json
import uuid

from pytest import raises

from accounting import (
    BalanceAdjustmentSettings,
    Building,
    Group,
    IncompatibleRecipe,
    ManufacturerSettings,
    MinerSettings,
    PowerConsumerSettings,
    PumpSettings,
    ResourcePurity,
)
from database import POWER, BuildingId, DatabaseVersion, ItemId, RecipeId
from node_meta import NodeMeta, NodeMetas
from serialization import (
    World,
    load_world,
    node_from_dict,
    node_to_dict,
    save_world,
    settings_from_dict,
    settings_to_dict,
    world_from_dict,
    world_to_dict,
)

SMELTER = BuildingId("Desc_SmelterMk1_C")


def sample_tree(db):
    good = Building(SMELTER, ManufacturerSettings(RecipeId("Recipe_IngotIron_C"), 1.5), 2.0).build_node(db)
    bad = Building(SMELTER, ManufacturerSettings(RecipeId("Recipe_IronPlate_C"))).rebuild(db)
    inner = Group(name="Smelting", children=(good, bad), copies=2).build_node()
    return Group(name="Factory", children=(inner, Building.empty_node())).build_node()


def test_node_dict_shape(db):
    """nodes should be externally tagged by kind"""
    raw = node_to_dict(sample_tree(db))
    group = raw["kind"]["Group"]
    assert group["name"] == "Factory"
    assert uuid.UUID(group["id"])
    building = group["children"][0]["kind"]["Group"]["children"][0]["kind"]["Building"]
    assert building["building"] == "Desc_SmelterMk1_C"
    assert building["settings"] == {"Manufacturer": {"recipe": "Recipe_IngotIron_C", "clock_speed": 1.5}}
    assert building["copies"] == 2.0
    assert "children_had_warnings" not in raw


def test_node_survives_json(db):
    """a tree written to JSON text should read back equal, warnings included"""
    root = sample_tree(db)
    restored = node_from_dict(json.loads(json.dumps(node_to_dict(root))))
    assert restored == root
    bad = restored.children[0].children[1]
    assert bad.warning == IncompatibleRecipe(RecipeId("Recipe_IronPlate_C"), SMELTER)
    assert restored.children_had_warnings


def test_unit_settings_are_bare_strings():
    assert settings_to_dict(PowerConsumerSettings()) == "PowerConsumer"
    assert settings_from_dict("PowerConsumer") == PowerConsumerSettings()


def test_settings_defaults_filled():
    """missing fields should take their defaults"""
    assert settings_from_dict({"Miner": {}}) == MinerSettings()
    assert settings_from_dict({"Miner": {"resource": "Desc_OreIron_C", "purity": "Pure"}}) == MinerSettings(
        ItemId("Desc_OreIron_C"), 1.0, ResourcePurity.PURE
    )


def test_pump_pads_written_as_names():
    settings = PumpSettings(ItemId("Desc_LiquidOil_C"), 1.0, (ResourcePurity.PURE, ResourcePurity.IMPURE))
    assert settings_to_dict(settings)["Pump"]["pads"] == ["Pure", "Impure"]


def test_legacy_pad_counts():
    """older pad counts should expand to a pad list"""
    settings = settings_from_dict({"Pump": {"resource": "Desc_LiquidOil_C", "pure_pads": 1, "impure_pads": 2}})
    assert settings.pads == (ResourcePurity.PURE, ResourcePurity.IMPURE, ResourcePurity.IMPURE)


def test_balance_adjustment_power_target():
    raw = settings_to_dict(BalanceAdjustmentSettings(POWER, 5.0))
    assert settings_from_dict(raw).item_or_power == POWER


def test_unknown_tags_rejected():
    with raises(ValueError):
        node_from_dict({"kind": {"Machine": {}}})
    with raises(ValueError):
        settings_from_dict({"Miner": {}, "Pump": {}})


def test_missing_group_fields():
    """groups without id or copies should still load"""
    node = node_from_dict({"kind": {"Group": {"name": "Old"}}})
    assert node.group.copies == 1
    assert isinstance(node.group.id, uuid.UUID)
    assert node.balance.is_empty()


def test_world_dict(db):
    """the database choice should be stored by version name"""
    root = sample_tree(db)
    metas = NodeMetas().set_meta(root.group.id, NodeMeta(collapsed=True))
    raw = world_to_dict(World(root, DatabaseVersion.SAMPLE, metas))
    assert raw["database"] == "SAMPLE"
    assert raw["node_metadata"] == {str(root.group.id): {"collapsed": True}}
    world = world_from_dict(raw)
    assert world.root == root
    assert world.node_metadata.meta(root.group.id).collapsed


def test_world_custom_database(db):
    """a custom database should be embedded in the world"""
    world = world_from_dict(world_to_dict(World(database=db)))
    assert world.database == db


def test_world_defaults():
    world = world_from_dict({})
    assert world.root.group is not None
    assert world.database is DatabaseVersion.latest()
    assert len(world.node_metadata) == 0


def test_save_and_load_world(db, tmp_path):
    """a saved world file should load back the same world"""
    path = tmp_path / "factory.json"
    world = World(sample_tree(db), DatabaseVersion.SAMPLE, NodeMetas())
    save_world(world, str(path))
    assert json.loads(path.read_text())["database"] == "SAMPLE"
    assert load_world(str(path)) == world
