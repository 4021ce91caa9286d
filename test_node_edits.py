"""Tests for node_edits module"""

from pytest import approx

from accounting import (
    BalanceAdjustmentSettings,
    Building,
    GeneratorSettings,
    GeothermalSettings,
    Group,
    ManufacturerSettings,
    MinerSettings,
    PowerConsumerSettings,
    PumpSettings,
    ResourcePurity,
    StationSettings,
)
from database import POWER, BuildingId, ItemId, RecipeId
from node_edits import (
    add_child,
    change_clock_speed,
    change_item,
    change_item_or_power,
    change_pump_purity,
    change_purity,
    change_rate,
    change_recipe,
    change_type,
    copy_child,
    delete_child,
    rename,
    replace_child,
    set_copies,
)
from node_meta import NodeMeta, NodeMetas

SMELTER = BuildingId("Desc_SmelterMk1_C")
CONSTRUCTOR = BuildingId("Desc_ConstructorMk1_C")
MINER = BuildingId("Desc_MinerMk1_C")
ORE = ItemId("Desc_OreIron_C")
COPPER_ORE = ItemId("Desc_OreCopper_C")
OIL = ItemId("Desc_LiquidOil_C")


def smelter_node(db, clock=1.0):
    return Building(SMELTER, ManufacturerSettings(RecipeId("Recipe_IngotIron_C"), clock)).build_node(db)


def test_rename_trims():
    """rename should trim whitespace and ignore unchanged names"""
    node = Group(name="Iron").build_node()
    renamed = rename(node, "  Steel ")
    assert renamed.group.name == "Steel"
    assert renamed.group.id == node.group.id
    assert rename(node, "Iron ") is None


def test_rename_building_rejected(db):
    assert rename(smelter_node(db), "x") is None


def test_set_copies_group(db):
    """group copies should be rounded and non-negative"""
    node = Group(children=(smelter_node(db),)).build_node()
    updated = set_copies(node, -2.6, db)
    assert updated.group.copies == 3
    assert updated.balance.power == approx(-12.0)
    assert set_copies(node, 1.2, db) is None


def test_set_copies_group_rounds_halves_up(db):
    """half copies should round away from zero, not to even"""
    node = Group(children=(smelter_node(db),)).build_node()
    assert set_copies(node, 2.5, db).group.copies == 3
    doubled = set_copies(node, 2.0, db)
    assert set_copies(doubled, 0.5, db).group.copies == 1
    assert set_copies(doubled, -3.5, db).group.copies == 4


def test_set_copies_building(db):
    """building copies may be fractional"""
    updated = set_copies(smelter_node(db), 1.5, db)
    assert updated.building.copies == 1.5
    assert updated.balance.rate(ORE) == approx(-45.0)


def test_child_edits(db):
    """add, replace and delete should keep balance in sync"""
    group = Group.empty_node()
    with_child = add_child(group, smelter_node(db))
    assert with_child.balance.power == approx(-4.0)
    replaced = replace_child(with_child, 0, Building.empty_node())
    assert replaced.balance.is_empty()
    assert delete_child(with_child, 0).children == ()
    assert delete_child(with_child, 3) is None
    assert replace_child(with_child, 1, group) is None
    assert add_child(smelter_node(db), group) is None


def test_copy_child_inserts_after_original():
    """copies should land right after the original with fresh ids and copied metadata"""
    inner = Group(name="inner").build_node()
    other = Group(name="other").build_node()
    node = Group(children=(inner, other)).build_node()
    metas = NodeMetas().set_meta(inner.group.id, NodeMeta(collapsed=True))
    result, new_metas = copy_child(node, 0, metas)
    assert [child.group.name for child in result.children] == ["inner", "inner", "other"]
    copy_id = result.children[1].group.id
    assert copy_id != inner.group.id
    assert new_metas.meta(copy_id).collapsed
    assert copy_child(node, 5, metas) is None


def test_change_type_keeps_compatible_settings(db):
    """switching miner tiers should keep the resource and clock"""
    node = Building(MINER, MinerSettings(ORE, 1.5)).build_node(db)
    changed = change_type(node, BuildingId("Desc_MinerMk2_C"), db)
    assert changed.building.settings == MinerSettings(ORE, 1.5)
    assert changed.balance.rate(ORE) == approx(180.0)
    assert change_type(node, MINER, db) is None


def test_change_type_to_new_kind(db):
    """switching to another kind should start from that kind's defaults"""
    changed = change_type(smelter_node(db, clock=2.0), MINER, db)
    assert changed.building.settings == MinerSettings(None, 2.0)
    changed = change_type(Building.empty_node(), BuildingId("Desc_RadarTower_C"), db)
    assert changed.balance.power == -30.0


def test_change_recipe(db):
    """only recipes the building can run should be accepted"""
    node = Building(CONSTRUCTOR, ManufacturerSettings()).build_node(db)
    changed = change_recipe(node, RecipeId("Recipe_IronPlate_C"), db)
    assert changed.balance.rate(ItemId("Desc_IronPlate_C")) == approx(20.0)
    assert change_recipe(node, RecipeId("Recipe_IngotIron_C"), db) is None
    assert change_recipe(Building(MINER, MinerSettings()).build_node(db), RecipeId("Recipe_IronPlate_C"), db) is None


def test_change_item(db):
    """change_item should set resources and fuels for the kinds that have them"""
    miner = change_item(Building(MINER, MinerSettings(ORE)).build_node(db), COPPER_ORE, db)
    assert miner.balance.rate(COPPER_ORE) == approx(60.0)
    assert change_item(miner, ItemId("Desc_Coal_C"), db) is None

    generator = Building(BuildingId("Desc_GeneratorCoal_C"), GeneratorSettings()).build_node(db)
    assert change_item(generator, ItemId("Desc_Coal_C"), db).balance.power == approx(75.0)

    station = Building(BuildingId("Desc_TruckStation_C"), StationSettings()).build_node(db)
    assert change_item(station, ItemId("Desc_Leaves_C"), db).building.settings.fuel == ItemId("Desc_Leaves_C")

    assert change_item(smelter_node(db), ORE, db) is None


def test_change_item_or_power(db):
    """balance adjustments can target power or any known item"""
    node = Building(BuildingId("Desc_BalanceAdjustment_C"), BalanceAdjustmentSettings(None, 10.0)).build_node(db)
    power = change_item_or_power(node, POWER, db)
    assert power.balance.power == 10.0
    item = change_item_or_power(power, ORE, db)
    assert item.balance.rate(ORE) == 10.0
    assert item.balance.power == 0.0
    assert change_item_or_power(item, ORE, db) is None
    assert change_item_or_power(smelter_node(db), POWER, db) is None


def test_change_clock_speed_clamps(db):
    """clock changes should be clamped and rejected for unclocked kinds"""
    fast = change_clock_speed(smelter_node(db), 5.0, db)
    assert fast.building.settings.clock_speed == 2.5
    slow = change_clock_speed(smelter_node(db), 0.0, db)
    assert slow.building.settings.clock_speed == 0.01
    radar = Building(BuildingId("Desc_RadarTower_C"), PowerConsumerSettings()).build_node(db)
    assert change_clock_speed(radar, 2.0, db) is None
    assert change_clock_speed(smelter_node(db), 1.0, db) is None


def test_change_purity(db):
    """purity applies to miners and geothermal generators"""
    miner = Building(MINER, MinerSettings(ORE)).build_node(db)
    assert change_purity(miner, ResourcePurity.PURE, db).balance.rate(ORE) == approx(120.0)
    assert change_purity(miner, ResourcePurity.NORMAL, db) is None
    geo = Building(BuildingId("Desc_GeneratorGeoThermal_C"), GeothermalSettings()).build_node(db)
    assert change_purity(geo, ResourcePurity.IMPURE, db).balance.power == 100.0
    assert change_purity(smelter_node(db), ResourcePurity.PURE, db) is None


def test_change_pump_purity(db):
    """pad counts should be set per purity"""
    node = Building(BuildingId("Desc_FrackingSmasher_C"), PumpSettings(OIL)).build_node(db)
    two_pure = change_pump_purity(node, ResourcePurity.PURE, 2, db)
    assert two_pure.balance.rate(OIL) == approx(240.0)
    mixed = change_pump_purity(two_pure, ResourcePurity.IMPURE, 1, db)
    assert mixed.building.settings.pads == (ResourcePurity.PURE, ResourcePurity.PURE, ResourcePurity.IMPURE)
    assert change_pump_purity(mixed, ResourcePurity.PURE, 2, db) is None
    assert change_pump_purity(smelter_node(db), ResourcePurity.PURE, 1, db) is None


def test_change_rate(db):
    """rate applies to station consumption and adjustment rate"""
    station = Building(BuildingId("Desc_TruckStation_C"), StationSettings(ItemId("Desc_Coal_C"), 1.0)).build_node(db)
    assert change_rate(station, 6.0, db).balance.rate(ItemId("Desc_Coal_C")) == -6.0
    adjustment = Building(BuildingId("Desc_BalanceAdjustment_C"), BalanceAdjustmentSettings(POWER, 1.0)).build_node(db)
    assert change_rate(adjustment, -7.0, db).balance.power == -7.0
    assert change_rate(adjustment, 1.0, db) is None
    assert change_rate(smelter_node(db), 1.0, db) is None
