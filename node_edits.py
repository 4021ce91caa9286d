"""Edit operations applied to a single node.

Each function takes the node being edited and returns its replacement, or None when
the edit does not apply (wrong node kind, stale index, incompatible choice) or would
change nothing. Rejected edits are logged.
"""

import logging
import math
from dataclasses import replace

from accounting import (
    BalanceAdjustmentSettings,
    Building,
    BuildError,
    GeneratorSettings,
    GeothermalSettings,
    ManufacturerSettings,
    MinerSettings,
    Node,
    PumpSettings,
    ResourcePurity,
    StationSettings,
    clamp_clock,
)
from database import (
    POWER,
    BalanceAdjustment,
    BuildingId,
    Database,
    Generator,
    ItemId,
    Manufacturer,
    Miner,
    Pump,
    RecipeId,
    Station,
)
from node_meta import NodeMetas
from graph_manipulation import copy_with_metadata

_LOGGER = logging.getLogger("satisfactory_accounting")


def _build(building: Building, database: Database) -> Node | None:
    try:
        return building.build_node(database)
    except BuildError as err:
        _LOGGER.warning("Unable to build node: %s", err)
        return None


def _group_with_children(node: Node, children: list[Node]) -> Node:
    return replace(node.group, children=tuple(children)).build_node()


def _building_kind(building: Building, database: Database, action: str):
    """Kind record of the building's type, or None (logged) if it cannot be resolved."""
    if building.building is None:
        _LOGGER.warning("Cannot %s, building not set", action)
        return None
    building_type = database.get(building.building)
    if building_type is None:
        _LOGGER.warning("Cannot %s, unknown building %s", action, building.building)
        return None
    return building_type.kind


# ========== Group Edits ==========


def rename(node: Node, name: str) -> Node | None:
    """Rename a group. The name is trimmed; an unchanged name is not an edit."""
    group = node.group
    if group is None:
        _LOGGER.warning("Cannot rename a non-group")
        return None
    name = name.strip()
    if name == group.name:
        return None
    return replace(node, kind=replace(group, name=name))


def set_copies(node: Node, copies: float, database: Database) -> Node | None:
    """Set the copy count of a group or building.

    Precondition:
        copies is a finite number

    Postcondition:
        group: copies becomes abs(copies) rounded half away from zero and the balance is recomputed
        building: copies becomes abs(copies) and the building is rebuilt
        returns None if the value is unchanged or the building cannot be built

    Args:
        node: group or building node
        copies: requested copy count
        database: database to rebuild buildings with

    Returns:
        replacement node or None
    """
    if node.group is not None:
        whole = math.floor(abs(copies) + 0.5)
        if whole == node.group.copies:
            return None
        return replace(node.group, copies=whole).build_node()
    building = node.building
    copies = abs(copies)
    if copies == building.copies:
        return None
    return _build(replace(building, copies=copies), database)


def replace_child(node: Node, idx: int, replacement: Node) -> Node | None:
    group = node.group
    if group is None:
        _LOGGER.warning("Cannot replace child of a non-group")
        return None
    if not 0 <= idx < len(group.children):
        _LOGGER.warning("Cannot replace child index %s; out of range for this group", idx)
        return None
    children = list(group.children)
    children[idx] = replacement
    return _group_with_children(node, children)


def delete_child(node: Node, idx: int) -> Node | None:
    group = node.group
    if group is None:
        _LOGGER.warning("Cannot delete child of a non-group")
        return None
    if not 0 <= idx < len(group.children):
        _LOGGER.warning("Cannot delete child index %s; out of range for this group", idx)
        return None
    children = list(group.children)
    del children[idx]
    return _group_with_children(node, children)


def copy_child(node: Node, idx: int, metas: NodeMetas) -> tuple[Node, NodeMetas] | None:
    """Insert a deep copy of child idx right after it.

    Copied groups get fresh ids and inherit the metadata of their originals in one
    batch update of the overlay.

    Returns:
        (replacement group node, updated overlay) or None
    """
    group = node.group
    if group is None:
        _LOGGER.warning("Cannot copy child of a non-group")
        return None
    if not 0 <= idx < len(group.children):
        _LOGGER.warning("Cannot copy child index %s; out of range for this group", idx)
        return None
    copied, metas = copy_with_metadata(group.children[idx], metas)
    children = list(group.children)
    children.insert(idx + 1, copied)
    return _group_with_children(node, children), metas


def add_child(node: Node, child: Node) -> Node | None:
    """Append child to the end of a group."""
    group = node.group
    if group is None:
        _LOGGER.warning("Cannot add child to a non-group")
        return None
    return _group_with_children(node, list(group.children) + [child])


# ========== Building Edits ==========


def change_type(node: Node, building_id: BuildingId, database: Database) -> Node | None:
    """Switch a building to another building type, carrying settings over.

    Precondition:
        node is a building node

    Postcondition:
        settings are adapted with build_new_settings when the new type is known
        returns None if the type is unchanged, unknown, or the result fails to build

    Args:
        node: building node
        building_id: new building type
        database: database to resolve the type in

    Returns:
        replacement node or None
    """
    building = node.building
    if building is None:
        _LOGGER.warning("Cannot change building type id of a non-building")
        return None
    building_id = BuildingId(building_id)
    if building.building == building_id:
        return None
    new_building = replace(building, building=building_id)
    building_type = database.get(building_id)
    if building_type is None:
        _LOGGER.warning("New building ID %s is unknown", building_id)
    else:
        new_building = replace(new_building, settings=building.settings.build_new_settings(building_type.kind))
    return _build(new_building, database)


def change_recipe(node: Node, recipe_id: RecipeId, database: Database) -> Node | None:
    """Select the recipe of a manufacturer. Recipes the building cannot run are rejected."""
    building = node.building
    if building is None:
        _LOGGER.warning("Cannot change recipe id of a non-building")
        return None
    recipe_id = RecipeId(recipe_id)
    kind = _building_kind(building, database, "change recipe id")
    if kind is None:
        return None
    if not isinstance(kind, Manufacturer):
        _LOGGER.warning("Cannot change recipe id, building is not a manufacturer")
        return None
    if recipe_id not in kind.available_recipes:
        _LOGGER.warning("Recipe %s is not available for building %s", recipe_id, building.building)
        return None
    settings = building.settings
    if not isinstance(settings, ManufacturerSettings):
        _LOGGER.warning("Had to change building settings kind, did not match building kind in db")
        settings = ManufacturerSettings(clock_speed=settings.clock_speed)
    return _build(replace(building, settings=replace(settings, recipe=recipe_id)), database)


_ITEM_SETTINGS = {
    Miner: (MinerSettings, "resource", "allowed_resources"),
    Pump: (PumpSettings, "resource", "allowed_resources"),
    Generator: (GeneratorSettings, "fuel", "allowed_fuel"),
    Station: (StationSettings, "fuel", "allowed_fuel"),
}


def change_item(node: Node, item_id: ItemId, database: Database) -> Node | None:
    """Select the resource of a miner or pump, or the fuel of a generator or station.

    Precondition:
        node is a building node whose type is a miner, pump, generator or station

    Postcondition:
        returns the rebuilt node with the item selected
        returns None (after logging) if the building does not allow the item

    Args:
        node: building node
        item_id: item to select
        database: database to resolve the building in

    Returns:
        replacement node or None
    """
    building = node.building
    if building is None:
        _LOGGER.warning("Cannot change item id of a non-building")
        return None
    item_id = ItemId(item_id)
    kind = _building_kind(building, database, "change item id")
    if kind is None:
        return None
    entry = _ITEM_SETTINGS.get(type(kind))
    if entry is None:
        _LOGGER.warning("Cannot change item id, building is not a miner, generator, pump, or station")
        return None
    settings_type, field_name, allowed_name = entry
    if item_id not in getattr(kind, allowed_name):
        _LOGGER.warning("Item %s is not available for building %s", item_id, building.building)
        return None
    settings = building.settings
    if not isinstance(settings, settings_type):
        _LOGGER.warning("Had to change building settings kind, did not match building kind in db")
        settings = settings_type().with_clock_speed(settings.clock_speed)
    return _build(replace(building, settings=replace(settings, **{field_name: item_id})), database)


def change_item_or_power(node: Node, item_or_power: ItemId | str, database: Database) -> Node | None:
    """Choose what a balance adjustment applies to: an item id or POWER."""
    building = node.building
    if building is None:
        _LOGGER.warning("Cannot change item or power of a non-building")
        return None
    kind = _building_kind(building, database, "change item or power")
    if kind is None:
        return None
    if not isinstance(kind, BalanceAdjustment):
        _LOGGER.warning("Cannot change item or power, building is not a balance adjustment")
        return None
    target = POWER if item_or_power == POWER else ItemId(item_or_power)
    settings = building.settings
    if not isinstance(settings, BalanceAdjustmentSettings):
        settings = BalanceAdjustmentSettings()
    if settings.item_or_power == target:
        return None
    return _build(replace(building, settings=replace(settings, item_or_power=target)), database)


def change_clock_speed(node: Node, clock_speed: float, database: Database) -> Node | None:
    """Set the clock of a clocked building, clamped to [MIN_CLOCK, MAX_CLOCK]."""
    building = node.building
    if building is None:
        _LOGGER.warning("Cannot change clock speed of a non-building")
        return None
    if not building.settings.clocked:
        _LOGGER.warning("Cannot change clock speed of a %s", building.settings.kind_id.value)
        return None
    clock_speed = clamp_clock(clock_speed)
    if clock_speed == building.settings.clock_speed:
        return None
    return _build(replace(building, settings=building.settings.with_clock_speed(clock_speed)), database)


def change_purity(node: Node, purity: ResourcePurity, database: Database) -> Node | None:
    """Set the node purity of a miner or geothermal generator."""
    building = node.building
    if building is None:
        _LOGGER.warning("Cannot change purity of a non-building")
        return None
    if building.building is None:
        _LOGGER.warning("Cannot change purity, building not set")
        return None
    settings = building.settings
    if not isinstance(settings, (MinerSettings, GeothermalSettings)):
        _LOGGER.warning("Cannot change purity, building is not a miner or geothermal generator")
        return None
    if settings.purity is purity:
        return None
    return _build(replace(building, settings=replace(settings, purity=purity)), database)


def change_pump_purity(node: Node, purity: ResourcePurity, num_pads: int, database: Database) -> Node | None:
    """Set how many pads of one purity a pump has."""
    building = node.building
    if building is None:
        _LOGGER.warning("Cannot change pump purity of a non-building")
        return None
    settings = building.settings
    if not isinstance(settings, PumpSettings):
        _LOGGER.warning("Cannot change pump purity, building is not a pump")
        return None
    if settings.count_pads(purity) == num_pads:
        return None
    return _build(replace(building, settings=settings.with_pad_count(purity, num_pads)), database)


def change_rate(node: Node, rate: float, database: Database) -> Node | None:
    """Set the fuel consumption of a station or the rate of a balance adjustment."""
    building = node.building
    if building is None:
        _LOGGER.warning("Cannot change rate of a non-building")
        return None
    settings = building.settings
    if isinstance(settings, StationSettings):
        new_settings = replace(settings, consumption=rate)
    elif isinstance(settings, BalanceAdjustmentSettings):
        new_settings = replace(settings, rate=rate)
    else:
        _LOGGER.warning("Cannot change rate, building is not a station or balance adjustment")
        return None
    if new_settings == settings:
        return None
    return _build(replace(building, settings=new_settings), database)
