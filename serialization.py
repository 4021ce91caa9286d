"""Stable JSON-compatible form of trees, balances, metadata and worlds.

Unions are externally tagged ({"Group": {...}}), unit variants are bare strings, ids and
uuids are plain strings. Readers default-fill missing fields so older files still load.
"""

import json
import logging
import uuid
from dataclasses import dataclass, field

from frozendict import frozendict

from accounting import (
    BalanceAdjustmentSettings,
    Building,
    BuildError,
    BuildingSettings,
    GeneratorSettings,
    GeothermalSettings,
    Group,
    IncompatibleItem,
    IncompatibleRecipe,
    ManufacturerSettings,
    MinerSettings,
    MismatchedKind,
    Node,
    NotFuel,
    PowerConsumerSettings,
    PumpSettings,
    ResourcePurity,
    StationSettings,
    UnknownBuilding,
    UnknownItem,
    UnknownRecipe,
)
from balance import Balance
from database import (
    POWER,
    BuildingId,
    BuildingKindId,
    Database,
    DatabaseVersion,
    ItemId,
    RecipeId,
    database_from_dict,
    database_to_dict,
)
from node_meta import NodeMeta, NodeMetas

_LOGGER = logging.getLogger("satisfactory_accounting")


def _tagged(raw) -> tuple[str, object]:
    """Split an externally tagged value into (tag, body)."""
    if isinstance(raw, str):
        return raw, None
    if not isinstance(raw, dict) or len(raw) != 1:
        raise ValueError(f"Expected a single-key tagged value, got {raw!r}")
    ((tag, body),) = raw.items()
    return tag, body


def _opt(value, id_type):
    return None if value is None else id_type(value)


# ========== Balance ==========


def balance_to_dict(balance: Balance) -> dict:
    return {"power": balance.power, "balances": {str(item): rate for item, rate in balance.balances.items()}}


def balance_from_dict(raw: dict | None) -> Balance:
    if not raw:
        return Balance.empty()
    return Balance(
        float(raw.get("power", 0.0)),
        frozendict({ItemId(item): float(rate) for item, rate in raw.get("balances", {}).items()}),
    )


# ========== Build Errors ==========


def build_error_to_dict(error: BuildError) -> dict:
    if isinstance(error, (UnknownBuilding, UnknownRecipe, UnknownItem, NotFuel)):
        return {type(error).__name__: str(error.args[0])}
    if isinstance(error, IncompatibleRecipe):
        return {"IncompatibleRecipe": {"recipe": str(error.recipe), "building": str(error.building)}}
    if isinstance(error, IncompatibleItem):
        return {"IncompatibleItem": {"item": str(error.item), "building": str(error.building)}}
    if isinstance(error, MismatchedKind):
        return {
            "MismatchedKind": {
                "settings_kind": error.settings_kind.value,
                "type_kind": error.type_kind.value,
            }
        }
    raise TypeError(f"Unknown build error {error!r}")


def build_error_from_dict(raw) -> BuildError:
    tag, body = _tagged(raw)
    if tag == "UnknownBuilding":
        return UnknownBuilding(BuildingId(body))
    if tag == "UnknownRecipe":
        return UnknownRecipe(RecipeId(body))
    if tag == "UnknownItem":
        return UnknownItem(ItemId(body))
    if tag == "NotFuel":
        return NotFuel(ItemId(body))
    if tag == "IncompatibleRecipe":
        return IncompatibleRecipe(RecipeId(body["recipe"]), BuildingId(body["building"]))
    if tag == "IncompatibleItem":
        return IncompatibleItem(ItemId(body["item"]), BuildingId(body["building"]))
    if tag == "MismatchedKind":
        return MismatchedKind(BuildingKindId(body["settings_kind"]), BuildingKindId(body["type_kind"]))
    raise ValueError(f"Unknown build error tag '{tag}'")


# ========== Settings ==========


def _purity_to(purity: ResourcePurity) -> str:
    return purity.display_name


def _purity_from(raw: str | None) -> ResourcePurity:
    if raw is None:
        return ResourcePurity.NORMAL
    return ResourcePurity.from_ident(raw.lower())


def settings_to_dict(settings: BuildingSettings) -> dict | str:
    """Convert building settings to their tagged form."""
    if isinstance(settings, ManufacturerSettings):
        body = {"recipe": _opt(settings.recipe, str), "clock_speed": settings.clock_speed}
    elif isinstance(settings, MinerSettings):
        body = {
            "resource": _opt(settings.resource, str),
            "clock_speed": settings.clock_speed,
            "purity": _purity_to(settings.purity),
        }
    elif isinstance(settings, GeneratorSettings):
        body = {"fuel": _opt(settings.fuel, str), "clock_speed": settings.clock_speed}
    elif isinstance(settings, PumpSettings):
        body = {
            "resource": _opt(settings.resource, str),
            "clock_speed": settings.clock_speed,
            "pads": [_purity_to(pad) for pad in settings.pads],
        }
    elif isinstance(settings, GeothermalSettings):
        body = {"purity": _purity_to(settings.purity)}
    elif isinstance(settings, PowerConsumerSettings):
        return settings.kind_id.value
    elif isinstance(settings, StationSettings):
        body = {"fuel": _opt(settings.fuel, str), "consumption": settings.consumption}
    elif isinstance(settings, BalanceAdjustmentSettings):
        body = {"item_or_power": _opt(settings.item_or_power, str), "rate": settings.rate}
    else:
        raise TypeError(f"Unknown building settings {settings!r}")
    return {settings.kind_id.value: body}


def _pads_from(body: dict) -> tuple[ResourcePurity, ...]:
    if "pads" in body:
        return tuple(_purity_from(pad) for pad in body["pads"])
    # Older files stored one count per purity.
    return (
        (ResourcePurity.PURE,) * int(body.get("pure_pads", 0))
        + (ResourcePurity.NORMAL,) * int(body.get("normal_pads", 0))
        + (ResourcePurity.IMPURE,) * int(body.get("impure_pads", 0))
    )


def settings_from_dict(raw) -> BuildingSettings:
    tag, body = _tagged(raw)
    kind_id = BuildingKindId(tag)
    body = body or {}
    clock = float(body.get("clock_speed", 1.0))
    if kind_id is BuildingKindId.MANUFACTURER:
        return ManufacturerSettings(_opt(body.get("recipe"), RecipeId), clock)
    if kind_id is BuildingKindId.MINER:
        return MinerSettings(_opt(body.get("resource"), ItemId), clock, _purity_from(body.get("purity")))
    if kind_id is BuildingKindId.GENERATOR:
        return GeneratorSettings(_opt(body.get("fuel"), ItemId), clock)
    if kind_id is BuildingKindId.PUMP:
        return PumpSettings(_opt(body.get("resource"), ItemId), clock, _pads_from(body))
    if kind_id is BuildingKindId.GEOTHERMAL:
        return GeothermalSettings(_purity_from(body.get("purity")))
    if kind_id is BuildingKindId.POWER_CONSUMER:
        return PowerConsumerSettings()
    if kind_id is BuildingKindId.STATION:
        return StationSettings(_opt(body.get("fuel"), ItemId), float(body.get("consumption", 0.0)))
    target = body.get("item_or_power")
    return BalanceAdjustmentSettings(
        None if target is None else POWER if target == POWER else ItemId(target),
        float(body.get("rate", 0.0)),
    )


# ========== Nodes ==========


def node_to_dict(node: Node) -> dict:
    """Convert a node and its whole subtree to the saved form.

    children_had_warnings is not saved; it is recomputed when reading.
    """
    if node.group is not None:
        group = node.group
        kind = {
            "Group": {
                "name": group.name,
                "children": [node_to_dict(child) for child in group.children],
                "copies": group.copies,
                "id": str(group.id),
            }
        }
    else:
        building = node.building
        kind = {
            "Building": {
                "building": _opt(building.building, str),
                "settings": settings_to_dict(building.settings),
                "copies": building.copies,
            }
        }
    return {
        "kind": kind,
        "balance": balance_to_dict(node.balance),
        "warning": None if node.warning is None else build_error_to_dict(node.warning),
    }


def node_from_dict(raw: dict) -> Node:
    """Read a node saved by node_to_dict.

    Precondition:
        raw is a dict with a tagged "kind"; "balance" and "warning" are optional

    Postcondition:
        returns the Node with its stored balance and warning
        groups without an id get a fresh one; missing copies default to 1

    Args:
        raw: decoded JSON content

    Returns:
        Node
    """
    tag, body = _tagged(raw["kind"])
    if tag == "Group":
        raw_id = body.get("id")
        kind = Group(
            name=body.get("name", ""),
            children=tuple(node_from_dict(child) for child in body.get("children", ())),
            copies=int(body.get("copies", 1)),
            id=uuid.UUID(raw_id) if raw_id else uuid.uuid4(),
        )
    elif tag == "Building":
        kind = Building(
            building=_opt(body.get("building"), BuildingId),
            settings=settings_from_dict(body.get("settings", "PowerConsumer")),
            copies=float(body.get("copies", 1.0)),
        )
    else:
        raise ValueError(f"Unknown node kind '{tag}'")
    warning = raw.get("warning")
    return Node.new(
        kind,
        balance_from_dict(raw.get("balance")),
        None if warning is None else build_error_from_dict(warning),
    )


# ========== Metadata and Worlds ==========


def node_metas_to_dict(metas: NodeMetas) -> dict:
    return {str(gid): {"collapsed": meta.collapsed} for gid, meta in metas.metas.items()}


def node_metas_from_dict(raw: dict | None) -> NodeMetas:
    if not raw:
        return NodeMetas()
    return NodeMetas(
        frozendict({uuid.UUID(gid): NodeMeta(bool(meta.get("collapsed", False))) for gid, meta in raw.items()})
    )


def database_choice_to_dict(choice: DatabaseVersion | Database):
    if isinstance(choice, DatabaseVersion):
        return choice.name
    return {"Custom": database_to_dict(choice)}


def database_choice_from_dict(raw) -> DatabaseVersion | Database:
    if raw is None:
        return DatabaseVersion.latest()
    tag, body = _tagged(raw)
    if tag == "Custom":
        return database_from_dict(body)
    return DatabaseVersion[tag]


@dataclass(frozen=True)
class World:
    """Everything saved for one factory"""

    root: Node = field(default_factory=Group.empty_node)
    database: DatabaseVersion | Database = field(default_factory=DatabaseVersion.latest)
    node_metadata: NodeMetas = field(default_factory=NodeMetas)


def world_to_dict(world: World) -> dict:
    return {
        "root": node_to_dict(world.root),
        "database": database_choice_to_dict(world.database),
        "node_metadata": node_metas_to_dict(world.node_metadata),
    }


def world_from_dict(raw: dict) -> World:
    root = node_from_dict(raw["root"]) if "root" in raw else Group.empty_node()
    return World(
        root=root,
        database=database_choice_from_dict(raw.get("database")),
        node_metadata=node_metas_from_dict(raw.get("node_metadata")),
    )


def load_world(path: str) -> World:
    """Read a world JSON file."""
    with open(path, "r", encoding="utf-8") as f:
        world = world_from_dict(json.load(f))
    _LOGGER.info("Loaded world from %s", path)
    return world


def save_world(world: World, path: str) -> None:
    """Write a world JSON file."""
    with open(path, "w", encoding="utf-8") as f:
        json.dump(world_to_dict(world), f, indent=2)
    _LOGGER.info("Saved world to %s", path)
