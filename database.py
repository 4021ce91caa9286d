"""Read-only game database of items, recipes and buildings keyed by interned IDs."""

import json
import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from functools import cache
from typing import ClassVar

from frozendict import frozendict

_LOGGER = logging.getLogger("satisfactory_accounting")

_DATA_DIR = os.path.dirname(os.path.abspath(__file__))

# Serialized marker used wherever either an item or power can be referenced.
POWER = "_Power_"


class _InternedId(str):
    """Base for typed symbol IDs. Equal IDs of the same type share one instance."""

    __slots__ = ()
    _interned: ClassVar[dict[str, "_InternedId"]] = {}

    def __new__(cls, value: str):
        if type(value) is cls:
            return value
        value = str(value)
        existing = cls._interned.get(value)
        if existing is None:
            existing = super().__new__(cls, value)
            cls._interned[value] = existing
        return existing

    def __repr__(self) -> str:
        return f"{type(self).__name__}({str.__repr__(self)})"


class RecipeId(_InternedId):
    """Id of a recipe."""

    __slots__ = ()
    _interned: ClassVar[dict[str, "RecipeId"]] = {}


class ItemId(_InternedId):
    """Id of an item."""

    __slots__ = ()
    _interned: ClassVar[dict[str, "ItemId"]] = {}

    @classmethod
    def water(cls) -> "ItemId":
        """Get the ItemId for water."""
        return cls("Desc_Water_C")


class BuildingId(_InternedId):
    """Id of a building type."""

    __slots__ = ()
    _interned: ClassVar[dict[str, "BuildingId"]] = {}


@dataclass(frozen=True)
class ItemAmount:
    """An input or output: a number of items produced or consumed"""

    item: ItemId
    # Can only be fractional for fluids.
    amount: float


@dataclass(frozen=True)
class Fuel:
    """Settings for an item that can be burned"""

    # Energy in MJ per item.
    energy: float
    # Items produced per fuel item consumed.
    byproducts: tuple[ItemAmount, ...] = ()


@dataclass(frozen=True)
class Item:
    """A solid or fluid item"""

    id: ItemId
    name: str
    image: str = ""
    description: str = ""
    fuel: Fuel | None = None
    produced_by: tuple[RecipeId, ...] = ()
    consumed_by: tuple[RecipeId, ...] = ()
    mined_by: tuple[BuildingId, ...] = ()
    mining_speed: float = 0.0


@dataclass(frozen=True)
class Recipe:
    """A machine recipe converting ingredients into products"""

    id: RecipeId
    name: str
    # Seconds per run at 100% clock.
    time: float
    ingredients: tuple[ItemAmount, ...] = ()
    products: tuple[ItemAmount, ...] = ()
    image: str = ""
    is_alternate: bool = False
    produced_in: tuple[BuildingId, ...] = ()

    def __post_init__(self):
        if not self.time > 0:
            raise ValueError(f"Recipe {self.id} has non-positive time {self.time}")


@dataclass(frozen=True)
class Power:
    """Power usage or production of a building at 100% clock.

    power is in MW and never negative. power_exponent of 0 means the building cannot be
    overclocked.
    """

    power: float
    power_exponent: float = 0.0

    def get_consumption_rate(self, clock_speed: float) -> float:
        """Get the rate of power consumption at the given clock speed.

        Precondition:
            clock_speed >= 0

        Postcondition:
            returns power * clock_speed ** power_exponent

        Args:
            clock_speed: clock as a fraction (1.0 is 100%)

        Returns:
            consumed MW, non-negative
        """
        return self.power * clock_speed**self.power_exponent

    def get_production_rate(self, clock_speed: float) -> float:
        """Get the rate of power production at the given clock speed.

        Precondition:
            clock_speed >= 0

        Postcondition:
            returns power when the exponent is 0
            otherwise returns power * clock_speed ** (1 / power_exponent)

        Args:
            clock_speed: clock as a fraction (1.0 is 100%)

        Returns:
            produced MW, non-negative
        """
        if self.power_exponent == 0:
            return self.power
        return self.power * clock_speed ** (1.0 / self.power_exponent)

    def overclockable(self) -> bool:
        """Whether this power curve allows changing the clock."""
        return self.power_exponent != 0


class BuildingKindId(Enum):
    """Identifies a kind of building and the matching kind of building settings"""

    MANUFACTURER = "Manufacturer"
    MINER = "Miner"
    GENERATOR = "Generator"
    PUMP = "Pump"
    GEOTHERMAL = "Geothermal"
    POWER_CONSUMER = "PowerConsumer"
    STATION = "Station"
    BALANCE_ADJUSTMENT = "BalanceAdjustment"


def _check_cycle_time(cycle_time: float) -> None:
    """Raises ValueError unless cycle_time is positive."""
    if not cycle_time > 0:
        raise ValueError(f"Extractor cycle_time must be positive, got {cycle_time}")


@dataclass(frozen=True)
class Manufacturer:
    """Consumes power to convert inputs to outputs with a recipe"""

    kind_id: ClassVar[BuildingKindId] = BuildingKindId.MANUFACTURER

    manufacturing_speed: float
    available_recipes: tuple[RecipeId, ...]
    power_consumption: Power

    def overclockable(self) -> bool:
        return self.power_consumption.overclockable()


@dataclass(frozen=True)
class Miner:
    """Consumes power to extract a resource from a resource node"""

    kind_id: ClassVar[BuildingKindId] = BuildingKindId.MINER

    allowed_resources: tuple[ItemId, ...]
    items_per_cycle: float
    # Seconds per extraction cycle.
    cycle_time: float
    power_consumption: Power

    def __post_init__(self):
        _check_cycle_time(self.cycle_time)

    def overclockable(self) -> bool:
        return self.power_consumption.overclockable()


@dataclass(frozen=True)
class Generator:
    """Produces power by burning fuel"""

    kind_id: ClassVar[BuildingKindId] = BuildingKindId.GENERATOR

    allowed_fuel: tuple[ItemId, ...]
    # Water consumed per MW produced.
    used_water: float
    power_production: Power

    def overclockable(self) -> bool:
        return self.power_production.overclockable()


@dataclass(frozen=True)
class Pump:
    """Extracts a resource from several resource pads"""

    kind_id: ClassVar[BuildingKindId] = BuildingKindId.PUMP

    allowed_resources: tuple[ItemId, ...]
    # Per pad, per cycle.
    items_per_cycle: float
    cycle_time: float
    power_consumption: Power

    def __post_init__(self):
        _check_cycle_time(self.cycle_time)

    def overclockable(self) -> bool:
        return self.power_consumption.overclockable()


@dataclass(frozen=True)
class Geothermal:
    """Produces power on a geothermal pad. Cannot be overclocked."""

    kind_id: ClassVar[BuildingKindId] = BuildingKindId.GEOTHERMAL

    power: float

    def overclockable(self) -> bool:
        return False


@dataclass(frozen=True)
class PowerConsumer:
    """Consumes a fixed amount of power and nothing else"""

    kind_id: ClassVar[BuildingKindId] = BuildingKindId.POWER_CONSUMER

    power: float

    def overclockable(self) -> bool:
        return False


@dataclass(frozen=True)
class Station:
    """Vehicle station which consumes power and refuels vehicles"""

    kind_id: ClassVar[BuildingKindId] = BuildingKindId.STATION

    power: float
    allowed_fuel: tuple[ItemId, ...]

    def overclockable(self) -> bool:
        return False


@dataclass(frozen=True)
class BalanceAdjustment:
    """Arbitrary user-entered change to an item or power balance"""

    kind_id: ClassVar[BuildingKindId] = BuildingKindId.BALANCE_ADJUSTMENT

    def overclockable(self) -> bool:
        return False


BuildingKind = (
    Manufacturer | Miner | Generator | Pump | Geothermal | PowerConsumer | Station | BalanceAdjustment
)

_KIND_TYPES: dict[BuildingKindId, type] = {
    kind.kind_id: kind
    for kind in (
        Manufacturer, Miner, Generator, Pump, Geothermal, PowerConsumer, Station, BalanceAdjustment
    )
}


@dataclass(frozen=True)
class BuildingType:
    """A building that can be placed in the tree"""

    id: BuildingId
    name: str
    kind: BuildingKind
    image: str = ""
    description: str = ""

    def overclockable(self) -> bool:
        """Return True if this type of building can be overclocked."""
        return self.kind.overclockable()


@dataclass(frozen=True)
class Database:
    """Immutable lookup of recipes, items and buildings.

    Maps are sorted by ID so iteration order is stable.
    """

    recipes: frozendict = field(default_factory=frozendict)
    items: frozendict = field(default_factory=frozendict)
    buildings: frozendict = field(default_factory=frozendict)
    icon_prefix: str = ""

    @classmethod
    def new(
        cls,
        recipes: list[Recipe] = (),
        items: list[Item] = (),
        buildings: list[BuildingType] = (),
        icon_prefix: str = "",
    ) -> "Database":
        """Build a database from lists of records.

        Precondition:
            IDs are unique within each list

        Postcondition:
            returns a Database whose maps are keyed by record id, sorted by id

        Args:
            recipes: recipe records
            items: item records
            buildings: building records
            icon_prefix: static path prefix for icons

        Returns:
            new Database
        """
        return cls(
            recipes=frozendict(sorted((recipe.id, recipe) for recipe in recipes)),
            items=frozendict(sorted((item.id, item) for item in items)),
            buildings=frozendict(sorted((building.id, building) for building in buildings)),
            icon_prefix=icon_prefix,
        )

    def get(self, id_: RecipeId | ItemId | BuildingId):
        """Look up a recipe, item or building by its typed id.

        Precondition:
            id_ is a RecipeId, ItemId or BuildingId

        Postcondition:
            returns the matching record, or None when the id is not present
            absence is an ordinary outcome (e.g. stale saved data)

        Args:
            id_: typed id to look up

        Returns:
            Recipe, Item, BuildingType or None

        Raises:
            TypeError: if id_ is not one of the typed id classes
        """
        if isinstance(id_, RecipeId):
            return self.recipes.get(id_)
        if isinstance(id_, ItemId):
            return self.items.get(id_)
        if isinstance(id_, BuildingId):
            return self.buildings.get(id_)
        raise TypeError(f"Not a database id: {id_!r}")

    def compare_ignore_prefix(self, other: "Database") -> bool:
        """Compare the content of two databases, ignoring icon prefixes."""
        return (
            self.recipes == other.recipes
            and self.items == other.items
            and self.buildings == other.buildings
        )


class DatabaseVersion(Enum):
    """Named versions of the bundled database"""

    SAMPLE = ("db-sample.json", "Sample", "Small bundled database covering every building kind.")

    def __init__(self, file_name: str, display_name: str, description: str):
        self.file_name = file_name
        self.display_name = display_name
        self.description = description

    @classmethod
    def latest(cls) -> "DatabaseVersion":
        return list(cls)[-1]

    def is_deprecated(self) -> bool:
        """Every version other than the latest is deprecated."""
        return self is not DatabaseVersion.latest()

    def load_database(self) -> "Database":
        """Load (once) and return the database for this version."""
        return _load_bundled(self.file_name)


@cache
def _load_bundled(file_name: str) -> Database:
    return load_database(os.path.join(_DATA_DIR, file_name))


def load_database(path: str) -> Database:
    """Load a database from a JSON file.

    Precondition:
        path names a readable UTF-8 JSON file in the database layout

    Postcondition:
        returns the parsed Database

    Args:
        path: file to read

    Returns:
        parsed Database

    Raises:
        OSError: if the file cannot be read
        KeyError, ValueError: if the content is malformed
    """
    with open(path, "r", encoding="utf-8") as f:
        database = database_from_dict(json.load(f))
    _LOGGER.info(
        "Loaded database from %s: %s recipes, %s items, %s buildings",
        os.path.basename(path),
        len(database.recipes),
        len(database.items),
        len(database.buildings),
    )
    return database


def _amounts_from(raw: list[dict]) -> tuple[ItemAmount, ...]:
    return tuple(ItemAmount(ItemId(entry["item"]), float(entry["amount"])) for entry in raw)


def _amounts_to(amounts: tuple[ItemAmount, ...]) -> list[dict]:
    return [{"item": str(amount.item), "amount": amount.amount} for amount in amounts]


def _power_from(raw: dict) -> Power:
    return Power(float(raw["power"]), float(raw.get("power_exponent", 0.0)))


def _power_to(power: Power) -> dict:
    return {"power": power.power, "power_exponent": power.power_exponent}


def _kind_from(raw: dict | str) -> BuildingKind:
    """Parse an externally tagged building kind."""
    if isinstance(raw, str):
        tag, body = raw, {}
    else:
        ((tag, body),) = raw.items()
    kind_id = BuildingKindId(tag)
    if kind_id is BuildingKindId.MANUFACTURER:
        return Manufacturer(
            manufacturing_speed=float(body.get("manufacturing_speed", 1.0)),
            available_recipes=tuple(RecipeId(r) for r in body.get("available_recipes", ())),
            power_consumption=_power_from(body["power_consumption"]),
        )
    if kind_id is BuildingKindId.MINER:
        return Miner(
            allowed_resources=tuple(ItemId(i) for i in body.get("allowed_resources", ())),
            items_per_cycle=float(body["items_per_cycle"]),
            cycle_time=float(body["cycle_time"]),
            power_consumption=_power_from(body["power_consumption"]),
        )
    if kind_id is BuildingKindId.GENERATOR:
        return Generator(
            allowed_fuel=tuple(ItemId(i) for i in body.get("allowed_fuel", ())),
            used_water=float(body.get("used_water", 0.0)),
            power_production=_power_from(body["power_production"]),
        )
    if kind_id is BuildingKindId.PUMP:
        return Pump(
            allowed_resources=tuple(ItemId(i) for i in body.get("allowed_resources", ())),
            items_per_cycle=float(body["items_per_cycle"]),
            cycle_time=float(body["cycle_time"]),
            power_consumption=_power_from(body["power_consumption"]),
        )
    if kind_id is BuildingKindId.GEOTHERMAL:
        return Geothermal(power=float(body["power"]))
    if kind_id is BuildingKindId.POWER_CONSUMER:
        return PowerConsumer(power=float(body["power"]))
    if kind_id is BuildingKindId.STATION:
        return Station(
            power=float(body["power"]),
            allowed_fuel=tuple(ItemId(i) for i in body.get("allowed_fuel", ())),
        )
    return BalanceAdjustment()


def _kind_to(kind: BuildingKind) -> dict:
    if isinstance(kind, Manufacturer):
        body = {
            "manufacturing_speed": kind.manufacturing_speed,
            "available_recipes": [str(r) for r in kind.available_recipes],
            "power_consumption": _power_to(kind.power_consumption),
        }
    elif isinstance(kind, (Miner, Pump)):
        body = {
            "allowed_resources": [str(i) for i in kind.allowed_resources],
            "items_per_cycle": kind.items_per_cycle,
            "cycle_time": kind.cycle_time,
            "power_consumption": _power_to(kind.power_consumption),
        }
    elif isinstance(kind, Generator):
        body = {
            "allowed_fuel": [str(i) for i in kind.allowed_fuel],
            "used_water": kind.used_water,
            "power_production": _power_to(kind.power_production),
        }
    elif isinstance(kind, (Geothermal, PowerConsumer)):
        body = {"power": kind.power}
    elif isinstance(kind, Station):
        body = {"power": kind.power, "allowed_fuel": [str(i) for i in kind.allowed_fuel]}
    else:
        body = {}
    return {kind.kind_id.value: body}


def database_from_dict(raw: dict) -> Database:
    """Parse a database from its JSON-compatible dict form.

    Precondition:
        raw has "recipes", "items" and "buildings" maps keyed by id

    Postcondition:
        returns a Database; optional record fields missing from raw are default-filled

    Args:
        raw: decoded JSON content

    Returns:
        parsed Database

    Raises:
        ValueError: if a recipe time or extractor cycle_time is not positive
    """
    recipes = [
        Recipe(
            id=RecipeId(rid),
            name=body.get("name", rid),
            time=float(body["time"]),
            ingredients=_amounts_from(body.get("ingredients", [])),
            products=_amounts_from(body.get("products", [])),
            image=body.get("image", ""),
            is_alternate=bool(body.get("is_alternate", False)),
            produced_in=tuple(BuildingId(b) for b in body.get("produced_in", ())),
        )
        for rid, body in raw.get("recipes", {}).items()
    ]
    items = []
    for iid, body in raw.get("items", {}).items():
        fuel = body.get("fuel")
        items.append(
            Item(
                id=ItemId(iid),
                name=body.get("name", iid),
                image=body.get("image", ""),
                description=body.get("description", ""),
                fuel=Fuel(float(fuel["energy"]), _amounts_from(fuel.get("byproducts", [])))
                if fuel is not None
                else None,
                produced_by=tuple(RecipeId(r) for r in body.get("produced_by", ())),
                consumed_by=tuple(RecipeId(r) for r in body.get("consumed_by", ())),
                mined_by=tuple(BuildingId(b) for b in body.get("mined_by", ())),
                mining_speed=float(body.get("mining_speed", 0.0)),
            )
        )
    buildings = [
        BuildingType(
            id=BuildingId(bid),
            name=body.get("name", bid),
            kind=_kind_from(body["kind"]),
            image=body.get("image", ""),
            description=body.get("description", ""),
        )
        for bid, body in raw.get("buildings", {}).items()
    ]
    return Database.new(recipes, items, buildings, raw.get("icon_prefix", ""))


def database_to_dict(database: Database) -> dict:
    """Convert a database to its JSON-compatible dict form (inverse of database_from_dict)."""
    return {
        "icon_prefix": database.icon_prefix,
        "recipes": {
            str(recipe.id): {
                "name": recipe.name,
                "id": str(recipe.id),
                "image": recipe.image,
                "time": recipe.time,
                "ingredients": _amounts_to(recipe.ingredients),
                "products": _amounts_to(recipe.products),
                "is_alternate": recipe.is_alternate,
                "produced_in": [str(b) for b in recipe.produced_in],
            }
            for recipe in database.recipes.values()
        },
        "items": {
            str(item.id): {
                "name": item.name,
                "id": str(item.id),
                "image": item.image,
                "description": item.description,
                "fuel": {"energy": item.fuel.energy, "byproducts": _amounts_to(item.fuel.byproducts)}
                if item.fuel is not None
                else None,
                "produced_by": [str(r) for r in item.produced_by],
                "consumed_by": [str(r) for r in item.consumed_by],
                "mined_by": [str(b) for b in item.mined_by],
                "mining_speed": item.mining_speed,
            }
            for item in database.items.values()
        },
        "buildings": {
            str(building.id): {
                "name": building.name,
                "id": str(building.id),
                "image": building.image,
                "description": building.description,
                "kind": _kind_to(building.kind),
            }
            for building in database.buildings.values()
        },
    }
