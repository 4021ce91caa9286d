"""Immutable node tree and per-building balance formulas.

A tree is made of Nodes. Each Node wraps either a Group (named, ordered children) or a
Building (building type + kind-specific settings) together with a Balance that was
computed when the Node was built. Nodes are never modified; edits build replacement
Nodes, which recomputes balances from the edit point up.
"""

import logging
import math
import uuid
from dataclasses import dataclass, field, replace
from enum import IntEnum
from typing import Callable, ClassVar, Iterator

from balance import Balance
from database import (
    POWER,
    BalanceAdjustment,
    BuildingId,
    BuildingKind,
    BuildingKindId,
    Database,
    Generator,
    Geothermal,
    ItemId,
    Manufacturer,
    Miner,
    PowerConsumer,
    Pump,
    RecipeId,
    Station,
)

_LOGGER = logging.getLogger("satisfactory_accounting")

MIN_CLOCK = 0.01
MAX_CLOCK = 2.5


def clamp_clock(clock_speed: float) -> float:
    """Clamp a clock speed to [MIN_CLOCK, MAX_CLOCK]."""
    return min(max(clock_speed, MIN_CLOCK), MAX_CLOCK)


# ========== Build Errors ==========


class BuildError(Exception):
    """Error encountered while computing the balance of a building.

    Compares equal to another error of the same type with the same fields, so a node's
    warning takes part in node equality.
    """

    def __eq__(self, other):
        return type(self) is type(other) and self.args == other.args

    def __hash__(self):
        return hash((type(self), self.args))

    def into_warning_node(self, kind: "Group | Building") -> "Node":
        """Create a node carrying this error as its warning, with an empty balance."""
        return Node.new(kind, Balance.empty(), warning=self)


class UnknownBuilding(BuildError):
    def __init__(self, building: BuildingId):
        super().__init__(building)
        self.building = building

    def __str__(self):
        return f"Building ID {self.building} is not in the database."


class UnknownRecipe(BuildError):
    def __init__(self, recipe: RecipeId):
        super().__init__(recipe)
        self.recipe = recipe

    def __str__(self):
        return f"Recipe ID {self.recipe} is not in the database."


class UnknownItem(BuildError):
    def __init__(self, item: ItemId):
        super().__init__(item)
        self.item = item

    def __str__(self):
        return f"Item ID {self.item} is not in the database."


class NotFuel(BuildError):
    def __init__(self, item: ItemId):
        super().__init__(item)
        self.item = item

    def __str__(self):
        return f"Item ID {self.item} is not a fuel."


class IncompatibleRecipe(BuildError):
    def __init__(self, recipe: RecipeId, building: BuildingId):
        super().__init__(recipe, building)
        self.recipe = recipe
        self.building = building

    def __str__(self):
        return f"Recipe {self.recipe} is not compatible with building {self.building}."


class IncompatibleItem(BuildError):
    def __init__(self, item: ItemId, building: BuildingId):
        super().__init__(item, building)
        self.item = item
        self.building = building

    def __str__(self):
        return f"Item {self.item} is not compatible with building {self.building}."


class MismatchedKind(BuildError):
    def __init__(self, settings_kind: BuildingKindId, type_kind: BuildingKindId):
        super().__init__(settings_kind, type_kind)
        self.settings_kind = settings_kind
        self.type_kind = type_kind

    def __str__(self):
        return (
            f"Mismatched BuildingKind between Building ({self.settings_kind.value}) "
            f"and BuildingType ({self.type_kind.value})."
        )


# ========== Purity ==========


class ResourcePurity(IntEnum):
    """Quality of a resource node"""

    IMPURE = 0
    NORMAL = 1
    PURE = 2

    def speed_multiplier(self) -> float:
        return _PURITY_MULTIPLIERS[self]

    def next(self) -> "ResourcePurity":
        """Next higher purity, saturating at PURE."""
        return ResourcePurity(min(self + 1, ResourcePurity.PURE))

    def previous(self) -> "ResourcePurity":
        """Next lower purity, saturating at IMPURE."""
        return ResourcePurity(max(self - 1, ResourcePurity.IMPURE))

    @property
    def display_name(self) -> str:
        return self.name.capitalize()

    @property
    def ident(self) -> str:
        return self.name.lower()

    @classmethod
    def from_ident(cls, ident: str) -> "ResourcePurity":
        """Parse a purity from its lowercase ident.

        Raises:
            ValueError: if ident does not name a purity
        """
        for purity in cls:
            if purity.ident == ident:
                return purity
        raise ValueError(f"Unknown purity '{ident}'")


_PURITY_MULTIPLIERS = {
    ResourcePurity.IMPURE: 0.5,
    ResourcePurity.NORMAL: 1.0,
    ResourcePurity.PURE: 2.0,
}


# ========== Split Copies ==========


@dataclass(frozen=True)
class SplitCopies:
    """A fractional copy count decomposed into whole machines plus one partial machine.

    whole_copies machines run at the nominal clock and, when last_clock > 0, one more
    machine runs at last_clock.
    """

    whole_copies: int
    last_clock: float

    @classmethod
    def split(cls, copies: float, clock_speed: float) -> "SplitCopies":
        whole = math.trunc(copies)
        return cls(whole, (copies - whole) * clock_speed)


# ========== Building Settings ==========


def _choose(current, allowed: tuple):
    """Keep current if allowed, otherwise auto-select a sole allowed option."""
    if current is not None and current in allowed:
        return current
    if len(allowed) == 1:
        return allowed[0]
    return None


class BuildingSettings:
    """Base for the per-kind settings of a building.

    Subclasses are frozen dataclasses. Clocked kinds have a clock_speed field; the rest
    report a clock of 1.0 and ignore clock changes.
    """

    kind_id: ClassVar[BuildingKindId]
    clocked: ClassVar[bool] = False
    clock_speed = 1.0

    def with_clock_speed(self, clock_speed: float) -> "BuildingSettings":
        """Copy of these settings with the clock changed, if this kind has a clock."""
        if not self.clocked:
            return self
        return replace(self, clock_speed=clock_speed)

    def copy_settings(self, kind: BuildingKind) -> "BuildingSettings":
        """Adapt these settings to another building of the same kind."""
        return self

    def build_new_settings(self, new_kind: BuildingKind) -> "BuildingSettings":
        """Get settings for a replacement building, carrying over as much as possible.

        Precondition:
            new_kind is the kind record of the new building type

        Postcondition:
            same kind: returns copy_settings(new_kind) (selection kept when still
            allowed, a sole allowed option auto-selected, clock kept)
            different kind: returns the new kind's default settings with this clock

        Args:
            new_kind: kind record of the new building

        Returns:
            settings matching new_kind
        """
        if self.kind_id is new_kind.kind_id:
            return self.copy_settings(new_kind)
        return default_settings(new_kind).with_clock_speed(self.clock_speed)

    def get_balance(self, building_id: BuildingId, kind: BuildingKind, database: Database) -> Balance:
        """Balance of a single machine with these settings."""
        raise NotImplementedError


@dataclass(frozen=True)
class ManufacturerSettings(BuildingSettings):
    """Building which converts ingredients to products using a recipe"""

    kind_id: ClassVar[BuildingKindId] = BuildingKindId.MANUFACTURER
    clocked: ClassVar[bool] = True

    recipe: RecipeId | None = None
    clock_speed: float = 1.0

    def get_balance(self, building_id: BuildingId, kind: Manufacturer, database: Database) -> Balance:
        """Get the balance of one manufacturer.

        Precondition:
            kind is the Manufacturer record of building_id

        Postcondition:
            no recipe: returns the empty balance
            otherwise returns -consumption(clock) power, ingredients subtracted and
            products added at 60 / time * manufacturing_speed * clock runs per minute

        Args:
            building_id: id of the building, for error reporting
            kind: manufacturer record
            database: database to resolve the recipe in

        Returns:
            balance of one machine

        Raises:
            UnknownRecipe: if the recipe is not in the database
            IncompatibleRecipe: if the building cannot run the recipe
        """
        if self.recipe is None:
            return Balance.empty()
        recipe = database.get(self.recipe)
        if recipe is None:
            raise UnknownRecipe(self.recipe)
        if self.recipe not in kind.available_recipes:
            raise IncompatibleRecipe(self.recipe, building_id)

        runs_per_minute = 60.0 / recipe.time * kind.manufacturing_speed * self.clock_speed
        rates: dict[ItemId, float] = {}
        for ingredient in recipe.ingredients:
            rates[ingredient.item] = rates.get(ingredient.item, 0.0) - ingredient.amount * runs_per_minute
        for product in recipe.products:
            rates[product.item] = rates.get(product.item, 0.0) + product.amount * runs_per_minute
        return Balance(-kind.power_consumption.get_consumption_rate(self.clock_speed), rates)

    def copy_settings(self, kind: Manufacturer) -> "ManufacturerSettings":
        return replace(self, recipe=_choose(self.recipe, kind.available_recipes))


@dataclass(frozen=True)
class MinerSettings(BuildingSettings):
    """Building which extracts a resource from a single node"""

    kind_id: ClassVar[BuildingKindId] = BuildingKindId.MINER
    clocked: ClassVar[bool] = True

    resource: ItemId | None = None
    clock_speed: float = 1.0
    purity: ResourcePurity = ResourcePurity.NORMAL

    def get_balance(self, building_id: BuildingId, kind: Miner, database: Database) -> Balance:
        """Get the balance of one miner.

        Raises:
            UnknownItem: if the resource is not in the database
            IncompatibleItem: if the miner cannot extract the resource
        """
        if self.resource is None:
            return Balance.empty()
        if database.get(self.resource) is None:
            raise UnknownItem(self.resource)
        if self.resource not in kind.allowed_resources:
            raise IncompatibleItem(self.resource, building_id)

        cycles_per_minute = 60.0 / kind.cycle_time * self.clock_speed * self.purity.speed_multiplier()
        return Balance(
            -kind.power_consumption.get_consumption_rate(self.clock_speed),
            {self.resource: kind.items_per_cycle * cycles_per_minute},
        )

    def copy_settings(self, kind: Miner) -> "MinerSettings":
        return replace(self, resource=_choose(self.resource, kind.allowed_resources))


@dataclass(frozen=True)
class GeneratorSettings(BuildingSettings):
    """Building which produces power by burning fuel"""

    kind_id: ClassVar[BuildingKindId] = BuildingKindId.GENERATOR
    clocked: ClassVar[bool] = True

    fuel: ItemId | None = None
    clock_speed: float = 1.0

    def get_balance(self, building_id: BuildingId, kind: Generator, database: Database) -> Balance:
        """Get the balance of one generator.

        Precondition:
            kind is the Generator record of building_id

        Postcondition:
            no fuel: returns the empty balance
            otherwise power is production(clock); water is consumed at
            power * used_water; fuel burns at 60 / (energy / power) per minute;
            byproducts are produced per fuel item burned

        Raises:
            UnknownItem: if the fuel is not in the database
            NotFuel: if the item has no energy content
            IncompatibleItem: if the generator cannot burn the item
        """
        if self.fuel is None:
            return Balance.empty()
        item = database.get(self.fuel)
        if item is None:
            raise UnknownItem(self.fuel)
        if item.fuel is None or item.fuel.energy <= 0:
            raise NotFuel(self.fuel)
        if self.fuel not in kind.allowed_fuel:
            raise IncompatibleItem(self.fuel, building_id)

        power = kind.power_production.get_production_rate(self.clock_speed)
        rates: dict[ItemId, float] = {}
        if kind.used_water > 0:
            rates[ItemId.water()] = -power * kind.used_water
        # 60 / burn_time, with burn_time = energy / power seconds per item.
        fuel_rate = 60.0 * power / item.fuel.energy
        rates[self.fuel] = rates.get(self.fuel, 0.0) - fuel_rate
        for byproduct in item.fuel.byproducts:
            rates[byproduct.item] = rates.get(byproduct.item, 0.0) + byproduct.amount * fuel_rate
        return Balance(power, rates)

    def copy_settings(self, kind: Generator) -> "GeneratorSettings":
        return replace(self, fuel=_choose(self.fuel, kind.allowed_fuel))


@dataclass(frozen=True)
class PumpSettings(BuildingSettings):
    """Building which extracts a resource from several pads sharing one clock"""

    kind_id: ClassVar[BuildingKindId] = BuildingKindId.PUMP
    clocked: ClassVar[bool] = True

    resource: ItemId | None = None
    clock_speed: float = 1.0
    # With no pads the pump still uses power but produces nothing.
    pads: tuple[ResourcePurity, ...] = ()

    def pad_multiplier(self) -> float:
        """Sum of the speed multipliers of all pads."""
        return sum(pad.speed_multiplier() for pad in self.pads)

    def count_pads(self, purity: ResourcePurity) -> int:
        return sum(1 for pad in self.pads if pad is purity)

    def with_pad_count(self, purity: ResourcePurity, count: int) -> "PumpSettings":
        """Copy of these settings with exactly count pads of the given purity."""
        others = tuple(pad for pad in self.pads if pad is not purity)
        pads = tuple(sorted(others + (purity,) * max(count, 0), reverse=True))
        return replace(self, pads=pads)

    def get_balance(self, building_id: BuildingId, kind: Pump, database: Database) -> Balance:
        """Get the balance of one pump across all of its pads.

        Raises:
            UnknownItem: if the resource is not in the database
            IncompatibleItem: if the pump cannot extract the resource
        """
        if self.resource is None:
            return Balance.empty()
        if database.get(self.resource) is None:
            raise UnknownItem(self.resource)
        if self.resource not in kind.allowed_resources:
            raise IncompatibleItem(self.resource, building_id)

        base_cycles_per_minute = 60.0 / kind.cycle_time * self.clock_speed
        rates = {}
        if self.pads:
            rates[self.resource] = base_cycles_per_minute * kind.items_per_cycle * self.pad_multiplier()
        return Balance(-kind.power_consumption.get_consumption_rate(self.clock_speed), rates)

    def copy_settings(self, kind: Pump) -> "PumpSettings":
        return replace(self, resource=_choose(self.resource, kind.allowed_resources))


@dataclass(frozen=True)
class GeothermalSettings(BuildingSettings):
    """Power from a geothermal pad. Has no clock."""

    kind_id: ClassVar[BuildingKindId] = BuildingKindId.GEOTHERMAL

    purity: ResourcePurity = ResourcePurity.NORMAL

    def get_balance(self, building_id: BuildingId, kind: Geothermal, database: Database) -> Balance:
        return Balance.power_only(self.purity.speed_multiplier() * kind.power)


@dataclass(frozen=True)
class PowerConsumerSettings(BuildingSettings):
    """Fixed power draw"""

    kind_id: ClassVar[BuildingKindId] = BuildingKindId.POWER_CONSUMER

    def get_balance(self, building_id: BuildingId, kind: PowerConsumer, database: Database) -> Balance:
        return Balance.power_only(-kind.power)


@dataclass(frozen=True)
class StationSettings(BuildingSettings):
    """Vehicle station drawing power and a configured amount of fuel"""

    kind_id: ClassVar[BuildingKindId] = BuildingKindId.STATION

    fuel: ItemId | None = None
    # Fuel items per minute.
    consumption: float = 0.0

    def get_balance(self, building_id: BuildingId, kind: Station, database: Database) -> Balance:
        """Get the balance of one station.

        Raises:
            UnknownItem: if the fuel is not in the database
            IncompatibleItem: if the station does not accept the fuel
        """
        if self.fuel is None:
            return Balance.empty()
        if database.get(self.fuel) is None:
            raise UnknownItem(self.fuel)
        if self.fuel not in kind.allowed_fuel:
            raise IncompatibleItem(self.fuel, building_id)
        return Balance(-kind.power, {self.fuel: -self.consumption})

    def copy_settings(self, kind: Station) -> "StationSettings":
        return replace(self, fuel=_choose(self.fuel, kind.allowed_fuel))


@dataclass(frozen=True)
class BalanceAdjustmentSettings(BuildingSettings):
    """Arbitrary change to the balance of one item or of power"""

    kind_id: ClassVar[BuildingKindId] = BuildingKindId.BALANCE_ADJUSTMENT

    # An ItemId, POWER, or None for no adjustment.
    item_or_power: ItemId | str | None = None
    rate: float = 0.0

    def get_balance(self, building_id: BuildingId, kind: BalanceAdjustment, database: Database) -> Balance:
        """Raises UnknownItem if the item is not in the database."""
        if self.item_or_power is None:
            return Balance.empty()
        if self.item_or_power == POWER:
            return Balance.power_only(self.rate)
        if database.get(ItemId(self.item_or_power)) is None:
            raise UnknownItem(ItemId(self.item_or_power))
        return Balance(0.0, {ItemId(self.item_or_power): self.rate})


def default_settings(kind: BuildingKind) -> BuildingSettings:
    """Default settings for a building kind, auto-selecting a sole allowed option.

    Precondition:
        kind is one of the building kind records from the database

    Postcondition:
        returns settings whose kind_id equals kind.kind_id
        when the kind allows exactly one recipe/resource/fuel it is preselected

    Args:
        kind: building kind record

    Returns:
        default settings for that kind
    """
    if isinstance(kind, Manufacturer):
        return ManufacturerSettings(recipe=_choose(None, kind.available_recipes))
    if isinstance(kind, Miner):
        return MinerSettings(resource=_choose(None, kind.allowed_resources))
    if isinstance(kind, Generator):
        return GeneratorSettings(fuel=_choose(None, kind.allowed_fuel))
    if isinstance(kind, Pump):
        return PumpSettings(resource=_choose(None, kind.allowed_resources))
    if isinstance(kind, Geothermal):
        return GeothermalSettings()
    if isinstance(kind, PowerConsumer):
        return PowerConsumerSettings()
    if isinstance(kind, Station):
        return StationSettings(fuel=_choose(None, kind.allowed_fuel))
    return BalanceAdjustmentSettings()


# ========== Node Tree ==========

# Called with (original_group, copied_group) for each group copied by create_copy.
GroupCopyVisitor = Callable[["Group", "Group"], None]


@dataclass(frozen=True)
class Node:
    """Immutable tree element with a cached balance.

    Build nodes with Node.new (or Group.build_node / Building.build_node) rather than
    the dataclass constructor so children_had_warnings is computed.
    """

    kind: "Group | Building"
    balance: Balance = field(default_factory=Balance.empty)
    warning: BuildError | None = None
    children_had_warnings: bool = False

    @classmethod
    def new(cls, kind: "Group | Building", balance: Balance, warning: BuildError | None = None) -> "Node":
        had_warnings = isinstance(kind, Group) and any(
            child.warning is not None or child.children_had_warnings for child in kind.children
        )
        return cls(kind, balance, warning, had_warnings)

    @property
    def group(self) -> "Group | None":
        return self.kind if isinstance(self.kind, Group) else None

    @property
    def building(self) -> "Building | None":
        return self.kind if isinstance(self.kind, Building) else None

    @property
    def children(self) -> tuple["Node", ...]:
        """Children of a group node, empty for buildings."""
        return self.kind.children if isinstance(self.kind, Group) else ()

    def create_copy(self, visitor: GroupCopyVisitor | None = None) -> "Node":
        """Deep copy this node, assigning a fresh id to every copied group.

        Balances and warnings are kept as they are.
        """
        if isinstance(self.kind, Group):
            return replace(self, kind=self.kind.create_copy(visitor))
        return self

    def rebuild(self, database: Database) -> "Node":
        """Recompute every balance in this subtree against a new database.

        Build errors become warning nodes instead of failing the whole rebuild.
        """
        return self.kind.rebuild(database)

    def iter(self) -> Iterator["Node"]:
        """Pre-order traversal of this node and all of its descendants."""
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))


@dataclass(frozen=True)
class Group:
    """Named, ordered collection of nodes"""

    name: str = ""
    children: tuple[Node, ...] = ()
    # Whole number of copies of this entire group.
    copies: int = 1
    id: uuid.UUID = field(default_factory=uuid.uuid4)

    @classmethod
    def empty(cls) -> "Group":
        return cls()

    @classmethod
    def empty_node(cls) -> Node:
        return Node.new(cls(), Balance.empty())

    def get_child(self, index: int) -> Node | None:
        if 0 <= index < len(self.children):
            return self.children[index]
        return None

    def compute_balance(self) -> Balance:
        """Sum of the children's balances, times copies."""
        return sum((child.balance for child in self.children), Balance.empty()) * self.copies

    def build_node(self, database: Database | None = None) -> Node:
        """Build a node for this group. Groups never fail to build."""
        return Node.new(self, self.compute_balance())

    def create_copy(self, visitor: GroupCopyVisitor | None = None) -> "Group":
        copy = replace(
            self,
            children=tuple(child.create_copy(visitor) for child in self.children),
            id=uuid.uuid4(),
        )
        if visitor is not None:
            visitor(self, copy)
        return copy

    def rebuild(self, database: Database) -> Node:
        return replace(self, children=tuple(child.rebuild(database) for child in self.children)).build_node()


@dataclass(frozen=True)
class Building:
    """An instance of a building, possibly standing in for several copies"""

    building: BuildingId | None = None
    settings: BuildingSettings = field(default_factory=PowerConsumerSettings)
    # Non-negative; fractional copies model one partially clocked machine.
    copies: float = 1.0

    @classmethod
    def empty(cls) -> "Building":
        return cls()

    @classmethod
    def empty_node(cls) -> Node:
        return Node.new(cls(), Balance.empty())

    def build_node(self, database: Database) -> Node:
        """Compute the balance of this building and wrap it in a node.

        Precondition:
            settings is the settings variant for the kind of the referenced building

        Postcondition:
            no building: returns a node with the empty balance
            clocked kinds: balance is whole_copies * balance(clock) plus the balance of
            one machine at last_clock (see SplitCopies)
            unclocked kinds: balance is balance * copies

        Args:
            database: database to resolve the building, recipe and items in

        Returns:
            new Node without a warning

        Raises:
            UnknownBuilding: if the building is not in the database
            MismatchedKind: if settings do not match the building kind
            BuildError: any error from the kind-specific formula
        """
        if self.building is None:
            return Node.new(self, Balance.empty())
        building_type = database.get(self.building)
        if building_type is None:
            raise UnknownBuilding(self.building)
        if self.settings.kind_id is not building_type.kind.kind_id:
            raise MismatchedKind(self.settings.kind_id, building_type.kind.kind_id)

        single = self.settings.get_balance(self.building, building_type.kind, database)
        if not self.settings.clocked:
            return Node.new(self, single * self.copies)

        split = SplitCopies.split(self.copies, self.settings.clock_speed)
        balance = single * split.whole_copies
        if split.last_clock > 0:
            last = self.settings.with_clock_speed(split.last_clock)
            balance = balance + last.get_balance(self.building, building_type.kind, database)
        return Node.new(self, balance)

    def rebuild(self, database: Database) -> Node:
        try:
            return self.build_node(database)
        except BuildError as err:
            _LOGGER.debug("Building %s failed to rebuild: %s", self.building, err)
            return err.into_warning_node(self)
