"""Backdriving: solving a building's copies and clock from a requested rate.

Two policies are supported per building category:

* VARIABLE_CLOCK keeps the current clock and finds a (possibly fractional) copy count.
  Fractional copies stand for whole machines at the clock plus one machine at a reduced
  clock, see accounting.SplitCopies.
* UNIFORM_CLOCK uses a whole number of machines, all at one clock no higher than the
  configured maximum.

Buildings that cannot be overclocked always get the smallest whole copy count reaching
the requested rate, at clock 1.
"""

import logging
import math
from dataclasses import dataclass, field, replace
from enum import Enum

from accounting import (
    MAX_CLOCK,
    BalanceAdjustmentSettings,
    Building,
    BuildError,
    GeneratorSettings,
    GeothermalSettings,
    ManufacturerSettings,
    MinerSettings,
    Node,
    PowerConsumerSettings,
    PumpSettings,
    StationSettings,
    clamp_clock,
)
from database import (
    POWER,
    Database,
    Generator,
    Geothermal,
    ItemId,
    Manufacturer,
    Miner,
    Power,
    PowerConsumer,
    Pump,
)

_LOGGER = logging.getLogger("satisfactory_accounting")


class BackdriveMode(Enum):
    """How backdriving picks clock and copies"""

    # Keep the clock, solve for fractional copies.
    VARIABLE_CLOCK = "VariableClock"
    # Whole copies, uniform clock up to the configured maximum.
    UNIFORM_CLOCK = "UniformClock"


class BackdriveCategory(Enum):
    """Group of building kinds sharing one backdrive policy"""

    MANUFACTURER = "manufacturer"
    EXTRACTOR = "extractor"
    GENERATOR = "generator"


@dataclass
class BuildingBackdriveSettings:
    mode: BackdriveMode
    # Highest clock used in UNIFORM_CLOCK mode.
    uniform_max_clock: float


@dataclass
class BackdriveSettings:
    """User policy for backdriving, per building category"""

    manufacturer: BuildingBackdriveSettings = field(
        default_factory=lambda: BuildingBackdriveSettings(BackdriveMode.VARIABLE_CLOCK, 1.0)
    )
    extractor: BuildingBackdriveSettings = field(
        default_factory=lambda: BuildingBackdriveSettings(BackdriveMode.UNIFORM_CLOCK, MAX_CLOCK)
    )
    generator: BuildingBackdriveSettings = field(
        default_factory=lambda: BuildingBackdriveSettings(BackdriveMode.VARIABLE_CLOCK, 1.0)
    )

    def select(self, category: BackdriveCategory) -> BuildingBackdriveSettings:
        return getattr(self, category.value)

    def set_mode(self, category: BackdriveCategory, mode: BackdriveMode) -> bool:
        """Set the mode of one category. Returns True if anything changed."""
        settings = self.select(category)
        if settings.mode is mode:
            return False
        settings.mode = mode
        return True

    def set_max_clock(self, category: BackdriveCategory, uniform_max_clock: float) -> bool:
        """Set the uniform max clock of one category, clamped. Returns True if it changed."""
        uniform_max_clock = clamp_clock(uniform_max_clock)
        settings = self.select(category)
        if settings.uniform_max_clock == uniform_max_clock:
            return False
        settings.uniform_max_clock = uniform_max_clock
        return True


@dataclass(frozen=True)
class BackdriveResult:
    """New virtual copy count and clock speed"""

    copies: float
    clock: float


# ========== Solvers ==========


def backdrive_power_consumer(
    current_clock: float, rate: float, power: Power, settings: BuildingBackdriveSettings
) -> BackdriveResult | None:
    """Solve copies and clock for a requested power consumption.

    Precondition:
        rate >= 0 (MW); current_clock > 0

    Postcondition:
        exponent 0: copies = ceil(rate / power) at clock 1
        VARIABLE_CLOCK: m = rate / (power * clock ** e);
            copies = trunc(m) + fract(m) ** (1 / e) at the current clock
        UNIFORM_CLOCK: copies = ceil(rate / (power * max ** e));
            clock = (rate / (power * copies)) ** (1 / e)
        returns None (after logging) if the building uses no power

    Args:
        current_clock: clock kept in VARIABLE_CLOCK mode
        rate: requested consumption
        power: consumption curve of the building
        settings: policy of the building's category

    Returns:
        BackdriveResult or None
    """
    if power.power == 0:
        _LOGGER.warning("Cannot backdrive power consumption, because the power consumption is 0")
        return None
    if power.power_exponent == 0:
        return BackdriveResult(math.ceil(rate / power.power), 1.0)
    if rate == 0:
        return BackdriveResult(0.0, current_clock)

    exponent = power.power_exponent
    if settings.mode is BackdriveMode.VARIABLE_CLOCK:
        multiplier = rate / (power.power * current_clock**exponent)
        whole = math.trunc(multiplier)
        fractional = (multiplier - whole) ** (1.0 / exponent)
        return BackdriveResult(whole + fractional, current_clock)

    copies = math.ceil(rate / (power.power * settings.uniform_max_clock**exponent))
    clock = (rate / (power.power * copies)) ** (1.0 / exponent)
    return BackdriveResult(copies, clock)


def backdrive_power_producer(
    current_clock: float, rate: float, power: Power, settings: BuildingBackdriveSettings
) -> BackdriveResult | None:
    """Solve copies and clock for a requested power production.

    Same as backdrive_power_consumer with the exponent e replaced by 1 / e, since
    production scales with clock ** (1 / e).
    """
    if power.power == 0:
        _LOGGER.warning("Cannot backdrive power production, because the power production is 0")
        return None
    if power.power_exponent == 0:
        return BackdriveResult(math.ceil(rate / power.power), 1.0)
    if rate == 0:
        return BackdriveResult(0.0, current_clock)

    exponent = power.power_exponent
    if settings.mode is BackdriveMode.VARIABLE_CLOCK:
        multiplier = rate / (power.power * current_clock ** (1.0 / exponent))
        whole = math.trunc(multiplier)
        fractional = (multiplier - whole) ** exponent
        return BackdriveResult(whole + fractional, current_clock)

    copies = math.ceil(rate / (power.power * settings.uniform_max_clock ** (1.0 / exponent)))
    clock = (rate / (power.power * copies)) ** exponent
    return BackdriveResult(copies, clock)


def backdrive_production_consumption(
    current_clock: float,
    rate: float,
    base_rate: float,
    overclockable: bool,
    settings: BuildingBackdriveSettings,
) -> BackdriveResult | None:
    """Solve copies and clock for a requested item rate, which is linear in clock.

    Precondition:
        rate >= 0; base_rate is the item rate of one machine at clock 1

    Postcondition:
        m = rate / base_rate
        not overclockable: copies = ceil(m) at clock 1
        VARIABLE_CLOCK: copies = m / current_clock at the current clock
        UNIFORM_CLOCK: copies = ceil(m / max), clock = m / copies
        returns None (after logging) if base_rate is 0

    Args:
        current_clock: clock kept in VARIABLE_CLOCK mode
        rate: requested item rate
        base_rate: rate of one machine at 100% clock
        overclockable: whether the building allows clock changes
        settings: policy of the building's category

    Returns:
        BackdriveResult or None
    """
    if base_rate == 0:
        _LOGGER.warning("Cannot backdrive item because its production rate is 0.")
        return None

    _LOGGER.debug("backdrive: rate %s, base_rate: %s, current_clock: %s", rate, base_rate, current_clock)
    multiplier = rate / base_rate

    if not overclockable:
        return BackdriveResult(math.ceil(multiplier), 1.0)
    if multiplier == 0:
        return BackdriveResult(0.0, current_clock)
    if settings.mode is BackdriveMode.VARIABLE_CLOCK:
        return BackdriveResult(multiplier / current_clock, current_clock)
    copies = math.ceil(multiplier / settings.uniform_max_clock)
    return BackdriveResult(copies, multiplier / copies)


# ========== Per-kind backdrive ==========


def _backdrive_manufacturer(
    target, rate: float, ms: ManufacturerSettings, m: Manufacturer, database: Database, policy: BackdriveSettings
):
    settings = policy.manufacturer
    if target == POWER:
        return backdrive_power_consumer(ms.clock_speed, rate, m.power_consumption, settings)
    if ms.recipe is None:
        _LOGGER.warning("Unable to backdrive - no recipe set")
        return None
    recipe = database.get(ms.recipe)
    if recipe is None:
        _LOGGER.warning("Unable to backdrive - recipe not recognized")
        return None
    consumed = sum(ingredient.amount for ingredient in recipe.ingredients if ingredient.item == target)
    produced = sum(product.amount for product in recipe.products if product.item == target)
    item_net_rate = abs(produced - consumed) * 60.0 / recipe.time * m.manufacturing_speed
    return backdrive_production_consumption(ms.clock_speed, rate, item_net_rate, m.overclockable(), settings)


def _backdrive_extractor(target, rate: float, settings, kind, base_rate_fn, policy: BackdriveSettings):
    extractor = policy.extractor
    if target == POWER:
        return backdrive_power_consumer(settings.clock_speed, rate, kind.power_consumption, extractor)
    if settings.resource is None:
        _LOGGER.warning("Unable to backdrive - no resource selected")
        return None
    if target != settings.resource:
        _LOGGER.warning("Unable to backdrive - backdriving resource doesn't match selected resource")
        return None
    return backdrive_production_consumption(
        settings.clock_speed, rate, abs(base_rate_fn()), kind.overclockable(), extractor
    )


def _backdrive_generator(
    target, rate: float, gs: GeneratorSettings, g: Generator, database: Database, policy: BackdriveSettings
):
    settings = policy.generator
    if target == POWER:
        return backdrive_power_producer(gs.clock_speed, rate, g.power_production, settings)
    if gs.fuel is None:
        _LOGGER.warning("Unable to backdrive - no fuel selected")
        return None
    item = database.get(gs.fuel)
    if item is None:
        _LOGGER.warning("Unable to backdrive - fuel not recognized")
        return None
    fuel = item.fuel
    if fuel is None:
        _LOGGER.warning("Unable to backdrive - selected fuel item is not a fuel")
        return None

    # Item rates of a generator all follow from its power, so solve for power.
    byproduct = next((b for b in fuel.byproducts if b.item == target), None)
    if target == gs.fuel:
        if fuel.energy == 0:
            _LOGGER.warning("Unable to backdrive - fuel energy is 0")
            return None
        power_rate = fuel.energy * rate / 60.0
    elif byproduct is not None:
        if byproduct.amount == 0:
            _LOGGER.warning("Unable to backdrive - byproduct production is 0")
            return None
        power_rate = fuel.energy * (rate / byproduct.amount) / 60.0
    elif target == ItemId.water():
        if g.used_water == 0:
            _LOGGER.warning("Unable to backdrive - water consumption is 0")
            return None
        power_rate = rate / g.used_water
    else:
        _LOGGER.warning("Unable to backdrive - item %s is not the fuel, a byproduct or water", target)
        return None
    return backdrive_power_producer(gs.clock_speed, power_rate, g.power_production, settings)


def backdrive(
    node: Node,
    target: ItemId | str,
    rate: float,
    database: Database,
    policy: BackdriveSettings | None = None,
) -> Node | None:
    """Rebuild a building node so that target (an item id or POWER) has the given rate.

    Precondition:
        node is a building node whose building type is in database

    Postcondition:
        returns a rebuilt node with new copies and, where applicable, a new clock
        the sign of rate is ignored except for balance adjustments
        returns None (after logging) when the building cannot be backdriven for target

    Args:
        node: building node to backdrive
        target: ItemId, or POWER for the power balance
        rate: requested net rate
        database: database to resolve the building, recipe and items in
        policy: backdrive policy, defaults to BackdriveSettings()

    Returns:
        replacement node or None
    """
    if policy is None:
        policy = BackdriveSettings()
    _LOGGER.info("Backdrive %s to %s", target, rate)
    target = POWER if target == POWER else ItemId(target)

    building = node.building
    if building is None:
        _LOGGER.warning("Cannot backdrive non-buildings.")
        return None
    if building.building is None:
        _LOGGER.warning("Cannot backdrive, building not set")
        return None
    building_type = database.get(building.building)
    if building_type is None:
        _LOGGER.warning("Cannot backdrive, building not recognized")
        return None

    signed_rate = rate
    rate = abs(rate)
    settings, kind = building.settings, building_type.kind

    if isinstance(settings, ManufacturerSettings) and isinstance(kind, Manufacturer):
        result = _backdrive_manufacturer(target, rate, settings, kind, database, policy)
    elif isinstance(settings, MinerSettings) and isinstance(kind, Miner):
        result = _backdrive_extractor(
            target,
            rate,
            settings,
            kind,
            lambda: 60.0 / kind.cycle_time * settings.purity.speed_multiplier() * kind.items_per_cycle,
            policy,
        )
    elif isinstance(settings, PumpSettings) and isinstance(kind, Pump):
        result = _backdrive_extractor(
            target,
            rate,
            settings,
            kind,
            lambda: 60.0 / kind.cycle_time * settings.pad_multiplier() * kind.items_per_cycle,
            policy,
        )
    elif isinstance(settings, GeneratorSettings) and isinstance(kind, Generator):
        result = _backdrive_generator(target, rate, settings, kind, database, policy)
    elif isinstance(settings, GeothermalSettings) and isinstance(kind, Geothermal):
        if target != POWER:
            _LOGGER.warning("Unable to backdrive - geothermal can only backdrive power")
            return None
        if kind.power == 0:
            _LOGGER.warning("Unable to backdrive - geothermal has no power production")
            return None
        result = BackdriveResult(math.ceil(rate / (kind.power * settings.purity.speed_multiplier())), 1.0)
    elif isinstance(settings, PowerConsumerSettings) and isinstance(kind, PowerConsumer):
        if target != POWER:
            _LOGGER.warning("Unable to backdrive power consumer -- requested something other than power")
            return None
        if kind.power == 0:
            _LOGGER.warning("Unable to backdrive - power consumer does not consume any power")
            return None
        result = BackdriveResult(math.ceil(rate / kind.power), 1.0)
    elif isinstance(settings, StationSettings):
        _LOGGER.warning("Stations do not support backdriving")
        return None
    elif isinstance(settings, BalanceAdjustmentSettings) and settings.kind_id is kind.kind_id:
        if settings.item_or_power is None:
            _LOGGER.warning("Unable to backdrive balance adjustment -- item not set")
            return None
        if settings.item_or_power != target:
            _LOGGER.warning("Cannot backdrive, requested item does not match current item")
            return None
        if building.copies == 0:
            _LOGGER.warning("Cannot backdrive a balance adjustment with zero copies")
            return None
        return _rebuild(
            replace(building, settings=replace(settings, rate=signed_rate / building.copies)),
            database,
        )
    else:
        _LOGGER.warning("Building Settings don't match Building Kind")
        return None

    if result is None:
        return None
    new_settings = settings.with_clock_speed(clamp_clock(result.clock))
    return _rebuild(replace(building, copies=float(result.copies), settings=new_settings), database)


def _rebuild(building: Building, database: Database) -> Node | None:
    try:
        return building.build_node(database)
    except BuildError as err:
        _LOGGER.warning("Unable to build node after backdriving: %s", err)
        return None
