"""Net power and item rates of a node."""

from dataclasses import dataclass, field

from frozendict import frozendict

from database import ItemId


@dataclass(frozen=True, eq=False)
class Balance:
    """Net power in MW plus net item rates per minute.

    Negative values are consumption, positive values are production. Entries with a
    rate of zero are ignored when comparing, so `a + (-a) == Balance.empty()`.
    """

    power: float = 0.0
    balances: frozendict = field(default_factory=frozendict)

    def __post_init__(self):
        if not isinstance(self.balances, frozendict):
            object.__setattr__(self, "balances", frozendict(self.balances))

    @classmethod
    def empty(cls) -> "Balance":
        return cls()

    @classmethod
    def power_only(cls, power: float) -> "Balance":
        return cls(power=power)

    @classmethod
    def of(cls, power: float = 0.0, **rates: float) -> "Balance":
        """Convenience constructor keyed by item id strings."""
        return cls(power, frozendict({ItemId(k): float(v) for k, v in rates.items()}))

    def rate(self, item: ItemId) -> float:
        """Net rate of the given item, 0 if it does not appear."""
        return self.balances.get(item, 0.0)

    def _combine(self, other: "Balance", sign: float) -> "Balance":
        merged = dict(self.balances)
        for item, rate in other.balances.items():
            merged[item] = merged.get(item, 0.0) + sign * rate
        return Balance(self.power + sign * other.power, frozendict(merged))

    def __add__(self, other):
        if not isinstance(other, Balance):
            return NotImplemented
        return self._combine(other, 1.0)

    def __radd__(self, other):
        # Lets builtin sum() start from 0.
        if other == 0:
            return self
        return NotImplemented

    def __sub__(self, other):
        if not isinstance(other, Balance):
            return NotImplemented
        return self._combine(other, -1.0)

    def __mul__(self, scale):
        if not isinstance(scale, (int, float)):
            return NotImplemented
        return Balance(
            self.power * scale,
            frozendict({item: rate * scale for item, rate in self.balances.items()}),
        )

    __rmul__ = __mul__

    def __truediv__(self, scale):
        if not isinstance(scale, (int, float)):
            return NotImplemented
        return self * (1.0 / scale)

    def __neg__(self) -> "Balance":
        return self * -1.0

    def _nonzero(self) -> frozendict:
        return frozendict({item: rate for item, rate in self.balances.items() if rate != 0})

    def __eq__(self, other) -> bool:
        if not isinstance(other, Balance):
            return NotImplemented
        return self.power == other.power and self._nonzero() == other._nonzero()

    def __hash__(self) -> int:
        return hash((self.power, self._nonzero()))

    def is_empty(self) -> bool:
        return self.power == 0 and not self._nonzero()
