"""Utility functions for parsing item rates and tree paths."""

from database import POWER, Database, ItemId


def _validate_has_colon(text: str) -> None:
    """Validate that text contains a colon separator.

    Precondition:
        text is a non-None string

    Postcondition:
        raises ValueError if ':' not in text, otherwise returns None

    Args:
        text: string to validate

    Raises:
        ValueError: if text does not contain a colon
    """
    if ":" not in text:
        raise ValueError(f"Invalid format: '{text}'. Expected 'Item:Rate'")


def _split_item_rate_string(text: str) -> tuple[str, str]:
    """Split text on the first colon and trim whitespace from both parts."""
    item, rate_str = text.split(":", 1)
    return item.strip(), rate_str.strip()


def _parse_rate_value(rate_str: str, item: str) -> float:
    """Convert rate string to float.

    Raises:
        ValueError: if rate_str cannot be converted to float
    """
    try:
        return float(rate_str)
    except ValueError as exc:
        raise ValueError(f"Invalid rate '{rate_str}' for {item}. Must be a number.") from exc


def parse_item_rate(text: str) -> tuple[str, float]:
    """Parse an 'Item:Rate' string into an (item, rate) tuple.

    Precondition:
        text is a non-None string in format "Item:Rate"

    Postcondition:
        returns (item, rate) where item is trimmed and rate is a float

    Args:
        text: String in format "Item:Rate" (e.g., "Iron Plate:30" or "Power:-100")

    Returns:
        Tuple of (item, rate)

    Raises:
        ValueError: If format is invalid or rate is not a number
    """
    _validate_has_colon(text)
    item, rate_str = _split_item_rate_string(text)
    if not item:
        raise ValueError(f"Invalid format: '{text}'. Item name is empty")
    rate = _parse_rate_value(rate_str, item)
    return item, rate


def resolve_item_or_power(name: str, database: Database) -> ItemId | str:
    """Resolve a user-entered name to POWER or an ItemId.

    Precondition:
        name is a trimmed string

    Postcondition:
        "power" in any case (or the POWER marker) returns POWER
        an exact item id returns that id
        otherwise an item whose display name matches case-insensitively is returned

    Args:
        name: item id, item name, or "power"
        database: database to search

    Returns:
        POWER or an ItemId

    Raises:
        ValueError: if no item matches
    """
    if name == POWER or name.lower() == "power":
        return POWER
    if ItemId(name) in database.items:
        return ItemId(name)
    for item in database.items.values():
        if item.name.lower() == name.lower():
            return item.id
    raise ValueError(f"Unknown item '{name}'")


def parse_path(text: str) -> tuple[int, ...]:
    """Parse a slash-separated path of child indices such as "0/2/1".

    Precondition:
        text is a non-None string

    Postcondition:
        empty text or "/" returns the empty path (the root)
        leading and trailing slashes are ignored

    Args:
        text: path string

    Returns:
        tuple of non-negative child indices

    Raises:
        ValueError: if any component is not a non-negative integer
    """
    stripped = text.strip().strip("/")
    if not stripped:
        return ()
    path = []
    for part in stripped.split("/"):
        part = part.strip()
        if not part.isdigit():
            raise ValueError(f"Invalid path '{text}'. Expected indices like '0/2/1'")
        path.append(int(part))
    return tuple(path)
