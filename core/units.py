"""Amount formatting for the user's preferred display unit."""

from enum import Enum

MSATS_PER_SAT = 1000
MSATS_PER_BTC = 100_000_000_000


class DisplayUnit(Enum):
    """Units a user can choose to see amounts in."""
    SATS = "SATS"
    BTC = "BTC"


def parse_display_unit(value: str) -> DisplayUnit:
    """Parse a stored or submitted unit, falling back to SATS."""
    try:
        return DisplayUnit(str(value).upper())
    except ValueError:
        return DisplayUnit.SATS


def format_amount(msats: int, unit: DisplayUnit) -> str:
    """Format an msat amount as BTC with 8 decimals or as whole sats."""
    if unit == DisplayUnit.BTC:
        return f"{msats / MSATS_PER_BTC:.8f}"
    return f"{round(msats / MSATS_PER_SAT):,}"


def display_unit_label(unit: DisplayUnit) -> str:
    return "BTC" if unit == DisplayUnit.BTC else "sats"


def format_amount_with_unit(msats: int, unit: DisplayUnit) -> str:
    return f"{format_amount(msats, unit)} {display_unit_label(unit)}"
