"""
Money rules for cross-market Up/Down arbitrage.
Decimal parsing, position sizing and settlement payout.
"""

from decimal import Decimal, InvalidOperation
from typing import Union

from .logger import get_logger

logger = get_logger("cost_calculator")

# A winning outcome token pays exactly one settlement unit
DOLLAR = Decimal("1")

DecimalLike = Union[Decimal, str, int, float]


def to_decimal(value: DecimalLike) -> Decimal:
    """
    Convert a price-like value to Decimal without float noise.

    Floats go through ``str`` so 0.1 becomes Decimal("0.1") rather than
    its binary expansion.

    Raises:
        InvalidOperation: If the value cannot be parsed
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise InvalidOperation(f"Not a decimal value: {value!r}")
    return Decimal(str(value).strip())


def parse_decimal(value, default: Decimal, name: str = "value") -> Decimal:
    """
    Parse a configured decimal, falling back to ``default`` when malformed.

    Non-finite and negative values are treated as malformed.
    """
    try:
        parsed = to_decimal(value)
    except (InvalidOperation, ValueError, TypeError):
        logger.warning(f"Invalid {name} {value!r}, using default {default}")
        return default

    if not parsed.is_finite() or parsed < 0:
        logger.warning(f"Invalid {name} {value!r}, using default {default}")
        return default

    return parsed


def calculate_position_size(max_position_size: Decimal, total_cost: Decimal) -> Decimal:
    """
    Dollar amount to invest in one opportunity.

    Converts the configured ceiling into unit pairs priced at ``total_cost``
    and back into dollars, capped at the ceiling:

        units = max / cost
        position_size = min(units * cost, max)

    With max = $100 and cost = $0.75 that is 133.33 units for $100.

    Args:
        max_position_size: Maximum dollars per opportunity
        total_cost: Combined ask of both legs (cost of one unit pair)

    Returns:
        Position size in dollars, never above ``max_position_size``
    """
    if total_cost <= 0:
        raise ValueError(f"Total cost must be positive, got {total_cost}")

    units = max_position_size / total_cost
    return min(units * total_cost, max_position_size)


def calculate_units(position_size: Decimal, total_cost: Decimal) -> Decimal:
    """Number of (eth leg, btc leg) unit pairs bought for ``position_size``."""
    if total_cost <= 0:
        raise ValueError(f"Total cost must be positive, got {total_cost}")
    return position_size / total_cost


def settlement_payout(units: Decimal, eth_winner: bool, btc_winner: bool) -> Decimal:
    """
    Payout of a position once both markets have resolved.

    Each winning leg pays one dollar per unit held, so both legs winning
    pays 2x units, one leg pays 1x units and none pays nothing.
    """
    winning_legs = int(eth_winner) + int(btc_winner)
    return units * winning_legs * DOLLAR


def settlement_profit(
    units: Decimal,
    investment: Decimal,
    eth_winner: bool,
    btc_winner: bool
) -> Decimal:
    """Realized profit: payout minus the dollars invested."""
    return settlement_payout(units, eth_winner, btc_winner) - investment
