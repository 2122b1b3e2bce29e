"""Integer arithmetic utilities for micro-unit balances.

All balances, stakes and payouts are int micro-units: 1 USDC = 1_000_000 micros
(6 fractional digits). No float anywhere on the money path. Decimal is only
used at the boundary to parse and render text amounts.
"""

from decimal import Decimal, InvalidOperation

from src.pm_common.errors import InvalidInputError

MICROS_PER_UNIT = 1_000_000
_SCALE = Decimal(MICROS_PER_UNIT)

# Largest amount accepted from a client: 1 billion USDC
MAX_AMOUNT_MICROS = 1_000_000_000 * MICROS_PER_UNIT
# BIGINT ceiling of the balance columns
MAX_BALANCE_MICROS = 2**63 - 1


def to_micros(value: str | int | Decimal) -> int:
    """Parse a decimal amount into micros: '12.5' -> 12500000.

    Raises ValueError for non-numeric input or more than 6 fractional digits.
    """
    if isinstance(value, bool) or isinstance(value, float):
        raise ValueError(f"Amount must be a decimal string or int, got {value!r}")
    try:
        dec = Decimal(str(value).strip())
    except InvalidOperation:
        raise ValueError(f"Invalid amount: {value!r}") from None
    if not dec.is_finite():
        raise ValueError(f"Invalid amount: {value!r}")
    scaled = dec * _SCALE
    if scaled != scaled.to_integral_value():
        raise ValueError(f"Amount has more than 6 decimal places: {value!r}")
    return int(scaled)


def micros_to_display(micros: int) -> str:
    """Render micros as a fixed 6-decimal string: 1100000000 -> '1100.000000'."""
    sign = "-" if micros < 0 else ""
    abs_micros = -micros if micros < 0 else micros
    return f"{sign}{abs_micros // MICROS_PER_UNIT}.{abs_micros % MICROS_PER_UNIT:06d}"


def pro_rata(stake: int, winning_pool: int, total_pool: int) -> int:
    """Pari-mutuel share of the total pool, rounded down (payouts never exceed the pool).

    payout = floor(stake * total_pool / winning_pool)
    """
    if winning_pool <= 0:
        raise ValueError(f"winning_pool must be positive, got {winning_pool}")
    return (stake * total_pool) // winning_pool


def mul_price(quantity: int, price: int) -> int:
    """Value of `quantity` micro-tokens at `price` micros per token, rounded down."""
    return (quantity * price) // MICROS_PER_UNIT


def parse_amount(value: str | int | Decimal, field_name: str = "amount") -> int:
    """Boundary parser: decimal text -> micros in (0, MAX_AMOUNT_MICROS], InvalidInputError otherwise."""
    try:
        micros = to_micros(value)
    except ValueError as e:
        raise InvalidInputError(f"{field_name}: {e}") from None
    if micros <= 0:
        raise InvalidInputError(f"{field_name} must be greater than 0")
    if micros > MAX_AMOUNT_MICROS:
        raise InvalidInputError(
            f"{field_name} must not exceed {micros_to_display(MAX_AMOUNT_MICROS)}"
        )
    return micros
