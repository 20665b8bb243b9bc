"""18-decimal fixed-point helpers.

Pool balances and swap amounts are carried as arbitrary-precision integers.
For weighted and stable math they are normalized to 18 decimals on entry and
denormalized on exit. Fees are integers scaled by 10^18 so that
``x * (1 - fee)`` stays exact.
"""

from __future__ import annotations

from decimal import ROUND_DOWN, Decimal, InvalidOperation

__all__ = [
    # Constants
    "ONE_18",
    "NORMALIZED_DECIMALS",
    "MAX_TOKEN_DECIMALS",
    # Functions
    "normalize",
    "denormalize",
    "to_fixed",
    "from_fixed",
    "parse_fee",
    "parse_units",
    "apply_fee",
    "div_up",
    "validate_decimals",
]

# =============================================================================
# Constants
# =============================================================================

ONE_18 = 10**18
NORMALIZED_DECIMALS = 18
MAX_TOKEN_DECIMALS = 30


# =============================================================================
# Scaling
# =============================================================================


def validate_decimals(decimals: int) -> int:
    """Check that a token decimals value is in [0, 30].

    Raises:
        ValueError: If decimals is out of range
    """
    if not 0 <= decimals <= MAX_TOKEN_DECIMALS:
        raise ValueError(f"Token decimals must be in [0, {MAX_TOKEN_DECIMALS}], got {decimals}")
    return decimals


def normalize(raw: int, decimals: int) -> int:
    """Scale a raw token amount to 18-decimal fixed point.

    Tokens with more than 18 decimals lose their extra digits (truncation).

    Args:
        raw: Amount in the token's native decimals
        decimals: Token decimals

    Returns:
        Amount scaled to 18 decimals
    """
    if decimals < NORMALIZED_DECIMALS:
        return raw * 10 ** (NORMALIZED_DECIMALS - decimals)
    if decimals > NORMALIZED_DECIMALS:
        return raw // 10 ** (decimals - NORMALIZED_DECIMALS)
    return raw


def denormalize(amount: int, decimals: int) -> int:
    """Scale an 18-decimal amount back to token decimals, rounding down."""
    if decimals < NORMALIZED_DECIMALS:
        return amount // 10 ** (NORMALIZED_DECIMALS - decimals)
    if decimals > NORMALIZED_DECIMALS:
        return amount * 10 ** (decimals - NORMALIZED_DECIMALS)
    return amount


def to_fixed(value: Decimal) -> int:
    """Convert a Decimal to 18-decimal fixed point, truncating toward zero."""
    return int((value * ONE_18).to_integral_value(rounding=ROUND_DOWN))


def from_fixed(value: int) -> Decimal:
    """Convert an 18-decimal fixed-point integer to Decimal for display."""
    return Decimal(value) / Decimal(ONE_18)


def parse_units(amount: str | int | Decimal, decimals: int) -> int:
    """Convert a human-readable amount (e.g. "1234.5") to raw token units.

    Digits beyond the token's precision are truncated.

    Raises:
        ValueError: If the amount is not a number or is negative
    """
    try:
        value = Decimal(str(amount))
    except InvalidOperation as err:
        raise ValueError(f"Not a decimal amount: {amount!r}") from err
    if not value.is_finite() or value < 0:
        raise ValueError(f"Amount must be a non-negative finite number: {amount!r}")
    return int((value * (Decimal(10) ** decimals)).to_integral_value(rounding=ROUND_DOWN))


# =============================================================================
# Fees
# =============================================================================


def parse_fee(fee: str | int | Decimal) -> int:
    """Parse a swap fee into an 18-decimal integer.

    Indexers report the fee either as a decimal fraction ("0.003") or as an
    18-decimal integer ("3000000000000000"). Integers >= 1 are read as the
    scaled form.

    Raises:
        ValueError: If the fee is not in [0, 1)
    """
    try:
        value = Decimal(str(fee))
    except InvalidOperation as err:
        raise ValueError(f"Not a decimal fee: {fee!r}") from err
    if not value.is_finite():
        raise ValueError(f"Swap fee must be finite, got {fee!r}")
    if value >= 1 and value == value.to_integral_value():
        scaled = int(value)
    else:
        scaled = to_fixed(value)
    if not 0 <= scaled < ONE_18:
        raise ValueError(f"Swap fee must be in range [0, 1), got {fee!r}")
    return scaled


def apply_fee(amount: int, fee: int) -> int:
    """Deduct an 18-decimal fee from an amount, truncating toward zero."""
    return amount * (ONE_18 - fee) // ONE_18


def div_up(a: int, b: int) -> int:
    """Integer division rounding up. Both operands must be non-negative."""
    if b == 0:
        raise ZeroDivisionError("division by zero")
    if a == 0:
        return 0
    return (a - 1) // b + 1
