"""Address and amount types shared by the router and its HTTP models."""

from typing import Annotated, Any

from eth_utils import is_hex_address
from pydantic import BeforeValidator, Field

MAX_UINT256 = (1 << 256) - 1


def parse_uint256(value: Any) -> str:
    """Coerce a raw token amount to its canonical decimal string.

    JSON callers send amounts as strings; ints are accepted for convenience.

    Raises:
        ValueError: If the value is not an integer in [0, 2^256)
    """
    if isinstance(value, bool) or not isinstance(value, (int, str)):
        raise ValueError(f"amount must be a decimal string, got {type(value).__name__}")
    try:
        amount = int(value)
    except ValueError as err:
        raise ValueError(f"amount is not a decimal integer: {value!r}") from err
    if not 0 <= amount <= MAX_UINT256:
        raise ValueError(f"amount out of uint256 range: {value}")
    return str(amount)


# 20-byte hex address; case is not significant
Address = Annotated[str, Field(pattern=r"^0x[a-fA-F0-9]{40}$")]

# Raw token amount, carried as a decimal string so 256-bit values survive JSON
Uint256 = Annotated[
    str,
    BeforeValidator(parse_uint256),
    Field(description="Raw token amount as a decimal string"),
]


def normalize_address(address: str) -> str:
    """Lowercase an address and make sure it carries the 0x prefix."""
    address = address.lower()
    return address if address.startswith("0x") else "0x" + address


def is_valid_address(address: Any) -> bool:
    """True for a 0x-prefixed 20-byte hex string, in any case."""
    return isinstance(address, str) and address.startswith("0x") and is_hex_address(address)
