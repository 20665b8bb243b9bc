"""Fixed-point and high-precision math helpers."""

from dexrouter.math.fixed_point import (
    ONE_18,
    apply_fee,
    denormalize,
    div_up,
    normalize,
    parse_fee,
    parse_units,
    to_fixed,
)
from dexrouter.math.power import fractional_pow

__all__ = [
    "ONE_18",
    "apply_fee",
    "denormalize",
    "div_up",
    "fractional_pow",
    "normalize",
    "parse_fee",
    "parse_units",
    "to_fixed",
]
