"""High-precision fractional power.

Weighted-pool math needs ``r ** (n / d)`` for a ratio r in (0, 1] and an
exponent given as a ratio of pool weights. Host floats are not precise
enough, so the power is evaluated in a private decimal context.
"""

from __future__ import annotations

from decimal import Decimal, localcontext

# Working precision. Results carry at least RESULT_PRECISION significant digits.
WORKING_PRECISION = 80
RESULT_PRECISION = 60


def fractional_pow(base: Decimal, numerator: int, denominator: int) -> Decimal:
    """Compute ``base ** (numerator / denominator)``.

    The relative error is below 10^-40 for base in (0, 1] and exponent parts
    up to 1000.

    Args:
        base: Ratio in [0, 1]
        numerator: Exponent numerator (>= 0)
        denominator: Exponent denominator (> 0)

    Returns:
        The power rounded to RESULT_PRECISION significant digits

    Raises:
        ValueError: If base is negative or the exponent is malformed
    """
    if base < 0:
        raise ValueError(f"base must be non-negative, got {base}")
    if numerator < 0 or denominator <= 0:
        raise ValueError(f"invalid exponent {numerator}/{denominator}")

    if numerator == 0:
        return Decimal(1)
    if base == 0:
        return Decimal(0)
    if numerator == denominator or base == 1:
        return base

    with localcontext() as ctx:
        ctx.prec = WORKING_PRECISION
        if numerator % denominator == 0:
            result = base ** (numerator // denominator)
        else:
            result = (base.ln() * numerator / denominator).exp()
        ctx.prec = RESULT_PRECISION
        return +result
