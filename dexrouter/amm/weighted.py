"""Weighted pool math.

Core math for weighted product pools:

    out = balance_out * (1 - (balance_in / (balance_in + x_net)) ^ (w_in / w_out))

All amounts are 18-decimal normalized integers. Fee is deducted from the
input before the formula is applied.
"""

from __future__ import annotations

from decimal import Decimal, localcontext
from math import gcd

from dexrouter.errors import InvalidFeeError, ZeroBalanceError, ZeroWeightError
from dexrouter.math.fixed_point import ONE_18, apply_fee
from dexrouter.math.power import WORKING_PRECISION, fractional_pow


def calc_out_given_in(
    balance_in: int,
    weight_in: int,
    balance_out: int,
    weight_out: int,
    amount_in: int,
    swap_fee: int = 0,
) -> int:
    """Calculate the output amount for an exact input.

    Args:
        balance_in: Normalized balance of the input token (must be positive)
        weight_in: Weight of the input token (integer percent, positive)
        balance_out: Normalized balance of the output token (must be positive)
        weight_out: Weight of the output token (integer percent, positive)
        amount_in: Normalized input amount, before fees
        swap_fee: 18-decimal fee in [0, 10^18)

    Returns:
        Normalized output amount, truncated toward zero

    Raises:
        ZeroWeightError: If either weight is not positive
        ZeroBalanceError: If either balance is not positive
        InvalidFeeError: If the fee is outside [0, 1)
    """
    if weight_in <= 0 or weight_out <= 0:
        raise ZeroWeightError(f"weights must be positive, got {weight_in}/{weight_out}")
    if balance_in <= 0 or balance_out <= 0:
        raise ZeroBalanceError(f"balances must be positive, got {balance_in}/{balance_out}")
    if not 0 <= swap_fee < ONE_18:
        raise InvalidFeeError(f"Swap fee must be in range [0, 1), got {swap_fee}")

    if amount_in <= 0:
        return 0

    amount_in_net = apply_fee(amount_in, swap_fee)
    if amount_in_net == 0:
        return 0

    denominator = balance_in + amount_in_net

    # Equal weights reduce to constant product, which is exact in integers
    if weight_in == weight_out:
        return balance_out * amount_in_net // denominator

    divisor = gcd(weight_in, weight_out)
    with localcontext() as ctx:
        ctx.prec = WORKING_PRECISION
        ratio = Decimal(balance_in) / Decimal(denominator)
        power = fractional_pow(ratio, weight_in // divisor, weight_out // divisor)
        amount_out = Decimal(balance_out) * (1 - power)

    # power is within (0, 1), so amount_out never exceeds balance_out
    return max(0, min(int(amount_out), balance_out))


__all__ = ["calc_out_given_in"]
