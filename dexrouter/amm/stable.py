"""Stable pool math.

Core math for StableSwap pools (Balancer parameterization). The invariant D
and the post-trade output balance are both solved by Newton-Raphson
iteration on unbounded integers in 18-decimal normalized space.
"""

from __future__ import annotations

from decimal import Decimal

from dexrouter.errors import (
    InvalidFeeError,
    StableBalanceDidNotConverge,
    StableInvariantDidNotConverge,
    ZeroBalanceError,
)
from dexrouter.math.fixed_point import ONE_18, apply_fee, div_up

# Amplification values are scaled by this factor inside the solver
AMP_PRECISION = 1000

# Maximum iterations for Newton-Raphson convergence
STABLE_MAX_ITERATIONS = 255


def scale_amplification(amplification: Decimal) -> int:
    """Scale an unscaled amplification parameter (e.g. 100) by AMP_PRECISION."""
    if amplification < 1:
        raise ValueError(f"Amplification must be >= 1, got {amplification}")
    return int(amplification * AMP_PRECISION)


def calculate_invariant(amp: int, balances: list[int]) -> int:
    """Calculate the StableSwap invariant D.

    Uses Balancer's parameterization where the Newton-Raphson formula uses
    A*n (not A*n^n); the n^n factor enters through the iterative d_p term.

    Algorithm:
        1. Initial guess: D = sum(balances)
        2. Iterate until |D_new - D_old| <= 1
        3. Give up after STABLE_MAX_ITERATIONS

    Args:
        amp: Amplification parameter scaled by AMP_PRECISION
        balances: Normalized token balances

    Returns:
        The invariant D

    Raises:
        StableInvariantDidNotConverge: If iteration doesn't converge
        ZeroBalanceError: If any balance is not positive
    """
    n_coins = len(balances)
    if n_coins == 0:
        return 0

    for i, balance in enumerate(balances):
        if balance <= 0:
            raise ZeroBalanceError(f"Balance at index {i} must be positive")

    sum_balances = sum(balances)
    d_prev = sum_balances
    amp_times_n = amp * n_coins

    for _ in range(STABLE_MAX_ITERATIONS):
        # d_p = D^(n+1) / (n^n * prod(balances))
        d_p = d_prev
        for balance in balances:
            d_p = (d_p * d_prev) // (n_coins * balance)

        numerator = ((amp_times_n * sum_balances) // AMP_PRECISION + d_p * n_coins) * d_prev
        denominator = ((amp_times_n - AMP_PRECISION) * d_prev) // AMP_PRECISION + (
            n_coins + 1
        ) * d_p
        d_new = numerator // denominator

        if abs(d_new - d_prev) <= 1:
            return d_new
        d_prev = d_new

    raise StableInvariantDidNotConverge(
        f"Stable invariant did not converge after {STABLE_MAX_ITERATIONS} iterations"
    )


def get_token_balance_given_invariant_and_all_other_balances(
    amp: int,
    balances: list[int],
    invariant: int,
    token_index: int,
) -> int:
    """Solve for balances[token_index] given D and all other balances.

    Args:
        amp: Amplification parameter scaled by AMP_PRECISION
        balances: Normalized balances; the entry at token_index is ignored
            except for the c term
        invariant: The invariant D to preserve
        token_index: Index of the balance to solve for

    Returns:
        The solved balance

    Raises:
        StableBalanceDidNotConverge: If iteration doesn't converge
        IndexError: If token_index is out of range
    """
    n_coins = len(balances)
    if not 0 <= token_index < n_coins:
        raise IndexError(f"token_index {token_index} out of range for {n_coins} tokens")

    d = invariant
    amp_times_total = amp * n_coins

    sum_balances = balances[0]
    p_d = balances[0] * n_coins
    for j in range(1, n_coins):
        p_d = (p_d * balances[j] * n_coins) // d
        sum_balances += balances[j]

    sum_others = sum_balances - balances[token_index]
    inv2 = d * d

    amp_times_p_d = amp_times_total * p_d
    if amp_times_p_d == 0:
        raise StableBalanceDidNotConverge("amp_times_p_d is zero")
    c = div_up(inv2, amp_times_p_d) * AMP_PRECISION * balances[token_index]
    b = sum_others + (d // amp_times_total) * AMP_PRECISION

    token_balance = div_up(inv2 + c, d + b)

    for _ in range(STABLE_MAX_ITERATIONS):
        prev_token_balance = token_balance

        # y = (y^2 + c) / (2y + b - D)
        denominator = 2 * token_balance + b - d
        if denominator <= 0:
            raise StableBalanceDidNotConverge("Denominator became non-positive")
        token_balance = div_up(token_balance * token_balance + c, denominator)

        if abs(token_balance - prev_token_balance) <= 1:
            return token_balance

    raise StableBalanceDidNotConverge(
        f"Stable get_balance did not converge after {STABLE_MAX_ITERATIONS} iterations"
    )


def calc_out_given_in(
    amp: int,
    balances: list[int],
    token_index_in: int,
    token_index_out: int,
    amount_in: int,
    swap_fee: int = 0,
) -> int:
    """Calculate the output amount for an exact input in a stable pool.

    Algorithm:
        1. Deduct the fee from amount_in
        2. Calculate current invariant D
        3. Add the net input to balances[token_index_in]
        4. Solve for the new balances[token_index_out] given D
        5. Return old - new - 1 (1 unit rounding protection)

    Args:
        amp: Amplification parameter scaled by AMP_PRECISION
        balances: Normalized token balances
        token_index_in: Index of input token
        token_index_out: Index of output token
        amount_in: Normalized input amount, before fees
        swap_fee: 18-decimal fee in [0, 10^18)

    Returns:
        Normalized output amount

    Raises:
        SimulationDiverged: If either Newton solve fails to converge
        ValueError: If token_index_in == token_index_out
    """
    n_coins = len(balances)
    if not 0 <= token_index_in < n_coins or not 0 <= token_index_out < n_coins:
        raise IndexError(f"token indices out of range for {n_coins} tokens")
    if token_index_in == token_index_out:
        raise ValueError("Cannot swap token with itself")
    if not 0 <= swap_fee < ONE_18:
        raise InvalidFeeError(f"Swap fee must be in range [0, 1), got {swap_fee}")

    amount_in_net = apply_fee(amount_in, swap_fee)
    if amount_in_net <= 0:
        return 0

    invariant = calculate_invariant(amp, balances)

    new_balances = list(balances)
    new_balances[token_index_in] = balances[token_index_in] + amount_in_net

    new_balance_out = get_token_balance_given_invariant_and_all_other_balances(
        amp, new_balances, invariant, token_index_out
    )

    old_balance_out = balances[token_index_out]
    if new_balance_out >= old_balance_out:
        return 0
    return old_balance_out - new_balance_out - 1


__all__ = [
    "AMP_PRECISION",
    "STABLE_MAX_ITERATIONS",
    "scale_amplification",
    "calculate_invariant",
    "get_token_balance_given_invariant_and_all_other_balances",
    "calc_out_given_in",
]
