"""AMM kernel: pool-class dispatch.

Each pool class has a static handler taking normalized (18-decimal) input
and returning normalized output. Dispatch is an explicit lookup on
``Pool.pool_class``; pools carry no behavior of their own.
"""

from __future__ import annotations

from collections.abc import Callable

from dexrouter.errors import AmmError, ZeroBalanceError
from dexrouter.math.fixed_point import denormalize, normalize
from dexrouter.pools.types import (
    ConcentratedState,
    Pool,
    PoolClass,
    StableParams,
    WeightedParams,
)

from . import concentrated, stable, weighted

SwapHandler = Callable[[Pool, int, int, int], int]


def _normalized_balances(pool: Pool) -> list[int]:
    return [
        normalize(balance, token.decimals)
        for balance, token in zip(pool.balances, pool.tokens, strict=True)
    ]


def _weighted_out(pool: Pool, token_in_idx: int, token_out_idx: int, amount_in: int) -> int:
    params = pool.params
    if not isinstance(params, WeightedParams):
        raise AmmError(f"pool {pool.id} is missing weights")
    if len(params.weights) != len(pool.tokens):
        raise AmmError(
            f"pool {pool.id} has {len(params.weights)} weights for {len(pool.tokens)} tokens"
        )
    balances = _normalized_balances(pool)
    return weighted.calc_out_given_in(
        balance_in=balances[token_in_idx],
        weight_in=params.weights[token_in_idx],
        balance_out=balances[token_out_idx],
        weight_out=params.weights[token_out_idx],
        amount_in=amount_in,
        swap_fee=pool.swap_fee,
    )


def _stable_out(pool: Pool, token_in_idx: int, token_out_idx: int, amount_in: int) -> int:
    params = pool.params
    if not isinstance(params, StableParams):
        raise AmmError(f"pool {pool.id} is missing amplification")
    return stable.calc_out_given_in(
        amp=stable.scale_amplification(params.amplification),
        balances=_normalized_balances(pool),
        token_index_in=token_in_idx,
        token_index_out=token_out_idx,
        amount_in=amount_in,
        swap_fee=pool.swap_fee,
    )


def _concentrated_out(pool: Pool, token_in_idx: int, token_out_idx: int, amount_in: int) -> int:
    # Concentrated math runs on raw units; convert at the boundary
    raw_in = denormalize(amount_in, pool.tokens[token_in_idx].decimals)
    result = quote_concentrated(pool, token_in_idx, raw_in)
    return normalize(result.amount_out, pool.tokens[token_out_idx].decimals)


_HANDLERS: dict[PoolClass, SwapHandler] = {
    PoolClass.WEIGHTED: _weighted_out,
    PoolClass.STABLE: _stable_out,
    PoolClass.CONCENTRATED: _concentrated_out,
}


def quote_concentrated(
    pool: Pool, token_in_idx: int, amount_in: int
) -> concentrated.ConcentratedSwapResult:
    """Exact-input swap through a concentrated pool, in raw units.

    Returns the output together with the resulting sqrt price.
    """
    state = pool.params
    if not isinstance(state, ConcentratedState):
        raise AmmError(f"pool {pool.id} is missing concentrated state")
    if len(pool.tokens) != 2:
        raise AmmError(f"concentrated pool {pool.id} must have exactly two tokens")
    if state.liquidity <= 0 and not state.ticks:
        raise ZeroBalanceError(f"pool {pool.id} has no liquidity")
    return concentrated.swap_exact_input(state, token_in_idx == 0, amount_in)


def swap_normalized(pool: Pool, token_in_idx: int, token_out_idx: int, amount_in: int) -> int:
    """Output of a single hop in normalized (18-decimal) units.

    Args:
        pool: Classified pool snapshot
        token_in_idx: Index of the input token in pool.tokens
        token_out_idx: Index of the output token in pool.tokens
        amount_in: Normalized input amount

    Returns:
        Normalized output amount

    Raises:
        AmmError: If the pool cannot price this swap
        SimulationDiverged: If an iterative solver fails to converge
    """
    n_tokens = len(pool.tokens)
    if token_in_idx == token_out_idx:
        raise AmmError("token_in_idx and token_out_idx must differ")
    if not (0 <= token_in_idx < n_tokens and 0 <= token_out_idx < n_tokens):
        raise AmmError(f"token index out of range for pool {pool.id}")
    if amount_in <= 0:
        return 0

    handler = _HANDLERS.get(pool.pool_class)
    if handler is None:
        raise AmmError(f"pool {pool.id} has no pricing class ({pool.pool_class.value})")
    return handler(pool, token_in_idx, token_out_idx, amount_in)


def swap_raw(pool: Pool, token_in_idx: int, token_out_idx: int, amount_in: int) -> int:
    """Output of a single hop in raw token units."""
    amount = normalize(amount_in, pool.tokens[token_in_idx].decimals)
    out = swap_normalized(pool, token_in_idx, token_out_idx, amount)
    return denormalize(out, pool.tokens[token_out_idx].decimals)


__all__ = ["quote_concentrated", "swap_normalized", "swap_raw"]
