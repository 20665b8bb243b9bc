"""Pool class detection for venue B pools.

Probes run in a fixed order and the first success wins:

1. ``getNormalizedWeights()``: weighted pool, weights as integer percents
2. ``getAmplificationParameter()``: stable pool
3. Pool name, on-chain first, then the indexer's: "weighted" means equal
   weights, "stable" means A=100

A pool no probe recognizes is Unknown and never routed.
"""

from __future__ import annotations

from decimal import Decimal

import structlog

from dexrouter.adapters.base import Chain
from dexrouter.encoding import (
    GET_AMPLIFICATION_PARAMETER,
    GET_NORMALIZED_WEIGHTS,
    NAME,
    decode_result,
)
from dexrouter.errors import ChainCallError
from dexrouter.math.fixed_point import ONE_18

from .types import Pool, PoolClass, PoolParams, StableParams, WeightedParams

logger = structlog.get_logger()

# Amplification assumed for pools recognized only by name
DEFAULT_NAME_AMPLIFICATION = Decimal(100)

Classification = tuple[PoolClass, PoolParams | None]


def weights_to_percent(weights: list[int] | tuple[int, ...]) -> tuple[int, ...]:
    """Convert 18-decimal normalized weights to integer percents (truncating)."""
    return tuple(int(w) * 100 // ONE_18 for w in weights)


def equal_weights(n_tokens: int) -> tuple[int, ...]:
    """Integer percent weights splitting 100 evenly (50/50 for two tokens)."""
    base, remainder = divmod(100, n_tokens)
    return tuple(base + (1 if i < remainder else 0) for i in range(n_tokens))


def classify_by_name(name: str, n_tokens: int) -> Classification:
    """Guess the pool class from its name."""
    lowered = name.lower()
    if "weighted" in lowered:
        return PoolClass.WEIGHTED, WeightedParams(equal_weights(n_tokens))
    if "stable" in lowered:
        return PoolClass.STABLE, StableParams(DEFAULT_NAME_AMPLIFICATION)
    return PoolClass.UNKNOWN, None


async def _probe_weights(chain: Chain, pool: Pool) -> Classification | None:
    try:
        data = await chain.view(pool.address, GET_NORMALIZED_WEIGHTS)
        (raw_weights,) = decode_result(["uint256[]"], data)
    except ChainCallError:
        return None

    if len(raw_weights) != len(pool.tokens):
        logger.debug(
            "weights_probe_length_mismatch",
            pool_id=pool.id,
            weights=len(raw_weights),
            tokens=len(pool.tokens),
        )
        return None

    percents = weights_to_percent(raw_weights)
    out_of_range = any(not 0 < w < 100 for w in percents)
    if out_of_range or abs(sum(percents) - 100) > max(1, len(percents) - 1):
        # Answered the weights call but cannot be expressed in percents
        logger.debug("weights_probe_unrepresentable", pool_id=pool.id, weights=percents)
        return PoolClass.UNKNOWN, None
    return PoolClass.WEIGHTED, WeightedParams(percents)


async def _probe_amplification(chain: Chain, pool: Pool) -> Classification | None:
    try:
        data = await chain.view(pool.address, GET_AMPLIFICATION_PARAMETER)
        value, _is_updating, precision = decode_result(["uint256", "bool", "uint256"], data)
    except ChainCallError:
        return None

    # While A is ramping, the current value is used
    amplification = Decimal(value) / Decimal(precision) if precision else Decimal(value)
    if amplification < 1:
        logger.debug("amplification_probe_invalid", pool_id=pool.id, value=value)
        return None
    return PoolClass.STABLE, StableParams(amplification)


async def _probe_name(chain: Chain, pool: Pool) -> str | None:
    try:
        data = await chain.view(pool.address, NAME)
        (name,) = decode_result(["string"], data)
    except ChainCallError:
        return None
    return str(name)


async def probe_pool_class(pool: Pool, chain: Chain | None) -> Classification:
    """Detect a venue B pool's class and static parameters.

    Args:
        pool: Unclassified pool
        chain: Chain reader, or None to rely on the indexer name only

    Returns:
        (pool_class, params); Unknown pools have params None

    Raises:
        RateLimited: If the chain signals a rate limit
        ChainUnavailable: If the chain cannot be reached
    """
    if chain is not None and pool.address:
        result = await _probe_weights(chain, pool)
        if result is not None:
            return result

        result = await _probe_amplification(chain, pool)
        if result is not None:
            return result

        name = await _probe_name(chain, pool)
        if name:
            result = classify_by_name(name, len(pool.tokens))
            if result[0] is not PoolClass.UNKNOWN:
                return result

    return classify_by_name(pool.name, len(pool.tokens))


__all__ = [
    "Classification",
    "classify_by_name",
    "equal_weights",
    "probe_pool_class",
    "weights_to_percent",
]
