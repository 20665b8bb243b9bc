"""Parse indexer pool records into Pool snapshots."""

from __future__ import annotations

from typing import Any

import structlog

from dexrouter.adapters.base import RawPool
from dexrouter.amm.concentrated import (
    MAX_SQRT_RATIO,
    MIN_SQRT_RATIO,
    get_tick_at_sqrt_ratio,
    sanitize_ticks,
)
from dexrouter.math.fixed_point import (
    MAX_TOKEN_DECIMALS,
    ONE_18,
    parse_fee,
    parse_units,
)
from dexrouter.models.types import is_valid_address, normalize_address

from .types import ConcentratedState, Pool, PoolClass, Token, Venue

logger = structlog.get_logger()

# Tick spacing per fee tier (fee in pips)
FEE_TIER_TICK_SPACING = {
    100: 1,
    500: 10,
    3000: 60,
    10000: 200,
}
DEFAULT_TICK_SPACING = 60


def _parse_token(address: Any, symbol: Any, decimals: Any) -> Token | None:
    if not isinstance(address, str) or not is_valid_address(normalize_address(address)):
        return None
    try:
        decimals_int = int(decimals)
    except (TypeError, ValueError):
        return None
    if not 0 <= decimals_int <= MAX_TOKEN_DECIMALS:
        return None
    return Token(
        address=normalize_address(address),
        symbol=str(symbol or ""),
        decimals=decimals_int,
    )


def parse_weighted_venue_pool(raw: RawPool) -> Pool | None:
    """Parse a venue B pool record.

    The pool comes back unclassified; weights or amplification are attached
    later by classification.

    Args:
        raw: Indexer record with id, address, swapFee and tokens
            (balances as human-readable decimal strings)

    Returns:
        Pool tagged Unknown, or None if the record is malformed or the pool
        is flagged paused, in recovery or uninitialized
    """
    pool_id = raw.get("id")
    if not isinstance(pool_id, str) or not pool_id:
        logger.debug("weighted_pool_missing_id")
        return None
    pool_id = pool_id.lower()

    if raw.get("isPaused") is True or raw.get("isInRecoveryMode") is True:
        logger.debug("weighted_pool_inactive", pool_id=pool_id)
        return None
    if raw.get("isInitialized") is False:
        logger.debug("weighted_pool_uninitialized", pool_id=pool_id)
        return None

    raw_tokens = raw.get("tokens")
    if not isinstance(raw_tokens, list) or len(raw_tokens) < 2:
        logger.debug("weighted_pool_invalid_tokens", pool_id=pool_id)
        return None

    tokens: list[Token] = []
    balances: list[int] = []
    for raw_token in raw_tokens:
        if not isinstance(raw_token, dict):
            logger.debug("weighted_pool_invalid_token", pool_id=pool_id, token=raw_token)
            return None
        token = _parse_token(
            raw_token.get("address"), raw_token.get("symbol"), raw_token.get("decimals")
        )
        if token is None:
            logger.debug("weighted_pool_invalid_token", pool_id=pool_id, token=raw_token)
            return None
        try:
            balance = parse_units(raw_token.get("balance", "0"), token.decimals)
        except ValueError:
            logger.debug("weighted_pool_invalid_balance", pool_id=pool_id, token=token.address)
            return None
        tokens.append(token)
        balances.append(balance)

    try:
        swap_fee = parse_fee(raw.get("swapFee", "0"))
    except ValueError:
        logger.debug("weighted_pool_invalid_fee", pool_id=pool_id, fee=raw.get("swapFee"))
        return None

    address = raw.get("address") or pool_id[:42]
    return Pool(
        id=pool_id,
        venue=Venue.B,
        pool_class=PoolClass.UNKNOWN,
        tokens=tuple(tokens),
        balances=tuple(balances),
        swap_fee=swap_fee,
        address=normalize_address(str(address)),
        name=str(raw.get("name") or ""),
    )


def parse_concentrated_pool(raw: RawPool) -> Pool | None:
    """Parse a venue U pool record into a Concentrated pool.

    Ticks are sanitized to the pool's spacing. If the record has no tick,
    it is derived from the sqrt price.

    Args:
        raw: Indexer record with feeTier, liquidity, sqrtPrice, tick,
            tickSpacing, token0/token1 and ticks

    Returns:
        Concentrated Pool, or None if the record is malformed
    """
    pool_id = raw.get("id")
    if not isinstance(pool_id, str) or not pool_id:
        logger.debug("concentrated_pool_missing_id")
        return None
    pool_id = pool_id.lower()

    raw_token0 = raw.get("token0")
    raw_token1 = raw.get("token1")
    if not isinstance(raw_token0, dict) or not isinstance(raw_token1, dict):
        logger.debug("concentrated_pool_invalid_tokens", pool_id=pool_id)
        return None
    token0 = _parse_token(
        raw_token0.get("id"), raw_token0.get("symbol"), raw_token0.get("decimals")
    )
    token1 = _parse_token(
        raw_token1.get("id"), raw_token1.get("symbol"), raw_token1.get("decimals")
    )
    if token0 is None or token1 is None:
        logger.debug("concentrated_pool_invalid_tokens", pool_id=pool_id)
        return None

    try:
        fee_pips = int(raw.get("feeTier", 0))
        sqrt_price = int(raw.get("sqrtPrice", 0))
        liquidity = int(raw.get("liquidity", 0))
        tick_spacing = int(
            raw.get("tickSpacing") or FEE_TIER_TICK_SPACING.get(fee_pips, DEFAULT_TICK_SPACING)
        )
    except (TypeError, ValueError):
        logger.debug("concentrated_pool_invalid_state", pool_id=pool_id)
        return None

    if not 0 <= fee_pips < 1_000_000 or tick_spacing <= 0:
        logger.debug("concentrated_pool_invalid_fee", pool_id=pool_id, fee=fee_pips)
        return None
    if not MIN_SQRT_RATIO <= sqrt_price < MAX_SQRT_RATIO:
        logger.debug("concentrated_pool_uninitialized", pool_id=pool_id)
        return None

    raw_tick = raw.get("tick")
    try:
        tick = int(raw_tick) if raw_tick is not None else get_tick_at_sqrt_ratio(sqrt_price)
    except (TypeError, ValueError):
        tick = get_tick_at_sqrt_ratio(sqrt_price)

    raw_ticks = raw.get("ticks") or []
    try:
        ticks = sanitize_ticks(raw_ticks, tick_spacing)
    except (KeyError, TypeError, ValueError):
        logger.debug("concentrated_pool_invalid_ticks", pool_id=pool_id)
        return None

    balances = []
    for key, token in (("totalValueLockedToken0", token0), ("totalValueLockedToken1", token1)):
        try:
            balances.append(parse_units(raw.get(key) or "0", token.decimals))
        except ValueError:
            balances.append(0)

    state = ConcentratedState(
        sqrt_price_x96=sqrt_price,
        liquidity=liquidity,
        tick=tick,
        tick_spacing=tick_spacing,
        fee_pips=fee_pips,
        ticks=ticks,
    )
    return Pool(
        id=pool_id,
        venue=Venue.U,
        pool_class=PoolClass.CONCENTRATED,
        tokens=(token0, token1),
        balances=tuple(balances),
        # pips -> 18-decimal
        swap_fee=fee_pips * (ONE_18 // 1_000_000),
        address=pool_id if is_valid_address(pool_id) else "",
        name=f"{token0.symbol}/{token1.symbol} {fee_pips}",
        params=state,
    )


__all__ = [
    "FEE_TIER_TICK_SPACING",
    "parse_weighted_venue_pool",
    "parse_concentrated_pool",
]
