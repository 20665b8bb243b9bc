"""Concentrated-liquidity swap math.

Exact integer port of the Uniswap V3 TickMath, SqrtPriceMath and SwapMath
libraries, plus an exact-input swap loop that walks initialized ticks from
the current price. All amounts are raw token units (no 18-decimal scaling):
the pool's sqrt price already encodes the raw-unit exchange rate.
"""

from __future__ import annotations

from bisect import bisect_right
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from dexrouter.errors import PriceLimitError, ZeroBalanceError
from dexrouter.pools.types import ConcentratedState, Tick

# =============================================================================
# Constants
# =============================================================================

Q96 = 1 << 96
Q128 = 1 << 128
UINT256_MAX = (1 << 256) - 1

MIN_TICK = -887272
MAX_TICK = 887272
MIN_SQRT_RATIO = 4295128739
MAX_SQRT_RATIO = 1461446703485210103287273052203988822378723970342

# Fee denominator: fees are expressed in pips (1e-6)
FEE_DENOMINATOR = 1_000_000

# (sqrt(1.0001) ^ -(2^i)) * 2^128 for i = 1..19; bit 0 seeds the ratio
_TICK_RATIO_CONSTANTS = (
    (0x2, 0xFFF97272373D413259A46990580E213A),
    (0x4, 0xFFF2E50F5F656932EF12357CF3C7FDCC),
    (0x8, 0xFFE5CACA7E10E4E61C3624EAA0941CD0),
    (0x10, 0xFFCB9843D60F6159C9DB58835C926644),
    (0x20, 0xFF973B41FA98C081472E6896DFB254C0),
    (0x40, 0xFF2EA16466C96A3843EC78B326B52861),
    (0x80, 0xFE5DEE046A99A2A811C461F1969C3053),
    (0x100, 0xFCBE86C7900A88AEDCFFC83B479AA3A4),
    (0x200, 0xF987A7253AC413176F2B074CF7815E54),
    (0x400, 0xF3392B0822B70005940C7A398E4B70F3),
    (0x800, 0xE7159475A2C29B7443B29C7FA6E889D9),
    (0x1000, 0xD097F3BDFD2022B8845AD8F792AA5825),
    (0x2000, 0xA9F746462D870FDF8A65DC1F90E061E5),
    (0x4000, 0x70D869A156D2A1B890BB3DF62BAF32F7),
    (0x8000, 0x31BE135F97D08FD981231505542FCFA6),
    (0x10000, 0x9AA508B5B7A84E1C677DE54F3E99BC9),
    (0x20000, 0x5D6AF8DEDB81196699C329225EE604),
    (0x40000, 0x2216E584F5FA1EA926041BEDFE98),
    (0x80000, 0x48A170391F7DC42444E8FA2),
)


# =============================================================================
# Full math
# =============================================================================


def mul_div(a: int, b: int, denominator: int) -> int:
    """floor(a * b / denominator) without intermediate overflow."""
    if denominator == 0:
        raise ZeroDivisionError("mul_div by zero")
    return (a * b) // denominator


def mul_div_rounding_up(a: int, b: int, denominator: int) -> int:
    """ceil(a * b / denominator) without intermediate overflow."""
    if denominator == 0:
        raise ZeroDivisionError("mul_div by zero")
    result, remainder = divmod(a * b, denominator)
    return result + 1 if remainder else result


def div_rounding_up(a: int, b: int) -> int:
    """ceil(a / b) for non-negative a and positive b."""
    result, remainder = divmod(a, b)
    return result + 1 if remainder else result


# =============================================================================
# Tick math
# =============================================================================


def get_sqrt_ratio_at_tick(tick: int) -> int:
    """Calculate sqrt(1.0001^tick) * 2^96, rounded up.

    Raises:
        ValueError: If tick is outside [MIN_TICK, MAX_TICK]
    """
    abs_tick = abs(tick)
    if abs_tick > MAX_TICK:
        raise ValueError(f"Tick {tick} out of bounds [{MIN_TICK}, {MAX_TICK}]")

    ratio = 0xFFFCB933BD6FAD37AA2D162D1A594001 if abs_tick & 0x1 else Q128
    for mask, constant in _TICK_RATIO_CONSTANTS:
        if abs_tick & mask:
            ratio = (ratio * constant) >> 128

    if tick > 0:
        ratio = UINT256_MAX // ratio

    # Q128.128 -> Q64.96, rounding up
    return (ratio >> 32) + (0 if ratio % (1 << 32) == 0 else 1)


def get_tick_at_sqrt_ratio(sqrt_price_x96: int) -> int:
    """Greatest tick whose sqrt ratio is <= sqrt_price_x96.

    Raises:
        ValueError: If sqrt_price_x96 is outside [MIN_SQRT_RATIO, MAX_SQRT_RATIO)
    """
    if not MIN_SQRT_RATIO <= sqrt_price_x96 < MAX_SQRT_RATIO:
        raise ValueError(f"sqrt_price_x96 {sqrt_price_x96} out of bounds")

    low, high = MIN_TICK, MAX_TICK
    while low < high:
        mid = (low + high + 1) // 2
        if get_sqrt_ratio_at_tick(mid) <= sqrt_price_x96:
            low = mid
        else:
            high = mid - 1
    return low


# =============================================================================
# Sqrt price math
# =============================================================================


def get_amount0_delta(sqrt_a: int, sqrt_b: int, liquidity: int, round_up: bool) -> int:
    """Amount of token0 between two sqrt prices for a given liquidity."""
    if sqrt_a > sqrt_b:
        sqrt_a, sqrt_b = sqrt_b, sqrt_a
    if sqrt_a <= 0:
        raise ValueError("sqrt price must be positive")

    numerator1 = liquidity << 96
    numerator2 = sqrt_b - sqrt_a
    if round_up:
        return div_rounding_up(mul_div_rounding_up(numerator1, numerator2, sqrt_b), sqrt_a)
    return mul_div(numerator1, numerator2, sqrt_b) // sqrt_a


def get_amount1_delta(sqrt_a: int, sqrt_b: int, liquidity: int, round_up: bool) -> int:
    """Amount of token1 between two sqrt prices for a given liquidity."""
    if sqrt_a > sqrt_b:
        sqrt_a, sqrt_b = sqrt_b, sqrt_a
    if round_up:
        return mul_div_rounding_up(liquidity, sqrt_b - sqrt_a, Q96)
    return mul_div(liquidity, sqrt_b - sqrt_a, Q96)


def _next_sqrt_price_from_amount0_rounding_up(sqrt_price: int, liquidity: int, amount: int) -> int:
    if amount == 0:
        return sqrt_price
    numerator1 = liquidity << 96
    product = amount * sqrt_price
    denominator = numerator1 + product
    # The on-chain code falls back to a lossier form when the product overflows
    if product <= UINT256_MAX and denominator <= UINT256_MAX:
        return mul_div_rounding_up(numerator1, sqrt_price, denominator)
    return div_rounding_up(numerator1, numerator1 // sqrt_price + amount)


def _next_sqrt_price_from_amount1_rounding_down(
    sqrt_price: int, liquidity: int, amount: int
) -> int:
    return sqrt_price + (amount << 96) // liquidity


def get_next_sqrt_price_from_input(
    sqrt_price: int, liquidity: int, amount_in: int, zero_for_one: bool
) -> int:
    """Next sqrt price after adding amount_in of the input token.

    Raises:
        ZeroBalanceError: If sqrt_price or liquidity is zero
    """
    if sqrt_price <= 0 or liquidity <= 0:
        raise ZeroBalanceError("sqrt price and liquidity must be positive")
    if zero_for_one:
        return _next_sqrt_price_from_amount0_rounding_up(sqrt_price, liquidity, amount_in)
    return _next_sqrt_price_from_amount1_rounding_down(sqrt_price, liquidity, amount_in)


# =============================================================================
# Swap math
# =============================================================================


@dataclass(frozen=True)
class SwapStep:
    """Result of swapping within a single tick range."""

    sqrt_price_next_x96: int
    amount_in: int
    amount_out: int
    fee_amount: int


def compute_swap_step(
    sqrt_price_current_x96: int,
    sqrt_price_target_x96: int,
    liquidity: int,
    amount_remaining: int,
    fee_pips: int,
) -> SwapStep:
    """Swap an exact input amount within one price range.

    Args:
        sqrt_price_current_x96: Current sqrt price
        sqrt_price_target_x96: Price that cannot be exceeded in this step
        liquidity: Usable liquidity in the range
        amount_remaining: Input still to be swapped, fee inclusive
        fee_pips: Fee in hundredths of a basis point

    Returns:
        The step's resulting price, input consumed, output and fee
    """
    zero_for_one = sqrt_price_current_x96 >= sqrt_price_target_x96

    amount_remaining_less_fee = mul_div(
        amount_remaining, FEE_DENOMINATOR - fee_pips, FEE_DENOMINATOR
    )
    if zero_for_one:
        amount_in = get_amount0_delta(
            sqrt_price_target_x96, sqrt_price_current_x96, liquidity, True
        )
    else:
        amount_in = get_amount1_delta(
            sqrt_price_current_x96, sqrt_price_target_x96, liquidity, True
        )

    if amount_remaining_less_fee >= amount_in:
        sqrt_price_next = sqrt_price_target_x96
    else:
        sqrt_price_next = get_next_sqrt_price_from_input(
            sqrt_price_current_x96, liquidity, amount_remaining_less_fee, zero_for_one
        )

    reached_target = sqrt_price_next == sqrt_price_target_x96

    if zero_for_one:
        if not reached_target:
            amount_in = get_amount0_delta(sqrt_price_next, sqrt_price_current_x96, liquidity, True)
        amount_out = get_amount1_delta(sqrt_price_next, sqrt_price_current_x96, liquidity, False)
    else:
        if not reached_target:
            amount_in = get_amount1_delta(sqrt_price_current_x96, sqrt_price_next, liquidity, True)
        amount_out = get_amount0_delta(sqrt_price_current_x96, sqrt_price_next, liquidity, False)

    if not reached_target:
        # Remainder of the input goes to the fee
        fee_amount = amount_remaining - amount_in
    else:
        fee_amount = mul_div_rounding_up(amount_in, fee_pips, FEE_DENOMINATOR - fee_pips)

    return SwapStep(sqrt_price_next, amount_in, amount_out, fee_amount)


@dataclass(frozen=True)
class ConcentratedSwapResult:
    """Outcome of an exact-input swap through a concentrated pool."""

    amount_out: int
    sqrt_price_x96: int
    tick: int
    liquidity: int
    ticks_crossed: int


def swap_exact_input(
    state: ConcentratedState,
    zero_for_one: bool,
    amount_in: int,
) -> ConcentratedSwapResult:
    """Simulate an exact-input swap, crossing initialized ticks as needed.

    Args:
        state: Pool state snapshot (ticks sorted and aligned)
        zero_for_one: True when selling token0 for token1 (price moves down)
        amount_in: Raw input amount, fee inclusive

    Returns:
        Output amount and the resulting pool price

    Raises:
        PriceLimitError: If the price boundary is hit before the input is used up
        ZeroBalanceError: If the pool price is not initialized
    """
    if state.sqrt_price_x96 <= 0:
        raise ZeroBalanceError("pool sqrt price is not initialized")

    sqrt_price = state.sqrt_price_x96
    tick = state.tick
    liquidity = state.liquidity
    if amount_in <= 0:
        return ConcentratedSwapResult(0, sqrt_price, tick, liquidity, 0)

    indices = [t.index for t in state.ticks]
    liquidity_net = {t.index: t.liquidity_net for t in state.ticks}
    price_limit = MIN_SQRT_RATIO + 1 if zero_for_one else MAX_SQRT_RATIO - 1

    remaining = amount_in
    amount_out = 0
    crossed = 0

    while remaining > 0 and sqrt_price != price_limit:
        step_start = sqrt_price

        if zero_for_one:
            pos = bisect_right(indices, tick) - 1
            initialized = pos >= 0
            tick_next = indices[pos] if initialized else MIN_TICK
        else:
            pos = bisect_right(indices, tick)
            initialized = pos < len(indices)
            tick_next = indices[pos] if initialized else MAX_TICK
        tick_next = max(MIN_TICK, min(MAX_TICK, tick_next))

        sqrt_price_next_tick = get_sqrt_ratio_at_tick(tick_next)
        if zero_for_one:
            target = max(sqrt_price_next_tick, price_limit)
        else:
            target = min(sqrt_price_next_tick, price_limit)

        step = compute_swap_step(sqrt_price, target, liquidity, remaining, state.fee_pips)
        sqrt_price = step.sqrt_price_next_x96
        remaining -= step.amount_in + step.fee_amount
        amount_out += step.amount_out

        if sqrt_price == sqrt_price_next_tick:
            if initialized:
                net = liquidity_net[tick_next]
                liquidity += -net if zero_for_one else net
                crossed += 1
            tick = tick_next - 1 if zero_for_one else tick_next
        elif sqrt_price != step_start:
            tick = get_tick_at_sqrt_ratio(sqrt_price)

    if remaining > 0:
        raise PriceLimitError(
            f"price limit reached with {remaining} of {amount_in} input unconsumed"
        )

    return ConcentratedSwapResult(amount_out, sqrt_price, tick, liquidity, crossed)


# =============================================================================
# Tick snapshots
# =============================================================================


def sanitize_ticks(
    raw_ticks: Iterable[Mapping[str, Any] | Tick], tick_spacing: int
) -> tuple[Tick, ...]:
    """Build a sorted tick snapshot aligned to tick_spacing.

    Ticks whose index is not a multiple of tick_spacing or lies outside
    [MIN_TICK, MAX_TICK] are dropped. Duplicates by index keep the first.

    Args:
        raw_ticks: Tick objects or mappings with tickIdx, liquidityNet and
            liquidityGross fields
        tick_spacing: Pool tick spacing (positive)

    Returns:
        Ticks sorted ascending by index
    """
    if tick_spacing <= 0:
        raise ValueError(f"tick_spacing must be positive, got {tick_spacing}")

    seen: dict[int, Tick] = {}
    for raw in raw_ticks:
        if isinstance(raw, Tick):
            tick = raw
        else:
            tick = Tick(
                index=int(raw["tickIdx"]),
                liquidity_net=int(raw.get("liquidityNet", 0)),
                liquidity_gross=int(raw.get("liquidityGross", 0)),
            )
        if tick.index % tick_spacing != 0:
            continue
        if not MIN_TICK <= tick.index <= MAX_TICK:
            continue
        if tick.index in seen:
            continue
        seen[tick.index] = tick
    return tuple(sorted(seen.values(), key=lambda t: t.index))


__all__ = [
    "Q96",
    "MIN_TICK",
    "MAX_TICK",
    "MIN_SQRT_RATIO",
    "MAX_SQRT_RATIO",
    "mul_div",
    "mul_div_rounding_up",
    "get_sqrt_ratio_at_tick",
    "get_tick_at_sqrt_ratio",
    "get_amount0_delta",
    "get_amount1_delta",
    "get_next_sqrt_price_from_input",
    "SwapStep",
    "compute_swap_step",
    "ConcentratedSwapResult",
    "swap_exact_input",
    "sanitize_ticks",
]
