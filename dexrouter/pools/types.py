"""Pool and token data structures.

A Pool is a tagged union keyed by ``pool_class``. Class-specific data lives in
``params``: WeightedParams, StableParams or ConcentratedState. Pools are
immutable snapshots; refreshing state produces a new Pool.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from dexrouter.constants import NATIVE, WETH
from dexrouter.math.fixed_point import normalize


class PoolClass(str, Enum):
    """AMM pricing class of a pool."""

    WEIGHTED = "Weighted"
    STABLE = "Stable"
    CONCENTRATED = "Concentrated"
    UNKNOWN = "Unknown"


class Venue(str, Enum):
    """AMM protocol family a pool belongs to."""

    U = "U"  # concentrated liquidity
    B = "B"  # weighted / stable


@dataclass(frozen=True)
class Token:
    """An ERC20 token (or the native asset).

    Attributes:
        address: Lowercase address. 0x00..00 designates the native asset.
        symbol: Ticker symbol, informational only
        decimals: Token decimals in [0, 30]
    """

    address: str
    symbol: str
    decimals: int

    @property
    def is_native(self) -> bool:
        return self.address == NATIVE


@dataclass(frozen=True)
class WeightedParams:
    """Integer percent weights, one per pool token, summing to 100 (+/-1)."""

    weights: tuple[int, ...]


@dataclass(frozen=True)
class StableParams:
    """Amplification parameter A (unscaled, e.g. Decimal("100"))."""

    amplification: Decimal


@dataclass(frozen=True)
class Tick:
    """An initialized tick of a concentrated-liquidity pool."""

    index: int
    liquidity_net: int
    liquidity_gross: int


@dataclass(frozen=True)
class ConcentratedState:
    """Concentrated-liquidity state for the current block.

    Attributes:
        sqrt_price_x96: Current sqrt(price) as Q64.96
        liquidity: Active liquidity at the current tick
        tick: Current tick index
        tick_spacing: Tick spacing of the pool
        fee_pips: Swap fee in hundredths of a basis point (3000 = 0.3%)
        ticks: Initialized ticks, sorted by index and aligned to tick_spacing
    """

    sqrt_price_x96: int
    liquidity: int
    tick: int
    tick_spacing: int
    fee_pips: int
    ticks: tuple[Tick, ...] = ()


PoolParams = WeightedParams | StableParams | ConcentratedState


@dataclass(frozen=True)
class Pool:
    """A liquidity pool snapshot.

    Attributes:
        id: Opaque pool identifier (lowercase hex)
        venue: Protocol family
        pool_class: Pricing class; selects the AMM handler
        tokens: Ordered pool tokens (at least two)
        balances: Raw balance per token (token decimals)
        swap_fee: Fee as an 18-decimal integer, in [0, 10^18)
        address: Pool contract address, used for on-chain probes
        name: Pool name reported by the indexer
        params: Class-specific parameters, None while unclassified
    """

    id: str
    venue: Venue
    pool_class: PoolClass
    tokens: tuple[Token, ...]
    balances: tuple[int, ...]
    swap_fee: int
    address: str = ""
    name: str = ""
    params: PoolParams | None = None

    @property
    def token_addresses(self) -> tuple[str, ...]:
        return tuple(t.address for t in self.tokens)

    @property
    def is_routable(self) -> bool:
        """True if the pool has the static metadata its class needs."""
        if self.pool_class is PoolClass.WEIGHTED:
            return isinstance(self.params, WeightedParams)
        if self.pool_class is PoolClass.STABLE:
            return isinstance(self.params, StableParams)
        if self.pool_class is PoolClass.CONCENTRATED:
            return isinstance(self.params, ConcentratedState)
        return False

    def index_of(self, address: str, wrapped_native: str = WETH) -> int | None:
        """Index of a token in this pool, matching native and wrapped native as one vertex."""
        target = routing_vertex(address, wrapped_native)
        for i, token in enumerate(self.tokens):
            if routing_vertex(token.address, wrapped_native) == target:
                return i
        return None

    def normalized_liquidity(self) -> Decimal:
        """Sum of balances in normalized units (1.0 == one whole token)."""
        total = sum(
            normalize(balance, token.decimals)
            for balance, token in zip(self.balances, self.tokens, strict=True)
        )
        return Decimal(total) / Decimal(10**18)

    def with_class(self, pool_class: PoolClass, params: PoolParams | None) -> Pool:
        """Return a copy tagged with a pool class and its parameters."""
        return dataclasses.replace(self, pool_class=pool_class, params=params)


def routing_vertex(address: str, wrapped_native: str = WETH) -> str:
    """Map an address to its routing vertex. Native and wrapped native share one vertex."""
    address = address.lower()
    if address == NATIVE:
        return wrapped_native.lower()
    return address


__all__ = [
    "PoolClass",
    "Venue",
    "Token",
    "WeightedParams",
    "StableParams",
    "Tick",
    "ConcentratedState",
    "PoolParams",
    "Pool",
    "routing_vertex",
]
