"""Router configuration.

Every tunable of the router lives on one frozen dataclass. Per-request
options produce a derived copy; there is no module-level mutable state.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from decimal import Decimal

from dexrouter.constants import (
    B_SWAP_BASE_GAS,
    B_SWAP_HOP_GAS,
    CROSS_ROUTE_BASE_GAS,
    CROSS_ROUTE_HOP_GAS,
    DEFAULT_BRIDGE_TOKENS,
    DEFAULT_GAS_PRICE_WEI,
    SPLIT_LEG_GAS,
    U_SWAP_BASE_GAS,
    U_SWAP_HOP_GAS,
    WETH,
    WRAP_GAS,
)
from dexrouter.errors import InvalidConfig
from dexrouter.models.types import is_valid_address, normalize_address

MAX_CANDIDATES_LIMIT = 50


@dataclass(frozen=True)
class OptimizeOptions:
    """Per-request options. None means "use the router default".

    Attributes:
        slippage: Tolerated output shortfall, in [0, 1]
        max_hops: Maximum swap hops per path (1, 2 or 3)
        use_venue_u: Route through concentrated-liquidity pools
        use_venue_b: Route through weighted/stable pools
        bridge_set: Intermediate tokens for 2- and 3-hop paths
        liquidity_floor: Minimum pool liquidity in normalized units
        max_candidates: Number of routes handed to the split optimizer (1..50)
    """

    slippage: Decimal | None = None
    max_hops: int | None = None
    use_venue_u: bool | None = None
    use_venue_b: bool | None = None
    bridge_set: tuple[str, ...] | None = None
    liquidity_floor: Decimal | None = None
    max_candidates: int | None = None


@dataclass(frozen=True)
class RouterConfig:
    """Centralized configuration for discovery, routing and plan building.

    Attributes:
        use_venue_u: Enable concentrated-liquidity venue U
        use_venue_b: Enable weighted/stable venue B
        wrapped_native: Address treated as 1:1 with the native asset
        bridge_tokens: Bridge tokens, in priority order
        liquidity_floor: Pools with less normalized liquidity are ignored
        max_hops: Maximum swap hops per path
        max_candidates: Routes passed to the optimizer, by single-shot output
        three_hop_cap: Maximum 3-hop paths generated per request
        slippage: Default slippage for minimum-out bounds
        pivot: Pivot level of the seed transform
        seed_floor: Minimum seed fraction per route
        initial_step: Hill-climbing starting step size
        step_decay: Step multiplier when no neighbor improves
        min_step: Search stops below this step size
        max_iterations: Search stops after this many iterations
        tie_tolerance_bps: Net outputs within this many basis points tie
        gas_price_wei: Gas price used to value gas in output tokens
        io_timeout: Per-call deadline for indexer and chain reads, seconds
        pool_page_size: Indexer page size
    """

    # Venues
    use_venue_u: bool = True
    use_venue_b: bool = True

    # Path enumeration
    wrapped_native: str = WETH
    bridge_tokens: tuple[str, ...] = DEFAULT_BRIDGE_TOKENS
    liquidity_floor: Decimal = Decimal("0.01")
    max_hops: int = 3
    max_candidates: int = 10
    three_hop_cap: int = 10

    # Plan building
    slippage: Decimal = Decimal("0.005")
    tie_tolerance_bps: int = 5

    # Split optimizer
    pivot: float = 0.40
    seed_floor: float = 0.001
    initial_step: float = 0.02
    step_decay: float = 0.8
    min_step: float = 5e-5
    max_iterations: int = 200

    # Gas model
    gas_price_wei: int = DEFAULT_GAS_PRICE_WEI
    u_swap_base_gas: int = U_SWAP_BASE_GAS
    u_swap_hop_gas: int = U_SWAP_HOP_GAS
    b_swap_base_gas: int = B_SWAP_BASE_GAS
    b_swap_hop_gas: int = B_SWAP_HOP_GAS
    cross_route_base_gas: int = CROSS_ROUTE_BASE_GAS
    cross_route_hop_gas: int = CROSS_ROUTE_HOP_GAS
    wrap_gas: int = WRAP_GAS
    split_leg_gas: int = SPLIT_LEG_GAS

    # I/O
    io_timeout: float = 30.0
    pool_page_size: int = 200

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        """Check invariants of the configuration.

        Raises:
            InvalidConfig: If any value is out of range
        """
        if not (self.use_venue_u or self.use_venue_b):
            raise InvalidConfig("At least one DEX must be enabled")
        if not Decimal(0) <= self.slippage <= Decimal(1):
            raise InvalidConfig(f"slippage must be in [0, 1], got {self.slippage}")
        if self.max_hops not in (1, 2, 3):
            raise InvalidConfig(f"maxHops must be 1, 2 or 3, got {self.max_hops}")
        if not 1 <= self.max_candidates <= MAX_CANDIDATES_LIMIT:
            raise InvalidConfig(
                f"maxCandidates must be in [1, {MAX_CANDIDATES_LIMIT}], got {self.max_candidates}"
            )
        if self.liquidity_floor < 0:
            raise InvalidConfig(f"liquidityFloor must be non-negative, got {self.liquidity_floor}")
        if not 0 < self.pivot < 1:
            raise InvalidConfig(f"pivot must be in (0, 1), got {self.pivot}")
        if not 0 < self.step_decay < 1:
            raise InvalidConfig(f"step_decay must be in (0, 1), got {self.step_decay}")
        for address in (self.wrapped_native, *self.bridge_tokens):
            if not is_valid_address(address):
                raise InvalidConfig(f"Invalid token address: {address}")

    @property
    def tie_tolerance(self) -> Decimal:
        return Decimal(self.tie_tolerance_bps) / Decimal(10_000)

    def with_options(self, opts: OptimizeOptions | None) -> RouterConfig:
        """Return a copy with per-request options applied.

        Raises:
            InvalidConfig: If the resulting configuration is invalid
        """
        if opts is None:
            return self
        changes: dict[str, object] = {}
        if opts.slippage is not None:
            changes["slippage"] = Decimal(str(opts.slippage))
        if opts.max_hops is not None:
            changes["max_hops"] = opts.max_hops
        if opts.use_venue_u is not None:
            changes["use_venue_u"] = opts.use_venue_u
        if opts.use_venue_b is not None:
            changes["use_venue_b"] = opts.use_venue_b
        if opts.bridge_set is not None:
            changes["bridge_tokens"] = tuple(normalize_address(a) for a in opts.bridge_set)
        if opts.liquidity_floor is not None:
            changes["liquidity_floor"] = Decimal(str(opts.liquidity_floor))
        if opts.max_candidates is not None:
            changes["max_candidates"] = opts.max_candidates
        return dataclasses.replace(self, **changes)  # type: ignore[arg-type]


# Default configuration instance
DEFAULT_ROUTER_CONFIG = RouterConfig()

__all__ = ["OptimizeOptions", "RouterConfig", "DEFAULT_ROUTER_CONFIG", "MAX_CANDIDATES_LIMIT"]
