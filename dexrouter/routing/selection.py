"""Candidate plan scoring and selection.

Candidates are ranked by net output (simulated output minus gas valued in
the output token). Within a small tolerance of the best net output, the
candidate with the lower pool-balance score wins, favouring flow that is
spread across pools and venues.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal
from fractions import Fraction

import structlog

from dexrouter.config import DEFAULT_ROUTER_CONFIG, RouterConfig
from dexrouter.pools.types import Venue
from dexrouter.routing.optimizer import Allocation, OptimizationResult
from dexrouter.routing.types import HopKind, Route, VenueTag

logger = structlog.get_logger()

# Score multipliers for splits that spread flow more widely
CROSS_VENUE_FACTOR = Decimal("0.7")
MIXED_NATIVE_FACTOR = Decimal("0.8")


@dataclass(frozen=True)
class ScoredCandidate:
    """A candidate plan with its ranking inputs.

    Attributes:
        allocations: Legs of the candidate
        total_output: Simulated raw output
        gas_estimate: Estimated gas units
        gas_cost: Gas valued in raw output-token units (0 without prices)
        balance_score: maxFraction squared, with split multipliers
    """

    allocations: tuple[Allocation, ...]
    total_output: int
    gas_estimate: int
    gas_cost: int
    balance_score: Decimal

    @property
    def net_output(self) -> int:
        return self.total_output - self.gas_cost

    @property
    def is_split(self) -> bool:
        return len(self.allocations) > 1

    @property
    def key(self) -> tuple[tuple[tuple[str, ...], int], ...]:
        return tuple((a.route.key, a.amount_in) for a in self.allocations)


def route_gas(route: Route, config: RouterConfig = DEFAULT_ROUTER_CONFIG) -> int:
    """Gas estimate of one route: swap hops by venue plus wrap/unwrap hops."""
    swaps = len(route.swap_hops)
    if route.venue_tag is VenueTag.SINGLE_U:
        gas = config.u_swap_base_gas + config.u_swap_hop_gas * (swaps - 1)
    elif route.venue_tag is VenueTag.SINGLE_B:
        gas = config.b_swap_base_gas + config.b_swap_hop_gas * (swaps - 1)
    else:
        gas = config.cross_route_base_gas + config.cross_route_hop_gas * (swaps - 1)
    conversions = sum(1 for h in route.hops if h.kind is not HopKind.SWAP)
    return gas + config.wrap_gas * conversions


def plan_gas(
    allocations: Sequence[Allocation], config: RouterConfig = DEFAULT_ROUTER_CONFIG
) -> int:
    """Gas estimate of a candidate; every leg past the first adds split overhead."""
    legs = sum(route_gas(a.route, config) for a in allocations)
    return legs + config.split_leg_gas * (len(allocations) - 1)


def gas_cost_in_output(
    gas: int,
    gas_price_wei: int,
    eth_price: Decimal | None,
    token_out_price: Decimal | None,
    token_out_decimals: int,
) -> int:
    """Value gas in raw output-token units.

    cost = gas * gasPrice * ethPrice / tokenOutPrice, scaled to the output
    token's decimals. Without both prices the cost is 0.
    """
    if not eth_price or not token_out_price or eth_price <= 0 or token_out_price <= 0:
        return 0
    eth_spent = Decimal(gas * gas_price_wei) / Decimal(10**18)
    tokens = eth_spent * eth_price / token_out_price
    return int(tokens * Decimal(10**token_out_decimals))


def balance_score(allocations: Sequence[Allocation]) -> Decimal:
    """Pool-balance score of a candidate; lower is better.

    maxFraction squared. Splits that touch both venues are multiplied by
    0.7; splits mixing legs with and without native/wrapped conversion by
    0.8. A single route scores 1.
    """
    if len(allocations) <= 1:
        return Decimal(1)
    max_fraction = max(a.fraction for a in allocations)
    score = Decimal(max_fraction.numerator) / Decimal(max_fraction.denominator)
    score = score * score
    venues: set[Venue] = set()
    for allocation in allocations:
        venues |= allocation.route.venues
    if venues == {Venue.U, Venue.B}:
        score *= CROSS_VENUE_FACTOR
    converts = {a.route.requires_wrap or a.route.requires_unwrap for a in allocations}
    if len(converts) > 1:
        score *= MIXED_NATIVE_FACTOR
    return score


def score_candidate(
    allocations: Sequence[Allocation],
    config: RouterConfig,
    eth_price: Decimal | None,
    token_out_price: Decimal | None,
    token_out_decimals: int,
) -> ScoredCandidate:
    gas = plan_gas(allocations, config)
    return ScoredCandidate(
        allocations=tuple(allocations),
        total_output=sum(a.amount_out for a in allocations),
        gas_estimate=gas,
        gas_cost=gas_cost_in_output(
            gas, config.gas_price_wei, eth_price, token_out_price, token_out_decimals
        ),
        balance_score=balance_score(allocations),
    )


def candidate_allocations(
    result: OptimizationResult,
    routes: Sequence[Route],
    single_outputs: Sequence[int],
    amount_in: int,
) -> list[tuple[Allocation, ...]]:
    """The optimizer's choice followed by every viable single route at 100%."""
    candidates = [result.allocations]
    for route, output in zip(routes, single_outputs, strict=True):
        if output > 0:
            candidates.append((Allocation(route, Fraction(1), amount_in, output),))
    return candidates


def select_best(
    candidates: Sequence[ScoredCandidate], config: RouterConfig = DEFAULT_ROUTER_CONFIG
) -> ScoredCandidate:
    """Pick the winning candidate.

    Candidates whose net output is within tie_tolerance of the best net
    output tie; among them the lowest balance score wins, then the higher
    net output, then the earlier candidate.

    Raises:
        ValueError: If there are no candidates
    """
    if not candidates:
        raise ValueError("no candidates to select from")
    unique: list[ScoredCandidate] = []
    seen: set[tuple[tuple[tuple[str, ...], int], ...]] = set()
    for candidate in candidates:
        if candidate.key not in seen:
            seen.add(candidate.key)
            unique.append(candidate)

    best_net = max(c.net_output for c in unique)
    threshold = Decimal(best_net) - abs(Decimal(best_net)) * config.tie_tolerance
    tied = [c for c in unique if Decimal(c.net_output) >= threshold]
    winner = min(
        enumerate(tied), key=lambda ic: (ic[1].balance_score, -ic[1].net_output, ic[0])
    )[1]
    logger.debug(
        "candidate_selected",
        candidates=len(unique),
        tied=len(tied),
        legs=len(winner.allocations),
        net_output=winner.net_output,
        balance_score=str(winner.balance_score),
    )
    return winner


__all__ = [
    "ScoredCandidate",
    "balance_score",
    "candidate_allocations",
    "gas_cost_in_output",
    "plan_gas",
    "route_gas",
    "score_candidate",
    "select_best",
]
