"""Execution plan building.

Turns the selected allocations into ordered steps an external signer can
assemble into transactions: swap steps grouped by venue, wrap/unwrap steps,
token approvals and minimum-out bounds.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass, field, replace
from decimal import Decimal
from enum import Enum, IntEnum
from fractions import Fraction

import structlog

from dexrouter.constants import BALANCER_VAULT, NATIVE, UNIVERSAL_ROUTER
from dexrouter.pools.types import Venue
from dexrouter.routing.optimizer import Allocation
from dexrouter.routing.simulator import RouteSimulator
from dexrouter.routing.types import Hop, HopKind

logger = structlog.get_logger()


class StepVenue(str, Enum):
    """Where a step executes."""

    U = "U"
    B = "B"
    WRAP = "Wrap"
    UNWRAP = "Unwrap"


class StepMethod(str, Enum):
    """How a step's pools are invoked."""

    SINGLE = "single"
    BATCH = "batch"  # multi-pool venue B swap
    MULTI = "multi"  # multi-pool venue U swap


class WrapOperation(IntEnum):
    """Terminal native/wrapped-native conversion codes."""

    NONE = 0
    WRAP_BEFORE = 1
    WRAP_AFTER = 2
    UNWRAP_BEFORE = 3
    UNWRAP_AFTER = 4


SPENDERS: dict[StepVenue, str] = {
    StepVenue.U: UNIVERSAL_ROUTER,
    StepVenue.B: BALANCER_VAULT,
}


@dataclass(frozen=True)
class Step:
    """One executable step.

    Attributes:
        venue: U, B, Wrap or Unwrap
        method: single, batch or multi
        pools: Pool ids traversed, in order (empty for wrap/unwrap)
        tokens: Token path, len(pools) + 1 entries for swaps
        token_in: Input token
        token_out: Output token
        amount_in: Exact raw input
        expected_amount_out: Simulated raw output
        min_amount_out: Minimum acceptable raw output
        split_index: Position among steps consuming the same token at the same depth
        split_total: Number of such steps
        use_all_balance: Consume the whole runtime balance of token_in
        leg: Index of the leg this step belongs to, -1 for shared steps
    """

    venue: StepVenue
    method: StepMethod
    pools: tuple[str, ...]
    tokens: tuple[str, ...]
    token_in: str
    token_out: str
    amount_in: int
    expected_amount_out: int
    min_amount_out: int
    split_index: int = 0
    split_total: int = 1
    use_all_balance: bool = False
    leg: int = -1


@dataclass(frozen=True)
class Approval:
    """Token allowance required before execution."""

    token: str
    spender: str
    amount: int


@dataclass(frozen=True)
class SplitLeg:
    """Summary of one leg of the chosen plan."""

    route: str
    pools: tuple[str, ...]
    venue_tag: str
    fraction: Fraction
    amount_in: int
    amount_out: int


@dataclass(frozen=True)
class ExecutionPlan:
    """The router's final artifact.

    Attributes:
        token_in: Input token
        token_out: Output token
        amount_in: Total raw input
        steps: Ordered steps
        approvals: Allowances, unique by (token, spender)
        expected_output: Simulated total raw output
        min_output: Minimum acceptable total raw output
        total_gas_estimate: Estimated gas units
        gas_cost: Gas valued in raw output-token units
        splits: Per-leg summary
        wrap_operations: Terminal conversion codes, ascending
        requires_wrap: Plan wraps native somewhere
        requires_unwrap: Plan unwraps wrapped native somewhere
        balance_score: Pool-balance score of the chosen candidate
    """

    token_in: str
    token_out: str
    amount_in: int
    steps: tuple[Step, ...]
    approvals: tuple[Approval, ...]
    expected_output: int
    min_output: int
    total_gas_estimate: int
    gas_cost: int = 0
    splits: tuple[SplitLeg, ...] = ()
    wrap_operations: tuple[WrapOperation, ...] = ()
    requires_wrap: bool = False
    requires_unwrap: bool = False
    balance_score: Decimal = field(default=Decimal(1))

    @property
    def wrap_operation(self) -> WrapOperation:
        """First terminal conversion code, NONE if the plan has none."""
        return self.wrap_operations[0] if self.wrap_operations else WrapOperation.NONE

    @property
    def is_split(self) -> bool:
        return len(self.splits) > 1


def min_out(expected: int, slippage: Decimal) -> int:
    """ceil(expected * (1 - slippage)), never above expected."""
    bound = math.ceil(expected * (1 - Fraction(str(slippage))))
    return min(max(bound, 0), expected)


@dataclass
class _Segment:
    """A run of hops of one leg that becomes one step."""

    hops: list[Hop]
    amount_in: int
    amount_out: int

    @property
    def kind(self) -> HopKind:
        return self.hops[0].kind


def _segments(hops: Sequence[Hop], amounts: Sequence[int]) -> list[_Segment]:
    """Split a leg into steps: same-venue swap runs merge, conversions stand alone."""
    segments: list[_Segment] = []
    for k, hop in enumerate(hops):
        last = segments[-1] if segments else None
        if (
            last is not None
            and hop.is_swap
            and last.kind is HopKind.SWAP
            and last.hops[-1].venue is hop.venue
        ):
            last.hops.append(hop)
            last.amount_out = amounts[k + 1]
        else:
            segments.append(_Segment([hop], amounts[k], amounts[k + 1]))
    return segments


def _swap_method(venue: Venue, hops: int) -> StepMethod:
    if hops == 1:
        return StepMethod.SINGLE
    return StepMethod.BATCH if venue is Venue.B else StepMethod.MULTI


class PlanBuilder:
    """Build execution plans from allocations over a pool snapshot."""

    def __init__(self, simulator: RouteSimulator, slippage: Decimal):
        self.simulator = simulator
        self.slippage = slippage

    def _conversion_step(
        self, kind: HopKind, token_in: str, token_out: str, amount: int, leg: int = -1
    ) -> Step:
        return Step(
            venue=StepVenue.WRAP if kind is HopKind.WRAP else StepVenue.UNWRAP,
            method=StepMethod.SINGLE,
            pools=(),
            tokens=(token_in, token_out),
            token_in=token_in,
            token_out=token_out,
            amount_in=amount,
            expected_amount_out=amount,
            min_amount_out=amount,
            leg=leg,
        )

    def _swap_step(self, segment: _Segment, leg: int) -> Step:
        venue = segment.hops[0].venue
        assert venue is not None
        return Step(
            venue=StepVenue(venue.value),
            method=_swap_method(venue, len(segment.hops)),
            pools=tuple(h.pool_id for h in segment.hops if h.pool_id is not None),
            tokens=(segment.hops[0].token_in, *(h.token_out for h in segment.hops)),
            token_in=segment.hops[0].token_in,
            token_out=segment.hops[-1].token_out,
            amount_in=segment.amount_in,
            expected_amount_out=segment.amount_out,
            min_amount_out=min_out(segment.amount_out, self.slippage),
            leg=leg,
        )

    def build(
        self,
        token_in: str,
        token_out: str,
        amount_in: int,
        allocations: Sequence[Allocation],
        total_gas_estimate: int = 0,
        gas_cost: int = 0,
        balance_score: Decimal = Decimal(1),
    ) -> ExecutionPlan:
        """Build the plan for a set of legs.

        Each leg is re-traced with its exact input so that every step amount
        chains with its neighbours. Leading conversions of all legs collapse
        into one step per direction, as do trailing ones.

        Args:
            token_in: Input token of the request
            token_out: Output token of the request
            amount_in: Total raw input; leg inputs must sum to it
            allocations: Legs to execute
            total_gas_estimate: Gas estimate of the candidate
            gas_cost: Gas valued in output-token units
            balance_score: Balance score of the candidate

        Returns:
            The execution plan
        """
        if sum(a.amount_in for a in allocations) != amount_in:
            raise ValueError("leg inputs must sum to the request input")

        leading: dict[tuple[HopKind, str, str], int] = {}
        trailing: dict[tuple[HopKind, str, str], int] = {}
        middle: list[tuple[int, int, Step]] = []  # (leg, depth, step)
        legs: list[SplitLeg] = []
        expected_output = 0

        for leg, allocation in enumerate(allocations):
            route = allocation.route
            amounts = self.simulator.trace(route, allocation.amount_in)
            segments = _segments(route.hops, amounts)
            first_swap = next(i for i, s in enumerate(segments) if s.kind is HopKind.SWAP)
            last_swap = max(i for i, s in enumerate(segments) if s.kind is HopKind.SWAP)

            for i, segment in enumerate(segments):
                hop = segment.hops[0]
                if i < first_swap or i > last_swap:
                    bucket = leading if i < first_swap else trailing
                    key = (hop.kind, hop.token_in, hop.token_out)
                    bucket[key] = bucket.get(key, 0) + segment.amount_in
                elif segment.kind is HopKind.SWAP:
                    middle.append((leg, i - first_swap, self._swap_step(segment, leg)))
                else:
                    step = self._conversion_step(
                        hop.kind, hop.token_in, hop.token_out, segment.amount_in, leg
                    )
                    middle.append((leg, i - first_swap, step))

            expected_output += amounts[-1]
            legs.append(
                SplitLeg(
                    route=route.describe(),
                    pools=route.key,
                    venue_tag=route.venue_tag.value,
                    fraction=Fraction(allocation.amount_in, amount_in),
                    amount_in=allocation.amount_in,
                    amount_out=amounts[-1],
                )
            )

        steps = [
            self._conversion_step(kind, t_in, t_out, amt)
            for (kind, t_in, t_out), amt in leading.items()
        ]
        steps.extend(self._mark_splits(middle))
        steps.extend(
            self._conversion_step(kind, t_in, t_out, amt)
            for (kind, t_in, t_out), amt in trailing.items()
        )
        steps = self._mark_use_all_balance(steps)

        wrap_operations = sorted(
            {
                WrapOperation.WRAP_BEFORE if k is HopKind.WRAP else WrapOperation.UNWRAP_BEFORE
                for k, _, _ in leading
            }
            | {
                WrapOperation.WRAP_AFTER if k is HopKind.WRAP else WrapOperation.UNWRAP_AFTER
                for k, _, _ in trailing
            }
        )

        plan = ExecutionPlan(
            token_in=token_in,
            token_out=token_out,
            amount_in=amount_in,
            steps=tuple(steps),
            approvals=approvals_for(steps),
            expected_output=expected_output,
            min_output=min_out(expected_output, self.slippage),
            total_gas_estimate=total_gas_estimate,
            gas_cost=gas_cost,
            splits=tuple(legs),
            wrap_operations=tuple(wrap_operations),
            requires_wrap=any(s.venue is StepVenue.WRAP for s in steps),
            requires_unwrap=any(s.venue is StepVenue.UNWRAP for s in steps),
            balance_score=balance_score,
        )
        logger.debug(
            "plan_built",
            steps=len(plan.steps),
            legs=len(legs),
            expected_output=plan.expected_output,
            min_output=plan.min_output,
        )
        return plan

    @staticmethod
    def _mark_splits(middle: Sequence[tuple[int, int, Step]]) -> list[Step]:
        """Number steps that consume the same token at the same depth."""
        groups: dict[tuple[str, int], list[int]] = {}
        for position, (_, depth, step) in enumerate(middle):
            groups.setdefault((step.token_in, depth), []).append(position)

        marked = [step for _, _, step in middle]
        for positions in groups.values():
            for index, position in enumerate(positions):
                marked[position] = replace(
                    marked[position], split_index=index, split_total=len(positions)
                )
        return marked

    @staticmethod
    def _mark_use_all_balance(steps: Sequence[Step]) -> list[Step]:
        """Flag the last consumer of each token.

        A sole consumer takes the whole balance; so does the final leg of a
        same-depth split, sweeping the rounding dust left by earlier legs.
        """
        last_consumer: dict[str, int] = {}
        for position, step in enumerate(steps):
            last_consumer[step.token_in] = position
        return [
            replace(step, use_all_balance=last_consumer[step.token_in] == position)
            for position, step in enumerate(steps)
        ]


def approvals_for(steps: Sequence[Step]) -> tuple[Approval, ...]:
    """Allowances for swap steps, summed per (token, spender).

    Native input needs no allowance, and wrap/unwrap steps need none.
    """
    totals: dict[tuple[str, str], int] = {}
    for step in steps:
        spender = SPENDERS.get(step.venue)
        if spender is None or step.token_in == NATIVE:
            continue
        key = (step.token_in, spender)
        totals[key] = totals.get(key, 0) + step.amount_in
    return tuple(Approval(token, spender, amount) for (token, spender), amount in totals.items())


__all__ = [
    "Approval",
    "ExecutionPlan",
    "PlanBuilder",
    "SplitLeg",
    "Step",
    "StepMethod",
    "StepVenue",
    "WrapOperation",
    "approvals_for",
    "min_out",
]
