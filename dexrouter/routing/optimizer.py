"""Split optimizer.

Searches a distribution of the input across candidate routes that maximizes
combined output. The search starts from a pivot-transformed seed derived
from single-shot outputs and refines it by pairwise hill climbing with a
decaying step. Every trial split is evaluated by exact re-simulation of each
leg; nothing is scaled linearly.
"""

from __future__ import annotations

import math
from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from fractions import Fraction

import structlog

from dexrouter.config import DEFAULT_ROUTER_CONFIG, RouterConfig
from dexrouter.routing.simulator import RouteSimulator
from dexrouter.routing.types import Route

logger = structlog.get_logger()


@dataclass(frozen=True)
class Allocation:
    """One leg of an optimization result.

    Attributes:
        route: Route carrying this leg
        fraction: Share of the total input
        amount_in: Raw input routed through this leg
        amount_out: Simulated raw output of this leg
    """

    route: Route
    fraction: Fraction
    amount_in: int
    amount_out: int


@dataclass(frozen=True)
class OptimizationResult:
    """Outcome of the split search.

    Attributes:
        allocations: Legs with non-zero input; fractions sum to 1
        total_output: Sum of leg outputs
        iterations: Hill-climbing iterations performed
        evaluations: Distinct leg simulations performed
    """

    allocations: tuple[Allocation, ...]
    total_output: int
    iterations: int = 0
    evaluations: int = 0

    @property
    def is_split(self) -> bool:
        return len(self.allocations) > 1


def pivot_transform(p: float, pivot: float) -> float:
    """Reshape a seed probability around the pivot level.

    Values above the pivot are pushed up along a square-root curve; values
    at or below it are damped quadratically. The transform is continuous at
    the pivot and maps [0, 1] onto [0, 1].
    """
    if p > pivot:
        return pivot + math.sqrt((p - pivot) / (1 - pivot)) * (1 - pivot)
    return pivot * (p / pivot) ** 2


def seed_distribution(outputs: Sequence[int], pivot: float, floor: float) -> list[Fraction]:
    """Initial split from single-shot outputs.

    Args:
        outputs: Output of each route for the full input
        pivot: Pivot level of the transform
        floor: Minimum share per route before renormalization

    Returns:
        Exact fractions summing to 1
    """
    total = sum(outputs)
    if total <= 0:
        uniform = Fraction(1, len(outputs))
        return [uniform] * len(outputs)
    shaped = [max(pivot_transform(y / total, pivot), floor) for y in outputs]
    exact = [Fraction(q).limit_denominator(10**9) for q in shaped]
    norm = sum(exact)
    return [q / norm for q in exact]


def leg_amounts(total: int, fractions: Sequence[Fraction]) -> list[int]:
    """floor(total * s_i) for every share."""
    return [math.floor(total * s) for s in fractions]


class SplitOptimizer:
    """Pairwise hill-climbing search over route splits.

    Leg simulations are memoized per (route, amount), so revisiting a split
    or re-evaluating an unchanged leg costs nothing.
    """

    def __init__(self, simulator: RouteSimulator, config: RouterConfig = DEFAULT_ROUTER_CONFIG):
        self.simulator = simulator
        self.config = config
        self._memo: dict[tuple[int, int], int] = {}

    def _leg_output(self, routes: Sequence[Route], index: int, amount: int) -> int:
        key = (index, amount)
        cached = self._memo.get(key)
        if cached is None:
            cached = self.simulator.simulate(routes[index], amount) if amount > 0 else 0
            self._memo[key] = cached
        return cached

    def _objective(self, routes: Sequence[Route], total: int, split: Sequence[Fraction]) -> int:
        amounts = leg_amounts(total, split)
        return sum(self._leg_output(routes, i, a) for i, a in enumerate(amounts))

    def _neighbors(self, split: list[Fraction], step: Fraction) -> Iterator[list[Fraction]]:
        """Pairwise moves in scan order: (i -> j) then (j -> i) for each pair."""
        n = len(split)
        for i in range(n):
            for j in range(i + 1, n):
                for donor, receiver in ((i, j), (j, i)):
                    if split[donor] < step:
                        continue
                    trial = list(split)
                    trial[donor] -= step
                    trial[receiver] += step
                    yield trial

    def optimize(
        self,
        routes: Sequence[Route],
        amount_in: int,
        single_outputs: Sequence[int] | None = None,
    ) -> OptimizationResult:
        """Find the best split of amount_in across routes.

        Args:
            routes: Candidate routes sharing the same input and output token
            amount_in: Total raw input
            single_outputs: Full-input output per route, if already known

        Returns:
            A split if it strictly beats every single route, otherwise the
            best single route at 100%
        """
        if not routes:
            raise ValueError("optimize requires at least one route")
        self._memo = {}
        if single_outputs is None:
            single_outputs = [self._leg_output(routes, i, amount_in) for i in range(len(routes))]
        else:
            for i, y in enumerate(single_outputs):
                self._memo[(i, amount_in)] = y

        best_single = max(range(len(routes)), key=lambda i: (single_outputs[i], -i))
        if len(routes) == 1:
            return self._single(routes, best_single, amount_in, single_outputs)

        cfg = self.config
        split = seed_distribution(single_outputs, cfg.pivot, cfg.seed_floor)
        best_value = self._objective(routes, amount_in, split)
        step = Fraction(str(cfg.initial_step))
        min_step = Fraction(str(cfg.min_step))
        decay = Fraction(str(cfg.step_decay))

        iterations = 0
        while step >= min_step and iterations < cfg.max_iterations:
            iterations += 1
            for trial in self._neighbors(split, step):
                value = self._objective(routes, amount_in, trial)
                if value > best_value:
                    split, best_value = trial, value
                    break
            else:
                step *= decay

        logger.debug(
            "split_search_finished",
            routes=len(routes),
            iterations=iterations,
            evaluations=len(self._memo),
            best_output=best_value,
            best_single=single_outputs[best_single],
        )

        if best_value > single_outputs[best_single]:
            result = self._emit_split(routes, amount_in, split, iterations)
            if result.total_output > single_outputs[best_single]:
                return result
        return self._single(routes, best_single, amount_in, single_outputs, iterations)

    def _single(
        self,
        routes: Sequence[Route],
        index: int,
        amount_in: int,
        single_outputs: Sequence[int],
        iterations: int = 0,
    ) -> OptimizationResult:
        allocation = Allocation(
            route=routes[index],
            fraction=Fraction(1),
            amount_in=amount_in,
            amount_out=single_outputs[index],
        )
        return OptimizationResult(
            allocations=(allocation,),
            total_output=allocation.amount_out,
            iterations=iterations,
            evaluations=len(self._memo),
        )

    def _emit_split(
        self,
        routes: Sequence[Route],
        amount_in: int,
        split: Sequence[Fraction],
        iterations: int,
    ) -> OptimizationResult:
        """Materialize a split.

        Legs that produce nothing hand their input to the strongest leg, and
        the last funded leg absorbs rounding dust so that leg inputs sum
        exactly to amount_in.
        """
        amounts = leg_amounts(amount_in, split)
        funded = [i for i, a in enumerate(amounts) if a > 0]
        dead = [i for i in funded if self._leg_output(routes, i, amounts[i]) == 0]
        if dead and len(dead) < len(funded):
            funded = [i for i in funded if i not in dead]
            strongest = max(funded, key=lambda i: self._leg_output(routes, i, amounts[i]))
            for i in dead:
                amounts[strongest] += amounts[i]
                amounts[i] = 0
        amounts[funded[-1]] += amount_in - sum(amounts)

        allocations = tuple(
            Allocation(
                route=routes[i],
                fraction=Fraction(amounts[i], amount_in),
                amount_in=amounts[i],
                amount_out=self._leg_output(routes, i, amounts[i]),
            )
            for i in funded
        )
        return OptimizationResult(
            allocations=allocations,
            total_output=sum(a.amount_out for a in allocations),
            iterations=iterations,
            evaluations=len(self._memo),
        )


__all__ = [
    "Allocation",
    "OptimizationResult",
    "SplitOptimizer",
    "leg_amounts",
    "pivot_transform",
    "seed_distribution",
]
