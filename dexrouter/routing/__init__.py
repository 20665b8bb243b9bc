"""Path enumeration, simulation, split optimization and plan building."""

from dexrouter.routing.optimizer import Allocation, OptimizationResult, SplitOptimizer
from dexrouter.routing.pathfinding import PathEnumerator
from dexrouter.routing.plan import (
    Approval,
    ExecutionPlan,
    PlanBuilder,
    Step,
    StepMethod,
    StepVenue,
    WrapOperation,
)
from dexrouter.routing.router import DexRouter, plan_from_pools
from dexrouter.routing.simulator import RouteSimulator
from dexrouter.routing.types import Hop, HopKind, Route, VenueTag

__all__ = [
    "Allocation",
    "Approval",
    "DexRouter",
    "ExecutionPlan",
    "Hop",
    "HopKind",
    "OptimizationResult",
    "PathEnumerator",
    "PlanBuilder",
    "Route",
    "RouteSimulator",
    "SplitOptimizer",
    "Step",
    "StepMethod",
    "StepVenue",
    "VenueTag",
    "WrapOperation",
    "plan_from_pools",
]
