"""Route simulation over a read-only pool snapshot."""

from __future__ import annotations

from collections.abc import Mapping

import structlog

from dexrouter.amm import swap_normalized
from dexrouter.constants import NATIVE_DECIMALS
from dexrouter.errors import AmmError, SimulationDiverged
from dexrouter.math import denormalize, normalize
from dexrouter.pools.types import Pool
from dexrouter.routing.types import Hop, Route

logger = structlog.get_logger()


class RouteSimulator:
    """Simulate routes hop by hop with the AMM kernel.

    Amounts travel between hops in normalized 18-decimal units; the input is
    normalized once on entry and the output denormalized once on exit. Wrap
    and unwrap hops pass amounts through unchanged.

    The simulator never mutates pool state: every call sees the same
    snapshot, so identical inputs produce identical outputs.
    """

    def __init__(self, pools: Mapping[str, Pool]):
        self.pools = pools

    def _decimals(self, hop: Hop, side: str) -> int:
        if not hop.is_swap:
            return NATIVE_DECIMALS
        assert hop.pool_id is not None
        pool = self.pools[hop.pool_id]
        idx = hop.token_in_idx if side == "in" else hop.token_out_idx
        return pool.tokens[idx].decimals

    def trace(self, route: Route, amount_in: int) -> list[int]:
        """Raw amounts at each hop boundary.

        Args:
            route: Route to simulate
            amount_in: Raw input amount of the route's input token

        Returns:
            len(route.hops) + 1 raw amounts: the input, then each hop's
            output in that hop's output token units

        Raises:
            AmmError: If a pool cannot price its hop
            SimulationDiverged: If a stable pool solve fails
        """
        amounts = [amount_in]
        current = normalize(amount_in, self._decimals(route.hops[0], "in"))
        for hop in route.hops:
            if hop.is_swap:
                assert hop.pool_id is not None
                pool = self.pools[hop.pool_id]
                current = swap_normalized(pool, hop.token_in_idx, hop.token_out_idx, current)
            amounts.append(denormalize(current, self._decimals(hop, "out")))
        return amounts

    def simulate(self, route: Route, amount_in: int) -> int:
        """Raw output of a route, or 0 if any hop fails or outputs nothing."""
        if amount_in <= 0:
            return 0
        try:
            amounts = self.trace(route, amount_in)
        except (AmmError, SimulationDiverged) as e:
            logger.debug(
                "route_simulation_failed",
                route=route.describe(),
                amount_in=amount_in,
                error=str(e),
            )
            return 0
        if any(a <= 0 for a in amounts):
            return 0
        return amounts[-1]


__all__ = ["RouteSimulator"]
