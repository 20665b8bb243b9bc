"""Tests for route simulation."""

from dexrouter.amm import swap_raw
from dexrouter.constants import NATIVE, USDC, WETH
from dexrouter.pools.types import Pool
from dexrouter.routing.pathfinding import PathEnumerator
from dexrouter.routing.simulator import RouteSimulator
from tests.helpers import UNI, make_weighted_pool

ONE = 10**18


def snapshot(*pools: Pool) -> dict[str, Pool]:
    return {p.id: p for p in pools}


class TestTrace:
    """Tests for per-hop amounts."""

    def test_single_hop_matches_kernel(self, weth_usdc_weighted: Pool) -> None:
        """A direct route is one kernel call."""
        (route,) = PathEnumerator([weth_usdc_weighted]).enumerate(WETH, USDC)
        amounts = RouteSimulator(snapshot(weth_usdc_weighted)).trace(route, ONE)
        assert amounts == [ONE, swap_raw(weth_usdc_weighted, 0, 1, ONE)]

    def test_wrap_hop_is_one_to_one(self, weth_usdc_weighted: Pool) -> None:
        """Wrapping passes the amount through unchanged."""
        (route,) = PathEnumerator([weth_usdc_weighted]).enumerate(NATIVE, USDC)
        amounts = RouteSimulator(snapshot(weth_usdc_weighted)).trace(route, ONE)
        assert amounts[:2] == [ONE, ONE]
        assert amounts[2] == swap_raw(weth_usdc_weighted, 0, 1, ONE)

    def test_unwrap_hop_is_one_to_one(self, weth_usdc_weighted: Pool) -> None:
        """Unwrapping passes the amount through unchanged."""
        (route,) = PathEnumerator([weth_usdc_weighted]).enumerate(USDC, NATIVE)
        amounts = RouteSimulator(snapshot(weth_usdc_weighted)).trace(route, 2000 * 10**6)
        assert amounts[1] == amounts[2]

    def test_multi_hop_units(self, weth_usdc_weighted: Pool) -> None:
        """Intermediate amounts are reported in each hop's output units."""
        uni_weth = make_weighted_pool(10, [UNI, WETH], ["100000", "500"])
        (route,) = PathEnumerator([uni_weth, weth_usdc_weighted]).enumerate(UNI, USDC)

        amounts = RouteSimulator(snapshot(uni_weth, weth_usdc_weighted)).trace(route, 100 * ONE)

        assert len(amounts) == 3
        assert 0 < amounts[1] < ONE  # ~0.5 WETH
        assert 900 * 10**6 < amounts[2] < 1000 * 10**6  # ~1000 USDC less fees


class TestSimulate:
    """Tests for the failure-tolerant simulate wrapper."""

    def test_zero_input(self, weth_usdc_weighted: Pool) -> None:
        """No input gives no output."""
        (route,) = PathEnumerator([weth_usdc_weighted]).enumerate(WETH, USDC)
        assert RouteSimulator(snapshot(weth_usdc_weighted)).simulate(route, 0) == 0

    def test_failure_is_zero(self, weth_usdc_concentrated: Pool) -> None:
        """A hop that cannot absorb its input makes the route worth nothing."""
        (route,) = PathEnumerator([weth_usdc_concentrated]).enumerate(WETH, USDC)
        simulator = RouteSimulator(snapshot(weth_usdc_concentrated))
        assert simulator.simulate(route, 10**40) == 0

    def test_dust_output_is_zero(self, weth_usdc_weighted: Pool) -> None:
        """An intermediate zero makes the whole route zero."""
        (route,) = PathEnumerator([weth_usdc_weighted]).enumerate(WETH, USDC)
        assert RouteSimulator(snapshot(weth_usdc_weighted)).simulate(route, 1) == 0

    def test_deterministic(self, weth_usdc_weighted: Pool) -> None:
        """Repeated simulation of the same snapshot is identical."""
        (route,) = PathEnumerator([weth_usdc_weighted]).enumerate(WETH, USDC)
        simulator = RouteSimulator(snapshot(weth_usdc_weighted))
        assert simulator.simulate(route, ONE) == simulator.simulate(route, ONE) > 0
