"""Tests for pool-class dispatch and decimal handling."""

import pytest

from dexrouter.amm.concentrated import swap_exact_input
from dexrouter.amm.kernel import quote_concentrated, swap_normalized, swap_raw
from dexrouter.constants import DAI, USDC, WETH
from dexrouter.errors import AmmError
from dexrouter.math.fixed_point import ONE_18, parse_fee
from dexrouter.pools.types import Pool, PoolClass, WeightedParams
from tests.helpers import make_weighted_pool


class TestWeightedDispatch:
    """Weighted pools through the kernel."""

    def test_raw_swap_denormalizes_output(self, weth_usdc_weighted: Pool) -> None:
        """1 WETH in, USDC out in 6-decimal raw units."""
        out = swap_raw(weth_usdc_weighted, 0, 1, ONE_18)

        fee = parse_fee("0.003")
        x_net = ONE_18 * (ONE_18 - fee) // ONE_18
        normalized = 2_000_000 * ONE_18 * x_net // (1000 * ONE_18 + x_net)
        assert out == normalized // 10**12

    def test_raw_swap_normalizes_input(self, weth_usdc_weighted: Pool) -> None:
        """2000 USDC in is treated as 2000e18 normalized."""
        raw = swap_raw(weth_usdc_weighted, 1, 0, 2000 * 10**6)
        normalized = swap_normalized(weth_usdc_weighted, 1, 0, 2000 * ONE_18)
        assert raw == normalized

    def test_weights_are_respected(self, weth_dai_weighted: Pool) -> None:
        """An 80/20 pool at 2000 DAI/WETH quotes near spot for small trades."""
        out = swap_raw(weth_dai_weighted, 0, 1, ONE_18 // 100)
        assert 19 * ONE_18 < out < 20 * ONE_18


class TestStableDispatch:
    """Stable pools through the kernel."""

    def test_mixed_decimals_near_parity(self, usdc_dai_stable: Pool) -> None:
        """USDC (6) to DAI (18) trades close to 1:1."""
        out = swap_raw(usdc_dai_stable, 0, 1, 1000 * 10**6)
        assert 999 * ONE_18 < out < 1000 * ONE_18


class TestConcentratedDispatch:
    """Concentrated pools through the kernel."""

    def test_quote_matches_swap_loop(self, weth_usdc_concentrated: Pool) -> None:
        """The kernel delegates to the exact-input loop in raw units."""
        result = quote_concentrated(weth_usdc_concentrated, 0, ONE_18)
        direct = swap_exact_input(weth_usdc_concentrated.params, True, ONE_18)
        assert result == direct

    def test_raw_swap_prices_near_spot(self, weth_usdc_concentrated: Pool) -> None:
        """1 WETH buys a little under 2000 USDC after the 0.3% fee."""
        out = swap_raw(weth_usdc_concentrated, 0, 1, ONE_18)
        assert 1990 * 10**6 < out < 1994 * 10**6

    def test_reverse_direction(self, weth_usdc_concentrated: Pool) -> None:
        """2000 USDC buys a little under 1 WETH."""
        out = swap_raw(weth_usdc_concentrated, 1, 0, 2000 * 10**6)
        assert 99 * ONE_18 // 100 < out < ONE_18

    def test_missing_state_raises(self, weth_usdc_concentrated: Pool) -> None:
        """A concentrated pool without state cannot be priced."""
        pool = weth_usdc_concentrated.with_class(PoolClass.CONCENTRATED, None)
        with pytest.raises(AmmError):
            swap_raw(pool, 0, 1, ONE_18)


class TestDispatchErrors:
    """Invalid dispatch arguments."""

    def test_same_index_raises(self, weth_usdc_weighted: Pool) -> None:
        """A hop must change tokens."""
        with pytest.raises(AmmError):
            swap_normalized(weth_usdc_weighted, 0, 0, ONE_18)

    def test_index_out_of_range_raises(self, weth_usdc_weighted: Pool) -> None:
        """Indices must address pool tokens."""
        with pytest.raises(AmmError):
            swap_normalized(weth_usdc_weighted, 0, 2, ONE_18)

    def test_unknown_class_raises(self) -> None:
        """Unclassified pools have no handler."""
        pool = make_weighted_pool(9, [WETH, USDC], ["1", "1"]).with_class(PoolClass.UNKNOWN, None)
        with pytest.raises(AmmError):
            swap_normalized(pool, 0, 1, ONE_18)

    def test_weighted_without_weights_raises(self, weth_usdc_weighted: Pool) -> None:
        """Weighted pricing requires weights."""
        pool = weth_usdc_weighted.with_class(PoolClass.WEIGHTED, None)
        with pytest.raises(AmmError):
            swap_normalized(pool, 0, 1, ONE_18)

    def test_zero_amount_returns_zero(self, weth_usdc_weighted: Pool) -> None:
        """No input, no output."""
        assert swap_normalized(weth_usdc_weighted, 0, 1, 0) == 0

    def test_weight_count_mismatch_raises(self) -> None:
        """Weights that do not cover every token are a pool error, not an IndexError."""
        pool = make_weighted_pool(
            10, [WETH, USDC, DAI], ["1000", "2000000", "2000000"]
        ).with_class(PoolClass.WEIGHTED, WeightedParams((50, 50)))
        with pytest.raises(AmmError):
            swap_normalized(pool, 0, 2, ONE_18)
