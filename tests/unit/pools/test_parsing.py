"""Tests for parsing indexer records into pools."""

from dexrouter.constants import DAI, USDC, WETH
from dexrouter.pools.parsing import parse_concentrated_pool, parse_weighted_venue_pool
from dexrouter.pools.types import ConcentratedState, PoolClass, Venue
from tests.helpers import make_raw_concentrated_pool, make_raw_weighted_pool, pool_address, pool_id


class TestParseWeightedVenuePool:
    """Tests for venue B records."""

    def test_parses_tokens_balances_and_fee(self) -> None:
        """Balances become raw integers in each token's decimals."""
        raw = make_raw_weighted_pool(1, [WETH, USDC], ["1000", "2000000.5"], fee="0.003")
        pool = parse_weighted_venue_pool(raw)

        assert pool is not None
        assert pool.id == pool_id(1)
        assert pool.venue is Venue.B
        assert pool.pool_class is PoolClass.UNKNOWN
        assert pool.params is None
        assert pool.token_addresses == (WETH, USDC)
        assert pool.balances == (1000 * 10**18, 2_000_000_500_000)
        assert pool.swap_fee == 3 * 10**15
        assert pool.address == pool_address(1)

    def test_addresses_are_lowercased(self) -> None:
        """Mixed-case addresses are normalized."""
        raw = make_raw_weighted_pool(2, [WETH.upper().replace("0X", "0x"), DAI], ["1", "1"])
        pool = parse_weighted_venue_pool(raw)
        assert pool is not None
        assert pool.tokens[0].address == WETH

    def test_paused_pool_is_skipped(self) -> None:
        """Paused and recovery-mode pools are not routable."""
        assert parse_weighted_venue_pool(
            make_raw_weighted_pool(3, [WETH, DAI], ["1", "1"], isPaused=True)
        ) is None
        assert parse_weighted_venue_pool(
            make_raw_weighted_pool(3, [WETH, DAI], ["1", "1"], isInRecoveryMode=True)
        ) is None

    def test_uninitialized_pool_is_skipped(self) -> None:
        """Explicitly uninitialized pools are dropped."""
        raw = make_raw_weighted_pool(4, [WETH, DAI], ["1", "1"], isInitialized=False)
        assert parse_weighted_venue_pool(raw) is None

    def test_single_token_pool_is_skipped(self) -> None:
        """A pool needs at least two tokens."""
        assert parse_weighted_venue_pool(make_raw_weighted_pool(5, [WETH], ["1"])) is None

    def test_bad_fee_is_skipped(self) -> None:
        """Fees outside [0, 1) make the record malformed."""
        raw = make_raw_weighted_pool(6, [WETH, DAI], ["1", "1"], fee="1.5")
        assert parse_weighted_venue_pool(raw) is None

    def test_bad_token_address_is_skipped(self) -> None:
        """Token addresses must be 20-byte hex."""
        raw = make_raw_weighted_pool(7, ["0xnot-an-address", DAI], ["1", "1"])
        assert parse_weighted_venue_pool(raw) is None

    def test_negative_balance_is_skipped(self) -> None:
        """Negative balances are rejected."""
        raw = make_raw_weighted_pool(8, [WETH, DAI], ["-1", "1"])
        assert parse_weighted_venue_pool(raw) is None

    def test_missing_id_is_skipped(self) -> None:
        """Records without an id cannot be cached or routed."""
        raw = make_raw_weighted_pool(9, [WETH, DAI], ["1", "1"])
        del raw["id"]
        assert parse_weighted_venue_pool(raw) is None

    def test_null_token_entry_is_skipped(self) -> None:
        """A null entry in the token list drops the pool instead of failing discovery."""
        raw = make_raw_weighted_pool(10, [WETH, DAI], ["1", "1"])
        raw["tokens"] = [raw["tokens"][0], None]
        assert parse_weighted_venue_pool(raw) is None


class TestParseConcentratedPool:
    """Tests for venue U records."""

    def test_parses_state(self) -> None:
        """Price, liquidity, fee and ticks carry over."""
        raw = make_raw_concentrated_pool(21, WETH, USDC, liquidity=10**18)
        pool = parse_concentrated_pool(raw)

        assert pool is not None
        assert pool.venue is Venue.U
        assert pool.pool_class is PoolClass.CONCENTRATED
        assert pool.is_routable
        state = pool.params
        assert isinstance(state, ConcentratedState)
        assert state.liquidity == 10**18
        assert state.sqrt_price_x96 == 2**96
        assert state.tick == 0
        assert state.fee_pips == 3000
        assert state.tick_spacing == 60
        assert len(state.ticks) == 2
        assert pool.swap_fee == 3 * 10**15

    def test_misaligned_ticks_are_dropped(self) -> None:
        """Only ticks on the spacing grid survive."""
        ticks = [
            {"tickIdx": "-120", "liquidityNet": "5", "liquidityGross": "5"},
            {"tickIdx": "7", "liquidityNet": "1", "liquidityGross": "1"},
            {"tickIdx": "120", "liquidityNet": "-5", "liquidityGross": "5"},
        ]
        pool = parse_concentrated_pool(make_raw_concentrated_pool(22, WETH, USDC, ticks=ticks))
        assert pool is not None
        assert [t.index for t in pool.params.ticks] == [-120, 120]

    def test_missing_tick_spacing_uses_fee_tier(self) -> None:
        """The 0.05% tier implies spacing 10."""
        raw = make_raw_concentrated_pool(23, WETH, USDC, fee_tier=500, tick_spacing=10)
        del raw["tickSpacing"]
        pool = parse_concentrated_pool(raw)
        assert pool is not None
        assert pool.params.tick_spacing == 10

    def test_missing_tick_is_derived_from_price(self) -> None:
        """A record without a current tick derives it from the sqrt price."""
        raw = make_raw_concentrated_pool(24, WETH, USDC)
        del raw["tick"]
        pool = parse_concentrated_pool(raw)
        assert pool is not None
        assert pool.params.tick == 0

    def test_uninitialized_price_is_skipped(self) -> None:
        """A zero sqrt price means the pool was never initialized."""
        raw = make_raw_concentrated_pool(25, WETH, USDC)
        raw["sqrtPrice"] = "0"
        assert parse_concentrated_pool(raw) is None

    def test_bad_token_is_skipped(self) -> None:
        """Both tokens must be valid."""
        raw = make_raw_concentrated_pool(26, WETH, USDC)
        raw["token1"] = {"id": "usdc", "symbol": "USDC", "decimals": "6"}
        assert parse_concentrated_pool(raw) is None

    def test_non_numeric_liquidity_is_skipped(self) -> None:
        """Malformed numbers make the record unusable."""
        raw = make_raw_concentrated_pool(27, WETH, USDC)
        raw["liquidity"] = "lots"
        assert parse_concentrated_pool(raw) is None

    def test_non_object_token_is_skipped(self) -> None:
        """Token fields must be objects."""
        raw = make_raw_concentrated_pool(28, WETH, USDC)
        raw["token0"] = None
        raw["token1"] = USDC
        assert parse_concentrated_pool(raw) is None
