"""Tests for ABI helpers and step encoding."""

import pytest
from eth_abi import decode, encode

from dexrouter.constants import USDC, WETH
from dexrouter.encoding import (
    ENCODE_SINGLE_SWAP,
    ENCODE_SINGLE_SWAP_U,
    ENCODE_USE_ALL_BALANCE_SWAP,
    ENCODE_USE_ALL_BALANCE_SWAP_U,
    NAME,
    AbiStepEncoder,
    decode_result,
    selector,
)
from dexrouter.errors import ChainCallError
from dexrouter.routing.plan import Step, StepMethod, StepVenue
from tests.helpers import pool_id


def make_step(venue: StepVenue, use_all_balance: bool = False, pools: tuple = ()) -> Step:
    return Step(
        venue=venue,
        method=StepMethod.SINGLE,
        pools=pools or (pool_id(1),),
        tokens=(WETH, USDC),
        token_in=WETH,
        token_out=USDC,
        amount_in=10**18,
        expected_amount_out=2000 * 10**6,
        min_amount_out=1990 * 10**6,
        use_all_balance=use_all_balance,
    )


class TestAbiHelpers:
    """Tests for selectors and result decoding."""

    def test_known_selector(self) -> None:
        """name() has the well-known ERC20 selector."""
        assert selector("name()") == bytes.fromhex("06fdde03")
        assert NAME == bytes.fromhex("06fdde03")

    def test_decode_result(self) -> None:
        """Return data decodes to a tuple."""
        assert decode_result(["uint256", "bool"], encode(["uint256", "bool"], [7, True])) == (
            7,
            True,
        )

    def test_short_data_raises(self) -> None:
        """Truncated return data is a chain call error."""
        with pytest.raises(ChainCallError):
            decode_result(["uint256"], b"\x00" * 5)


class TestAbiStepEncoder:
    """Tests for per-step calldata."""

    def test_venue_b_exact_amount(self) -> None:
        """Exact-amount steps carry amountIn and minAmountOut."""
        data = AbiStepEncoder().encode(make_step(StepVenue.B))
        assert data[:4] == ENCODE_SINGLE_SWAP
        pool, token_in, token_out, amount_in, min_out = decode(
            ["bytes32", "address", "address", "uint256", "uint256"], data[4:]
        )
        assert pool == bytes.fromhex(pool_id(1)[2:])
        assert (token_in.lower(), token_out.lower()) == (WETH, USDC)
        assert (amount_in, min_out) == (10**18, 1990 * 10**6)

    def test_venue_b_use_all_balance(self) -> None:
        """Use-all-balance steps omit the input amount."""
        data = AbiStepEncoder().encode(make_step(StepVenue.B, use_all_balance=True))
        assert data[:4] == ENCODE_USE_ALL_BALANCE_SWAP
        *_, min_out = decode(["bytes32", "address", "address", "uint256"], data[4:])
        assert min_out == 1990 * 10**6

    def test_venue_u_pool_keys(self) -> None:
        """Venue U steps carry the pool's fee, spacing and hooks."""
        hooks = "0x" + "ab" * 20
        encoder = AbiStepEncoder({pool_id(1): (3000, 60, hooks)})
        data = encoder.encode(make_step(StepVenue.U))
        assert data[:4] == ENCODE_SINGLE_SWAP_U
        decoded = decode(
            ["address", "address", "uint24", "int24", "address", "uint256", "uint256"], data[4:]
        )
        assert decoded[2:4] == (3000, 60)
        assert decoded[4].lower() == hooks
        assert decoded[5] == 10**18

    def test_venue_u_use_all_balance(self) -> None:
        """Use-all-balance venue U steps omit the input amount."""
        encoder = AbiStepEncoder({pool_id(1): (500, 10, "0x" + "00" * 20)})
        data = encoder.encode(make_step(StepVenue.U, use_all_balance=True))
        assert data[:4] == ENCODE_USE_ALL_BALANCE_SWAP_U
        decoded = decode(
            ["address", "address", "uint24", "int24", "address", "uint256"], data[4:]
        )
        assert decoded[2:4] == (500, 10)
        assert decoded[5] == 1990 * 10**6

    def test_venue_u_without_pool_key_rejected(self) -> None:
        """Venue U calldata is never built from guessed keys."""
        with pytest.raises(ValueError, match="no pool key"):
            AbiStepEncoder().encode(make_step(StepVenue.U))

    def test_multi_pool_step_rejected(self) -> None:
        """Only single-pool steps encode."""
        step = make_step(StepVenue.B, pools=(pool_id(1), pool_id(2)))
        with pytest.raises(ValueError):
            AbiStepEncoder().encode(step)

    def test_conversion_step_rejected(self) -> None:
        """Wrap steps have no swap encoding."""
        with pytest.raises(ValueError):
            AbiStepEncoder().encode(make_step(StepVenue.WRAP))
