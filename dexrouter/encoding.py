"""ABI helpers and execution-step calldata encoding.

Plans are protocol-agnostic; turning a step into router or vault calldata is
the job of a StepEncoder. AbiStepEncoder targets the encoder contracts that
pack a single swap per step (exact amount or use-all-balance form).
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError
from eth_utils import function_signature_to_4byte_selector

from dexrouter.errors import ChainCallError
from dexrouter.models.types import normalize_address

if TYPE_CHECKING:
    from dexrouter.routing.plan import Step


def selector(signature: str) -> bytes:
    """4-byte function selector for a canonical signature, e.g. "name()"."""
    return function_signature_to_4byte_selector(signature)


def decode_result(types: list[str], data: bytes) -> tuple[Any, ...]:
    """Decode ABI return data.

    Raises:
        ChainCallError: If the data does not match the expected types
    """
    try:
        return tuple(decode(types, data))
    except DecodingError as e:
        raise ChainCallError(f"cannot decode {types} from {len(data)} bytes") from e


# Probes and feeds
GET_NORMALIZED_WEIGHTS = selector("getNormalizedWeights()")
GET_AMPLIFICATION_PARAMETER = selector("getAmplificationParameter()")
NAME = selector("name()")
LATEST_ROUND_DATA = selector("latestRoundData()")
DECIMALS = selector("decimals()")

# Encoder contract entry points
ENCODE_SINGLE_SWAP = selector("encodeSingleSwap(bytes32,address,address,uint256,uint256)")
ENCODE_USE_ALL_BALANCE_SWAP = selector("encodeUseAllBalanceSwap(bytes32,address,address,uint256)")
ENCODE_SINGLE_SWAP_U = selector(
    "encodeSingleSwap(address,address,uint24,int24,address,uint256,uint256)"
)
ENCODE_USE_ALL_BALANCE_SWAP_U = selector(
    "encodeUseAllBalanceSwap(address,address,uint24,int24,address,uint256)"
)

class StepEncoder(Protocol):
    """Turns one execution step into calldata for its venue."""

    def encode(self, step: Step) -> bytes:
        """Encode a swap step.

        Raises:
            ValueError: If the step cannot be encoded by this encoder
        """
        ...


def _address_bytes(address: str) -> bytes:
    return bytes.fromhex(normalize_address(address)[2:])


def _pool_id_bytes32(pool_id: str) -> bytes:
    raw = bytes.fromhex(pool_id[2:] if pool_id.startswith("0x") else pool_id)
    if len(raw) > 32:
        raise ValueError(f"pool id longer than 32 bytes: {pool_id}")
    return raw.rjust(32, b"\x00")


class AbiStepEncoder:
    """Encode single-pool swap steps for the encoder contracts.

    Venue B steps carry the 32-byte pool id; venue U steps carry the fee tier,
    tick spacing and hooks address of the pool, supplied via pool_keys.
    """

    def __init__(self, pool_keys: dict[str, tuple[int, int, str]] | None = None):
        """Initialize the encoder.

        Args:
            pool_keys: Venue U pool id -> (fee_pips, tick_spacing, hooks)
        """
        self.pool_keys = pool_keys or {}

    def encode(self, step: Step) -> bytes:
        """Encode a single-pool swap step.

        Raises:
            ValueError: If the step is not a single-pool swap, or if it is a
                venue U step whose pool has no key
        """
        if len(step.pools) != 1:
            raise ValueError(f"step spans {len(step.pools)} pools; only single-pool steps encode")
        pool_id = step.pools[0]
        token_in = _address_bytes(step.token_in)
        token_out = _address_bytes(step.token_out)

        if step.venue == "B":
            if step.use_all_balance:
                return ENCODE_USE_ALL_BALANCE_SWAP + encode(
                    ["bytes32", "address", "address", "uint256"],
                    [_pool_id_bytes32(pool_id), token_in, token_out, step.min_amount_out],
                )
            return ENCODE_SINGLE_SWAP + encode(
                ["bytes32", "address", "address", "uint256", "uint256"],
                [
                    _pool_id_bytes32(pool_id),
                    token_in,
                    token_out,
                    step.amount_in,
                    step.min_amount_out,
                ],
            )

        if step.venue == "U":
            keys = self.pool_keys.get(pool_id)
            if keys is None:
                raise ValueError(f"no pool key for venue U pool {pool_id}")
            fee, tick_spacing, hooks = keys
            if step.use_all_balance:
                return ENCODE_USE_ALL_BALANCE_SWAP_U + encode(
                    ["address", "address", "uint24", "int24", "address", "uint256"],
                    [
                        token_in,
                        token_out,
                        fee,
                        tick_spacing,
                        _address_bytes(hooks),
                        step.min_amount_out,
                    ],
                )
            return ENCODE_SINGLE_SWAP_U + encode(
                ["address", "address", "uint24", "int24", "address", "uint256", "uint256"],
                [
                    token_in,
                    token_out,
                    fee,
                    tick_spacing,
                    _address_bytes(hooks),
                    step.amount_in,
                    step.min_amount_out,
                ],
            )

        raise ValueError(f"venue {step.venue} has no swap encoding")


__all__ = [
    "selector",
    "decode_result",
    "StepEncoder",
    "AbiStepEncoder",
    "GET_NORMALIZED_WEIGHTS",
    "GET_AMPLIFICATION_PARAMETER",
    "NAME",
    "LATEST_ROUND_DATA",
    "DECIMALS",
    "ENCODE_SINGLE_SWAP",
    "ENCODE_USE_ALL_BALANCE_SWAP",
    "ENCODE_SINGLE_SWAP_U",
    "ENCODE_USE_ALL_BALANCE_SWAP_U",
]
