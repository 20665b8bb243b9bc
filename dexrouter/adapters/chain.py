"""Contract read adapters."""

from __future__ import annotations

import asyncio

import structlog

from dexrouter.errors import ChainCallError, ChainUnavailable, RateLimited

from .base import Chain
from .rate_limit import is_rate_limit_error

logger = structlog.get_logger()


class Web3Chain:
    """Chain reader that issues eth_call through web3.

    web3's HTTP provider is synchronous, so calls run in the default
    executor to keep the event loop free.
    """

    def __init__(self, rpc_url: str, *, timeout: float = 30.0):
        """Initialize the chain reader.

        Args:
            rpc_url: HTTP RPC URL (e.g., "https://eth.llamarpc.com")
            timeout: Per-request timeout in seconds
        """
        from web3 import Web3

        self.w3 = Web3(Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": timeout}))

    def _call(self, address: str, data: bytes) -> bytes:
        from web3 import Web3

        result = self.w3.eth.call({"to": Web3.to_checksum_address(address), "data": data})
        return bytes(result)

    async def view(self, address: str, selector: bytes, calldata: bytes = b"") -> bytes:
        """Execute an eth_call and return the raw return data.

        Reverts and undecodable output are ChainCallError. Anything else
        (refused connections or timeouts, for example) is ChainUnavailable.
        """
        from web3.exceptions import BadFunctionCallOutput, ContractLogicError

        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, self._call, address, selector + calldata)
        except (ContractLogicError, BadFunctionCallOutput) as e:
            raise ChainCallError(f"eth_call to {address} reverted: {e}") from e
        except Exception as e:
            if is_rate_limit_error(e):
                raise RateLimited(f"rpc rate limited calling {address}") from e
            logger.warning("chain_call_unavailable", address=address, error=str(e))
            raise ChainUnavailable(f"eth_call to {address} failed: {e}") from e


class BatchChain:
    """Chain reader shared by the probes of one request.

    Once any call is rate limited, every later call fails with RateLimited
    without reaching the node.
    """

    def __init__(self, chain: Chain):
        self.chain = chain
        self.rate_limited: RateLimited | None = None

    async def view(self, address: str, selector: bytes, calldata: bytes = b"") -> bytes:
        if self.rate_limited is not None:
            raise RateLimited(str(self.rate_limited), retry_after=self.rate_limited.retry_after)
        try:
            return await self.chain.view(address, selector, calldata)
        except RateLimited as e:
            self.rate_limited = e
            raise


class MockChain:
    """Mock chain for testing without RPC calls.

    Configure return data per (address, selector); unconfigured calls raise
    ChainCallError like a reverting contract. Calls are tracked for assertions.
    """

    def __init__(
        self,
        responses: dict[tuple[str, bytes], bytes | Exception] | None = None,
    ):
        self.responses = {
            (address.lower(), selector): value
            for (address, selector), value in (responses or {}).items()
        }
        self.calls: list[tuple[str, bytes]] = []

    def set_response(self, address: str, selector: bytes, value: bytes | Exception) -> None:
        self.responses[(address.lower(), selector)] = value

    async def view(self, address: str, selector: bytes, calldata: bytes = b"") -> bytes:
        self.calls.append((address.lower(), selector))
        value = self.responses.get((address.lower(), selector))
        if value is None:
            raise ChainCallError(f"execution reverted: {address} 0x{selector.hex()}")
        if isinstance(value, Exception):
            raise value
        return value


__all__ = ["BatchChain", "Web3Chain", "MockChain"]
