"""USD price feeds for gas accounting."""

from __future__ import annotations

from decimal import Decimal

import structlog

from dexrouter.constants import CHAINLINK_ETH_USD_FEED, NATIVE, USD_STABLECOINS, WETH
from dexrouter.encoding import DECIMALS, LATEST_ROUND_DATA, decode_result
from dexrouter.errors import RouterError

from .base import Chain

logger = structlog.get_logger()


class StaticPriceFeed:
    """Fixed prices, for tests and offline use."""

    def __init__(
        self,
        eth_usd: Decimal | None = None,
        token_prices: dict[str, Decimal] | None = None,
    ):
        self._eth_usd = eth_usd
        self._token_prices = {k.lower(): v for k, v in (token_prices or {}).items()}

    async def eth_usd(self) -> Decimal | None:
        return self._eth_usd

    async def token_usd(self, token: str) -> Decimal | None:
        token = token.lower()
        if token in self._token_prices:
            return self._token_prices[token]
        if token in (NATIVE, WETH):
            return self._eth_usd
        if token in USD_STABLECOINS:
            return Decimal(1)
        return None


class ChainlinkPriceFeed:
    """ETH/USD from a Chainlink aggregator, read through a Chain adapter.

    Stablecoins are priced at 1 USD and WETH at the ETH price; anything else
    has no price. Failures are logged and reported as None.
    """

    def __init__(self, chain: Chain, aggregator: str = CHAINLINK_ETH_USD_FEED):
        self.chain = chain
        self.aggregator = aggregator

    async def eth_usd(self) -> Decimal | None:
        try:
            round_data = await self.chain.view(self.aggregator, LATEST_ROUND_DATA)
            decimals_data = await self.chain.view(self.aggregator, DECIMALS)
            _round_id, answer, _started, _updated, _answered = decode_result(
                ["uint80", "int256", "uint256", "uint256", "uint80"], round_data
            )
            (decimals,) = decode_result(["uint8"], decimals_data)
        except RouterError as e:
            logger.warning("eth_price_unavailable", aggregator=self.aggregator, error=str(e))
            return None
        if answer <= 0:
            logger.warning("eth_price_invalid", aggregator=self.aggregator, answer=answer)
            return None
        return Decimal(answer) / Decimal(10**decimals)

    async def token_usd(self, token: str) -> Decimal | None:
        token = token.lower()
        if token in USD_STABLECOINS:
            return Decimal(1)
        if token in (NATIVE, WETH):
            return await self.eth_usd()
        return None


__all__ = ["StaticPriceFeed", "ChainlinkPriceFeed"]
