"""Protocol constants for the DEX router.

Centralizes well-known addresses, gas estimates and cache parameters.
"""

from dexrouter.models.types import is_valid_address


def _validate_token_address(name: str, address: str) -> str:
    """Validate and return a lowercase address.

    Args:
        name: Name of the token or contract (for error messages)
        address: The address to validate

    Returns:
        The validated address, lowercased

    Raises:
        ValueError: If the address is invalid
    """
    if not is_valid_address(address):
        raise ValueError(f"Invalid {name} address: {address} (must be 0x + 40 hex chars)")
    return address.lower()


# Native asset sentinel. Routing treats it as the same vertex as WETH.
NATIVE = _validate_token_address("NATIVE", "0x0000000000000000000000000000000000000000")
NATIVE_DECIMALS = 18

# Well-known token addresses on mainnet (lowercase for consistency)
WETH = _validate_token_address("WETH", "0xc02aaa39b223fe8d0a0e5c4f27ead9083c756cc2")
USDC = _validate_token_address("USDC", "0xa0b86991c6218b36c1d19d4a2e9eb0ce3606eb48")
USDT = _validate_token_address("USDT", "0xdac17f958d2ee523a2206206994597c13d831ec7")
DAI = _validate_token_address("DAI", "0x6b175474e89094c44da98b954eedeac495271d0f")
WBTC = _validate_token_address("WBTC", "0x2260fac5e5542a773aa44fbcfedf7c193bc2c599")

# Default bridge set, in priority order. Wrapped native first.
DEFAULT_BRIDGE_TOKENS: tuple[str, ...] = (WETH, USDC, USDT, DAI, WBTC)

# Tokens priced at 1 USD for gas accounting
USD_STABLECOINS = frozenset({USDC, USDT, DAI})

# Approval targets
UNIVERSAL_ROUTER = _validate_token_address(
    "UNIVERSAL_ROUTER", "0x66a9893cc07d91d95644aedd05d03f95e1dba8af"
)
BALANCER_VAULT = _validate_token_address(
    "BALANCER_VAULT", "0xBA12222222228d8Ba445958a75a0704d566BF2C8"
)

# Chainlink ETH/USD aggregator (mainnet)
CHAINLINK_ETH_USD_FEED = _validate_token_address(
    "CHAINLINK_ETH_USD_FEED", "0x5f4eC3Df9cbd43714FE2740f5E3616155c5b8419"
)

# Gas estimation constants
# Venue U: first hop plus increment per extra hop
U_SWAP_BASE_GAS = 120_000
U_SWAP_HOP_GAS = 60_000
# Venue B: first hop plus increment per extra hop
B_SWAP_BASE_GAS = 150_000
B_SWAP_HOP_GAS = 80_000
# Routes touching both venues
CROSS_ROUTE_BASE_GAS = 200_000
CROSS_ROUTE_HOP_GAS = 100_000
# WETH deposit/withdraw
WRAP_GAS = 30_000
# Overhead per additional split leg
SPLIT_LEG_GAS = 100_000

# Default gas price used when converting gas to output token (20 gwei)
DEFAULT_GAS_PRICE_WEI = 20 * 10**9

# Persisted pool cache format version
CACHE_VERSION = "1.0.0"
