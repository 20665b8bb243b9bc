"""AMM math kernel.

Pure functions for weighted, stable and concentrated-liquidity pools, and a
dispatcher selecting the handler for a pool's class.
"""

from dexrouter.amm.kernel import quote_concentrated, swap_normalized, swap_raw

__all__ = ["quote_concentrated", "swap_normalized", "swap_raw"]
