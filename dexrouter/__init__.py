"""Off-chain multi-DEX swap router."""

from dexrouter.config import DEFAULT_ROUTER_CONFIG, OptimizeOptions, RouterConfig
from dexrouter.routing import DexRouter, ExecutionPlan

__version__ = "0.1.0"
__all__ = [
    "DEFAULT_ROUTER_CONFIG",
    "DexRouter",
    "ExecutionPlan",
    "OptimizeOptions",
    "RouterConfig",
    "__version__",
]
