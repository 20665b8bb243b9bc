"""Test helpers module for shared test utilities.

This module consolidates common test utilities to reduce duplication:
- constants: Token addresses and decimals
- factories: Pool and indexer record factory functions
"""

from tests.helpers.constants import COW, GNO, TOKEN_DECIMALS, UNI
from tests.helpers.factories import (
    make_concentrated_pool,
    make_raw_concentrated_pool,
    make_raw_weighted_pool,
    make_stable_pool,
    make_token,
    make_weighted_pool,
    pool_address,
    pool_id,
)

__all__ = [
    # Constants
    "UNI",
    "GNO",
    "COW",
    "TOKEN_DECIMALS",
    # Factories
    "make_concentrated_pool",
    "make_raw_concentrated_pool",
    "make_raw_weighted_pool",
    "make_stable_pool",
    "make_token",
    "make_weighted_pool",
    "pool_address",
    "pool_id",
]
