"""Routing data structures.

Routes reference pools only by id and token index; pool state is looked up
in a read-only snapshot at simulation time.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from dexrouter.pools.types import Venue


class HopKind(str, Enum):
    """Kind of a path hop."""

    SWAP = "swap"
    WRAP = "wrap"  # native -> wrapped native, 1:1
    UNWRAP = "unwrap"  # wrapped native -> native, 1:1


class VenueTag(str, Enum):
    """Which venues a route touches."""

    SINGLE_U = "single-U"
    SINGLE_B = "single-B"
    CROSS = "cross"


@dataclass(frozen=True)
class Hop:
    """One step of a path.

    Swap hops name a pool and token indices within it. Wrap and unwrap hops
    have no pool; they convert between native and wrapped native at 1:1.

    Attributes:
        kind: Swap, wrap or unwrap
        token_in: Input token address
        token_out: Output token address
        pool_id: Pool id (swap hops only)
        venue: Pool venue (swap hops only)
        token_in_idx: Index of token_in in the pool's tokens
        token_out_idx: Index of token_out in the pool's tokens
    """

    kind: HopKind
    token_in: str
    token_out: str
    pool_id: str | None = None
    venue: Venue | None = None
    token_in_idx: int = -1
    token_out_idx: int = -1

    def __post_init__(self) -> None:
        if self.kind is HopKind.SWAP:
            if self.pool_id is None or self.venue is None:
                raise ValueError("swap hop requires pool_id and venue")
            if self.token_in_idx == self.token_out_idx or min(
                self.token_in_idx, self.token_out_idx
            ) < 0:
                raise ValueError(
                    f"invalid token indices {self.token_in_idx}->{self.token_out_idx}"
                )

    @property
    def is_swap(self) -> bool:
        return self.kind is HopKind.SWAP


@dataclass(frozen=True)
class Route:
    """A path with its venue tag and wrap requirements.

    Attributes:
        hops: Ordered hops, wrap/unwrap pseudo-hops included
        venue_tag: Venues touched by the swap hops
        requires_wrap: Path contains a native -> wrapped native conversion
        requires_unwrap: Path contains a wrapped native -> native conversion
    """

    hops: tuple[Hop, ...]
    venue_tag: VenueTag
    requires_wrap: bool = False
    requires_unwrap: bool = False

    @property
    def key(self) -> tuple[str, ...]:
        """Ordered tuple of pool ids; identifies the path for deduplication."""
        return tuple(h.pool_id for h in self.hops if h.pool_id is not None)

    @property
    def swap_hops(self) -> tuple[Hop, ...]:
        return tuple(h for h in self.hops if h.is_swap)

    @property
    def token_in(self) -> str:
        return self.hops[0].token_in

    @property
    def token_out(self) -> str:
        return self.hops[-1].token_out

    @property
    def venues(self) -> frozenset[Venue]:
        return frozenset(h.venue for h in self.hops if h.venue is not None)

    def describe(self) -> str:
        """Short human-readable description, e.g. "U:0xab..>B:0xcd..."."""
        parts = []
        for hop in self.hops:
            if hop.is_swap:
                assert hop.venue is not None and hop.pool_id is not None
                parts.append(f"{hop.venue.value}:{hop.pool_id[:10]}")
            else:
                parts.append(hop.kind.value)
        return ">".join(parts)


def venue_tag_for(venues: frozenset[Venue]) -> VenueTag:
    if venues == frozenset({Venue.U}):
        return VenueTag.SINGLE_U
    if venues == frozenset({Venue.B}):
        return VenueTag.SINGLE_B
    return VenueTag.CROSS


__all__ = ["HopKind", "VenueTag", "Hop", "Route", "venue_tag_for"]
