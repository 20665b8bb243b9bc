"""Candidate path enumeration.

Produces direct, 2-hop and 3-hop paths between two tokens from a pool
snapshot. Native and wrapped native share one routing vertex; wherever a
path's actual token switches between them, a wrap or unwrap pseudo-hop is
inserted.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence
from itertools import islice, product

import structlog

from dexrouter.config import DEFAULT_ROUTER_CONFIG, RouterConfig
from dexrouter.constants import NATIVE
from dexrouter.pools.types import Pool, Venue, routing_vertex
from dexrouter.routing.types import Hop, HopKind, Route, venue_tag_for

logger = structlog.get_logger()


class PathEnumerator:
    """Enumerate candidate routes over a fixed pool snapshot.

    Pools are indexed by unordered routing-vertex pair. Unknown or otherwise
    unroutable pools, and pools of disabled venues, never enter the index.
    """

    def __init__(self, pools: Iterable[Pool], config: RouterConfig = DEFAULT_ROUTER_CONFIG):
        self.config = config
        self._wrapped = config.wrapped_native.lower()
        self._pairs: dict[frozenset[str], list[Pool]] = {}
        enabled = self._enabled_venues()
        for pool in sorted(pools, key=lambda p: (p.venue.value, p.id)):
            if not pool.is_routable or pool.venue not in enabled:
                continue
            vertices = [self._vertex(t.address) for t in pool.tokens]
            for a_idx, a in enumerate(vertices):
                for b in vertices[a_idx + 1 :]:
                    if a != b:
                        self._pairs.setdefault(frozenset((a, b)), []).append(pool)

    def _enabled_venues(self) -> set[Venue]:
        enabled = set()
        if self.config.use_venue_u:
            enabled.add(Venue.U)
        if self.config.use_venue_b:
            enabled.add(Venue.B)
        return enabled

    def _vertex(self, address: str) -> str:
        return routing_vertex(address, self._wrapped)

    def pools_between(self, token_a: str, token_b: str) -> list[Pool]:
        """All indexed pools connecting two routing vertices."""
        return list(self._pairs.get(frozenset((self._vertex(token_a), self._vertex(token_b))), ()))

    def bridges_for(self, token_in: str, token_out: str) -> list[str]:
        """Bridge vertices usable between two tokens, in priority order."""
        excluded = {self._vertex(token_in), self._vertex(token_out)}
        bridges: list[str] = []
        for address in self.config.bridge_tokens:
            vertex = self._vertex(address)
            if vertex not in excluded and vertex not in bridges:
                bridges.append(vertex)
        return bridges

    # =========================================================================
    # Path shapes
    # =========================================================================

    def _chains(self, vertices: Sequence[str]) -> Iterator[tuple[Pool, ...]]:
        """Every pool sequence along a vertex sequence, without reusing a pool."""
        legs = [self._pairs.get(frozenset((a, b)), []) for a, b in zip(vertices, vertices[1:])]
        if not all(legs):
            return
        for chain in product(*legs):
            if len({p.id for p in chain}) == len(chain):
                yield chain

    def _three_hop_orders(self, bridges: list[str]) -> list[tuple[str, str]]:
        """Ordered bridge pairs, those through wrapped native first."""
        pairs = [(m1, m2) for m1 in bridges for m2 in bridges if m1 != m2]
        return sorted(pairs, key=lambda pair: self._wrapped not in pair)

    def _three_hop_chains(
        self, token_in: str, token_out: str, bridges: list[str]
    ) -> Iterator[tuple[tuple[str, ...], tuple[Pool, ...]]]:
        for m1, m2 in self._three_hop_orders(bridges):
            vertices = (token_in, m1, m2, token_out)
            for chain in self._chains(vertices):
                yield vertices, chain

    # =========================================================================
    # Route assembly
    # =========================================================================

    def build_route(
        self, token_in: str, token_out: str, vertices: Sequence[str], pools: Sequence[Pool]
    ) -> Route:
        """Turn a pool sequence into a route with wrap/unwrap pseudo-hops.

        Args:
            token_in: Actual input token address (may be native)
            token_out: Actual output token address (may be native)
            vertices: Routing vertices visited, len(pools) + 1 of them
            pools: Pools traversed in order

        Returns:
            Route whose consecutive hops chain on actual token addresses
        """
        hops: list[Hop] = []
        current = token_in.lower()
        for pool, (v_in, v_out) in zip(pools, zip(vertices, vertices[1:]), strict=True):
            i = pool.index_of(v_in, self._wrapped)
            j = pool.index_of(v_out, self._wrapped)
            assert i is not None and j is not None
            actual_in = pool.tokens[i].address
            if actual_in != current:
                hops.append(self._conversion(current, actual_in))
            hops.append(
                Hop(
                    kind=HopKind.SWAP,
                    token_in=actual_in,
                    token_out=pool.tokens[j].address,
                    pool_id=pool.id,
                    venue=pool.venue,
                    token_in_idx=i,
                    token_out_idx=j,
                )
            )
            current = pool.tokens[j].address
        if current != token_out.lower():
            hops.append(self._conversion(current, token_out.lower()))

        return Route(
            hops=tuple(hops),
            venue_tag=venue_tag_for(frozenset(p.venue for p in pools)),
            requires_wrap=any(h.kind is HopKind.WRAP for h in hops),
            requires_unwrap=any(h.kind is HopKind.UNWRAP for h in hops),
        )

    def _conversion(self, current: str, target: str) -> Hop:
        kind = HopKind.WRAP if current == NATIVE else HopKind.UNWRAP
        return Hop(kind=kind, token_in=current, token_out=target)

    def enumerate(self, token_in: str, token_out: str) -> list[Route]:
        """Enumerate deduplicated candidate routes.

        Direct paths come first, then 2-hop paths in bridge order, then at
        most three_hop_cap 3-hop paths.

        Args:
            token_in: Input token address
            token_out: Output token address

        Returns:
            Routes in generation order, later duplicates dropped
        """
        token_in = token_in.lower()
        token_out = token_out.lower()
        v_in = self._vertex(token_in)
        v_out = self._vertex(token_out)
        if v_in == v_out:
            return []

        candidates: list[tuple[tuple[str, ...], tuple[Pool, ...]]] = []
        for chain in self._chains((v_in, v_out)):
            candidates.append(((v_in, v_out), chain))

        bridges = self.bridges_for(token_in, token_out)
        if self.config.max_hops >= 2:
            for m in bridges:
                vertices = (v_in, m, v_out)
                candidates.extend((vertices, chain) for chain in self._chains(vertices))
        if self.config.max_hops >= 3 and self.config.three_hop_cap > 0:
            candidates.extend(
                islice(self._three_hop_chains(v_in, v_out, bridges), self.config.three_hop_cap)
            )

        routes: list[Route] = []
        seen: set[tuple[str, ...]] = set()
        for vertices, chain in candidates:
            key = tuple(p.id for p in chain)
            if key in seen:
                logger.debug("duplicate_path_dropped", key=key)
                continue
            seen.add(key)
            routes.append(self.build_route(token_in, token_out, vertices, chain))

        logger.debug(
            "paths_enumerated",
            token_in=token_in,
            token_out=token_out,
            count=len(routes),
        )
        return routes


__all__ = ["PathEnumerator"]
