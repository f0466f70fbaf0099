"""Query engine — read-only lookups, ranking, search and traversal over a snapshot."""

from __future__ import annotations

import logging
from collections import Counter, deque
from collections.abc import Iterator
from datetime import datetime
from enum import IntEnum
from typing import TYPE_CHECKING, Protocol

from pydantic import BaseModel, Field

from threatgraph.errors import QueryCancelledError
from threatgraph.knowledge.entities import Entity, EntityKind
from threatgraph.knowledge.index import Neighbor
from threatgraph.knowledge.relations import Direction, Relation
from threatgraph.models.severity import SeverityLevel

if TYPE_CHECKING:
    from threatgraph.knowledge.graph import GraphSnapshot, ThreatGraph

logger = logging.getLogger(__name__)

# Entity kinds an indicator can share with another to count as correlated.
_CORRELATION_KINDS = (EntityKind.CAMPAIGN, EntityKind.ACTOR, EntityKind.MALWARE)


class CancelToken(Protocol):
    def is_set(self) -> bool: ...


class MatchQuality(IntEnum):
    NONE = 0
    ALIAS = 1
    SUBSTRING = 2
    WORD_PREFIX = 3
    PREFIX = 4
    EXACT = 5


class Subgraph(BaseModel):
    root_id: str
    entities: list[Entity] = Field(default_factory=list)
    relations: list[Relation] = Field(default_factory=list)
    depth: dict[str, int] = Field(default_factory=dict)

    @property
    def entity_ids(self) -> list[str]:
        return [e.id for e in self.entities]


class GraphSummary(BaseModel):
    entity_count: int = 0
    relation_count: int = 0
    by_kind: dict[EntityKind, int] = Field(default_factory=dict)
    by_severity: dict[SeverityLevel, int] = Field(default_factory=dict)
    version: int = 0


class RelatedIndicator(BaseModel):
    id: str
    value: str
    relationship: str
    strength: float = Field(ge=0.0, le=1.0)


class CorrelationResult(BaseModel):
    indicator_id: str
    related_indicators: list[RelatedIndicator] = Field(default_factory=list)
    shared_campaigns: list[str] = Field(default_factory=list)
    shared_actors: list[str] = Field(default_factory=list)
    shared_malware: list[str] = Field(default_factory=list)
    correlation_score: float = 0.0


def match_quality(entity: Entity, needle: str) -> MatchQuality:
    """How well *needle* (already lower-cased) matches the entity's name or aliases."""
    name = entity.name.lower()
    if name == needle:
        return MatchQuality.EXACT
    if name.startswith(needle):
        return MatchQuality.PREFIX
    if needle in name:
        words = name.replace("-", " ").replace(".", " ").replace("_", " ").split()
        if any(w.startswith(needle) for w in words):
            return MatchQuality.WORD_PREFIX
        return MatchQuality.SUBSTRING
    if any(needle in alias.lower() for alias in entity.aliases):
        return MatchQuality.ALIAS
    return MatchQuality.NONE


def confidence_key(entity: Entity) -> tuple[int, float]:
    """Sort key placing known confidence first, highest first; unknown last."""
    if entity.confidence is None:
        return (1, 0.0)
    return (0, -entity.confidence)


class QueryEngine:
    """Answers queries against one GraphSnapshot.

    Build it from a ThreatGraph to pin the current snapshot; every
    query on the same engine sees the same version.
    """

    def __init__(self, snapshot: GraphSnapshot, *, default_limit: int | None = None) -> None:
        self.snapshot = snapshot
        self.default_limit = default_limit

    @classmethod
    def of(cls, graph: ThreatGraph, *, default_limit: int | None = None) -> QueryEngine:
        return cls(graph.snapshot(), default_limit=default_limit)

    @property
    def version(self) -> int:
        return self.snapshot.version

    def get(self, entity_id: str) -> Entity | None:
        return self.snapshot.catalog.get(entity_id)

    def all(self, kind: EntityKind | None = None) -> Iterator[Entity]:
        return self.snapshot.catalog.all(kind)

    def neighbors_of(
        self, entity_id: str, direction: Direction = Direction.EITHER,
    ) -> list[Neighbor]:
        return self.snapshot.relations.neighbors_of(entity_id, direction)

    def neighbor_entities(
        self, entity_id: str, direction: Direction = Direction.EITHER,
    ) -> list[Entity]:
        """Distinct neighboring entities, in neighbor order."""
        seen: dict[str, Entity] = {}
        for _, neighbor_id in self.neighbors_of(entity_id, direction):
            entity = self.get(neighbor_id)
            if entity is not None:
                seen.setdefault(neighbor_id, entity)
        return list(seen.values())

    def relations_between(self, a_id: str, b_id: str) -> list[Relation]:
        return self.snapshot.relations.relations_between(a_id, b_id)

    def degree(self, entity_id: str) -> int:
        return self.snapshot.relations.degree(entity_id)

    def search(
        self,
        text: str,
        kind: EntityKind | None = None,
        limit: int | None = None,
        cancel: CancelToken | None = None,
    ) -> list[Entity]:
        """Case-insensitive substring search on names, then aliases.

        Ranked by match quality, confidence (unknown last), severity
        weight, then ID for a stable order.
        """
        needle = text.strip().lower()
        if not needle:
            return []

        scored: list[tuple[MatchQuality, Entity]] = []
        for i, entity in enumerate(self.all(kind)):
            if cancel is not None and i % 256 == 0 and cancel.is_set():
                logger.debug("search(%r) cancelled after %d entities", text, i)
                raise QueryCancelledError(f"search cancelled: {text!r}")
            quality = match_quality(entity, needle)
            if quality > MatchQuality.NONE:
                scored.append((quality, entity))

        scored.sort(key=lambda qe: (
            -qe[0], *confidence_key(qe[1]), -qe[1].severity_weight, qe[1].id,
        ))
        return [entity for _, entity in scored[: self._limit(limit)]]

    def rank_by_confidence(
        self, kind: EntityKind | None = None, limit: int | None = None,
    ) -> list[Entity]:
        ranked = sorted(
            self.all(kind),
            key=lambda e: (*confidence_key(e), -e.severity_weight, e.id),
        )
        return ranked[: self._limit(limit)]

    def rank_by_severity(
        self, kind: EntityKind | None = None, limit: int | None = None,
    ) -> list[Entity]:
        ranked = sorted(
            self.all(kind),
            key=lambda e: (-e.severity_weight, *confidence_key(e), e.id),
        )
        return ranked[: self._limit(limit)]

    def subgraph(
        self, root_id: str, max_hops: int, cancel: CancelToken | None = None,
    ) -> Subgraph:
        """Breadth-first neighborhood of *root_id*, at most *max_hops* edges away.

        Each entity appears once, at its shortest distance. Relations are
        included when both endpoints are in the result.
        """
        if max_hops < 0:
            msg = f"max_hops must be >= 0, got {max_hops}"
            raise ValueError(msg)
        root = self.get(root_id)
        if root is None:
            return Subgraph(root_id=root_id)

        depth: dict[str, int] = {root_id: 0}
        frontier: deque[str] = deque([root_id])
        for hop in range(1, max_hops + 1):
            if cancel is not None and cancel.is_set():
                logger.debug("subgraph(%s) cancelled at hop %d", root_id, hop)
                raise QueryCancelledError(f"subgraph cancelled at hop {hop}")
            next_frontier: deque[str] = deque()
            while frontier:
                current = frontier.popleft()
                for _, neighbor_id in self.neighbors_of(current):
                    if neighbor_id not in depth:
                        depth[neighbor_id] = hop
                        next_frontier.append(neighbor_id)
            if not next_frontier:
                break
            frontier = next_frontier

        entities = [e for eid in depth if (e := self.get(eid)) is not None]
        relations: dict[str, Relation] = {}
        for eid in depth:
            for rel in self.snapshot.relations.outgoing(eid):
                if rel.target_id in depth:
                    relations.setdefault(rel.id, rel)
        return Subgraph(
            root_id=root_id, entities=entities, relations=list(relations.values()), depth=depth,
        )

    def active_indicators(self, now: datetime | None = None) -> list[Entity]:
        return [e for e in self.all(EntityKind.INDICATOR) if e.is_active(now)]

    def summary(self) -> GraphSummary:
        by_kind: Counter[EntityKind] = Counter()
        by_severity: Counter[SeverityLevel] = Counter()
        for entity in self.all():
            by_kind[entity.kind] += 1
            by_severity[entity.severity] += 1
        return GraphSummary(
            entity_count=self.snapshot.entity_count,
            relation_count=self.snapshot.relation_count,
            by_kind=dict(by_kind),
            by_severity=dict(by_severity),
            version=self.snapshot.version,
        )

    def correlate(self, indicator_id: str) -> CorrelationResult:
        """Indicators that share a campaign, actor or malware neighbor with *indicator_id*.

        Strength is the number of shared neighbors over the largest such
        count among the related indicators.
        """
        result = CorrelationResult(indicator_id=indicator_id)
        indicator = self.get(indicator_id)
        if indicator is None or indicator.kind != EntityKind.INDICATOR:
            return result

        hubs = [
            e for e in self.neighbor_entities(indicator_id) if e.kind in _CORRELATION_KINDS
        ]
        shared: dict[str, list[Entity]] = {}
        for hub in hubs:
            for other in self.neighbor_entities(hub.id):
                if other.kind == EntityKind.INDICATOR and other.id != indicator_id:
                    shared.setdefault(other.id, []).append(hub)
        if not shared:
            return result

        top = max(len(h) for h in shared.values())
        related = []
        for other_id, via in shared.items():
            other = self.get(other_id)
            related.append(RelatedIndicator(
                id=other_id,
                value=other.name if other else other_id,
                relationship=f"shared-{via[0].kind}",
                strength=round(len(via) / top, 4),
            ))
        related.sort(key=lambda r: (-r.strength, r.id))

        used = {h.id for via in shared.values() for h in via}
        result.related_indicators = related
        result.shared_campaigns = [
            h.id for h in hubs if h.kind == EntityKind.CAMPAIGN and h.id in used
        ]
        result.shared_actors = [
            h.id for h in hubs if h.kind == EntityKind.ACTOR and h.id in used
        ]
        result.shared_malware = [
            h.id for h in hubs if h.kind == EntityKind.MALWARE and h.id in used
        ]
        result.correlation_score = round(len(used) / len(hubs), 4)
        return result

    def _limit(self, limit: int | None) -> int | None:
        if limit is None:
            return self.default_limit
        if limit < 0:
            msg = f"limit must be >= 0, got {limit}"
            raise ValueError(msg)
        return limit
