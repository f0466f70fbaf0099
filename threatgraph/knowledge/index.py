"""Relation index — directed edges with by-source and by-target lookup."""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import TYPE_CHECKING, NamedTuple

from threatgraph.errors import DanglingReferenceError, ReadOnlySnapshotError
from threatgraph.knowledge.relations import Direction, Relation

if TYPE_CHECKING:
    from threatgraph.knowledge.catalog import EntityCatalog

logger = logging.getLogger(__name__)


class Neighbor(NamedTuple):
    relation: Relation
    neighbor_id: str


class RelationIndex:
    """Owns relations; holds only entity IDs, never Entity records.

    Both ``_by_source`` and ``_by_target`` map an entity ID to the IDs of
    relations touching it, so neighbor lookups cost O(degree).
    """

    def __init__(self, catalog: EntityCatalog, *, dedupe: bool = True) -> None:
        self._catalog = catalog
        self._dedupe = dedupe
        self._relations: dict[str, Relation] = {}
        self._by_source: dict[str, dict[str, None]] = defaultdict(dict)
        self._by_target: dict[str, dict[str, None]] = defaultdict(dict)
        self._frozen = False

    def __len__(self) -> int:
        return len(self._relations)

    def __contains__(self, relation_id: object) -> bool:
        return relation_id in self._relations

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> None:
        self._frozen = True

    def add(self, relation: Relation) -> bool:
        """Add a relation. Returns False if an equivalent edge already exists.

        Raises DanglingReferenceError when either endpoint is not in the
        catalog. Re-adding a known ID replaces the stored relation.
        """
        self._check_writable()
        missing = [
            eid for eid in dict.fromkeys(relation.endpoints) if eid not in self._catalog
        ]
        if missing:
            raise DanglingReferenceError(relation, missing)

        if relation.id in self._relations:
            self._unlink(self._relations[relation.id])
        elif self._dedupe and self._find_equivalent(relation) is not None:
            return False

        self._relations[relation.id] = relation
        self._by_source[relation.source_id][relation.id] = None
        self._by_target[relation.target_id][relation.id] = None
        return True

    def remove(self, relation_id: str) -> bool:
        self._check_writable()
        relation = self._relations.pop(relation_id, None)
        if relation is None:
            return False
        self._unlink(relation)
        return True

    def get(self, relation_id: str) -> Relation | None:
        return self._relations.get(relation_id)

    def all(self) -> list[Relation]:
        return list(self._relations.values())

    def outgoing(self, entity_id: str) -> list[Relation]:
        return [self._relations[rid] for rid in self._by_source.get(entity_id, ())]

    def incoming(self, entity_id: str) -> list[Relation]:
        return [self._relations[rid] for rid in self._by_target.get(entity_id, ())]

    def relations_of(self, entity_id: str) -> list[Relation]:
        """All relations touching *entity_id*, self-loops listed once."""
        seen: dict[str, Relation] = {}
        for rel in self.outgoing(entity_id) + self.incoming(entity_id):
            seen.setdefault(rel.id, rel)
        return list(seen.values())

    def degree(self, entity_id: str) -> int:
        return len(self.relations_of(entity_id))

    def neighbors_of(
        self, entity_id: str, direction: Direction = Direction.EITHER,
    ) -> list[Neighbor]:
        """(relation, neighbor ID) pairs for *entity_id*.

        Outgoing edges come first, then incoming, each in insertion order.
        """
        if direction == Direction.OUTGOING:
            rels = self.outgoing(entity_id)
        elif direction == Direction.INCOMING:
            rels = self.incoming(entity_id)
        else:
            rels = self.relations_of(entity_id)
        return [Neighbor(rel, rel.other_end(entity_id)) for rel in rels]

    def relations_between(self, a_id: str, b_id: str) -> list[Relation]:
        """Relations joining *a_id* and *b_id* in either direction."""
        return [
            rel for rel in self.relations_of(a_id)
            if rel.other_end(a_id) == b_id
        ]

    def copy(self, catalog: EntityCatalog) -> RelationIndex:
        """Clone the index, bound to *catalog* (the clone of this index's catalog)."""
        clone = RelationIndex(catalog, dedupe=self._dedupe)
        clone._relations = dict(self._relations)
        clone._by_source = defaultdict(
            dict, {k: dict(v) for k, v in self._by_source.items()},
        )
        clone._by_target = defaultdict(
            dict, {k: dict(v) for k, v in self._by_target.items()},
        )
        return clone

    def _check_writable(self) -> None:
        if self._frozen:
            msg = "Relation index belongs to a published snapshot and is read-only"
            raise ReadOnlySnapshotError(msg)

    def _find_equivalent(self, relation: Relation) -> Relation | None:
        for rid in self._by_source.get(relation.source_id, ()):
            existing = self._relations[rid]
            if existing.same_edge(relation):
                return existing
        return None

    def _unlink(self, relation: Relation) -> None:
        for index, key in (
            (self._by_source, relation.source_id),
            (self._by_target, relation.target_id),
        ):
            bucket = index.get(key)
            if bucket is None:
                continue
            bucket.pop(relation.id, None)
            if not bucket:
                del index[key]
