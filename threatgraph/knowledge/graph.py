"""Threat graph — copy-on-write snapshots over the entity catalog and relation index."""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field

from threatgraph.errors import DanglingReferenceError, ErrorKind, InvalidRelationError
from threatgraph.events.bus import Event, EventBus, EventType
from threatgraph.knowledge.catalog import (
    EntityCatalog,
    RemovalOutcome,
    RemovalPolicy,
    coerce_entity,
)
from threatgraph.knowledge.entities import Entity, EntityKind
from threatgraph.knowledge.index import RelationIndex
from threatgraph.knowledge.relations import Relation

if TYPE_CHECKING:
    from threatgraph.config import GraphSettings

logger = logging.getLogger(__name__)


class RejectedRelation(BaseModel):
    """A relation left out of a batch.

    ``relation`` is set for well-formed edges with a missing endpoint;
    ``payload`` holds the raw value when it never validated.
    """

    relation: Relation | None = None
    payload: Any = None
    reason: str
    kind: ErrorKind = ErrorKind.DANGLING_REFERENCE
    missing: list[str] = Field(default_factory=list)

    @classmethod
    def dangling(cls, error: DanglingReferenceError) -> RejectedRelation:
        return cls(relation=error.relation, reason=str(error), missing=error.missing)

    @classmethod
    def invalid(cls, error: InvalidRelationError) -> RejectedRelation:
        return cls(payload=error.payload, reason=str(error), kind=error.kind)

    @property
    def relation_id(self) -> str:
        if self.relation is not None:
            return self.relation.id
        if isinstance(self.payload, Mapping) and self.payload.get("id"):
            return str(self.payload["id"])
        return "?"


class BatchResult(BaseModel):
    """Outcome of one ingestion batch."""

    applied_entities: int = 0
    new_entities: int = 0
    applied_relations: int = 0
    duplicate_relations: int = 0
    rejected_relations: list[RejectedRelation] = Field(default_factory=list)
    version: int = 0

    @property
    def ok(self) -> bool:
        return not self.rejected_relations

    def merge(self, other: BatchResult) -> BatchResult:
        return BatchResult(
            applied_entities=self.applied_entities + other.applied_entities,
            new_entities=self.new_entities + other.new_entities,
            applied_relations=self.applied_relations + other.applied_relations,
            duplicate_relations=self.duplicate_relations + other.duplicate_relations,
            rejected_relations=[*self.rejected_relations, *other.rejected_relations],
            version=max(self.version, other.version),
        )


@dataclass(frozen=True)
class GraphSnapshot:
    """An immutable view of the graph at one version.

    Publishing freezes the catalog and index, so mutators on a published
    snapshot raise ReadOnlySnapshotError; writers build the next snapshot
    from ``clone()`` and swap it in.
    """

    catalog: EntityCatalog
    relations: RelationIndex
    version: int = 0

    @property
    def entity_count(self) -> int:
        return len(self.catalog)

    @property
    def relation_count(self) -> int:
        return len(self.relations)

    def clone(self) -> GraphSnapshot:
        catalog = self.catalog.copy()
        return GraphSnapshot(
            catalog=catalog,
            relations=self.relations.copy(catalog),
            version=self.version + 1,
        )

    def freeze(self) -> GraphSnapshot:
        self.catalog.freeze()
        self.relations.freeze()
        return self


class ThreatGraph:
    """In-memory threat correlation graph.

    Readers call ``snapshot()`` and never block. Writers are serialized
    on a lock, mutate a private clone of the current snapshot, then
    publish it with a single reference swap, so a reader sees either
    all of a batch or none of it.
    """

    def __init__(
        self,
        removal_policy: RemovalPolicy = RemovalPolicy.CASCADE,
        *,
        dedupe_relations: bool = True,
        bus: EventBus | None = None,
    ) -> None:
        self.removal_policy = removal_policy
        self.bus = bus or EventBus()
        self._dedupe_relations = dedupe_relations
        self._snapshot = self._empty_snapshot(version=0)
        self._write_lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: GraphSettings, bus: EventBus | None = None) -> ThreatGraph:
        return cls(
            RemovalPolicy(settings.removal_policy),
            dedupe_relations=settings.dedupe_relations,
            bus=bus,
        )

    # -- reads ------------------------------------------------------------

    def snapshot(self) -> GraphSnapshot:
        return self._snapshot

    @property
    def version(self) -> int:
        return self._snapshot.version

    @property
    def entity_count(self) -> int:
        return self._snapshot.entity_count

    @property
    def relation_count(self) -> int:
        return self._snapshot.relation_count

    def get(self, entity_id: str) -> Entity | None:
        return self._snapshot.catalog.get(entity_id)

    # -- writes -----------------------------------------------------------

    def upsert_entity(self, entity: Entity | Mapping[str, Any]) -> Entity:
        entity = coerce_entity(entity)
        self.apply_batch([entity], [])
        return entity

    def add_relation(self, relation: Relation) -> bool:
        """Add one relation. Raises DanglingReferenceError on a missing endpoint."""
        result = self.apply_batch([], [relation], atomic=True)
        if result.rejected_relations:
            raise DanglingReferenceError(relation, result.rejected_relations[0].missing)
        return result.applied_relations == 1

    def remove_relation(self, relation_id: str) -> bool:
        with self._write_lock:
            if relation_id not in self._snapshot.relations:
                return False
            draft = self._snapshot.clone()
            draft.relations.remove(relation_id)
            self._swap(draft)
        self.bus.emit(Event(EventType.RELATION_REMOVED, {"id": relation_id}))
        return True

    def remove_entity(
        self, entity_id: str, policy: RemovalPolicy | None = None,
    ) -> RemovalOutcome:
        """Remove an entity under *policy* (defaults to the graph's removal policy)."""
        policy = policy or self.removal_policy
        with self._write_lock:
            current = self._snapshot
            if entity_id not in current.catalog:
                return current.catalog.remove(entity_id, current.relations, policy)
            draft = current.clone()
            outcome = draft.catalog.remove(entity_id, draft.relations, policy)
            if outcome.removed:
                self._swap(draft)

        if outcome.removed:
            for rel_id in outcome.cascaded:
                self.bus.emit(Event(EventType.RELATION_REMOVED, {"id": rel_id}))
            self.bus.emit(Event(EventType.ENTITY_REMOVED, {"id": entity_id}))
            logger.debug(
                "Removed %s (cascaded %d relation(s))", entity_id, len(outcome.cascaded),
            )
        return outcome

    def apply_batch(
        self,
        entities: Iterable[Entity | Mapping[str, Any]],
        relations: Iterable[Relation],
        *,
        atomic: bool = False,
        rejected: Iterable[RejectedRelation] = (),
    ) -> BatchResult:
        """Apply entities, then relations, and publish them as one version.

        Entities are validated before anything changes; an invalid one
        raises InvalidEntityError and leaves the graph untouched. A
        relation with a missing endpoint is reported in the result and
        skipped, as are *rejected* entries the caller already failed
        to validate. With ``atomic=True`` any rejected relation discards
        the whole batch instead.
        """
        validated = [coerce_entity(e) for e in entities]
        pending = list(relations)

        with self._write_lock:
            draft = self._snapshot.clone()
            result = BatchResult(version=draft.version, rejected_relations=list(rejected))
            upserted: list[tuple[Entity, bool]] = []
            added: list[Relation] = []

            for entity in validated:
                if entity.is_placeholder and entity.id in draft.catalog:
                    continue
                is_new = draft.catalog.upsert(entity)
                upserted.append((entity, is_new))
                result.applied_entities += 1
                result.new_entities += int(is_new)

            for relation in pending:
                try:
                    if draft.relations.add(relation):
                        added.append(relation)
                        result.applied_relations += 1
                    else:
                        result.duplicate_relations += 1
                except DanglingReferenceError as e:
                    result.rejected_relations.append(RejectedRelation.dangling(e))

            discarded = atomic and bool(result.rejected_relations)
            if discarded:
                result = BatchResult(
                    rejected_relations=result.rejected_relations,
                    version=self._snapshot.version,
                )
            else:
                self._swap(draft)

        if discarded:
            logger.warning(
                "Batch discarded: %d relation(s) rejected", len(result.rejected_relations),
            )
            self._publish(result, [], [], applied=False)
        else:
            self._publish(result, upserted, added)
        return result

    def purge_expired(self, now: datetime | None = None) -> list[str]:
        """Remove expired indicators (and their relations). Returns removed IDs."""
        now = now or datetime.now(UTC)
        with self._write_lock:
            draft = self._snapshot.clone()
            expired = [
                e.id for e in draft.catalog.all(EntityKind.INDICATOR) if not e.is_active(now)
            ]
            if not expired:
                return []
            for entity_id in expired:
                draft.catalog.remove(entity_id, draft.relations, RemovalPolicy.CASCADE)
            self._swap(draft)

        logger.info("Purged %d expired indicator(s)", len(expired))
        self.bus.emit(Event(EventType.INDICATORS_PURGED, {"ids": expired}))
        return expired

    def clear(self) -> None:
        """Reset the graph."""
        with self._write_lock:
            self._snapshot = self._empty_snapshot(version=self._snapshot.version + 1)

    def _empty_snapshot(self, version: int) -> GraphSnapshot:
        catalog = EntityCatalog()
        return GraphSnapshot(
            catalog=catalog,
            relations=RelationIndex(catalog, dedupe=self._dedupe_relations),
            version=version,
        ).freeze()

    def _swap(self, draft: GraphSnapshot) -> None:
        # caller holds the write lock
        self._snapshot = draft.freeze()

    def _publish(
        self,
        result: BatchResult,
        upserted: list[tuple[Entity, bool]],
        added: list[Relation],
        *,
        applied: bool = True,
    ) -> None:
        for entity, is_new in upserted:
            self.bus.emit(Event(
                EventType.ENTITY_UPSERTED,
                {"id": entity.id, "kind": entity.kind, "new": is_new},
            ))
        for relation in added:
            self.bus.emit(Event(EventType.RELATION_ADDED, {"id": relation.id}))
        for rejected in result.rejected_relations:
            logger.warning("Rejected relation %s: %s", rejected.relation_id, rejected.reason)
            self.bus.emit(Event(
                EventType.RELATION_REJECTED,
                {"id": rejected.relation_id, "reason": rejected.reason, "kind": rejected.kind},
            ))
        if not applied:
            return
        logger.info(
            "Applied batch v%d: %d entities (%d new), %d relations, %d rejected",
            result.version, result.applied_entities, result.new_entities,
            result.applied_relations, len(result.rejected_relations),
        )
        self.bus.emit(Event(
            EventType.BATCH_APPLIED, result.model_dump(exclude={"rejected_relations"}),
        ))
