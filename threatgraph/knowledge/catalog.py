"""Entity catalog — the owning store of graph nodes, keyed by ID."""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field, ValidationError

from threatgraph.errors import InvalidEntityError, ReadOnlySnapshotError
from threatgraph.knowledge.entities import Entity, EntityKind

if TYPE_CHECKING:
    from threatgraph.knowledge.index import RelationIndex

logger = logging.getLogger(__name__)


class RemovalPolicy(StrEnum):
    CASCADE = "cascade"  # drop referencing relations along with the entity
    STRICT = "strict"    # refuse while any relation still references the entity


class RemovalStatus(StrEnum):
    REMOVED = "removed"
    NOT_FOUND = "not_found"
    BLOCKED = "blocked"


class RemovalOutcome(BaseModel):
    """What happened to an entity removal request."""

    status: RemovalStatus
    entity_id: str
    blocked_by: int = 0
    cascaded: list[str] = Field(default_factory=list)

    @property
    def removed(self) -> bool:
        return self.status == RemovalStatus.REMOVED

    @classmethod
    def blocked(cls, entity_id: str, count: int) -> RemovalOutcome:
        return cls(status=RemovalStatus.BLOCKED, entity_id=entity_id, blocked_by=count)


def coerce_entity(raw: Entity | Mapping[str, Any]) -> Entity:
    """Validate a raw mapping into an Entity, mapping failures to InvalidEntityError."""
    if isinstance(raw, Entity):
        return raw
    try:
        return Entity.model_validate(raw)
    except ValidationError as e:
        ident = raw.get("id", "?") if isinstance(raw, Mapping) else "?"
        msg = f"Invalid entity {ident!r}: {e.error_count()} validation error(s)"
        raise InvalidEntityError(msg) from e


class EntityCatalog:
    """Insertion-ordered store of entities.

    Upserting an existing ID replaces the record but keeps its position,
    so ``all()`` stays stable across updates.
    """

    def __init__(self) -> None:
        self._entities: dict[str, Entity] = {}
        self._frozen = False

    def __len__(self) -> int:
        return len(self._entities)

    def __contains__(self, entity_id: object) -> bool:
        return entity_id in self._entities

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> None:
        """Make the catalog read-only; ``copy()`` returns a writable clone."""
        self._frozen = True

    def upsert(self, entity: Entity | Mapping[str, Any]) -> bool:
        """Insert or replace by ID. Returns True when the ID was new."""
        self._check_writable()
        entity = coerce_entity(entity)
        is_new = entity.id not in self._entities
        self._entities[entity.id] = entity
        return is_new

    def get(self, entity_id: str) -> Entity | None:
        return self._entities.get(entity_id)

    def remove(
        self,
        entity_id: str,
        relations: RelationIndex,
        policy: RemovalPolicy = RemovalPolicy.CASCADE,
    ) -> RemovalOutcome:
        """Remove an entity, honoring *policy* for relations that still reference it."""
        if entity_id not in self._entities:
            return RemovalOutcome(status=RemovalStatus.NOT_FOUND, entity_id=entity_id)

        referencing = relations.relations_of(entity_id)
        if referencing and policy == RemovalPolicy.STRICT:
            logger.debug(
                "Removal of %s blocked by %d relation(s)", entity_id, len(referencing),
            )
            return RemovalOutcome.blocked(entity_id, len(referencing))

        self._check_writable()
        cascaded = []
        for rel in referencing:
            if relations.remove(rel.id):
                cascaded.append(rel.id)
        del self._entities[entity_id]
        return RemovalOutcome(
            status=RemovalStatus.REMOVED, entity_id=entity_id, cascaded=cascaded,
        )

    def all(self, kind: EntityKind | None = None) -> Iterator[Entity]:
        """Lazily yield entities in insertion order, optionally filtered by kind.

        Iterates over a copy of the current values, so a fresh call always
        restarts from the beginning and mutation mid-iteration is safe.
        """
        for entity in list(self._entities.values()):
            if kind is None or entity.kind == kind:
                yield entity

    def count(self, kind: EntityKind | None = None) -> int:
        if kind is None:
            return len(self._entities)
        return sum(1 for e in self._entities.values() if e.kind == kind)

    def ids(self) -> list[str]:
        return list(self._entities)

    def copy(self) -> EntityCatalog:
        clone = EntityCatalog()
        clone._entities = dict(self._entities)
        return clone

    def _check_writable(self) -> None:
        if self._frozen:
            msg = "Entity catalog belongs to a published snapshot and is read-only"
            raise ReadOnlySnapshotError(msg)
