"""Error kinds raised or reported by the graph engine."""

from __future__ import annotations

from enum import StrEnum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from threatgraph.knowledge.relations import Relation


class ErrorKind(StrEnum):
    INVALID_ENTITY = "invalid_entity"
    INVALID_RELATION = "invalid_relation"
    DANGLING_REFERENCE = "dangling_reference"
    NOT_FOUND = "not_found"
    BLOCKED = "blocked"
    READ_ONLY = "read_only"


class GraphError(Exception):
    """Base class for recoverable graph errors."""

    kind: ErrorKind


class InvalidEntityError(GraphError, ValueError):
    """Entity payload is missing a required field or has an unknown kind."""

    kind = ErrorKind.INVALID_ENTITY


class InvalidRelationError(GraphError, ValueError):
    """Relation payload is missing an endpoint or fails validation.

    ``payload`` keeps the offending raw value so batch results can report it.
    """

    kind = ErrorKind.INVALID_RELATION

    def __init__(self, message: str, payload: Any = None) -> None:
        self.payload = payload
        super().__init__(message)


class DanglingReferenceError(GraphError, LookupError):
    """Relation endpoint is absent from the entity catalog."""

    kind = ErrorKind.DANGLING_REFERENCE

    def __init__(self, relation: Relation, missing: list[str]) -> None:
        self.relation = relation
        self.missing = missing
        super().__init__(
            f"Relation {relation.id!r} references missing "
            f"entit{'y' if len(missing) == 1 else 'ies'}: {', '.join(missing)}"
        )


class ReadOnlySnapshotError(GraphError, RuntimeError):
    """Attempt to mutate a store that belongs to a published snapshot."""

    kind = ErrorKind.READ_ONLY


class QueryCancelledError(Exception):
    """A traversal was cancelled cooperatively by its caller."""
