"""Correlation graph relations — typed, directed edges between entities."""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field


class RelationType(StrEnum):
    USES = "uses"                    # ACTOR/CAMPAIGN → MALWARE/TOOL/INDICATOR
    ATTRIBUTED_TO = "attributed-to"  # ACTOR → CAMPAIGN, INDICATOR → ACTOR
    PART_OF = "part-of"              # INDICATOR → CAMPAIGN
    INDICATES = "indicates"          # INDICATOR → MALWARE
    VARIANT_OF = "variant-of"        # MALWARE → MALWARE
    TARGETS = "targets"
    RELATED_TO = "related-to"


class Direction(StrEnum):
    EITHER = "either"
    OUTGOING = "outgoing"
    INCOMING = "incoming"


class Relation(BaseModel, frozen=True):
    """A directed edge. ``relation_type`` is free-form; RelationType lists the usual labels."""

    id: str = Field(min_length=1)
    source_id: str = Field(min_length=1)
    target_id: str = Field(min_length=1)
    relation_type: str = RelationType.RELATED_TO
    confidence: float | None = Field(default=None, ge=0.0, le=1.0)
    properties: dict[str, Any] = Field(default_factory=dict)

    @property
    def endpoints(self) -> tuple[str, str]:
        return self.source_id, self.target_id

    def touches(self, entity_id: str) -> bool:
        return entity_id in (self.source_id, self.target_id)

    def other_end(self, entity_id: str) -> str:
        """The endpoint opposite *entity_id* (itself for a self-loop)."""
        if entity_id == self.source_id:
            return self.target_id
        if entity_id == self.target_id:
            return self.source_id
        msg = f"Entity {entity_id!r} is not an endpoint of relation {self.id!r}"
        raise ValueError(msg)

    def same_edge(self, other: Relation) -> bool:
        return (
            self.source_id == other.source_id
            and self.target_id == other.target_id
            and self.relation_type == other.relation_type
        )
