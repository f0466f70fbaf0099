"""Correlation graph entities — typed nodes keyed by stable IDs."""

from __future__ import annotations

import hashlib
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field, field_validator

from threatgraph.knowledge.confidence import unit_to_percent
from threatgraph.models.severity import SeverityLevel

# Property marking a stub created only to anchor an edge; never overwrites a real entity.
PLACEHOLDER = "placeholder"


class EntityKind(StrEnum):
    INDICATOR = "indicator"
    CAMPAIGN = "campaign"
    ACTOR = "actor"
    MALWARE = "malware"
    TOOL = "tool"


class Entity(BaseModel, frozen=True):
    """A single node in the correlation graph.

    ``confidence`` is on the 0-1 scale and may be absent, which is not
    the same as zero. Two entities with the same ``id`` are the same
    node: inserting the second one updates the first in place.
    """

    id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    kind: EntityKind
    confidence: float | None = Field(default=None, ge=0.0, le=1.0)
    severity: SeverityLevel = SeverityLevel.UNKNOWN
    first_seen: datetime | None = None
    last_seen: datetime | None = None
    expires_at: datetime | None = None
    aliases: list[str] = Field(default_factory=list)
    properties: dict[str, Any] = Field(default_factory=dict)

    @field_validator("id", "name")
    @classmethod
    def _strip(cls, value: str) -> str:
        value = value.strip()
        if not value:
            msg = "must not be blank"
            raise ValueError(msg)
        return value

    @property
    def is_placeholder(self) -> bool:
        return bool(self.properties.get(PLACEHOLDER))

    @property
    def severity_weight(self) -> int:
        return self.severity.weight

    @property
    def confidence_percent(self) -> int | None:
        if self.confidence is None:
            return None
        return unit_to_percent(self.confidence)

    def is_active(self, now: datetime | None = None) -> bool:
        """False once ``expires_at`` has passed. Expired entities stay in the graph."""
        if self.expires_at is None:
            return True
        now = now or datetime.now(UTC)
        return _aware(self.expires_at) > _aware(now)

    @staticmethod
    def make_id(kind: EntityKind, **key_fields: str) -> str:
        """Deterministic ID from kind + sorted key fields.

        Used when a feed does not supply its own identifier, e.g.
        make_id(INDICATOR, type="domain", value="fake-bank.com").
        """
        raw = f"{kind}:" + "&".join(
            f"{k}={v}" for k, v in sorted(key_fields.items())
        )
        return hashlib.sha256(raw.encode()).hexdigest()[:16]

    @classmethod
    def indicator(
        cls, value: str, indicator_type: str = "unknown", *, id: str | None = None,  # noqa: A002
        **fields: Any,
    ) -> Entity:
        """Create an Indicator entity. The indicator value is its display name."""
        properties = {"indicator_type": indicator_type, **fields.pop("properties", {})}
        return cls(
            id=id or cls.make_id(EntityKind.INDICATOR, type=indicator_type, value=value),
            name=value,
            kind=EntityKind.INDICATOR,
            properties=properties,
            **fields,
        )

    @classmethod
    def campaign(cls, name: str, *, id: str | None = None, **fields: Any) -> Entity:  # noqa: A002
        return cls(
            id=id or cls.make_id(EntityKind.CAMPAIGN, name=name),
            name=name, kind=EntityKind.CAMPAIGN, **fields,
        )

    @classmethod
    def actor(cls, name: str, *, id: str | None = None, **fields: Any) -> Entity:  # noqa: A002
        return cls(
            id=id or cls.make_id(EntityKind.ACTOR, name=name),
            name=name, kind=EntityKind.ACTOR, **fields,
        )

    @classmethod
    def malware(cls, name: str, *, id: str | None = None, **fields: Any) -> Entity:  # noqa: A002
        return cls(
            id=id or cls.make_id(EntityKind.MALWARE, name=name),
            name=name, kind=EntityKind.MALWARE, **fields,
        )

    @classmethod
    def tool(cls, name: str, *, id: str | None = None, **fields: Any) -> Entity:  # noqa: A002
        return cls(
            id=id or cls.make_id(EntityKind.TOOL, name=name),
            name=name, kind=EntityKind.TOOL, **fields,
        )


def _aware(value: datetime) -> datetime:
    """Treat naive datetimes from the wire as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value
