"""Threatgraph — in-memory threat correlation graph and risk classifier."""

from __future__ import annotations

__version__ = "1.0.0"

from threatgraph.ingest.adapter import IngestionAdapter  # noqa: F401
from threatgraph.knowledge.entities import Entity, EntityKind  # noqa: F401
from threatgraph.knowledge.graph import BatchResult, ThreatGraph  # noqa: F401
from threatgraph.knowledge.relations import Direction, Relation, RelationType  # noqa: F401
from threatgraph.models.severity import SeverityLevel  # noqa: F401
from threatgraph.query.engine import QueryEngine  # noqa: F401
from threatgraph.risk.classifier import classify  # noqa: F401
