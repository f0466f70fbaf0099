"""Graph payloads returned by the backend's related-entities endpoint."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class GraphNode(BaseModel):
    id: str
    label: str = ""
    type: str = "unknown"
    properties: dict[str, Any] | None = None


class GraphEdge(BaseModel):
    source: str
    target: str
    relationship: str = "related"
    properties: dict[str, Any] | None = None


class GraphRelatedResult(BaseModel):
    entity_id: str = ""
    nodes: list[GraphNode] = Field(default_factory=list)
    edges: list[GraphEdge] = Field(default_factory=list)
