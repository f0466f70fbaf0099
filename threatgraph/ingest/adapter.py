"""Ingestion adapter — applies backend batches to the threat graph."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterable, Iterable, Iterator, Mapping
from datetime import datetime
from typing import TYPE_CHECKING, Any

from threatgraph.errors import InvalidEntityError, InvalidRelationError
from threatgraph.ingest.wire import (
    Converted,
    actor_to_batch,
    campaign_to_batch,
    coerce_relation,
    graph_result_to_batch,
    indicator_to_batch,
)
from threatgraph.knowledge.graph import BatchResult, RejectedRelation, ThreatGraph
from threatgraph.knowledge.relations import Relation
from threatgraph.risk.classifier import (
    ConsistencyReport,
    RiskAssessment,
    check_consistency,
    classify,
)
from threatgraph.risk.policy import DEFAULT_POLICY, RiskPolicy

if TYPE_CHECKING:
    from threatgraph.config import Settings
    from threatgraph.knowledge.entities import Entity
    from threatgraph.models.campaign import Campaign, ThreatActor
    from threatgraph.models.graph import GraphRelatedResult
    from threatgraph.models.indicator import ThreatIndicator
    from threatgraph.models.sms import SMSAnalysisResponse

logger = logging.getLogger(__name__)

# A streamed batch is either an (entities, relations) pair or a document mapping.
StreamItem = tuple[Iterable[Any], Iterable[Any]] | Mapping[str, Any]


def split_relations(
    raws: Iterable[Relation | Mapping[str, Any]],
) -> tuple[list[Relation], list[RejectedRelation]]:
    """Validate relation payloads one by one; malformed ones become rejections."""
    valid: list[Relation] = []
    rejected: list[RejectedRelation] = []
    for raw in raws:
        try:
            valid.append(coerce_relation(raw))
        except InvalidRelationError as e:
            rejected.append(RejectedRelation.invalid(e))
    return valid, rejected


class IngestionAdapter:
    """Boundary between API payloads and the graph.

    Every ``ingest_*`` call turns its payload into one batch, applied
    atomically: entities first, then relations, so an edge may point at
    an entity from the same batch. Rejected relations are reported in
    the returned BatchResult, never dropped silently. Retrying a failed
    batch is the caller's job.
    """

    def __init__(self, graph: ThreatGraph, policy: RiskPolicy = DEFAULT_POLICY) -> None:
        self.graph = graph
        self.policy = policy

    @classmethod
    def from_settings(cls, settings: Settings) -> IngestionAdapter:
        return cls(
            ThreatGraph.from_settings(settings.graph),
            RiskPolicy.from_settings(settings.risk),
        )

    def ingest_batch(
        self,
        entities: Iterable[Entity | Mapping[str, Any]],
        relations: Iterable[Relation | Mapping[str, Any]],
        *,
        atomic: bool = False,
    ) -> BatchResult:
        return self._apply((list(entities), list(relations)), atomic=atomic)

    def ingest_graph_result(self, payload: GraphRelatedResult | Mapping[str, Any]) -> BatchResult:
        return self._apply(graph_result_to_batch(payload))

    def ingest_indicators(
        self, indicators: Iterable[ThreatIndicator | Mapping[str, Any]],
    ) -> BatchResult:
        return self._apply(*(indicator_to_batch(i) for i in indicators))

    def ingest_campaigns(self, campaigns: Iterable[Campaign | Mapping[str, Any]]) -> BatchResult:
        return self._apply(*(campaign_to_batch(c) for c in campaigns))

    def ingest_actors(self, actors: Iterable[ThreatActor | Mapping[str, Any]]) -> BatchResult:
        return self._apply(*(actor_to_batch(a) for a in actors))

    def ingest_document(self, document: Mapping[str, Any]) -> BatchResult:
        """Apply every section of a combined document as a single batch.

        Recognized keys: ``entities``/``relations`` (engine shape),
        ``nodes``/``edges`` (backend graph shape), ``campaigns``,
        ``threat_actors`` and ``indicators``.
        """
        parts: list[Converted] = []
        if "nodes" in document or "edges" in document:
            parts.append(graph_result_to_batch(document))
        parts.extend(campaign_to_batch(c) for c in document.get("campaigns", []))
        parts.extend(actor_to_batch(a) for a in document.get("threat_actors", []))
        parts.extend(indicator_to_batch(i) for i in document.get("indicators", []))
        parts.append((
            list(document.get("entities", [])),
            list(document.get("relations", [])),
        ))
        return self._apply(*parts)

    def ingest_stream(
        self, batches: Iterable[StreamItem], *, skip_invalid: bool = False,
    ) -> Iterator[BatchResult]:
        """Apply batches one at a time, yielding each result as it lands."""
        for seq, item in enumerate(batches):
            try:
                yield self._apply_item(item)
            except InvalidEntityError as e:
                if not skip_invalid:
                    raise
                logger.error("Skipping invalid batch #%d: %s", seq, e)

    async def ingest_stream_async(
        self, batches: AsyncIterable[StreamItem], *, skip_invalid: bool = False,
    ) -> AsyncIterable[BatchResult]:
        """Async variant for socket-fed updates; writes run off the event loop.

        Each result is yielded once async event handlers for its batch
        have finished.
        """
        seq = 0
        async for item in batches:
            try:
                result = await asyncio.to_thread(self._apply_item, item)
            except InvalidEntityError as e:
                if not skip_invalid:
                    raise
                logger.error("Skipping invalid batch #%d: %s", seq, e)
            else:
                await self.graph.bus.drain()
                yield result
            seq += 1

    def classify_threats(
        self, threats: Iterable[Any], now: datetime | None = None,
    ) -> RiskAssessment:
        return classify(threats, self.policy, now)

    def validate_sms(
        self, response: SMSAnalysisResponse | Mapping[str, Any], now: datetime | None = None,
    ) -> ConsistencyReport:
        return check_consistency(response, self.policy, now)

    def _apply_item(self, item: StreamItem) -> BatchResult:
        if isinstance(item, Mapping):
            return self.ingest_document(item)
        entities, relations = item
        return self.ingest_batch(entities, relations)

    def _apply(self, *parts: Converted, atomic: bool = False) -> BatchResult:
        entities: list[Any] = []
        raw_relations: list[Any] = []
        for part_entities, part_relations in parts:
            entities.extend(part_entities)
            raw_relations.extend(part_relations)
        relations, rejected = split_relations(raw_relations)
        return self.graph.apply_batch(entities, relations, atomic=atomic, rejected=rejected)
