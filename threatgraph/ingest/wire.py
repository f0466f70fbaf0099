"""Backend payload → graph entities/relations conversion.

Confidence scales are converted here and nowhere else: indicator and
actor payloads carry integer percentages, graph nodes carry unit floats
under ``confidence`` (or percentages under ``confidence_percent``).
"""

from __future__ import annotations

import hashlib
from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError

from threatgraph.errors import InvalidEntityError, InvalidRelationError
from threatgraph.knowledge.catalog import coerce_entity
from threatgraph.knowledge.confidence import percent_to_unit
from threatgraph.knowledge.entities import PLACEHOLDER, Entity, EntityKind
from threatgraph.knowledge.relations import Relation, RelationType
from threatgraph.models.campaign import Campaign, ThreatActor
from threatgraph.models.graph import GraphEdge, GraphNode, GraphRelatedResult
from threatgraph.models.indicator import ThreatIndicator

# Backend node types that name the same kind differently.
_KIND_ALIASES = {
    "threat_actor": EntityKind.ACTOR,
    "threat-actor": EntityKind.ACTOR,
    "malware_family": EntityKind.MALWARE,
    "ioc": EntityKind.INDICATOR,
}

# Relations may still be raw mappings; the adapter validates them one by one.
Converted = tuple[list[Any], list[Any]]


def relation_id(source_id: str, target_id: str, relation_type: str) -> str:
    """Deterministic ID for edges that arrive without one."""
    raw = f"{source_id}|{relation_type}|{target_id}"
    return "rel-" + hashlib.sha256(raw.encode()).hexdigest()[:16]


def make_relation(source_id: str, target_id: str, relation_type: str, **fields: Any) -> Relation:
    return Relation(
        id=fields.pop("id", None) or relation_id(source_id, target_id, relation_type),
        source_id=source_id,
        target_id=target_id,
        relation_type=relation_type,
        **fields,
    )


def coerce_relation(raw: Relation | Mapping[str, Any]) -> Relation:
    """Validate an engine-shaped mapping into a Relation.

    Failures raise InvalidRelationError carrying *raw*, so callers can
    report the payload per relation instead of failing the batch.
    """
    if isinstance(raw, Relation):
        return raw
    if not isinstance(raw, Mapping):
        msg = f"Relation payload must be a mapping, got {type(raw).__name__}"
        raise InvalidRelationError(msg, raw)
    fields = dict(raw)
    ident = fields.get("id") or "?"
    try:
        return make_relation(
            fields.pop("source_id"),
            fields.pop("target_id"),
            fields.pop("relation_type", None) or RelationType.RELATED_TO,
            **fields,
        )
    except KeyError as e:
        msg = f"Invalid relation payload {ident!r}: missing {e.args[0]!r}"
        raise InvalidRelationError(msg, dict(raw)) from e
    except (ValidationError, TypeError) as e:
        count = e.error_count() if isinstance(e, ValidationError) else 1
        msg = f"Invalid relation payload {ident!r}: {count} validation error(s)"
        raise InvalidRelationError(msg, dict(raw)) from e


def parse_kind(value: str) -> EntityKind:
    key = value.strip().lower()
    if key in _KIND_ALIASES:
        return _KIND_ALIASES[key]
    try:
        return EntityKind(key)
    except ValueError:
        msg = f"Unknown entity kind: {value!r}"
        raise InvalidEntityError(msg) from None


def node_to_entity(node: GraphNode | Mapping[str, Any]) -> Entity:
    node = _validate(GraphNode, node)
    props = dict(node.properties or {})

    confidence = props.pop("confidence", None)
    percent = props.pop("confidence_percent", None)
    if confidence is None and percent is not None:
        confidence = percent_to_unit(percent)

    fields: dict[str, Any] = {
        "id": node.id,
        "name": node.label or node.id,
        "kind": parse_kind(node.type),
        "confidence": confidence,
        "properties": props,
    }
    for key in ("severity", "first_seen", "last_seen", "expires_at", "aliases"):
        if key in props:
            fields[key] = props.pop(key)
    return coerce_entity(fields)


def edge_to_payload(edge: GraphEdge | Mapping[str, Any]) -> Any:
    """Engine-shaped relation mapping for a backend edge, not yet validated."""
    if isinstance(edge, GraphEdge):
        edge = edge.model_dump()
    if not isinstance(edge, Mapping):
        return edge
    raw_props = edge.get("properties")
    props = dict(raw_props) if isinstance(raw_props, Mapping) else {}
    return {
        "id": props.pop("id", None),
        "source_id": edge.get("source"),
        "target_id": edge.get("target"),
        "relation_type": edge.get("relationship") or "related",
        "confidence": props.pop("confidence", None),
        "properties": props,
    }


def edge_to_relation(edge: GraphEdge | Mapping[str, Any]) -> Relation:
    return coerce_relation(edge_to_payload(edge))


def graph_result_to_batch(payload: GraphRelatedResult | Mapping[str, Any]) -> Converted:
    """Nodes become entities; malformed edges stay raw for the relation phase to reject."""
    if isinstance(payload, GraphRelatedResult):
        nodes, edges = payload.nodes, payload.edges
    else:
        nodes, edges = payload.get("nodes") or [], payload.get("edges") or []
    entities = [node_to_entity(n) for n in nodes]
    relations: list[Relation | Any] = []
    for edge in edges:
        try:
            relations.append(edge_to_relation(edge))
        except InvalidRelationError as e:
            relations.append(e.payload)
    return entities, relations


def indicator_to_batch(indicator: ThreatIndicator | Mapping[str, Any]) -> Converted:
    """Indicator entity plus part-of / attributed-to edges for its attributions."""
    indicator = _validate(ThreatIndicator, indicator)
    entity = Entity.indicator(
        indicator.value,
        str(indicator.type),
        id=indicator.id,
        confidence=percent_to_unit(indicator.confidence),
        severity=indicator.severity,
        first_seen=indicator.first_seen,
        last_seen=indicator.last_seen,
        expires_at=indicator.expires_at,
        properties={
            "platforms": [str(p) for p in indicator.platforms],
            "tags": list(indicator.tags),
            "source_name": indicator.source_name,
            "mitre_techniques": list(indicator.mitre_techniques or []),
            "description": indicator.description,
        },
    )
    relations = []
    if indicator.campaign_id:
        relations.append(
            make_relation(indicator.id, indicator.campaign_id, RelationType.PART_OF),
        )
    if indicator.threat_actor_id:
        relations.append(
            make_relation(indicator.id, indicator.threat_actor_id, RelationType.ATTRIBUTED_TO),
        )
    return [entity], relations


def campaign_to_batch(campaign: Campaign | Mapping[str, Any]) -> Converted:
    """Campaign entity, its malware families, and actor attribution edges."""
    campaign = _validate(Campaign, campaign)
    entity = Entity.campaign(
        campaign.name,
        id=campaign.id,
        severity=campaign.severity,
        first_seen=campaign.first_seen,
        last_seen=campaign.last_seen,
        aliases=list(campaign.aliases),
        properties={
            "status": str(campaign.status),
            "description": campaign.description,
            "ttps": list(campaign.ttps),
            "target_platforms": [str(p) for p in campaign.target_platforms],
            "indicator_count": campaign.indicators,
        },
    )
    entities = [entity]
    relations = [
        make_relation(actor_id, campaign.id, RelationType.ATTRIBUTED_TO)
        for actor_id in campaign.threat_actors
    ]
    for family in campaign.malware_families:
        malware = Entity.malware(family, properties={PLACEHOLDER: True})
        entities.append(malware)
        relations.append(make_relation(campaign.id, malware.id, RelationType.USES))
    return entities, relations


def actor_to_batch(actor: ThreatActor | Mapping[str, Any]) -> Converted:
    """Actor entity (percent confidence converted), its malware and campaign edges."""
    actor = _validate(ThreatActor, actor)
    entity = Entity.actor(
        actor.name,
        id=actor.id,
        confidence=percent_to_unit(actor.confidence),
        first_seen=actor.first_seen,
        last_seen=actor.last_seen,
        aliases=list(actor.aliases),
        properties={
            "type": str(actor.type),
            "motivation": str(actor.motivation),
            "attributed_to": actor.attributed_to,
            "ttps": list(actor.ttps),
        },
    )
    entities = [entity]
    relations = [
        make_relation(actor.id, campaign_id, RelationType.ATTRIBUTED_TO)
        for campaign_id in actor.campaigns
    ]
    for family in actor.malware_families:
        malware = Entity.malware(family, properties={PLACEHOLDER: True})
        entities.append(malware)
        relations.append(make_relation(actor.id, malware.id, RelationType.USES))
    return entities, relations


def _validate(model: type, payload: Any) -> Any:
    if isinstance(payload, model):
        return payload
    try:
        return model.model_validate(payload)
    except ValidationError as e:
        ident = payload.get("id", "?") if isinstance(payload, Mapping) else "?"
        msg = f"Invalid {model.__name__} payload {ident!r}: {e.error_count()} error(s)"
        raise InvalidEntityError(msg) from e
