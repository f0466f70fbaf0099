"""Tests for backend payload conversion."""

from __future__ import annotations

import pytest

from threatgraph.errors import InvalidEntityError, InvalidRelationError
from threatgraph.ingest.wire import (
    actor_to_batch,
    campaign_to_batch,
    coerce_relation,
    edge_to_relation,
    graph_result_to_batch,
    indicator_to_batch,
    make_relation,
    node_to_entity,
    parse_kind,
    relation_id,
)
from threatgraph.knowledge.entities import Entity, EntityKind
from threatgraph.models.graph import GraphEdge, GraphNode, GraphRelatedResult
from threatgraph.models.severity import SeverityLevel


class TestParseKind:
    def test_plain_kinds(self):
        assert parse_kind("indicator") == EntityKind.INDICATOR
        assert parse_kind("Malware") == EntityKind.MALWARE

    def test_backend_aliases(self):
        assert parse_kind("threat_actor") == EntityKind.ACTOR
        assert parse_kind("malware_family") == EntityKind.MALWARE
        assert parse_kind("ioc") == EntityKind.INDICATOR

    def test_unknown_kind(self):
        with pytest.raises(InvalidEntityError):
            parse_kind("vulnerability")


class TestGraphPayload:
    def test_node_unit_confidence(self):
        e = node_to_entity({
            "id": "actor-apt41", "label": "APT41", "type": "threat_actor",
            "properties": {"confidence": 0.95, "severity": "high", "country": "CN"},
        })
        assert e.kind == EntityKind.ACTOR
        assert e.confidence == 0.95
        assert e.severity == SeverityLevel.HIGH
        assert e.properties == {"country": "CN"}

    def test_node_percent_confidence(self):
        e = node_to_entity(GraphNode(
            id="m1", label="ShadowPad", type="malware",
            properties={"confidence_percent": 90},
        ))
        assert e.confidence == pytest.approx(0.9)

    def test_node_without_confidence(self):
        e = node_to_entity({"id": "t1", "label": "Cobalt Strike", "type": "tool"})
        assert e.confidence is None

    def test_node_label_falls_back_to_id(self):
        assert node_to_entity({"id": "t1", "type": "tool"}).name == "t1"

    def test_node_aliases_lifted(self):
        e = node_to_entity({
            "id": "a1", "label": "APT41", "type": "actor",
            "properties": {"aliases": ["Winnti"]},
        })
        assert e.aliases == ["Winnti"]
        assert "aliases" not in e.properties

    def test_node_unknown_type(self):
        with pytest.raises(InvalidEntityError):
            node_to_entity({"id": "v1", "label": "CVE-2024-0001", "type": "vulnerability"})

    def test_edge_deterministic_id(self):
        a = edge_to_relation({"source": "a", "target": "b", "relationship": "uses"})
        b = edge_to_relation({"source": "a", "target": "b", "relationship": "uses"})
        assert a.id == b.id == relation_id("a", "b", "uses")
        assert a.id.startswith("rel-")

    def test_edge_properties(self):
        r = edge_to_relation({
            "source": "a", "target": "b",
            "properties": {"id": "e1", "confidence": 0.5, "note": "x"},
        })
        assert r.id == "e1"
        assert r.relation_type == "related"
        assert r.confidence == 0.5
        assert r.properties == {"note": "x"}

    def test_graph_result(self, sample_document):
        entities, relations = graph_result_to_batch(sample_document)
        assert [e.id for e in entities] == ["actor-apt41", "camp-shadow", "mal-shadowpad"]
        assert [(r.source_id, r.target_id) for r in relations] == [
            ("actor-apt41", "camp-shadow"), ("camp-shadow", "mal-shadowpad"),
        ]

    def test_make_relation_explicit_id(self):
        assert make_relation("a", "b", "uses", id="r1").id == "r1"

    def test_edge_empty_source_rejected(self):
        with pytest.raises(InvalidRelationError) as exc:
            edge_to_relation({"source": "", "target": "b", "relationship": "uses"})
        assert exc.value.payload["target_id"] == "b"

    def test_edge_missing_target_rejected(self):
        with pytest.raises(InvalidRelationError):
            edge_to_relation({"source": "a"})

    def test_edge_model_input(self):
        r = edge_to_relation(GraphEdge(source="a", target="b", relationship="uses"))
        assert r.id == relation_id("a", "b", "uses")

    def test_graph_result_keeps_malformed_edge_raw(self, sample_document):
        payload = dict(sample_document)
        payload["edges"] = [*sample_document["edges"], {"target": "camp-shadow"}]
        entities, relations = graph_result_to_batch(payload)
        assert len(entities) == 3
        assert isinstance(relations[-1], dict)
        assert relations[-1]["source_id"] is None
        with pytest.raises(InvalidRelationError):
            coerce_relation(relations[-1])

    def test_graph_result_model_input(self, sample_document):
        model = GraphRelatedResult.model_validate({
            "nodes": sample_document["nodes"], "edges": sample_document["edges"],
        })
        entities, relations = graph_result_to_batch(model)
        assert len(entities) == 3
        assert len(relations) == 2

    def test_node_without_id_rejected(self):
        with pytest.raises(InvalidEntityError):
            node_to_entity({"label": "APT41", "type": "actor"})


class TestIndicatorPayload:
    def test_confidence_converted(self, sample_document):
        entities, _ = indicator_to_batch(sample_document["indicators"][0])
        assert entities[0].confidence == pytest.approx(0.85)
        assert entities[0].kind == EntityKind.INDICATOR
        assert entities[0].properties["indicator_type"] == "domain"

    def test_attribution_edges(self, sample_document):
        _, relations = indicator_to_batch(sample_document["indicators"][0])
        assert [(r.target_id, r.relation_type) for r in relations] == [
            ("camp-shadow", "part-of"), ("actor-apt41", "attributed-to"),
        ]

    def test_no_attribution(self):
        _, relations = indicator_to_batch({"id": "i1", "value": "x.com", "type": "domain"})
        assert relations == []

    def test_unknown_type_degrades(self):
        entities, _ = indicator_to_batch({"id": "i1", "value": "x", "type": "quantum_token"})
        assert entities[0].properties["indicator_type"] == "unknown"

    def test_missing_value(self):
        with pytest.raises(InvalidEntityError):
            indicator_to_batch({"id": "i1", "type": "domain"})

    def test_percent_out_of_range(self):
        with pytest.raises(InvalidEntityError):
            indicator_to_batch({"id": "i1", "value": "x.com", "confidence": 150})


class TestCampaignAndActorPayloads:
    def test_campaign_edges_and_malware(self):
        entities, relations = campaign_to_batch({
            "id": "camp-shadow", "name": "Operation ShadowHammer", "severity": "high",
            "threat_actors": ["actor-apt41"], "malware_families": ["ShadowPad"],
            "aliases": ["Asus Hack"],
        })
        campaign, malware = entities
        assert campaign.aliases == ["Asus Hack"]
        assert malware.id == Entity.malware("ShadowPad").id
        assert malware.is_placeholder
        assert [(r.source_id, r.target_id, r.relation_type) for r in relations] == [
            ("actor-apt41", "camp-shadow", "attributed-to"),
            ("camp-shadow", malware.id, "uses"),
        ]

    def test_actor_confidence_and_edges(self):
        entities, relations = actor_to_batch({
            "id": "actor-apt41", "name": "APT41", "type": "nation_state",
            "confidence": 90, "campaigns": ["camp-shadow"], "malware_families": ["PlugX"],
        })
        actor = entities[0]
        assert actor.confidence == pytest.approx(0.9)
        assert actor.properties["type"] == "nation_state"
        assert relations[0].relation_type == "attributed-to"
        assert relations[0].target_id == "camp-shadow"
        assert relations[1].relation_type == "uses"

    def test_actor_invalid(self):
        with pytest.raises(InvalidEntityError):
            actor_to_batch({"id": "actor-x"})
