"""Shared test fixtures."""

import threading

import pytest

from threatgraph.knowledge.entities import Entity
from threatgraph.knowledge.graph import ThreatGraph
from threatgraph.knowledge.relations import Relation, RelationType
from threatgraph.models.severity import SeverityLevel


@pytest.fixture
def sample_entities():
    return [
        Entity.actor(
            "APT41", id="actor-apt41", confidence=0.95, severity=SeverityLevel.HIGH,
            aliases=["Winnti", "Double Dragon"],
        ),
        Entity.actor(
            "FIN7", id="actor-fin7", confidence=0.8, severity=SeverityLevel.HIGH,
            aliases=["Carbanak Group"],
        ),
        Entity.campaign(
            "Operation ShadowHammer", id="camp-shadow", confidence=0.88,
            severity=SeverityLevel.MEDIUM,
        ),
        Entity.campaign(
            "Carbanak Banking Heist", id="camp-carbanak", confidence=0.7,
            severity=SeverityLevel.HIGH,
        ),
        Entity.malware(
            "ShadowPad", id="mal-shadowpad", confidence=0.9, severity=SeverityLevel.CRITICAL,
        ),
        Entity.indicator(
            "update.asus-cdn.net", "domain", id="ind-domain", confidence=0.85,
            severity=SeverityLevel.HIGH,
        ),
        Entity.indicator(
            "203.0.113.7", "ipv4", id="ind-ip", confidence=0.6, severity=SeverityLevel.LOW,
        ),
        Entity.indicator(
            "9f86d081884c7d659a2feaa0c55ad015a3bf4f1b2b0b822cd15d6c15b0f00a08", "sha256",
            id="ind-hash", severity=SeverityLevel.MEDIUM,
        ),
        Entity.tool("Cobalt Strike", id="tool-cobalt", severity=SeverityLevel.HIGH),
    ]


@pytest.fixture
def sample_relations():
    def rel(rid, src, tgt, rtype):
        return Relation(id=rid, source_id=src, target_id=tgt, relation_type=rtype)

    return [
        rel("r1", "actor-apt41", "camp-shadow", RelationType.ATTRIBUTED_TO),
        rel("r2", "camp-shadow", "mal-shadowpad", RelationType.USES),
        rel("r3", "ind-domain", "camp-shadow", RelationType.PART_OF),
        rel("r4", "ind-hash", "mal-shadowpad", RelationType.INDICATES),
        rel("r5", "actor-fin7", "camp-carbanak", RelationType.ATTRIBUTED_TO),
        rel("r6", "actor-fin7", "tool-cobalt", RelationType.USES),
        rel("r7", "ind-ip", "camp-shadow", RelationType.PART_OF),
        rel("r8", "ind-ip", "mal-shadowpad", RelationType.INDICATES),
    ]


@pytest.fixture
def sample_graph(sample_entities, sample_relations):
    graph = ThreatGraph()
    result = graph.apply_batch(sample_entities, sample_relations)
    assert result.ok
    return graph


@pytest.fixture
def cancelled():
    token = threading.Event()
    token.set()
    return token


@pytest.fixture
def sample_document():
    """Combined backend document: graph nodes/edges plus intel arrays."""
    return {
        "entity_id": "actor-apt41",
        "nodes": [
            {
                "id": "actor-apt41", "label": "APT41", "type": "threat_actor",
                "properties": {"confidence": 0.95, "severity": "high"},
            },
            {
                "id": "camp-shadow", "label": "Operation ShadowHammer", "type": "campaign",
                "properties": {"confidence": 0.88, "severity": "medium"},
            },
            {
                "id": "mal-shadowpad", "label": "ShadowPad", "type": "malware",
                "properties": {"confidence_percent": 90, "severity": "critical"},
            },
        ],
        "edges": [
            {"source": "actor-apt41", "target": "camp-shadow", "relationship": "attributed-to"},
            {"source": "camp-shadow", "target": "mal-shadowpad", "relationship": "uses"},
        ],
        "indicators": [
            {
                "id": "ind-domain",
                "value": "update.asus-cdn.net",
                "type": "domain",
                "severity": "high",
                "confidence": 85,
                "campaign_id": "camp-shadow",
                "threat_actor_id": "actor-apt41",
            },
        ],
    }
