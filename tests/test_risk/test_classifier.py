"""Tests for the risk classifier."""

from __future__ import annotations

import itertools
import logging
from datetime import UTC, datetime, timedelta

import pytest

from threatgraph.knowledge.entities import Entity
from threatgraph.models.indicator import ThreatIndicator
from threatgraph.models.severity import SeverityLevel
from threatgraph.models.sms import SMSAnalysisResponse, SMSThreat, SuspiciousIntent
from threatgraph.risk.classifier import (
    ThreatSignal,
    check_consistency,
    classify,
    classify_indicators,
    classify_sms,
    severity_weight,
    to_signal,
)
from threatgraph.risk.policy import RiskPolicy

NOW = datetime(2026, 3, 1, tzinfo=UTC)


def _signal(severity: str, confidence: float) -> ThreatSignal:
    return ThreatSignal(severity=severity, confidence=confidence)


def _make_sms(**overrides) -> SMSAnalysisResponse:
    data = {
        "is_phishing": True,
        "risk_score": 95.0,
        "risk_level": "critical",
        "threats": [
            {"id": "t1", "type": "smishing", "severity": "critical", "confidence": 1.0},
        ],
    }
    data.update(overrides)
    return SMSAnalysisResponse.model_validate(data)


class TestClassify:
    def test_empty_is_zero_info(self):
        result = classify([])
        assert result.risk_score == 0.0
        assert result.risk_level == SeverityLevel.INFO
        assert result.signal_count == 0

    def test_single_critical_below_cap(self):
        result = classify([_signal("critical", 1.0)])
        assert result.risk_score == 95.0
        assert result.risk_score < 100
        assert result.risk_level == SeverityLevel.CRITICAL

    def test_capped_at_100(self):
        result = classify([_signal("critical", 1.0), _signal("high", 0.9)])
        assert result.risk_score == 100.0
        assert result.risk_level == SeverityLevel.CRITICAL

    def test_weighted_sum(self):
        # (5 * 0.5 + 2 * 0.5) * 9.5 = 33.25
        result = classify([_signal("medium", 0.5), _signal("low", 0.5)])
        assert result.risk_score == pytest.approx(33.25)
        assert result.risk_level == SeverityLevel.LOW

    def test_unknown_severity_adds_nothing(self):
        result = classify([_signal("unknown", 1.0)])
        assert result.risk_score == 0.0
        assert result.signal_count == 1

    def test_permutation_determinism(self):
        signals = [
            _signal("high", 0.37), _signal("medium", 0.11), _signal("low", 0.93),
            _signal("info", 0.29), _signal("medium", 0.71),
        ]
        results = {
            (r.risk_score, r.risk_level)
            for r in (classify(p) for p in itertools.permutations(signals))
        }
        assert len(results) == 1

    def test_custom_policy(self):
        policy = RiskPolicy(normalization_factor=10.0)
        assert classify([_signal("critical", 1.0)], policy).risk_score == 100.0

    def test_mapping_signals(self):
        result = classify([{"severity": "high", "confidence": 0.5}])
        assert result.risk_score == pytest.approx(38.0)

    def test_severity_weight_helper(self):
        assert severity_weight(SeverityLevel.HIGH) == 8
        assert severity_weight("critical") == 10


class TestClassifyEntitiesAndIndicators:
    def test_entity_without_confidence_unscored(self):
        result = classify([Entity.tool("Cobalt Strike", severity="high")])
        assert result.unscored_count == 1
        assert result.signal_count == 0
        assert result.risk_score == 0.0

    def test_entity_with_confidence(self):
        result = classify([Entity.malware("ShadowPad", confidence=0.9, severity="critical")])
        assert result.risk_score == pytest.approx(85.5)

    def test_indicator_percent_converted(self):
        ind = ThreatIndicator(id="i1", value="x.com", severity="high", confidence=50)
        assert to_signal(ind).confidence == pytest.approx(0.5)
        assert classify_indicators([ind]).risk_score == pytest.approx(38.0)

    def test_expired_indicator_inactive(self):
        expired = ThreatIndicator(
            id="i1", value="x.com", severity="critical", confidence=100,
            expires_at=NOW - timedelta(days=1),
        )
        live = ThreatIndicator(id="i2", value="y.com", severity="low", confidence=100)
        result = classify_indicators([expired, live], now=NOW)
        assert result.inactive_count == 1
        assert result.signal_count == 1
        assert result.risk_score == pytest.approx(19.0)

    def test_sms_threat_with_expired_indicator(self):
        threat = SMSThreat(
            severity="critical", confidence=1.0,
            indicator=ThreatIndicator(id="i1", value="x.com", expires_at=NOW - timedelta(days=1)),
        )
        assert classify([threat], now=NOW).inactive_count == 1


class TestClassifySms:
    def test_threats_scored(self):
        result = classify_sms(_make_sms())
        assert result.risk_score == 95.0
        assert result.risk_level == SeverityLevel.CRITICAL

    def test_intents_weighted_low(self):
        response = _make_sms(threats=[], intents=[{"type": "urgency", "confidence": 1.0}])
        # low weight 2 * 1.0 * 9.5
        assert classify_sms(response).risk_score == pytest.approx(19.0)

    def test_intent_severity_configurable(self):
        policy = RiskPolicy(intent_severity=SeverityLevel.MEDIUM)
        response = _make_sms(threats=[], intents=[SuspiciousIntent(confidence=1.0)])
        assert classify_sms(response, policy).risk_score == pytest.approx(47.5)

    def test_accepts_mapping(self):
        result = classify_sms({"threats": [{"severity": "medium", "confidence": 1.0}]})
        assert result.risk_level == SeverityLevel.MEDIUM


class TestConsistency:
    def test_consistent_verdict(self):
        report = check_consistency(_make_sms())
        assert report.consistent
        assert report.score_delta == 0.0

    def test_score_drift_within_tolerance(self):
        report = check_consistency(_make_sms(risk_score=85.0))
        assert report.consistent

    def test_score_drift_beyond_tolerance(self, caplog):
        with caplog.at_level(logging.WARNING):
            report = check_consistency(_make_sms(risk_score=50.0, risk_level="high"))
        assert not report.consistent
        assert report.score_delta == 45.0
        assert "Inconsistent SMS verdict" in caplog.text

    def test_level_two_steps_off(self):
        report = check_consistency(_make_sms(risk_level="medium"))
        assert not report.level_matches
        assert not report.consistent

    def test_phishing_flag_mismatch(self):
        report = check_consistency(_make_sms(is_phishing=False))
        assert not report.phishing_flag_matches
        assert not report.consistent

    def test_benign_message(self):
        report = check_consistency(
            {"is_phishing": False, "risk_score": 0.0, "risk_level": "info"},
        )
        assert report.consistent
        assert report.recomputed.risk_level == SeverityLevel.INFO
