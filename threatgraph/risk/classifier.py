"""Risk classifier — maps severity/confidence signals to a 0-100 score and level.

score = min(100, sum(weight(severity) * confidence) * normalization_factor)

Signals are summed in a canonical order (weight desc, confidence desc)
so any permutation of the same multiset produces the same float.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from threatgraph.knowledge.confidence import percent_to_unit
from threatgraph.knowledge.entities import Entity
from threatgraph.models.indicator import ThreatIndicator
from threatgraph.models.severity import SeverityLevel
from threatgraph.models.sms import SMSAnalysisResponse
from threatgraph.risk.policy import DEFAULT_POLICY, MAX_RISK_SCORE, RiskPolicy

logger = logging.getLogger(__name__)


class ThreatSignal(BaseModel, frozen=True):
    """One severity/confidence observation; confidence on the 0-1 scale."""

    severity: SeverityLevel
    confidence: float = Field(ge=0.0, le=1.0)
    active: bool = True


class RiskAssessment(BaseModel, frozen=True):
    risk_score: float = Field(ge=0.0, le=MAX_RISK_SCORE)
    risk_level: SeverityLevel
    signal_count: int = 0
    inactive_count: int = 0
    unscored_count: int = 0


class ConsistencyReport(BaseModel):
    """Backend-reported verdict compared against the local recomputation."""

    reported_score: float
    reported_level: SeverityLevel
    reported_phishing: bool
    recomputed: RiskAssessment
    score_delta: float
    level_matches: bool
    phishing_flag_matches: bool
    consistent: bool


def severity_weight(level: SeverityLevel, policy: RiskPolicy = DEFAULT_POLICY) -> int:
    return policy.weight(SeverityLevel(level))


def to_signal(item: Any, now: datetime | None = None) -> ThreatSignal | None:
    """Normalize a threat-like object into a ThreatSignal.

    Returns None when the item carries no confidence at all (an entity
    whose confidence is unknown), which is not the same as zero.
    """
    if isinstance(item, ThreatSignal):
        return item
    if isinstance(item, ThreatIndicator):
        return ThreatSignal(
            severity=item.severity,
            confidence=percent_to_unit(item.confidence),
            active=item.is_active(now),
        )
    if isinstance(item, Entity):
        if item.confidence is None:
            return None
        return ThreatSignal(
            severity=item.severity, confidence=item.confidence, active=item.is_active(now),
        )
    if isinstance(item, Mapping):
        return ThreatSignal.model_validate(
            {"severity": SeverityLevel.UNKNOWN, **item},
        )

    # SMSThreat and anything else shaped like it
    indicator = getattr(item, "indicator", None)
    active = indicator.is_active(now) if isinstance(indicator, ThreatIndicator) else True
    return ThreatSignal(severity=item.severity, confidence=item.confidence, active=active)


def classify(
    threats: Iterable[Any],
    policy: RiskPolicy = DEFAULT_POLICY,
    now: datetime | None = None,
) -> RiskAssessment:
    """Score a set of threat signals. An empty set scores 0 / info."""
    signals: list[ThreatSignal] = []
    inactive = unscored = 0
    for item in threats:
        signal = to_signal(item, now)
        if signal is None:
            unscored += 1
        elif not signal.active:
            inactive += 1
        else:
            signals.append(signal)

    ordered = sorted(
        signals, key=lambda s: (-policy.weight(s.severity), -s.confidence),
    )
    total = 0.0
    for signal in ordered:
        total += policy.weight(signal.severity) * signal.confidence

    score = round(min(MAX_RISK_SCORE, total * policy.normalization_factor), 2)
    return RiskAssessment(
        risk_score=score,
        risk_level=policy.level_for(score),
        signal_count=len(signals),
        inactive_count=inactive,
        unscored_count=unscored,
    )


def sms_signals(
    response: SMSAnalysisResponse, policy: RiskPolicy = DEFAULT_POLICY,
) -> list[Any]:
    """Threats as-is, plus persuasion intents weighted at the policy's intent severity."""
    signals: list[Any] = list(response.threats)
    signals.extend(
        ThreatSignal(severity=policy.intent_severity, confidence=intent.confidence)
        for intent in response.intents
    )
    return signals


def classify_sms(
    response: SMSAnalysisResponse | Mapping[str, Any],
    policy: RiskPolicy = DEFAULT_POLICY,
    now: datetime | None = None,
) -> RiskAssessment:
    if not isinstance(response, SMSAnalysisResponse):
        response = SMSAnalysisResponse.model_validate(response)
    return classify(sms_signals(response, policy), policy, now)


def classify_indicators(
    indicators: Iterable[ThreatIndicator],
    policy: RiskPolicy = DEFAULT_POLICY,
    now: datetime | None = None,
) -> RiskAssessment:
    """Score indicators; expired ones are counted as inactive and add nothing."""
    return classify(indicators, policy, now)


def check_consistency(
    response: SMSAnalysisResponse | Mapping[str, Any],
    policy: RiskPolicy = DEFAULT_POLICY,
    now: datetime | None = None,
) -> ConsistencyReport:
    """Recompute an SMS verdict and compare it with what the backend reported.

    The score must fall within ``policy.consistency_tolerance`` points, the
    level within one step of the recomputed one, and ``is_phishing`` must
    agree with a recomputed level of medium or worse.
    """
    if not isinstance(response, SMSAnalysisResponse):
        response = SMSAnalysisResponse.model_validate(response)

    recomputed = classify_sms(response, policy, now)
    delta = round(abs(response.risk_score - recomputed.risk_score), 2)
    level_gap = abs(
        policy.level_rank(response.risk_level) - policy.level_rank(recomputed.risk_level),
    )
    level_matches = level_gap <= 1
    expect_phishing = (
        policy.level_rank(recomputed.risk_level) <= policy.level_rank(SeverityLevel.MEDIUM)
    )
    phishing_matches = response.is_phishing == expect_phishing
    consistent = delta <= policy.consistency_tolerance and level_matches and phishing_matches

    if not consistent:
        logger.warning(
            "Inconsistent SMS verdict: reported %.1f/%s, recomputed %.1f/%s",
            response.risk_score, response.risk_level,
            recomputed.risk_score, recomputed.risk_level,
        )
    return ConsistencyReport(
        reported_score=response.risk_score,
        reported_level=response.risk_level,
        reported_phishing=response.is_phishing,
        recomputed=recomputed,
        score_delta=delta,
        level_matches=level_matches,
        phishing_flag_matches=phishing_matches,
        consistent=consistent,
    )
