"""Risk classification shared by graph ranking and SMS verdict checks."""

from threatgraph.risk.classifier import (
    ConsistencyReport,
    RiskAssessment,
    ThreatSignal,
    check_consistency,
    classify,
    classify_indicators,
    classify_sms,
    severity_weight,
)
from threatgraph.risk.policy import DEFAULT_POLICY, RiskPolicy

__all__ = [
    "DEFAULT_POLICY",
    "ConsistencyReport",
    "RiskAssessment",
    "RiskPolicy",
    "ThreatSignal",
    "check_consistency",
    "classify",
    "classify_indicators",
    "classify_sms",
    "severity_weight",
]
