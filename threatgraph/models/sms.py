"""SMS / smishing analysis wire models.

The content analysis itself runs on the backend; these models only carry
its verdict so the risk classifier can re-check the reported score.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from threatgraph.models.indicator import ThreatIndicator
from threatgraph.models.severity import LenientStrEnum, SeverityLevel


class SMSThreatType(LenientStrEnum):
    PHISHING = "phishing"
    SMISHING = "smishing"
    BANKING_FRAUD = "banking_fraud"
    PACKAGE_SCAM = "package_scam"
    TECH_SUPPORT = "tech_support"
    IRS = "irs"
    LOTTERY = "lottery"
    ROMANCE = "romance"
    JOB_SCAM = "job_scam"
    CRYPTO_SCAM = "crypto_scam"
    EXECUTIVE_IMPERSONATION = "executive_impersonation"
    BRAND_IMPERSONATION = "brand_impersonation"
    MALWARE_LINK = "malware_link"
    DATA_HARVESTING = "data_harvesting"
    URGENT_ACTION = "urgent_action"
    UNKNOWN = "unknown"


class IntentType(LenientStrEnum):
    URGENCY = "urgency"
    FEAR = "fear"
    REWARD = "reward"
    AUTHORITY = "authority"
    SCARCITY = "scarcity"
    SOCIAL_PROOF = "social_proof"
    RECIPROCITY = "reciprocity"
    UNKNOWN = "unknown"


class SenderType(LenientStrEnum):
    SHORT_CODE = "short_code"
    ALPHANUMERIC = "alphanumeric"
    PHONE_NUMBER = "phone_number"
    EMAIL = "email"
    UNKNOWN = "unknown"


class SMSThreat(BaseModel):
    id: str = ""
    type: SMSThreatType = SMSThreatType.UNKNOWN
    description: str = ""
    severity: SeverityLevel = SeverityLevel.UNKNOWN
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    matched_pattern: str | None = None
    indicator: ThreatIndicator | None = None


class URLReputation(BaseModel):
    domain: str
    risk_score: float = 0.0
    risk_level: SeverityLevel = SeverityLevel.UNKNOWN
    categories: list[str] = Field(default_factory=list)
    is_malicious: bool = False
    is_phishing: bool = False
    is_suspicious: bool = False
    first_seen: datetime | None = None
    last_seen: datetime | None = None


class ExtractedURL(BaseModel):
    id: str = ""
    url: str
    domain: str = ""
    is_malicious: bool = False
    threat_type: str | None = None
    reputation: URLReputation | None = None


class SuspiciousIntent(BaseModel):
    id: str = ""
    type: IntentType = IntentType.UNKNOWN
    description: str = ""
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    matched_text: str | None = None


class BrandMatch(BaseModel):
    matched_brand: str
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    is_legitimate: bool = False
    spoofing_indicators: list[str] = Field(default_factory=list)


class SenderReputation(BaseModel):
    score: float = 0.0
    total_messages: int = 0
    spam_reports: int = 0
    phishing_reports: int = 0
    last_reported: datetime | None = None


class SenderAnalysis(BaseModel):
    sender: str
    type: SenderType = SenderType.UNKNOWN
    is_suspicious: bool = False
    suspicious_reasons: list[str] = Field(default_factory=list)
    brand_match: BrandMatch | None = None
    reputation: SenderReputation | None = None


class SMSAnalysisResponse(BaseModel):
    """Backend verdict for one message."""

    is_phishing: bool = False
    risk_score: float = Field(default=0.0, ge=0.0, le=100.0)
    risk_level: SeverityLevel = SeverityLevel.UNKNOWN
    threats: list[SMSThreat] = Field(default_factory=list)
    urls: list[ExtractedURL] = Field(default_factory=list)
    intents: list[SuspiciousIntent] = Field(default_factory=list)
    sender_analysis: SenderAnalysis | None = None
    recommendations: list[str] = Field(default_factory=list)

    @property
    def has_threats(self) -> bool:
        return bool(self.threats)

    @property
    def has_malicious_urls(self) -> bool:
        return any(u.is_malicious for u in self.urls)

    @property
    def highest_severity_threat(self) -> SMSThreat | None:
        if not self.threats:
            return None
        return max(self.threats, key=lambda t: t.severity.weight)
