"""Wire models — backend payload shapes with their snake_case keys."""

from threatgraph.models.campaign import (
    Campaign,
    CampaignStatus,
    ThreatActor,
    ThreatActorMotivation,
    ThreatActorType,
)
from threatgraph.models.graph import GraphEdge, GraphNode, GraphRelatedResult
from threatgraph.models.indicator import (
    IndicatorListResponse,
    IndicatorType,
    Platform,
    ThreatIndicator,
)
from threatgraph.models.severity import SeverityLevel
from threatgraph.models.sms import (
    ExtractedURL,
    IntentType,
    SenderAnalysis,
    SMSAnalysisResponse,
    SMSThreat,
    SMSThreatType,
    SuspiciousIntent,
)

__all__ = [
    "Campaign",
    "CampaignStatus",
    "ExtractedURL",
    "GraphEdge",
    "GraphNode",
    "GraphRelatedResult",
    "IndicatorListResponse",
    "IndicatorType",
    "IntentType",
    "Platform",
    "SMSAnalysisResponse",
    "SMSThreat",
    "SMSThreatType",
    "SenderAnalysis",
    "SeverityLevel",
    "SuspiciousIntent",
    "ThreatActor",
    "ThreatActorMotivation",
    "ThreatActorType",
    "ThreatIndicator",
]
