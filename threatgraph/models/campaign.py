"""Campaign and threat actor wire models."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from threatgraph.models.indicator import Platform
from threatgraph.models.severity import LenientStrEnum, SeverityLevel


class CampaignStatus(LenientStrEnum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    DORMANT = "dormant"
    UNKNOWN = "unknown"


class ThreatActorType(LenientStrEnum):
    NATION_STATE = "nation_state"
    CRIMINAL_GROUP = "criminal_group"
    HACKTIVIST_GROUP = "hacktivist_group"
    INSIDER = "insider"
    UNKNOWN = "unknown"


class ThreatActorMotivation(LenientStrEnum):
    FINANCIAL = "financial"
    ESPIONAGE = "espionage"
    DISRUPTION = "disruption"
    IDEOLOGICAL = "ideological"
    REVENGE = "revenge"
    UNKNOWN = "unknown"


class Campaign(BaseModel):
    id: str
    name: str
    description: str | None = None
    status: CampaignStatus = CampaignStatus.UNKNOWN
    first_seen: datetime | None = None
    last_seen: datetime | None = None
    target_platforms: list[Platform] = Field(default_factory=list)
    target_regions: list[str] = Field(default_factory=list)
    target_industries: list[str] = Field(default_factory=list)
    ttps: list[str] = Field(default_factory=list)
    indicators: int = 0
    threat_actors: list[str] = Field(default_factory=list)
    aliases: list[str] = Field(default_factory=list)
    malware_families: list[str] = Field(default_factory=list)
    severity: SeverityLevel = SeverityLevel.UNKNOWN

    @property
    def is_active(self) -> bool:
        return self.status == CampaignStatus.ACTIVE

    @property
    def targets_mobile(self) -> bool:
        return any(
            p in (Platform.IOS, Platform.ANDROID, Platform.ALL) for p in self.target_platforms
        )


class ThreatActor(BaseModel):
    """A threat actor. ``confidence`` is attribution confidence as a 0-100 percentage."""

    id: str
    name: str
    description: str | None = None
    type: ThreatActorType = ThreatActorType.UNKNOWN
    motivation: ThreatActorMotivation = ThreatActorMotivation.UNKNOWN
    sophistication: str | None = None
    first_seen: datetime | None = None
    last_seen: datetime | None = None
    aliases: list[str] = Field(default_factory=list)
    attributed_to: str | None = None
    target_platforms: list[Platform] = Field(default_factory=list)
    ttps: list[str] = Field(default_factory=list)
    campaigns: list[str] = Field(default_factory=list)
    malware_families: list[str] = Field(default_factory=list)
    indicators: int = 0
    confidence: int = Field(default=0, ge=0, le=100)

    @property
    def is_nation_state(self) -> bool:
        return self.type == ThreatActorType.NATION_STATE
