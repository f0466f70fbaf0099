"""Threat indicator wire models (feed and lookup API payloads)."""

from __future__ import annotations

from datetime import UTC, datetime

from pydantic import BaseModel, Field

from threatgraph.models.severity import LenientStrEnum, SeverityLevel


class IndicatorType(LenientStrEnum):
    DOMAIN = "domain"
    IPV4 = "ipv4"
    IPV6 = "ipv6"
    URL = "url"
    SHA256 = "sha256"
    SHA1 = "sha1"
    MD5 = "md5"
    EMAIL = "email"
    PHONE_NUMBER = "phone_number"
    PROCESS_NAME = "process_name"
    FILE_NAME = "file_name"
    FILE_PATH = "file_path"
    BUNDLE_ID = "bundle_id"
    PACKAGE_NAME = "package_name"
    CERTIFICATE = "certificate"
    MUTEX_NAME = "mutex_name"
    REGISTRY_KEY = "registry_key"
    USER_AGENT = "user_agent"
    ASN = "asn"
    CIDR = "cidr"
    BITCOIN_ADDRESS = "bitcoin_address"
    SSID = "ssid"
    IMEI = "imei"
    ANDROID_ID = "android_id"
    IOS_UDID = "ios_udid"
    UNKNOWN = "unknown"

    @property
    def is_device_identifier(self) -> bool:
        return self in (
            IndicatorType.IMEI, IndicatorType.ANDROID_ID, IndicatorType.IOS_UDID,
        )


class Platform(LenientStrEnum):
    IOS = "ios"
    ANDROID = "android"
    WINDOWS = "windows"
    MACOS = "macos"
    LINUX = "linux"
    ALL = "all"
    UNKNOWN = "unknown"


class ThreatIndicator(BaseModel):
    """An indicator of compromise as served by the intel API.

    ``confidence`` is an integer percentage (0-100), unlike graph entities.
    """

    id: str
    value: str
    type: IndicatorType = IndicatorType.UNKNOWN
    severity: SeverityLevel = SeverityLevel.UNKNOWN
    confidence: int = Field(default=0, ge=0, le=100)
    platforms: list[Platform] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    description: str | None = None
    source_id: str | None = None
    source_name: str | None = None
    campaign_id: str | None = None
    campaign_name: str | None = None
    threat_actor_id: str | None = None
    threat_actor_name: str | None = None
    first_seen: datetime | None = None
    last_seen: datetime | None = None
    expires_at: datetime | None = None
    metadata: dict[str, str] | None = None
    mitre_techniques: list[str] | None = None

    @property
    def is_dangerous(self) -> bool:
        return self.severity.is_dangerous

    def applies_to(self, platform: Platform) -> bool:
        return not self.platforms or Platform.ALL in self.platforms or platform in self.platforms

    def is_active(self, now: datetime | None = None) -> bool:
        """Expired indicators remain known but stop counting toward risk."""
        if self.expires_at is None:
            return True
        now = now or datetime.now(UTC)
        expires = self.expires_at
        if expires.tzinfo is None:
            expires = expires.replace(tzinfo=UTC)
        if now.tzinfo is None:
            now = now.replace(tzinfo=UTC)
        return expires > now


class IndicatorListResponse(BaseModel):
    indicators: list[ThreatIndicator] = Field(default_factory=list)
    total: int = 0
    page: int = 1
    page_size: int = 0
    has_more: bool = False
