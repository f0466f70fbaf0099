"""Severity levels shared by entities, indicators and SMS threats."""

from __future__ import annotations

from enum import StrEnum


class LenientStrEnum(StrEnum):
    """Wire enum: matches case-insensitively and maps unknown values to ``unknown``."""

    @classmethod
    def _missing_(cls, value: object) -> StrEnum:
        if isinstance(value, str):
            lowered = value.strip().lower()
            for member in cls:
                if member.value == lowered:
                    return member
        return cls("unknown")


class SeverityLevel(LenientStrEnum):
    """Threat severity, ordered from most to least severe."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INFO = "info"
    UNKNOWN = "unknown"

    @property
    def weight(self) -> int:
        return DEFAULT_SEVERITY_WEIGHTS[self]

    @property
    def is_dangerous(self) -> bool:
        return self in (SeverityLevel.CRITICAL, SeverityLevel.HIGH)

    @property
    def color(self) -> str:
        return {
            SeverityLevel.CRITICAL: "#FF0000",
            SeverityLevel.HIGH: "#FF6B00",
            SeverityLevel.MEDIUM: "#FFB800",
            SeverityLevel.LOW: "#00D9FF",
            SeverityLevel.INFO: "#808080",
            SeverityLevel.UNKNOWN: "#CCCCCC",
        }[self]


DEFAULT_SEVERITY_WEIGHTS: dict[SeverityLevel, int] = {
    SeverityLevel.CRITICAL: 10,
    SeverityLevel.HIGH: 8,
    SeverityLevel.MEDIUM: 5,
    SeverityLevel.LOW: 2,
    SeverityLevel.INFO: 1,
    SeverityLevel.UNKNOWN: 0,
}
