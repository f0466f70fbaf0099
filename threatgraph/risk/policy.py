"""Risk policy tables — severity weights and score-to-level thresholds."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import BaseModel, Field, field_validator

from threatgraph.config import DEFAULT_LEVEL_THRESHOLDS
from threatgraph.models.severity import DEFAULT_SEVERITY_WEIGHTS, SeverityLevel

if TYPE_CHECKING:
    from threatgraph.config import RiskSettings

MAX_RISK_SCORE = 100.0


class RiskPolicy(BaseModel, frozen=True):
    """Tunable tables consumed by the classifier.

    normalization_factor scales the weighted sum onto 0-100. At 9.5 a
    single critical signal at full confidence scores 95: high enough for
    the critical level, but reaching 100 takes corroboration.
    """

    severity_weights: dict[SeverityLevel, int] = Field(
        default_factory=lambda: dict(DEFAULT_SEVERITY_WEIGHTS),
    )
    level_thresholds: tuple[tuple[float, SeverityLevel], ...] = tuple(DEFAULT_LEVEL_THRESHOLDS)
    normalization_factor: float = Field(default=9.5, gt=0.0)
    intent_severity: SeverityLevel = SeverityLevel.LOW
    consistency_tolerance: float = Field(default=15.0, ge=0.0)

    @field_validator("severity_weights")
    @classmethod
    def _complete_weights(cls, value: dict[SeverityLevel, int]) -> dict[SeverityLevel, int]:
        return {**DEFAULT_SEVERITY_WEIGHTS, **value}

    @field_validator("level_thresholds")
    @classmethod
    def _descending(
        cls, value: tuple[tuple[float, SeverityLevel], ...],
    ) -> tuple[tuple[float, SeverityLevel], ...]:
        return tuple(sorted(value, key=lambda t: t[0], reverse=True))

    @classmethod
    def from_settings(cls, settings: RiskSettings) -> RiskPolicy:
        return cls(
            severity_weights=settings.severity_weights,
            level_thresholds=tuple(settings.level_thresholds),
            normalization_factor=settings.normalization_factor,
            intent_severity=settings.intent_severity,
            consistency_tolerance=settings.consistency_tolerance,
        )

    def weight(self, level: SeverityLevel) -> int:
        return self.severity_weights.get(level, 0)

    def level_for(self, score: float) -> SeverityLevel:
        """First level whose lower bound the score reaches; INFO below every bound."""
        for bound, level in self.level_thresholds:
            if score >= bound:
                return level
        return SeverityLevel.INFO

    def level_rank(self, level: SeverityLevel) -> int:
        """Position of *level* in the threshold table, 0 = most severe."""
        for rank, (_, candidate) in enumerate(self.level_thresholds):
            if candidate == level:
                return rank
        return len(self.level_thresholds)


DEFAULT_POLICY = RiskPolicy()
