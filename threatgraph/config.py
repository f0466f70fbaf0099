"""Configuration — Pydantic Settings + YAML loading."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from threatgraph.models.severity import DEFAULT_SEVERITY_WEIGHTS, SeverityLevel

DEFAULT_CONFIG_PATH = Path(__file__).parent.parent / "config" / "default.yaml"

DEFAULT_LEVEL_THRESHOLDS: list[tuple[float, SeverityLevel]] = [
    (80.0, SeverityLevel.CRITICAL),
    (60.0, SeverityLevel.HIGH),
    (35.0, SeverityLevel.MEDIUM),
    (10.0, SeverityLevel.LOW),
    (0.0, SeverityLevel.INFO),
]


class GraphSettings(BaseSettings):
    removal_policy: Literal["cascade", "strict"] = "cascade"
    dedupe_relations: bool = True


class RiskSettings(BaseSettings):
    normalization_factor: float = Field(default=9.5, gt=0.0)
    severity_weights: dict[SeverityLevel, int] = Field(
        default_factory=lambda: dict(DEFAULT_SEVERITY_WEIGHTS),
    )
    level_thresholds: list[tuple[float, SeverityLevel]] = Field(
        default_factory=lambda: list(DEFAULT_LEVEL_THRESHOLDS),
    )
    intent_severity: SeverityLevel = SeverityLevel.LOW
    consistency_tolerance: float = Field(default=15.0, ge=0.0)

    @field_validator("severity_weights")
    @classmethod
    def _fill_missing_weights(cls, value: dict[SeverityLevel, int]) -> dict[SeverityLevel, int]:
        return {**DEFAULT_SEVERITY_WEIGHTS, **value}

    @field_validator("level_thresholds")
    @classmethod
    def _sort_thresholds(
        cls, value: list[tuple[float, SeverityLevel]],
    ) -> list[tuple[float, SeverityLevel]]:
        return sorted(value, key=lambda t: t[0], reverse=True)


class QuerySettings(BaseSettings):
    default_limit: int = Field(default=50, ge=1)
    max_hops: int = Field(default=6, ge=0)


class Settings(BaseSettings):
    """Root settings — merges defaults, YAML config, and env vars."""

    model_config = SettingsConfigDict(env_prefix="THREATGRAPH_", env_nested_delimiter="__")

    graph: GraphSettings = Field(default_factory=GraphSettings)
    risk: RiskSettings = Field(default_factory=RiskSettings)
    query: QuerySettings = Field(default_factory=QuerySettings)
    log_level: str = "INFO"

    @classmethod
    def load(cls, config_path: Path | str | None = None) -> Settings:
        """Load settings from YAML file, falling back to defaults."""
        data: dict[str, Any] = {}

        if config_path is None:
            config_path = DEFAULT_CONFIG_PATH

        path = Path(config_path)
        if path.exists():
            with open(path, encoding="utf-8") as f:
                raw = yaml.safe_load(f)
                if isinstance(raw, dict):
                    data = raw

        return cls(**data)
