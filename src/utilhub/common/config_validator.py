"""Configuration validation models using Pydantic."""
from __future__ import annotations

from pathlib import Path
from typing import List, Literal

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator


class PathsConfig(BaseModel):
    """Filesystem locations used by the CLI."""

    store_dir: str = Field("data/store", description="Directory holding one JSON file per feed")
    logs_dir: str = Field("logs", description="Directory for log files")


class FeedsConfig(BaseModel):
    """Collection names of the feeds and derived record sets."""

    authoritative: str = Field("auslastung", description="Source of truth for canonical person ids")
    dependents: List[str] = Field(
        default_factory=lambda: ["einsatzplan", "mitarbeiter"],
        description="Feeds that receive propagated person ids",
    )
    time_series: List[str] = Field(
        default_factory=lambda: ["auslastung", "einsatzplan"],
        description="The two weekly-percentage feeds, utilization first",
    )
    consolidated: str = Field("utilizationData", description="Consolidated person-week records")
    upload_history: str = Field("uploadHistory", description="One entry per bulk upload")

    @field_validator("time_series")
    @classmethod
    def validate_time_series(cls, v):
        """Exactly two distinct weekly feeds are merged."""
        if len(v) != 2 or v[0] == v[1]:
            raise ValueError("time_series must name exactly two distinct feeds")
        return v

    @model_validator(mode="after")
    def validate_roles(self):
        if self.authoritative in self.dependents:
            raise ValueError("The authoritative feed cannot also be a dependent feed")
        if len(set(self.dependents)) != len(self.dependents):
            raise ValueError("Dependent feeds must be unique")
        return self

    @property
    def all_feeds(self) -> List[str]:
        return [self.authoritative, *self.dependents]


class StoreConfig(BaseModel):
    """Write limits of the underlying document store."""

    batch_limit: int = Field(450, ge=1, le=500, description="Max operations per committed batch")
    max_deliveries: int = Field(10000, ge=1, description="Trigger deliveries allowed per drain")


class ConsolidationConfig(BaseModel):
    """Consolidation policy."""

    precedence: str = Field(
        "auslastung",
        description="Feed whose value wins when both weekly feeds have a value",
    )


class LoggingConfig(BaseModel):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    file_name: str = "utilhub.log"


class EngineConfig(BaseModel):
    """Complete engine configuration."""

    paths: PathsConfig = Field(default_factory=PathsConfig)
    feeds: FeedsConfig = Field(default_factory=FeedsConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    consolidation: ConsolidationConfig = Field(default_factory=ConsolidationConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @model_validator(mode="after")
    def validate_precedence(self):
        """Precedence must name one of the two weekly feeds."""
        if self.consolidation.precedence not in self.feeds.time_series:
            raise ValueError(
                f"consolidation.precedence must be one of {self.feeds.time_series}, "
                f"got '{self.consolidation.precedence}'"
            )
        return self


def load_and_validate_config(config_dict: dict | None) -> EngineConfig:
    """
    Validate a configuration mapping.

    Args:
        config_dict: Parsed YAML mapping; None or empty yields all defaults.

    Returns:
        Validated EngineConfig object

    Raises:
        ValidationError: If configuration is invalid
    """
    return EngineConfig(**(config_dict or {}))


def load_config(path: str | Path) -> EngineConfig:
    """Load a YAML configuration file and validate it."""

    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Config not found: {p}")
    with open(p, "r", encoding="utf-8") as stream:
        raw = yaml.safe_load(stream) or {}
    return load_and_validate_config(raw)
