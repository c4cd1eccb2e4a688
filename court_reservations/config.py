"""
Configuration loading: engine settings and the operator's court catalog.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Mapping

import yaml

from .errors import UnknownCourtError
from .models import Court, OperatingHourRule

ENV_PREFIX = "COURT_RESERVATIONS_"


@dataclass(frozen=True)
class EngineSettings:
    data_dir: Path = Path("data")
    max_storage_retries: int = 3
    retry_backoff_seconds: float = 0.05
    holiday_country: str | None = None
    holiday_subdivision: str | None = None

    def __post_init__(self) -> None:
        if self.max_storage_retries < 0:
            raise ValueError("max_storage_retries must not be negative")
        if self.retry_backoff_seconds < 0:
            raise ValueError("retry_backoff_seconds must not be negative")

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> "EngineSettings":
        return EngineSettings(
            data_dir=Path(str(data.get("data_dir", "data"))),
            max_storage_retries=int(data.get("max_storage_retries", 3)),
            retry_backoff_seconds=float(data.get("retry_backoff_seconds", 0.05)),
            holiday_country=(str(data["holiday_country"]) if data.get("holiday_country") else None),
            holiday_subdivision=(str(data["holiday_subdivision"]) if data.get("holiday_subdivision") else None),
        )

    def with_env_overrides(self, environ: Mapping[str, str] | None = None) -> "EngineSettings":
        """Apply COURT_RESERVATIONS_* environment variables on top of file values."""
        env = os.environ if environ is None else environ
        overrides: dict[str, Any] = {}
        if env.get(ENV_PREFIX + "DATA_DIR"):
            overrides["data_dir"] = Path(env[ENV_PREFIX + "DATA_DIR"])
        if env.get(ENV_PREFIX + "MAX_STORAGE_RETRIES"):
            overrides["max_storage_retries"] = int(env[ENV_PREFIX + "MAX_STORAGE_RETRIES"])
        if env.get(ENV_PREFIX + "HOLIDAY_COUNTRY"):
            overrides["holiday_country"] = env[ENV_PREFIX + "HOLIDAY_COUNTRY"]
        return replace(self, **overrides) if overrides else self


@dataclass
class CourtCatalog:
    """The operator's courts and their operating-hour rules."""

    courts: dict[str, Court] = field(default_factory=dict)
    rules: list[OperatingHourRule] = field(default_factory=list)

    def court(self, court_id: str) -> Court:
        try:
            return self.courts[court_id]
        except KeyError:
            raise UnknownCourtError(f"Unknown court: {court_id!r}") from None

    def rules_for(self, court_id: str) -> list[OperatingHourRule]:
        return [rule for rule in self.rules if rule.court_id == court_id]

    def list_courts(self) -> list[Court]:
        return sorted(self.courts.values(), key=lambda court: court.name)

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> "CourtCatalog":
        """
        Build a catalog from a mapping like::

            courts:
              - court_id: c1
                name: Court 1
                default_price_cents: 8000
                operating_hours:
                  - {day_of_week: 0, open_time: "08:00", close_time: "22:00", slot_duration_minutes: 60}
        """
        catalog = CourtCatalog()
        for row in data.get("courts") or []:
            if not isinstance(row, Mapping):
                raise ValueError("each court entry must be a mapping")
            court = Court.from_dict(dict(row))
            if court.court_id in catalog.courts:
                raise ValueError(f"Duplicate court id: {court.court_id}")
            catalog.courts[court.court_id] = court
            for rule_row in row.get("operating_hours") or []:
                catalog.rules.append(OperatingHourRule.from_dict(court.court_id, dict(rule_row)))
        return catalog


@dataclass
class AppConfig:
    settings: EngineSettings = field(default_factory=EngineSettings)
    catalog: CourtCatalog = field(default_factory=CourtCatalog)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AppConfig":
        return cls(
            settings=EngineSettings.from_dict(data.get("settings") or {}),
            catalog=CourtCatalog.from_dict(data),
        )

    @classmethod
    def load_from_yaml(cls, config_path: Path, environ: Mapping[str, str] | None = None) -> "AppConfig":
        """
        Load configuration from a YAML file and apply environment overrides.

        Raises:
            FileNotFoundError: If the config file doesn't exist
            ValueError: If the config is invalid
        """
        if not config_path.exists():
            raise FileNotFoundError(
                f"Config file not found: {config_path}\n"
                f"Please create a courts.yaml file describing your courts and operating hours."
            )

        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        if not isinstance(data, Mapping):
            raise ValueError(f"Config file {config_path} must contain a mapping at the top level")

        config = cls.from_dict(data)
        config.settings = config.settings.with_env_overrides(environ)
        return config


def get_default_config_path() -> Path:
    """Get the default configuration file path."""
    config_path = Path.cwd() / "courts.yaml"

    if not config_path.exists():
        project_root = Path(__file__).parent.parent
        config_path = project_root / "courts.yaml"

    if not config_path.exists():
        config_path = Path(__file__).parent.parent / "courts.example.yaml"

    return config_path
