"""
Centralized settings for fleet-spine.

:class:`FleetSettings` holds every operational constant the orchestrator
needs: the readiness budget, the poll interval, the command delivery
timeout, the output listing cap and the two policy switches that decide what a
readiness timeout or an empty target set means. Settings are
passed explicitly into :class:`~fleetspine.command.orchestrator.CommandOrchestrator`
so tests can shrink every timeout without touching process-wide state.

All fields can be set through ``FLEETSPINE_*`` environment variables (e.g.
``FLEETSPINE_READINESS_TIMEOUT_SECONDS=120``) or a ``.env`` file.

Tags:
    configuration, settings, pydantic, environment
"""

from __future__ import annotations

from pathlib import Path

from pydantic import Field, ValidationError, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from fleetspine.core.errors import ConfigError


class FleetSettings(BaseSettings):
    """fleet-spine configuration."""

    model_config = SettingsConfigDict(
        env_prefix="FLEETSPINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── AWS ──────────────────────────────────────────────────────
    aws_region: str | None = Field(default=None, description="Default region for fleet and command clients")
    aws_profile: str | None = Field(default=None, description="Named profile for the boto3 session")

    # ── Timing ───────────────────────────────────────────────────
    readiness_timeout_seconds: int = Field(
        default=600,
        description="Budget for the fleet to converge before dispatch",
    )
    poll_interval_seconds: float = Field(
        default=10,
        description="Sleep between readiness and invocation polls",
    )
    delivery_timeout_seconds: int = Field(
        default=600,
        description="Time the command service may take to deliver the command to a target",
    )

    # ── Output ───────────────────────────────────────────────────
    output_max_keys: int = Field(default=1000, description="Maximum output objects listed per dispatch")

    # ── Policies ─────────────────────────────────────────────────
    fail_on_readiness_timeout: bool = Field(
        default=True,
        description="Abort the run when the fleet never converges; False dispatches anyway",
    )
    allow_empty_targets: bool = Field(
        default=False,
        description="Treat a dispatch against zero provisioned members as success",
    )

    # ── Logging ──────────────────────────────────────────────────
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="console", description="console or json")

    # ── State ────────────────────────────────────────────────────
    state_dir: Path = Field(
        default_factory=lambda: Path.home() / ".fleetspine" / "state",
        description="Directory holding lifecycle state files",
    )

    @model_validator(mode="after")
    def _validate_timing(self) -> FleetSettings:
        if self.poll_interval_seconds <= 0:
            raise ValueError("poll_interval_seconds must be positive")
        if self.readiness_timeout_seconds <= 0:
            raise ValueError("readiness_timeout_seconds must be positive")
        if self.output_max_keys <= 0:
            raise ValueError("output_max_keys must be positive")
        if self.log_format not in ("console", "json"):
            raise ValueError("log_format must be 'console' or 'json'")
        return self


_settings_cache: dict[str, FleetSettings] = {}


def get_settings(*, _force_reload: bool = False) -> FleetSettings:
    """Load, validate, and cache a :class:`FleetSettings` instance.

    Raises:
        ConfigError: If the environment holds an invalid value.
    """
    if not _force_reload and "default" in _settings_cache:
        return _settings_cache["default"]

    try:
        settings = FleetSettings()
    except ValidationError as exc:
        raise ConfigError(f"config: invalid fleet-spine settings: {exc}", cause=exc) from exc

    _settings_cache["default"] = settings
    return settings


def clear_settings_cache() -> None:
    """Clear the settings cache (primarily for testing)."""
    _settings_cache.clear()


__all__ = ["FleetSettings", "get_settings", "clear_settings_cache"]
