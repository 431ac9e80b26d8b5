"""
Client Settings: validated, sectioned configuration.

Settings arrive from the UI or a settings file as loose mappings. They are
accepted only after validation against these models; unknown keys are
rejected rather than carried along.
"""
import logging
from typing import Any, Literal
from collections.abc import Mapping

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from . import conf
from .exceptions import SettingsError

logger = logging.getLogger("keykeeper.settings")


class _Section(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)


class SecuritySettings(_Section):
    """Locking and clipboard behaviour."""

    auto_lock_timeout: int = Field(default=15, ge=0, le=24 * 60)  # minutes, 0 disables
    session_timeout: int = Field(default=60, ge=1)  # minutes
    clipboard_clear_seconds: int = Field(default=30, ge=0)
    audit_logging: bool = True


class BackupSettings(_Section):
    auto_backup: bool = True
    backup_interval: int = Field(default=24, ge=1)  # hours
    retention_days: int = Field(default=30, ge=1)
    backup_location: str = ""


class VSCodeSettings(_Section):
    """Editor integration; drives the liveness tracker."""

    enabled: bool = True
    poll_interval: float = Field(default=conf.POLL_INTERVAL, gt=0)
    probe_timeout: float = Field(default=conf.PROBE_TIMEOUT, gt=0)


class IntegrationSettings(_Section):
    vscode: VSCodeSettings = Field(default_factory=VSCodeSettings)


class UISettings(_Section):
    theme: Literal["light", "dark", "auto"] = "auto"
    mask_char: str = conf.MASK_CHAR
    compact_mode: bool = False

    @field_validator("mask_char")
    @classmethod
    def validate_mask_char(cls, v: str) -> str:
        """The mask must be a single visible character."""
        if len(v) != 1 or v.isspace():
            raise ValueError("mask_char must be exactly one visible character")
        return v


class ClientSettings(_Section):
    """All recognized settings sections."""

    security: SecuritySettings = Field(default_factory=SecuritySettings)
    backup: BackupSettings = Field(default_factory=BackupSettings)
    integrations: IntegrationSettings = Field(default_factory=IntegrationSettings)
    ui: UISettings = Field(default_factory=UISettings)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ClientSettings":
        """Validate an untrusted settings payload.

        Raises:
            SettingsError: naming the first offending key.
        """
        try:
            return cls.model_validate(dict(data))
        except ValidationError as err:
            first = err.errors()[0]
            location = ".".join(str(part) for part in first["loc"]) or "settings"
            logger.warning("Rejected settings: %d error(s)", err.error_count())
            raise SettingsError(
                f"Invalid setting {location}: {first['msg']}"
            ) from err

    @classmethod
    def from_env(cls) -> "ClientSettings":
        """Defaults with the environment overrides from ``conf`` applied."""
        return cls(
            integrations=IntegrationSettings(
                vscode=VSCodeSettings(
                    poll_interval=conf.POLL_INTERVAL,
                    probe_timeout=conf.PROBE_TIMEOUT,
                )
            )
        )

    def merged(self, section: str, values: Mapping[str, Any]) -> "ClientSettings":
        """Return a copy with one section updated, validating the result."""
        if section not in type(self).model_fields:
            raise SettingsError(f"Unknown settings section: {section}")
        data = self.model_dump()
        data[section] = {**data[section], **dict(values)}
        return type(self).from_mapping(data)
