"""
Persistent store for user-adjustable voice settings.

Settings the user changes at runtime (currently the speaking rate) are
kept in a small YAML file layered over the configured defaults. The
controller reads one snapshot per connect.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from remind.config.schema import VoiceSettings, clamp_speaking_rate
from remind.core.logging import get_logger

logger = get_logger("config.settings")

# Fields persisted by the store
PERSISTED_FIELDS = ("speaking_rate",)


class SettingsStore:
    """YAML-backed voice settings with read-only snapshots."""

    def __init__(self, path: Path, defaults: VoiceSettings | None = None) -> None:
        """
        Initialize the store and load persisted values.

        Args:
            path: YAML file holding persisted settings
            defaults: Settings used for anything not persisted
        """
        self.path = path
        self._defaults = defaults or VoiceSettings()
        self._settings = self._load()

    @property
    def settings(self) -> VoiceSettings:
        return self.snapshot()

    def snapshot(self) -> VoiceSettings:
        """Return a copy that later updates will not mutate."""
        return self._settings.model_copy(deep=True)

    def update_speaking_rate(self, rate: float) -> VoiceSettings:
        """
        Change and persist the speaking rate.

        Out-of-range values are clamped to 0.5-1.5.

        Returns:
            The new settings snapshot
        """
        clamped = clamp_speaking_rate(rate)
        if clamped != rate:
            logger.warning(f"Invalid speaking rate {rate}, clamping to {clamped}")

        self._settings = self._settings.model_copy(update={"speaking_rate": clamped})
        self.save()
        return self.snapshot()

    def save(self) -> None:
        data = {name: getattr(self._settings, name) for name in PERSISTED_FIELDS}
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w") as f:
            yaml.safe_dump(data, f, default_flow_style=False)
        logger.info(f"Saved voice settings: rate={self._settings.speaking_rate}x")

    def _load(self) -> VoiceSettings:
        persisted = self._read_file()
        if not persisted:
            logger.info(f"Using default voice settings: rate={self._defaults.speaking_rate}x")
            return self._defaults.model_copy(deep=True)

        rate = persisted.get("speaking_rate")
        if isinstance(rate, (int, float)) and clamp_speaking_rate(rate) != rate:
            logger.warning(f"Invalid speaking rate {rate}, clamping to valid range")

        merged = {**self._defaults.model_dump(), **persisted}
        try:
            settings = VoiceSettings.model_validate(merged)
        except ValidationError as e:
            logger.warning(f"Ignoring invalid persisted voice settings: {e}")
            return self._defaults.model_copy(deep=True)

        logger.info(f"Loaded voice settings from storage: rate={settings.speaking_rate}x")
        return settings

    def _read_file(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path) as f:
                content = yaml.safe_load(f)
        except yaml.YAMLError as e:
            logger.warning(f"Failed to read voice settings from {self.path}: {e}")
            return {}
        if not isinstance(content, dict):
            return {}
        return {k: v for k, v in content.items() if k in PERSISTED_FIELDS}
