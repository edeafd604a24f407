"""
Settings Service
Persists plugin settings as a JSON key-value document, merged over defaults.
"""

import json
import logging
import os
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, Optional

from config import settings as cfg
from config.settings import DISPLAY_ONLY_SETTINGS, InstructSettings, mask_api_key
from utils.file_helpers import read_text, write_text_atomic

logger = logging.getLogger(__name__)


class SettingsService:
    """Loads and saves InstructSettings.

    Saved keys override the defaults; keys the settings model does not know are
    dropped. An empty API key falls back to OPENAI_API_KEY from the environment,
    and INSTRUCT_OPENAI_TIMEOUT overrides the saved request timeout.
    """

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path or cfg.SETTINGS_PATH)

    def _read_saved(self) -> Dict[str, Any]:
        content = read_text(self.path)
        if content is None:
            return {}
        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            logger.warning(f"Settings file {self.path} is not valid JSON, using defaults: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Settings file {self.path} does not hold an object, using defaults")
            return {}
        return data

    def _load_saved(self) -> InstructSettings:
        """Saved settings only, without environment overrides."""
        settings = InstructSettings.from_dict(self._read_saved())
        try:
            settings.validate()
        except ValueError as e:
            logger.warning(f"Settings file {self.path} holds invalid values, using defaults: {e}")
            return InstructSettings()
        return settings

    def with_environment(self, settings: InstructSettings) -> InstructSettings:
        """Copy of ``settings`` with the environment overrides applied; never saved."""
        effective = replace(settings)

        if not effective.api_key:
            effective.api_key = os.getenv("OPENAI_API_KEY", "")

        timeout_override = os.getenv("INSTRUCT_OPENAI_TIMEOUT")
        if timeout_override:
            try:
                effective.request_timeout = float(timeout_override)
            except ValueError:
                logger.warning(f"Ignoring invalid INSTRUCT_OPENAI_TIMEOUT={timeout_override!r}")

        return effective

    def load(self) -> InstructSettings:
        settings = self.with_environment(self._load_saved())
        logger.debug(f"Loaded settings from {self.path}: model={settings.model}")
        return settings

    def save(self, settings: InstructSettings):
        settings.validate()
        write_text_atomic(self.path, json.dumps(settings.to_dict(), indent=4))
        logger.info(f"Saved settings to {self.path}")

    def merge(self, changes: Dict[str, Any]) -> InstructSettings:
        """Saved settings with ``changes`` applied and validated, not yet persisted.

        Display-only keys are ignored, as is an API key equal to the masked
        form of the key GET /api/settings shows. Raises ValueError for unknown keys or values the
        settings form would reject.
        """
        current = self._load_saved()
        data = current.to_dict()
        changes = {key: value for key, value in changes.items() if key not in DISPLAY_ONLY_SETTINGS}
        shown_key = self.with_environment(current).api_key
        if shown_key and changes.get('api_key') == mask_api_key(shown_key):
            changes.pop('api_key')

        unknown = [key for key in changes if key not in data]
        if unknown:
            raise ValueError(f"Unknown settings: {', '.join(sorted(unknown))}")
        data.update(changes)
        merged = InstructSettings.from_dict(data)
        merged.validate()
        return merged

    def update(self, changes: Dict[str, Any]) -> InstructSettings:
        """Apply a partial update and persist it; returns the effective settings."""
        merged = self.merge(changes)
        self.save(merged)
        return self.with_environment(merged)
