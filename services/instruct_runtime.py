"""
Instruct Runtime
Wires settings, the instruction store, the OpenAI client and the completion service.
"""

import logging
from typing import Any, Dict, Optional

from ai.openai_client import OpenAIClient
from config.settings import InstructSettings
from services.completion_service import CompletionService
from services.instruction_store import InstructionStore
from services.settings_service import SettingsService

logger = logging.getLogger(__name__)


class InstructRuntime:
    """Holds the components built from one settings value.

    Each component receives the settings explicitly; ``apply_settings`` swaps
    in a fresh set of components after the settings change.
    """

    def __init__(self, settings_service: SettingsService, client_factory=OpenAIClient):
        self.settings_service = settings_service
        self.client_factory = client_factory
        self.settings: Optional[InstructSettings] = None
        self.store: Optional[InstructionStore] = None
        self.client: Optional[OpenAIClient] = None
        self.completion_service: Optional[CompletionService] = None

    def _build(self, settings: InstructSettings):
        store = InstructionStore(settings.resolved_data_file)
        client = self.client_factory(settings)
        return store, client, CompletionService(store, client)

    def apply_settings(self, settings: InstructSettings):
        self.store, self.client, self.completion_service = self._build(settings)
        self.settings = settings
        logger.info(f"Runtime configured: model={settings.model}, data_file={settings.resolved_data_file}")

    async def start(self) -> 'InstructRuntime':
        """Load settings and make sure the data file exists."""
        self.apply_settings(self.settings_service.load())
        created = await self.store.ensure_data_file()
        if created:
            logger.info(f"Initialized empty instruction history at {self.store.data_file}")
        return self

    async def update_settings(self, changes: Dict[str, Any]) -> InstructSettings:
        """Persist changed settings and rebuild the components from them.

        The new components are built before anything is saved, so a rejected
        change leaves both the settings file and the running components as they were.
        """
        merged = self.settings_service.merge(changes)
        settings = self.settings_service.with_environment(merged)
        components = self._build(settings)
        self.settings_service.save(merged)
        self.store, self.client, self.completion_service = components
        self.settings = settings
        logger.info(f"Runtime reconfigured: model={settings.model}, data_file={settings.resolved_data_file}")
        await self.store.ensure_data_file()
        return settings
