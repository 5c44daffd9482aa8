"""
Provider settings store backed by the application configuration.
"""

from typing import Dict

from ..config import AppConfig, ScheduleSettings
from ..domain.exceptions import UnknownProvider
from ..domain.models import ScheduleConfig


class ConfigScheduleStore:
    """
    Serves provider schedules from configured settings.

    A fresh ``ScheduleConfig`` is built on every read; nothing is cached
    because a provider may change their settings between reads.
    """

    def __init__(self, settings: Dict[str, ScheduleSettings]):
        self._settings = dict(settings)

    @classmethod
    def from_config(cls, config: AppConfig) -> "ConfigScheduleStore":
        return cls({provider.id: provider.schedule for provider in config.providers})

    async def get_schedule(self, provider_id: str) -> ScheduleConfig:
        try:
            settings = self._settings[provider_id]
        except KeyError:
            raise UnknownProvider(f"Unknown provider: {provider_id}") from None
        return settings.to_schedule()

    def put_settings(self, provider_id: str, settings: ScheduleSettings) -> None:
        """Replace a provider's settings, as the settings UI would."""
        self._settings[provider_id] = settings
