"""Event sink (monitoring service) configuration."""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger

from .env import env_bool, env_str

log = getLogger(__name__)


@dataclass(slots=True, frozen=True)
class EventSinkConfig:
    enabled: bool = False
    base_url: str = ""

    @property
    def active(self) -> bool:
        return self.enabled and bool(self.base_url)


def get_event_sink_config() -> EventSinkConfig:
    config = EventSinkConfig(
        enabled=env_bool("FDR_EVENTS_ENABLED", False),  # noqa: FBT003
        base_url=env_str("FDR_EVENTS_BASE_URL", ""),
    )
    if config.enabled and not config.base_url:
        log.warning("Event sink enabled but FDR_EVENTS_BASE_URL is not set; events are dropped")
    return config
