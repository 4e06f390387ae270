"""Configuration package."""

from chalet_reservations.config.logging import configure_logging, get_logger
from chalet_reservations.config.settings import Settings, settings

__all__ = ["settings", "Settings", "configure_logging", "get_logger"]
