"""
Stampman configuration.

Usage in settings.py:
    STAMPMAN = {
        "STAMP_TTL_SECONDS": 300,
        "TICKET_TTL_HOURS": 24,
    }
"""

from dataclasses import dataclass
from typing import Any

from django.conf import settings


@dataclass
class StampmanSettings:
    """Stampman configuration settings."""

    # Stamp codes (digits)
    STAMP_TTL_SECONDS: int = 300
    STAMP_CODE_LENGTH: int = 6

    # Reward tickets (base-36)
    TICKET_TTL_HOURS: int = 24
    TICKET_CODE_LENGTH: int = 8

    # Generation retry cap, shared by stamps and tickets
    CODE_MAX_ATTEMPTS: int = 10

    # Card level = total_stamps // LEVEL_STEP + 1
    LEVEL_STEP: int = 10

    # Points granted by a sale that matches no tier
    DEFAULT_STAMP_VALUE: int = 1

    # Progress target shown when no reward is exchangeable
    DEFAULT_PROGRESS_TARGET: int = 10

    # Listings
    PAGE_SIZE: int = 10
    MAX_PAGE_SIZE: int = 100


def get_stampman_settings() -> StampmanSettings:
    """Load settings from Django settings."""
    user_settings: dict[str, Any] = getattr(settings, "STAMPMAN", {})
    return StampmanSettings(**user_settings)


class _LazySettings:
    """Lazy proxy that re-reads settings on every attribute access."""

    def __getattr__(self, name):
        return getattr(get_stampman_settings(), name)


stampman_settings = _LazySettings()
