"""
Fuelshift configuration.

Usage in settings.py:
    FUELSHIFT = {
        "API_BASE_URL": "https://combustivel.example.com",
        "TOKEN_PROVIDER": "console.auth.get_access_token",
        "POINTER_CACHE_ALIAS": "persistent",
        "VERIFY_DEBOUNCE_MS": 2000,
    }
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from django.conf import settings


@dataclass
class FuelShiftSettings:
    """Fuelshift configuration settings."""

    # Fuel backend base URL (no trailing slash)
    API_BASE_URL: str = "http://localhost:3001"

    # Request timeout in seconds (None = inherit transport behaviour)
    API_TIMEOUT: float | None = None

    # ShiftApi backend (dotted path)
    SHIFT_API: str = "fuelshift.adapters.http.HttpShiftApi"

    # Callable returning the bearer token or None (dotted path, "" = no auth header)
    TOKEN_PROVIDER: str = ""

    # Cache alias holding the open shift pointer (should be a persistent backend)
    POINTER_CACHE_ALIAS: str = "default"

    POINTER_KEY: str = "fuelshift:turno_ativo_id"

    # Verifications within this window collapse into the previous result
    VERIFY_DEBOUNCE_MS: int = 2000

    # Message fragments that identify "a shift is already open" on start
    CONFLICT_PHRASES: tuple[str, ...] = ("turno em aberto", "open shift")

    # Message fragments that identify "no open shift" on add entries
    NO_OPEN_SHIFT_PHRASES: tuple[str, ...] = ("nenhum turno em aberto", "no open shift")

    # ConflictParser implementation (dotted path)
    CONFLICT_PARSER: str = "fuelshift.conflict.RegexConflictParser"

    # Variance above this is logged as a warning (never blocks closing)
    VARIANCE_TOLERANCE: Decimal = Decimal("1")


def get_fuelshift_settings() -> FuelShiftSettings:
    """Load settings from Django settings."""
    user_settings: dict[str, Any] = getattr(settings, "FUELSHIFT", {})
    return FuelShiftSettings(**{
        k: v for k, v in user_settings.items()
        if k in FuelShiftSettings.__dataclass_fields__
    })


class _LazySettings:
    """Lazy proxy that re-reads settings on every attribute access."""

    def __getattr__(self, name):
        return getattr(get_fuelshift_settings(), name)


fuelshift_settings = _LazySettings()
