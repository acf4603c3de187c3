"""
Collaborator loading — ShiftApi backend and bearer token provider.

Usage:
    from fuelshift.adapters import get_shift_api

    api = get_shift_api()

Settings:
    FUELSHIFT = {
        "SHIFT_API": "fuelshift.adapters.http.HttpShiftApi",
        "TOKEN_PROVIDER": "console.auth.get_access_token",
    }
"""

from __future__ import annotations

import logging
import threading
from typing import Callable

from django.core.exceptions import ImproperlyConfigured
from django.utils.module_loading import import_string

from fuelshift.conf import fuelshift_settings
from fuelshift.protocols.shift_api import ShiftApi

logger = logging.getLogger(__name__)


# Cached backend instance
_lock = threading.Lock()
_shift_api: ShiftApi | None = None


def get_shift_api() -> ShiftApi:
    """
    Return the configured ShiftApi backend.

    Returns:
        ShiftApi instance

    Raises:
        ImproperlyConfigured: If SHIFT_API is empty or import fails
    """
    global _shift_api

    if _shift_api is None:
        with _lock:
            if _shift_api is None:  # double-checked
                api_path = fuelshift_settings.SHIFT_API

                if not api_path:
                    raise ImproperlyConfigured(
                        "FUELSHIFT['SHIFT_API'] must be configured. "
                        "Example: 'fuelshift.adapters.http.HttpShiftApi'"
                    )

                try:
                    api_class = import_string(api_path)
                except ImportError as e:
                    raise ImproperlyConfigured(
                        f"Failed to import shift API '{api_path}': {e}"
                    ) from e
                _shift_api = api_class()
                logger.debug("Loaded shift API: %s", api_path)

    return _shift_api


def reset_shift_api() -> None:
    """Reset the cached backend. Useful for testing."""
    global _shift_api
    _shift_api = None


def get_token_provider() -> Callable[[], str | None] | None:
    """
    Return the configured bearer token callable, or None when unset.

    Token storage belongs to the console's auth layer; this only resolves
    the dotted path.
    """
    provider_path = fuelshift_settings.TOKEN_PROVIDER
    if not provider_path:
        return None
    try:
        return import_string(provider_path)
    except ImportError as e:
        raise ImproperlyConfigured(
            f"Failed to import token provider '{provider_path}': {e}"
        ) from e
