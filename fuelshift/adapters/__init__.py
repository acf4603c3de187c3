"""
Fuelshift Adapters.

Implementations of protocols for external systems.
"""

from fuelshift.adapters.backend import (
    get_shift_api,
    get_token_provider,
    reset_shift_api,
)
from fuelshift.adapters.http import HttpShiftApi
from fuelshift.adapters.memory import InMemoryShiftApi

__all__ = [
    "HttpShiftApi",
    "InMemoryShiftApi",
    "get_shift_api",
    "get_token_provider",
    "reset_shift_api",
]
