"""
Fuelshift Protocols.

Defines interfaces for external system integration.
"""

from fuelshift.protocols.shift_api import (
    AddEntriesAck,
    CloseShiftRequest,
    ProcessedEntry,
    RefuelEntry,
    RejectedEntry,
    Shift,
    ShiftApi,
    ShiftStatus,
    StartShiftRequest,
)

__all__ = [
    "AddEntriesAck",
    "CloseShiftRequest",
    "ProcessedEntry",
    "RefuelEntry",
    "RejectedEntry",
    "Shift",
    "ShiftApi",
    "ShiftStatus",
    "StartShiftRequest",
]
