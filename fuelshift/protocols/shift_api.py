"""
Shift API Protocol — Interface toward the fuel backend.

The backend is the authority on shifts: it owns storage and enforces
that at most one shift is open. Fuelshift only consumes this interface.

Vocabulary mapping (Fuelshift → backend):
    start_shift()    →  POST /api/abastecimentos/iniciar-turno
    add_entries()    →  PUT  /api/abastecimentos/{id}/adicionar-equipamentos
    get_shift()      →  GET  /api/abastecimentos/{id}
    close_shift()    →  PUT  /api/abastecimentos/fechar-turno

Failures are raised as ShiftApiError (see fuelshift.exceptions).
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Iterable, Protocol, runtime_checkable


# ══════════════════════════════════════════════════════════════
# ENUMS
# ══════════════════════════════════════════════════════════════


class ShiftStatus(str, Enum):
    """Status do turno reportado pelo backend."""

    OPEN = "aberto"
    CLOSED = "fechado"


# ══════════════════════════════════════════════════════════════
# DATA TYPES
# ══════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class RefuelEntry:
    """
    One equipment refuelling recorded in a shift.

    Immutable once accepted by the backend: corrections are new entries.
    Entries read back from the backend may lack ``equipment_id``.
    """

    equipment_id: int | None
    quantity: Decimal
    equipment_name: str = ""
    asset_code: str = ""
    meter_reading: Decimal | None = None  # Horímetro / odómetro
    sign_off: str | None = None  # Assinatura
    id: int | None = None  # Assigned by the backend


@dataclass(frozen=True)
class Shift:
    """Turno de abastecimento."""

    id: int | None
    starting_stock: Decimal
    responsible_name: str
    fuel_intake: Decimal = Decimal("0")
    opened_at: date | None = None
    station: str = ""
    operator_name: str = ""
    closing_stock: Decimal | None = None  # Only set once closed
    entries: tuple[RefuelEntry, ...] = ()
    status: ShiftStatus = ShiftStatus.OPEN

    @property
    def is_open(self) -> bool:
        """A shift is open exactly while it has no closing stock."""
        return self.closing_stock is None

    def with_entries(self, entries: Iterable[RefuelEntry]) -> Shift:
        """Return a copy with ``entries`` appended in order."""
        return replace(self, entries=self.entries + tuple(entries))


@dataclass(frozen=True)
class StartShiftRequest:
    """Dados para iniciar um turno."""

    starting_stock: Decimal
    responsible_name: str
    fuel_intake: Decimal = Decimal("0")
    station: str = ""
    operator_name: str = ""


@dataclass(frozen=True)
class CloseShiftRequest:
    """Dados para fechar o turno aberto."""

    closing_stock: Decimal
    responsible_name: str | None = None


@dataclass(frozen=True)
class ProcessedEntry:
    """Entry accepted by the backend, as reported in the ack."""

    equipment_id: int
    equipment_name: str = ""
    asset_code: str = ""
    quantity: Decimal | None = None


@dataclass(frozen=True)
class RejectedEntry:
    """Entry refused by the backend validation."""

    equipment_id: int
    error: str


@dataclass(frozen=True)
class AddEntriesAck:
    """Backend acknowledgement for add_entries()."""

    shift_id: int
    added_count: int
    message: str = ""
    processed: tuple[ProcessedEntry, ...] = ()
    rejected: tuple[RejectedEntry, ...] = ()


# ══════════════════════════════════════════════════════════════
# PROTOCOL
# ══════════════════════════════════════════════════════════════


@runtime_checkable
class ShiftApi(Protocol):
    """
    Protocol for the fuel backend shift endpoints.

    Implementations raise ShiftApiError with codes CONFLICT, NOT_FOUND,
    VALIDATION, CONNECTION_ERROR or HTTP_ERROR.
    """

    def start_shift(self, request: StartShiftRequest) -> Shift:
        """
        Open a new shift.

        Raises:
            ShiftApiError('CONFLICT'): another shift is already open; the
                message usually embeds its id ("... (ID: 42)")
        """
        ...

    def add_entries(self, shift_id: int, entries: list[RefuelEntry]) -> AddEntriesAck:
        """
        Append refuelling entries to an open shift.

        Raises:
            ShiftApiError('NOT_FOUND'): shift missing or already closed
        """
        ...

    def get_shift(self, shift_id: int) -> Shift:
        """
        Fetch a shift with its entries.

        Raises:
            ShiftApiError('NOT_FOUND'): no such shift
        """
        ...

    def close_shift(self, request: CloseShiftRequest) -> Shift:
        """Close the currently open shift and return it."""
        ...
