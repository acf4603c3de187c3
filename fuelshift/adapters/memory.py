"""
In-memory Shift API — Stub backend for development and testing.

Behaves like the fuel backend for the four shift endpoints:
- At most one shift is open; starting another fails with the backend's
  conflict message "Já existe um turno em aberto (ID: <id>)"
- Unknown ids are 404, adding to a closed shift is 400 "Nenhum turno em aberto"
- Every call is recorded in ``calls`` as (operation, argument)

Usage in settings.py:
    FUELSHIFT = {
        "SHIFT_API": "fuelshift.adapters.memory.InMemoryShiftApi",
    }

WARNING: Do NOT use in production. Shifts live in process memory only.
"""

from __future__ import annotations

import threading
from dataclasses import replace
from datetime import date
from decimal import Decimal

from fuelshift.exceptions import ShiftApiError
from fuelshift.protocols.shift_api import (
    AddEntriesAck,
    CloseShiftRequest,
    ProcessedEntry,
    RefuelEntry,
    RejectedEntry,
    Shift,
    ShiftStatus,
    StartShiftRequest,
)


class InMemoryShiftApi:
    """
    Process-local ShiftApi.

    Args:
        first_id: Id given to the first shift created
        rejected_equipment: Equipment ids whose entries fail validation
    """

    def __init__(self, first_id: int = 1, rejected_equipment=()):
        self._lock = threading.Lock()
        self._next_id = first_id
        self._next_entry_id = 1
        self.shifts: dict[int, Shift] = {}
        self.rejected_equipment = set(rejected_equipment)
        self.calls: list[tuple[str, object]] = []
        self._failures: dict[str, list[ShiftApiError]] = {}

    # ── Test helpers ──────────────────────────────────────────

    @property
    def open_shift(self) -> Shift | None:
        for shift in self.shifts.values():
            if shift.is_open:
                return shift
        return None

    def seed(self, shift: Shift) -> Shift:
        """Store ``shift`` as if it had been created elsewhere."""
        with self._lock:
            self.shifts[shift.id] = shift
            self._next_id = max(self._next_id, shift.id + 1)
        return shift

    def close_externally(self, shift_id: int, closing_stock: Decimal = Decimal("0")) -> None:
        """Close a shift behind the console's back (another operator)."""
        with self._lock:
            self.shifts[shift_id] = replace(
                self.shifts[shift_id],
                closing_stock=closing_stock,
                status=ShiftStatus.CLOSED,
            )

    def forget(self, shift_id: int) -> None:
        """Drop a shift entirely (backend lost / deleted it)."""
        with self._lock:
            self.shifts.pop(shift_id, None)

    def fail_next(self, operation: str, error: ShiftApiError) -> None:
        """Make the next call to ``operation`` raise ``error``."""
        self._failures.setdefault(operation, []).append(error)

    def count(self, operation: str, argument=None) -> int:
        return sum(
            1 for op, arg in self.calls
            if op == operation and (argument is None or arg == argument)
        )

    def _record(self, operation: str, argument) -> None:
        self.calls.append((operation, argument))
        pending = self._failures.get(operation)
        if pending:
            raise pending.pop(0)

    # ── ShiftApi ──────────────────────────────────────────────

    def start_shift(self, request: StartShiftRequest) -> Shift:
        self._record("start_shift", request)
        with self._lock:
            if request.starting_stock <= 0:
                raise ShiftApiError(
                    'VALIDATION',
                    "Existência inicial deve ser maior que zero",
                    status=400,
                )
            current = self.open_shift
            if current is not None:
                raise ShiftApiError(
                    'CONFLICT',
                    f"Já existe um turno em aberto (ID: {current.id}). "
                    "Feche o turno atual antes de iniciar um novo.",
                    status=400,
                )
            shift = Shift(
                id=self._next_id,
                opened_at=date.today(),
                starting_stock=request.starting_stock,
                fuel_intake=request.fuel_intake,
                station=request.station,
                operator_name=request.operator_name,
                responsible_name=request.responsible_name,
            )
            self.shifts[shift.id] = shift
            self._next_id += 1
            return shift

    def add_entries(self, shift_id: int, entries: list[RefuelEntry]) -> AddEntriesAck:
        self._record("add_entries", shift_id)
        with self._lock:
            shift = self.shifts.get(shift_id)
            if shift is None:
                raise ShiftApiError('NOT_FOUND', "Turno não encontrado", status=404)
            if not shift.is_open:
                raise ShiftApiError(
                    'NOT_FOUND',
                    "Nenhum turno em aberto encontrado",
                    status=400,
                )

            accepted, processed, rejected = [], [], []
            for entry in entries:
                if entry.equipment_id in self.rejected_equipment:
                    rejected.append(RejectedEntry(
                        equipment_id=entry.equipment_id,
                        error="Equipamento inativo",
                    ))
                    continue
                accepted.append(replace(entry, id=self._next_entry_id))
                self._next_entry_id += 1
                processed.append(ProcessedEntry(
                    equipment_id=entry.equipment_id,
                    equipment_name=entry.equipment_name,
                    asset_code=entry.asset_code,
                    quantity=entry.quantity,
                ))

            self.shifts[shift_id] = shift.with_entries(accepted)
            return AddEntriesAck(
                shift_id=shift_id,
                added_count=len(accepted),
                message="Equipamentos adicionados com sucesso",
                processed=tuple(processed),
                rejected=tuple(rejected),
            )

    def get_shift(self, shift_id: int) -> Shift:
        self._record("get_shift", shift_id)
        shift = self.shifts.get(shift_id)
        if shift is None:
            raise ShiftApiError('NOT_FOUND', "Turno não encontrado", status=404)
        return shift

    def close_shift(self, request: CloseShiftRequest) -> Shift:
        self._record("close_shift", request)
        with self._lock:
            shift = self.open_shift
            if shift is None:
                raise ShiftApiError(
                    'VALIDATION',
                    "Nenhum turno em aberto para fechar",
                    status=400,
                )
            closed = replace(
                shift,
                closing_stock=request.closing_stock,
                status=ShiftStatus.CLOSED,
            )
            self.shifts[shift.id] = closed
            return closed
