"""
Shift Coordinator — The single public interface for the fuel shift lifecycle.

Usage:
    from fuelshift import ShiftCoordinator, ShiftError

    coordinator = ShiftCoordinator()
    coordinator.activate()                      # NoOpenShift or OpenShift
    coordinator.start(StartShiftRequest(Decimal('100'), 'Maria', Decimal('50')))
    coordinator.add_entries([RefuelEntry(equipment_id=7, quantity=Decimal('30'))])
    state = coordinator.close(Decimal('100'))   # Closed, with reconciliation
    state.reconciliation.variance               # Decimal('0') if nothing was lost

The backend enforces "at most one open shift"; the coordinator only
discovers it. Recoverable situations (conflict on start, stale pointer)
are resolved here: callers observe a new definite state, a Notice, or a
ShiftError that is already classified.
"""

import logging
import threading
import time
from contextlib import contextmanager
from dataclasses import replace
from decimal import Decimal, InvalidOperation
from typing import Callable, Iterable

from fuelshift.conf import fuelshift_settings
from fuelshift.conflict import ConflictParser, get_conflict_parser
from fuelshift.exceptions import ShiftApiError, ShiftError
from fuelshift.pointer import ShiftPointerCache
from fuelshift.protocols.shift_api import (
    AddEntriesAck,
    CloseShiftRequest,
    RefuelEntry,
    Shift,
    ShiftApi,
    ShiftStatus,
    StartShiftRequest,
)
from fuelshift.reconciliation import exceeds_tolerance, expected_closing, reconcile
from fuelshift.states import (
    Closed,
    NoOpenShift,
    Notice,
    NoticeLevel,
    OpenShift,
    ShiftState,
    Unknown,
    Verifying,
)

logger = logging.getLogger('fuelshift')


def _to_decimal(value, code: str, **data) -> Decimal:
    """Coerce a user-supplied quantity, raising ShiftError(code) if unusable."""
    if value is None or value == "":
        raise ShiftError(code, **data)
    try:
        value = value if isinstance(value, Decimal) else Decimal(str(value))
    except InvalidOperation:
        raise ShiftError(code, value=value, **data) from None
    if not value.is_finite():
        raise ShiftError(code, value=str(value), **data)
    return value


class ShiftCoordinator:
    """
    State machine for one console's view of the open fuel shift.

    States: Unknown → Verifying → {NoOpenShift, OpenShift} → Closed → ...
    (see fuelshift.states).

    Only one lifecycle operation runs at a time. A second operation while
    one is in flight is rejected (OPERATION_IN_PROGRESS), never queued;
    a second verification simply returns the current state.

    Args:
        api: ShiftApi backend (default: FUELSHIFT['SHIFT_API'])
        pointer: ShiftPointerCache (default: FUELSHIFT['POINTER_CACHE_ALIAS'])
        parser: ConflictParser (default: FUELSHIFT['CONFLICT_PARSER'])
        clock: Monotonic clock in seconds, for the verification debounce
        debounce_ms: Verification debounce window (default: FUELSHIFT['VERIFY_DEBOUNCE_MS'])
    """

    def __init__(
        self,
        api: ShiftApi | None = None,
        pointer: ShiftPointerCache | None = None,
        parser: ConflictParser | None = None,
        clock: Callable[[], float] | None = None,
        debounce_ms: int | None = None,
    ):
        self._api = api
        self._parser = parser
        self.pointer = pointer or ShiftPointerCache()
        self._clock = clock or time.monotonic
        self.debounce_ms = (
            debounce_ms if debounce_ms is not None
            else fuelshift_settings.VERIFY_DEBOUNCE_MS
        )

        self._state: ShiftState = Unknown()
        self._guard = threading.Lock()
        self._last_verified_at: float | None = None
        self._state_listeners: list[Callable[[ShiftState], None]] = []
        self._notice_listeners: list[Callable[[Notice], None]] = []
        self.notice: Notice | None = None

    # ══════════════════════════════════════════════════════════════
    # COLLABORATORS / OBSERVATION
    # ══════════════════════════════════════════════════════════════

    @property
    def api(self) -> ShiftApi:
        if self._api is None:
            from fuelshift.adapters.backend import get_shift_api
            self._api = get_shift_api()
        return self._api

    @property
    def parser(self) -> ConflictParser:
        if self._parser is None:
            self._parser = get_conflict_parser()
        return self._parser

    @property
    def state(self) -> ShiftState:
        return self._state

    @property
    def current_shift(self) -> Shift | None:
        """Shift of the OpenShift/Closed state, None otherwise."""
        return getattr(self._state, 'shift', None)

    @property
    def busy(self) -> bool:
        return self._guard.locked()

    def projected_closing_stock(self) -> Decimal | None:
        """Expected remaining stock of the open shift so far (may be negative)."""
        if not isinstance(self._state, OpenShift):
            return None
        shift = self._state.shift
        return expected_closing(shift.starting_stock, shift.fuel_intake, shift.entries)

    def subscribe(self, listener: Callable[[ShiftState], None]) -> Callable[[], None]:
        """
        Call ``listener`` with every new state.

        Returns:
            Callable that removes the listener
        """
        self._state_listeners.append(listener)
        return lambda: self._unsubscribe(self._state_listeners, listener)

    def on_notice(self, listener: Callable[[Notice], None]) -> Callable[[], None]:
        """Call ``listener`` with every Notice. Returns the unsubscribe callable."""
        self._notice_listeners.append(listener)
        return lambda: self._unsubscribe(self._notice_listeners, listener)

    @staticmethod
    def _unsubscribe(listeners: list, listener) -> None:
        if listener in listeners:
            listeners.remove(listener)

    def _transition(self, state: ShiftState) -> ShiftState:
        previous = self._state
        self._state = state
        logger.debug(
            "fuelshift.state.changed",
            extra={"from": previous.kind.value, "to": state.kind.value},
        )
        for listener in list(self._state_listeners):
            listener(state)
        return state

    def _notify(self, level: NoticeLevel, code: str, message: str) -> Notice:
        notice = Notice(level=level, code=code, message=message)
        self.notice = notice
        for listener in list(self._notice_listeners):
            listener(notice)
        return notice

    @contextmanager
    def _in_flight(self, operation: str):
        if not self._guard.acquire(blocking=False):
            logger.info("fuelshift.operation.rejected", extra={"operation": operation})
            raise ShiftError('OPERATION_IN_PROGRESS', operation=operation)
        try:
            yield
        finally:
            self._guard.release()

    def _require(self, state_class, operation: str):
        if not isinstance(self._state, state_class):
            raise ShiftError(
                'INVALID_STATE',
                operation=operation,
                state=self._state.kind.value,
            )
        return self._state

    @staticmethod
    def _classify(error: ShiftApiError, operation: str) -> ShiftError:
        """Turn a backend failure that was not recovered into a ShiftError."""
        if error.code in ('CONNECTION_ERROR', 'VALIDATION'):
            code = error.code
        else:
            code = 'OPERATION_FAILED'
        logger.info(
            "fuelshift.operation.failed",
            extra={"operation": operation, "code": code, "status": error.status},
        )
        return ShiftError(
            code,
            error.message,
            operation=operation,
            status=error.status,
            api_code=error.code,
        )

    # ══════════════════════════════════════════════════════════════
    # VERIFY
    # ══════════════════════════════════════════════════════════════

    def activate(self) -> ShiftState:
        """First activation: verify once if nothing is known yet."""
        if isinstance(self._state, Unknown):
            return self.verify()
        return self._state

    def verify(self, force: bool = False) -> ShiftState:
        """
        Settle into NoOpenShift or OpenShift from the cached pointer.

        Collapses to a no-op (returning the current state) while another
        operation is in flight, or within VERIFY_DEBOUNCE_MS of the last
        completed verification unless ``force`` is set.

        Raises:
            ShiftError('CONNECTION_ERROR' | 'OPERATION_FAILED'): the pointed
                shift could not be checked; the pointer and previous state
                are kept
        """
        if not self._guard.acquire(blocking=False):
            logger.debug("fuelshift.verify.skipped", extra={"reason": "in_flight"})
            return self._state
        try:
            if not force and self._recently_verified():
                logger.debug("fuelshift.verify.skipped", extra={"reason": "debounce"})
                return self._state
            return self._verify()
        finally:
            self._guard.release()

    def reload(self) -> ShiftState:
        """Explicit re-check, ignoring the debounce window."""
        return self.verify(force=True)

    def _recently_verified(self) -> bool:
        if self._last_verified_at is None:
            return False
        elapsed_ms = (self._clock() - self._last_verified_at) * 1000
        return elapsed_ms < self.debounce_ms

    def _verify(self) -> ShiftState:
        previous = self._state
        self._transition(Verifying())

        shift_id = self.pointer.get()
        if shift_id is None:
            logger.info("fuelshift.verify.no_pointer")
            return self._settle(NoOpenShift())

        try:
            shift = self.api.get_shift(shift_id)
        except ShiftApiError as e:
            if e.code == 'NOT_FOUND':
                self.pointer.clear()
                logger.warning("fuelshift.pointer.stale", extra={"shift_id": shift_id})
                return self._settle(NoOpenShift())
            self._transition(previous)
            raise self._classify(e, "verify") from e

        if not shift.is_open:
            self.pointer.clear()
            logger.info("fuelshift.pointer.closed", extra={"shift_id": shift_id})
            return self._settle(NoOpenShift())

        logger.info(
            "fuelshift.verify.open",
            extra={"shift_id": shift.id, "entries": len(shift.entries)},
        )
        return self._settle(OpenShift(shift))

    def _settle(self, state: ShiftState) -> ShiftState:
        self._last_verified_at = self._clock()
        return self._transition(state)

    # ══════════════════════════════════════════════════════════════
    # START
    # ══════════════════════════════════════════════════════════════

    def start(self, request: StartShiftRequest) -> ShiftState:
        """
        Open a new shift.

        Transition: NoOpenShift -> OpenShift

        When the backend answers that a shift is already open, the id in its
        message is cached and that shift is loaded instead (Notice
        CONFLICT_RECOVERED).

        Raises:
            ShiftError('INVALID_STARTING_STOCK' | 'INVALID_FUEL_INTAKE' |
                'RESPONSIBLE_REQUIRED'): before any request
            ShiftError('UNRECOVERABLE_CONFLICT'): a shift is open but could
                not be identified or loaded
            ShiftError('CONNECTION_ERROR' | 'VALIDATION' | 'OPERATION_FAILED')
        """
        request = self._validate_start(request)

        with self._in_flight("start"):
            self._require(NoOpenShift, "start")
            try:
                shift = self.api.start_shift(request)
            except ShiftApiError as e:
                if e.code == 'CONFLICT':
                    return self._recover_conflict(e)
                raise self._classify(e, "start") from e

            if shift.id is None:
                raise ShiftError(
                    'OPERATION_FAILED',
                    "Resposta do servidor sem ID do turno",
                    operation="start",
                )

            self.pointer.set(shift.id)
            self._last_verified_at = self._clock()
            logger.info(
                "fuelshift.shift.started",
                extra={
                    "shift_id": shift.id,
                    "starting_stock": str(shift.starting_stock),
                    "fuel_intake": str(shift.fuel_intake),
                    "responsible": shift.responsible_name,
                },
            )
            return self._transition(OpenShift(shift))

    def _validate_start(self, request: StartShiftRequest) -> StartShiftRequest:
        starting_stock = _to_decimal(request.starting_stock, 'INVALID_STARTING_STOCK')
        if starting_stock <= 0:
            raise ShiftError('INVALID_STARTING_STOCK', starting_stock=starting_stock)

        fuel_intake = _to_decimal(request.fuel_intake or 0, 'INVALID_FUEL_INTAKE')
        if fuel_intake < 0:
            raise ShiftError('INVALID_FUEL_INTAKE', fuel_intake=fuel_intake)

        if not (request.responsible_name or "").strip():
            raise ShiftError('RESPONSIBLE_REQUIRED')

        return replace(
            request,
            starting_stock=starting_stock,
            fuel_intake=fuel_intake,
            responsible_name=request.responsible_name.strip(),
        )

    def _recover_conflict(self, error: ShiftApiError) -> ShiftState:
        shift_id = self.parser.parse(error.message)
        if shift_id is None:
            logger.warning(
                "fuelshift.conflict.unparseable",
                extra={"backend_message": error.message},
            )
            raise ShiftError(
                'UNRECOVERABLE_CONFLICT',
                error.message,
                operation="start",
            )

        self.pointer.set(shift_id)
        try:
            shift = self.api.get_shift(shift_id)
        except ShiftApiError as e:
            self.pointer.clear()
            logger.warning(
                "fuelshift.conflict.fetch_failed",
                extra={"shift_id": shift_id, "code": e.code},
            )
            raise ShiftError(
                'UNRECOVERABLE_CONFLICT',
                f"{error.message}. Não foi possível carregar o turno: {e.message}",
                operation="start",
                shift_id=shift_id,
            ) from e

        if not shift.is_open:
            # Closed between the refusal and the lookup
            self.pointer.clear()
            raise ShiftError(
                'UNRECOVERABLE_CONFLICT',
                f"O turno {shift_id} já foi fechado. Tente iniciar novamente.",
                operation="start",
                shift_id=shift_id,
            )

        logger.warning(
            "fuelshift.conflict.recovered",
            extra={"shift_id": shift.id, "entries": len(shift.entries)},
        )
        self._last_verified_at = self._clock()
        self._notify(
            NoticeLevel.INFO,
            'CONFLICT_RECOVERED',
            f"Já existia um turno em aberto (ID: {shift.id}). Turno carregado.",
        )
        return self._transition(OpenShift(shift))

    # ══════════════════════════════════════════════════════════════
    # ADD ENTRIES
    # ══════════════════════════════════════════════════════════════

    def add_entries(self, entries: Iterable[RefuelEntry]) -> ShiftState:
        """
        Record refuelling entries on the open shift.

        Transition: OpenShift -> OpenShift

        Entries are appended only after the backend acknowledges them;
        entries the backend rejects are left out (Notice ENTRIES_REJECTED).
        If the shift vanished or was closed elsewhere, the pointer is
        cleared, the state reloaded and Notice STALE_SHIFT emitted.

        Raises:
            ShiftError('NO_ENTRIES' | 'EQUIPMENT_REQUIRED' | 'INVALID_QUANTITY' |
                'DUPLICATE_EQUIPMENT'): before any request
            ShiftError('CONNECTION_ERROR' | 'VALIDATION' | 'OPERATION_FAILED')
        """
        entries = self._validate_entries(entries)

        with self._in_flight("add_entries"):
            shift = self._require(OpenShift, "add_entries").shift
            try:
                ack = self.api.add_entries(shift.id, entries)
            except ShiftApiError as e:
                if e.code == 'NOT_FOUND':
                    return self._reload_stale(shift, e)
                raise self._classify(e, "add_entries") from e

            accepted = self._accepted_entries(entries, ack)
            logger.info(
                "fuelshift.entries.added",
                extra={
                    "shift_id": shift.id,
                    "count": len(accepted),
                    "qty": str(sum((entry.quantity for entry in accepted), Decimal('0'))),
                },
            )
            return self._transition(OpenShift(shift.with_entries(accepted)))

    def _validate_entries(self, entries: Iterable[RefuelEntry]) -> list[RefuelEntry]:
        entries = list(entries or ())
        if not entries:
            raise ShiftError('NO_ENTRIES')

        validated = []
        seen = set()
        for index, entry in enumerate(entries, start=1):
            if not entry.equipment_id or entry.equipment_id <= 0:
                raise ShiftError('EQUIPMENT_REQUIRED', index=index)
            if entry.equipment_id in seen:
                # Backend acknowledgements are keyed by equipment
                raise ShiftError('DUPLICATE_EQUIPMENT', index=index, equipment_id=entry.equipment_id)
            seen.add(entry.equipment_id)
            quantity = _to_decimal(entry.quantity, 'INVALID_QUANTITY', index=index)
            if quantity <= 0:
                raise ShiftError('INVALID_QUANTITY', index=index, requested=quantity)
            validated.append(replace(entry, quantity=quantity))
        return validated

    def _accepted_entries(self, entries: list[RefuelEntry], ack: AddEntriesAck) -> list[RefuelEntry]:
        rejected = {item.equipment_id: item.error for item in ack.rejected}
        processed = {item.equipment_id: item for item in ack.processed}

        if rejected:
            logger.warning(
                "fuelshift.entries.rejected",
                extra={"shift_id": ack.shift_id, "rejected": sorted(rejected)},
            )
            self._notify(
                NoticeLevel.WARNING,
                'ENTRIES_REJECTED',
                "; ".join(
                    f"Equipamento {equipment_id}: {error}"
                    for equipment_id, error in rejected.items()
                ),
            )

        accepted = []
        for entry in entries:
            if entry.equipment_id in rejected:
                continue
            info = processed.get(entry.equipment_id)
            if info is not None:
                entry = replace(
                    entry,
                    equipment_name=entry.equipment_name or info.equipment_name,
                    asset_code=entry.asset_code or info.asset_code,
                )
            accepted.append(entry)
        return accepted

    def _reload_stale(self, shift: Shift, error: ShiftApiError) -> ShiftState:
        self.pointer.clear()
        logger.warning(
            "fuelshift.shift.stale",
            extra={"shift_id": shift.id, "status": error.status},
        )
        state = self._verify()
        self._notify(
            NoticeLevel.INFO,
            'STALE_SHIFT',
            "O turno foi fechado ou removido em outro lugar. Dados recarregados.",
        )
        return state

    # ══════════════════════════════════════════════════════════════
    # CLOSE
    # ══════════════════════════════════════════════════════════════

    def close(self, closing_stock, responsible_name: str | None = None) -> ShiftState:
        """
        Close the open shift.

        Transition: OpenShift -> Closed

        The variance against the expected stock is informational: it is
        logged when above VARIANCE_TOLERANCE but never blocks closing.

        Raises:
            ShiftError('INVALID_CLOSING_STOCK'): before any request
            ShiftError('CONNECTION_ERROR' | 'VALIDATION' | 'OPERATION_FAILED')
        """
        closing_stock = _to_decimal(closing_stock, 'INVALID_CLOSING_STOCK')
        if closing_stock <= 0:
            raise ShiftError('INVALID_CLOSING_STOCK', closing_stock=closing_stock)

        with self._in_flight("close"):
            shift = self._require(OpenShift, "close").shift
            try:
                closed = self.api.close_shift(CloseShiftRequest(
                    closing_stock=closing_stock,
                    responsible_name=(responsible_name or "").strip() or None,
                ))
            except ShiftApiError as e:
                raise self._classify(e, "close") from e

            self.pointer.clear()

            final = replace(
                shift,
                id=closed.id or shift.id,
                entries=closed.entries or shift.entries,
                closing_stock=(
                    closed.closing_stock if closed.closing_stock is not None
                    else closing_stock
                ),
                status=ShiftStatus.CLOSED,
            )
            result = reconcile(final, closing_stock)

            extra = {
                "shift_id": final.id,
                "expected": str(result.expected_closing_stock),
                "declared": str(result.declared_closing_stock),
                "variance": str(result.variance),
            }
            if exceeds_tolerance(result, fuelshift_settings.VARIANCE_TOLERANCE):
                logger.warning("fuelshift.close.variance", extra=extra)
            logger.info("fuelshift.shift.closed", extra=extra)
            return self._transition(Closed(final, result))

    def start_new_cycle(self) -> ShiftState:
        """
        Leave the Closed summary and verify again.

        Transition: Closed -> Verifying -> NoOpenShift | OpenShift
        """
        self._require(Closed, "start_new_cycle")
        return self.verify(force=True)
