"""
HTTP Shift API — ShiftApi over the fuel backend's JSON endpoints.

Usage:
    from fuelshift.adapters import get_shift_api

    api = get_shift_api()
    shift = api.get_shift(42)

Settings:
    FUELSHIFT = {
        "API_BASE_URL": "https://combustivel.example.com",
        "TOKEN_PROVIDER": "console.auth.get_access_token",
        "API_TIMEOUT": 15,
    }

Every non-2xx answer becomes a ShiftApiError. 401 is not special-cased
here: session invalidation belongs to the console's auth layer.
"""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Callable

import requests
from django.utils.dateparse import parse_date, parse_datetime

from fuelshift.adapters.backend import get_token_provider
from fuelshift.conf import fuelshift_settings
from fuelshift.conflict import is_conflict_message
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

logger = logging.getLogger(__name__)


START_PATH = "/api/abastecimentos/iniciar-turno"
ADD_ENTRIES_PATH = "/api/abastecimentos/{shift_id}/adicionar-equipamentos"
CLOSE_PATH = "/api/abastecimentos/fechar-turno"
SHIFT_PATH = "/api/abastecimentos/{shift_id}"


# ══════════════════════════════════════════════════════════════
# PAYLOAD MAPPING
# ══════════════════════════════════════════════════════════════


def _decimal(value, default: Decimal | None = None) -> Decimal | None:
    if value is None or value == "":
        return default
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return default


def _int(value) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _date(value) -> date | None:
    if not value:
        return None
    value = str(value)
    parsed = parse_datetime(value)
    if parsed is not None:
        return parsed.date()
    return parse_date(value[:10])


def _number(value: Decimal):
    # JSON has no decimal type; the backend accepts plain numbers
    return int(value) if value == value.to_integral_value() else float(value)


def entry_from_payload(data: dict[str, Any]) -> RefuelEntry:
    """Map an ``equipamentos_abastecimentos`` item to RefuelEntry."""
    return RefuelEntry(
        id=_int(data.get("id")),
        equipment_id=_int(data.get("equipamento_id")),
        equipment_name=data.get("equipamento") or "",
        asset_code=data.get("activo") or "",
        quantity=_decimal(data.get("quantidade"), Decimal("0")),
        meter_reading=_decimal(data.get("kmh")),
        sign_off=data.get("assinatura") or None,
    )


def shift_from_payload(data: dict[str, Any]) -> Shift:
    """Map a backend ``turno`` / ``abastecimento`` object to Shift."""
    closing_stock = _decimal(data.get("existencia_fim"))
    status = data.get("status")
    if status not in (ShiftStatus.OPEN.value, ShiftStatus.CLOSED.value):
        status = ShiftStatus.OPEN.value if closing_stock is None else ShiftStatus.CLOSED.value
    return Shift(
        id=_int(data.get("id_abastecimento")),
        opened_at=_date(data.get("data_abastecimento")),
        starting_stock=_decimal(data.get("existencia_inicio"), Decimal("0")),
        fuel_intake=_decimal(data.get("entrada_combustivel"), Decimal("0")),
        station=data.get("posto_abastecimento") or "",
        operator_name=data.get("operador") or "",
        responsible_name=data.get("responsavel_abastecimento") or "",
        closing_stock=closing_stock,
        entries=tuple(
            entry_from_payload(item)
            for item in data.get("equipamentos_abastecimentos") or ()
        ),
        status=ShiftStatus(status),
    )


def start_request_to_payload(request: StartShiftRequest) -> dict[str, Any]:
    payload = {
        "existencia_inicio": _number(request.starting_stock),
        "responsavel_abastecimento": request.responsible_name.strip(),
        "entrada_combustivel": _number(request.fuel_intake),
    }
    if request.station:
        payload["posto_abastecimento"] = request.station
    if request.operator_name:
        payload["operador"] = request.operator_name
    return payload


def entry_to_payload(entry: RefuelEntry) -> dict[str, Any]:
    payload = {
        "equipamento_id": entry.equipment_id,
        "quantidade": _number(entry.quantity),
    }
    if entry.meter_reading is not None:
        payload["horimetro"] = _number(entry.meter_reading)
    if entry.sign_off:
        payload["responsavel"] = entry.sign_off
    return payload


def close_request_to_payload(request: CloseShiftRequest) -> dict[str, Any]:
    payload = {"existencia_fim": _number(request.closing_stock)}
    if request.responsible_name:
        payload["responsavel_abastecimento"] = request.responsible_name
    return payload


def ack_from_payload(data: dict[str, Any], shift_id: int) -> AddEntriesAck:
    detail = data.get("resultado_detalhado") or {}
    return AddEntriesAck(
        shift_id=_int(data.get("turno_id")) or shift_id,
        added_count=_int(data.get("equipamentos_adicionados")) or 0,
        message=data.get("message") or "",
        processed=tuple(
            ProcessedEntry(
                equipment_id=_int(item.get("equipamento_id")),
                equipment_name=item.get("nome") or "",
                asset_code=item.get("codigo_ativo") or "",
                quantity=_decimal(item.get("quantidade_abastecida")),
            )
            for item in detail.get("equipamentos_processados") or ()
        ),
        rejected=tuple(
            RejectedEntry(
                equipment_id=_int(item.get("equipamento_id")),
                error=item.get("erro") or "",
            )
            for item in detail.get("erros_validacao") or ()
        ),
    )


def _unwrap(data: Any, *keys: str) -> dict[str, Any]:
    if isinstance(data, dict):
        for key in keys:
            if isinstance(data.get(key), dict):
                return data[key]
        return data
    raise ShiftApiError('HTTP_ERROR', "Resposta inesperada do servidor", payload=data)


# ══════════════════════════════════════════════════════════════
# ERROR CLASSIFICATION
# ══════════════════════════════════════════════════════════════


def classify_failure(status: int, message: str, operation: str) -> str:
    """
    Map an HTTP failure to a ShiftApiError code.

    Args:
        status: HTTP status (0 = no response)
        message: Backend message (the only conflict signal available)
        operation: "start", "add_entries", "get" or "close"
    """
    if status == 0:
        return 'CONNECTION_ERROR'
    if status == 404:
        return 'NOT_FOUND'
    if status == 400:
        no_open_shift = is_conflict_message(message, fuelshift_settings.NO_OPEN_SHIFT_PHRASES)
        if operation == "start" and not no_open_shift and is_conflict_message(
            message, fuelshift_settings.CONFLICT_PHRASES
        ):
            return 'CONFLICT'
        if operation == "add_entries" and no_open_shift:
            return 'NOT_FOUND'
    if status in (400, 422):
        return 'VALIDATION'
    return 'HTTP_ERROR'


# ══════════════════════════════════════════════════════════════
# CLIENT
# ══════════════════════════════════════════════════════════════


class HttpShiftApi:
    """
    ShiftApi implementation using ``requests``.

    Args:
        base_url: Backend root URL (default: FUELSHIFT['API_BASE_URL'])
        token_provider: Callable returning a bearer token or None
            (default: FUELSHIFT['TOKEN_PROVIDER'])
        session: requests.Session (or compatible) to send through
        timeout: Seconds, None to inherit the transport's behaviour
    """

    def __init__(
        self,
        base_url: str | None = None,
        token_provider: Callable[[], str | None] | None = None,
        session=None,
        timeout: float | None = None,
    ):
        self.base_url = (base_url or fuelshift_settings.API_BASE_URL).rstrip("/")
        self.token_provider = token_provider if token_provider is not None else get_token_provider()
        self.session = session or requests.Session()
        self.timeout = timeout if timeout is not None else fuelshift_settings.API_TIMEOUT

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        token = self.token_provider() if self.token_provider else None
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    def _request(self, method: str, path: str, operation: str, payload=None):
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(
                method,
                url,
                json=payload,
                headers=self._headers(),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.warning(
                "fuelshift.api.connection_error",
                extra={"method": method, "url": url, "error": str(e)},
            )
            raise ShiftApiError('CONNECTION_ERROR', status=0, operation=operation) from e

        if not response.ok:
            raise self._failure(response, operation)

        content_type = response.headers.get("content-type", "")
        if "application/json" not in content_type:
            return response.text
        try:
            data = response.json()
        except ValueError as e:
            logger.warning(
                "fuelshift.api.invalid_body",
                extra={"operation": operation, "status": response.status_code},
            )
            raise ShiftApiError(
                'HTTP_ERROR',
                "Resposta inválida do servidor",
                status=response.status_code,
                operation=operation,
            ) from e
        if isinstance(data, dict) and data.get("success") is False:
            raise ShiftApiError(
                classify_failure(400, data.get("message") or "", operation),
                data.get("message"),
                status=response.status_code,
                payload=data,
                operation=operation,
            )
        return data

    def _failure(self, response, operation: str) -> ShiftApiError:
        message = f"Erro {response.status_code}: {response.reason}"
        payload = None
        try:
            payload = response.json()
        except ValueError:
            pass
        if isinstance(payload, dict) and payload.get("message"):
            message = payload["message"]

        code = classify_failure(response.status_code, message, operation)
        logger.info(
            "fuelshift.api.failure",
            extra={
                "operation": operation,
                "status": response.status_code,
                "code": code,
                "backend_message": message,
            },
        )
        return ShiftApiError(
            code,
            message,
            status=response.status_code,
            payload=payload,
            operation=operation,
        )

    # ── ShiftApi ──────────────────────────────────────────────

    def start_shift(self, request: StartShiftRequest) -> Shift:
        data = self._request("POST", START_PATH, "start", start_request_to_payload(request))
        return shift_from_payload(_unwrap(data, "turno"))

    def add_entries(self, shift_id: int, entries: list[RefuelEntry]) -> AddEntriesAck:
        data = self._request(
            "PUT",
            ADD_ENTRIES_PATH.format(shift_id=shift_id),
            "add_entries",
            {"equipamentos": [entry_to_payload(entry) for entry in entries]},
        )
        return ack_from_payload(data if isinstance(data, dict) else {}, shift_id)

    def get_shift(self, shift_id: int) -> Shift:
        data = self._request("GET", SHIFT_PATH.format(shift_id=shift_id), "get")
        return shift_from_payload(_unwrap(data, "abastecimento", "turno"))

    def close_shift(self, request: CloseShiftRequest) -> Shift:
        data = self._request("PUT", CLOSE_PATH, "close", close_request_to_payload(request))
        return shift_from_payload(_unwrap(data, "turno"))
