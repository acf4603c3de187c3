"""
Tests for the HTTP ShiftApi adapter.

Uses a fake requests session: no network.
"""

from datetime import date
from decimal import Decimal

import pytest
import requests

from fuelshift.adapters.http import HttpShiftApi, classify_failure, shift_from_payload
from fuelshift.exceptions import ShiftApiError
from fuelshift.protocols.shift_api import (
    CloseShiftRequest,
    RefuelEntry,
    ShiftStatus,
    StartShiftRequest,
)


class FakeResponse:
    def __init__(self, status_code=200, data=None, reason="OK", content_type="application/json"):
        self.status_code = status_code
        self._data = data
        self.reason = reason
        self.headers = {"content-type": content_type} if content_type else {}
        self.text = "" if data is None else str(data)

    @property
    def ok(self):
        return self.status_code < 400

    def json(self):
        if self._data is None:
            raise ValueError("No JSON")
        return self._data


class HtmlBodyResponse(FakeResponse):
    """A 200 labelled JSON that carries a proxy page instead."""

    def __init__(self):
        super().__init__(200, None)
        self.text = "<html><body>Gateway</body></html>"

    def json(self):
        raise requests.exceptions.JSONDecodeError("Expecting value", self.text, 0)


class FakeSession:
    """Records requests and replays queued responses (or exceptions)."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def request(self, method, url, json=None, headers=None, timeout=None):
        self.requests.append({
            "method": method,
            "url": url,
            "json": json,
            "headers": headers,
            "timeout": timeout,
        })
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


TURNO = {
    "id_abastecimento": 42,
    "data_abastecimento": "2026-10-19T06:30:00.000Z",
    "existencia_inicio": 100,
    "entrada_combustivel": 50,
    "posto_abastecimento": "Posto Central",
    "operador": "João",
    "responsavel_abastecimento": "Maria",
    "existencia_fim": None,
    "status": "aberto",
    "equipamentos_abastecimentos": [
        {"id": 1, "equipamento": "Escavadora", "activo": "EQ-01", "quantidade": 30, "kmh": 1520.5, "assinatura": "MT"},
        {"id": 2, "equipamento": "Camião", "activo": "EQ-02", "quantidade": "20.5"},
    ],
}


def _api(*responses, token=None):
    session = FakeSession(*responses)
    api = HttpShiftApi(
        base_url="http://combustivel.test/",
        token_provider=(lambda: token),
        session=session,
    )
    return api, session


class TestShiftFromPayload:
    """Tests for backend payload mapping."""

    def test_open_shift(self):
        shift = shift_from_payload(TURNO)

        assert shift.id == 42
        assert shift.opened_at == date(2026, 10, 19)
        assert shift.starting_stock == Decimal('100')
        assert shift.fuel_intake == Decimal('50')
        assert shift.is_open
        assert shift.status == ShiftStatus.OPEN
        assert [e.quantity for e in shift.entries] == [Decimal('30'), Decimal('20.5')]
        assert shift.entries[0].meter_reading == Decimal('1520.5')
        assert shift.entries[0].asset_code == 'EQ-01'
        assert shift.entries[1].sign_off is None

    def test_closed_shift_without_status(self):
        """Status is inferred from existencia_fim when missing."""
        payload = {**TURNO, "existencia_fim": 90, "status": None}
        shift = shift_from_payload(payload)

        assert not shift.is_open
        assert shift.closing_stock == Decimal('90')
        assert shift.status == ShiftStatus.CLOSED

    def test_plain_date(self):
        assert shift_from_payload({**TURNO, "data_abastecimento": "2026-10-19"}).opened_at == date(2026, 10, 19)


class TestClassifyFailure:
    """Tests for status + message classification."""

    def test_conflict_on_start(self):
        assert classify_failure(400, "Já existe um turno em aberto (ID: 42)", "start") == 'CONFLICT'

    def test_same_message_elsewhere_is_validation(self):
        assert classify_failure(400, "Já existe um turno em aberto (ID: 42)", "close") == 'VALIDATION'

    def test_400_without_phrase(self):
        assert classify_failure(400, "Existência inicial inválida", "start") == 'VALIDATION'

    def test_no_open_shift_on_add_is_not_found(self):
        assert classify_failure(400, "Nenhum turno em aberto encontrado", "add_entries") == 'NOT_FOUND'

    def test_no_open_shift_is_not_a_conflict(self):
        assert classify_failure(400, "Nenhum turno em aberto", "start") == 'VALIDATION'

    def test_404(self):
        assert classify_failure(404, "Turno não encontrado", "get") == 'NOT_FOUND'

    def test_401_is_not_special(self):
        assert classify_failure(401, "Token inválido", "get") == 'HTTP_ERROR'

    def test_500(self):
        assert classify_failure(500, "Erro 500: Internal Server Error", "start") == 'HTTP_ERROR'


class TestHttpShiftApi:
    """Tests for requests sent and errors raised."""

    def test_start_shift(self):
        api, session = _api(FakeResponse(200, {"success": True, "message": "ok", "turno": TURNO}), token="abc")

        shift = api.start_shift(StartShiftRequest(
            starting_stock=Decimal('100'),
            fuel_intake=Decimal('50'),
            responsible_name=' Maria ',
            station='Posto Central',
        ))

        sent = session.requests[0]
        assert sent["method"] == "POST"
        assert sent["url"] == "http://combustivel.test/api/abastecimentos/iniciar-turno"
        assert sent["json"] == {
            "existencia_inicio": 100,
            "entrada_combustivel": 50,
            "responsavel_abastecimento": "Maria",
            "posto_abastecimento": "Posto Central",
        }
        assert sent["headers"]["Authorization"] == "Bearer abc"
        assert sent["timeout"] is None
        assert shift.id == 42

    def test_no_token_no_header(self):
        api, session = _api(FakeResponse(200, {"success": True, "abastecimento": TURNO}))

        api.get_shift(42)

        assert "Authorization" not in session.requests[0]["headers"]

    def test_start_conflict(self):
        api, _ = _api(FakeResponse(
            400,
            {"success": False, "message": "Já existe um turno em aberto (ID: 42)"},
            reason="Bad Request",
        ))

        with pytest.raises(ShiftApiError) as exc:
            api.start_shift(StartShiftRequest(Decimal('100'), 'Maria'))

        assert exc.value.code == 'CONFLICT'
        assert exc.value.status == 400
        assert exc.value.message == "Já existe um turno em aberto (ID: 42)"

    def test_get_shift(self):
        api, session = _api(FakeResponse(200, {"success": True, "abastecimento": TURNO}))

        shift = api.get_shift(42)

        assert session.requests[0]["method"] == "GET"
        assert session.requests[0]["url"] == "http://combustivel.test/api/abastecimentos/42"
        assert len(shift.entries) == 2

    def test_get_shift_not_found(self):
        api, _ = _api(FakeResponse(404, {"message": "Turno não encontrado"}, reason="Not Found"))

        with pytest.raises(ShiftApiError) as exc:
            api.get_shift(7)

        assert exc.value.code == 'NOT_FOUND'

    def test_error_without_json_body(self):
        api, _ = _api(FakeResponse(502, None, reason="Bad Gateway", content_type="text/html"))

        with pytest.raises(ShiftApiError) as exc:
            api.get_shift(7)

        assert exc.value.code == 'HTTP_ERROR'
        assert exc.value.message == "Erro 502: Bad Gateway"

    def test_unparseable_json_body(self):
        api, _ = _api(HtmlBodyResponse())

        with pytest.raises(ShiftApiError) as exc:
            api.get_shift(7)

        assert exc.value.code == 'HTTP_ERROR'
        assert exc.value.status == 200
        assert exc.value.message == "Resposta inválida do servidor"

    def test_add_entries(self):
        api, session = _api(FakeResponse(200, {
            "success": True,
            "message": "Equipamentos adicionados",
            "turno_id": 42,
            "equipamentos_adicionados": 1,
            "resultado_detalhado": {
                "equipamentos_processados": [
                    {"equipamento_id": 3, "nome": "Escavadora", "codigo_ativo": "EQ-03", "quantidade_abastecida": 30},
                ],
                "erros_validacao": [{"equipamento_id": 9, "erro": "Equipamento inativo"}],
            },
        }))

        ack = api.add_entries(42, [
            RefuelEntry(equipment_id=3, quantity=Decimal('30'), meter_reading=Decimal('1520'), sign_off='MT'),
            RefuelEntry(equipment_id=9, quantity=Decimal('12.5')),
        ])

        sent = session.requests[0]
        assert sent["method"] == "PUT"
        assert sent["url"] == "http://combustivel.test/api/abastecimentos/42/adicionar-equipamentos"
        assert sent["json"] == {"equipamentos": [
            {"equipamento_id": 3, "quantidade": 30, "horimetro": 1520, "responsavel": "MT"},
            {"equipamento_id": 9, "quantidade": 12.5},
        ]}
        assert ack.added_count == 1
        assert ack.processed[0].asset_code == "EQ-03"
        assert ack.rejected[0].equipment_id == 9

    def test_add_entries_no_open_shift(self):
        api, _ = _api(FakeResponse(400, {"message": "Nenhum turno em aberto encontrado"}))

        with pytest.raises(ShiftApiError) as exc:
            api.add_entries(42, [RefuelEntry(equipment_id=3, quantity=Decimal('30'))])

        assert exc.value.code == 'NOT_FOUND'

    def test_close_shift(self):
        closed = {**TURNO, "existencia_fim": 100, "status": "fechado"}
        api, session = _api(FakeResponse(200, {"success": True, "turno": closed}))

        shift = api.close_shift(CloseShiftRequest(closing_stock=Decimal('100'), responsible_name='Maria'))

        assert session.requests[0]["url"] == "http://combustivel.test/api/abastecimentos/fechar-turno"
        assert session.requests[0]["json"] == {"existencia_fim": 100, "responsavel_abastecimento": "Maria"}
        assert shift.closing_stock == Decimal('100')

    def test_success_false_in_200(self):
        api, _ = _api(FakeResponse(200, {"success": False, "message": "Existência final inválida"}))

        with pytest.raises(ShiftApiError) as exc:
            api.close_shift(CloseShiftRequest(closing_stock=Decimal('1')))

        assert exc.value.code == 'VALIDATION'

    def test_connection_error(self):
        api, _ = _api(requests.ConnectionError("refused"))

        with pytest.raises(ShiftApiError) as exc:
            api.get_shift(42)

        assert exc.value.code == 'CONNECTION_ERROR'
        assert exc.value.status == 0

    def test_timeout_from_settings(self, settings):
        settings.FUELSHIFT = {"API_TIMEOUT": 15}
        session = FakeSession(FakeResponse(200, {"abastecimento": TURNO}))
        api = HttpShiftApi(base_url="http://combustivel.test", token_provider=None, session=session)

        api.get_shift(42)

        assert session.requests[0]["timeout"] == 15
