"""
Exceptions for Fuelshift.

All errors carry a structured code for programmatic handling:
- ShiftApiError: raw failures reported by the fuel backend (transport layer)
- ShiftError: already classified failures surfaced by the coordinator
"""

from decimal import Decimal
from typing import Any


class BaseError(Exception):
    """
    Structured exception: code + human-readable message + context data.

    Subclasses provide ``_default_messages`` keyed by code; an explicit
    message always wins over the default.
    """

    _default_messages: dict[str, str] = {}

    def __init__(self, code: str, message: str | None = None, **data: Any):
        self.code = code
        self.message = message or self._default_messages.get(code, code)
        self.data = data
        super().__init__(self.message)

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r})"

    def as_dict(self) -> dict[str, Any]:
        """Serialize to dict (useful for APIs)."""
        return {
            'code': self.code,
            'message': self.message,
            'data': {
                k: str(v) if isinstance(v, Decimal) else v
                for k, v in self.data.items()
            }
        }


class ShiftApiError(BaseError):
    """
    Failure reported by the fuel backend.

    Codes:
        CONFLICT: start refused because a shift is already open (400 + phrase)
        NOT_FOUND: shift missing or no longer open (404, or 400 + phrase on add)
        VALIDATION: any other 400/422, message comes from the backend
        CONNECTION_ERROR: no response at all (status 0)
        HTTP_ERROR: any other status
    """

    _default_messages = {
        'CONFLICT': 'Já existe um turno em aberto',
        'NOT_FOUND': 'Turno não encontrado',
        'VALIDATION': 'Dados inválidos',
        'CONNECTION_ERROR': 'Erro de conexão com o servidor. Verifique sua conexão com a internet.',
        'HTTP_ERROR': 'Erro inesperado do servidor',
    }

    @property
    def status(self) -> int:
        """Shortcut for data['status']."""
        return self.data.get('status', 0)

    @property
    def payload(self) -> Any:
        """Shortcut for data['payload'] (parsed error body, if any)."""
        return self.data.get('payload')


class ShiftError(BaseError):
    """
    Classified error surfaced by the shift coordinator.

    Usage:
        try:
            coordinator.start(request)
        except ShiftError as e:
            if e.code == 'UNRECOVERABLE_CONFLICT':
                print("Existe um turno aberto, tente novamente")
    """

    _default_messages = {
        'INVALID_STARTING_STOCK': 'Existência inicial deve ser maior que zero',
        'INVALID_FUEL_INTAKE': 'Entrada de combustível não pode ser negativa',
        'RESPONSIBLE_REQUIRED': 'Responsável pelo abastecimento é obrigatório',
        'NO_ENTRIES': 'Nenhum equipamento fornecido para adicionar',
        'EQUIPMENT_REQUIRED': 'Selecione o equipamento',
        'INVALID_QUANTITY': 'Quantidade inválida (deve ser positiva)',
        'DUPLICATE_EQUIPMENT': 'O mesmo equipamento aparece mais de uma vez no lote',
        'INVALID_CLOSING_STOCK': 'Existência final deve ser maior que zero',
        'INVALID_STATE': 'Operação inválida para o estado atual do turno',
        'OPERATION_IN_PROGRESS': 'Outra operação de turno está em andamento',
        'UNRECOVERABLE_CONFLICT': 'Existe um turno em aberto que não pôde ser carregado',
        'CONNECTION_ERROR': 'Erro de conexão com o servidor',
        'VALIDATION': 'Dados inválidos',
        'OPERATION_FAILED': 'Falha na operação de turno',
    }
