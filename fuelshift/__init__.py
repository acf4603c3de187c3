"""
Django Fuelshift — Coordenação de Turnos de Abastecimento.

Mantém um único turno de abastecimento aberto por operação, conciliando o
ponteiro local com o backend de combustível.

Uso:
    from fuelshift import ShiftCoordinator, ShiftError

    coordinator = ShiftCoordinator()
    coordinator.activate()
    coordinator.start(StartShiftRequest(starting_stock=Decimal('100'), ...))
    coordinator.add_entries([RefuelEntry(equipment_id=3, quantity=Decimal('30'))])
    coordinator.close(Decimal('100'))
"""


def __getattr__(name):
    """Lazy import to avoid circular imports during app loading."""
    if name == 'ShiftCoordinator':
        from fuelshift.coordinator import ShiftCoordinator
        return ShiftCoordinator
    elif name == 'ShiftError':
        from fuelshift.exceptions import ShiftError
        return ShiftError
    elif name == 'ShiftApiError':
        from fuelshift.exceptions import ShiftApiError
        return ShiftApiError
    elif name == 'Shift':
        from fuelshift.protocols.shift_api import Shift
        return Shift
    elif name == 'RefuelEntry':
        from fuelshift.protocols.shift_api import RefuelEntry
        return RefuelEntry
    elif name == 'StartShiftRequest':
        from fuelshift.protocols.shift_api import StartShiftRequest
        return StartShiftRequest
    elif name == 'ShiftPointerCache':
        from fuelshift.pointer import ShiftPointerCache
        return ShiftPointerCache
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    'ShiftCoordinator',
    'ShiftError',
    'ShiftApiError',
    'Shift',
    'RefuelEntry',
    'StartShiftRequest',
    'ShiftPointerCache',
]

__version__ = '0.1.0'
