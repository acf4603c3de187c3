"""
Pytest fixtures for Fuelshift tests.
"""

from decimal import Decimal

import pytest
from django.core.cache import cache

from fuelshift.adapters.backend import reset_shift_api
from fuelshift.adapters.memory import InMemoryShiftApi
from fuelshift.conflict import reset_conflict_parser
from fuelshift.coordinator import ShiftCoordinator
from fuelshift.pointer import ShiftPointerCache
from fuelshift.protocols.shift_api import RefuelEntry, Shift, StartShiftRequest


class FakeClock:
    """Manually advanced monotonic clock (seconds)."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms / 1000


@pytest.fixture(autouse=True)
def clean_state():
    """Empty cache and cached collaborators around every test."""
    cache.clear()
    reset_shift_api()
    reset_conflict_parser()
    yield
    cache.clear()
    reset_shift_api()
    reset_conflict_parser()


@pytest.fixture
def api():
    """Fresh in-memory backend (first shift gets id 1)."""
    return InMemoryShiftApi()


@pytest.fixture
def pointer():
    return ShiftPointerCache()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def coordinator(api, pointer, clock):
    """Coordinator wired to the in-memory backend, not yet activated."""
    return ShiftCoordinator(api=api, pointer=pointer, clock=clock)


@pytest.fixture
def start_request():
    """100 L in the tank, 50 L delivered."""
    return StartShiftRequest(
        starting_stock=Decimal('100'),
        fuel_intake=Decimal('50'),
        responsible_name='Maria Tembe',
        station='Posto Central',
        operator_name='João',
    )


@pytest.fixture
def open_shift():
    """An already open shift, as another console created it."""
    return Shift(
        id=42,
        starting_stock=Decimal('200'),
        fuel_intake=Decimal('0'),
        responsible_name='Carlos',
        entries=(
            RefuelEntry(equipment_id=3, quantity=Decimal('15'), equipment_name='Escavadora', id=1),
        ),
    )

