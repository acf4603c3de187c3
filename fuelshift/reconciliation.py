"""
Shift reconciliation — isolated, testable, pure arithmetic.

Compares the closing stock declared by the operator with the stock the
shift should have left:

    expected = starting_stock + fuel_intake - sum(entries.quantity)
    variance = |declared - expected|

Examples:
    - 100 L start, 50 L intake, 30 + 20 L dispensed, 100 L declared → variance 0
    - same shift, 90 L declared → variance 10

Nothing here decides whether a variance is acceptable: closing is never
blocked. A negative expected stock is returned as-is (over-dispensing).
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

from fuelshift.protocols.shift_api import RefuelEntry, Shift


@dataclass(frozen=True)
class ReconciliationResult:
    """Expected vs declared closing stock for a shift."""

    starting_stock: Decimal
    fuel_intake: Decimal
    dispensed: Decimal
    expected_closing_stock: Decimal
    declared_closing_stock: Decimal
    variance: Decimal


def total_dispensed(entries: Iterable[RefuelEntry]) -> Decimal:
    """Sum of quantities dispensed by ``entries``."""
    return sum((entry.quantity for entry in entries), Decimal('0'))


def expected_closing(starting_stock: Decimal, fuel_intake: Decimal,
                     entries: Iterable[RefuelEntry]) -> Decimal:
    """
    Stock that should remain after ``entries``.

    Not clamped at zero.
    """
    return Decimal(starting_stock) + Decimal(fuel_intake or 0) - total_dispensed(entries)


def variance(declared: Decimal, expected: Decimal) -> Decimal:
    """Absolute difference between declared and expected stock."""
    return abs(Decimal(declared) - Decimal(expected))


def reconcile(shift: Shift, declared_closing_stock: Decimal) -> ReconciliationResult:
    """
    Build the ReconciliationResult of ``shift`` against a declared stock.

    Args:
        shift: Shift carrying starting stock, intake and entries
        declared_closing_stock: Stock measured by the operator at close

    Returns:
        ReconciliationResult (informational only)
    """
    dispensed = total_dispensed(shift.entries)
    expected = expected_closing(shift.starting_stock, shift.fuel_intake, shift.entries)
    return ReconciliationResult(
        starting_stock=shift.starting_stock,
        fuel_intake=shift.fuel_intake,
        dispensed=dispensed,
        expected_closing_stock=expected,
        declared_closing_stock=Decimal(declared_closing_stock),
        variance=variance(declared_closing_stock, expected),
    )


def exceeds_tolerance(result: ReconciliationResult, tolerance: Decimal) -> bool:
    """Presentation helper: is the variance worth highlighting?"""
    return result.variance > tolerance
