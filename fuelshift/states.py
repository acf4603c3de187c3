"""
Coordinator states — an explicit tagged union.

LIFECYCLE:

    ┌─────────┐  activate()  ┌───────────┐
    │ UNKNOWN │ ───────────► │ VERIFYING │ ◄───────────────────────────┐
    └─────────┘              └───────────┘                             │
                               │       │                               │
                   no pointer, │       │ pointer → open shift          │
                   stale ptr   ▼       ▼                               │
                  ┌────────────────┐  start()   ┌───────────────┐      │
                  │ NO_OPEN_SHIFT  │ ─────────► │  OPEN_SHIFT   │ ◄─┐  │
                  └────────────────┘            └───────────────┘   │  │
                          ▲                      │        │ add_entries()
                          │                      │ close()└─────────┘  │
                          │                      ▼                     │
                          │                ┌──────────┐  start_new_cycle()
                          └────────────────│  CLOSED  │ ───────────────┘
                                           └──────────┘

Only OPEN_SHIFT and CLOSED carry a shift, so "open shift without a
loaded shift" cannot be represented.
"""

from dataclasses import dataclass, field
from enum import Enum

from fuelshift.protocols.shift_api import Shift
from fuelshift.reconciliation import ReconciliationResult


class ShiftStateKind(str, Enum):
    """Discriminator of coordinator states."""

    UNKNOWN = "unknown"
    VERIFYING = "verifying"
    NO_OPEN_SHIFT = "no_open_shift"
    OPEN_SHIFT = "open_shift"
    CLOSED = "closed"


@dataclass(frozen=True)
class Unknown:
    kind: ShiftStateKind = field(default=ShiftStateKind.UNKNOWN, init=False)


@dataclass(frozen=True)
class Verifying:
    kind: ShiftStateKind = field(default=ShiftStateKind.VERIFYING, init=False)


@dataclass(frozen=True)
class NoOpenShift:
    kind: ShiftStateKind = field(default=ShiftStateKind.NO_OPEN_SHIFT, init=False)


@dataclass(frozen=True)
class OpenShift:
    shift: Shift
    kind: ShiftStateKind = field(default=ShiftStateKind.OPEN_SHIFT, init=False)


@dataclass(frozen=True)
class Closed:
    """Final snapshot of a closed shift with its reconciliation."""

    shift: Shift
    reconciliation: ReconciliationResult
    kind: ShiftStateKind = field(default=ShiftStateKind.CLOSED, init=False)


ShiftState = Unknown | Verifying | NoOpenShift | OpenShift | Closed


class NoticeLevel(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class Notice:
    """User-facing message emitted alongside a state change."""

    level: NoticeLevel
    code: str
    message: str
