"""
Conflict parsing — recover the open shift id from a backend message.

The backend refuses "start shift" while another shift is open, and the only
hint of *which* shift is open is embedded in the human-readable message:

    "Já existe um turno em aberto (ID: 42)"

Parsing is isolated here so the matching rule can be replaced (e.g. by a
structured error field) without touching the coordinator.
"""

from __future__ import annotations

import re
import threading
from typing import Iterable, Protocol, runtime_checkable

from django.core.exceptions import ImproperlyConfigured
from django.utils.module_loading import import_string

from fuelshift.conf import fuelshift_settings


# Integer right after the literal "ID:", optionally inside parentheses
DEFAULT_PATTERNS = (
    re.compile(r"\(?ID\s*:\s*(\d+)\)?"),
)

# Looser forms accepted by older console builds: "turno 36", "ID 36"
LEGACY_PATTERNS = DEFAULT_PATTERNS + (
    re.compile(r"turno\s+(\d+)", re.IGNORECASE),
    re.compile(r"ID\s+(\d+)", re.IGNORECASE),
)


@runtime_checkable
class ConflictParser(Protocol):
    """Extracts a shift id from a conflict message."""

    def parse(self, message: str) -> int | None:
        """Return the embedded shift id, or None when there is none."""
        ...


class RegexConflictParser:
    """
    Tries each pattern in order and returns the first captured integer.

    Never raises: anything that is not a string, or has no match, is None.
    """

    def __init__(self, patterns: Iterable[re.Pattern] | None = None):
        self.patterns = tuple(patterns) if patterns is not None else DEFAULT_PATTERNS

    def parse(self, message: str) -> int | None:
        if not isinstance(message, str):
            return None
        for pattern in self.patterns:
            match = pattern.search(message)
            if match:
                return int(match.group(1))
        return None


class LegacyConflictParser(RegexConflictParser):
    """RegexConflictParser preloaded with LEGACY_PATTERNS."""

    def __init__(self):
        super().__init__(LEGACY_PATTERNS)


def is_conflict_message(message: str | None, phrases: Iterable[str]) -> bool:
    """Case-insensitive check for any of ``phrases`` inside ``message``."""
    if not message:
        return False
    lowered = message.lower()
    return any(phrase.lower() in lowered for phrase in phrases)


_lock = threading.Lock()
_parser: ConflictParser | None = None


def get_conflict_parser() -> ConflictParser:
    """
    Return the configured conflict parser (FUELSHIFT['CONFLICT_PARSER']).

    Raises:
        ImproperlyConfigured: If the dotted path cannot be imported
    """
    global _parser

    if _parser is None:
        with _lock:
            if _parser is None:
                path = fuelshift_settings.CONFLICT_PARSER
                try:
                    _parser = import_string(path)()
                except ImportError as e:
                    raise ImproperlyConfigured(
                        f"Failed to import conflict parser '{path}': {e}"
                    ) from e

    return _parser


def reset_conflict_parser() -> None:
    """Reset the cached parser. Useful for testing."""
    global _parser
    _parser = None


def extract_shift_id(message: str) -> int | None:
    """Parse ``message`` with the configured parser."""
    return get_conflict_parser().parse(message)
