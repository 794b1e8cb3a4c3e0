"""
Ledger locators.

Finding the ledger row to close on clock-out is a chain of strategies tried
in order; the first one returning an entry wins. Each strategy is a pure
function of the freshly fetched ledger and a LocatorHint, so every stage
can be tested on its own.

    1. index_match          stored record id, still open and same name
    2. unique_open_match    the only open row for this name
    3. closest_in_time      open row whose clock-in is nearest the session's,
                            within CLOSEST_MATCH_THRESHOLD
    4. latest_open_match    most recent open row for this name
"""

import logging
from dataclasses import dataclass
from datetime import tzinfo
from typing import Callable, List, Optional, Sequence, Tuple

from timeclock.services.matcher import is_name_match
from timeclock.services.time_utils import elapsed_seconds, parse_timestamp
from timeclock.sheets.models import LedgerEntry, WorkSession

logger = logging.getLogger(__name__)

CLOSEST_MATCH_THRESHOLD = 300.0  # seconds


@dataclass(frozen=True)
class LocatorHint:
    """What is known about the session being closed."""

    employee: str
    session: WorkSession
    tz: tzinfo


Locator = Callable[[Sequence[LedgerEntry], LocatorHint], Optional[LedgerEntry]]


def _open_candidates(ledger: Sequence[LedgerEntry], employee: str) -> List[LedgerEntry]:
    return [entry for entry in ledger if entry.is_open and is_name_match(employee, entry.employee)]


def index_match(ledger: Sequence[LedgerEntry], hint: LocatorHint) -> Optional[LedgerEntry]:
    row_id = hint.session.ledger_row
    if row_id is None:
        return None

    positions = {entry.row_id: position for position, entry in enumerate(ledger)}
    position = positions.get(row_id)
    if position is None:
        logger.debug(f"Stored ledger row {row_id} not present in ledger")
        return None

    entry = ledger[position]
    if not is_name_match(hint.employee, entry.employee):
        logger.warning(
            f"Stored ledger row {row_id} belongs to '{entry.employee}', not '{hint.employee}'"
        )
        return None
    if not entry.is_open:
        logger.warning(f"Stored ledger row {row_id} is already closed")
        return None
    return entry


def unique_open_match(ledger: Sequence[LedgerEntry], hint: LocatorHint) -> Optional[LedgerEntry]:
    candidates = _open_candidates(ledger, hint.employee)
    return candidates[0] if len(candidates) == 1 else None


def closest_in_time(ledger: Sequence[LedgerEntry], hint: LocatorHint) -> Optional[LedgerEntry]:
    candidates = _open_candidates(ledger, hint.employee)
    if len(candidates) < 2:
        return None

    session_start = parse_timestamp(hint.session.clock_in, hint.tz)
    if session_start is None:
        return None

    best: Optional[Tuple[float, LedgerEntry]] = None
    for entry in candidates:
        entry_start = parse_timestamp(entry.clock_in, hint.tz)
        if entry_start is None:
            continue
        diff = abs(elapsed_seconds(session_start, entry_start))
        if best is None or diff < best[0]:
            best = (diff, entry)

    if best is not None and best[0] < CLOSEST_MATCH_THRESHOLD:
        return best[1]
    return None


def latest_open_match(ledger: Sequence[LedgerEntry], hint: LocatorHint) -> Optional[LedgerEntry]:
    for entry in reversed(ledger):
        if entry.is_open and is_name_match(hint.employee, entry.employee):
            return entry
    return None


LOCATORS: Tuple[Tuple[str, Locator], ...] = (
    ("index_match", index_match),
    ("unique_open_match", unique_open_match),
    ("closest_in_time", closest_in_time),
    ("latest_open_match", latest_open_match),
)


def locate_ledger_entry(
    ledger: Sequence[LedgerEntry],
    hint: LocatorHint,
    locators: Sequence[Tuple[str, Locator]] = LOCATORS,
) -> Optional[LedgerEntry]:
    """Run the locators in order and return the first entry found."""
    for name, locator in locators:
        entry = locator(ledger, hint)
        if entry is not None:
            logger.info(f"Ledger row {entry.row_id} located by {name} for {hint.employee}")
            return entry
    logger.warning(f"No ledger row located for {hint.employee}")
    return None
