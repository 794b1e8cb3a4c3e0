"""
Sheet row models.

Typed views over the raw records of the ledger, open-session and roster
forms. Rows are keyed by the store-assigned record id, which is also the
back-reference a WorkSession keeps to its LedgerEntry.
"""

from dataclasses import dataclass, field
from typing import Dict, Optional


@dataclass(frozen=True)
class SheetRow:
    """One record of a form, with values keyed by logical field name."""

    row_id: int
    values: Dict[str, str] = field(default_factory=dict)

    def get(self, name: str, default: str = "") -> str:
        return self.values.get(name) or default


@dataclass(frozen=True)
class LedgerEntry:
    """A historical attendance record. Open while clock_out is empty."""

    row_id: int
    employee: str = ""
    line_name: str = ""
    line_picture: str = ""
    clock_in: str = ""
    note: str = ""
    clock_out: str = ""
    entry_coordinates: str = ""
    entry_location: str = ""
    exit_coordinates: str = ""
    exit_location: str = ""
    working_hours: str = ""

    @property
    def is_open(self) -> bool:
        return not self.clock_out

    @classmethod
    def from_row(cls, row: SheetRow) -> "LedgerEntry":
        return cls(
            row_id=row.row_id,
            employee=row.get("EMPLOYEE"),
            line_name=row.get("LINE_NAME"),
            line_picture=row.get("LINE_PICTURE"),
            clock_in=row.get("CLOCK_IN"),
            note=row.get("NOTE"),
            clock_out=row.get("CLOCK_OUT"),
            entry_coordinates=row.get("ENTRY_COORDINATES"),
            entry_location=row.get("ENTRY_LOCATION"),
            exit_coordinates=row.get("EXIT_COORDINATES"),
            exit_location=row.get("EXIT_LOCATION"),
            working_hours=row.get("WORKING_HOURS"),
        )


def _parse_row_reference(value: str) -> Optional[int]:
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return None


@dataclass(frozen=True)
class WorkSession:
    """
    An employee currently clocked in.

    system_name and employee_name are written identically on clock-in but
    may diverge after manual edits in the spreadsheet, so lookups check both.
    """

    row_id: int
    system_name: str = ""
    employee_name: str = ""
    clock_in: str = ""
    status: str = ""
    note: str = ""
    coordinates: str = ""
    location: str = ""
    ledger_row: Optional[int] = None
    line_name: str = ""
    line_picture: str = ""

    @property
    def display_name(self) -> str:
        return self.employee_name or self.system_name

    @classmethod
    def from_row(cls, row: SheetRow) -> "WorkSession":
        return cls(
            row_id=row.row_id,
            system_name=row.get("SYSTEM_NAME"),
            employee_name=row.get("EMPLOYEE_NAME"),
            clock_in=row.get("CLOCK_IN"),
            status=row.get("STATUS"),
            note=row.get("NOTE"),
            coordinates=row.get("COORDINATES"),
            location=row.get("LOCATION"),
            ledger_row=_parse_row_reference(row.get("LEDGER_ROW")),
            line_name=row.get("LINE_NAME"),
            line_picture=row.get("LINE_PICTURE"),
        )

    def to_dict(self) -> Dict[str, object]:
        return {
            "systemName": self.system_name,
            "employeeName": self.employee_name,
            "clockIn": self.clock_in,
            "ledgerRow": self.ledger_row,
        }
