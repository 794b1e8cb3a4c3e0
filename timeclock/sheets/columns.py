"""
Sheet Columns Configuration Loader.

Loads form definitions from the packaged sheet_columns.json file.
This is the single source of truth for Ragic field IDs and sheet paths.
"""

import json
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator

from timeclock.exceptions import ValidationError


_CONFIG_FILE = Path(__file__).parent / "sheet_columns.json"


class FormConfig(BaseModel):
    """
    Configuration for a single Ragic form.

    Attributes:
        form_key: Unique identifier for this form (e.g., "ledger").
        description: Human-readable description of the form.
        sheet_path: Path to the Ragic sheet (e.g., "/timeclock/attendance/1").
        fields: Mapping of logical field names to Ragic field IDs.
    """
    form_key: str
    description: str = ""
    sheet_path: str
    fields: Dict[str, str] = Field(default_factory=dict)

    @field_validator("sheet_path")
    @classmethod
    def validate_sheet_path(cls, v: str) -> str:
        """Ensure sheet_path starts with /"""
        if not v.startswith("/"):
            return f"/{v}"
        return v

    def get_field_id(self, field_name: str) -> str:
        """Get field ID or raise if the logical name is unknown."""
        field_id = self.fields.get(field_name)
        if field_id is None:
            raise ValidationError(
                f"Field '{field_name}' not found in form '{self.form_key}'",
                field=field_name,
            )
        return field_id

    def to_field_ids(self, values: Dict[str, Any]) -> Dict[str, Any]:
        """Translate {logical name: value} into {field id: value}."""
        return {self.get_field_id(name): value for name, value in values.items()}

    def to_logical(self, record: Dict[str, Any]) -> Dict[str, str]:
        """
        Translate a raw Ragic record into {logical name: value}.

        Missing fields come back as empty strings; values are stringified.
        """
        result: Dict[str, str] = {}
        for name, field_id in self.fields.items():
            value = record.get(field_id)
            if value is None:
                value = record.get(f"_{field_id}")
            result[name] = "" if value is None else str(value).strip()
        return result


@lru_cache(maxsize=1)
def _load_sheet_columns() -> dict[str, Any]:
    """Load and cache the sheet_columns.json file."""
    if not _CONFIG_FILE.exists():
        raise FileNotFoundError(f"Sheet columns config not found: {_CONFIG_FILE}")

    with open(_CONFIG_FILE, "r", encoding="utf-8") as f:
        return json.load(f)


def get_form_config(form_key: str, sheet_path: Optional[str] = None) -> FormConfig:
    """
    Get configuration for a specific form.

    Args:
        form_key: One of 'ledger', 'on_work', 'roster'.
        sheet_path: Optional override for the configured sheet path.

    Raises:
        KeyError: If form_key is not found.
    """
    config = _load_sheet_columns()
    if form_key not in config:
        raise KeyError(f"Form '{form_key}' not found in sheet_columns.json")

    raw = dict(config[form_key])
    if sheet_path:
        raw["sheet_path"] = sheet_path
    return FormConfig(form_key=form_key, **raw)
