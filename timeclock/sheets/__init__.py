"""
Sheet access layer.

Components:
    - Dataset: identifiers of the cached datasets
    - FormConfig / get_form_config: field-id registry for the Ragic forms
    - SheetRow, LedgerEntry, WorkSession: typed row views
    - SheetStore / RagicSheetStore: remote store client
"""

from timeclock.sheets.columns import FormConfig, get_form_config
from timeclock.sheets.enums import REMOTE_DATASETS, Dataset
from timeclock.sheets.models import LedgerEntry, SheetRow, WorkSession
from timeclock.sheets.service import RagicSheetStore, SheetStore

__all__ = [
    "Dataset",
    "REMOTE_DATASETS",
    "FormConfig",
    "get_form_config",
    "SheetRow",
    "LedgerEntry",
    "WorkSession",
    "SheetStore",
    "RagicSheetStore",
]
