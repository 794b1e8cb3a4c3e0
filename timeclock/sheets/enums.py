"""
Dataset Enums.

Identifies the datasets the cache and the fetch façade work with.
"""

from enum import Enum


class Dataset(str, Enum):
    """
    Cached dataset identifier.

    - ROSTER: read-only employee list. Changes rarely.
    - ON_WORK: open work sessions. Changes on every clock-in/out.
    - LEDGER: attendance history. Most volatile, appended on every clock-in.
    - STATS: computed admin statistics. Never fetched remotely, only cached.
    """

    ROSTER = "roster"
    ON_WORK = "on_work"
    LEDGER = "ledger"
    STATS = "stats"

    def __str__(self) -> str:
        return self.value


REMOTE_DATASETS = (Dataset.ROSTER, Dataset.ON_WORK, Dataset.LEDGER)
