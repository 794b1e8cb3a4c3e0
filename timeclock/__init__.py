"""
Timeclock - attendance tracking over a rate-limited Ragic store.
"""

__version__ = "1.0.0"
