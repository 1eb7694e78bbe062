# learning_sync/parsers/due_dates.py
from __future__ import annotations

from datetime import datetime

from ..errors import DateResolutionError

# "2022-01-07 11:59pm", then "2022-01-07 11pm" when the portal drops the minutes
PRIMARY_FORMAT = "%Y-%m-%d %I:%M%p"
FALLBACK_FORMAT = "%Y-%m-%d %I%p"


def resolve_due_date(day_string: str, time_string: str) -> datetime:
    """Combine a calendar day and a 12-hour time into a naive local datetime."""
    raw = f"{day_string} {time_string}"
    for fmt in (PRIMARY_FORMAT, FALLBACK_FORMAT):
        try:
            return datetime.strptime(raw, fmt)
        except ValueError:
            continue
    raise DateResolutionError(raw)
