# learning_sync/work_flows/fetch_week.py
from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Dict, List, Optional, Sequence, Tuple, Union
from urllib.parse import quote, urlencode

from ..models import AssignmentSummary
from ..parsers.calendar_week import parse_week_fragment
from ..portals.base import PortalEngine

logger = logging.getLogger(__name__)

WEEK_PATH = "/u/{username}/portal/portlet_calendar_week"
START_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
FORM_HEADERS = {"Content-Type": "application/x-www-form-urlencoded; charset=UTF-8"}


def build_week_request(
    username: str,
    class_ids: Sequence[int],
    csrf_token: str,
    start_date: Optional[Union[date, datetime]] = None,
) -> Tuple[str, str]:
    """Return (path, form body) for the week calendar portlet."""
    form: Dict[str, str] = {
        "id": " ".join(str(class_id) for class_id in class_ids),
        "csrf_token": csrf_token,
    }
    if start_date is not None:
        if not isinstance(start_date, datetime):
            start_date = datetime(start_date.year, start_date.month, start_date.day)
        form["start_date"] = start_date.strftime(START_DATE_FORMAT)
    path = WEEK_PATH.format(username=quote(username, safe=""))
    return path, urlencode(form)


async def fetch_week_assignments(
    session: PortalEngine,
    username: str,
    class_ids: Sequence[int],
    csrf_token: str,
    start_date: Optional[Union[date, datetime]] = None,
) -> List[AssignmentSummary]:
    path, body = build_week_request(username, class_ids, csrf_token, start_date)
    logger.info("Requesting week calendar for %d classes (start_date=%s)", len(class_ids), start_date or "current week")
    fragment = await session.fetch(path, method="POST", headers=FORM_HEADERS, body=body)
    summaries = parse_week_fragment(fragment)
    logger.info("Parsed %d assignments from the week calendar", len(summaries))
    return summaries
