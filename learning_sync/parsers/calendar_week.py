# learning_sync/parsers/calendar_week.py
from __future__ import annotations

from typing import List

from bs4 import BeautifulSoup, Tag

from ..errors import ParseError
from ..models import AssignmentSummary
from .due_dates import resolve_due_date

EMPTY_RANGE_MARKER = "there are no assignments in this date range"

DAY_SELECTOR = "div.cal_day"
DAY_ID_PREFIX = "day_"
ITEM_SELECTOR = "li"
CLASS_ANCHOR_SELECTOR = "a.class_filter"
DESCRIPTION_ANCHOR_SELECTOR = ".description a"
TIME_SELECTOR = "span.small"


def parse_week_fragment(html: str) -> List[AssignmentSummary]:
    """
    Parse the portlet_calendar_week fragment into assignment summaries.

    Output is day-major, then item order inside the day, same as the document.
    Structural surprises raise ParseError for the whole fragment.
    """
    soup = BeautifulSoup(html, "html.parser")

    # the marker replaces the calendar markup entirely
    if EMPTY_RANGE_MARKER in soup.get_text(" ", strip=True).lower():
        return []

    summaries: List[AssignmentSummary] = []
    for day in soup.select(DAY_SELECTOR):
        day_string = _day_string(day)
        for item in _top_level_items(day):
            summaries.append(_parse_item(item, day_string))
    return summaries


def _top_level_items(day: Tag) -> List[Tag]:
    # lists inside an item's description are part of that item
    return [item for item in day.select(ITEM_SELECTOR) if item.find_parent(ITEM_SELECTOR) is None]


def _day_string(day: Tag) -> str:
    day_id = day.get("id")
    if not day_id:
        raise ParseError(f"{DAY_SELECTOR} is missing its 'id' attribute")
    if not day_id.startswith(DAY_ID_PREFIX):
        raise ParseError(f"{DAY_SELECTOR} id {day_id!r} does not start with {DAY_ID_PREFIX!r}")
    return day_id[len(DAY_ID_PREFIX):]


def _parse_item(item: Tag, day_string: str) -> AssignmentSummary:
    class_anchor = _required(item, CLASS_ANCHOR_SELECTOR, day_string)
    description_anchor = _required(item, DESCRIPTION_ANCHOR_SELECTOR, day_string)
    time_span = _required(item, TIME_SELECTOR, day_string)

    time_string = time_span.get_text(strip=True)
    if not time_string:
        raise ParseError(f"{TIME_SELECTOR} is empty (day {day_string})")

    return AssignmentSummary(
        name=_attr(description_anchor, "title", DESCRIPTION_ANCHOR_SELECTOR, day_string),
        class_name=_attr(class_anchor, "title", CLASS_ANCHOR_SELECTOR, day_string),
        link=_attr(description_anchor, "href", DESCRIPTION_ANCHOR_SELECTOR, day_string),
        due_date=resolve_due_date(day_string, time_string),
    )


def _required(item: Tag, selector: str, day_string: str) -> Tag:
    found = item.select_one(selector)
    if found is None:
        raise ParseError(f"Missing {selector} in assignment item (day {day_string})")
    return found


def _attr(tag: Tag, name: str, selector: str, day_string: str) -> str:
    value = tag.get(name)
    if not value:
        raise ParseError(f"{selector} is missing its {name!r} attribute (day {day_string})")
    return value
