# learning_sync/parsers/assignment_detail.py
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Optional, Union

from bs4 import BeautifulSoup, Tag

from ..errors import ParseError

POSTED_LABEL = "Posted:"
TOTAL_POINTS_LABEL = "Total Points:"
SECTIONS_LABEL = "Sections:"
_NUMBER = re.compile(r"\d+(?:\.\d+)?")


@dataclass(frozen=True)
class AssignmentDetail:
    description: str
    sections: Optional[str] = None
    total_points: Optional[float] = None


def parse_assignment_detail(html: str) -> AssignmentDetail:
    """
    Pull description, sections and total points out of an assignment page.

    The page can hold several unrelated tables; the info table is the one
    with a "Posted:" label cell and every lookup below stays inside it.
    """
    soup = BeautifulSoup(html, "html.parser")
    table = _info_table(soup)

    rows = _own(table, "tr")
    if len(rows) < 2:
        raise ParseError(f"Info table has {len(rows)} row(s); need at least 2 for the description")
    cells = rows[-2].find_all(["td", "th"], recursive=False)
    if not cells:
        raise ParseError("Description row of the info table has no cells")

    return AssignmentDetail(
        description=cells[-1].decode_contents().strip(),
        sections=_sections(table),
        total_points=_total_points(table),
    )


def _info_table(soup: BeautifulSoup) -> Tag:
    # innermost table owning the label cell, not a layout table around it
    for cell in soup.find_all(["td", "th"]):
        if cell.get_text(" ", strip=True) == POSTED_LABEL:
            return cell.find_parent("table")
    raise ParseError(f"No table with a {POSTED_LABEL!r} label cell on the assignment page")


def _label_cell(table: Tag, label: str) -> Optional[Tag]:
    for cell in _own(table, ["td", "th"]):
        if cell.get_text(" ", strip=True) == label:
            return cell
    return None


def _own(table: Tag, name: Union[str, List[str]]) -> List[Tag]:
    """Descendants named `name` that belong to `table` itself, skipping nested tables."""
    return [tag for tag in table.find_all(name) if tag.find_parent("table") is table]


def _value_cell(table: Tag, label: str) -> Optional[Tag]:
    cell = _label_cell(table, label)
    if cell is None:
        return None
    return cell.find_next_sibling(["td", "th"])


def _total_points(table: Tag) -> Optional[float]:
    cell = _value_cell(table, TOTAL_POINTS_LABEL)
    if cell is None:
        return None
    m = _NUMBER.search(cell.get_text(" ", strip=True))
    return float(m.group(0)) if m else None


def _sections(table: Tag) -> Optional[str]:
    cell = _value_cell(table, SECTIONS_LABEL)
    if cell is None:
        return None
    return cell.get_text(" ", strip=True)
