"""Typed Notion property values and the assignment → page property builder."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional, Tuple, Union

from bs4 import BeautifulSoup

from ..models import FullAssignmentRecord, TagColor

# Notion rejects rich text content longer than 2000 characters.
MAX_TEXT_LENGTH = 2000

NAME = "Name"
LINK = "Link"
DUE = "Due"
CLASS = "Class"
POINTS = "Points"
SECTIONS = "Sections"


@dataclass(frozen=True)
class TextSpan:
    content: str
    url: Optional[str] = None

    def to_notion(self) -> Dict[str, Any]:
        return {
            "type": "text",
            "text": {
                "content": _truncate(self.content),
                "link": {"url": self.url} if self.url else None,
            },
        }


@dataclass(frozen=True)
class TitleValue:
    span: TextSpan

    def to_notion(self) -> Dict[str, Any]:
        return {"title": [self.span.to_notion()]}


@dataclass(frozen=True)
class RichTextValue:
    span: Optional[TextSpan] = None

    def to_notion(self) -> Dict[str, Any]:
        if self.span is None or not self.span.content:
            return {"type": "rich_text", "rich_text": []}
        return {"type": "rich_text", "rich_text": [self.span.to_notion()]}


@dataclass(frozen=True)
class DateValue:
    """A date range sent without a time zone; Notion shows it as floating local time."""

    start: datetime
    end: Optional[datetime] = None

    def to_notion(self) -> Dict[str, Any]:
        return {
            "type": "date",
            "date": {
                "start": self.start.isoformat(),
                "end": self.end.isoformat() if self.end else None,
                "time_zone": None,
            },
        }


@dataclass(frozen=True)
class MultiSelectValue:
    options: Tuple[Tuple[str, TagColor], ...]

    def to_notion(self) -> Dict[str, Any]:
        return {
            "type": "multi_select",
            "multi_select": [{"name": name, "color": color.value} for name, color in self.options],
        }


@dataclass(frozen=True)
class NumberValue:
    number: Optional[float]

    def to_notion(self) -> Dict[str, Any]:
        return {"type": "number", "number": self.number}


PropertyValue = Union[TitleValue, RichTextValue, DateValue, MultiSelectValue, NumberValue]


def build_assignment_properties(
    record: FullAssignmentRecord,
    base_url: str,
    class_color: Optional[TagColor],
) -> Dict[str, PropertyValue]:
    """Page properties for an assignment; ``class_color`` None means a new tag."""
    full_link = base_url.rstrip("/") + record.link
    return {
        # title, linked to the assignment
        NAME: TitleValue(TextSpan(record.name, full_link)),
        # identity key for the next run
        LINK: RichTextValue(TextSpan(full_link, full_link)),
        DUE: DateValue(record.due_date),
        CLASS: MultiSelectValue(((record.class_name, class_color or TagColor.DEFAULT),)),
        POINTS: NumberValue(record.total_points),
        SECTIONS: RichTextValue(TextSpan(record.sections or "")),
    }


def serialize_properties(properties: Dict[str, PropertyValue]) -> Dict[str, Any]:
    return {name: value.to_notion() for name, value in properties.items()}


def flatten_html(html: str) -> str:
    """Plain text of an HTML description, one line per block element."""
    return BeautifulSoup(html, "html.parser").get_text("\n", strip=True)


def description_block(description_html: str) -> Dict[str, Any]:
    """A paragraph block holding the flattened description."""
    return {
        "object": "block",
        "type": "paragraph",
        "paragraph": {"rich_text": [TextSpan(flatten_html(description_html)).to_notion()]},
    }


def _truncate(text: str, max_len: int = MAX_TEXT_LENGTH) -> str:
    return text if len(text) <= max_len else f"{text[: max_len - 3]}..."
