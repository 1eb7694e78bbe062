"""Typed records shared across the scrape → enrich → reconcile → upsert pipeline."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union


@dataclass(frozen=True)
class AssignmentSummary:
    """One assignment row from the week calendar fragment."""

    name: str
    class_name: str
    link: str
    due_date: datetime


@dataclass(frozen=True)
class FullAssignmentRecord:
    """A summary plus the fields only found on the assignment's detail page.

    ``sections`` and ``total_points`` are None when the detail page has no
    cell for them. ``to_dict`` leaves those keys out entirely.
    """

    name: str
    class_name: str
    link: str
    due_date: datetime
    description: str
    sections: Optional[str] = None
    total_points: Optional[float] = None

    @classmethod
    def from_summary(
        cls,
        summary: AssignmentSummary,
        description: str,
        sections: Optional[str] = None,
        total_points: Optional[float] = None,
    ) -> "FullAssignmentRecord":
        return cls(
            name=summary.name,
            class_name=summary.class_name,
            link=summary.link,
            due_date=summary.due_date,
            description=description,
            sections=sections,
            total_points=total_points,
        )

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        for key in ("sections", "total_points"):
            if data[key] is None:
                del data[key]
        return data


@dataclass(frozen=True)
class ExistingRecordRef:
    external_id: str
    normalized_link: str


class TagColor(str, Enum):
    DEFAULT = "default"
    GRAY = "gray"
    BROWN = "brown"
    ORANGE = "orange"
    YELLOW = "yellow"
    GREEN = "green"
    BLUE = "blue"
    PURPLE = "purple"
    PINK = "pink"
    RED = "red"

    @classmethod
    def parse(cls, value: Optional[str]) -> "TagColor":
        try:
            return cls(value or "default")
        except ValueError:
            return cls.DEFAULT


@dataclass(frozen=True)
class ClassTag:
    """A Notion multi-select option bound to a class name."""

    id: str
    name: str
    color: TagColor = TagColor.DEFAULT

    @classmethod
    def from_notion(cls, option: Dict[str, Any]) -> "ClassTag":
        return cls(id=option["id"], name=option["name"], color=TagColor.parse(option.get("color")))


@dataclass(frozen=True)
class CreateOperation:
    record: FullAssignmentRecord
    kind: str = field(default="create", init=False)


@dataclass(frozen=True)
class UpdateOperation:
    record: FullAssignmentRecord
    external_id: str
    kind: str = field(default="update", init=False)


UpsertOperation = Union[CreateOperation, UpdateOperation]


@dataclass(frozen=True)
class ReconcileResult:
    to_create: List[CreateOperation]
    to_update: List[UpdateOperation]


@dataclass(frozen=True)
class SessionUser:
    first_name: str
    last_name: str
    login: str
    import_id: Optional[str] = None
    source_system_id: Optional[str] = None

    @classmethod
    def from_portal(cls, raw: Dict[str, Any]) -> "SessionUser":
        return cls(
            first_name=raw.get("firstName") or "",
            last_name=raw.get("lastName") or "",
            login=raw["login"],
            import_id=raw.get("importId"),
            source_system_id=raw.get("sourceSystemId"),
        )


@dataclass
class UpsertReport:
    """Outcome of one upsert batch. Failed writes don't undo successful ones."""

    created: int = 0
    updated: int = 0
    failures: List[Tuple[UpsertOperation, BaseException]] = field(default_factory=list)

    @property
    def attempted(self) -> int:
        return self.created + self.updated + len(self.failures)

    @property
    def ok(self) -> bool:
        return not self.failures
