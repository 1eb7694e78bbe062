# learning_sync/errors.py
from __future__ import annotations

from typing import TYPE_CHECKING, Iterable

if TYPE_CHECKING:
    from .models import UpsertReport


class LearningSyncError(Exception):
    """Base class for every fatal error raised during a sync run."""


class ConfigError(LearningSyncError):
    """Raised when required configuration is missing."""

    def __init__(self, missing: Iterable[str]) -> None:
        self.missing = list(missing)
        super().__init__("Missing environment variables: " + ", ".join(self.missing))


class LoginError(LearningSyncError):
    pass


class SessionOriginError(LearningSyncError):
    """The browser session is not on the portal origin."""


class ParseError(LearningSyncError):
    """HTML did not have the structure we expect."""


class DateResolutionError(LearningSyncError):
    def __init__(self, raw: str) -> None:
        self.raw = raw
        super().__init__(f"Could not resolve due date from {raw!r}")


class FetchError(LearningSyncError):
    """Network or HTTP failure talking to the portal or Notion."""


class ConsistencyError(LearningSyncError):
    """Notion is missing structure a previous run should have created."""


class SchemaError(LearningSyncError):
    """Notion database properties don't have the expected types."""


class RecordSyncError(LearningSyncError):
    """A single create/update failed; carries the assignment that failed."""

    def __init__(self, kind: str, name: str, link: str, cause: BaseException) -> None:
        self.kind, self.name, self.link, self.cause = kind, name, link, cause
        super().__init__(f'Failed to {kind} "{name}" ({link}): {type(cause).__name__}: {cause}')


class PartialSyncError(LearningSyncError):
    def __init__(self, report: "UpsertReport") -> None:
        self.report = report
        super().__init__(
            f"{len(report.failures)} of {report.attempted} Notion writes failed "
            f"(created={report.created} updated={report.updated} already written)"
        )
