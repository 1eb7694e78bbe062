# learning_sync/work_flows/enrich.py
from __future__ import annotations

import asyncio
import logging
from typing import List, Sequence

from ..errors import FetchError, ParseError, SessionOriginError
from ..models import AssignmentSummary, FullAssignmentRecord
from ..parsers.assignment_detail import parse_assignment_detail
from ..portals.base import PortalEngine

logger = logging.getLogger(__name__)


async def enrich_assignment(session: PortalEngine, summary: AssignmentSummary) -> FullAssignmentRecord:
    """Fetch one assignment's detail page and merge its fields into the summary."""
    try:
        html = await session.fetch(summary.link)
    except (FetchError, SessionOriginError) as e:
        raise FetchError(f'Could not fetch "{summary.name}" ({summary.link}): {e}') from e

    try:
        detail = parse_assignment_detail(html)
    except ParseError as e:
        raise ParseError(f'"{summary.name}" ({summary.link}): {e}') from e

    return FullAssignmentRecord.from_summary(
        summary,
        description=detail.description,
        sections=detail.sections,
        total_points=detail.total_points,
    )


async def enrich_assignments(session: PortalEngine, summaries: Sequence[AssignmentSummary]) -> List[FullAssignmentRecord]:
    """
    Enrich every summary concurrently, preserving input order.

    The first failure fails the batch. Fetches already in flight keep
    running but their results are thrown away.
    """
    records = await asyncio.gather(*(enrich_assignment(session, s) for s in summaries))
    logger.info("Enriched %d assignments", len(records))
    return list(records)
