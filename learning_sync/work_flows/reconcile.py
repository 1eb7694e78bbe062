# learning_sync/work_flows/reconcile.py
from __future__ import annotations

import logging
from typing import Dict, List, Sequence
from urllib.parse import urlsplit

from ..models import (
    CreateOperation,
    ExistingRecordRef,
    FullAssignmentRecord,
    ReconcileResult,
    UpdateOperation,
)

logger = logging.getLogger(__name__)


def normalize_link(url: str) -> str:
    """Reduce a URL to path + ?query + #fragment; relative links pass through."""
    parts = urlsplit(url)
    normalized = parts.path
    if parts.query:
        normalized += "?" + parts.query
    if parts.fragment:
        normalized += "#" + parts.fragment
    return normalized


def reconcile(records: Sequence[FullAssignmentRecord], existing: Sequence[ExistingRecordRef]) -> ReconcileResult:
    """
    Split fresh records into creates and updates by normalized link.

    Pure; input order is kept in both outputs. When several existing pages
    share a link the first one wins.
    """
    by_link: Dict[str, str] = {}
    for ref in existing:
        if ref.normalized_link in by_link:
            logger.debug(
                "Duplicate Notion pages for %s: using %s, ignoring %s",
                ref.normalized_link, by_link[ref.normalized_link], ref.external_id,
            )
            continue
        by_link[ref.normalized_link] = ref.external_id

    to_create: List[CreateOperation] = []
    to_update: List[UpdateOperation] = []
    for record in records:
        external_id = by_link.get(normalize_link(record.link))
        if external_id is None:
            to_create.append(CreateOperation(record))
        else:
            to_update.append(UpdateOperation(record, external_id))

    logger.debug("Assignments to create: %s", [op.record.link for op in to_create])
    logger.debug("Assignments to update: %s", [(op.record.link, op.external_id) for op in to_update])
    return ReconcileResult(to_create=to_create, to_update=to_update)
