# learning_sync/work_flows/upsert.py
"""
Apply create/update operations to the Notion calendar database.

Class tags
----------
Every page carries one ``Class`` multi-select option named after its class.
Notion mints a new option (with its own id) the first time a page uses an
unseen name, so the executor keeps a registry of known options and reuses
their colors. All writes run concurrently and each one appends the tag
Notion echoes back as soon as it finishes.

Two writes that both start before either has finished can each see a class
as new. Notion may then create two options with the same name. That is
accepted (``strict_tags=False``). With ``strict_tags=True`` one write per
never-seen class runs first, one at a time, and the rest run concurrently
afterwards.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

from utils.ratelimiter import NOTION_RATE, TokenBucket

from ..errors import ConsistencyError, RecordSyncError, SchemaError
from ..models import (
    ClassTag,
    CreateOperation,
    ExistingRecordRef,
    FullAssignmentRecord,
    UpdateOperation,
    UpsertOperation,
    UpsertReport,
)
from ..notion.properties import (
    CLASS,
    LINK,
    build_assignment_properties,
    description_block,
    serialize_properties,
)
from ..notion.store import NotionStore
from .reconcile import normalize_link

logger = logging.getLogger(__name__)


class ClassTagRegistry:
    """Append-only list of class tags shared by every write in a batch."""

    def __init__(self, tags: Iterable[ClassTag] = ()) -> None:
        self._tags: List[ClassTag] = list(tags)

    def lookup(self, name: str) -> Optional[ClassTag]:
        return next((tag for tag in self._tags if tag.name == name), None)

    def register(self, tag: ClassTag) -> bool:
        """Append ``tag`` unless one with the same id is known. True if appended."""
        if any(known.id == tag.id for known in self._tags):
            return False
        self._tags.append(tag)
        return True

    def snapshot(self) -> List[ClassTag]:
        return list(self._tags)

    def names(self) -> List[str]:
        return [tag.name for tag in self._tags]

    def __len__(self) -> int:
        return len(self._tags)


def load_class_tags(schema: Dict[str, Any]) -> ClassTagRegistry:
    """Registry seeded from the database's Class options; SchemaError if Class isn't multi_select."""
    prop = schema.get(CLASS)
    if not prop or prop.get("type") != "multi_select":
        found = prop.get("type") if prop else "missing"
        raise SchemaError(f"{CLASS} property type is {found}, expected multi_select")
    options = prop.get("multi_select", {}).get("options", [])
    return ClassTagRegistry(ClassTag.from_notion(option) for option in options)


def existing_refs(pages: Sequence[Dict[str, Any]]) -> List[ExistingRecordRef]:
    """Project Notion pages to (page id, normalized Link href)."""
    refs: List[ExistingRecordRef] = []
    for page in pages:
        rich_text = page.get("properties", {}).get(LINK, {}).get("rich_text") or []
        href = rich_text[0].get("href") if rich_text else None
        if not href:
            raise ConsistencyError(f"Notion page {page.get('id')} has no {LINK} URL")
        refs.append(ExistingRecordRef(external_id=page["id"], normalized_link=normalize_link(href)))
    return refs


class UpsertExecutor:
    def __init__(
        self,
        store: NotionStore,
        database_id: str,
        base_url: str,
        registry: ClassTagRegistry,
        limiter: Optional[TokenBucket] = None,
        strict_tags: bool = False,
    ) -> None:
        self.store = store
        self.database_id = database_id
        self.base_url = base_url
        self.registry = registry
        self.limiter = limiter or TokenBucket(rate=NOTION_RATE, per=1.0)
        self.strict_tags = strict_tags

    @classmethod
    async def load(cls, store: NotionStore, database_id: str, base_url: str, **kwargs: Any) -> "UpsertExecutor":
        """Read the database schema once and seed the tag registry from it."""
        executor = cls(store, database_id, base_url, ClassTagRegistry(), **kwargs)
        schema = await executor._call(store.get_collection_schema, database_id)
        executor.registry = load_class_tags(schema)
        logger.debug("Loaded %d class tags: %s", len(executor.registry), executor.registry.names())
        return executor

    async def load_existing(self) -> List[ExistingRecordRef]:
        pages = await self._call(self.store.query_collection, self.database_id)
        return existing_refs(pages)

    async def execute(
        self,
        to_create: Sequence[CreateOperation],
        to_update: Sequence[UpdateOperation],
    ) -> UpsertReport:
        """Run every operation; failures are collected, never retried or rolled back."""
        report = UpsertReport()
        operations: List[UpsertOperation] = [*to_create, *to_update]

        if self.strict_tags:
            first_sightings = self._first_sightings(operations)
            for op in first_sightings:
                await self._attempt(op, report)
            operations = [op for op in operations if not any(op is first for first in first_sightings)]

        await asyncio.gather(*(self._attempt(op, report) for op in operations))

        for op, error in report.failures:
            logger.error("%s", error)
        logger.info(
            "Notion sync: created=%s updated=%s failed=%s",
            report.created, report.updated, len(report.failures),
        )
        return report

    def _first_sightings(self, operations: Sequence[UpsertOperation]) -> List[UpsertOperation]:
        seen = set(self.registry.names())
        firsts: List[UpsertOperation] = []
        for op in operations:
            if op.record.class_name not in seen:
                seen.add(op.record.class_name)
                firsts.append(op)
        return firsts

    async def _attempt(self, op: UpsertOperation, report: UpsertReport) -> None:
        record = op.record
        try:
            if isinstance(op, UpdateOperation):
                page = await self._update(record, op.external_id)
            else:
                page = await self._create(record)
        except Exception as e:
            report.failures.append((op, RecordSyncError(op.kind, record.name, record.link, e)))
            return

        self._register_page_tag(page)
        if isinstance(op, UpdateOperation):
            report.updated += 1
        else:
            report.created += 1

    async def _create(self, record: FullAssignmentRecord) -> Dict[str, Any]:
        logger.debug('Creating assignment "%s" (%s)', record.name, record.link)
        page = await self._call(
            self.store.create_record,
            self.database_id,
            self._properties(record),
            [description_block(record.description)],
        )
        logger.debug('Created assignment "%s" (%s)', record.name, record.link)
        return page

    async def _update(self, record: FullAssignmentRecord, page_id: str) -> Dict[str, Any]:
        logger.debug('Updating assignment "%s" (%s)', record.name, record.link)
        page = await self._call(self.store.update_record, page_id, self._properties(record))

        blocks = await self._call(self.store.list_blocks, page_id)
        if not blocks:
            raise ConsistencyError(f"Notion page {page_id} has no description block to update")
        await self._call(self.store.update_block, blocks[0]["id"], description_block(record.description))

        logger.debug('Updated assignment "%s" (%s)', record.name, record.link)
        return page

    def _properties(self, record: FullAssignmentRecord) -> Dict[str, Any]:
        # registry read happens when the write starts
        tag = self.registry.lookup(record.class_name)
        props = build_assignment_properties(record, self.base_url, tag.color if tag else None)
        return serialize_properties(props)

    def _register_page_tag(self, page: Dict[str, Any]) -> None:
        options = page.get("properties", {}).get(CLASS, {}).get("multi_select") or []
        if not options:
            return
        tag = ClassTag.from_notion(options[0])
        if self.registry.register(tag):
            logger.debug("Registered class tag %r (%s)", tag.name, tag.color.value)

    async def _call(self, fn: Callable[..., Any], *args: Any) -> Any:
        await self.limiter.acquire()
        return await asyncio.to_thread(fn, *args)
