from __future__ import annotations

import asyncio
import itertools
import threading
from datetime import datetime
from typing import Any, Dict, List

import pytest

from learning_sync.config import Settings
from learning_sync.errors import ConsistencyError, PartialSyncError, RecordSyncError, SchemaError
from learning_sync.models import (
    ClassTag,
    CreateOperation,
    ExistingRecordRef,
    FullAssignmentRecord,
    TagColor,
    UpdateOperation,
)
from learning_sync.runner import sync_to_notion
from learning_sync.work_flows.upsert import (
    ClassTagRegistry,
    UpsertExecutor,
    existing_refs,
    load_class_tags,
)
from utils.ratelimiter import TokenBucket

BASE = "https://school.learning.example.com"
DB = "db-123"


def _record(link: str, class_name: str = "Bio", name: str = "Lab") -> FullAssignmentRecord:
    return FullAssignmentRecord(
        name=name,
        class_name=class_name,
        link=link,
        due_date=datetime(2022, 1, 7, 23, 59),
        description="<p>desc</p>",
    )


def _schema(options: List[Dict[str, str]] | None = None) -> Dict[str, Any]:
    return {"Class": {"type": "multi_select", "multi_select": {"options": options or []}}}


class FakeStore:
    """In-memory stand-in for NotionStore; mints option ids the way Notion does."""

    PALETTE = ("blue", "green", "red", "pink")

    def __init__(self, schema: Dict[str, Any] | None = None, pages: List[Dict[str, Any]] | None = None) -> None:
        self.schema = schema if schema is not None else _schema()
        self.pages = pages or []
        self.blocks: Dict[str, List[Dict[str, Any]]] = {}
        self.created: List[Dict[str, Any]] = []
        self.updated: List[tuple] = []
        self.block_updates: List[tuple] = []
        self._ids = itertools.count(1)
        self._lock = threading.Lock()
        self.options = {o["name"]: o for o in self.schema.get("Class", {}).get("multi_select", {}).get("options", [])}

    def query_collection(self, database_id: str) -> List[Dict[str, Any]]:
        return self.pages

    def get_collection_schema(self, database_id: str) -> Dict[str, Any]:
        return self.schema

    def _echo(self, page_id: str, properties: Dict[str, Any]) -> Dict[str, Any]:
        option = properties["Class"]["multi_select"][0]
        with self._lock:
            tag = self.options.get(option["name"])
            if tag is None:
                n = next(self._ids)
                color = option["color"] if option["color"] != "default" else self.PALETTE[n % len(self.PALETTE)]
                tag = {"id": f"opt-{n}", "name": option["name"], "color": color}
                self.options[option["name"]] = tag
        return {"id": page_id, "properties": {"Class": {"multi_select": [tag]}}}

    def create_record(self, database_id: str, properties: Dict[str, Any], children: List[Dict[str, Any]]) -> Dict[str, Any]:
        self.created.append({"properties": properties, "children": children})
        return self._echo(f"page-{len(self.created)}", properties)

    def update_record(self, page_id: str, properties: Dict[str, Any]) -> Dict[str, Any]:
        if page_id == "explode":
            raise RuntimeError("boom")
        self.updated.append((page_id, properties))
        return self._echo(page_id, properties)

    def list_blocks(self, block_id: str) -> List[Dict[str, Any]]:
        return self.blocks.get(block_id, [])

    def update_block(self, block_id: str, block: Dict[str, Any]) -> Dict[str, Any]:
        self.block_updates.append((block_id, block))
        return {"id": block_id}


def _executor(store: FakeStore, registry: ClassTagRegistry | None = None, strict: bool = False) -> UpsertExecutor:
    return UpsertExecutor(
        store, DB, BASE, registry or ClassTagRegistry(), limiter=TokenBucket(rate=1000, per=1.0), strict_tags=strict
    )


# ---------------------------------------------------------------------------
# registry / schema / existing pages
# ---------------------------------------------------------------------------

def test_registry_lookup_is_exact_and_case_sensitive() -> None:
    registry = ClassTagRegistry([ClassTag("1", "Bio", TagColor.RED)])
    assert registry.lookup("Bio").color is TagColor.RED
    assert registry.lookup("bio") is None


def test_registry_register_skips_known_ids() -> None:
    registry = ClassTagRegistry([ClassTag("1", "Bio")])
    assert registry.register(ClassTag("1", "Bio")) is False
    assert registry.register(ClassTag("2", "Bio")) is True
    assert registry.names() == ["Bio", "Bio"]


def test_load_class_tags_from_schema() -> None:
    registry = load_class_tags(_schema([{"id": "a", "name": "Bio", "color": "green"}]))
    assert registry.snapshot() == [ClassTag("a", "Bio", TagColor.GREEN)]


@pytest.mark.parametrize("schema", [{}, {"Class": {"type": "select", "select": {"options": []}}}])
def test_load_class_tags_rejects_wrong_schema(schema: Dict[str, Any]) -> None:
    with pytest.raises(SchemaError):
        load_class_tags(schema)


def test_existing_refs_normalizes_links() -> None:
    pages = [{"id": "p1", "properties": {"Link": {"rich_text": [{"href": BASE + "/a/b?c=1"}]}}}]
    assert existing_refs(pages) == [ExistingRecordRef("p1", "/a/b?c=1")]


def test_existing_refs_without_link_is_inconsistent() -> None:
    with pytest.raises(ConsistencyError):
        existing_refs([{"id": "p1", "properties": {"Link": {"rich_text": []}}}])


# ---------------------------------------------------------------------------
# execute
# ---------------------------------------------------------------------------

def test_create_uses_registry_color_and_description_block() -> None:
    store = FakeStore()
    registry = ClassTagRegistry([ClassTag("t1", "Bio", TagColor.PURPLE)])

    report = asyncio.run(_executor(store, registry).execute([CreateOperation(_record("/a"))], []))

    assert report.created == 1 and report.ok
    sent = store.created[0]
    assert sent["properties"]["Class"]["multi_select"] == [{"name": "Bio", "color": "purple"}]
    assert sent["children"][0]["paragraph"]["rich_text"][0]["text"]["content"] == "desc"


def test_update_patches_page_and_first_block() -> None:
    store = FakeStore()
    store.blocks["page-9"] = [{"id": "block-1"}, {"id": "block-2"}]

    report = asyncio.run(_executor(store).execute([], [UpdateOperation(_record("/a"), "page-9")]))

    assert report.updated == 1 and report.ok
    assert store.updated[0][0] == "page-9"
    assert [block_id for block_id, _ in store.block_updates] == ["block-1"]


def test_update_without_block_is_reported_as_consistency_error() -> None:
    store = FakeStore()
    report = asyncio.run(_executor(store).execute([], [UpdateOperation(_record("/a", name="Quiz"), "page-9")]))

    assert not report.ok
    op, error = report.failures[0]
    assert isinstance(error, RecordSyncError)
    assert isinstance(error.cause, ConsistencyError)
    assert '"Quiz"' in str(error) and "/a" in str(error)


def test_failure_does_not_stop_other_writes() -> None:
    store = FakeStore()
    store.blocks["ok"] = [{"id": "b"}]
    ops = [UpdateOperation(_record("/x"), "explode"), UpdateOperation(_record("/y"), "ok")]

    report = asyncio.run(_executor(store).execute([CreateOperation(_record("/z"))], ops))

    assert report.created == 1
    assert report.updated == 1
    assert len(report.failures) == 1
    assert report.attempted == 3


def test_concurrent_creates_for_unseen_class_both_succeed() -> None:
    store = FakeStore()
    executor = _executor(store)
    ops = [CreateOperation(_record("/a", "Chem")), CreateOperation(_record("/b", "Chem"))]

    report = asyncio.run(executor.execute(ops, []))

    assert report.created == 2
    assert executor.registry.lookup("Chem") is not None
    assert 1 <= executor.registry.names().count("Chem") <= 2


def test_strict_tags_reuses_color_from_first_sighting() -> None:
    store = FakeStore()
    executor = _executor(store, strict=True)
    ops = [CreateOperation(_record(f"/{i}", "Chem")) for i in range(3)]

    report = asyncio.run(executor.execute(ops, []))

    assert report.created == 3
    first_color = executor.registry.lookup("Chem").color.value
    colors = [c["properties"]["Class"]["multi_select"][0]["color"] for c in store.created]
    assert colors[0] == "default"
    assert colors[1:] == [first_color, first_color]
    assert executor.registry.names() == ["Chem"]


def test_load_reads_schema_once() -> None:
    store = FakeStore(schema=_schema([{"id": "a", "name": "Bio", "color": "green"}]))
    executor = asyncio.run(UpsertExecutor.load(store, DB, BASE, limiter=TokenBucket(rate=1000, per=1.0)))
    assert executor.registry.names() == ["Bio"]


# ---------------------------------------------------------------------------
# sync_to_notion
# ---------------------------------------------------------------------------

SETTINGS = Settings(
    learning_url_base=BASE,
    google_email="me@example.org",
    google_password="pw",
    notion_token="secret",
    notion_database_id=DB,
)


def test_sync_creates_and_updates() -> None:
    pages = [{"id": "page-b", "properties": {"Link": {"rich_text": [{"href": BASE + "/b"}]}}}]
    store = FakeStore(pages=pages)
    store.blocks["page-b"] = [{"id": "blk"}]

    report = asyncio.run(sync_to_notion(SETTINGS, [_record("/a"), _record("/b"), _record("/c")], store=store))

    assert (report.created, report.updated) == (2, 1)
    assert store.updated[0][0] == "page-b"


def test_sync_dry_run_writes_nothing() -> None:
    store = FakeStore()
    report = asyncio.run(sync_to_notion(SETTINGS, [_record("/a")], store=store, dry_run=True))
    assert report.attempted == 0
    assert store.created == []


def test_sync_raises_on_partial_failure() -> None:
    pages = [{"id": "page-b", "properties": {"Link": {"rich_text": [{"href": BASE + "/b"}]}}}]
    store = FakeStore(pages=pages)  # page-b has no block

    with pytest.raises(PartialSyncError) as excinfo:
        asyncio.run(sync_to_notion(SETTINGS, [_record("/a"), _record("/b")], store=store))

    assert excinfo.value.report.created == 1
    assert len(excinfo.value.report.failures) == 1


def test_sync_schema_mismatch_fails_before_writes() -> None:
    store = FakeStore(schema={"Class": {"type": "rich_text"}})
    with pytest.raises(SchemaError):
        asyncio.run(sync_to_notion(SETTINGS, [_record("/a")], store=store))
    assert store.created == []
