# -*- coding: utf-8 -*-
"""Sign in to the Learning portal, scrape one week of assignments and sync them to Notion."""
from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from datetime import date, datetime
from dataclasses import replace
from typing import List, Optional

from playwright.async_api import async_playwright

from .config import Settings, load_settings
from .errors import LearningSyncError, PartialSyncError
from .models import FullAssignmentRecord, UpsertReport
from .notion.store import NotionStore
from .portals import PortalEngine, get_portal
from .work_flows.enrich import enrich_assignments
from .work_flows.fetch_week import fetch_week_assignments
from .work_flows.reconcile import reconcile
from .work_flows.upsert import UpsertExecutor

logger = logging.getLogger("learning_sync")


async def scrape_week(session: PortalEngine, start_date: Optional[date] = None) -> List[FullAssignmentRecord]:
    """Log in, then scrape and enrich one week of assignments."""
    await session.login()
    await session.wait_until_ready()

    user = await session.read_session_user()
    token = await session.read_session_token()
    class_ids = await session.read_class_ids()
    logger.info("Signed in as %s %s (%s); %d classes", user.first_name, user.last_name, user.login, len(class_ids))

    summaries = await fetch_week_assignments(session, user.login, class_ids, token, start_date)
    return await enrich_assignments(session, summaries)


async def sync_to_notion(
    settings: Settings,
    records: List[FullAssignmentRecord],
    store: Optional[NotionStore] = None,
    strict_tags: bool = False,
    dry_run: bool = False,
) -> UpsertReport:
    """Reconcile records against the Notion database and write them."""
    store = store or NotionStore(settings.notion_token)
    executor = await UpsertExecutor.load(
        store, settings.notion_database_id, settings.learning_url_base, strict_tags=strict_tags
    )
    plan = reconcile(records, await executor.load_existing())
    logger.info("Reconciled: %d to create, %d to update", len(plan.to_create), len(plan.to_update))

    if dry_run:
        for op in [*plan.to_create, *plan.to_update]:
            logger.info('[dry-run] Would %s "%s" (%s)', op.kind, op.record.name, op.record.link)
        return UpsertReport()

    report = await executor.execute(plan.to_create, plan.to_update)
    if not report.ok:
        raise PartialSyncError(report)
    return report


async def run(settings: Settings, start_date: Optional[date] = None, strict_tags: bool = False, dry_run: bool = False) -> UpsertReport:
    """One end-to-end pass: browser session for the scrape, then Notion writes."""
    Engine = get_portal(settings.portal)
    async with async_playwright() as pw:
        browser = await pw.chromium.launch(headless=settings.headless)
        try:
            context = await browser.new_context()
            page = await context.new_page()
            session = Engine(
                page,
                settings.google_email,
                settings.google_password,
                settings.learning_url_base,
                organization_domain=settings.google_organization_domain,
            )
            records = await scrape_week(session, start_date)
        finally:
            await browser.close()

    return await sync_to_notion(settings, records, strict_tags=strict_tags, dry_run=dry_run)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Sync a week of Learning portal assignments into Notion.")
    parser.add_argument(
        "--start-date",
        type=lambda s: datetime.strptime(s, "%Y-%m-%d").date(),
        help="First day of the week to scrape (YYYY-MM-DD). Defaults to the portal's current week.",
    )
    parser.add_argument("--dry-run", action="store_true", help="Scrape and reconcile, but skip Notion writes.")
    parser.add_argument(
        "--strict-tags",
        action="store_true",
        help="Write one page per never-seen class first so concurrent writes can't mint duplicate tags.",
    )
    parser.add_argument("--headless", action="store_true", help="Run Chromium headless (overrides HEADLESS).")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s %(message)s")
    try:
        settings = load_settings()
        logging.getLogger().setLevel(settings.log_level)
        if args.headless:
            settings = replace(settings, headless=True)
        report = asyncio.run(
            run(settings, start_date=args.start_date, strict_tags=args.strict_tags, dry_run=args.dry_run)
        )
    except LearningSyncError as e:
        logger.error("%s: %s", type(e).__name__, e)
        return 1
    except Exception as e:
        logger.exception("Run failed: %s", e)
        return 1
    logger.info("Run complete. created=%s updated=%s", report.created, report.updated)
    return 0


if __name__ == "__main__":
    sys.exit(main())
