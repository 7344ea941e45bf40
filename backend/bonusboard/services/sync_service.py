# Overview: Service-layer operations for pulling Dapic sales into the local ledger (replace and additive modes).

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from datetime import date, timedelta
from typing import Callable, Iterable

from sqlalchemy.exc import SQLAlchemyError

from bonusboard.config import HISTORY_START, STORE_IDS
from bonusboard.services import sales_store
from bonusboard.services.concurrency import SyncLockRegistry
from bonusboard.services.dapic_client import DapicError
from bonusboard.services.dapic_records import RecordError, normalize_sale, page_records, sale_code_of
from bonusboard.time_utils import local_today, month_bounds, days_in_month

logger = logging.getLogger(__name__)

MODE_REPLACE = "replace"
MODE_ADDITIVE = "additive"

OUTCOME_OK = "ok"
OUTCOME_SKIPPED = "skipped"
OUTCOME_FAILED = "failed"

SKIP_DUPLICATE = "duplicate in run"
SKIP_EXISTING = "already stored"
SKIP_NO_CODE = "missing sale code"

ALREADY_SYNCING = "Sync already in progress for this period"


@dataclass(frozen=True)
class IngestOutcome:
    status: str
    sale_code: str
    reason: str | None = None


@dataclass
class SyncResult:
    success: bool
    store: str
    start: str | None = None
    end: str | None = None
    mode: str = MODE_REPLACE
    sales_count: int = 0
    duplicates_skipped: int = 0
    existing_skipped: int = 0
    skipped_count: int = 0
    failed_count: int = 0
    deleted_count: int = 0
    pages_fetched: int = 0
    error: str | None = None
    failures: list[dict] = field(default_factory=list)

    def record(self, outcome: IngestOutcome) -> None:
        if outcome.status == OUTCOME_OK:
            self.sales_count += 1
        elif outcome.status == OUTCOME_SKIPPED:
            self.skipped_count += 1
            if outcome.reason == SKIP_DUPLICATE:
                self.duplicates_skipped += 1
            elif outcome.reason == SKIP_EXISTING:
                self.existing_skipped += 1
        else:
            self.failed_count += 1
            self.failures.append({"sale_code": outcome.sale_code, "reason": outcome.reason})

    def to_dict(self) -> dict:
        return asdict(self)


class SalesSyncService:
    """
    Pulls vendaspdv pages from a sales source into the sales store.

    `source` only needs fetch_sales_page(store_id, start, end, page, page_size=...).
    Concurrent runs for the same (mode, store, start, end) are rejected through
    the injected lock registry.
    """

    def __init__(
        self,
        source,
        *,
        locks: SyncLockRegistry | None = None,
        page_size: int = 200,
        max_pages: int = 100,
        stores: Iterable[str] = STORE_IDS,
        today: Callable[[], date] = local_today,
    ):
        self.source = source
        self.locks = locks or SyncLockRegistry()
        self.page_size = page_size
        self.max_pages = max_pages
        self.stores = tuple(stores)
        self._today = today

    # ------------------------------------------------------------ per store

    def sync_store(self, store_id: str, start: date, end: date) -> SyncResult:
        """Replace mode: wipe the store's window, then re-ingest every page."""
        return self._run(MODE_REPLACE, store_id, start, end)

    def sync_store_additive(self, store_id: str, start: date, end: date) -> SyncResult:
        """Additive mode: insert only sales not yet stored; safe to interrupt and rerun."""
        return self._run(MODE_ADDITIVE, store_id, start, end)

    def _key(self, mode: str, store_id: str, start: date, end: date) -> tuple:
        return (mode, store_id, start.isoformat(), end.isoformat())

    def _run(self, mode: str, store_id: str, start: date, end: date) -> SyncResult:
        key = self._key(mode, store_id, start, end)
        result = SyncResult(success=True, store=store_id, start=start.isoformat(), end=end.isoformat(), mode=mode)
        if not self.locks.acquire(key):
            result.success = False
            result.error = ALREADY_SYNCING
            return result

        logger.info("Sync started: %s %s (%s to %s)", mode, store_id, key[2], key[3])
        try:
            if mode == MODE_REPLACE:
                result.deleted_count = sales_store.delete_sales_by_period(store_id, start, end)
            self._ingest_pages(mode, store_id, start, end, result)
        except (DapicError, SQLAlchemyError) as exc:
            logger.error("Sync failed: %s %s after %d page(s): %s", mode, store_id, result.pages_fetched, exc)
            result.success = False
            result.error = str(exc)
        finally:
            self.locks.release(key, success=result.success)

        if result.duplicates_skipped:
            logger.info("Sync %s %s skipped %d in-run duplicates", mode, store_id, result.duplicates_skipped)
        logger.info(
            "Sync finished: %s %s saved=%d skipped=%d failed=%d",
            mode, store_id, result.sales_count, result.skipped_count, result.failed_count,
        )
        return result

    def _ingest_pages(self, mode: str, store_id: str, start: date, end: date, result: SyncResult) -> None:
        seen: set[str] = set()
        page = 1
        while page <= self.max_pages:
            raw_page = self.source.fetch_sales_page(store_id, start, end, page, page_size=self.page_size)
            result.pages_fetched += 1
            records = page_records(raw_page)
            if not records:
                break

            for raw in records:
                result.record(self._ingest_record(mode, store_id, raw, seen))

            if len(records) < self.page_size:
                break
            page += 1
        else:
            logger.warning("Sync %s %s stopped at the %d page ceiling", mode, store_id, self.max_pages)

    def _ingest_record(self, mode: str, store_id: str, raw, seen: set[str]) -> IngestOutcome:
        sale_code = sale_code_of(raw) if isinstance(raw, dict) else ""
        if not sale_code:
            return IngestOutcome(OUTCOME_SKIPPED, sale_code, SKIP_NO_CODE)
        if sale_code in seen:
            return IngestOutcome(OUTCOME_SKIPPED, sale_code, SKIP_DUPLICATE)
        seen.add(sale_code)

        try:
            if mode == MODE_ADDITIVE and sales_store.sale_exists(sale_code, store_id):
                return IngestOutcome(OUTCOME_SKIPPED, sale_code, SKIP_EXISTING)
            record = normalize_sale(raw, self._today())
            sales_store.create_sale_with_items_and_receipts(store_id, record)
        except (RecordError, SQLAlchemyError, TypeError, ValueError) as exc:
            logger.warning("Failed to ingest sale %s for %s: %s", sale_code, store_id, exc)
            return IngestOutcome(OUTCOME_FAILED, sale_code, str(exc))
        return IngestOutcome(OUTCOME_OK, sale_code)

    # ----------------------------------------------------------- all stores

    def sync_all_stores(self, start: date, end: date, *, additive: bool = False) -> list[SyncResult]:
        """Sequential, store by store; a failed store never blocks the next one."""
        run = self.sync_store_additive if additive else self.sync_store
        return [run(store_id, start, end) for store_id in self.stores]

    def sync_full_history(self) -> list[SyncResult]:
        return self.sync_all_stores(date.fromisoformat(HISTORY_START), self._today())

    def sync_current_month(self) -> list[SyncResult]:
        start, end = month_bounds(self._today())
        return self.sync_all_stores(start, end)

    def sync_today(self) -> list[SyncResult]:
        today = self._today()
        return self.sync_all_stores(today, today)

    def sync_month(self, year: int, month: int, store_id: str | None = None) -> list[SyncResult]:
        """Additive backfill of one calendar month for one store, or every store."""
        start = date(year, month, 1)
        end = date(year, month, days_in_month(year, month))
        if store_id is None:
            return self.sync_all_stores(start, end, additive=True)
        if store_id not in self.stores:
            raise ValueError(f"Unknown store_id: {store_id}")
        return [self.sync_store_additive(store_id, start, end)]

    def resync(self, dates: Iterable[date], stores: Iterable[str] | None = None) -> list[SyncResult]:
        """Replace-mode resync of single days, e.g. the ones flagged by check_discrepancies."""
        targets = tuple(stores) if stores else self.stores
        return [self.sync_store(store_id, day, day) for day in dates for store_id in targets]

    # --------------------------------------------------------------- status

    def get_sync_status(self, store_id: str, start: date, end: date, mode: str = MODE_REPLACE) -> str:
        return self.locks.status(self._key(mode, store_id, start, end)) or "not_started"

    def check_discrepancies(self, days: int = 10) -> dict:
        """
        Compare local sale counts with Dapic's TotalRegistros for the last `days` days.

        Stores that fail upstream are reported under 'errors', never raised.
        """
        today = self._today()
        dates = [today - timedelta(days=offset) for offset in range(days)]
        discrepancies = []
        errors = []
        for store_id in self.stores:
            local_counts = sales_store.count_sales_by_day(store_id, dates[-1], today)
            for day in dates:
                try:
                    raw_page = self.source.fetch_sales_page(store_id, day, day, 1, page_size=1)
                except DapicError as exc:
                    errors.append({"store": store_id, "date": day.isoformat(), "error": str(exc)})
                    continue
                remote_count = int((raw_page or {}).get("TotalRegistros") or 0)
                local_count = local_counts.get(day, 0)
                if remote_count != local_count:
                    discrepancies.append({
                        "date": day.isoformat(),
                        "store": store_id,
                        "local_count": local_count,
                        "dapic_count": remote_count,
                        "count_diff": remote_count - local_count,
                    })

        discrepancies.sort(key=lambda d: abs(d["count_diff"]), reverse=True)
        discrepancies.sort(key=lambda d: d["date"], reverse=True)
        return {
            "days_checked": days,
            "total_discrepancies": len(discrepancies),
            "discrepancies": discrepancies,
            "errors": errors,
        }
