"""
Equipment aggregate merging
───────────────────────────
Keeps one page of equipment aggregates in memory, each carrying its own
independently paginated maintenance and mileage records.

Nested collections are always unique by id and sorted newest first
(start_datetime for maintenance records, record_date for mileage). Every
merge re-sorts the whole collection so pages may arrive in any order, and
maintenance_count is rebuilt whenever the maintenance records change.

The plain functions (merge_records, upsert_into_page, remove_from_page,
compute_maintenance_count) carry no state so a secondary read model, such as
a record-detail view, can apply the same mutations.
"""

import logging
from datetime import datetime
from typing import Iterable, Literal

from pydantic import BaseModel

from fleet_maintenance.config import settings
from fleet_maintenance.models.maintenance_activity import ActivityStatus, ActivityPriority
from fleet_maintenance.schemas.common import Page, count_pages
from fleet_maintenance.schemas.equipment import (
    EquipmentAggregate, EquipmentWithRecordsRequest, MaintenanceCount,
)
from fleet_maintenance.schemas.maintenance_record import MaintenanceRecordRead
from fleet_maintenance.utils.dates import as_utc
from fleet_maintenance.utils.exceptions import NotFoundException, InvalidFieldException

logger = logging.getLogger(__name__)

Collection = Literal["maintenance_records", "mileage_records"]

MAINTENANCE_RECORDS = "maintenance_records"
MILEAGE_RECORDS     = "mileage_records"

# Field each nested collection is ordered by (descending)
SORT_KEYS = {
    MAINTENANCE_RECORDS: "start_datetime",
    MILEAGE_RECORDS:     "record_date",
}

PRIORITY_RANK = {
    ActivityPriority.NO:        0,
    ActivityPriority.LOW:       1,
    ActivityPriority.MEDIUM:    2,
    ActivityPriority.HIGH:      3,
    ActivityPriority.IMMEDIATE: 4,
}

STATUS_RANK = {
    ActivityStatus.COMPLETED:   0,
    ActivityStatus.PENDING:     1,
    ActivityStatus.IN_PROGRESS: 2,
}


class PageWindow(BaseModel):
    """Slice [start, end) of a nested collection currently shown."""
    start: int = 0
    end:   int = 0


# ═══════════════════════════════════════════════════════════════════════════════
# DERIVED COUNTS
# ═══════════════════════════════════════════════════════════════════════════════
def record_status(statuses: Iterable[ActivityStatus], completed: bool) -> ActivityStatus:
    """
    Overall status of one maintenance record from its activity statuses:
    any in progress wins, then any pending. A record without activities
    follows its own end_datetime.
    """
    statuses = list(statuses)
    if not statuses:
        return ActivityStatus.COMPLETED if completed else ActivityStatus.PENDING
    if any(s == ActivityStatus.IN_PROGRESS for s in statuses):
        return ActivityStatus.IN_PROGRESS
    if any(s == ActivityStatus.PENDING for s in statuses):
        return ActivityStatus.PENDING
    return ActivityStatus.COMPLETED


def record_priority(priorities: Iterable[ActivityPriority]) -> ActivityPriority:
    """Highest activity priority, or NO when there are no activities."""
    return max(priorities, key=lambda p: PRIORITY_RANK[p], default=ActivityPriority.NO)


def compute_maintenance_count(records: Iterable[MaintenanceRecordRead]) -> MaintenanceCount:
    count = MaintenanceCount()
    for record in records:
        status = record_status((a.status for a in record.activities), record.is_completed)
        priority = record_priority(a.priority for a in record.activities)
        count.total += 1
        setattr(count.status, status.value, getattr(count.status, status.value) + 1)
        setattr(count.priority, priority.value, getattr(count.priority, priority.value) + 1)
    return count


# ═══════════════════════════════════════════════════════════════════════════════
# MERGE PRIMITIVES
# ═══════════════════════════════════════════════════════════════════════════════
def _sort_value(value):
    if isinstance(value, datetime):
        return as_utc(value)
    return value


def _rank(record, key: str) -> tuple:
    return _sort_value(getattr(record, key)), record.id


def sort_records(records: Iterable, key: str = "start_datetime") -> list:
    """Newest first. Ties fall back to id so the order never depends on arrival."""
    return sorted(records, key=lambda r: _rank(r, key), reverse=True)


def merge_records(existing: list, incoming: Iterable, key: str = "start_datetime") -> list:
    """
    Append the incoming records whose id is not already present, then re-sort.
    Records already held are kept as they are.
    """
    seen = {r.id for r in existing}
    merged = list(existing)
    for record in incoming:
        if record.id in seen:
            continue
        seen.add(record.id)
        merged.append(record)
    return sort_records(merged, key)


def upsert_into_page(page: Page | None, record, key: str = "start_datetime", page_size: int = 0) -> Page:
    """Replace by id, or prepend and bump total when the record is new."""
    if page is None:
        page = Page(total=0, limit=page_size, offset=0, pages=0, data=[])
    data = list(page.data)
    for i, current in enumerate(data):
        if current.id == record.id:
            data[i] = record
            return page.model_copy(update={"data": sort_records(data, key)})
    total = page.total + 1
    return page.model_copy(update={
        "data":  sort_records([record] + data, key),
        "total": total,
        "pages": count_pages(total, page.limit),
    })


def remove_from_page(page: Page, record_id: str) -> Page:
    data = [r for r in page.data if r.id != record_id]
    if len(data) == len(page.data):
        return page
    total = max(page.total - 1, 0)
    return page.model_copy(update={"data": data, "total": total, "pages": count_pages(total, page.limit)})


def contains(page: Page | None, record_id: str) -> bool:
    return page is not None and any(r.id == record_id for r in page.data)


# ═══════════════════════════════════════════════════════════════════════════════
# MERGER
# ═══════════════════════════════════════════════════════════════════════════════
class AggregateMerger:
    """
    Owns the in-memory equipment aggregates of one client session.

    `client` is anything exposing the async fetches of
    fleet_maintenance.client.api_client.MaintenanceApiClient. A failed fetch
    raises FetchFailedException and leaves state and windows untouched.
    """

    def __init__(self, client, page_size: int | None = None, mileage_page_size: int | None = None):
        self.client = client
        self.page_sizes = {
            MAINTENANCE_RECORDS: page_size or settings.FETCH_SIZE,
            MILEAGE_RECORDS:     mileage_page_size or settings.MILEAGE_FETCH_SIZE,
        }
        self.aggregates: list[EquipmentAggregate] = []
        self.total  = 0
        self.limit  = 0
        self.offset = 0
        self.pages  = 0
        # Bumped on every replace(); fetches started under an older generation are dropped
        self.generation = 0
        self._windows: dict[tuple[str, str], PageWindow] = {}
        # Length of the nested prefix known to match the server order. Records
        # upserted past it are held locally but do not count as fetched.
        self._confirmed: dict[tuple[str, str], int] = {}

    # ─── Top-level state ──────────────────────────────────────────────────────
    async def initial_load(self, request: EquipmentWithRecordsRequest | None = None) -> list[EquipmentAggregate]:
        request = request or EquipmentWithRecordsRequest(
            maintenance_limit=self.page_sizes[MAINTENANCE_RECORDS],
            mileage_limit=self.page_sizes[MILEAGE_RECORDS],
        )
        page = await self.client.equipments_with_records(request)
        self.replace(page)
        return self.aggregates

    def replace(self, page: Page[EquipmentAggregate]) -> None:
        self.generation += 1
        self.aggregates = [self._normalized(a) for a in page.data]
        self.total, self.limit, self.offset, self.pages = page.total, page.limit, page.offset, page.pages
        self._windows.clear()
        self._confirmed.clear()
        logger.info(f"Loaded {len(self.aggregates)} of {self.total} equipment aggregate(s)")

    def page(self) -> Page[EquipmentAggregate]:
        return Page[EquipmentAggregate](
            total=self.total, limit=self.limit, offset=self.offset, pages=self.pages,
            data=list(self.aggregates),
        )

    def find(self, equipment_id: str) -> EquipmentAggregate | None:
        return next((a for a in self.aggregates if a.id == equipment_id), None)

    def get(self, equipment_id: str) -> EquipmentAggregate:
        aggregate = self.find(equipment_id)
        if aggregate is None:
            raise NotFoundException("Equipment")
        return aggregate

    def _normalized(self, aggregate: EquipmentAggregate) -> EquipmentAggregate:
        """Enforce ordering and uniqueness on data coming off the wire."""
        for collection, key in SORT_KEYS.items():
            page = getattr(aggregate, collection)
            if page is not None:
                setattr(aggregate, collection, page.model_copy(update={"data": merge_records([], page.data, key)}))
        self._recount(aggregate)
        return aggregate

    def _recount(self, aggregate: EquipmentAggregate) -> None:
        records = aggregate.maintenance_records.data if aggregate.maintenance_records else []
        aggregate.maintenance_count = compute_maintenance_count(records)

    # ─── Windows ──────────────────────────────────────────────────────────────
    def window(self, equipment_id: str, collection: Collection = MAINTENANCE_RECORDS) -> PageWindow:
        self._check_collection(collection)
        current = self._windows.get((equipment_id, collection))
        if current is not None:
            return current
        page = getattr(self.get(equipment_id), collection)
        if page is None:
            return PageWindow()
        size = self.page_sizes[collection]
        return PageWindow(start=0, end=min(size, page.total, len(page.data)) if size else len(page.data))

    def visible_records(self, equipment_id: str, collection: Collection = MAINTENANCE_RECORDS) -> list:
        window = self.window(equipment_id, collection)
        page = getattr(self.get(equipment_id), collection)
        return page.data[window.start:window.end] if page else []

    # ─── Incremental pages ────────────────────────────────────────────────────
    async def fetch_next_page(
        self,
        equipment_id: str,
        requested_offset: int,
        collection: Collection = MAINTENANCE_RECORDS,
    ) -> PageWindow:
        """
        Make sure [requested_offset, requested_offset + page size) is loaded for
        one equipment, fetching only what is missing, and move the window there.
        """
        self._check_collection(collection)
        if requested_offset < 0:
            raise InvalidFieldException("Offset must be zero or greater", field="offset")

        aggregate = self.get(equipment_id)
        page = getattr(aggregate, collection)
        size = self.page_sizes[collection]
        total = page.total if page else 0
        records_needed = min(requested_offset + size, total)
        confirmed = self.confirmed_count(equipment_id, collection)

        if confirmed < records_needed:
            generation = self.generation
            # Continue from the confirmed prefix; the gap up to requested_offset is filled too
            fetched = await self._fetch(
                collection, equipment_id, limit=records_needed - confirmed, offset=confirmed,
            )

            if generation != self.generation or self.find(equipment_id) is None:
                logger.info(f"Discarded stale {collection} page for equipment {equipment_id}")
                return self.window(equipment_id, collection) if self.find(equipment_id) else PageWindow()

            self.merge_page(equipment_id, fetched, collection)
            total = fetched.total

        window = self._window_at(requested_offset, total, size)
        self._windows[(equipment_id, collection)] = window
        return window

    def confirmed_count(self, equipment_id: str, collection: Collection = MAINTENANCE_RECORDS) -> int:
        """How many leading nested records are known to match the server order."""
        page = getattr(self.get(equipment_id), collection)
        loaded = len(page.data) if page else 0
        return min(self._confirmed.get((equipment_id, collection), loaded), loaded)

    @staticmethod
    def _window_at(start: int, total: int, size: int) -> PageWindow:
        start = min(start, max(total - 1, 0))
        return PageWindow(start=start, end=min(start + size, total))

    async def _fetch(self, collection: str, equipment_id: str, limit: int, offset: int) -> Page:
        if collection == MAINTENANCE_RECORDS:
            return await self.client.maintenance_records_by_equipment(equipment_id, limit=limit, offset=offset)
        return await self.client.mileage_records_by_equipment(equipment_id, limit=limit, offset=offset)

    def merge_page(self, equipment_id: str, fetched: Page, collection: Collection = MAINTENANCE_RECORDS) -> EquipmentAggregate:
        """
        Merge a fetched page into one equipment's nested collection. A page
        that starts inside the confirmed prefix extends it; one that starts
        past it leaves a gap and is only held.
        """
        self._check_collection(collection)
        aggregate = self.get(equipment_id)
        key = SORT_KEYS[collection]
        confirmed = self.confirmed_count(equipment_id, collection)
        page = getattr(aggregate, collection)
        if page is None:
            page = Page(total=0, limit=self.page_sizes[collection], offset=0, pages=0, data=[])

        if fetched.offset <= confirmed:
            confirmed = max(confirmed, fetched.offset + len(fetched.data))
        self._confirmed[(equipment_id, collection)] = confirmed

        before = len(page.data)
        data = merge_records(page.data, fetched.data, key)
        setattr(aggregate, collection, page.model_copy(update={
            "data":  data,
            "total": fetched.total,
            "pages": count_pages(fetched.total, page.limit),
        }))
        if collection == MAINTENANCE_RECORDS:
            self._recount(aggregate)
        logger.info(f"Merged {len(data) - before} new {collection} into equipment {equipment_id}")
        return aggregate

    # ─── Single-record mutations ──────────────────────────────────────────────
    def apply_mutation(
        self,
        op: Literal["upsert", "delete"],
        record=None,
        record_id: str | None = None,
        equipment_id: str | None = None,
        collection: Collection = MAINTENANCE_RECORDS,
    ) -> list[str]:
        """
        Reflect a created, updated or deleted record in every aggregate that
        holds it. A new record is prepended to its owning equipment.
        Returns the ids of the aggregates that changed.
        """
        self._check_collection(collection)
        key = SORT_KEYS[collection]
        touched = []

        if op == "upsert":
            if record is None:
                raise InvalidFieldException("A record is required for upsert", field="record")
            owner = equipment_id or record.equipment_id
            holders = [a for a in self.aggregates if contains(getattr(a, collection), record.id)]
            if not holders:
                holders = [a for a in self.aggregates if a.id == owner]
            for aggregate in holders:
                self._track_confirmed(aggregate, collection, record.id, record)
                page = upsert_into_page(getattr(aggregate, collection), record, key, self.page_sizes[collection])
                setattr(aggregate, collection, page)
                touched.append(aggregate.id)
        elif op == "delete":
            record_id = record_id or (record.id if record is not None else None)
            if record_id is None:
                raise InvalidFieldException("A record id is required for delete", field="record_id")
            for aggregate in self.aggregates:
                page = getattr(aggregate, collection)
                if contains(page, record_id):
                    self._track_confirmed(aggregate, collection, record_id)
                    setattr(aggregate, collection, remove_from_page(page, record_id))
                    touched.append(aggregate.id)
        else:
            raise InvalidFieldException(f"Unknown mutation '{op}'", field="op")

        if collection == MAINTENANCE_RECORDS:
            for aggregate in self.aggregates:
                if aggregate.id in touched:
                    self._recount(aggregate)
        for equipment in touched:
            self._clamp_window(equipment, collection)
        return touched

    def _track_confirmed(self, aggregate: EquipmentAggregate, collection: str, record_id: str, record=None) -> None:
        """
        Adjust the confirmed prefix for a record about to be upserted or removed.

        A record that sorts before the last confirmed one also sits inside the
        server's prefix, as does any record once the whole collection is held.
        Anything else lands past the prefix with unfetched records possibly in
        between, so it stays unconfirmed.
        """
        page = getattr(aggregate, collection)
        confirmed = self.confirmed_count(aggregate.id, collection)
        head = [r for r in page.data[:confirmed] if r.id != record_id] if page else []
        if record is not None:
            key = SORT_KEYS[collection]
            complete = page is None or confirmed >= page.total
            if complete or (head and _rank(record, key) > _rank(head[-1], key)):
                head.append(record)
        self._confirmed[(aggregate.id, collection)] = len(head)

    def _clamp_window(self, equipment_id: str, collection: str) -> None:
        window = self._windows.get((equipment_id, collection))
        if window is None:
            return
        page = getattr(self.get(equipment_id), collection)
        total = page.total if page else 0
        self._windows[(equipment_id, collection)] = self._window_at(window.start, total, self.page_sizes[collection])

    @staticmethod
    def _check_collection(collection: str) -> None:
        if collection not in SORT_KEYS:
            raise InvalidFieldException(f"Unknown collection '{collection}'", field="collection")
