import logging

from fleet_maintenance.core.aggregate import AggregateMerger, MAINTENANCE_RECORDS, MILEAGE_RECORDS
from fleet_maintenance.models.maintenance_activity import ActivityStatus, ActivityPriority
from fleet_maintenance.schemas.equipment import EquipmentWithRecordsRequest, SortSelection
from fleet_maintenance.utils.exceptions import FetchFailedException, InvalidFieldException

logger = logging.getLogger(__name__)

# Filter group -> allowed option values
FILTER_GROUPS = {
    "by_status":   [s.value for s in ActivityStatus],
    "by_priority": [p.value for p in ActivityPriority],
}


class FilterSortCoordinator:
    """
    Drives full refetches of the equipment aggregates when filters, sort or
    the equipment page change, and replaces the merger state with the result.

    Every request takes a ticket; only the newest ticket may touch state, so
    a slow response to an older request is dropped (last request wins).
    The displayed criteria move only when their request succeeds.
    """

    def __init__(self, merger: AggregateMerger, limit: int = 10):
        self.merger = merger
        self.filters: dict[str, list[str]] = {}
        self.sort = SortSelection()
        self.limit = limit
        self.offset = 0
        self._issued = 0

    @property
    def latest_ticket(self) -> int:
        return self._issued

    def build_request(
        self,
        filters: dict[str, list[str]] | None = None,
        sort: SortSelection | None = None,
        offset: int | None = None,
    ) -> EquipmentWithRecordsRequest:
        filters = self.filters if filters is None else filters
        sort = sort or self.sort
        return EquipmentWithRecordsRequest(
            limit=self.limit,
            offset=self.offset if offset is None else offset,
            maintenance_limit=self.merger.page_sizes[MAINTENANCE_RECORDS],
            maintenance_offset=0,
            mileage_limit=self.merger.page_sizes[MILEAGE_RECORDS],
            mileage_offset=0,
            by_status=filters.get("by_status") or None,
            by_priority=filters.get("by_priority") or None,
            sort_by=sort,
        )

    async def apply(
        self,
        filters: dict[str, list[str]] | None = None,
        sort: SortSelection | None = None,
        offset: int | None = None,
    ) -> bool:
        """
        Refetch with the given criteria (None keeps the current value).
        Returns False when the response was discarded as stale.
        """
        next_filters = self.filters if filters is None else self._checked(filters)
        next_sort = sort or self.sort
        next_offset = self.offset if offset is None else offset
        request = self.build_request(next_filters, next_sort, next_offset)

        self._issued += 1
        ticket = self._issued
        try:
            page = await self.merger.client.equipments_with_records(request)
        except FetchFailedException:
            if ticket != self._issued:
                logger.info(f"Ignored failure of superseded aggregate request #{ticket}")
                return False
            logger.warning(f"Aggregate request #{ticket} failed; keeping previous state")
            raise

        if ticket != self._issued:
            logger.info(f"Discarded stale aggregate response #{ticket} (latest is #{self._issued})")
            return False

        self.merger.replace(page)
        self.filters, self.sort, self.offset = next_filters, next_sort, next_offset
        return True

    async def load(self) -> bool:
        return await self.apply()

    async def set_filter(self, group: str, values: list[str]) -> bool:
        filters = {**self.filters, group: list(values)}
        return await self.apply(filters=filters, offset=0)

    async def clear_filters(self) -> bool:
        return await self.apply(filters={}, offset=0)

    async def set_sort(self, by: str, order: str = "desc") -> bool:
        return await self.apply(sort=SortSelection(by=by, order=order))

    async def go_to(self, offset: int) -> bool:
        if offset < 0:
            raise InvalidFieldException("Offset must be zero or greater", field="offset")
        return await self.apply(offset=offset)

    @staticmethod
    def _checked(filters: dict[str, list[str]]) -> dict[str, list[str]]:
        checked = {}
        for group, values in filters.items():
            allowed = FILTER_GROUPS.get(group)
            if allowed is None:
                raise InvalidFieldException(f"Unknown filter group '{group}'", field=group)
            values = [v.value if hasattr(v, "value") else v for v in values]
            unknown = [v for v in values if v not in allowed]
            if unknown:
                raise InvalidFieldException(f"Unknown {group} option(s): {', '.join(unknown)}", field=group)
            if values:
                checked[group] = list(dict.fromkeys(values))
        return checked
