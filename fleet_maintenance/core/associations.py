"""
Association checks for maintenance records.

Every check raises before anything is written, so a rejected batch is never
partially applied. Items and existing associations may be pydantic models,
ORM-free read models or plain dicts.
"""

import logging
import math
from decimal import Decimal
from typing import Any, Iterable

from fleet_maintenance.config import settings
from fleet_maintenance.utils.exceptions import (
    DuplicateAssociationException,
    DuplicateInBatchException,
    EmptyBatchException,
    BatchTooLargeException,
    InvalidQuantityException,
    InvalidPriceException,
    IncompatibleMaintenanceTypeException,
)

logger = logging.getLogger(__name__)


def _field(item: Any, name: str, default=None):
    if isinstance(item, dict):
        return item.get(name, default)
    return getattr(item, name, default)


# ─── Single inserts ───────────────────────────────────────────────────────────
def validate_single(
    maintenance_record_id: str,
    entity_id: str,
    existing: Iterable,
    id_field: str = "entity_id",
    entity: str = "Item",
) -> None:
    """Reject entity_id when it is already linked to the same maintenance record."""
    for association in existing:
        record_id = _field(association, "maintenance_record_id", maintenance_record_id)
        if record_id == maintenance_record_id and _field(association, id_field) == entity_id:
            raise DuplicateAssociationException(entity)


def validate_spare_part(quantity, unit_price=None) -> None:
    minimum, maximum = settings.MIN_QUANTITY, settings.MAX_QUANTITY
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise InvalidQuantityException(minimum, maximum)
    if not minimum <= quantity <= maximum:
        raise InvalidQuantityException(minimum, maximum)

    if unit_price is None:
        return
    if isinstance(unit_price, bool) or not isinstance(unit_price, (int, float, Decimal)):
        raise InvalidPriceException(settings.MAX_UNIT_PRICE)
    if isinstance(unit_price, float) and math.isnan(unit_price):
        raise InvalidPriceException(settings.MAX_UNIT_PRICE)
    if isinstance(unit_price, Decimal) and unit_price.is_nan():
        raise InvalidPriceException(settings.MAX_UNIT_PRICE)
    if not 0 <= unit_price <= settings.MAX_UNIT_PRICE:
        raise InvalidPriceException(settings.MAX_UNIT_PRICE)


# ─── Batches ──────────────────────────────────────────────────────────────────
def validate_bulk(
    items: list,
    id_field: str = "entity_id",
    require_items: bool = True,
    max_items: int | None = None,
) -> list[str]:
    """
    Cardinality and uniqueness checks for one batch. Returns the entity ids
    in batch order.
    """
    max_items = max_items or settings.BULK_MAX_ITEMS
    if require_items and not items:
        raise EmptyBatchException()
    if len(items) > max_items:
        raise BatchTooLargeException(max_items)

    ids = [_field(item, id_field) for item in items]
    seen, duplicates = set(), []
    for entity_id in ids:
        if entity_id in seen and entity_id not in duplicates:
            duplicates.append(entity_id)
        seen.add(entity_id)
    if duplicates:
        logger.info(f"Rejected batch with duplicated {id_field}: {duplicates}")
        raise DuplicateInBatchException(duplicates)
    return ids


def validate_activity_bulk(items: list, require_items: bool = True) -> list[str]:
    return validate_bulk(items, "activity_id", require_items)


def validate_spare_part_bulk(items: list, require_items: bool = True) -> list[str]:
    ids = validate_bulk(items, "spare_part_id", require_items)
    for item in items:
        validate_spare_part(_field(item, "quantity"), _field(item, "unit_price"))
    return ids


# ─── Maintenance type / activity consistency ──────────────────────────────────
def _type_ids(activity) -> list[str]:
    ids = _field(activity, "maintenance_type_ids")
    if ids is not None:
        return list(ids)
    return [_field(t, "id") for t in _field(activity, "maintenance_types", []) or []]


def is_activity_allowed(maintenance_type_id: str, activity) -> bool:
    return maintenance_type_id in _type_ids(activity)


def resolve_allowed_activities(maintenance_type_id: str | None, activities: Iterable) -> list:
    """Activities that may be performed under the given maintenance type."""
    if maintenance_type_id is None:
        return []
    return [a for a in activities if is_activity_allowed(maintenance_type_id, a)]


def ensure_type_compatible(
    maintenance_type_id: str,
    selected_activity_ids: Iterable[str],
    activities: Iterable,
) -> None:
    """
    Every selected activity must allow the maintenance type. Unknown activity
    ids count as incompatible. No selection is always compatible.
    """
    selected = list(dict.fromkeys(selected_activity_ids))
    if not selected:
        return
    allowed = {_field(a, "id") for a in resolve_allowed_activities(maintenance_type_id, activities)}
    orphaned = [activity_id for activity_id in selected if activity_id not in allowed]
    if orphaned:
        raise IncompatibleMaintenanceTypeException(orphaned)


class MaintenanceSelection:
    """
    Current maintenance type plus the activities picked for it.

    Eligibility is recomputed on every change. A type change that would
    orphan picked activities is rejected and the selection stays as it was.
    """

    def __init__(self, activities: Iterable, maintenance_type_id: str | None = None, selected: Iterable[str] = ()):
        self.activities = list(activities)
        self.maintenance_type_id = maintenance_type_id
        self.selected: list[str] = []
        for activity_id in selected:
            self.select(activity_id)

    @property
    def allowed(self) -> list:
        return resolve_allowed_activities(self.maintenance_type_id, self.activities)

    def change_type(self, maintenance_type_id: str) -> None:
        ensure_type_compatible(maintenance_type_id, self.selected, self.activities)
        self.maintenance_type_id = maintenance_type_id

    def select(self, activity_id: str) -> None:
        if activity_id in self.selected:
            return
        if self.maintenance_type_id is not None:
            ensure_type_compatible(self.maintenance_type_id, [activity_id], self.activities)
        self.selected.append(activity_id)

    def deselect(self, activity_id: str) -> None:
        self.selected = [a for a in self.selected if a != activity_id]

    def set_catalog(self, activities: Iterable) -> None:
        activities = list(activities)
        if self.maintenance_type_id is not None:
            ensure_type_compatible(self.maintenance_type_id, self.selected, activities)
        self.activities = activities
