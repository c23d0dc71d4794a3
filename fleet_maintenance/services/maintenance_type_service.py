from sqlalchemy.orm import Session

from fleet_maintenance.core.taxonomy import TaxonomyStore, UNSET
from fleet_maintenance.models.maintenance_type import MaintenanceType
from fleet_maintenance.models.maintenance_record import MaintenanceRecord
from fleet_maintenance.models.maintenance_stage import MaintenanceStage
from fleet_maintenance.schemas.maintenance_type import (
    MaintenanceTypeCreateRequest, MaintenanceTypeUpdateRequest, MaintenanceTypeNode,
)
from fleet_maintenance.utils.audit import log_action
from fleet_maintenance.utils.dates import isoformat
from fleet_maintenance.utils.exceptions import ResourceInUseException


def _serialize(t: MaintenanceType) -> dict:
    return {
        "id":         t.id,
        "type":       t.type,
        "parent_id":  t.parentId,
        "level":      t.level,
        "path":       t.path,
        "user_id":    t.userId,
        "created_at": isoformat(t.createdAt),
        "updated_at": isoformat(t.updatedAt),
    }


def _to_node(t: MaintenanceType) -> MaintenanceTypeNode:
    return MaintenanceTypeNode(
        id=t.id, type=t.type, parent_id=t.parentId, level=t.level, path=t.path,
        user_id=t.userId, created_at=t.createdAt, updated_at=t.updatedAt,
    )


class MaintenanceTypeService:

    def _rows(self, db: Session, user_id: str) -> list[MaintenanceType]:
        return db.query(MaintenanceType).filter(MaintenanceType.userId == user_id).all()

    def load_store(self, db: Session, user_id: str) -> TaxonomyStore:
        """The user's whole taxonomy; structural checks always run against it."""
        return TaxonomyStore((_to_node(t) for t in self._rows(db, user_id)), user_id=user_id)

    def list_types(self, db: Session, user_id: str, limit: int, offset: int) -> tuple[list[dict], int]:
        q = db.query(MaintenanceType).filter(MaintenanceType.userId == user_id)
        total = q.count()
        q = q.order_by(MaintenanceType.level, MaintenanceType.path, MaintenanceType.type).offset(offset)
        if limit > 0:
            q = q.limit(limit)
        return [_serialize(t) for t in q.all()], total

    def get_tree(self, db: Session, user_id: str) -> list[dict]:
        return [n.model_dump(mode="json") for n in self.load_store(db, user_id).tree()]

    def create_type(self, db: Session, data: MaintenanceTypeCreateRequest, user_id: str) -> dict:
        store = self.load_store(db, user_id)
        node = store.create(data.type, data.parent_id)

        t = MaintenanceType(
            id=node.id,
            type=node.type,
            parentId=node.parent_id,
            level=node.level,
            path=node.path,
            userId=user_id,
        )
        db.add(t)
        db.flush()
        log_action(db, user_id, "CREATE", "MaintenanceType", t.id,
                   f"Created maintenance type '{t.type}' at level {t.level}")
        db.commit()
        db.refresh(t)
        return {"id": t.id, "created_at": isoformat(t.createdAt), "level": t.level, "path": t.path}

    def update_type(self, db: Session, type_id: str, data: MaintenanceTypeUpdateRequest, user_id: str) -> dict:
        rows = {t.id: t for t in self._rows(db, user_id)}
        store = TaxonomyStore((_to_node(t) for t in rows.values()), user_id=user_id)
        parent_id = data.parent_id if data.reparent else UNSET
        changed = store.update(type_id, data.type, parent_id)

        for node in changed:
            t = rows[node.id]
            t.type     = node.type
            t.parentId = node.parent_id
            t.level    = node.level
            t.path     = node.path

        log_action(db, user_id, "UPDATE", "MaintenanceType", type_id,
                   f"Updated maintenance type '{changed[0].type}'"
                   + (f" ({len(changed) - 1} descendant(s) re-placed)" if len(changed) > 1 else ""))
        db.commit()
        return {"id": type_id}

    def delete_type(self, db: Session, type_id: str, user_id: str) -> dict:
        store = self.load_store(db, user_id)
        node = store.delete(type_id)

        if (db.query(MaintenanceRecord).filter(MaintenanceRecord.maintenanceTypeId == type_id).first()
                or db.query(MaintenanceStage).filter(MaintenanceStage.maintenanceTypeId == type_id).first()):
            raise ResourceInUseException("Maintenance type")

        t = db.query(MaintenanceType).filter(MaintenanceType.id == type_id).first()
        log_action(db, user_id, "DELETE", "MaintenanceType", type_id,
                   f"Deleted maintenance type '{node.type}'")
        db.delete(t)
        db.commit()
        return {"id": type_id}


maintenance_type_service = MaintenanceTypeService()
