# addresskit/services/lifecycle.py
import logging
from typing import Any, Callable, Dict, List, Optional

from addresskit.exceptions import (
    ConflictError,
    NotFoundError,
    StoreError,
    ValidationError,
)
from addresskit.models.history import HistoryAction
from addresskit.models.unit import SchemaVersion, UnitLevel, make_unique_key, utcnow
from addresskit.services.fallback_store import (
    DeleteLog,
    FallbackNode,
    FallbackStores,
    remove_node,
    upsert_node,
)
from addresskit.services.history_log import HistoryLog
from addresskit.services.repository import (
    HistoryRecord,
    UnitQuery,
    UnitRecord,
    UnitRepository,
    find_unique,
    parse_level,
)

logger = logging.getLogger(__name__)

# Keys an update may never overwrite
PROTECTED_FIELDS = {
    "code",
    "level",
    "schemaVersion",
    "uniqueKey",
    "isDeleted",
    "deletedAt",
    "createdAt",
    "id",
    "_id",
}

# Keys not compared by diff
VOLATILE_FIELDS = {"id", "_id", "revision_id"}


def validate_unit_fields(data: Dict[str, Any]) -> None:
    """Checks the fields every new unit needs."""
    if not data:
        raise ValidationError("Request body is required.")
    name = data.get("name")
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("Invalid or missing 'name' field.")
    code = data.get("code")
    if isinstance(code, bool) or not isinstance(code, (str, int)) or not str(code).strip():
        raise ValidationError("Invalid or missing 'code' field.")
    level = data.get("level")
    if not isinstance(level, str) or not level.strip():
        raise ValidationError("Invalid or missing 'level' field.")
    try:
        UnitLevel.parse(level)
    except ValueError:
        raise ValidationError(
            "Invalid 'level' field.", allowed=[lvl.value for lvl in UnitLevel]
        )


class UnitLifecycleManager:
    """
    Create, update, soft-delete and restore units. The Repository and the
    History Log are written in turn; the Fallback Store and the delete log are
    kept in step on a best-effort basis.
    """

    def __init__(
        self,
        repository: UnitRepository,
        history: HistoryLog,
        fallback: FallbackStores,
        delete_log: Optional[DeleteLog] = None,
    ):
        self.repository = repository
        self.history = history
        self.fallback = fallback
        self.delete_log = delete_log

    def _sync_fallback(
        self,
        version: SchemaVersion,
        action: str,
        code: str,
        mutate: Callable[[List[FallbackNode]], bool],
    ) -> None:
        try:
            if not self.fallback.update(version, mutate):
                logger.warning(
                    "Fallback %s store has no place for %s of %s", version.value, action, code
                )
        except StoreError as e:
            logger.warning(
                "Fallback %s store not updated after %s of %s: %s", version.value, action, code, e
            )

    async def _active(
        self, version: SchemaVersion, code: str, level: Optional[UnitLevel] = None
    ) -> UnitRecord:
        unit = await find_unique(
            self.repository,
            UnitQuery(
                schema_version=version,
                code=str(code),
                level=parse_level(level),
            ),
        )
        if not unit:
            raise NotFoundError("Không tìm thấy đơn vị", code=str(code))
        return unit

    async def _require_parent(self, version: SchemaVersion, data: Dict[str, Any]) -> UnitRecord:
        for key in ("parentCode", "provinceCode"):
            parent_code = data.get(key)
            if not parent_code:
                continue
            parent = await self.repository.find_one(
                UnitQuery(
                    schema_version=version,
                    levels=[UnitLevel.DISTRICT, UnitLevel.PROVINCE],
                    code=str(parent_code),
                )
            )
            if parent:
                return parent
        raise NotFoundError(
            "Không tìm thấy đơn vị cha (tỉnh/huyện)",
            parentCode=data.get("parentCode") or data.get("provinceCode"),
        )

    # --- Create ---
    async def create(
        self,
        payload: Dict[str, Any],
        schema_version=SchemaVersion.V1,
        level: Optional[UnitLevel] = None,
        changed_by: Optional[str] = None,
    ) -> UnitRecord:
        data = {k: v for k, v in (payload or {}).items() if v is not None}
        if level is not None:
            data["level"] = UnitLevel.parse(level).value
        validate_unit_fields(data)

        version = SchemaVersion(data.get("schemaVersion") or schema_version)
        unit_level = UnitLevel.parse(data["level"])
        code = str(data["code"]).strip()
        unique_key = make_unique_key(version, unit_level, code)

        existing = await self.repository.find_one(UnitQuery(unique_key=unique_key, deleted=None))
        if existing:
            raise ConflictError("Mã đơn vị đã tồn tại", code=code)

        if unit_level is UnitLevel.COMMUNE:
            parent = await self._require_parent(version, data)
            data.setdefault("parentCode", parent["code"])

        now = utcnow()
        record = {
            **{k: v for k, v in data.items() if k not in PROTECTED_FIELDS},
            "schemaVersion": version.value,
            "code": code,
            "level": unit_level.value,
            "uniqueKey": unique_key,
            "createdAt": now,
            "updatedAt": now,
            "isDeleted": False,
            "deletedAt": None,
        }
        created = await self.repository.insert(record)
        await self.history.record(code, HistoryAction.CREATE, None, created, changed_by)
        self._sync_fallback(version, "create", code, lambda nodes: upsert_node(nodes, created))
        logger.info("Created %s", unique_key)
        return created

    # --- Update ---
    async def update(
        self,
        schema_version,
        code: str,
        changes: Dict[str, Any],
        level: Optional[UnitLevel] = None,
        changed_by: Optional[str] = None,
    ) -> UnitRecord:
        version = SchemaVersion(schema_version)
        current = await self._active(version, code, level)
        # Null fields are not merged
        updates = {
            k: v
            for k, v in (changes or {}).items()
            if k not in PROTECTED_FIELDS and v is not None
        }
        updates["updatedAt"] = utcnow()

        updated = await self.repository.update(current["uniqueKey"], updates)
        if updated is None:
            raise NotFoundError("Không tìm thấy đơn vị", code=str(code))
        await self.history.record(current["code"], HistoryAction.UPDATE, current, updated, changed_by)
        self._sync_fallback(version, "update", current["code"], lambda nodes: upsert_node(nodes, updated))
        return updated

    # --- Soft delete ---
    async def soft_delete(
        self,
        schema_version,
        code: str,
        level: Optional[UnitLevel] = None,
        changed_by: Optional[str] = None,
    ) -> UnitRecord:
        version = SchemaVersion(schema_version)
        current = await self._active(version, code, level)
        now = utcnow()

        deleted = await self.repository.soft_delete(current["uniqueKey"], now)
        if deleted is None:
            raise NotFoundError("Không tìm thấy đơn vị", code=str(code))
        await self.history.record(current["code"], HistoryAction.DELETE, current, None, changed_by)

        unit_level = UnitLevel.parse(current["level"])
        self._sync_fallback(
            version,
            "delete",
            current["code"],
            lambda nodes: remove_node(nodes, current["code"], unit_level),
        )
        if self.delete_log is not None:
            try:
                self.delete_log.append(current, now)
            except StoreError as e:
                logger.warning("Delete log not written for %s: %s", current["code"], e)
        logger.info("Soft-deleted %s", current["uniqueKey"])
        return deleted

    # --- Restore ---
    async def restore(
        self,
        code: str,
        entry_id: Optional[str] = None,
        level: Optional[UnitLevel] = None,
        changed_by: Optional[str] = None,
        schema_version: Optional[SchemaVersion] = None,
    ) -> Dict[str, Any]:
        """
        Re-applies the snapshot of a history entry: the one named by
        `entry_id`, or else the newest entry for `code` (of `level` and
        `schema_version`, if given). v1 and v2 units may share a code.
        Restoring the same entry again leaves the unit unchanged.
        """
        code = str(code)
        if entry_id:
            entry = await self.history.entry(code, entry_id, schema_version)
        else:
            entry = await self.history.latest(code, parse_level(level), schema_version)
        if not entry:
            raise NotFoundError("Không tìm thấy bản ghi để khôi phục", code=code)

        data = entry.get("oldData") or entry.get("newData")
        if not data:
            raise ValidationError("Không có dữ liệu để khôi phục", code=code)

        snapshot = {k: v for k, v in data.items() if k not in VOLATILE_FIELDS and k != "history"}
        try:
            version = SchemaVersion(snapshot.get("schemaVersion") or SchemaVersion.V1)
            unit_level = UnitLevel.parse(snapshot.get("level"))
        except ValueError:
            raise ValidationError("Không có dữ liệu để khôi phục", code=code)
        unit_code = str(snapshot.get("code") or code)
        snapshot.update(
            schemaVersion=version.value,
            level=unit_level.value,
            code=unit_code,
            uniqueKey=make_unique_key(version, unit_level, unit_code),
            isDeleted=False,
            deletedAt=None,
        )

        restored = await self.repository.upsert(snapshot)
        await self.history.record(unit_code, HistoryAction.RESTORE, None, restored, changed_by)
        self._sync_fallback(version, "restore", unit_code, lambda nodes: upsert_node(nodes, restored))
        logger.info("Restored %s from history entry %s", snapshot["uniqueKey"], entry.get("id"))
        return {"entryId": entry.get("id"), "data": restored}

    # --- Read side of the log ---
    async def list_deleted(
        self, schema_version=None, level: Optional[UnitLevel] = None
    ) -> List[UnitRecord]:
        return await self.repository.find(
            UnitQuery(
                schema_version=SchemaVersion(schema_version) if schema_version else None,
                level=parse_level(level),
                deleted=True,
            ),
            sort=[("deletedAt", -1)],
        )

    async def history_for(
        self, code: str, schema_version: Optional[SchemaVersion] = None
    ) -> List[HistoryRecord]:
        return await self.history.entries(code, schema_version)

    async def history_for_level(self, level: UnitLevel) -> List[HistoryRecord]:
        return await self.history.entries_for_level(level)

    async def diff(self, code: str, old_id: Optional[str], new_id: Optional[str]) -> Dict[str, Any]:
        """Field-level differences between the snapshots of two history entries."""
        if not old_id or not new_id:
            raise ValidationError("Query parameters 'old' and 'new' are required.")
        old_entry = await self.history.entry(code, old_id)
        new_entry = await self.history.entry(code, new_id)
        if old_entry is None or new_entry is None:
            raise NotFoundError("Không tìm thấy bản ghi lịch sử", code=str(code))

        before = old_entry.get("newData") or old_entry.get("oldData") or {}
        after = new_entry.get("newData") or new_entry.get("oldData") or {}
        changes = {}
        for key in sorted(set(before) | set(after)):
            if key in VOLATILE_FIELDS:
                continue
            if before.get(key) != after.get(key):
                changes[key] = {"old": before.get(key), "new": after.get(key)}
        return {"code": str(code), "old": old_id, "new": new_id, "changes": changes}
