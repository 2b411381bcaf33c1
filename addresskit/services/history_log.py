# addresskit/services/history_log.py
import logging
from typing import Any, Dict, List, Optional

from fastapi.encoders import jsonable_encoder

from addresskit.models.history import HistoryAction
from addresskit.models.unit import SchemaVersion, UnitLevel, utcnow
from addresskit.services.repository import (
    HistoryRecord,
    HistoryRepository,
    snapshot_matches,
)

logger = logging.getLogger(__name__)


class HistoryLog:
    """Append-only audit trail of unit mutations."""

    def __init__(self, repository: HistoryRepository, default_changed_by: str = "system"):
        self.repository = repository
        self.default_changed_by = default_changed_by

    async def record(
        self,
        code: str,
        action: HistoryAction,
        old_data: Optional[Dict[str, Any]] = None,
        new_data: Optional[Dict[str, Any]] = None,
        changed_by: Optional[str] = None,
    ) -> HistoryRecord:
        action = HistoryAction(action)
        # Snapshots are stored as independent JSON-safe copies
        entry = {
            "code": str(code),
            "action": action.value,
            "oldData": jsonable_encoder(old_data) if old_data is not None else None,
            "newData": jsonable_encoder(new_data) if new_data is not None else None,
            "deleted": action is HistoryAction.DELETE,
            "changedAt": utcnow(),
            "changedBy": changed_by or self.default_changed_by,
        }
        saved = await self.repository.insert(entry)
        logger.info("History %s recorded for %s by %s", action.value, code, entry["changedBy"])
        return saved

    async def entries(
        self, code: str, schema_version: Optional[SchemaVersion] = None
    ) -> List[HistoryRecord]:
        return await self.repository.find(
            code=str(code),
            schema_version=SchemaVersion(schema_version) if schema_version else None,
        )

    async def entries_for_level(self, level: UnitLevel) -> List[HistoryRecord]:
        return await self.repository.find(level=UnitLevel.parse(level))

    async def entry(
        self, code: str, entry_id: str, schema_version: Optional[SchemaVersion] = None
    ) -> Optional[HistoryRecord]:
        """The entry with `entry_id`, only if it belongs to `code` (and version)."""
        found = await self.repository.get(str(entry_id))
        if found is None or found.get("code") != str(code):
            return None
        if schema_version and not snapshot_matches(found, schema_version=SchemaVersion(schema_version)):
            return None
        return found

    async def latest(
        self,
        code: str,
        level: Optional[UnitLevel] = None,
        schema_version: Optional[SchemaVersion] = None,
    ) -> Optional[HistoryRecord]:
        found = await self.repository.find(
            code=str(code),
            level=UnitLevel.parse(level) if level else None,
            schema_version=SchemaVersion(schema_version) if schema_version else None,
        )
        return found[0] if found else None
