# addresskit/services/repository.py
from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Dict, Optional, Any, Tuple
from pydantic import BaseModel

from addresskit.exceptions import ConflictError, ValidationError
from addresskit.models.unit import SchemaVersion, UnitLevel

# Unit records travel between layers as camelCase dicts (the stored shape)
UnitRecord = Dict[str, Any]
HistoryRecord = Dict[str, Any]

ACTIVE_FILTER = {"$or": [{"isDeleted": False}, {"isDeleted": {"$exists": False}}]}


class UnitQuery(BaseModel):
    """
    Filter over units. Unset fields do not constrain the query.
    `deleted`: False = active units only, True = soft-deleted only, None = both.
    """

    schema_version: Optional[SchemaVersion] = None
    level: Optional[UnitLevel] = None
    levels: Optional[List[UnitLevel]] = None
    code: Optional[str] = None
    unique_key: Optional[str] = None
    parent_code: Optional[str] = None
    parent_codes: Optional[List[str]] = None
    # Case-insensitive regular expression on `name`
    name_pattern: Optional[str] = None
    deleted: Optional[bool] = False

    def to_mongo(self) -> Dict[str, Any]:
        query: Dict[str, Any] = {}
        if self.schema_version is not None:
            query["schemaVersion"] = self.schema_version.value
        if self.level is not None:
            query["level"] = self.level.value
        elif self.levels:
            query["level"] = {"$in": [level.value for level in self.levels]}
        if self.code is not None:
            query["code"] = self.code
        if self.unique_key is not None:
            query["uniqueKey"] = self.unique_key
        if self.parent_code is not None:
            query["parentCode"] = self.parent_code
        elif self.parent_codes is not None:
            query["parentCode"] = {"$in": list(self.parent_codes)}
        if self.name_pattern:
            query["name"] = {"$regex": self.name_pattern, "$options": "i"}
        if self.deleted is True:
            query["isDeleted"] = True
        elif self.deleted is False:
            query.update(ACTIVE_FILTER)
        return query


class UnitRepository(ABC):
    """Persistent store of administrative units keyed by uniqueKey."""

    @abstractmethod
    async def find(
        self,
        query: UnitQuery,
        sort: Optional[List[Tuple[str, int]]] = None,
        limit: Optional[int] = None,
    ) -> List[UnitRecord]: ...

    @abstractmethod
    async def find_one(self, query: UnitQuery) -> Optional[UnitRecord]: ...

    @abstractmethod
    async def insert(self, record: UnitRecord) -> UnitRecord:
        """Raises ConflictError when the uniqueKey is taken."""

    @abstractmethod
    async def update(
        self, unique_key: str, changes: Dict[str, Any]
    ) -> Optional[UnitRecord]: ...

    @abstractmethod
    async def upsert(self, record: UnitRecord) -> UnitRecord: ...

    @abstractmethod
    async def soft_delete(
        self, unique_key: str, deleted_at: datetime
    ) -> Optional[UnitRecord]: ...


class HistoryRepository(ABC):
    """Append-only store of history entries. Entries carry a string `id`."""

    @abstractmethod
    async def insert(self, entry: HistoryRecord) -> HistoryRecord: ...

    @abstractmethod
    async def find(
        self,
        code: Optional[str] = None,
        level: Optional[UnitLevel] = None,
        schema_version: Optional[SchemaVersion] = None,
    ) -> List[HistoryRecord]:
        """
        Newest first. `level` and `schema_version` must both hold for the same
        snapshot, old or new.
        """

    @abstractmethod
    async def get(self, entry_id: str) -> Optional[HistoryRecord]: ...


def parse_level(value: Any) -> Optional[UnitLevel]:
    """Optional level filter from client input; unknown names are a 400."""
    if value is None or value == "":
        return None
    try:
        return UnitLevel.parse(value)
    except ValueError:
        raise ValidationError(
            "Invalid 'level' field.", allowed=[level.value for level in UnitLevel]
        )


def snapshot_matches(
    entry: HistoryRecord,
    level: Optional[UnitLevel] = None,
    schema_version: Optional[SchemaVersion] = None,
) -> bool:
    """True when the old or the new snapshot has the given level and version."""
    for key in ("oldData", "newData"):
        data = entry.get(key) or {}
        if level is not None and data.get("level") != level.value:
            continue
        if schema_version is not None and data.get("schemaVersion") != schema_version.value:
            continue
        return True
    return False


async def find_unique(repository: UnitRepository, query: UnitQuery) -> Optional[UnitRecord]:
    """
    The single unit matching `query`. Without a level a code may name units of
    several levels; that is refused instead of picking one.
    """
    if query.level is not None:
        return await repository.find_one(query)
    units = await repository.find(query)
    if len(units) > 1:
        raise ConflictError(
            "Mã đơn vị trùng ở nhiều cấp, cần chỉ định 'level'",
            code=query.code,
            levels=sorted({unit.get("level") for unit in units}),
        )
    return units[0] if units else None
