# addresskit/services/db.py
# MongoDB access: the async client, Beanie initialisation and the Beanie
# backed repositories used by the service layer.
import logging
from contextlib import contextmanager
from datetime import datetime
from typing import List, Dict, Optional, Any, Tuple

from beanie import PydanticObjectId, init_beanie
from bson.errors import InvalidId
from pymongo import AsyncMongoClient, DESCENDING
from pymongo.errors import DuplicateKeyError, PyMongoError

from addresskit.configs import env, get_setting
from addresskit.exceptions import ConflictError, StoreError
from addresskit.models.history import UnitHistory
from addresskit.models.unit import SchemaVersion, Unit, UnitLevel
from addresskit.services.repository import (
    HistoryRecord,
    HistoryRepository,
    UnitQuery,
    UnitRecord,
    UnitRepository,
)

logger = logging.getLogger(__name__)

db_client: Optional[AsyncMongoClient] = None


async def get_database_client() -> AsyncMongoClient:
    """Returns the MongoDB async client."""
    global db_client
    if db_client is None:
        db_client = AsyncMongoClient(
            env.get("MONGO_URI") or get_setting("mongo", "uri")
        )
    return db_client


async def init_database() -> AsyncMongoClient:
    """Connects and registers the document models with Beanie."""
    client = await get_database_client()
    database_name = env.get("MONGO_DB") or get_setting("mongo", "database")
    await init_beanie(
        database=client[database_name], document_models=[Unit, UnitHistory]
    )
    return client


async def close_database() -> None:
    global db_client
    if db_client is not None:
        await db_client.close()
        db_client = None


@contextmanager
def translate_errors():
    """Re-raises driver failures as domain errors."""
    try:
        yield
    except DuplicateKeyError as e:
        raise ConflictError("Duplicate entry") from e
    except PyMongoError as e:
        raise StoreError("Database Error") from e


def _unit_record(unit: Unit) -> UnitRecord:
    return unit.model_dump(by_alias=True, exclude={"id", "revision_id"}, mode="json")


def _history_record(entry: UnitHistory) -> HistoryRecord:
    data = entry.model_dump(by_alias=True, exclude={"id", "revision_id"}, mode="json")
    data["id"] = str(entry.id)
    return data


class BeanieUnitRepository(UnitRepository):
    async def find(
        self,
        query: UnitQuery,
        sort: Optional[List[Tuple[str, int]]] = None,
        limit: Optional[int] = None,
    ) -> List[UnitRecord]:
        with translate_errors():
            cursor = Unit.find(query.to_mongo())
            if sort:
                cursor = cursor.sort(sort)
            if limit:
                cursor = cursor.limit(limit)
            units = await cursor.to_list()
        return [_unit_record(unit) for unit in units]

    async def find_one(self, query: UnitQuery) -> Optional[UnitRecord]:
        with translate_errors():
            unit = await Unit.find_one(query.to_mongo())
        return _unit_record(unit) if unit else None

    async def insert(self, record: UnitRecord) -> UnitRecord:
        unit = Unit.model_validate(record)
        with translate_errors():
            await unit.insert()
        return _unit_record(unit)

    async def update(
        self, unique_key: str, changes: Dict[str, Any]
    ) -> Optional[UnitRecord]:
        with translate_errors():
            unit = await Unit.find_one({"uniqueKey": unique_key})
            if not unit:
                return None
            await unit.set(changes)
            unit = await Unit.find_one({"uniqueKey": unique_key})
        return _unit_record(unit) if unit else None

    async def upsert(self, record: UnitRecord) -> UnitRecord:
        unique_key = record["uniqueKey"]
        with translate_errors():
            existing = await Unit.find_one({"uniqueKey": unique_key})
            if existing is None:
                unit = Unit.model_validate(record)
                await unit.insert()
                return _unit_record(unit)
            # Validate through the model so stored types stay consistent
            validated = Unit.model_validate(record)
            await existing.set(
                validated.model_dump(by_alias=True, exclude={"id", "revision_id"})
            )
            unit = await Unit.find_one({"uniqueKey": unique_key})
        return _unit_record(unit)

    async def soft_delete(
        self, unique_key: str, deleted_at: datetime
    ) -> Optional[UnitRecord]:
        return await self.update(
            unique_key, {"isDeleted": True, "deletedAt": deleted_at}
        )


class BeanieHistoryRepository(HistoryRepository):
    async def insert(self, entry: HistoryRecord) -> HistoryRecord:
        document = UnitHistory.model_validate(entry)
        with translate_errors():
            await document.insert()
        return _history_record(document)

    async def find(
        self,
        code: Optional[str] = None,
        level: Optional[UnitLevel] = None,
        schema_version: Optional[SchemaVersion] = None,
    ) -> List[HistoryRecord]:
        query: Dict[str, Any] = {}
        if code is not None:
            query["code"] = code
        if level is not None or schema_version is not None:
            snapshots = []
            for key in ("oldData", "newData"):
                condition = {}
                if level is not None:
                    condition[f"{key}.level"] = level.value
                if schema_version is not None:
                    condition[f"{key}.schemaVersion"] = schema_version.value
                snapshots.append(condition)
            query["$or"] = snapshots
        with translate_errors():
            entries = (
                await UnitHistory.find(query)
                .sort([("changedAt", DESCENDING), ("_id", DESCENDING)])
                .to_list()
            )
        return [_history_record(entry) for entry in entries]

    async def get(self, entry_id: str) -> Optional[HistoryRecord]:
        try:
            object_id = PydanticObjectId(entry_id)
        except (InvalidId, TypeError):
            return None
        with translate_errors():
            entry = await UnitHistory.get(object_id)
        return _history_record(entry) if entry else None
