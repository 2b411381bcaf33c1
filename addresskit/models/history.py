# addresskit/models/history.py
from enum import Enum
from datetime import datetime
from typing import Optional, Dict, Any
from pydantic import ConfigDict, Field
from beanie import Document
from pymongo import ASCENDING, DESCENDING, IndexModel

from addresskit.models.unit import utcnow


class HistoryAction(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    RESTORE = "restore"


# --- UnitHistory Model ---
class UnitHistory(Document):
    """
    One append-only audit record of a unit mutation.
    Entries are written once and never updated or removed.
    """

    code: str
    action: HistoryAction
    old_data: Optional[Dict[str, Any]] = Field(default=None, alias="oldData")
    new_data: Optional[Dict[str, Any]] = Field(default=None, alias="newData")
    deleted: bool = False
    changed_at: datetime = Field(default_factory=utcnow, alias="changedAt")
    changed_by: str = Field(default="system", alias="changedBy")

    model_config = ConfigDict(populate_by_name=True)

    class Settings:
        name = "unit_histories"
        indexes = [
            IndexModel([("code", ASCENDING), ("changedAt", DESCENDING)]),
        ]
