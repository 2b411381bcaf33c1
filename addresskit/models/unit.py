# addresskit/models/unit.py
from enum import Enum
from datetime import datetime, timezone
from typing import Optional, Any
from pydantic import ConfigDict, Field, field_validator
from beanie import Document
from pymongo import ASCENDING, IndexModel


# --- Schema generations ---
class SchemaVersion(str, Enum):
    """v1 is the 3-tier hierarchy, v2 the post-reform 2-tier one."""

    V1 = "v1"
    V2 = "v2"


# --- Administrative levels ---
class UnitLevel(str, Enum):
    """Levels of the administrative hierarchy. v2 wards are stored as communes."""

    PROVINCE = "province"
    DISTRICT = "district"
    COMMUNE = "commune"

    @classmethod
    def parse(cls, value: Any) -> "UnitLevel":
        if isinstance(value, cls):
            return value
        text = str(value).strip().lower()
        if text == "ward":
            return cls.COMMUNE
        return cls(text)


# Levels ordered from the top of the hierarchy down
LEVEL_ORDER = [UnitLevel.PROVINCE, UnitLevel.DISTRICT, UnitLevel.COMMUNE]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def make_unique_key(schema_version: Any, level: Any, code: Any) -> str:
    """Derives the only hard-unique key of a unit."""
    version = SchemaVersion(schema_version).value
    return f"{version}-{UnitLevel.parse(level).value}-{code}"


# --- Unit Model ---
class Unit(Document):
    """
    Represents one administrative unit (province, district or commune/ward).
    Field names are snake_case in Python and camelCase in MongoDB.
    """

    schema_version: SchemaVersion = Field(
        default=SchemaVersion.V1, alias="schemaVersion"
    )
    code: str
    name: Optional[str] = None
    english_name: Optional[str] = Field(default=None, alias="englishName")
    administrative_level: Optional[str] = Field(
        default=None, alias="administrativeLevel"
    )
    province_code: Optional[str] = Field(default=None, alias="provinceCode")
    province_name: Optional[str] = Field(default=None, alias="provinceName")
    decree: Optional[str] = None
    level: UnitLevel
    parent_code: Optional[str] = Field(default=None, alias="parentCode")

    # Opaque geometry blob
    boundary: Optional[Any] = None

    unique_key: str = Field(alias="uniqueKey")
    created_at: datetime = Field(default_factory=utcnow, alias="createdAt")
    updated_at: datetime = Field(default_factory=utcnow, alias="updatedAt")
    is_deleted: bool = Field(default=False, alias="isDeleted")
    deleted_at: Optional[datetime] = Field(default=None, alias="deletedAt")

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @field_validator("level", mode="before")
    @classmethod
    def _normalize_level(cls, value):
        return UnitLevel.parse(value)

    @field_validator("code", "parent_code", "province_code", mode="before")
    @classmethod
    def _stringify_codes(cls, value):
        # Some imported datasets carry numeric codes
        if value is None or isinstance(value, str):
            return value
        return str(value)

    class Settings:
        name = "units"
        indexes = [
            IndexModel([("uniqueKey", ASCENDING)], unique=True),
            IndexModel(
                [
                    ("schemaVersion", ASCENDING),
                    ("level", ASCENDING),
                    ("parentCode", ASCENDING),
                ]
            ),
        ]
