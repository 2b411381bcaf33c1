# addresskit/schemas/unit.py
from typing import Optional, Dict, Any, Union
from pydantic import BaseModel, ConfigDict, Field

from addresskit.models.unit import SchemaVersion


class UnitFields(BaseModel):
    """Descriptive attributes shared by create and update bodies (camelCase on the wire)."""

    name: Optional[str] = None
    english_name: Optional[str] = Field(default=None, alias="englishName")
    administrative_level: Optional[str] = Field(
        default=None, alias="administrativeLevel"
    )
    parent_code: Optional[str] = Field(default=None, alias="parentCode")
    province_code: Optional[str] = Field(default=None, alias="provinceCode")
    province_name: Optional[str] = Field(default=None, alias="provinceName")
    decree: Optional[str] = None
    boundary: Optional[Any] = None

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    def to_record(self) -> Dict[str, Any]:
        """Only the fields the client actually sent, keyed as stored."""
        return self.model_dump(by_alias=True, exclude_unset=True)


class UnitCreate(UnitFields):
    # Required-ness is checked by the lifecycle manager so the error
    # messages stay the same for every entry point
    code: Optional[Union[str, int]] = None
    level: Optional[str] = None
    schema_version: Optional[SchemaVersion] = Field(
        default=None, alias="schemaVersion"
    )


class UnitUpdate(UnitFields):
    pass


class RestoreRequest(BaseModel):
    # History entry id; the newest entry is used when omitted
    version: Optional[str] = None


class ConvertRequest(BaseModel):
    address: Optional[str] = None
    schema_version: Optional[SchemaVersion] = Field(
        default=None, alias="schemaVersion"
    )

    model_config = ConfigDict(populate_by_name=True)


class BridgeRequest(BaseModel):
    code: Optional[Union[str, int]] = None
