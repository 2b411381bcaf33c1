# addresskit/routes/units.py
from typing import Optional
from fastapi import APIRouter, Depends, Query, status

from addresskit.dependencies.services import (
    get_changed_by,
    get_lifecycle_manager,
    get_resolver,
)
from addresskit.exceptions import NotFoundError
from addresskit.models.unit import SchemaVersion
from addresskit.schemas.misc import Message
from addresskit.schemas.unit import RestoreRequest, UnitCreate, UnitUpdate
from addresskit.services.lifecycle import UnitLifecycleManager
from addresskit.services.resolver import Resolver

router = APIRouter()


# --- Collection ---


@router.get("")
async def list_units(
    schema_version: Optional[SchemaVersion] = Query(None, alias="schemaVersion"),
    level: Optional[str] = None,
    resolver: Resolver = Depends(get_resolver),
):
    """Lists active units of every level, optionally filtered."""
    return await resolver.list_units(schema_version, level)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_unit(
    unit_create: UnitCreate,
    lifecycle: UnitLifecycleManager = Depends(get_lifecycle_manager),
    changed_by: Optional[str] = Depends(get_changed_by),
):
    """Creates a unit of any level. schemaVersion defaults to v1."""
    unit = await lifecycle.create(
        unit_create.to_record(), SchemaVersion.V1, changed_by=changed_by
    )
    return {"message": "Tạo đơn vị thành công", "data": unit}


@router.get("/tree")
async def units_tree(
    level: Optional[str] = None,
    schema_version: SchemaVersion = Query(SchemaVersion.V1, alias="schemaVersion"),
    resolver: Resolver = Depends(get_resolver),
):
    """
    The hierarchy as nested `children` lists. `level` is the deepest level
    included (province, district or commune).
    """
    return await resolver.build_units_tree(schema_version, level)


# --- Single unit ---


@router.get("/{code}")
async def get_unit(
    code: str,
    schema_version: SchemaVersion = Query(SchemaVersion.V1, alias="schemaVersion"),
    level: Optional[str] = None,
    resolver: Resolver = Depends(get_resolver),
):
    return await resolver.get_unit(schema_version, code, level)


@router.api_route("/{code}", methods=["PUT", "PATCH"])
async def update_unit(
    code: str,
    unit_update: UnitUpdate,
    schema_version: SchemaVersion = Query(SchemaVersion.V1, alias="schemaVersion"),
    level: Optional[str] = None,
    lifecycle: UnitLifecycleManager = Depends(get_lifecycle_manager),
    changed_by: Optional[str] = Depends(get_changed_by),
):
    """Merges the sent fields into the unit; code, level and version are fixed."""
    unit = await lifecycle.update(
        schema_version, code, unit_update.to_record(), level, changed_by
    )
    return {"message": "Cập nhật đơn vị thành công", "data": unit}


@router.delete("/{code}", response_model=Message)
async def delete_unit(
    code: str,
    schema_version: SchemaVersion = Query(SchemaVersion.V1, alias="schemaVersion"),
    level: Optional[str] = None,
    lifecycle: UnitLifecycleManager = Depends(get_lifecycle_manager),
    changed_by: Optional[str] = Depends(get_changed_by),
):
    await lifecycle.soft_delete(schema_version, code, level, changed_by)
    return Message(message="Đã xóa đơn vị")


# --- History ---


@router.get("/{code}/history")
async def unit_history(
    code: str,
    schema_version: Optional[SchemaVersion] = Query(None, alias="schemaVersion"),
    lifecycle: UnitLifecycleManager = Depends(get_lifecycle_manager),
):
    """History entries for the code, newest first."""
    entries = await lifecycle.history_for(code, schema_version)
    if not entries:
        raise NotFoundError("Không có lịch sử cho mã này", code=code)
    return entries


@router.post("/{code}/restore")
async def restore_unit(
    code: str,
    restore_request: Optional[RestoreRequest] = None,
    schema_version: SchemaVersion = Query(SchemaVersion.V1, alias="schemaVersion"),
    level: Optional[str] = None,
    lifecycle: UnitLifecycleManager = Depends(get_lifecycle_manager),
    changed_by: Optional[str] = Depends(get_changed_by),
):
    """
    Restores the unit from the history entry given as `version` in the body,
    or from its newest entry.
    """
    entry_id = restore_request.version if restore_request else None
    result = await lifecycle.restore(
        code,
        entry_id=entry_id,
        level=level,
        changed_by=changed_by,
        schema_version=schema_version,
    )
    return {"message": "Khôi phục thành công", **result}


@router.get("/{code}/diff")
async def diff_unit(
    code: str,
    old: Optional[str] = None,
    new: Optional[str] = None,
    lifecycle: UnitLifecycleManager = Depends(get_lifecycle_manager),
):
    return await lifecycle.diff(code, old, new)
