# addresskit/routes/districts.py
from typing import Optional
from fastapi import APIRouter, Depends, Query, status

from addresskit.dependencies.services import (
    get_changed_by,
    get_lifecycle_manager,
    get_resolver,
)
from addresskit.models.unit import SchemaVersion, UnitLevel
from addresskit.schemas.misc import DataResponse, ListResponse
from addresskit.schemas.unit import RestoreRequest, UnitCreate, UnitUpdate
from addresskit.services.lifecycle import UnitLifecycleManager
from addresskit.services.resolver import Resolver

# Districts only exist in the v1 hierarchy
router = APIRouter()


@router.get("")
async def list_districts(
    province_code: Optional[str] = Query(None, alias="provinceCode"),
    resolver: Resolver = Depends(get_resolver),
):
    return await resolver.list_districts(province_code)


@router.get("/deleted/list", response_model=ListResponse)
async def list_deleted_districts(
    lifecycle: UnitLifecycleManager = Depends(get_lifecycle_manager),
):
    units = await lifecycle.list_deleted(SchemaVersion.V1, UnitLevel.DISTRICT)
    return ListResponse(count=len(units), data=units)


@router.get("/{code}")
async def get_district(code: str, resolver: Resolver = Depends(get_resolver)):
    return await resolver.get_unit(SchemaVersion.V1, code, UnitLevel.DISTRICT)


@router.post("", response_model=DataResponse, status_code=status.HTTP_201_CREATED)
async def create_district(
    unit_create: UnitCreate,
    lifecycle: UnitLifecycleManager = Depends(get_lifecycle_manager),
    changed_by: Optional[str] = Depends(get_changed_by),
):
    """Creates a v1 district. parentCode names its province."""
    payload = unit_create.to_record()
    payload.pop("schemaVersion", None)
    unit = await lifecycle.create(
        payload, SchemaVersion.V1, level=UnitLevel.DISTRICT, changed_by=changed_by
    )
    return DataResponse(data=unit)


@router.put("/{code}", response_model=DataResponse)
async def update_district(
    code: str,
    unit_update: UnitUpdate,
    lifecycle: UnitLifecycleManager = Depends(get_lifecycle_manager),
    changed_by: Optional[str] = Depends(get_changed_by),
):
    unit = await lifecycle.update(
        SchemaVersion.V1,
        code,
        unit_update.to_record(),
        level=UnitLevel.DISTRICT,
        changed_by=changed_by,
    )
    return DataResponse(data=unit)


@router.delete("/{code}", response_model=DataResponse)
async def delete_district(
    code: str,
    lifecycle: UnitLifecycleManager = Depends(get_lifecycle_manager),
    changed_by: Optional[str] = Depends(get_changed_by),
):
    unit = await lifecycle.soft_delete(
        SchemaVersion.V1, code, level=UnitLevel.DISTRICT, changed_by=changed_by
    )
    return DataResponse(data=unit)


@router.post("/{code}/restore", response_model=DataResponse)
async def restore_district(
    code: str,
    restore_request: Optional[RestoreRequest] = None,
    lifecycle: UnitLifecycleManager = Depends(get_lifecycle_manager),
    changed_by: Optional[str] = Depends(get_changed_by),
):
    entry_id = restore_request.version if restore_request else None
    result = await lifecycle.restore(
        code,
        entry_id=entry_id,
        level=UnitLevel.DISTRICT,
        changed_by=changed_by,
        schema_version=SchemaVersion.V1,
    )
    return DataResponse(data=result["data"])
