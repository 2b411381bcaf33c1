# addresskit/routes/communes.py
from typing import Optional
from fastapi import APIRouter, Depends, Query, status

from addresskit.dependencies.services import (
    get_changed_by,
    get_lifecycle_manager,
    get_resolver,
)
from addresskit.exceptions import NotFoundError
from addresskit.models.unit import SchemaVersion, UnitLevel
from addresskit.schemas.misc import DataResponse, ListResponse
from addresskit.schemas.unit import RestoreRequest, UnitCreate, UnitUpdate
from addresskit.services.lifecycle import UnitLifecycleManager
from addresskit.services.resolver import Resolver

router = APIRouter()


# --- Reads ---


@router.get("")
async def list_communes(
    schema_version: SchemaVersion = Query(SchemaVersion.V1, alias="schemaVersion"),
    resolver: Resolver = Depends(get_resolver),
):
    """Every active commune (ward) of the schema version."""
    return await resolver.list_communes(schema_version)


@router.get("/history", response_model=ListResponse)
async def commune_history(
    lifecycle: UnitLifecycleManager = Depends(get_lifecycle_manager),
):
    """History entries of all communes, newest first."""
    entries = await lifecycle.history_for_level(UnitLevel.COMMUNE)
    return ListResponse(count=len(entries), data=entries)


@router.get("/history/{code}", response_model=ListResponse)
async def commune_history_by_code(
    code: str,
    schema_version: Optional[SchemaVersion] = Query(None, alias="schemaVersion"),
    lifecycle: UnitLifecycleManager = Depends(get_lifecycle_manager),
):
    entries = await lifecycle.history_for(code, schema_version)
    if not entries:
        raise NotFoundError("No history found", code=code)
    return ListResponse(count=len(entries), data=entries)


@router.get("/deleted/list", response_model=ListResponse)
async def list_deleted_communes(
    schema_version: Optional[SchemaVersion] = Query(None, alias="schemaVersion"),
    lifecycle: UnitLifecycleManager = Depends(get_lifecycle_manager),
):
    units = await lifecycle.list_deleted(schema_version, UnitLevel.COMMUNE)
    return ListResponse(count=len(units), data=units)


@router.get("/{ref}")
async def communes_by_ref(
    ref: str,
    schema_version: SchemaVersion = Query(SchemaVersion.V1, alias="schemaVersion"),
    resolver: Resolver = Depends(get_resolver),
):
    """Communes of a province code, or the single commune with that code."""
    return await resolver.list_communes(schema_version, ref)


# --- Writes ---


async def _create(
    unit_create: UnitCreate,
    lifecycle: UnitLifecycleManager,
    schema_version: SchemaVersion,
    changed_by: Optional[str],
    code: Optional[str] = None,
):
    payload = unit_create.to_record()
    if code is not None:
        payload["code"] = code
    unit = await lifecycle.create(
        payload, schema_version, level=UnitLevel.COMMUNE, changed_by=changed_by
    )
    return DataResponse(data=unit)


@router.post("", response_model=DataResponse, status_code=status.HTTP_201_CREATED)
async def create_commune(
    unit_create: UnitCreate,
    schema_version: SchemaVersion = Query(SchemaVersion.V1, alias="schemaVersion"),
    lifecycle: UnitLifecycleManager = Depends(get_lifecycle_manager),
    changed_by: Optional[str] = Depends(get_changed_by),
):
    """Creates a commune under an existing district or province."""
    return await _create(unit_create, lifecycle, schema_version, changed_by)


@router.put("/{code}", response_model=DataResponse, status_code=status.HTTP_201_CREATED)
async def create_commune_with_code(
    code: str,
    unit_create: UnitCreate,
    schema_version: SchemaVersion = Query(SchemaVersion.V1, alias="schemaVersion"),
    lifecycle: UnitLifecycleManager = Depends(get_lifecycle_manager),
    changed_by: Optional[str] = Depends(get_changed_by),
):
    """Creates a commune whose code is taken from the path."""
    return await _create(unit_create, lifecycle, schema_version, changed_by, code=code)


@router.post("/{code}", response_model=DataResponse)
async def update_commune(
    code: str,
    unit_update: UnitUpdate,
    schema_version: SchemaVersion = Query(SchemaVersion.V1, alias="schemaVersion"),
    lifecycle: UnitLifecycleManager = Depends(get_lifecycle_manager),
    changed_by: Optional[str] = Depends(get_changed_by),
):
    unit = await lifecycle.update(
        schema_version,
        code,
        unit_update.to_record(),
        level=UnitLevel.COMMUNE,
        changed_by=changed_by,
    )
    return DataResponse(data=unit)


@router.delete("/{code}", response_model=DataResponse)
async def delete_commune(
    code: str,
    schema_version: SchemaVersion = Query(SchemaVersion.V1, alias="schemaVersion"),
    lifecycle: UnitLifecycleManager = Depends(get_lifecycle_manager),
    changed_by: Optional[str] = Depends(get_changed_by),
):
    """Soft-deletes a commune and removes it from the fallback file."""
    unit = await lifecycle.soft_delete(
        schema_version, code, level=UnitLevel.COMMUNE, changed_by=changed_by
    )
    return DataResponse(data=unit)


@router.post("/{code}/restore", response_model=DataResponse)
async def restore_commune(
    code: str,
    restore_request: Optional[RestoreRequest] = None,
    schema_version: SchemaVersion = Query(SchemaVersion.V1, alias="schemaVersion"),
    lifecycle: UnitLifecycleManager = Depends(get_lifecycle_manager),
    changed_by: Optional[str] = Depends(get_changed_by),
):
    entry_id = restore_request.version if restore_request else None
    result = await lifecycle.restore(
        code,
        entry_id=entry_id,
        level=UnitLevel.COMMUNE,
        changed_by=changed_by,
        schema_version=schema_version,
    )
    return DataResponse(data=result["data"])
