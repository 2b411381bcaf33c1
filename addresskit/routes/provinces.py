# addresskit/routes/provinces.py
from fastapi import APIRouter, Depends, Query

from addresskit.dependencies.services import get_resolver
from addresskit.models.unit import SchemaVersion
from addresskit.services.resolver import Resolver

router = APIRouter()


@router.get("")
async def list_provinces(
    schema_version: SchemaVersion = Query(SchemaVersion.V1, alias="schemaVersion"),
    resolver: Resolver = Depends(get_resolver),
):
    """Lists provinces of one schema version."""
    return await resolver.list_provinces(schema_version)


@router.get("/{code}")
async def get_province(
    code: str,
    schema_version: SchemaVersion = Query(SchemaVersion.V1, alias="schemaVersion"),
    resolver: Resolver = Depends(get_resolver),
):
    """A province with its districts (v1) or wards (v2) under `children`."""
    return await resolver.get_province(schema_version, code)
