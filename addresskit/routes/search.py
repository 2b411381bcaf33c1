# addresskit/routes/search.py
from typing import Optional
from fastapi import APIRouter, Depends, Query

from addresskit.dependencies.services import get_resolver
from addresskit.models.unit import SchemaVersion
from addresskit.services.resolver import Resolver

router = APIRouter()


@router.get("")
async def search_units(
    name: Optional[str] = None,
    level: Optional[str] = None,
    code: Optional[str] = None,
    schema_version: Optional[SchemaVersion] = Query(None, alias="schemaVersion"),
    resolver: Resolver = Depends(get_resolver),
):
    """Searches stored units by name fragment, level and code."""
    return await resolver.search(name=name, level=level, code=code, schema_version=schema_version)
