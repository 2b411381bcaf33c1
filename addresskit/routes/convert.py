# addresskit/routes/convert.py
from typing import Optional
from fastapi import APIRouter, Depends

from addresskit.dependencies.services import get_resolver
from addresskit.schemas.unit import ConvertRequest
from addresskit.services.resolver import Resolver

router = APIRouter()


@router.post("")
async def convert_address(
    convert_request: Optional[ConvertRequest] = None,
    resolver: Resolver = Depends(get_resolver),
):
    """
    Matches a comma-separated address ("Hà Nội, Hoàn Kiếm, Hàng Trống")
    to province and commune codes.
    """
    convert_request = convert_request or ConvertRequest()
    return await resolver.convert_address(
        convert_request.address, convert_request.schema_version
    )
