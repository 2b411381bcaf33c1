# addresskit/routes/bridge.py
from typing import Optional
from fastapi import APIRouter, Depends

from addresskit.dependencies.services import get_bridge
from addresskit.schemas.unit import BridgeRequest
from addresskit.services.bridge import CrossVersionBridge

router = APIRouter()


@router.post("/code")
async def map_code(
    bridge_request: Optional[BridgeRequest] = None,
    bridge: CrossVersionBridge = Depends(get_bridge),
):
    """Resolves a commune code in both the v1 and v2 hierarchies."""
    code = bridge_request.code if bridge_request else None
    return await bridge.map_code(code)
