# addresskit/services/bridge.py
import asyncio
import logging
from typing import Any, Dict, List, Optional

from addresskit.exceptions import NotFoundError, StoreError, ValidationError
from addresskit.models.unit import SchemaVersion, UnitLevel
from addresskit.services.fallback_store import find_node
from addresskit.services.repository import UnitQuery, UnitRecord
from addresskit.services.resolver import Resolver

logger = logging.getLogger(__name__)


def _name_at(chain: List[Dict[str, Any]], level: UnitLevel) -> Optional[str]:
    for unit in chain:
        if unit.get("level") == level.value:
            return unit.get("name")
    return None


def _shape(
    version: SchemaVersion, code: str, commune: Dict[str, Any], chain: List[Dict[str, Any]], source: str
) -> Dict[str, Any]:
    result = {"code": code, "province": _name_at(chain, UnitLevel.PROVINCE)}
    if version is SchemaVersion.V1:
        result["district"] = _name_at(chain, UnitLevel.DISTRICT)
    result["commune"] = commune.get("name")
    result["source"] = source
    return result


class CrossVersionBridge:
    """Looks a commune code up in both schema generations at once."""

    def __init__(self, resolver: Resolver):
        self.resolver = resolver

    async def map_code(self, code: Any) -> Dict[str, Any]:
        if code is None or not str(code).strip():
            raise ValidationError("Thiếu trường 'code'")
        code = str(code).strip()
        v1, v2 = await asyncio.gather(
            self.resolve(SchemaVersion.V1, code), self.resolve(SchemaVersion.V2, code)
        )
        if v1 is None and v2 is None:
            raise NotFoundError("Không tìm thấy mã", code=code)
        return {"code": code, "v1": v1, "v2": v2}

    async def resolve(self, version: SchemaVersion, code: str) -> Optional[Dict[str, Any]]:
        try:
            result = await self._from_repository(version, code)
        except StoreError:
            logger.warning("Repository failed resolving %s code %s", version.value, code, exc_info=True)
            result = None
        if result is not None:
            return result
        return self._from_fallback(version, code)

    async def _from_repository(self, version: SchemaVersion, code: str) -> Optional[Dict[str, Any]]:
        commune: Optional[UnitRecord] = await self.resolver.repository.find_one(
            UnitQuery(schema_version=version, level=UnitLevel.COMMUNE, code=code)
        )
        if not commune:
            return None
        chain = await self.resolver.ancestors(version, commune)
        return _shape(version, code, commune, chain, "mongo")

    def _from_fallback(self, version: SchemaVersion, code: str) -> Optional[Dict[str, Any]]:
        nodes = self.resolver.fallback.read(version)
        commune, path = find_node(nodes, code, UnitLevel.COMMUNE)
        if commune is None:
            return None
        chain = [
            {"level": node.level.value, "name": node.name} for node in reversed(path)
        ]
        return _shape(version, code, {"name": commune.name}, chain, "json")
