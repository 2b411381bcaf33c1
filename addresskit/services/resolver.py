# addresskit/services/resolver.py
import logging
import re
from typing import Any, Awaitable, Callable, Dict, List, Optional

from addresskit.exceptions import NotFoundError, StoreError, ValidationError
from addresskit.models.unit import LEVEL_ORDER, SchemaVersion, UnitLevel
from addresskit.services.fallback_store import (
    FallbackStores,
    descendant_communes,
    find_node,
    flatten,
)
from addresskit.services.normalizer import name_matches
from addresskit.services.repository import (
    UnitQuery,
    UnitRecord,
    UnitRepository,
    find_unique,
    parse_level,
)
from addresskit.services.tree_builder import build_tree

logger = logging.getLogger(__name__)

SEARCH_LIMIT = 50


def _versions(schema_version: Optional[SchemaVersion]) -> List[SchemaVersion]:
    if schema_version is None:
        return list(SchemaVersion)
    return [SchemaVersion(schema_version)]


def _first_match(name: str, records: List[UnitRecord]) -> Optional[UnitRecord]:
    for record in records:
        if name_matches(name, record.get("name")):
            return record
    return None


class Resolver:
    """
    Read side of the service. Every lookup asks the Repository first and
    falls back to the Fallback Store when the Repository returns nothing or
    raises StoreError. Fallback read errors are not caught here.
    """

    def __init__(
        self,
        repository: UnitRepository,
        fallback: FallbackStores,
        search_limit: int = SEARCH_LIMIT,
        max_depth: int = 5,
    ):
        self.repository = repository
        self.fallback = fallback
        self.search_limit = search_limit
        self.max_depth = max_depth

    async def _repository_or_fallback(
        self,
        label: str,
        primary: Callable[[], Awaitable[Any]],
        secondary: Callable[[], Any],
    ) -> Any:
        try:
            result = await primary()
        except StoreError:
            logger.warning("Repository failed reading %s, using fallback store", label, exc_info=True)
            result = None
        if result:
            return result
        logger.warning("Repository has no %s, using fallback store", label)
        return secondary()

    # --- Provinces ---
    async def list_provinces(self, schema_version=SchemaVersion.V1) -> List[UnitRecord]:
        version = SchemaVersion(schema_version)
        return await self._repository_or_fallback(
            f"{version.value} provinces",
            lambda: self.repository.find(
                UnitQuery(schema_version=version, level=UnitLevel.PROVINCE)
            ),
            lambda: flatten(self.fallback.read(version), version, UnitLevel.PROVINCE),
        )

    async def get_province(self, schema_version, code: str) -> Dict[str, Any]:
        """A province with its direct children (districts for v1, wards for v2)."""
        version = SchemaVersion(schema_version)
        code = str(code)

        async def from_repository():
            province = await self.repository.find_one(
                UnitQuery(schema_version=version, level=UnitLevel.PROVINCE, code=code)
            )
            if not province:
                return None
            children = await self.repository.find(
                UnitQuery(schema_version=version, parent_code=code)
            )
            return {**province, "children": children}

        def from_fallback():
            node, path = find_node(self.fallback.read(version), code, UnitLevel.PROVINCE)
            if node is None:
                return None
            return {
                **node.record(version, path),
                "children": [c.record(version, path + [node]) for c in node.children],
            }

        province = await self._repository_or_fallback(
            f"province {code}", from_repository, from_fallback
        )
        if not province:
            raise NotFoundError("Province not found", code=code)
        return province

    # --- Districts (v1 only) ---
    async def list_districts(self, province_code: Optional[str] = None) -> List[UnitRecord]:
        version = SchemaVersion.V1
        province_code = str(province_code) if province_code else None

        def from_fallback():
            nodes = self.fallback.read(version)
            if province_code is None:
                return flatten(nodes, version, UnitLevel.DISTRICT)
            province, path = find_node(nodes, province_code, UnitLevel.PROVINCE)
            if province is None:
                raise NotFoundError("Province not found", code=province_code)
            return [
                c.record(version, path + [province])
                for c in province.children
                if c.level is UnitLevel.DISTRICT
            ]

        return await self._repository_or_fallback(
            "districts",
            lambda: self.repository.find(
                UnitQuery(
                    schema_version=version,
                    level=UnitLevel.DISTRICT,
                    parent_code=province_code,
                )
            ),
            from_fallback,
        )

    # --- Communes ---
    async def list_communes(
        self, schema_version=SchemaVersion.V1, ref: Optional[str] = None
    ) -> List[UnitRecord]:
        """
        Without `ref`, every active commune. With `ref`, the communes of the
        province `ref` (directly or through its districts), or the commune
        `ref` itself. Raises NotFoundError when neither source knows `ref`.
        """
        version = SchemaVersion(schema_version)
        if ref is None:
            return await self._repository_or_fallback(
                f"{version.value} communes",
                lambda: self.repository.find(
                    UnitQuery(schema_version=version, level=UnitLevel.COMMUNE)
                ),
                lambda: flatten(self.fallback.read(version), version, UnitLevel.COMMUNE),
            )

        ref = str(ref)
        try:
            communes = await self._communes_from_repository(version, ref)
        except StoreError:
            logger.warning("Repository failed reading communes of %s, using fallback store", ref, exc_info=True)
            communes = None
        if communes:
            return communes

        # An empty list means the Repository knows the province
        recognised = communes is not None
        logger.warning("Repository has no communes for %s, using fallback store", ref)
        fallback = self._communes_from_fallback(version, ref)
        if fallback:
            return fallback
        if fallback is not None or recognised:
            return []
        raise NotFoundError("Không tìm thấy tỉnh hoặc xã", code=ref)

    async def _communes_from_repository(
        self, version: SchemaVersion, ref: str
    ) -> Optional[List[UnitRecord]]:
        province = await self.repository.find_one(
            UnitQuery(schema_version=version, level=UnitLevel.PROVINCE, code=ref)
        )
        if province:
            communes = await self.repository.find(
                UnitQuery(schema_version=version, level=UnitLevel.COMMUNE, parent_code=ref)
            )
            if communes:
                return communes
            districts = await self.repository.find(
                UnitQuery(schema_version=version, level=UnitLevel.DISTRICT, parent_code=ref)
            )
            if not districts:
                return []
            return await self.repository.find(
                UnitQuery(
                    schema_version=version,
                    level=UnitLevel.COMMUNE,
                    parent_codes=[d["code"] for d in districts],
                )
            )
        commune = await self.repository.find_one(
            UnitQuery(schema_version=version, level=UnitLevel.COMMUNE, code=ref)
        )
        return [commune] if commune else None

    def _communes_from_fallback(
        self, version: SchemaVersion, ref: str
    ) -> Optional[List[UnitRecord]]:
        nodes = self.fallback.read(version)
        for province in nodes:
            if province.code == ref and province.level is UnitLevel.PROVINCE:
                return descendant_communes(province, version)
        commune, path = find_node(nodes, ref, UnitLevel.COMMUNE)
        if commune is not None:
            return [commune.record(version, path)]
        return None

    # --- Units ---
    async def get_unit(
        self, schema_version, code: str, level: Optional[UnitLevel] = None
    ) -> UnitRecord:
        version = SchemaVersion(schema_version)
        code = str(code)
        level = parse_level(level)

        def from_fallback():
            node, path = find_node(self.fallback.read(version), code, level)
            return node.record(version, path) if node is not None else None

        unit = await self._repository_or_fallback(
            f"unit {code}",
            lambda: find_unique(
                self.repository,
                UnitQuery(schema_version=version, code=code, level=level),
            ),
            from_fallback,
        )
        if not unit:
            raise NotFoundError("Không tìm thấy đơn vị", code=code)
        return unit

    async def list_units(
        self, schema_version=None, level: Optional[UnitLevel] = None
    ) -> List[UnitRecord]:
        version = SchemaVersion(schema_version) if schema_version else None
        level = parse_level(level)

        def from_fallback():
            records = []
            for v in _versions(version):
                records.extend(flatten(self.fallback.read(v), v, level))
            return records

        return await self._repository_or_fallback(
            "units",
            lambda: self.repository.find(UnitQuery(schema_version=version, level=level)),
            from_fallback,
        )

    async def build_units_tree(
        self, schema_version=SchemaVersion.V1, max_level: Optional[UnitLevel] = None
    ) -> List[Dict[str, Any]]:
        units = await self.list_units(schema_version)
        return build_tree(units, parse_level(max_level))

    async def search(
        self,
        name: Optional[str] = None,
        level: Optional[UnitLevel] = None,
        code: Optional[str] = None,
        schema_version=None,
    ) -> List[UnitRecord]:
        """Repository-only search; `name` is matched case-insensitively anywhere."""
        query = UnitQuery(
            schema_version=SchemaVersion(schema_version) if schema_version else None,
            level=parse_level(level),
            code=str(code) if code else None,
            name_pattern=re.escape(name) if name else None,
        )
        return await self.repository.find(query, limit=self.search_limit)

    # --- Parents ---
    async def find_parent(
        self, schema_version, unit: UnitRecord
    ) -> Optional[UnitRecord]:
        """Active unit named by parentCode, looked for at each level above `unit`."""
        parent_code = unit.get("parentCode")
        if not parent_code:
            return None
        try:
            level = UnitLevel.parse(unit.get("level"))
        except ValueError:
            return None
        version = SchemaVersion(schema_version)
        for candidate in reversed(LEVEL_ORDER[: LEVEL_ORDER.index(level)]):
            parent = await self.repository.find_one(
                UnitQuery(schema_version=version, level=candidate, code=str(parent_code))
            )
            if parent:
                return parent
        return None

    async def ancestors(self, schema_version, unit: UnitRecord) -> List[UnitRecord]:
        """Parents of `unit`, nearest first, up to and including the province."""
        chain = []
        current = unit
        while len(chain) < self.max_depth:
            parent = await self.find_parent(schema_version, current)
            if parent is None:
                break
            chain.append(parent)
            if parent.get("level") == UnitLevel.PROVINCE.value:
                break
            current = parent
        return chain

    # --- Address conversion ---
    async def _province_candidates(
        self, schema_version: Optional[SchemaVersion]
    ) -> List[UnitRecord]:
        def from_fallback():
            records = []
            for v in _versions(schema_version):
                records.extend(flatten(self.fallback.read(v), v, UnitLevel.PROVINCE))
            return records

        return await self._repository_or_fallback(
            "provinces",
            lambda: self.repository.find(
                UnitQuery(schema_version=schema_version, level=UnitLevel.PROVINCE)
            ),
            from_fallback,
        )

    async def convert_address(
        self, address: Optional[str], schema_version=None
    ) -> Dict[str, Any]:
        """
        Maps "Province, ..., Commune" to unit codes. The first comma-separated
        part names the province and the last the commune.
        """
        if not isinstance(address, str) or not address.strip():
            raise ValidationError("Thiếu địa chỉ cần chuyển đổi")
        parts = [part.strip() for part in address.split(",") if part.strip()]
        if len(parts) < 2:
            raise ValidationError("Địa chỉ phải có ít nhất 2 cấp (Tỉnh, Xã/Phường)")
        version = SchemaVersion(schema_version) if schema_version else None

        province = _first_match(parts[0], await self._province_candidates(version))
        commune = None
        if province:
            try:
                communes = await self.list_communes(
                    province.get("schemaVersion") or SchemaVersion.V1, province["code"]
                )
            except NotFoundError:
                communes = []
            commune = _first_match(parts[-1], communes)

        return {
            "original": address,
            "matched": {
                "province": province.get("name") if province else None,
                "commune": commune.get("name") if commune else None,
            },
            "codes": {
                "province": province.get("code") if province else None,
                "commune": commune.get("code") if commune else None,
            },
            "found": bool(province or commune),
        }
