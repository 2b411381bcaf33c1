"""
AddressKit — Cross-Version Bridge Tests

@file tests/test_bridge.py
"""

import pytest

from addresskit.exceptions import NotFoundError, ValidationError
from addresskit.services.bridge import CrossVersionBridge
from addresskit.services.resolver import Resolver
from tests.factories import CommuneFactory, DistrictFactory, ProvinceFactory
from tests.fakes import InMemoryUnitRepository


class TestMapCode:
    async def test_both_versions_from_fallback(self, bridge):
        result = await bridge.map_code("00070")
        assert result == {
            "code": "00070",
            "v1": {
                "code": "00070",
                "province": "Thành phố Hà Nội",
                "district": "Quận Hoàn Kiếm",
                "commune": "Phường Hàng Trống",
                "source": "json",
            },
            "v2": {
                "code": "00070",
                "province": "Thành phố Hà Nội",
                "commune": "Phường Hoàn Kiếm",
                "source": "json",
            },
        }

    async def test_repository_walks_up_to_province(self, fallback_stores):
        repository = InMemoryUnitRepository(
            [
                ProvinceFactory(code="01", name="Thành phố Hà Nội"),
                DistrictFactory(code="002", name="Quận Hoàn Kiếm", parentCode="01"),
                CommuneFactory(code="00070", name="Phường Hàng Trống", parentCode="002"),
            ]
        )
        bridge = CrossVersionBridge(Resolver(repository, fallback_stores))
        result = await bridge.map_code("00070")
        assert result["v1"]["source"] == "mongo"
        assert result["v1"]["district"] == "Quận Hoàn Kiếm"
        assert result["v1"]["province"] == "Thành phố Hà Nội"
        assert result["v2"]["source"] == "json"

    async def test_v2_commune_directly_under_province(self, fallback_stores):
        repository = InMemoryUnitRepository(
            [
                ProvinceFactory(code="01", name="Thành phố Hà Nội", schemaVersion="v2"),
                CommuneFactory(code="00070", name="Phường Hoàn Kiếm", parentCode="01", schemaVersion="v2"),
            ]
        )
        bridge = CrossVersionBridge(Resolver(repository, fallback_stores))
        v2 = (await bridge.map_code("00070"))["v2"]
        assert v2 == {
            "code": "00070",
            "province": "Thành phố Hà Nội",
            "commune": "Phường Hoàn Kiếm",
            "source": "mongo",
        }

    async def test_only_one_version_resolves(self, bridge):
        result = await bridge.map_code("00037")
        assert result["v1"]["commune"] == "Phường Phúc Tân"
        assert result["v2"] is None

    async def test_repository_error_uses_fallback(self, fallback_stores):
        bridge = CrossVersionBridge(Resolver(InMemoryUnitRepository(fail=True), fallback_stores))
        result = await bridge.map_code("00070")
        assert result["v1"]["source"] == "json"

    async def test_unknown_code(self, bridge):
        with pytest.raises(NotFoundError) as excinfo:
            await bridge.map_code("99999")
        assert excinfo.value.message == "Không tìm thấy mã"
        assert excinfo.value.context == {"code": "99999"}

    @pytest.mark.parametrize("code", [None, "", "  "])
    async def test_missing_code(self, bridge, code):
        with pytest.raises(ValidationError) as excinfo:
            await bridge.map_code(code)
        assert excinfo.value.message == "Thiếu trường 'code'"
