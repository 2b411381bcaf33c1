"""
AddressKit — Root conftest for pytest

Shared fixtures: in-memory repositories, fallback files in tmp_path, the
service objects wired on top of them, and an API client whose dependencies
point at the same objects.

@file tests/conftest.py
"""

import json

import pytest
from fastapi.testclient import TestClient

from addresskit.dependencies import services as providers
from addresskit.main import app
from addresskit.models.unit import SchemaVersion
from addresskit.services.bridge import CrossVersionBridge
from addresskit.services.fallback_store import DeleteLog, FallbackStore, FallbackStores
from addresskit.services.history_log import HistoryLog
from addresskit.services.lifecycle import UnitLifecycleManager
from addresskit.services.resolver import Resolver
from tests.fakes import InMemoryHistoryRepository, InMemoryUnitRepository


V1_DATA = [
    {
        "code": "01",
        "name": "Thành phố Hà Nội",
        "englishName": "Ha Noi City",
        "districts": [
            {
                "code": "001",
                "name": "Quận Ba Đình",
                "communes": [
                    {"code": "00001", "name": "Phường Phúc Xá"},
                    {"code": "00004", "name": "Phường Trúc Bạch"},
                ],
            },
            {
                "code": "002",
                "name": "Quận Hoàn Kiếm",
                "communes": [
                    {"code": "00037", "name": "Phường Phúc Tân"},
                    {"code": "00070", "name": "Phường Hàng Trống"},
                ],
            },
        ],
    },
    {
        "code": "02",
        "name": "Tỉnh Hà Giang",
        "districts": [],
        "communes": [{"code": "00688", "name": "Phường Quang Trung"}],
    },
]

V2_DATA = [
    {
        "code": "01",
        "name": "Thành phố Hà Nội",
        "wards": [
            {"code": "00004", "name": "Phường Ba Đình"},
            {"code": "00070", "name": "Phường Hoàn Kiếm"},
        ],
    },
]


def write_json(path, data):
    path.write_text(json.dumps(data, ensure_ascii=False), encoding="utf-8")
    return str(path)


@pytest.fixture
def v1_path(tmp_path):
    return write_json(tmp_path / "full-address.json", V1_DATA)


@pytest.fixture
def v2_path(tmp_path):
    return write_json(tmp_path / "full-address-v2.json", V2_DATA)


@pytest.fixture
def delete_log_path(tmp_path):
    return str(tmp_path / "deleted-units.jsonl")


@pytest.fixture
def fallback_stores(v1_path, v2_path):
    return FallbackStores(
        FallbackStore(v1_path, SchemaVersion.V1),
        FallbackStore(v2_path, SchemaVersion.V2),
    )


@pytest.fixture
def unit_repository():
    return InMemoryUnitRepository()


@pytest.fixture
def history_repository():
    return InMemoryHistoryRepository()


@pytest.fixture
def delete_log(delete_log_path):
    return DeleteLog(delete_log_path)


@pytest.fixture
def history_log(history_repository):
    return HistoryLog(history_repository)


@pytest.fixture
def resolver(unit_repository, fallback_stores):
    return Resolver(unit_repository, fallback_stores)


@pytest.fixture
def lifecycle(unit_repository, history_log, fallback_stores, delete_log):
    return UnitLifecycleManager(unit_repository, history_log, fallback_stores, delete_log)


@pytest.fixture
def bridge(resolver):
    return CrossVersionBridge(resolver)


@pytest.fixture
def api_client(unit_repository, history_repository, fallback_stores, delete_log):
    """Test client over the in-memory repositories. The lifespan (MongoDB) is not run."""
    app.dependency_overrides[providers.get_unit_repository] = lambda: unit_repository
    app.dependency_overrides[providers.get_history_repository] = lambda: history_repository
    app.dependency_overrides[providers.get_fallback_stores] = lambda: fallback_stores
    app.dependency_overrides[providers.get_delete_log] = lambda: delete_log
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()
