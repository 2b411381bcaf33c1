"""
AddressKit — Fallback Store Tests

Reading the nested JSON layouts, writing them back, and the tree edits
used by the lifecycle manager.

@file tests/test_fallback_store.py
"""

import json

import pytest

from addresskit.exceptions import StoreError
from addresskit.models.unit import SchemaVersion, UnitLevel
from addresskit.services.fallback_store import (
    DeleteLog,
    FallbackStore,
    descendant_communes,
    find_node,
    flatten,
    node_from_raw,
    remove_node,
    upsert_node,
)
from tests.conftest import V1_DATA, V2_DATA, write_json


def load(path, version=SchemaVersion.V1):
    return FallbackStore(path, version).load()


class TestReading:
    def test_v1_levels(self, v1_path):
        nodes = load(v1_path)
        hanoi = nodes[0]
        assert hanoi.level is UnitLevel.PROVINCE
        assert [d.level for d in hanoi.children] == [UnitLevel.DISTRICT, UnitLevel.DISTRICT]
        assert hanoi.children[1].children[1].code == "00070"
        assert hanoi.children[1].children[1].level is UnitLevel.COMMUNE
        assert hanoi.attributes == {"englishName": "Ha Noi City"}

    def test_v1_province_direct_communes(self, v1_path):
        hagiang = load(v1_path)[1]
        assert [(c.code, c.level) for c in hagiang.children] == [("00688", UnitLevel.COMMUNE)]

    def test_v2_wards_are_communes(self, v2_path):
        hanoi = load(v2_path, SchemaVersion.V2)[0]
        assert [c.level for c in hanoi.children] == [UnitLevel.COMMUNE, UnitLevel.COMMUNE]

    def test_generic_children_key(self):
        raw = {
            "code": "01",
            "name": "Hà Nội",
            "children": [
                {"code": "001", "name": "Ba Đình", "children": [{"code": "00001", "name": "Phúc Xá"}]},
                {"code": "00009", "name": "Xã Lẻ", "level": "ward"},
            ],
        }
        node = node_from_raw(raw, UnitLevel.PROVINCE, SchemaVersion.V1)
        assert node.children[0].level is UnitLevel.DISTRICT
        assert node.children[0].children[0].level is UnitLevel.COMMUNE
        assert node.children[1].level is UnitLevel.COMMUNE

    def test_flatten_records(self, v1_path):
        records = flatten(load(v1_path), SchemaVersion.V1, UnitLevel.COMMUNE)
        hang_trong = next(r for r in records if r["code"] == "00070")
        assert hang_trong == {
            "schemaVersion": "v1",
            "code": "00070",
            "name": "Phường Hàng Trống",
            "level": "commune",
            "parentCode": "002",
            "provinceCode": "01",
            "provinceName": "Thành phố Hà Nội",
        }
        assert [r["code"] for r in records] == ["00001", "00004", "00037", "00070", "00688"]

    def test_descendant_communes(self, v1_path):
        hanoi = load(v1_path)[0]
        assert [c["code"] for c in descendant_communes(hanoi, SchemaVersion.V1)] == [
            "00001",
            "00004",
            "00037",
            "00070",
        ]

    def test_find_node_returns_path(self, v1_path):
        node, path = find_node(load(v1_path), "00070", UnitLevel.COMMUNE)
        assert node.name == "Phường Hàng Trống"
        assert [p.code for p in path] == ["01", "002"]

    def test_find_node_respects_level(self, v1_path):
        node, path = find_node(load(v1_path), "01", UnitLevel.COMMUNE)
        assert node is None
        assert path == []


class TestLoadErrors:
    def test_missing_file(self, tmp_path):
        with pytest.raises(StoreError):
            load(str(tmp_path / "absent.json"))

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(StoreError):
            load(str(path))

    def test_not_a_list(self, tmp_path):
        with pytest.raises(StoreError):
            load(write_json(tmp_path / "object.json", {"code": "01"}))


class TestWriting:
    def test_v1_layout_round_trips(self, v1_path):
        store = FallbackStore(v1_path, SchemaVersion.V1)
        store.save(store.load())
        with open(v1_path, encoding="utf-8") as f:
            data = json.load(f)
        assert data[0]["districts"][1]["communes"][1] == {"code": "00070", "name": "Phường Hàng Trống"}
        assert data[1]["communes"] == [{"code": "00688", "name": "Phường Quang Trung"}]
        assert "level" not in data[0]

    def test_v2_layout_uses_wards(self, v2_path):
        store = FallbackStore(v2_path, SchemaVersion.V2)
        store.save(store.load())
        with open(v2_path, encoding="utf-8") as f:
            data = json.load(f)
        assert data == V2_DATA

    def test_vietnamese_text_is_kept_readable(self, v1_path):
        store = FallbackStore(v1_path, SchemaVersion.V1)
        store.save(store.load())
        with open(v1_path, encoding="utf-8") as f:
            assert "Thành phố Hà Nội" in f.read()

    def test_update_skips_save_when_unchanged(self, v1_path, tmp_path):
        store = FallbackStore(v1_path, SchemaVersion.V1)
        with open(v1_path, encoding="utf-8") as f:
            before = f.read()
        assert store.update(lambda nodes: False) is False
        with open(v1_path, encoding="utf-8") as f:
            assert f.read() == before


class TestTreeEdits:
    def test_remove_node_at_any_depth(self, v1_path):
        nodes = load(v1_path)
        assert remove_node(nodes, "00070", UnitLevel.COMMUNE) is True
        assert find_node(nodes, "00070")[0] is None
        assert remove_node(nodes, "00070", UnitLevel.COMMUNE) is False

    def test_remove_node_matches_level(self, v1_path):
        nodes = load(v1_path)
        assert remove_node(nodes, "01", UnitLevel.COMMUNE) is False
        assert nodes[0].code == "01"

    def test_upsert_under_parent_code(self, v1_path):
        nodes = load(v1_path)
        record = {"code": "00099", "name": "Phường Mới", "level": "commune", "parentCode": "002"}
        assert upsert_node(nodes, record) is True
        node, path = find_node(nodes, "00099")
        assert [p.code for p in path] == ["01", "002"]

    def test_upsert_falls_back_to_province_code(self, v1_path):
        nodes = load(v1_path)
        record = {
            "code": "00100",
            "name": "Xã Mới",
            "level": "commune",
            "parentCode": "777",
            "provinceCode": "02",
        }
        assert upsert_node(nodes, record) is True
        assert [p.code for p in find_node(nodes, "00100")[1]] == ["02"]

    def test_upsert_without_place_is_skipped(self, v1_path):
        nodes = load(v1_path)
        record = {"code": "00101", "name": "Xã Lạc", "level": "commune", "parentCode": "777"}
        assert upsert_node(nodes, record) is False
        assert find_node(nodes, "00101")[0] is None

    def test_upsert_existing_updates_in_place(self, v1_path):
        nodes = load(v1_path)
        record = {"code": "00070", "name": "Phường Hàng Trống Mới", "level": "commune", "parentCode": "002"}
        upsert_node(nodes, record)
        upsert_node(nodes, record)
        matches = [r for r in flatten(nodes, SchemaVersion.V1) if r["code"] == "00070"]
        assert len(matches) == 1
        assert matches[0]["name"] == "Phường Hàng Trống Mới"

    def test_upsert_province(self, v1_path):
        nodes = load(v1_path)
        upsert_node(nodes, {"code": "04", "name": "Tỉnh Cao Bằng", "level": "province"})
        assert nodes[-1].code == "04"


class TestCaching:
    def test_v2_reads_are_cached(self, fallback_stores, v2_path):
        first = fallback_stores.read(SchemaVersion.V2)
        write_json_path(v2_path, [])
        assert fallback_stores.read(SchemaVersion.V2) is first

    def test_reload_reads_disk(self, fallback_stores, v2_path):
        fallback_stores.read(SchemaVersion.V2)
        write_json_path(v2_path, [])
        assert fallback_stores.v2_cache.reload() == []

    def test_v2_write_invalidates_cache(self, fallback_stores):
        fallback_stores.read(SchemaVersion.V2)
        fallback_stores.update(
            SchemaVersion.V2,
            lambda nodes: remove_node(nodes, "00070", UnitLevel.COMMUNE),
        )
        nodes = fallback_stores.read(SchemaVersion.V2)
        assert find_node(nodes, "00070")[0] is None

    def test_v1_reads_hit_disk(self, fallback_stores, v1_path):
        fallback_stores.read(SchemaVersion.V1)
        write_json_path(v1_path, V1_DATA[:1])
        assert len(fallback_stores.read(SchemaVersion.V1)) == 1


class TestDeleteLog:
    def test_appends_json_lines(self, delete_log_path):
        log = DeleteLog(delete_log_path)
        log.append({"code": "00070", "name": "Phường Hàng Trống"}, "2025-07-01T00:00:00Z")
        log.append({"code": "00037"}, "2025-07-02T00:00:00Z")
        with open(delete_log_path, encoding="utf-8") as f:
            lines = [json.loads(line) for line in f]
        assert [line["code"] for line in lines] == ["00070", "00037"]
        assert lines[0]["deletedAt"] == "2025-07-01T00:00:00Z"

    def test_disabled_without_path(self, tmp_path):
        DeleteLog(None).append({"code": "1"}, "2025-07-01")
        assert list(tmp_path.iterdir()) == []


def write_json_path(path, data):
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f)
