# addresskit/services/fallback_store.py
"""
Read/write access to the static nested JSON address files.

The files are lists of provinces. v1 provinces carry ``districts`` (each with
``communes``) and sometimes ``communes`` directly; v2 provinces carry
``wards``. Some exports use a generic ``children`` key instead. All of these
are read into one ``FallbackNode`` tree and written back in the key layout of
their version.
"""
import json
import logging
from collections.abc import Mapping
from datetime import datetime
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field

from addresskit.exceptions import StoreError
from addresskit.models.unit import SchemaVersion, UnitLevel

logger = logging.getLogger(__name__)

CHILD_KEYS: Dict[str, Optional[UnitLevel]] = {
    "districts": UnitLevel.DISTRICT,
    "communes": UnitLevel.COMMUNE,
    "wards": UnitLevel.COMMUNE,
    # Level comes from the child itself, or the next level down
    "children": None,
}

# Descriptive fields copied into the file on create, update and restore
SYNCED_ATTRIBUTES = ("englishName", "administrativeLevel", "decree")


class FallbackNode(BaseModel):
    code: str
    name: Optional[str] = None
    level: UnitLevel
    attributes: Dict[str, Any] = Field(default_factory=dict)
    children: List["FallbackNode"] = Field(default_factory=list)

    def record(
        self, schema_version: SchemaVersion, path: Optional[List["FallbackNode"]] = None
    ) -> Dict[str, Any]:
        """Flat unit record for this node; `path` lists its ancestors, root first."""
        path = path or []
        data = {
            **self.attributes,
            "schemaVersion": SchemaVersion(schema_version).value,
            "code": self.code,
            "name": self.name,
            "level": self.level.value,
            "parentCode": path[-1].code if path else None,
        }
        if path:
            data["provinceCode"] = path[0].code
            data["provinceName"] = path[0].name
        return data


def _next_level(level: UnitLevel, schema_version: SchemaVersion) -> UnitLevel:
    if schema_version is SchemaVersion.V1 and level is UnitLevel.PROVINCE:
        return UnitLevel.DISTRICT
    return UnitLevel.COMMUNE


def node_from_raw(
    raw: Mapping, level: UnitLevel, schema_version: SchemaVersion
) -> FallbackNode:
    attributes = {}
    children = []
    for key, value in raw.items():
        if key in CHILD_KEYS and isinstance(value, list):
            for child in value:
                if not isinstance(child, Mapping):
                    continue
                child_level = CHILD_KEYS[key]
                if child_level is None:
                    try:
                        child_level = UnitLevel.parse(child["level"])
                    except (KeyError, ValueError):
                        child_level = _next_level(level, schema_version)
                children.append(node_from_raw(child, child_level, schema_version))
        elif key not in ("code", "name", "level"):
            attributes[key] = value
    return FallbackNode(
        code=str(raw.get("code", "")),
        name=raw.get("name"),
        level=level,
        attributes=attributes,
        children=children,
    )


def node_to_raw(node: FallbackNode, schema_version: SchemaVersion) -> Dict[str, Any]:
    raw: Dict[str, Any] = {"code": node.code, "name": node.name, **node.attributes}
    communes = [c for c in node.children if c.level is UnitLevel.COMMUNE]
    if node.level is UnitLevel.PROVINCE:
        if schema_version is SchemaVersion.V2:
            raw["wards"] = [node_to_raw(c, schema_version) for c in node.children]
            return raw
        districts = [c for c in node.children if c.level is UnitLevel.DISTRICT]
        raw["districts"] = [node_to_raw(d, schema_version) for d in districts]
        if communes:
            raw["communes"] = [node_to_raw(c, schema_version) for c in communes]
    elif node.level is UnitLevel.DISTRICT or node.children:
        raw["communes"] = [node_to_raw(c, schema_version) for c in node.children]
    return raw


# --- Tree helpers ---
def iter_nodes(
    nodes: List[FallbackNode], path: Optional[List[FallbackNode]] = None
) -> Iterator[Tuple[FallbackNode, List[FallbackNode]]]:
    """Depth-first walk yielding (node, ancestors)."""
    path = path or []
    for node in nodes:
        yield node, path
        yield from iter_nodes(node.children, path + [node])


def find_node(
    nodes: List[FallbackNode], code: str, level: Optional[UnitLevel] = None
) -> Tuple[Optional[FallbackNode], List[FallbackNode]]:
    code = str(code)
    for node, path in iter_nodes(nodes):
        if node.code == code and (level is None or node.level is level):
            return node, path
    return None, []


def flatten(
    nodes: List[FallbackNode],
    schema_version: SchemaVersion,
    level: Optional[UnitLevel] = None,
) -> List[Dict[str, Any]]:
    return [
        node.record(schema_version, path)
        for node, path in iter_nodes(nodes)
        if level is None or node.level is level
    ]


def descendant_communes(
    node: FallbackNode, schema_version: SchemaVersion
) -> List[Dict[str, Any]]:
    """Communes anywhere beneath `node` (directly or through districts)."""
    return [
        child.record(schema_version, [node] + path)
        for child, path in iter_nodes(node.children)
        if child.level is UnitLevel.COMMUNE
    ]


def remove_node(nodes: List[FallbackNode], code: str, level: UnitLevel) -> bool:
    """Removes every node matching code and level, at any depth."""
    code = str(code)
    kept = [n for n in nodes if not (n.code == code and n.level is level)]
    removed = len(kept) != len(nodes)
    nodes[:] = kept
    for node in nodes:
        removed = remove_node(node.children, code, level) or removed
    return removed


def _apply_record(node: FallbackNode, record: Mapping) -> None:
    if record.get("name") is not None:
        node.name = record["name"]
    for key in SYNCED_ATTRIBUTES:
        if record.get(key) is not None:
            node.attributes[key] = record[key]


def upsert_node(nodes: List[FallbackNode], record: Mapping) -> bool:
    """
    Writes a unit record into the tree. An existing node with the same code
    and level is updated in place; otherwise the record is appended under the
    node named by parentCode, falling back to the province named by
    provinceCode. Returns False when no place for it was found.
    """
    level = UnitLevel.parse(record["level"])
    code = str(record["code"])
    existing, _ = find_node(nodes, code, level)
    if existing is not None:
        _apply_record(existing, record)
        return True

    node = FallbackNode(code=code, level=level)
    _apply_record(node, record)
    if level is UnitLevel.PROVINCE:
        nodes.append(node)
        return True

    parent = None
    parent_code = record.get("parentCode")
    if parent_code:
        for candidate, _ in iter_nodes(nodes):
            if candidate.code == str(parent_code) and candidate.level is not level:
                parent = candidate
                break
    if parent is None and record.get("provinceCode"):
        parent, _ = find_node(nodes, record["provinceCode"], UnitLevel.PROVINCE)
    if parent is None:
        return False
    parent.children.append(node)
    return True


# --- Files ---
class FallbackStore:
    """One nested JSON file holding the units of a single schema version."""

    def __init__(self, path: str, schema_version: SchemaVersion):
        self.path = path
        self.schema_version = SchemaVersion(schema_version)

    def load(self) -> List[FallbackNode]:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError as e:
            raise StoreError("File System Error") from e
        except (OSError, ValueError) as e:
            logger.error("Cannot read fallback file '%s': %s", self.path, e)
            raise StoreError("Invalid fallback data") from e
        if not isinstance(data, list):
            raise StoreError("Invalid fallback data")
        return [
            node_from_raw(p, UnitLevel.PROVINCE, self.schema_version)
            for p in data
            if isinstance(p, Mapping)
        ]

    def save(self, nodes: List[FallbackNode]) -> None:
        raw = jsonable_encoder([node_to_raw(n, self.schema_version) for n in nodes])
        try:
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump(raw, f, ensure_ascii=False, indent=2)
        except OSError as e:
            raise StoreError("File System Error") from e

    def update(self, mutate: Callable[[List[FallbackNode]], bool]) -> bool:
        """Load, mutate and save. Nothing is written when `mutate` returns False."""
        nodes = self.load()
        changed = mutate(nodes)
        if changed:
            self.save(nodes)
        return changed


class FallbackCache:
    """Keeps one loaded copy of a store until invalidated."""

    def __init__(self, store: FallbackStore):
        self.store = store
        self._nodes: Optional[List[FallbackNode]] = None

    def get(self) -> List[FallbackNode]:
        if self._nodes is None:
            self._nodes = self.store.load()
        return self._nodes

    def invalidate(self) -> None:
        self._nodes = None

    def reload(self) -> List[FallbackNode]:
        self.invalidate()
        return self.get()


class FallbackStores:
    """The v1 and v2 files. v2 reads are cached, v1 reads hit the disk."""

    def __init__(self, v1: FallbackStore, v2: FallbackStore):
        self.stores = {SchemaVersion.V1: v1, SchemaVersion.V2: v2}
        self.v2_cache = FallbackCache(v2)

    def read(self, schema_version) -> List[FallbackNode]:
        version = SchemaVersion(schema_version)
        if version is SchemaVersion.V2:
            return self.v2_cache.get()
        return self.stores[version].load()

    def update(self, schema_version, mutate: Callable[[List[FallbackNode]], bool]) -> bool:
        version = SchemaVersion(schema_version)
        try:
            return self.stores[version].update(mutate)
        finally:
            if version is SchemaVersion.V2:
                self.v2_cache.invalidate()


class DeleteLog:
    """Append-only JSON-lines mirror of deletions. Disabled without a path."""

    def __init__(self, path: Optional[str] = None):
        self.path = path or None

    def append(self, record: Mapping, deleted_at: datetime) -> None:
        if not self.path:
            return
        line = jsonable_encoder({**record, "deletedAt": deleted_at})
        try:
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(json.dumps(line, ensure_ascii=False) + "\n")
        except OSError as e:
            raise StoreError("File System Error") from e
