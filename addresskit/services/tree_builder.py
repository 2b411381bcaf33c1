# addresskit/services/tree_builder.py
from collections.abc import Iterable, Mapping
from typing import Any, Dict, List, Optional

from addresskit.models.unit import LEVEL_ORDER, UnitLevel


def _as_record(unit: Any) -> Optional[Dict[str, Any]]:
    if unit is None:
        raise TypeError("Cannot build a tree from a null unit.")
    if isinstance(unit, Mapping):
        return dict(unit)
    if hasattr(unit, "model_dump"):
        return unit.model_dump(by_alias=True, exclude={"id", "revision_id"})
    # Anything else carries no code to link on
    return None


def _within_level(record: Dict[str, Any], max_level: UnitLevel) -> bool:
    try:
        level = UnitLevel.parse(record.get("level"))
    except ValueError:
        return True
    return LEVEL_ORDER.index(level) <= LEVEL_ORDER.index(max_level)


def build_tree(units, max_level: Optional[UnitLevel] = None) -> List[Dict[str, Any]]:
    """
    Builds a nested hierarchy from a flat list of unit records.

    Every record is copied and given a ``children`` list. A record whose
    ``parentCode`` names a code present in the input is appended to that
    code's node; every other record is a root (orphans are promoted, not
    dropped). When two records share a code, the index keeps the last one,
    so children attach to it, while each duplicate remains a root of its own.

    A record always attaches where its ``parentCode`` points. Members of a
    parent cycle therefore hang only beneath each other and never reach a
    root, so a cycle and everything below it is absent from the result.

    Raises TypeError for a ``None`` input or ``None`` elements. Strings,
    numbers and mappings passed as the whole input yield an empty tree.
    """
    if units is None:
        raise TypeError("Cannot build a tree from None.")
    if isinstance(units, (str, bytes, Mapping)) or not isinstance(units, Iterable):
        return []

    nodes = []
    index: Dict[str, Dict[str, Any]] = {}
    for unit in units:
        record = _as_record(unit)
        if record is None:
            continue
        if max_level is not None and not _within_level(record, max_level):
            continue
        node = {**record, "children": []}
        nodes.append(node)
        index[str(node.get("code"))] = node

    roots = []
    for node in nodes:
        parent_code = node.get("parentCode")
        parent = index.get(str(parent_code)) if parent_code not in (None, "") else None
        if parent is not None:
            parent["children"].append(node)
        else:
            roots.append(node)

    return roots
