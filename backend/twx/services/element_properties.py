"""Normalise untyped raw BIM viewer nodes into typed element properties."""

from __future__ import annotations

from typing import Any

UNKNOWN_ID = "unknown"
DEFAULT_TYPE = "Element"
DEFAULT_NAME = "Unnamed Element"


def _first(raw: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        value = raw.get(key)
        if value not in (None, ""):
            return value
    return None


def _as_text(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, dict):
        return _as_text(_first(value, "name", "Name", "id"))
    return str(value)


def resolve_element_id(raw: dict[str, Any]) -> str:
    return str(_first(raw, "id", "speckle_id", "applicationId") or UNKNOWN_ID)


def resolve_element_type(raw: dict[str, Any]) -> str:
    speckle_type = raw.get("speckle_type")
    if isinstance(speckle_type, str) and speckle_type:
        return speckle_type.split(".")[-1]
    return _as_text(_first(raw, "category", "type")) or DEFAULT_TYPE


def resolve_ifc_type(raw: dict[str, Any]) -> str | None:
    explicit = _first(raw, "ifcType", "ifc_type", "IfcType")
    if explicit:
        return str(explicit)
    for key in ("speckle_type", "type"):
        value = raw.get(key)
        if isinstance(value, str):
            for segment in reversed(value.split(".")):
                if segment.startswith("Ifc"):
                    return segment
    return None


def element_properties(raw: dict[str, Any]) -> dict[str, Any]:
    """Typed view over a raw node: id, type, name, ifc_type, category, level, properties."""
    raw = raw or {}
    return {
        "id": resolve_element_id(raw),
        "type": resolve_element_type(raw),
        "name": _as_text(_first(raw, "name", "Name", "displayName")) or DEFAULT_NAME,
        "ifc_type": resolve_ifc_type(raw),
        "category": _as_text(raw.get("category")),
        "level": _as_text(_first(raw, "level", "Level", "buildingStorey")),
        "properties": dict(raw),
    }
