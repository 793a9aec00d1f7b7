"""Colour buckets the 3D viewer applies to inspected BIM elements."""

from __future__ import annotations

from typing import Iterable

OK_COLOR = "#22c55e"
ISSUE_COLOR = "#ef4444"
OTHER_COLOR = "#808080"

STATUS_BUCKETS: dict[str, str] = {"ok": "green", "issue": "red"}
BUCKET_COLORS: dict[str, str] = {"green": OK_COLOR, "red": ISSUE_COLOR, "gray": OTHER_COLOR}


def bucket_for_status(status: str | None) -> str:
    return STATUS_BUCKETS.get((status or "").strip().lower(), "gray")


def color_buckets(inspections: Iterable) -> dict[str, dict[str, object]]:
    """Group inspected element ids by colour. Every bucket is always present."""
    buckets: dict[str, dict[str, object]] = {
        name: {"color": color, "element_ids": []} for name, color in BUCKET_COLORS.items()
    }
    for inspection in inspections:
        buckets[bucket_for_status(inspection.status)]["element_ids"].append(inspection.element_id)
    return buckets
