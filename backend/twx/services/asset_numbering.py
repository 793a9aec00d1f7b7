"""Asset number and QR payload generation."""

from __future__ import annotations

import re

from sqlalchemy.orm import Session

from ..models import Element

QR_PREFIX = "TWX-ASSET-"
ASSET_SEQUENCE_WIDTH = 6
_QR_PATTERN = re.compile(r"TWX-ASSET-(.+)$")


def format_asset_number(ifc_type: str, sequence: int) -> str:
    return f"{ifc_type}-{sequence:0{ASSET_SEQUENCE_WIDTH}d}"


def parse_asset_sequence(ifc_type: str, asset_number: str | None) -> int | None:
    """Return the numeric suffix of `<ifcType>-<NNNNNN>`, or None if it does not parse."""
    if not asset_number or not asset_number.startswith(f"{ifc_type}-"):
        return None
    suffix = asset_number[len(ifc_type) + 1:]
    if not suffix.isdigit():
        return None
    return int(suffix)


def next_asset_number(db: Session, ifc_type: str) -> str:
    """Continue the highest existing sequence for this IFC type."""
    rows = db.query(Element.asset_number).filter(
        Element.ifc_type == ifc_type,
        Element.asset_number.startswith(f"{ifc_type}-", autoescape=True),
    ).all()
    sequences = [seq for (number,) in rows if (seq := parse_asset_sequence(ifc_type, number)) is not None]
    return format_asset_number(ifc_type, max(sequences, default=0) + 1)


def qr_payload(asset_number: str) -> str:
    return f"{QR_PREFIX}{asset_number}"


def asset_number_from_qr(code: str | None) -> str | None:
    """Extract the asset number from a scanned QR payload; None if not a TWX code."""
    if not code:
        return None
    match = _QR_PATTERN.search(code.strip())
    if not match:
        return None
    return match.group(1)
