"""Changelog file shown in the UI (JSON on disk)."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_VERSION = "0.1.0"


def default_changelog() -> dict[str, Any]:
    return {
        "changes": [],
        "metadata": {
            "lastUpdate": datetime.now(timezone.utc).isoformat(),
            "totalChanges": 0,
            "currentVersion": DEFAULT_VERSION,
        },
    }


def ensure_changelog(path: str | Path) -> Path:
    """Create the changelog file when it is missing, empty or not valid JSON."""
    changelog_path = Path(path)
    try:
        raw = changelog_path.read_text(encoding="utf-8")
        if raw.strip() and isinstance(json.loads(raw), dict):
            return changelog_path
    except (OSError, ValueError):
        pass
    logger.info("changelog.init path=%s", changelog_path)
    changelog_path.parent.mkdir(parents=True, exist_ok=True)
    changelog_path.write_text(json.dumps(default_changelog(), indent=2), encoding="utf-8")
    return changelog_path


def read_changelog(path: str | Path) -> dict[str, Any]:
    changelog_path = ensure_changelog(path)
    data = json.loads(changelog_path.read_text(encoding="utf-8"))
    return {
        "changes": data.get("changes") or [],
        "metadata": data.get("metadata") or {},
    }


def current_version(path: str | Path, fallback: str = DEFAULT_VERSION) -> str:
    try:
        return read_changelog(path)["metadata"].get("currentVersion") or fallback
    except (OSError, ValueError):
        logger.exception("changelog.read_failed path=%s", path)
        return fallback
