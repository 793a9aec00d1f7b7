"""Record identifiers of the form `<prefix>_<epoch ms>_<9 base36 chars>`."""

from __future__ import annotations

import secrets
import string
import time

_ALPHABET = string.digits + string.ascii_lowercase


def generate_id(prefix: str) -> str:
    suffix = "".join(secrets.choice(_ALPHABET) for _ in range(9))
    return f"{prefix}_{int(time.time() * 1000)}_{suffix}"
