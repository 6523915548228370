from __future__ import annotations

import hashlib
import json
from typing import Any

ROUND_DIGITS = 12


def canonicalize(value: Any) -> Any:
    if isinstance(value, float):
        rounded = round(value, ROUND_DIGITS)
        if rounded == -0.0:
            rounded = 0.0
        return rounded
    if isinstance(value, (list, tuple)):
        return [canonicalize(item) for item in value]
    if isinstance(value, dict):
        return {key: canonicalize(val) for key, val in value.items()}
    return value


def canonical_json_bytes(value: Any) -> bytes:
    canonical = canonicalize(value)
    return json.dumps(canonical, sort_keys=True, separators=(",", ":"), ensure_ascii=True).encode(
        "utf-8"
    )


def hash_bytes(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def hash_text(*parts: str) -> str:
    return hash_bytes("|".join(parts).encode("utf-8"))


def hash_value(value: Any) -> str:
    return hash_bytes(canonical_json_bytes(value))


def pretty_json(value: Any) -> str:
    return json.dumps(value, indent=2, sort_keys=True, ensure_ascii=False) + "\n"
