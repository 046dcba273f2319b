from __future__ import annotations

import json
from dataclasses import fields, is_dataclass
from enum import Enum
from hashlib import sha256
from typing import Any, Mapping, Sequence

SNAPSHOT_SCHEMA_VERSION = "fogline_snapshot_v1"

SIGNED_REGISTRIES = (
    "characters",
    "intelligence",
    "trust",
    "heartland",
    "espionage",
    "betrayals",
)


def to_snapshot_dict(obj: Any) -> Any:
    """Convert registries into a JSON-friendly tree with a stable ordering."""

    if is_dataclass(obj) and not isinstance(obj, type):
        payload = {field.name: to_snapshot_dict(getattr(obj, field.name)) for field in fields(obj)}
        return {"__type__": f"{obj.__class__.__module__}.{obj.__class__.__qualname__}", "data": payload}

    if isinstance(obj, Enum):
        return {"__enum__": f"{obj.__class__.__module__}.{obj.__class__.__qualname__}", "value": obj.value}

    if isinstance(obj, (set, frozenset)):
        return {"__set__": [to_snapshot_dict(item) for item in sorted(obj, key=lambda itm: str(itm))]}

    if isinstance(obj, Mapping):
        return {str(k): to_snapshot_dict(v) for k, v in sorted(obj.items(), key=lambda item: str(item[0]))}

    if isinstance(obj, Sequence) and not isinstance(obj, (str, bytes, bytearray)):
        return [to_snapshot_dict(item) for item in obj]

    return obj


def _canonical_dumps(data: Any) -> str:
    return json.dumps(data, sort_keys=True, separators=(",", ":"))


def snapshot_world(world: Any) -> dict[str, Any]:
    registries = {name: to_snapshot_dict(getattr(world, name, None)) for name in SIGNED_REGISTRIES}
    rng = getattr(world, "rng_service", None)
    return {
        "schema_version": SNAPSHOT_SCHEMA_VERSION,
        "seed": getattr(world, "seed", 0),
        "tick": getattr(world, "tick", 0),
        "rng": rng.signature() if rng is not None else None,
        "registries": registries,
    }


def world_signature(world: Any) -> str:
    """Digest of every intel-core registry; equal seeds and inputs give equal digests."""

    return sha256(_canonical_dumps(snapshot_world(world)).encode("utf-8")).hexdigest()


__all__ = [
    "SIGNED_REGISTRIES",
    "SNAPSHOT_SCHEMA_VERSION",
    "snapshot_world",
    "to_snapshot_dict",
    "world_signature",
]
