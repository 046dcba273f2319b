"""Payload contracts for telemetry events emitted by the intel core."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping


@dataclass(frozen=True)
class PayloadSchema:
    """Minimal structural schema for validating payload dictionaries."""

    required: Mapping[str, tuple[type, ...]]
    optional: Mapping[str, tuple[type, ...]] = field(default_factory=dict)

    def validate(self, payload: Mapping[str, Any]) -> None:
        missing = [key for key in self.required if key not in payload]
        if missing:
            raise ValueError(f"Missing required fields: {missing}")
        for key, expected in self.required.items():
            if not isinstance(payload[key], expected):
                raise TypeError(f"Field '{key}' has type {type(payload[key])!r}, expected {expected!r}")
        for key, expected in self.optional.items():
            if key in payload and payload[key] is not None and not isinstance(payload[key], expected):
                raise TypeError(f"Field '{key}' has type {type(payload[key])!r}, expected {expected!r}")


NUMERIC = (int, float)


EVENT_PAYLOAD_SCHEMAS: Dict[str, PayloadSchema] = {
    "IntelExplored": PayloadSchema(
        required={"tick": NUMERIC, "faction": (str,), "region": (str,)},
        optional={"character": (str,)},
    ),
    "IntelShared": PayloadSchema(
        required={
            "tick": NUMERIC,
            "from_faction": (str,),
            "to_faction": (str,),
            "region": (str,),
            "written": (bool,),
        },
    ),
    "IntelEvicted": PayloadSchema(
        required={"tick": NUMERIC, "faction": (str,), "region": (str,)},
    ),
    "MisinformationPlanted": PayloadSchema(
        required={"faction": (str,), "region": (str,), "mode": (str,)},
        optional={"tick": NUMERIC},
    ),
    "TrustBetrayalRecorded": PayloadSchema(
        required={"tick": NUMERIC, "betrayer": (str,), "victim": (str,), "penalty": NUMERIC},
    ),
    "HeartlandDiscovered": PayloadSchema(
        required={"discoverer": (str,), "target": (str,), "exposure": NUMERIC},
        optional={"tick": NUMERIC, "region": (str,)},
    ),
    "MissionStarted": PayloadSchema(
        required={"tick": NUMERIC, "mission_id": (str,), "mission_type": (str,), "agent": (str,)},
    ),
    "MissionAbsorbed": PayloadSchema(
        required={"tick": NUMERIC, "mission_id": (str,), "casualty": (str,), "outcome": (str,)},
    ),
    "MissionFailed": PayloadSchema(
        required={"tick": NUMERIC, "mission_id": (str,), "identification": (str,)},
        optional={"detector": (str,)},
    ),
    "MissionResolved": PayloadSchema(
        required={"tick": NUMERIC, "mission_id": (str,), "mission_type": (str,)},
    ),
    "MissionAbandoned": PayloadSchema(
        required={"tick": NUMERIC, "mission_id": (str,)},
    ),
    "BetrayalCommitted": PayloadSchema(
        required={
            "tick": NUMERIC,
            "betrayal_id": (str,),
            "betrayer": (str,),
            "victim": (str,),
            "betrayal_type": (str,),
        },
        optional={"witnesses": (list,)},
    ),
}


def validate_event_payload(event_type: str, payload: Mapping[str, Any]) -> None:
    schema = EVENT_PAYLOAD_SCHEMAS.get(event_type)
    if schema is None:
        return
    schema.validate(payload)


__all__ = [
    "EVENT_PAYLOAD_SCHEMAS",
    "PayloadSchema",
    "validate_event_payload",
]
