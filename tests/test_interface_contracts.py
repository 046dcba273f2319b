import pytest

from fogline.interfaces.contracts import EVENT_PAYLOAD_SCHEMAS, validate_event_payload
from fogline.runtime.telemetry import Metrics, ensure_metrics, record_event
from fogline.state import WorldState


def test_known_event_types_are_registered():
    known = {"IntelExplored", "IntelShared", "MissionFailed", "BetrayalCommitted"}
    assert known.issubset(EVENT_PAYLOAD_SCHEMAS.keys())


def test_event_payload_validation_enforces_required_fields():
    payload = {"tick": 3, "mission_id": "mission:0:0"}
    validate_event_payload("MissionAbandoned", payload)
    with pytest.raises(ValueError):
        validate_event_payload("MissionAbandoned", {"tick": 3})


def test_event_payload_validation_enforces_types():
    with pytest.raises(TypeError):
        validate_event_payload(
            "IntelShared",
            {"tick": 1, "from_faction": "f:a", "to_faction": "f:b", "region": "r:1", "written": "yes"},
        )


def test_optional_fields_accept_none():
    validate_event_payload("MissionFailed", {"tick": 1, "mission_id": "m", "identification": "species", "detector": None})


def test_unregistered_event_types_pass_through():
    validate_event_payload("SomethingElse", {})


def test_record_event_validates_before_appending():
    world = WorldState()
    with pytest.raises(ValueError):
        record_event(world, {"type": "IntelEvicted", "tick": 1})
    assert world.event_ring.of_type("IntelEvicted") == []

    record_event(world, {"type": "IntelEvicted", "tick": 1, "faction": "f:a", "region": "r:1"})
    assert len(world.event_ring.of_type("IntelEvicted")) == 1


def test_metrics_are_created_lazily_on_bare_worlds():
    class _Bare:
        pass

    world = _Bare()
    metrics = ensure_metrics(world)

    assert isinstance(metrics, Metrics)
    assert ensure_metrics(world) is metrics
    metrics.inc("intel.shared")
    assert world.metrics.get("intel.shared") == 1
