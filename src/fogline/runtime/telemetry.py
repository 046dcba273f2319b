from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

from fogline.interfaces.contracts import validate_event_payload


@dataclass(slots=True)
class TopKEntry:
    key: str
    score: float
    payload: Mapping[str, object] | None = None


@dataclass(slots=True)
class TopK:
    k: int = 10
    entries: list[TopKEntry] = field(default_factory=list)

    def add(self, key: str, score: float, payload: Mapping[str, object] | None = None) -> None:
        entry = TopKEntry(key=key, score=float(score), payload=dict(payload or {}))
        self.entries = [existing for existing in self.entries if existing.key != key]
        self.entries.append(entry)
        self.entries.sort(key=lambda e: (-e.score, e.key))
        if len(self.entries) > max(1, int(self.k)):
            self.entries = self.entries[: int(self.k)]

    def snapshot(self) -> list[Mapping[str, object]]:
        return [
            {"key": entry.key, "score": entry.score, "payload": dict(entry.payload or {})}
            for entry in self.entries
        ]


@dataclass(slots=True)
class Metrics:
    counters: dict[str, float] = field(default_factory=dict)
    gauges: dict[str, Any] = field(default_factory=dict)
    topk: dict[str, TopK] = field(default_factory=dict)

    def inc(self, path: str, n: float = 1.0) -> float:
        self.counters[path] = self.counters.get(path, 0.0) + float(n)
        return self.counters[path]

    def get(self, path: str, default: float = 0.0) -> float:
        return self.counters.get(path, default)

    def set_gauge(self, path: str, value: Any) -> Any:
        self.gauges[path] = value
        return value

    def topk_add(self, path: str, key: str, score: float, payload: Mapping[str, object] | None = None) -> None:
        bucket = self.topk.get(path)
        if bucket is None:
            bucket = TopK()
            self.topk[path] = bucket
        bucket.add(key, score, payload=payload)


@dataclass(slots=True)
class EventRing:
    capacity: int = 200
    events: list[Mapping[str, object]] = field(default_factory=list)

    def append(self, event: Mapping[str, object]) -> None:
        self.events.append(dict(event))
        if len(self.events) > max(1, int(self.capacity)):
            self.events = self.events[-int(self.capacity) :]

    def of_type(self, event_type: str) -> list[Mapping[str, object]]:
        return [event for event in self.events if event.get("type") == event_type]


@dataclass(slots=True)
class DebugConfig:
    level: str = "minimal"

    def has_event_ring(self) -> bool:
        return self.level in {"standard", "verbose"}


def ensure_metrics(world: Any) -> Metrics:
    metrics = getattr(world, "metrics", None)
    if not isinstance(metrics, Metrics):
        metrics = Metrics()
        world.metrics = metrics
    return metrics


def ensure_event_ring(world: Any) -> EventRing:
    cfg = getattr(world, "debug_cfg", None)
    if not isinstance(cfg, DebugConfig):
        cfg = DebugConfig()
        world.debug_cfg = cfg
    ring = getattr(world, "event_ring", None)
    if cfg.has_event_ring():
        if not isinstance(ring, EventRing) or ring.capacity <= 0:
            ring = EventRing()
            world.event_ring = ring
        return ring
    return ring if isinstance(ring, EventRing) else EventRing(capacity=0)


def record_event(world: Any, event: Mapping[str, object]) -> None:
    """Validate ``event`` against its schema and append it to the debug ring.

    Validation runs even when the ring is disabled so malformed payloads
    surface at the call site regardless of debug level.
    """

    event_type = event.get("type")
    if isinstance(event_type, str):
        validate_event_payload(event_type, event)
    ring = ensure_event_ring(world)
    if ring.capacity <= 0:
        return
    payload = dict(event)
    if "tick" not in payload:
        payload["tick"] = getattr(world, "tick", 0)
    ring.append(payload)


__all__ = [
    "DebugConfig",
    "EventRing",
    "Metrics",
    "TopK",
    "TopKEntry",
    "ensure_event_ring",
    "ensure_metrics",
    "record_event",
]
