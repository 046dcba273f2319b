"""Directed inter-faction trust ledger.

``records[a][b]`` is how much faction ``a`` trusts faction ``b``.  Trust is
asymmetric: a betrayal only lowers the victim's view of the betrayer.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable

from fogline.ids import FactionId
from fogline.runtime.telemetry import ensure_metrics, record_event


@dataclass(slots=True)
class TrustConfig:
    cooperation_gain: float = 0.02
    betrayal_penalty: float = 0.5
    witness_penalty: float = 0.15
    decay_per_tick: float = 0.002
    ally_threshold: float = 0.3
    low_risk_value: float = 0.5
    unknown_entity_value: float = 0.3


@dataclass(slots=True)
class TrustRecord:
    target_faction_id: FactionId
    trust_score: float = 0.0
    cooperation_count: int = 0
    betrayal_count: int = 0
    last_interaction_tick: int = 0
    intel_shared_count: int = 0
    intel_accuracy_score: float = 1.0

    def adjust(self, delta: float) -> float:
        self.trust_score = _clamp_trust(self.trust_score + delta)
        return self.trust_score


@dataclass(slots=True)
class TrustLedger:
    records: dict[FactionId, dict[FactionId, TrustRecord]] = field(default_factory=dict)
    last_decay_tick: int | None = None

    def get(self, from_faction: FactionId, to_faction: FactionId) -> TrustRecord | None:
        return self.records.get(from_faction, {}).get(to_faction)

    def get_or_create(self, from_faction: FactionId, to_faction: FactionId) -> TrustRecord:
        row = self.records.setdefault(from_faction, {})
        record = row.get(to_faction)
        if record is None:
            record = TrustRecord(target_faction_id=to_faction)
            row[to_faction] = record
        return record

    def iter_records(self) -> Iterable[tuple[FactionId, FactionId, TrustRecord]]:
        for from_faction, row in sorted(self.records.items()):
            for to_faction, record in sorted(row.items()):
                yield from_faction, to_faction, record


@dataclass(frozen=True, slots=True)
class SharingWillingness:
    willing: bool
    reason: str


def _clamp_trust(value: float) -> float:
    return max(-1.0, min(1.0, float(value)))


def ensure_trust_config(world: Any) -> TrustConfig:
    cfg = getattr(world, "trust_cfg", None)
    if not isinstance(cfg, TrustConfig):
        cfg = TrustConfig()
        world.trust_cfg = cfg
    return cfg


def ensure_trust_ledger(world: Any) -> TrustLedger:
    ledger = getattr(world, "trust", None)
    if not isinstance(ledger, TrustLedger):
        ledger = TrustLedger()
        world.trust = ledger
    return ledger


def get_trust(world: Any, from_faction: FactionId, to_faction: FactionId) -> float:
    record = ensure_trust_ledger(world).get(from_faction, to_faction)
    return record.trust_score if record is not None else 0.0


def get_trust_record(world: Any, from_faction: FactionId, to_faction: FactionId) -> TrustRecord | None:
    return ensure_trust_ledger(world).get(from_faction, to_faction)


def get_known_factions(world: Any, faction_id: FactionId) -> list[FactionId]:
    return sorted(ensure_trust_ledger(world).records.get(faction_id, {}).keys())


def record_cooperation(world: Any, faction_a: FactionId, faction_b: FactionId, tick: int) -> None:
    cfg = ensure_trust_config(world)
    ledger = ensure_trust_ledger(world)
    for from_faction, to_faction in ((faction_a, faction_b), (faction_b, faction_a)):
        record = ledger.get_or_create(from_faction, to_faction)
        record.adjust(cfg.cooperation_gain)
        record.cooperation_count += 1
        record.last_interaction_tick = tick
    ensure_metrics(world).inc("trust.cooperation")


def record_betrayal(
    world: Any,
    betrayer: FactionId,
    victim: FactionId,
    tick: int,
    *,
    penalty: float | None = None,
) -> TrustRecord:
    """Lower the victim's trust in the betrayer; the betrayer's view is untouched."""

    cfg = ensure_trust_config(world)
    amount = cfg.betrayal_penalty if penalty is None else float(penalty)
    record = ensure_trust_ledger(world).get_or_create(victim, betrayer)
    record.adjust(-amount)
    record.betrayal_count += 1
    record.last_interaction_tick = tick

    ensure_metrics(world).inc("trust.betrayal")
    record_event(
        world,
        {
            "type": "TrustBetrayalRecorded",
            "tick": tick,
            "betrayer": betrayer,
            "victim": victim,
            "penalty": amount,
        },
    )
    return record


def spread_betrayal_reputation(
    world: Any,
    betrayer: FactionId,
    witnesses: Iterable[FactionId],
    tick: int,
) -> None:
    cfg = ensure_trust_config(world)
    ledger = ensure_trust_ledger(world)
    for witness in witnesses:
        if witness == betrayer:
            continue
        record = ledger.get_or_create(witness, betrayer)
        record.adjust(-cfg.witness_penalty)
        record.last_interaction_tick = tick


def tick_trust_decay(world: Any, tick: int) -> int:
    """Pull every trust score toward zero; return how many records moved.

    The step scales with the ticks elapsed since the previous pass so that the
    trust half-life does not depend on how often the host calls this.
    """

    ledger = ensure_trust_ledger(world)
    if ledger.last_decay_tick is not None and tick <= ledger.last_decay_tick:
        return 0
    elapsed = 1 if ledger.last_decay_tick is None else tick - ledger.last_decay_tick
    ledger.last_decay_tick = tick

    step = ensure_trust_config(world).decay_per_tick * elapsed
    moved = 0
    for _, _, record in ledger.iter_records():
        score = record.trust_score
        if score > 0:
            record.trust_score = max(0.0, score - step)
        elif score < 0:
            record.trust_score = min(0.0, score + step)
        else:
            continue
        moved += 1
    return moved


def evaluate_intel_sharing_willingness(
    world: Any,
    sharer: FactionId,
    receiver: FactionId,
    intel_value: float,
) -> SharingWillingness:
    cfg = ensure_trust_config(world)
    record = ensure_trust_ledger(world).get(sharer, receiver)
    trust = record.trust_score if record is not None else 0.0
    betrayals = record.betrayal_count if record is not None else 0

    if trust > cfg.ally_threshold:
        return SharingWillingness(True, "trusted ally")
    if trust > 0 and intel_value < cfg.low_risk_value:
        return SharingWillingness(True, "low-risk exchange")
    if betrayals > 0:
        return SharingWillingness(False, "known betrayer")
    if trust == 0:
        return SharingWillingness(intel_value < cfg.unknown_entity_value, "unknown entity")
    return SharingWillingness(False, "insufficient trust")


def record_intel_accuracy(
    world: Any,
    from_faction: FactionId,
    to_faction: FactionId,
    accurate: bool,
) -> TrustRecord:
    """Fold one verified share into the receiver's rolling accuracy of the sharer."""

    record = ensure_trust_ledger(world).get_or_create(to_faction, from_faction)
    record.intel_shared_count += 1
    weight = 1.0 / record.intel_shared_count
    record.intel_accuracy_score = record.intel_accuracy_score * (1.0 - weight) + (1.0 if accurate else 0.0) * weight
    return record


__all__ = [
    "SharingWillingness",
    "TrustConfig",
    "TrustLedger",
    "TrustRecord",
    "ensure_trust_config",
    "ensure_trust_ledger",
    "evaluate_intel_sharing_willingness",
    "get_known_factions",
    "get_trust",
    "get_trust_record",
    "record_betrayal",
    "record_cooperation",
    "record_intel_accuracy",
    "spread_betrayal_reputation",
    "tick_trust_decay",
]
