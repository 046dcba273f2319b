"""Betrayal ledger and its trust economics.

Each committed betrayal is appended to the ledger and pushed through the
trust ledger: the victim loses trust in the betrayer, a beneficiary may gain
some, and every faction that witnessed it in the region marks the betrayer
down.  A faction's betrayal reputation only ever accumulates.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable

from fogline.ids import BetrayalId, CharacterId, FactionId, RegionId
from fogline.runtime.heartland import record_heartland_discovery
from fogline.runtime.intelligence import RegionIntel
from fogline.runtime.telemetry import ensure_metrics, record_event
from fogline.runtime.trust import (
    get_trust,
    record_betrayal,
    record_cooperation,
    spread_betrayal_reputation,
)
from fogline.world.characters import CharacterState, characters_in_region


class BetrayalType(str, Enum):
    INTEL_LEAK = "intel_leak"
    HEARTLAND_REVEAL = "heartland_reveal"
    ALLIANCE_BACKSTAB = "alliance_backstab"
    FALSE_INTEL = "false_intel"
    RESOURCE_THEFT = "resource_theft"


@dataclass(frozen=True, slots=True)
class BetrayalTerms:
    beneficiary_trust_gain: float
    victim_trust_loss: float
    witness_penalty: float


BETRAYAL_ECONOMICS: dict[BetrayalType, BetrayalTerms] = {
    BetrayalType.INTEL_LEAK: BetrayalTerms(0.3, 0.5, 0.2),
    BetrayalType.HEARTLAND_REVEAL: BetrayalTerms(0.5, 0.8, 0.3),
    BetrayalType.ALLIANCE_BACKSTAB: BetrayalTerms(0.0, 1.0, 0.4),
    BetrayalType.FALSE_INTEL: BetrayalTerms(0.0, 0.6, 0.0),
    BetrayalType.RESOURCE_THEFT: BetrayalTerms(0.0, 0.4, 0.1),
}


@dataclass(slots=True)
class BetrayalConfig:
    reputation_per_betrayal: float = 0.2
    fame_gain_factor: float = 0.001


@dataclass(frozen=True, slots=True)
class BetrayalEconomics:
    potential_gain: float
    potential_loss: float
    net_value: float


@dataclass(slots=True)
class BetrayalEvent:
    betrayal_id: BetrayalId
    betrayer_faction_id: FactionId
    betrayer_character_id: CharacterId
    victim_faction_id: FactionId
    betrayal_type: BetrayalType
    tick: int
    region_id: RegionId | None = None
    beneficiary_faction_id: FactionId | None = None
    witness_faction_ids: list[FactionId] = field(default_factory=list)
    intel_shared: RegionIntel | None = None


@dataclass(slots=True)
class BetrayalLedger:
    events: list[BetrayalEvent] = field(default_factory=list)
    by_betrayer: dict[FactionId, list[BetrayalEvent]] = field(default_factory=dict)
    by_victim: dict[FactionId, list[BetrayalEvent]] = field(default_factory=dict)
    reputation: dict[FactionId, float] = field(default_factory=dict)

    def append(self, event: BetrayalEvent) -> None:
        self.events.append(event)
        self.by_betrayer.setdefault(event.betrayer_faction_id, []).append(event)
        self.by_victim.setdefault(event.victim_faction_id, []).append(event)


def ensure_betrayal_config(world: Any) -> BetrayalConfig:
    cfg = getattr(world, "betrayal_cfg", None)
    if not isinstance(cfg, BetrayalConfig):
        cfg = BetrayalConfig()
        world.betrayal_cfg = cfg
    return cfg


def ensure_betrayal_ledger(world: Any) -> BetrayalLedger:
    ledger = getattr(world, "betrayals", None)
    if not isinstance(ledger, BetrayalLedger):
        ledger = BetrayalLedger()
        world.betrayals = ledger
    return ledger


def _next_betrayal_id(world: Any, tick: int) -> BetrayalId:
    seq = int(getattr(world, "next_betrayal_seq", 0) or 0)
    world.next_betrayal_seq = seq + 1
    return BetrayalId(f"betrayal:{tick}:{seq}")


def calculate_betrayal_economics(
    world: Any,
    actor: CharacterState,
    victim_faction: FactionId,
    betrayal_type: BetrayalType | str,
) -> BetrayalEconomics:
    terms = BETRAYAL_ECONOMICS[BetrayalType(betrayal_type)]
    cfg = ensure_betrayal_config(world)
    gain = terms.beneficiary_trust_gain + actor.fame * cfg.fame_gain_factor
    loss = abs(terms.victim_trust_loss) + get_trust(world, victim_faction, actor.faction_id)
    return BetrayalEconomics(potential_gain=gain, potential_loss=loss, net_value=gain - loss)


def identify_witnesses(
    world: Any,
    region_id: RegionId,
    betrayer_character_id: CharacterId,
    *,
    betrayer_faction_id: FactionId | None = None,
) -> list[FactionId]:
    witnesses: list[FactionId] = []
    for character in characters_in_region(world, region_id):
        if character.character_id == betrayer_character_id or not character.is_alive:
            continue
        if character.faction_id == betrayer_faction_id or character.faction_id in witnesses:
            continue
        witnesses.append(character.faction_id)
    return witnesses


def commit_betrayal(
    world: Any,
    *,
    betrayer_faction_id: FactionId,
    betrayer_character_id: CharacterId,
    victim_faction_id: FactionId,
    betrayal_type: BetrayalType | str,
    tick: int,
    region_id: RegionId | None = None,
    witnesses: Iterable[FactionId] | None = None,
    beneficiary_faction_id: FactionId | None = None,
    intel_shared: RegionIntel | None = None,
) -> BetrayalEvent:
    kind = BetrayalType(betrayal_type)
    terms = BETRAYAL_ECONOMICS[kind]
    cfg = ensure_betrayal_config(world)
    ledger = ensure_betrayal_ledger(world)

    if witnesses is None:
        witness_ids = (
            identify_witnesses(world, region_id, betrayer_character_id, betrayer_faction_id=betrayer_faction_id)
            if region_id is not None
            else []
        )
    else:
        witness_ids = [witness for witness in witnesses if witness != betrayer_faction_id]

    event = BetrayalEvent(
        betrayal_id=_next_betrayal_id(world, tick),
        betrayer_faction_id=betrayer_faction_id,
        betrayer_character_id=betrayer_character_id,
        victim_faction_id=victim_faction_id,
        betrayal_type=kind,
        tick=tick,
        region_id=region_id,
        beneficiary_faction_id=beneficiary_faction_id,
        witness_faction_ids=witness_ids,
        intel_shared=intel_shared.copy() if intel_shared is not None else None,
    )
    ledger.append(event)

    record_betrayal(world, betrayer_faction_id, victim_faction_id, tick)
    current = ledger.reputation.get(betrayer_faction_id, 0.0)
    ledger.reputation[betrayer_faction_id] = min(1.0, current + cfg.reputation_per_betrayal)

    if beneficiary_faction_id is not None and terms.beneficiary_trust_gain > 0:
        record_cooperation(world, betrayer_faction_id, beneficiary_faction_id, tick)
    if kind is BetrayalType.HEARTLAND_REVEAL and beneficiary_faction_id is not None:
        record_heartland_discovery(world, beneficiary_faction_id, victim_faction_id, tick=tick)
    if witness_ids:
        spread_betrayal_reputation(world, betrayer_faction_id, witness_ids, tick)

    metrics = ensure_metrics(world)
    metrics.inc("betrayal.committed")
    metrics.topk_add("betrayal.notorious", betrayer_faction_id, ledger.reputation[betrayer_faction_id])
    record_event(
        world,
        {
            "type": "BetrayalCommitted",
            "tick": tick,
            "betrayal_id": event.betrayal_id,
            "betrayer": betrayer_faction_id,
            "victim": victim_faction_id,
            "betrayal_type": kind.value,
            "witnesses": list(witness_ids),
        },
    )
    return event


def get_betrayal_reputation(world: Any, faction_id: FactionId) -> float:
    return ensure_betrayal_ledger(world).reputation.get(faction_id, 0.0)


def get_betrayals_by_family(world: Any, faction_id: FactionId) -> list[BetrayalEvent]:
    return list(ensure_betrayal_ledger(world).by_betrayer.get(faction_id, []))


def get_betrayals_against_family(world: Any, faction_id: FactionId) -> list[BetrayalEvent]:
    return list(ensure_betrayal_ledger(world).by_victim.get(faction_id, []))


__all__ = [
    "BETRAYAL_ECONOMICS",
    "BetrayalConfig",
    "BetrayalEconomics",
    "BetrayalEvent",
    "BetrayalLedger",
    "BetrayalTerms",
    "BetrayalType",
    "calculate_betrayal_economics",
    "commit_betrayal",
    "ensure_betrayal_config",
    "ensure_betrayal_ledger",
    "get_betrayal_reputation",
    "get_betrayals_against_family",
    "get_betrayals_by_family",
    "identify_witnesses",
]
