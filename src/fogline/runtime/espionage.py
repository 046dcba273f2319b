"""Espionage missions: a per-tick state machine driven by creature biology.

Mission lifecycle::

    ACTIVE --(pack member caught)--> ACTIVE
    ACTIVE --(lead agent caught)---> FAILED
    ACTIVE --(duration elapsed)----> RESOLVED
    ACTIVE --(agent dead/missing)--> ABANDONED

Size drives visibility, speed drives duration, and sentinels in the target
region contribute with diminishing returns.  Support members travelling with
the lead agent can be caught in the agent's place, one per detection.  Every
mission gets at most one outcome per tick, so a support member being caught
and the lead agent being exposed never happen in the same tick.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Protocol, Sequence

from fogline.ids import CharacterId, FactionId, MissionId, RegionId
from fogline.runtime.heartland import get_families_with_heartland_in, record_heartland_discovery
from fogline.runtime.intelligence import (
    IntelSource,
    MisinformationPayload,
    RegionIntel,
    get_or_create_map,
    plant_misinformation,
)
from fogline.runtime.rng_service import ensure_rng_service
from fogline.runtime.telemetry import ensure_metrics, record_event
from fogline.runtime.trust import record_betrayal
from fogline.world.characters import CharacterState, characters_in_region, get_character
from fogline.world.roles import ensure_role_directory
from fogline.world.species import get_species, species_size, species_speed


class EspionageActionType(str, Enum):
    SPY = "spy"
    INFILTRATE = "infiltrate"
    SPREAD_RUMORS = "spread_rumors"
    COUNTER_SPY = "counter_spy"
    SHARE_INTEL = "share_intel"
    PLANT_MISINFORMATION = "plant_misinformation"


class MissionStatus(str, Enum):
    ACTIVE = "active"
    FAILED = "failed"
    RESOLVED = "resolved"
    ABANDONED = "abandoned"


class IdentificationLevel(str, Enum):
    SIZE_CLASS = "size_class"
    TAXONOMY_CLASS = "taxonomy_class"
    SPECIES = "species"
    FAMILY = "family"

    @property
    def rank(self) -> int:
        return _IDENTIFICATION_RANK[self]


_IDENTIFICATION_RANK = {
    IdentificationLevel.SIZE_CLASS: 0,
    IdentificationLevel.TAXONOMY_CLASS: 1,
    IdentificationLevel.SPECIES: 2,
    IdentificationLevel.FAMILY: 3,
}

BASE_MISSION_DURATIONS: dict[EspionageActionType, int] = {
    EspionageActionType.SPY: 5,
    EspionageActionType.INFILTRATE: 15,
    EspionageActionType.SPREAD_RUMORS: 10,
    EspionageActionType.COUNTER_SPY: 20,
    EspionageActionType.SHARE_INTEL: 1,
    EspionageActionType.PLANT_MISINFORMATION: 8,
}

RUMOR_THREATS = ("massive_predator_presence", "resource_depleted")


class ChanceSource(Protocol):
    def chance(self, stream_key: str, probability: float, *, scope: dict[str, object] | None = None) -> bool:
        ...


@dataclass(slots=True)
class EspionageConfig:
    mission_cooldown_ticks: int = 30
    history_window_ticks: int = 500
    detect_stream: str = "espionage:detect"
    base_detection: float = 0.05
    size_divisor: float = 40.0
    min_size_modifier: float = 0.3
    max_size_modifier: float = 2.0
    support_detection_bonus: float = 0.005
    sentinel_unit: float = 0.12
    min_sentinel_effectiveness: float = 0.2
    max_sentinel_effectiveness: float = 2.0
    spy_proficiency_factor: float = 0.15
    intelligence_pivot: float = 50.0
    intelligence_factor: float = 0.001
    min_detection_chance: float = 0.01
    max_detection_chance: float = 0.8
    min_speed_factor: float = 0.4
    max_speed_factor: float = 2.5
    support_strength_weight: float = 0.7
    default_detector_strength: float = 30.0
    overpower_ratio: float = 1.5
    escape_energy_loss: float = 0.3
    capture_health_loss: float = 0.4
    exposure_trust_penalty: float = 0.3
    spy_intel_reliability: float = 0.8
    infiltrate_intel_reliability: float = 0.9
    rumor_pop_estimate: int = 999
    rumor_reliability: float = 0.6


@dataclass(slots=True)
class EspionageConsequence:
    kind: str
    faction_id: FactionId | None = None
    target_faction_id: FactionId | None = None
    region_id: RegionId | None = None
    character_id: CharacterId | None = None
    detector_character_id: CharacterId | None = None
    delta: float = 0.0


@dataclass(frozen=True, slots=True)
class DetectionReport:
    detected: bool
    identification_level: IdentificationLevel
    description: str


@dataclass(slots=True)
class EspionageResult:
    mission_id: MissionId
    success: bool
    narrative: str
    intel_gained: RegionIntel | None = None
    consequences: list[EspionageConsequence] = field(default_factory=list)
    report: DetectionReport | None = None


@dataclass(slots=True)
class EspionageMission:
    mission_id: MissionId
    mission_type: EspionageActionType
    agent_character_id: CharacterId
    target_region_id: RegionId
    start_tick: int
    duration_ticks: int
    support_character_ids: list[CharacterId] = field(default_factory=list)
    target_faction_id: FactionId | None = None
    detected: bool = False
    detected_by_character_id: CharacterId | None = None
    casualty_character_ids: list[CharacterId] = field(default_factory=list)
    completed: bool = False
    result: EspionageResult | None = None
    status: MissionStatus = MissionStatus.ACTIVE
    last_processed_tick: int | None = None


@dataclass(slots=True)
class EspionageState:
    missions: dict[MissionId, EspionageMission] = field(default_factory=dict)
    history: list[EspionageMission] = field(default_factory=list)
    cooldowns: dict[CharacterId, int] = field(default_factory=dict)
    last_tick_processed: int | None = None


def ensure_espionage_config(world: Any) -> EspionageConfig:
    cfg = getattr(world, "espionage_cfg", None)
    if not isinstance(cfg, EspionageConfig):
        cfg = EspionageConfig()
        world.espionage_cfg = cfg
    return cfg


def ensure_espionage_state(world: Any) -> EspionageState:
    state = getattr(world, "espionage", None)
    if not isinstance(state, EspionageState):
        state = EspionageState()
        world.espionage = state
    return state


def size_class(size: float) -> str:
    if size < 5:
        return "tiny"
    if size < 20:
        return "small"
    if size < 60:
        return "medium"
    return "large"


def _next_mission_id(world: Any, tick: int) -> MissionId:
    seq = int(getattr(world, "next_mission_seq", 0) or 0)
    world.next_mission_seq = seq + 1
    return MissionId(f"mission:{tick}:{seq}")


def get_mission_duration(
    world: Any,
    mission_type: EspionageActionType | str,
    spy: CharacterState | None,
) -> int:
    base = BASE_MISSION_DURATIONS[EspionageActionType(mission_type)]
    if spy is None:
        return base
    cfg = ensure_espionage_config(world)
    speed = species_speed(world, spy.species_id)
    speed_factor = max(cfg.min_speed_factor, min(cfg.max_speed_factor, 50.0 / max(speed, 1.0)))
    return max(1, int(math.floor(base * speed_factor + 0.5)))


def is_on_cooldown(world: Any, character_id: CharacterId, tick: int) -> bool:
    last_completed = ensure_espionage_state(world).cooldowns.get(character_id)
    if last_completed is None:
        return False
    return tick - last_completed < ensure_espionage_config(world).mission_cooldown_ticks


def is_on_mission(world: Any, character_id: CharacterId) -> bool:
    for mission in ensure_espionage_state(world).missions.values():
        if mission.completed:
            continue
        if mission.agent_character_id == character_id or character_id in mission.support_character_ids:
            return True
    return False


def get_mission(world: Any, mission_id: MissionId) -> EspionageMission | None:
    state = ensure_espionage_state(world)
    mission = state.missions.get(mission_id)
    if mission is not None:
        return mission
    for past in state.history:
        if past.mission_id == mission_id:
            return past
    return None


def get_active_missions(world: Any) -> list[EspionageMission]:
    return [mission for mission in ensure_espionage_state(world).missions.values() if not mission.completed]


def get_recent_missions(world: Any) -> list[EspionageMission]:
    return list(ensure_espionage_state(world).history)


def start_mission(
    world: Any,
    *,
    mission_type: EspionageActionType | str,
    agent_character_id: CharacterId,
    target_region_id: RegionId,
    tick: int,
    support_character_ids: Iterable[CharacterId] = (),
    target_faction_id: FactionId | None = None,
) -> EspionageMission:
    kind = EspionageActionType(mission_type)
    spy = get_character(world, agent_character_id)
    mission = EspionageMission(
        mission_id=_next_mission_id(world, tick),
        mission_type=kind,
        agent_character_id=agent_character_id,
        target_region_id=target_region_id,
        start_tick=tick,
        duration_ticks=get_mission_duration(world, kind, spy),
        support_character_ids=list(support_character_ids),
        target_faction_id=target_faction_id,
    )
    state = ensure_espionage_state(world)
    state.missions[mission.mission_id] = mission

    metrics = ensure_metrics(world)
    metrics.inc("espionage.started")
    metrics.set_gauge("espionage.active", len(state.missions))
    record_event(
        world,
        {
            "type": "MissionStarted",
            "tick": tick,
            "mission_id": mission.mission_id,
            "mission_type": kind.value,
            "agent": agent_character_id,
        },
    )
    return mission


def _sentinels_in_region(world: Any, region_id: RegionId, spy: CharacterState) -> list[CharacterState]:
    return [
        character
        for character in characters_in_region(world, region_id)
        if character.character_id != spy.character_id and character.is_alive and character.role == "sentinel"
    ]


def _living_uncaught_support(world: Any, mission: EspionageMission) -> list[CharacterState]:
    support: list[CharacterState] = []
    for character_id in mission.support_character_ids:
        if character_id in mission.casualty_character_ids:
            continue
        character = get_character(world, character_id)
        if character is not None and character.is_alive:
            support.append(character)
    return support


def _open_mission_for_agent(world: Any, agent_id: CharacterId) -> EspionageMission | None:
    for mission in ensure_espionage_state(world).missions.values():
        if not mission.completed and mission.agent_character_id == agent_id:
            return mission
    return None


def calculate_detection_chance(
    world: Any,
    spy: CharacterState,
    region_id: RegionId,
    sentinels: Sequence[CharacterState],
    *,
    mission: EspionageMission | None = None,
) -> float:
    """Per-tick probability that ``spy`` is noticed in ``region_id``."""

    cfg = ensure_espionage_config(world)
    spy_size = species_size(world, spy.species_id)

    size_modifier = max(cfg.min_size_modifier, min(cfg.max_size_modifier, spy_size / cfg.size_divisor))
    chance = cfg.base_detection * size_modifier

    if mission is None:
        mission = _open_mission_for_agent(world, spy.character_id)
    if mission is not None:
        chance -= len(_living_uncaught_support(world, mission)) * cfg.support_detection_bonus

    if sentinels:
        contribution = 0.0
        for sentinel in sentinels:
            ratio = species_size(world, sentinel.species_id) / max(spy_size, 1.0)
            effectiveness = max(cfg.min_sentinel_effectiveness, min(cfg.max_sentinel_effectiveness, ratio))
            contribution += cfg.sentinel_unit * effectiveness
        chance += cfg.sentinel_unit * math.log(1.0 + contribution / cfg.sentinel_unit)

    assignment = ensure_role_directory(world).get_role(spy.character_id)
    if assignment is not None and assignment.role == "spy":
        chance -= max(0.0, min(1.0, assignment.proficiency)) * cfg.spy_proficiency_factor

    intelligence = spy.gene("intelligence")
    if intelligence > cfg.intelligence_pivot:
        chance -= (intelligence - cfg.intelligence_pivot) * cfg.intelligence_factor

    return max(cfg.min_detection_chance, min(cfg.max_detection_chance, chance))


def generate_detection_report(
    world: Any,
    spy: CharacterState,
    detector: CharacterState | None,
) -> DetectionReport:
    if detector is None:
        return DetectionReport(True, IdentificationLevel.SIZE_CLASS, "An intruder was detected in the region.")

    observation = ensure_role_directory(world).observation_level(detector.character_id)
    spy_size = species_size(world, spy.species_id)
    detector_size = species_size(world, detector.species_id)
    size_penalty = abs(math.log2(max(spy_size / max(detector_size, 1.0), 0.01))) * 15.0
    effective = max(0.0, observation - size_penalty)

    profile = get_species(world, spy.species_id)
    spy_name = profile.common_name if profile is not None else "creature"
    spy_class = profile.taxonomy_class if profile is not None else "unknown"
    who = detector.display_name

    if effective >= 80:
        return DetectionReport(
            True,
            IdentificationLevel.FAMILY,
            f"{who} identified a {spy_name} of the {spy.faction_id} family.",
        )
    if effective >= 60:
        return DetectionReport(True, IdentificationLevel.SPECIES, f"{who} spotted a {spy_name} sneaking through.")
    if effective >= 30:
        return DetectionReport(
            True,
            IdentificationLevel.TAXONOMY_CLASS,
            f"{who} glimpsed a {spy_class} moving suspiciously.",
        )
    return DetectionReport(
        True,
        IdentificationLevel.SIZE_CLASS,
        f"{who} noticed a {size_class(spy_size)} creature in the area.",
    )


def _pack_strength(world: Any, mission: EspionageMission) -> float:
    cfg = ensure_espionage_config(world)
    strength = 0.0
    agent = get_character(world, mission.agent_character_id)
    if agent is not None and agent.is_alive:
        strength += agent.gene("strength")
    for member in _living_uncaught_support(world, mission):
        strength += member.gene("strength") * cfg.support_strength_weight
    return strength


def _complete(
    state: EspionageState,
    mission: EspionageMission,
    status: MissionStatus,
    tick: int,
    cooldown_ids: Iterable[CharacterId],
) -> None:
    mission.completed = True
    mission.status = status
    for character_id in cooldown_ids:
        state.cooldowns[character_id] = tick


def _handle_detection(
    world: Any,
    mission: EspionageMission,
    spy: CharacterState,
    detector: CharacterState | None,
    tick: int,
) -> EspionageResult | None:
    """Apply a triggered detection: a support member absorbs it, or the agent is exposed.

    Returns the failure result when the lead agent is exposed, ``None`` when
    the pack absorbed the hit.
    """

    cfg = ensure_espionage_config(world)
    state = ensure_espionage_state(world)
    metrics = ensure_metrics(world)

    support = _living_uncaught_support(world, mission)
    if support:
        caught = support[0]
        mission.casualty_character_ids.append(caught.character_id)
        detector_strength = detector.gene("strength") if detector is not None else cfg.default_detector_strength
        if _pack_strength(world, mission) > detector_strength * cfg.overpower_ratio:
            caught.energy = max(0.0, caught.energy - cfg.escape_energy_loss)
            outcome = "escaped"
        else:
            caught.health = max(0.0, caught.health - cfg.capture_health_loss)
            outcome = "injured"
        metrics.inc("espionage.absorbed")
        record_event(
            world,
            {
                "type": "MissionAbsorbed",
                "tick": tick,
                "mission_id": mission.mission_id,
                "casualty": caught.character_id,
                "outcome": outcome,
            },
        )
        return None

    mission.detected = True
    mission.detected_by_character_id = detector.character_id if detector is not None else None
    _complete(state, mission, MissionStatus.FAILED, tick, [mission.agent_character_id])

    report = generate_detection_report(world, spy, detector)
    consequences = [
        EspionageConsequence(
            kind="detected",
            character_id=spy.character_id,
            detector_character_id=detector.character_id if detector is not None else spy.character_id,
        )
    ]
    if mission.target_faction_id is not None and report.identification_level.rank >= IdentificationLevel.SPECIES.rank:
        consequences.append(
            EspionageConsequence(
                kind="trust_change",
                faction_id=mission.target_faction_id,
                target_faction_id=spy.faction_id,
                delta=-cfg.exposure_trust_penalty,
            )
        )
        record_betrayal(world, spy.faction_id, mission.target_faction_id, tick, penalty=cfg.exposure_trust_penalty)

    result = EspionageResult(
        mission_id=mission.mission_id,
        success=False,
        narrative=report.description,
        consequences=consequences,
        report=report,
    )
    mission.result = result

    metrics.inc("espionage.detected")
    event: dict[str, object] = {
        "type": "MissionFailed",
        "tick": tick,
        "mission_id": mission.mission_id,
        "identification": report.identification_level.value,
    }
    if detector is not None:
        event["detector"] = detector.character_id
    record_event(world, event)
    return result


def _write_mission_intel(
    world: Any,
    spy: CharacterState,
    mission: EspionageMission,
    reliability: float,
    tick: int,
) -> RegionIntel:
    intel = RegionIntel(
        region_id=mission.target_region_id,
        discovered_at_tick=tick,
        last_updated_tick=tick,
        reliability=reliability,
        source=IntelSource.SHARED,
        source_character_id=spy.character_id,
    )
    get_or_create_map(world, spy.faction_id).known_regions[mission.target_region_id] = intel
    return intel


def resolve_mission(world: Any, mission: EspionageMission, tick: int) -> EspionageResult:
    """Apply the payoff of a mission whose duration has elapsed."""

    cfg = ensure_espionage_config(world)
    spy = get_character(world, mission.agent_character_id)
    if spy is None:
        return EspionageResult(mission_id=mission.mission_id, success=False, narrative="Agent lost.")

    who = spy.display_name
    if mission.mission_type is EspionageActionType.SPY:
        intel = _write_mission_intel(world, spy, mission, cfg.spy_intel_reliability, tick)
        return EspionageResult(
            mission_id=mission.mission_id,
            success=True,
            narrative=f"{who} gathered intelligence on the target region.",
            intel_gained=intel,
        )

    if mission.mission_type is EspionageActionType.INFILTRATE:
        consequences: list[EspionageConsequence] = []
        for faction_id in get_families_with_heartland_in(world, mission.target_region_id):
            if faction_id == spy.faction_id:
                continue
            record_heartland_discovery(world, spy.faction_id, faction_id, tick=tick)
            consequences.append(
                EspionageConsequence(
                    kind="heartland_exposed",
                    faction_id=faction_id,
                    target_faction_id=spy.faction_id,
                    region_id=mission.target_region_id,
                )
            )
        intel = _write_mission_intel(world, spy, mission, cfg.infiltrate_intel_reliability, tick)
        narrative = (
            f"{who} infiltrated deep and uncovered a family heartland."
            if consequences
            else f"{who} completed an infiltration, gathering detailed intelligence."
        )
        return EspionageResult(
            mission_id=mission.mission_id,
            success=True,
            narrative=narrative,
            intel_gained=intel,
            consequences=consequences,
        )

    if mission.mission_type is EspionageActionType.SPREAD_RUMORS:
        consequences = []
        if mission.target_faction_id is not None:
            plant_misinformation(
                world,
                mission.target_faction_id,
                mission.target_region_id,
                MisinformationPayload(
                    reliability=cfg.rumor_reliability,
                    known_threats=list(RUMOR_THREATS),
                    known_pop_estimate=cfg.rumor_pop_estimate,
                    last_updated_tick=tick,
                ),
                tick=tick,
            )
            consequences.append(
                EspionageConsequence(
                    kind="misinformation_planted",
                    target_faction_id=mission.target_faction_id,
                    region_id=mission.target_region_id,
                )
            )
        return EspionageResult(
            mission_id=mission.mission_id,
            success=True,
            narrative=f"{who} spread false word about the region.",
            consequences=consequences,
        )

    return EspionageResult(
        mission_id=mission.mission_id,
        success=True,
        narrative=f"Mission of type '{mission.mission_type.value}' completed.",
    )


def _archive(state: EspionageState, completed: list[MissionId], tick: int, window: int) -> None:
    for mission_id in completed:
        mission = state.missions.pop(mission_id, None)
        if mission is not None:
            state.history.append(mission)
    state.history = [mission for mission in state.history if tick - mission.start_tick <= window]


def tick_missions(world: Any, tick: int, *, rng: ChanceSource | None = None) -> list[EspionageResult]:
    """Advance every open mission by one tick; return the results produced."""

    state = ensure_espionage_state(world)
    if state.last_tick_processed is not None and tick <= state.last_tick_processed:
        return []
    state.last_tick_processed = tick

    cfg = ensure_espionage_config(world)
    if rng is None:
        rng = ensure_rng_service(world)
    metrics = ensure_metrics(world)
    results: list[EspionageResult] = []
    completed: list[MissionId] = []

    for mission_id, mission in list(state.missions.items()):
        if mission.completed:
            completed.append(mission_id)
            continue
        if mission.last_processed_tick == tick:
            continue
        mission.last_processed_tick = tick

        spy = get_character(world, mission.agent_character_id)
        if spy is None or not spy.is_alive:
            _complete(state, mission, MissionStatus.ABANDONED, tick, [mission.agent_character_id])
            completed.append(mission_id)
            metrics.inc("espionage.abandoned")
            record_event(world, {"type": "MissionAbandoned", "tick": tick, "mission_id": mission_id})
            continue

        if not mission.detected:
            sentinels = _sentinels_in_region(world, mission.target_region_id, spy)
            chance = calculate_detection_chance(world, spy, mission.target_region_id, sentinels, mission=mission)
            if rng.chance(cfg.detect_stream, chance, scope={"mission": mission_id, "tick": tick}):
                detector = sentinels[0] if sentinels else None
                failure = _handle_detection(world, mission, spy, detector, tick)
                if failure is not None:
                    results.append(failure)
                    completed.append(mission_id)
                continue

        if tick - mission.start_tick >= mission.duration_ticks:
            result = resolve_mission(world, mission, tick)
            mission.result = result
            _complete(
                state,
                mission,
                MissionStatus.RESOLVED,
                tick,
                [mission.agent_character_id, *mission.support_character_ids],
            )
            results.append(result)
            completed.append(mission_id)
            metrics.inc("espionage.resolved")
            record_event(
                world,
                {
                    "type": "MissionResolved",
                    "tick": tick,
                    "mission_id": mission_id,
                    "mission_type": mission.mission_type.value,
                },
            )

    _archive(state, completed, tick, cfg.history_window_ticks)
    metrics.set_gauge("espionage.active", len(state.missions))
    return results


def attempt_detection(
    world: Any,
    sentinel_id: CharacterId,
    region_id: RegionId,
    tick: int,
    *,
    rng: ChanceSource | None = None,
) -> EspionageMission | None:
    """A sentinel sweeps ``region_id``; return the first mission it catches.

    A caught mission goes through the same absorption path as a routine
    detection and counts as that mission's outcome for the tick.
    """

    sentinel = get_character(world, sentinel_id)
    if sentinel is None or not sentinel.is_alive:
        return None

    cfg = ensure_espionage_config(world)
    state = ensure_espionage_state(world)
    if rng is None:
        rng = ensure_rng_service(world)

    for mission_id, mission in list(state.missions.items()):
        if mission.completed or mission.detected or mission.target_region_id != region_id:
            continue
        if mission.last_processed_tick == tick:
            continue
        spy = get_character(world, mission.agent_character_id)
        if spy is None or not spy.is_alive or spy.character_id == sentinel_id:
            continue

        chance = calculate_detection_chance(world, spy, region_id, [sentinel], mission=mission)
        scope = {"mission": mission_id, "tick": tick, "sentinel": sentinel_id}
        if not rng.chance(cfg.detect_stream, chance, scope=scope):
            continue

        mission.last_processed_tick = tick
        if _handle_detection(world, mission, spy, sentinel, tick) is not None:
            _archive(state, [mission_id], tick, cfg.history_window_ticks)
            ensure_metrics(world).set_gauge("espionage.active", len(state.missions))
        return mission
    return None


__all__ = [
    "BASE_MISSION_DURATIONS",
    "ChanceSource",
    "DetectionReport",
    "EspionageActionType",
    "EspionageConfig",
    "EspionageConsequence",
    "EspionageMission",
    "EspionageResult",
    "EspionageState",
    "IdentificationLevel",
    "MissionStatus",
    "attempt_detection",
    "calculate_detection_chance",
    "ensure_espionage_config",
    "ensure_espionage_state",
    "generate_detection_report",
    "get_active_missions",
    "get_mission",
    "get_mission_duration",
    "get_recent_missions",
    "is_on_cooldown",
    "is_on_mission",
    "resolve_mission",
    "size_class",
    "start_mission",
    "tick_missions",
]
