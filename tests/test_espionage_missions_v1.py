from __future__ import annotations

import pytest

from fogline.ids import CharacterId, FactionId, RegionId, SpeciesId
from fogline.runtime.espionage import (
    EspionageActionType,
    MissionStatus,
    attempt_detection,
    get_active_missions,
    get_mission,
    get_mission_duration,
    get_recent_missions,
    is_on_cooldown,
    is_on_mission,
    start_mission,
    tick_missions,
)
from fogline.runtime.heartland import knows_heartland, recalculate_all
from fogline.runtime.intelligence import IntelSource, get_region_intel, record_exploration
from fogline.runtime.trust import get_trust, get_trust_record
from fogline.state import WorldState
from fogline.world.characters import CharacterState, add_character
from fogline.world.regions import RegionSnapshot
from fogline.world.roles import ObservationSkill
from fogline.world.species import SpeciesProfile, register_species

W = FactionId("faction:wolves")
F = FactionId("faction:foxes")
HOME = RegionId("region:home")
TARGET = RegionId("region:target")
SPY = CharacterId("char:spy")
PUP_A = CharacterId("char:pup-a")
PUP_B = CharacterId("char:pup-b")
GUARD = CharacterId("char:guard")


class _NeverDetect:
    def chance(self, stream_key, probability, *, scope=None):
        return False


class _AlwaysDetect:
    def __init__(self) -> None:
        self.calls: list[tuple[str, float, dict]] = []

    def chance(self, stream_key, probability, *, scope=None):
        self.calls.append((stream_key, probability, dict(scope or {})))
        return True


def _add(world: WorldState, cid: CharacterId, faction: FactionId, region: RegionId, **kwargs) -> CharacterState:
    kwargs.setdefault("species_id", SpeciesId("species:wolf"))
    return add_character(world, CharacterState(character_id=cid, faction_id=faction, region_id=region, **kwargs))


def _world(seed: int = 21, *, with_guard: bool = False) -> WorldState:
    world = WorldState(seed=seed)
    register_species(world, SpeciesProfile(SpeciesId("species:wolf"), common_name="wolf", size=50, speed=50, taxonomy_class="mammal"))
    register_species(world, SpeciesProfile(SpeciesId("species:hare"), common_name="hare", size=10, speed=80))
    register_species(world, SpeciesProfile(SpeciesId("species:tortoise"), common_name="tortoise", size=30, speed=20))
    _add(world, SPY, W, HOME)
    _add(world, PUP_A, W, HOME)
    _add(world, PUP_B, W, HOME)
    if with_guard:
        _add(world, GUARD, F, TARGET, role="sentinel")
    return world


def _spy_mission(world: WorldState, *, tick: int = 0, **kwargs):
    params = dict(mission_type="spy", agent_character_id=SPY, target_region_id=TARGET, tick=tick)
    params.update(kwargs)
    return start_mission(world, **params)


def test_durations_scale_with_speed():
    world = _world()
    wolf = world.characters[SPY]
    hare = _add(world, CharacterId("char:hare"), W, HOME, species_id=SpeciesId("species:hare"))
    tortoise = _add(world, CharacterId("char:tortoise"), W, HOME, species_id=SpeciesId("species:tortoise"))

    assert get_mission_duration(world, "spy", wolf) == 5
    assert get_mission_duration(world, "spy", hare) == 3
    assert get_mission_duration(world, "spy", tortoise) == 13
    assert get_mission_duration(world, EspionageActionType.COUNTER_SPY, tortoise) == 50
    assert get_mission_duration(world, "share_intel", hare) == 1
    assert get_mission_duration(world, "infiltrate", None) == 15


def test_unknown_agent_uses_base_duration():
    world = _world()
    mission = start_mission(
        world,
        mission_type="plant_misinformation",
        agent_character_id=CharacterId("char:nobody"),
        target_region_id=TARGET,
        tick=3,
    )
    assert mission.duration_ticks == 8


def test_unknown_mission_type_raises():
    world = _world()
    with pytest.raises(ValueError):
        _spy_mission(world, mission_type="assassinate")


def test_spy_scenario_resolves_after_duration():
    world = _world()
    mission = _spy_mission(world, tick=200)

    assert mission.mission_id == "mission:200:0"
    assert mission.duration_ticks == 5
    assert is_on_mission(world, SPY)
    for tick in range(201, 205):
        assert tick_missions(world, tick, rng=_NeverDetect()) == []

    results = tick_missions(world, 205, rng=_NeverDetect())

    assert len(results) == 1
    assert results[0].success
    intel = get_region_intel(world, W, TARGET)
    assert intel.reliability == pytest.approx(0.8)
    assert intel.source is IntelSource.SHARED
    assert intel.source_character_id == SPY
    assert results[0].intel_gained is intel
    assert mission.status is MissionStatus.RESOLVED
    assert mission.completed
    assert get_active_missions(world) == []
    assert get_recent_missions(world) == [mission]
    assert not is_on_mission(world, SPY)
    assert world.metrics.get("espionage.resolved") == 1


def test_resolution_puts_whole_pack_on_cooldown():
    world = _world()
    _spy_mission(world, tick=0, support_character_ids=[PUP_A])
    for tick in range(1, 6):
        tick_missions(world, tick, rng=_NeverDetect())

    assert is_on_cooldown(world, SPY, 34)
    assert is_on_cooldown(world, PUP_A, 34)
    assert not is_on_cooldown(world, SPY, 35)
    assert not is_on_cooldown(world, PUP_B, 6)


def test_pack_absorbs_detections_before_agent_is_exposed():
    world = _world()
    mission = _spy_mission(world, tick=0, support_character_ids=[PUP_A, PUP_B])
    rng = _AlwaysDetect()

    assert tick_missions(world, 1, rng=rng) == []
    assert mission.casualty_character_ids == [PUP_A]
    assert not mission.detected
    assert mission.status is MissionStatus.ACTIVE

    assert tick_missions(world, 2, rng=rng) == []
    assert mission.casualty_character_ids == [PUP_A, PUP_B]
    assert not mission.detected

    results = tick_missions(world, 3, rng=rng)
    assert len(results) == 1
    assert not results[0].success
    assert mission.detected
    assert mission.status is MissionStatus.FAILED
    assert mission.detected_by_character_id is None
    assert world.metrics.get("espionage.absorbed") == 2
    assert world.metrics.get("espionage.detected") == 1
    assert rng.calls[0][0] == "espionage:detect"
    assert rng.calls[0][2] == {"mission": mission.mission_id, "tick": 1}


def test_strong_pack_escapes_with_energy_loss():
    world = _world()
    _spy_mission(world, tick=0, support_character_ids=[PUP_A, PUP_B])
    tick_missions(world, 1, rng=_AlwaysDetect())

    caught = world.characters[PUP_A]
    assert caught.energy == pytest.approx(0.7)
    assert caught.health == 1.0


def test_weak_pack_member_is_injured_by_strong_sentinel():
    world = _world(with_guard=True)
    world.characters[GUARD].genes["strength"] = 90.0
    _spy_mission(world, tick=0, support_character_ids=[PUP_A])
    tick_missions(world, 1, rng=_AlwaysDetect())

    caught = world.characters[PUP_A]
    assert caught.health == pytest.approx(0.6)
    assert caught.energy == 1.0


def test_dead_support_cannot_absorb():
    world = _world()
    world.characters[PUP_A].is_alive = False
    mission = _spy_mission(world, tick=0, support_character_ids=[PUP_A])

    results = tick_missions(world, 1, rng=_AlwaysDetect())

    assert mission.casualty_character_ids == []
    assert mission.status is MissionStatus.FAILED
    assert len(results) == 1


def test_identified_spy_costs_trust_with_target():
    world = _world(with_guard=True)
    world.roles.set_observation(ObservationSkill(GUARD, level=70))
    mission = _spy_mission(world, tick=0, target_faction_id=F)

    results = tick_missions(world, 1, rng=_AlwaysDetect())

    assert mission.detected_by_character_id == GUARD
    assert results[0].report.identification_level.value == "species"
    assert get_trust(world, F, W) == pytest.approx(-0.3)
    assert get_trust_record(world, F, W).betrayal_count == 1
    kinds = [consequence.kind for consequence in results[0].consequences]
    assert kinds == ["detected", "trust_change"]
    assert is_on_cooldown(world, SPY, 10)


def test_vague_sighting_costs_no_trust():
    world = _world(with_guard=True)
    world.roles.set_observation(ObservationSkill(GUARD, level=10))
    _spy_mission(world, tick=0, target_faction_id=F)

    results = tick_missions(world, 1, rng=_AlwaysDetect())

    assert results[0].report.identification_level.value == "size_class"
    assert get_trust_record(world, F, W) is None


def test_dead_agent_abandons_mission():
    world = _world()
    mission = _spy_mission(world, tick=0, support_character_ids=[PUP_A])
    world.characters[SPY].is_alive = False

    assert tick_missions(world, 1, rng=_AlwaysDetect()) == []
    assert mission.status is MissionStatus.ABANDONED
    assert mission.result is None
    assert is_on_cooldown(world, SPY, 2)
    assert not is_on_cooldown(world, PUP_A, 2)
    assert world.metrics.get("espionage.abandoned") == 1


def test_repeated_tick_is_a_no_op():
    world = _world()
    mission = _spy_mission(world, tick=0, support_character_ids=[PUP_A, PUP_B])
    rng = _AlwaysDetect()

    tick_missions(world, 1, rng=rng)
    tick_missions(world, 1, rng=rng)

    assert mission.casualty_character_ids == [PUP_A]
    assert len(rng.calls) == 1


def test_history_is_pruned_after_window():
    world = _world()
    mission = _spy_mission(world, tick=0)
    for tick in range(1, 6):
        tick_missions(world, tick, rng=_NeverDetect())
    assert get_mission(world, mission.mission_id) is mission

    tick_missions(world, 500, rng=_NeverDetect())
    assert get_recent_missions(world) == [mission]

    tick_missions(world, 501, rng=_NeverDetect())
    assert get_recent_missions(world) == []
    assert get_mission(world, mission.mission_id) is None


def test_infiltration_exposes_rival_heartland():
    world = _world()
    for i in range(3):
        _add(world, CharacterId(f"char:fox-{i}"), F, TARGET)
    recalculate_all(world, tick=0)
    _spy_mission(world, tick=0, mission_type="infiltrate")

    results = []
    for tick in range(1, 16):
        results.extend(tick_missions(world, tick, rng=_NeverDetect()))

    assert len(results) == 1
    assert get_region_intel(world, W, TARGET).reliability == pytest.approx(0.9)
    assert knows_heartland(world, W, F)
    assert [c.kind for c in results[0].consequences] == ["heartland_exposed"]


def test_spread_rumors_plants_fixed_misinformation():
    world = _world()
    scout = _add(world, CharacterId("char:fox-scout"), F, TARGET)
    record_exploration(world, scout.character_id, TARGET, RegionSnapshot(region_id=TARGET, resources={"grass": 2.0}), tick=0)
    _spy_mission(world, tick=0, mission_type="spread_rumors", target_faction_id=F)

    for tick in range(1, 11):
        tick_missions(world, tick, rng=_NeverDetect())

    intel = get_region_intel(world, F, TARGET)
    assert intel.is_misinformation
    assert intel.reliability == pytest.approx(0.8)
    assert set(intel.known_threats) == {"massive_predator_presence", "resource_depleted"}
    assert intel.known_resources == ["grass"]
    assert intel.known_pop_estimate == 0


def test_generic_mission_types_succeed_without_effects():
    world = _world()
    mission = _spy_mission(world, tick=0, mission_type="counter_spy")
    for tick in range(1, mission.duration_ticks + 1):
        tick_missions(world, tick, rng=_NeverDetect())

    assert mission.status is MissionStatus.RESOLVED
    assert mission.result.success
    assert world.intelligence.maps == {}


def test_sentinel_sweep_exposes_lone_agent():
    world = _world(with_guard=True)
    mission = _spy_mission(world, tick=0)

    caught = attempt_detection(world, GUARD, TARGET, 1, rng=_AlwaysDetect())

    assert caught is mission
    assert mission.status is MissionStatus.FAILED
    assert mission.detected_by_character_id == GUARD
    assert get_active_missions(world) == []
    assert tick_missions(world, 1, rng=_AlwaysDetect()) == []


def test_sentinel_sweep_and_routine_check_share_one_outcome_per_tick():
    world = _world(with_guard=True)
    mission = _spy_mission(world, tick=0, support_character_ids=[PUP_A])

    attempt_detection(world, GUARD, TARGET, 1, rng=_AlwaysDetect())
    tick_missions(world, 1, rng=_AlwaysDetect())

    assert mission.casualty_character_ids == [PUP_A]
    assert not mission.detected
    assert mission.status is MissionStatus.ACTIVE

    tick_missions(world, 2, rng=_AlwaysDetect())
    assert mission.detected


def test_sentinel_sweep_ignores_other_regions_and_misses():
    world = _world(with_guard=True)
    _spy_mission(world, tick=0)

    assert attempt_detection(world, GUARD, HOME, 1, rng=_AlwaysDetect()) is None
    assert attempt_detection(world, GUARD, TARGET, 1, rng=_NeverDetect()) is None
    assert attempt_detection(world, CharacterId("char:nobody"), TARGET, 1, rng=_AlwaysDetect()) is None
