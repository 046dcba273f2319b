from __future__ import annotations

import pytest

from fogline import step_tick, world_signature
from fogline.ids import CharacterId, FactionId, RegionId, SpeciesId
from fogline.runtime.espionage import get_recent_missions, start_mission
from fogline.runtime.heartland import knows_heartland
from fogline.runtime.intelligence import get_region_intel, record_exploration
from fogline.runtime.tick_loop import TickCadenceConfig, TickPhase
from fogline.runtime.trust import get_trust, record_cooperation
from fogline.state import WorldState
from fogline.world.characters import CharacterState, add_character
from fogline.world.regions import RegionSnapshot
from fogline.world.roles import ObservationSkill

W = FactionId("faction:wolves")
F = FactionId("faction:foxes")
HOME = RegionId("region:home")
TARGET = RegionId("region:target")


class _NeverDetect:
    def chance(self, stream_key, probability, *, scope=None):
        return False


def _add(world: WorldState, cid: str, faction: FactionId, region: RegionId, **kwargs) -> CharacterState:
    return add_character(
        world,
        CharacterState(
            character_id=CharacterId(cid),
            faction_id=faction,
            species_id=SpeciesId("species:wolf"),
            region_id=region,
            **kwargs,
        ),
    )


def _busy_world(seed: int) -> WorldState:
    world = WorldState(seed=seed)
    for i in range(6):
        _add(world, f"char:wolf-{i}", W, HOME)
    for i in range(4):
        guard = _add(world, f"char:fox-guard-{i}", F, TARGET, role="sentinel")
        world.roles.set_observation(ObservationSkill(guard.character_id, level=20.0 * i))
    record_exploration(world, CharacterId("char:wolf-0"), HOME, RegionSnapshot(region_id=HOME, resources={"grass": 1.0}), tick=0)
    record_cooperation(world, W, F, tick=0)

    for i in range(3):
        start_mission(
            world,
            mission_type="spy" if i % 2 == 0 else "infiltrate",
            agent_character_id=CharacterId(f"char:wolf-{2 * i}"),
            target_region_id=TARGET,
            tick=0,
            support_character_ids=[CharacterId(f"char:wolf-{2 * i + 1}")],
            target_faction_id=F,
        )
    return world


def _trajectory(seed: int, ticks: int = 40) -> list[str]:
    world = _busy_world(seed)
    signatures = []
    for tick in range(1, ticks + 1):
        step_tick(world, tick)
        signatures.append(world_signature(world))
    return signatures


def test_same_seed_gives_same_trajectory():
    assert _trajectory(1234) == _trajectory(1234)


def test_signature_changes_as_world_advances():
    signatures = _trajectory(77, ticks=5)
    assert len(set(signatures)) == len(signatures)


def test_all_phases_run_in_order_by_default():
    world = WorldState(seed=1)
    report = step_tick(world, 1)

    assert not report.skipped
    assert report.phases_run == list(TickPhase.ordered())
    assert world.tick == 1
    assert world.metrics.get("tick.steps") == 1


def test_cadence_skips_phases_that_are_not_due():
    world = WorldState(seed=1, cadence_cfg=TickCadenceConfig(intel_decay_every=2, heartland_every=5))

    assert step_tick(world, 3).phases_run == [TickPhase.TRUST_DECAY, TickPhase.MISSIONS]
    assert step_tick(world, 4).phases_run == [TickPhase.INTEL_DECAY, TickPhase.TRUST_DECAY, TickPhase.MISSIONS]
    assert step_tick(world, 10).phases_run == list(TickPhase.ordered())


def test_repeated_or_older_tick_is_skipped():
    world = _busy_world(5)
    step_tick(world, 5)
    before = world_signature(world)

    assert step_tick(world, 5).skipped
    assert step_tick(world, 4).skipped
    assert world_signature(world) == before
    assert world.metrics.get("tick.steps") == 1


def test_upkeep_runs_before_missions():
    world = WorldState(seed=3)
    _add(world, "char:spy", W, HOME)
    start_mission(
        world,
        mission_type="infiltrate",
        agent_character_id=CharacterId("char:spy"),
        target_region_id=TARGET,
        tick=0,
    )
    rng = _NeverDetect()
    for tick in range(1, 15):
        step_tick(world, tick, rng=rng)
    for i in range(3):
        _add(world, f"char:fox-{i}", F, TARGET)

    report = step_tick(world, 15, rng=rng)

    assert len(report.mission_results) == 1
    assert knows_heartland(world, W, F)
    assert get_region_intel(world, W, TARGET).reliability == pytest.approx(0.9)
    assert get_recent_missions(world)[0].status.value == "resolved"


def test_decay_phases_erode_intel_and_trust():
    world = WorldState(seed=3)
    _add(world, "char:scout", W, HOME)
    record_exploration(world, CharacterId("char:scout"), HOME, RegionSnapshot(region_id=HOME), tick=0)
    record_cooperation(world, W, F, tick=0)

    for tick in range(1, 11):
        step_tick(world, tick)

    assert get_region_intel(world, W, HOME).reliability == pytest.approx(1.0 - 10 * 0.001)
    assert get_trust(world, W, F) == pytest.approx(0.02 - 10 * 0.002)
