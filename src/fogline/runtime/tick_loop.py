"""Ordered per-tick driver for the intel core.

Phases run in a fixed order each tick.  The three upkeep phases (intel decay,
trust decay, heartland census) all run before missions are advanced, because
mission resolution reads heartlands and writes intel that should not be
decayed in the same tick it was gathered.  Each phase has its own cadence.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from fogline.runtime.espionage import ChanceSource, EspionageResult, tick_missions
from fogline.runtime.heartland import recalculate_all
from fogline.runtime.intelligence import decay_all
from fogline.runtime.telemetry import ensure_metrics
from fogline.runtime.trust import tick_trust_decay


class TickPhase(str, Enum):
    INTEL_DECAY = "intel_decay"
    TRUST_DECAY = "trust_decay"
    HEARTLAND = "heartland"
    MISSIONS = "missions"

    @classmethod
    def ordered(cls) -> tuple["TickPhase", ...]:
        return (cls.INTEL_DECAY, cls.TRUST_DECAY, cls.HEARTLAND, cls.MISSIONS)


@dataclass(slots=True)
class TickCadenceConfig:
    intel_decay_every: int = 1
    trust_decay_every: int = 1
    heartland_every: int = 1
    missions_every: int = 1

    def cadence(self, phase: TickPhase) -> int:
        return {
            TickPhase.INTEL_DECAY: self.intel_decay_every,
            TickPhase.TRUST_DECAY: self.trust_decay_every,
            TickPhase.HEARTLAND: self.heartland_every,
            TickPhase.MISSIONS: self.missions_every,
        }[phase]

    def due(self, phase: TickPhase, tick: int) -> bool:
        every = max(1, int(self.cadence(phase)))
        return tick % every == 0


@dataclass(slots=True)
class TickLoopState:
    last_tick: int | None = None


@dataclass(slots=True)
class TickReport:
    tick: int
    skipped: bool = False
    phases_run: list[TickPhase] = field(default_factory=list)
    intel_evicted: int = 0
    trust_records_decayed: int = 0
    heartland_profiles: int = 0
    mission_results: list[EspionageResult] = field(default_factory=list)


def ensure_cadence_config(world: Any) -> TickCadenceConfig:
    cfg = getattr(world, "cadence_cfg", None)
    if not isinstance(cfg, TickCadenceConfig):
        cfg = TickCadenceConfig()
        world.cadence_cfg = cfg
    return cfg


def ensure_tick_loop_state(world: Any) -> TickLoopState:
    state = getattr(world, "tick_loop", None)
    if not isinstance(state, TickLoopState):
        state = TickLoopState()
        world.tick_loop = state
    return state


def step_tick(world: Any, tick: int, *, rng: ChanceSource | None = None) -> TickReport:
    state = ensure_tick_loop_state(world)
    if state.last_tick is not None and tick <= state.last_tick:
        return TickReport(tick=tick, skipped=True)
    state.last_tick = tick
    world.tick = tick

    cfg = ensure_cadence_config(world)
    report = TickReport(tick=tick)
    for phase in TickPhase.ordered():
        if not cfg.due(phase, tick):
            continue
        report.phases_run.append(phase)
        if phase is TickPhase.INTEL_DECAY:
            report.intel_evicted = decay_all(world, tick)
        elif phase is TickPhase.TRUST_DECAY:
            report.trust_records_decayed = tick_trust_decay(world, tick)
        elif phase is TickPhase.HEARTLAND:
            report.heartland_profiles = recalculate_all(world, tick)
        else:
            report.mission_results = tick_missions(world, tick, rng=rng)

    ensure_metrics(world).inc("tick.steps")
    return report


__all__ = [
    "TickCadenceConfig",
    "TickLoopState",
    "TickPhase",
    "TickReport",
    "ensure_cadence_config",
    "ensure_tick_loop_state",
    "step_tick",
]
