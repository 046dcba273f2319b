"""Structured world state for the fogline intel core.

A ``WorldState`` owns exactly one instance of every registry together with
the host-owned collaborator directories it reads from.  Every operation in
``fogline.runtime`` takes the world explicitly, so independent simulations
never share mutable state.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from .ids import CharacterId, SpeciesId
from .runtime.betrayal import BetrayalConfig, BetrayalLedger
from .runtime.espionage import EspionageConfig, EspionageState
from .runtime.heartland import HeartlandConfig, HeartlandTracker
from .runtime.intelligence import IntelConfig, IntelligenceMap
from .runtime.rng_service import RNGConfig, RNGService
from .runtime.telemetry import DebugConfig, EventRing, Metrics
from .runtime.tick_loop import TickCadenceConfig, TickLoopState
from .runtime.trust import TrustConfig, TrustLedger
from .world.characters import CharacterState
from .world.roles import RoleDirectory
from .world.species import SpeciesProfile


@dataclass
class WorldState:
    seed: int = 0
    tick: int = 0

    characters: dict[CharacterId, CharacterState] = field(default_factory=dict)
    species: dict[SpeciesId, SpeciesProfile] = field(default_factory=dict)
    roles: RoleDirectory = field(default_factory=RoleDirectory)

    intelligence: IntelligenceMap = field(default_factory=IntelligenceMap)
    trust: TrustLedger = field(default_factory=TrustLedger)
    heartland: HeartlandTracker = field(default_factory=HeartlandTracker)
    espionage: EspionageState = field(default_factory=EspionageState)
    betrayals: BetrayalLedger = field(default_factory=BetrayalLedger)
    tick_loop: TickLoopState = field(default_factory=TickLoopState)

    intel_cfg: IntelConfig = field(default_factory=IntelConfig)
    trust_cfg: TrustConfig = field(default_factory=TrustConfig)
    heartland_cfg: HeartlandConfig = field(default_factory=HeartlandConfig)
    espionage_cfg: EspionageConfig = field(default_factory=EspionageConfig)
    betrayal_cfg: BetrayalConfig = field(default_factory=BetrayalConfig)
    cadence_cfg: TickCadenceConfig = field(default_factory=TickCadenceConfig)

    rng_service_cfg: RNGConfig = field(default_factory=RNGConfig)
    rng_service: Optional[RNGService] = None
    metrics: Metrics = field(default_factory=Metrics)
    debug_cfg: DebugConfig = field(default_factory=DebugConfig)
    event_ring: EventRing = field(default_factory=EventRing)

    next_mission_seq: int = 0
    next_betrayal_seq: int = 0


__all__ = ["WorldState"]
