"""fogline: per-faction fog-of-war, trust, heartlands, espionage and betrayal."""

from .ids import BetrayalId, CharacterId, FactionId, MissionId, RegionId, SpeciesId
from .runtime.snapshot import world_signature
from .runtime.tick_loop import step_tick
from .state import WorldState

__all__ = [
    "BetrayalId",
    "CharacterId",
    "FactionId",
    "MissionId",
    "RegionId",
    "SpeciesId",
    "WorldState",
    "step_tick",
    "world_signature",
]
