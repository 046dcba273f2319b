"""Opaque identifier types.

Each entity kind gets its own ``NewType`` so that lookups keyed by a faction
cannot silently accept a region id.  Registries that relate two entities of
the same kind use nested mappings rather than joined string keys.
"""

from __future__ import annotations

from typing import NewType

FactionId = NewType("FactionId", str)
RegionId = NewType("RegionId", str)
CharacterId = NewType("CharacterId", str)
SpeciesId = NewType("SpeciesId", str)
MissionId = NewType("MissionId", str)
BetrayalId = NewType("BetrayalId", str)


__all__ = [
    "BetrayalId",
    "CharacterId",
    "FactionId",
    "MissionId",
    "RegionId",
    "SpeciesId",
]
