from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from fogline.ids import CharacterId, FactionId, RegionId, SpeciesId

DEFAULT_GENE_VALUE: float = 50.0


@dataclass(slots=True)
class CharacterState:
    """Host-owned character record read by the intel core.

    Only ``energy`` and ``health`` are ever written from here (pack members
    caught during espionage); everything else is treated as read-only.
    """

    character_id: CharacterId
    faction_id: FactionId
    species_id: SpeciesId
    region_id: RegionId
    name: str = ""
    is_alive: bool = True
    role: str = "none"
    energy: float = 1.0
    health: float = 1.0
    fame: float = 0.0
    genes: dict[str, float] = field(default_factory=dict)

    def gene(self, trait: str) -> float:
        return float(self.genes.get(trait, DEFAULT_GENE_VALUE))

    @property
    def display_name(self) -> str:
        return self.name or str(self.character_id)


def ensure_characters(world: Any) -> dict[CharacterId, CharacterState]:
    characters = getattr(world, "characters", None)
    if not isinstance(characters, dict):
        characters = {}
        world.characters = characters
    return characters


def add_character(world: Any, character: CharacterState) -> CharacterState:
    ensure_characters(world)[character.character_id] = character
    return character


def get_character(world: Any, character_id: CharacterId | None) -> CharacterState | None:
    if character_id is None:
        return None
    return ensure_characters(world).get(character_id)


def characters_in_region(world: Any, region_id: RegionId) -> list[CharacterState]:
    return [
        character
        for _, character in sorted(ensure_characters(world).items())
        if character.region_id == region_id
    ]


def living_characters(world: Any) -> list[CharacterState]:
    return [character for _, character in sorted(ensure_characters(world).items()) if character.is_alive]


__all__ = [
    "CharacterState",
    "DEFAULT_GENE_VALUE",
    "add_character",
    "characters_in_region",
    "ensure_characters",
    "get_character",
    "living_characters",
]
