from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from fogline.ids import SpeciesId

DEFAULT_SIZE: float = 50.0
DEFAULT_SPEED: float = 50.0


@dataclass(slots=True)
class SpeciesProfile:
    species_id: SpeciesId
    common_name: str = "creature"
    size: float = DEFAULT_SIZE
    speed: float = DEFAULT_SPEED
    taxonomy_class: str = "unknown"


def ensure_species_catalog(world: Any) -> dict[SpeciesId, SpeciesProfile]:
    catalog = getattr(world, "species", None)
    if not isinstance(catalog, dict):
        catalog = {}
        world.species = catalog
    return catalog


def register_species(world: Any, profile: SpeciesProfile) -> SpeciesProfile:
    ensure_species_catalog(world)[profile.species_id] = profile
    return profile


def get_species(world: Any, species_id: SpeciesId) -> SpeciesProfile | None:
    return ensure_species_catalog(world).get(species_id)


def species_size(world: Any, species_id: SpeciesId) -> float:
    profile = get_species(world, species_id)
    return float(profile.size) if profile is not None else DEFAULT_SIZE


def species_speed(world: Any, species_id: SpeciesId) -> float:
    profile = get_species(world, species_id)
    return float(profile.speed) if profile is not None else DEFAULT_SPEED


__all__ = [
    "DEFAULT_SIZE",
    "DEFAULT_SPEED",
    "SpeciesProfile",
    "ensure_species_catalog",
    "get_species",
    "register_species",
    "species_size",
    "species_speed",
]
