"""Host-owned collaborator records read by the intel core."""

from .characters import (
    CharacterState,
    add_character,
    characters_in_region,
    ensure_characters,
    get_character,
    living_characters,
)
from .regions import RegionSnapshot
from .roles import ObservationSkill, RoleAssignment, RoleDirectory, ensure_role_directory
from .species import SpeciesProfile, ensure_species_catalog, get_species, register_species

__all__ = [
    "CharacterState",
    "ObservationSkill",
    "RegionSnapshot",
    "RoleAssignment",
    "RoleDirectory",
    "SpeciesProfile",
    "add_character",
    "characters_in_region",
    "ensure_characters",
    "ensure_role_directory",
    "ensure_species_catalog",
    "get_character",
    "get_species",
    "living_characters",
    "register_species",
]
