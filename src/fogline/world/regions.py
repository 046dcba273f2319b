from __future__ import annotations

from dataclasses import dataclass, field

from fogline.ids import RegionId, SpeciesId

HEAT_THRESHOLD: float = 40.0
COLD_THRESHOLD: float = -15.0
POLLUTION_THRESHOLD: float = 0.5


@dataclass(slots=True)
class RegionSnapshot:
    """Read-only view of a region as it stands when a character explores it."""

    region_id: RegionId
    name: str = ""
    resources: dict[str, float] = field(default_factory=dict)
    populations: dict[SpeciesId, int] = field(default_factory=dict)
    temperature: float = 15.0
    pollution: float = 0.0

    def available_resources(self) -> list[str]:
        return [kind for kind, quantity in self.resources.items() if quantity > 0]

    def present_species(self) -> list[SpeciesId]:
        return [species_id for species_id, count in self.populations.items() if count > 0]

    def population_total(self) -> int:
        return int(sum(max(0, int(count)) for count in self.populations.values()))

    def observed_threats(self) -> list[str]:
        threats: list[str] = []
        if self.temperature > HEAT_THRESHOLD:
            threats.append("extreme_heat")
        if self.temperature < COLD_THRESHOLD:
            threats.append("extreme_cold")
        if self.pollution > POLLUTION_THRESHOLD:
            threats.append("pollution")
        return threats


__all__ = ["RegionSnapshot"]
