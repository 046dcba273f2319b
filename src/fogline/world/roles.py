from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from fogline.ids import CharacterId


@dataclass(slots=True)
class RoleAssignment:
    character_id: CharacterId
    role: str
    assigned_at_tick: int = 0
    proficiency: float = 0.0  # 0-1


@dataclass(slots=True)
class ObservationSkill:
    character_id: CharacterId
    level: float = 0.0  # 0-100
    last_trained_tick: int = 0


@dataclass(slots=True)
class RoleDirectory:
    assignments: dict[CharacterId, RoleAssignment] = field(default_factory=dict)
    observations: dict[CharacterId, ObservationSkill] = field(default_factory=dict)

    def assign(self, assignment: RoleAssignment) -> RoleAssignment:
        self.assignments[assignment.character_id] = assignment
        return assignment

    def set_observation(self, skill: ObservationSkill) -> ObservationSkill:
        self.observations[skill.character_id] = skill
        return skill

    def get_role(self, character_id: CharacterId) -> RoleAssignment | None:
        return self.assignments.get(character_id)

    def observation_level(self, character_id: CharacterId) -> float:
        skill = self.observations.get(character_id)
        if skill is None:
            return 0.0
        return max(0.0, min(100.0, float(skill.level)))


def ensure_role_directory(world: Any) -> RoleDirectory:
    directory = getattr(world, "roles", None)
    if not isinstance(directory, RoleDirectory):
        directory = RoleDirectory()
        world.roles = directory
    return directory


__all__ = ["ObservationSkill", "RoleAssignment", "RoleDirectory", "ensure_role_directory"]
