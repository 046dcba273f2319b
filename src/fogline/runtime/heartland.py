"""Faction population concentration ("heartland") tracking.

A faction whose living members gather in one region gains small defense and
foraging bonuses there, at the price of a target that rivals can discover.
Exposure only ever grows: once a rival knows where a faction lives, moving
away does not make it forget.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from fogline.ids import FactionId, RegionId
from fogline.runtime.telemetry import ensure_metrics, record_event
from fogline.world.characters import living_characters


@dataclass(slots=True)
class HeartlandConfig:
    heartland_threshold: float = 0.7
    partial_threshold: float = 0.5
    partial_strength_factor: float = 0.7
    exposure_per_discoverer: float = 0.2
    defense_bonus_factor: float = 0.1
    foraging_bonus_factor: float = 0.05
    hunt_bonus: float = 0.15


@dataclass(slots=True)
class HeartlandProfile:
    faction_id: FactionId
    heartland_region_id: RegionId | None = None
    heartland_strength: float = 0.0
    exposure_level: float = 0.0
    discovered_by: set[FactionId] = field(default_factory=set)
    concentration_regions: dict[RegionId, float] = field(default_factory=dict)
    last_recalculated_tick: int = 0


@dataclass(slots=True)
class HeartlandTracker:
    profiles: dict[FactionId, HeartlandProfile] = field(default_factory=dict)
    last_recalculated_tick: int | None = None


def ensure_heartland_config(world: Any) -> HeartlandConfig:
    cfg = getattr(world, "heartland_cfg", None)
    if not isinstance(cfg, HeartlandConfig):
        cfg = HeartlandConfig()
        world.heartland_cfg = cfg
    return cfg


def ensure_heartland_tracker(world: Any) -> HeartlandTracker:
    tracker = getattr(world, "heartland", None)
    if not isinstance(tracker, HeartlandTracker):
        tracker = HeartlandTracker()
        world.heartland = tracker
    return tracker


def get_profile(world: Any, faction_id: FactionId) -> HeartlandProfile | None:
    return ensure_heartland_tracker(world).profiles.get(faction_id)


def get_exposure_level(world: Any, faction_id: FactionId) -> float:
    profile = get_profile(world, faction_id)
    return profile.exposure_level if profile is not None else 0.0


def _census(world: Any) -> dict[FactionId, dict[RegionId, int]]:
    counts: dict[FactionId, dict[RegionId, int]] = {}
    for character in living_characters(world):
        regions = counts.setdefault(character.faction_id, {})
        regions[character.region_id] = regions.get(character.region_id, 0) + 1
    return counts


def recalculate_all(world: Any, tick: int) -> int:
    """Rebuild every profile from the living population; return profiles updated."""

    tracker = ensure_heartland_tracker(world)
    if tracker.last_recalculated_tick is not None and tick <= tracker.last_recalculated_tick:
        return 0
    tracker.last_recalculated_tick = tick

    cfg = ensure_heartland_config(world)
    counts = _census(world)
    updated = 0

    for faction_id in sorted(set(counts) | set(tracker.profiles)):
        regions = counts.get(faction_id, {})
        total = sum(regions.values())
        existing = tracker.profiles.get(faction_id)
        profile = HeartlandProfile(
            faction_id=faction_id,
            exposure_level=existing.exposure_level if existing is not None else 0.0,
            discovered_by=set(existing.discovered_by) if existing is not None else set(),
            last_recalculated_tick=tick,
        )

        if total > 0:
            best_region: RegionId | None = None
            best_share = 0.0
            for region_id, count in sorted(regions.items()):
                share = count / total
                profile.concentration_regions[region_id] = share
                if share > best_share:
                    best_share = share
                    best_region = region_id

            if best_share >= cfg.heartland_threshold:
                profile.heartland_region_id = best_region
                profile.heartland_strength = best_share
            elif best_share >= cfg.partial_threshold:
                profile.heartland_strength = best_share * cfg.partial_strength_factor

        tracker.profiles[faction_id] = profile
        updated += 1

    return updated


def _bonus_in_heartland(world: Any, faction_id: FactionId, region_id: RegionId, factor: float) -> float:
    profile = get_profile(world, faction_id)
    if profile is None or profile.heartland_region_id is None or profile.heartland_region_id != region_id:
        return 0.0
    return factor * profile.heartland_strength


def get_heartland_defense_bonus(world: Any, faction_id: FactionId, region_id: RegionId) -> float:
    return _bonus_in_heartland(world, faction_id, region_id, ensure_heartland_config(world).defense_bonus_factor)


def get_heartland_foraging_bonus(world: Any, faction_id: FactionId, region_id: RegionId) -> float:
    return _bonus_in_heartland(world, faction_id, region_id, ensure_heartland_config(world).foraging_bonus_factor)


def get_heartland_hunt_bonus(world: Any, attacker_faction: FactionId, region_id: RegionId) -> float:
    """Bonus for attacking in a rival's heartland that the attacker has discovered."""

    for faction_id, profile in sorted(ensure_heartland_tracker(world).profiles.items()):
        if faction_id == attacker_faction or profile.heartland_region_id != region_id:
            continue
        if attacker_faction in profile.discovered_by:
            return ensure_heartland_config(world).hunt_bonus
    return 0.0


def record_heartland_discovery(
    world: Any,
    discoverer: FactionId,
    target: FactionId,
    *,
    tick: int | None = None,
) -> bool:
    profile = get_profile(world, target)
    if profile is None or discoverer == target or discoverer in profile.discovered_by:
        return False

    cfg = ensure_heartland_config(world)
    profile.discovered_by.add(discoverer)
    profile.exposure_level = max(
        profile.exposure_level,
        min(1.0, len(profile.discovered_by) * cfg.exposure_per_discoverer),
    )

    metrics = ensure_metrics(world)
    metrics.inc("heartland.discovered")
    metrics.topk_add("heartland.most_exposed", target, profile.exposure_level)
    event: dict[str, object] = {
        "type": "HeartlandDiscovered",
        "discoverer": discoverer,
        "target": target,
        "exposure": profile.exposure_level,
    }
    if tick is not None:
        event["tick"] = tick
    if profile.heartland_region_id is not None:
        event["region"] = profile.heartland_region_id
    record_event(world, event)
    return True


def get_families_with_heartland_in(world: Any, region_id: RegionId) -> list[FactionId]:
    return [
        faction_id
        for faction_id, profile in sorted(ensure_heartland_tracker(world).profiles.items())
        if profile.heartland_region_id == region_id
    ]


def knows_heartland(world: Any, observer: FactionId, target: FactionId) -> bool:
    profile = get_profile(world, target)
    return profile is not None and observer in profile.discovered_by


__all__ = [
    "HeartlandConfig",
    "HeartlandProfile",
    "HeartlandTracker",
    "ensure_heartland_config",
    "ensure_heartland_tracker",
    "get_exposure_level",
    "get_families_with_heartland_in",
    "get_heartland_defense_bonus",
    "get_heartland_foraging_bonus",
    "get_heartland_hunt_bonus",
    "get_profile",
    "knows_heartland",
    "recalculate_all",
    "record_heartland_discovery",
]
