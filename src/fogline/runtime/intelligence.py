"""Per-faction fog-of-war maps.

Each faction knows only the regions it explored, was told about, or was lied
to about.  Entries carry a reliability score that sharing degrades by a
constant factor and that time erodes linearly; an entry whose reliability
reaches zero is forgotten.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from hashlib import sha256
from typing import Any, Iterable

from fogline.ids import CharacterId, FactionId, RegionId, SpeciesId
from fogline.runtime.telemetry import ensure_metrics, record_event
from fogline.world.characters import get_character
from fogline.world.regions import RegionSnapshot


class IntelSource(str, Enum):
    EXPLORATION = "exploration"
    SHARED = "shared"
    RUMOR = "rumor"


class MisinformationMode(str, Enum):
    OVERWRITE = "overwrite"
    BLEND = "blend"


@dataclass(slots=True)
class IntelConfig:
    share_reliability_factor: float = 0.8
    decay_per_tick: float = 0.001
    blend_threshold: float = 0.6
    blend_reliability_penalty: float = 0.2
    rumor_default_reliability: float = 0.7


@dataclass(slots=True)
class RegionIntel:
    region_id: RegionId
    discovered_at_tick: int
    last_updated_tick: int
    reliability: float
    known_resources: list[str] = field(default_factory=list)
    known_species: list[SpeciesId] = field(default_factory=list)
    known_threats: list[str] = field(default_factory=list)
    known_pop_estimate: int = 0
    source: IntelSource = IntelSource.EXPLORATION
    source_character_id: CharacterId | None = None
    is_misinformation: bool = False
    last_decay_tick: int | None = None

    def __post_init__(self) -> None:
        self.reliability = _clamp01(self.reliability)
        self.known_resources = _unique(self.known_resources)
        self.known_species = _unique(self.known_species)
        self.known_threats = _unique(self.known_threats)

    def copy(self) -> "RegionIntel":
        return RegionIntel(
            region_id=self.region_id,
            discovered_at_tick=self.discovered_at_tick,
            last_updated_tick=self.last_updated_tick,
            reliability=self.reliability,
            known_resources=list(self.known_resources),
            known_species=list(self.known_species),
            known_threats=list(self.known_threats),
            known_pop_estimate=self.known_pop_estimate,
            source=self.source,
            source_character_id=self.source_character_id,
            is_misinformation=self.is_misinformation,
            last_decay_tick=self.last_decay_tick,
        )

    def as_dict(self) -> dict[str, object]:
        return {
            "region_id": self.region_id,
            "discovered_at_tick": self.discovered_at_tick,
            "last_updated_tick": self.last_updated_tick,
            "last_decay_tick": self.last_decay_tick,
            "reliability": self.reliability,
            "known_resources": sorted(self.known_resources),
            "known_species": sorted(self.known_species),
            "known_threats": sorted(self.known_threats),
            "known_pop_estimate": self.known_pop_estimate,
            "source": self.source.value,
            "source_character_id": self.source_character_id,
            "is_misinformation": self.is_misinformation,
        }


@dataclass(slots=True)
class MisinformationPayload:
    """Fields a planter wants the victim to believe; ``None`` keeps the prior value."""

    reliability: float | None = None
    known_resources: list[str] | None = None
    known_species: list[SpeciesId] | None = None
    known_threats: list[str] | None = None
    known_pop_estimate: int | None = None
    discovered_at_tick: int | None = None
    last_updated_tick: int | None = None
    source_character_id: CharacterId | None = None


@dataclass(slots=True)
class FactionIntelMap:
    faction_id: FactionId
    known_regions: dict[RegionId, RegionIntel] = field(default_factory=dict)
    explored_region_ids: set[RegionId] = field(default_factory=set)
    last_full_survey_tick: int = 0


@dataclass(slots=True)
class IntelligenceMap:
    maps: dict[FactionId, FactionIntelMap] = field(default_factory=dict)
    last_decay_pass_tick: int | None = None

    def get_or_create(self, faction_id: FactionId) -> FactionIntelMap:
        faction_map = self.maps.get(faction_id)
        if faction_map is None:
            faction_map = FactionIntelMap(faction_id=faction_id)
            self.maps[faction_id] = faction_map
        return faction_map

    def signature(self) -> str:
        canonical = {
            faction_id: {
                "explored": sorted(faction_map.explored_region_ids),
                "last_full_survey_tick": faction_map.last_full_survey_tick,
                "regions": {
                    region_id: intel.as_dict() for region_id, intel in sorted(faction_map.known_regions.items())
                },
            }
            for faction_id, faction_map in sorted(self.maps.items())
        }
        payload = json.dumps(canonical, sort_keys=True, separators=(",", ":"))
        return sha256(payload.encode("utf-8")).hexdigest()


def _clamp01(value: float) -> float:
    return max(0.0, min(1.0, float(value)))


def _unique(items: Iterable[Any]) -> list[Any]:
    seen: list[Any] = []
    for item in items:
        if item not in seen:
            seen.append(item)
    return seen


def ensure_intel_config(world: Any) -> IntelConfig:
    cfg = getattr(world, "intel_cfg", None)
    if not isinstance(cfg, IntelConfig):
        cfg = IntelConfig()
        world.intel_cfg = cfg
    return cfg


def ensure_intelligence_map(world: Any) -> IntelligenceMap:
    intel_map = getattr(world, "intelligence", None)
    if not isinstance(intel_map, IntelligenceMap):
        intel_map = IntelligenceMap()
        world.intelligence = intel_map
    return intel_map


def get_or_create_map(world: Any, faction_id: FactionId) -> FactionIntelMap:
    return ensure_intelligence_map(world).get_or_create(faction_id)


def get_region_intel(world: Any, faction_id: FactionId, region_id: RegionId) -> RegionIntel | None:
    faction_map = ensure_intelligence_map(world).maps.get(faction_id)
    if faction_map is None:
        return None
    return faction_map.known_regions.get(region_id)


def get_known_regions(world: Any, faction_id: FactionId) -> list[RegionId]:
    faction_map = ensure_intelligence_map(world).maps.get(faction_id)
    if faction_map is None:
        return []
    return list(faction_map.known_regions.keys())


def has_explored(world: Any, faction_id: FactionId, region_id: RegionId) -> bool:
    faction_map = ensure_intelligence_map(world).maps.get(faction_id)
    if faction_map is None:
        return False
    return region_id in faction_map.explored_region_ids


def record_exploration(
    world: Any,
    character_id: CharacterId,
    region_id: RegionId,
    region: RegionSnapshot,
    tick: int,
) -> RegionIntel | None:
    """First-hand survey of ``region`` by a character; the whole faction learns it."""

    character = get_character(world, character_id)
    if character is None:
        return None

    faction_map = get_or_create_map(world, character.faction_id)
    intel = RegionIntel(
        region_id=region_id,
        discovered_at_tick=tick,
        last_updated_tick=tick,
        reliability=1.0,
        known_resources=region.available_resources(),
        known_species=region.present_species(),
        known_threats=region.observed_threats(),
        known_pop_estimate=region.population_total(),
        source=IntelSource.EXPLORATION,
        source_character_id=character_id,
        is_misinformation=False,
    )
    existing = faction_map.known_regions.get(region_id)
    if existing is not None:
        intel.discovered_at_tick = existing.discovered_at_tick

    faction_map.known_regions[region_id] = intel
    faction_map.explored_region_ids.add(region_id)

    ensure_metrics(world).inc("intel.explored")
    record_event(
        world,
        {
            "type": "IntelExplored",
            "tick": tick,
            "faction": character.faction_id,
            "region": region_id,
            "character": character_id,
        },
    )
    return intel


def share_intel(
    world: Any,
    from_faction: FactionId,
    to_faction: FactionId,
    region_id: RegionId,
    tick: int,
) -> RegionIntel | None:
    """Hand a degraded copy of one faction's entry to another.

    The receiver only keeps the copy when it improves on what it already
    knows.  The shared copy is returned either way.
    """

    cfg = ensure_intel_config(world)
    intel_map = ensure_intelligence_map(world)
    from_map = intel_map.maps.get(from_faction)
    if from_map is None:
        return None
    source_intel = from_map.known_regions.get(region_id)
    if source_intel is None:
        return None

    shared = source_intel.copy()
    shared.last_updated_tick = tick
    shared.last_decay_tick = None
    shared.reliability = _clamp01(source_intel.reliability * cfg.share_reliability_factor)
    shared.source = IntelSource.SHARED

    to_map = intel_map.get_or_create(to_faction)
    existing = to_map.known_regions.get(region_id)
    written = existing is None or existing.reliability < shared.reliability
    if written:
        to_map.known_regions[region_id] = shared.copy()

    metrics = ensure_metrics(world)
    metrics.inc("intel.shared")
    if not written:
        metrics.inc("intel.shared.ignored")
    record_event(
        world,
        {
            "type": "IntelShared",
            "tick": tick,
            "from_faction": from_faction,
            "to_faction": to_faction,
            "region": region_id,
            "written": written,
        },
    )
    return shared


def choose_misinformation_mode(existing: RegionIntel | None, *, threshold: float) -> MisinformationMode:
    if existing is None or existing.reliability < threshold:
        return MisinformationMode.OVERWRITE
    return MisinformationMode.BLEND


def _overwrite(
    existing: RegionIntel | None,
    region_id: RegionId,
    payload: MisinformationPayload,
    *,
    tick: int | None,
    cfg: IntelConfig,
) -> RegionIntel:
    def _pick(value: Any, fallback_attr: str, default: Any) -> Any:
        if value is not None:
            return value
        if existing is not None:
            return getattr(existing, fallback_attr)
        return default

    if payload.last_updated_tick is not None:
        last_updated = payload.last_updated_tick
    elif tick is not None:
        last_updated = tick
    else:
        last_updated = existing.last_updated_tick if existing is not None else 0

    return RegionIntel(
        region_id=region_id,
        discovered_at_tick=_pick(payload.discovered_at_tick, "discovered_at_tick", last_updated),
        last_updated_tick=last_updated,
        reliability=payload.reliability if payload.reliability is not None else cfg.rumor_default_reliability,
        known_resources=list(_pick(payload.known_resources, "known_resources", [])),
        known_species=list(_pick(payload.known_species, "known_species", [])),
        known_threats=list(_pick(payload.known_threats, "known_threats", [])),
        known_pop_estimate=int(_pick(payload.known_pop_estimate, "known_pop_estimate", 0)),
        source=IntelSource.RUMOR,
        source_character_id=payload.source_character_id,
        is_misinformation=True,
    )


def _blend(existing: RegionIntel, payload: MisinformationPayload, *, cfg: IntelConfig) -> RegionIntel:
    existing.reliability = _clamp01(existing.reliability - cfg.blend_reliability_penalty)
    for threat in payload.known_threats or []:
        if threat not in existing.known_threats:
            existing.known_threats.append(threat)
    existing.is_misinformation = True
    if payload.last_updated_tick is not None:
        existing.last_updated_tick = payload.last_updated_tick
    return existing


def plant_misinformation(
    world: Any,
    target_faction: FactionId,
    region_id: RegionId,
    payload: MisinformationPayload,
    *,
    tick: int | None = None,
) -> MisinformationMode:
    """Corrupt a faction's knowledge of a region.

    Weak or missing knowledge is replaced outright by the rumour; firmly
    established knowledge only loses some reliability and picks up the false
    threats.
    """

    cfg = ensure_intel_config(world)
    faction_map = get_or_create_map(world, target_faction)
    existing = faction_map.known_regions.get(region_id)
    mode = choose_misinformation_mode(existing, threshold=cfg.blend_threshold)

    if mode is MisinformationMode.OVERWRITE:
        faction_map.known_regions[region_id] = _overwrite(existing, region_id, payload, tick=tick, cfg=cfg)
    else:
        _blend(existing, payload, cfg=cfg)

    ensure_metrics(world).inc(f"intel.misinformation.{mode.value}")
    event: dict[str, object] = {
        "type": "MisinformationPlanted",
        "faction": target_faction,
        "region": region_id,
        "mode": mode.value,
    }
    if tick is not None:
        event["tick"] = tick
    record_event(world, event)
    return mode


def decay_intel_reliability(
    faction_map: FactionIntelMap,
    tick: int,
    *,
    cfg: IntelConfig | None = None,
) -> list[RegionId]:
    """Erode every entry of ``faction_map`` up to ``tick``; return evicted regions."""

    cfg = cfg or IntelConfig()
    removed: list[RegionId] = []
    for region_id, intel in faction_map.known_regions.items():
        last_decay = intel.last_decay_tick if intel.last_decay_tick is not None else intel.last_updated_tick
        elapsed = max(0, tick - last_decay)
        intel.reliability = _clamp01(intel.reliability - elapsed * cfg.decay_per_tick)
        intel.last_decay_tick = tick
        if intel.reliability <= 0:
            removed.append(region_id)

    for region_id in removed:
        faction_map.known_regions.pop(region_id, None)
    return removed


def decay_all(world: Any, tick: int) -> int:
    """Per-tick entry point: decay every faction map once for ``tick``."""

    intel_map = ensure_intelligence_map(world)
    if intel_map.last_decay_pass_tick is not None and tick <= intel_map.last_decay_pass_tick:
        return 0
    intel_map.last_decay_pass_tick = tick

    cfg = ensure_intel_config(world)
    metrics = ensure_metrics(world)
    evicted = 0
    for faction_id, faction_map in sorted(intel_map.maps.items()):
        for region_id in decay_intel_reliability(faction_map, tick, cfg=cfg):
            evicted += 1
            record_event(
                world,
                {"type": "IntelEvicted", "tick": tick, "faction": faction_id, "region": region_id},
            )
    if evicted:
        metrics.inc("intel.evicted", evicted)
    return evicted


__all__ = [
    "FactionIntelMap",
    "IntelConfig",
    "IntelSource",
    "IntelligenceMap",
    "MisinformationMode",
    "MisinformationPayload",
    "RegionIntel",
    "choose_misinformation_mode",
    "decay_all",
    "decay_intel_reliability",
    "ensure_intel_config",
    "ensure_intelligence_map",
    "get_known_regions",
    "get_or_create_map",
    "get_region_intel",
    "has_explored",
    "plant_misinformation",
    "record_exploration",
    "share_intel",
]
