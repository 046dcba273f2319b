"""Policy helpers for handing intel to other factions.

``compartmentalize_intel``, ``evaluate_intel_trade`` and
``calculate_sharing_exposure`` are pure.  ``perform_intel_share`` is the
character-level action that strings them together with the intelligence map
and the trust ledger.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any

from fogline.ids import CharacterId, RegionId
from fogline.runtime.intelligence import IntelSource, RegionIntel, get_region_intel, share_intel
from fogline.runtime.trust import (
    SharingWillingness,
    evaluate_intel_sharing_willingness,
    get_trust,
    record_cooperation,
)
from fogline.world.characters import CharacterState, get_character

LOW_INTELLIGENCE = 40.0
HIGH_INTELLIGENCE = 70.0
DETAIL_CAP = 3


@dataclass(frozen=True, slots=True)
class IntelTradeAssessment:
    fair: bool
    trade_value: float
    ratio: float


@dataclass(frozen=True, slots=True)
class SharingExposure:
    position_revealed: bool
    family_info_revealed: bool
    exposure_level: float


@dataclass(slots=True)
class IntelShareOutcome:
    success: bool
    reason: str
    shared: RegionIntel | None = None
    exposure: SharingExposure | None = None
    willingness: SharingWillingness | None = None


def compartmentalize_intel(full_intel: RegionIntel, viewer_intelligence_gene: float) -> RegionIntel:
    """Return a copy of ``full_intel`` redacted to the sharer's discretion."""

    redacted = full_intel.copy()
    if viewer_intelligence_gene < LOW_INTELLIGENCE:
        return redacted

    redacted.source_character_id = None
    if viewer_intelligence_gene < HIGH_INTELLIGENCE:
        return redacted

    redacted.known_resources = redacted.known_resources[:DETAIL_CAP]
    redacted.known_species = redacted.known_species[:DETAIL_CAP]
    redacted.known_pop_estimate = int(math.floor(redacted.known_pop_estimate / 10.0 + 0.5)) * 10
    return redacted


def _intel_value(intel: RegionIntel) -> float:
    return intel.reliability * (len(intel.known_resources) + len(intel.known_species))


def evaluate_intel_trade(
    offered: RegionIntel,
    requested: RegionIntel,
    sharer_trust: float,
    recipient_trust: float,
) -> IntelTradeAssessment:
    offered_value = _intel_value(offered)
    adjusted_offered = offered_value * (1 + sharer_trust * 0.2)
    adjusted_requested = _intel_value(requested) * (1 + recipient_trust * 0.2)

    ratio = adjusted_offered / adjusted_requested if adjusted_requested > 0 else 1.0
    return IntelTradeAssessment(fair=0.5 <= ratio <= 2.0, trade_value=offered_value, ratio=ratio)


def calculate_sharing_exposure(
    world: Any,
    sharer: CharacterState,
    recipient: CharacterState,
    intel: RegionIntel,
) -> SharingExposure:
    trust = get_trust(world, sharer.faction_id, recipient.faction_id)
    return SharingExposure(
        position_revealed=True,
        family_info_revealed=intel.source is IntelSource.EXPLORATION,
        exposure_level=0.3 + (trust * 0.3 if trust > 0 else 0.0),
    )


def perform_intel_share(
    world: Any,
    sharer_id: CharacterId,
    recipient_id: CharacterId,
    region_id: RegionId,
    tick: int,
) -> IntelShareOutcome:
    sharer = get_character(world, sharer_id)
    recipient = get_character(world, recipient_id)
    if sharer is None or recipient is None:
        return IntelShareOutcome(success=False, reason="no one to share with")

    intel = get_region_intel(world, sharer.faction_id, region_id)
    if intel is None:
        return IntelShareOutcome(success=False, reason="no intel on region")

    willingness = evaluate_intel_sharing_willingness(
        world,
        sharer.faction_id,
        recipient.faction_id,
        intel.reliability,
    )
    if not willingness.willing:
        return IntelShareOutcome(success=False, reason=willingness.reason, willingness=willingness)

    before = get_region_intel(world, recipient.faction_id, region_id)
    shared = share_intel(world, sharer.faction_id, recipient.faction_id, region_id, tick)
    if shared is None:
        return IntelShareOutcome(success=False, reason="no intel on region", willingness=willingness)

    redacted = compartmentalize_intel(shared, sharer.gene("intelligence"))
    written = get_region_intel(world, recipient.faction_id, region_id)
    if written is not None and written is not before:
        written.source_character_id = redacted.source_character_id
        written.known_resources = list(redacted.known_resources)
        written.known_species = list(redacted.known_species)
        written.known_pop_estimate = redacted.known_pop_estimate

    record_cooperation(world, sharer.faction_id, recipient.faction_id, tick)
    exposure = calculate_sharing_exposure(world, sharer, recipient, intel)
    return IntelShareOutcome(
        success=True,
        reason=willingness.reason,
        shared=redacted,
        exposure=exposure,
        willingness=willingness,
    )


__all__ = [
    "IntelShareOutcome",
    "IntelTradeAssessment",
    "SharingExposure",
    "calculate_sharing_exposure",
    "compartmentalize_intel",
    "evaluate_intel_trade",
    "perform_intel_share",
]
