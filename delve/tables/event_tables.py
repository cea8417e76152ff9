"""
Event room effects.

Maps event identifiers from room templates onto the fixed effect
taxonomy. Events without a mapped effect resolve to a no-effect
descriptor.
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional

from delve.data_models import EventEffectType

logger = logging.getLogger(__name__)

BOOSTABLE_STATS = ("might", "agility", "mind", "spirit")


@dataclass(frozen=True)
class EventEffect:
    """
    Effect descriptor for an event room.

    amount is a fraction of max HP/MP for MANA_RESTORE and HP_DRAIN, and a
    flat stat change for STAT_DRAIN and RANDOM_STAT_BOOST.
    """
    effect_type: EventEffectType
    amount: float = 0
    stat: Optional[str] = None  # Only for STAT_DRAIN

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"type": self.effect_type.value, "amount": self.amount}
        if self.stat:
            data["stat"] = self.stat
        return data


@dataclass(frozen=True)
class EventDefinition:
    name: str
    description: str
    effect: EventEffect


NO_EFFECT = EventEffect(EventEffectType.NO_EFFECT)

_E = EventEffectType

EVENTS: dict[str, EventDefinition] = {
    "crystal_resonance": EventDefinition(
        "Crystal Resonance", "The crystals hum in harmony, soothing tired minds",
        EventEffect(_E.MANA_RESTORE, 0.3),
    ),
    "mana_spring": EventDefinition(
        "Mana Spring", "A pool of liquid starlight bubbles up from the floor",
        EventEffect(_E.MANA_RESTORE, 0.5),
    ),
    "unstable_portal": EventDefinition(
        "Unstable Portal", "A flickering rift sheds wild energy before collapsing",
        EventEffect(_E.RANDOM_STAT_BOOST, 5),
    ),
    "shadow_whispers": EventDefinition(
        "Shadow Whispers", "Voices in the dark sap the party's resolve",
        EventEffect(_E.STAT_DRAIN, 10, stat="spirit"),
    ),
    "fear_aura": EventDefinition(
        "Fear Aura", "A lingering dread makes every limb heavy",
        EventEffect(_E.STAT_DRAIN, 5, stat="might"),
    ),
    "darkness_consumes": EventDefinition(
        "Darkness Consumes", "The darkness feeds on the living",
        EventEffect(_E.HP_DRAIN, 0.1),
    ),
    "elemental_rift": EventDefinition(
        "Elemental Rift", "Raw elemental power floods through a tear in reality",
        EventEffect(_E.RANDOM_STAT_BOOST, 15),
    ),
    "primal_chaos": EventDefinition(
        "Primal Chaos", "The elements churn and lash out at intruders",
        EventEffect(_E.HP_DRAIN, 0.15),
    ),
    "reality_storm": EventDefinition(
        "Reality Storm", "Thought itself frays in the howling storm",
        EventEffect(_E.STAT_DRAIN, 8, stat="mind"),
    ),
    "soul_corruption": EventDefinition(
        "Soul Corruption", "Infernal taint seeps into flesh and spirit",
        EventEffect(_E.HP_DRAIN, 0.2),
    ),
    "hellfire_rain": EventDefinition(
        "Hellfire Rain", "Burning cinders fall from the vaulted ceiling",
        EventEffect(_E.HP_DRAIN, 0.15),
    ),
    "demonic_whispers": EventDefinition(
        "Demonic Whispers", "Promises of power gnaw at the party's will",
        EventEffect(_E.STAT_DRAIN, 10, stat="spirit"),
    ),
}


def get_event(event_id: str) -> EventDefinition:
    """Look up an event, falling back to a harmless one."""
    event = EVENTS.get(event_id)
    if event is None:
        logger.warning(f"Unknown event '{event_id}', treating it as uneventful")
        return EventDefinition(
            event_id.replace("_", " ").title(),
            "Something stirs, then falls still",
            NO_EFFECT,
        )
    return event
