"""Stable per-speaker icon and color assignment by order of first appearance."""

import logging

from chatreel.models import DIRECT_TEXT, SpeakerIdentity

logger = logging.getLogger(__name__)

USER_NAMES = frozenset({"user"})
AGENT_NAMES = frozenset({"agent", "assistant", "test"})

USER_ICON = "User_A"
AGENT_ICON = "Agent_A"
EMPTY_ICON = "empty"

CUSTOM_COLOR_POOL = ("speakerC", "speakerD", "speakerE")
GENERIC_COLOR = "generic"


def is_user(name: str) -> bool:
    return name in USER_NAMES


def should_display_name(name: str) -> bool:
    """Custom speakers get a caption; reserved speakers and direct text do not."""
    return name != DIRECT_TEXT and name not in USER_NAMES and name not in AGENT_NAMES


def display_name(name: str) -> str:
    """`dr_smith` -> `Dr Smith`."""
    return " ".join(part.capitalize() for part in name.replace("-", "_").split("_") if part)


class SpeakerRegistry:
    """Maps speaker names to identities for one playback session.

    Reserved names keep their slots no matter when they first appear. Custom
    speakers use their own name as icon slot and draw colors from a fixed pool,
    falling back to `generic` once it runs out.
    """

    def __init__(self) -> None:
        self._identities: dict[str, SpeakerIdentity] = {}
        self._order: list[str] = []
        self._custom_count = 0

    def identify(self, name: str) -> SpeakerIdentity:
        existing = self._identities.get(name)
        if existing is not None:
            return existing

        if name == DIRECT_TEXT:
            identity = SpeakerIdentity(name=name, icon_slot=EMPTY_ICON, color_slot=DIRECT_TEXT)
        else:
            self._order.append(name)
            if name in USER_NAMES:
                identity = SpeakerIdentity(name=name, icon_slot=USER_ICON, color_slot="user")
            elif name in AGENT_NAMES:
                identity = SpeakerIdentity(name=name, icon_slot=AGENT_ICON, color_slot="assistant")
            else:
                if self._custom_count < len(CUSTOM_COLOR_POOL):
                    color = CUSTOM_COLOR_POOL[self._custom_count]
                else:
                    color = GENERIC_COLOR
                self._custom_count += 1
                identity = SpeakerIdentity(name=name, icon_slot=name, color_slot=color)

        self._identities[name] = identity
        logger.debug("Assigned %s -> icon=%s color=%s", name, identity.icon_slot, identity.color_slot)
        return identity

    def register_all(self, names: list[str]) -> list[SpeakerIdentity]:
        return [self.identify(n) for n in names]

    def reset(self) -> None:
        self._identities.clear()
        self._order.clear()
        self._custom_count = 0
        logger.debug("Speaker registry reset")

    @property
    def appearance_order(self) -> list[str]:
        """Names in first-appearance order, excluding direct text."""
        return list(self._order)

    def __contains__(self, name: str) -> bool:
        return name in self._identities

    def __len__(self) -> int:
        return len(self._identities)
