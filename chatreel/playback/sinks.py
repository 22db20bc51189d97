"""Viewport and display capabilities the scheduler drives, plus headless implementations."""

import logging
import math
from typing import Protocol

from chatreel.models import ItemKind, ParsedConversation, RevealItem, TypingIndicator

logger = logging.getLogger(__name__)


class Viewport(Protocol):
    """Geometry queries. Any method may return None when the information is unavailable."""

    def item_top(self, item: RevealItem) -> float | None: ...

    def inner_height(self) -> float | None: ...

    def scroll_y(self) -> float | None: ...

    def document_height(self) -> float | None: ...


class RevealSink(Protocol):
    """Performs the visual mutations decided by the scheduler."""

    def show(self, item: RevealItem) -> None: ...

    def hide(self, item: RevealItem) -> None: ...

    def insert_typing_indicator_after(
        self, last_visible: RevealItem | None, indicator: TypingIndicator,
    ) -> None: ...

    def remove_typing_indicator(self) -> None: ...

    def clone_typing_indicator_for_fade_out(self, fade_ms: float) -> None: ...


class RecordingSink:
    """Keeps visible state in memory and logs every call, for tests and simulation."""

    def __init__(self) -> None:
        self.visible: set[int] = set()
        self.indicator: TypingIndicator | None = None
        self.indicator_after: RevealItem | None = None
        self.calls: list[tuple[str, int | None]] = []

    def show(self, item: RevealItem) -> None:
        self.visible.add(item.ordinal)
        self.calls.append(("show", item.ordinal))

    def hide(self, item: RevealItem) -> None:
        self.visible.discard(item.ordinal)
        self.calls.append(("hide", item.ordinal))

    def insert_typing_indicator_after(
        self, last_visible: RevealItem | None, indicator: TypingIndicator,
    ) -> None:
        self.indicator = indicator
        self.indicator_after = last_visible
        self.calls.append(("insert-indicator", last_visible.ordinal if last_visible else None))

    def remove_typing_indicator(self) -> None:
        if self.indicator is not None:
            self.calls.append(("remove-indicator", None))
        self.indicator = None
        self.indicator_after = None

    def clone_typing_indicator_for_fade_out(self, fade_ms: float) -> None:
        self.calls.append(("fade-out-indicator", None))

    def call_names(self) -> list[str]:
        return [name for name, _ in self.calls]


class LayoutViewport:
    """Estimates a vertical layout for a conversation and tracks a scroll position.

    Every item occupies space whether revealed or not, so positions are stable.
    Message height grows with line count, wrapping roughly every
    `words_per_line` words.
    """

    def __init__(
        self,
        parsed: ParsedConversation,
        items: list[RevealItem],
        window_height: float = 800,
        header_height: float = 56,
        message_base_height: float = 48,
        line_height: float = 24,
        words_per_line: int = 12,
    ) -> None:
        self.window_height = window_height
        self.scroll = 0.0
        self._tops: dict[int, float] = {}

        y = 0.0
        for item in items:
            self._tops[item.ordinal] = y
            if item.kind == ItemKind.HEADER:
                y += header_height
            else:
                body = parsed.messages[item.ref].body_markdown
                lines = sum(
                    max(1, math.ceil(len(line.split()) / words_per_line))
                    for line in body.split("\n")
                )
                y += message_base_height + lines * line_height
        self._height = y

    def item_top(self, item: RevealItem) -> float | None:
        top = self._tops.get(item.ordinal)
        return None if top is None else top - self.scroll

    def inner_height(self) -> float | None:
        return self.window_height

    def scroll_y(self) -> float | None:
        return self.scroll

    def document_height(self) -> float | None:
        return max(self._height, self.window_height)

    @property
    def max_scroll(self) -> float:
        return max(self._height - self.window_height, 0.0)

    def scroll_to(self, y: float) -> None:
        self.scroll = min(max(y, 0.0), self.max_scroll)
        logger.debug("Scrolled to %.0fpx", self.scroll)

    def scroll_by(self, dy: float) -> None:
        self.scroll_to(self.scroll + dy)


class BlindViewport:
    """A viewport that knows nothing; every item counts as out of view."""

    def item_top(self, item: RevealItem) -> float | None:
        return None

    def inner_height(self) -> float | None:
        return None

    def scroll_y(self) -> float | None:
        return None

    def document_height(self) -> float | None:
        return None
