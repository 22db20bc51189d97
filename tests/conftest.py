"""Shared test fixtures for chatreel tests."""

import pytest

from chatreel.config import Config, ReadDelayConfig, TypingAnimationConfig
from chatreel.parser.pipeline import parse_conversation
from chatreel.playback.clock import ManualClock
from chatreel.playback.scheduler import RevealScheduler
from chatreel.playback.sinks import RecordingSink

SCENARIO_A = "\n".join([
    "## Alpha",
    "Intro with [[concept]] and `xx`.",
    "### Beta",
    "<<user>> hello [[concept]]",
    "<<agent>> hi `yy`",
    "## Gamma",
    "<<alice>>",
    "lonely",
])


class StubViewport:
    """Every item sits at `default_top` unless overridden in `tops` (keyed by ordinal)."""

    def __init__(self, default_top=0.0, inner=800.0, scroll=0.0, doc_height=2000.0):
        self.default_top = default_top
        self.tops: dict[int, float | None] = {}
        self.inner = inner
        self.scroll = scroll
        self.doc_height = doc_height

    def item_top(self, item):
        return self.tops.get(item.ordinal, self.default_top)

    def inner_height(self):
        return self.inner

    def scroll_y(self):
        return self.scroll

    def document_height(self):
        return self.doc_height


@pytest.fixture()
def scenario_a():
    return parse_conversation(SCENARIO_A)


@pytest.fixture()
def steady_config():
    """Defaults with timing variance switched off."""
    return Config(
        typing_animation=TypingAnimationConfig(variance_percentage=0),
        read_delay=ReadDelayConfig(variance_percentage=0),
    )


@pytest.fixture()
def make_scheduler(steady_config):
    """Factory: build a scheduler for a document with a manual clock and recording sink."""

    def _make(document, viewport=None, config=None):
        parsed = parse_conversation(document)
        clock = ManualClock()
        sink = RecordingSink()
        viewport = viewport or StubViewport()
        scheduler = RevealScheduler(
            parsed, sink, viewport, clock, config=config or steady_config,
        )
        return scheduler, clock, sink, viewport

    return _make
