"""Tests for headless playback simulation."""

from chatreel.config import Config, TypingAnimationConfig
from chatreel.models import EventKind
from chatreel.parser.pipeline import parse_conversation
from chatreel.playback.scheduler import build_reveal_items
from chatreel.playback.simulate import simulate_playback
from chatreel.playback.sinks import LayoutViewport

LONG = "\n".join(
    f"## Part {i}\n<<user>>\nquestion {i} about [[topic]]\n<<assistant>>\n"
    + " ".join(["answer"] * 30)
    for i in range(8)
)


class TestSimulatePlayback:
    def test_plays_whole_document(self):
        parsed = parse_conversation(LONG)
        result = simulate_playback(parsed, seed=1)
        assert result.completed
        assert result.revealed_count == result.total_items == 24
        assert result.elapsed_ms > 0

    def test_reveals_in_document_order(self):
        parsed = parse_conversation(LONG)
        result = simulate_playback(parsed, seed=2)
        kinds = (EventKind.REVEAL_MESSAGE, EventKind.REVEAL_HEADER)
        ordinals = [e.item.ordinal for e in result.trace if e.kind in kinds]
        assert ordinals == sorted(ordinals)
        assert len(set(ordinals)) == len(ordinals)

    def test_seed_is_deterministic(self):
        parsed = parse_conversation(LONG)
        a = simulate_playback(parsed, seed=3)
        b = simulate_playback(parsed, seed=3)
        assert [(e.kind, e.item.ordinal, e.at_ms) for e in a.trace] == [
            (e.kind, e.item.ordinal, e.at_ms) for e in b.trace
        ]

    def test_disabled_shows_everything_at_once(self):
        parsed = parse_conversation(LONG)
        config = Config(typing_animation=TypingAnimationConfig(enabled=False))
        result = simulate_playback(parsed, config)
        assert result.completed
        assert result.trace == []
        assert result.elapsed_ms == 0

    def test_empty_document(self):
        result = simulate_playback(parse_conversation(""))
        assert result.total_items == 0
        assert result.completed
        assert "0/0 revealed" in repr(result)


class TestLayoutViewport:
    def test_positions_stack(self):
        parsed = parse_conversation("## A\n<<user>>\nhi\n<<agent>>\nyo")
        items = build_reveal_items(parsed)
        viewport = LayoutViewport(parsed, items, window_height=100)
        tops = [viewport.item_top(i) for i in items]
        assert tops == [0, 56, 56 + 72]
        assert viewport.document_height() == 56 + 72 * 2

    def test_scroll_clamped(self):
        parsed = parse_conversation("<<user>>\nhi")
        items = build_reveal_items(parsed)
        viewport = LayoutViewport(parsed, items, window_height=800)
        viewport.scroll_by(500)
        assert viewport.scroll_y() == 0
        assert viewport.document_height() == 800
