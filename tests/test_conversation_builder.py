"""Tests for section tree and message extraction."""

import pytest
from conftest import SCENARIO_A
from pydantic import ValidationError

from chatreel.config import ParserConfig
from chatreel.models import DIRECT_TEXT, Position
from chatreel.parser.pipeline import parse_conversation


class TestSectionTree:
    def test_scenario_a_ranges(self, scenario_a):
        alpha, beta, gamma = scenario_a.headers()
        assert (alpha.text, alpha.line_start, alpha.line_end) == ("Alpha", 0, 4)
        assert (beta.text, beta.line_start, beta.line_end) == ("Beta", 2, 4)
        assert (gamma.text, gamma.line_start, gamma.line_end) == ("Gamma", 5, 7)

    def test_parent_links(self, scenario_a):
        alpha, beta, gamma = scenario_a.headers()
        assert alpha.parent_id == 0
        assert beta.parent_id == alpha.id
        assert gamma.parent_id == 0
        assert scenario_a.root.children == (alpha.id, gamma.id)
        assert alpha.children == (beta.id,)

    def test_children_nested_inside_parent(self):
        doc = "## A\n### B\n#### C\ntext\n### D\n## E\n#### F"
        parsed = parse_conversation(doc)
        for section in parsed.headers():
            parent = parsed.get_section(section.parent_id)
            assert parent.level < section.level
            assert parent.line_start <= section.line_start
            assert section.line_end <= parent.line_end

    def test_skipped_level_attaches_to_nearest_shallower(self):
        parsed = parse_conversation("## A\n#### Deep\n### Mid")
        a, deep, mid = parsed.headers()
        assert deep.parent_id == a.id
        assert mid.parent_id == a.id
        assert deep.line_end == 1

    def test_empty_document(self):
        parsed = parse_conversation("")
        assert parsed.messages == []
        assert len(parsed.sections) == 1
        assert parsed.root.is_root

    def test_anchor_names(self, scenario_a):
        assert scenario_a.root.anchor == "root"
        assert [s.anchor for s in scenario_a.headers()] == ["header-0", "header-1", "header-2"]

    def test_sections_frozen_after_parse(self, scenario_a):
        alpha = scenario_a.headers()[0]
        with pytest.raises(ValidationError):
            alpha.line_end = 99
        with pytest.raises(AttributeError):
            alpha.children.append(42)

    def test_unknown_section_raises(self, scenario_a):
        with pytest.raises(ValueError, match="99"):
            scenario_a.get_section(99)


class TestMessages:
    def test_scenario_a_messages(self, scenario_a):
        summary = [(m.ordinal, m.speaker, m.body_markdown, m.section_id) for m in scenario_a.messages]
        assert summary == [
            (0, "user", "hello [[concept]]", 2),
            (1, "agent", "hi `yy`", 2),
            (2, "alice", "lonely", 3),
        ]

    def test_ordinals_match_positions(self, scenario_a):
        assert [m.ordinal for m in scenario_a.messages] == list(range(len(scenario_a.messages)))

    def test_body_keeps_indentation_and_fences(self):
        doc = "<<agent>>\nHere:\n```\n    indented()\n```\n"
        parsed = parse_conversation(doc)
        assert parsed.messages[0].body_markdown == "Here:\n```\n    indented()\n```"

    def test_blank_edges_trimmed(self):
        parsed = parse_conversation("<<user>>\n\n\nhi\n\n\n<<agent>>\nyo")
        assert [m.body_markdown for m in parsed.messages] == ["hi", "yo"]

    def test_empty_body_emits_nothing(self):
        parsed = parse_conversation("<<user>>\n<<agent>>\nreply")
        assert [m.speaker for m in parsed.messages] == ["agent"]
        assert parsed.messages[0].ordinal == 0

    def test_header_ends_message_and_drops_speaker(self):
        parsed = parse_conversation("<<user>>\nhi\n## Next\norphan text")
        assert len(parsed.messages) == 1
        assert parsed.messages[0].section_id == 0

    def test_marker_before_any_header_is_root(self):
        parsed = parse_conversation("<<user>>\nhi\n## A\n<<agent>>\nyo")
        assert parsed.messages[0].section_id == 0
        assert parsed.messages[1].section_id == 1

    def test_line_no_is_marker_line(self, scenario_a):
        assert [m.line_no for m in scenario_a.messages] == [3, 4, 6]

    def test_direct_text(self):
        parsed = parse_conversation("<<>>\nplain")
        message = parsed.messages[0]
        assert message.speaker == DIRECT_TEXT
        assert message.is_direct_text
        assert message.body_markdown == "plain"


class TestLayoutStickiness:
    def test_layout_remembered_per_speaker(self):
        parsed = parse_conversation("<<user {L.25}>>\nhi\n<<user>>\nagain")
        assert len(parsed.messages) == 2
        for m in parsed.messages:
            assert m.layout.position == Position.LEFT
            assert m.layout.offset == 0.25

    def test_new_layout_replaces_remembered(self):
        parsed = parse_conversation("<<bob{L}>>\na\n<<bob{R.5}>>\nb\n<<bob>>\nc")
        assert [m.layout.position for m in parsed.messages] == [Position.LEFT, Position.RIGHT, Position.RIGHT]

    def test_layout_not_shared_between_speakers(self):
        parsed = parse_conversation("<<bob{L}>>\na\n<<carol>>\nb")
        assert parsed.messages[1].layout is None


class TestCoalescing:
    def test_off_by_default(self):
        parsed = parse_conversation("<<user>>\na\n<<user>>\nb")
        assert len(parsed.messages) == 2

    def test_merges_same_speaker_in_section(self):
        doc = "<<user>>\na\n<<user>>\nb\n<<agent>>\nc\n## S\n<<agent>>\nd"
        parsed = parse_conversation(doc, ParserConfig(coalesce_consecutive=True))
        summary = [(m.ordinal, m.speaker, m.body_markdown) for m in parsed.messages]
        assert summary == [(0, "user", "a\nb"), (1, "agent", "c"), (2, "agent", "d")]


class TestIdempotence:
    def test_parse_twice_equal(self, scenario_a):
        again = parse_conversation(SCENARIO_A)
        assert again.sections == scenario_a.sections
        assert again.messages == scenario_a.messages

    def test_speakers_first_appearance(self, scenario_a):
        assert scenario_a.speakers() == ["user", "agent", "alice"]
