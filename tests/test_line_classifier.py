"""Tests for line classification: headers, fences, speaker markers."""

from chatreel.models import DIRECT_TEXT, LineKind, Position
from chatreel.parser.line_classifier import (
    classify_document,
    classify_line,
    find_marker,
    normalize_speaker,
    parse_layout,
    split_lines,
)
from chatreel.parser.pipeline import parse_conversation


class TestHeaders:
    def test_levels_two_to_four(self):
        for hashes, level in (("##", 2), ("###", 3), ("####", 4)):
            token = classify_line(f"{hashes} Title here", 0)
            assert token.kind == LineKind.HEADER
            assert token.level == level
            assert token.text == "Title here"

    def test_single_hash_is_text(self):
        assert classify_line("# Top", 0).kind == LineKind.TEXT

    def test_five_hashes_is_text(self):
        assert classify_line("##### Deep", 0).kind == LineKind.TEXT

    def test_requires_space(self):
        assert classify_line("##NoSpace", 0).kind == LineKind.TEXT

    def test_leading_whitespace_allowed(self):
        token = classify_line("   ## Indented", 3)
        assert token.kind == LineKind.HEADER
        assert token.line_no == 3


class TestFences:
    def test_backticks_and_tildes(self):
        assert classify_line("```python", 0).kind == LineKind.FENCE
        assert classify_line("  ~~~", 0).kind == LineKind.FENCE

    def test_header_wins_over_marker(self):
        assert classify_line("## <<user>>", 0).kind == LineKind.HEADER


class TestSpeakerMarkers:
    def test_angle_form(self):
        token = classify_line("<<user>>", 0)
        assert token.kind == LineKind.SPEAKER
        assert token.speaker == "user"
        assert token.layout is None

    def test_bracket_form(self):
        token = classify_line("[[[Assistant]]]", 0)
        assert token.speaker == "assistant"

    def test_comment_form(self):
        token = classify_line("<!--bob-->", 0)
        assert token.speaker == "bob"

    def test_name_normalized(self):
        token = classify_line("<<Dr  Smith>>", 0)
        assert token.speaker == "dr_smith"

    def test_empty_name_is_direct_text(self):
        for raw in ("<<>>", "[[[ ]]]", "<!---->"):
            assert classify_line(raw, 0).speaker == DIRECT_TEXT

    def test_layout_suffix(self):
        token = classify_line("<<user {L.25}>>", 0)
        assert token.layout.position == Position.LEFT
        assert token.layout.offset == 0.25

    def test_layout_right_without_offset(self):
        token = classify_line("<<agent{R}>>", 0)
        assert token.layout.position == Position.RIGHT
        assert token.layout.offset == 0.0

    def test_long_offset_stays_below_one(self):
        token = classify_line("<<user {L.99999999999999999}>>", 0)
        assert token.kind == LineKind.SPEAKER
        assert 0.99 < token.layout.offset < 1.0

    def test_long_offset_parses_in_document(self):
        parsed = parse_conversation("<<user {L.99999999999999999}>>\nhi")
        assert parsed.messages[0].body_markdown == "hi"
        assert parsed.messages[0].layout.offset < 1.0

    def test_unclosed_comment_openers_are_text(self):
        line = "<!--" * 5000
        assert classify_line(line, 0).kind == LineKind.TEXT
        assert find_marker(line) is None

    def test_closer_before_opener_is_ignored(self):
        assert classify_line("--> then <!--bob", 0).kind == LineKind.TEXT
        assert classify_line("--> then <!--bob-->", 0).speaker == "bob"

    def test_marker_mid_line_keeps_remainder(self):
        token = classify_line("<<user>> hello [[concept]]", 0)
        assert token.kind == LineKind.SPEAKER
        assert token.remainder == "hello [[concept]]"
        assert token.marker_span == (0, 8)

    def test_only_first_marker_used(self):
        token = classify_line("<<alice>> then <<bob>>", 0)
        assert token.speaker == "alice"

    def test_malformed_marker_is_text(self):
        assert classify_line("<<user", 0).kind == LineKind.TEXT
        assert classify_line("<<user {X}>>", 0).kind == LineKind.TEXT
        assert classify_line("<<a{b}c>>", 0).kind == LineKind.TEXT


class TestHelpers:
    def test_normalize_speaker(self):
        assert normalize_speaker("  ") == DIRECT_TEXT
        assert normalize_speaker(" Big Bird ") == "big_bird"

    def test_parse_layout_none(self):
        assert parse_layout(None) is None

    def test_split_lines_empty(self):
        assert split_lines("") == []

    def test_split_lines_crlf(self):
        assert split_lines("a\r\nb") == ["a", "b"]


class TestClassifyDocument:
    def test_one_token_per_line(self):
        tokens = classify_document("## A\n<<user>>\nhi\n```\ncode\n```")
        assert [t.kind for t in tokens] == [
            LineKind.HEADER, LineKind.SPEAKER, LineKind.TEXT,
            LineKind.FENCE, LineKind.TEXT, LineKind.FENCE,
        ]
        assert [t.line_no for t in tokens] == list(range(6))
