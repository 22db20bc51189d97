"""Parse a conversation document end to end."""

import logging
from pathlib import Path

from chatreel.config import ParserConfig
from chatreel.models import ParsedConversation
from chatreel.parser.conversation_builder import build_conversation
from chatreel.parser.line_classifier import classify_document
from chatreel.parser.span_extractor import extract_spans

logger = logging.getLogger(__name__)


def parse_conversation(document: str, config: ParserConfig | None = None) -> ParsedConversation:
    """Classify lines, build sections and messages, and index spans.

    Never raises for content problems; malformed markers are plain text.
    """
    config = config or ParserConfig()
    tokens = classify_document(document)
    sections, messages = build_conversation(
        tokens, coalesce_consecutive=config.coalesce_consecutive,
    )
    sections, wiki_totals, code_totals = extract_spans(tokens, sections)
    return ParsedConversation(
        line_count=len(tokens),
        sections=sections,
        messages=messages,
        wikilinks=wiki_totals,
        code_spans=code_totals,
    )


def parse_file(path: Path, config: ParserConfig | None = None) -> ParsedConversation:
    """Read a UTF-8 document from disk and parse it."""
    document = path.read_text(encoding="utf-8", errors="replace")
    parsed = parse_conversation(document, config)
    logger.info(
        "Parsed %s: %d sections, %d messages, %d speakers",
        path.name, len(parsed.sections) - 1, len(parsed.messages), len(parsed.speakers()),
    )
    return parsed
