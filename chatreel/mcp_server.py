#!/usr/bin/env python3
"""Chatreel MCP Server — inspect and render chat-style markdown conversations."""

import json
import logging
import sys
from pathlib import Path
from typing import Optional

from mcp.server.fastmcp import FastMCP

from chatreel.config import Config, load_config
from chatreel.models import ParsedConversation
from chatreel.parser import pipeline
from chatreel.parser.span_extractor import select_section_tags
from chatreel.render import render_conversation as render_html
from chatreel.speakers import SpeakerRegistry, display_name, should_display_name

mcp = FastMCP("chatreel")
logger = logging.getLogger(__name__)

# Redirect all logging to stderr so stdout stays clean for MCP stdio transport
logging.basicConfig(
    stream=sys.stderr,
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

_config: Config | None = None


def _get_config() -> Config:
    global _config
    if _config is None:
        _config = load_config()
    return _config


def _load(path: Optional[str], document: Optional[str]) -> ParsedConversation:
    if document is not None:
        return pipeline.parse_conversation(document, _get_config().parser)
    if not path:
        raise ValueError("Provide either a file path or the document text")
    p = Path(path).expanduser()
    if not p.is_file():
        raise FileNotFoundError(f"No such conversation file: {path}")
    return pipeline.parse_file(p, _get_config().parser)


@mcp.tool()
def parse_conversation(path: Optional[str] = None, document: Optional[str] = None) -> str:
    """Parse a conversation (by file path or raw text) into sections and messages."""
    try:
        parsed = _load(path, document)
        return json.dumps(parsed.model_dump(mode="json"))
    except (ValueError, FileNotFoundError) as e:
        return json.dumps({"error": str(e)})


@mcp.tool()
def get_section_spans(
    section_id: int,
    path: Optional[str] = None,
    document: Optional[str] = None,
) -> str:
    """Wiki references, inline code and display tags for one section (0 is the root)."""
    try:
        parsed = _load(path, document)
        section = parsed.get_section(section_id)
        tags = select_section_tags(section, _get_config().spans)
        return json.dumps({
            "section_id": section.id,
            "text": section.text,
            "level": section.level,
            "wikilinks": [s.model_dump() for s in section.wikilinks],
            "code_spans": [s.model_dump() for s in section.code_spans],
            "tags": [{"text": t.text, "count": t.count, "kind": t.kind, "label": t.label} for t in tags],
        })
    except (ValueError, FileNotFoundError) as e:
        return json.dumps({"error": str(e)})


@mcp.tool()
def list_speakers(path: Optional[str] = None, document: Optional[str] = None) -> str:
    """List speakers in order of first appearance with their icon and color slots."""
    try:
        parsed = _load(path, document)
        registry = SpeakerRegistry()
        result = []
        for name in parsed.speakers():
            identity = registry.identify(name)
            result.append({
                "name": name,
                "icon_slot": identity.icon_slot,
                "color_slot": identity.color_slot,
                "display_name": display_name(name) if should_display_name(name) else None,
                "messages": sum(1 for m in parsed.messages if m.speaker == name),
            })
        return json.dumps(result)
    except (ValueError, FileNotFoundError) as e:
        return json.dumps({"error": str(e)})


@mcp.tool()
def render_conversation(
    path: Optional[str] = None,
    document: Optional[str] = None,
    animated: bool = False,
) -> str:
    """Render a conversation to chat-bubble HTML."""
    try:
        parsed = _load(path, document)
        return json.dumps({"html": render_html(parsed, animated=animated)})
    except (ValueError, FileNotFoundError) as e:
        return json.dumps({"error": str(e)})


if __name__ == "__main__":
    mcp.run()
