"""Classify raw document lines into header, speaker-marker, fence, and text tokens."""

import logging
import re

from chatreel.models import DIRECT_TEXT, Layout, LineKind, LineToken, Position

logger = logging.getLogger(__name__)

HEADER_RE = re.compile(r"^(#{2,4})\s+(.+)$")
FENCE_PREFIXES = ("```", "~~~")

# NAME ( { LAYOUT } )? inside one of three delimiter pairs, in priority order.
_LAYOUT = r"(?:\s*\{([LR](?:\.\d+)?)\})?"
MARKER_FORMS: tuple[tuple[str, str, re.Pattern[str]], ...] = (
    ("<<", ">>", re.compile(r"<<([^<>{}]*?)" + _LAYOUT + r"\s*>>")),
    ("[[[", "]]]", re.compile(r"\[\[\[([^\[\]{}]*?)" + _LAYOUT + r"\s*\]\]\]")),
    ("<!--", "-->", re.compile(r"<!--([^{}]*?)" + _LAYOUT + r"\s*-->")),
)

# Offsets keep at most this many decimal digits, so they stay below 1.0.
OFFSET_DIGITS = 6


def normalize_speaker(raw_name: str) -> str:
    """Lowercase and underscore a marker name; blank names are direct text."""
    name = raw_name.strip()
    if not name:
        return DIRECT_TEXT
    return re.sub(r"\s+", "_", name.lower())


def parse_layout(tag: str | None) -> Layout | None:
    """Parse `L`, `R`, `L.25`, `R.5` into a Layout. Anything else is None."""
    if not tag:
        return None
    match = re.fullmatch(r"([LR])(?:\.(\d+))?", tag.strip())
    if not match:
        return None
    position = Position.LEFT if match.group(1) == "L" else Position.RIGHT
    offset = float(f"0.{match.group(2)[:OFFSET_DIGITS]}") if match.group(2) else 0.0
    return Layout(position=position, offset=offset)


def is_fence(line: str) -> bool:
    return line.strip().startswith(FENCE_PREFIXES)


def find_marker(line: str) -> re.Match[str] | None:
    """Return the first speaker marker on the line, honoring form priority."""
    for opener, closer, pattern in MARKER_FORMS:
        start = line.find(opener)
        if start < 0 or line.find(closer, start + len(opener)) < 0:
            continue
        match = pattern.search(line, start)
        if match:
            return match
    return None


def classify_line(raw: str, line_no: int) -> LineToken:
    """Classify a single line. First matching rule wins."""
    stripped = raw.strip()

    header = HEADER_RE.match(stripped)
    if header:
        return LineToken(
            kind=LineKind.HEADER,
            line_no=line_no,
            raw=raw,
            level=len(header.group(1)),
            text=header.group(2).strip(),
        )

    if stripped.startswith(FENCE_PREFIXES):
        return LineToken(kind=LineKind.FENCE, line_no=line_no, raw=raw)

    marker = find_marker(raw)
    if marker:
        remainder = (raw[: marker.start()] + " " + raw[marker.end():]).strip()
        return LineToken(
            kind=LineKind.SPEAKER,
            line_no=line_no,
            raw=raw,
            speaker=normalize_speaker(marker.group(1)),
            layout=parse_layout(marker.group(2)),
            remainder=remainder,
            marker_span=(marker.start(), marker.end()),
        )

    return LineToken(kind=LineKind.TEXT, line_no=line_no, raw=raw)


def split_lines(document: str) -> list[str]:
    """Split on newlines, tolerating CRLF. An empty document has no lines."""
    if not document:
        return []
    return document.replace("\r\n", "\n").split("\n")


def classify_document(document: str) -> list[LineToken]:
    """Tokenize a document into one LineToken per line, preserving 0-based line numbers."""
    tokens = [classify_line(raw, i) for i, raw in enumerate(split_lines(document))]
    if logger.isEnabledFor(logging.DEBUG):
        counts: dict[str, int] = {}
        for t in tokens:
            counts[t.kind.value] = counts.get(t.kind.value, 0) + 1
        logger.debug("Classified %d lines: %s", len(tokens), counts)
    return tokens
