"""Extract wiki references and inline-code spans into a header-scoped index.

Each non-header line belongs to exactly one section: the deepest section whose
range contains it once descendant ranges are subtracted. Lines are attributed
leaves first, then the uncovered gaps of non-leaf sections (deepest level
first), then any lines before the first header go to the root. A processed-line
set guarantees no line is counted twice.

Inline code is skipped inside fenced blocks and on speaker-marker lines. Wiki
references are picked up everywhere except fence and header lines, including
inside fenced blocks and on marker lines.
"""

import logging
import re
from collections import Counter
from dataclasses import dataclass, field

from chatreel.config import SpanTagConfig
from chatreel.models import LineKind, LineToken, Section, SpanCount

logger = logging.getLogger(__name__)

WIKILINK_RE = re.compile(r"\[\[([^\]|]+)(?:\|[^\]]+)?\]\]")
INLINE_CODE_RE = re.compile(r"`([^`]+)`")


def find_wikilinks(text: str) -> list[str]:
    """`[[term]]` and `[[term|label]]` both yield `term`."""
    return [m.group(1).strip() for m in WIKILINK_RE.finditer(text) if m.group(1).strip()]


def find_inline_code(text: str) -> list[str]:
    """Backticked spans whose trimmed text is longer than one character."""
    spans = []
    for m in INLINE_CODE_RE.finditer(text):
        content = m.group(1).strip()
        if len(content) > 1:
            spans.append(content)
    return spans


def fenced_lines(tokens: list[LineToken]) -> set[int]:
    """Line numbers inside fenced blocks. An unclosed fence runs to end of document."""
    inside: set[int] = set()
    in_block = False
    for token in tokens:
        if token.kind == LineKind.FENCE:
            in_block = not in_block
            continue
        if in_block:
            inside.add(token.line_no)
    if in_block:
        logger.debug("Unclosed code fence; treating the rest of the document as code")
    return inside


@dataclass
class _Tally:
    """Occurrences of terms with the line where each was first seen."""

    counts: Counter = field(default_factory=Counter)
    first_seen: dict[str, tuple[int, int]] = field(default_factory=dict)

    def add(self, term: str, line_no: int) -> None:
        self.counts[term] += 1
        self.first_seen.setdefault(term, (line_no, len(self.first_seen)))

    def merge(self, other: "_Tally") -> None:
        for term, count in other.counts.items():
            self.counts[term] += count
            seen = other.first_seen[term]
            if term not in self.first_seen or seen < self.first_seen[term]:
                self.first_seen[term] = seen

    def ranked(self) -> list[SpanCount]:
        """Descending by count; ties by first appearance."""
        order = sorted(self.counts, key=lambda t: (-self.counts[t], self.first_seen[t]))
        return [SpanCount(term=t, count=self.counts[t]) for t in order]


class SpanExtractor:
    """Attribute spans in a classified document to sections of its tree."""

    def __init__(self, tokens: list[LineToken], sections: list[Section]) -> None:
        self.tokens = tokens
        self.sections = sections
        self.fenced = fenced_lines(tokens)
        self.processed: set[int] = set()
        self.wiki: dict[int, _Tally] = {s.id: _Tally() for s in sections}
        self.code: dict[int, _Tally] = {s.id: _Tally() for s in sections}

    def extract(self) -> list[Section]:
        """Return copies of the sections with their span indices filled in."""
        headers = self.sections[1:]
        root = self.sections[0]

        # 1. Leaves across their full body
        for section in headers:
            if not section.children:
                self._attribute(section, section.line_start + 1, section.line_end)

        # 2. Non-leaf sections, deepest first, only where no child covers the line
        non_leaves = sorted(
            (s for s in headers if s.children), key=lambda s: -s.level,
        )
        for section in non_leaves:
            for start, end in self._gaps(section):
                self._attribute(section, start, end)

        # 3. Root content before the first header (or the whole document)
        if headers:
            self._attribute(root, 0, headers[0].line_start - 1)
        else:
            self._attribute(root, 0, len(self.tokens) - 1)

        return [
            s.model_copy(update={
                "wikilinks": self.wiki[s.id].ranked(),
                "code_spans": self.code[s.id].ranked(),
            })
            for s in self.sections
        ]

    def totals(self) -> tuple[list[SpanCount], list[SpanCount]]:
        """Document-wide wiki and code indices (sum over all sections)."""
        wiki, code = _Tally(), _Tally()
        for s in self.sections:
            wiki.merge(self.wiki[s.id])
            code.merge(self.code[s.id])
        return wiki.ranked(), code.ranked()

    def _gaps(self, section: Section) -> list[tuple[int, int]]:
        """Line ranges of a section's body not covered by any child."""
        gaps = []
        current = section.line_start + 1
        children = sorted(
            (self.sections[c] for c in section.children), key=lambda c: c.line_start,
        )
        for child in children:
            if current < child.line_start:
                gaps.append((current, child.line_start - 1))
            current = child.line_end + 1
        if current <= section.line_end:
            gaps.append((current, section.line_end))
        return gaps

    def _attribute(self, section: Section, start: int, end: int) -> None:
        for line_no in range(max(start, 0), min(end, len(self.tokens) - 1) + 1):
            if line_no in self.processed:
                continue
            self.processed.add(line_no)
            token = self.tokens[line_no]

            if token.kind in (LineKind.FENCE, LineKind.HEADER):
                continue

            if token.kind == LineKind.SPEAKER:
                # The marker itself is not content; `[[[name]]]` must not read as a wikilink
                start_col, end_col = token.marker_span
                text = token.raw[:start_col] + " " + token.raw[end_col:]
                for term in find_wikilinks(text):
                    self.wiki[section.id].add(term, line_no)
                continue

            for term in find_wikilinks(token.raw):
                self.wiki[section.id].add(term, line_no)
            if line_no not in self.fenced:
                for term in find_inline_code(token.raw):
                    self.code[section.id].add(term, line_no)


def extract_spans(
    tokens: list[LineToken],
    sections: list[Section],
) -> tuple[list[Section], list[SpanCount], list[SpanCount]]:
    """Fill span indices on sections; also return document-wide totals."""
    extractor = SpanExtractor(tokens, sections)
    filled = extractor.extract()
    wiki_totals, code_totals = extractor.totals()
    logger.debug(
        "Extracted %d distinct wikilinks and %d distinct code spans across %d sections",
        len(wiki_totals), len(code_totals), len(sections),
    )
    return filled, wiki_totals, code_totals


# --- Tag selection ---


@dataclass(frozen=True)
class SpanTag:
    text: str
    count: int
    kind: str  # "wiki" or "code"
    label: str


def select_section_tags(section: Section, config: SpanTagConfig | None = None) -> list[SpanTag]:
    """Pick the tags to show for a section within the configured budget.

    The budget is split between wiki and code tags by ratio; budget one kind
    cannot use flows to the other. The merged list is sorted by count.
    """
    config = config or SpanTagConfig()
    wiki = [s for s in section.wikilinks if s.count >= config.min_count]
    code = [s for s in section.code_spans if s.count >= config.min_count]
    if not wiki and not code:
        return []

    max_wiki = round(config.max_tags * config.wiki_tags_ratio)
    max_code = round(config.max_tags * config.code_tags_ratio)

    if len(wiki) < max_wiki:
        max_code += max_wiki - len(wiki)
        max_wiki = len(wiki)
    if len(code) < max_code:
        max_wiki += max_code - len(code)
        max_code = len(code)

    max_wiki = min(max_wiki, len(wiki))
    max_code = min(max_code, len(code))

    tags = [_tag(s, "wiki", config) for s in wiki[:max_wiki]]
    tags += [_tag(s, "code", config) for s in code[:max_code]]
    tags.sort(key=lambda t: -t.count)
    return tags


def _tag(span: SpanCount, kind: str, config: SpanTagConfig) -> SpanTag:
    label = f"{span.term} | {span.count}" if span.count > 1 and config.show_counts else span.term
    return SpanTag(text=span.term, count=span.count, kind=kind, label=label)
