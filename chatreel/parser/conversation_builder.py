"""Build the section tree and speaker-tagged message list from line tokens."""

import logging

from chatreel.models import Layout, LineKind, LineToken, Message, Section

logger = logging.getLogger(__name__)


class ConversationBuilder:
    """Single pass over line tokens producing sections and messages.

    Sections are stored in an arena: `sections[0]` is the root and every header
    gets the next id in document order. Messages carry the id of the section
    whose header most recently preceded their speaker marker.
    """

    def __init__(self, coalesce_consecutive: bool = False) -> None:
        self.coalesce_consecutive = coalesce_consecutive

    def build(self, tokens: list[LineToken]) -> tuple[list[Section], list[Message]]:
        line_count = len(tokens)
        sections = self._build_sections(tokens, line_count)
        messages = self._extract_messages(tokens)
        if self.coalesce_consecutive:
            messages = coalesce_messages(messages)
        logger.debug(
            "Built %d sections and %d messages from %d lines",
            len(sections), len(messages), line_count,
        )
        return sections, messages

    # --- Sections ---

    def _build_sections(self, tokens: list[LineToken], line_count: int) -> list[Section]:
        headers = [t for t in tokens if t.kind == LineKind.HEADER]

        # Resolve parents with a level stack; index 0 is the root.
        parents: list[int] = []
        children: dict[int, list[int]] = {0: []}
        stack: list[tuple[int, int]] = [(0, 0)]  # (section id, level)
        for section_id, token in enumerate(headers, start=1):
            while len(stack) > 1 and stack[-1][1] >= token.level:
                stack.pop()
            parent_id = stack[-1][0]
            parents.append(parent_id)
            children[parent_id].append(section_id)
            children[section_id] = []
            stack.append((section_id, token.level))

        sections = [
            Section(
                id=0, level=0, text="Root", line_start=0,
                line_end=max(line_count - 1, 0), children=tuple(children[0]),
            )
        ]
        for i, token in enumerate(headers):
            end = line_count - 1
            for later in headers[i + 1:]:
                if later.level <= token.level:
                    end = later.line_no - 1
                    break
            sections.append(Section(
                id=i + 1,
                level=token.level,
                text=token.text,
                line_start=token.line_no,
                line_end=end,
                parent_id=parents[i],
                children=tuple(children[i + 1]),
            ))

        return sections

    # --- Messages ---

    def _extract_messages(self, tokens: list[LineToken]) -> list[Message]:
        messages: list[Message] = []
        remembered_layouts: dict[str, Layout] = {}

        current_section_id = 0
        speaker: str | None = None
        layout: Layout | None = None
        marker_section_id = 0
        marker_line = 0
        body: list[str] = []

        def finalize() -> None:
            while body and not body[-1].strip():
                body.pop()
            if speaker is not None and body:
                messages.append(Message(
                    ordinal=len(messages),
                    speaker=speaker,
                    layout=layout,
                    body_markdown="\n".join(body),
                    section_id=marker_section_id,
                    line_no=marker_line,
                ))

        header_count = 0
        for token in tokens:
            if token.kind == LineKind.HEADER:
                finalize()
                header_count += 1
                current_section_id = header_count
                speaker, layout, body = None, None, []

            elif token.kind == LineKind.SPEAKER:
                finalize()
                speaker = token.speaker
                if token.layout is not None:
                    remembered_layouts[speaker] = token.layout
                layout = remembered_layouts.get(speaker)
                marker_section_id = current_section_id
                marker_line = token.line_no
                body = [token.remainder] if token.remainder else []

            elif speaker is not None and (body or token.raw.strip()):
                # Text and fence lines keep their original indentation
                body.append(token.raw)

        finalize()
        return messages


def coalesce_messages(messages: list[Message]) -> list[Message]:
    """Merge runs of same-speaker messages within a section, renumbering ordinals."""
    merged: list[Message] = []
    for message in messages:
        prev = merged[-1] if merged else None
        if prev and prev.speaker == message.speaker and prev.section_id == message.section_id:
            merged[-1] = prev.model_copy(update={
                "body_markdown": prev.body_markdown + "\n" + message.body_markdown,
            })
            continue
        merged.append(message.model_copy(update={"ordinal": len(merged)}))
    return merged


def build_conversation(
    tokens: list[LineToken],
    coalesce_consecutive: bool = False,
) -> tuple[list[Section], list[Message]]:
    return ConversationBuilder(coalesce_consecutive=coalesce_consecutive).build(tokens)
