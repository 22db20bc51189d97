"""Render a parsed conversation as chat-bubble HTML."""

import html
import logging
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import quote

import markdown

from chatreel.models import DIRECT_TEXT, Message, ParsedConversation, Position, Section
from chatreel.parser.line_classifier import is_fence
from chatreel.parser.span_extractor import WIKILINK_RE
from chatreel.speakers import SpeakerRegistry, display_name, should_display_name

logger = logging.getLogger(__name__)

MARKDOWN_EXTENSIONS = ["fenced_code"]

PREV_ICON = '<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 24 24"><path d="M15.41 7.41L14 6l-6 6 6 6 1.41-1.41L10.83 12z"/></svg>'
NEXT_ICON = '<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 24 24"><path d="M10 6L8.59 7.41 13.17 12l-4.58 4.59L10 18l6-6z"/></svg>'
TOGGLE_ICON = '<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 24 24" class="toggle-icon"><path d="M7.41 8.59L12 13.17l4.59-4.58L18 10l-6 6-6-6 1.41-1.41z"/></svg>'


@dataclass(frozen=True)
class NavConfig:
    title: str = "Conversation"
    prev_link: str | None = None
    next_link: str | None = None


def link_wikilinks(text: str) -> str:
    """Turn `[[term]]` / `[[term|label]]` into `#term` anchors, leaving fenced blocks alone."""
    out = []
    in_fence = False
    for line in text.split("\n"):
        if is_fence(line):
            in_fence = not in_fence
            out.append(line)
            continue
        if in_fence:
            out.append(line)
            continue
        out.append(WIKILINK_RE.sub(_wikilink_anchor, line))
    return "\n".join(out)


def _wikilink_anchor(match) -> str:
    term = match.group(1)
    full = match.group(0)
    label = full[2:-2].split("|", 1)[1] if "|" in full else term
    return (
        f'<a href="#{quote(term)}" title="wiki: {html.escape(term)}">'
        f"{html.escape(label)}</a>"
    )


def render_markdown(text: str) -> str:
    if not text:
        return ""
    return markdown.markdown(link_wikilinks(text), extensions=MARKDOWN_EXTENSIONS)


def group_messages(messages: list[Message]) -> list[list[Message]]:
    """Runs of consecutive messages from the same speaker."""
    groups: list[list[Message]] = []
    for m in messages:
        if groups and groups[-1][0].speaker == m.speaker:
            groups[-1].append(m)
        else:
            groups.append([m])
    return groups


def _layout_attrs(message: Message) -> tuple[list[str], list[str], list[str]]:
    """Returns (classes, attributes, style declarations) for a bubble's layout."""
    layout = message.layout
    if layout is None:
        return [], [], []
    margin = f"{layout.offset * 100:g}%" if layout.offset else "0"
    if layout.position == Position.LEFT:
        classes = ["custom-left"]
        style = ["align-self: flex-start", "margin-right: auto", f"margin-left: {margin}"]
    else:
        classes = ["custom-right"]
        style = ["align-self: flex-end", "margin-left: auto", f"margin-right: {margin}"]
    attrs = [
        f'data-layout-position="{layout.position.value}"',
        f'data-layout-offset="{layout.offset:g}"',
    ]
    return classes, attrs, style


def render_message_group(group: list[Message], registry: SpeakerRegistry, animated: bool = False) -> str:
    first = group[0]
    identity = registry.identify(first.speaker)

    classes = ["message", identity.color_slot]
    if first.speaker == DIRECT_TEXT:
        classes = ["message", DIRECT_TEXT]
    layout_classes, layout_attrs, style = _layout_attrs(first)
    classes.extend(layout_classes)
    classes.append("hidden" if animated else "visible")

    attrs = [
        f'class="{" ".join(classes)}"',
        f'data-speaker="{html.escape(first.speaker)}"',
        f'data-speaker-icon="{html.escape(identity.icon_slot)}"',
        f'data-color-key="{html.escape(identity.color_slot)}"',
        f'data-ordinals="{" ".join(str(m.ordinal) for m in group)}"',
    ]
    attrs.extend(layout_attrs)
    style.append(f"--speaker-color: var(--{identity.color_slot}-color)")

    caption = ""
    if should_display_name(first.speaker):
        attrs.append('data-display-speaker="true"')
        caption = f'<div class="speaker-caption">{html.escape(display_name(first.speaker))}</div>'

    body = render_markdown("\n".join(m.body_markdown for m in group))
    return (
        f'<div {" ".join(attrs)} style="{"; ".join(style)}">'
        f"{caption}"
        f'<div class="content-container"><div class="content">{body}</div></div>'
        f"</div>"
    )


def _render_section(
    parsed: ParsedConversation, section: Section, registry: SpeakerRegistry, animated: bool,
) -> str:
    parts = []
    for group in group_messages(parsed.messages_in(section.id)):
        parts.append(render_message_group(group, registry, animated))
    for child in parsed.children_of(section.id):
        parts.append(_render_header(child, animated))
        parts.append(
            f'<div class="chat-section" id="{child.anchor}">'
            f"{_render_section(parsed, child, registry, animated)}</div>"
        )
    return "".join(parts)


def _render_header(section: Section, animated: bool) -> str:
    hidden = " header-hidden" if animated else " header-visible"
    return (
        f'<div class="chat-section-header{hidden}" data-level="{section.level}" '
        f'data-section="{section.anchor}">'
        f'<button class="section-toggle" aria-expanded="true">{TOGGLE_ICON}</button>'
        f'<div class="header-content"><h{section.level}>{html.escape(section.text)}'
        f"</h{section.level}></div></div>"
    )


def render_navigation(css_class: str, nav: NavConfig) -> str:
    prev_cls = "nav-link prev-link" + ("" if nav.prev_link else " disabled")
    next_cls = "nav-link next-link" + ("" if nav.next_link else " disabled")
    return (
        f'<div class="chat-nav {css_class}">'
        f'<a class="{prev_cls}" href="{html.escape(nav.prev_link or "#")}" '
        f'aria-label="Previous conversation">{PREV_ICON}</a>'
        f'<h2 class="chat-title">{html.escape(nav.title)}</h2>'
        f'<a class="{next_cls}" href="{html.escape(nav.next_link or "#")}" '
        f'aria-label="Next conversation">{NEXT_ICON}</a>'
        f"</div>"
    )


def render_conversation(
    parsed: ParsedConversation,
    registry: SpeakerRegistry | None = None,
    animated: bool = False,
    nav: NavConfig | None = None,
) -> str:
    """Produce the chat container for a parsed conversation.

    Speaker identities are assigned in first-appearance order, so a fresh
    registry is used unless one is passed in. With `animated`, every bubble and
    header starts hidden for the reveal scheduler to show.
    """
    registry = registry or SpeakerRegistry()
    registry.register_all(parsed.speakers())

    parts = ['<div class="chat-container">']
    if nav is not None:
        parts.append(render_navigation("header-nav", nav))
    parts.append(_render_section(parsed, parsed.root, registry, animated))
    if nav is not None:
        parts.append(render_navigation("footer-nav", nav))
    parts.append("</div>")

    logger.debug(
        "Rendered %d messages in %d sections (animated=%s)",
        len(parsed.messages), len(parsed.sections) - 1, animated,
    )
    return "".join(parts)


def write_html(
    parsed: ParsedConversation,
    output_path: Path,
    title: str = "Conversation",
    animated: bool = False,
) -> Path:
    """Write a standalone HTML page containing the rendered conversation."""
    body = render_conversation(parsed, animated=animated, nav=NavConfig(title=title))
    page = (
        "<!DOCTYPE html>\n"
        '<html lang="en">\n<head>\n<meta charset="utf-8">\n'
        f"<title>{html.escape(title)}</title>\n"
        "</head>\n<body>\n"
        f'<div id="markdown-content">{body}</div>\n'
        "</body>\n</html>\n"
    )
    output_path.write_text(page, encoding="utf-8")
    logger.info("Wrote %s", output_path)
    return output_path
