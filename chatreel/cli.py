"""CLI entry point for chatreel."""

import argparse
import logging
import sys
from pathlib import Path

from chatreel.config import load_config
from chatreel.models import ParsedConversation, Section
from chatreel.parser.pipeline import parse_file
from chatreel.parser.span_extractor import select_section_tags
from chatreel.playback.simulate import simulate_playback
from chatreel.render import write_html
from chatreel.speakers import SpeakerRegistry


def _print_tree(parsed: ParsedConversation, section: Section, depth: int = 0) -> None:
    indent = "  " * depth
    own = len(parsed.messages_in(section.id))
    label = "(root)" if section.is_root else f"{'#' * section.level} {section.text}"
    print(f"{indent}{label}  [lines {section.line_start}-{section.line_end}, {own} messages]")
    for child in parsed.children_of(section.id):
        _print_tree(parsed, child, depth + 1)


def main() -> None:
    parser = argparse.ArgumentParser(description="Chatreel conversation player")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    parser.add_argument("--config", type=str, default=None, help="Path to config.yaml")
    sub = parser.add_subparsers(dest="command")

    # parse command
    parse_parser = sub.add_parser("parse", help="Show sections, messages and speakers")
    parse_parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    parse_parser.add_argument("--json", action="store_true", help="Dump the full parse as JSON")
    parse_parser.add_argument("path", help="Conversation markdown file")

    # spans command
    spans_parser = sub.add_parser("spans", help="Show wiki references and inline code per section")
    spans_parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    spans_parser.add_argument(
        "--section", type=int, default=None,
        help="Only this section id (0 is the root). If omitted, shows every section.",
    )
    spans_parser.add_argument("path", help="Conversation markdown file")

    # render command
    render_parser = sub.add_parser("render", help="Render the conversation to HTML")
    render_parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    render_parser.add_argument("-o", "--output", type=str, default=None, help="Output HTML path")
    render_parser.add_argument("--title", type=str, default=None, help="Page title")
    render_parser.add_argument(
        "--animated", action="store_true",
        help="Start every bubble and header hidden, ready for playback",
    )
    render_parser.add_argument("path", help="Conversation markdown file")

    # simulate command
    sim_parser = sub.add_parser("simulate", help="Play the conversation back headlessly")
    sim_parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sim_parser.add_argument("--seed", type=int, default=None, help="Seed for timing variance")
    sim_parser.add_argument("--window-height", type=float, default=800, help="Viewport height in px")
    sim_parser.add_argument("--no-follow", action="store_true", help="Reader does not scroll along")
    sim_parser.add_argument("path", help="Conversation markdown file")

    args = parser.parse_args()
    config = load_config(Path(args.config) if args.config else None)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else config.logging.level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command is None:
        parser.print_help()
        return

    path = Path(args.path)
    if not path.is_file():
        print(f"File not found: {args.path}", file=sys.stderr)
        sys.exit(1)
    parsed = parse_file(path, config.parser)

    if args.command == "parse":
        if args.json:
            print(parsed.model_dump_json(indent=2))
            return
        _print_tree(parsed, parsed.root)
        registry = SpeakerRegistry()
        print(f"\nSpeakers ({len(parsed.speakers())}):")
        for name in parsed.speakers():
            identity = registry.identify(name)
            print(f"  {name}: icon={identity.icon_slot} color={identity.color_slot}")
        print(f"\n{len(parsed.messages)} messages over {parsed.line_count} lines")
    elif args.command == "spans":
        if args.section is not None:
            try:
                sections = [parsed.get_section(args.section)]
            except ValueError as e:
                print(str(e), file=sys.stderr)
                sys.exit(1)
        else:
            sections = parsed.sections
        for section in sections:
            tags = select_section_tags(section, config.spans)
            label = "(root)" if section.is_root else section.text
            print(f"[{section.id}] {label}")
            for tag in tags:
                print(f"  {tag.kind:<5} {tag.label}")
        if args.section is None:
            wiki = ", ".join(f"{s.term}×{s.count}" for s in parsed.wikilinks) or "-"
            code = ", ".join(f"{s.term}×{s.count}" for s in parsed.code_spans) or "-"
            print(f"\nWiki totals: {wiki}")
            print(f"Code totals: {code}")
    elif args.command == "render":
        output = Path(args.output) if args.output else path.with_suffix(".html")
        write_html(parsed, output, title=args.title or path.stem, animated=args.animated)
        print(f"Output: {output}")
    elif args.command == "simulate":
        result = simulate_playback(
            parsed, config,
            window_height=args.window_height,
            follow=not args.no_follow,
            seed=args.seed,
        )
        for event in result.trace:
            print(f"  {event.at_ms:>8.0f}ms  {event.kind.value:<15} #{event.item.ordinal} ({event.item.kind.value})")
        print(result)


if __name__ == "__main__":
    main()
