"""Pydantic models for chatreel."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class LineKind(str, Enum):
    HEADER = "header"
    SPEAKER = "speaker"
    FENCE = "fence"
    TEXT = "text"


class Position(str, Enum):
    LEFT = "left"
    RIGHT = "right"


DIRECT_TEXT = "direct-text"


# --- Parser output ---


class Layout(BaseModel):
    """Bubble placement hint from a `{L.25}`-style marker suffix."""

    model_config = ConfigDict(frozen=True)

    position: Position
    offset: float = Field(default=0.0, ge=0.0, lt=1.0)


class LineToken(BaseModel):
    """One classified source line. Fields beyond `kind`/`line_no`/`raw` depend on kind."""

    model_config = ConfigDict(frozen=True)

    kind: LineKind
    line_no: int
    raw: str
    level: int | None = None  # HEADER
    text: str | None = None  # HEADER
    speaker: str | None = None  # SPEAKER
    layout: Layout | None = None  # SPEAKER
    remainder: str = ""  # SPEAKER: line text outside the marker
    marker_span: tuple[int, int] | None = None  # SPEAKER: [start, end) of the marker in raw


class SpanCount(BaseModel):
    model_config = ConfigDict(frozen=True)

    term: str
    count: int


class Section(BaseModel):
    """A header-anchored subtree. Sections reference each other by integer id."""

    model_config = ConfigDict(frozen=True)

    id: int
    level: int
    text: str
    line_start: int
    line_end: int
    parent_id: int | None = None
    children: tuple[int, ...] = ()
    wikilinks: list[SpanCount] = Field(default_factory=list)
    code_spans: list[SpanCount] = Field(default_factory=list)

    @property
    def is_root(self) -> bool:
        return self.parent_id is None

    @property
    def anchor(self) -> str:
        return "root" if self.is_root else f"header-{self.id - 1}"


class Message(BaseModel):
    model_config = ConfigDict(frozen=True)

    ordinal: int
    speaker: str
    layout: Layout | None = None
    body_markdown: str
    section_id: int
    line_no: int

    @property
    def is_direct_text(self) -> bool:
        return self.speaker == DIRECT_TEXT


class SpeakerIdentity(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    icon_slot: str
    color_slot: str


class ParsedConversation(BaseModel):
    """Everything the parser produces for one document."""

    line_count: int
    sections: list[Section]
    messages: list[Message]
    wikilinks: list[SpanCount] = Field(default_factory=list)
    code_spans: list[SpanCount] = Field(default_factory=list)

    @property
    def root(self) -> Section:
        return self.sections[0]

    def get_section(self, section_id: int) -> Section:
        if section_id < 0 or section_id >= len(self.sections):
            raise ValueError(f"Section {section_id} not found")
        return self.sections[section_id]

    def children_of(self, section_id: int) -> list[Section]:
        return [self.sections[c] for c in self.get_section(section_id).children]

    def headers(self) -> list[Section]:
        """Non-root sections in document order."""
        return self.sections[1:]

    def messages_in(self, section_id: int) -> list[Message]:
        return [m for m in self.messages if m.section_id == section_id]

    def speakers(self) -> list[str]:
        """Distinct speakers in order of first appearance."""
        seen: dict[str, None] = {}
        for m in self.messages:
            seen.setdefault(m.speaker, None)
        return list(seen)


# --- Playback ---


class ItemKind(str, Enum):
    HEADER = "header"
    MESSAGE = "message"


class RevealItem(BaseModel):
    """A header or message in the merged reveal stream.

    `ref` is the section id for headers and the message ordinal for messages;
    `ordinal` is the position in the merged stream.
    """

    model_config = ConfigDict(frozen=True)

    kind: ItemKind
    ref: int
    ordinal: int
    line_no: int


class Phase(str, Enum):
    IDLE = "idle"
    HEADER_ANIM = "headerAnim"
    READ_DELAY = "readDelay"
    TYPING = "typing"
    REVEALING = "revealing"


class ViewportState(str, Enum):
    IN_VIEW = "in-view"
    OUT_OF_VIEW = "out-of-view"


class EventKind(str, Enum):
    SHOW_TYPING = "show-typing"
    FINISH_TYPING = "finish-typing"
    REVEAL_MESSAGE = "reveal-message"
    REVEAL_HEADER = "reveal-header"
    DEFER_MESSAGE = "defer-message"


class SchedulerEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: EventKind
    item: RevealItem
    at_ms: float


class SchedulerState(BaseModel):
    """Read-only snapshot of the scheduler for observability and comparison."""

    phase: Phase
    queue: list[int]
    failed: list[int]
    revealed: list[int]
    typing_target_ordinal: int | None = None
    last_viewport_state: ViewportState | None = None
    enabled: bool = True

    @property
    def queue_length(self) -> int:
        return len(self.queue)

    @property
    def failed_length(self) -> int:
        return len(self.failed)


class TypingIndicator(BaseModel):
    """What the sink needs to draw a typing indicator for a pending message."""

    model_config = ConfigDict(frozen=True)

    speaker: str
    icon_slot: str
    color_slot: str
    display_name: str | None = None
    size: str | None = None
    layout: Layout | None = None
