"""Reveal scheduler: plays a parsed conversation back one item at a time.

Headers fade in, messages wait out a read delay, show a typing indicator for a
length-dependent time, then appear if they are close enough to the viewport.
Messages that finish typing off-screen are parked in a failed queue and retried
ahead of everything else on the next wake-up (scroll, visibility, enqueue).

All timing goes through an injected Clock and all visual changes through a
RevealSink, so the whole state machine runs without a browser.
"""

import logging
import random
from bisect import insort
from typing import Callable

from chatreel.config import Config
from chatreel.models import (
    EventKind,
    ItemKind,
    Message,
    ParsedConversation,
    Phase,
    RevealItem,
    SchedulerEvent,
    SchedulerState,
    TypingIndicator,
    ViewportState,
)
from chatreel.playback.clock import Clock
from chatreel.playback.sinks import RevealSink, Viewport
from chatreel.playback.state import Signal, is_active, transition
from chatreel.playback.timing import direct_text_delay, message_size, read_delay, typing_time
from chatreel.speakers import SpeakerRegistry, display_name, is_user, should_display_name

logger = logging.getLogger(__name__)

HEADER_ANIM_MS = 300
REVEAL_SETTLE_MS = 600
DEFER_BACKOFF_MS = 100
DIRECT_TEXT_FADE_MS = 300
INDICATOR_FADE_MS = 400


def build_reveal_items(parsed: ParsedConversation) -> list[RevealItem]:
    """Merge headers and messages into one stream in source order."""
    entries: list[tuple[int, ItemKind, int]] = []
    for section in parsed.headers():
        entries.append((section.line_start, ItemKind.HEADER, section.id))
    for message in parsed.messages:
        entries.append((message.line_no, ItemKind.MESSAGE, message.ordinal))
    entries.sort(key=lambda e: (e[0], e[1] != ItemKind.HEADER))

    return [
        RevealItem(kind=kind, ref=ref, ordinal=i, line_no=line_no)
        for i, (line_no, kind, ref) in enumerate(entries)
    ]


class RevealScheduler:
    def __init__(
        self,
        parsed: ParsedConversation,
        sink: RevealSink,
        viewport: Viewport,
        clock: Clock,
        config: Config | None = None,
        registry: SpeakerRegistry | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.parsed = parsed
        self.sink = sink
        self.viewport = viewport
        self.clock = clock
        self.config = config or Config()
        self.registry = registry or SpeakerRegistry()
        self.rng = rng
        self.trace: list[SchedulerEvent] = []

        self._items = build_reveal_items(parsed)
        self._phase = Phase.IDLE
        self._queue: list[int] = []
        self._failed: list[int] = []
        self._revealed: set[int] = set()
        self._typing_target: int | None = None
        self._last_viewport_state: ViewportState | None = None
        self._enabled = self.config.typing_animation.enabled
        self._session = 0
        self._timers: set[int] = set()
        self._scroll_timer: int | None = None
        self._listeners: list[Callable[[SchedulerEvent], None]] = []

        self.registry.register_all(parsed.speakers())

    # --- Observability ---

    @property
    def items(self) -> list[RevealItem]:
        return list(self._items)

    @property
    def phase(self) -> Phase:
        return self._phase

    @property
    def enabled(self) -> bool:
        return self._enabled

    def state(self) -> SchedulerState:
        return SchedulerState(
            phase=self._phase,
            queue=list(self._queue),
            failed=list(self._failed),
            revealed=sorted(self._revealed),
            typing_target_ordinal=self._typing_target,
            last_viewport_state=self._last_viewport_state,
            enabled=self._enabled,
        )

    def is_revealed(self, item: RevealItem | int) -> bool:
        return self._resolve(item) in self._revealed

    def add_listener(self, fn: Callable[[SchedulerEvent], None]) -> None:
        self._listeners.append(fn)

    # --- Lifecycle ---

    def init(self) -> None:
        """Start playback according to `typing_animation.enabled`."""
        self.reset(self.config.typing_animation.enabled)

    def reset(self, enabled: bool) -> None:
        """Drop all pending work and start over.

        Disabled: every item is shown at once. Enabled: the first item is
        shown, the rest hidden, and the next few are queued for playback.
        """
        self._session += 1
        for handle in self._timers:
            self.clock.clear(handle)
        self._timers.clear()
        if self._scroll_timer is not None:
            self.clock.clear(self._scroll_timer)
            self._scroll_timer = None

        self._queue = []
        self._failed = []
        self._revealed = set()
        self._typing_target = None
        self._last_viewport_state = None
        self.sink.remove_typing_indicator()
        self._phase = transition(self._phase, Signal.RESET)
        self._enabled = enabled

        self.registry.reset()
        self.registry.register_all(self.parsed.speakers())

        logger.info("Scheduler reset (enabled=%s, %d items)", enabled, len(self._items))

        if not enabled:
            for item in self._items:
                self._show(item)
            return

        for item in self._items:
            if item.ordinal == 0:
                self._show(item)
            else:
                self.sink.hide(item)

        initial = self.config.playback.initial_queue_size
        self._queue = [item.ordinal for item in self._items[1 : 1 + initial]]
        self.process_next()

    def set_enabled(self, enabled: bool) -> None:
        if enabled == self._enabled:
            return
        self.reset(enabled)

    # --- Queueing ---

    def enqueue(self, item: RevealItem | int) -> int:
        """Queue an item plus every hidden item before it. Returns how many were added."""
        ordinal = self._resolve(item)
        if ordinal in self._revealed:
            return 0

        added = 0
        for earlier in self._items[: ordinal + 1]:
            o = earlier.ordinal
            if o in self._revealed or o in self._failed or o in self._queue or o == self._typing_target:
                continue
            insort(self._queue, o)
            added += 1
        if added:
            logger.debug("Enqueued %d item(s) up to #%d", added, ordinal)
        return added

    def process_next(self) -> None:
        """Start the next queued item if nothing is animating."""
        if not self._enabled or is_active(self._phase):
            return

        if self._failed:
            failed = self._failed
            self._failed = []
            self._queue = failed + [o for o in self._queue if o not in failed]
            logger.debug("Retrying %d deferred item(s)", len(failed))

        while self._queue:
            ordinal = self._queue.pop(0)
            if ordinal in self._revealed:
                continue
            item = self._items[ordinal]
            if item.kind == ItemKind.HEADER:
                self._animate_header(item)
            else:
                self._start_message(item)
            return

    # --- Viewport wake-ups ---

    def on_visibility_change(self, item: RevealItem | int, visible: bool) -> None:
        ordinal = self._resolve(item)
        if not visible or not self._enabled or ordinal in self._revealed:
            return
        if self.enqueue(ordinal):
            self.process_next()
        if self._items[ordinal].kind == ItemKind.MESSAGE:
            self.check_following_messages(ordinal)

    def on_scroll(self) -> None:
        """Debounced scroll handler."""
        if self._scroll_timer is not None:
            self.clock.clear(self._scroll_timer)
        session = self._session

        def fire() -> None:
            self._scroll_timer = None
            if session == self._session:
                self._handle_scroll()

        self._scroll_timer = self.clock.set_timeout(self.config.playback.scroll_debounce_ms, fire)

    def _handle_scroll(self) -> None:
        if not self._enabled:
            return
        if self._failed and self._phase == Phase.IDLE:
            self.process_next()
            return
        if self._near_bottom():
            last = self._last_visible_item()
            self.check_following_messages(last.ordinal if last else -1)

    def _near_bottom(self) -> bool:
        scroll_y = self.viewport.scroll_y()
        inner = self.viewport.inner_height()
        doc_height = self.viewport.document_height()
        if scroll_y is None or inner is None or doc_height is None:
            return False
        return scroll_y + inner >= doc_height - self.config.playback.near_bottom_threshold

    def check_following_messages(self, last_visible_ordinal: int) -> int:
        """Enqueue up to `lookahead_count` upcoming messages that sit near the viewport."""
        playback = self.config.playback
        inner = self.viewport.inner_height()
        added = 0
        looked = 0
        for item in self._items[last_visible_ordinal + 1 :]:
            if item.kind != ItemKind.MESSAGE:
                continue
            if looked >= playback.lookahead_count:
                break
            looked += 1
            o = item.ordinal
            if o in self._revealed or o in self._queue or o in self._failed:
                continue
            top = self.viewport.item_top(item)
            if top is None or inner is None:
                continue
            if top - inner < playback.lookahead_distance:
                added += self.enqueue(item)
        if added:
            self.process_next()
        return added

    # --- Skip-to-target ---

    def make_elements_visible_up_to(self, target: RevealItem | int) -> int:
        """Show everything up to and including `target` without animation."""
        ordinal = self._resolve(target)
        shown = 0
        for item in self._items[: ordinal + 1]:
            if item.ordinal not in self._revealed:
                self._show(item)
                shown += 1
        self._queue = [o for o in self._queue if o > ordinal]
        self._failed = [o for o in self._failed if o > ordinal]
        logger.info("Revealed %d item(s) up to #%d", shown, ordinal)
        self.process_next()
        return shown

    def reveal_to(self, target: RevealItem | int) -> int:
        return self.make_elements_visible_up_to(target)

    # --- Item flows ---

    def _animate_header(self, item: RevealItem) -> None:
        self._set_phase(Signal.START_HEADER)
        self._show(item)
        self._emit(EventKind.REVEAL_HEADER, item)
        self._schedule(HEADER_ANIM_MS, Phase.HEADER_ANIM, self._settle)

    def _start_message(self, item: RevealItem) -> None:
        message = self._message(item)
        previous = self._last_visible_message()
        delay = read_delay(
            previous.body_markdown if previous else None, self.config.read_delay, self.rng,
        )
        if message.is_direct_text:
            delay = direct_text_delay(delay)

        self._typing_target = item.ordinal
        self._set_phase(Signal.START_READ_DELAY)
        logger.debug("Read delay %.0fms before #%d (%s)", delay, item.ordinal, message.speaker)
        self._schedule(delay, Phase.READ_DELAY, lambda: self._after_read_delay(item))

    def _after_read_delay(self, item: RevealItem) -> None:
        if item.ordinal in self._revealed:
            self._abandon()
            return

        message = self._message(item)
        if message.is_direct_text:
            self._set_phase(Signal.START_REVEAL)
            self._typing_target = None
            self._show(item)
            self._emit(EventKind.REVEAL_MESSAGE, item)
            self._schedule(DIRECT_TEXT_FADE_MS, Phase.REVEALING, self._settle)
            return

        self._set_phase(Signal.START_TYPING)
        self.sink.insert_typing_indicator_after(self._last_visible_item(), self._indicator_for(message))
        self._emit(EventKind.SHOW_TYPING, item)

        duration = typing_time(
            message.body_markdown, is_user(message.speaker), self.config.typing_animation, self.rng,
        )
        logger.debug("Typing %.0fms for #%d", duration, item.ordinal)
        self._schedule(duration, Phase.TYPING, lambda: self._after_typing(item))

    def _after_typing(self, item: RevealItem) -> None:
        if item.ordinal in self._revealed:
            self.sink.remove_typing_indicator()
            self._abandon()
            return

        self.sink.clone_typing_indicator_for_fade_out(INDICATOR_FADE_MS)
        self.sink.remove_typing_indicator()
        self._emit(EventKind.FINISH_TYPING, item)
        self._set_phase(Signal.START_REVEAL)
        self._typing_target = None

        if self._in_view(item):
            self._show(item)
            self._emit(EventKind.REVEAL_MESSAGE, item)
            self._schedule(REVEAL_SETTLE_MS, Phase.REVEALING, self._settle)
        else:
            insort(self._failed, item.ordinal)
            self._emit(EventKind.DEFER_MESSAGE, item)
            self._schedule(DEFER_BACKOFF_MS, Phase.REVEALING, self._settle_deferred)

    def _settle(self) -> None:
        self._set_phase(Signal.SETTLED)
        self.process_next()

    def _settle_deferred(self) -> None:
        # wait for a scroll or visibility wake-up instead of retrying straight away
        self._set_phase(Signal.SETTLED)

    def _abandon(self) -> None:
        self._typing_target = None
        self._set_phase(Signal.ABANDON)
        self.process_next()

    # --- Helpers ---

    def _in_view(self, item: RevealItem) -> bool:
        top = self.viewport.item_top(item)
        inner = self.viewport.inner_height()
        if top is None or inner is None:
            in_view = False
        else:
            in_view = top < inner + self.config.viewport_buffer

        state = ViewportState.IN_VIEW if in_view else ViewportState.OUT_OF_VIEW
        if state != self._last_viewport_state:
            self._last_viewport_state = state
            logger.info("Viewport state: %s", state.value)
        return in_view

    def _indicator_for(self, message: Message) -> TypingIndicator:
        identity = self.registry.identify(message.speaker)
        return TypingIndicator(
            speaker=message.speaker,
            icon_slot=identity.icon_slot,
            color_slot=identity.color_slot,
            display_name=display_name(message.speaker) if should_display_name(message.speaker) else None,
            size=None if is_user(message.speaker) else message_size(message.body_markdown),
            layout=message.layout,
        )

    def _schedule(self, ms: float, expected: Phase, fn: Callable[[], None]) -> None:
        session = self._session

        def callback() -> None:
            self._timers.discard(handle)
            if session != self._session or self._phase != expected:
                logger.debug("Dropping stale %s timer", expected.value)
                return
            fn()

        handle = self.clock.set_timeout(ms, callback)
        self._timers.add(handle)

    def _set_phase(self, signal: Signal) -> None:
        new_phase = transition(self._phase, signal)
        logger.debug("Phase %s -> %s (%s)", self._phase.value, new_phase.value, signal.value)
        self._phase = new_phase

    def _emit(self, kind: EventKind, item: RevealItem) -> None:
        event = SchedulerEvent(kind=kind, item=item, at_ms=self.clock.now())
        self.trace.append(event)
        for fn in self._listeners:
            fn(event)

    def _show(self, item: RevealItem) -> None:
        self._revealed.add(item.ordinal)
        self.sink.show(item)

    def _message(self, item: RevealItem) -> Message:
        return self.parsed.messages[item.ref]

    def _last_visible_item(self) -> RevealItem | None:
        if not self._revealed:
            return None
        return self._items[max(self._revealed)]

    def _last_visible_message(self) -> Message | None:
        for ordinal in sorted(self._revealed, reverse=True):
            item = self._items[ordinal]
            if item.kind == ItemKind.MESSAGE:
                return self._message(item)
        return None

    def _resolve(self, item: RevealItem | int) -> int:
        ordinal = item.ordinal if isinstance(item, RevealItem) else item
        if not 0 <= ordinal < len(self._items):
            raise ValueError(f"Unknown reveal item {ordinal}")
        return ordinal
