"""Headless playback: run the scheduler against an estimated layout and a fake reader."""

import logging
import random

from chatreel.config import Config
from chatreel.models import EventKind, ParsedConversation, SchedulerEvent, SchedulerState
from chatreel.playback.clock import ManualClock
from chatreel.playback.scheduler import RevealScheduler, build_reveal_items
from chatreel.playback.sinks import LayoutViewport, RecordingSink

logger = logging.getLogger(__name__)

MAX_STALLS = 3


class SimulationResult:
    """Outcome of a simulated playback session."""

    def __init__(self, total_items: int) -> None:
        self.total_items = total_items
        self.trace: list[SchedulerEvent] = []
        self.final_state: SchedulerState | None = None
        self.elapsed_ms: float = 0.0
        self.scrolls: int = 0

    @property
    def revealed_count(self) -> int:
        return len(self.final_state.revealed) if self.final_state else 0

    @property
    def completed(self) -> bool:
        return self.revealed_count == self.total_items

    def __repr__(self) -> str:
        return (
            f"SimulationResult({self.revealed_count}/{self.total_items} revealed "
            f"in {self.elapsed_ms:.0f}ms, {len(self.trace)} events, "
            f"{self.scrolls} scrolls)"
        )


def _notify_visible(scheduler: RevealScheduler, viewport: LayoutViewport) -> None:
    inner = viewport.inner_height()
    for item in scheduler.items:
        if scheduler.is_revealed(item):
            continue
        top = viewport.item_top(item)
        if top is not None and 0 <= top < inner:
            scheduler.on_visibility_change(item, True)


def simulate_playback(
    parsed: ParsedConversation,
    config: Config | None = None,
    window_height: float = 800,
    follow: bool = True,
    seed: int | None = None,
    limit: int = 10_000,
) -> SimulationResult:
    """Play a conversation through with a reader who scrolls along.

    With `follow`, the reader keeps the newest revealed item in the upper half
    of the window. Whenever playback goes quiet the reader scrolls down half a
    window; after a few quiet scrolls without progress the session ends.
    """
    config = config or Config()
    clock = ManualClock()
    sink = RecordingSink()
    viewport = LayoutViewport(parsed, build_reveal_items(parsed), window_height=window_height)
    rng = random.Random(seed) if seed is not None else None
    scheduler = RevealScheduler(parsed, sink, viewport, clock, config=config, rng=rng)
    result = SimulationResult(total_items=len(scheduler.items))

    def on_event(event: SchedulerEvent) -> None:
        result.trace.append(event)
        if not follow or event.kind not in (EventKind.REVEAL_MESSAGE, EventKind.REVEAL_HEADER):
            return
        top = viewport.item_top(event.item)
        if top is not None and top > window_height / 2:
            viewport.scroll_by(top - window_height / 2)
            result.scrolls += 1
            scheduler.on_scroll()

    scheduler.add_listener(on_event)
    scheduler.init()

    stalls = 0
    for _ in range(limit):
        _notify_visible(scheduler, viewport)
        due = clock.next_due()
        if due is None:
            if len(scheduler.state().revealed) == result.total_items or stalls >= MAX_STALLS:
                break
            viewport.scroll_by(window_height / 2)
            result.scrolls += 1
            stalls += 1
            scheduler.on_scroll()
            continue

        before = len(scheduler.state().revealed)
        clock.advance(due - clock.now())
        if len(scheduler.state().revealed) > before:
            stalls = 0
    else:
        logger.warning("Simulation hit the %d step limit", limit)

    result.final_state = scheduler.state()
    result.elapsed_ms = clock.now()
    logger.info("Simulation finished: %r", result)
    return result
