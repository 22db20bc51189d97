"""Phase transitions for the reveal scheduler.

The scheduler holds exactly one phase at a time. Every change goes through
`transition`, so an illegal jump (for example starting a header animation
while a message is typing) fails loudly instead of overlapping animations.
"""

from enum import Enum

from chatreel.models import Phase


class Signal(str, Enum):
    START_HEADER = "start-header"
    START_READ_DELAY = "start-read-delay"
    START_TYPING = "start-typing"
    START_REVEAL = "start-reveal"
    SETTLED = "settled"
    ABANDON = "abandon"
    RESET = "reset"


class InvalidTransition(RuntimeError):
    def __init__(self, phase: Phase, signal: Signal) -> None:
        super().__init__(f"Cannot apply {signal.value} while {phase.value}")
        self.phase = phase
        self.signal = signal


TRANSITIONS: dict[tuple[Phase, Signal], Phase] = {
    (Phase.IDLE, Signal.START_HEADER): Phase.HEADER_ANIM,
    (Phase.IDLE, Signal.START_READ_DELAY): Phase.READ_DELAY,
    (Phase.READ_DELAY, Signal.START_TYPING): Phase.TYPING,
    # direct text goes straight from the read delay to its fade-in
    (Phase.READ_DELAY, Signal.START_REVEAL): Phase.REVEALING,
    (Phase.TYPING, Signal.START_REVEAL): Phase.REVEALING,
    (Phase.HEADER_ANIM, Signal.SETTLED): Phase.IDLE,
    (Phase.REVEALING, Signal.SETTLED): Phase.IDLE,
    # target was revealed out of band while we were waiting on it
    (Phase.READ_DELAY, Signal.ABANDON): Phase.IDLE,
    (Phase.TYPING, Signal.ABANDON): Phase.IDLE,
}


def transition(phase: Phase, signal: Signal) -> Phase:
    """Return the phase that follows `phase` on `signal`. RESET is legal from anywhere."""
    if signal == Signal.RESET:
        return Phase.IDLE
    try:
        return TRANSITIONS[(phase, signal)]
    except KeyError:
        raise InvalidTransition(phase, signal) from None


def is_active(phase: Phase) -> bool:
    return phase != Phase.IDLE
