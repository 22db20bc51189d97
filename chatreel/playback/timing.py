"""Typing duration, read delay, and size buckets derived from message word counts."""

import random

from chatreel.config import ReadDelayConfig, TypingAnimationConfig

DIRECT_TEXT_MAX_DELAY_MS = 500

SMALL_WORDS = 20
MEDIUM_WORDS = 50


def word_count(text: str) -> int:
    return len(text.split())


def _variance(pct: float, rng: random.Random | None) -> float:
    spread = pct / 100
    return 1 + (rng or random).uniform(-spread, spread)


def _clamp(value: float, low: float, high: float) -> float:
    return min(high, max(low, value))


def typing_time(
    body: str,
    is_user: bool,
    config: TypingAnimationConfig | None = None,
    rng: random.Random | None = None,
) -> float:
    """Milliseconds the typing indicator shows before the message appears."""
    config = config or TypingAnimationConfig()

    if config.typing_applies_to == "assistant" and is_user:
        return config.min_typing_time
    if config.typing_applies_to == "user" and not is_user:
        return config.min_typing_time

    words = word_count(body)
    if not config.words_per_minute:
        base = words * 50
    else:
        base = (words / config.words_per_minute) * 60_000

    return _clamp(
        base * _variance(config.variance_percentage, rng),
        config.min_typing_time,
        config.max_typing_time,
    )


def read_delay(
    previous_body: str | None,
    config: ReadDelayConfig | None = None,
    rng: random.Random | None = None,
) -> float:
    """Milliseconds to pause after the previous message before typing starts.

    Zero when there is no previous message or the delay is disabled.
    """
    config = config or ReadDelayConfig()
    if previous_body is None or not config.enabled:
        return 0

    words = word_count(previous_body)
    if words == 0 or not config.words_per_minute:
        return config.min_read_time

    base = (words / config.words_per_minute) * 60_000
    return _clamp(
        base * _variance(config.variance_percentage, rng),
        config.min_read_time,
        config.max_read_time,
    )


def direct_text_delay(full_read_delay: float) -> float:
    """Direct text waits half the normal read delay, capped at 500 ms."""
    return min(full_read_delay / 2, DIRECT_TEXT_MAX_DELAY_MS)


def message_size(body: str) -> str:
    words = word_count(body)
    if words < SMALL_WORDS:
        return "small"
    if words < MEDIUM_WORDS:
        return "medium"
    return "large"
