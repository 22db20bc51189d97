"""Configuration loading for chatreel."""

import logging
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _Section(BaseModel):
    # Accept both `words_per_minute` and the camelCase `wordsPerMinute`.
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class TypingAnimationConfig(_Section):
    enabled: bool = True
    words_per_minute: float | None = 200
    min_typing_time: float = 800
    max_typing_time: float = 6000
    variance_percentage: float = Field(default=15, ge=0, le=50)
    typing_applies_to: Literal["both", "assistant", "user"] = "both"


class ReadDelayConfig(_Section):
    enabled: bool = True
    words_per_minute: float | None = 300
    min_read_time: float = 300
    max_read_time: float = 3000
    variance_percentage: float = Field(default=20, ge=0, le=50)


class PlaybackConfig(_Section):
    lookahead_distance: float = 0  # px below the viewport bottom
    lookahead_count: int = 3
    initial_queue_size: int = 5
    near_bottom_threshold: float = 300
    scroll_debounce_ms: float = 100


class ParserConfig(_Section):
    coalesce_consecutive: bool = False


class SpanTagConfig(_Section):
    max_tags: int = 15
    wiki_tags_ratio: float = 0.6
    code_tags_ratio: float = 0.4
    min_count: int = 1
    show_counts: bool = True


class LoggingConfig(_Section):
    mode: Literal["production", "debug"] = "production"

    @property
    def level(self) -> int:
        return logging.DEBUG if self.mode == "debug" else logging.WARNING


class Config(_Section):
    typing_animation: TypingAnimationConfig = Field(default_factory=TypingAnimationConfig)
    read_delay: ReadDelayConfig = Field(default_factory=ReadDelayConfig)
    viewport_buffer: float = 200
    playback: PlaybackConfig = Field(default_factory=PlaybackConfig)
    parser: ParserConfig = Field(default_factory=ParserConfig)
    spans: SpanTagConfig = Field(default_factory=SpanTagConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def _project_root() -> Path:
    """Return the chatreel project root directory."""
    return Path(__file__).parent.parent


def load_config(config_path: Path | None = None) -> Config:
    """Load config from YAML file. Falls back to defaults if file missing."""
    if config_path is None:
        config_path = _project_root() / "config.yaml"

    if config_path.exists():
        raw: dict[str, Any] = yaml.safe_load(config_path.read_text()) or {}
        # settings.json-style files nest the playback options under `chat`
        if isinstance(raw.get("chat"), dict):
            raw = {**raw.pop("chat"), **raw}
        return Config.model_validate(raw)

    return Config()
