"""Tests for config loading."""

import logging

import pytest

from chatreel.config import Config, load_config


class TestLoadConfig:
    def test_missing_file_gives_defaults(self, tmp_path):
        config = load_config(tmp_path / "nope.yaml")
        assert config == Config()
        assert config.typing_animation.words_per_minute == 200
        assert config.read_delay.min_read_time == 300
        assert config.viewport_buffer == 200
        assert config.playback.lookahead_count == 3

    def test_snake_case_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("typing_animation:\n  words_per_minute: 120\nviewport_buffer: 50\n")
        config = load_config(path)
        assert config.typing_animation.words_per_minute == 120
        assert config.viewport_buffer == 50

    def test_camel_case_and_chat_wrapper(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            "chat:\n"
            "  typingAnimation:\n"
            "    typingAppliesTo: assistant\n"
            "    minTypingTime: 400\n"
            "  readDelay:\n"
            "    enabled: false\n"
            "  viewportBuffer: 120\n"
        )
        config = load_config(path)
        assert config.typing_animation.typing_applies_to == "assistant"
        assert config.typing_animation.min_typing_time == 400
        assert config.read_delay.enabled is False
        assert config.viewport_buffer == 120

    def test_unknown_keys_ignored(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("somethingElse: 1\ntyping_animation:\n  sparkle: true\n")
        assert load_config(path) == Config()

    def test_invalid_value_raises(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("typing_animation:\n  variance_percentage: 80\n")
        with pytest.raises(ValueError):
            load_config(path)

    def test_empty_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("")
        assert load_config(path) == Config()


class TestLoggingMode:
    def test_levels(self):
        assert Config().logging.level == logging.WARNING
        assert Config.model_validate({"logging": {"mode": "debug"}}).logging.level == logging.DEBUG
