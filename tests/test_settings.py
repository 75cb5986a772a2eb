"""Tests for settings loading and logging setup."""

import logging
import logging.handlers
from collections.abc import Iterator
from pathlib import Path

import pytest

from ledgerbus.logging_config import setup_logging
from ledgerbus.settings import (
    get_default_settings,
    get_setting,
    load_settings,
    reload_settings,
)


@pytest.fixture(autouse=True)
def fresh_settings() -> Iterator[None]:
    reload_settings()
    yield
    reload_settings()


@pytest.fixture
def restore_root_logger() -> Iterator[None]:
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for h in root.handlers[:]:
        root.removeHandler(h)
        h.close()
    for h in handlers:
        root.addHandler(h)
    root.setLevel(level)


class TestLoadSettings:
    """Defaults merged with config/settings.yaml."""

    def test_defaults_without_file(self, tmp_path: Path) -> None:
        settings = load_settings(tmp_path)
        assert settings == get_default_settings()
        assert get_setting(settings, "host_calls.timeout") == 0.5
        assert get_setting(settings, "quorum.responder_key") == "validatorId"

    def test_file_overrides_nested_values(self, tmp_path: Path) -> None:
        (tmp_path / "settings.yaml").write_text(
            "host_calls:\n  timeout: 0.25\ncorrelator:\n  default_timeout: 5\n",
            encoding="utf-8",
        )
        settings = load_settings(tmp_path)
        assert get_setting(settings, "host_calls.timeout") == 0.25
        assert get_setting(settings, "host_calls.max_depth") == 8
        assert get_setting(settings, "correlator.default_timeout") == 5

    def test_null_values_keep_defaults(self, tmp_path: Path) -> None:
        (tmp_path / "settings.yaml").write_text("event_bus:\n  strict:\n", encoding="utf-8")
        assert get_setting(load_settings(tmp_path), "event_bus.strict") is True

    def test_invalid_yaml_falls_back_to_defaults(self, tmp_path: Path) -> None:
        (tmp_path / "settings.yaml").write_text("host_calls: [unclosed", encoding="utf-8")
        assert load_settings(tmp_path) == get_default_settings()

    def test_cached_until_reload(self, tmp_path: Path) -> None:
        path = tmp_path / "settings.yaml"
        path.write_text("quorum:\n  default_timeout: 1\n", encoding="utf-8")
        first = load_settings(tmp_path)

        path.write_text("quorum:\n  default_timeout: 2\n", encoding="utf-8")
        assert load_settings(tmp_path) is first

        reload_settings()
        assert get_setting(load_settings(tmp_path), "quorum.default_timeout") == 2

    def test_defaults_are_copies(self) -> None:
        a = get_default_settings()
        a["host_calls"]["timeout"] = 99
        assert get_default_settings()["host_calls"]["timeout"] == 0.5

    def test_get_setting_missing_path(self) -> None:
        assert get_setting({"a": {"b": 1}}, "a.c", "x") == "x"
        assert get_setting({"a": 1}, "a.b") is None


class TestSetupLogging:
    """Rotating file handler plus optional console output."""

    def test_file_handler_created(self, tmp_path: Path, restore_root_logger: None) -> None:
        settings = {"logging": {"file": "logs/node.log", "level": "debug"}}

        setup_logging(tmp_path, settings)
        logging.getLogger("ledgerbus.test").debug("hello")

        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0], logging.handlers.RotatingFileHandler)
        root.handlers[0].flush()
        assert "hello" in (tmp_path / "logs" / "node.log").read_text(encoding="utf-8")

    def test_console_handler_optional(self, tmp_path: Path, restore_root_logger: None) -> None:
        settings = {"logging": {"file": "node.log", "log_to_console": True}}

        setup_logging(tmp_path, settings)

        kinds = {type(h) for h in logging.getLogger().handlers}
        assert kinds == {logging.handlers.RotatingFileHandler, logging.StreamHandler}

    def test_per_logger_level_below_root(self, tmp_path: Path, restore_root_logger: None) -> None:
        traced = logging.getLogger("ledgerbus.rpc.correlator")
        previous = traced.level
        settings = {
            "logging": {
                "file": "node.log",
                "level": "INFO",
                "levels": {"ledgerbus.rpc.correlator": "DEBUG"},
            }
        }
        try:
            log_path = setup_logging(tmp_path, settings)
            traced.debug("routing r1")
            logging.getLogger("ledgerbus.events.bus").debug("delivery noise")
            logging.getLogger().handlers[0].flush()
        finally:
            traced.setLevel(previous)

        assert log_path == tmp_path / "node.log"
        text = log_path.read_text(encoding="utf-8")
        assert "routing r1" in text
        assert "delivery noise" not in text
        assert "MainThread ledgerbus.rpc.correlator" in text

    def test_default_settings_have_no_overrides(self) -> None:
        assert get_setting(get_default_settings(), "logging.levels") == {}
