"""
Tests for configuration defaults, environment overrides and the entry point's exit status.

Run with: pytest tests/test_config.py -v
"""

import importlib
from unittest.mock import patch

import pytest

import config
import main
from errors import ListenBindFailure

OVERRIDES = (
    "HOST", "PORT", "MIDI_RELAY_ENABLE_SSL", "MIDI_RELAY_MAX_MESSAGE_SIZE",
    "MIDI_RELAY_SEND_FAILURE_LIMIT", "MIDI_RELAY_DEBUG",
)


@pytest.fixture
def clean_env(monkeypatch):
    for name in OVERRIDES:
        monkeypatch.delenv(name, raising=False)
    yield monkeypatch
    # Leave the module as the rest of the suite expects it.
    for name in OVERRIDES:
        monkeypatch.delenv(name, raising=False)
    importlib.reload(config)


class TestConfig:

    def test_defaults(self, clean_env):
        importlib.reload(config)

        assert config.HOST == "0.0.0.0"
        assert config.PORT == 8080
        assert config.ENABLE_SSL is False
        assert config.DEBUG is False
        assert config.SEND_FAILURE_LIMIT == 3

    def test_port_from_environment(self, clean_env):
        clean_env.setenv("PORT", "10000")
        importlib.reload(config)

        assert config.PORT == 10000

    def test_invalid_port_falls_back_to_default(self, clean_env):
        clean_env.setenv("PORT", "eighty")
        importlib.reload(config)

        assert config.PORT == 8080

    @pytest.mark.parametrize("value,expected", [("1", True), ("true", True), ("On", True), ("0", False), ("no", False)])
    def test_flags(self, clean_env, value, expected):
        clean_env.setenv("MIDI_RELAY_DEBUG", value)
        clean_env.setenv("MIDI_RELAY_ENABLE_SSL", value)
        importlib.reload(config)

        assert config.DEBUG is expected
        assert config.ENABLE_SSL is expected


class TestMain:

    def test_bind_failure_exits_with_error(self):
        async def fail(host, port):
            raise ListenBindFailure(host, port) from OSError(98, "Address already in use")

        with patch("server.start_server", fail):
            assert main.main() == 1

    def test_interrupt_exits_cleanly(self):
        with patch("server.start_server"), patch("asyncio.run", side_effect=KeyboardInterrupt):
            assert main.main() == 0
