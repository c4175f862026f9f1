"""Tests for the runtime debug toggle."""

import logging

import pytest

from fleetcore.shared import debug


@pytest.fixture(autouse=True)
def reset_debug():
    debug.disable()
    yield
    debug.disable()


def test_enable_and_disable():
    assert not debug.is_enabled()
    debug.enable()
    assert debug.is_enabled()
    assert logging.getLogger("fleetcore").level == logging.DEBUG
    debug.disable()
    assert not debug.is_enabled()


def test_environment_enables_debug(monkeypatch):
    monkeypatch.setenv("FLEETCORE_DEBUG", "1")
    debug.configure_root()
    assert debug.is_enabled()


def test_request_logging_only_when_enabled(caplog):
    caplog.set_level(logging.DEBUG, logger="fleetcore.request")
    debug.log_request("ssh exec", {"server": "10.0.0.5"})
    assert caplog.records == []

    debug.enable()
    debug.log_request("ssh exec", {"server": "10.0.0.5"})
    assert 'ssh exec request: {"server":"10.0.0.5"}' in caplog.text
