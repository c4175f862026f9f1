"""Runtime-configurable debug logging utilities."""

from __future__ import annotations

import json
import logging
import os
import threading
from typing import Any, Dict

_logger = logging.getLogger("fleetcore")
_state_lock = threading.Lock()
_enabled = False


def configure_root(level: int = logging.INFO) -> None:
    """Ensure standard logging configuration is present."""

    if not logging.getLogger().handlers:
        logging.basicConfig(
            level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s"
        )
    if os.environ.get("FLEETCORE_DEBUG", "").lower() in ("1", "true", "yes"):
        enable()


def is_enabled() -> bool:
    """Return whether verbose debug logging is active."""

    with _state_lock:
        return _enabled


def enable() -> None:
    """Enable verbose logging globally."""

    global _enabled
    with _state_lock:
        _enabled = True
    _logger.setLevel(logging.DEBUG)
    _logger.debug("Verbose debug mode enabled")


def disable() -> None:
    """Disable verbose logging globally."""

    global _enabled
    with _state_lock:
        _enabled = False
    _logger.setLevel(logging.INFO)
    _logger.debug("Verbose debug mode disabled")


def _normalise(payload: Dict[str, Any]) -> str:
    try:
        return json.dumps(payload, separators=(",", ":"), default=str)
    except TypeError:
        return str(payload)


def log_request(context: str, payload: Dict[str, Any]) -> None:
    """Emit structured debug log for outgoing remote requests."""

    if not is_enabled():
        return
    logging.getLogger("fleetcore.request").debug(
        "%s request: %s", context, _normalise(payload)
    )


def log_response(context: str, payload: Dict[str, Any]) -> None:
    """Emit structured debug log for remote responses."""

    if not is_enabled():
        return
    logging.getLogger("fleetcore.response").debug(
        "%s response: %s", context, _normalise(payload)
    )
