# pylint: disable=missing-module-docstring,missing-function-docstring

import json
from typing import Any

import pytest

from observability import logger


def test_log_event_emits_valid_jsonl(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """
    Contract:
    - log_event emits exactly one JSONL line
    - payload is serialized as-is
    - output sink is patchable
    """
    captured: list[str] = []

    def fake_print(line: str) -> None:
        captured.append(line)

    # Patch the explicit output sink used by logger
    monkeypatch.setattr(logger, "_print", fake_print)
    monkeypatch.setattr(logger, "_enabled", True)

    payload: dict[str, Any] = {
        "event_type": "TEST",
        "value": 123,
    }

    logger.log_event(payload)

    # Exactly one line emitted
    assert len(captured) == 1

    # Must be valid JSON
    decoded = json.loads(captured[0])

    # Payload must be preserved exactly
    assert decoded == payload


def test_disabled_logger_writes_nothing(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    captured: list[str] = []
    monkeypatch.setattr(logger, "_print", captured.append)
    monkeypatch.setattr(logger, "_enabled", True)

    logger.set_enabled(False)
    logger.log_event({"event_type": "TEST"})
    logger.set_enabled(True)
    logger.log_event({"event_type": "TEST"})

    assert len(captured) == 1


def test_unserializable_event_falls_back(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Logging must never raise, even for values json cannot encode."""
    captured: list[str] = []
    monkeypatch.setattr(logger, "_print", captured.append)
    monkeypatch.setattr(logger, "_enabled", True)

    logger.log_event({"ts_ms": 7, "event_type": "TEST", "value": object()})

    decoded = json.loads(captured[0])
    assert decoded["ts_ms"] == 7
    assert decoded["event_type"] == "LOGGER_SERIALIZATION_ERROR"
    assert "original_event_repr" in decoded
