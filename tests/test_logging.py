"""Structured log records and request id propagation."""

import json
import logging

import pytest

from giftroom.logging import (
    ConsoleFormatter,
    JsonFormatter,
    RequestContextFilter,
    clear_request_id,
    set_request_id,
)


def _record(**extra):
    record = logging.LogRecord(
        "giftroom.services.claims", logging.INFO, __file__, 1, "claimed %s", ("r1",), None
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


@pytest.mark.unit
def test_json_lines_carry_room_context():
    record = _record(room_id="room-1", claim_id="claim-9", user_id="u-1")

    line = json.loads(JsonFormatter().format(record))

    assert line["message"] == "claimed r1"
    assert line["logger"] == "giftroom.services.claims"
    assert line["room_id"] == "room-1"
    assert line["claim_id"] == "claim-9"
    assert line["user_id"] == "u-1"
    assert "reservation_id" not in line


@pytest.mark.unit
def test_filter_stamps_current_request_id():
    set_request_id("req-abc")
    try:
        record = _record()
        RequestContextFilter().filter(record)
    finally:
        clear_request_id()

    assert record.request_id == "req-abc"
    assert json.loads(JsonFormatter().format(record))["request_id"] == "req-abc"


@pytest.mark.unit
def test_console_lines_append_context():
    line = ConsoleFormatter().format(_record(room_id="room-1"))

    assert line.endswith("claimed r1 [room_id=room-1]")


@pytest.mark.integration
async def test_request_id_is_echoed(client):
    supplied = await client.get("/", headers={"X-Request-ID": "trace-123"})
    generated = await client.get("/")

    assert supplied.headers["X-Request-ID"] == "trace-123"
    assert generated.headers["X-Request-ID"]
