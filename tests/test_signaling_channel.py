import asyncio

import pytest

import events
from errors import InvalidStateError, NotFoundError, SignalingError
from signaling_channel import LocalChannel, WebsocketChannel, unwrap_response


def test_unwrap_success():
    assert unwrap_response({"id": 1, "event": events.HEARTBEAT, "data": {"ok": 1}}) == {"ok": 1}
    assert unwrap_response({"id": 1, "event": events.HEARTBEAT, "data": None}) == {}


def test_unwrap_errors_by_kind():
    with pytest.raises(NotFoundError, match="no call"):
        unwrap_response({"id": 1, "event": events.error_event("not_found"), "data": {"message": "no call"}})
    with pytest.raises(InvalidStateError):
        unwrap_response({"id": 1, "event": events.error_event("invalid_state"), "data": {}})
    with pytest.raises(SignalingError):
        unwrap_response({"id": 1, "event": events.error_event("something_new"), "data": {}})


def test_local_channel_numbers_its_requests(stack):
    channel = LocalChannel(stack.router, "1")
    first = channel._packet(events.HEARTBEAT, None)
    second = channel._packet(events.HEARTBEAT, {"a": 1})
    assert (first["id"], second["id"]) == (1, 2)
    assert first["data"] == {}


def test_websocket_channel_needs_connect():
    channel = WebsocketChannel("ws://127.0.0.1:1", "1", "token")
    with pytest.raises(SignalingError):
        asyncio.run(channel.request(events.HEARTBEAT))
