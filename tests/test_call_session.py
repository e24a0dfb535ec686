import pytest

from call_session import CallSession, CallState, new_call_id
from errors import InvalidStateError


def make_session() -> CallSession:
    return CallSession(id=new_call_id(), caller_id="1", callee_id="2", caller_name="mom",
                       offer={"sdp": "offer"}, created_at=0.0)


def test_new_session_is_pending():
    session = make_session()
    assert session.state == CallState.PENDING
    assert session.live
    assert session.involves("1") and session.involves("2")
    assert not session.involves("3")
    assert session.status_view() == {"state": "pending"}


def test_call_ids_are_unique():
    assert len({new_call_id() for _ in range(100)}) == 100


def test_accept_records_answer():
    session = make_session()
    session.accept({"sdp": "answer"}, 1.0)
    assert session.status_view() == {"state": "accepted", "answer": {"sdp": "answer"}}


def test_cannot_decline_an_accepted_call():
    session = make_session()
    session.accept({"sdp": "answer"}, 1.0)
    with pytest.raises(InvalidStateError):
        session.decline(1.0)


def test_closed_sessions_are_not_live():
    declined, superseded, ended = make_session(), make_session(), make_session()
    declined.decline(1.0)
    superseded.supersede(2.0)
    ended.end(3.0)

    assert not any(session.live for session in (declined, superseded, ended))
    assert (declined.closed_at, superseded.closed_at, ended.closed_at) == (1.0, 2.0, 3.0)
    with pytest.raises(InvalidStateError):
        ended.end(4.0)
