import asyncio

import pytest

from call_agent import AgentState, CallAgent
from conftest import FakeTransport, build_stack
from errors import FamilyGamesError, SelfTargetError
from signaling_channel import LocalChannel

FAST = dict(incoming_interval=0.01, outgoing_interval=0.01, heartbeat_interval=0.01)


async def eventually(condition, timeout: float = 2.0):
    async def until():
        while not condition():
            await asyncio.sleep(0.005)

    await asyncio.wait_for(until(), timeout=timeout)


class Phone:
    """an agent plus every transport it created"""

    def __init__(self, router, user_id, **options):
        self.user_id = user_id
        self.transports = []
        self.agent = CallAgent(LocalChannel(router, user_id), self._new_transport, **dict(FAST, **options))

    def _new_transport(self):
        transport = FakeTransport(self.user_id)
        self.transports.append(transport)
        return transport

    @property
    def transport(self) -> FakeTransport:
        return self.transports[-1]


def test_call_connects_and_hangs_up(tmp_path):
    stack = build_stack(tmp_path)
    mom, kid = Phone(stack.router, "1"), Phone(stack.router, "2")
    seen = []

    async def runner():
        kid.agent.on_state_changed = lambda state, reason: seen.append(state)
        async with mom.agent, kid.agent:
            await eventually(lambda: stack.presence.online() == {"1", "2"})

            await mom.agent.call("2")
            assert mom.agent.state == AgentState.CALLING

            await eventually(lambda: kid.agent.state == AgentState.RINGING)
            assert kid.agent.incoming_call["callerName"] == "mom"
            assert kid.agent.peer_id == "1"

            await kid.agent.accept()
            assert kid.transport.remote_offer == mom.transport.offer
            assert kid.agent.state == AgentState.CONNECTING

            await eventually(lambda: mom.agent.state == AgentState.CONNECTING)
            assert mom.transport.remote_answer == kid.transport.answer

            mom.transport.emit("connected")
            kid.transport.emit("connected")
            assert mom.agent.state == kid.agent.state == AgentState.CONNECTED

            await mom.agent.hang_up()
            assert mom.agent.state == AgentState.ENDED
            assert mom.agent.end_reason == "hung up"
            assert mom.transports[0].closed

            # the media layer notices the other side left
            kid.transport.emit("closed")
            await eventually(lambda: kid.agent.state == AgentState.ENDED)
            assert kid.agent.end_reason == "remote ended"
            assert len(stack.directory) == 0

    asyncio.run(runner())
    assert seen == [AgentState.RINGING, AgentState.CONNECTING, AgentState.CONNECTED, AgentState.ENDED]


def test_declined_call(tmp_path):
    stack = build_stack(tmp_path)
    mom, kid = Phone(stack.router, "1"), Phone(stack.router, "2")

    async def runner():
        async with mom.agent, kid.agent:
            await mom.agent.call("2")
            await eventually(lambda: kid.agent.state == AgentState.RINGING)
            await kid.agent.decline()
            assert kid.agent.state == AgentState.ENDED

            await eventually(lambda: mom.agent.state == AgentState.ENDED)
            assert mom.agent.end_reason == "declined"
            assert mom.transport.closed

    asyncio.run(runner())


def test_nobody_answers(tmp_path):
    stack = build_stack(tmp_path)
    mom = Phone(stack.router, "1", answer_window=0.05)

    async def runner():
        async with mom.agent:
            await mom.agent.call("2")
            await eventually(lambda: mom.agent.state == AgentState.ENDED)
            assert mom.agent.end_reason == "no answer"
            assert stack.signaling.check_incoming_call("2") == {"call": None}

    asyncio.run(runner())


def test_caller_gives_up_before_answer(tmp_path):
    stack = build_stack(tmp_path)
    mom, kid = Phone(stack.router, "1"), Phone(stack.router, "2")

    async def runner():
        async with mom.agent:
            await mom.agent.call("2")
            # kid's agent is not started, so it only polls when told to
            await kid.agent.check_incoming()
            assert kid.agent.state == AgentState.RINGING

            await mom.agent.hang_up()
            await kid.agent.accept()
            assert kid.agent.state == AgentState.ENDED
            assert kid.agent.end_reason == "caller cancelled"
            assert kid.transport.closed

    asyncio.run(runner())


def test_ringing_stops_when_caller_hangs_up(tmp_path):
    stack = build_stack(tmp_path)
    mom, kid = Phone(stack.router, "1"), Phone(stack.router, "2")

    async def runner():
        async with mom.agent:
            await mom.agent.call("2")
            await kid.agent.check_incoming()
            await mom.agent.hang_up()
            await kid.agent.check_incoming()
            assert kid.agent.state == AgentState.ENDED
            assert kid.agent.end_reason == "missed"

    asyncio.run(runner())


def test_failed_media_ends_the_call(tmp_path):
    stack = build_stack(tmp_path)
    mom, kid = Phone(stack.router, "1"), Phone(stack.router, "2")

    async def runner():
        async with mom.agent, kid.agent:
            await mom.agent.call("2")
            await eventually(lambda: kid.agent.state == AgentState.RINGING)
            await kid.agent.accept()
            await eventually(lambda: mom.agent.state == AgentState.CONNECTING)

            kid.transport.emit("failed")
            await eventually(lambda: kid.agent.state == AgentState.FAILED)
            assert kid.agent.end_reason == "media connection failed"
            mom.transport.emit("closed")
            await eventually(lambda: mom.agent.state == AgentState.ENDED)

    asyncio.run(runner())


def test_calling_yourself_fails_cleanly(tmp_path):
    stack = build_stack(tmp_path)
    mom = Phone(stack.router, "1")

    async def runner():
        with pytest.raises(SelfTargetError):
            await mom.agent.call("1")
        assert mom.agent.state == AgentState.FAILED
        assert mom.transport.closed
        # a failed call does not block the next one
        await mom.agent.call("2")
        assert mom.agent.state == AgentState.CALLING
        await mom.agent.close()
        assert mom.agent.state == AgentState.ENDED

    asyncio.run(runner())


def test_actions_need_the_right_state(tmp_path):
    stack = build_stack(tmp_path)
    mom = Phone(stack.router, "1")

    async def runner():
        with pytest.raises(FamilyGamesError):
            await mom.agent.accept()
        with pytest.raises(FamilyGamesError):
            await mom.agent.decline()
        await mom.agent.call("2")
        with pytest.raises(FamilyGamesError):
            await mom.agent.call("3")
        await mom.agent.close()

    asyncio.run(runner())


def test_caller_stops_when_call_disappears(tmp_path):
    stack = build_stack(tmp_path)
    mom = Phone(stack.router, "1")

    async def runner():
        async with mom.agent:
            await mom.agent.call("2")
            # e.g. the server restarted or the callee's client ended it
            stack.directory.end_call("2")
            await eventually(lambda: mom.agent.state == AgentState.ENDED)
            assert mom.agent.end_reason == "call ended"

    asyncio.run(runner())


class BrokenMicrophone(FakeTransport):

    async def create_offer(self):
        raise OSError("no audio device")

    async def create_answer(self, offer):
        raise OSError("no audio device")


def test_transport_errors_close_the_transport(tmp_path):
    stack = build_stack(tmp_path)
    transports = []

    def broken():
        transports.append(BrokenMicrophone())
        return transports[-1]

    mom = CallAgent(LocalChannel(stack.router, "1"), broken, **FAST)
    kid = CallAgent(LocalChannel(stack.router, "2"), broken, **FAST)

    async def runner():
        with pytest.raises(OSError):
            await mom.call("2")
        assert mom.state == AgentState.FAILED
        assert transports[0].closed
        assert stack.signaling.check_incoming_call("2") == {"call": None}

        stack.signaling.initiate_call("3", "2", {"sdp": "offer from grandpa"})
        await kid.check_incoming()
        assert kid.state == AgentState.RINGING
        with pytest.raises(OSError):
            await kid.accept()
        assert kid.state == AgentState.FAILED
        assert kid.incoming_call is None
        assert transports[1].closed

    asyncio.run(runner())
