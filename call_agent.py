"""
FamilyGames
Copyright (C) 2024 thiccaxe

This program is free software: you can redistribute it and/or modify
it under the terms of the GNU Affero General Public License as published
by the Free Software Foundation, either version 3 of the License, or
(at your option) any later version.

This program is distributed in the hope that it will be useful,
but WITHOUT ANY WARRANTY; without even the implied warranty of
MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
GNU Affero General Public License for more details.

You should have received a copy of the GNU Affero General Public License
along with this program.  If not, see <https://www.gnu.org/licenses/>.
"""

"""
Client half of call signaling.

    caller: IDLE -> CALLING -> CONNECTING -> CONNECTED -> ENDED
    callee: IDLE -> RINGING -> CONNECTING -> CONNECTED -> ENDED

CALLING and RINGING can also go straight to ENDED (declined, no answer, superseded, cancelled),
and CONNECTING/CONNECTED go to FAILED when the media transport gives up.
"""

import asyncio
import enum
import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional

import events
from errors import FamilyGamesError, NotFoundError
from polling import PollingTask
from signaling_channel import SignalingChannel


class MediaTransport(ABC):
    """
    The peer to peer audio stack. Produces and consumes the offer/answer blobs, and reports its
    connection state ("connecting", "connected", "failed", "closed") through on_state.
    """
    on_state: Optional[Callable[[str], None]] = None

    def emit(self, state: str):
        if self.on_state is not None:
            self.on_state(state)

    @abstractmethod
    async def create_offer(self) -> Any:
        pass

    @abstractmethod
    async def create_answer(self, offer: Any) -> Any:
        pass

    @abstractmethod
    async def accept_answer(self, answer: Any) -> None:
        pass

    @abstractmethod
    async def close(self) -> None:
        pass


class AgentState(enum.Enum):
    IDLE = "idle"
    CALLING = "calling"
    RINGING = "ringing"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    FAILED = "failed"
    ENDED = "ended"


AVAILABLE_STATES = (AgentState.IDLE, AgentState.ENDED, AgentState.FAILED)
IN_CALL_STATES = (AgentState.CONNECTING, AgentState.CONNECTED)


class CallAgent:

    def __init__(self, channel: SignalingChannel, transport_factory: Callable[[], MediaTransport],
                 incoming_interval: float = 2.0, outgoing_interval: float = 1.0, answer_window: float = 30.0,
                 heartbeat_interval: float = 5.0):
        self._channel = channel
        self._transport_factory = transport_factory
        self._incoming_interval = incoming_interval
        self._outgoing_interval = outgoing_interval
        self._answer_window = answer_window
        self._heartbeat_interval = heartbeat_interval

        self.state = AgentState.IDLE
        self.end_reason: Optional[str] = None
        self.peer_id: Optional[str] = None
        self.incoming_call: Optional[dict] = None
        self.on_state_changed: Optional[Callable[[AgentState, Optional[str]], None]] = None

        self._transport: Optional[MediaTransport] = None
        self._heartbeat_poll: Optional[PollingTask] = None
        self._incoming_poll: Optional[PollingTask] = None
        self._outgoing_poll: Optional[PollingTask] = None
        self._background: set[asyncio.Task] = set()

    def _set_state(self, state: AgentState, reason: Optional[str] = None):
        if state == self.state and reason == self.end_reason:
            return
        logging.info(f"Call state {self.state.value} -> {state.value}" + (f" ({reason})" if reason else ""))
        self.state = state
        self.end_reason = reason
        if self.on_state_changed is not None:
            self.on_state_changed(state, reason)

    # lifecycle

    def start(self):
        self._heartbeat_poll = PollingTask("heartbeat", self._heartbeat_interval, self._send_heartbeat).start()
        self._incoming_poll = PollingTask("incoming calls", self._incoming_interval, self.check_incoming).start()

    async def close(self):
        if self.state in IN_CALL_STATES or self.state == AgentState.CALLING:
            await self.hang_up()
        for poll in (self._heartbeat_poll, self._incoming_poll, self._outgoing_poll):
            if poll is not None:
                poll.cancel()
                await poll.wait()
        for task in list(self._background):
            await task

    async def __aenter__(self):
        self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    # polling

    async def _send_heartbeat(self):
        await self._channel.request(events.HEARTBEAT)

    async def check_incoming(self):
        if self.state not in AVAILABLE_STATES and self.state != AgentState.RINGING:
            return
        response = await self._channel.request(events.CHECK_INCOMING_CALL)
        call = response.get("call")

        if self.state == AgentState.RINGING:
            if call is None or call["callId"] != self.incoming_call["callId"]:
                # caller hung up or the call timed out before we picked up
                self.incoming_call = None
                self.peer_id = None
                self._set_state(AgentState.ENDED, "missed")
            return

        if call is not None and self.state in AVAILABLE_STATES:
            self.incoming_call = call
            self.peer_id = call["callerId"]
            self._set_state(AgentState.RINGING)

    async def check_outgoing(self) -> bool:
        if self.state != AgentState.CALLING:
            return True
        status = await self._channel.request(events.CHECK_OUTGOING_STATUS)
        if status["state"] == "accepted" and status.get("answer") is not None:
            self._set_state(AgentState.CONNECTING)
            await self._transport.accept_answer(status["answer"])
            return True
        if status["state"] in ("declined", "superseded"):
            await self._finish(status["state"])
            return True
        if status["state"] == "none":
            # ended on the other side, or dropped by the server
            await self._finish("call ended")
            return True
        return False

    async def _no_answer(self):
        if self.state == AgentState.CALLING:
            await self._finish("no answer")

    # actions

    async def call(self, callee_id: str) -> str:
        if self.state not in AVAILABLE_STATES:
            raise FamilyGamesError(f"cannot place a call while {self.state.value}")
        self._transport = self._new_transport()
        self.peer_id = callee_id
        try:
            offer = await self._transport.create_offer()
            response = await self._channel.request(events.INITIATE_CALL, {"calleeId": callee_id, "offer": offer})
        except Exception as e:
            await self._close_transport()
            self._set_state(AgentState.FAILED, str(e))
            raise

        self._set_state(AgentState.CALLING)
        self._outgoing_poll = PollingTask(
            "outgoing call", self._outgoing_interval, self.check_outgoing,
            deadline=self._answer_window, on_deadline=self._no_answer,
        ).start()
        return response["callId"]

    async def accept(self):
        if self.state != AgentState.RINGING:
            raise FamilyGamesError(f"no incoming call to accept while {self.state.value}")
        call = self.incoming_call
        self._transport = self._new_transport()
        try:
            answer = await self._transport.create_answer(call["offer"])
            await self._channel.request(events.ACCEPT_CALL, {"callId": call["callId"], "answer": answer})
        except NotFoundError:
            await self._close_transport()
            self._set_state(AgentState.ENDED, "caller cancelled")
            return
        except Exception as e:
            await self._close_transport()
            self.incoming_call = None
            self._set_state(AgentState.FAILED, str(e))
            raise
        self.incoming_call = None
        if self.state == AgentState.RINGING:
            self._set_state(AgentState.CONNECTING)

    async def decline(self):
        if self.state != AgentState.RINGING:
            raise FamilyGamesError(f"no incoming call to decline while {self.state.value}")
        call = self.incoming_call
        self.incoming_call = None
        try:
            await self._channel.request(events.DECLINE_CALL, {"callId": call["callId"]})
        except NotFoundError:
            logging.debug(f"Call {call['callId']} was gone before we declined it")
        self._set_state(AgentState.ENDED, "declined")

    async def hang_up(self):
        await self._finish("hung up")

    async def _finish(self, reason: str, final_state: AgentState = AgentState.ENDED):
        if self.state in AVAILABLE_STATES:
            return
        if self._outgoing_poll is not None:
            self._outgoing_poll.cancel()
        await self._close_transport()
        try:
            await self._channel.request(events.END_CALL)
        except FamilyGamesError as e:
            # the server forgets abandoned calls on its own
            logging.warning(f"Could not tell the server the call ended: {e}")
        self.incoming_call = None
        self._set_state(final_state, reason)

    # media transport

    def _new_transport(self) -> MediaTransport:
        transport = self._transport_factory()
        transport.on_state = self._on_transport_state
        return transport

    async def _close_transport(self):
        transport, self._transport = self._transport, None
        if transport is not None:
            transport.on_state = None
            await transport.close()

    def _on_transport_state(self, transport_state: str):
        logging.debug(f"Media transport is {transport_state}")
        if transport_state == "connected" and self.state == AgentState.CONNECTING:
            self._set_state(AgentState.CONNECTED)
        elif transport_state == "failed" and self.state in IN_CALL_STATES:
            self._spawn(self._finish("media connection failed", AgentState.FAILED))
        elif transport_state == "closed" and self.state in IN_CALL_STATES:
            self._spawn(self._finish("remote ended"))

    def _spawn(self, coroutine):
        task = asyncio.create_task(coroutine)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
