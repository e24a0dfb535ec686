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

import dataclasses
import logging
import time
from typing import Any, Callable, Optional

from call_session import CallSession, CallState, new_call_id
from errors import InvalidStateError, NotFoundError, SelfCallError


@dataclasses.dataclass
class DirectoryTimings:
    presence_timeout: float = 15.0
    decline_grace: float = 5.0
    pending_ttl: float = 45.0
    notify_superseded: bool = False

    @staticmethod
    def from_config(config) -> "DirectoryTimings":
        return DirectoryTimings(
            presence_timeout=float(config["presence"]["timeout"]),
            decline_grace=float(config["calls"]["decline_grace"]),
            pending_ttl=float(config["calls"]["pending_ttl"]),
            notify_superseded=bool(config["calls"]["notify_superseded"]),
        )


class SessionDirectory:
    """
    Who is reachable, and which call (if any) each user is part of.

    Live sessions (pending or accepted) sit in one slot per callee. A declined or superseded
    session moves out of the slot into the caller's outcome slot, where it waits for the caller's
    next status poll or for the grace period to run out, whichever happens first.

    Nothing in here awaits, so on a single event loop every operation is atomic.
    Reads treat expired records as absent; sweep() only reclaims the memory.
    """

    def __init__(self, timings: Optional[DirectoryTimings] = None, clock: Callable[[], float] = time.monotonic):
        self.timings = timings if timings is not None else DirectoryTimings()
        self._clock = clock
        self._presence: dict[str, float] = dict()
        self._by_callee: dict[str, CallSession] = dict()
        self._outcomes: dict[str, CallSession] = dict()  # keyed by caller

    # presence

    def register_heartbeat(self, user_id: str) -> None:
        self._presence[user_id] = self._clock()

    def is_online(self, user_id: str) -> bool:
        last_seen = self._presence.get(user_id)
        return last_seen is not None and self._clock() - last_seen < self.timings.presence_timeout

    def list_online(self) -> set[str]:
        now = self._clock()
        return {
            user_id for user_id, last_seen in self._presence.items()
            if now - last_seen < self.timings.presence_timeout
        }

    # calls

    def _pending_expired(self, session: CallSession, now: float) -> bool:
        return session.state == CallState.PENDING and now - session.created_at >= self.timings.pending_ttl

    def _abandoned(self, session: CallSession, now: float) -> bool:
        """accepted, but neither party has sent a heartbeat for a whole presence timeout"""
        if session.state != CallState.ACCEPTED:
            return False
        last_seen = [session.accepted_at] + [
            self._presence[user_id] for user_id in (session.caller_id, session.callee_id) if user_id in self._presence
        ]
        return now - max(last_seen) >= self.timings.presence_timeout

    def _expired(self, session: CallSession, now: float) -> bool:
        return self._pending_expired(session, now) or self._abandoned(session, now)

    def _outcome_expired(self, session: CallSession, now: float) -> bool:
        return now - session.closed_at >= self.timings.decline_grace

    def _live_sessions(self):
        now = self._clock()
        return [session for session in self._by_callee.values() if not self._expired(session, now)]

    def create_pending_call(self, caller_id: str, callee_id: str, offer: Any,
                            caller_name: Optional[str] = None) -> CallSession:
        if caller_id == callee_id:
            raise SelfCallError(f"user {caller_id} tried to call themselves")

        for session in self._live_sessions():
            if session.state == CallState.ACCEPTED and (session.involves(caller_id) or session.involves(callee_id)):
                raise InvalidStateError(f"call {session.id} between {session.caller_id} and "
                                        f"{session.callee_id} is still running")

        now = self._clock()

        # a caller keeps at most one outgoing call
        for slot, session in list(self._by_callee.items()):
            if session.caller_id == caller_id:
                logging.debug(f"Dropping earlier outgoing call {session.id} from {caller_id} to {slot}")
                del self._by_callee[slot]
        self._outcomes.pop(caller_id, None)

        replaced = self._by_callee.pop(callee_id, None)
        if replaced is not None and not self._expired(replaced, now):
            logging.info(f"Call {replaced.id} from {replaced.caller_id} to {callee_id} "
                         f"superseded by a call from {caller_id}")
            if self.timings.notify_superseded:
                replaced.supersede(now)
                self._outcomes[replaced.caller_id] = replaced

        session = CallSession(
            id=new_call_id(),
            caller_id=caller_id,
            callee_id=callee_id,
            caller_name=caller_name if caller_name is not None else caller_id,
            offer=offer,
            created_at=now,
        )
        self._by_callee[callee_id] = session
        return session

    def find_pending_call_for(self, callee_id: str) -> Optional[CallSession]:
        session = self._by_callee.get(callee_id)
        if session is None or session.state != CallState.PENDING or self._pending_expired(session, self._clock()):
            return None
        return session

    def find_outgoing_call_status(self, caller_id: str) -> dict:
        for session in self._live_sessions():
            if session.caller_id == caller_id:
                return session.status_view()

        outcome = self._outcomes.pop(caller_id, None)
        if outcome is not None and not self._outcome_expired(outcome, self._clock()):
            return outcome.status_view()

        return {"state": "none"}

    def _addressed_session(self, session_id: str, callee_id: str) -> CallSession:
        session = self._by_callee.get(callee_id)
        if session is None or session.id != session_id or self._expired(session, self._clock()):
            raise NotFoundError(f"no call {session_id} addressed to {callee_id}")
        return session

    def accept_call(self, session_id: str, callee_id: str, answer: Any) -> CallSession:
        session = self._addressed_session(session_id, callee_id)
        session.accept(answer, self._clock())
        return session

    def decline_call(self, session_id: str, callee_id: str) -> CallSession:
        session = self._addressed_session(session_id, callee_id)
        session.decline(self._clock())
        del self._by_callee[callee_id]
        self._outcomes[session.caller_id] = session
        return session

    def end_call(self, user_id: str) -> list[CallSession]:
        now = self._clock()
        ended = []
        for slot, session in list(self._by_callee.items()):
            if session.involves(user_id):
                del self._by_callee[slot]
                session.end(now)
                ended.append(session)
        self._outcomes.pop(user_id, None)
        return ended

    # housekeeping

    def sweep_presence(self) -> int:
        now = self._clock()
        expired = [
            user_id for user_id, last_seen in self._presence.items()
            if now - last_seen >= self.timings.presence_timeout
        ]
        for user_id in expired:
            del self._presence[user_id]
        return len(expired)

    def sweep_calls(self) -> int:
        now = self._clock()
        removed = 0
        for slot, session in list(self._by_callee.items()):
            if self._pending_expired(session, now):
                logging.info(f"Call {session.id} from {session.caller_id} to {slot} was never answered, dropping")
            elif self._abandoned(session, now):
                logging.info(f"Call {session.id} between {session.caller_id} and {slot} went silent, dropping")
            else:
                continue
            del self._by_callee[slot]
            removed += 1
        for caller_id, session in list(self._outcomes.items()):
            if self._outcome_expired(session, now):
                del self._outcomes[caller_id]
                removed += 1
        return removed

    def __len__(self):
        return len(self._by_callee) + len(self._outcomes)
