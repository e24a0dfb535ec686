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
Lifecycle of one call attempt, as the server sees it:

    (none) --initiate--> PENDING --accept--> ACCEPTED
                         PENDING --decline--> DECLINED   (removed after the grace period)
                         PENDING --newer initiate to same callee--> SUPERSEDED
                         PENDING/ACCEPTED --end--> ENDED  (removed)

"Connected" is never known to the server. Clients infer it from their media transport.
"""

import dataclasses
import enum
import uuid
from typing import Any, Optional

from errors import InvalidStateError


class CallState(enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    ENDED = "ended"
    SUPERSEDED = "superseded"


LIVE_STATES = (CallState.PENDING, CallState.ACCEPTED)


def new_call_id() -> str:
    return uuid.uuid4().hex


@dataclasses.dataclass
class CallSession:
    id: str
    caller_id: str
    callee_id: str
    caller_name: str
    offer: Any  # opaque, never inspected
    created_at: float
    state: CallState = CallState.PENDING
    answer: Any = None
    accepted_at: Optional[float] = None
    closed_at: Optional[float] = None

    @property
    def live(self) -> bool:
        return self.state in LIVE_STATES

    def involves(self, user_id: str) -> bool:
        return user_id in (self.caller_id, self.callee_id)

    def _require(self, *states: CallState):
        if self.state not in states:
            raise InvalidStateError(f"call {self.id} is {self.state.value}")

    def accept(self, answer: Any, now: float):
        self._require(CallState.PENDING)
        self.answer = answer
        self.accepted_at = now
        self.state = CallState.ACCEPTED

    def decline(self, now: float):
        self._require(CallState.PENDING)
        self.state = CallState.DECLINED
        self.closed_at = now

    def supersede(self, now: float):
        self._require(CallState.PENDING)
        self.state = CallState.SUPERSEDED
        self.closed_at = now

    def end(self, now: float):
        self._require(*LIVE_STATES)
        self.state = CallState.ENDED
        self.closed_at = now

    def incoming_view(self) -> dict:
        return {
            "callId": self.id,
            "callerId": self.caller_id,
            "callerName": self.caller_name,
            "offer": self.offer,
        }

    def status_view(self) -> dict:
        status = {"state": self.state.value}
        if self.state == CallState.ACCEPTED:
            status["answer"] = self.answer
        return status
