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

import asyncio
import logging
from typing import Any

from auth import UserRegistry
from presence import PresenceTracker, run_periodically
from session_directory import SessionDirectory


class SignalingManager:
    """
    Server half of call signaling. The server only stores and hands out the two opaque blobs
    (offer and answer); clients find out about changes by polling.
    """

    def __init__(self, directory: SessionDirectory, presence: PresenceTracker, users: UserRegistry,
                 sweep_interval: float = 10.0):
        self._directory = directory
        self._presence = presence
        self._users = users
        self._sweep_interval = sweep_interval

    def heartbeat(self, user_id: str) -> dict:
        self._presence.heartbeat(user_id)
        return {}

    def list_online(self, user_id: str) -> dict:
        return {"userIds": sorted(self._presence.online())}

    def initiate_call(self, user_id: str, callee_id: str, offer: Any) -> dict:
        session = self._directory.create_pending_call(
            user_id, callee_id, offer, caller_name=self._users.name_of(user_id)
        )
        logging.info(f"Call {session.id} from {user_id} to {callee_id}")
        return {"callId": session.id}

    def check_incoming_call(self, user_id: str) -> dict:
        session = self._directory.find_pending_call_for(user_id)
        return {"call": session.incoming_view() if session is not None else None}

    def check_outgoing_status(self, user_id: str) -> dict:
        return self._directory.find_outgoing_call_status(user_id)

    def accept_call(self, user_id: str, call_id: str, answer: Any) -> dict:
        session = self._directory.accept_call(call_id, user_id, answer)
        logging.info(f"Call {session.id} accepted by {user_id}")
        return {}

    def decline_call(self, user_id: str, call_id: str) -> dict:
        session = self._directory.decline_call(call_id, user_id)
        logging.info(f"Call {session.id} declined by {user_id}")
        return {}

    def end_call(self, user_id: str) -> dict:
        ended = self._directory.end_call(user_id)
        for session in ended:
            logging.info(f"Call {session.id} ended by {user_id}")
        return {}

    def sweep(self) -> int:
        removed = self._directory.sweep_calls()
        if removed:
            logging.debug(f"Call sweep removed {removed} stale session(s)")
        return removed

    async def run_sweeper(self, shutdown_event: asyncio.Event):
        await run_periodically(self._sweep_interval, shutdown_event, self.sweep, "call sweep")
