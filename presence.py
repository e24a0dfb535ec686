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

from session_directory import SessionDirectory


async def run_periodically(interval: float, shutdown_event: asyncio.Event, job, name: str):
    """
    call job() every interval seconds until shutdown_event is set
    """
    logging.debug(f"Starting {name} every {interval}s")
    while not shutdown_event.is_set():
        try:
            await asyncio.wait_for(shutdown_event.wait(), timeout=interval)
        except asyncio.TimeoutError:
            pass
        if shutdown_event.is_set():
            break
        try:
            job()
        except Exception as e:
            logging.exception(e)
            logging.warning(f"{name} failed, trying again in {interval}s")
    logging.debug(f"Stopped {name}")


class PresenceTracker:
    """
    Online status is derived from heartbeats only. There is no "going offline" message: a user
    who stops sending heartbeats drops out of the online set after one timeout.
    """

    def __init__(self, directory: SessionDirectory, sweep_interval: float = 30.0):
        self._directory = directory
        self._sweep_interval = sweep_interval

    def heartbeat(self, user_id: str) -> None:
        self._directory.register_heartbeat(user_id)

    def online(self) -> set[str]:
        return self._directory.list_online()

    def sweep(self) -> int:
        removed = self._directory.sweep_presence()
        if removed:
            logging.debug(f"Presence sweep removed {removed} stale record(s)")
        return removed

    async def run_sweeper(self, shutdown_event: asyncio.Event):
        await run_periodically(self._sweep_interval, shutdown_event, self.sweep, "presence sweep")
