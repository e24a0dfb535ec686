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
from typing import Awaitable, Callable, Optional


class PollingTask:
    """
    Runs tick() every interval seconds until tick() returns True, the deadline passes, or cancel()
    is called. A tick that raises is logged and simply tried again on the next round.
    """

    def __init__(self, name: str, interval: float, tick: Callable[[], Awaitable[Optional[bool]]],
                 deadline: Optional[float] = None, on_deadline: Optional[Callable[[], Awaitable[None]]] = None):
        self.name = name
        self._interval = interval
        self._tick = tick
        self._deadline = deadline
        self._on_deadline = on_deadline
        self._task: Optional[asyncio.Task] = None
        self._stopped = False

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> "PollingTask":
        self._stopped = False
        self._task = asyncio.create_task(self._run())
        return self

    async def _run(self):
        loop = asyncio.get_running_loop()
        started = loop.time()
        logging.debug(f"{self.name}: polling every {self._interval}s")
        while not self._stopped:
            await asyncio.sleep(self._interval)
            if self._stopped:
                break
            try:
                if await self._tick():
                    break
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logging.debug(f"{self.name}: tick failed ({e!r}), retrying next tick")

            if self._deadline is not None and loop.time() - started >= self._deadline and not self._stopped:
                logging.debug(f"{self.name}: gave up after {self._deadline}s")
                if self._on_deadline is not None:
                    await self._on_deadline()
                break
        logging.debug(f"{self.name}: stopped")

    def cancel(self):
        self._stopped = True
        # a tick may cancel its own poller, let it finish instead of interrupting it
        if self._task is not None and self._task is not asyncio.current_task():
            self._task.cancel()

    async def wait(self):
        if self._task is None:
            return
        try:
            await self._task
        except asyncio.CancelledError:
            pass

    async def __aenter__(self):
        return self.start()

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        self.cancel()
        await self.wait()
