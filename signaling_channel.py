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
import itertools
import json
import logging
from abc import ABC, abstractmethod
from typing import Optional

import websockets
from websockets.asyncio.client import connect, ClientConnection

import events
from errors import ERRORS_BY_KIND, SignalingError
from packet_router import PacketRouter


def unwrap_response(response: dict) -> dict:
    kind = events.error_kind(response.get("event", ""))
    if kind is not None:
        message = (response.get("data") or {}).get("message", kind)
        raise ERRORS_BY_KIND.get(kind, SignalingError)(message)
    return response.get("data") or {}


class SignalingChannel(ABC):
    """
    Request/response pipe to the server. The server never sends anything unasked.
    """

    def __init__(self):
        self._ids = itertools.count(1)

    def _packet(self, event: str, data: Optional[dict]) -> dict:
        return {"id": next(self._ids), "event": event, "data": data or {}}

    @abstractmethod
    async def request(self, event: str, data: Optional[dict] = None) -> dict:
        pass

    async def close(self):
        pass


class LocalChannel(SignalingChannel):
    """in-process channel straight into a router, for an already authenticated user"""

    def __init__(self, router: PacketRouter, user_id: str):
        super(LocalChannel, self).__init__()
        self._router = router
        self.user_id = user_id

    async def request(self, event: str, data: Optional[dict] = None) -> dict:
        return unwrap_response(await self._router.handle(self.user_id, self._packet(event, data)))


class WebsocketChannel(SignalingChannel):

    def __init__(self, uri: str, user_id: str, token: str, timeout: float = 10.0):
        super(WebsocketChannel, self).__init__()
        self._uri = uri
        self.user_id = user_id
        self._token = token
        self._timeout = timeout
        self._websocket: Optional[ClientConnection] = None
        self._reader: Optional[asyncio.Task] = None
        self._waiting: dict[int, asyncio.Future] = dict()

    async def connect(self):
        self._websocket = await connect(self._uri)
        self._reader = asyncio.create_task(self._read_loop())
        hello = await self.request(events.HELLO, {"userId": self.user_id, "token": self._token})
        logging.info(f"Signed in to {self._uri} as {hello.get('name')}")

    async def _read_loop(self):
        try:
            async for message in self._websocket:
                try:
                    packet = json.loads(message)
                except json.JSONDecodeError as e:
                    logging.warning(f"Server sent non-JSON data; details:")
                    logging.exception(e)
                    continue
                future = self._waiting.pop(packet.get("id"), None)
                if future is None:
                    logging.debug(f"Dropping response nobody waits for: {packet}")
                elif not future.done():
                    future.set_result(packet)
        except websockets.exceptions.ConnectionClosed:
            logging.debug(f"Websocket connection closed")
        finally:
            for future in self._waiting.values():
                if not future.done():
                    future.set_exception(SignalingError("connection closed"))
            self._waiting.clear()

    async def request(self, event: str, data: Optional[dict] = None) -> dict:
        if self._websocket is None or self._reader is None or self._reader.done():
            raise SignalingError("not connected")
        packet = self._packet(event, data)
        future = asyncio.get_running_loop().create_future()
        self._waiting[packet["id"]] = future
        try:
            await self._websocket.send(json.dumps(packet))
            response = await asyncio.wait_for(future, timeout=self._timeout)
        except websockets.exceptions.ConnectionClosed as e:
            raise SignalingError("connection closed") from e
        except asyncio.TimeoutError as e:
            raise SignalingError(f"no response to {event}") from e
        finally:
            self._waiting.pop(packet["id"], None)
        return unwrap_response(response)

    async def close(self):
        if self._websocket is not None:
            await self._websocket.close()
        if self._reader is not None:
            await self._reader
        self._websocket = None

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
