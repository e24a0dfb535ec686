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
import json
import logging
from typing import Optional

import websockets
from websockets.asyncio.server import serve, ServerConnection

from errors import FamilyGamesError
from packet_router import PacketRouter
from server_data import ServerData

HELLO_TIMEOUT = 10


class WebsocketServer:

    def __init__(self, config, data: ServerData, router: PacketRouter):
        self._config = config
        self._data = data
        self._router = router
        self._websocket_server: Optional[serve] = None

    async def handler(self, websocket: ServerConnection):
        user_id = await self._authenticate(websocket)
        if user_id is None:
            return

        self._data.client_connected(user_id, websocket)
        logging.debug(f"{user_id} connected from {websocket.remote_address}, "
                      f"{self._data.connection_count()} connection(s) open")
        shutdown_wait_task = asyncio.create_task(self._data.shutdown_event.wait())
        try:
            while True:
                recv_task = asyncio.create_task(websocket.recv())
                done, pending = await asyncio.wait(
                    [recv_task, shutdown_wait_task],
                    return_when=asyncio.FIRST_COMPLETED
                )

                # shutdown case
                if self._data.shutdown_event.is_set():
                    recv_task.cancel()
                    await websocket.close()
                    return  # OK to return

                message = recv_task.result()
                if isinstance(message, str):
                    await self._parse_message(user_id, websocket, message)
        except websockets.exceptions.ConnectionClosed:
            logging.debug(f"Websocket connection for {user_id} closed")
        finally:
            shutdown_wait_task.cancel()
            self._data.client_disconnected(user_id, websocket)

    async def _authenticate(self, websocket: ServerConnection) -> Optional[str]:
        try:
            message = await asyncio.wait_for(websocket.recv(), timeout=HELLO_TIMEOUT)
            packet = json.loads(message)
            if not isinstance(packet, dict) or "id" not in packet:
                logging.warning(f"Malformed hello from {websocket.remote_address}")
                await websocket.close()
                return None
            try:
                user_id, response = self._router.authenticate(packet)
            except FamilyGamesError as e:
                logging.warning(f"Rejected connection from {websocket.remote_address}: {e}")
                await websocket.send(json.dumps(self._router.error_response(packet, e)))
                await websocket.close()
                return None
            await websocket.send(json.dumps(response))
            return user_id
        except asyncio.TimeoutError:
            logging.debug(f"{websocket.remote_address} never said hello")
            await websocket.close()
        except json.JSONDecodeError as e:
            logging.warning(f"WebSocket sent non-JSON data; details:")
            logging.exception(e)
            await websocket.close()
        except websockets.exceptions.ConnectionClosed:
            logging.debug(f"Websocket connection closed before hello")
        return None

    async def _parse_message(self, user_id: str, websocket: ServerConnection, message: str):
        try:
            packet = json.loads(message)
            logging.debug(f"Received message from {user_id}: {packet}")
            if not isinstance(packet, dict) or ("id" not in packet) or ("event" not in packet):
                logging.warning(f"Malformed packet - no event")
                return
            response = await self._router.handle(user_id, packet)
            await websocket.send(json.dumps(response))

        except json.JSONDecodeError as e:
            logging.warning(f"WebSocket sent non-JSON data; details:")
            logging.exception(e)

    async def __aenter__(self):
        logging.debug(f"Starting websocket server")
        self._websocket_server = serve(self.handler, self._config["server"]["host"] or None,
                                       int(self._config["server"]["websocket_port"]))
        return await self._websocket_server.__aenter__()

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self._websocket_server is not None:
            self._data.shutdown_event.set()
            logging.debug(f"Stopping websocket server, closing {self._data.connection_count()} connection(s)")
            return await self._websocket_server.__aexit__(exc_type, exc_val, exc_tb)
