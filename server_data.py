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

from websockets.asyncio.server import ServerConnection

from session_directory import SessionDirectory


class ServerData:
    """
    Everything the server holds in memory for the lifetime of one process. Nothing in here is saved;
    a restart drops all calls and presence.
    """

    def __init__(self, directory: SessionDirectory):
        self.directory = directory
        self.connected_clients: dict[str, set[ServerConnection]] = dict()

        self.shutdown_event = asyncio.Event()

    def client_connected(self, user_id: str, websocket: ServerConnection):
        self.connected_clients.setdefault(user_id, set()).add(websocket)

    def client_disconnected(self, user_id: str, websocket: ServerConnection):
        connections = self.connected_clients.get(user_id)
        if connections is None:
            return
        connections.discard(websocket)
        if not connections:
            del self.connected_clients[user_id]

    def connection_count(self) -> int:
        return sum(len(connections) for connections in self.connected_clients.values())
