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

import logging
from socket import inet_aton
from typing import Optional

import zeroconf
from zeroconf import IPVersion
from zeroconf.asyncio import AsyncZeroconf, AsyncServiceInfo

SERVICE_TYPE = "_familygames._tcp.local."
PROTOCOL_VERSION = "1"


class ZeroconfException(Exception): pass


def build_service_info(config) -> AsyncServiceInfo:
    name = config['server']['name']
    return AsyncServiceInfo(
        SERVICE_TYPE,
        f"{name}.{SERVICE_TYPE}",
        addresses=[inet_aton(config['mdns']['address'])],
        port=int(config['server']['websocket_port']),
        properties={
            "id": config['server']['id'],
            "v": PROTOCOL_VERSION,
            "path": "/",
        },
        server=f"{name}.local."
    )


class FamilyGamesZeroconf:
    """
    Lets devices on the home network find the server without typing in an address.
    Failing to advertise is logged and otherwise ignored.
    """
    _service: Optional[AsyncServiceInfo] = None

    def __init__(self, config):
        self._config = config
        self._zeroconf: Optional[AsyncZeroconf] = None

    @property
    def enabled(self) -> bool:
        return bool(self._config['mdns']['enabled'])

    async def start(self):
        if not self.enabled:
            logging.debug("MDNS disabled in configuration")
            return
        try:
            self._service = build_service_info(self._config)
            self._zeroconf = AsyncZeroconf(ip_version=IPVersion.V4Only)
            await self._zeroconf.async_register_service(self._service)
            logging.debug(f"Registered services.")
        except (zeroconf.Error, OSError) as e:
            logging.exception(e)
            if self._zeroconf is not None:
                await self._zeroconf.async_close()
                self._zeroconf = None
            raise ZeroconfException() from e

    async def stop(self):
        if self._zeroconf is None:
            return
        await self._zeroconf.async_unregister_all_services()
        await self._zeroconf.async_close()
        self._zeroconf = None
        logging.debug(f"Unregistered services.")

    async def __aenter__(self):
        try:
            await self.start()
        except ZeroconfException:
            logging.warning("Could not advertise over MDNS, clients need the address")

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.stop()
