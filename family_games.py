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
import argparse
import asyncio
import logging
import os

from auth import UserRegistry, hash_token
from config import Config, ConfigurationLoadError
from game_coordinator import GameCoordinator
from logger import console, setup_logging
from match_store import MatchStore, StorageError
from mdns_registration import FamilyGamesZeroconf
from packet_router import PacketRouter
from presence import PresenceTracker
from server_data import ServerData
from session_directory import DirectoryTimings, SessionDirectory
from signaling_manager import SignalingManager
from websocket_server import WebsocketServer


class FamilyGames:

    def __init__(self, config, secrets):
        self._config = config
        self._secrets = secrets
        self._data = ServerData(SessionDirectory(DirectoryTimings.from_config(self._config)))
        self._users = UserRegistry(self._secrets)
        self._store = MatchStore(self._config["games"]["storage"])
        self._presence = PresenceTracker(self._data.directory, float(self._config["presence"]["sweep_interval"]))
        self._signaling = SignalingManager(self._data.directory, self._presence, self._users,
                                           float(self._config["calls"]["sweep_interval"]))
        self._games = GameCoordinator(self._store, self._users, self._data.directory,
                                      int(self._config["games"]["win_reward"]))
        self._router = PacketRouter(self._signaling, self._games, self._users)
        self._mdns = FamilyGamesZeroconf(self._config)
        self._websocket_server = WebsocketServer(self._config, self._data, self._router)

    async def begin(self):
        logging.info("Starting Family Games Server")
        await self._store.load()
        sweepers = [
            asyncio.create_task(self._presence.run_sweeper(self._data.shutdown_event)),
            asyncio.create_task(self._signaling.run_sweeper(self._data.shutdown_event)),
        ]
        logging.info("Starting MDNS")
        async with self._mdns:
            logging.info("Starting Family Games Websocket Server")
            async with self._websocket_server:
                try:
                    logging.info("Ctrl^C to quit")
                    await self._data.shutdown_event.wait()
                except asyncio.CancelledError:
                    logging.info("Cancelled ...")
                finally:
                    logging.info("Stopping Server ...")
                    self._data.shutdown_event.set()
        await asyncio.gather(*sweepers)


async def main():
    logging.info("Starting family games ...")

    config = Config(
        os.environ.get("FAMILY_GAMES_CONFIG", "./config.toml"),
        os.environ.get("FAMILY_GAMES_SECRETS", "./secrets.toml"),
    )

    try:
        await config.initialize()

        family_games = FamilyGames(config.config, config.secrets)
        await family_games.begin()
    except ConfigurationLoadError:
        logging.error("Could not load configuration. Exiting")
        return
    except StorageError:
        logging.error("Could not load game storage. Exiting")
        return
    finally:
        await config.close()


def cli():
    parser = argparse.ArgumentParser(prog="family-games")
    subcommands = parser.add_subparsers(dest="command")
    hash_parser = subcommands.add_parser("hash-token", help="print the token_hash to put in secrets.toml")
    hash_parser.add_argument("salt", help="server.token_salt from secrets.toml")
    hash_parser.add_argument("token")
    args = parser.parse_args()

    if args.command == "hash-token":
        console.print(hash_token(args.salt, args.token))
        return

    setup_logging()
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logging.info("Cancelled ...")


if __name__ == "__main__":
    cli()
