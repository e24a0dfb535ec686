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

import binascii
import logging
import uuid
from typing import Optional

from voluptuous import Schema, Required, All, Range, Length, Coerce
import voluptuous.error
import aiofiles
import tomlkit
import tomlkit.exceptions
from pathlib import Path


class ConfigurationLoadError(Exception): pass


Seconds = All(Coerce(float), Range(min=0, min_included=False))


class Config:
    config: Optional[tomlkit.TOMLDocument] = None
    secrets: Optional[tomlkit.TOMLDocument] = None
    secrets_opened: bool = False
    config_opened: bool = False

    def __init__(self, config_location: Path, secrets_location: Path):
        self.config_location = config_location
        self.secrets_location = secrets_location

        self.config_schema = Schema({
            Required('server'): {
                Required('name'): All(str, Length(min=1)),
                Required('id'): All(lambda _uuid: uuid.UUID(_uuid, version=4)),
                Required('host'): str,
                Required('websocket_port'): All(int, Range(min=0, max=65535)),
            },
            Required('presence'): {
                Required('timeout'): Seconds,
                Required('sweep_interval'): Seconds,
            },
            Required('calls'): {
                Required('decline_grace'): Seconds,
                Required('pending_ttl'): Seconds,
                Required('sweep_interval'): Seconds,
                Required('notify_superseded'): bool,
            },
            Required('games'): {
                Required('win_reward'): All(int, Range(min=0)),
                Required('storage'): All(str, Length(min=1)),
            },
            Required('mdns'): {
                Required('enabled'): bool,
                Required('address'): All(str, Length(min=7)),
            },
        })
        self.secrets_schema = Schema({
            Required('server'): {
                Required('token_salt'): All(str, Length(64), self.key_validator),
            },
            Required('users'): {
                str: {
                    Required('name'): All(str, Length(min=1)),
                    Required('token_hash'): All(str, Length(64), self.key_validator),
                }
            },
        })

    @staticmethod
    def key_validator(key: str) -> str:
        try:
            _key = binascii.unhexlify(key)
        except binascii.Error as e:
            logging.exception(e)
            raise voluptuous.error.Invalid(message="Invalid key.") from e
        return key

    @staticmethod
    async def _load(location: Path, schema: Schema, what: str, example: str) -> tomlkit.TOMLDocument:
        try:
            async with aiofiles.open(location, 'r') as toml_file:
                document = tomlkit.parse(await toml_file.read())
            logging.debug(f"Loaded {what} without toml format error")
            logging.debug("Validating against Schema.")
            schema(document.unwrap())
            logging.debug("Validated against Schema.")
            return document
        except FileNotFoundError as e:
            logging.exception(e)
            logging.warning(f"Could not find {location}. Copy from .example/{example} to {location}")
            raise ConfigurationLoadError() from e
        except IOError as e:
            logging.exception(e)
            logging.warning(f"Could not open file {location}")
            raise ConfigurationLoadError() from e
        except tomlkit.exceptions.ParseError as e:
            logging.exception(e)
            logging.warning(f"{what} in {location} is invalid")
            raise ConfigurationLoadError() from e
        except voluptuous.error.MultipleInvalid as e:
            logging.exception(e)
            logging.warning(f"{what} in {location} does not match expected format")
            logging.warning(f"Issue configuration item: {e.path}")
            raise ConfigurationLoadError() from e

    async def initialize(self):
        self.config = await self._load(self.config_location, self.config_schema, "Configuration", "config.toml")
        self.config_opened = True
        self.secrets = await self._load(self.secrets_location, self.secrets_schema, "Secrets", "secrets.toml")
        self.secrets_opened = True
        logging.info(f"Configuration loaded.")

    async def close(self):
        for opened, location, document in (
                (self.config_opened, self.config_location, self.config),
                (self.secrets_opened, self.secrets_location, self.secrets),
        ):
            if not opened:
                continue
            async with aiofiles.open(location, 'w') as toml_file:
                await toml_file.write(tomlkit.dumps(document))
            logging.debug(f"{location} saved to disk.")
        logging.info(f"Configuration Saved.")
