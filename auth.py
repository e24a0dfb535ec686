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
from typing import Optional

import cryptography.exceptions
from cryptography.hazmat.primitives import hashes, hmac

from errors import AuthenticationError


def _token_hmac(salt: bytes, token: str) -> hmac.HMAC:
    h = hmac.HMAC(salt, hashes.SHA256())
    h.update(token.encode())
    return h


def hash_token(salt_hex: str, token: str) -> str:
    """hex digest stored as users.<id>.token_hash in secrets.toml"""
    return binascii.hexlify(_token_hmac(binascii.unhexlify(salt_hex), token).finalize()).decode()


class UserRegistry:
    """
    Read-only view of the accounts listed in secrets.toml. Accounts themselves are managed elsewhere.
    """

    def __init__(self, secrets):
        self._secrets = secrets

    @property
    def _users(self) -> dict:
        return self._secrets["users"]

    def exists(self, user_id: str) -> bool:
        return user_id in self._users

    def name_of(self, user_id: str) -> Optional[str]:
        user = self._users.get(user_id)
        return str(user["name"]) if user is not None else None

    def all_users(self) -> list[dict]:
        return sorted(
            ({"id": str(user_id), "name": str(user["name"])} for user_id, user in self._users.items()),
            key=lambda user: user["name"],
        )

    def authenticate(self, user_id: str, token: str) -> str:
        user = self._users.get(user_id)
        if user is None:
            raise AuthenticationError(f"unknown user {user_id}")
        h = _token_hmac(binascii.unhexlify(self._secrets["server"]["token_salt"]), token)
        try:
            h.verify(binascii.unhexlify(user["token_hash"]))
        except cryptography.exceptions.InvalidSignature as e:
            logging.warning(f"Bad token for user {user_id}")
            raise AuthenticationError(f"bad token for user {user_id}") from e
        return user_id
