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


class FamilyGamesError(Exception):
    # suffix of the error event sent back to the client
    kind = "internal"


class NotFoundError(FamilyGamesError):
    kind = "not_found"


class InvalidStateError(FamilyGamesError):
    kind = "invalid_state"


class SelfTargetError(FamilyGamesError):
    kind = "self_target"


class SelfCallError(SelfTargetError): pass


class AuthenticationError(FamilyGamesError):
    kind = "unauthenticated"


class MalformedRequestError(FamilyGamesError):
    kind = "malformed_request"


class SignalingError(FamilyGamesError):
    """
    client side: the server answered with an error event we have no better class for,
    or the connection went away before the response arrived
    """


ERRORS_BY_KIND = {
    cls.kind: cls for cls in (
        NotFoundError,
        InvalidStateError,
        SelfTargetError,
        AuthenticationError,
        MalformedRequestError,
    )
}
