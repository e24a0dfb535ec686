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

import inspect
import logging

import voluptuous.error
from voluptuous import Schema, Required, In, REMOVE_EXTRA

import events
from auth import UserRegistry
from errors import FamilyGamesError, MalformedRequestError
from game_coordinator import GameCoordinator, RULES
from signaling_manager import SignalingManager

Game = In(list(RULES))
Id = str


def move_index(value):
    # json true/false would otherwise pass as 1/0
    if isinstance(value, bool) or not isinstance(value, int):
        raise voluptuous.error.Invalid("expected a cell or pit number")
    return value


def _schema(fields: dict) -> Schema:
    return Schema(fields, extra=REMOVE_EXTRA)


class PacketRouter:
    """
    Turns one authenticated request packet into one response packet. Knows nothing about the transport.
    """

    def __init__(self, signaling: SignalingManager, games: GameCoordinator, users: UserRegistry):
        self._users = users
        s, g = signaling, games
        self._handlers = {
            events.HEARTBEAT: (_schema({}), lambda user, d: s.heartbeat(user)),
            events.LIST_ONLINE: (_schema({}), lambda user, d: s.list_online(user)),
            events.INITIATE_CALL: (
                _schema({Required("calleeId"): Id, Required("offer"): object}),
                lambda user, d: s.initiate_call(user, d["calleeId"], d["offer"]),
            ),
            events.CHECK_INCOMING_CALL: (_schema({}), lambda user, d: s.check_incoming_call(user)),
            events.CHECK_OUTGOING_STATUS: (_schema({}), lambda user, d: s.check_outgoing_status(user)),
            events.ACCEPT_CALL: (
                _schema({Required("callId"): Id, Required("answer"): object}),
                lambda user, d: s.accept_call(user, d["callId"], d["answer"]),
            ),
            events.DECLINE_CALL: (
                _schema({Required("callId"): Id}),
                lambda user, d: s.decline_call(user, d["callId"]),
            ),
            events.END_CALL: (_schema({}), lambda user, d: s.end_call(user)),

            events.LIST_PLAYERS: (_schema({}), lambda user, d: g.list_players(user)),
            events.SEND_INVITE: (
                _schema({Required("game"): Game, Required("opponentId"): Id}),
                lambda user, d: g.send_invite(user, d["game"], d["opponentId"]),
            ),
            events.CHECK_INVITE: (
                _schema({Required("game"): Game}),
                lambda user, d: g.check_invite(user, d["game"]),
            ),
            events.INVITE_STATUS: (
                _schema({Required("inviteId"): Id}),
                lambda user, d: g.invite_status(user, d["inviteId"]),
            ),
            events.RESPOND_INVITE: (
                _schema({Required("inviteId"): Id, Required("accepted"): bool}),
                lambda user, d: g.respond_invite(user, d["inviteId"], d["accepted"]),
            ),
            events.POLL_MATCH: (
                _schema({Required("matchId"): Id}),
                lambda user, d: g.poll_match(user, d["matchId"]),
            ),
            events.SUBMIT_MOVE: (
                _schema({Required("matchId"): Id, Required("move"): move_index}),
                lambda user, d: g.submit_move(user, d["matchId"], d["move"]),
            ),
            events.PLAY_COMPUTER: (
                _schema({Required("game"): Game}),
                lambda user, d: g.start_computer_match(user, d["game"]),
            ),
            events.FINISH_MATCH: (
                _schema({Required("matchId"): Id}),
                lambda user, d: g.finish_match(user, d["matchId"]),
            ),
        }
        self._hello_schema = _schema({Required("userId"): Id, Required("token"): str})

    def authenticate(self, packet: dict) -> tuple[str, dict]:
        """returns the user id and the response to send; raises AuthenticationError"""
        if packet.get("event") != events.HELLO:
            raise MalformedRequestError("first packet must be a hello")
        try:
            data = self._hello_schema(packet.get("data") or {})
        except voluptuous.error.MultipleInvalid as e:
            raise MalformedRequestError(str(e)) from e
        user_id = self._users.authenticate(data["userId"], data["token"])
        return user_id, {
            "id": packet["id"],
            "event": events.HELLO,
            "data": {"userId": user_id, "name": self._users.name_of(user_id)},
        }

    async def handle(self, user_id: str, packet: dict) -> dict:
        try:
            if packet["event"] not in self._handlers:
                raise MalformedRequestError(f"unknown event {packet['event']}")
            schema, handler = self._handlers[packet["event"]]
            try:
                data = schema(packet.get("data") or {})
            except voluptuous.error.MultipleInvalid as e:
                raise MalformedRequestError(str(e)) from e

            result = handler(user_id, data)
            if inspect.isawaitable(result):
                result = await result
            return {"id": packet["id"], "event": packet["event"], "data": result}
        except FamilyGamesError as e:
            logging.debug(f"{packet['event']} from {user_id} failed: {e.kind} {e}")
            return self.error_response(packet, e)
        except Exception as e:
            logging.exception(e)
            logging.warning(f"Could not handle {packet['event']} from {user_id}")
            return self.error_response(packet, FamilyGamesError("internal error"))

    @staticmethod
    def error_response(packet: dict, error: FamilyGamesError) -> dict:
        return {
            "id": packet.get("id"),
            "event": events.error_event(error.kind),
            "data": {"message": str(error)},
        }
