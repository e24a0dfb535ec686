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

"""
Every packet, both ways, is {"id": int, "event": str, "data": ...}. A response carries the id of
its request and either the request's event name (success) or one of the error events below.
"""

PREFIX = "family_games:event"

HELLO = f"{PREFIX}/auth/hello"

HEARTBEAT = f"{PREFIX}/presence/heartbeat"
LIST_ONLINE = f"{PREFIX}/presence/list"

INITIATE_CALL = f"{PREFIX}/call/initiate"
CHECK_INCOMING_CALL = f"{PREFIX}/call/check_incoming"
CHECK_OUTGOING_STATUS = f"{PREFIX}/call/check_outgoing"
ACCEPT_CALL = f"{PREFIX}/call/accept"
DECLINE_CALL = f"{PREFIX}/call/decline"
END_CALL = f"{PREFIX}/call/end"

LIST_PLAYERS = f"{PREFIX}/game/players"
SEND_INVITE = f"{PREFIX}/game/invite/send"
CHECK_INVITE = f"{PREFIX}/game/invite/check"
INVITE_STATUS = f"{PREFIX}/game/invite/status"
RESPOND_INVITE = f"{PREFIX}/game/invite/respond"
POLL_MATCH = f"{PREFIX}/game/match/poll"
SUBMIT_MOVE = f"{PREFIX}/game/match/move"
FINISH_MATCH = f"{PREFIX}/game/match/finish"
PLAY_COMPUTER = f"{PREFIX}/game/match/computer"

ERROR_PREFIX = f"{PREFIX}/error/"


def error_event(kind: str) -> str:
    return ERROR_PREFIX + kind


def error_kind(event: str):
    if event.startswith(ERROR_PREFIX):
        return event[len(ERROR_PREFIX):]
    return None
