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

import contextlib
import copy
import dataclasses
import logging
import time
import uuid
from pathlib import Path
from typing import Optional

import aiofiles
import aiofiles.os
import tomlkit
import tomlkit.exceptions

STARTING_COINS = 100
# player2 of a match played against the server
COMPUTER_ID = "@computer"


class StorageError(Exception): pass


@dataclasses.dataclass
class MoveResult:
    board: list
    score1: int = 0
    score2: int = 0
    captured: int = 0
    finished: bool = False
    winner: Optional[str] = None


@dataclasses.dataclass
class Invite:
    id: str
    game: str
    from_user_id: str
    to_user_id: str
    created_at: float
    status: str = "pending"
    match_id: Optional[str] = None

    def view(self) -> dict:
        return {
            "inviteId": self.id,
            "game": self.game,
            "fromUserId": self.from_user_id,
            "toUserId": self.to_user_id,
            "status": self.status,
            "matchId": self.match_id,
        }


@dataclasses.dataclass
class Match:
    id: str
    game: str
    player1_id: str
    player2_id: str
    board: list
    current_turn: str
    created_at: float
    updated_at: float
    score1: int = 0
    score2: int = 0
    winner: Optional[str] = None
    finished: bool = False
    rewarded: bool = False

    @property
    def players(self) -> tuple[str, str]:
        return self.player1_id, self.player2_id

    @property
    def against_computer(self) -> bool:
        return self.player2_id == COMPUTER_ID

    def opponent_of(self, player_id: str) -> str:
        return self.player2_id if player_id == self.player1_id else self.player1_id

    def view(self) -> dict:
        return {
            "matchId": self.id,
            "game": self.game,
            "players": list(self.players),
            "board": list(self.board),
            "currentTurn": self.current_turn,
            "scores": {self.player1_id: self.score1, self.player2_id: self.score2},
            "winner": self.winner,
            "finished": self.finished,
            "vsComputer": self.against_computer,
        }


def _dump_board(board: list) -> list:
    # toml has no null
    return ["" if cell is None else cell for cell in board]


def _load_board(board: list) -> list:
    return [None if cell == "" else cell for cell in board]


class MatchStore:
    """
    Invites, matches and coin balances. Unlike calls these survive a restart: the whole document is
    written back after every change.
    """

    def __init__(self, location: Path):
        self._location = Path(location)
        self.invites: dict[str, Invite] = dict()
        self.matches: dict[str, Match] = dict()
        self.coins: dict[str, int] = dict()

    async def load(self):
        try:
            async with aiofiles.open(self._location, 'r') as storage_file:
                document = tomlkit.parse(await storage_file.read()).unwrap()
        except FileNotFoundError:
            logging.info(f"No game storage at {self._location}, starting empty")
            return
        except tomlkit.exceptions.ParseError as e:
            logging.exception(e)
            logging.warning(f"Game storage in {self._location} is invalid")
            raise StorageError() from e

        self.coins = {user_id: int(balance) for user_id, balance in document.get("coins", {}).items()}
        for invite_id, invite in document.get("invites", {}).items():
            self.invites[invite_id] = Invite(id=invite_id, **invite)
        for match_id, match in document.get("matches", {}).items():
            match["board"] = _load_board(match["board"])
            self.matches[match_id] = Match(id=match_id, **match)
        logging.debug(f"Loaded {len(self.invites)} invite(s) and {len(self.matches)} match(es)")

    def _document(self) -> tomlkit.TOMLDocument:
        document = tomlkit.document()

        coins = tomlkit.table()
        for user_id, balance in self.coins.items():
            coins.add(user_id, balance)
        document.add("coins", coins)

        invites = tomlkit.table()
        for invite in self.invites.values():
            entry = {k: v for k, v in dataclasses.asdict(invite).items() if k != "id" and v is not None}
            invites.add(invite.id, entry)
        document.add("invites", invites)

        matches = tomlkit.table()
        for match in self.matches.values():
            entry = {k: v for k, v in dataclasses.asdict(match).items() if k != "id" and v is not None}
            entry["board"] = _dump_board(match.board)
            matches.add(match.id, entry)
        document.add("matches", matches)
        return document

    async def save(self):
        temporary = self._location.with_suffix(self._location.suffix + ".tmp")
        try:
            async with aiofiles.open(temporary, 'w') as storage_file:
                await storage_file.write(tomlkit.dumps(self._document()))
            await aiofiles.os.replace(temporary, self._location)
        except IOError as e:
            logging.exception(e)
            logging.warning(f"Could not write game storage to {self._location}")
            raise StorageError() from e
        logging.debug("Game storage saved to disk.")

    @contextlib.asynccontextmanager
    async def transaction(self):
        """
        Changes made inside the block are saved when it exits. If the block raises, or saving fails,
        invites, matches and coins go back to what they were before the block.
        """
        snapshot = copy.deepcopy((self.invites, self.matches, self.coins))
        try:
            yield self
            await self.save()
        except BaseException:
            self.invites, self.matches, self.coins = snapshot
            raise

    # coins

    def balance(self, user_id: str) -> int:
        return self.coins.get(user_id, STARTING_COINS)

    def credit(self, user_id: str, amount: int) -> int:
        self.coins[user_id] = self.balance(user_id) + amount
        return self.coins[user_id]

    # invites / matches

    def new_invite(self, game: str, from_user_id: str, to_user_id: str) -> Invite:
        invite = Invite(id=uuid.uuid4().hex, game=game, from_user_id=from_user_id, to_user_id=to_user_id,
                        created_at=time.time())
        self.invites[invite.id] = invite
        return invite

    def latest_pending_invite_for(self, user_id: str, game: str) -> Optional[Invite]:
        pending = [
            invite for invite in self.invites.values()
            if invite.to_user_id == user_id and invite.game == game and invite.status == "pending"
        ]
        return max(pending, key=lambda invite: invite.created_at, default=None)

    def new_match(self, game: str, player1_id: str, player2_id: str, board: list) -> Match:
        now = time.time()
        match = Match(id=uuid.uuid4().hex, game=game, player1_id=player1_id, player2_id=player2_id,
                      board=board, current_turn=player1_id, created_at=now, updated_at=now)
        self.matches[match.id] = match
        return match
