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
import logging
import random
import time
from typing import Optional

from auth import UserRegistry
from errors import InvalidStateError, NotFoundError, SelfTargetError
from gebeta import GebetaRules
from match_store import COMPUTER_ID, Match, MatchStore, MoveResult
from session_directory import SessionDirectory
from tictactoe import TicTacToeRules

RULES = {
    rules.name: rules for rules in (TicTacToeRules(), GebetaRules())
}


class GameCoordinator:
    """
    Invites and moves for the turn based games. Same shape as calls: one side creates something
    pending, the other side accepts it, then both poll. Moves are validated against the stored match;
    a move that is out of turn or illegal is rejected and nothing is written.

    Every change goes through a store transaction, so a failed save leaves memory as it was.
    """

    def __init__(self, store: MatchStore, users: UserRegistry, directory: SessionDirectory, win_reward: int = 20,
                 rng: Optional[random.Random] = None):
        self._store = store
        self._users = users
        self._directory = directory
        self._win_reward = win_reward
        self._rng = rng if rng is not None else random.Random()
        self._lock = asyncio.Lock()

    @staticmethod
    def _rules(game: str):
        if game not in RULES:
            raise NotFoundError(f"no game called {game}")
        return RULES[game]

    def list_players(self, user_id: str) -> dict:
        return {"players": [
            dict(player, coins=self._store.balance(player["id"]), online=self._directory.is_online(player["id"]))
            for player in self._users.all_users() if player["id"] != user_id
        ]}

    async def send_invite(self, user_id: str, game: str, opponent_id: str) -> dict:
        self._rules(game)
        if opponent_id == user_id:
            raise SelfTargetError(f"user {user_id} tried to invite themselves")
        if not self._users.exists(opponent_id):
            raise NotFoundError(f"no user {opponent_id}")
        async with self._lock, self._store.transaction():
            invite = self._store.new_invite(game, user_id, opponent_id)
        logging.info(f"{game} invite {invite.id} from {user_id} to {opponent_id}")
        return {"inviteId": invite.id}

    def check_invite(self, user_id: str, game: str) -> dict:
        self._rules(game)
        invite = self._store.latest_pending_invite_for(user_id, game)
        if invite is None:
            return {"invite": None}
        return {"invite": dict(invite.view(), fromUsername=self._users.name_of(invite.from_user_id))}

    def invite_status(self, user_id: str, invite_id: str) -> dict:
        invite = self._store.invites.get(invite_id)
        if invite is None or user_id not in (invite.from_user_id, invite.to_user_id):
            raise NotFoundError(f"no invite {invite_id} for {user_id}")
        return invite.view()

    async def respond_invite(self, user_id: str, invite_id: str, accepted: bool) -> dict:
        async with self._lock, self._store.transaction():
            invite = self._store.invites.get(invite_id)
            if invite is None or invite.to_user_id != user_id:
                raise NotFoundError(f"no invite {invite_id} addressed to {user_id}")
            if invite.status != "pending":
                raise InvalidStateError(f"invite {invite_id} is already {invite.status}")

            if not accepted:
                invite.status = "declined"
                match = None
            else:
                rules = self._rules(invite.game)
                match = self._store.new_match(invite.game, invite.from_user_id, invite.to_user_id, rules.new_board())
                invite.status = "accepted"
                invite.match_id = match.id

        if match is None:
            logging.info(f"{invite.game} invite {invite_id} declined by {user_id}")
            return {"matchId": None}
        logging.info(f"{invite.game} match {match.id} created from invite {invite_id}")
        return {"matchId": match.id}

    async def start_computer_match(self, user_id: str, game: str) -> dict:
        """a match against the server; the user moves first"""
        rules = self._rules(game)
        async with self._lock, self._store.transaction():
            match = self._store.new_match(game, user_id, COMPUTER_ID, rules.new_board())
        logging.info(f"{game} match {match.id} between {user_id} and the computer")
        return {"matchId": match.id}

    def _match_for(self, user_id: str, match_id: str) -> Match:
        match = self._store.matches.get(match_id)
        if match is None or user_id not in match.players:
            raise NotFoundError(f"no match {match_id} for {user_id}")
        return match

    def poll_match(self, user_id: str, match_id: str) -> dict:
        return {"match": self._match_for(user_id, match_id).view()}

    def _reward(self, match: Match):
        if match.winner is None or match.winner == COMPUTER_ID or match.rewarded:
            return
        amount = self._rules(match.game).computer_reward if match.against_computer else self._win_reward
        balance = self._store.credit(match.winner, amount)
        match.rewarded = True
        logging.info(f"Winner {match.winner} of match {match.id} gets +{amount} coins ({balance})")

    def _play(self, match: Match, player_id: str, move: int) -> MoveResult:
        result = self._rules(match.game).apply_move(match, player_id, move)

        match.board = result.board
        match.score1, match.score2 = result.score1, result.score2
        match.current_turn = match.opponent_of(player_id)
        match.updated_at = time.time()
        if result.finished:
            match.finished = True
            match.winner = result.winner
            self._reward(match)
            logging.info(f"Match {match.id} finished, winner {match.winner}")
        return result

    async def submit_move(self, user_id: str, match_id: str, move: int) -> dict:
        computer_move = None
        async with self._lock, self._store.transaction():
            match = self._match_for(user_id, match_id)
            if match.finished:
                raise InvalidStateError(f"match {match_id} is finished")
            if match.current_turn != user_id:
                raise InvalidStateError(f"it is not {user_id}'s turn in match {match_id}")

            result = self._play(match, user_id, move)
            if match.against_computer and not match.finished:
                computer_move = self._rng.choice(self._rules(match.game).legal_moves(match, COMPUTER_ID))
                self._play(match, COMPUTER_ID, computer_move)
        return {"match": match.view(), "captured": result.captured, "computerMove": computer_move}

    async def finish_match(self, user_id: str, match_id: str) -> dict:
        """
        Finishing a match that is still running means resigning it. Finishing a finished match
        only reports the result again.
        """
        async with self._lock, self._store.transaction():
            match = self._match_for(user_id, match_id)
            if not match.finished:
                match.finished = True
                match.winner = match.opponent_of(user_id)
                match.updated_at = time.time()
                self._reward(match)
                logging.info(f"{user_id} resigned match {match.id}")
        return {"match": match.view()}
