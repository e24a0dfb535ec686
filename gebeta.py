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
Gebeta (Mandala) - 12 pits in a circle, 4 seeds each at the start.

The inviter owns pits 0-5, the invitee owns pits 6-11. A move empties one of your own pits and
sows its seeds one by one into the following pits. If the last seed lands on your own side and
that pit then holds exactly 2 or 4 seeds, you capture them. The game is over as soon as one row
is empty; each side then scores its captures plus whatever is left in its own row.
"""

from errors import InvalidStateError
from match_store import Match, MoveResult

PITS = 12
ROW = 6
STARTING_SEEDS = 4
CAPTURE_COUNTS = (2, 4)


def side_pits(side: int) -> range:
    return range(side * ROW, (side + 1) * ROW)


def sow(board: list, pit: int, side: int) -> tuple[list, int]:
    """returns the new board and the number of seeds captured by the mover"""
    board = list(board)
    seeds = board[pit]
    board[pit] = 0
    current = pit
    while seeds > 0:
        current = (current + 1) % PITS
        board[current] += 1
        seeds -= 1

    captured = 0
    if current in side_pits(side) and board[current] in CAPTURE_COUNTS:
        captured = board[current]
        board[current] = 0
    return board, captured


def row_empty(board: list, side: int) -> bool:
    return all(board[pit] == 0 for pit in side_pits(side))


def final_scores(board: list, score1: int, score2: int) -> tuple[int, int]:
    return (score1 + sum(board[pit] for pit in side_pits(0)),
            score2 + sum(board[pit] for pit in side_pits(1)))


class GebetaRules:
    name = "gebeta"
    # coins for beating the computer
    computer_reward = 20

    @staticmethod
    def new_board() -> list:
        return [STARTING_SEEDS] * PITS

    @staticmethod
    def side_of(match: Match, player_id: str) -> int:
        return 0 if player_id == match.player1_id else 1

    def legal_moves(self, match: Match, player_id: str) -> list[int]:
        return [pit for pit in side_pits(self.side_of(match, player_id)) if match.board[pit] > 0]

    def apply_move(self, match: Match, player_id: str, move: int) -> MoveResult:
        side = self.side_of(match, player_id)
        if move not in side_pits(side):
            raise InvalidStateError(f"pit {move} does not belong to {player_id}")
        if match.board[move] == 0:
            raise InvalidStateError(f"pit {move} is empty")

        board, captured = sow(match.board, move, side)
        score1, score2 = match.score1, match.score2
        if side == 0:
            score1 += captured
        else:
            score2 += captured

        if not (row_empty(board, 0) or row_empty(board, 1)):
            return MoveResult(board=board, score1=score1, score2=score2, captured=captured)

        score1, score2 = final_scores(board, score1, score2)
        winner = None
        if score1 > score2:
            winner = match.player1_id
        elif score2 > score1:
            winner = match.player2_id
        return MoveResult(board=board, score1=score1, score2=score2, captured=captured,
                          finished=True, winner=winner)
