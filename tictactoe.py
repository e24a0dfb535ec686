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

from typing import Optional

from errors import InvalidStateError
from match_store import Match, MoveResult

LINES = (
    (0, 1, 2), (3, 4, 5), (6, 7, 8),
    (0, 3, 6), (1, 4, 7), (2, 5, 8),
    (0, 4, 8), (2, 4, 6),
)


def calculate_winner(squares: list) -> Optional[str]:
    for a, b, c in LINES:
        if squares[a] and squares[a] == squares[b] and squares[a] == squares[c]:
            return squares[a]
    return None


class TicTacToeRules:
    name = "tictactoe"
    # coins for beating the computer
    computer_reward = 10

    @staticmethod
    def new_board() -> list:
        return [None] * 9

    @staticmethod
    def legal_moves(match: Match, player_id: str) -> list[int]:
        return [cell for cell, symbol in enumerate(match.board) if symbol is None]

    @staticmethod
    def symbol_of(match: Match, player_id: str) -> str:
        return "X" if player_id == match.player1_id else "O"

    def apply_move(self, match: Match, player_id: str, move: int) -> MoveResult:
        if not 0 <= move < 9:
            raise InvalidStateError(f"cell {move} is off the board")
        if match.board[move] is not None:
            raise InvalidStateError(f"cell {move} is taken")

        board = list(match.board)
        board[move] = self.symbol_of(match, player_id)

        symbol = calculate_winner(board)
        if symbol is not None:
            winner = match.player1_id if symbol == "X" else match.player2_id
            return MoveResult(board=board, finished=True, winner=winner)
        if all(cell is not None for cell in board):
            return MoveResult(board=board, finished=True)
        return MoveResult(board=board)
