# core.py
# Board transition engine for the sliding-tile game: row primitives, rotation,
# tile spawning and the per-turn state machine. No I/O happens in here.

from enum import Enum
from typing import Dict, List, NamedTuple, Optional, Tuple
import logging
import random

logger = logging.getLogger(__name__)

BOARD_SIZE = 4


class TileKind(Enum):
    """The closed set of things a board cell can hold."""
    EMPTY = "empty"
    NUMERIC = "numeric"
    OBSTACLE = "obstacle"  # moves, never merges
    WILDCARD = "wildcard"  # merges with any numeric tile or another wildcard


class Tile(NamedTuple):
    """A board cell. `exponent` is only meaningful for NUMERIC tiles (value 2**exponent)."""
    kind: TileKind
    exponent: int = 0

    @property
    def is_empty(self) -> bool:
        return self.kind is TileKind.EMPTY

    @property
    def is_numeric(self) -> bool:
        return self.kind is TileKind.NUMERIC


EMPTY = Tile(TileKind.EMPTY)
OBSTACLE = Tile(TileKind.OBSTACLE)
WILDCARD = Tile(TileKind.WILDCARD)

Board = List[List[Tile]]


def numeric(exponent: int) -> Tile:
    """
    Builds a numeric tile.
    Args:
        exponent (int): Exponent e of the displayed value 2**e, must be >= 1.
    Returns:
        Tile: The numeric tile.
    Raises:
        ValueError: If the exponent is not a positive integer.
    """
    if not isinstance(exponent, int) or exponent < 1:
        raise ValueError("Numeric tile exponent must be a positive integer.")
    return Tile(TileKind.NUMERIC, exponent)


def tile_value(tile: Tile) -> int:
    """Displayed value of a tile; 0 for anything that is not numeric."""
    return 1 << tile.exponent if tile.is_numeric else 0


class GameMode(Enum):
    """Game variants. The numbers are the values accepted on the command line."""
    NORMAL = 1
    OBSTACLE = 2
    WILDCARD = 3


class GameProgressState(Enum):
    """Represents the current progress state of the game."""
    IN_PROGRESS = 1
    GAME_OVER = 2  # Lost: no move changes the board
    QUIT = 3


class DIRECTION(Enum):
    """Represents the possible move directions."""
    UP = 1
    DOWN = 2
    LEFT = 3
    RIGHT = 4


class SpawnKind(Enum):
    """What place_tile puts into the chosen empty cell."""
    NUMBER = 1
    OBSTACLE = 2
    CHANCE = 3


class InputAction(Enum):
    LEFT = 'a'
    RIGHT = 'd'
    UP = 'w'
    DOWN = 's'
    QUIT = 'q'
    UNRECOGNIZED = '?'


class NoSpaceError(Exception):
    """Raised by place_tile when the board has no empty cell."""


class MoveResult(NamedTuple):
    changed: bool
    score_gained: int


class TurnResult(NamedTuple):
    action: InputAction
    changed: bool
    score_gained: int
    spawned: Optional[Tuple[int, int]]


# --- Board Helper Functions ---

def get_board_size(board: Board) -> int:
    """
    Gets the size (N) of an N x N board.
    Args:
        board (Board): The game board.
    Returns:
        int: The dimension of the board.
    Raises:
        ValueError: If the board is not square or empty.
    """
    if not board or not all(len(row) == len(board) for row in board):
        raise ValueError("Board must be a non-empty square matrix.")
    return len(board)


def new_board(size: int = BOARD_SIZE) -> Board:
    if not isinstance(size, int) or size <= 1:
        raise ValueError("Board size must be an integer greater than 1.")
    return [[EMPTY] * size for _ in range(size)]


def copy_board(board: Board) -> Board:
    # Tiles are immutable, copying the rows is enough.
    return [list(row) for row in board]


def get_empty_cells(board: Board) -> List[Tuple[int, int]]:
    """
    Get coordinates of empty cells in row-major scan order.
    Args:
        board (Board): The board to check.
    Returns:
        List[Tuple[int, int]]: List of (row, col) tuples for empty cells.
    """
    n = get_board_size(board)
    return [(row, col) for row in range(n) for col in range(n) if board[row][col].is_empty]


def max_tile(board: Board) -> int:
    """Largest displayed value on the board (0 for a board without numeric tiles)."""
    return max((tile_value(tile) for row in board for tile in row), default=0)


# --- Line Manipulation (Core Move Logic Helpers) ---

def deflate_row(row: List[Tile]) -> Tuple[List[Tile], bool]:
    """
    Compresses a single line to the left, keeping the order of the non-empty tiles.
    Args:
        row (List[Tile]): The line to compress.
    Returns:
        Tuple[List[Tile], bool]: The compressed line and a boolean indicating if it changed.
    """
    n = len(row)
    compressed = [tile for tile in row if not tile.is_empty]
    compressed += [EMPTY] * (n - len(compressed))
    return compressed, compressed != list(row)


def _merge_pair(left: Tile, right: Tile) -> Optional[Tile]:
    """Result of merging `right` into `left`, or None when the pair does not merge."""
    if left.is_empty or right.is_empty:
        return None
    if left.kind is TileKind.OBSTACLE or right.kind is TileKind.OBSTACLE:
        return None
    if left.kind is TileKind.WILDCARD and right.kind is TileKind.WILDCARD:
        return numeric(1)
    if left.kind is TileKind.WILDCARD or right.kind is TileKind.WILDCARD:
        # The numeric side is whichever one is not the wildcard.
        other = right if left.kind is TileKind.WILDCARD else left
        return numeric(other.exponent + 1)
    if left.exponent == right.exponent:
        return numeric(left.exponent + 1)
    return None


def combine_row(row: List[Tile]) -> Tuple[List[Tile], int, bool]:
    """
    Single left-to-right merge pass over a line.

    For every adjacent pair (row[i-1], row[i]) with row[i] non-empty, a merge
    writes the result into i-1 and empties i. Because i is emptied, the tile a
    merge produced is never compared again in the same pass, so every tile
    takes part in at most one merge.

    Args:
        row (List[Tile]): The line to merge, normally already deflated.
    Returns:
        Tuple[List[Tile], int, bool]: The merged line, the score gained and
                                      whether any merge happened.
    """
    merged_row = list(row)
    score_increase = 0
    did_combine = False
    for i in range(1, len(merged_row)):
        if merged_row[i].is_empty:
            continue
        result = _merge_pair(merged_row[i - 1], merged_row[i])
        if result is None:
            continue
        logger.debug("Combined %s and %s into %s", merged_row[i - 1], merged_row[i], result)
        merged_row[i - 1] = result
        merged_row[i] = EMPTY
        score_increase += tile_value(result)
        did_combine = True
    return merged_row, score_increase, did_combine


def move_row_left(row: List[Tile]) -> Tuple[List[Tile], int, bool]:
    """
    Applies deflate, combine, then deflate again to a single line, moving left.
    The second deflate closes the gaps that merges leave behind.
    Args:
        row (List[Tile]): The line to process.
    Returns:
        Tuple[List[Tile], int, bool]: The processed line, score increase, and if the line changed.
    """
    deflated, moved_first = deflate_row(row)
    merged, score_delta, did_combine = combine_row(deflated)
    final_row, moved_second = deflate_row(merged)
    return final_row, score_delta, moved_first or did_combine or moved_second


# --- Board Transformations ---

def rotate_clockwise(board: Board) -> Board:
    """
    Rotates the board a quarter turn clockwise: new[r][c] = old[N-1-c][r].
    Args:
        board (Board): The board to rotate.
    Returns:
        Board: A new rotated board.
    """
    n = get_board_size(board)
    return [[board[n - 1 - c][r] for c in range(n)] for r in range(n)]


def rotate_times(board: Board, times: int) -> Board:
    for _ in range(times % 4):
        board = rotate_clockwise(board)
    return board


# Quarter turns applied before and after the left move, per direction.
_ROTATIONS: Dict[DIRECTION, Tuple[int, int]] = {
    DIRECTION.LEFT: (0, 0),
    DIRECTION.RIGHT: (2, 2),
    DIRECTION.UP: (3, 1),
    DIRECTION.DOWN: (1, 3),
}


def move_board_left(board: Board) -> Tuple[Board, int, bool]:
    """
    Moves every row of a board to the left.
    Args:
        board (Board): The board to process.
    Returns:
        Tuple[Board, int, bool]: The processed board, total score increase,
                                 and a flag if any row changed.
    """
    processed_board = []
    total_score_increase = 0
    board_changed = False
    for row in board:
        final_row, score_from_row, row_changed = move_row_left(row)
        processed_board.append(final_row)
        total_score_increase += score_from_row
        board_changed = board_changed or row_changed
    return processed_board, total_score_increase, board_changed


def process_move(board: Board, direction: DIRECTION) -> Tuple[Board, int, bool]:
    """
    Processes a move in the specified direction on a copy of the board.
    Every direction is the left move seen through a rotation of the board.
    Args:
        board (Board): The current game board.
        direction (DIRECTION): The direction to move.
    Returns:
        Tuple[Board, int, bool]:
            - The new board state after the move.
            - The score gained from this move.
            - A boolean indicating if the board changed as a result of the move.
    Raises:
        ValueError: If an invalid direction is specified.
    """
    if direction not in _ROTATIONS:
        raise ValueError("Invalid direction specified for process_move.")
    before, after = _ROTATIONS[direction]
    rotated = rotate_times(board, before)
    moved, score_gained, changed = move_board_left(rotated)
    return rotate_times(moved, after), score_gained, changed


# --- Game State ---

class GameState:
    """
    Everything one play session owns: the board, score, turn counter, mode and
    progress. Mutated in place by apply_move, place_tile and take_turn.
    """

    def __init__(self, board: Board, mode: GameMode = GameMode.NORMAL,
                 score: int = 0, turns: int = 0,
                 progress: GameProgressState = GameProgressState.IN_PROGRESS):
        get_board_size(board)
        if score < 0 or turns < 0:
            raise ValueError("Score and turns must be non-negative.")
        self.board = board
        self.mode = mode
        self.score = score
        self.turns = turns
        self.progress = progress

    def copy(self) -> "GameState":
        return GameState(copy_board(self.board), self.mode, self.score, self.turns, self.progress)

    @property
    def is_over(self) -> bool:
        return self.progress is not GameProgressState.IN_PROGRESS

    def __repr__(self):
        return (f"GameState(mode={self.mode.name}, score={self.score}, "
                f"turns={self.turns}, progress={self.progress.name})")


# --- Spawning ---

def _spawn_tile(spawn_kind: SpawnKind, rng: random.Random) -> Tile:
    if spawn_kind is SpawnKind.NUMBER:
        return numeric(1) if rng.randrange(10) else numeric(2)
    if spawn_kind is SpawnKind.OBSTACLE:
        return OBSTACLE
    if spawn_kind is SpawnKind.CHANCE:
        # Two independent draws: 10% for a 4, then 1 in 10 of the rest for a wildcard.
        if rng.randrange(10) < 1:
            return numeric(2)
        if rng.randrange(10) == 9:
            return WILDCARD
        return numeric(1)
    raise ValueError(f"Unknown spawn kind: {spawn_kind!r}")


def place_tile(state: GameState, spawn_kind: SpawnKind = SpawnKind.NUMBER,
               rng: Optional[random.Random] = None) -> Tuple[int, int]:
    """
    Puts one new tile into a uniformly chosen empty cell of the state's board.
    Args:
        state (GameState): The game to modify in place.
        spawn_kind (SpawnKind): Which value distribution to draw the tile from.
        rng (random.Random): Source of randomness; the `random` module when omitted.
    Returns:
        Tuple[int, int]: The (row, col) the tile was placed at.
    Raises:
        NoSpaceError: If the board has no empty cell.
    """
    if rng is None:
        rng = random
    empty_cells = get_empty_cells(state.board)
    if not empty_cells:
        raise NoSpaceError("No empty cell left on the board.")
    row, col = empty_cells[rng.randrange(len(empty_cells))]
    state.board[row][col] = _spawn_tile(spawn_kind, rng)
    return row, col


def spawn_kind_for(mode: GameMode) -> SpawnKind:
    """Per-turn spawn distribution for a mode."""
    return SpawnKind.CHANCE if mode is GameMode.WILDCARD else SpawnKind.NUMBER


def new_game(mode: GameMode = GameMode.NORMAL, size: int = BOARD_SIZE,
             rng: Optional[random.Random] = None) -> GameState:
    """
    Initializes a new game with two numeric tiles, plus one obstacle in OBSTACLE mode.
    Args:
        mode (GameMode): The game variant.
        size (int): The dimension of the N x N game board. Default is 4.
        rng (random.Random): Source of randomness.
    Returns:
        GameState: The fresh game.
    Raises:
        ValueError: If board size is invalid.
    """
    state = GameState(new_board(size), mode)
    place_tile(state, SpawnKind.NUMBER, rng)
    if mode is GameMode.OBSTACLE:
        place_tile(state, SpawnKind.OBSTACLE, rng)
    place_tile(state, SpawnKind.NUMBER, rng)
    return state


# --- Core Game Move Processing ---

def apply_move(state: GameState, direction: DIRECTION) -> MoveResult:
    """
    Moves the state's board in a direction, adding merge points to the score.
    The turn counter goes up by one only if the board changed.
    """
    board, score_gained, changed = process_move(state.board, direction)
    state.board = board
    state.score += score_gained
    if changed:
        state.turns += 1
    return MoveResult(changed, score_gained)


def is_lost(state: GameState) -> bool:
    """
    True when no direction changes the board. Probes run on throwaway copies,
    the live state is never touched.
    """
    for direction in DIRECTION:
        if apply_move(state.copy(), direction).changed:
            return False
    return True


def check_progress(state: GameState) -> GameProgressState:
    """Re-evaluates the loss condition of a game that is still in progress."""
    if state.progress is GameProgressState.IN_PROGRESS and is_lost(state):
        state.progress = GameProgressState.GAME_OVER
    return state.progress


_KEY_ACTIONS = {action.value: action for action in InputAction
                if action is not InputAction.UNRECOGNIZED}

ACTION_DIRECTIONS = {
    InputAction.LEFT: DIRECTION.LEFT,
    InputAction.RIGHT: DIRECTION.RIGHT,
    InputAction.UP: DIRECTION.UP,
    InputAction.DOWN: DIRECTION.DOWN,
}
DIRECTION_ACTIONS = {direction: action for action, direction in ACTION_DIRECTIONS.items()}


def parse_input(key: Optional[str]) -> InputAction:
    """Maps a key (w/a/s/d/q, any case) to an action; anything else is UNRECOGNIZED."""
    if not key:
        return InputAction.UNRECOGNIZED
    return _KEY_ACTIONS.get(key[0].lower(), InputAction.UNRECOGNIZED)


def take_turn(state: GameState, action: InputAction,
              rng: Optional[random.Random] = None) -> TurnResult:
    """
    Runs one full turn: move, spawn on change, then the loss check.
    Args:
        state (GameState): The game to advance, modified in place.
        action (InputAction): The player's input.
        rng (random.Random): Source of randomness for the spawn.
    Returns:
        TurnResult: What the turn did.
    Raises:
        ValueError: If the game has already ended.
    """
    if state.is_over:
        raise ValueError(f"Game is already over ({state.progress.name}).")

    if action is InputAction.QUIT:
        state.progress = GameProgressState.QUIT
        return TurnResult(action, False, 0, None)

    direction = ACTION_DIRECTIONS.get(action)
    if direction is None:
        return TurnResult(action, False, 0, None)

    result = apply_move(state, direction)
    spawned = None
    if result.changed:
        try:
            spawned = place_tile(state, spawn_kind_for(state.mode), rng)
        except NoSpaceError:
            # A board that changed always has a free cell after the move.
            logger.error("No space to spawn after a changing move: %r", state)
    check_progress(state)
    return TurnResult(action, result.changed, result.score_gained, spawned)
