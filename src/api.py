from fastapi import FastAPI, HTTPException, Request
from pydantic import BaseModel, Field
from typing import List, Optional, Tuple
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
import logging
import random

import core

logger = logging.getLogger(__name__)

# Initialize the rate limiter
limiter = Limiter(key_func=get_remote_address)
app = FastAPI(
    title="Sliding Tile Game API",
    description="A stateless API for the 2048-style sliding tile game. "\
                "Manage your game state (board, score, turns, mode) on the client side.",
    version="1.0.0"
)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# --- Pydantic Models for API requests and responses ---

class TileData(BaseModel):
    """One board cell. `exponent` is only used for NUMERIC tiles (value 2**exponent)."""
    kind: core.TileKind = Field(..., description="EMPTY, NUMERIC, OBSTACLE or WILDCARD.")
    exponent: int = Field(default=0, ge=0, description="Exponent of a numeric tile.")

    @classmethod
    def from_tile(cls, tile: core.Tile) -> "TileData":
        return cls(kind=tile.kind, exponent=tile.exponent)

    def to_tile(self) -> core.Tile:
        if self.kind is core.TileKind.NUMERIC:
            return core.numeric(self.exponent)
        return core.Tile(self.kind)


class NewGameSettings(BaseModel):
    """Settings for creating a new game."""
    size: Optional[int] = Field(
        default=core.BOARD_SIZE,
        gt=1, # Board size must be at least 2x2
        description="Size of the N x N game board (e.g., 4 for a 4x4 board)."
    )
    mode: core.GameMode = Field(
        default=core.GameMode.NORMAL,
        description="Game mode: 1 normal, 2 obstacle, 3 wildcard."
    )
    seed: Optional[int] = Field(default=None, description="Seed for the tile spawns.")


class GameStateData(BaseModel):
    """Represents the complete state of a game instance."""
    board: List[List[TileData]] = Field(..., description="The N x N game board, represented as a list of lists.")
    score: int = Field(..., ge=0, description="Current score of the game.")
    turns: int = Field(..., ge=0, description="Number of moves that changed the board.")
    mode: core.GameMode = Field(..., description="Game mode of this game instance.")
    progress: core.GameProgressState = Field(
        ...,
        description="Current progress state of the game (IN_PROGRESS, GAME_OVER)."
    )
    board_size: int = Field(..., gt=0, description="The dimension N of the N x N board.")


class MoveRequestData(BaseModel):
    """Data required to make a move."""
    board: List[List[TileData]] = Field(..., description="Current N x N game board state before the move.")
    score: int = Field(..., ge=0, description="Current score before the move.")
    turns: int = Field(default=0, ge=0, description="Current turn count before the move.")
    mode: core.GameMode = Field(default=core.GameMode.NORMAL, description="Game mode of this game instance.")
    direction: core.DIRECTION = Field(
        ...,
        description="Direction of the move (UP, DOWN, LEFT, RIGHT)."
    )
    seed: Optional[int] = Field(default=None, description="Seed for the tile spawn.")


class MoveResponseData(GameStateData):
    """Response after a move, including the new game state and move effectiveness."""
    move_was_effective: bool = Field(
        ...,
        description="True if the move resulted in a change to the board state, False otherwise."
    )
    spawned: Optional[Tuple[int, int]] = Field(
        default=None,
        description="(row, col) of the tile added after an effective move."
    )
    message: Optional[str] = Field(
        default=None,
        description="An optional message, e.g., if a move was invalid, game ended, or other info."
    )


def _board_to_data(board: core.Board) -> List[List[TileData]]:
    return [[TileData.from_tile(tile) for tile in row] for row in board]


def _state_fields(state: core.GameState) -> dict:
    return dict(
        board=_board_to_data(state.board),
        score=state.score,
        turns=state.turns,
        mode=state.mode,
        progress=state.progress,
        board_size=core.get_board_size(state.board),
    )

# --- API Endpoints ---

@app.post("/game/new", response_model=GameStateData, summary="Start a New Game")
@limiter.limit("100/minute")
async def start_new_game(request: Request, settings: NewGameSettings):
    """
    Initializes a new game based on the provided settings (size, mode, seed).

    - **size**: Dimension of the N x N board (e.g., 4 for 4x4). Default is 4.
    - **mode**: 1 normal, 2 obstacle (one X tile is placed at start), 3 wildcard.

    Returns the initial game state, including the board with two random tiles,
    score (0), turns (0) and progress status (IN_PROGRESS).
    """
    try:
        rng = random.Random(settings.seed) if settings.seed is not None else None
        state = core.new_game(settings.mode, settings.size or core.BOARD_SIZE, rng)
        core.check_progress(state)
        return GameStateData(**_state_fields(state))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error("Unexpected error in /game/new: %s", e, exc_info=True)
        raise HTTPException(status_code=500, detail=f"An unexpected error occurred during game creation: {str(e)}")


@app.post("/game/move", response_model=MoveResponseData, summary="Make a Move in the Game")
@limiter.limit("100/minute")
async def make_move(request: Request, request_data: MoveRequestData):
    """
    Processes a player's move in the game.

    Requires the current `board` state, `score`, `turns`, `mode` and the
    `direction` of the move.

    The API will:
    1. Attempt to process the move (slide tiles, merge).
    2. If the move changed the board, add a new random tile for the mode.
    3. Determine the new game status (IN_PROGRESS, GAME_OVER).

    Returns the updated game state, whether the move was effective, and an optional message.
    """
    try:
        board = [[cell.to_tile() for cell in row] for row in request_data.board]
        state = core.GameState(board, request_data.mode, request_data.score, request_data.turns)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"Invalid board structure in request: {str(e)}")

    message_for_client: Optional[str] = None
    try:
        if core.check_progress(state) is core.GameProgressState.GAME_OVER:
            raise HTTPException(status_code=400, detail="Game is already over; no move changes the board.")

        rng = random.Random(request_data.seed) if request_data.seed is not None else None
        action = core.DIRECTION_ACTIONS[request_data.direction]
        turn = core.take_turn(state, action, rng)

        if not turn.changed:
            message_for_client = "Move was not effective; board state unchanged by slide."
        if state.progress is core.GameProgressState.GAME_OVER:
            message_for_client = "Game Over. No more valid moves."

        return MoveResponseData(
            **_state_fields(state),
            move_was_effective=turn.changed,
            spawned=turn.spawned,
            message=message_for_client
        )
    except HTTPException:
        raise
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"Error processing move: {str(e)}")
    except Exception as e:
        logger.error("Unexpected error in /game/move: %s", e, exc_info=True)
        raise HTTPException(status_code=500, detail=f"An unexpected server error occurred while processing the move: {str(e)}")
