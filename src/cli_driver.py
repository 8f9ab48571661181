# cli_driver.py
# This file is intended to be run to play the sliding-tile game on the CLI,
# or to replay a recorded game from a file.

from typing import Callable, List, Optional
import argparse
import logging
import os
import random
import sys
import time

from core import (
    GameMode,
    GameProgressState,
    GameState,
    InputAction,
    Tile,
    TileKind,
    check_progress,
    max_tile,
    new_game,
    parse_input,
    take_turn,
)
from records import DEFAULT_DELAY_MS, PlaybackSource, Recorder
from scores import ACHIEVEMENT_FILE, AchievementLog, HighScoreStore

logger = logging.getLogger(__name__)

PROMPT = "Move (W/A/S/D, Q to quit): "

USAGE_EPILOG = """game modes:
  1  Normal mode
  2  Bomb mode (start with an obstacle tile X which moves but never combines)
  3  Chance mode (wildcard tiles O may spawn and combine with any number)
"""


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="2048",
        description="2048: A sliding tile puzzle game",
        epilog=USAGE_EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("-m", dest="mode", type=int, choices=[m.value for m in GameMode],
                        default=GameMode.NORMAL.value, help="game mode (see below)")
    parser.add_argument("-r", dest="record", metavar="FILE", help="record the game to FILE")
    parser.add_argument("-p", dest="playback", metavar="FILE", help="play back moves from FILE")
    parser.add_argument("-s", dest="seed", type=int, default=None,
                        help="seed for the random number generator")
    parser.add_argument("-d", dest="delay", metavar="DELAY", type=int, default=DEFAULT_DELAY_MS,
                        help="delay in ms between moves when playing back")
    parser.add_argument("--data-dir", default=".",
                        help="directory holding the high score and achievement files")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    return parser


# --- Display Function ---

def format_tile(tile: Tile) -> str:
    if tile.kind is TileKind.EMPTY:
        return "   ."
    if tile.kind is TileKind.OBSTACLE:
        return "   X"
    if tile.kind is TileKind.WILDCARD:
        return "   O"
    return f"{1 << tile.exponent:4d}"


def display_board_state(state: GameState, high_score: int, elapsed: float):
    """Prints the board, score, turns and timer to the console."""
    print(f"\nScore: {state.score:6d}  Turns: {state.turns:4d}  Best: {high_score}")
    print(f"Time: {elapsed:.2f} seconds")
    for row in state.board:
        print(" ".join(format_tile(tile) for tile in row))


def read_terminal_key() -> str:
    """One key per line from the terminal; end of input or Ctrl-C counts as quit."""
    try:
        line = input(PROMPT)
    except (EOFError, KeyboardInterrupt):
        return InputAction.QUIT.value
    return line.strip()[:1]


def run_game(state: GameState, read_key: Callable[[], str],
             rng: Optional[random.Random] = None,
             recorder: Optional[Recorder] = None,
             high_scores: Optional[HighScoreStore] = None,
             achievements: Optional[AchievementLog] = None,
             render: bool = True) -> GameState:
    """
    Main game loop. Runs until the game is lost or the player quits.
    Args:
        state (GameState): A freshly started game.
        read_key (Callable[[], str]): Input source, one key per call.
        rng (random.Random): Randomness for the spawns.
        recorder (Recorder): Receives every move that changed the board.
        high_scores (HighScoreStore): Persists new high scores for the mode.
        achievements (AchievementLog): Receives reached score milestones.
        render (bool): Whether to print the board every turn.
    Returns:
        GameState: The finished game.
    """
    high_score = high_scores.load(state.mode) if high_scores else 0
    start = time.monotonic()

    while True:
        if render:
            display_board_state(state, high_score, time.monotonic() - start)

        if check_progress(state) is not GameProgressState.IN_PROGRESS:
            break

        key = read_key()
        action = parse_input(key)
        if action is InputAction.UNRECOGNIZED:
            logger.debug("Ignoring unrecognized input %r", key)
            if render:
                print("Invalid input. Use W, A, S, D or Q.")
            continue

        turn = take_turn(state, action, rng)
        if state.progress is GameProgressState.QUIT:
            break
        if not turn.changed:
            continue

        if recorder:
            recorder.record(key, state.score)
        if achievements:
            achievements.check_and_record(state.score)
        if state.score > high_score:
            high_score = state.score
            if high_scores:
                high_scores.save(state.mode, high_score)
            if render:
                print(f"New high score: {high_score}")

    return state


def summarize(state: GameState, previous_high_score: int, elapsed: float) -> List[str]:
    """End-of-game lines printed once the terminal session is over."""
    outcome = "quit" if state.progress is GameProgressState.QUIT else "lost"
    lines = [f"You {outcome} after scoring {state.score} points in {state.turns} turns, "
             f"with largest tile {max_tile(state.board)}"]
    if state.score > previous_high_score:
        lines.append(f"Congratulations! New high score: {state.score}")
    else:
        lines.append(f"High score: {previous_high_score}")
    lines.append(f"Time played: {elapsed:.2f} seconds")
    return lines


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.delay < 0:
        parser.error("delay must be non-negative")
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    mode = GameMode(args.mode)
    rng = random.Random(args.seed if args.seed is not None else time.time_ns())
    high_scores = HighScoreStore(args.data_dir)
    achievements = AchievementLog(os.path.join(args.data_dir, ACHIEVEMENT_FILE))
    previous_high_score = high_scores.load(mode)

    batch_mode = args.record is not None and args.playback is not None
    recorder = playback = None
    try:
        if args.record:
            recorder = Recorder(args.record)
        if args.playback:
            playback = PlaybackSource(args.playback, 0 if batch_mode else args.delay)
    except OSError as e:
        if recorder:
            recorder.close()
        parser.error(f"{e.filename}: {e.strerror}")

    state = new_game(mode, rng=rng)
    logger.info("Started %s game with seed %s", mode.name, args.seed)
    start = time.monotonic()
    try:
        run_game(
            state,
            playback.next_key if playback else read_terminal_key,
            rng=rng,
            recorder=recorder,
            high_scores=high_scores,
            achievements=achievements,
            render=not batch_mode,
        )
    finally:
        if recorder:
            recorder.close()
        if playback:
            playback.close()
    elapsed = time.monotonic() - start

    if batch_mode:
        return 0
    if state.progress is GameProgressState.GAME_OVER:
        print("You lose!")
    for line in summarize(state, previous_high_score, elapsed):
        print(line)
    return 0


if __name__ == "__main__":
    sys.exit(main())
