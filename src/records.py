# records.py
# Record and playback of games: one "key:score" line per turn that changed the board.

from typing import Callable, Optional, TextIO
import logging
import time

logger = logging.getLogger(__name__)

DEFAULT_DELAY_MS = 250
QUIT_KEY = 'q'


def format_record_line(key: str, score: int) -> str:
    """Formats one recorded turn, e.g. ``a:4``."""
    return f"{key}:{score}\n"


def parse_playback_line(line: str) -> str:
    """
    Extracts the key of one playback line.
    Args:
        line (str): A raw line of a record file.
    Returns:
        str: The first character after leading spaces and tabs, or an empty
             string for a blank line (which the game ignores).
    """
    stripped = line.lstrip(" \t")
    if not stripped or stripped[0] in "\r\n":
        return ""
    return stripped[0]


class Recorder:
    """Writes accepted moves to a record file. Usable as a context manager."""

    def __init__(self, path: str):
        self.path = path
        self._file: Optional[TextIO] = open(path, "w", encoding="utf-8")

    def record(self, key: str, score: int) -> None:
        if self._file is None:
            raise ValueError(f"Recorder for {self.path} is closed.")
        self._file.write(format_record_line(key, score))

    def close(self) -> None:
        if self._file is not None:
            self._file.close()
            self._file = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


class PlaybackSource:
    """
    Reads keys back from a record file, one line per turn.
    End of file reads as the quit key, so a finished playback ends the game.
    """

    def __init__(self, path: str, delay_ms: int = DEFAULT_DELAY_MS,
                 sleep: Callable[[float], None] = time.sleep):
        if delay_ms < 0:
            raise ValueError("Playback delay must be non-negative.")
        self.path = path
        self.delay_ms = delay_ms
        self._sleep = sleep
        self._file: Optional[TextIO] = open(path, "r", encoding="utf-8")

    def next_key(self) -> str:
        line = self._file.readline() if self._file is not None else ""
        if not line:
            logger.debug("Playback file %s exhausted", self.path)
            return QUIT_KEY
        if self.delay_ms:
            self._sleep(self.delay_ms / 1000.0)
        return parse_playback_line(line)

    def close(self) -> None:
        if self._file is not None:
            self._file.close()
            self._file = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
