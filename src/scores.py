# scores.py
# Per-mode high scores and the milestone achievement log, both plain text files.

from datetime import date
from typing import List, Optional, Set
import logging
import os

from core import GameMode

logger = logging.getLogger(__name__)

MILESTONES = (1000, 2048, 5000, 10000)
ACHIEVEMENT_FILE = "achievements.txt"

_HIGH_SCORE_FILES = {
    GameMode.NORMAL: "high_score_default.txt",
    GameMode.OBSTACLE: "high_score_bomb.txt",
    GameMode.WILDCARD: "high_score_chance.txt",
}


def high_score_file_name(mode: GameMode) -> str:
    return _HIGH_SCORE_FILES.get(mode, _HIGH_SCORE_FILES[GameMode.NORMAL])


class HighScoreStore:
    """
    Reads and writes the best score of each game mode under a directory.
    A missing or unreadable file counts as a high score of 0; failed writes are
    logged and otherwise ignored, so the game never stops over its score file.
    """

    def __init__(self, directory: str = "."):
        self.directory = directory

    def path_for(self, mode: GameMode) -> str:
        return os.path.join(self.directory, high_score_file_name(mode))

    def load(self, mode: GameMode) -> int:
        """
        Loads the stored high score of a mode.
        Args:
            mode (GameMode): The game mode.
        Returns:
            int: The stored score, or 0 if there is none or it can't be read.
        """
        path = self.path_for(mode)
        try:
            with open(path, "r", encoding="utf-8") as f:
                content = f.read().split()
        except FileNotFoundError:
            return 0
        except OSError as e:
            logger.warning("Could not read high score file %s: %s", path, e)
            return 0
        try:
            score = int(content[0])
        except (IndexError, ValueError):
            logger.warning("Ignoring malformed high score file %s", path)
            return 0
        return max(score, 0)

    def save(self, mode: GameMode, score: int) -> None:
        path = self.path_for(mode)
        try:
            with open(path, "w", encoding="utf-8") as f:
                f.write(str(score))
        except OSError as e:
            logger.warning("Could not write high score file %s: %s", path, e)


class AchievementLog:
    """Append-only log of reached score milestones, one ``score : YYYY.MM.DD`` line each."""

    def __init__(self, path: str = ACHIEVEMENT_FILE, milestones=MILESTONES):
        self.path = path
        self.milestones = tuple(milestones)

    def recorded(self) -> Set[int]:
        """Milestones already present in the log."""
        found = set()
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                for line in f:
                    head = line.split(":", 1)[0].strip()
                    try:
                        value = int(head)
                    except ValueError:
                        continue
                    if value in self.milestones:
                        found.add(value)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning("Could not read achievement file %s: %s", self.path, e)
        return found

    def check_and_record(self, score: int, today: Optional[date] = None) -> List[int]:
        """
        Appends every milestone the score has reached that is not logged yet.
        Args:
            score (int): The current score.
            today (date): Date to stamp the entries with; today when omitted.
        Returns:
            List[int]: The milestones written by this call.
        """
        reached = [m for m in self.milestones if score >= m]
        if not reached:
            return []
        already = self.recorded()
        new = [m for m in reached if m not in already]
        if not new:
            return []
        stamp = (today or date.today()).strftime("%Y.%m.%d")
        try:
            with open(self.path, "a", encoding="utf-8") as f:
                for milestone in new:
                    f.write(f"{milestone} : {stamp}\n")
        except OSError as e:
            logger.warning("Could not write achievement file %s: %s", self.path, e)
            return []
        logger.info("New achievements: %s", new)
        return new
