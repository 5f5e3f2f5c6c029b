"""Core domain models for leveled question decks."""

from __future__ import annotations

from dataclasses import dataclass

LEVELS = (1, 2, 3)
DEFAULT_DECK_ID = "default"

ORDER_RANDOM = "random"
ORDER_SEQUENTIAL = "sequential"
ORDER_MODES = (ORDER_RANDOM, ORDER_SEQUENTIAL)


@dataclass(frozen=True)
class Question:
    """One conversation question with its translation."""

    id: str
    english: str
    korean: str
    level: int
    timestamp: str

    def content_key(self) -> tuple[str, str]:
        """Return the pair used to detect duplicate questions."""
        return (self.english, self.korean)


@dataclass(frozen=True)
class Deck:
    """The bundled default deck or a user-created custom deck."""

    id: str
    name: str
    questions: tuple[Question, ...]

    @property
    def is_default(self) -> bool:
        return self.id == DEFAULT_DECK_ID


@dataclass(frozen=True)
class FavoriteRecord:
    """Snapshot of a favorited question."""

    question: Question
    timestamp: str


@dataclass(frozen=True)
class HistoryEntry:
    """One displayed question, newest entries first in storage."""

    question: Question
    timestamp: str
    deck_ids: tuple[str, ...]
    game_type: str | None = None


@dataclass(frozen=True)
class RecentSession:
    """Checkpoint of an in-progress play session, used for resume."""

    type: str
    deck_ids: tuple[str, ...]
    level: int
    question_index: int
    order_mode: str


@dataclass(frozen=True)
class EmptyLevel:
    """Display placeholder for a level with no questions."""

    level: int

    @property
    def english(self) -> str:
        return f"No questions available for Level {self.level}"

    @property
    def korean(self) -> str:
        return f"레벨 {self.level}에 사용할 수 있는 질문이 없습니다"
