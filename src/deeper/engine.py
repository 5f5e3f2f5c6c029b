"""Level-by-level question selection over a merged question pool."""

from __future__ import annotations

import logging
import random
from collections.abc import Callable, Iterable
from dataclasses import dataclass, replace

from .models import LEVELS, ORDER_MODES, ORDER_RANDOM, EmptyLevel, Question

logger = logging.getLogger(__name__)

FIRST_LEVEL = LEVELS[0]
LAST_LEVEL = LEVELS[-1]


class SessionComplete(RuntimeError):
    """The session already moved past the last level."""


@dataclass(frozen=True)
class SelectionSession:
    """Immutable state of one play-through.

    `questions` is the merged pool across all levels; `pool` is the slice for
    the current level. `current` is the displayed question, an EmptyLevel
    placeholder when the level has no questions, or None once complete.
    """

    deck_ids: tuple[str, ...]
    order_mode: str
    questions: tuple[Question, ...]
    level: int
    pool: tuple[Question, ...]
    cursor: int
    current: Question | EmptyLevel | None
    complete: bool = False

    @property
    def is_empty_level(self) -> bool:
        return isinstance(self.current, EmptyLevel)

    @property
    def is_last_level(self) -> bool:
        return self.level == LAST_LEVEL


DisplayListener = Callable[[Question, SelectionSession], None]


def pool_for_level(questions: Iterable[Question], level: int) -> tuple[Question, ...]:
    """Return questions at one level, preserving merge order."""
    return tuple(question for question in questions if question.level == level)


class SelectionEngine:
    """Produces successive sessions and reports every displayed question."""

    def __init__(
        self,
        rng: random.Random | None = None,
        on_display: DisplayListener | None = None,
        *,
        avoid_immediate_repeat: bool = False,
    ) -> None:
        self._rng = rng or random.Random()
        self._on_display = on_display
        self.avoid_immediate_repeat = avoid_immediate_repeat

    def start_session(
        self,
        questions: Iterable[Question],
        order_mode: str,
        deck_ids: Iterable[str] = (),
    ) -> SelectionSession:
        """Start at level 1 with a fresh selection."""
        if order_mode not in ORDER_MODES:
            raise ValueError(f"Unknown order mode: {order_mode}")
        merged = tuple(questions)
        logger.info("Session started with %d questions (%s)", len(merged), order_mode)
        return self._enter_level(tuple(deck_ids), order_mode, merged, FIRST_LEVEL)

    def restore_session(
        self,
        questions: Iterable[Question],
        order_mode: str,
        level: int,
        cursor: int,
        deck_ids: Iterable[str] = (),
    ) -> SelectionSession:
        """Rebuild a session at a saved level and position."""
        if order_mode not in ORDER_MODES:
            raise ValueError(f"Unknown order mode: {order_mode}")
        if level not in LEVELS:
            raise ValueError(f"Unknown level: {level}")
        merged = tuple(questions)
        pool = pool_for_level(merged, level)
        if not pool:
            return self._enter_level(tuple(deck_ids), order_mode, merged, level)
        index = min(max(cursor, 0), len(pool) - 1)
        session = SelectionSession(
            deck_ids=tuple(deck_ids),
            order_mode=order_mode,
            questions=merged,
            level=level,
            pool=pool,
            cursor=index,
            current=pool[index],
        )
        return self._display(session)

    def next(self, session: SelectionSession) -> SelectionSession:
        """Move to another question within the current level."""
        if session.complete:
            raise SessionComplete("Session is already complete.")
        if not session.pool:
            return replace(session, cursor=0, current=EmptyLevel(session.level))
        if session.order_mode == ORDER_RANDOM:
            index = self._draw(len(session.pool), session.cursor)
        else:
            index = (session.cursor + 1) % len(session.pool)
        return self._display(replace(session, cursor=index, current=session.pool[index]))

    def advance_level(self, session: SelectionSession) -> SelectionSession:
        """Go to the next level, or to the terminal state after the last one."""
        if session.complete:
            raise SessionComplete("Session is already complete.")
        if session.level >= LAST_LEVEL:
            logger.info("Session complete")
            return replace(session, pool=(), cursor=0, current=None, complete=True)
        return self._enter_level(session.deck_ids, session.order_mode, session.questions, session.level + 1)

    def _enter_level(
        self,
        deck_ids: tuple[str, ...],
        order_mode: str,
        questions: tuple[Question, ...],
        level: int,
    ) -> SelectionSession:
        pool = pool_for_level(questions, level)
        session = SelectionSession(
            deck_ids=deck_ids,
            order_mode=order_mode,
            questions=questions,
            level=level,
            pool=pool,
            cursor=0,
            current=EmptyLevel(level),
        )
        if not pool:
            logger.info("No questions available for level %d", level)
            return session
        index = self._rng.randrange(len(pool)) if order_mode == ORDER_RANDOM else 0
        return self._display(replace(session, cursor=index, current=pool[index]))

    def _draw(self, size: int, previous: int) -> int:
        """Draw a uniform index; optionally never the one just shown."""
        if self.avoid_immediate_repeat and size > 1:
            index = self._rng.randrange(size - 1)
            return index + 1 if index >= previous else index
        return self._rng.randrange(size)

    def _display(self, session: SelectionSession) -> SelectionSession:
        if self._on_display is not None and isinstance(session.current, Question):
            self._on_display(session.current, session)
        return session
