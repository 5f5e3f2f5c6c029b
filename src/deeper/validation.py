"""Deck playability rules."""

from __future__ import annotations

from collections.abc import Iterable

from .content_loader import coerce_level
from .models import LEVELS, Deck, Question

PLAYABLE_NOTICE = "This deck now has at least one question in each level and can be used in the game!"
UNPLAYABLE_NOTICE = "This deck needs at least one question in each level to be used in the game."


def level_counts(questions: Iterable[Question]) -> dict[int, int]:
    """Count questions per level."""
    counts = {level: 0 for level in LEVELS}
    for question in questions:
        level = coerce_level(question.level)
        if level is not None:
            counts[level] += 1
    return counts


def is_playable(deck: Deck) -> bool:
    """Return whether the deck has at least one question at every level."""
    counts = level_counts(deck.questions)
    return all(counts[level] >= 1 for level in LEVELS)


def playability_notice(before: Deck | None, after: Deck) -> str | None:
    """Return the notice for a playability change caused by one mutation."""
    was_playable = before is not None and is_playable(before)
    now_playable = is_playable(after)
    if now_playable and not was_playable:
        return PLAYABLE_NOTICE
    if was_playable and not now_playable:
        return UNPLAYABLE_NOTICE
    return None
