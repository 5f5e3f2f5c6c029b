from dataclasses import replace

from deeper.content_loader import deck_from_dict
from deeper.models import Deck, Question
from deeper.validation import (
    PLAYABLE_NOTICE,
    UNPLAYABLE_NOTICE,
    is_playable,
    level_counts,
    playability_notice,
)


def _question(qid: str, level: object) -> Question:
    return Question(id=qid, english=f"Q {qid}", korean=f"K {qid}", level=level, timestamp="t")  # type: ignore[arg-type]


def _deck(*levels: object) -> Deck:
    return Deck(id="d", name="Deck", questions=tuple(_question(str(i), level) for i, level in enumerate(levels)))


def test_deck_with_every_level_is_playable() -> None:
    assert is_playable(_deck(1, 2, 3)) is True
    assert is_playable(_deck(3, 3, 1, 2, 2)) is True


def test_deck_missing_a_level_is_not_playable() -> None:
    assert is_playable(_deck()) is False
    assert is_playable(_deck(1, 1, 2, 2)) is False
    assert is_playable(_deck(2, 3)) is False


def test_string_levels_from_storage_count_the_same() -> None:
    stored = {
        "id": "legacy",
        "name": "Legacy",
        "questions": [
            {"id": "a", "english": "A", "korean": "가", "level": "1"},
            {"id": "b", "english": "B", "korean": "나", "level": 2},
            {"id": "c", "english": "C", "korean": "다", "level": "3"},
        ],
    }
    deck = deck_from_dict(stored)
    assert deck is not None
    assert is_playable(deck) is True
    assert is_playable(_deck("1", "2", "3")) is True


def test_level_counts() -> None:
    assert level_counts(_deck(1, 1, 3).questions) == {1: 2, 2: 0, 3: 1}


def test_adding_missing_level_flips_playable() -> None:
    before = _deck(1, 2)
    assert is_playable(before) is False
    after = replace(before, questions=(*before.questions, _question("new", 3)))
    assert is_playable(after) is True
    assert playability_notice(before, after) == PLAYABLE_NOTICE


def test_playability_notice_only_on_threshold_changes() -> None:
    playable = _deck(1, 2, 3)
    bigger = _deck(1, 2, 3, 3)
    broken = _deck(1, 2)
    assert playability_notice(playable, bigger) is None
    assert playability_notice(broken, _deck(1, 2, 2)) is None
    assert playability_notice(playable, broken) == UNPLAYABLE_NOTICE
    assert playability_notice(None, playable) == PLAYABLE_NOTICE
