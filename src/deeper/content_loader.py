"""Load the bundled question source and (de)serialize persisted records."""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from importlib import resources
from pathlib import Path
from typing import Any, cast
from uuid import uuid4

from .models import (
    DEFAULT_DECK_ID,
    LEVELS,
    ORDER_MODES,
    ORDER_RANDOM,
    Deck,
    FavoriteRecord,
    HistoryEntry,
    Question,
    RecentSession,
)

CONTENT_PACKAGE = "deeper.content"
QUESTIONS_FILE = "questions.json"
DEFAULT_DECK_NAME = "Default Deck"
MISSING_TRANSLATION = "No translation available"

logger = logging.getLogger(__name__)

BundledQuestions = dict[int, list[tuple[str, str]]]


def now_iso() -> str:
    """Return the current UTC time as an ISO-8601 string."""
    return datetime.now(UTC).isoformat()


def new_record_id(prefix: str = "q") -> str:
    """Return a fresh unique id for a question or deck."""
    return f"{prefix}_{uuid4().hex[:12]}"


def coerce_level(value: object) -> int | None:
    """Coerce a stored level (int, float or numeric string) to 1..3."""
    if isinstance(value, bool):
        return None
    level: int | None
    if isinstance(value, int):
        level = value
    elif isinstance(value, float):
        level = int(value) if value.is_integer() else None
    elif isinstance(value, str):
        try:
            level = int(value.strip())
        except ValueError:
            return None
    else:
        return None
    if level not in LEVELS:
        return None
    return level


def estimate_level(text: str) -> int:
    """Guess a level from question length for records stored without one."""
    if len(text) > 100:
        return 3
    if len(text) > 50:
        return 2
    return 1


def _parse_bundled(raw: object) -> BundledQuestions:
    """Validate the `"Level N"` keyed question source."""
    if not isinstance(raw, dict):
        raise ValueError("Question source root must be a JSON object.")
    source = cast(dict[str, object], raw)
    bundled: BundledQuestions = {}
    for level in LEVELS:
        key = f"Level {level}"
        items = source.get(key)
        if not isinstance(items, list):
            raise ValueError(f"Question source is missing '{key}'.")
        pairs: list[tuple[str, str]] = []
        for item in cast(list[object], items):
            if not isinstance(item, dict):
                raise ValueError(f"Question in '{key}' must be an object.")
            entry = cast(dict[str, object], item)
            english = str(entry.get("english", "")).strip()
            if not english:
                raise ValueError(f"Question in '{key}' has no English text.")
            korean = str(entry.get("korean", "")).strip() or MISSING_TRANSLATION
            pairs.append((english, korean))
        bundled[level] = pairs
    return bundled


def load_bundled_questions() -> BundledQuestions:
    """Load the bundled question source shipped with the package."""
    text = resources.files(CONTENT_PACKAGE).joinpath(QUESTIONS_FILE).read_text(encoding="utf-8-sig")
    return _parse_bundled(json.loads(text))


def load_bundled_questions_from_file(path: Path) -> BundledQuestions:
    """Load a question source file for tests/tools."""
    return _parse_bundled(json.loads(path.read_text(encoding="utf-8-sig")))


def build_default_questions(bundled: BundledQuestions, timestamp: str | None = None) -> list[Question]:
    """Tag each bundled question with its source level and a generated id."""
    stamp = timestamp or now_iso()
    questions: list[Question] = []
    for level in LEVELS:
        for english, korean in bundled.get(level, []):
            questions.append(
                Question(
                    id=new_record_id(f"level{level}"),
                    english=english,
                    korean=korean,
                    level=level,
                    timestamp=stamp,
                )
            )
    return questions


def question_from_dict(raw: object, *, default_level: int | None = None) -> Question | None:
    """Build a question from a stored record, or None when it is unusable."""
    if not isinstance(raw, dict):
        return None
    row = cast(dict[str, Any], raw)
    english = str(row.get("english", "")).strip()
    if not english:
        logger.warning("Skipping stored question without text: %r", row.get("id"))
        return None
    level = coerce_level(row.get("level"))
    if level is None:
        level = default_level
    if level is None:
        logger.warning("Skipping stored question %r with invalid level %r", row.get("id"), row.get("level"))
        return None
    korean = row.get("korean")
    timestamp = row.get("timestamp")
    return Question(
        id=str(row.get("id") or new_record_id()),
        english=english,
        korean=str(korean) if korean is not None else MISSING_TRANSLATION,
        level=level,
        timestamp=timestamp if isinstance(timestamp, str) and timestamp else now_iso(),
    )


def question_to_dict(question: Question) -> dict[str, object]:
    """Serialize a question to its stored JSON shape."""
    return {
        "id": question.id,
        "english": question.english,
        "korean": question.korean,
        "level": question.level,
        "timestamp": question.timestamp,
    }


def questions_from_list(raw: object) -> list[Question]:
    """Deserialize a stored question list, skipping unusable records."""
    if not isinstance(raw, list):
        return []
    questions: list[Question] = []
    for item in cast(list[object], raw):
        question = question_from_dict(item)
        if question is not None:
            questions.append(question)
    return questions


def deck_from_dict(raw: object) -> Deck | None:
    """Build a custom deck from a stored record."""
    if not isinstance(raw, dict):
        return None
    row = cast(dict[str, Any], raw)
    deck_id = str(row.get("id", "")).strip()
    if not deck_id:
        logger.warning("Skipping stored deck without id: %r", row.get("name"))
        return None
    return Deck(
        id=deck_id,
        name=str(row.get("name", "")).strip() or deck_id,
        questions=tuple(questions_from_list(row.get("questions"))),
    )


def deck_to_dict(deck: Deck) -> dict[str, object]:
    """Serialize a custom deck."""
    return {
        "id": deck.id,
        "name": deck.name,
        "questions": [question_to_dict(question) for question in deck.questions],
    }


def default_deck(questions: list[Question]) -> Deck:
    """Wrap default questions as the read-only default deck."""
    return Deck(id=DEFAULT_DECK_ID, name=DEFAULT_DECK_NAME, questions=tuple(questions))


def favorite_from_dict(raw: object) -> FavoriteRecord | None:
    """Build a favorite from its flattened stored shape.

    Favorites saved from the single-deck game carry no level, so one is
    estimated from the question length.
    """
    if not isinstance(raw, dict):
        return None
    row = cast(dict[str, Any], raw)
    english = str(row.get("english", ""))
    question = question_from_dict(row, default_level=estimate_level(english))
    if question is None:
        return None
    return FavoriteRecord(question=question, timestamp=question.timestamp)


def favorite_to_dict(favorite: FavoriteRecord) -> dict[str, object]:
    """Serialize a favorite as the question snapshot stamped with its own time."""
    payload = question_to_dict(favorite.question)
    payload["timestamp"] = favorite.timestamp
    return payload


def history_entry_from_dict(raw: object) -> HistoryEntry | None:
    """Build a history entry from a stored record."""
    if not isinstance(raw, dict):
        return None
    row = cast(dict[str, Any], raw)
    question_raw = row.get("question")
    english = str(question_raw.get("english", "")) if isinstance(question_raw, dict) else ""
    question = question_from_dict(question_raw, default_level=estimate_level(english))
    if question is None:
        return None
    timestamp = row.get("timestamp")
    deck_ids = row.get("deckIds")
    game_type = row.get("gameType")
    return HistoryEntry(
        question=question,
        timestamp=timestamp if isinstance(timestamp, str) and timestamp else question.timestamp,
        deck_ids=tuple(str(item) for item in deck_ids) if isinstance(deck_ids, list) else (),
        game_type=str(game_type) if game_type is not None else None,
    )


def history_entry_to_dict(entry: HistoryEntry) -> dict[str, object]:
    """Serialize a history entry."""
    payload: dict[str, object] = {
        "question": question_to_dict(entry.question),
        "timestamp": entry.timestamp,
        "deckIds": list(entry.deck_ids),
    }
    if entry.game_type is not None:
        payload["gameType"] = entry.game_type
    return payload


def recent_session_from_dict(raw: object) -> RecentSession | None:
    """Build the resume checkpoint from its stored record."""
    if not isinstance(raw, dict):
        return None
    row = cast(dict[str, Any], raw)
    level = coerce_level(row.get("level"))
    if level is None:
        return None
    index_raw = row.get("questionIndex", 0)
    try:
        question_index = max(0, int(index_raw))
    except (TypeError, ValueError):
        question_index = 0
    deck_ids = row.get("deckIds")
    order_mode = str(row.get("orderMode", ORDER_RANDOM))
    return RecentSession(
        type=str(row.get("type", "custom")),
        deck_ids=tuple(str(item) for item in deck_ids) if isinstance(deck_ids, list) else (),
        level=level,
        question_index=question_index,
        order_mode=order_mode if order_mode in ORDER_MODES else ORDER_RANDOM,
    )


def recent_session_to_dict(session: RecentSession) -> dict[str, object]:
    """Serialize the resume checkpoint."""
    return {
        "type": session.type,
        "deckIds": list(session.deck_ids),
        "level": session.level,
        "questionIndex": session.question_index,
        "orderMode": session.order_mode,
    }
