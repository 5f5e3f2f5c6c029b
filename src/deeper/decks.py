"""Default and custom deck storage, merging, and deck editing."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, replace

from .content_loader import (
    MISSING_TRANSLATION,
    BundledQuestions,
    build_default_questions,
    coerce_level,
    deck_from_dict,
    deck_to_dict,
    default_deck,
    load_bundled_questions,
    new_record_id,
    now_iso,
    question_from_dict,
    question_to_dict,
    questions_from_list,
)
from .models import DEFAULT_DECK_ID, Deck, Question
from .storage import CUSTOM_SETS_KEY, DEFAULT_QUESTIONS_KEY, KeyValueStore, StorageError
from .validation import is_playable, playability_notice

logger = logging.getLogger(__name__)

CREATED = "created"
DELETED = "deleted"
UPDATED = "updated"
DUPLICATE = "duplicate"
INVALID = "invalid"
MISSING = "missing"
FAILED = "failed"


class NoPlayableQuestions(ValueError):
    """The selected decks contain no questions at all."""


@dataclass(frozen=True)
class DeckChange:
    """Outcome of one custom deck mutation."""

    outcome: str
    deck: Deck | None = None
    saved: bool = True
    notice: str | None = None


class DeckRepository:
    """Loads, merges, and edits decks through the key-value store."""

    def __init__(self, store: KeyValueStore, bundled: BundledQuestions | None = None) -> None:
        self.store = store
        self._bundled = bundled

    def ensure_default_deck(self) -> bool:
        """Seed the default deck on first run; return whether it was created."""
        try:
            existing = self.store.get(DEFAULT_QUESTIONS_KEY)
        except StorageError:
            logger.exception("Failed to check default deck")
            return False
        if existing is not None:
            return False

        bundled = self._bundled if self._bundled is not None else load_bundled_questions()
        questions = build_default_questions(bundled)
        try:
            self.store.set(DEFAULT_QUESTIONS_KEY, [question_to_dict(question) for question in questions])
        except StorageError:
            logger.exception("Failed to create default deck")
            return False
        logger.info("Default deck created with %d questions", len(questions))
        return True

    def load_default_deck(self) -> Deck | None:
        """Return the seeded default deck, or None if it was never created."""
        try:
            raw = self.store.get(DEFAULT_QUESTIONS_KEY)
        except StorageError:
            logger.exception("Failed to load default deck")
            return None
        if raw is None:
            return None
        return default_deck(questions_from_list(raw))

    def _read_custom_sets(self) -> list[object]:
        """Return the stored custom set records.

        Raises StorageError when the records cannot be read, so callers that
        write never save over data they failed to load.
        """
        raw = self.store.get(CUSTOM_SETS_KEY)
        if raw is None:
            return []
        if not isinstance(raw, list):
            raise StorageError(f"Stored value for '{CUSTOM_SETS_KEY}' is not a list.")
        return list(raw)

    def _records_for_edit(self) -> list[object] | None:
        try:
            return self._read_custom_sets()
        except StorageError:
            logger.exception("Failed to load custom sets for editing")
            return None

    def list_custom_decks(self) -> list[Deck]:
        """Return every custom deck, playable or not."""
        try:
            records = self._read_custom_sets()
        except StorageError:
            logger.exception("Failed to load custom sets")
            return []
        return _decks_from_records(records)

    def list_playable_custom_decks(self) -> list[Deck]:
        """Return custom decks that can be selected for play."""
        return [deck for deck in self.list_custom_decks() if is_playable(deck)]

    def get_custom_deck(self, deck_id: str) -> Deck | None:
        for deck in self.list_custom_decks():
            if deck.id == deck_id:
                return deck
        return None

    def merge_questions(self, deck_ids: Iterable[str]) -> list[Question]:
        """Concatenate the questions of the selected decks.

        An empty selection falls back to the default deck. Unknown ids are
        skipped. Raises NoPlayableQuestions when nothing is left to play.
        """
        selected = list(dict.fromkeys(deck_ids))
        merged: list[Question] = []
        if not selected or DEFAULT_DECK_ID in selected:
            default = self.load_default_deck()
            if default is not None:
                merged.extend(default.questions)

        custom_ids = [deck_id for deck_id in selected if deck_id != DEFAULT_DECK_ID]
        if custom_ids:
            decks = {deck.id: deck for deck in self.list_custom_decks()}
            for deck_id in custom_ids:
                deck = decks.get(deck_id)
                if deck is None:
                    logger.info("Skipping unknown deck %s", deck_id)
                    continue
                merged.extend(deck.questions)

        if not merged:
            raise NoPlayableQuestions("No questions found in selected decks")
        return merged

    def _save_records(self, records: list[object]) -> bool:
        try:
            self.store.set(CUSTOM_SETS_KEY, records)
        except StorageError:
            logger.exception("Failed to save custom sets")
            return False
        return True

    def create_deck(self, name: str) -> DeckChange:
        """Create an empty custom deck with a unique name."""
        cleaned = name.strip()
        if not cleaned:
            return DeckChange(outcome=INVALID)
        records = self._records_for_edit()
        if records is None:
            return DeckChange(outcome=FAILED, saved=False)
        if any(deck.name == cleaned for deck in _decks_from_records(records)):
            return DeckChange(outcome=DUPLICATE)
        deck = Deck(id=new_record_id("deck"), name=cleaned, questions=())
        saved = self._save_records([*records, deck_to_dict(deck)])
        if saved:
            logger.info("Created deck %s (%s)", deck.id, deck.name)
        return DeckChange(outcome=CREATED, deck=deck, saved=saved)

    def delete_deck(self, deck_id: str) -> DeckChange:
        """Delete a custom deck by id."""
        records = self._records_for_edit()
        if records is None:
            return DeckChange(outcome=FAILED, saved=False)
        remaining = [record for record in records if _record_id(record) != deck_id]
        if len(remaining) == len(records):
            return DeckChange(outcome=MISSING)
        saved = self._save_records(remaining)
        if saved:
            logger.info("Deleted deck %s", deck_id)
        return DeckChange(outcome=DELETED, saved=saved)

    def _edit_deck(self, deck_id: str, edit: Callable[[Deck], Deck | DeckChange], outcome: str) -> DeckChange:
        """Apply one edit to a stored deck and report any playability change.

        Other records, and questions in this deck that could not be read, are
        written back unchanged.
        """
        records = self._records_for_edit()
        if records is None:
            return DeckChange(outcome=FAILED, saved=False)
        index = next((i for i, record in enumerate(records) if _record_id(record) == deck_id), None)
        before = deck_from_dict(records[index]) if index is not None else None
        if index is None or before is None:
            return DeckChange(outcome=MISSING)
        after = edit(before)
        if isinstance(after, DeckChange):
            return after
        updated = list(records)
        updated[index] = _deck_record(records[index], after)
        saved = self._save_records(updated)
        notice = playability_notice(before, after) if saved else None
        if notice is not None:
            logger.info("Deck %s playable: %s", after.id, is_playable(after))
        return DeckChange(outcome=outcome, deck=after if saved else before, saved=saved, notice=notice)

    def add_question(self, deck_id: str, english: str, korean: str, level: object) -> DeckChange:
        """Append a new question to a custom deck."""
        text = english.strip()
        parsed_level = coerce_level(level)
        if not text or parsed_level is None:
            return DeckChange(outcome=INVALID)
        question = Question(
            id=new_record_id(),
            english=text,
            korean=korean.strip() or MISSING_TRANSLATION,
            level=parsed_level,
            timestamp=now_iso(),
        )
        return self._edit_deck(deck_id, lambda deck: replace(deck, questions=(*deck.questions, question)), CREATED)

    def remove_question(self, deck_id: str, question_id: str) -> DeckChange:
        """Remove one question from a custom deck."""

        def remove(deck: Deck) -> Deck | DeckChange:
            questions = tuple(question for question in deck.questions if question.id != question_id)
            if len(questions) == len(deck.questions):
                return DeckChange(outcome=MISSING, deck=deck)
            return replace(deck, questions=questions)

        return self._edit_deck(deck_id, remove, DELETED)

    def set_question_level(self, deck_id: str, question_id: str, level: object) -> DeckChange:
        """Move a custom deck question to another level."""
        parsed_level = coerce_level(level)
        if parsed_level is None:
            return DeckChange(outcome=INVALID)

        def relevel(deck: Deck) -> Deck | DeckChange:
            if not any(question.id == question_id for question in deck.questions):
                return DeckChange(outcome=MISSING, deck=deck)
            questions = tuple(
                replace(question, level=parsed_level) if question.id == question_id else question
                for question in deck.questions
            )
            return replace(deck, questions=questions)

        return self._edit_deck(deck_id, relevel, UPDATED)

    def add_existing_question(self, deck_id: str, question: Question) -> DeckChange:
        """Copy a question into a custom deck unless its content is already there."""

        def append(deck: Deck) -> Deck | DeckChange:
            if any(item.content_key() == question.content_key() for item in deck.questions):
                return DeckChange(outcome=DUPLICATE, deck=deck)
            return replace(deck, questions=(*deck.questions, question))

        return self._edit_deck(deck_id, append, CREATED)


def _record_id(record: object) -> str | None:
    if not isinstance(record, dict):
        return None
    return str(record.get("id", "")).strip() or None


def _decks_from_records(records: Iterable[object]) -> list[Deck]:
    decks: list[Deck] = []
    for record in records:
        deck = deck_from_dict(record)
        if deck is not None:
            decks.append(deck)
    return decks


def _deck_record(stored: object, deck: Deck) -> dict[str, object]:
    """Serialize an edited deck, keeping stored questions that could not be read."""
    payload = deck_to_dict(deck)
    raw_questions = stored.get("questions") if isinstance(stored, dict) else None
    if isinstance(raw_questions, list):
        unreadable = [item for item in raw_questions if question_from_dict(item) is None]
        if unreadable:
            payload["questions"] = [question_to_dict(question) for question in deck.questions] + unreadable
    return payload


def questions_for_level(deck: Deck, level: int | None = None) -> list[Question]:
    """Filter a deck's questions by level; None keeps them all."""
    if level is None:
        return list(deck.questions)
    return [question for question in deck.questions if question.level == level]
