"""Favorites, question history, and the resume checkpoint."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, replace

from .config import settings
from .content_loader import (
    favorite_from_dict,
    favorite_to_dict,
    history_entry_from_dict,
    history_entry_to_dict,
    new_record_id,
    now_iso,
    recent_session_from_dict,
    recent_session_to_dict,
)
from .decks import DUPLICATE, FAILED, DeckRepository
from .models import FavoriteRecord, HistoryEntry, Question, RecentSession
from .storage import FAVORITES_KEY, HISTORY_KEY, RECENT_SESSION_KEY, KeyValueStore, StorageError

logger = logging.getLogger(__name__)

ADDED = "added"
REMOVED = "removed"
EXISTS = "exists"
RECORDED = "recorded"
MISSING = "missing"


@dataclass(frozen=True)
class RecordResult:
    """Outcome of one favorites/history write."""

    outcome: str
    saved: bool = True


class Recorder:
    """Reads and writes favorites, history, and the recent session record."""

    def __init__(self, store: KeyValueStore, history_limit: int | None = None) -> None:
        self.store = store
        self.history_limit = history_limit if history_limit is not None else settings.HISTORY_LIMIT

    def _read_list(self, key: str) -> list[object]:
        """Return the stored records under key; raises StorageError when unreadable."""
        raw = self.store.get(key)
        if raw is None:
            return []
        if not isinstance(raw, list):
            raise StorageError(f"Stored value for '{key}' is not a list.")
        return list(raw)

    def _load_list(self, key: str) -> list[object]:
        try:
            return self._read_list(key)
        except StorageError:
            logger.exception("Failed to load %s", key)
            return []

    def _records_for_edit(self, key: str) -> list[object] | None:
        try:
            return self._read_list(key)
        except StorageError:
            logger.exception("Failed to load %s for editing", key)
            return None

    def _save(self, key: str, value: object) -> bool:
        try:
            self.store.set(key, value)
        except StorageError:
            logger.exception("Failed to save %s", key)
            return False
        return True

    def load_favorites(self) -> list[FavoriteRecord]:
        favorites: list[FavoriteRecord] = []
        for item in self._load_list(FAVORITES_KEY):
            favorite = favorite_from_dict(item)
            if favorite is not None:
                favorites.append(favorite)
        return favorites

    def is_favorite(self, question: Question) -> bool:
        key = question.content_key()
        return any(favorite.question.content_key() == key for favorite in self.load_favorites())

    def toggle_favorite(self, question: Question, level: int | None = None) -> RecordResult:
        """Remove the question from favorites if present, otherwise add it."""
        records = self._records_for_edit(FAVORITES_KEY)
        if records is None:
            return RecordResult(outcome=FAILED, saved=False)
        key = question.content_key()
        remaining = [record for record in records if _favorite_key(record) != key]
        if len(remaining) < len(records):
            return RecordResult(outcome=REMOVED, saved=self._save(FAVORITES_KEY, remaining))

        snapshot = question if level is None else replace(question, level=level)
        stamp = now_iso()
        favorite = FavoriteRecord(question=replace(snapshot, timestamp=stamp), timestamp=stamp)
        return RecordResult(outcome=ADDED, saved=self._save(FAVORITES_KEY, [*records, favorite_to_dict(favorite)]))

    def add_favorite(self, question: Question) -> RecordResult:
        """Add a question to favorites unless its content is already there."""
        records = self._records_for_edit(FAVORITES_KEY)
        if records is None:
            return RecordResult(outcome=FAILED, saved=False)
        if any(_favorite_key(record) == question.content_key() for record in records):
            return RecordResult(outcome=EXISTS, saved=False)
        stamp = now_iso()
        favorite = FavoriteRecord(question=replace(question, timestamp=stamp), timestamp=stamp)
        return RecordResult(outcome=ADDED, saved=self._save(FAVORITES_KEY, [*records, favorite_to_dict(favorite)]))

    def remove_favorite(self, index: int) -> RecordResult:
        """Remove the favorite at its position in load_favorites()."""
        records = self._records_for_edit(FAVORITES_KEY)
        if records is None:
            return RecordResult(outcome=FAILED, saved=False)
        readable = [position for position, record in enumerate(records) if favorite_from_dict(record) is not None]
        if not (0 <= index < len(readable)):
            return RecordResult(outcome=MISSING, saved=False)
        del records[readable[index]]
        return RecordResult(outcome=REMOVED, saved=self._save(FAVORITES_KEY, records))

    def add_favorite_to_custom_deck(
        self, favorite: FavoriteRecord, deck_id: str, level: int, decks: DeckRepository
    ) -> RecordResult:
        """Copy a favorite into a custom deck at the chosen level."""
        question = replace(favorite.question, id=new_record_id(), level=level)
        change = decks.add_existing_question(deck_id, question)
        if change.outcome == DUPLICATE:
            return RecordResult(outcome=EXISTS, saved=False)
        if change.outcome == FAILED:
            return RecordResult(outcome=FAILED, saved=False)
        if change.deck is None:
            return RecordResult(outcome=MISSING, saved=False)
        return RecordResult(outcome=ADDED, saved=change.saved)

    def load_history(self) -> list[HistoryEntry]:
        """Return history entries, most recent first."""
        entries: list[HistoryEntry] = []
        for item in self._load_list(HISTORY_KEY):
            entry = history_entry_from_dict(item)
            if entry is not None:
                entries.append(entry)
        return entries

    def record_history(
        self,
        question: Question,
        deck_ids: Iterable[str] = (),
        game_type: str | None = None,
    ) -> RecordResult:
        """Prepend a displayed question and keep only the newest entries."""
        records = self._records_for_edit(HISTORY_KEY)
        if records is None:
            return RecordResult(outcome=FAILED, saved=False)
        entry = HistoryEntry(question=question, timestamp=now_iso(), deck_ids=tuple(deck_ids), game_type=game_type)
        history = [history_entry_to_dict(entry), *records]
        return RecordResult(outcome=RECORDED, saved=self._save(HISTORY_KEY, history[: self.history_limit]))

    def clear_history(self) -> bool:
        try:
            self.store.remove(HISTORY_KEY)
        except StorageError:
            logger.exception("Failed to clear history")
            return False
        return True

    def save_recent_session(self, session: RecentSession) -> bool:
        return self._save(RECENT_SESSION_KEY, recent_session_to_dict(session))

    def load_recent_session(self) -> RecentSession | None:
        try:
            raw = self.store.get(RECENT_SESSION_KEY)
        except StorageError:
            logger.exception("Failed to load recent session")
            return None
        return recent_session_from_dict(raw)

    def clear_recent_session(self) -> bool:
        try:
            self.store.remove(RECENT_SESSION_KEY)
        except StorageError:
            logger.exception("Failed to clear recent session")
            return False
        return True


def suggest_level(favorite: FavoriteRecord) -> int:
    """Default level offered when copying a favorite into a deck."""
    return favorite.question.level


def _favorite_key(record: object) -> tuple[str, str] | None:
    favorite = favorite_from_dict(record)
    return favorite.question.content_key() if favorite is not None else None
