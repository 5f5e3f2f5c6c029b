"""Application service for decks, play sessions, favorites, and history."""

from __future__ import annotations

import logging
import random
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from .config import settings
from .content_loader import BundledQuestions
from .decks import DeckChange, DeckRepository, NoPlayableQuestions
from .engine import SelectionEngine, SelectionSession
from .models import Deck, FavoriteRecord, HistoryEntry, Question, RecentSession
from .recorder import Recorder, RecordResult
from .storage import KeyValueStore, clear_all_data
from .validation import is_playable, level_counts

logger = logging.getLogger(__name__)

GAME_TYPE = "custom"
SAVE_FAILED_NOTICE = "Could not save your changes."


@dataclass(frozen=True)
class DeckSummary:
    """Deck plus its per-level counts for listing."""

    deck: Deck
    counts: dict[int, int]
    playable: bool


class DeeperService:
    """Coordinates the deck repository, selection engine, and recorder."""

    def __init__(
        self,
        db_path: Path | str,
        *,
        rng: random.Random | None = None,
        bundled: BundledQuestions | None = None,
        avoid_immediate_repeat: bool | None = None,
    ) -> None:
        """Open storage and seed the default deck on first run."""
        self.store = KeyValueStore(db_path)
        self.decks = DeckRepository(self.store, bundled)
        self.recorder = Recorder(self.store)
        if avoid_immediate_repeat is None:
            avoid_immediate_repeat = settings.AVOID_IMMEDIATE_REPEAT
        self.engine = SelectionEngine(
            rng,
            on_display=self._record_displayed,
            avoid_immediate_repeat=avoid_immediate_repeat,
        )
        self.decks.ensure_default_deck()

    def _record_displayed(self, question: Question, session: SelectionSession) -> None:
        result = self.recorder.record_history(question, session.deck_ids, GAME_TYPE)
        if not result.saved:
            logger.error("Failed to update history for question %s", question.id)

    def selectable_decks(self) -> list[DeckSummary]:
        """Return the default deck (when seeded) and every playable custom deck."""
        summaries: list[DeckSummary] = []
        default = self.decks.load_default_deck()
        if default is not None:
            summaries.append(_summary(default))
        summaries.extend(_summary(deck) for deck in self.decks.list_playable_custom_decks())
        return summaries

    def custom_deck_summaries(self) -> list[DeckSummary]:
        """Return all custom decks for deck management."""
        return [_summary(deck) for deck in self.decks.list_custom_decks()]

    def create_deck(self, name: str) -> DeckChange:
        return self.decks.create_deck(name)

    def delete_deck(self, deck_id: str) -> DeckChange:
        return self.decks.delete_deck(deck_id)

    def add_question(self, deck_id: str, english: str, korean: str, level: object) -> DeckChange:
        return self.decks.add_question(deck_id, english, korean, level)

    def remove_question(self, deck_id: str, question_id: str) -> DeckChange:
        return self.decks.remove_question(deck_id, question_id)

    def set_question_level(self, deck_id: str, question_id: str, level: object) -> DeckChange:
        return self.decks.set_question_level(deck_id, question_id, level)

    def start_game(self, deck_ids: Iterable[str], order_mode: str) -> SelectionSession:
        """Merge the selected decks and start at level 1.

        Raises NoPlayableQuestions when the selection holds no questions.
        """
        selected = tuple(deck_ids)
        questions = self.decks.merge_questions(selected)
        return self.engine.start_session(questions, order_mode, selected)

    def next_question(self, session: SelectionSession) -> SelectionSession:
        return self.engine.next(session)

    def advance_level(self, session: SelectionSession) -> SelectionSession:
        """Advance a level, checkpointing for resume or clearing it at the end."""
        advanced = self.engine.advance_level(session)
        if advanced.complete:
            self.recorder.clear_recent_session()
            return advanced
        self.save_checkpoint(advanced)
        return advanced

    def save_checkpoint(self, session: SelectionSession) -> bool:
        """Persist the session position so it can be resumed later."""
        checkpoint = RecentSession(
            type=GAME_TYPE,
            deck_ids=session.deck_ids,
            level=session.level,
            question_index=session.cursor,
            order_mode=session.order_mode,
        )
        return self.recorder.save_recent_session(checkpoint)

    def abandon(self, session: SelectionSession) -> bool:
        """Drop a session and its resume checkpoint."""
        logger.info("Session abandoned at level %d", session.level)
        return self.recorder.clear_recent_session()

    def recent_session(self) -> RecentSession | None:
        return self.recorder.load_recent_session()

    def resume_recent_session(self) -> SelectionSession | None:
        """Rebuild the checkpointed session, or None when there is nothing to resume."""
        recent = self.recorder.load_recent_session()
        if recent is None:
            return None
        try:
            questions = self.decks.merge_questions(recent.deck_ids)
        except NoPlayableQuestions:
            logger.warning("Recent session decks no longer hold questions")
            self.recorder.clear_recent_session()
            return None
        return self.engine.restore_session(
            questions, recent.order_mode, recent.level, recent.question_index, recent.deck_ids
        )

    def is_favorite(self, question: Question) -> bool:
        return self.recorder.is_favorite(question)

    def toggle_favorite(self, session: SelectionSession) -> RecordResult | None:
        """Toggle the displayed question; None when no question is displayed."""
        if not isinstance(session.current, Question):
            return None
        return self.recorder.toggle_favorite(session.current, session.level)

    def list_favorites(self) -> list[FavoriteRecord]:
        return self.recorder.load_favorites()

    def remove_favorite(self, index: int) -> RecordResult:
        return self.recorder.remove_favorite(index)

    def add_favorite_to_deck(self, favorite: FavoriteRecord, deck_id: str, level: int) -> RecordResult:
        return self.recorder.add_favorite_to_custom_deck(favorite, deck_id, level, self.decks)

    def list_history(self) -> list[HistoryEntry]:
        return self.recorder.load_history()

    def favorite_from_history(self, entry: HistoryEntry) -> RecordResult:
        return self.recorder.add_favorite(entry.question)

    def clear_history(self) -> bool:
        return self.recorder.clear_history()

    def clear_all_data(self) -> bool:
        return clear_all_data(self.store)

    def close(self) -> None:
        """Close resources."""
        self.store.close()


def _summary(deck: Deck) -> DeckSummary:
    return DeckSummary(deck=deck, counts=level_counts(deck.questions), playable=is_playable(deck))
