"""CLI entrypoint for the leveled question game."""

from __future__ import annotations

import argparse
from collections.abc import Callable

from . import __version__
from .config import settings, setup_logging
from .decks import (
    CREATED,
    DELETED,
    DUPLICATE,
    FAILED,
    INVALID,
    UPDATED,
    DeckChange,
    NoPlayableQuestions,
    questions_for_level,
)
from .engine import SelectionSession
from .models import LEVELS, ORDER_RANDOM, ORDER_SEQUENTIAL, Question
from .recorder import ADDED, EXISTS, REMOVED, RecordResult, suggest_level
from .service import SAVE_FAILED_NOTICE, DeckSummary, DeeperService

InputFn = Callable[[str], str]
PrintFn = Callable[[str], None]
MENU_QUIT_COMMANDS = {"q"}
MENU_BACK_COMMANDS = {"b"}


class QuitApp(Exception):
    """Signal immediate app exit from nested menu flows."""


def _service() -> DeeperService:
    """Create app service with the configured database path."""
    return DeeperService(db_path=settings.db_path())


def run(argv: list[str] | None = None) -> int:
    """Run the CLI application."""
    parser = argparse.ArgumentParser(prog="deeper", description="Leveled conversation questions")
    parser.add_argument("command", nargs="?", default="play", choices=["play"])
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    _ = parser.parse_args(argv)
    setup_logging()
    return play_shell()


def play_shell(input_fn: InputFn = input, print_fn: PrintFn = print) -> int:
    """Run persistent menu-driven shell."""
    service = _service()
    try:
        try:
            while True:
                print_fn("\n=== Deeper ===")
                print_fn("1) Play")
                print_fn("2) Resume last session")
                print_fn("3) Decks")
                print_fn("4) Favorites")
                print_fn("5) History")
                print_fn("6) Clear all data")
                print_fn("q) Quit")
                choice = input_fn("Choose: ").strip().lower()

                if choice == "1":
                    _play_flow(service, input_fn, print_fn)
                elif choice == "2":
                    _resume_flow(service, input_fn, print_fn)
                elif choice == "3":
                    _decks_flow(service, input_fn, print_fn)
                elif choice == "4":
                    _favorites_flow(service, input_fn, print_fn)
                elif choice == "5":
                    _history_flow(service, input_fn, print_fn)
                elif choice == "6":
                    _clear_data_flow(service, input_fn, print_fn)
                elif choice in MENU_QUIT_COMMANDS:
                    return 0
                else:
                    print_fn("Invalid choice.")
        except QuitApp:
            return 0
    finally:
        service.close()


def _counts_text(counts: dict[int, int]) -> str:
    return " • ".join(f"Level {level}: {counts.get(level, 0)}" for level in LEVELS)


def _pick_index(choice: str, count: int) -> int | None:
    """Map a 1-based menu choice to a list index."""
    if not choice.isdigit():
        return None
    index = int(choice) - 1
    if not (0 <= index < count):
        return None
    return index


def _print_deck_change(change: DeckChange, print_fn: PrintFn) -> None:
    if not change.saved:
        print_fn(SAVE_FAILED_NOTICE)
        return
    if change.notice:
        print_fn(change.notice)


def _print_record_failure(result: RecordResult, print_fn: PrintFn) -> None:
    if result.outcome in {ADDED, REMOVED} and not result.saved:
        print_fn(SAVE_FAILED_NOTICE)


def _parse_deck_selection(raw: str, summaries: list[DeckSummary]) -> list[str] | None:
    """Parse comma separated deck numbers; blank means the default deck."""
    if not raw:
        return []
    deck_ids: list[str] = []
    for part in raw.split(","):
        index = _pick_index(part.strip(), len(summaries))
        if index is None:
            return None
        deck_ids.append(summaries[index].deck.id)
    return deck_ids


def _play_flow(service: DeeperService, input_fn: InputFn, print_fn: PrintFn) -> None:
    """Select decks and order, then play."""
    summaries = service.selectable_decks()
    print_fn("\n=== Select Decks ===")
    print_fn("Questions will be drawn from all selected decks.")
    for idx, summary in enumerate(summaries, start=1):
        print_fn(f"{idx}) {summary.deck.name} ({_counts_text(summary.counts)})")
    if not any(not summary.deck.is_default for summary in summaries):
        print_fn("No custom decks available with questions in all levels.")
    print_fn("b) Back")
    print_fn("q) Quit")

    raw = input_fn("Decks (e.g. 1,2; blank for default): ").strip().lower()
    if raw in MENU_BACK_COMMANDS:
        return
    if raw in MENU_QUIT_COMMANDS:
        raise QuitApp()
    deck_ids = _parse_deck_selection(raw, summaries)
    if deck_ids is None:
        print_fn("Invalid deck selection.")
        return

    order = input_fn("Order: r) Random  s) In order [r]: ").strip().lower()
    order_mode = ORDER_SEQUENTIAL if order == "s" else ORDER_RANDOM
    try:
        session = service.start_game(deck_ids, order_mode)
    except NoPlayableQuestions:
        print_fn("No questions found in selected decks.")
        return
    _run_session(service, session, input_fn, print_fn)


def _resume_flow(service: DeeperService, input_fn: InputFn, print_fn: PrintFn) -> None:
    session = service.resume_recent_session()
    if session is None:
        print_fn("No session to resume.")
        return
    _run_session(service, session, input_fn, print_fn)


def _print_question(
    service: DeeperService, session: SelectionSession, show_translation: bool, print_fn: PrintFn
) -> None:
    """Print the displayed question or the empty-level placeholder."""
    current = session.current
    if current is None:
        return
    marker = ""
    if isinstance(current, Question) and service.is_favorite(current):
        marker = " ♥"
    print_fn(f"\n{current.english}{marker}")
    if show_translation:
        print_fn(current.korean)


def _run_session(service: DeeperService, session: SelectionSession, input_fn: InputFn, print_fn: PrintFn) -> None:
    """Play one session until it completes or the player leaves."""
    show_translation = False
    print_fn(f"\n=== Level {session.level} ===")
    while True:
        if session.complete:
            print_fn("\n=== The End ===")
            print_fn("Thanks for going deeper.")
            return

        _print_question(service, session, show_translation, print_fn)
        level_label = "End game" if session.is_last_level else "Next level"
        print_fn(f"n) Next question  l) {level_label}  f) Favorite  t) Translation  s) Save and leave  b) Abandon")
        choice = input_fn("Choose: ").strip().lower()

        if choice == "n":
            session = service.next_question(session)
        elif choice == "l":
            session = service.advance_level(session)
            if not session.complete:
                print_fn(f"\n=== Level {session.level} ===")
        elif choice == "f":
            result = service.toggle_favorite(session)
            if result is None:
                print_fn("There is no question to favorite.")
                continue
            if result.outcome == FAILED:
                print_fn(SAVE_FAILED_NOTICE)
                continue
            print_fn("Added to favorites." if result.outcome == ADDED else "Removed from favorites.")
            _print_record_failure(result, print_fn)
        elif choice == "t":
            show_translation = not show_translation
        elif choice == "s":
            if service.save_checkpoint(session):
                print_fn("Session saved. Resume it from the main menu.")
            else:
                print_fn(SAVE_FAILED_NOTICE)
            return
        elif choice in MENU_BACK_COMMANDS:
            service.abandon(session)
            print_fn("Session abandoned.")
            return
        elif choice in MENU_QUIT_COMMANDS:
            service.abandon(session)
            raise QuitApp()
        else:
            print_fn("Invalid choice.")


def _decks_flow(service: DeeperService, input_fn: InputFn, print_fn: PrintFn) -> None:
    """List custom decks and open one for editing."""
    while True:
        summaries = service.custom_deck_summaries()
        print_fn("\n=== Decks ===")
        if summaries:
            for idx, summary in enumerate(summaries, start=1):
                status = "" if summary.playable else " [needs all levels]"
                print_fn(f"{idx}) {summary.deck.name} ({_counts_text(summary.counts)}){status}")
        else:
            print_fn("No custom decks yet.")
        print_fn("n) New deck")
        print_fn("b) Back")
        print_fn("q) Quit")
        choice = input_fn("Choose deck: ").strip().lower()

        if choice in MENU_BACK_COMMANDS:
            return
        if choice in MENU_QUIT_COMMANDS:
            raise QuitApp()
        if choice == "n":
            name = input_fn("New deck name: ")
            change = service.create_deck(name)
            if change.outcome == INVALID:
                print_fn("Please enter a name for your question set.")
            elif change.outcome == DUPLICATE:
                print_fn("A set with this name already exists.")
            elif change.outcome == FAILED:
                print_fn(SAVE_FAILED_NOTICE)
            elif change.deck is not None:
                print_fn(f"Created deck '{change.deck.name}'.")
                _print_deck_change(change, print_fn)
            continue

        index = _pick_index(choice, len(summaries))
        if index is None:
            print_fn("Invalid choice.")
            continue
        _deck_detail_flow(service, summaries[index].deck.id, input_fn, print_fn)


def _read_level(raw: str, default: int | None = None) -> int | None:
    value = raw.strip()
    if not value and default is not None:
        return default
    if value.isdigit() and int(value) in LEVELS:
        return int(value)
    return None


def _deck_detail_flow(service: DeeperService, deck_id: str, input_fn: InputFn, print_fn: PrintFn) -> None:
    """Add, remove, and re-level questions in one custom deck."""
    level_filter: int | None = None
    while True:
        deck = service.decks.get_custom_deck(deck_id)
        if deck is None:
            print_fn("Deck was not found.")
            return
        summary = next((item for item in service.custom_deck_summaries() if item.deck.id == deck_id), None)
        print_fn(f"\n=== Deck: {deck.name} ===")
        if summary is not None:
            print_fn(_counts_text(summary.counts))
        questions = questions_for_level(deck, level_filter)
        if questions:
            for idx, question in enumerate(questions, start=1):
                print_fn(f"{idx}) [L{question.level}] {question.english} / {question.korean}")
        elif level_filter is None:
            print_fn("No questions in this set. Add one with 'a'.")
        else:
            print_fn(f"No Level {level_filter} questions in this set.")
        print_fn("a) Add question  d) Delete question  e) Change level  f) Filter by level  x) Delete deck")
        print_fn("b) Back")
        print_fn("q) Quit")
        choice = input_fn("Choose: ").strip().lower()

        if choice in MENU_BACK_COMMANDS:
            return
        if choice in MENU_QUIT_COMMANDS:
            raise QuitApp()
        if choice == "a":
            level = _read_level(input_fn("Level (1-3): "))
            if level is None:
                print_fn("Invalid level.")
                continue
            english = input_fn("Question: ")
            korean = input_fn("Translation (optional): ")
            change = service.add_question(deck_id, english, korean, level)
            if change.outcome == INVALID:
                print_fn("Please enter a question.")
            elif change.outcome == CREATED:
                print_fn("Question added.")
                _print_deck_change(change, print_fn)
            elif change.outcome == FAILED:
                print_fn(SAVE_FAILED_NOTICE)
            else:
                print_fn("Deck was not found.")
        elif choice == "d":
            index = _pick_index(input_fn("Question number: ").strip(), len(questions))
            if index is None:
                print_fn("Invalid choice.")
                continue
            change = service.remove_question(deck_id, questions[index].id)
            if change.outcome == DELETED:
                print_fn("Question deleted.")
                _print_deck_change(change, print_fn)
            elif change.outcome == FAILED:
                print_fn(SAVE_FAILED_NOTICE)
        elif choice == "e":
            index = _pick_index(input_fn("Question number: ").strip(), len(questions))
            if index is None:
                print_fn("Invalid choice.")
                continue
            level = _read_level(input_fn("New level (1-3): "))
            if level is None:
                print_fn("Invalid level.")
                continue
            change = service.set_question_level(deck_id, questions[index].id, level)
            if change.outcome == UPDATED:
                print_fn(f"Question moved to Level {level}.")
                _print_deck_change(change, print_fn)
            elif change.outcome == FAILED:
                print_fn(SAVE_FAILED_NOTICE)
        elif choice == "f":
            raw = input_fn("Show level (1-3, blank for all): ").strip()
            level_filter = None if not raw else _read_level(raw)
        elif choice == "x":
            print_fn(f"WARNING: This permanently deletes '{deck.name}' and its questions.")
            confirm = input_fn("Type YES to confirm deletion: ").strip()
            if confirm != "YES":
                print_fn("Deletion cancelled.")
                continue
            change = service.delete_deck(deck_id)
            if change.saved:
                print_fn(f"Deleted deck '{deck.name}'.")
            else:
                print_fn(SAVE_FAILED_NOTICE)
            return
        else:
            print_fn("Invalid choice.")


def _favorites_flow(service: DeeperService, input_fn: InputFn, print_fn: PrintFn) -> None:
    """List favorites, remove them, or copy them into a custom deck."""
    while True:
        favorites = service.list_favorites()
        print_fn("\n=== Favorites ===")
        if favorites:
            for idx, favorite in enumerate(favorites, start=1):
                question = favorite.question
                print_fn(f"{idx}) [L{question.level}] {question.english} (saved {favorite.timestamp[:10]})")
        else:
            print_fn("No favorites yet. Press f while viewing a question to add it here.")
        print_fn("r) Remove favorite  a) Add to deck")
        print_fn("b) Back")
        print_fn("q) Quit")
        choice = input_fn("Choose: ").strip().lower()

        if choice in MENU_BACK_COMMANDS:
            return
        if choice in MENU_QUIT_COMMANDS:
            raise QuitApp()
        if choice not in {"r", "a"}:
            print_fn("Invalid choice.")
            continue
        index = _pick_index(input_fn("Favorite number: ").strip(), len(favorites))
        if index is None:
            print_fn("Invalid choice.")
            continue

        if choice == "r":
            result = service.remove_favorite(index)
            print_fn("Removed from favorites." if result.saved else SAVE_FAILED_NOTICE)
            continue

        favorite = favorites[index]
        decks = service.custom_deck_summaries()
        if not decks:
            print_fn("No custom sets found. Create a custom set first.")
            continue
        for idx, summary in enumerate(decks, start=1):
            print_fn(f"{idx}) {summary.deck.name}")
        deck_index = _pick_index(input_fn("Add to deck: ").strip(), len(decks))
        if deck_index is None:
            print_fn("Invalid choice.")
            continue
        default_level = suggest_level(favorite)
        level = _read_level(input_fn(f"Level (1-3) [{default_level}]: "), default=default_level)
        if level is None:
            print_fn("Invalid level.")
            continue
        result = service.add_favorite_to_deck(favorite, decks[deck_index].deck.id, level)
        if result.outcome == EXISTS:
            print_fn("This question already exists in the selected set.")
        elif result.outcome == ADDED and result.saved:
            print_fn(f"Question added to the selected set as Level {level}!")
        elif result.outcome in {ADDED, FAILED}:
            print_fn(SAVE_FAILED_NOTICE)
        else:
            print_fn("Deck was not found.")


def _history_flow(service: DeeperService, input_fn: InputFn, print_fn: PrintFn) -> None:
    """Show question history; favorite or clear entries."""
    while True:
        entries = service.list_history()
        print_fn("\n=== History ===")
        if entries:
            for idx, entry in enumerate(entries, start=1):
                print_fn(f"{idx}) [L{entry.question.level}] {entry.question.english} ({entry.timestamp[:16]})")
        else:
            print_fn("Questions you view during gameplay will appear here.")
        print_fn("f) Add to favorites  c) Clear history")
        print_fn("b) Back")
        print_fn("q) Quit")
        choice = input_fn("Choose: ").strip().lower()

        if choice in MENU_BACK_COMMANDS:
            return
        if choice in MENU_QUIT_COMMANDS:
            raise QuitApp()
        if choice == "c":
            confirm = input_fn("Type YES to clear your question history: ").strip()
            if confirm != "YES":
                print_fn("Clear cancelled.")
            elif service.clear_history():
                print_fn("History cleared.")
            else:
                print_fn("Could not clear your history.")
        elif choice == "f":
            index = _pick_index(input_fn("Entry number: ").strip(), len(entries))
            if index is None:
                print_fn("Invalid choice.")
                continue
            result = service.favorite_from_history(entries[index])
            if result.outcome == EXISTS:
                print_fn("This question is already in your favorites.")
            elif result.saved:
                print_fn("Question added to favorites!")
            else:
                print_fn("Could not add to favorites.")
        else:
            print_fn("Invalid choice.")


def _clear_data_flow(service: DeeperService, input_fn: InputFn, print_fn: PrintFn) -> None:
    """Remove favorites, custom decks, history, and the saved session."""
    print_fn("WARNING: This permanently deletes favorites, custom decks, history, and any saved session.")
    confirm = input_fn("Type YES to confirm: ").strip()
    if confirm != "YES":
        print_fn("Clear cancelled.")
        return
    if service.clear_all_data():
        print_fn("All data cleared.")
    else:
        print_fn("Could not clear your data.")


def main_entry() -> None:
    """Console script entrypoint."""
    raise SystemExit(run())


if __name__ == "__main__":  # pragma: no cover
    main_entry()
