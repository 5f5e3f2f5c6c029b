import pytest

from deeper.content_loader import BundledQuestions
from deeper.decks import DeckRepository
from deeper.models import Question, RecentSession
from deeper.recorder import ADDED, EXISTS, FAILED, MISSING, RECORDED, REMOVED, Recorder, suggest_level
from deeper.storage import FAVORITES_KEY, HISTORY_KEY, KeyValueStore, StorageError


def _question(qid: str, level: int = 1, english: str | None = None) -> Question:
    return Question(id=qid, english=english or f"Question {qid}", korean=f"질문 {qid}", level=level, timestamp="t0")


def test_toggle_favorite_twice_restores_favorites(store: KeyValueStore) -> None:
    recorder = Recorder(store)
    kept = _question("kept")
    recorder.toggle_favorite(kept)
    before = store.get(FAVORITES_KEY)

    question = _question("x", level=2)
    assert recorder.toggle_favorite(question).outcome == ADDED
    assert recorder.is_favorite(question)
    assert recorder.toggle_favorite(question).outcome == REMOVED
    assert not recorder.is_favorite(question)
    assert store.get(FAVORITES_KEY) == before


def test_favorites_match_on_content_not_id(store: KeyValueStore) -> None:
    recorder = Recorder(store)
    recorder.toggle_favorite(_question("a", english="Same"))
    twin = Question(id="other", english="Same", korean="질문 a", level=1, timestamp="t9")
    assert recorder.is_favorite(twin)
    assert recorder.toggle_favorite(twin).outcome == REMOVED
    assert recorder.load_favorites() == []


def test_toggle_favorite_snapshots_session_level(store: KeyValueStore) -> None:
    recorder = Recorder(store)
    recorder.toggle_favorite(_question("x", level=1), level=3)
    [favorite] = recorder.load_favorites()
    assert favorite.question.level == 3
    assert favorite.question.timestamp == favorite.timestamp
    assert suggest_level(favorite) == 3


def test_add_favorite_reports_existing(store: KeyValueStore) -> None:
    recorder = Recorder(store)
    question = _question("h")
    assert recorder.add_favorite(question).outcome == ADDED
    result = recorder.add_favorite(question)
    assert result.outcome == EXISTS
    assert result.saved is False
    assert len(recorder.load_favorites()) == 1


def test_remove_favorite_by_index(store: KeyValueStore) -> None:
    recorder = Recorder(store)
    recorder.add_favorite(_question("a"))
    recorder.add_favorite(_question("b"))
    assert recorder.remove_favorite(0).outcome == REMOVED
    assert [favorite.question.id for favorite in recorder.load_favorites()] == ["b"]
    assert recorder.remove_favorite(5).outcome == MISSING


def test_add_favorite_to_custom_deck(store: KeyValueStore, small_bundle: BundledQuestions) -> None:
    decks = DeckRepository(store, small_bundle)
    deck = decks.create_deck("Faves").deck
    assert deck is not None
    recorder = Recorder(store)
    recorder.add_favorite(_question("f", level=1))
    [favorite] = recorder.load_favorites()

    assert recorder.add_favorite_to_custom_deck(favorite, deck.id, 3, decks).outcome == ADDED
    copied = decks.get_custom_deck(deck.id)
    assert copied is not None
    [question] = copied.questions
    assert question.level == 3
    assert question.id != favorite.question.id
    assert question.english == favorite.question.english

    assert recorder.add_favorite_to_custom_deck(favorite, deck.id, 2, decks).outcome == EXISTS
    assert recorder.add_favorite_to_custom_deck(favorite, "gone", 2, decks).outcome == MISSING


def test_history_keeps_newest_first_and_truncates(store: KeyValueStore) -> None:
    recorder = Recorder(store, history_limit=100)
    for index in range(105):
        assert recorder.record_history(_question(str(index)), ["default"], "custom").outcome == RECORDED

    history = recorder.load_history()
    assert len(history) == 100
    assert history[0].question.id == "104"
    assert history[-1].question.id == "5"
    assert history[0].deck_ids == ("default",)
    assert history[0].game_type == "custom"


def test_clear_history(store: KeyValueStore) -> None:
    recorder = Recorder(store)
    recorder.record_history(_question("a"))
    assert recorder.clear_history() is True
    assert recorder.load_history() == []
    assert store.get(HISTORY_KEY) is None


def test_recent_session_round_trip(store: KeyValueStore) -> None:
    recorder = Recorder(store)
    assert recorder.load_recent_session() is None
    checkpoint = RecentSession(
        type="custom", deck_ids=("default", "deck_1"), level=2, question_index=4, order_mode="sequential"
    )
    assert recorder.save_recent_session(checkpoint) is True
    assert recorder.load_recent_session() == checkpoint
    assert recorder.clear_recent_session() is True
    assert recorder.load_recent_session() is None


def test_write_failure_reports_not_saved(store: KeyValueStore, monkeypatch: pytest.MonkeyPatch) -> None:
    recorder = Recorder(store)

    def failing_set(key: str, value: object) -> None:
        raise StorageError(f"Could not write '{key}'.")

    monkeypatch.setattr(store, "set", failing_set)
    result = recorder.toggle_favorite(_question("x"))
    assert result.outcome == ADDED
    assert result.saved is False
    assert recorder.record_history(_question("x")).saved is False
    assert recorder.load_favorites() == []


def test_read_failure_yields_empty_lists(store: KeyValueStore, monkeypatch: pytest.MonkeyPatch) -> None:
    recorder = Recorder(store)
    recorder.add_favorite(_question("a"))

    def failing_get(key: str) -> object:
        raise StorageError(f"Could not read '{key}'.")

    monkeypatch.setattr(store, "get", failing_get)
    assert recorder.load_favorites() == []
    assert recorder.load_history() == []
    assert recorder.load_recent_session() is None


def test_malformed_records_are_skipped(store: KeyValueStore) -> None:
    store.set(FAVORITES_KEY, [{"english": "Good one", "korean": "좋아"}, "garbage", {"english": ""}])
    favorites = Recorder(store).load_favorites()
    assert [favorite.question.english for favorite in favorites] == ["Good one"]


def test_failed_read_aborts_favorite_and_history_writes(
    store: KeyValueStore, monkeypatch: pytest.MonkeyPatch
) -> None:
    recorder = Recorder(store)
    recorder.add_favorite(_question("a"))
    recorder.add_favorite(_question("b"))
    recorder.record_history(_question("a"))
    favorites_before = store.get(FAVORITES_KEY)
    history_before = store.get(HISTORY_KEY)

    def failing_get(key: str) -> object:
        raise StorageError(f"Could not read '{key}'.")

    monkeypatch.setattr(store, "get", failing_get)
    results = [
        recorder.toggle_favorite(_question("c")),
        recorder.add_favorite(_question("d")),
        recorder.remove_favorite(0),
        recorder.record_history(_question("e")),
    ]
    assert {(result.outcome, result.saved) for result in results} == {(FAILED, False)}

    monkeypatch.undo()
    assert store.get(FAVORITES_KEY) == favorites_before
    assert store.get(HISTORY_KEY) == history_before


def test_corrupt_favorites_are_not_overwritten(store: KeyValueStore) -> None:
    with store._conn:  # noqa: SLF001
        store._conn.execute(  # noqa: SLF001
            "INSERT INTO kv (key, value, updated_at) VALUES (?, ?, ?)", (FAVORITES_KEY, "{broken", "now")
        )
    recorder = Recorder(store)

    assert recorder.load_favorites() == []
    assert recorder.add_favorite(_question("x")).outcome == FAILED
    assert recorder.toggle_favorite(_question("x")).outcome == FAILED
    row = store._conn.execute("SELECT value FROM kv WHERE key = ?", (FAVORITES_KEY,)).fetchone()  # noqa: SLF001
    assert row["value"] == "{broken"


def test_favorite_edits_keep_unreadable_records(store: KeyValueStore) -> None:
    store.set(FAVORITES_KEY, ["garbage", {"english": "First", "korean": "하나", "level": 1}])
    recorder = Recorder(store)

    assert recorder.toggle_favorite(_question("n")).outcome == ADDED
    assert store.get(FAVORITES_KEY)[0] == "garbage"

    assert recorder.remove_favorite(0).outcome == REMOVED
    stored = store.get(FAVORITES_KEY)
    assert stored[0] == "garbage"
    assert [favorite.question.id for favorite in recorder.load_favorites()] == ["n"]
