import json

from screener.interview.models import Difficulty, Question
from screener.interview.store import CandidateStore


def _question(prompt: str = "What is JSX?") -> Question:
    return Question(difficulty=Difficulty.EASY, prompt=prompt, time_limit_sec=20, started_at=100.0)


def test_mutations_on_unknown_ids_are_noops():
    store = CandidateStore()
    candidate = store.create(name="Ada Lovelace", email="ada@example.com", phone="123")

    assert store.patch_contact("missing", {"name": "x"}) is None
    assert store.append_chat("missing", "user", "hi") is False
    assert store.append_question("missing", _question(), expected_index=0) is None
    assert store.answer_question(candidate.id, "missing", "a", answered_at=1.0) is None
    assert store.apply_score(candidate.id, "missing", 10, "ok") is False
    assert store.complete("missing", "summary", 10) is False
    store.set_active("missing")
    assert store.active_id == candidate.id


def test_first_answer_wins():
    store = CandidateStore()
    candidate = store.create(name="Ada Lovelace", email="ada@example.com", phone="123")
    question = _question()
    store.append_question(candidate.id, question, expected_index=0)

    first = store.answer_question(candidate.id, question.id, "first", answered_at=5.0)
    second = store.answer_question(candidate.id, question.id, "second", answered_at=6.0)

    assert first is not None and first.evaluating is True
    assert second is None
    stored = store.get(candidate.id).questions[0]
    assert stored.answer == "first"
    assert stored.answered_at == 5.0


def test_append_question_requires_expected_index():
    store = CandidateStore()
    candidate = store.create(name="Ada Lovelace", email="ada@example.com", phone="123")

    assert store.append_question(candidate.id, _question("one"), expected_index=0) == 1
    assert store.append_question(candidate.id, _question("stale"), expected_index=0) is None
    assert [q.prompt for q in store.get(candidate.id).questions] == ["one"]


def test_late_scores_are_dropped():
    store = CandidateStore()
    candidate = store.create(name="Ada Lovelace", email="ada@example.com", phone="123")
    question = _question()
    store.append_question(candidate.id, question, expected_index=0)

    # not answered yet
    assert store.apply_score(candidate.id, question.id, 50, "early") is False

    store.answer_question(candidate.id, question.id, "answer", answered_at=1.0)
    assert store.apply_score(candidate.id, question.id, 70, "first") is True
    assert store.apply_score(candidate.id, question.id, 10, "late") is False

    stored = store.get(candidate.id).questions[0]
    assert (stored.score, stored.feedback, stored.evaluating) == (70, "first", False)


def test_reads_are_copies():
    store = CandidateStore()
    candidate = store.create(name="Ada Lovelace", email="ada@example.com", phone="123")

    snapshot = store.get(candidate.id)
    snapshot.name = "Mallory"
    snapshot.questions.append(_question())

    fresh = store.get(candidate.id)
    assert fresh.name == "Ada Lovelace"
    assert fresh.questions == []


def test_reset_keeps_history_and_listing_sorts_by_score():
    store = CandidateStore()
    first = store.create(name="Ada Lovelace", email="ada@example.com", phone="1")
    store.complete(first.id, "good", 55)
    second = store.create(name="Alan Turing", email="alan@example.com", phone="2")
    store.complete(second.id, "great", 90)
    third = store.create(name="Grace Hopper", email="grace@navy.mil", phone="3")

    assert store.reset_active() == third.id
    assert store.active_id is None

    listed = store.list_candidates()
    assert [c.id for c in listed] == [second.id, first.id, third.id]
    assert [c.name for c in store.list_candidates("NAVY")] == ["Grace Hopper"]
    assert [c.name for c in store.list_candidates("al")] == ["Alan Turing"]


def test_snapshot_persists_to_disk_and_reloads(tmp_path):
    path = tmp_path / "store.json"
    store = CandidateStore(path=path, clock=lambda: 1000.0)
    candidate = store.create(name="Ada Lovelace", email="ada@example.com", phone="")
    question = _question()
    store.append_question(candidate.id, question, expected_index=0)
    store.append_chat(candidate.id, "assistant", question.prompt)

    payload = json.loads(path.read_text(encoding="utf-8"))
    assert payload["candidates"]["active_candidate_id"] == candidate.id
    assert payload["candidates"]["list"][0]["questions"][0]["difficulty"] == "easy"
    assert "session" in payload

    reloaded = CandidateStore(path=path)
    assert reloaded.load() is True
    restored = reloaded.get(candidate.id)
    assert restored.questions[0].id == question.id
    assert restored.questions[0].started_at == 100.0
    assert restored.chat[0].role == "assistant"
    assert restored.missing_fields() == ["phone"]
    assert reloaded.session_info()["welcome_back"] is True

    reloaded.acknowledge_welcome_back()
    assert reloaded.session_info()["welcome_back"] is False


def test_load_tolerates_garbage(tmp_path):
    path = tmp_path / "store.json"
    path.write_text("{not json", encoding="utf-8")

    store = CandidateStore(path=path)
    assert store.load() is False
    assert store.candidate_ids() == []


def test_activity_timestamp_is_written_immediately(tmp_path):
    path = tmp_path / "store.json"
    now = {"value": 1000.0}
    store = CandidateStore(path=path, clock=lambda: now["value"])
    store.create(name="Ada Lovelace", email="ada@example.com", phone="123")

    now["value"] = 1234.5
    store.mark_activity()

    payload = json.loads(path.read_text(encoding="utf-8"))
    assert payload["session"]["last_active_at"] == 1234.5
