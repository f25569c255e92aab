import json
import threading
import time

import pytest

from interview_session.coordinator import SessionCoordinator, default_opening_question
from interview_session.errors import QuestionNotFound, SessionFinished, SessionNotFound
from interview_session.store import SessionStore
from services.question_bank import CANNED_FOLLOWUP, ROLE_CATEGORY_DEFAULTS


def test_unreachable_generator_uses_default_opening(coordinator):
    session_id, question = coordinator.create_session("Backend Engineer", "")

    assert question.text == "Tell me about your experience relevant to the role of Backend Engineer."
    assert question.text == default_opening_question("Backend Engineer")
    session = coordinator.get_session(session_id)
    assert session.questions == [question]
    assert session.duration_min_suggested == 18
    assert session.events[0]["span"] == "generator.opening"
    assert session.events[0]["ok"] is False


def test_generator_opening_is_used(coordinator, generator):
    generator.queue("opening", '{"question": "What did you build with Kafka?"}')
    session_id, question = coordinator.create_session("Backend Engineer", "Kafka, Go", 25)

    assert question.text == "What did you build with Kafka?"
    session = coordinator.get_session(session_id)
    assert session.events[0]["span"] == "generator.opening"
    assert session.duration_min_suggested == 25


def test_unparseable_opening_falls_back_to_default(coordinator, generator):
    generator.queue("opening", "I cannot help with that")
    _, question = coordinator.create_session("QA Engineer", "cv")
    assert question.text == default_opening_question("QA Engineer")


def test_followup_with_key_points(coordinator, generator):
    session_id, first = coordinator.create_session("Backend Engineer", "cv")
    generator.queue(
        "followup",
        json.dumps({"followup": "How did you size the cache?", "key_points": ["redis", "ttl", "eviction", "extra"]}),
    )

    followup = coordinator.record_answer(session_id, first.id, "I used caching and SQL to reduce latency")

    session = coordinator.get_session(session_id)
    assert followup.text == "How did you size the cache?"
    assert followup.id == "q_2"
    assert session.key_points == ["redis", "ttl", "eviction"]
    assert [a.question_id for a in session.answers] == [first.id]
    kind, _, context = generator.calls[-1]
    assert kind == "followup"
    assert "I used caching and SQL to reduce latency" in context


def test_followup_first_line_fallback(coordinator, generator):
    session_id, first = coordinator.create_session("Backend Engineer", "cv")
    generator.queue("followup", "What about consistency?\nSome rambling")

    followup = coordinator.record_answer(session_id, first.id, "answer")
    assert followup.text == "What about consistency?"


def test_empty_followup_ends_turn_but_session_stays_open(coordinator, generator):
    session_id, first = coordinator.create_session("Backend Engineer", "cv")
    generator.queue("followup", '{"followup": "", "key_points": []}')

    assert coordinator.record_answer(session_id, first.id, "answer") is None
    session = coordinator.get_session(session_id)
    assert not session.ended
    assert len(session.questions) == 1


def test_planned_then_canned_followups_when_generator_down(coordinator):
    session_id, first = coordinator.create_session("Backend Engineer", "")
    planned = ROLE_CATEGORY_DEFAULTS["backend"]

    second = coordinator.record_answer(session_id, first.id, "one")
    third = coordinator.record_answer(session_id, second.id, "two")
    fourth = coordinator.record_answer(session_id, third.id, "three")

    assert [second.text, third.text] == list(planned)
    assert fourth.text == CANNED_FOLLOWUP


def test_unknown_session_and_question(coordinator):
    with pytest.raises(SessionNotFound):
        coordinator.record_answer("s_nope", "q_1", "hi")
    with pytest.raises(SessionNotFound):
        coordinator.finalize("s_nope")

    session_id, _ = coordinator.create_session("QA Engineer", "cv")
    with pytest.raises(QuestionNotFound):
        coordinator.record_answer(session_id, "q_99", "hi")


def test_locally_asked_question_is_adopted(coordinator):
    session_id, _ = coordinator.create_session("QA Engineer", "cv")
    coordinator.record_answer(session_id, "q1", "I automate flaky tests", question_text="How do you design test plans?")

    session = coordinator.get_session(session_id)
    assert session.has_question("q1")
    assert all(session.has_question(answer.question_id) for answer in session.answers)


def test_finalize_is_idempotent(coordinator, generator, persisted):
    session_id, first = coordinator.create_session("Backend Engineer", "cv")
    coordinator.record_answer(session_id, first.id, "answer")
    generator.queue(
        "recommendation",
        '{"tier": "Coach", "score": 61, "summary": "Good depth.", "strengths": ["apis"], "weaknesses": []}',
    )

    first_result = coordinator.finalize(session_id)
    calls = len(generator.calls)
    second_result = coordinator.finalize(session_id)

    assert first_result.tier == "Coach"
    assert second_result == first_result
    assert len(generator.calls) == calls
    assert len(persisted) == 1
    assert coordinator.get_session(session_id).ended

    with pytest.raises(SessionFinished):
        coordinator.record_answer(session_id, first.id, "late")


def test_unparseable_recommendation_is_undetermined(coordinator, generator):
    session_id, _ = coordinator.create_session("Backend Engineer", "cv")
    generator.queue("recommendation", "The candidate seems fine.")

    result = coordinator.finalize(session_id)
    assert (result.tier, result.score, result.summary) == ("Undetermined", 50, "The candidate seems fine.")


def test_unavailable_generator_recommendation_uses_heuristic(coordinator):
    session_id, first = coordinator.create_session("Backend Engineer", "")
    coordinator.record_answer(session_id, first.id, "I used caching and SQL to reduce latency")

    result = coordinator.finalize(session_id)
    assert result.score == 16
    assert result.tier == "NeedsDevelopment"


def test_persistence_failure_is_swallowed(generator):
    from interview_session.coordinator import SessionCoordinator
    from interview_session.store import SessionStore

    def explode(_session):
        raise RuntimeError("disk full")

    coordinator = SessionCoordinator(SessionStore(), generator, persist=explode)
    session_id, _ = coordinator.create_session("QA Engineer", "cv")
    result = coordinator.finalize(session_id)
    assert result.tier == "NeedsDevelopment"
    assert coordinator.get_session(session_id).ended


def test_default_persistence_writes_interview_row(generator):
    from interview_session.coordinator import SessionCoordinator
    from interview_session.store import SessionStore
    from storage.interviews import get_interview

    coordinator = SessionCoordinator(SessionStore(), generator)
    session_id, _ = coordinator.create_session("QA Engineer", "cv")
    coordinator.finalize(session_id)

    record = get_interview(session_id)
    assert record.role == "QA Engineer"
    assert record.recommendation == "NeedsDevelopment"


def test_generated_ids_skip_adopted_ids(coordinator):
    session_id, first = coordinator.create_session("Astronaut", "")
    followup = coordinator.record_answer(session_id, "q_3", "I trained in the pool", question_text="locally asked")
    coordinator.record_answer(session_id, followup.id, "Mostly EVA drills")

    session = coordinator.get_session(session_id)
    ids = [question.id for question in session.questions]
    assert ids[:2] == [first.id, "q_3"]
    assert len(ids) == len(set(ids)) == 4
    answered = [answer.question_id for answer in session.answers]
    assert [ids.count(question_id) for question_id in answered] == [1, 1]


def test_concurrent_answers_keep_turns_in_order(persisted):
    class SlowGenerator:
        def __init__(self):
            self.active = 0
            self.peak = 0
            self.guard = threading.Lock()

        def generate(self, kind, role, resume_text, context):
            with self.guard:
                self.active += 1
                self.peak = max(self.peak, self.active)
            time.sleep(0.05)
            with self.guard:
                self.active -= 1
            return json.dumps({"followup": f"Follow-up to: {context.splitlines()[-1].strip()}", "key_points": []})

    slow = SlowGenerator()
    coordinator = SessionCoordinator(SessionStore(), slow, persist=persisted.append)
    session_id, first = coordinator.create_session("Backend Engineer", "cv")

    threads = [
        threading.Thread(target=coordinator.record_answer, args=(session_id, first.id, f"answer {n}"))
        for n in range(4)
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    session = coordinator.get_session(session_id)
    assert slow.peak == 1
    assert len(session.answers) == 4
    assert [question.id for question in session.questions] == [f"q_{n}" for n in range(1, 6)]
    # Each follow-up was generated from the answer recorded just before it.
    for answer, question in zip(session.answers, session.questions[1:]):
        assert question.text == f"Follow-up to: A: {answer.transcript}"
