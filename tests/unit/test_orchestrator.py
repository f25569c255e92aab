import asyncio

import interview_client.orchestrator as orchestrator_module
from interview_client.orchestrator import (
    NO_MORE_QUESTIONS,
    ClientOrchestrator,
    LocalInterviewState,
    completion_message,
)
from interview_client.speech import SpeechResourceUnavailable
from interview_client.transport import TransportUnavailable
from services.question_bank import questions_for

RECOMMENDATION = {"tier": "Proceed", "score": 82, "summary": "Great depth.", "strengths": [], "weaknesses": []}


class FakeSpeaker:
    def __init__(self, fail=False):
        self.spoken = []
        self.fail = fail

    async def speak(self, text):
        if self.fail:
            raise SpeechResourceUnavailable("no audio output")
        self.spoken.append(text)
        await asyncio.sleep(0)

    def cancel(self):
        pass


class FakeListener:
    """Returns queued transcripts, then waits until cancelled."""

    def __init__(self, *answers):
        self.answers = list(answers)
        self.calls = 0

    async def listen(self):
        self.calls += 1
        await asyncio.sleep(0)
        if self.answers:
            return self.answers.pop(0)
        await asyncio.get_running_loop().create_future()

    def cancel(self):
        pass


class FakeTransport:
    def __init__(self, connected=True, fail=False):
        self.connected = connected
        self.fail = fail
        self.sent = []

    async def send(self, event, data):
        if self.fail:
            raise TransportUnavailable("socket closed")
        self.sent.append((event, data))

    def events(self):
        return [event for event, _ in self.sent]


async def _until(predicate, timeout=1.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached")
        await asyncio.sleep(0.005)


def _orchestrator(speaker, listener, transport=None, **overrides):
    options = dict(followup_timeout_s=0.05, finish_timeout_s=0.05, listen_delay_s=0)
    options.update(overrides)
    return ClientOrchestrator(speaker, listener, transport, **options)


async def _remote_started(orch, role="Backend Engineer"):
    await orch.start(role)
    await orch.handle_event(
        "session_created",
        {
            "sessionId": "s_remote",
            "start": "2024-01-01T10:00:00Z",
            "end": "2024-01-01T10:18:00Z",
            "firstQuestion": {"id": "q_1", "text": "Tell me about your APIs."},
        },
    )


def test_local_state_cursor_only_moves_forward():
    state = LocalInterviewState.for_role("Astronaut")
    assert state.next_question().id == "dft1"
    assert state.exhausted
    assert state.next_question() is None
    assert state.cursor == 1


def test_local_mode_scores_once_after_bank_exhausted(monkeypatch):
    calls = []
    real_score = orchestrator_module.score

    def counting_score(answers, role):
        calls.append(len(answers))
        return real_score(answers, role)

    monkeypatch.setattr(orchestrator_module, "score", counting_score)

    async def scenario():
        speaker = FakeSpeaker()
        listener = FakeListener(*[f"answer {i} covering test automation and coverage" for i in range(12)])
        orch = _orchestrator(speaker, listener)
        await orch.start("QA Engineer")
        result = await orch.wait_until_complete(timeout=2)
        await orch.drain()
        return orch, speaker, result

    orch, speaker, result = asyncio.run(scenario())

    assert calls == [12]
    assert orch.phase == "completed"
    assert orch.mode == "local"
    assert orch.result_source == "local"
    assert orch.session_id.startswith("local-")
    assert speaker.spoken[:12] == [question.text for question in questions_for("QA Engineer")]
    assert speaker.spoken[-1] == completion_message(result)
    assert [answer.question_id for answer in orch.local.captured_answers] == [f"q{i}" for i in range(1, 13)]


def test_disconnected_transport_starts_locally():
    async def scenario():
        transport = FakeTransport(connected=False)
        speaker = FakeSpeaker()
        orch = _orchestrator(speaker, FakeListener(), transport)
        await orch.start("Backend Engineer")
        await _until(lambda: orch.phase == "listening")
        await orch.close()
        return orch, transport, speaker

    orch, transport, speaker = asyncio.run(scenario())
    assert orch.mode == "local"
    assert transport.sent == []
    assert speaker.spoken == [questions_for("Backend Engineer")[0].text]


def test_failed_create_send_starts_locally():
    async def scenario():
        orch = _orchestrator(FakeSpeaker(), FakeListener(), FakeTransport(fail=True))
        await orch.start("Backend Engineer")
        mode = orch.mode
        await orch.close()
        return mode

    assert asyncio.run(scenario()) == "local"


def test_start_watchdog_falls_back_and_ignores_late_session():
    async def scenario():
        transport = FakeTransport()
        speaker = FakeSpeaker()
        orch = _orchestrator(speaker, FakeListener(), transport)
        await orch.start("QA Engineer")
        assert orch.phase == "starting"
        await _until(lambda: orch.mode == "local" and speaker.spoken)
        await orch.handle_event(
            "session_created",
            {"sessionId": "s_late", "firstQuestion": {"id": "q_1", "text": "Late opening"}},
        )
        await asyncio.sleep(0.02)
        await orch.close()
        return orch, speaker

    orch, speaker = asyncio.run(scenario())
    assert orch.session_id.startswith("local-")
    assert speaker.spoken == [questions_for("QA Engineer")[0].text]


def test_remote_followup_is_spoken_and_watchdog_cleared():
    async def scenario():
        transport = FakeTransport()
        speaker = FakeSpeaker()
        orch = _orchestrator(speaker, FakeListener("I used caching and SQL to reduce latency"), transport)
        await _remote_started(orch)
        await _until(lambda: "candidate_answer" in transport.events())
        await orch.handle_event("followup", {"followup": {"id": "q_2", "text": "How did you size the cache?"}})
        await asyncio.sleep(0.1)
        await orch.close()
        return orch, transport, speaker

    orch, transport, speaker = asyncio.run(scenario())
    assert speaker.spoken == ["Tell me about your APIs.", "How did you size the cache?"]
    assert transport.sent[1] == (
        "candidate_answer",
        {"sessionId": "s_remote", "questionId": "q_1", "transcript": "I used caching and SQL to reduce latency"},
    )
    assert orch.local is None


def test_followup_watchdog_speaks_local_question_without_finishing():
    async def scenario():
        transport = FakeTransport()
        speaker = FakeSpeaker()
        orch = _orchestrator(speaker, FakeListener("I used caching"), transport)
        await _remote_started(orch)
        bank_first = questions_for("Backend Engineer")[0].text
        await _until(lambda: speaker.spoken and speaker.spoken[-1] == bank_first)

        await orch.handle_event("followup", {"followup": {"id": "q_2", "text": "Late question"}})
        await asyncio.sleep(0.02)
        await orch.close()
        return orch, transport, speaker

    orch, transport, speaker = asyncio.run(scenario())
    assert "finish_interview" not in transport.events()
    assert orch.mode == "remote"
    assert orch.session_id == "s_remote"
    assert not orch.completed
    assert "Late question" not in speaker.spoken
    assert orch.current_question.id == "b1"


def test_reply_to_abandoned_turn_is_not_taken_for_the_next_one():
    async def scenario():
        transport = FakeTransport()
        speaker = FakeSpeaker()
        orch = _orchestrator(speaker, FakeListener("answer one", "answer two"), transport, followup_timeout_s=0.1)
        await _remote_started(orch)
        await _until(lambda: transport.events().count("candidate_answer") == 2)

        await orch.handle_event("followup", {"followup": {"id": "q_2", "text": "Reply to answer one"}})
        await orch.handle_event("followup", {"followup": {"id": "q_3", "text": "Reply to answer two"}})
        await _until(lambda: speaker.spoken[-1] == "Reply to answer two")
        await orch.close()
        return orch, transport, speaker

    orch, transport, speaker = asyncio.run(scenario())
    assert "Reply to answer one" not in speaker.spoken
    assert speaker.spoken == [
        "Tell me about your APIs.",
        questions_for("Backend Engineer")[0].text,
        "Reply to answer two",
    ]
    assert transport.sent[-1][1]["questionId"] == "b1"
    assert orch.current_question.id == "q_3"


def test_error_for_abandoned_turn_is_ignored():
    async def scenario():
        transport = FakeTransport()
        speaker = FakeSpeaker()
        orch = _orchestrator(speaker, FakeListener("answer one", "answer two"), transport, followup_timeout_s=0.1)
        await _remote_started(orch)
        await _until(lambda: transport.events().count("candidate_answer") == 2)

        await orch.handle_event("error", {"message": "generator busy"})
        await orch.handle_event("followup", {"followup": {"id": "q_3", "text": "Reply to answer two"}})
        await _until(lambda: speaker.spoken[-1] == "Reply to answer two")
        await orch.close()
        return orch, speaker

    orch, speaker = asyncio.run(scenario())
    assert questions_for("Backend Engineer")[1].text not in speaker.spoken
    assert orch.local.cursor == 1


def test_answer_to_local_question_carries_its_text():
    async def scenario():
        transport = FakeTransport()
        speaker = FakeSpeaker()
        orch = _orchestrator(speaker, FakeListener("first answer", "second answer"), transport, followup_timeout_s=5.0)
        await _remote_started(orch)
        await _until(lambda: "candidate_answer" in transport.events())
        await orch.handle_event("error", {"message": "generator busy"})
        await _until(lambda: transport.events().count("candidate_answer") == 2)
        await orch.handle_event("followup", {"followup": {"id": "q_3", "text": "Back on the remote track?"}})
        await _until(lambda: speaker.spoken[-1] == "Back on the remote track?")
        await orch.close()
        return transport

    transport = asyncio.run(scenario())
    _, payload = transport.sent[-1]
    assert payload["questionId"] == "b1"
    assert payload["questionText"] == questions_for("Backend Engineer")[0].text


def test_no_followup_closes_and_requests_finish():
    async def scenario():
        transport = FakeTransport()
        speaker = FakeSpeaker()
        orch = _orchestrator(speaker, FakeListener("answer"), transport, finish_timeout_s=1.0)
        await _remote_started(orch)
        await _until(lambda: "candidate_answer" in transport.events())
        await orch.handle_event("followup", {"followup": None})
        await _until(lambda: "finish_interview" in transport.events())
        await orch.handle_event("finished", {"recommendation": RECOMMENDATION, "session": {}})
        await orch.drain()
        return orch, speaker

    orch, speaker = asyncio.run(scenario())
    assert NO_MORE_QUESTIONS in speaker.spoken
    assert orch.result_source == "remote"
    assert orch.result.score == 82
    assert speaker.spoken[-1] == completion_message(orch.result)


def test_finish_watchdog_scores_locally_and_ignores_late_result():
    async def scenario():
        transport = FakeTransport()
        orch = _orchestrator(FakeSpeaker(), FakeListener("I used caching and SQL to reduce latency"), transport)
        await _remote_started(orch)
        await _until(lambda: "candidate_answer" in transport.events())
        await orch.handle_event("followup", {"followup": {"id": "q_2", "text": "More?"}})
        await orch.request_finish()
        assert orch.phase == "awaiting_finish"
        result = await orch.wait_until_complete(timeout=1)
        await orch.handle_event("finished", {"recommendation": RECOMMENDATION, "session": {}})
        await orch.close()
        return orch, transport, result

    orch, transport, result = asyncio.run(scenario())
    assert transport.sent[-1] == ("finish_interview", {"sessionId": "s_remote"})
    assert orch.result_source == "local"
    assert orch.result is result
    assert result.score == 16


def test_local_finish_scores_immediately():
    async def scenario():
        transport = FakeTransport(connected=False)
        orch = _orchestrator(FakeSpeaker(), FakeListener("I used caching and SQL to reduce latency"), transport)
        await orch.start("Backend Engineer")
        await _until(lambda: len(orch.captured_answers) == 1)
        await orch.request_finish()
        await orch.close()
        return orch, transport

    orch, transport = asyncio.run(scenario())
    assert orch.completed
    assert transport.sent == []
    assert orch.result.score == 16


def test_error_event_takes_local_step():
    async def scenario():
        transport = FakeTransport()
        speaker = FakeSpeaker()
        orch = _orchestrator(speaker, FakeListener("answer"), transport, followup_timeout_s=5.0)
        await _remote_started(orch)
        await _until(lambda: "candidate_answer" in transport.events())
        await orch.handle_event("error", {"message": "session not found: s_remote"})
        await _until(lambda: speaker.spoken[-1] == questions_for("Backend Engineer")[0].text)
        await orch.close()
        return orch

    orch = asyncio.run(scenario())
    assert any("session not found" in line for line in orch.event_log)


def test_silence_waits_for_manual_capture():
    async def scenario():
        listener = FakeListener("   ", "answer after retry")
        orch = _orchestrator(FakeSpeaker(), listener)
        await orch.start("QA Engineer")
        await _until(lambda: orch.phase == "awaiting_answer")
        assert orch.captured_answers == []
        orch.capture_answer()
        await _until(lambda: len(orch.captured_answers) == 1)
        await orch.close()
        return orch, listener

    orch, listener = asyncio.run(scenario())
    assert orch.captured_answers[0].transcript == "answer after retry"
    assert orch.captured_answers[0].question_id == "q1"


def test_missing_speech_device_blocks():
    async def scenario():
        orch = _orchestrator(FakeSpeaker(fail=True), FakeListener("never heard"))
        await orch.start("QA Engineer")
        result = await orch.wait_until_complete(timeout=1)
        await orch.close()
        return orch, result

    orch, result = asyncio.run(scenario())
    assert result is None
    assert orch.phase == "blocked"
    assert orch.blocked_reason == "no audio output"
    assert orch.captured_answers == []
