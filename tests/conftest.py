import os
import sys
import tempfile
from pathlib import Path

import pytest

os.environ.setdefault("ENABLE_FILE_LOGS", "0")

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from storage.migrate import migrate
from config.settings import settings
from interview_session.coordinator import SessionCoordinator
from interview_session.store import SessionStore
from llm_gateway import LlmGatewayError


@pytest.fixture(autouse=True)
def tmp_db(monkeypatch):
    td = tempfile.TemporaryDirectory()
    db_path = os.path.join(td.name, "test.db")
    monkeypatch.setattr(settings, "DB_PATH", db_path, raising=False)
    migrate(db_path)
    try:
        yield db_path
    finally:
        td.cleanup()


class ScriptedGenerator:
    """Returns queued replies per generation kind; raises when none are queued."""

    def __init__(self, **replies):
        self.replies = {kind: list(values) for kind, values in replies.items()}
        self.calls = []

    def queue(self, kind, *values):
        self.replies.setdefault(kind, []).extend(values)

    def generate(self, kind, role, resume_text, context):
        self.calls.append((kind, role, context))
        queued = self.replies.get(kind) or []
        if not queued:
            raise LlmGatewayError(f"no scripted reply for {kind}")
        reply = queued.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


@pytest.fixture
def generator():
    return ScriptedGenerator()


@pytest.fixture
def persisted():
    return []


@pytest.fixture
def coordinator(generator, persisted):
    return SessionCoordinator(SessionStore(), generator, persist=persisted.append)
