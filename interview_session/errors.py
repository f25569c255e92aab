from __future__ import annotations  # Coordinator error taxonomy

from llm_gateway import LlmGatewayError


class SessionNotFound(KeyError):  # Raised when a session id is unknown
    def __init__(self, session_id: str) -> None:
        super().__init__(session_id)
        self.session_id = session_id

    def __str__(self) -> str:
        return f"session not found: {self.session_id}"


class SessionFinished(RuntimeError):  # Raised when mutating a finished session
    def __init__(self, session_id: str) -> None:
        super().__init__(session_id)
        self.session_id = session_id

    def __str__(self) -> str:
        return f"session already finished: {self.session_id}"


class QuestionNotFound(KeyError):  # Raised when an answer references an unknown question
    def __init__(self, question_id: str) -> None:
        super().__init__(question_id)
        self.question_id = question_id

    def __str__(self) -> str:
        return f"question not found: {self.question_id}"


# The generator could not be reached or produced no text.
GeneratorUnavailable = LlmGatewayError
