"""Candidate-facing interview client: speech, transport and turn orchestration."""
from .orchestrator import ClientOrchestrator, LocalInterviewState, completion_message
from .speech import SpeechChannel, SpeechResourceUnavailable
from .transport import Transport, TransportUnavailable, WebSocketTransport
from .watchdog import Watchdog

__all__ = [
    "ClientOrchestrator",
    "LocalInterviewState",
    "SpeechChannel",
    "SpeechResourceUnavailable",
    "Transport",
    "TransportUnavailable",
    "Watchdog",
    "WebSocketTransport",
    "completion_message",
]
