"""Run a spoken interview from the terminal.

Press Enter at any time to finish the interview; type ``r`` then Enter to
listen again for the current question.
"""
from __future__ import annotations

import argparse
import asyncio
import sys
import threading
from pathlib import Path
from typing import Optional, Sequence

from config.settings import settings

from .orchestrator import ClientOrchestrator
from .speech import MicrophoneListener, Pyttsx3Speaker, SpeechResourceUnavailable
from .transport import WebSocketTransport


def _keyboard(loop: asyncio.AbstractEventLoop, orchestrator: ClientOrchestrator) -> None:  # Runs on a daemon thread
    for line in sys.stdin:
        if line.strip().lower() == "r":
            loop.call_soon_threadsafe(orchestrator.capture_answer)
            continue
        asyncio.run_coroutine_threadsafe(orchestrator.request_finish(), loop)
        return


async def run(role: str, resume_text: str, server_url: Optional[str], duration_min: Optional[int]) -> int:
    try:
        speaker = Pyttsx3Speaker()
        listener = MicrophoneListener(language=settings.SPEECH_LANGUAGE)
    except SpeechResourceUnavailable as exc:
        print(f"Speech unavailable: {exc}", file=sys.stderr)
        return 2

    transport = WebSocketTransport(server_url) if server_url else None
    orchestrator = ClientOrchestrator(speaker, listener, transport, duration_min=duration_min)
    if transport is not None:
        await transport.connect(orchestrator.handle_event)

    threading.Thread(target=_keyboard, args=(asyncio.get_running_loop(), orchestrator), daemon=True).start()
    try:
        await orchestrator.start(role, resume_text)
        result = await orchestrator.wait_until_complete()
        await orchestrator.drain()
    finally:
        await orchestrator.close()
        if transport is not None:
            await transport.close()

    if result is None:
        print(f"Interview blocked: {orchestrator.blocked_reason}", file=sys.stderr)
        return 1
    print(result.model_dump_json(by_alias=True, indent=2))
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(prog="interview_client")
    parser.add_argument("--role", required=True, help="Role the candidate is interviewing for")
    parser.add_argument("--resume", type=Path, help="Path to a plain-text resume")
    parser.add_argument("--server", default=settings.SERVER_URL, help="Coordinator websocket URL")
    parser.add_argument("--offline", action="store_true", help="Run from the local question bank only")
    parser.add_argument("--duration", type=int, default=None, help="Suggested duration in minutes")
    args = parser.parse_args(argv)

    resume_text = args.resume.read_text(encoding="utf-8") if args.resume else ""
    server = None if args.offline else args.server
    return asyncio.run(run(args.role, resume_text, server, args.duration))


if __name__ == "__main__":
    sys.exit(main())
