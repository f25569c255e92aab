from __future__ import annotations  # Speech output/input collaborators and single-owner channels

import asyncio
import logging
from typing import Any, Awaitable, Callable, Literal, Optional, Protocol, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

ChannelState = Literal["idle", "active"]


class SpeechResourceUnavailable(RuntimeError):  # No speaker/microphone or engine capability
    pass


class SpeechOutput(Protocol):  # Text-to-speech device
    async def speak(self, text: str) -> None: ...

    def cancel(self) -> None: ...


class SpeechInput(Protocol):  # Speech-to-text device; returns "" when nothing was heard
    async def listen(self) -> str: ...

    def cancel(self) -> None: ...


class SpeechChannel:  # Idle/Active wrapper allowing one in-flight operation per device
    def __init__(self, name: str, device: Any) -> None:
        self.name = name
        self._device = device
        self._task: Optional[asyncio.Future] = None

    @property
    def state(self) -> ChannelState:
        if self._task is not None and not self._task.done():
            return "active"
        return "idle"

    async def run(self, call: Callable[[], Awaitable[T]]) -> T:
        self.cancel()
        task = asyncio.ensure_future(call())
        self._task = task
        try:
            return await task
        except asyncio.CancelledError:
            self._device.cancel()
            raise
        finally:
            if self._task is task:
                self._task = None

    def cancel(self) -> None:
        task = self._task
        self._task = None
        if task is not None and not task.done():
            task.cancel()
            self._device.cancel()


class Pyttsx3Speaker:  # Local text-to-speech through pyttsx3
    def __init__(self, rate: int = 170) -> None:
        try:
            import pyttsx3
        except ImportError as exc:
            raise SpeechResourceUnavailable("pyttsx3 is required for speech output") from exc
        try:
            self._engine = pyttsx3.init()
        except (RuntimeError, OSError) as exc:
            raise SpeechResourceUnavailable(f"No speech output device: {exc}") from exc
        self._engine.setProperty("rate", rate)

    async def speak(self, text: str) -> None:
        await asyncio.to_thread(self._say, text)

    def _say(self, text: str) -> None:
        self._engine.say(text)
        self._engine.runAndWait()

    def cancel(self) -> None:
        self._engine.stop()


class MicrophoneListener:  # Microphone capture transcribed with SpeechRecognition
    def __init__(self, language: str = "en-US", timeout_s: float = 10.0, phrase_limit_s: float = 60.0) -> None:
        try:
            import speech_recognition as sr
        except ImportError as exc:
            raise SpeechResourceUnavailable("SpeechRecognition is required for speech input") from exc
        self._sr = sr
        self._recognizer = sr.Recognizer()
        try:
            self._microphone = sr.Microphone()
        except (AttributeError, OSError) as exc:
            raise SpeechResourceUnavailable(f"No microphone available: {exc}") from exc
        self._language = language
        self._timeout = timeout_s
        self._phrase_limit = phrase_limit_s
        self._cancelled = False

    async def listen(self) -> str:
        self._cancelled = False
        transcript = await asyncio.to_thread(self._capture)
        return "" if self._cancelled else transcript

    def _capture(self) -> str:
        sr = self._sr
        try:
            with self._microphone as source:
                self._recognizer.adjust_for_ambient_noise(source, duration=0.3)
                audio = self._recognizer.listen(source, timeout=self._timeout, phrase_time_limit=self._phrase_limit)
        except sr.WaitTimeoutError:
            return ""
        except OSError as exc:
            raise SpeechResourceUnavailable(f"Microphone capture failed: {exc}") from exc
        try:
            return self._recognizer.recognize_google(audio, language=self._language)
        except sr.UnknownValueError:
            return ""
        except sr.RequestError as exc:
            raise SpeechResourceUnavailable(f"Speech recognition service unavailable: {exc}") from exc

    def cancel(self) -> None:
        # Blocking capture cannot be interrupted; its result is discarded instead.
        self._cancelled = True


__all__ = [
    "MicrophoneListener",
    "Pyttsx3Speaker",
    "SpeechChannel",
    "SpeechInput",
    "SpeechOutput",
    "SpeechResourceUnavailable",
]
