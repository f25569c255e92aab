from __future__ import annotations  # Single-slot watchdog timer on the running event loop

import asyncio
import logging
from typing import Callable, Literal, Optional

logger = logging.getLogger(__name__)

WatchdogKind = Literal["start", "followup", "finish"]


class Watchdog:  # At most one timer armed at a time
    def __init__(self) -> None:
        self._handle: Optional[asyncio.TimerHandle] = None
        self.kind: Optional[WatchdogKind] = None

    @property
    def armed(self) -> bool:
        return self._handle is not None

    def arm(self, kind: WatchdogKind, delay: float, callback: Callable[[], None]) -> None:
        self.clear()
        loop = asyncio.get_running_loop()
        self.kind = kind
        self._handle = loop.call_later(delay, self._fire, kind, callback)

    def clear(self, kind: Optional[WatchdogKind] = None) -> bool:  # Cancel the armed timer, optionally only of ``kind``
        if self._handle is None or (kind is not None and kind != self.kind):
            return False
        self._handle.cancel()
        self._handle = None
        self.kind = None
        return True

    def _fire(self, kind: WatchdogKind, callback: Callable[[], None]) -> None:
        self._handle = None
        self.kind = None
        logger.info("Watchdog %s fired", kind)
        callback()
