"""Span helper recording generator call timings on a session."""
from __future__ import annotations

import time
from contextlib import contextmanager
from typing import Any, Dict, Iterator


@contextmanager
def span(session, name: str) -> Iterator[Dict[str, Any]]:
    """Append ``{"span", "ms", "ok"}`` to ``session.events`` when the block exits."""
    started = time.perf_counter()
    record: Dict[str, Any] = {"span": name, "ok": True}
    try:
        yield record
    except BaseException:
        record["ok"] = False
        raise
    finally:
        record["ms"] = int((time.perf_counter() - started) * 1000)
        session.events.append(record)


__all__ = ["span"]
