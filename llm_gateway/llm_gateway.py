from __future__ import annotations  # Chat-completion gateway used by the question generator

import logging
import os
import threading
from typing import Any, Dict, List, Optional, Protocol, Sequence

import httpx

from config import LlmRoute


logger = logging.getLogger(__name__)

PREVIEW_CHARS = 120

# Routes flagged ``sequential`` share one lock per model so a local server sees one request at a time.
_ROUTE_LOCKS: Dict[str, threading.Lock] = {}
_ROUTE_LOCKS_GUARD = threading.Lock()


class HttpResponse(Protocol):  # Subset of httpx.Response the gateway reads
    @property
    def status_code(self) -> int: ...

    @property
    def text(self) -> str: ...

    def json(self) -> Any: ...


class HttpClient(Protocol):  # Subset of httpx.Client the gateway calls
    def post(self, url: str, *, json: Dict[str, Any], headers: Dict[str, str], timeout: float) -> HttpResponse: ...


class LlmGatewayError(RuntimeError):  # The generator could not produce any text
    pass


def complete(
    messages: Sequence[Dict[str, str]],
    *,
    cfg: LlmRoute,
    client: Optional[HttpClient] = None,
    options: Optional[Dict[str, Any]] = None,
) -> str:
    """Send ``messages`` to the route and return the assistant text.

    Transport failures are retried ``cfg.max_retries`` times. HTTP errors and
    unusable bodies fail at once.

    Raises:
        LlmGatewayError: When no text could be obtained.
    """

    payload = {"model": cfg.model, "messages": _chat_messages(messages), "max_tokens": cfg.max_tokens, **(options or {})}
    if cfg.sequential:
        with _route_lock(cfg):
            return _send(cfg, payload, client)
    return _send(cfg, payload, client)


def _send(cfg: LlmRoute, payload: Dict[str, Any], client: Optional[HttpClient]) -> str:
    url = f"{cfg.base_url}{cfg.endpoint}"
    headers = _headers(cfg)
    attempts = cfg.max_retries + 1
    preview = _preview(payload["messages"])
    failure: Optional[Exception] = None
    for attempt in range(1, attempts + 1):
        logger.info("LLM request route=%s model=%s attempt=%d/%d preview=%s", cfg.name, cfg.model, attempt, attempts, preview)
        try:
            response = _post(url, payload, headers, cfg.timeout_s, client)
        except Exception as exc:  # noqa: BLE001
            logger.warning("LLM transport failure route=%s: %s", cfg.name, exc)
            failure = exc
            continue
        return _content_of(response, cfg)
    raise LlmGatewayError(f"LLM route {cfg.name} unreachable") from failure


def _post(url: str, payload: Dict[str, Any], headers: Dict[str, str], timeout: float, client: Optional[HttpClient]) -> HttpResponse:
    if client is not None:
        return client.post(url, json=payload, headers=headers, timeout=timeout)
    with httpx.Client(timeout=timeout) as http_client:
        response = http_client.post(url, json=payload, headers=headers)
        return response


def _content_of(response: HttpResponse, cfg: LlmRoute) -> str:
    if response.status_code >= 400:
        logger.error("LLM route=%s returned status %s", cfg.name, response.status_code)
        raise LlmGatewayError(f"LLM returned status {response.status_code}")
    try:
        data = response.json()
    except ValueError as exc:
        logger.error("LLM route=%s sent a non-JSON body", cfg.name)
        raise LlmGatewayError("LLM payload was not JSON") from exc
    content = _message_text(data)
    if content is None:
        raise LlmGatewayError("LLM response missing content")
    logger.info("LLM response route=%s chars=%d", cfg.name, len(content))
    return content


def _headers(cfg: LlmRoute) -> Dict[str, str]:
    headers = {"Content-Type": "application/json"}
    api_key = os.getenv(cfg.api_key_env) if cfg.api_key_env else None
    if api_key:
        headers["Authorization"] = f"Bearer {api_key}"
    headers.update(cfg.extra_headers)
    return headers


def _route_lock(cfg: LlmRoute) -> threading.Lock:
    key = cfg.name or f"{cfg.base_url}{cfg.endpoint}"
    with _ROUTE_LOCKS_GUARD:
        return _ROUTE_LOCKS.setdefault(key, threading.Lock())


def _chat_messages(messages: Sequence[Dict[str, str]]) -> List[Dict[str, str]]:
    out: List[Dict[str, str]] = []
    for message in messages:
        if not isinstance(message, dict):
            raise TypeError("chat messages must be dicts with role and content")
        role = str(message.get("role") or "").strip()
        if not role:
            raise ValueError("chat message missing role")
        out.append({"role": role, "content": str(message.get("content") or "")})
    return out


def _preview(messages: Sequence[Dict[str, str]]) -> str:
    text = next((m["content"].strip() for m in reversed(messages) if m["content"].strip()), "")
    first = text.splitlines()[0] if text else ""
    return first if len(first) <= PREVIEW_CHARS else first[: PREVIEW_CHARS - 3] + "..."


def _message_text(data: Any) -> Optional[str]:  # OpenAI-style choices, or a bare {"content": ...}
    if not isinstance(data, dict):
        return None
    choices = data.get("choices")
    if isinstance(choices, list) and choices and isinstance(choices[0], dict):
        message = choices[0].get("message")
        if isinstance(message, dict) and isinstance(message.get("content"), str):
            return message["content"]
    content = data.get("content")
    return content if isinstance(content, str) else None
