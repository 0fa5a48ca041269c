"""
Gemini REST client and tolerant decoding of model output.

The model is treated as an untrusted text stream: callers get either the raw
text or ``None``, and decoding returns ``Parsed`` or ``Fallback`` so the
degraded path is an ordinary branch rather than an exception.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Generic, Optional, TypeVar, Union

import httpx
from fastapi import Request

from prepwise import config

LOG = logging.getLogger("prepwise.llm")

T = TypeVar("T")


@dataclass
class Parsed(Generic[T]):
    value: T


@dataclass
class Fallback:
    reason: str


DecodeResult = Union[Parsed[Any], Fallback]


def find_balanced(text: str, opener: str, closer: str) -> Optional[str]:
    """Return the first balanced ``opener ... closer`` span, skipping brackets inside JSON strings."""
    start = text.find(opener)
    if start < 0:
        return None
    depth = 0
    in_string = False
    escaped = False
    for idx in range(start, len(text)):
        ch = text[idx]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == opener:
            depth += 1
        elif ch == closer:
            depth -= 1
            if depth == 0:
                return text[start : idx + 1]
    return None


def extract_json(text: Optional[str], opener: str, closer: str) -> DecodeResult:
    if not text or not text.strip():
        return Fallback("empty model output")
    block = find_balanced(text, opener, closer)
    if block is None:
        return Fallback(f"no balanced {opener}{closer} block in model output")
    try:
        return Parsed(json.loads(block))
    except json.JSONDecodeError as exc:
        return Fallback(f"invalid JSON: {exc.msg}")


class GeminiClient:
    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.api_key = api_key if api_key is not None else config.GEMINI_API_KEY
        self.model = model or config.GEMINI_MODEL
        self.base_url = (base_url or config.GEMINI_API_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else config.GEMINI_TIMEOUT
        self.transport = transport

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/models/{self.model}:generateContent"

    async def generate(self, prompt: str, purpose: str, temperature: float = 0.7, max_tokens: int = 1024) -> Optional[str]:
        if not self.api_key:
            LOG.warning("GEMINI_API_KEY missing; %s fallback engaged", purpose)
            return None
        payload = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {"temperature": temperature, "maxOutputTokens": max_tokens},
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                LOG.info("Calling Gemini (%s): model=%s prompt_len=%s", purpose, self.model, len(prompt))
                resp = await client.post(
                    self.endpoint,
                    headers={"x-goog-api-key": self.api_key, "Content-Type": "application/json"},
                    json=payload,
                )
        except httpx.HTTPError as exc:
            LOG.warning("Gemini %s request failed: %s", purpose, exc)
            return None

        if resp.status_code != 200:
            LOG.warning("Gemini %s responded with %s: %s", purpose, resp.status_code, resp.text[:200])
            return None

        try:
            data = resp.json()
            candidates = data.get("candidates") or []
            parts = candidates[0].get("content", {}).get("parts", []) if candidates else []
            content = "".join(str(part.get("text", "")) for part in parts).strip()
        except (ValueError, AttributeError, TypeError) as exc:
            LOG.warning("Gemini %s returned an unreadable body: %s", purpose, exc)
            return None
        if not content:
            LOG.warning("Gemini %s returned empty content", purpose)
            return None
        return content


_client: Optional[GeminiClient] = None


def get_llm() -> GeminiClient:
    global _client
    if _client is None:
        _client = GeminiClient()
    return _client


async def run_unless_disconnected(
    request: Request, call: Awaitable[Optional[str]], poll_interval: float = 0.5
) -> Optional[str]:
    """Await an upstream call, cancelling it if the inbound client goes away first."""
    task = asyncio.ensure_future(call)
    try:
        while True:
            done, _ = await asyncio.wait({task}, timeout=poll_interval)
            if done:
                return task.result()
            if await request.is_disconnected():
                LOG.info("Client disconnected from %s; cancelling upstream call", request.url.path)
                task.cancel()
                return None
    finally:
        if not task.done():
            task.cancel()
