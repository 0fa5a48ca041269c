from __future__ import annotations

import json
from typing import Any, Callable, Dict, List, Optional

import httpx
import pytest
from fastapi.testclient import TestClient

from prepwise import config
from prepwise.llm import GeminiClient, get_llm
from prepwise.main import app
from prepwise.store import RecordStore, get_store


class ScriptedGemini:
    """Replays queued Gemini REST replies through an httpx mock transport."""

    def __init__(self) -> None:
        self.replies: List[httpx.Response] = []
        self.requests: List[httpx.Request] = []

    def reply_text(self, text: str) -> None:
        body = {"candidates": [{"content": {"parts": [{"text": text}]}}]}
        self.replies.append(httpx.Response(200, json=body))

    def reply_json(self, payload: Any) -> None:
        self.reply_text(json.dumps(payload))

    def reply_status(self, status: int, text: str = "upstream error") -> None:
        self.replies.append(httpx.Response(status, text=text))

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if not self.replies:
            return httpx.Response(503, text="no scripted reply")
        return self.replies.pop(0)

    def prompts(self) -> List[str]:
        return [json.loads(r.content)["contents"][0]["parts"][0]["text"] for r in self.requests]

    def client(self, api_key: Optional[str] = "test-key") -> GeminiClient:
        return GeminiClient(
            api_key=api_key,
            model="gemini-test",
            base_url="https://gemini.test/v1beta",
            timeout=5,
            transport=httpx.MockTransport(self.handler),
        )


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    monkeypatch.setattr(config, "BCRYPT_ROUNDS", 4)
    monkeypatch.setattr(config, "COOKIE_SECURE", False)
    monkeypatch.setattr(config, "VAPI_WEBHOOK_SECRET", "")
    monkeypatch.setattr(config, "VAPI_API_KEY", "vapi-public-key")
    monkeypatch.setattr(config, "UPLOAD_DIR", str(tmp_path / "uploads"))


@pytest.fixture
def store() -> RecordStore:
    return RecordStore()


@pytest.fixture
def gemini() -> ScriptedGemini:
    return ScriptedGemini()


@pytest.fixture
def make_client(store: RecordStore, gemini: ScriptedGemini):
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_llm] = lambda: gemini.client()
    opened: List[TestClient] = []

    def factory() -> TestClient:
        client = TestClient(app)
        client.__enter__()
        opened.append(client)
        return client

    yield factory

    for client in opened:
        client.__exit__(None, None, None)
    app.dependency_overrides.clear()


@pytest.fixture
def client(make_client) -> TestClient:
    return make_client()


@pytest.fixture
def signup() -> Callable[..., Dict[str, Any]]:
    def _signup(client: TestClient, email: str = "a@x.com", password: str = "pw", full_name: str = "A") -> Dict[str, Any]:
        resp = client.post("/api/auth/signup", json={"email": email, "password": password, "fullName": full_name})
        assert resp.status_code == 200, resp.text
        return resp.json()["user"]

    return _signup


@pytest.fixture
def user(client: TestClient, signup) -> Dict[str, Any]:
    return signup(client)


@pytest.fixture
def new_interview(client: TestClient):
    def _create(c: Optional[TestClient] = None, **fields: Any) -> Dict[str, Any]:
        resp = (c or client).post("/api/interviews", json=fields)
        assert resp.status_code == 200, resp.text
        return resp.json()

    return _create
