"""
Shared pytest configuration and fakes.

This file ensures the project root is on sys.path so that `import relay`
works consistently in all tests, and provides in-memory stand-ins for
Redis and the Assistants / WhatsApp HTTP APIs.
"""

import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import httpx
import pytest
from redis.exceptions import ConnectionError as RedisConnectionError


# Ensure project root is importable for test modules.
ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from relay.assistant import AssistantsClient  # noqa: E402
from relay.settings import Settings  # noqa: E402
from relay.whatsapp import WhatsAppSender  # noqa: E402


class FakeRedis:
    """
    Minimal async Redis replacement supporting GET and SET EX/NX.
    TTLs are recorded, not enforced.
    """

    def __init__(self) -> None:
        self._data: Dict[str, Any] = {}
        self.ttls: Dict[str, int] = {}
        self.set_calls: List[Dict[str, Any]] = []
        self.down = False

    def _check(self) -> None:
        if self.down:
            raise RedisConnectionError("Connection refused")

    async def get(self, key: str):
        self._check()
        return self._data.get(key)

    async def set(self, key: str, value: str, ex: int | None = None, nx: bool = False):
        self._check()
        self.set_calls.append({"key": key, "value": value, "ex": ex, "nx": nx})
        if nx and key in self._data:
            return None
        self._data[key] = value
        if ex is not None:
            self.ttls[key] = ex
        return True

    def expire_now(self, key: str) -> None:
        self._data.pop(key, None)
        self.ttls.pop(key, None)


class FakeAssistantsAPI:
    """
    Scripted stand-in for the Assistants threads/runs endpoints.

    `poll_script` lists what each GET run returns, in order: a status
    string, a dict merged into the run object, an int HTTP error status,
    or an exception instance to raise. The last entry repeats once the
    script is exhausted.
    """

    def __init__(self) -> None:
        self.thread_ids: List[str] = []
        self.initial_status = "queued"
        self.poll_script: List[Any] = ["completed"]
        self.reply: Optional[str] = "Resposta do assistente"
        self.reply_content: Optional[List[Dict[str, Any]]] = None
        self.list_error: Optional[int] = None
        self.create_thread_error: Optional[int] = None
        self.threads: Dict[str, List[Dict[str, Any]]] = {}
        self.requests: List[httpx.Request] = []
        self._thread_seq = 0
        self._run_seq = 0
        self._polls = 0

    def count(self, method: str, kind: str) -> int:
        return sum(1 for r in self.requests if r.method == method and self._kind(r) == kind)

    @staticmethod
    def _kind(request: httpx.Request) -> str:
        parts = request.url.path.strip("/").split("/")
        # v1/threads[/{tid}/messages | /{tid}/runs[/{rid}]]
        if parts[-1] == "threads":
            return "threads"
        if parts[-1] == "messages":
            return "messages"
        if parts[-1] == "runs":
            return "runs"
        return "run"

    def _error(self, status_code: int, code: str) -> httpx.Response:
        return httpx.Response(
            status_code, json={"error": {"message": f"error {status_code}", "code": code}}
        )

    def _next_poll(self) -> Any:
        index = min(self._polls, len(self.poll_script) - 1)
        self._polls += 1
        return self.poll_script[index]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        parts = request.url.path.strip("/").split("/")
        kind = self._kind(request)

        if kind == "threads" and request.method == "POST":
            if self.create_thread_error:
                return self._error(self.create_thread_error, "server_error")
            self._thread_seq += 1
            if self.thread_ids:
                thread_id = self.thread_ids.pop(0)
            else:
                thread_id = f"th_{self._thread_seq}"
            self.threads[thread_id] = []
            return httpx.Response(200, json={"id": thread_id, "object": "thread"})

        thread_id = parts[2]

        if kind == "messages" and request.method == "POST":
            body = json.loads(request.content.decode("utf-8"))
            message = {
                "id": f"msg_{len(self.threads.setdefault(thread_id, [])) + 1}",
                "object": "thread.message",
                "role": body["role"],
                "run_id": None,
                "content": [
                    {"type": "text", "text": {"value": body["content"], "annotations": []}}
                ],
            }
            self.threads[thread_id].append(message)
            return httpx.Response(200, json=message)

        if kind == "messages" and request.method == "GET":
            if self.list_error:
                return self._error(self.list_error, "server_error")
            data = list(self.threads.get(thread_id, []))
            if request.url.params.get("order") == "desc":
                data.reverse()
            return httpx.Response(200, json={"object": "list", "data": data})

        if kind == "runs" and request.method == "POST":
            self._run_seq += 1
            run = {
                "id": f"run_{self._run_seq}",
                "object": "thread.run",
                "thread_id": thread_id,
                "status": self.initial_status,
                "last_error": None,
            }
            return httpx.Response(200, json=run)

        if kind == "run" and request.method == "GET":
            run_id = parts[4]
            step = self._next_poll()
            if isinstance(step, Exception):
                raise step
            if isinstance(step, int):
                return self._error(step, "rate_limit_exceeded" if step == 429 else "server_error")
            run = {"id": run_id, "thread_id": thread_id, "status": step, "last_error": None}
            if isinstance(step, dict):
                run.update(step)
            if run["status"] == "completed" and not any(
                m.get("run_id") == run_id for m in self.threads.get(thread_id, [])
            ):
                self._add_reply(thread_id, run_id)
            return httpx.Response(200, json=run)

        return httpx.Response(404, json={"error": {"message": "not found"}})

    def _add_reply(self, thread_id: str, run_id: str) -> None:
        if self.reply is None and self.reply_content is None:
            return
        content = self.reply_content or [
            {"type": "text", "text": {"value": self.reply, "annotations": []}}
        ]
        self.threads.setdefault(thread_id, []).append(
            {
                "id": f"msg_{len(self.threads[thread_id]) + 1}",
                "object": "thread.message",
                "role": "assistant",
                "run_id": run_id,
                "content": content,
            }
        )


class FakeWhatsApp:
    def __init__(self) -> None:
        self.sent: List[Dict[str, Any]] = []
        self.fail_with: Optional[int] = None

    def handler(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content.decode("utf-8"))
        self.sent.append(
            {
                "to": body["to"],
                "text": body["text"]["body"],
                "authorization": request.headers.get("authorization"),
                "path": request.url.path,
            }
        )
        if self.fail_with:
            return httpx.Response(self.fail_with, json={"error": {"message": "boom"}})
        return httpx.Response(200, json={"messages": [{"id": "wamid.1"}]})

    @property
    def texts(self) -> List[str]:
        return [m["text"] for m in self.sent]


class RecordingSleep:
    def __init__(self) -> None:
        self.calls: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


def make_settings(**overrides: Any) -> Settings:
    values: Dict[str, Any] = {
        "whatsapp_token": "wa-token",
        "whatsapp_phone_id": "123456",
        "verify_token": "verify-me",
        "openai_api_key": "sk-test",  # pragma: allowlist secret
        "openai_assistant_id": "asst_test",
        "session_backend": "memory",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def assistants_api() -> FakeAssistantsAPI:
    return FakeAssistantsAPI()


@pytest.fixture
def whatsapp_api() -> FakeWhatsApp:
    return FakeWhatsApp()


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def settings_factory():
    return make_settings


def _route(assistants_api: FakeAssistantsAPI, whatsapp_api: FakeWhatsApp):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "graph.facebook.com":
            return whatsapp_api.handler(request)
        return assistants_api.handler(request)

    return handler


@pytest.fixture
def http_client(assistants_api, whatsapp_api) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(_route(assistants_api, whatsapp_api)))


@pytest.fixture
def assistants_client(http_client) -> AssistantsClient:
    return AssistantsClient(
        http_client,
        base_url="https://api.openai.com/v1",
        headers={"Authorization": "Bearer sk-test", "OpenAI-Beta": "assistants=v2"},
        assistant_id="asst_test",
    )


@pytest.fixture
def whatsapp_sender(http_client) -> WhatsAppSender:
    return WhatsAppSender(http_client, token="wa-token", phone_id="123456")
