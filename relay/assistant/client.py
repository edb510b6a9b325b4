"""
Thin async client for the OpenAI Assistants (threads/runs) HTTP API.

Every method is a single request with its own timeout. Failures are
mapped onto the relay error taxonomy:

- transport problems (connect errors, timeouts) -> TransportError
- HTTP status >= 400 -> BackendStatusError, `rate_limited` on 429
- a 2xx body that does not match the expected shape -> ProtocolInconsistency
"""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError

from relay.errors import BackendStatusError, ProtocolInconsistency, TransportError
from relay.logging_config import logger
from relay.models import MessageRole, Run, ThreadMessage


def _extract_error(text: str) -> tuple[Optional[str], str]:
    """
    Pull (code, message) out of an OpenAI error body:
    {"error": {"message": "...", "type": "...", "code": "..."}}
    """
    try:
        parsed = json.loads(text)
    except (json.JSONDecodeError, TypeError):
        return None, text
    if isinstance(parsed, dict) and isinstance(parsed.get("error"), dict):
        err = parsed["error"]
        code = err.get("code") or err.get("type")
        message = err.get("message")
        return (
            str(code) if code else None,
            message.strip() if isinstance(message, str) and message.strip() else text,
        )
    return None, text


class AssistantsClient:
    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        base_url: str,
        headers: Dict[str, str],
        assistant_id: str,
        timeout: float = 15.0,
        poll_timeout: float = 10.0,
    ) -> None:
        self._client = client
        self._base_url = base_url.rstrip("/")
        self._headers = headers
        self.assistant_id = assistant_id
        self._timeout = timeout
        self._poll_timeout = poll_timeout

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json_body: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> Dict[str, Any]:
        url = f"{self._base_url}/{path.lstrip('/')}"
        try:
            resp = await self._client.request(
                method,
                url,
                headers=self._headers,
                json=json_body,
                params=params,
                timeout=timeout or self._timeout,
            )
        except httpx.HTTPError as exc:
            logger.warning("Assistants API transport error for %s %s: %s", method, url, exc)
            raise TransportError(f"{method} {path} failed: {exc}") from exc

        if resp.status_code >= 400:
            code, message = _extract_error(resp.text)
            logger.warning(
                "Assistants API HTTP error %s for %s %s: %s",
                resp.status_code,
                method,
                url,
                message,
            )
            raise BackendStatusError(
                resp.status_code,
                f"Assistants API HTTP error {resp.status_code}: {message}",
                code=code,
                text=resp.text,
            )

        try:
            data = resp.json()
        except ValueError as exc:
            raise ProtocolInconsistency(f"{method} {path} returned a non-JSON body") from exc
        if not isinstance(data, dict):
            raise ProtocolInconsistency(f"{method} {path} returned an unexpected payload")
        return data

    async def create_thread(self) -> str:
        data = await self._request("POST", "/threads", json_body={})
        thread_id = data.get("id")
        if not isinstance(thread_id, str) or not thread_id:
            raise ProtocolInconsistency("Thread creation response has no id")
        return thread_id

    async def add_message(
        self, thread_id: str, text: str, *, role: MessageRole = MessageRole.USER
    ) -> None:
        await self._request(
            "POST",
            f"/threads/{thread_id}/messages",
            json_body={"role": role.value, "content": text},
        )

    def _parse_run(self, data: Dict[str, Any]) -> Run:
        try:
            return Run.model_validate(data)
        except ValidationError as exc:
            raise ProtocolInconsistency(f"Malformed run object: {exc}") from exc

    async def create_run(self, thread_id: str) -> Run:
        data = await self._request(
            "POST",
            f"/threads/{thread_id}/runs",
            json_body={"assistant_id": self.assistant_id},
        )
        return self._parse_run(data)

    async def get_run(self, thread_id: str, run_id: str) -> Run:
        data = await self._request(
            "GET",
            f"/threads/{thread_id}/runs/{run_id}",
            timeout=self._poll_timeout,
        )
        return self._parse_run(data)

    async def list_messages(self, thread_id: str, *, order: str = "desc") -> List[ThreadMessage]:
        data = await self._request(
            "GET", f"/threads/{thread_id}/messages", params={"order": order}
        )
        items = data.get("data")
        if not isinstance(items, list):
            raise ProtocolInconsistency("Message list response has no data array")
        messages: List[ThreadMessage] = []
        for item in items:
            try:
                messages.append(ThreadMessage.model_validate(item))
            except ValidationError:
                # Skip entries we cannot read; the extractor only needs the matching one.
                logger.debug("Skipping malformed message in thread %s: %r", thread_id, item)
        return messages


__all__ = ["AssistantsClient"]
