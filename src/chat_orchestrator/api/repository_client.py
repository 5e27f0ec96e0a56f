from __future__ import annotations

from dataclasses import dataclass
from collections.abc import Callable
from typing import Any, TypeVar

import httpx
from loguru import logger

from chat_orchestrator.errors import (
    IdentityMissingError,
    RepositoryError,
    SessionNotFoundError,
    TransportError,
)
from chat_orchestrator.models import FeedbackSummary, GenerationParams, Message, Session

_DEFAULT_TIMEOUT_SECONDS = 30.0
_USER_HEADER = "X-User-Id"

T = TypeVar("T")


@dataclass(frozen=True)
class GenerationReply:
    output_text: str
    generation_params: dict | None = None
    output_tokens: int | None = None
    generation_time_ms: float | None = None

    @classmethod
    def from_api(cls, data: dict) -> GenerationReply:
        metrics = data.get("performance_metrics")
        if not isinstance(metrics, dict):
            metrics = {}
        return cls(
            output_text=str(data.get("output_text") or ""),
            generation_params=data.get("generation_params") or None,
            output_tokens=metrics.get("output_tokens") or None,
            generation_time_ms=metrics.get("generation_time_ms") or None,
        )


class SessionRepositoryClient:
    """One method per backend endpoint. Holds no state besides the caller identity."""

    def __init__(
        self,
        base_url: str,
        *,
        user_id: str | None = None,
        timeout: float = _DEFAULT_TIMEOUT_SECONDS,
        http_client: httpx.AsyncClient | None = None,
    ):
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers={"Accept": "application/json"},
            timeout=timeout,
        )
        self._user_id = (user_id or "").strip() or None

    @property
    def user_id(self) -> str | None:
        return self._user_id

    @property
    def has_identity(self) -> bool:
        return self._user_id is not None

    def set_user_id(self, user_id: str | None) -> None:
        self._user_id = (user_id or "").strip() or None

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # -- sessions --

    async def list_sessions(self) -> list[Session]:
        data = await self._request_json("GET", "/chat/sessions")
        return self._parse("/chat/sessions", lambda: [Session.from_api(s) for s in self._as_list(data)])

    async def list_archived_sessions(self) -> list[Session]:
        data = await self._request_json("GET", "/chat/sessions/archived")
        return self._parse("/chat/sessions/archived", lambda: [Session.from_api(s) for s in self._as_list(data)])

    async def create_session(self, title: str) -> Session:
        data = await self._request_json("POST", "/chat/sessions", json={"title": title})
        return self._parse("/chat/sessions", lambda: Session.from_api(self._as_dict(data)))

    async def load_session(self, session_id: str) -> Session:
        try:
            data = await self._request_json("GET", f"/chat/sessions/{session_id}")
        except RepositoryError as ex:
            if ex.status_code == 404:
                raise SessionNotFoundError(session_id) from ex
            raise
        return self._parse(f"/chat/sessions/{session_id}", lambda: Session.from_api(self._as_dict(data)))

    async def rename_session(self, session_id: str, title: str) -> None:
        await self._request("PUT", f"/chat/sessions/{session_id}/title", json={"title": title})

    async def archive_session(self, session_id: str) -> None:
        await self._request("PUT", f"/chat/sessions/{session_id}/archive")

    async def restore_session(self, session_id: str) -> None:
        await self._request("PUT", f"/chat/sessions/{session_id}/restore")

    async def delete_session(self, session_id: str) -> None:
        await self._request("DELETE", f"/chat/sessions/{session_id}")

    async def append_messages(self, session_id: str, messages: list[Message]) -> None:
        await self._request(
            "POST",
            f"/chat/sessions/{session_id}/messages",
            json={"messages": [m.to_api() for m in messages]},
        )

    # -- generation --

    async def generate(self, text: str, params: GenerationParams) -> GenerationReply:
        data = await self._request_json(
            "POST",
            "/generate",
            json={"input_text": text, **params.to_api()},
            identity=False,
        )
        return self._parse("/generate", lambda: GenerationReply.from_api(self._as_dict(data)))

    # -- feedback --

    async def set_reaction(self, message_id: str, reaction: str | None) -> None:
        await self._request("PUT", f"/chat/messages/{message_id}/reaction", json={"reaction": reaction})

    async def submit_comment(self, message_id: str, rating: int, comment: str, feedback_type: str) -> None:
        await self._request(
            "POST",
            f"/chat/messages/{message_id}/comment",
            json={"rating": rating, "comment": comment or None, "feedback_type": feedback_type},
        )

    async def get_feedback(self, message_id: str) -> FeedbackSummary:
        data = await self._request_json("GET", f"/chat/messages/{message_id}/feedback")
        return self._parse(
            f"/chat/messages/{message_id}/feedback",
            lambda: FeedbackSummary.from_api(self._as_dict(data)),
        )

    # -- plumbing --

    def _headers(self, identity: bool) -> dict[str, str]:
        if not identity:
            return {}
        if self._user_id is None:
            raise IdentityMissingError()
        return {_USER_HEADER: self._user_id}

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        identity: bool = True,
    ) -> httpx.Response:
        headers = self._headers(identity)
        logger.debug(f"{method} {path}")
        try:
            response = await self._client.request(method, path, json=json, headers=headers)
        except httpx.HTTPError as ex:
            logger.error(f"{method} {path} failed: {type(ex).__name__}: {ex}")
            raise TransportError(f"{method} {path} failed: {ex}") from ex

        if response.status_code >= 400:
            detail = response.text[:300] or response.reason_phrase
            logger.warning(f"{method} {path} -> HTTP {response.status_code}")
            raise RepositoryError(response.status_code, detail)
        return response

    async def _request_json(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        identity: bool = True,
    ) -> Any:
        response = await self._request(method, path, json=json, identity=identity)
        try:
            return response.json()
        except ValueError as ex:
            raise RepositoryError(response.status_code, f"Invalid JSON from {path}") from ex

    def _parse(self, path: str, build: Callable[[], T]) -> T:
        try:
            return build()
        except (KeyError, TypeError, ValueError, AttributeError) as ex:
            logger.warning(f"Malformed payload from {path}: {type(ex).__name__}: {ex}")
            raise RepositoryError(None, f"Malformed payload from {path}: {ex}") from ex

    def _as_list(self, data: Any) -> list[dict]:
        if not isinstance(data, list):
            raise RepositoryError(None, "Expected a JSON array")
        return [item for item in data if isinstance(item, dict)]

    def _as_dict(self, data: Any) -> dict:
        if not isinstance(data, dict):
            raise RepositoryError(None, "Expected a JSON object")
        return data
