from __future__ import annotations

from dataclasses import dataclass

import httpx

from chat_orchestrator.api.repository_client import SessionRepositoryClient
from chat_orchestrator.app_config import AppConfig, RuntimeEnv
from chat_orchestrator.dispatcher import GenerationDefaults, MessageDispatcher
from chat_orchestrator.feedback import FeedbackHydrator
from chat_orchestrator.logging_config import setup_logging
from chat_orchestrator.session_list import SessionListManager
from chat_orchestrator.session_store import SessionStore
from chat_orchestrator.typing_animator import TypingAnimator


@dataclass
class ChatRuntime:
    client: SessionRepositoryClient
    store: SessionStore
    animator: TypingAnimator
    hydrator: FeedbackHydrator
    sessions: SessionListManager
    dispatcher: MessageDispatcher
    log_descriptions: list[str]

    async def close(self) -> None:
        self.animator.cancel()
        await self.client.aclose()


def build_runtime(
    app: AppConfig,
    env: RuntimeEnv,
    *,
    http_client: httpx.AsyncClient | None = None,
    log_descriptions: list[str] | None = None,
) -> ChatRuntime:
    client = SessionRepositoryClient(
        app.api_base_url,
        user_id=env.user_id,
        timeout=app.request_timeout_seconds,
        http_client=http_client,
    )
    store = SessionStore()
    animator = TypingAnimator(interval_seconds=app.typing_interval_seconds)
    animator.subscribe(store.set_typing)
    hydrator = FeedbackHydrator(client, store, default_feedback_type=app.feedback_type)
    sessions = SessionListManager(
        client,
        store,
        animator,
        hydrator,
        default_title=app.default_session_title,
    )
    dispatcher = MessageDispatcher(
        client,
        store,
        animator,
        hydrator,
        sessions,
        defaults=GenerationDefaults(
            min_new_tokens=app.min_new_tokens,
            new_tokens_per_char=app.new_tokens_per_char,
            num_beams=app.num_beams,
        ),
    )
    return ChatRuntime(
        client=client,
        store=store,
        animator=animator,
        hydrator=hydrator,
        sessions=sessions,
        dispatcher=dispatcher,
        log_descriptions=log_descriptions or [],
    )


async def bootstrap_runtime(app: AppConfig, env: RuntimeEnv) -> ChatRuntime:
    log_descriptions = setup_logging(level=app.log_level, consumers=app.log_consumers, user_id=env.user_id)
    runtime = build_runtime(app, env, log_descriptions=log_descriptions)
    if app.load_sessions_on_start and runtime.client.has_identity:
        await runtime.sessions.load_sessions()
    return runtime
