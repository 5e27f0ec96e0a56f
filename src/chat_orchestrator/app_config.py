from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path


@dataclass
class RuntimeEnv:
    user_id: str | None
    api_base_url: str | None


@dataclass
class AppConfig:
    api_base_url: str
    request_timeout_seconds: float
    typing_interval_ms: int
    num_beams: int
    min_new_tokens: int
    new_tokens_per_char: float
    default_session_title: str
    feedback_type: str
    load_sessions_on_start: bool
    log_level: str
    log_consumers: list | None

    @property
    def typing_interval_seconds(self) -> float:
        return max(0, self.typing_interval_ms) / 1000


def load_json_config(path: Path | None = None) -> dict:
    config_path = path or Path.cwd() / "config.json"
    if config_path.exists():
        with open(config_path, encoding="utf-8") as f:
            return json.load(f)
    return {}


def _to_bool(value: object, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"1", "true", "yes", "on"}:
            return True
        if lowered in {"0", "false", "no", "off"}:
            return False
    return bool(value)


def parse_app_config(config: dict, env: RuntimeEnv | None = None) -> AppConfig:
    api_base_url = str(config.get("ApiBaseUrl", "http://127.0.0.1:8000")).strip()
    if env is not None and env.api_base_url:
        api_base_url = env.api_base_url
    return AppConfig(
        api_base_url=api_base_url.rstrip("/"),
        request_timeout_seconds=float(config.get("RequestTimeoutSeconds", 30)),
        typing_interval_ms=int(config.get("TypingIntervalMs", 30)),
        num_beams=int(config.get("NumBeams", 2)),
        min_new_tokens=int(config.get("MinNewTokens", 150)),
        new_tokens_per_char=float(config.get("NewTokensPerChar", 2.5)),
        default_session_title=str(config.get("DefaultSessionTitle", "New Chat")).strip() or "New Chat",
        feedback_type=str(config.get("FeedbackType", "general")).strip() or "general",
        load_sessions_on_start=_to_bool(config.get("LoadSessionsOnStart", True), default=True),
        log_level=config.get("LogLevel", "INFO"),
        log_consumers=config.get("LogConsumers"),
    )


def resolve_runtime_env() -> RuntimeEnv:
    return RuntimeEnv(
        user_id=os.environ.get("CHAT_USER_ID", "").strip() or None,
        api_base_url=os.environ.get("API_BASE_URL", "").strip() or None,
    )
