import sys
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from loguru import logger

_CONSOLE_FORMAT = (
    "<level>{level:<8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan> "
    "[user={extra[user_id]}] - <level>{message}</level>"
)
_FILE_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level:<8} | {name}:{function}:{line} "
    "| user={extra[user_id]} - {message}"
)


@runtime_checkable
class LogConsumer(Protocol):
    def register(self, level: str) -> None: ...
    def describe(self, level: str) -> str: ...


def _stricter(level: str, floor: str | None) -> str:
    if floor is None:
        return level
    return level if logger.level(level).no >= logger.level(floor).no else floor


class ConsoleLogConsumer:
    """stderr sink. ``min_level`` acts as a floor so chatter stays out of typed replies."""

    def __init__(self, min_level: str | None = "WARNING", colorize: bool | None = None):
        self._min_level = min_level
        self._colorize = colorize

    def register(self, level: str) -> None:
        logger.add(
            sys.stderr,
            level=_stricter(level, self._min_level),
            format=_CONSOLE_FORMAT,
            colorize=self._colorize,
        )

    def describe(self, level: str) -> str:
        return f"console (stderr, {_stricter(level, self._min_level)})"


class FileLogConsumer:
    def __init__(
        self,
        path: str = "chat_orchestrator.log",
        rotation: str = "10 MB",
        retention: int = 3,
        serialize: bool = False,
    ):
        self._path = Path(path)
        self._options = {"rotation": rotation, "retention": retention, "serialize": serialize}

    def register(self, level: str) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        logger.add(str(self._path), level=level, format=_FILE_FORMAT, **self._options)

    def describe(self, level: str) -> str:
        kind = "jsonl" if self._options["serialize"] else "text"
        return f"file ({self._path}, {kind}, {level})"


_CONSUMER_TYPES: dict[str, type] = {
    "console": ConsoleLogConsumer,
    "file": FileLogConsumer,
}

_DEFAULT_CONSUMERS: list[dict[str, Any]] = [
    {"type": "console"},
    {"type": "file"},
]


def _build_consumer(config: dict[str, Any]) -> LogConsumer | None:
    sink_type = config.get("type", "")
    cls = _CONSUMER_TYPES.get(sink_type)
    if cls is None:
        logger.warning(f"Unknown log consumer type: {sink_type!r}")
        return None
    options = {k: v for k, v in config.items() if k not in ("type", "level")}
    try:
        return cls(**options)
    except TypeError as ex:
        logger.warning(f"Invalid options for {sink_type} log consumer: {ex}")
        return None


def setup_logging(
    level: str = "INFO",
    consumers: list[dict[str, Any]] | None = None,
    *,
    user_id: str | None = None,
) -> list[str]:
    """Replace every loguru sink with the configured consumers.

    Each record carries ``extra[user_id]`` so log lines can be traced back to
    the caller identity. Returns one description per registered consumer.
    """
    logger.remove()
    logger.configure(extra={"user_id": user_id or "-"})

    registered: list[str] = []
    for config in consumers if consumers is not None else _DEFAULT_CONSUMERS:
        consumer = _build_consumer(config)
        if consumer is None:
            continue
        sink_level = config.get("level", level)
        consumer.register(sink_level)
        registered.append(consumer.describe(sink_level))
    return registered
