"""Error payloads and logging helpers for the ``cellstyle`` command."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from ..errors import CellStyleError, RuleConfigurationError

__all__ = [
    "CliError",
    "ErrorPayload",
    "build_error_payload",
    "category_for",
    "log_cli_error",
]

EXIT_STATUS: Mapping[str, int] = {
    "runtime": 1,
    "usage": 2,
    "io": 3,
    "not_found": 4,
    "configuration": 5,
}

# First match wins, so subclasses come before their bases.
_EXCEPTION_CATEGORIES: tuple[tuple[type[BaseException], str], ...] = (
    (FileNotFoundError, "not_found"),
    (RuleConfigurationError, "configuration"),
    (OSError, "io"),
    (CellStyleError, "runtime"),
)

_CLI_LOGGER = "cellstyle.cli"


@dataclass(frozen=True, slots=True)
class ErrorPayload:
    """What the command reports when it fails."""

    status_code: int
    category: str
    message: str
    context: Mapping[str, Any] = field(default_factory=dict)

    def as_dict(self) -> dict[str, Any]:
        return {
            "status_code": self.status_code,
            "category": self.category,
            "message": self.message,
            "context": dict(self.context),
        }


def category_for(exc: BaseException) -> str:
    for exc_type, category in _EXCEPTION_CATEGORIES:
        if isinstance(exc, exc_type):
            return category
    return "runtime"


def build_error_payload(
    message: str,
    *,
    category: str = "runtime",
    status_code: Optional[int] = None,
    context: Optional[Mapping[str, Any]] = None,
) -> ErrorPayload:
    """Resolve the exit status of ``category`` and make ``context`` JSON friendly."""

    category = category or "runtime"
    if status_code is None:
        status_code = EXIT_STATUS.get(category, EXIT_STATUS["runtime"])
    plain = {
        key: value if value is None or isinstance(value, (str, int, float, bool)) else str(value)
        for key, value in (context or {}).items()
    }
    return ErrorPayload(status_code, category, message, plain)


def log_cli_error(
    payload: ErrorPayload,
    *,
    logger: Optional[logging.Logger] = None,
    exc_info: Optional[BaseException] = None,
) -> None:
    # ``message`` is a reserved LogRecord attribute; it travels as the log message.
    (logger or logging.getLogger(_CLI_LOGGER)).error(
        payload.message,
        extra={
            "event": "cli.error",
            "category": payload.category,
            "status_code": payload.status_code,
            "context": dict(payload.context),
        },
        exc_info=exc_info,
    )


class CliError(RuntimeError):
    """Failure of a command, carrying its exit status."""

    def __init__(
        self,
        message: str,
        *,
        category: str = "runtime",
        status_code: Optional[int] = None,
        context: Optional[Mapping[str, Any]] = None,
        logged: bool = False,
    ) -> None:
        super().__init__(message)
        self.payload = build_error_payload(
            message, category=category, status_code=status_code, context=context
        )
        self.logged = logged

    @property
    def category(self) -> str:
        return self.payload.category

    @property
    def status_code(self) -> int:
        return self.payload.status_code

    @classmethod
    def from_exception(
        cls,
        exc: BaseException,
        message: Optional[str] = None,
        *,
        context: Optional[Mapping[str, Any]] = None,
    ) -> "CliError":
        """Wrap a library or filesystem error using the category of its type."""

        return cls(message or str(exc), category=category_for(exc), context=context)
