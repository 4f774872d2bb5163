from __future__ import annotations

import re
from typing import Any, Awaitable, Protocol, Sequence, runtime_checkable

from src.core.exceptions import CapabilityError

_SENSITIVE_PATTERN = re.compile(
    r"(api[_-]?key|token|bearer|authorization|password)[=:\s]+\S+",
    re.IGNORECASE,
)


def sanitize_error(message: str, max_length: int = 200) -> str:
    if not message:
        return "attempt_failed"
    return _SENSITIVE_PATTERN.sub("[REDACTED]", message)[:max_length]


@runtime_checkable
class ConfirmationStore(Protocol):
    """External side-effect store, queried per destination."""

    def list_entries(self, destination: Any) -> Sequence[Any] | Awaitable[Sequence[Any]]: ...


class ConfirmationTimeoutError(CapabilityError):
    """调用返回但在截止时间内未观察到副作用（视为该调用形态静默失败）。"""

    def __init__(self, *, shape_label: str, waited_ms: int, capability: str | None = None) -> None:
        self.shape_label = shape_label
        self.waited_ms = waited_ms
        super().__init__(
            f"No confirmation after {waited_ms}ms for call shape {shape_label}",
            capability=capability,
        )


class CallRejectedError(CapabilityError):
    """调用返回了明确的失败结果（如 ok=False）。"""


class ConfirmationUnavailableError(CapabilityError):
    """确认存储的基线无法读取，该调用形态不会被执行。"""

    def __init__(self, *, shape_label: str, capability: str | None = None) -> None:
        self.shape_label = shape_label
        super().__init__(
            f"Confirmation store unreadable before call shape {shape_label}",
            capability=capability,
        )


class AllCandidatesExhaustedError(CapabilityError):
    """所有候选及其调用形态都已尝试且失败。"""

    user_message = "The action could not be completed. Please try again later."

    def __init__(
        self,
        *,
        capability: str,
        tried: int,
        errors: list[str],
        candidate_keys: list[dict[str, Any]],
        diagnostics: dict[str, Any] | None = None,
    ) -> None:
        self.tried = tried
        self.errors = errors
        self.candidate_keys = candidate_keys
        self.diagnostics = diagnostics or {}
        detail = "; ".join(errors) if errors else "no error details"
        super().__init__(
            f"All candidates exhausted for {capability}: tried={tried}: {detail}",
            capability=capability,
        )


__all__ = [
    "AllCandidatesExhaustedError",
    "CallRejectedError",
    "ConfirmationStore",
    "ConfirmationTimeoutError",
    "ConfirmationUnavailableError",
    "sanitize_error",
]
