from __future__ import annotations

from dataclasses import dataclass

from src.config.settings import config
from src.core.discovery.scanner import ScanPolicy


@dataclass(frozen=True)
class ConfirmationPolicy:
    """Polling policy for side-effect confirmation (seconds)."""

    interval: float = 0.1
    deadline: float = 1.8

    def __post_init__(self) -> None:
        if self.interval <= 0:
            raise ValueError("interval must be positive")
        if self.deadline < 0:
            raise ValueError("deadline must not be negative")

    @classmethod
    def from_config(cls) -> "ConfirmationPolicy":
        return cls(
            interval=config.probe_interval_ms / 1000,
            deadline=config.probe_deadline_ms / 1000,
        )

    @classmethod
    def for_dispatch(cls) -> "ConfirmationPolicy":
        return cls(
            interval=config.dispatch_probe_interval_ms / 1000,
            deadline=config.dispatch_probe_deadline_ms / 1000,
        )


@dataclass(frozen=True)
class InvocationPolicy:
    """Bounds for a single call shape attempt."""

    call_timeout: float = 5.0
    error_samples: int = 3

    @classmethod
    def from_config(cls) -> "InvocationPolicy":
        return cls(
            call_timeout=config.call_timeout_ms / 1000,
            error_samples=config.error_samples,
        )


__all__ = ["ConfirmationPolicy", "InvocationPolicy", "ScanPolicy"]
