from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Iterator, Union

from src.core.discovery.query import CallArgs, CallShape, CapabilityQuery, DomainArgs, KnownShape

CANDIDATE_KEY_SCHEMA_VERSION = "1.0"


@dataclass(slots=True)
class Candidate:
    """One hypothesis for satisfying a capability query."""

    func: Callable[..., Any]
    context: Any
    key: str
    path: str
    score: int
    arity: int | None = None
    order: int = 0
    direct: bool = False

    def describe(self) -> str:
        return f"{self.key}@{self.path}"


@dataclass(slots=True)
class CandidateSet:
    """Ranked, de-duplicated candidates for one query."""

    query: CapabilityQuery
    candidates: list[Candidate] = field(default_factory=list)
    diagnostics: dict[str, Any] = field(default_factory=dict)

    def __iter__(self) -> Iterator[Candidate]:
        return iter(self.candidates)

    def __len__(self) -> int:
        return len(self.candidates)

    def __bool__(self) -> bool:
        return bool(self.candidates)

    def __getitem__(self, index: int) -> Candidate:
        return self.candidates[index]

    def top(self, k: int) -> list[Candidate]:
        return self.candidates[:k]


@dataclass(frozen=True)
class CandidateKey:
    """Stable per-attempt snapshot for audit and diagnostics."""

    schema_version: str = CANDIDATE_KEY_SCHEMA_VERSION

    capability: str | None = None
    request_id: str | None = None
    candidate_index: int = 0
    shape_index: int | None = None
    shape_label: str | None = None

    key: str | None = None
    path: str | None = None
    score: int | None = None

    status: str = "pending"  # pending/success/rejected/timeout/skipped
    error_type: str | None = None
    error_message: str | None = None
    latency_ms: int | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "schema_version": self.schema_version,
            "capability": self.capability,
            "request_id": self.request_id,
            "candidate_index": self.candidate_index,
            "shape_index": self.shape_index,
            "shape_label": self.shape_label,
            "key": self.key,
            "path": self.path,
            "score": self.score,
            "status": self.status,
            "error_type": self.error_type,
            "error_message": self.error_message,
            "latency_ms": self.latency_ms,
        }
        # drop Nones for compact audit payload
        return {k: v for k, v in data.items() if v is not None}


# ---------------------------------------------------------------- outcomes


@dataclass(slots=True)
class InvocationSuccess:
    shape_index: int
    shape_label: str
    result: Any = None
    confirmed: bool = False
    attempts: list[CandidateKey] = field(default_factory=list)


@dataclass(slots=True)
class InvocationRejected:
    error: BaseException
    attempts: list[CandidateKey] = field(default_factory=list)


@dataclass(slots=True)
class InvocationTimedOut:
    """No confirmation within the deadline after the call returned cleanly."""

    shape_index: int
    shape_label: str
    waited_ms: int
    attempts: list[CandidateKey] = field(default_factory=list)


InvocationOutcome = Union[InvocationSuccess, InvocationRejected, InvocationTimedOut]


@dataclass(slots=True)
class CandidateResult:
    """Failover execution result."""

    success: bool
    selected: Candidate | None
    selected_index: int | None
    candidate_keys: list[CandidateKey]

    result: Any = None
    error: Exception | None = None


__all__ = [
    "CANDIDATE_KEY_SCHEMA_VERSION",
    "CallArgs",
    "CallShape",
    "Candidate",
    "CandidateKey",
    "CandidateResult",
    "CandidateSet",
    "CapabilityQuery",
    "DomainArgs",
    "InvocationOutcome",
    "InvocationRejected",
    "InvocationSuccess",
    "InvocationTimedOut",
    "KnownShape",
]
