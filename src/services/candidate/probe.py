"""
副作用确认探针

对只产生副作用、没有可信返回值的调用：调用前记录外部存储的基线，
调用后按固定间隔轮询，直到出现新的匹配条目或到达截止时间。
截止时间之后才出现的条目不会被计为成功。
基线读取失败时没有可比较的依据，baseline() 返回 None，调用方不得据此确认成功。
"""

from __future__ import annotations

import asyncio
import inspect
from dataclasses import dataclass
from typing import Any, Callable, Hashable, Mapping

from src.core.logger import logger

from .policy import ConfirmationPolicy
from .submit import ConfirmationStore


def normalize_entries(value: Any) -> list[Any]:
    """
    Coerce whatever a store returned into a list.

    Accepts sequences, objects wrapping an ``_array`` list, and collections
    exposing ``to_array()`` / ``toArray()`` / ``values()``.
    """
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    if isinstance(value, (str, bytes)):
        return []

    wrapped = value.get("_array") if isinstance(value, Mapping) else getattr(value, "_array", None)
    if isinstance(wrapped, (list, tuple)):
        return list(wrapped)

    for name in ("to_array", "toArray"):
        method = getattr(value, name, None)
        if callable(method):
            try:
                result = method()
            except Exception:
                continue
            if isinstance(result, (list, tuple)):
                return list(result)

    values = getattr(value, "values", None)
    if callable(values):
        try:
            return list(values())
        except Exception:
            return []
    return []


def entry_fingerprint(entry: Any) -> Hashable:
    # decoded JSON entries are rebuilt on every read, so compare them by value
    if isinstance(entry, Mapping):
        try:
            return ("map", tuple(sorted((str(k), repr(v)) for k, v in entry.items())))
        except Exception:
            return ("id", id(entry))
    if isinstance(entry, (str, int, float, bool, tuple)):
        return ("value", entry)
    return ("id", id(entry))


@dataclass(frozen=True)
class ProbeBaseline:
    count: int
    fingerprints: frozenset[Hashable]


class ConfirmationProbe:
    """Predicate + polling policy against one destination of a confirmation store."""

    def __init__(
        self,
        store: ConfirmationStore,
        destination: Any,
        matcher: Callable[[Any], bool] | None = None,
        *,
        policy: ConfirmationPolicy | None = None,
        accept_growth: bool = False,
        label: str = "probe",
    ) -> None:
        self.store = store
        self.destination = destination
        self.matcher = matcher
        self.policy = policy or ConfirmationPolicy.from_config()
        self.accept_growth = accept_growth
        self.label = label

    @property
    def deadline_ms(self) -> int:
        return int(self.policy.deadline * 1000)

    async def read_entries(self) -> list[Any] | None:
        """Current entries for the destination, or ``None`` when the store could not be read."""
        try:
            value = self.store.list_entries(self.destination)
            if inspect.isawaitable(value):
                value = await value
        except Exception as exc:
            logger.debug("[ConfirmationProbe:{}] store read failed: {}", self.label, exc)
            return None
        return normalize_entries(value)

    async def baseline(self) -> ProbeBaseline | None:
        entries = await self.read_entries()
        if entries is None:
            # one more read after a poll interval before giving up
            await asyncio.sleep(self.policy.interval)
            entries = await self.read_entries()
        if entries is None:
            logger.warning("[ConfirmationProbe:{}] baseline unreadable", self.label)
            return None
        return ProbeBaseline(
            count=len(entries),
            fingerprints=frozenset(entry_fingerprint(e) for e in entries),
        )

    def _matches(self, entry: Any) -> bool:
        if self.matcher is None:
            return True
        try:
            return bool(self.matcher(entry))
        except Exception:
            return False

    async def check(self, baseline: ProbeBaseline) -> bool:
        entries = await self.read_entries()
        if entries is None:
            return False
        for entry in entries:
            if entry_fingerprint(entry) in baseline.fingerprints:
                continue
            if self._matches(entry):
                return True
        return self.accept_growth and len(entries) > baseline.count

    async def wait(self, baseline: ProbeBaseline) -> bool:
        """Poll until a new matching entry appears (True) or the deadline passes (False)."""
        loop = asyncio.get_running_loop()
        started = loop.time()
        deadline = self.policy.deadline
        while True:
            remaining = deadline - (loop.time() - started)
            if remaining <= 0:
                return False
            await asyncio.sleep(min(self.policy.interval, remaining))
            if loop.time() - started > deadline:
                return False
            if await self.check(baseline):
                return True


__all__ = [
    "ConfirmationProbe",
    "ProbeBaseline",
    "entry_fingerprint",
    "normalize_entries",
]
