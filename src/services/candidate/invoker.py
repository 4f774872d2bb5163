"""
单候选调用器

对一个候选按顺序尝试各调用形态：
- 同步抛错：记录后立即尝试下一个形态（不等待）
- 正常返回：没有探针则直接成功；有探针则轮询确认，超时视为该形态静默失败
- 探针基线读不出：不执行调用，该形态直接失败
- 全部形态失败：返回 Rejected，携带最后一个错误

结果以 InvocationOutcome 返回而不是抛出，由故障转移引擎据此决定下一步。
"""

from __future__ import annotations

import asyncio
import inspect
import time
from typing import Any, Mapping, Sequence

from src.core.discovery.query import CallShape, DomainArgs
from src.core.logger import logger

from .policy import InvocationPolicy
from .probe import ConfirmationProbe
from .schema import (
    Candidate,
    CandidateKey,
    InvocationOutcome,
    InvocationRejected,
    InvocationSuccess,
    InvocationTimedOut,
)
from .submit import (
    CallRejectedError,
    ConfirmationTimeoutError,
    ConfirmationUnavailableError,
    sanitize_error,
)


class CallTimeoutError(asyncio.TimeoutError):
    """The candidate's own awaitable did not settle within the call timeout."""


def _drain(future: "asyncio.Future[Any]") -> None:
    # abandoned awaitables may finish later; consume the outcome so it goes nowhere
    if future.cancelled():
        return
    exc = future.exception()
    if exc is not None:
        logger.debug("[CandidateInvoker] late failure from abandoned call: {}", exc)


def _explicit_rejection(result: Any) -> bool:
    ok: Any = None
    if isinstance(result, Mapping):
        ok = result.get("ok")
    elif result is not None:
        ok = getattr(result, "ok", None)
    return ok is False


class CandidateInvoker:
    def __init__(self, policy: InvocationPolicy | None = None) -> None:
        self.policy = policy or InvocationPolicy.from_config()

    @staticmethod
    def applicable_shapes(
        candidate: Candidate, call_shapes: Sequence[CallShape]
    ) -> list[tuple[int, CallShape]]:
        return [
            (idx, shape)
            for idx, shape in enumerate(call_shapes)
            if shape.applies_to(candidate.key, candidate.arity)
        ]

    async def _settle(self, result: Any) -> Any:
        if not inspect.isawaitable(result):
            return result
        future = asyncio.ensure_future(result)
        done, _pending = await asyncio.wait({future}, timeout=self.policy.call_timeout)
        if future not in done:
            future.add_done_callback(_drain)
            raise CallTimeoutError(
                f"call did not settle within {int(self.policy.call_timeout * 1000)}ms"
            )
        return future.result()

    async def attempt(
        self,
        candidate: Candidate,
        shape: CallShape,
        shape_index: int,
        domain_args: DomainArgs,
        probe: ConfirmationProbe | None = None,
    ) -> InvocationOutcome:
        """Run exactly one call shape against ``candidate``."""
        try:
            call_args = shape.build(domain_args)
        except Exception as exc:
            return InvocationRejected(error=exc)

        baseline = None
        if probe is not None:
            baseline = await probe.baseline()
            if baseline is None:
                # nothing to compare against, so the call is not made
                return InvocationRejected(
                    error=ConfirmationUnavailableError(shape_label=shape.label)
                )

        try:
            result = candidate.func(*call_args.args, **dict(call_args.kwargs))
            result = await self._settle(result)
        except Exception as exc:
            return InvocationRejected(error=exc)

        if _explicit_rejection(result):
            return InvocationRejected(error=CallRejectedError(f"{candidate.key} returned ok=False"))

        if probe is None or baseline is None:
            return InvocationSuccess(
                shape_index=shape_index, shape_label=shape.label, result=result
            )

        if await probe.wait(baseline):
            return InvocationSuccess(
                shape_index=shape_index, shape_label=shape.label, result=result, confirmed=True
            )
        return InvocationTimedOut(
            shape_index=shape_index, shape_label=shape.label, waited_ms=probe.deadline_ms
        )

    async def invoke(
        self,
        candidate: Candidate,
        call_shapes: Sequence[CallShape],
        domain_args: DomainArgs,
        probe: ConfirmationProbe | None = None,
        *,
        capability: str | None = None,
        candidate_index: int = 0,
        request_id: str | None = None,
    ) -> InvocationSuccess | InvocationRejected:
        shapes = self.applicable_shapes(candidate, call_shapes)
        attempts: list[CandidateKey] = []
        if not shapes:
            error = CallRejectedError(f"no call shape applies to {candidate.key}")
            return InvocationRejected(error=error, attempts=attempts)

        last_error: BaseException | None = None
        for shape_index, shape in shapes:
            started = time.perf_counter()
            outcome = await self.attempt(candidate, shape, shape_index, domain_args, probe)
            latency_ms = int((time.perf_counter() - started) * 1000)

            base = dict(
                capability=capability,
                request_id=request_id,
                candidate_index=candidate_index,
                shape_index=shape_index,
                shape_label=shape.label,
                key=candidate.key,
                path=candidate.path,
                score=candidate.score,
                latency_ms=latency_ms,
            )

            if isinstance(outcome, InvocationSuccess):
                attempts.append(CandidateKey(status="success", **base))
                outcome.attempts = attempts
                return outcome

            if isinstance(outcome, InvocationTimedOut):
                last_error = ConfirmationTimeoutError(
                    shape_label=outcome.shape_label,
                    waited_ms=outcome.waited_ms,
                    capability=capability,
                )
                status = "timeout"
            else:
                last_error = outcome.error
                status = "rejected"

            attempts.append(
                CandidateKey(
                    status=status,
                    error_type=type(last_error).__name__,
                    error_message=sanitize_error(str(last_error)),
                    **base,
                )
            )
            logger.debug(
                "[CandidateInvoker] {} shape={} failed: {}",
                candidate.describe(),
                shape.label,
                last_error,
            )

        if last_error is None:
            last_error = CallRejectedError(f"every call shape failed for {candidate.key}")
        return InvocationRejected(error=last_error, attempts=attempts)


__all__ = ["CallTimeoutError", "CandidateInvoker"]
