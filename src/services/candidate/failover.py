from __future__ import annotations

from typing import Any, Sequence

from src.core.discovery.query import CallShape, DomainArgs
from src.core.logger import logger
from src.core.metrics import capability_attempt_total

from .invoker import CandidateInvoker
from .policy import InvocationPolicy
from .probe import ConfirmationProbe
from .recorder import CandidateRecorder
from .schema import Candidate, CandidateKey, CandidateResult, InvocationSuccess
from .submit import AllCandidatesExhaustedError, sanitize_error as _sanitize


class FailoverEngine:
    """
    FailoverEngine executes candidate attempts strictly in ranked order.

    Attempt N+1 only starts after attempt N has definitively failed or timed out;
    two candidates are never in flight together.
    """

    def __init__(
        self,
        invoker: CandidateInvoker | None = None,
        recorder: CandidateRecorder | None = None,
        policy: InvocationPolicy | None = None,
    ) -> None:
        self.policy = policy or InvocationPolicy.from_config()
        self.invoker = invoker or CandidateInvoker(self.policy)
        self.recorder = recorder

    async def execute(
        self,
        *,
        capability: str,
        candidates: Sequence[Candidate],
        call_shapes: Sequence[CallShape],
        domain_args: DomainArgs,
        probe: ConfirmationProbe | None = None,
        request_id: str | None = None,
        diagnostics: dict[str, Any] | None = None,
        max_candidates: int | None = None,
    ) -> CandidateResult:
        if max_candidates is not None and max_candidates > 0:
            candidates = list(candidates)[:max_candidates]

        candidate_keys: list[CandidateKey] = []
        errors: list[str] = []
        tried = 0

        for idx, cand in enumerate(candidates):
            tried += 1
            outcome = await self.invoker.invoke(
                cand,
                call_shapes,
                domain_args,
                probe,
                capability=capability,
                candidate_index=idx,
                request_id=request_id,
            )
            candidate_keys.extend(outcome.attempts)
            self._record(outcome.attempts)

            if isinstance(outcome, InvocationSuccess):
                capability_attempt_total.labels(capability, "success").inc()
                logger.info(
                    "[FailoverEngine] {} satisfied by candidate #{} ({}) shape={}",
                    capability,
                    idx,
                    cand.describe(),
                    outcome.shape_label,
                )
                return CandidateResult(
                    success=True,
                    selected=cand,
                    selected_index=idx,
                    candidate_keys=candidate_keys,
                    result=outcome.result,
                )

            capability_attempt_total.labels(capability, "failed").inc()
            error_msg = _sanitize(str(outcome.error))
            if not outcome.attempts:
                candidate_keys.append(
                    CandidateKey(
                        capability=capability,
                        request_id=request_id,
                        candidate_index=idx,
                        key=cand.key,
                        path=cand.path,
                        score=cand.score,
                        status="skipped",
                        error_type=type(outcome.error).__name__,
                        error_message=error_msg,
                    )
                )
            if len(errors) < self.policy.error_samples:
                errors.append(f"#{idx} {cand.key}: {type(outcome.error).__name__}: {error_msg}")
            logger.debug("[FailoverEngine] candidate #{} {} failed: {}", idx, cand.describe(), error_msg)

        logger.warning("[FailoverEngine] {} exhausted after {} candidates", capability, tried)
        raise AllCandidatesExhaustedError(
            capability=capability,
            tried=tried,
            errors=errors,
            candidate_keys=[k.to_dict() for k in candidate_keys],
            diagnostics=diagnostics,
        )

    def _record(self, keys: list[CandidateKey]) -> None:
        if self.recorder is None or not keys:
            return
        try:
            self.recorder.record(keys)
        except Exception as exc:
            logger.warning("[FailoverEngine] Failed to record candidate attempts: {}", _sanitize(str(exc)))


__all__ = ["FailoverEngine"]
