from __future__ import annotations

from typing import Any

from sqlalchemy.orm import Session

from src.core.discovery.query import CapabilityQuery, DomainArgs
from src.core.discovery.registry import ModuleRegistry
from src.core.exceptions import InvalidInputError, NoCandidatesFoundError
from src.core.logger import logger

from .failover import FailoverEngine
from .policy import InvocationPolicy, ScanPolicy
from .probe import ConfirmationProbe
from .recorder import CandidateRecorder
from .resolver import CandidateResolver
from .schema import CandidateKey, CandidateResult, CandidateSet


class CandidateService:
    """
    CandidateService (Facade).

    resolve → rank → sequential failover → confirmation. Only the aggregate
    failure (or an input/availability error) leaves this service.
    """

    def __init__(
        self,
        registry: ModuleRegistry,
        *,
        db: Session | None = None,
        scan_policy: ScanPolicy | None = None,
        invocation_policy: InvocationPolicy | None = None,
        resolver: CandidateResolver | None = None,
    ) -> None:
        self.registry = registry
        self.db = db
        self._recorder = CandidateRecorder(db) if db is not None else None
        self._resolver = resolver or CandidateResolver(registry, scan_policy=scan_policy)
        self._engine = FailoverEngine(recorder=self._recorder, policy=invocation_policy)

    @classmethod
    def with_audit(cls, registry: ModuleRegistry, **kwargs: Any) -> "CandidateService":
        """Build a service that persists attempts when AUDIT_DATABASE_URL is configured."""
        from src.database import create_session

        return cls(registry, db=create_session(), **kwargs)

    def resolve(self, query: CapabilityQuery, force_refresh: bool = False) -> CandidateSet:
        return self._resolver.resolve(query, force_refresh=force_refresh)

    @staticmethod
    def _validate(query: CapabilityQuery, domain_args: DomainArgs) -> None:
        if not isinstance(domain_args, DomainArgs):
            raise InvalidInputError(
                f"domain_args must be DomainArgs, got {type(domain_args).__name__}",
                capability=query.name,
            )
        if domain_args.payload is None:
            raise InvalidInputError("payload is required", capability=query.name)
        if domain_args.destination is None or domain_args.destination == "":
            raise InvalidInputError("destination is required", capability=query.name)
        if not query.call_shapes:
            raise InvalidInputError(
                f"capability {query.name} declares no call shapes", capability=query.name
            )

    async def resolve_and_invoke(
        self,
        query: CapabilityQuery,
        domain_args: DomainArgs,
        probe: ConfirmationProbe | None = None,
        *,
        request_id: str | None = None,
        max_candidates: int | None = None,
    ) -> CandidateResult:
        """
        Find and run one working path for ``query``.

        Raises:
            InvalidInputError: malformed arguments, nothing resolved yet
            NoCandidatesFoundError: the scan produced no callable
            AllCandidatesExhaustedError: every candidate/call shape failed
        """
        self._validate(query, domain_args)

        candidate_set = self.resolve(query, force_refresh=query.refresh_on_invoke)
        if not candidate_set:
            logger.warning("[CandidateService] no candidates for {}", query.name)
            raise NoCandidatesFoundError(
                capability=query.name, diagnostics=candidate_set.diagnostics
            )

        return await self._engine.execute(
            capability=query.name,
            candidates=candidate_set.candidates,
            call_shapes=query.call_shapes,
            domain_args=domain_args,
            probe=probe,
            request_id=request_id,
            diagnostics=candidate_set.diagnostics,
            max_candidates=max_candidates,
        )

    def get_candidate_keys(self, request_id: str) -> list[CandidateKey]:
        if self._recorder is None:
            return []
        return self._recorder.get_candidate_keys(request_id)
