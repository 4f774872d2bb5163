"""
Candidate domain

This package centralizes:
- candidate resolving (registry scan + scoring + process-wide cache)
- speculative invocation across call shapes, with side-effect confirmation
- sequential failover across ranked candidates
- candidate attempt recording & audit
"""

from src.services.candidate.failover import FailoverEngine
from src.services.candidate.invoker import CandidateInvoker
from src.services.candidate.policy import ConfirmationPolicy, InvocationPolicy, ScanPolicy
from src.services.candidate.probe import ConfirmationProbe, normalize_entries
from src.services.candidate.resolver import CandidateResolver, clear_candidate_cache
from src.services.candidate.schema import (
    CANDIDATE_KEY_SCHEMA_VERSION,
    Candidate,
    CandidateKey,
    CandidateResult,
    CandidateSet,
    InvocationOutcome,
    InvocationRejected,
    InvocationSuccess,
    InvocationTimedOut,
)
from src.services.candidate.service import CandidateService
from src.services.candidate.submit import (
    AllCandidatesExhaustedError,
    ConfirmationStore,
    ConfirmationTimeoutError,
    ConfirmationUnavailableError,
)

__all__ = [
    "CandidateService",
    "CandidateResolver",
    "CandidateInvoker",
    "FailoverEngine",
    "clear_candidate_cache",
    # schema
    "CANDIDATE_KEY_SCHEMA_VERSION",
    "Candidate",
    "CandidateKey",
    "CandidateResult",
    "CandidateSet",
    "InvocationOutcome",
    "InvocationRejected",
    "InvocationSuccess",
    "InvocationTimedOut",
    # confirmation
    "ConfirmationProbe",
    "ConfirmationStore",
    "normalize_entries",
    # policies
    "ConfirmationPolicy",
    "InvocationPolicy",
    "ScanPolicy",
    # errors
    "AllCandidatesExhaustedError",
    "ConfirmationTimeoutError",
    "ConfirmationUnavailableError",
]
