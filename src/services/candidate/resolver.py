"""
CandidateResolver

扫描注册表 → 打分 → 合并直接命中 → 按可调用对象身份去重 → 丢弃低于 min_score 的 → 排序 → 缓存。

缓存是进程级状态：启动时为空，按查询惰性填充，只能通过强制刷新或
clear_candidate_cache() 失效。解析器是唯一的写入方。
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import Any, Generator, Hashable

from src.config.settings import config
from src.core.discovery.introspect import callable_identity, positional_arity, printed_source
from src.core.discovery.query import CapabilityQuery
from src.core.discovery.registry import ModuleRegistry
from src.core.discovery.scanner import RegistryScanner, ScanPolicy, ScanReport
from src.core.discovery.scorer import DIRECT_HIT_BOOST, score_candidate
from src.core.exceptions import ResolverReentryError
from src.core.logger import logger
from src.core.metrics import capability_resolve_duration_seconds

from .schema import Candidate, CandidateSet

_CANDIDATE_CACHE: dict[CapabilityQuery, CandidateSet] = {}


def clear_candidate_cache(query: CapabilityQuery | None = None) -> None:
    if query is None:
        _CANDIDATE_CACHE.clear()
    else:
        _CANDIDATE_CACHE.pop(query, None)


@contextmanager
def _track_resolution(capability: str) -> Generator[None, None, None]:
    start = time.perf_counter()
    try:
        yield
    finally:
        capability_resolve_duration_seconds.labels(capability).observe(time.perf_counter() - start)


class CandidateResolver:
    def __init__(
        self,
        registry: ModuleRegistry,
        *,
        scan_policy: ScanPolicy | None = None,
        cache: dict[CapabilityQuery, CandidateSet] | None = None,
        top_k: int | None = None,
    ) -> None:
        self.registry = registry
        self.scanner = RegistryScanner(registry, scan_policy)
        self._cache = _CANDIDATE_CACHE if cache is None else cache
        self.top_k = config.diagnostics_top_k if top_k is None else top_k
        self._resolving: set[CapabilityQuery] = set()

    def resolve(self, query: CapabilityQuery, force_refresh: bool = False) -> CandidateSet:
        cached = self._cache.get(query)
        if cached is not None and cached and not force_refresh:
            return cached

        if query in self._resolving:
            raise ResolverReentryError(
                f"resolve() re-entered for {query.name}", capability=query.name
            )
        self._resolving.add(query)
        try:
            with _track_resolution(query.name):
                candidate_set = self._build(query)
        finally:
            self._resolving.discard(query)

        self._cache[query] = candidate_set
        return candidate_set

    def _build(self, query: CapabilityQuery) -> CandidateSet:
        report = self.scanner.scan(query)

        best: dict[Hashable, Candidate] = {}
        sources: dict[Hashable, str] = {}
        for order, found in enumerate(report.discoveries):
            identity = callable_identity(found.func)
            if query.source_fragments and identity not in sources:
                sources[identity] = printed_source(found.func)
            try:
                score = score_candidate(
                    query, found.key, found.func, found.path, source=sources.get(identity)
                )
            except Exception as exc:
                logger.debug("[CandidateResolver] scoring {} failed: {}", found.key, exc)
                continue
            if found.direct:
                score += DIRECT_HIT_BOOST

            existing = best.get(identity)
            if existing is not None and existing.score >= score:
                continue
            best[identity] = Candidate(
                func=found.func,
                context=found.context,
                key=found.key,
                path=found.path,
                score=score,
                arity=positional_arity(found.func),
                # keep first-seen position so ties stay in discovery order
                order=existing.order if existing is not None else order,
                direct=found.direct,
            )

        kept = [c for c in best.values() if c.score >= query.min_score]
        ranked = sorted(kept, key=lambda c: (-c.score, c.order))
        candidate_set = CandidateSet(query=query, candidates=ranked)
        candidate_set.diagnostics = self._summarize(
            query, report, candidate_set, below_min_score=len(best) - len(kept)
        )
        return candidate_set

    def _summarize(
        self,
        query: CapabilityQuery,
        report: ScanReport,
        candidate_set: CandidateSet,
        *,
        below_min_score: int = 0,
    ) -> dict[str, Any]:
        # advisory only: never let diagnostics break resolution
        try:
            summary: dict[str, Any] = {
                "capability": query.name,
                "roots": dict(report.roots),
                "discovered": len(report.discoveries),
                "ignored": report.ignored,
                "below_min_score": below_min_score,
                "candidates": len(candidate_set),
                "nodes_visited": report.nodes_visited,
                "truncated": report.truncated,
                "lazy_evaluated": list(report.evaluated),
                "failures": report.failures,
                "top": [
                    {"key": c.key, "path": c.path, "score": c.score, "arity": c.arity}
                    for c in candidate_set.top(self.top_k)
                ],
            }
            logger.debug("[CandidateResolver] {} resolved: {}", query.name, summary)
            return summary
        except Exception as exc:
            logger.warning("[CandidateResolver] diagnostics failed for {}: {}", query.name, exc)
            return {"capability": query.name}


__all__ = ["CandidateResolver", "clear_candidate_cache"]
