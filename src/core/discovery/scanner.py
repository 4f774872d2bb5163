"""
注册表扫描

按优先级产出三路图根节点，交给遍历器 + 打分器：

1. known-shape：按手工排序的"某类模块通常同时暴露这些属性"进行查找，最便宜也最可靠
2. instantiated：已求值的模块，浅层键名命中关键字才进入昂贵的遍历
3. lazy：从未求值的模块，先扫描其工厂源码文本，按命中密度排序，只求值前 N 个

遍历中只保留键名或源码指向该能力的可调用对象，其余只计数。
任何单个查找/求值失败都视为"没有信息"并跳过，不会中断整个扫描。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import ModuleType
from typing import Any, Callable

from src.config.settings import config
from src.core.logger import logger
from src.core.metrics import capability_scan_roots_total

from .introspect import get_member, is_candidate_callable, printed_source, shallow_keys
from .query import CapabilityQuery
from .registry import ModuleDescriptor, ModuleRegistry
from .walker import walk

STREAM_KNOWN_SHAPE = "known-shape"
STREAM_KNOWN_PATH = "known-path"
STREAM_INSTANTIATED = "instantiated"
STREAM_LAZY = "lazy"


@dataclass(frozen=True)
class ScanPolicy:
    """Budgets bounding one scan."""

    max_nodes: int = 2000
    max_depth: int = 3
    lazy_eval_top_n: int = 8

    @classmethod
    def from_config(cls) -> "ScanPolicy":
        return cls(
            max_nodes=config.max_nodes,
            max_depth=config.max_depth,
            lazy_eval_top_n=config.lazy_eval_top_n,
        )


@dataclass(slots=True)
class Discovery:
    """One (key, callable) pair reached by the scan, before scoring."""

    key: str
    func: Callable[..., Any]
    context: Any
    path: str
    direct: bool = False


@dataclass(slots=True)
class ScanReport:
    discoveries: list[Discovery] = field(default_factory=list)
    roots: dict[str, int] = field(
        default_factory=lambda: {
            STREAM_KNOWN_SHAPE: 0,
            STREAM_INSTANTIATED: 0,
            STREAM_LAZY: 0,
        }
    )
    nodes_visited: int = 0
    truncated: bool = False
    evaluated: list[str] = field(default_factory=list)
    failures: int = 0
    # callables reached but named and written unlike the capability
    ignored: int = 0


def hint_density(source: str, query: CapabilityQuery) -> float:
    """Weighted keyword/fragment hits per KiB of source text."""
    if not source:
        return 0.0
    lowered = source.lower()
    hits = sum(lowered.count(kw) for kw in query.keywords)
    hits += 3 * sum(source.count(fragment) for fragment in query.source_fragments if fragment)
    if query.exact_name:
        hits += 3 * source.count(query.exact_name)
    if not hits:
        return 0.0
    return hits / (len(source) / 1024 + 1)


def is_plausible(query: CapabilityQuery, key: str, func: Any) -> bool:
    """A reached callable is kept only when its key or printed source points at the capability."""
    if query.matches_key(key) or key in query.known_targets():
        return True
    if not query.source_fragments:
        return False
    source = printed_source(func)
    return bool(source) and any(f in source for f in query.source_fragments if f)


class RegistryScanner:
    def __init__(self, registry: ModuleRegistry, policy: ScanPolicy | None = None) -> None:
        self.registry = registry
        self.policy = policy or ScanPolicy.from_config()

    # ------------------------------------------------------------------ streams

    def known_shape_roots(
        self, query: CapabilityQuery, report: ScanReport
    ) -> list[tuple[str, Any]]:
        roots: list[tuple[str, Any]] = []
        for shape in query.known_shapes:
            try:
                module = self.registry.find_by_props(*shape.props)
            except Exception as exc:
                report.failures += 1
                logger.debug("[RegistryScanner] find_by_props{} failed: {}", shape.props, exc)
                continue
            if module is None:
                continue
            roots.append((f"props:{'+'.join(shape.props)}", module))
            try:
                target = get_member(module, shape.target)
            except Exception:
                continue
            if is_candidate_callable(target):
                report.discoveries.append(
                    Discovery(
                        key=shape.target,
                        func=target,
                        context=module,
                        path=STREAM_KNOWN_SHAPE,
                        direct=True,
                    )
                )

        hit = self._resolve_known_path(query, report)
        if hit is not None:
            report.discoveries.append(hit)
        return roots

    def _resolve_known_path(self, query: CapabilityQuery, report: ScanReport) -> Discovery | None:
        if not query.known_path:
            return None
        module_id, _, attr_path = query.known_path.partition(":")
        try:
            context: Any = None
            current = self.registry.get_exports(module_id)
            key = module_id
            for part in filter(None, attr_path.split(".")):
                context, key = current, part
                current = get_member(current, part)
        except Exception as exc:
            report.failures += 1
            logger.debug("[RegistryScanner] known path {} unavailable: {}", query.known_path, exc)
            return None
        if not is_candidate_callable(current):
            return None
        return Discovery(key=key, func=current, context=context, path=STREAM_KNOWN_PATH, direct=True)

    def instantiated_roots(
        self, query: CapabilityQuery, modules: list[ModuleDescriptor], report: ScanReport
    ) -> list[tuple[str, Any]]:
        known_props = query.known_props()
        roots: list[tuple[str, Any]] = []
        for desc in modules:
            if not desc.evaluated or desc.exports is None:
                continue
            try:
                keys = shallow_keys(desc.exports)
            except Exception:
                report.failures += 1
                continue
            if any(query.matches_key(k) or k in known_props for k in keys):
                roots.append((desc.module_id, desc.exports))
                continue
            # exports named opaquely; the factory text may still mention the capability
            source = desc.factory_source()
            if source and hint_density(source, query) > 0:
                roots.append((desc.module_id, desc.exports))
        return roots

    def lazy_roots(
        self, query: CapabilityQuery, modules: list[ModuleDescriptor], report: ScanReport
    ) -> list[tuple[str, Any]]:
        ranked: list[tuple[float, int, str]] = []
        for order, desc in enumerate(modules):
            if desc.evaluated:
                continue
            source = desc.factory_source()
            if not source:
                continue
            density = hint_density(source, query)
            if density > 0:
                ranked.append((density, order, desc.module_id))

        # highest density first; registry order breaks ties
        ranked.sort(key=lambda item: (-item[0], item[1]))
        roots: list[tuple[str, Any]] = []
        for _density, _order, module_id in ranked[: max(self.policy.lazy_eval_top_n, 0)]:
            try:
                exports = self.registry.evaluate(module_id)
            except Exception as exc:
                report.failures += 1
                logger.debug("[RegistryScanner] evaluating {} failed: {}", module_id, exc)
                continue
            report.evaluated.append(module_id)
            if exports is not None:
                roots.append((module_id, exports))
        return roots

    # ------------------------------------------------------------------ scan

    def scan(self, query: CapabilityQuery) -> ScanReport:
        report = ScanReport()
        walked: set[int] = set()

        def run_stream(stream: str, roots: list[tuple[str, Any]]) -> None:
            report.roots[stream] += len(roots)
            if roots:
                capability_scan_roots_total.labels(stream).inc(len(roots))
            for _label, root in roots:
                if id(root) in walked:
                    continue
                walked.add(id(root))
                self._walk_root(query, root, stream, report)

        run_stream(STREAM_KNOWN_SHAPE, self.known_shape_roots(query, report))

        try:
            modules = list(self.registry.iter_modules())
        except Exception as exc:
            report.failures += 1
            logger.warning("[RegistryScanner] registry enumeration failed: {}", exc)
            return report

        run_stream(STREAM_INSTANTIATED, self.instantiated_roots(query, modules, report))
        run_stream(STREAM_LAZY, self.lazy_roots(query, modules, report))
        return report

    def _walk_root(
        self, query: CapabilityQuery, root: Any, stream: str, report: ScanReport
    ) -> None:
        remaining = self.policy.max_nodes - report.nodes_visited
        if remaining <= 0:
            report.truncated = True
            return

        def visit(node: Any, key: str, child: Any) -> bool:
            if is_candidate_callable(child):
                if is_plausible(query, key, child):
                    report.discoveries.append(
                        Discovery(key=key, func=child, context=node, path=stream)
                    )
                else:
                    report.ignored += 1
            # imported modules are references, not part of this module's surface
            return not isinstance(child, ModuleType)

        try:
            stats = walk(root, visit, remaining, self.policy.max_depth)
        except Exception as exc:
            report.failures += 1
            logger.debug("[RegistryScanner] walk aborted for {} root: {}", stream, exc)
            return
        report.nodes_visited += stats.nodes
        report.truncated = report.truncated or stats.truncated


__all__ = [
    "Discovery",
    "RegistryScanner",
    "STREAM_INSTANTIATED",
    "STREAM_KNOWN_PATH",
    "STREAM_KNOWN_SHAPE",
    "STREAM_LAZY",
    "ScanPolicy",
    "ScanReport",
    "hint_density",
    "is_plausible",
]
