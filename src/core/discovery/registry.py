"""
宿主模块注册表

注册表是引擎消费的外部接口：可以枚举模块描述符，每个描述符要么已经有
求值后的导出对象，要么只有一个尚未执行的工厂（可以只读地查看其源码）。
`evaluate()` 会按需执行某个模块，可能带有副作用，是扫描中最昂贵的操作。

提供两种实现：
- InMemoryModuleRegistry：按 id 注册工厂函数（嵌入方 / 测试使用）
- PythonModuleRegistry：基于当前解释器的 sys.modules 与 pkgutil
"""

from __future__ import annotations

import importlib
import importlib.util
import inspect
import pkgutil
import sys
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Iterator, Protocol, runtime_checkable

from src.core.logger import logger


@dataclass(slots=True)
class ModuleDescriptor:
    module_id: str
    exports: Any = None
    evaluated: bool = False
    source_loader: Callable[[], str | None] | None = field(default=None, repr=False)

    def factory_source(self) -> str | None:
        """Source text of the module factory, read without executing it."""
        if self.source_loader is None:
            return None
        try:
            return self.source_loader()
        except Exception as exc:
            logger.debug("[ModuleRegistry] source unavailable for {}: {}", self.module_id, exc)
            return None


@runtime_checkable
class ModuleRegistry(Protocol):
    def iter_modules(self) -> Iterable[ModuleDescriptor]: ...

    def evaluate(self, module_id: str) -> Any: ...

    def get_exports(self, module_id: str) -> Any: ...

    def find_by_props(self, *props: str) -> Any: ...


def _has_props(obj: Any, props: tuple[str, ...]) -> bool:
    if obj is None:
        return False
    if isinstance(obj, dict):
        return all(p in obj for p in props)
    try:
        return all(hasattr(obj, p) for p in props)
    except Exception:
        return False


class BaseModuleRegistry:
    """Shared lookups on top of ``iter_modules`` / ``evaluate``."""

    def iter_modules(self) -> Iterable[ModuleDescriptor]:
        raise NotImplementedError

    def evaluate(self, module_id: str) -> Any:
        raise NotImplementedError

    def get_exports(self, module_id: str) -> Any:
        raise NotImplementedError

    def find_by_props(self, *props: str) -> Any:
        """
        First evaluated module (or its ``default`` export) exposing every prop.

        Only already-evaluated modules are considered; lookups never trigger evaluation.
        """
        if not props:
            return None
        for desc in self.iter_modules():
            if not desc.evaluated:
                continue
            exports = desc.exports
            if _has_props(exports, props):
                return exports
            default = exports.get("default") if isinstance(exports, dict) else None
            if default is None and not isinstance(exports, dict):
                try:
                    default = getattr(exports, "default", None)
                except Exception:
                    default = None
            if _has_props(default, props):
                return default
        return None


class InMemoryModuleRegistry(BaseModuleRegistry):
    """
    Registry backed by factories registered by id.

    A module registered with ``evaluated=True`` is instantiated right away; others
    keep their factory un-executed until ``evaluate()``.
    """

    def __init__(self) -> None:
        self._factories: dict[str, Callable[[], Any]] = {}
        self._sources: dict[str, str | None] = {}
        self._exports: dict[str, Any] = {}
        self.evaluation_log: list[str] = []

    def register(
        self,
        module_id: str,
        factory: Callable[[], Any],
        *,
        source: str | None = None,
        evaluated: bool = False,
    ) -> None:
        self._factories[module_id] = factory
        self._sources[module_id] = source
        if evaluated:
            self.evaluate(module_id)

    def register_exports(self, module_id: str, exports: Any, *, source: str | None = None) -> None:
        """Register a module that is already instantiated."""
        self._factories[module_id] = lambda: exports
        # no factory text to read for pre-built exports
        self._sources[module_id] = source if source is not None else ""
        self._exports[module_id] = exports

    def _source_for(self, module_id: str) -> str | None:
        explicit = self._sources.get(module_id)
        if explicit is not None:
            return explicit
        return inspect.getsource(self._factories[module_id])

    def iter_modules(self) -> Iterator[ModuleDescriptor]:
        for module_id in list(self._factories):
            yield ModuleDescriptor(
                module_id=module_id,
                exports=self._exports.get(module_id),
                evaluated=module_id in self._exports,
                source_loader=lambda mid=module_id: self._source_for(mid),
            )

    def evaluate(self, module_id: str) -> Any:
        if module_id in self._exports:
            return self._exports[module_id]
        factory = self._factories[module_id]
        self.evaluation_log.append(module_id)
        exports = factory()
        self._exports[module_id] = exports
        return exports

    def get_exports(self, module_id: str) -> Any:
        if module_id not in self._factories:
            raise KeyError(module_id)
        return self.evaluate(module_id)


class PythonModuleRegistry(BaseModuleRegistry):
    """
    The running interpreter as a module registry.

    ``prefixes`` restricts the scan to matching top-level packages; imported
    modules come from ``sys.modules``, unimported submodules of already-imported
    packages are discovered with ``pkgutil.iter_modules`` and their source is read
    through the loader without importing them.
    """

    def __init__(self, prefixes: Iterable[str]) -> None:
        self.prefixes = tuple(p.rstrip(".") for p in prefixes if p)

    def _included(self, name: str) -> bool:
        return any(name == p or name.startswith(p + ".") for p in self.prefixes)

    @staticmethod
    def _module_source(name: str) -> str | None:
        module = sys.modules.get(name)
        if module is not None:
            try:
                return inspect.getsource(module)
            except (OSError, TypeError):
                return None
        spec = importlib.util.find_spec(name)
        if spec is None or spec.loader is None or not hasattr(spec.loader, "get_source"):
            return None
        return spec.loader.get_source(name)

    def iter_modules(self) -> Iterator[ModuleDescriptor]:
        loaded = [(n, m) for n, m in list(sys.modules.items()) if m is not None and self._included(n)]
        seen: set[str] = set()
        for name, module in sorted(loaded, key=lambda item: item[0]):
            seen.add(name)
            yield ModuleDescriptor(
                module_id=name,
                exports=module,
                evaluated=True,
                source_loader=lambda n=name: self._module_source(n),
            )

        for name, module in sorted(loaded, key=lambda item: item[0]):
            search_path = getattr(module, "__path__", None)
            if not search_path:
                continue
            try:
                children = list(pkgutil.iter_modules(search_path, prefix=name + "."))
            except Exception as exc:
                logger.debug("[ModuleRegistry] cannot list {}: {}", name, exc)
                continue
            for info in children:
                if info.name in seen or info.name in sys.modules:
                    continue
                seen.add(info.name)
                yield ModuleDescriptor(
                    module_id=info.name,
                    evaluated=False,
                    source_loader=lambda n=info.name: self._module_source(n),
                )

    def evaluate(self, module_id: str) -> Any:
        return importlib.import_module(module_id)

    def get_exports(self, module_id: str) -> Any:
        module = sys.modules.get(module_id)
        if module is not None:
            return module
        return self.evaluate(module_id)


__all__ = [
    "BaseModuleRegistry",
    "InMemoryModuleRegistry",
    "ModuleDescriptor",
    "ModuleRegistry",
    "PythonModuleRegistry",
]
