"""
Introspection helpers shared by the scorer, scanner and invoker.

Everything here degrades to "no information" instead of raising.
"""

from __future__ import annotations

import inspect
from typing import Any, Callable, Hashable

_POSITIONAL = (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)


def is_candidate_callable(value: Any) -> bool:
    """Callables worth invoking: functions, methods, builtins, callable instances. Not classes."""
    if isinstance(value, type):
        return False
    try:
        return callable(value)
    except Exception:
        return False


def positional_arity(func: Callable[..., Any]) -> int | None:
    """
    Number of positional parameters before the first one with a default.

    Mirrors what a caller can rely on without keywords; ``None`` when the
    signature cannot be read (many builtins).
    """
    try:
        sig = inspect.signature(func)
    except (TypeError, ValueError):
        return None
    count = 0
    for param in sig.parameters.values():
        if param.kind not in _POSITIONAL:
            break
        if param.default is not inspect.Parameter.empty:
            break
        count += 1
    return count


def printed_source(func: Callable[..., Any]) -> str:
    target = getattr(func, "__func__", func)
    try:
        return inspect.getsource(target)
    except (OSError, TypeError):
        pass
    except Exception:
        return ""
    # callable instances: fall back to the class body
    try:
        return inspect.getsource(type(target))
    except Exception:
        return ""


def callable_identity(func: Any) -> Hashable:
    """
    Identity of the underlying callable.

    Bound methods are created fresh on every attribute access, so they are
    keyed by (function, receiver) instead of by the method object itself.
    """
    inner = getattr(func, "__func__", None)
    receiver = getattr(func, "__self__", None)
    if inner is not None and receiver is not None:
        return ("method", id(inner), id(receiver))
    return ("callable", id(func))


def shallow_keys(exports: Any) -> list[str]:
    """Top-level keys of a module export, including a nested ``default`` export."""
    keys: list[str] = []
    for obj in (exports, _default_of(exports)):
        if obj is None:
            continue
        keys.extend(iter_public_names(obj))
    return keys


def iter_public_names(obj: Any) -> list[str]:
    if isinstance(obj, dict):
        return [k for k in obj.keys() if isinstance(k, str)]
    try:
        names = dir(obj)
    except Exception:
        return []
    return [n for n in names if not (n.startswith("__") and n.endswith("__"))]


def get_member(obj: Any, name: str) -> Any:
    """Attribute or mapping lookup; raises on failure like getattr."""
    if isinstance(obj, dict):
        return obj[name]
    return getattr(obj, name)


def _default_of(exports: Any) -> Any:
    try:
        if isinstance(exports, dict):
            return exports.get("default")
        return getattr(exports, "default", None)
    except Exception:
        return None


__all__ = [
    "callable_identity",
    "get_member",
    "is_candidate_callable",
    "iter_public_names",
    "positional_arity",
    "printed_source",
    "shallow_keys",
]
