"""
能力查询定义

CapabilityQuery 描述"需要什么能力"，由调用方为每类动作构造一次，之后不再修改。
CallShape 描述"如何猜测参数约定"，按历史上最常见的约定排序。
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping


@dataclass(frozen=True)
class KnownShape:
    """A previously observed module shape: modules exposing ``props`` tend to carry ``target``."""

    props: tuple[str, ...]
    target: str

    @classmethod
    def of(cls, *props: str, target: str | None = None) -> "KnownShape":
        if not props:
            raise ValueError("KnownShape needs at least one property")
        return cls(props=tuple(props), target=target or props[-1])


@dataclass(frozen=True)
class DomainArgs:
    """Domain arguments handed to every call shape."""

    payload: Any
    destination: Any
    destination_ref: Any = None
    type_tag: int = 0
    extras: Mapping[str, Any] = field(default_factory=dict)

    @property
    def resolved_destination(self) -> Any:
        return self.destination if self.destination_ref is None else self.destination_ref


@dataclass(frozen=True)
class CallArgs:
    args: tuple[Any, ...] = ()
    kwargs: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class CallShape:
    """
    One guess at a candidate's calling convention.

    ``keys`` limits the shape to candidates found under one of those property keys,
    ``key_pattern`` to keys the regex matches from the start, and ``arity`` to
    candidates with exactly that many positional parameters.
    """

    label: str
    build: Callable[[DomainArgs], CallArgs]
    keys: frozenset[str] | None = None
    arity: int | None = None
    key_pattern: str | None = None

    def applies_to(self, key: str, arity: int | None) -> bool:
        if self.keys is not None and key not in self.keys:
            return False
        if self.key_pattern is not None and not re.match(self.key_pattern, key):
            return False
        if self.arity is not None and arity != self.arity:
            return False
        return True


@dataclass(frozen=True)
class CapabilityQuery:
    name: str
    keywords: frozenset[str] = frozenset()
    exact_name: str | None = None
    source_fragments: tuple[str, ...] = ()
    known_path: str | None = None
    known_shapes: tuple[KnownShape, ...] = ()
    call_shapes: tuple[CallShape, ...] = ()
    refresh_on_invoke: bool = False
    # candidates scoring below this are never invoked
    min_score: int = 1

    def __post_init__(self) -> None:
        # keyword matching is case-insensitive everywhere
        object.__setattr__(self, "keywords", frozenset(k.lower() for k in self.keywords if k))

    def matches_key(self, key: str) -> bool:
        lowered = key.lower()
        if self.exact_name and key == self.exact_name:
            return True
        return any(kw in lowered for kw in self.keywords)

    def known_props(self) -> frozenset[str]:
        props: set[str] = set()
        for shape in self.known_shapes:
            props.update(shape.props)
        return frozenset(props)

    def known_targets(self) -> frozenset[str]:
        return frozenset(shape.target for shape in self.known_shapes)


__all__ = [
    "CallArgs",
    "CallShape",
    "CapabilityQuery",
    "DomainArgs",
    "KnownShape",
]
