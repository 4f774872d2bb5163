"""
有界广度优先遍历

显式工作队列（无递归），按对象 id 去重防环，节点数与深度都有硬上限，
用来限制同步扫描阶段占用事件循环的时间。遍历器本身不解释结果：
visit 对每条 (node, key, child) 边调用一次，返回真值表示继续展开 child。
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from types import FunctionType, MethodType, ModuleType
from typing import Any, Callable, Iterator, Mapping

from .introspect import get_member, iter_public_names

VisitFunc = Callable[[Any, str, Any], Any]

_LEAF_TYPES = (
    str,
    bytes,
    bytearray,
    memoryview,
    int,
    float,
    complex,
    bool,
    type(None),
    FunctionType,
    MethodType,
    type,
)


@dataclass(slots=True)
class WalkStats:
    nodes: int = 0
    edges: int = 0
    max_depth_reached: int = 0
    truncated: bool = False


def is_expandable(value: Any) -> bool:
    """Containers whose members are worth enumerating."""
    if isinstance(value, _LEAF_TYPES):
        return False
    if isinstance(value, (Mapping, ModuleType)):
        return True
    return hasattr(value, "__dict__") or hasattr(type(value), "__slots__")


def iter_children(node: Any) -> Iterator[tuple[str, Any]]:
    if isinstance(node, Mapping):
        try:
            items = list(node.items())
        except Exception:
            return
        for key, child in items:
            if isinstance(key, str):
                yield key, child
        return

    for name in iter_public_names(node):
        try:
            child = get_member(node, name)
        except Exception:
            # properties may raise; treat as absent
            continue
        yield name, child


def walk(root: Any, visit: VisitFunc, max_nodes: int, max_depth: int) -> WalkStats:
    stats = WalkStats()
    if root is None or max_nodes <= 0:
        return stats

    visited: set[int] = {id(root)}
    queue: deque[tuple[Any, int]] = deque([(root, 0)])

    while queue:
        if stats.nodes >= max_nodes:
            stats.truncated = True
            break
        node, depth = queue.popleft()
        stats.nodes += 1
        stats.max_depth_reached = max(stats.max_depth_reached, depth)

        for key, child in iter_children(node):
            stats.edges += 1
            enqueue = visit(node, key, child)
            if not enqueue or depth + 1 > max_depth:
                continue
            if not is_expandable(child) or id(child) in visited:
                continue
            visited.add(id(child))
            queue.append((child, depth + 1))

    return stats


__all__ = ["WalkStats", "is_expandable", "iter_children", "walk"]
