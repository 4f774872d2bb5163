"""
核心异常定义

只有聚合后的失败才会越过引擎边界；`user_message` 用于给最终用户展示，
不包含候选名称和分数。
"""

from __future__ import annotations

from typing import Any


class CapabilityError(RuntimeError):
    """Base class for errors surfaced by the capability engine."""

    user_message = "The action could not be completed."

    def __init__(self, message: str, *, capability: str | None = None) -> None:
        self.capability = capability
        super().__init__(message)


class InvalidInputError(CapabilityError):
    """输入在解析/候选查找之前就不合法（如渲染结果损坏）。"""

    user_message = "The generated content is invalid."

    def __init__(
        self,
        message: str,
        *,
        capability: str | None = None,
        details: list[dict[str, Any]] | None = None,
    ) -> None:
        self.details = details or []
        super().__init__(message, capability=capability)


class NoCandidatesFoundError(CapabilityError):
    """扫描没有找到任何可用的可调用对象。"""

    user_message = "This action is not available in the current host."

    def __init__(self, *, capability: str, diagnostics: dict[str, Any] | None = None) -> None:
        self.diagnostics = diagnostics or {}
        super().__init__(f"No candidates found for capability: {capability}", capability=capability)


class ResolverReentryError(CapabilityError):
    """resolve() was re-entered for a query that is already being resolved."""
