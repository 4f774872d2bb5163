"""
候选打分

纯函数：相同输入永远得到相同分数。规则相互独立、可叠加：

- 精确命中期望名称：大额加分（主导信号）
- 键名包含查询关键字：每个不同关键字加分
- 源码包含查询给出的字面片段：大额加分（反映实现而不只是命名）
- 位置参数个数在 1..5 之间：小额加分
- 全大写（枚举/常量风格）键名：扣分
- 读取/配置语义的键名（get/is/can/config/limit/error）且不含动作动词：扣分
"""

from __future__ import annotations

import re
from typing import Any, Callable

from .introspect import positional_arity, printed_source
from .query import CapabilityQuery

EXACT_NAME_BONUS = 1000
KEYWORD_BONUS = 40
SOURCE_FRAGMENT_BONUS = 300
ARITY_BONUS = 20
CONSTANT_PENALTY = -200
READ_ONLY_PENALTY = -150

# direct known-shape hits are boosted past anything the rules above can produce
DIRECT_HIT_BOOST = 100_000

ACTION_VERBS = (
    "add",
    "send",
    "queue",
    "push",
    "submit",
    "prompt",
    "create",
    "post",
    "dispatch",
    "put",
    "insert",
    "instant",
)

_READ_ONLY_PREFIXES = ("get", "is", "can", "has", "should")
_READ_ONLY_MARKERS = ("config", "limit", "error")
_CONSTANT_KEY = re.compile(r"^[A-Z0-9_]*[A-Z][A-Z0-9_]*$")
# camelCase / snake_case words: "getHTTPConfig" -> get, HTTP, Config
_KEY_WORD = re.compile(r"[A-Z]+(?=[A-Z][a-z])|[A-Z]?[a-z]+|[A-Z]+|[0-9]+")


def _is_constant_key(key: str) -> bool:
    return bool(_CONSTANT_KEY.match(key))


def _has_prefix_word(key: str, prefix: str) -> bool:
    # "getUploads" / "get_uploads" / "is_ready" count, "github" does not
    if not key.lower().startswith(prefix):
        return False
    rest = key[len(prefix) :]
    return not rest or rest[0].isupper() or rest[0] in "_0123456789"


def _looks_read_only(key: str) -> bool:
    lowered = key.lower()
    if any(_has_prefix_word(key, p) for p in _READ_ONLY_PREFIXES):
        return True
    return any(marker in lowered for marker in _READ_ONLY_MARKERS)


def _key_words(key: str) -> list[str]:
    return [word.lower() for word in _KEY_WORD.findall(key)]


def _has_action_verb(key: str) -> bool:
    # whole words only: "getInputLimit" does not contain the verb "put"
    return any(word in ACTION_VERBS for word in _key_words(key))


def score_candidate(
    query: CapabilityQuery,
    key: str,
    func: Callable[..., Any],
    path: str,
    *,
    source: str | None = None,
) -> int:
    """
    Rank one (key, callable) hypothesis for ``query``.

    ``path`` is accepted for diagnostics symmetry; stage-specific boosts are applied
    by the resolver, not here. ``source`` may be passed when the caller already read
    the printed source of ``func``.
    """
    _ = path
    score = 0

    if query.exact_name and key == query.exact_name:
        score += EXACT_NAME_BONUS

    lowered = key.lower()
    score += KEYWORD_BONUS * sum(1 for kw in query.keywords if kw in lowered)

    if query.source_fragments:
        text = printed_source(func) if source is None else source
        if text and any(fragment in text for fragment in query.source_fragments):
            score += SOURCE_FRAGMENT_BONUS

    arity = positional_arity(func)
    if arity is not None and 1 <= arity <= 5:
        score += ARITY_BONUS

    if _is_constant_key(key):
        score += CONSTANT_PENALTY

    if _looks_read_only(key) and not _has_action_verb(key):
        score += READ_ONLY_PENALTY

    return score


__all__ = [
    "ACTION_VERBS",
    "ARITY_BONUS",
    "CONSTANT_PENALTY",
    "DIRECT_HIT_BOOST",
    "EXACT_NAME_BONUS",
    "KEYWORD_BONUS",
    "READ_ONLY_PENALTY",
    "SOURCE_FRAGMENT_BONUS",
    "score_candidate",
]
