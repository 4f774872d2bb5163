"""
运行配置

所有配置项都从环境变量读取，未设置时使用默认值。
模块级单例 `config` 是唯一入口，测试中可以直接改写属性。
"""

from __future__ import annotations

import os


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, default))
    except (TypeError, ValueError):
        return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_str(name: str, default: str | None) -> str | None:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip()


class Config:
    """Capability engine settings."""

    def __init__(self) -> None:
        # logging
        self.log_level: str = _env_str("LOG_LEVEL", "INFO") or "INFO"
        self.log_json: bool = _env_bool("LOG_JSON", False)

        # discovery budgets
        self.max_nodes: int = _env_int("CAPABILITY_MAX_NODES", 2000)
        self.max_depth: int = _env_int("CAPABILITY_MAX_DEPTH", 3)
        self.lazy_eval_top_n: int = _env_int("CAPABILITY_LAZY_EVAL_TOP_N", 8)
        self.diagnostics_top_k: int = _env_int("CAPABILITY_DIAGNOSTICS_TOP_K", 5)

        # invocation / confirmation
        self.probe_interval_ms: int = _env_int("CAPABILITY_PROBE_INTERVAL_MS", 100)
        self.probe_deadline_ms: int = _env_int("CAPABILITY_PROBE_DEADLINE_MS", 1800)
        self.call_timeout_ms: int = _env_int("CAPABILITY_CALL_TIMEOUT_MS", 5000)
        self.error_samples: int = _env_int("CAPABILITY_ERROR_SAMPLES", 3)

        # delivery
        self.staging_dir: str | None = _env_str("DELIVERY_STAGING_DIR", None)
        self.staging_cleanup_seconds: int = _env_int("DELIVERY_STAGING_CLEANUP_SECONDS", 15)
        self.dispatch_probe_deadline_ms: int = _env_int("DELIVERY_DISPATCH_DEADLINE_MS", 4500)
        self.dispatch_probe_interval_ms: int = _env_int("DELIVERY_DISPATCH_INTERVAL_MS", 120)
        self.dispatch_settle_ms: int = _env_int("DELIVERY_DISPATCH_SETTLE_MS", 220)

        # audit (None disables persistence of candidate attempts)
        self.audit_database_url: str | None = _env_str("AUDIT_DATABASE_URL", None)


config = Config()
