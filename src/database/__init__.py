"""
数据库模块（候选尝试审计）
"""

from ..models.database import Base, CandidateAttempt
from .database import create_session, get_db_context, get_db_url, init_db

__all__ = [
    "Base",
    "CandidateAttempt",
    "get_db_context",
    "init_db",
    "create_session",
    "get_db_url",
]
