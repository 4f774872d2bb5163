"""
内置能力定义与渲染结果处理
"""

from .catalog import (
    FILE_QUEUE,
    FILE_QUEUE_QUERY,
    MESSAGE_DISPATCH,
    MESSAGE_DISPATCH_QUERY,
    build_file_queue_query,
    build_message_dispatch_query,
    empty_message_payload,
)
from .payload import RenderedPayload, build_file_name, build_uploadable, parse_data_url

__all__ = [
    "FILE_QUEUE",
    "FILE_QUEUE_QUERY",
    "MESSAGE_DISPATCH",
    "MESSAGE_DISPATCH_QUERY",
    "build_file_queue_query",
    "build_message_dispatch_query",
    "empty_message_payload",
    "RenderedPayload",
    "build_file_name",
    "build_uploadable",
    "parse_data_url",
]
