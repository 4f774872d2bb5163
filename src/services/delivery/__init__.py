"""
投递服务：把渲染结果排入目标的上传队列并发送消息
"""

from .service import DeliveryReceipt, DeliveryService, StagedFile
from .stores import (
    HttpConfirmationStore,
    MessageStoreAdapter,
    UploadStoreAdapter,
    nonce_matcher,
    upload_entry_matcher,
)

__all__ = [
    "DeliveryReceipt",
    "DeliveryService",
    "StagedFile",
    "HttpConfirmationStore",
    "MessageStoreAdapter",
    "UploadStoreAdapter",
    "nonce_matcher",
    "upload_entry_matcher",
]
