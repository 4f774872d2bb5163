"""
DeliveryService 集成测试

用内存注册表模拟宿主：草稿/上传存储、频道存储、消息存储都是已求值模块，
引擎需要自行找到 addFile 与 sendMessage 并通过存储确认副作用。
"""

from __future__ import annotations

import asyncio
import os
from typing import Any

import pytest

from src.config.settings import config
from src.core.discovery.registry import InMemoryModuleRegistry
from src.core.exceptions import InvalidInputError
from src.services.candidate import (
    ConfirmationPolicy,
    ConfirmationUnavailableError,
    clear_candidate_cache,
)
from src.services.capability.payload import RenderedPayload
from src.services.delivery import DeliveryService

PNG_BYTES = b"\x89PNG\r\n\x1a\nfake"
FAST = ConfirmationPolicy(interval=0.01, deadline=0.5)


class UploadStore:
    def __init__(self) -> None:
        self.uploads: dict[Any, list[dict]] = {}

    def getUploads(self, channel_id, draft_type=None):  # noqa: N802
        return list(self.uploads.get(channel_id, []))

    def getUpload(self, channel_id, name):  # noqa: N802
        return None


class Drafts:
    def __init__(self, uploads: UploadStore) -> None:
        self._uploads = uploads
        self.calls: list[tuple] = []

    def clearAll(self, channel_id):  # noqa: N802
        self._uploads.uploads.pop(channel_id, None)

    def addFile(self, channel_id, draft_type, upload):  # noqa: N802
        self.calls.append((channel_id, draft_type, upload))
        self._uploads.uploads.setdefault(channel_id, []).append(dict(upload))


class MessageStore:
    def __init__(self) -> None:
        self.messages: dict[Any, list[dict]] = {}

    def getMessages(self, channel_id):  # noqa: N802
        return {"_array": list(self.messages.get(channel_id, []))}

    def getMessage(self, channel_id, message_id):  # noqa: N802
        return None


class MessageActions:
    def __init__(self, store: MessageStore, *, observed: bool = True) -> None:
        self._store = store
        self._observed = observed
        self.calls: list[tuple] = []

    def sendMessage(self, channel_id, message, _reply=None, options=None):  # noqa: N802
        self.calls.append((channel_id, message, options))
        if self._observed:
            self._store.messages.setdefault(channel_id, []).append({"nonce": options["nonce"]})

    def editMessage(self, channel_id, message_id, message):  # noqa: N802
        return None


@pytest.fixture(autouse=True)
def _fast_delivery(monkeypatch: pytest.MonkeyPatch):
    clear_candidate_cache()
    monkeypatch.setattr(config, "dispatch_settle_ms", 0)
    monkeypatch.setattr(config, "staging_cleanup_seconds", 0)
    yield
    clear_candidate_cache()


def _host(*, observed: bool = True, upload_store: bool = True, message_store: bool = True):
    uploads = UploadStore()
    drafts = Drafts(uploads)
    messages = MessageStore()
    actions = MessageActions(messages, observed=observed)
    channel = {"id": "c1", "name": "general"}

    reg = InMemoryModuleRegistry()
    if upload_store:
        reg.register_exports("upload-store", uploads)
    reg.register_exports("drafts", drafts)
    reg.register_exports("draft-types", {"ChannelMessage": 0, "SlashCommand": 1})
    reg.register_exports("channels", {"getChannel": lambda cid: channel if cid == "c1" else None})
    if message_store:
        reg.register_exports("message-store", messages)
    reg.register_exports("message-actions", actions)
    return reg, drafts, actions, channel


def _service(reg, tmp_path) -> DeliveryService:
    return DeliveryService(
        reg, staging_dir=str(tmp_path), upload_policy=FAST, dispatch_policy=FAST
    )


def _payload() -> RenderedPayload:
    return RenderedPayload.build(data=PNG_BYTES, filename="hello-user.png")


@pytest.mark.asyncio
async def test_deliver_queues_file_and_dispatches(tmp_path) -> None:
    reg, drafts, actions, _channel = _host()
    svc = _service(reg, tmp_path)

    receipt = await svc.deliver(_payload(), "c1", request_id="req-1")

    assert receipt.upload.success
    assert receipt.upload.selected.key == "addFile"
    assert receipt.dispatch.success
    assert receipt.dispatch.selected.key == "sendMessage"

    ((channel_id, draft_type, upload),) = drafts.calls
    assert (channel_id, draft_type) == ("c1", 0)
    assert upload["filename"] == "hello-user.png"
    assert upload["uri"].startswith("file://")

    ((_cid, message, options),) = actions.calls
    assert message["content"] == ""
    assert options == {"nonce": receipt.nonce}

    # cleanup runs on the event loop after the configured delay
    await asyncio.sleep(0.05)
    assert os.listdir(tmp_path) == []


@pytest.mark.asyncio
async def test_staged_file_holds_payload_bytes(tmp_path) -> None:
    reg, *_ = _host()
    svc = _service(reg, tmp_path)

    staged = svc.stage(_payload())

    with open(staged.path, "rb") as fh:
        assert fh.read() == PNG_BYTES
    assert staged.uri == f"file://{staged.path}"
    assert staged.staged_name.endswith(".png")


def test_host_lookups(tmp_path) -> None:
    reg, _drafts, _actions, channel = _host()
    svc = _service(reg, tmp_path)

    assert svc.resolve_destination("c1") is channel
    assert svc.resolve_destination("unknown") == "unknown"
    assert svc.resolve_type_tag() == 0
    assert _service(InMemoryModuleRegistry(), tmp_path).resolve_type_tag() == 0


@pytest.mark.asyncio
async def test_unobserved_dispatch_fails(tmp_path) -> None:
    from src.services.candidate.submit import AllCandidatesExhaustedError

    reg, _drafts, actions, _channel = _host(observed=False)
    svc = DeliveryService(
        reg,
        staging_dir=str(tmp_path),
        upload_policy=FAST,
        dispatch_policy=ConfirmationPolicy(interval=0.01, deadline=0.05),
    )

    with pytest.raises(AllCandidatesExhaustedError):
        await svc.deliver(_payload(), "c1")

    # both nonce conventions were tried before giving up
    assert len(actions.calls) >= 2
    await asyncio.sleep(0.05)
    assert os.listdir(tmp_path) == []


@pytest.mark.asyncio
async def test_missing_destination_is_rejected(tmp_path) -> None:
    reg, drafts, *_ = _host()

    with pytest.raises(InvalidInputError):
        await _service(reg, tmp_path).deliver(_payload(), "")

    assert drafts.calls == []


@pytest.mark.asyncio
async def test_dispatch_without_message_store_fails_unsent(tmp_path) -> None:
    reg, drafts, actions, _channel = _host(message_store=False)

    with pytest.raises(ConfirmationUnavailableError) as exc_info:
        await _service(reg, tmp_path).deliver(_payload(), "c1")

    assert exc_info.value.capability == "message-dispatch"
    assert len(drafts.calls) == 1
    assert actions.calls == []
    await asyncio.sleep(0.05)
    assert os.listdir(tmp_path) == []


@pytest.mark.asyncio
async def test_queue_without_upload_store_fails_unqueued(tmp_path) -> None:
    reg, drafts, actions, _channel = _host(upload_store=False)

    with pytest.raises(ConfirmationUnavailableError) as exc_info:
        await _service(reg, tmp_path).deliver(_payload(), "c1")

    assert exc_info.value.capability == "file-queue"
    assert drafts.calls == []
    assert actions.calls == []
