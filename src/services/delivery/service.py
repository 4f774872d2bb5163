from __future__ import annotations

import asyncio
import os
import tempfile
import time
import uuid
from dataclasses import dataclass
from typing import Any

from src.config.settings import config
from src.core.discovery.query import DomainArgs
from src.core.discovery.registry import ModuleRegistry
from src.core.exceptions import InvalidInputError
from src.core.logger import logger
from src.services.candidate import (
    CandidateResult,
    CandidateService,
    ConfirmationPolicy,
    ConfirmationProbe,
    ConfirmationUnavailableError,
)
from src.services.capability.catalog import (
    FILE_QUEUE,
    FILE_QUEUE_QUERY,
    MESSAGE_DISPATCH,
    MESSAGE_DISPATCH_QUERY,
    empty_message_payload,
)
from src.services.capability.payload import RenderedPayload, build_uploadable

from .stores import MessageStoreAdapter, UploadStoreAdapter, nonce_matcher, upload_entry_matcher


@dataclass(slots=True)
class StagedFile:
    path: str
    uri: str
    staged_name: str


@dataclass(slots=True)
class DeliveryReceipt:
    file_name: str
    nonce: str
    upload: CandidateResult
    dispatch: CandidateResult


class DeliveryService:
    """
    Queue a rendered file into a destination, then dispatch the message.

    Both steps go through the capability engine. Each step is confirmed against a
    host store located through the registry; a step whose store cannot be found
    fails before anything is called.
    """

    def __init__(
        self,
        registry: ModuleRegistry,
        *,
        candidates: CandidateService | None = None,
        staging_dir: str | None = None,
        upload_policy: ConfirmationPolicy | None = None,
        dispatch_policy: ConfirmationPolicy | None = None,
    ) -> None:
        self.registry = registry
        self.candidates = candidates or CandidateService(registry)
        self.staging_dir = staging_dir or config.staging_dir
        self.upload_policy = upload_policy or ConfirmationPolicy.from_config()
        self.dispatch_policy = dispatch_policy or ConfirmationPolicy.for_dispatch()

    # ------------------------------------------------------------ host lookups

    def _find(self, *props: str) -> Any:
        try:
            return self.registry.find_by_props(*props)
        except Exception as exc:
            logger.debug("[DeliveryService] lookup {} failed: {}", props, exc)
            return None

    def resolve_destination(self, destination_id: Any) -> Any:
        store = self._find("getChannel", "getDMFromUserId") or self._find("getChannel")
        if isinstance(store, dict):
            get_channel = store.get("getChannel")
        else:
            get_channel = getattr(store, "getChannel", None)
        if not callable(get_channel):
            return destination_id
        try:
            return get_channel(destination_id) or destination_id
        except Exception:
            return destination_id

    def resolve_type_tag(self) -> int:
        draft_types = self._find("ChannelMessage", "SlashCommand")
        value = getattr(draft_types, "ChannelMessage", None)
        if isinstance(draft_types, dict):
            value = draft_types.get("ChannelMessage")
        return value if isinstance(value, int) and not isinstance(value, bool) else 0

    # ------------------------------------------------------------ staging

    def stage(self, payload: RenderedPayload) -> StagedFile:
        suffix = os.path.splitext(payload.filename)[1] or ".png"
        staged_name = f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:12]}{suffix}"
        directory = self.staging_dir or tempfile.gettempdir()
        os.makedirs(directory, exist_ok=True)
        path = os.path.join(directory, staged_name)
        with open(path, "wb") as fh:
            fh.write(payload.data)
        return StagedFile(path=path, uri=f"file://{path}", staged_name=staged_name)

    def schedule_cleanup(self, staged: StagedFile) -> None:
        def _remove() -> None:
            try:
                os.remove(staged.path)
            except FileNotFoundError:
                pass
            except OSError as exc:
                logger.warning("[DeliveryService] cleanup failed for {}: {}", staged.path, exc)

        delay = max(config.staging_cleanup_seconds, 0)
        try:
            asyncio.get_running_loop().call_later(delay, _remove)
        except RuntimeError:
            _remove()

    # ------------------------------------------------------------ steps

    async def queue_file(
        self,
        payload: RenderedPayload,
        destination_id: Any,
        *,
        staged: StagedFile,
        request_id: str | None = None,
    ) -> CandidateResult:
        uploadable = build_uploadable(staged.uri, payload.filename, payload.mime_type)
        type_tag = self.resolve_type_tag()
        args = DomainArgs(
            payload=uploadable,
            destination=destination_id,
            destination_ref=self.resolve_destination(destination_id),
            type_tag=type_tag,
        )

        upload_store = self._find("getUploads", "getUpload") or self._find("getUploads")
        if upload_store is None:
            logger.warning("[DeliveryService] upload store not found; file not queued")
            raise ConfirmationUnavailableError(shape_label="upload-store", capability=FILE_QUEUE)
        probe = ConfirmationProbe(
            UploadStoreAdapter(upload_store, type_tags=(type_tag, 0, 1, 2, 3)),
            destination_id,
            upload_entry_matcher(payload.filename, staged.staged_name),
            policy=self.upload_policy,
            accept_growth=True,
            label="upload",
        )

        return await self.candidates.resolve_and_invoke(
            FILE_QUEUE_QUERY, args, probe, request_id=request_id
        )

    async def dispatch(
        self, destination_id: Any, *, nonce: str, request_id: str | None = None
    ) -> CandidateResult:
        args = DomainArgs(
            payload=empty_message_payload(),
            destination=destination_id,
            extras={"nonce": nonce},
        )

        message_store = self._find("getMessages", "getMessage")
        if message_store is None:
            logger.warning("[DeliveryService] message store not found; message not sent")
            raise ConfirmationUnavailableError(
                shape_label="message-store", capability=MESSAGE_DISPATCH
            )
        probe = ConfirmationProbe(
            MessageStoreAdapter(message_store),
            destination_id,
            nonce_matcher(nonce),
            policy=self.dispatch_policy,
            label="dispatch",
        )

        return await self.candidates.resolve_and_invoke(
            MESSAGE_DISPATCH_QUERY, args, probe, request_id=request_id
        )

    async def deliver(
        self,
        payload: RenderedPayload,
        destination_id: Any,
        *,
        request_id: str | None = None,
    ) -> DeliveryReceipt:
        if destination_id is None or destination_id == "":
            raise InvalidInputError("Unable to resolve message destination.")

        request_id = request_id or uuid.uuid4().hex
        staged = self.stage(payload)
        try:
            upload = await self.queue_file(
                payload, destination_id, staged=staged, request_id=request_id
            )
            await asyncio.sleep(max(config.dispatch_settle_ms, 0) / 1000)
            nonce = str(int(time.time() * 1000))
            dispatch = await self.dispatch(destination_id, nonce=nonce, request_id=request_id)
        finally:
            self.schedule_cleanup(staged)

        logger.info(
            "[DeliveryService] delivered {} to {} (request_id={})",
            payload.filename,
            destination_id,
            request_id,
        )
        return DeliveryReceipt(
            file_name=payload.filename, nonce=nonce, upload=upload, dispatch=dispatch
        )


__all__ = ["DeliveryReceipt", "DeliveryService", "StagedFile"]
