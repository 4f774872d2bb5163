"""
确认存储适配器

把宿主各种形态的存储包装成 ConfirmationStore（list_entries(destination)）：
- UploadStoreAdapter: 上传队列，跨多个类型标签读取并去重
- MessageStoreAdapter: 消息列表，兼容 list / _array / to_array() / values()
- HttpConfirmationStore: 通过 HTTP 查询的外部存储
"""

from __future__ import annotations

from typing import Any, Callable, Iterable, Mapping

import httpx

from src.services.candidate.probe import normalize_entries


def _field(obj: Any, name: str) -> Any:
    if isinstance(obj, Mapping):
        return obj.get(name)
    return getattr(obj, name, None)


class UploadStoreAdapter:
    """Pending uploads for a destination, read across every known type tag."""

    def __init__(self, store: Any, type_tags: Iterable[int] = (0, 1, 2, 3)) -> None:
        self.store = store
        self.type_tags = tuple(dict.fromkeys(type_tags))

    def list_entries(self, destination: Any) -> list[Any]:
        get_uploads = getattr(self.store, "getUploads", None)
        if not callable(get_uploads):
            return []

        collected: list[Any] = []
        seen: set[int] = set()

        def push(uploads: Any) -> None:
            for upload in normalize_entries(uploads):
                if not upload or id(upload) in seen:
                    continue
                seen.add(id(upload))
                collected.append(upload)

        # unsupported tags may raise; only a store that fails every read is unreadable
        read_any = False
        last_error: Exception | None = None
        for tag in (*self.type_tags, None):
            try:
                push(get_uploads(destination) if tag is None else get_uploads(destination, tag))
            except Exception as exc:
                last_error = exc
                continue
            read_any = True
        if not read_any and last_error is not None:
            raise last_error
        return collected


def upload_entry_matcher(file_name: str, staged_name: str | None = None) -> Callable[[Any], bool]:
    def matches(upload: Any) -> bool:
        if upload is None or isinstance(upload, (str, bytes, int, float)):
            return False
        if _field(upload, "filename") == file_name or _field(upload, "name") == file_name:
            return True
        item = _field(upload, "item")
        if item is None or isinstance(item, (str, bytes, int, float)):
            return False
        uri = str(_field(item, "uri") or "")
        return (
            _field(item, "fileName") == file_name
            or _field(item, "filename") == file_name
            or _field(item, "name") == file_name
            or file_name in uri
            or bool(staged_name and staged_name in uri)
        )

    return matches


class MessageStoreAdapter:
    def __init__(self, store: Any) -> None:
        self.store = store

    def list_entries(self, destination: Any) -> list[Any]:
        get_messages = getattr(self.store, "getMessages", None)
        if not callable(get_messages):
            return []
        return normalize_entries(get_messages(destination))


def nonce_matcher(nonce: str) -> Callable[[Any], bool]:
    def matches(message: Any) -> bool:
        return str(_field(message, "nonce") or "") == nonce

    return matches


class HttpConfirmationStore:
    """
    Confirmation store exposed over HTTP.

    ``GET {base_url}/destinations/{destination}/entries`` must return either a JSON
    list or an object with an ``entries`` list.
    """

    def __init__(
        self,
        base_url: str,
        *,
        client: httpx.AsyncClient | None = None,
        timeout: float = 5.0,
        headers: dict[str, str] | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._client = client
        self._owns_client = client is None
        self.timeout = timeout
        self.headers = headers or {}

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout, headers=self.headers)
        return self._client

    async def list_entries(self, destination: Any) -> list[Any]:
        url = f"{self.base_url}/destinations/{destination}/entries"
        response = await self._get_client().get(url)
        response.raise_for_status()
        data = response.json()
        if isinstance(data, Mapping):
            data = data.get("entries")
        return normalize_entries(data)

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None


__all__ = [
    "HttpConfirmationStore",
    "MessageStoreAdapter",
    "UploadStoreAdapter",
    "nonce_matcher",
    "upload_entry_matcher",
]
