"""
渲染结果（payload）处理

渲染器本身不在本项目范围内，这里只负责：
- 解析渲染器给出的 base64 data URL
- 校验 payload（字节、文件名、MIME）
- 生成文件名与上传描述对象
"""

from __future__ import annotations

import base64
import binascii
import re
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from src.core.exceptions import InvalidInputError

DEFAULT_MIME = "image/png"

_CUSTOM_EMOJI = re.compile(r"<a?:(\w+):(\d+)>")
_WHITESPACE = re.compile(r"\s+")
_UNSAFE_PREVIEW = re.compile(r"[^\w.-]", re.ASCII)


@dataclass(frozen=True)
class ParsedDataUrl:
    body: str
    is_base64: bool
    mime: str


def parse_data_url(data_url: Any) -> ParsedDataUrl | None:
    if not isinstance(data_url, str) or not data_url.startswith("data:"):
        return None
    comma = data_url.find(",")
    if comma < 0:
        return None
    meta = data_url[5:comma]
    body = data_url[comma + 1 :]
    mime = meta.split(";")[0].strip() or DEFAULT_MIME
    return ParsedDataUrl(body=body, is_base64=";base64" in meta, mime=mime)


class RenderedPayload(BaseModel):
    """Finished renderer output, handed unmodified into the capability call."""

    model_config = ConfigDict(frozen=True)

    data: bytes = Field(min_length=1)
    filename: str = Field(min_length=1, max_length=255)
    mime_type: str = Field(default=DEFAULT_MIME, pattern=r"^[\w.+-]+/[\w.+-]+$")

    @classmethod
    def build(cls, **values: Any) -> "RenderedPayload":
        try:
            return cls(**values)
        except ValidationError as exc:
            raise InvalidInputError(
                "Invalid rendered payload.",
                details=[{"loc": e["loc"], "msg": e["msg"]} for e in exc.errors()],
            ) from exc

    @classmethod
    def from_data_url(cls, data_url: str, filename: str) -> "RenderedPayload":
        parsed = parse_data_url(data_url)
        if parsed is None or not parsed.is_base64 or not parsed.body:
            raise InvalidInputError("Invalid rendered image.")
        try:
            data = base64.b64decode(parsed.body, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise InvalidInputError("Invalid rendered image.") from exc
        return cls.build(data=data, filename=filename, mime_type=parsed.mime or DEFAULT_MIME)


def normalize_text(text: Any) -> str:
    if not text:
        return ""
    return _WHITESPACE.sub(" ", str(text)).strip()


def build_file_name(content: Any, username: Any) -> str:
    """``<first six words>-<username>.png``, reduced to filesystem-safe characters."""
    cleaned = normalize_text(_CUSTOM_EMOJI.sub("", str(content or "")))
    preview = " ".join([w for w in cleaned.split(" ") if w][:6])
    safe_preview = _UNSAFE_PREVIEW.sub("_", preview or "quote")[:48]
    safe_user = re.sub(r"[^\w.-]", "", str(username or "unknown"), flags=re.ASCII)[:32] or "unknown"
    return f"{safe_preview}-{safe_user}.png"


def build_uploadable(uri: str, filename: str, mime_type: str) -> dict[str, Any]:
    """Upload record carrying every field name hosts have been seen to read."""
    if not uri.startswith("file://"):
        uri = f"file://{uri}"
    return {
        "uri": uri,
        "type": mime_type,
        "name": filename,
        "filename": filename,
        "fileName": filename,
        "mimeType": mime_type,
    }


__all__ = [
    "DEFAULT_MIME",
    "ParsedDataUrl",
    "RenderedPayload",
    "build_file_name",
    "build_uploadable",
    "normalize_text",
    "parse_data_url",
]
