"""Модель ответа capability: типизированные content-элементы и их сборка.

Хэндлер возвращает один или несколько элементов (text, image, audio, video,
file, resource, error). `response()` склеивает их в результат `tools/call`;
элемент error помечает весь результат флагом `isError`, не превращая обмен
в JSON-RPC ошибку.
"""

from __future__ import annotations

import base64
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field

logger = logging.getLogger("mcpr.responses.content")

DEFAULT_MIME_TYPE = "application/octet-stream"

MIME_TYPES: Dict[str, str] = {
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".mp3": "audio/mpeg",
    ".mp4": "video/mp4",
}


def guess_mime_type(path: Union[str, os.PathLike]) -> str:
    return MIME_TYPES.get(Path(path).suffix.lower(), DEFAULT_MIME_TYPE)


class TextContent(BaseModel):
    type: Literal["text"] = "text"
    text: str

    def to_wire(self) -> Dict[str, Any]:
        return {"type": "text", "text": self.text}


class _BinaryContent(BaseModel):
    data: str
    mime_type: str

    def to_wire(self) -> Dict[str, Any]:
        return {"type": self.type, "data": self.data, "mimeType": self.mime_type}  # type: ignore[attr-defined]


class ImageContent(_BinaryContent):
    type: Literal["image"] = "image"


class AudioContent(_BinaryContent):
    type: Literal["audio"] = "audio"


class VideoContent(_BinaryContent):
    type: Literal["video"] = "video"


class FileContent(_BinaryContent):
    type: Literal["file"] = "file"
    name: Optional[str] = None

    def to_wire(self) -> Dict[str, Any]:
        payload = super().to_wire()
        if self.name:
            payload["name"] = self.name
        return payload


class ResourceContent(BaseModel):
    type: Literal["resource"] = "resource"
    uri: str
    mime_type: Optional[str] = None
    text: Optional[str] = None

    def to_wire(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"type": "resource", "uri": self.uri}
        if self.mime_type:
            payload["mimeType"] = self.mime_type
        if self.text is not None:
            payload["text"] = self.text
        return payload


class ErrorContent(BaseModel):
    """Доменная ошибка хэндлера; на проводе это text-блок плюс isError у результата."""

    type: Literal["error"] = "error"
    message: str

    def to_wire(self) -> Dict[str, Any]:
        return {"type": "text", "text": self.message}


ContentItem = Union[
    TextContent,
    ImageContent,
    AudioContent,
    VideoContent,
    FileContent,
    ResourceContent,
    ErrorContent,
]
CONTENT_TYPES = (
    TextContent,
    ImageContent,
    AudioContent,
    VideoContent,
    FileContent,
    ResourceContent,
    ErrorContent,
)


class ToolResult(BaseModel):
    """Упорядоченный набор content-элементов одного вызова."""

    content: List[ContentItem] = Field(default_factory=list)
    is_error: bool = False

    def to_result(self) -> Dict[str, Any]:
        return {
            "content": [item.to_wire() for item in self.content],
            "isError": self.is_error,
        }


# =========================
# Конструкторы content-элементов
# =========================


def _encode(
    source: Union[str, os.PathLike, bytes],
    mime_type: Optional[str],
    *,
    delete_after: bool = False,
) -> tuple[str, str, Optional[str]]:
    if isinstance(source, (bytes, bytearray)):
        if not mime_type:
            raise ValueError("mime_type is required when passing raw bytes")
        return base64.b64encode(bytes(source)).decode("ascii"), mime_type, None

    path = Path(source)
    raw = path.read_bytes()
    if delete_after:
        try:
            path.unlink()
        except OSError as exc:
            logger.warning("Failed to remove %s after encoding: %s", path, exc)
    return base64.b64encode(raw).decode("ascii"), mime_type or guess_mime_type(path), path.name


def text(value: str) -> TextContent:
    return TextContent(text=str(value))


def image(
    source: Union[str, os.PathLike, bytes],
    mime_type: Optional[str] = None,
    *,
    delete_after: bool = False,
) -> ImageContent:
    """Картинка из файла или байтов; файл читается сразу и кодируется в base64.

    Файл остаётся во владении вызывающего, если не передан `delete_after=True`.
    """
    data, mime, _ = _encode(source, mime_type, delete_after=delete_after)
    return ImageContent(data=data, mime_type=mime)


def audio(
    source: Union[str, os.PathLike, bytes],
    mime_type: Optional[str] = None,
    *,
    delete_after: bool = False,
) -> AudioContent:
    data, mime, _ = _encode(source, mime_type, delete_after=delete_after)
    return AudioContent(data=data, mime_type=mime)


def video(
    source: Union[str, os.PathLike, bytes],
    mime_type: Optional[str] = None,
    *,
    delete_after: bool = False,
) -> VideoContent:
    data, mime, _ = _encode(source, mime_type, delete_after=delete_after)
    return VideoContent(data=data, mime_type=mime)


def file(
    source: Union[str, os.PathLike, bytes],
    mime_type: Optional[str] = None,
    *,
    name: Optional[str] = None,
    delete_after: bool = False,
) -> FileContent:
    data, mime, file_name = _encode(source, mime_type, delete_after=delete_after)
    return FileContent(data=data, mime_type=mime, name=name or file_name)


def resource(uri: str, text: Optional[str] = None, mime_type: Optional[str] = None) -> ResourceContent:
    return ResourceContent(uri=uri, text=text, mime_type=mime_type)


def error(message: str) -> ErrorContent:
    return ErrorContent(message=str(message))


def response(*items: Union[ContentItem, List[ContentItem]]) -> ToolResult:
    """Собирает элементы (или списки элементов) в один ToolResult."""
    flat: List[ContentItem] = []
    for item in items:
        if isinstance(item, list):
            flat.extend(item)
        else:
            flat.append(item)
    for item in flat:
        if not isinstance(item, CONTENT_TYPES):
            raise TypeError(f"Unsupported content item: {type(item).__name__}")
    return ToolResult(content=flat, is_error=any(isinstance(item, ErrorContent) for item in flat))


def as_result(value: Any) -> ToolResult:
    """Нормализует возвращаемое хэндлером значение в ToolResult."""
    if isinstance(value, ToolResult):
        return value
    if isinstance(value, CONTENT_TYPES):
        return response(value)
    if isinstance(value, list) and value and all(isinstance(item, CONTENT_TYPES) for item in value):
        return response(value)
    if isinstance(value, str):
        return response(text(value))
    if value is None:
        return ToolResult()
    return response(text(json.dumps(value, ensure_ascii=False, default=str)))


__all__ = [
    "AudioContent",
    "ContentItem",
    "DEFAULT_MIME_TYPE",
    "ErrorContent",
    "FileContent",
    "ImageContent",
    "MIME_TYPES",
    "ResourceContent",
    "TextContent",
    "ToolResult",
    "VideoContent",
    "as_result",
    "audio",
    "error",
    "file",
    "guess_mime_type",
    "image",
    "resource",
    "response",
    "text",
    "video",
]
