# -*- coding: utf-8 -*-
# @Author: yaccii
# @Description: Message payload contracts (tagged union on `kind`) + preview/copy projections

from __future__ import annotations

from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import Field

from domains.domain_base import DomainModel


class MessageType(str, Enum):
    text = "text"
    image = "image"
    video = "video"
    audio = "audio"
    document = "document"
    location = "location"
    contact = "contact"
    voice_message = "voice_message"
    system = "system"


# =========================
# Payload variants
# =========================

class TextPayload(DomainModel):
    kind: Literal["text"] = "text"
    body: str = Field(default="")

    def preview(self) -> str:
        return self.body

    def copy_text(self) -> str:
        return self.body


class ImagePayload(DomainModel):
    kind: Literal["image"] = "image"
    uri: str = Field(..., min_length=1)
    filename: Optional[str] = Field(default=None, max_length=255)

    def preview(self) -> str:
        return f"📷 Image: {self.filename}" if self.filename else "📷 Image"

    def copy_text(self) -> str:
        return self.filename or "Image"


class VideoPayload(DomainModel):
    kind: Literal["video"] = "video"
    uri: str = Field(..., min_length=1)
    filename: Optional[str] = Field(default=None, max_length=255)
    duration_ms: Optional[int] = Field(default=None, ge=0)

    def preview(self) -> str:
        return f"🎬 Video: {self.filename}" if self.filename else "🎬 Video"

    def copy_text(self) -> str:
        return self.filename or "Video"


class DocumentPayload(DomainModel):
    kind: Literal["document"] = "document"
    uri: str = Field(..., min_length=1)
    filename: str = Field(..., min_length=1, max_length=255)
    size_bytes: Optional[int] = Field(default=None, ge=0)

    @property
    def extension(self) -> str:
        if "." not in self.filename:
            return ""
        return self.filename.rsplit(".", 1)[-1].lower()

    def preview(self) -> str:
        return f"📄 {self.filename}"

    def copy_text(self) -> str:
        return self.filename


class LocationPayload(DomainModel):
    kind: Literal["location"] = "location"
    lat: float = Field(..., ge=-90.0, le=90.0)
    lng: float = Field(..., ge=-180.0, le=180.0)
    address: Optional[str] = Field(default=None, max_length=512)

    def display_address(self) -> str:
        if self.address:
            return self.address
        return f"{self.lat:.4f}, {self.lng:.4f}"

    def preview(self) -> str:
        return f"📍 Location: {self.lat}, {self.lng}"

    def copy_text(self) -> str:
        return f"Location: {self.display_address()}"


class VoicePayload(DomainModel):
    kind: Literal["voice"] = "voice"
    uri: str = Field(..., min_length=1)
    duration_ms: Optional[int] = Field(default=None, ge=0)

    def preview(self) -> str:
        return "🎵 Voice Message"

    def copy_text(self) -> str:
        return "Voice Message"


class ContactPayload(DomainModel):
    kind: Literal["contact"] = "contact"
    name: str = Field(..., min_length=1, max_length=128)
    phone: Optional[str] = Field(default=None, max_length=64)

    def preview(self) -> str:
        return f"👤 Contact: {self.name}"

    def copy_text(self) -> str:
        return f"{self.name} {self.phone}" if self.phone else self.name


MessagePayload = Annotated[
    Union[
        TextPayload,
        ImagePayload,
        VideoPayload,
        DocumentPayload,
        LocationPayload,
        VoicePayload,
        ContactPayload,
    ],
    Field(discriminator="kind"),
]


_KIND_TO_TYPE = {
    "text": MessageType.text,
    "image": MessageType.image,
    "video": MessageType.video,
    "document": MessageType.document,
    "location": MessageType.location,
    "voice": MessageType.voice_message,
    "contact": MessageType.contact,
}


def message_type_for(payload: MessagePayload) -> MessageType:
    return _KIND_TO_TYPE.get(payload.kind, MessageType.text)


def coerce_payload(content: Union[str, MessagePayload]) -> MessagePayload:
    """Plain strings become text payloads; structured payloads pass through."""
    if isinstance(content, str):
        return TextPayload(body=content)
    return content


def is_blank(payload: MessagePayload) -> bool:
    return isinstance(payload, TextPayload) and not payload.body.strip()
