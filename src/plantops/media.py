"""Image and audio inputs handed to engines.

The core never reprocesses media after an entry is committed; it only keeps
the reference. References are either a caller-owned path or a content
address (``sha256:<hex>``) of the bytes.
"""

from __future__ import annotations

import hashlib
import mimetypes
from dataclasses import dataclass
from pathlib import Path

DEFAULT_IMAGE_MIME = "image/jpeg"
DEFAULT_AUDIO_MIME = "audio/wav"


def content_ref(data: bytes) -> str:
    return "sha256:" + hashlib.sha256(data).hexdigest()


@dataclass(frozen=True)
class MediaInput:
    """Raw bytes plus mime type and an opaque reference."""

    data: bytes
    mime_type: str
    ref: str

    @classmethod
    def from_bytes(cls, data: bytes, mime_type: str = DEFAULT_IMAGE_MIME) -> MediaInput:
        return cls(data=data, mime_type=mime_type, ref=content_ref(data))

    @classmethod
    def from_path(cls, path: str | Path, default_mime: str = DEFAULT_IMAGE_MIME) -> MediaInput:
        p = Path(path).expanduser()
        mime, _ = mimetypes.guess_type(p.name)
        return cls(data=p.read_bytes(), mime_type=mime or default_mime, ref=str(p.resolve()))
