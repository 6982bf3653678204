from __future__ import annotations

import base64
import binascii
import logging
from pathlib import Path
from urllib.parse import unquote, unquote_to_bytes, urlsplit

from .errors import ResourceError


log = logging.getLogger(__name__)


def is_data_uri(uri: str) -> bool:
    return uri[:5].lower() == "data:"


def is_absolute_uri(uri: str) -> bool:
    return bool(urlsplit(uri).scheme) or uri.startswith("//")


def shorten_uri(uri: str, limit: int = 32) -> str:
    return uri if len(uri) <= limit else uri[:limit] + "..."


def decode_data_uri(uri: str) -> tuple[str, bytes]:
    """Returns ``(mime_type, payload)`` of a ``data:`` URI; raises ResourceError when malformed."""
    if not is_data_uri(uri):
        raise ResourceError("Not a data URI")
    header, sep, payload = uri[5:].partition(",")
    if not sep:
        raise ResourceError("Missing ',' separator in data URI")

    params = header.split(";")
    mime_type = params[0].strip().lower()
    if any(p.strip().lower() == "base64" for p in params[1:]):
        try:
            data = base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise ResourceError(f"Invalid base64 data in data URI ({exc})") from exc
    else:
        data = unquote_to_bytes(payload)
    return mime_type, data


class FileResourceLoader:
    """Loads relative URIs from the directory of the validated asset."""

    def __init__(self, base_dir: Path) -> None:
        self.base_dir = base_dir

    def __call__(self, uri: str) -> bytes:
        path = self.base_dir / unquote(urlsplit(uri).path)
        log.debug("loading external resource %s", path)
        try:
            return path.read_bytes()
        except OSError as exc:
            raise ResourceError(f"{uri}: {exc.strerror or exc}") from exc
