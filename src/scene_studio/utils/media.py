"""Scene media resolution: data URIs and remote URLs.

Scene media comes from API callers, so nothing else is accepted; a local
path or an ffmpeg protocol URL (`concat:`, `tcp://`) would let a caller make
the renderer read arbitrary inputs.
"""

import base64
import binascii
import mimetypes
import re
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import urlparse
from uuid import uuid4

import httpx

from scene_studio.config import settings
from scene_studio.logging import get_logger

logger = get_logger(__name__)

_DATA_URI_RE = re.compile(r"^data:(?P<mime>[^;,]*)(?P<params>(;[^;,]*)*?);base64,(?P<data>.*)$", re.DOTALL)

MEDIA_URI_PREFIXES = ("data:", "http://", "https://")

_EXTENSIONS = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/webp": ".webp",
    "video/mp4": ".mp4",
    "audio/mpeg": ".mp3",
    "audio/mp3": ".mp3",
    "audio/wav": ".wav",
    "audio/x-wav": ".wav",
}


@dataclass
class DataUri:
    mime_type: str
    data: bytes


def parse_data_uri(uri: str) -> DataUri | None:
    """Decode a base64 ``data:`` URI; None when it is not one."""
    match = _DATA_URI_RE.match(uri)
    if not match:
        return None
    try:
        payload = base64.b64decode(match.group("data"), validate=False)
    except (binascii.Error, ValueError):
        return None
    return DataUri(mime_type=match.group("mime") or "application/octet-stream", data=payload)


def is_supported_media_uri(uri: str) -> bool:
    return uri.lower().startswith(MEDIA_URI_PREFIXES)


def to_data_uri(data: bytes, mime_type: str) -> str:
    return f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"


def extension_for(mime_type: str | None, default: str) -> str:
    if not mime_type:
        return default
    mime = mime_type.split(";")[0].strip().lower()
    return _EXTENSIONS.get(mime) or mimetypes.guess_extension(mime) or default


async def resolve_media(uri: str | None, dest_dir: Path, default_ext: str = ".bin") -> Path | None:
    """Make scene media available as a local file inside ``dest_dir``.

    Args:
        uri: ``data:`` URI or http(s) URL
        dest_dir: Per-job scratch directory
        default_ext: Extension used when none can be inferred

    Returns:
        Local path, or None when ``uri`` is empty

    Raises:
        ValueError: If a data URI cannot be decoded or the scheme is not supported
        httpx.HTTPError: If a download fails
    """
    if not uri:
        return None

    if uri.startswith("data:"):
        decoded = parse_data_uri(uri)
        if decoded is None:
            raise ValueError("Invalid data URI in scene media")
        path = dest_dir / f"{uuid4().hex}{extension_for(decoded.mime_type, default_ext)}"
        path.write_bytes(decoded.data)
        return path

    if uri.lower().startswith(("http://", "https://")):
        return await download_to(uri, dest_dir, default_ext)

    raise ValueError("Unsupported scene media URI; use a data: URI or an http(s) URL")


async def download_to(url: str, dest_dir: Path, default_ext: str = ".bin") -> Path:
    """Download a URL into ``dest_dir``."""
    logger.debug("media_download_started", url=url[:100])

    async with httpx.AsyncClient(timeout=settings.media_download_timeout, follow_redirects=True) as client:
        response = await client.get(url)
        response.raise_for_status()
        content = response.content

    ext = Path(urlparse(url).path).suffix or extension_for(response.headers.get("content-type"), default_ext)
    path = dest_dir / f"{uuid4().hex}{ext}"
    path.write_bytes(content)

    logger.debug("media_download_completed", url=url[:100], size=len(content))
    return path
