import re
from typing import Optional
from urllib.parse import unquote, urlparse

MIME_TYPES = {
    "mp4": "video/mp4",
    "m4v": "video/mp4",
    "avi": "video/x-msvideo",
    "mov": "video/quicktime",
    "wmv": "video/x-ms-wmv",
    "flv": "video/x-flv",
    "webm": "video/webm",
    "mkv": "video/x-matroska",
    "3gp": "video/3gpp",
    "m3u8": "application/vnd.apple.mpegurl",
    "mp3": "audio/mpeg",
    "m4a": "audio/mp4",
    "wav": "audio/wav",
    "flac": "audio/flac",
    "aac": "audio/aac",
    "ogg": "audio/ogg",
    "opus": "audio/ogg",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "webp": "image/webp",
}

_EXTENSIONS = {}
for _ext, _mime in MIME_TYPES.items():
    _EXTENSIONS.setdefault(_mime, _ext)

MEDIA_EXTENSIONS = tuple(f".{ext}" for ext in MIME_TYPES)

# Streaming playlists list segment URLs; they are text, not playable files
MANIFEST_EXTENSIONS = ("m3u8", "mpd")

MAX_TITLE_LENGTH = 50

# Smallest plausible payload per kind. A "video" below this is an error page.
MIN_PAYLOAD_BYTES = {
    "video": 100_000,
    "audio": 10_000,
    "image": 100,
    "any": 1,
}


def content_type_for(extension: str) -> str:
    return MIME_TYPES.get(extension.lower().lstrip("."), "application/octet-stream")


def extension_for(content_type: str) -> str:
    mime = (content_type or "").split(";")[0].strip().lower()
    return _EXTENSIONS.get(mime, "mp4" if mime.startswith("video/") else "bin")


def content_kind(content_type: str) -> str:
    """Coarse kind used to pick validation rules: video, audio, image or any."""
    ct = (content_type or "").lower()
    major = ct.split("/")[0].strip()
    if major in ("video", "audio", "image"):
        return major
    if "mpegurl" in ct:
        return "video"
    return "any"


def is_manifest_type(content_type: str) -> bool:
    ct = (content_type or "").lower()
    return "mpegurl" in ct or "dash+xml" in ct


def is_media_type(content_type: str) -> bool:
    if is_manifest_type(content_type):
        return False
    return content_kind(content_type) in ("video", "audio", "image")


def is_textual(content_type: str) -> bool:
    ct = (content_type or "").lower()
    return ct.startswith("text/") or "html" in ct or "json" in ct


def url_extension(url: str) -> Optional[str]:
    last = unquote(urlparse(url).path.rsplit("/", 1)[-1])
    if "." not in last:
        return None
    return last.rsplit(".", 1)[-1].lower() or None


def is_manifest_url(url: str) -> bool:
    return url_extension(url) in MANIFEST_EXTENSIONS


def url_basename(url: str) -> str:
    return unquote(urlparse(url).path.rsplit("/", 1)[-1])


def sanitize_title(title: Optional[str], default: str = "download", max_length: int = MAX_TITLE_LENGTH) -> str:
    """
    Clean a title for use as a filename.

    Keeps word characters (any script), spaces and hyphens; collapses
    whitespace and trims to `max_length`.
    """
    if not title:
        return default
    cleaned = re.sub(r"[^\w\s-]", "", title, flags=re.UNICODE)
    cleaned = re.sub(r"\s+", " ", cleaned).strip()
    cleaned = cleaned[:max_length].strip()
    return cleaned or default
