from dataclasses import dataclass, field
from typing import Dict, Optional


@dataclass
class Rendition:
    """One entry of yt-dlp's `formats` list."""
    format_id: str
    url: str
    ext: str = "mp4"
    height: int = 0
    has_video: bool = False
    has_audio: bool = False
    filesize: Optional[int] = None
    protocol: str = "https"
    http_headers: Dict[str, str] = field(default_factory=dict)

    @property
    def is_muxed(self) -> bool:
        return self.has_video and self.has_audio

    @property
    def is_progressive(self) -> bool:
        """A single file served over plain HTTP(S), not a segmented manifest."""
        return self.protocol in ("http", "https")

    @classmethod
    def from_format(cls, fmt: dict) -> "Rendition":
        vcodec = fmt.get("vcodec")
        acodec = fmt.get("acodec")
        return cls(
            format_id=str(fmt.get("format_id", "")),
            url=fmt.get("url") or "",
            ext=fmt.get("ext") or "mp4",
            height=int(fmt.get("height") or 0),
            # yt-dlp marks an absent track with "none"; None means unknown
            has_video=vcodec != "none",
            has_audio=acodec != "none",
            filesize=fmt.get("filesize") or fmt.get("filesize_approx"),
            http_headers=dict(fmt.get("http_headers") or {}),
            protocol=fmt.get("protocol") or "https",
        )
