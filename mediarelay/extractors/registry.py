"""
Platform profiles.

A profile tells the coordinator which strategies apply to a URL and gives
each strategy its hints. Adding a platform is a matter of adding a
profile here; classification is first-match-wins over PROFILES.
"""
import re
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional, Sequence, Tuple
from urllib.parse import urlparse

from mediarelay.core.media import MEDIA_EXTENSIONS, is_manifest_url
from mediarelay.extractors.rules import DomScanRule, MediaUrlRule, RegexRule

PageRule = Callable[[str, str], Optional[str]]

YTDLP = "ytdlp"
HTTP_FILE = "http-file"


@dataclass(frozen=True)
class InterceptionFilter:
    """Matches an outgoing request by URL fragment and, optionally, resource type."""
    url_fragment: str
    resource_types: Tuple[str, ...] = ()

    def matches(self, url: str, resource_type: str) -> bool:
        if self.url_fragment and self.url_fragment not in url:
            return False
        return not self.resource_types or resource_type in self.resource_types


@dataclass(frozen=True)
class PlatformProfile:
    id: str
    match_patterns: Tuple[str, ...] = ()
    direct: Optional[str] = None
    url_format: Optional[str] = None
    interception_filters: Tuple[InterceptionFilter, ...] = ()
    media_hosts: Tuple[str, ...] = ()
    page_rules: Tuple[PageRule, ...] = ()
    default_title: str = "download"
    typical_size: int = 50 * 1024 * 1024
    content_kind: str = "video"
    referer: Optional[str] = None
    _compiled: Tuple[re.Pattern, ...] = field(default=(), repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "_compiled", tuple(re.compile(p, re.IGNORECASE) for p in self.match_patterns))

    @property
    def is_generic(self) -> bool:
        return self.id == GENERIC_PROFILE.id

    @property
    def supports_direct(self) -> bool:
        return self.direct is not None

    def matches(self, url: str) -> bool:
        return any(p.search(url) for p in self._compiled)

    def accepts_format(self, url: str) -> bool:
        if not self.url_format:
            return True
        return re.search(self.url_format, url) is not None

    def observes(self, url: str, resource_type: str) -> bool:
        return any(f.matches(url, resource_type) for f in self.interception_filters)

    def is_media_host(self, url: str) -> bool:
        if is_manifest_url(url):
            return False
        host = urlparse(url).netloc.lower()
        if self.media_hosts:
            return any(h in host for h in self.media_hosts)
        return any(urlparse(url).path.lower().endswith(ext) for ext in MEDIA_EXTENSIONS)


_MEDIA_REQUESTS = ("media", "xhr", "fetch", "other")

PROFILES: Sequence[PlatformProfile] = (
    PlatformProfile(
        id="youtube",
        match_patterns=(r"^https?://([a-z0-9-]+\.)?youtube\.com/", r"^https?://youtu\.be/", r"^https?://([a-z0-9-]+\.)?youtube-nocookie\.com/"),
        direct=YTDLP,
        url_format=r"(?:youtube(?:-nocookie)?\.com/(?:watch\?(?:.*&)?v=|embed/|v/|shorts/|live/)|youtu\.be/)[\w-]{11}",
        interception_filters=(InterceptionFilter("googlevideo.com/videoplayback", _MEDIA_REQUESTS),),
        media_hosts=("googlevideo.com",),
        page_rules=(RegexRule(r'"url":"([^"]*\.mp4[^"]*)"', "player-mp4"),),
        default_title="YouTube-Video",
        referer="https://www.youtube.com/",
    ),
    PlatformProfile(
        id="vimeo",
        match_patterns=(r"^https?://([a-z0-9-]+\.)?vimeo\.com/",),
        direct=YTDLP,
        url_format=r"vimeo\.com/(?:video/|channels/[\w-]+/|groups/[\w-]+/videos/)?\d+",
        interception_filters=(InterceptionFilter("vimeocdn.com", _MEDIA_REQUESTS), InterceptionFilter("akamaized.net", _MEDIA_REQUESTS)),
        media_hosts=("vimeocdn.com", "akamaized.net"),
        page_rules=(RegexRule(r'"url":"(https://[^"]+\.mp4[^"]*)"', "progressive-mp4"), DomScanRule()),
        default_title="Vimeo-Video",
        referer="https://vimeo.com/",
    ),
    PlatformProfile(
        id="tiktok",
        match_patterns=(r"^https?://([a-z0-9-]+\.)?tiktok\.com/",),
        direct=YTDLP,
        url_format=r"tiktok\.com/(?:@[\w.-]+/video/\d+|v/\d+|t/\w+)|(?:vm|vt)\.tiktok\.com/\w+",
        interception_filters=(InterceptionFilter("tiktokcdn", ("media", "xhr", "fetch")), InterceptionFilter("/video/tos/", ("media",))),
        media_hosts=("tiktokcdn", "tiktokv.com"),
        page_rules=(RegexRule(r'"playAddr":"([^"]+)"', "play-addr"), RegexRule(r'"downloadAddr":"([^"]+)"', "download-addr"), DomScanRule()),
        default_title="TikTok-Video",
        typical_size=8 * 1024 * 1024,
        referer="https://www.tiktok.com/",
    ),
    PlatformProfile(
        id="dailymotion",
        match_patterns=(r"^https?://([a-z0-9-]+\.)?dailymotion\.com/", r"^https?://dai\.ly/"),
        direct=YTDLP,
        url_format=r"(?:dailymotion\.com/(?:embed/)?video/|dai\.ly/)[a-zA-Z0-9]+",
        interception_filters=(InterceptionFilter("dmcdn.net", _MEDIA_REQUESTS),),
        media_hosts=("dmcdn.net",),
        page_rules=(DomScanRule(),),
        default_title="Dailymotion-Video",
    ),
    PlatformProfile(
        id="instagram",
        match_patterns=(r"^https?://([a-z0-9-]+\.)?instagram\.com/",),
        interception_filters=(InterceptionFilter(".mp4", ("media", "xhr", "fetch")), InterceptionFilter("cdninstagram.com", ("media",))),
        media_hosts=("cdninstagram.com", "fbcdn.net"),
        page_rules=(RegexRule(r'"video_url":"([^"]+)"', "video-url"), RegexRule(r'"video_versions":\[\{[^\]]*?"url":"([^"]+)"', "video-versions"), DomScanRule()),
        default_title="Instagram-Video",
        typical_size=10 * 1024 * 1024,
        referer="https://www.instagram.com/",
    ),
    PlatformProfile(
        id="facebook",
        match_patterns=(r"^https?://([a-z0-9-]+\.)?facebook\.com/", r"^https?://fb\.watch/"),
        interception_filters=(InterceptionFilter(".mp4", ("media", "xhr", "fetch")),),
        media_hosts=("fbcdn.net",),
        page_rules=(RegexRule(r'"playable_url_quality_hd":"([^"]+)"', "playable-hd"), RegexRule(r'"playable_url":"([^"]+)"', "playable-sd"), RegexRule(r'"browser_native_hd_url":"([^"]+)"', "native-hd"), DomScanRule()),
        default_title="Facebook-Video",
        typical_size=20 * 1024 * 1024,
        referer="https://www.facebook.com/",
    ),
    PlatformProfile(
        id="twitter",
        match_patterns=(r"^https?://([a-z0-9-]+\.)?(twitter|x)\.com/",),
        interception_filters=(InterceptionFilter("video.twimg.com", ("media", "xhr", "fetch")),),
        media_hosts=("video.twimg.com",),
        page_rules=(RegexRule(r'(https://video\.twimg\.com/[^"\s]+?\.mp4[^"\s]*)', "twimg-mp4"), DomScanRule()),
        default_title="Twitter-Video",
        typical_size=10 * 1024 * 1024,
        referer="https://x.com/",
    ),
    PlatformProfile(
        id="direct-file",
        match_patterns=(r"^https?://[^?#]+\.(?:mp4|m4v|webm|mkv|mov|avi|wmv|flv|3gp|mp3|m4a|wav|flac|aac|ogg|opus|jpe?g|png|gif|webp)(?:[?#]|$)",),
        direct=HTTP_FILE,
        page_rules=(DomScanRule(),),
        default_title="Direct-File",
        typical_size=10 * 1024 * 1024,
        content_kind="any",
    ),
)

GENERIC_PROFILE = PlatformProfile(
    id="generic",
    page_rules=(DomScanRule(),),
    default_title="download",
    typical_size=50 * 1024 * 1024,
    content_kind="video",
)

# Platform-agnostic scan used by the generic extractor on raw HTML
GENERIC_RULES: Tuple[PageRule, ...] = (DomScanRule(), MediaUrlRule())


class ProfileRegistry:
    """
    Ordered, read-only table of platform profiles.
    """

    def __init__(self, profiles: Iterable[PlatformProfile] = PROFILES, generic: PlatformProfile = GENERIC_PROFILE):
        self._profiles = tuple(profiles)
        self.generic = generic

    @property
    def profiles(self) -> Tuple[PlatformProfile, ...]:
        return self._profiles

    def classify(self, url: str) -> PlatformProfile:
        for profile in self._profiles:
            if profile.matches(url):
                return profile
        return self.generic

    def get(self, profile_id: str) -> Optional[PlatformProfile]:
        if profile_id == self.generic.id:
            return self.generic
        return next((p for p in self._profiles if p.id == profile_id), None)


default_registry = ProfileRegistry()


def classify(url: str) -> PlatformProfile:
    return default_registry.classify(url)
