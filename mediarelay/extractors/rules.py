"""
Page-evaluation rules.

A rule takes the text of a page (raw HTML or the rendered DOM) and returns
the first media URL it recognises, or None. Profiles list their rules in
the order they should be tried.
"""
import json
import re
from typing import Optional
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from mediarelay.core.media import is_manifest_url

META_VIDEO_PROPERTIES = (
    "og:video:secure_url",
    "og:video:url",
    "og:video",
    "twitter:player:stream",
)

_MEDIA_URL_RE = re.compile(r"https?://[^\s\"'<>\\]+?\.(?:mp4|webm|mov|m4v)(?:\?[^\s\"'<>\\]*)?", re.IGNORECASE)


def unescape_url(raw: str) -> str:
    """Undo the JSON/JS escaping URLs pick up inside inline scripts."""
    url = raw.replace("\\/", "/")
    if "\\u" in url or '\\"' in url:
        try:
            url = json.loads(f'"{url}"')
        except ValueError:
            url = url.replace("\\u0026", "&").replace("\\u003d", "=")
    return url.replace("&amp;", "&")


def _usable(url: Optional[str]) -> bool:
    if not url or url.startswith(("blob:", "data:", "javascript:")):
        return False
    return not is_manifest_url(url)


class RegexRule:
    """First capture group of `pattern` in the page text."""

    def __init__(self, pattern: str, name: Optional[str] = None):
        self.pattern = re.compile(pattern, re.DOTALL)
        self.name = name or pattern

    def __call__(self, content: str, base_url: str = "") -> Optional[str]:
        for match in self.pattern.finditer(content or ""):
            candidate = unescape_url(match.group(1) if self.pattern.groups else match.group(0))
            if _usable(candidate):
                return urljoin(base_url, candidate) if base_url else candidate
        return None

    def __repr__(self):
        return f"RegexRule({self.name!r})"


class DomScanRule:
    """Media element sources, then Open-Graph / Twitter video metadata."""

    name = "dom-scan"

    def __call__(self, content: str, base_url: str = "") -> Optional[str]:
        if not content:
            return None
        soup = BeautifulSoup(content, "html.parser")

        for tag in soup.find_all(["video", "audio"]):
            candidates = [tag.get("src")] + [s.get("src") for s in tag.find_all("source")]
            for src in candidates:
                src = (src or "").strip()
                if _usable(src):
                    return urljoin(base_url, src)

        for prop in META_VIDEO_PROPERTIES:
            meta = soup.find("meta", attrs={"property": prop}) or soup.find("meta", attrs={"name": prop})
            content_url = (meta.get("content") or "").strip() if meta else ""
            if _usable(content_url):
                return urljoin(base_url, content_url)
        return None

    def __repr__(self):
        return "DomScanRule()"


class MediaUrlRule(RegexRule):
    """Any absolute URL ending in a video extension."""

    def __init__(self):
        super().__init__(_MEDIA_URL_RE.pattern, name="media-url")
        self.pattern = _MEDIA_URL_RE


def title_from_html(content: str) -> Optional[str]:
    if not content:
        return None
    soup = BeautifulSoup(content, "html.parser")
    meta = soup.find("meta", attrs={"property": "og:title"})
    if meta and meta.get("content"):
        return meta["content"].strip()
    if soup.title and soup.title.string:
        return soup.title.string.strip()
    return None
