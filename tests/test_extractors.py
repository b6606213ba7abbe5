"""
Tests for the direct (yt-dlp and HTTP file) and generic extractors.
"""
import pytest
from yt_dlp.utils import DownloadError

from mediarelay.core.errors import FailureKind, StrategyFailure
from mediarelay.extractors.direct.extractor import DirectFileExtractor
from mediarelay.extractors.generic.extractor import GenericExtractor, looks_like_bot_wall
from mediarelay.extractors.registry import GENERIC_PROFILE, default_registry
from mediarelay.extractors.ytdlp.extractor import YtDlpExtractor, classify_error, select_rendition
from mediarelay.extractors.ytdlp.models import Rendition
from mediarelay.infra.network.http import NetworkError
from tests.mocks.fake_ytdlp import FakeYoutubeDL, fmt

YOUTUBE = default_registry.get("youtube")
INSTAGRAM = default_registry.get("instagram")
DIRECT_FILE = default_registry.get("direct-file")
WATCH_URL = "https://www.youtube.com/watch?v=dQw4w9WgXcQ"


def renditions(*formats):
    return [Rendition.from_format(f) for f in formats]


class TestSelectRendition:

    def test_highest_muxed(self):
        chosen = select_rendition(renditions(
            fmt("18", 360),
            fmt("22", 720),
            fmt("137", 1080, acodec="none"),
            fmt("140", 0, vcodec="none"),
        ))
        assert chosen.format_id == "22"

    def test_first_listed_wins_tie(self):
        chosen = select_rendition(renditions(fmt("a", 720), fmt("b", 720)))
        assert chosen.format_id == "a"

    def test_manifests_are_skipped(self):
        chosen = select_rendition(renditions(
            fmt("hls-1080", 1080, protocol="m3u8_native", ext="mp4"),
            fmt("18", 360),
        ))
        assert chosen.format_id == "18"

    def test_none_qualifying(self):
        assert select_rendition(renditions(fmt("137", 1080, acodec="none"), fmt("140", 0, vcodec="none"))) is None
        assert select_rendition([]) is None

    def test_size_falls_back_to_approx(self):
        r = Rendition.from_format(fmt("18", 360, filesize=None, filesize_approx=1234))
        assert r.filesize == 1234

    @pytest.mark.parametrize("message,kind", [
        ("ERROR: [youtube] abc: Sign in to confirm you're not a bot", FailureKind.RESOLUTION_BLOCKED),
        ("ERROR: unable to download webpage: HTTP Error 429: Too Many Requests", FailureKind.RESOLUTION_BLOCKED),
        ("ERROR: Unsupported URL: https://example.com", FailureKind.INVALID_URL_FORMAT),
        ("ERROR: [youtube] abc: Video unavailable", FailureKind.RESOLUTION_FAILED),
    ])
    def test_classify_error(self, message, kind):
        assert classify_error(message) is kind


class TestYtDlpExtractor:

    async def test_resolves_best_rendition(self):
        ydl = FakeYoutubeDL(info={
            "title": "Never Gonna: Give You Up!",
            "formats": [
                fmt("18", 360, filesize=5_000_000),
                fmt("22", 720, filesize=20_000_000, http_headers={"User-Agent": "yt-ua"}),
            ],
        })
        extractor = YtDlpExtractor("test-ua", ydl_factory=ydl)
        result = await extractor.try_extract(WATCH_URL, YOUTUBE)

        assert result.resource_url == "https://media.example/22.mp4"
        assert result.title == "Never Gonna Give You Up"
        assert result.content_type_hint == "video/mp4"
        assert result.approx_size_bytes == 20_000_000
        assert result.platform == "youtube"
        assert result.referer == "https://www.youtube.com/"
        assert result.headers["User-Agent"] == "yt-ua"
        assert ydl.calls == [(WATCH_URL, False)]
        assert ydl.options["noplaylist"] is True

    async def test_default_title(self):
        ydl = FakeYoutubeDL(info={"formats": [fmt("18", 360, ext="webm")]})
        result = await YtDlpExtractor("test-ua", ydl_factory=ydl).try_extract(WATCH_URL, YOUTUBE)
        assert result.title == "YouTube-Video"
        assert result.content_type_hint == "video/webm"
        assert result.headers["User-Agent"] == "test-ua"

    async def test_single_format_info(self):
        ydl = FakeYoutubeDL(info={"title": "clip", "url": "https://media.example/clip.mp4", "ext": "mp4", "vcodec": "h264", "acodec": "aac", "protocol": "https"})
        result = await YtDlpExtractor("ua", ydl_factory=ydl).try_extract(WATCH_URL, YOUTUBE)
        assert result.resource_url == "https://media.example/clip.mp4"

    async def test_rejects_bad_address_without_resolving(self):
        ydl = FakeYoutubeDL()
        with pytest.raises(StrategyFailure) as exc:
            await YtDlpExtractor("ua", ydl_factory=ydl).try_extract("https://www.youtube.com/@channel", YOUTUBE)
        assert exc.value.kind is FailureKind.INVALID_URL_FORMAT
        assert ydl.calls == []

    async def test_blocked(self):
        ydl = FakeYoutubeDL(error=DownloadError("ERROR: [youtube] dQw4w9WgXcQ: Sign in to confirm you're not a bot"))
        with pytest.raises(StrategyFailure) as exc:
            await YtDlpExtractor("ua", ydl_factory=ydl).try_extract(WATCH_URL, YOUTUBE)
        assert exc.value.kind is FailureKind.RESOLUTION_BLOCKED
        assert exc.value.kind.is_blocking

    async def test_no_muxed_rendition(self):
        ydl = FakeYoutubeDL(info={"formats": [fmt("137", 1080, acodec="none"), fmt("140", 0, vcodec="none")]})
        with pytest.raises(StrategyFailure) as exc:
            await YtDlpExtractor("ua", ydl_factory=ydl).try_extract(WATCH_URL, YOUTUBE)
        assert exc.value.kind is FailureKind.NO_QUALIFYING_RENDITION

    async def test_playlist(self):
        ydl = FakeYoutubeDL(info={"_type": "playlist", "entries": []})
        with pytest.raises(StrategyFailure) as exc:
            await YtDlpExtractor("ua", ydl_factory=ydl).try_extract(WATCH_URL, YOUTUBE)
        assert exc.value.kind is FailureKind.NO_QUALIFYING_RENDITION

    async def test_resolution_is_bounded(self):
        ydl = FakeYoutubeDL(info={"formats": [fmt("18", 360)]}, delay=0.3)
        extractor = YtDlpExtractor("ua", ydl_factory=ydl, resolve_timeout=0.05)
        with pytest.raises(StrategyFailure) as exc:
            await extractor.try_extract(WATCH_URL, YOUTUBE)
        assert exc.value.kind is FailureKind.RESOLUTION_FAILED
        assert "0.05s" in exc.value.reason

    def test_supports_only_ytdlp_profiles(self):
        extractor = YtDlpExtractor("ua", ydl_factory=FakeYoutubeDL())
        assert extractor.supports(YOUTUBE)
        assert not extractor.supports(INSTAGRAM)
        assert not extractor.supports(DIRECT_FILE)


class TestDirectFileExtractor:

    URL = "https://cdn.example/my_clip.mp4"

    async def test_media_probe(self, fake_network):
        fake_network.add_probe(self.URL, 200, "video/mp4", 2_000_000)
        result = await DirectFileExtractor(fake_network).try_extract(self.URL, DIRECT_FILE)
        assert result.resource_url == self.URL
        assert result.title == "my_clip"
        assert result.approx_size_bytes == 2_000_000
        assert result.content_type_hint == "video/mp4"
        assert result.filename == "my_clip.mp4"

    @pytest.mark.parametrize("status,ct,kind", [
        (403, "text/html", FailureKind.RESOLUTION_BLOCKED),
        (429, "", FailureKind.RESOLUTION_BLOCKED),
        (404, "text/html", FailureKind.FETCH_FAILED),
        (200, "text/html; charset=utf-8", FailureKind.NO_QUALIFYING_RENDITION),
        (200, "application/vnd.apple.mpegurl", FailureKind.NO_QUALIFYING_RENDITION),
    ])
    async def test_probe_failures(self, fake_network, status, ct, kind):
        fake_network.add_probe(self.URL, status, ct)
        with pytest.raises(StrategyFailure) as exc:
            await DirectFileExtractor(fake_network).try_extract(self.URL, DIRECT_FILE)
        assert exc.value.kind is kind

    async def test_connection_error(self, fake_network):
        fake_network.probes[self.URL] = NetworkError("Connection failed: timeout")
        with pytest.raises(StrategyFailure) as exc:
            await DirectFileExtractor(fake_network).try_extract(self.URL, DIRECT_FILE)
        assert exc.value.kind is FailureKind.FETCH_FAILED


class TestGenericExtractor:

    URL = "https://news.example/story/1"

    async def test_url_itself_is_media(self, fake_network):
        fake_network.add_probe(self.URL, 200, "video/webm", 500_000)
        result = await GenericExtractor(fake_network).try_extract(self.URL, GENERIC_PROFILE)
        assert result.resource_url == self.URL
        assert result.content_type_hint == "video/webm"
        assert fake_network.calls_to("fetch_text") == []

    async def test_video_element(self, fake_network):
        fake_network.add_page(self.URL, """
            <html><head><meta property="og:title" content="Breaking: Cats!"></head>
            <body><video src="/media/cats.mp4"></video></body></html>
        """)
        result = await GenericExtractor(fake_network).try_extract(self.URL, GENERIC_PROFILE)
        assert result.resource_url == "https://news.example/media/cats.mp4"
        assert result.title == "Breaking Cats"
        assert result.referer == self.URL
        assert result.platform == "generic"

    async def test_playlist_skipped_for_real_file(self, fake_network):
        fake_network.add_page(self.URL, """
            <video src="https://cdn.example/hls/master.m3u8">
              <source src="https://cdn.example/v/clip.mp4" type="video/mp4">
            </video>
        """)
        result = await GenericExtractor(fake_network).try_extract(self.URL, GENERIC_PROFILE)
        assert result.resource_url == "https://cdn.example/v/clip.mp4"
        assert result.content_type_hint == "video/mp4"

    async def test_playlist_only_is_no_media(self, fake_network):
        fake_network.add_page(self.URL, '<video src="/hls/master.m3u8"></video><script>load("https://cdn.example/hls/index.m3u8")</script>')
        with pytest.raises(StrategyFailure) as exc:
            await GenericExtractor(fake_network).try_extract(self.URL, GENERIC_PROFILE)
        assert exc.value.kind is FailureKind.NO_MEDIA_FOUND

    async def test_playlist_url_is_not_media(self, fake_network):
        fake_network.add_probe(self.URL, 200, "application/x-mpegURL", 58)
        fake_network.add_page(self.URL, "<p>no player</p>")
        with pytest.raises(StrategyFailure) as exc:
            await GenericExtractor(fake_network).try_extract(self.URL, GENERIC_PROFILE)
        assert exc.value.kind is FailureKind.NO_MEDIA_FOUND

    async def test_inline_media_url(self, fake_network):
        fake_network.add_page(self.URL, '<script>player.load("https://cdn.example/v/720.mp4?sig=x")</script>')
        result = await GenericExtractor(fake_network).try_extract(self.URL, GENERIC_PROFILE)
        assert result.resource_url == "https://cdn.example/v/720.mp4?sig=x"
        assert result.title == "720"

    async def test_no_media(self, fake_network):
        fake_network.add_page(self.URL, "<html><body><p>Just text</p></body></html>")
        with pytest.raises(StrategyFailure) as exc:
            await GenericExtractor(fake_network).try_extract(self.URL, GENERIC_PROFILE)
        assert exc.value.kind is FailureKind.NO_MEDIA_FOUND

    async def test_bot_wall(self, fake_network):
        fake_network.add_page(self.URL, "<html><body>Please complete the CAPTCHA to continue</body></html>")
        with pytest.raises(StrategyFailure) as exc:
            await GenericExtractor(fake_network).try_extract(self.URL, GENERIC_PROFILE)
        assert exc.value.kind is FailureKind.RESOLUTION_BLOCKED

    @pytest.mark.parametrize("status,kind", [
        (403, FailureKind.RESOLUTION_BLOCKED),
        (500, FailureKind.FETCH_FAILED),
    ])
    async def test_http_errors(self, fake_network, status, kind):
        fake_network.add_page(self.URL, "", status_code=status)
        with pytest.raises(StrategyFailure) as exc:
            await GenericExtractor(fake_network).try_extract(self.URL, GENERIC_PROFILE)
        assert exc.value.kind is kind

    async def test_platform_referer_is_sent(self, fake_network):
        url = "https://www.instagram.com/reel/Cxyz123/"
        fake_network.add_page(url, '<meta property="og:video" content="https://scontent.cdninstagram.com/v.mp4">')
        result = await GenericExtractor(fake_network).try_extract(url, INSTAGRAM)
        assert result.referer == "https://www.instagram.com/"
        assert result.title == "v"
        assert fake_network.calls_to("fetch_text")[0][2] == "https://www.instagram.com/"

    def test_bot_wall_markers(self):
        assert looks_like_bot_wall("Our systems have detected unusual traffic from your computer")
        assert not looks_like_bot_wall("<video src='a.mp4'>")
