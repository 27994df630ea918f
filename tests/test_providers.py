from __future__ import annotations

import subprocess

import pytest

from nowbot.media_resolver import MediaReference, ProviderError, build_providers
from nowbot.media_resolver.providers import (
    GenericMediaResponse,
    TiklyDownResponse,
    TikWMResponse,
    YtDlpOutput,
    YtDlpProvider,
    find_media_url,
)


TIKTOK_REF = MediaReference(
    platform="tiktok",
    raw_url="https://vm.tiktok.com/ZMabc/",
    canonical_id="123",
    canonical_url="https://www.tiktok.com/@bob/video/123",
)
YOUTUBE_REF = MediaReference(
    platform="youtube",
    raw_url="https://youtu.be/abcDEF12345",
    canonical_id="abcDEF12345",
    canonical_url="https://www.youtube.com/shorts/abcDEF12345",
)


def test_tikwm_prefers_hd_then_play():
    payload = {"code": 0, "data": {"hdplay": "https://cdn.tikwm/hd.mp4", "play": "https://cdn.tikwm/sd.mp4"}}
    assert TikWMResponse.from_payload(payload).direct_url() == "https://cdn.tikwm/hd.mp4"

    payload = {"code": 0, "data": {"hdplay": "", "play": "/video/media/play/123.mp4"}}
    assert TikWMResponse.from_payload(payload).direct_url() == "https://www.tikwm.com/video/media/play/123.mp4"


def test_tikwm_error_code_or_odd_shape_has_no_url():
    assert TikWMResponse.from_payload({"code": -1, "msg": "Url parsing is failed!"}).direct_url() is None
    assert TikWMResponse.from_payload({"code": "0", "data": ["unexpected"]}).direct_url() is None
    assert TikWMResponse.from_payload({}).direct_url() is None


def test_tiklydown_field_precedence():
    payload = {"video": {"noWatermark": "https://t/nowm.mp4", "watermark": "https://t/wm.mp4"}}
    assert TiklyDownResponse.from_payload(payload).direct_url() == "https://t/nowm.mp4"

    payload = {"video": {"watermark": "https://t/wm.mp4"}}
    assert TiklyDownResponse.from_payload(payload).direct_url() == "https://t/wm.mp4"

    payload = {"status": False, "video": {"noWatermark": "https://t/nowm.mp4"}}
    assert TiklyDownResponse.from_payload(payload).direct_url() is None


def test_generic_response_scans_nested_payload():
    payload = {"result": {"items": [{"thumb": "https://img/x.jpg"}, {"link": "https://cdn/x.mp4?sig=1"}]}}
    assert GenericMediaResponse(payload).direct_url() == "https://cdn/x.mp4?sig=1"

    assert GenericMediaResponse({"status": "ok", "items": []}).direct_url() is None
    assert find_media_url(["not a url", 3, None]) is None


def test_generic_response_preferred_key_wins():
    payload = {"url": "https://snap/get?token=abc", "other": "https://cdn/x.mp4"}
    assert GenericMediaResponse(payload, preferred_keys=("url",)).direct_url() == "https://snap/get?token=abc"


def test_ytdlp_output_takes_first_url_line():
    out = YtDlpOutput(stdout="WARNING: something\nhttps://rr1.googlevideo.com/videoplayback?x=1\nhttps://second\n")
    assert out.direct_url() == "https://rr1.googlevideo.com/videoplayback?x=1"
    assert YtDlpOutput(stdout="").direct_url() is None


class FakeRunner:
    def __init__(self, *, returncode=0, stdout="", stderr="", exc=None):
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        self.exc = exc
        self.commands = []

    def __call__(self, cmd, **kwargs):
        self.commands.append(cmd)
        if self.exc is not None:
            raise self.exc
        return subprocess.CompletedProcess(cmd, self.returncode, stdout=self.stdout, stderr=self.stderr)


def test_ytdlp_provider_resolves_youtube_only():
    runner = FakeRunner(stdout="https://rr1.googlevideo.com/videoplayback?id=1\n")
    provider = YtDlpProvider(ytdlp_path="/opt/yt-dlp", runner=runner)

    assert provider.supports(YOUTUBE_REF)
    assert not provider.supports(TIKTOK_REF)
    assert provider.resolve(None, YOUTUBE_REF) == "https://rr1.googlevideo.com/videoplayback?id=1"

    cmd = runner.commands[0]
    assert cmd[0] == "/opt/yt-dlp"
    assert "--get-url" in cmd
    assert cmd[-1] == YOUTUBE_REF.canonical_url


@pytest.mark.parametrize(
    "runner, reason",
    [
        (FakeRunner(exc=FileNotFoundError("yt-dlp")), "ytdlp_not_found"),
        (FakeRunner(exc=subprocess.TimeoutExpired("yt-dlp", 90)), "ytdlp_timeout"),
        (FakeRunner(returncode=1, stderr="ERROR: Sign in to confirm"), "ytdlp_exit_1"),
        (FakeRunner(stdout="no urls here\n"), "no_playable_url"),
    ],
)
def test_ytdlp_provider_failures(runner, reason):
    with pytest.raises(ProviderError) as exc:
        YtDlpProvider(runner=runner).resolve(None, YOUTUBE_REF)
    assert exc.value.reason == reason
    assert exc.value.provider == "ytdlp"


def test_build_providers_keeps_order_and_skips_unknown():
    providers = build_providers(["ssstik", "bogus", "TikWM", "ytdlp"], ytdlp_path="/bin/yt-dlp")
    assert [p.name for p in providers] == ["ssstik", "tikwm", "ytdlp"]
    assert providers[-1].ytdlp_path == "/bin/yt-dlp"
