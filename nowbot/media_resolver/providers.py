from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable
from urllib.parse import urljoin
import subprocess

import requests

from .base import BaseProvider, MediaReference, ProviderError, ProviderResponse
from .http import USER_AGENT, RetryPolicy, parse_json, request_with_retry


TIKWM_API = "https://www.tikwm.com/api/"
TIKLYDOWN_API = "https://api.tiklydown.me/api/download"
TIKMATE_API = "https://api.tikmate.app/api/lookup"
SNAPTIK_API = "https://snaptik.app/api/ajaxSearch"
SSSTIK_API = "https://ssstik.io/api"

YTDLP_FORMAT = "best[ext=mp4][vcodec!=none][acodec!=none]/best[ext=mp4]/best"


def _str(v: Any) -> str:
    return v.strip() if isinstance(v, str) else ""


def _looks_like_media_url(s: str) -> bool:
    return s.startswith(("http://", "https://")) and (".mp4" in s or ".m3u8" in s or "download" in s)


def find_media_url(obj: Any) -> str | None:
    """Depth-first scan of an arbitrary JSON value for the first media-looking URL."""

    if isinstance(obj, str):
        s = obj.strip()
        return s if _looks_like_media_url(s) else None
    if isinstance(obj, dict):
        for value in obj.values():
            found = find_media_url(value)
            if found:
                return found
    if isinstance(obj, list):
        for value in obj:
            found = find_media_url(value)
            if found:
                return found
    return None


# --- Response variants -------------------------------------------------------


@dataclass(frozen=True)
class TikWMResponse(ProviderResponse):
    code: int | None
    hdplay: str = ""
    play: str = ""
    wmplay: str = ""

    @classmethod
    def from_payload(cls, payload: dict) -> "TikWMResponse":
        data = payload.get("data")
        data = data if isinstance(data, dict) else {}
        try:
            code = int(payload.get("code")) if payload.get("code") is not None else None
        except (TypeError, ValueError):
            code = None
        return cls(
            code=code,
            hdplay=_str(data.get("hdplay")),
            play=_str(data.get("play")),
            wmplay=_str(data.get("wmplay")),
        )

    def direct_url(self) -> str | None:
        if self.code != 0:
            return None
        for candidate in (self.hdplay, self.play, self.wmplay):
            if candidate:
                # TikWM sometimes answers with site-relative paths.
                return urljoin("https://www.tikwm.com", candidate) if candidate.startswith("/") else candidate
        return None


@dataclass(frozen=True)
class TiklyDownResponse(ProviderResponse):
    status: bool | None
    no_watermark: str = ""
    hd: str = ""
    watermark: str = ""

    @classmethod
    def from_payload(cls, payload: dict) -> "TiklyDownResponse":
        video = payload.get("video")
        video = video if isinstance(video, dict) else {}
        status = payload.get("status")
        return cls(
            status=(bool(status) if status is not None else None),
            no_watermark=_str(video.get("noWatermark")),
            hd=_str(video.get("hd")),
            watermark=_str(video.get("watermark")),
        )

    def direct_url(self) -> str | None:
        if self.status is False:
            return None
        return self.no_watermark or self.hd or self.watermark or None


@dataclass(frozen=True)
class GenericMediaResponse(ProviderResponse):
    """Mirrors without a stable schema: optional preferred keys, then a full scan."""

    payload: Any
    preferred_keys: tuple[str, ...] = ()

    def direct_url(self) -> str | None:
        if isinstance(self.payload, dict):
            for key in self.preferred_keys:
                v = _str(self.payload.get(key))
                if v.startswith(("http://", "https://")):
                    return v
        return find_media_url(self.payload)


@dataclass(frozen=True)
class YtDlpOutput(ProviderResponse):
    stdout: str

    def direct_url(self) -> str | None:
        for line in (self.stdout or "").splitlines():
            s = line.strip()
            if s.startswith("http"):
                return s
        return None


# --- Providers ---------------------------------------------------------------


class HttpProvider(BaseProvider):
    def __init__(self, policy: RetryPolicy | None = None):
        self._policy = policy or RetryPolicy()

    def _get_json(self, session: requests.Session, url: str, **kwargs: Any) -> Any:
        resp = request_with_retry(session, "GET", url, provider=self.name, policy=self._policy, **kwargs)
        return parse_json(self.name, resp)


class TikWMProvider(HttpProvider):
    name = "tikwm"
    platforms = frozenset({"tiktok"})

    def fetch(self, session: requests.Session, ref: MediaReference) -> ProviderResponse:
        payload = self._get_json(session, TIKWM_API, params={"url": ref.canonical_url, "hd": "1"})
        if not isinstance(payload, dict):
            raise ProviderError(self.name, "unexpected_shape")
        return TikWMResponse.from_payload(payload)


class TiklyDownProvider(HttpProvider):
    name = "tiklydown"
    platforms = frozenset({"tiktok"})

    def fetch(self, session: requests.Session, ref: MediaReference) -> ProviderResponse:
        payload = self._get_json(session, TIKLYDOWN_API, params={"url": ref.canonical_url})
        if not isinstance(payload, dict):
            raise ProviderError(self.name, "unexpected_shape")
        return TiklyDownResponse.from_payload(payload)


class TikmateProvider(HttpProvider):
    name = "tikmate"
    platforms = frozenset({"tiktok"})

    def fetch(self, session: requests.Session, ref: MediaReference) -> ProviderResponse:
        return GenericMediaResponse(self._get_json(session, TIKMATE_API, params={"url": ref.canonical_url}))


class SnapTikProvider(HttpProvider):
    name = "snaptik"
    platforms = frozenset({"tiktok"})

    def fetch(self, session: requests.Session, ref: MediaReference) -> ProviderResponse:
        resp = request_with_retry(
            session,
            "POST",
            SNAPTIK_API,
            provider=self.name,
            policy=self._policy,
            data={"url": ref.canonical_url},
            headers={"User-Agent": USER_AGENT, "Content-Type": "application/x-www-form-urlencoded"},
        )
        return GenericMediaResponse(parse_json(self.name, resp), preferred_keys=("url",))


class SSSTikProvider(HttpProvider):
    name = "ssstik"
    platforms = frozenset({"tiktok"})

    def fetch(self, session: requests.Session, ref: MediaReference) -> ProviderResponse:
        return GenericMediaResponse(self._get_json(session, SSSTIK_API, params={"url": ref.canonical_url}))


@dataclass
class YtDlpProvider(BaseProvider):
    """Local yt-dlp binary. Public YouTube mirrors are too unreliable to chain."""

    ytdlp_path: str = "yt-dlp"
    timeout_seconds: float = 90.0
    runner: Callable[..., subprocess.CompletedProcess] = field(default=subprocess.run, repr=False)

    name = "ytdlp"
    platforms = frozenset({"youtube"})

    def fetch(self, session: requests.Session, ref: MediaReference) -> ProviderResponse:
        cmd = [
            self.ytdlp_path,
            "--no-playlist",
            "--extractor-args",
            "youtube:player_client=tv,android",
            "--get-url",
            "--format",
            YTDLP_FORMAT,
            ref.canonical_url,
        ]
        try:
            p = self.runner(cmd, capture_output=True, text=True, timeout=self.timeout_seconds)
        except FileNotFoundError as e:
            raise ProviderError(self.name, "ytdlp_not_found") from e
        except subprocess.TimeoutExpired as e:
            raise ProviderError(self.name, "ytdlp_timeout") from e
        if p.returncode != 0:
            err = str(p.stderr or "").strip().replace("\n", " ")[:200]
            print(f"[RESOLVE] provider={self.name} exit={p.returncode} stderr={err!r}", flush=True)
            raise ProviderError(self.name, f"ytdlp_exit_{p.returncode}")
        return YtDlpOutput(stdout=str(p.stdout or ""))


def build_providers(
    names: tuple[str, ...] | list[str],
    *,
    policy: RetryPolicy | None = None,
    ytdlp_path: str = "yt-dlp",
) -> list[BaseProvider]:
    """Instantiate providers in the given priority order. Unknown names are skipped."""

    factories: dict[str, Callable[[], BaseProvider]] = {
        "tikwm": lambda: TikWMProvider(policy),
        "tiklydown": lambda: TiklyDownProvider(policy),
        "tikmate": lambda: TikmateProvider(policy),
        "snaptik": lambda: SnapTikProvider(policy),
        "ssstik": lambda: SSSTikProvider(policy),
        "ytdlp": lambda: YtDlpProvider(ytdlp_path=ytdlp_path),
    }
    out: list[BaseProvider] = []
    for name in names:
        factory = factories.get(str(name).strip().lower())
        if factory is not None:
            out.append(factory())
    return out
