from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import urljoin, urlsplit, urlunsplit
import re

import requests

from .media_resolver.base import MediaReference, Platform
from .media_resolver.http import USER_AGENT
from .sessions import ThreadLocalSessions, session_getter


MAX_REDIRECT_HOPS = 5

_TRAILING_PUNCT = ").,!?;:»\"'>]"


@dataclass(frozen=True)
class LinkShape:
    platform: Platform
    kind: str
    pattern: re.Pattern
    # Short links carry a code, not the content id; they need redirect-following.
    needs_redirect: bool = False


def _shape(platform: Platform, kind: str, pattern: str, *, needs_redirect: bool = False) -> LinkShape:
    return LinkShape(platform, kind, re.compile(pattern, re.IGNORECASE), needs_redirect)


# Order matters: full canonical shapes first, short links last.
LINK_SHAPES: tuple[LinkShape, ...] = (
    _shape("tiktok", "video", r"https?://(?:[\w\-]+\.)?tiktok\.com/@(?P<user>[\w.\-]+)/video/(?P<id>\d+)\S*"),
    _shape("tiktok", "mobile", r"https?://m\.tiktok\.com/v/(?P<id>\d+)(?:\.html)?\S*"),
    _shape("tiktok", "share", r"https?://(?:www\.)?tiktok\.com/t/(?P<code>[\w\-]+)/?\S*", needs_redirect=True),
    _shape("tiktok", "short", r"https?://(?:vm|vt)\.tiktok\.com/(?P<code>[\w\-]+)/?\S*", needs_redirect=True),
    _shape("youtube", "shorts", r"https?://(?:www\.|m\.)?youtube\.com/shorts/(?P<id>[\w\-]{6,})\S*"),
    _shape("youtube", "watch", r"https?://(?:www\.|m\.)?youtube\.com/watch\?(?:\S*?&)?v=(?P<id>[\w\-]{6,})\S*"),
    _shape("youtube", "short", r"https?://youtu\.be/(?P<id>[\w\-]{6,})\S*"),
)


def canonical_url_for(platform: str, kind: str, content_id: str, *, user: str = "") -> str:
    if platform == "tiktok":
        if user:
            return f"https://www.tiktok.com/@{user}/video/{content_id}"
        return f"https://m.tiktok.com/v/{content_id}.html"
    if kind == "shorts":
        return f"https://www.youtube.com/shorts/{content_id}"
    return f"https://www.youtube.com/watch?v={content_id}"


def strip_tracking(url: str) -> str:
    """Drop query string and fragment (share ids, utm_* and friends)."""

    try:
        parts = urlsplit(url)
    except ValueError:
        return url
    return urlunsplit((parts.scheme, parts.netloc, parts.path, "", ""))


class LinkClassifier:
    """Turn freeform message text into at most one MediaReference.

    Redirect-following for short links is best-effort: a failure keeps the
    last URL reached, which is the URL as sent when nothing resolved.
    """

    def __init__(
        self,
        *,
        session: requests.Session | None = None,
        sessions: ThreadLocalSessions | None = None,
        max_hops: int = MAX_REDIRECT_HOPS,
        timeout_seconds: float = 10.0,
    ):
        self._http = session_getter(session, sessions)
        self._max_hops = max(1, int(max_hops))
        self._timeout = float(timeout_seconds)

    def _log(self, msg: str) -> None:
        print(f"[LINK] {msg}", flush=True)

    def _match(self, text: str) -> tuple[LinkShape, re.Match] | None:
        for shape in LINK_SHAPES:
            m = shape.pattern.search(text or "")
            if m:
                return shape, m
        return None

    def find_link(self, text: str) -> tuple[str, str] | None:
        """Pattern-only lookup: (platform, url as sent). No network."""

        found = self._match(text)
        if not found:
            return None
        shape, m = found
        return shape.platform, m.group(0).rstrip(_TRAILING_PUNCT)

    def classify(self, text: str) -> MediaReference | None:
        found = self._match(text)
        if not found:
            return None
        shape, m = found
        raw_url = m.group(0).rstrip(_TRAILING_PUNCT)

        if not shape.needs_redirect:
            return self._reference(shape, m, raw_url)

        final_url = self.normalize_url(raw_url)
        resolved = self._match(final_url)
        if resolved and not resolved[0].needs_redirect and resolved[0].platform == shape.platform:
            return self._reference(resolved[0], resolved[1], raw_url)

        # No content id behind the short link; keep the best-known URL.
        ref = MediaReference(
            platform=shape.platform,
            raw_url=raw_url,
            canonical_id=m.group("code"),
            canonical_url=strip_tracking(final_url),
        )
        self._log(f"classified platform={ref.platform} kind={shape.kind} id={ref.canonical_id} unresolved_short_link=1")
        return ref

    def _reference(self, shape: LinkShape, m: re.Match, raw_url: str) -> MediaReference:
        groups = m.groupdict()
        content_id = str(groups.get("id") or "")
        user = str(groups.get("user") or "")
        ref = MediaReference(
            platform=shape.platform,
            raw_url=raw_url,
            canonical_id=content_id,
            canonical_url=canonical_url_for(shape.platform, shape.kind, content_id, user=user),
        )
        self._log(f"classified platform={ref.platform} kind={shape.kind} id={content_id}")
        return ref

    def _request(self, url: str) -> requests.Response:
        headers = {"User-Agent": USER_AGENT}
        try:
            resp = self._http().head(url, allow_redirects=False, timeout=self._timeout, headers=headers)
            if resp.status_code != 405:
                return resp
        except requests.RequestException as e:
            self._log(f"head_failed url={url} err={type(e).__name__}; retrying with GET")
        resp = self._http().get(url, allow_redirects=False, timeout=self._timeout, headers=headers, stream=True)
        resp.close()
        return resp

    def normalize_url(self, url: str) -> str:
        """Follow redirects manually, at most max_hops requests.

        Returns the first non-redirect URL, or the last URL reached when the hop
        limit is hit or a request fails (the original URL if the first hop fails).
        """

        current = url
        for _ in range(self._max_hops):
            try:
                resp = self._request(current)
            except requests.RequestException as e:
                self._log(f"normalize_failed url={url} last={current} err={type(e).__name__}")
                return current
            if not (300 <= resp.status_code < 400):
                return current
            location = str(resp.headers.get("Location") or "").strip()
            if not location:
                return current
            current = urljoin(current, location)
        self._log(f"redirect_limit url={url} last={current}")
        return current
