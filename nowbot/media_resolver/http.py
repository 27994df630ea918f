from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable
import time

import requests

from .base import ProviderError


USER_AGENT = "Mozilla/5.0 (Macintosh; Intel Mac OS X) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0 Safari/537.36"

JSON_HEADERS = {
    "Accept": "application/json",
    "User-Agent": USER_AGENT,
}


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded retry for one provider call.

    Only HTTP 429 is retried (the mirror is throttling us; it clears by itself).
    Any other failure is returned to the chain immediately.
    """

    max_attempts: int = 3
    timeout_seconds: float = 20.0
    sleep: Callable[[float], None] = time.sleep

    def backoff_seconds(self, attempt: int) -> float:
        return float(2 ** int(attempt))


def _log(msg: str) -> None:
    print(f"[RESOLVE] {msg}", flush=True)


def _snippet(text: str, n: int = 200) -> str:
    s = str(text or "").replace("\r", " ").replace("\n", " ")
    return s if len(s) <= n else s[: n - 3] + "..."


def request_with_retry(
    session: requests.Session,
    method: str,
    url: str,
    *,
    provider: str,
    policy: RetryPolicy,
    **kwargs: Any,
) -> requests.Response:
    attempts = max(1, int(policy.max_attempts))
    kwargs.setdefault("timeout", policy.timeout_seconds)
    kwargs.setdefault("headers", dict(JSON_HEADERS))

    for attempt in range(1, attempts + 1):
        try:
            resp = session.request(method, url, **kwargs)
        except requests.RequestException as e:
            _log(f"provider={provider} attempt={attempt}/{attempts} transport_error={type(e).__name__}")
            raise ProviderError(provider, f"transport_error:{type(e).__name__}", attempts=attempt) from e

        if resp.status_code == 429:
            _log(f"provider={provider} attempt={attempt}/{attempts} status=429")
            if attempt < attempts:
                policy.sleep(policy.backoff_seconds(attempt))
                continue
            raise ProviderError(provider, "rate_limited", rate_limited=True, attempts=attempt)

        if resp.status_code != 200:
            _log(f"provider={provider} attempt={attempt}/{attempts} status={resp.status_code}")
            raise ProviderError(provider, f"http_{resp.status_code}", attempts=attempt)

        if not (resp.content or b"").strip():
            _log(f"provider={provider} attempt={attempt}/{attempts} empty_body")
            raise ProviderError(provider, "empty_body", attempts=attempt)

        return resp

    # range() above always returns or raises; kept for type checkers.
    raise ProviderError(provider, "no_attempts", attempts=attempts)


def parse_json(provider: str, resp: requests.Response) -> Any:
    try:
        return resp.json()
    except ValueError as e:
        _log(f"provider={provider} invalid_json snippet={_snippet(resp.text)!r}")
        raise ProviderError(provider, "invalid_json") from e
