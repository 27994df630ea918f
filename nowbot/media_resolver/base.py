from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

import requests


Platform = Literal["tiktok", "youtube"]
AttemptOutcome = Literal["RESOLVED", "FAILED", "RATE_LIMITED"]


@dataclass(frozen=True)
class MediaReference:
    platform: Platform
    raw_url: str
    canonical_id: str
    canonical_url: str
    duration: float | None = None
    mime_hint: str | None = None


@dataclass(frozen=True)
class ProviderAttempt:
    provider_name: str
    outcome: AttemptOutcome
    elapsed: float
    reason: str = ""


@dataclass(frozen=True)
class ResolvedMedia:
    direct_url: str
    source_provider: str
    attempts: tuple[ProviderAttempt, ...] = ()


class ProviderError(RuntimeError):
    """One provider could not produce a direct URL. Advances the chain."""

    def __init__(self, provider: str, reason: str, *, rate_limited: bool = False, attempts: int = 1):
        super().__init__(f"{provider}: {reason}")
        self.provider = provider
        self.reason = reason
        self.rate_limited = rate_limited
        self.attempts = attempts


class AllProvidersFailed(RuntimeError):
    def __init__(self, providers: list[str], attempts: list[ProviderAttempt] | None = None):
        names = ", ".join(providers) if providers else "(none applicable)"
        super().__init__(f"all providers failed: {names}")
        self.providers = list(providers)
        self.attempts = list(attempts or [])


class ProviderResponse:
    """Provider-specific response shape.

    Each mirror answers with its own loosely-typed JSON. Subclasses parse it
    tolerantly and expose a single capability: the best direct media URL, or
    None when the payload holds nothing playable.
    """

    def direct_url(self) -> str | None:
        raise NotImplementedError


class BaseProvider:
    """Interchangeable third-party mirror.

    Goals:
    - One outbound call per attempt to a single mirror.
    - Parse the mirror's own response shape; never crash on an odd payload.
    - Raise ProviderError on any failure so the chain can move on.
    """

    name: str = "base"
    platforms: frozenset[str] = frozenset()

    def supports(self, ref: MediaReference) -> bool:
        return ref.platform in self.platforms

    def fetch(self, session: requests.Session, ref: MediaReference) -> ProviderResponse:
        raise NotImplementedError

    def resolve(self, session: requests.Session, ref: MediaReference) -> str:
        response = self.fetch(session, ref)
        url = str(response.direct_url() or "").strip()
        if not url:
            raise ProviderError(self.name, "no_playable_url")
        return url
