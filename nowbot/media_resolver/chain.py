from __future__ import annotations

from typing import Callable
import time

import requests

from ..sessions import ThreadLocalSessions, session_getter
from .base import AllProvidersFailed, BaseProvider, MediaReference, ProviderAttempt, ProviderError, ResolvedMedia


class ProviderChainResolver:
    """Try providers strictly in priority order; stop at the first direct URL.

    Providers are never called in parallel: one mirror at a time, and nothing
    after the first success. A failing provider (including exhausted 429
    retries) only advances the chain.
    """

    def __init__(
        self,
        providers: list[BaseProvider],
        *,
        session: requests.Session | None = None,
        sessions: ThreadLocalSessions | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._providers = list(providers)
        self._http = session_getter(session, sessions)
        self._clock = clock

    @property
    def provider_names(self) -> list[str]:
        return [p.name for p in self._providers]

    def _log(self, msg: str) -> None:
        print(f"[RESOLVE] {msg}", flush=True)

    def resolve(self, ref: MediaReference) -> ResolvedMedia:
        attempts: list[ProviderAttempt] = []
        applicable = [p for p in self._providers if p.supports(ref)]
        self._log(
            f"start platform={ref.platform} id={ref.canonical_id} "
            f"providers={','.join(p.name for p in applicable) or '-'}"
        )

        for provider in applicable:
            started = self._clock()
            try:
                url = provider.resolve(self._http(), ref)
            except ProviderError as e:
                outcome = "RATE_LIMITED" if e.rate_limited else "FAILED"
                attempts.append(ProviderAttempt(provider.name, outcome, self._clock() - started, e.reason))
                self._log(f"provider_failed provider={provider.name} outcome={outcome} reason={e.reason}")
                continue
            except Exception as e:
                # An adapter bug must not take the whole chain down.
                reason = f"unexpected:{type(e).__name__}"
                attempts.append(ProviderAttempt(provider.name, "FAILED", self._clock() - started, reason))
                self._log(f"provider_failed provider={provider.name} outcome=FAILED reason={reason}")
                continue

            attempts.append(ProviderAttempt(provider.name, "RESOLVED", self._clock() - started))
            self._log(f"resolved provider={provider.name} id={ref.canonical_id} url={url[:120]}")
            return ResolvedMedia(direct_url=url, source_provider=provider.name, attempts=tuple(attempts))

        names = [a.provider_name for a in attempts]
        self._log(f"exhausted id={ref.canonical_id} attempted={','.join(names) or '-'}")
        raise AllProvidersFailed(names, attempts)
