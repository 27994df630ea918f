from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Iterator
import time

from .membership import MembershipLookup
from .sponsors import SponsorConfigStore


@dataclass(frozen=True)
class AccessDecision:
    allowed: bool
    evaluated_channels: list[str] = field(default_factory=list)
    # True when every lookup failed and access was granted anyway (fail-open).
    degraded: bool = False

    def __iter__(self) -> Iterator:
        # allowed, channels = gate.check_access(...)
        return iter((self.allowed, self.evaluated_channels))


class AccessGate:
    """Allow/deny a subscriber based on sponsor-channel membership.

    Policy:
    - Not required, or no live sponsor channel: allow without any lookup.
    - all-of: a channel checked as "not a member" denies.
    - any-of: the first confirmed membership allows.
    - A lookup error is never the subscriber's fault. If no channel could be
      checked at all, allow (fail-open) and log a degraded check.

    Decisions are computed fresh on every call; membership changes over time.
    """

    def __init__(
        self,
        *,
        config_store: SponsorConfigStore,
        lookup: MembershipLookup | None,
        now: Callable[[], float] = time.time,
    ):
        self._config = config_store
        self._lookup = lookup
        self._now = now

    def _log(self, msg: str) -> None:
        print(f"[GATE] {msg}", flush=True)

    def check_access(self, subscriber_id: int, bot_name: str) -> AccessDecision:
        policy = self._config.snapshot(bot_name)
        if not policy.require_subscription:
            self._log(f"bot={bot_name} user={subscriber_id} allowed reason=not_required")
            return AccessDecision(True, [])

        channels = [c.handle for c in policy.live_channels(self._now())]
        if not channels:
            self._log(f"bot={bot_name} user={subscriber_id} allowed reason=no_live_campaigns")
            return AccessDecision(True, [])

        if self._lookup is None:
            self._log(f"bot={bot_name} user={subscriber_id} allowed reason=no_membership_lookup_configured")
            return AccessDecision(True, [])

        require_all = bool(policy.require_all_channels)
        checked = 0
        errored = 0
        all_member = True

        for handle in channels:
            try:
                is_member = bool(self._lookup.is_member(subscriber_id, handle))
            except Exception as e:
                errored += 1
                self._log(f"bot={bot_name} user={subscriber_id} channel=@{handle} lookup_error={type(e).__name__}")
                continue

            checked += 1
            self._log(f"bot={bot_name} user={subscriber_id} channel=@{handle} member={int(is_member)}")
            if is_member and not require_all:
                return AccessDecision(True, channels)
            if not is_member:
                all_member = False

        if checked == 0 and errored == len(channels):
            self._log(
                f"degraded_check bot={bot_name} user={subscriber_id} "
                f"errored={errored}/{len(channels)} allowed=1 reason=fail_open"
            )
            return AccessDecision(True, [], degraded=True)

        # all-of: only the channels that could be checked are enforced.
        allowed = require_all and all_member
        self._log(
            f"bot={bot_name} user={subscriber_id} policy={'all' if require_all else 'any'} "
            f"checked={checked}/{len(channels)} errored={errored} allowed={int(allowed)}"
        )
        return AccessDecision(allowed, channels)
