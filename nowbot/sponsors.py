from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
import json
import threading


@dataclass(frozen=True)
class SponsorChannel:
    handle: str  # without the leading "@"
    expires_at: float | None = None
    active: bool = True

    def is_live(self, now_ts: float) -> bool:
        return bool(self.active) and (self.expires_at is None or float(self.expires_at) >= float(now_ts))


@dataclass(frozen=True)
class SponsorPolicy:
    bot_name: str
    require_subscription: bool = False
    # True: member of every channel. False: member of at least one.
    require_all_channels: bool = True
    channels: tuple[SponsorChannel, ...] = field(default_factory=tuple)

    def live_channels(self, now_ts: float) -> list[SponsorChannel]:
        return [c for c in self.channels if c.is_live(now_ts)]


def normalize_handle(handle: str) -> str:
    h = str(handle or "").strip()
    if h.startswith("https://t.me/"):
        h = h[len("https://t.me/"):]
    return h.lstrip("@").strip("/").strip()


def _channel_from(raw: object) -> SponsorChannel | None:
    if isinstance(raw, str):
        handle = normalize_handle(raw)
        return SponsorChannel(handle=handle) if handle else None
    if not isinstance(raw, dict):
        return None
    handle = normalize_handle(str(raw.get("handle") or raw.get("channel_username") or ""))
    if not handle:
        return None
    try:
        expires_at = float(raw["expires_at"]) if raw.get("expires_at") is not None else None
    except (TypeError, ValueError):
        expires_at = None
    active = raw.get("active", True)
    return SponsorChannel(handle=handle, expires_at=expires_at, active=bool(active))


def dict_to_policy(bot_name: str, d: dict) -> SponsorPolicy:
    channels = [c for c in (_channel_from(x) for x in (d.get("channels") or [])) if c is not None]
    return SponsorPolicy(
        bot_name=bot_name,
        require_subscription=bool(d.get("require_subscription", False)),
        require_all_channels=bool(d.get("require_all_channels", True)),
        channels=tuple(channels),
    )


class SponsorConfigStore:
    """Read-only source of per-bot sponsor settings. Never written by the bot."""

    def snapshot(self, bot_name: str) -> SponsorPolicy:
        raise NotImplementedError


class StaticSponsorConfigStore(SponsorConfigStore):
    def __init__(self, policies: dict[str, SponsorPolicy] | None = None):
        self._policies = dict(policies or {})

    def snapshot(self, bot_name: str) -> SponsorPolicy:
        return self._policies.get(bot_name) or SponsorPolicy(bot_name=bot_name)


class JsonSponsorConfigStore(SponsorConfigStore):
    """Sponsor settings from a JSON file maintained by the operator tooling.

    The file is re-read on every snapshot so campaign edits apply without a
    restart. A missing or broken file means "subscription not required".

    Format:
      {"bots": {"<bot_name>": {"require_subscription": true,
                               "require_all_channels": true,
                               "channels": [{"handle": "name", "expires_at": 1767225600, "active": true}]}}}
    """

    def __init__(self, path: Path):
        self._path = Path(path)
        self._lock = threading.Lock()

    def _log(self, msg: str) -> None:
        print(f"[GATE] {msg}", flush=True)

    def _load(self) -> dict:
        if not self._path.exists():
            return {}
        try:
            payload = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            self._log(f"sponsors_file_unreadable path={self._path} err={type(e).__name__}")
            return {}
        return payload if isinstance(payload, dict) else {}

    def snapshot(self, bot_name: str) -> SponsorPolicy:
        with self._lock:
            payload = self._load()
        bots = payload.get("bots")
        raw = bots.get(bot_name) if isinstance(bots, dict) else None
        if not isinstance(raw, dict):
            return SponsorPolicy(bot_name=bot_name)
        return dict_to_policy(bot_name, raw)
