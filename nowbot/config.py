from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
import os
import shutil

from dotenv import load_dotenv


DEFAULT_PROVIDERS = ("tikwm", "tiklydown", "tikmate", "snaptik", "ssstik", "ytdlp")


@dataclass(frozen=True)
class BotConfig:
    # Telegram
    telegram_token: str
    bot_name: str

    # Sponsor gate
    sponsor_check_token: str  # empty = membership checks disabled (gate allows)
    sponsors_file: Path

    # Throttle: burst window + daily quota
    burst_max: int
    burst_window_seconds: float
    daily_max: int
    daily_window_seconds: float

    # In-memory stores
    pending_ttl_seconds: float
    dedup_capacity: int

    # Resolution
    provider_names: tuple[str, ...]
    provider_max_attempts: int
    http_timeout_seconds: float
    ytdlp_path: str

    # Update processing
    workers: int


def _env(name: str, default: str = "") -> str:
    return str(os.environ.get(name, default) or "").strip()


def _env_int(name: str, default: int, *, lo: int = 1) -> int:
    try:
        return max(lo, int(float(_env(name, str(default)))))
    except Exception:
        return default


def _env_float(name: str, default: float, *, lo: float = 0.0) -> float:
    try:
        return max(lo, float(_env(name, str(default))))
    except Exception:
        return default


def _parse_providers(raw: str) -> tuple[str, ...]:
    out: list[str] = []
    for part in [p.strip().lower() for p in (raw or "").split(",") if p.strip()]:
        if part in DEFAULT_PROVIDERS and part not in out:
            out.append(part)
    return tuple(out) or DEFAULT_PROVIDERS


def load_config(*, require_token: bool = True) -> BotConfig:
    root = Path(__file__).resolve().parents[1]

    # Best-effort: a project-root .env never overrides variables already set.
    load_dotenv(dotenv_path=str(root / ".env"), override=False)

    telegram_token = _env("TELEGRAM_BOT_TOKEN", "")
    if require_token and not telegram_token:
        raise RuntimeError("TELEGRAM_BOT_TOKEN missing (required to poll Telegram)")

    sponsors_file = Path(_env("NOWBOT_SPONSORS_FILE", str(root / "config" / "sponsors.json"))).resolve()

    ytdlp_path = _env("NOWBOT_YTDLP_PATH", "")
    if not ytdlp_path:
        ytdlp_path = shutil.which("yt-dlp") or "yt-dlp"

    return BotConfig(
        telegram_token=telegram_token,
        bot_name=_env("NOWBOT_NAME", "nowbot") or "nowbot",
        sponsor_check_token=_env("SPONSOR_CHECK_BOT_TOKEN", ""),
        sponsors_file=sponsors_file,
        burst_max=_env_int("NOWBOT_BURST_MAX", 1),
        burst_window_seconds=_env_float("NOWBOT_BURST_WINDOW_SECONDS", 60.0, lo=1.0),
        daily_max=_env_int("NOWBOT_DAILY_MAX", 20),
        daily_window_seconds=_env_float("NOWBOT_DAILY_WINDOW_SECONDS", 24 * 60 * 60.0, lo=1.0),
        pending_ttl_seconds=_env_float("NOWBOT_PENDING_TTL_SECONDS", 300.0, lo=1.0),
        dedup_capacity=_env_int("NOWBOT_DEDUP_CAPACITY", 1000),
        provider_names=_parse_providers(_env("NOWBOT_PROVIDERS", "")),
        provider_max_attempts=_env_int("NOWBOT_PROVIDER_MAX_ATTEMPTS", 3),
        http_timeout_seconds=_env_float("NOWBOT_HTTP_TIMEOUT_SECONDS", 20.0, lo=1.0),
        ytdlp_path=ytdlp_path,
        workers=_env_int("NOWBOT_WORKERS", 8),
    )
