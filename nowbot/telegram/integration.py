from __future__ import annotations

from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from typing import Callable
from pathlib import Path
import sys
import time
import traceback

import requests

from ..access_gate import AccessGate
from ..config import BotConfig, load_config
from ..dedup import IdempotencyGuard, InFlightTracker
from ..link_classifier import LinkClassifier
from ..media_resolver import ProviderChainResolver, RetryPolicy, build_providers
from ..membership import TelegramMembershipLookup
from ..pending import PendingWorkCache
from ..sessions import ThreadLocalSessions
from ..sponsors import JsonSponsorConfigStore
from ..throttle import RequestThrottle, ThrottleGroup
from .api import TelegramApiError, tg_api
from .handlers import HandlerDeps, handle_update
from .messenger import TelegramMessenger


POLL_TIMEOUT_SECONDS = 50
HEARTBEAT_SECONDS = 30.0
CLEANUP_SECONDS = 60.0


def build_deps(cfg: BotConfig, sessions: ThreadLocalSessions | None = None) -> HandlerDeps:
    sessions = sessions or ThreadLocalSessions()
    policy = RetryPolicy(max_attempts=cfg.provider_max_attempts, timeout_seconds=cfg.http_timeout_seconds)
    providers = build_providers(cfg.provider_names, policy=policy, ytdlp_path=cfg.ytdlp_path)

    lookup = None
    if cfg.sponsor_check_token:
        lookup = TelegramMembershipLookup(cfg.sponsor_check_token, sessions=sessions)
    else:
        print("[GATE] SPONSOR_CHECK_BOT_TOKEN not set; membership checks disabled (gate allows)", flush=True)

    return HandlerDeps(
        bot_name=cfg.bot_name,
        classifier=LinkClassifier(sessions=sessions),
        resolver=ProviderChainResolver(providers, sessions=sessions),
        gate=AccessGate(config_store=JsonSponsorConfigStore(cfg.sponsors_file), lookup=lookup),
        pending=PendingWorkCache(ttl_seconds=cfg.pending_ttl_seconds),
        throttle=ThrottleGroup(
            [
                RequestThrottle(name="burst", max_requests=cfg.burst_max, window_seconds=cfg.burst_window_seconds),
                RequestThrottle(name="daily", max_requests=cfg.daily_max, window_seconds=cfg.daily_window_seconds),
            ]
        ),
        dedup=IdempotencyGuard(capacity=cfg.dedup_capacity),
        in_flight=InFlightTracker(),
        messenger=TelegramMessenger(cfg.telegram_token, sessions=sessions),
    )


def _safe_handle(deps: HandlerDeps, update: dict) -> None:
    try:
        outcome = handle_update(deps, update)
        print(f"[BOT] update_id={update.get('update_id')} outcome={outcome}", flush=True)
    except Exception as e:
        # One bad update must not kill the worker pool.
        print(f"[BOT] update_failed update_id={update.get('update_id')} err={type(e).__name__}: {e}", flush=True)
        traceback.print_exc()


def submit_bounded(
    pool: ThreadPoolExecutor,
    in_flight: list[Future],
    max_in_flight: int,
    fn: Callable,
    *args,
) -> list[Future]:
    """Submit fn once fewer than max_in_flight futures are pending. Returns the pending list."""

    in_flight = [f for f in in_flight if not f.done()]
    if len(in_flight) >= max_in_flight:
        _, pending = wait(set(in_flight), return_when=FIRST_COMPLETED)
        in_flight = list(pending)
    in_flight.append(pool.submit(fn, *args))
    return in_flight


def run() -> None:
    cfg = load_config()

    try:
        build_ts = float(Path(__file__).stat().st_mtime)
        build_id = time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(build_ts))
    except OSError:
        build_id = "unknown"

    print(
        f"[NOWBOT] started bot={cfg.bot_name} build={build_id} python={sys.executable} "
        f"providers={','.join(cfg.provider_names)} sponsors_file={cfg.sponsors_file}",
        flush=True,
    )

    sessions = ThreadLocalSessions()
    deps = build_deps(cfg, sessions)
    poll_session = requests.Session()
    max_in_flight = max(cfg.workers * 2, 1)
    in_flight: list[Future] = []
    offset = 0
    last_heartbeat = time.time()
    last_cleanup = time.time()

    try:
        with ThreadPoolExecutor(max_workers=cfg.workers, thread_name_prefix="nowbot") as pool:
            print(f"[NOWBOT] polling Telegram getUpdates workers={cfg.workers}", flush=True)
            while True:
                now = time.time()
                if (now - last_heartbeat) >= HEARTBEAT_SECONDS:
                    print(f"[NOWBOT] alive offset={offset} pending={len(deps.pending)}", flush=True)
                    last_heartbeat = now
                if (now - last_cleanup) >= CLEANUP_SECONDS:
                    dropped = deps.pending.cleanup_expired()
                    if dropped:
                        print(f"[NOWBOT] pending_cleanup dropped={dropped}", flush=True)
                    idle = deps.throttle.cleanup_expired()
                    if idle:
                        print(f"[NOWBOT] throttle_cleanup dropped={idle}", flush=True)
                    last_cleanup = now

                try:
                    updates = tg_api(
                        cfg.telegram_token,
                        "getUpdates",
                        params={"timeout": str(POLL_TIMEOUT_SECONDS), "offset": str(offset)},
                        timeout=POLL_TIMEOUT_SECONDS + 10,
                        session=poll_session,
                    ) or []
                except TelegramApiError as e:
                    # 409: another long-poll is active for the same token (second instance still running).
                    if e.error_code == 409:
                        print("[NOWBOT] getUpdates conflict (409); retrying in 3s", flush=True)
                        time.sleep(3.0)
                        continue
                    raise
                except requests.RequestException as e:
                    print(f"[NOWBOT] getUpdates failed err={type(e).__name__}; retrying in 5s", flush=True)
                    time.sleep(5.0)
                    continue

                for upd in updates:
                    if not isinstance(upd, dict):
                        continue
                    uid = int(upd.get("update_id") or 0)
                    if uid >= offset:
                        offset = uid + 1
                    in_flight = submit_bounded(pool, in_flight, max_in_flight, _safe_handle, deps, upd)
    finally:
        poll_session.close()
        sessions.close()
