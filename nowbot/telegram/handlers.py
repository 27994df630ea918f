from __future__ import annotations

from dataclasses import dataclass

import requests

from ..access_gate import AccessGate
from ..dedup import IdempotencyGuard, InFlightTracker
from ..link_classifier import LinkClassifier
from ..media_resolver import AllProvidersFailed, MediaReference, ProviderChainResolver
from ..pending import PendingWorkCache
from ..throttle import ThrottleGroup
from .api import TelegramApiError, log_tg, short
from .messages import (
    CONFIRM_BUTTON_TEXT,
    CONFIRM_CALLBACK_DATA,
    render_already_processing,
    render_no_link,
    render_nothing_pending,
    render_resuming,
    render_subscribe_prompt,
    render_subscription_confirmed,
    render_throttled,
    render_unavailable,
    render_welcome,
)
from .messenger import Messenger


@dataclass(frozen=True)
class HandlerDeps:
    bot_name: str
    classifier: LinkClassifier
    resolver: ProviderChainResolver
    gate: AccessGate
    pending: PendingWorkCache
    throttle: ThrottleGroup
    dedup: IdempotencyGuard
    in_flight: InFlightTracker
    messenger: Messenger


@dataclass(frozen=True)
class Incoming:
    chat_id: int
    user_id: int
    text: str
    callback_id: str = ""


def _log(msg: str) -> None:
    print(f"[BOT] {msg}", flush=True)


def parse_update(update: dict) -> Incoming | None:
    """Pull (chat, user, text) out of a message or a callback query. Tolerant of missing fields."""

    msg = update.get("message")
    if isinstance(msg, dict) and isinstance(msg.get("text"), str):
        chat = msg.get("chat") or {}
        sender = msg.get("from") or {}
        chat_id = int(chat.get("id") or 0)
        user_id = int(sender.get("id") or chat_id)
        if not chat_id:
            return None
        return Incoming(chat_id=chat_id, user_id=user_id, text=msg["text"].strip())

    cbq = update.get("callback_query")
    if isinstance(cbq, dict) and cbq.get("data"):
        chat = (cbq.get("message") or {}).get("chat") or {}
        sender = cbq.get("from") or {}
        user_id = int(sender.get("id") or 0)
        chat_id = int(chat.get("id") or user_id)
        if not chat_id:
            return None
        return Incoming(
            chat_id=chat_id,
            user_id=user_id or chat_id,
            text=str(cbq.get("data") or "").strip(),
            callback_id=str(cbq.get("id") or ""),
        )
    return None


def handle_update(deps: HandlerDeps, update: dict) -> str:
    """Process one Telegram update end to end. Returns a short outcome label."""

    update_id = update.get("update_id")
    if update_id is not None and deps.dedup.check_and_mark(update_id):
        _log(f"duplicate update_id={update_id}")
        return "duplicate"

    incoming = parse_update(update)
    if incoming is None:
        return "ignored"

    log_tg(f"[TG][IN] chat_id={incoming.chat_id} user={incoming.user_id} text={short(incoming.text, 200)!r}")

    if incoming.callback_id:
        deps.messenger.answer_callback(incoming.callback_id)

    if incoming.text.startswith("/start"):
        deps.messenger.send_text(incoming.chat_id, render_welcome())
        return "welcome"

    if incoming.text in {CONFIRM_BUTTON_TEXT, CONFIRM_CALLBACK_DATA}:
        return confirm_subscription(deps, incoming)

    return handle_link(deps, incoming)


def handle_link(deps: HandlerDeps, incoming: Incoming) -> str:
    if deps.classifier.find_link(incoming.text) is None:
        deps.messenger.send_text(incoming.chat_id, render_no_link())
        return "no_link"

    rejected_by = deps.throttle.admit(incoming.user_id)
    if rejected_by:
        _log(f"throttled user={incoming.user_id} limit={rejected_by}")
        deps.messenger.send_text(incoming.chat_id, render_throttled(rejected_by))
        return "throttled"

    ref = deps.classifier.classify(incoming.text)
    if ref is None:
        deps.messenger.send_text(incoming.chat_id, render_no_link())
        return "no_link"

    allowed, channels = deps.gate.check_access(incoming.user_id, deps.bot_name)
    if not allowed:
        # Keep the link so it can be resumed once the subscriber complies.
        deps.pending.save(incoming.user_id, ref)
        text, keyboard = render_subscribe_prompt(channels)
        deps.messenger.send_text(incoming.chat_id, text, reply_markup=keyboard)
        _log(f"gated user={incoming.user_id} channels={','.join(channels)} pending_saved=1")
        return "gated"

    return process_reference(deps, incoming.chat_id, incoming.user_id, ref)


def confirm_subscription(deps: HandlerDeps, incoming: Incoming) -> str:
    allowed, channels = deps.gate.check_access(incoming.user_id, deps.bot_name)
    if not allowed:
        text, keyboard = render_subscribe_prompt(channels)
        deps.messenger.send_text(incoming.chat_id, text, reply_markup=keyboard)
        return "still_gated"

    deps.messenger.send_text(incoming.chat_id, render_subscription_confirmed())

    item = deps.pending.pop(incoming.user_id)
    if item is None or not isinstance(item.payload, MediaReference):
        deps.messenger.send_text(incoming.chat_id, render_nothing_pending())
        return "confirmed"

    # The link was throttled when first submitted; resume it without charging again.
    _log(f"resume user={incoming.user_id} id={item.payload.canonical_id}")
    deps.messenger.send_text(incoming.chat_id, render_resuming())
    outcome = process_reference(deps, incoming.chat_id, incoming.user_id, item.payload)
    if outcome == "in_flight":
        # Another worker holds this link; the item stays pending.
        deps.pending.save(incoming.user_id, item.payload)
    return outcome


def process_reference(deps: HandlerDeps, chat_id: int, user_id: int, ref: MediaReference) -> str:
    key = (user_id, ref.canonical_url)
    if not deps.in_flight.try_begin(key):
        deps.messenger.send_text(chat_id, render_already_processing())
        return "in_flight"

    try:
        try:
            media = deps.resolver.resolve(ref)
        except AllProvidersFailed as e:
            _log(f"unavailable user={user_id} id={ref.canonical_id} attempted={','.join(e.providers) or '-'}")
            deps.messenger.send_text(chat_id, render_unavailable())
            return "unavailable"

        try:
            deps.messenger.send_video(chat_id, media)
        except (TelegramApiError, requests.RequestException) as e:
            _log(f"delivery_failed user={user_id} id={ref.canonical_id} err={type(e).__name__}")
            deps.messenger.send_text(chat_id, render_unavailable())
            return "delivery_failed"

        deps.pending.clear(user_id)
        _log(f"delivered user={user_id} id={ref.canonical_id} provider={media.source_provider}")
        return "delivered"
    finally:
        deps.in_flight.finish(key)
