from __future__ import annotations

import threading

import requests

from .sessions import ThreadLocalSessions, session_getter
from .telegram.api import TelegramApiError, tg_api


MEMBER_STATUSES = {"member", "administrator", "creator"}


class MembershipLookupError(RuntimeError):
    """The channel could not be checked at all (not the subscriber's fault)."""


class MembershipLookup:
    def is_member(self, subscriber_id: int, handle: str) -> bool:
        raise NotImplementedError


def handle_variants(handle: str) -> list[str]:
    """@handle spellings to try; Telegram's username lookup can be case-sensitive."""

    h = str(handle or "").strip().lstrip("@")
    out: list[str] = []
    for v in (h, h.capitalize(), h.lower(), h.upper()):
        candidate = f"@{v}"
        if v and candidate not in out:
            out.append(candidate)
    return out


class TelegramMembershipLookup(MembershipLookup):
    """Checks channel membership with a checker bot that is admin in each sponsor channel.

    Handles are first resolved to numeric chat ids with getChat (cached), then
    getChatMember decides. Any failure to evaluate raises MembershipLookupError.
    """

    def __init__(
        self,
        token: str,
        *,
        session: requests.Session | None = None,
        sessions: ThreadLocalSessions | None = None,
        timeout_seconds: float = 15.0,
    ):
        self._token = token
        self._http = session_getter(session, sessions)
        self._timeout = float(timeout_seconds)
        self._chat_ids: dict[str, int] = {}
        self._lock = threading.Lock()

    def _log(self, msg: str) -> None:
        print(f"[MEMBER] {msg}", flush=True)

    def _call(self, method: str, data: dict):
        return tg_api(self._token, method, data=data, timeout=self._timeout, session=self._http())

    def resolve_chat_id(self, handle: str) -> int:
        key = str(handle or "").strip().lstrip("@").lower()
        with self._lock:
            cached = self._chat_ids.get(key)
        if cached is not None:
            return cached

        last_error: Exception | None = None
        for variant in handle_variants(handle):
            try:
                result = self._call("getChat", {"chat_id": variant})
            except (TelegramApiError, requests.RequestException) as e:
                last_error = e
                self._log(f"getChat_failed variant={variant} err={type(e).__name__}")
                continue
            chat_id = result.get("id") if isinstance(result, dict) else None
            if not isinstance(chat_id, int):
                self._log(f"getChat_no_id variant={variant}")
                continue
            with self._lock:
                self._chat_ids[key] = chat_id
            self._log(f"getChat_ok variant={variant} chat_id={chat_id}")
            return chat_id

        self._log(f"getChat_failed_all handle=@{key} hint=checker_bot_must_be_channel_admin")
        raise MembershipLookupError(f"getChat failed for @{key}: {last_error}")

    def is_member(self, subscriber_id: int, handle: str) -> bool:
        chat_id = self.resolve_chat_id(handle)
        try:
            result = self._call("getChatMember", {"chat_id": str(chat_id), "user_id": str(int(subscriber_id))})
        except (TelegramApiError, requests.RequestException) as e:
            self._log(f"getChatMember_failed chat_id={chat_id} user_id={subscriber_id} err={type(e).__name__}")
            raise MembershipLookupError(f"getChatMember failed for @{handle}: {e}") from e

        if not isinstance(result, dict):
            raise MembershipLookupError(f"getChatMember returned no result for @{handle}")
        status = str(result.get("status") or "").strip().lower()
        if status in MEMBER_STATUSES:
            return True
        # Restricted users can still be members of the channel.
        return status == "restricted" and bool(result.get("is_member"))
