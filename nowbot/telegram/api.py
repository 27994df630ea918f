from __future__ import annotations

import os

import requests


TELEGRAM_API_BASE = "https://api.telegram.org"


class TelegramApiError(RuntimeError):
    def __init__(self, method: str, description: str, error_code: int | None = None):
        super().__init__(f"Telegram API error calling {method}: {error_code} {description}")
        self.method = method
        self.description = description
        self.error_code = error_code


def tg_log_enabled() -> bool:
    return str(os.getenv("NOWBOT_TG_LOG", "1")).strip() != "0"


def short(s: str, n: int = 160) -> str:
    s = str(s or "")
    s = s.replace("\r", " ").replace("\n", " ")
    if len(s) <= n:
        return s
    return s[: n - 3] + "..."


def log_tg(line: str) -> None:
    if tg_log_enabled():
        print(line, flush=True)


def tg_api(
    token: str,
    method: str,
    *,
    params=None,
    data=None,
    files=None,
    timeout: float = 60.0,
    session: requests.Session | None = None,
):
    """POST a Bot API method and return its `result`.

    Raises TelegramApiError when Telegram answers ok=false; transport errors
    propagate as requests exceptions.
    """

    url = f"{TELEGRAM_API_BASE}/bot{token}/{method}"

    # Outbound logging (skip long-poll getUpdates).
    if tg_log_enabled() and method != "getUpdates":
        chat_id = None
        text = None
        if isinstance(data, dict):
            chat_id = data.get("chat_id")
            text = data.get("text") or data.get("caption")
        suffix = f" text={short(str(text), 180)!r}" if text is not None else ""
        log_tg(f"[TG][OUT] {method} chat_id={chat_id}{suffix}")

    http = session or requests
    resp = http.post(url, params=params, data=data, files=files, timeout=timeout)
    try:
        payload = resp.json()
    except ValueError:
        payload = {"ok": False, "description": resp.text, "error_code": resp.status_code}
    if not isinstance(payload, dict) or not payload.get("ok"):
        payload = payload if isinstance(payload, dict) else {}
        code = payload.get("error_code")
        raise TelegramApiError(
            method,
            str(payload.get("description") or ""),
            int(code) if isinstance(code, int) else None,
        )
    return payload.get("result")
