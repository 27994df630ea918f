from __future__ import annotations

import json

import requests

from ..media_resolver.base import ResolvedMedia
from ..sessions import ThreadLocalSessions, session_getter
from .api import TelegramApiError, tg_api
from .messages import render_direct_link, render_video_caption


class Messenger:
    """Outbound side of the bot: plain texts and the resolved video."""

    def send_text(self, chat_id: int, text: str, *, reply_markup: dict | None = None) -> None:
        raise NotImplementedError

    def send_video(self, chat_id: int, media: ResolvedMedia) -> None:
        raise NotImplementedError

    def answer_callback(self, callback_id: str) -> None:
        pass


class TelegramMessenger(Messenger):
    def __init__(
        self,
        token: str,
        *,
        session: requests.Session | None = None,
        sessions: ThreadLocalSessions | None = None,
        timeout_seconds: float = 60.0,
    ):
        self._token = token
        self._http = session_getter(session, sessions)
        self._timeout = float(timeout_seconds)

    def _call(self, method: str, data: dict):
        return tg_api(self._token, method, data=data, timeout=self._timeout, session=self._http())

    def send_text(self, chat_id: int, text: str, *, reply_markup: dict | None = None) -> None:
        data = {"chat_id": str(chat_id), "text": text, "disable_web_page_preview": "true"}
        if reply_markup is not None:
            data["reply_markup"] = json.dumps(reply_markup, ensure_ascii=False)
        self._call("sendMessage", data)

    def send_video(self, chat_id: int, media: ResolvedMedia) -> None:
        # Telegram downloads the file itself from the direct URL.
        try:
            self._call(
                "sendVideo",
                {
                    "chat_id": str(chat_id),
                    "video": media.direct_url,
                    "caption": render_video_caption(),
                    "supports_streaming": "true",
                },
            )
        except TelegramApiError as e:
            print(
                f"[BOT] send_video_failed chat_id={chat_id} provider={media.source_provider} "
                f"code={e.error_code} fallback=direct_link",
                flush=True,
            )
            self.send_text(chat_id, render_direct_link(media.direct_url))

    def answer_callback(self, callback_id: str) -> None:
        try:
            self._call("answerCallbackQuery", {"callback_query_id": callback_id})
        except (TelegramApiError, requests.RequestException):
            # Spinner on the button just times out.
            pass
