from __future__ import annotations


CONFIRM_BUTTON_TEXT = "✅ I've subscribed, check"
CONFIRM_CALLBACK_DATA = "sub:check"

WELCOME_TEXT = (
    "Hi 👋\n"
    "\n"
    "Send me a TikTok or YouTube Shorts link and I'll send the video back, without the watermark.\n"
    "\n"
    "Supported links\n"
    "- https://www.tiktok.com/@user/video/...\n"
    "- https://vm.tiktok.com/...\n"
    "- https://www.youtube.com/shorts/...\n"
)


def _btn(text: str, cb: str) -> dict:
    return {"text": text, "callback_data": cb}


def _url_btn(text: str, url: str) -> dict:
    return {"text": text, "url": url}


def _kb(rows: list[list[dict]]) -> dict:
    return {"inline_keyboard": rows}


def render_welcome() -> str:
    return WELCOME_TEXT


def render_no_link() -> str:
    return "I didn't find a TikTok or YouTube Shorts link in that message. Send me the link to the video."


def render_throttled(limit_name: str) -> str:
    if limit_name == "daily":
        return "You've reached today's limit of videos. Try again later, tomorrow works."
    return "You already sent a link a moment ago. Wait a minute and try again later."


def render_subscribe_prompt(channels: list[str]) -> tuple[str, dict]:
    lines = [
        "To use the bot, please subscribe to our sponsor channels.",
        f"Then tap «{CONFIRM_BUTTON_TEXT}».",
    ]
    if channels:
        lines.append("")
        lines.append("Please subscribe:")
        lines.extend(f"@{c}" for c in channels)
    rows = [[_url_btn(f"@{c}", f"https://t.me/{c}")] for c in channels]
    rows.append([_btn(CONFIRM_BUTTON_TEXT, CONFIRM_CALLBACK_DATA)])
    return "\n".join(lines), _kb(rows)


def render_subscription_confirmed() -> str:
    return "Subscription confirmed ✅"


def render_nothing_pending() -> str:
    return "Now send me a link to the video 🎬"


def render_resuming() -> str:
    return "Processing the link you sent earlier... 🎬"


def render_already_processing() -> str:
    return "That link is already being processed, hang on ⏳"


def render_unavailable() -> str:
    return "The video is temporarily unavailable: download services are not responding. Please try again in a few minutes."


def render_video_caption() -> str:
    return "Here is your video 🎬"


def render_direct_link(url: str) -> str:
    return f"Telegram could not upload this video, here is the direct link:\n{url}"
