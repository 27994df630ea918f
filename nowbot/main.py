from __future__ import annotations

"""nowbot entry point.

Run:
  python -m nowbot.main

Useful env vars:
  - TELEGRAM_BOT_TOKEN        (required)
  - SPONSOR_CHECK_BOT_TOKEN   (checker bot, admin in the sponsor channels)
  - NOWBOT_SPONSORS_FILE      (per-bot sponsor settings, JSON)
  - NOWBOT_TG_LOG=0           (silence outbound Telegram logs)
"""

import sys


def _run() -> None:
  from .telegram.integration import run

  try:
    run()
  except KeyboardInterrupt:
    print("[NOWBOT] stopped", flush=True)
  except RuntimeError as e:
    print(f"[NOWBOT] fatal: {e}", file=sys.stderr, flush=True)
    raise SystemExit(2)


if __name__ == "__main__":
  _run()
