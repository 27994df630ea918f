"""Link-to-direct-media Telegram bot core.

Run:
  python -m nowbot.main
"""
