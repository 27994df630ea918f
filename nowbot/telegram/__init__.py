"""Telegram transport: Bot API calls, message texts and the update loop."""
