"""
Outbound staff notifications (Telegram chat).

Best effort only: notify() never raises. Callers schedule it after the
financial transaction has committed.
"""

import logging

import requests
from django.conf import settings
from django.db import transaction

logger = logging.getLogger(__name__)

TELEGRAM_API = "https://api.telegram.org"


def notify(text):
    """Send a chat message. Returns True when the message was accepted."""
    token = getattr(settings, "TELEGRAM_BOT_TOKEN", "")
    chat_id = getattr(settings, "TELEGRAM_CHAT_ID", "")
    if not token or not chat_id:
        logger.debug("notification_skipped", extra={"reason": "not_configured"})
        return False

    try:
        response = requests.post(
            f"{TELEGRAM_API}/bot{token}/sendMessage",
            json={
                "chat_id": chat_id,
                "text": text,
                "parse_mode": "HTML",
                "disable_web_page_preview": True,
            },
            timeout=getattr(settings, "NOTIFY_TIMEOUT_SECONDS", 5),
        )
        response.raise_for_status()
    except requests.RequestException:
        logger.warning("notification_failed", exc_info=True)
        return False

    return True


def notify_on_commit(text):
    """Queue notify(text) to run once the surrounding transaction commits."""
    transaction.on_commit(lambda: notify(text), robust=True)
