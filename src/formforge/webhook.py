from __future__ import annotations

import logging
from typing import Any
from urllib.parse import urlsplit

import httpx

from formforge.utils import to_iso

logger = logging.getLogger(__name__)


def is_valid_webhook_url(url: str) -> bool:
    if not url:
        return False
    try:
        parsed = urlsplit(url)
    except ValueError:
        return False
    return parsed.scheme in {"http", "https"} and bool(parsed.netloc)


def build_payload(
    event: str, form: dict[str, Any], submission: dict[str, Any] | None = None
) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "event": event,
        "form_id": form.get("id"),
        "form_title": form.get("title"),
    }
    if submission:
        payload["submission_id"] = submission.get("id")
        payload["responses"] = submission.get("responses", {})
        if submission.get("submitted_at"):
            payload["submitted_at"] = to_iso(submission["submitted_at"])
    return payload


async def send_webhook(
    url: str,
    event: str,
    form: dict[str, Any],
    submission: dict[str, Any] | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> bool:
    """POST a notification; failures are logged and reported as ``False``."""
    if not is_valid_webhook_url(url):
        return False

    try:
        async with httpx.AsyncClient(timeout=10.0, transport=transport) as client:
            response = await client.post(url, json=build_payload(event, form, submission))
            response.raise_for_status()
        logger.info("Webhook sent: %s -> %s", event, url)
        return True
    except Exception:
        logger.exception("Webhook failed: %s -> %s", event, url)
        return False
