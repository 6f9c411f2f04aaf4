from __future__ import annotations

import logging
import re
from typing import Any

import httpx
import orjson

from formforge.config import DEFAULT_STYLE, Settings
from formforge.errors import BLANK_PROMPT, GENERATION_FAILED, DraftError
from formforge.protocols import DraftGenerator
from formforge.schema import normalize_element

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a form generation assistant. Create a form structure based on the "
    "user's description. Return only valid JSON."
)
USER_PROMPT = (
    "Create a form based on this description: {prompt}. Return a JSON object with "
    "title, description, and an array of form elements. Each element should have: "
    "type (text, email, number, phone, textarea, select, radio, checkbox, date, "
    "time, rating), label, required (boolean), and for select, radio and checkbox "
    "types, an options array."
)
CODE_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$")


def draft_from_content(content: str) -> dict[str, Any]:
    """Turn a model reply into a form draft.

    Elements of unsupported or incomplete variants are dropped and every kept
    element gets a fresh id; the default style is always applied.
    """
    try:
        raw = orjson.loads(CODE_FENCE.sub("", content.strip()) or "{}")
    except orjson.JSONDecodeError as exc:
        raise DraftError(GENERATION_FAILED) from exc
    if not isinstance(raw, dict):
        raise DraftError(GENERATION_FAILED)

    seen_ids: set[str] = set()
    elements: list[dict[str, Any]] = []
    for item in raw.get("elements") or []:
        if not isinstance(item, dict):
            continue
        element, errors = normalize_element({**item, "id": ""}, seen_ids)
        if errors:
            logger.info("Dropped generated element: %s", "; ".join(errors))
            continue
        elements.append(element)

    return {
        "title": str(raw.get("title") or "").strip(),
        "description": str(raw.get("description") or "").strip(),
        "elements": elements,
        "style": dict(DEFAULT_STYLE),
    }


class OpenAIDraftGenerator:
    def __init__(
        self,
        api_key: str,
        model: str = "gpt-3.5-turbo",
        base_url: str = "https://api.openai.com/v1",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport

    async def generate_draft(self, prompt: str) -> dict[str, Any]:
        if not prompt or not prompt.strip():
            raise DraftError(BLANK_PROMPT)

        body = {
            "model": self._model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": USER_PROMPT.format(prompt=prompt.strip())},
            ],
            "temperature": 0.7,
        }
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.post(
                    f"{self._base_url}/chat/completions",
                    json=body,
                    headers={"Authorization": f"Bearer {self._api_key}"},
                )
                response.raise_for_status()
            content = response.json()["choices"][0]["message"]["content"] or ""
        except (httpx.HTTPError, KeyError, IndexError, TypeError, ValueError) as exc:
            logger.exception("Draft generation request failed")
            raise DraftError(GENERATION_FAILED) from exc

        draft = draft_from_content(content)
        logger.info("Generated draft with %d elements", len(draft["elements"]))
        return draft


class UnavailableDraftGenerator:
    """Used when no API key is configured."""

    async def generate_draft(self, prompt: str) -> dict[str, Any]:
        if not prompt or not prompt.strip():
            raise DraftError(BLANK_PROMPT)
        raise DraftError(GENERATION_FAILED)


def get_draft_generator(settings: Settings) -> DraftGenerator:
    if settings.openai_api_key:
        return OpenAIDraftGenerator(
            settings.openai_api_key, settings.openai_model, settings.openai_base_url
        )
    return UnavailableDraftGenerator()
