from __future__ import annotations

import asyncio
import logging
import re
from typing import Any, Iterable

import httpx

from formforge.config import Settings
from formforge.protocols import SpamClassifier

logger = logging.getLogger(__name__)

SPAM_KEYWORDS = (
    "viagra",
    "casino",
    "crypto",
    "bitcoin",
    "free money",
    "click here",
    "buy now",
    "payday loan",
    "seo services",
    "winner",
)
LINK_PATTERN = re.compile(r"(https?://|www\.)", re.IGNORECASE)
REPEATED_PATTERN = re.compile(r"(.)\1{9,}")


def normalize_verdict(raw: Any) -> dict[str, Any]:
    raw = raw if isinstance(raw, dict) else {}
    try:
        confidence = float(raw.get("confidence", 0.0))
    except (TypeError, ValueError):
        confidence = 0.0
    reasons = raw.get("reasons") or []
    return {
        "is_spam": bool(raw.get("is_spam")),
        "confidence": min(1.0, max(0.0, confidence)),
        "reasons": [str(reason) for reason in reasons] if isinstance(reasons, list) else [],
    }


def _response_texts(responses: dict[str, Any]) -> list[str]:
    texts: list[str] = []
    for value in responses.values():
        if isinstance(value, (list, tuple)):
            texts.extend(str(item) for item in value if item is not None)
        elif value is not None:
            texts.append(str(value))
    return texts


class NullSpamClassifier:
    async def analyze(self, responses: dict[str, Any]) -> dict[str, Any]:
        return {"is_spam": False, "confidence": 1.0, "reasons": []}


class HeuristicSpamClassifier:
    """Scores responses on a few cheap signals; 0.5 or more is spam."""

    threshold = 0.5

    async def analyze(self, responses: dict[str, Any]) -> dict[str, Any]:
        texts = _response_texts(responses)
        combined = " ".join(texts)
        lowered = combined.lower()
        score = 0.0
        reasons: list[str] = []

        links = len(LINK_PATTERN.findall(combined))
        if links >= 2:
            score += 0.4
            reasons.append(f"Contains {links} links")
        elif links == 1:
            score += 0.15
            reasons.append("Contains a link")

        keywords = [keyword for keyword in SPAM_KEYWORDS if keyword in lowered]
        if keywords:
            score += min(0.6, 0.3 * len(keywords))
            reasons.append(f"Suspicious keywords: {', '.join(keywords)}")

        if any(REPEATED_PATTERN.search(text) for text in texts):
            score += 0.2
            reasons.append("Repeated characters")

        letters = [char for char in combined if char.isalpha()]
        if len(letters) >= 20 and sum(char.isupper() for char in letters) / len(letters) > 0.7:
            score += 0.2
            reasons.append("Mostly uppercase text")

        score = min(1.0, score)
        is_spam = score >= self.threshold
        return {
            "is_spam": is_spam,
            "confidence": round(score if is_spam else 1.0 - score, 2),
            "reasons": reasons,
        }


class HttpSpamClassifier:
    def __init__(
        self,
        endpoint: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._endpoint = endpoint
        self._timeout = timeout
        self._transport = transport

    async def analyze(self, responses: dict[str, Any]) -> dict[str, Any]:
        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            response = await client.post(self._endpoint, json={"responses": responses})
            response.raise_for_status()
        return normalize_verdict(response.json())


def get_spam_classifier(settings: Settings) -> SpamClassifier:
    if settings.spam_mode == "http" and settings.spam_endpoint:
        return HttpSpamClassifier(settings.spam_endpoint)
    if settings.spam_mode == "none":
        return NullSpamClassifier()
    return HeuristicSpamClassifier()


class VerdictCache:
    """Spam verdicts keyed by submission id for the lifetime of one view.

    Missing verdicts count as "not spam" until they arrive.
    """

    def __init__(self, classifier: SpamClassifier) -> None:
        self._classifier = classifier
        self._verdicts: dict[str, dict[str, Any]] = {}

    def get(self, submission_id: str) -> dict[str, Any] | None:
        return self._verdicts.get(submission_id)

    def is_spam(self, submission_id: str) -> bool:
        verdict = self._verdicts.get(submission_id)
        return bool(verdict and verdict["is_spam"])

    def as_dict(self) -> dict[str, dict[str, Any]]:
        return dict(self._verdicts)

    def invalidate(self, submission_id: str | None = None) -> None:
        if submission_id is None:
            self._verdicts.clear()
        else:
            self._verdicts.pop(submission_id, None)

    async def _analyze(self, submission: dict[str, Any]) -> dict[str, Any] | None:
        try:
            return normalize_verdict(await self._classifier.analyze(submission.get("responses") or {}))
        except Exception:
            logger.exception("Spam classification failed for submission %s", submission.get("id"))
            return None

    async def classify(self, submissions: Iterable[dict[str, Any]]) -> dict[str, dict[str, Any]]:
        pending = [item for item in submissions if item["id"] not in self._verdicts]
        if pending:
            results = await asyncio.gather(*(self._analyze(item) for item in pending))
            for item, verdict in zip(pending, results):
                if verdict is not None:
                    self._verdicts[item["id"]] = verdict
        return self.as_dict()

    async def reclassify(self, submission: dict[str, Any]) -> dict[str, Any] | None:
        self.invalidate(submission["id"])
        await self.classify([submission])
        return self.get(submission["id"])
