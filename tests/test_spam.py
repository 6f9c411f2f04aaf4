"""Tests for spam classification."""

import asyncio

import httpx
import pytest

from formforge.config import Settings
from formforge.spam import (
    HeuristicSpamClassifier,
    HttpSpamClassifier,
    NullSpamClassifier,
    VerdictCache,
    get_spam_classifier,
    normalize_verdict,
)


class CountingClassifier:
    """Fails for responses tagged ``boom`` and counts every call."""

    def __init__(self):
        self.calls = 0

    async def analyze(self, responses):
        self.calls += 1
        if responses.get("tag") == "boom":
            raise RuntimeError("classifier down")
        return {"is_spam": responses.get("tag") == "spam", "confidence": 0.8, "reasons": ["tagged"]}


class TestHeuristics:
    """Tests for the built-in heuristic classifier."""

    def test_clean_text(self):
        verdict = asyncio.run(HeuristicSpamClassifier().analyze({"message": "Hello, see you Tuesday"}))
        assert verdict["is_spam"] is False
        assert verdict["reasons"] == []

    def test_links_and_keywords(self):
        verdict = asyncio.run(
            HeuristicSpamClassifier().analyze(
                {"message": "Buy now at http://x.example and www.y.example", "tags": ["casino"]}
            )
        )
        assert verdict["is_spam"] is True
        assert "Contains 2 links" in verdict["reasons"]
        assert "Suspicious keywords: casino, buy now" in verdict["reasons"]

    def test_null_classifier(self):
        assert asyncio.run(NullSpamClassifier().analyze({"a": "casino"}))["is_spam"] is False


class TestNormalizeVerdict:
    """Tests for verdict normalisation."""

    def test_clamps_and_defaults(self):
        assert normalize_verdict({"is_spam": 1, "confidence": 7, "reasons": "x"}) == {
            "is_spam": True,
            "confidence": 1.0,
            "reasons": [],
        }
        assert normalize_verdict(None) == {"is_spam": False, "confidence": 0.0, "reasons": []}


class TestHttpClassifier:
    """Tests for the HTTP-backed classifier."""

    def test_posts_responses(self):
        seen = {}

        def handler(request):
            seen["body"] = request.read()
            return httpx.Response(200, json={"is_spam": True, "confidence": 0.7, "reasons": ["model"]})

        classifier = HttpSpamClassifier("https://spam.example/check", transport=httpx.MockTransport(handler))
        verdict = asyncio.run(classifier.analyze({"message": "hi"}))
        assert verdict == {"is_spam": True, "confidence": 0.7, "reasons": ["model"]}
        assert b'"responses"' in seen["body"]

    def test_http_errors_raise(self):
        classifier = HttpSpamClassifier(
            "https://spam.example/check",
            transport=httpx.MockTransport(lambda request: httpx.Response(500)),
        )
        with pytest.raises(httpx.HTTPStatusError):
            asyncio.run(classifier.analyze({}))


class TestVerdictCache:
    """Tests for cached verdicts."""

    def test_classifies_once_and_leaves_failures_unknown(self):
        classifier = CountingClassifier()
        cache = VerdictCache(classifier)
        items = [
            {"id": "a", "responses": {"tag": "spam"}},
            {"id": "b", "responses": {"tag": "ok"}},
            {"id": "c", "responses": {"tag": "boom"}},
        ]

        asyncio.run(cache.classify(items))
        assert cache.is_spam("a") is True
        assert cache.is_spam("b") is False
        assert cache.get("c") is None
        assert cache.is_spam("c") is False
        assert classifier.calls == 3

        asyncio.run(cache.classify(items))
        assert classifier.calls == 4

    def test_reclassify(self):
        cache = VerdictCache(CountingClassifier())
        item = {"id": "a", "responses": {"tag": "ok"}}
        asyncio.run(cache.classify([item]))
        item["responses"]["tag"] = "spam"
        assert asyncio.run(cache.reclassify(item))["is_spam"] is True


class TestFactory:
    """Tests for classifier selection."""

    @pytest.mark.parametrize(
        "mode,endpoint,expected",
        [
            ("none", "", NullSpamClassifier),
            ("heuristic", "", HeuristicSpamClassifier),
            ("http", "https://spam.example", HttpSpamClassifier),
            ("http", "", HeuristicSpamClassifier),
        ],
    )
    def test_get_spam_classifier(self, monkeypatch, mode, endpoint, expected):
        monkeypatch.setenv("SPAM_MODE", mode)
        monkeypatch.setenv("SPAM_ENDPOINT", endpoint)
        assert isinstance(get_spam_classifier(Settings()), expected)
