"""
Natural-language intent router.

Classifies a free-text shopping query into one of the recommendation
intents with an OpenAI chat completion in JSON mode. Every failure path
falls back to home_feed so the caller can always serve something.
"""

import json
import threading
import time
from typing import Optional

from config.settings import Settings, get_settings
from core.logging import get_logger
from feed.models import RecommendationIntent, RouterResponse


logger = get_logger(__name__)

CONFIDENCE_THRESHOLD = 0.7

_SYSTEM_PROMPT = """You are a recommendation router. Classify the user query into one intent:
- home_feed: General browsing
- similar: Like "find more like this"
- fit_help: Sizing questions
- occasion: "What to wear for a wedding"
- fabric_help: About materials
- bespoke: Custom tailoring requests
- substitution: "Alternative to X"

Return JSON only: {"intent": string, "constraints": object, "confidence": number}.
Extract constraints like "gender", "color", "occasion", "budget".
Do not extract constraints that are not present in the text."""


def _home_feed(confidence: float, constraints: Optional[dict] = None) -> RouterResponse:
    return RouterResponse(
        intent=RecommendationIntent.HOME_FEED,
        confidence=confidence,
        constraints=constraints or {},
    )


class IntentRouter:
    """LLM-based intent classifier."""

    def __init__(self, settings: Optional[Settings] = None):
        settings = settings or get_settings()
        self._client = None
        self._client_lock = threading.Lock()
        self._api_key = settings.openai_api_key
        self._model = settings.intent_model
        self._timeout = settings.intent_timeout_seconds
        self._enabled = settings.intent_router_enabled and bool(self._api_key)

    @property
    def client(self):
        """Lazy-load OpenAI client."""
        if self._client is None:
            with self._client_lock:
                if self._client is None:
                    from openai import OpenAI
                    self._client = OpenAI(
                        api_key=self._api_key,
                        timeout=self._timeout,
                    )
        return self._client

    @property
    def enabled(self) -> bool:
        return self._enabled

    def classify(self, text: Optional[str]) -> RouterResponse:
        if not text or not text.strip():
            return _home_feed(1.0)

        if not self._enabled:
            logger.warning("Skipping intent classification (no API key or disabled)")
            return _home_feed(0.1)

        t_start = time.time()
        try:
            response = self.client.chat.completions.create(
                model=self._model,
                messages=[
                    {"role": "system", "content": _SYSTEM_PROMPT},
                    {"role": "user", "content": text},
                ],
                response_format={"type": "json_object"},
                temperature=0.0,
            )

            raw = response.choices[0].message.content
            if not raw:
                logger.warning("Intent router returned empty response")
                return _home_feed(0.1)

            data = json.loads(raw)
            constraints = data.get("constraints") if isinstance(data.get("constraints"), dict) else {}

            try:
                intent = RecommendationIntent(data.get("intent"))
            except ValueError:
                logger.warning("Invalid intent classified, defaulting to home_feed", intent=data.get("intent"))
                intent = RecommendationIntent.HOME_FEED

            confidence = data.get("confidence")
            if not isinstance(confidence, (int, float)) or isinstance(confidence, bool):
                confidence = 0.5
            confidence = float(confidence)

            latency_ms = int((time.time() - t_start) * 1000)
            if confidence < CONFIDENCE_THRESHOLD:
                logger.info(
                    "Low confidence intent, defaulting to home_feed",
                    query=text,
                    confidence=confidence,
                    latency_ms=latency_ms,
                )
                return _home_feed(confidence, constraints)

            logger.info(
                "Classified intent",
                query=text,
                intent=intent.value,
                confidence=confidence,
                latency_ms=latency_ms,
            )
            return RouterResponse(intent=intent, confidence=confidence, constraints=constraints)

        except Exception as e:
            logger.error("Error classifying intent", query=text, error=str(e))
            return _home_feed(0.0)
