"""HTTP client for the upstream reply-generation provider."""

import logging
import time
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from replygate.common.config import ReplyGateSettings
from replygate.common.exceptions import (
    GenerationAuthError,
    GenerationError,
    GenerationQuotaError,
)

logger = logging.getLogger(__name__)

QUERY_TYPES = ("refund_request", "shipping_delay", "product_howto", "general")
TONES = ("professional", "friendly", "casual")

FALLBACK_CONFIDENCE = 85

# Used when no provider key is configured (local development).
FALLBACK_RESPONSES = {
    "refund_request": (
        "I understand you're requesting a refund. I'll be happy to help you with that "
        "process. Could you please provide your order number and the reason for the "
        "refund request?"
    ),
    "shipping_delay": (
        "I apologize for the shipping delay. Let me check the status of your order and "
        "provide you with an updated delivery timeline."
    ),
    "product_howto": (
        "I'd be happy to help you with instructions for using our product. Could you "
        "please specify which product you need help with?"
    ),
    "general": (
        "Thank you for reaching out to our customer support team. I'm here to help you "
        "with any questions or concerns you may have."
    ),
}

_QUERY_GUIDANCE = {
    "refund_request": "The customer is asking for a refund. Explain the next steps clearly.",
    "shipping_delay": "The customer is worried about a delayed shipment. Apologise and reassure.",
    "product_howto": "The customer needs help using a product. Give concise, practical steps.",
    "general": "Answer the customer's question helpfully.",
}


@dataclass(frozen=True)
class GenerationRequest:
    client_message: str
    query_type: str = "general"
    tone: str = "professional"


@dataclass(frozen=True)
class GenerationResult:
    text: str
    confidence: int  # 0-100
    generation_time_ms: int


def estimate_confidence(text: str, finish_reason: Optional[str] = None) -> int:
    """Heuristic 0-100 confidence from reply length and finish reason.

    Longer replies score higher up to 95; a reply cut off by the token
    limit loses 15 points.
    """
    score = min(95.0, 70.0 + (len(text) / 1000) * 25)
    if finish_reason == "length":
        score -= 15
    return int(round(max(0.0, min(100.0, score))))


def build_messages(request: GenerationRequest) -> list[dict[str, str]]:
    guidance = _QUERY_GUIDANCE.get(request.query_type, _QUERY_GUIDANCE["general"])
    system = (
        "You are a customer support assistant writing replies on behalf of a business. "
        f"Write in a {request.tone} tone. {guidance} "
        "Reply with the message text only."
    )
    return [
        {"role": "system", "content": system},
        {"role": "user", "content": request.client_message},
    ]


class GenerationClient:
    """Calls an OpenAI-compatible /chat/completions endpoint."""

    def __init__(
        self,
        settings: ReplyGateSettings,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.settings = settings
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.settings.generation_api_key)

    async def generate(self, request: GenerationRequest) -> GenerationResult:
        """Generate one reply.

        Raises GenerationQuotaError, GenerationAuthError or GenerationError;
        nothing is retried.
        """
        started = time.monotonic()
        if not self.configured:
            text = FALLBACK_RESPONSES.get(request.query_type, FALLBACK_RESPONSES["general"])
            return GenerationResult(
                text=text,
                confidence=FALLBACK_CONFIDENCE,
                generation_time_ms=int((time.monotonic() - started) * 1000),
            )

        payload = {
            "model": self.settings.generation_model,
            "messages": build_messages(request),
        }
        body = await self._post_completion(payload)
        text, finish_reason = self._parse_completion(body)
        return GenerationResult(
            text=text,
            confidence=estimate_confidence(text, finish_reason),
            generation_time_ms=int((time.monotonic() - started) * 1000),
        )

    async def _post_completion(self, payload: dict[str, Any]) -> dict[str, Any]:
        url = f"{self.settings.generation_base_url.rstrip('/')}/chat/completions"
        headers = {"Authorization": f"Bearer {self.settings.generation_api_key}"}
        try:
            async with httpx.AsyncClient(
                timeout=self.settings.generation_timeout,
                transport=self._transport,
            ) as client:
                resp = await client.post(url, json=payload, headers=headers)
        except httpx.TimeoutException as e:
            logger.warning("Generation provider timed out: %s", e)
            raise GenerationError("Generation provider timed out") from e
        except httpx.HTTPError as e:
            logger.warning("Generation provider unreachable: %s", e)
            raise GenerationError(f"Generation provider unreachable: {e}") from e

        if resp.status_code == 429:
            logger.warning("Generation provider quota exceeded")
            raise GenerationQuotaError()
        if resp.status_code in (401, 403):
            logger.warning(
                "Generation provider rejected credentials", extra={"status_code": resp.status_code},
            )
            raise GenerationAuthError()
        if not 200 <= resp.status_code < 300:
            logger.warning(
                "Generation provider error: %s", resp.text[:200],
                extra={"status_code": resp.status_code},
            )
            raise GenerationError(f"Generation provider returned HTTP {resp.status_code}")

        try:
            return resp.json()
        except ValueError as e:
            raise GenerationError("Generation provider returned invalid JSON") from e

    @staticmethod
    def _parse_completion(body: dict[str, Any]) -> tuple[str, Optional[str]]:
        try:
            choice = body["choices"][0]
            text = (choice["message"]["content"] or "").strip()
        except (KeyError, IndexError, TypeError) as e:
            raise GenerationError("Generation provider returned no choices") from e
        if not text:
            raise GenerationError("Generation provider returned an empty reply")
        return text, choice.get("finish_reason")
