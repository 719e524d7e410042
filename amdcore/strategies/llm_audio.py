"""
amdcore/strategies/llm_audio.py
================================
LLM Audio Analysis AMD Strategy — AMD Strategy Core

Responsibility:
    - Submit audio plus a fixed instruction prompt to a generative
      multimodal model and request a strict JSON reply:
          {"result": ..., "confidence": ..., "reasoning": ...}
    - Extract the first well-formed JSON object from the model's text
    - Fuzzy-map the result label onto the normalized outcome

Providers:
    gemini (default) — REST generateContent, audio as inline base64 WAV
    openai           — chat completion with an ``input_audio`` part

Label mapping:
    contains "human"                  → human
    contains "machine" / "voicemail"  → machine
    anything else                     → undecided
Missing or non-numeric confidence defaults to 0.7.

Remote call bound: 15 s. Transport failures, non-2xx replies and replies
without a JSON object produce an ``unknown`` result with confidence 0.
"""

import base64
import json
import logging
from typing import Any

import aiohttp
import openai
from openai import AsyncOpenAI

from amdcore.config import LlmAudioConfig
from amdcore.llm_retry import chat_completions_with_retry
from amdcore.results import DetectionError, Outcome, clamp_confidence
from amdcore.strategies.base import RemoteAudioStrategy

logger = logging.getLogger("amdcore.strategies.llm_audio")

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

LLM_TIMEOUT_SECONDS: float = 15.0
DEFAULT_LLM_CONFIDENCE: float = 0.7

GEMINI_API_BASE: str = "https://generativelanguage.googleapis.com/v1beta"


# ---------------------------------------------------------------------------
# Prompt — answering-machine classification
# ---------------------------------------------------------------------------

_PROMPT: str = (
    "Analyze this audio recording and determine if it's a human speaking "
    "or an answering machine/voicemail.\n\n"
    "Respond with ONLY a JSON object in this exact format:\n"
    "{\n"
    '  "result": "human" or "machine" or "voicemail",\n'
    '  "confidence": <number between 0 and 1>,\n'
    '  "reasoning": "<brief explanation>"\n'
    "}\n\n"
    "Listen carefully for:\n"
    "- Human: Natural conversational responses, questions, varied intonation\n"
    "- Machine/Voicemail: Scripted greetings, menu options, beeps, monotone delivery\n"
    '- Key indicators: "press 1 for...", "leave a message", "hours are...", beep sounds'
)


class LlmAudioStrategy(RemoteAudioStrategy):
    """Generative multimodal model used as an AMD classifier."""

    strategy_type = "llm_audio"
    name = "LLM Audio Analysis"
    description = "Real-time LLM audio analysis"

    request_timeout = LLM_TIMEOUT_SECONDS

    def __init__(
        self,
        session: aiohttp.ClientSession | None = None,
        openai_client: AsyncOpenAI | None = None,
    ) -> None:
        super().__init__(session)
        self._config: LlmAudioConfig | None = None
        self._openai_client = openai_client
        self._owns_openai_client = openai_client is None

    async def _setup(self, config: dict[str, Any]) -> None:
        self._config = LlmAudioConfig.from_mapping(config)

        if self._config.provider == "openai":
            if self._openai_client is None:
                # Retries are handled by llm_retry inside the detection time box
                self._openai_client = AsyncOpenAI(
                    api_key=self._config.api_key,
                    timeout=LLM_TIMEOUT_SECONDS,
                    max_retries=0,
                )
                self._owns_openai_client = True
        else:
            self._ensure_session()

        logger.info(
            "LLM provider: %s (model: %s)", self._config.provider, self._config.model,
        )

    async def _teardown(self) -> None:
        await super()._teardown()
        if self._owns_openai_client and self._openai_client is not None:
            client, self._openai_client = self._openai_client, None
            await client.close()

    async def _classify(self, wav: bytes) -> tuple[Outcome, float, dict[str, Any]]:
        audio_b64 = base64.b64encode(wav).decode("ascii")

        if self._config.provider == "openai":
            text = await self._ask_openai(audio_b64)
        else:
            text = await self._ask_gemini(audio_b64)

        outcome, confidence, metadata = interpret_model_reply(text)
        metadata.update({"model": self._config.model, "provider": self._config.provider})
        return outcome, confidence, metadata

    # ------------------------------------------------------------------
    # Providers
    # ------------------------------------------------------------------

    async def _ask_gemini(self, audio_b64: str) -> str:
        cfg = self._config
        payload = {
            "contents": [
                {
                    "parts": [
                        {"text": _PROMPT},
                        {"inline_data": {"mime_type": "audio/wav", "data": audio_b64}},
                    ],
                },
            ],
            "generationConfig": {
                "temperature": cfg.temperature,
                "maxOutputTokens": cfg.max_output_tokens,
            },
        }

        async with self._session.post(
            f"{GEMINI_API_BASE}/models/{cfg.model}:generateContent",
            json=payload,
            headers={"Content-Type": "application/json", "x-goog-api-key": cfg.api_key},
            timeout=aiohttp.ClientTimeout(total=LLM_TIMEOUT_SECONDS),
        ) as resp:
            if resp.status >= 400:
                error_text = await resp.text()
                raise DetectionError(
                    f"Gemini API error: {resp.status} - {error_text[:200]}"
                )
            body = await resp.json(content_type=None)

        return _gemini_text(body)

    async def _ask_openai(self, audio_b64: str) -> str:
        cfg = self._config
        try:
            response = await chat_completions_with_retry(
                self._openai_client,
                model=cfg.model,
                modalities=["text"],
                temperature=cfg.temperature,
                max_tokens=cfg.max_output_tokens,
                messages=[
                    {
                        "role": "user",
                        "content": [
                            {"type": "text", "text": _PROMPT},
                            {
                                "type": "input_audio",
                                "input_audio": {"data": audio_b64, "format": "wav"},
                            },
                        ],
                    },
                ],
            )
        except openai.OpenAIError as exc:
            raise DetectionError(f"OpenAI API error: {exc}") from exc

        choices = getattr(response, "choices", None) or []
        if not choices:
            return ""
        return getattr(choices[0].message, "content", None) or ""


# ---------------------------------------------------------------------------
# Response parsing
# ---------------------------------------------------------------------------


def _gemini_text(body: Any) -> str:
    """Pull ``candidates[0].content.parts[0].text`` out of a reply, or ""."""
    if not isinstance(body, dict):
        return ""
    candidates = body.get("candidates") or []
    if not isinstance(candidates, list) or not candidates or not isinstance(candidates[0], dict):
        return ""
    content = candidates[0].get("content") or {}
    parts = content.get("parts") if isinstance(content, dict) else None
    if not isinstance(parts, list) or not parts or not isinstance(parts[0], dict):
        return ""
    text = parts[0].get("text")
    return text if isinstance(text, str) else ""


def extract_json_block(text: str) -> dict[str, Any]:
    """
    Return the first well-formed JSON object embedded in *text*.

    Models often wrap the object in prose or markdown fences; every ``{``
    is tried in order until one decodes to a JSON object.

    Raises:
        DetectionError: If no JSON object is found.
    """
    decoder = json.JSONDecoder()
    idx = text.find("{")
    while idx != -1:
        try:
            parsed, _ = decoder.raw_decode(text, idx)
        except json.JSONDecodeError:
            pass
        else:
            if isinstance(parsed, dict):
                return parsed
        idx = text.find("{", idx + 1)

    raise DetectionError(f"No JSON object in model response: {text[:200]!r}")


def interpret_model_reply(text: str) -> tuple[Outcome, float, dict[str, Any]]:
    """
    Map the model's free-text reply to (outcome, confidence, metadata).

    Raises:
        DetectionError: If the reply has no JSON object or no string ``result``.
    """
    parsed = extract_json_block(text)

    result = parsed.get("result")
    if not isinstance(result, str):
        raise DetectionError(f"Model reply has no 'result' label: {parsed!r}")

    result_lower = result.lower()
    if "human" in result_lower:
        outcome = Outcome.HUMAN
    elif "machine" in result_lower or "voicemail" in result_lower:
        outcome = Outcome.MACHINE
    else:
        outcome = Outcome.UNDECIDED

    confidence = clamp_confidence(parsed.get("confidence"), default=DEFAULT_LLM_CONFIDENCE)

    metadata = {
        "model_label": result,
        "reasoning": parsed.get("reasoning"),
        "raw_response": text,
    }
    return outcome, confidence, metadata
