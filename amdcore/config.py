"""
amdcore/config.py
==================
Strategy Configuration — AMD Strategy Core

Responsibility:
    - Load environment variables from .env (python-dotenv)
    - Resolve the caller's configuration mapping into one frozen dataclass
      per adapter, with named required vs optional fields
    - Apply precedence: caller-supplied key → environment variable → default
    - Raise ConfigurationError when a required key is absent or invalid

Configuration is resolved ONCE, at initialize() time, and never re-read
per detection call.

Environment variables:
    ML_SERVICE_URL            ML classifier base URL
    AMD_CONFIDENCE_THRESHOLD  Global decision confidence threshold
    AMD_LLM_PROVIDER          Generative provider: "gemini" or "openai"
    GEMINI_API_KEY            Generative API key (gemini provider)
    GEMINI_MODEL              Generative model identifier
    OPENAI_API_KEY            Generative API key (openai provider)
    OPENAI_AUDIO_MODEL        OpenAI audio-capable chat model
    SIP_PLATFORM_URL          SIP platform base URL
    APP_BASE_URL              Public base URL for SIP action hooks
    AMD_STATUS_CALLBACK_URL   Async AMD status callback for telephony calls
"""

import os
from dataclasses import dataclass
from typing import Any, Mapping

from dotenv import load_dotenv

from amdcore.results import ConfigurationError

load_dotenv()


# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------

DEFAULT_CONFIDENCE_THRESHOLD: float = 0.7
DEFAULT_ML_SERVICE_URL: str = "http://localhost:8000"

DEFAULT_GEMINI_MODEL: str = "gemini-2.5-flash"
DEFAULT_OPENAI_AUDIO_MODEL: str = "gpt-4o-audio-preview"
LLM_PROVIDERS: tuple[str, ...] = ("gemini", "openai")


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _lookup(
    config: Mapping[str, Any],
    key: str,
    env_var: str | None,
    env: Mapping[str, str],
    default: Any = None,
) -> Any:
    """Return config[key], else env[env_var], else default. Empty strings count as absent."""
    value = config.get(key)
    if value is None or value == "":
        value = env.get(env_var) if env_var else None
    if value is None or value == "":
        return default
    return value


def _as_float(strategy: str, key: str, value: Any) -> float:
    if isinstance(value, bool):
        raise ConfigurationError(strategy, f"{key} must be a number, got bool")
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(strategy, f"{key} must be a number, got {value!r}") from exc


def _as_int(strategy: str, key: str, value: Any) -> int:
    if isinstance(value, bool):
        raise ConfigurationError(strategy, f"{key} must be an integer, got bool")
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(strategy, f"{key} must be an integer, got {value!r}") from exc


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


def _threshold(strategy: str, config: Mapping[str, Any], env: Mapping[str, str]) -> float:
    raw = _lookup(
        config, "confidence_threshold", "AMD_CONFIDENCE_THRESHOLD", env,
        DEFAULT_CONFIDENCE_THRESHOLD,
    )
    threshold = _as_float(strategy, "confidence_threshold", raw)
    if not 0.0 <= threshold <= 1.0:
        raise ConfigurationError(
            strategy, f"confidence_threshold must be in [0.0, 1.0], got {threshold}"
        )
    return threshold


# ---------------------------------------------------------------------------
# Per-adapter configuration
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SignalingConfig:
    """Telephony-native AMD call parameters. No required keys."""

    status_callback_url: str | None = None
    machine_detection: str = "DetectMessageEnd"
    async_amd: bool = True
    machine_detection_timeout: int = 30                 # seconds
    machine_detection_speech_threshold: int = 2400      # ms
    machine_detection_speech_end_threshold: int = 1200  # ms
    machine_detection_silence_timeout: int = 5000       # ms

    @classmethod
    def from_mapping(
        cls,
        config: Mapping[str, Any],
        env: Mapping[str, str] | None = None,
    ) -> "SignalingConfig":
        env = os.environ if env is None else env
        name = "signaling"
        return cls(
            status_callback_url=_lookup(config, "status_callback_url", "AMD_STATUS_CALLBACK_URL", env),
            machine_detection=str(_lookup(config, "machine_detection", None, env, cls.machine_detection)),
            async_amd=_as_bool(_lookup(config, "async_amd", None, env, cls.async_amd)),
            machine_detection_timeout=_as_int(
                name, "machine_detection_timeout",
                _lookup(config, "machine_detection_timeout", None, env, cls.machine_detection_timeout),
            ),
            machine_detection_speech_threshold=_as_int(
                name, "machine_detection_speech_threshold",
                _lookup(config, "machine_detection_speech_threshold", None, env,
                        cls.machine_detection_speech_threshold),
            ),
            machine_detection_speech_end_threshold=_as_int(
                name, "machine_detection_speech_end_threshold",
                _lookup(config, "machine_detection_speech_end_threshold", None, env,
                        cls.machine_detection_speech_end_threshold),
            ),
            machine_detection_silence_timeout=_as_int(
                name, "machine_detection_silence_timeout",
                _lookup(config, "machine_detection_silence_timeout", None, env,
                        cls.machine_detection_silence_timeout),
            ),
        )


@dataclass(frozen=True)
class SipEventConfig:
    """SIP platform AMD configuration. ``platform_url`` is required."""

    platform_url: str
    app_base_url: str = ""
    threshold_word_count: int = 5
    decision_timeout_ms: int = 10000
    tone_timeout_ms: int = 5000
    greeting_completion_timeout_ms: int = 3000
    recognizer_vendor: str = "default"
    recognizer_language: str = "en-US"

    @classmethod
    def from_mapping(
        cls,
        config: Mapping[str, Any],
        env: Mapping[str, str] | None = None,
    ) -> "SipEventConfig":
        env = os.environ if env is None else env
        name = "sip_event"

        platform_url = _lookup(config, "platform_url", "SIP_PLATFORM_URL", env)
        if not platform_url:
            raise ConfigurationError(
                name, "platform_url is required (set SIP_PLATFORM_URL or pass platform_url)"
            )

        return cls(
            platform_url=str(platform_url).rstrip("/"),
            app_base_url=str(_lookup(config, "app_base_url", "APP_BASE_URL", env, "")).rstrip("/"),
            threshold_word_count=_as_int(
                name, "threshold_word_count",
                _lookup(config, "threshold_word_count", None, env, cls.threshold_word_count),
            ),
            decision_timeout_ms=_as_int(
                name, "decision_timeout_ms",
                _lookup(config, "decision_timeout_ms", None, env, cls.decision_timeout_ms),
            ),
            tone_timeout_ms=_as_int(
                name, "tone_timeout_ms",
                _lookup(config, "tone_timeout_ms", None, env, cls.tone_timeout_ms),
            ),
            greeting_completion_timeout_ms=_as_int(
                name, "greeting_completion_timeout_ms",
                _lookup(config, "greeting_completion_timeout_ms", None, env,
                        cls.greeting_completion_timeout_ms),
            ),
            recognizer_vendor=str(_lookup(config, "recognizer_vendor", None, env, cls.recognizer_vendor)),
            recognizer_language=str(_lookup(config, "recognizer_language", None, env, cls.recognizer_language)),
        )


@dataclass(frozen=True)
class MlInferenceConfig:
    """ML classifier configuration. All keys optional."""

    service_url: str = DEFAULT_ML_SERVICE_URL
    confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD

    @classmethod
    def from_mapping(
        cls,
        config: Mapping[str, Any],
        env: Mapping[str, str] | None = None,
    ) -> "MlInferenceConfig":
        env = os.environ if env is None else env
        service_url = _lookup(config, "service_url", "ML_SERVICE_URL", env, DEFAULT_ML_SERVICE_URL)
        return cls(
            service_url=str(service_url).rstrip("/"),
            confidence_threshold=_threshold("ml_inference", config, env),
        )


@dataclass(frozen=True)
class LlmAudioConfig:
    """Generative audio analysis configuration. ``api_key`` is required."""

    api_key: str
    provider: str = "gemini"
    model: str = DEFAULT_GEMINI_MODEL
    temperature: float = 0.2
    max_output_tokens: int = 200

    @classmethod
    def from_mapping(
        cls,
        config: Mapping[str, Any],
        env: Mapping[str, str] | None = None,
    ) -> "LlmAudioConfig":
        env = os.environ if env is None else env
        name = "llm_audio"

        provider = str(_lookup(config, "provider", "AMD_LLM_PROVIDER", env, "gemini")).lower()
        if provider not in LLM_PROVIDERS:
            raise ConfigurationError(
                name, f"provider must be one of {list(LLM_PROVIDERS)}, got {provider!r}"
            )

        if provider == "gemini":
            key_env, model_env, default_model = "GEMINI_API_KEY", "GEMINI_MODEL", DEFAULT_GEMINI_MODEL
        else:
            key_env, model_env, default_model = "OPENAI_API_KEY", "OPENAI_AUDIO_MODEL", DEFAULT_OPENAI_AUDIO_MODEL

        api_key = _lookup(config, "api_key", key_env, env)
        if not api_key:
            raise ConfigurationError(
                name, f"api_key is required (set {key_env} or pass api_key)"
            )

        return cls(
            api_key=str(api_key),
            provider=provider,
            model=str(_lookup(config, "model", model_env, env, default_model)),
            temperature=_as_float(name, "temperature", _lookup(config, "temperature", None, env, 0.2)),
            max_output_tokens=_as_int(
                name, "max_output_tokens", _lookup(config, "max_output_tokens", None, env, 200),
            ),
        )
