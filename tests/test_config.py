"""
tests/test_config.py
=====================
Per-Strategy Configuration Tests

Test categories:
    1. Defaults when neither caller nor environment supplies a key
    2. Precedence: caller key → environment variable → default
    3. Validation failures raise ConfigurationError at resolution time
    4. String coercion of numeric and boolean settings

All tests are offline; the environment is passed explicitly.
"""

import os
import sys
import unittest

# Ensure project root is on sys.path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from amdcore.config import (
    DEFAULT_CONFIDENCE_THRESHOLD,
    DEFAULT_ML_SERVICE_URL,
    LlmAudioConfig,
    MlInferenceConfig,
    SignalingConfig,
    SipEventConfig,
)
from amdcore.results import ConfigurationError


# ===================================================================
# Configuration
# ===================================================================


class TestMlInferenceConfig(unittest.TestCase):

    def test_defaults(self):
        cfg = MlInferenceConfig.from_mapping({}, env={})
        self.assertEqual(cfg.service_url, DEFAULT_ML_SERVICE_URL)
        self.assertEqual(cfg.confidence_threshold, DEFAULT_CONFIDENCE_THRESHOLD)

    def test_env_used_when_key_absent(self):
        cfg = MlInferenceConfig.from_mapping(
            {}, env={"ML_SERVICE_URL": "http://ml:9000/", "AMD_CONFIDENCE_THRESHOLD": "0.8"},
        )
        self.assertEqual(cfg.service_url, "http://ml:9000")
        self.assertEqual(cfg.confidence_threshold, 0.8)

    def test_caller_overrides_env(self):
        cfg = MlInferenceConfig.from_mapping(
            {"service_url": "http://local", "confidence_threshold": 0.5},
            env={"ML_SERVICE_URL": "http://ml:9000"},
        )
        self.assertEqual(cfg.service_url, "http://local")
        self.assertEqual(cfg.confidence_threshold, 0.5)

    def test_threshold_out_of_range(self):
        with self.assertRaises(ConfigurationError):
            MlInferenceConfig.from_mapping({"confidence_threshold": 1.2}, env={})

    def test_threshold_not_numeric(self):
        with self.assertRaises(ConfigurationError):
            MlInferenceConfig.from_mapping({"confidence_threshold": "high"}, env={})


class TestLlmAudioConfig(unittest.TestCase):

    def test_missing_api_key_fails(self):
        with self.assertRaises(ConfigurationError) as ctx:
            LlmAudioConfig.from_mapping({}, env={})
        self.assertIn("GEMINI_API_KEY", ctx.exception.message)

    def test_gemini_defaults(self):
        cfg = LlmAudioConfig.from_mapping({}, env={"GEMINI_API_KEY": "g-key"})
        self.assertEqual(cfg.provider, "gemini")
        self.assertEqual(cfg.model, "gemini-2.5-flash")
        self.assertEqual(cfg.api_key, "g-key")

    def test_openai_provider_reads_openai_key(self):
        cfg = LlmAudioConfig.from_mapping(
            {"provider": "openai"}, env={"OPENAI_API_KEY": "o-key", "GEMINI_API_KEY": "g-key"},
        )
        self.assertEqual(cfg.api_key, "o-key")
        self.assertEqual(cfg.model, "gpt-4o-audio-preview")

    def test_unknown_provider_fails(self):
        with self.assertRaises(ConfigurationError):
            LlmAudioConfig.from_mapping({"provider": "mystery", "api_key": "k"}, env={})


class TestSipEventConfig(unittest.TestCase):

    def test_missing_platform_url_fails(self):
        with self.assertRaises(ConfigurationError):
            SipEventConfig.from_mapping({}, env={})

    def test_defaults(self):
        cfg = SipEventConfig.from_mapping({"platform_url": "https://sip.example/"}, env={})
        self.assertEqual(cfg.platform_url, "https://sip.example")
        self.assertEqual(cfg.threshold_word_count, 5)
        self.assertEqual(cfg.decision_timeout_ms, 10000)

    def test_string_numbers_coerced(self):
        cfg = SipEventConfig.from_mapping(
            {"platform_url": "https://sip", "threshold_word_count": "7"}, env={},
        )
        self.assertEqual(cfg.threshold_word_count, 7)


class TestSignalingConfig(unittest.TestCase):

    def test_no_required_keys(self):
        cfg = SignalingConfig.from_mapping({}, env={})
        self.assertIsNone(cfg.status_callback_url)
        self.assertEqual(cfg.machine_detection, "DetectMessageEnd")
        self.assertTrue(cfg.async_amd)

    def test_async_amd_string(self):
        cfg = SignalingConfig.from_mapping({"async_amd": "false"}, env={})
        self.assertFalse(cfg.async_amd)


if __name__ == "__main__":
    unittest.main()
