"""
tests/test_registry.py
=======================
Strategy Registry & Factory Tests

Tests verify:
    1. Every StrategyType constructs the matching adapter
    2. Unknown identifiers fail before anything is imported
    3. The descriptor catalog covers every type with an input kind
    4. create_and_initialize() cleans up when initialization fails

All tests are offline.
"""

import os
import sys
import unittest
from unittest.mock import patch

# Ensure project root is on sys.path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from amdcore.results import ConfigurationError, UnknownStrategyType
from amdcore.strategies import registry
from amdcore.strategies.base import is_event_driven, supports_streaming
from amdcore.strategies.llm_audio import LlmAudioStrategy
from amdcore.strategies.ml_inference import MlInferenceStrategy
from amdcore.strategies.registry import (
    INPUT_AUDIO,
    INPUT_EVENT,
    StrategyType,
    create_and_initialize,
    create_strategy,
    get_descriptor,
    list_strategies,
)
from amdcore.strategies.signaling import SignalingStrategy
from amdcore.strategies.sip_event import SipEventStrategy
from fake_http import FakeSession


class TestCreateStrategy(unittest.TestCase):

    def test_each_type_builds_its_adapter(self):
        expected = {
            StrategyType.SIGNALING: SignalingStrategy,
            StrategyType.SIP_EVENT: SipEventStrategy,
            StrategyType.ML_INFERENCE: MlInferenceStrategy,
            StrategyType.LLM_AUDIO: LlmAudioStrategy,
        }
        for strategy_type, cls in expected.items():
            strategy = create_strategy(strategy_type)
            self.assertIsInstance(strategy, cls)
            self.assertEqual(strategy.strategy_type, strategy_type.value)
            self.assertFalse(strategy.initialized)

    def test_string_identifier(self):
        self.assertIsInstance(create_strategy("ml_inference"), MlInferenceStrategy)
        self.assertIsInstance(create_strategy(" SIP_EVENT "), SipEventStrategy)

    def test_options_forwarded(self):
        session = FakeSession()
        strategy = create_strategy("ml_inference", session=session)
        self.assertIs(strategy._session, session)

    def test_unknown_type_imports_nothing(self):
        with patch.object(registry.importlib, "import_module") as import_module:
            with self.assertRaises(UnknownStrategyType):
                create_strategy("psychic")
        import_module.assert_not_called()

    def test_unknown_type_is_value_error(self):
        for bad in ("", None, 3):
            with self.assertRaises(ValueError):
                create_strategy(bad)

    def test_capabilities_match_input_kind(self):
        for descriptor in list_strategies():
            strategy = create_strategy(descriptor.strategy_type)
            if descriptor.input_kind == INPUT_EVENT:
                self.assertTrue(is_event_driven(strategy))
                self.assertFalse(supports_streaming(strategy))
            else:
                self.assertEqual(descriptor.input_kind, INPUT_AUDIO)
                self.assertTrue(supports_streaming(strategy))
                self.assertFalse(is_event_driven(strategy))


class TestCatalog(unittest.TestCase):

    def test_covers_every_type_in_order(self):
        self.assertEqual(
            [d.strategy_type for d in list_strategies()],
            list(StrategyType),
        )

    def test_descriptor_fields(self):
        descriptor = get_descriptor("llm_audio")
        self.assertEqual(descriptor.name, "LLM Audio Analysis")
        self.assertEqual(descriptor.input_kind, INPUT_AUDIO)
        self.assertEqual(get_descriptor(StrategyType.SIGNALING).input_kind, INPUT_EVENT)

    def test_to_dict_is_plain(self):
        data = get_descriptor("sip_event").to_dict()
        self.assertEqual(data["strategy_type"], "sip_event")
        self.assertEqual(
            set(data),
            {"strategy_type", "name", "description", "latency", "accuracy", "cost", "input_kind"},
        )

    def test_unknown_descriptor(self):
        with self.assertRaises(UnknownStrategyType):
            get_descriptor("nope")


class TestCreateAndInitialize(unittest.IsolatedAsyncioTestCase):

    async def test_initialized_strategy_returned(self):
        strategy = await create_and_initialize("signaling", {"status_callback_url": "https://cb"})
        self.assertTrue(strategy.initialized)
        await strategy.cleanup()

    async def test_configuration_error_propagates_after_cleanup(self):
        with patch.dict(os.environ, {}, clear=True):
            with patch.object(SipEventStrategy, "cleanup", autospec=True) as cleanup:
                with self.assertRaises(ConfigurationError) as ctx:
                    await create_and_initialize("sip_event", {})
        cleanup.assert_awaited_once()
        self.assertEqual(ctx.exception.strategy, "sip_event")


if __name__ == "__main__":
    unittest.main()
