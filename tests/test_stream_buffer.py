"""
tests/test_stream_buffer.py
============================
Streaming Decision-Window Tests

Tests verify:
    1. Chunks summing exactly to the window trigger exactly one detect()
       with a buffer of that size
    2. Streams ending early trigger exactly one detect() on the smaller buffer
    3. The 5 MiB ceiling stops reading at the chunk that crosses it
    4. Streams stopped early are closed; stream read errors become results
    5. Raw PCM is wrapped in a WAV container, WAV input passes through

All tests are offline.
"""

import asyncio
import io
import os
import sys
import unittest
import wave
from unittest.mock import AsyncMock, patch

# Ensure project root is on sys.path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from amdcore.audio.stream_buffer import (
    DECISION_WINDOW_BYTES,
    MAX_BUFFER_BYTES,
    buffer_decision_window,
    ensure_wav,
)
from amdcore.results import DetectionResult, Outcome
from amdcore.strategies.ml_inference import MlInferenceStrategy
from fake_http import FakeSession


class CountingStream:
    """Async generator wrapper that counts how many chunks were pulled."""

    def __init__(self, chunks, error_after: int | None = None):
        self._chunks = list(chunks)
        self._error_after = error_after
        self.pulled = 0
        self.closed = False

    async def _gen(self):
        try:
            for i, chunk in enumerate(self._chunks):
                if self._error_after is not None and i == self._error_after:
                    raise ConnectionResetError("media stream dropped")
                self.pulled += 1
                yield chunk
        finally:
            self.closed = True

    def __aiter__(self):
        return self._gen()


_OK = DetectionResult(Outcome.HUMAN, 0.9, 1)


# ===================================================================
# buffer_decision_window
# ===================================================================


class TestBufferDecisionWindow(unittest.IsolatedAsyncioTestCase):

    def test_window_is_two_seconds_of_24khz_16bit_mono(self):
        self.assertEqual(DECISION_WINDOW_BYTES, 96_000)
        self.assertEqual(MAX_BUFFER_BYTES, 5 * 1024 * 1024)

    async def test_exact_window_stops_reading(self):
        stream = CountingStream([b"\x01" * 9600] * 20)
        audio = await buffer_decision_window(stream)
        self.assertEqual(len(audio), DECISION_WINDOW_BYTES)
        self.assertEqual(stream.pulled, 10)
        self.assertTrue(stream.closed)

    async def test_short_stream_returns_everything(self):
        stream = CountingStream([b"\x02" * 1000] * 3)
        audio = await buffer_decision_window(stream)
        self.assertEqual(audio, b"\x02" * 3000)
        self.assertEqual(stream.pulled, 3)

    async def test_empty_chunks_ignored(self):
        stream = CountingStream([b"", b"ab", b"", b"cd"])
        self.assertEqual(await buffer_decision_window(stream), b"abcd")

    async def test_ceiling_crossing_chunk_stops_reading(self):
        mib = 1024 * 1024
        stream = CountingStream([b"\x03" * mib] * 10)
        audio = await buffer_decision_window(
            stream, window_bytes=20 * mib, max_bytes=5 * mib,
        )
        # The 6th chunk crosses 5 MiB; nothing after it is read
        self.assertEqual(stream.pulled, 6)
        self.assertEqual(len(audio), 5 * mib)
        self.assertTrue(stream.closed)

    async def test_stream_error_propagates(self):
        stream = CountingStream([b"x"] * 5, error_after=2)
        with self.assertRaises(ConnectionResetError):
            await buffer_decision_window(stream)


# ===================================================================
# detect_from_stream on an audio strategy
# ===================================================================


class TestDetectFromStream(unittest.IsolatedAsyncioTestCase):

    async def asyncSetUp(self):
        self.strategy = MlInferenceStrategy(session=FakeSession())
        await self.strategy.initialize({"service_url": "http://ml"})

    async def test_exact_window_single_detect(self):
        stream = CountingStream([b"\x00" * 24_000] * 4 + [b"\x00" * 24_000] * 4)
        with patch.object(self.strategy, "detect", AsyncMock(return_value=_OK)) as detect:
            result = await self.strategy.detect_from_stream(stream)
        detect.assert_awaited_once()
        self.assertEqual(len(detect.await_args.args[0]), DECISION_WINDOW_BYTES)
        self.assertEqual(stream.pulled, 4)
        self.assertIs(result, _OK)

    async def test_short_stream_single_detect_on_remainder(self):
        stream = CountingStream([b"\x00" * 10_000] * 3)
        with patch.object(self.strategy, "detect", AsyncMock(return_value=_OK)) as detect:
            await self.strategy.detect_from_stream(stream)
        detect.assert_awaited_once()
        self.assertEqual(len(detect.await_args.args[0]), 30_000)

    async def test_oversized_chunk_truncated_to_ceiling(self):
        stream = CountingStream([b"\x00" * (MAX_BUFFER_BYTES + 100)])
        with patch.object(self.strategy, "detect", AsyncMock(return_value=_OK)) as detect:
            await self.strategy.detect_from_stream(stream)
        detect.assert_awaited_once()
        self.assertEqual(len(detect.await_args.args[0]), MAX_BUFFER_BYTES)

    async def test_stream_read_error_is_recoverable(self):
        stream = CountingStream([b"x"] * 5, error_after=1)
        with patch.object(self.strategy, "detect", AsyncMock(return_value=_OK)) as detect:
            result = await self.strategy.detect_from_stream(stream)
        detect.assert_not_awaited()
        self.assertEqual(result.outcome, Outcome.UNKNOWN)
        self.assertEqual(result.confidence, 0.0)
        self.assertIn("media stream dropped", result.metadata["error"])

    async def test_truncated_stream_read_is_recoverable(self):
        async def cut_off():
            yield b"\x00" * 4000
            raise asyncio.IncompleteReadError(partial=b"\x00" * 10, expected=4000)

        with patch.object(self.strategy, "detect", AsyncMock(return_value=_OK)) as detect:
            result = await self.strategy.detect_from_stream(cut_off())
        detect.assert_not_awaited()
        self.assertEqual(result.outcome, Outcome.UNKNOWN)
        self.assertEqual(result.confidence, 0.0)
        self.assertIn("4000 expected bytes", result.metadata["error"])

    async def test_empty_stream_gives_unknown_without_request(self):
        session = FakeSession()
        strategy = MlInferenceStrategy(session=session)
        await strategy.initialize({"service_url": "http://ml"})
        result = await strategy.detect_from_stream(CountingStream([]))
        self.assertEqual(result.outcome, Outcome.UNKNOWN)
        self.assertEqual(session.posts, [])


# ===================================================================
# ensure_wav
# ===================================================================


class TestEnsureWav(unittest.TestCase):

    def test_raw_pcm_wrapped(self):
        pcm = b"\x00\x01" * 2400
        wav = ensure_wav(pcm)
        with wave.open(io.BytesIO(wav), "rb") as wf:
            self.assertEqual(wf.getframerate(), 24000)
            self.assertEqual(wf.getsampwidth(), 2)
            self.assertEqual(wf.getnchannels(), 1)
            self.assertEqual(wf.readframes(wf.getnframes()), pcm)

    def test_wav_passthrough(self):
        wav = ensure_wav(b"\x00\x00" * 100)
        self.assertIs(ensure_wav(wav), wav)


if __name__ == "__main__":
    unittest.main()
