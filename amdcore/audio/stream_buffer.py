"""
amdcore/audio/stream_buffer.py
===============================
Decision-Window Stream Buffer — AMD Strategy Core

Responsibility:
    - Drain an async stream of audio chunks into one in-memory buffer
    - Stop as soon as the decision window (2 s of 24 kHz 16-bit mono) is
      accumulated, or when the stream ends, whichever comes first
    - Enforce a hard 5 MiB ceiling on buffered bytes; crossing it stops
      reading and truncates the buffer to the ceiling
    - Wrap raw PCM into a standalone WAV container for upload

Shared by the two audio-driven strategies (ml_inference, llm_audio).
Single consumer: one reader drains into one buffer, no fan-out.

This module does NOT:
    - Decode, resample, or otherwise modify audio content
    - Perform any detection or network I/O
"""

import io
import logging
import wave
from typing import AsyncIterable

logger = logging.getLogger("amdcore.audio.stream_buffer")

# ---------------------------------------------------------------------------
# Stream format and bounds
# ---------------------------------------------------------------------------

STREAM_SAMPLE_RATE: int = 24000     # Hz
STREAM_SAMPLE_WIDTH: int = 2        # bytes (16-bit)
STREAM_CHANNELS: int = 1            # mono
DECISION_WINDOW_SECONDS: int = 2

# 24000 samples/s × 2 bytes × 1 channel × 2 s = 96,000 bytes
DECISION_WINDOW_BYTES: int = (
    STREAM_SAMPLE_RATE * STREAM_SAMPLE_WIDTH * STREAM_CHANNELS * DECISION_WINDOW_SECONDS
)
MAX_BUFFER_BYTES: int = 5 * 1024 * 1024


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def buffer_decision_window(
    stream: AsyncIterable[bytes],
    window_bytes: int = DECISION_WINDOW_BYTES,
    max_bytes: int = MAX_BUFFER_BYTES,
) -> bytes:
    """
    Accumulate chunks from *stream* until a decision can be made.

    Reading stops on the first of:
        - the buffer exceeding *max_bytes* → buffer truncated to *max_bytes*
        - the buffer reaching *window_bytes* → whole buffer returned
        - the stream ending → whatever was buffered (possibly empty)

    When reading stops before the stream is exhausted, the stream is
    closed via ``aclose()`` if it provides one.

    Args:
        stream:       Async iterable of raw audio chunks.
        window_bytes: Decision window size in bytes.
        max_bytes:    Hard ceiling on buffered bytes.

    Returns:
        The buffered audio bytes.

    Raises:
        Whatever the stream raises while being read; callers convert
        I/O failures into recoverable results.
    """
    chunks: list[bytes] = []
    total = 0
    stopped_early = False

    iterator = stream.__aiter__()
    try:
        async for chunk in iterator:
            if not chunk:
                continue
            chunks.append(bytes(chunk))
            total += len(chunk)

            if total > max_bytes:
                logger.warning(
                    "Stream buffer exceeded %d bytes — detecting on truncated buffer.",
                    max_bytes,
                )
                stopped_early = True
                return b"".join(chunks)[:max_bytes]

            if total >= window_bytes:
                logger.debug(
                    "Decision window reached: %d bytes in %d chunks.", total, len(chunks),
                )
                stopped_early = True
                return b"".join(chunks)
    finally:
        if stopped_early:
            aclose = getattr(iterator, "aclose", None)
            if aclose is not None:
                await aclose()

    logger.debug(
        "Stream ended before decision window: %d bytes in %d chunks.", total, len(chunks),
    )
    return b"".join(chunks)


def ensure_wav(
    audio_bytes: bytes,
    sample_rate: int = STREAM_SAMPLE_RATE,
    sampwidth: int = STREAM_SAMPLE_WIDTH,
    n_channels: int = STREAM_CHANNELS,
) -> bytes:
    """
    Return *audio_bytes* as a WAV file.

    Input that already carries a RIFF/WAVE header is returned unchanged;
    anything else is treated as raw PCM in the stream format and wrapped.
    """
    if audio_bytes[:4] == b"RIFF" and audio_bytes[8:12] == b"WAVE":
        return audio_bytes

    buf = io.BytesIO()
    with wave.open(buf, "wb") as wf:
        wf.setnchannels(n_channels)
        wf.setsampwidth(sampwidth)
        wf.setframerate(sample_rate)
        wf.writeframes(audio_bytes)
    return buf.getvalue()
