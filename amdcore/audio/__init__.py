# amdcore/audio/__init__.py
# ==========================
# Audio Buffering Layer — AMD Strategy Core
#
# Responsibility:
#   - Buffer streamed audio up to the decision window (stream_buffer.py)
#   - Wrap raw PCM in a WAV container for upload
#
# No decoding, resampling or detection happens here.
