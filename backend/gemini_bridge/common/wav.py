"""
PCM to WAV Container Writer

Gemini speech output is raw signed 16-bit little-endian PCM, mono, 24 kHz.
"""

import struct

SAMPLE_RATE = 24000
NUM_CHANNELS = 1
BITS_PER_SAMPLE = 16

WAV_HEADER_SIZE = 44
PCM_CONTENT_TYPE = f"audio/L16; rate={SAMPLE_RATE}; channels={NUM_CHANNELS}"
WAV_CONTENT_TYPE = "audio/wav"


def pcm_to_wav(pcm_data: bytes) -> bytes:
    """
    Prefix raw PCM samples with a canonical 44-byte RIFF/WAVE header.

    Args:
        pcm_data: Raw PCM bytes

    Returns:
        bytes: Header followed by the unchanged PCM bytes
    """
    block_align = NUM_CHANNELS * BITS_PER_SAMPLE // 8
    byte_rate = SAMPLE_RATE * block_align
    data_size = len(pcm_data)

    header = struct.pack(
        "<4sI4s4sIHHIIHH4sI",
        b"RIFF",
        36 + data_size,
        b"WAVE",
        b"fmt ",
        16,
        1,
        NUM_CHANNELS,
        SAMPLE_RATE,
        byte_rate,
        block_align,
        BITS_PER_SAMPLE,
        b"data",
        data_size,
    )
    return header + pcm_data
