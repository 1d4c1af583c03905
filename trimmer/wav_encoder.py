# trimmer/wav_encoder.py
# Serializes a frame range of a SampleBuffer into a canonical 44-byte-header
# PCM16 WAV file.

import logging
import math
import struct
from dataclasses import dataclass

import numpy as np

from trimmer.buffer import SampleBuffer
from trimmer.errors import EncodingError

logger = logging.getLogger(__name__)

WAV_HEADER_BYTES: int = 44
WAV_MIME_TYPE: str = "audio/wav"
PCM_FORMAT_TAG: int = 1
BITS_PER_SAMPLE: int = 16
BYTES_PER_SAMPLE: int = BITS_PER_SAMPLE // 8
FMT_CHUNK_BYTES: int = 16


@dataclass(frozen=True)
class WaveFile:
    """Encoded WAV bytes plus the MIME tag handed to the save collaborator."""
    data: bytes
    mime_type: str = WAV_MIME_TYPE

    def __len__(self) -> int:
        return len(self.data)


class ByteWriter:
    """
    Little-endian writer over one pre-allocated buffer.

    Every write advances ``offset``; writing past the end or a value that does
    not fit its field width raises EncodingError.
    """

    def __init__(self, size: int) -> None:
        if size < 0:
            raise EncodingError(f"Cannot allocate an output buffer of {size} bytes.")
        self.buffer: bytearray = bytearray(size)
        self.offset: int = 0

    def _pack(self, fmt: str, value: int) -> None:
        try:
            struct.pack_into(fmt, self.buffer, self.offset, value)
        except struct.error as exc:
            raise EncodingError(
                f"Cannot write {value!r} as '{fmt}' at offset {self.offset}: {exc}"
            ) from exc
        self.offset += struct.calcsize(fmt)

    def write_ascii(self, text: str) -> None:
        self.write_bytes(text.encode("ascii"))

    def write_uint16(self, value: int) -> None:
        self._pack("<H", value)

    def write_uint32(self, value: int) -> None:
        self._pack("<I", value)

    def write_bytes(self, data: bytes) -> None:
        end: int = self.offset + len(data)
        if end > len(self.buffer):
            raise EncodingError(
                f"Write of {len(data)} bytes at offset {self.offset} overruns "
                f"a {len(self.buffer)}-byte buffer."
            )
        self.buffer[self.offset:end] = data
        self.offset = end

    def getvalue(self) -> bytes:
        """Return the buffer; it must have been filled exactly."""
        if self.offset != len(self.buffer):
            raise EncodingError(
                f"Output buffer holds {len(self.buffer)} bytes but "
                f"{self.offset} were written."
            )
        return bytes(self.buffer)


def quantize(sample: float) -> int:
    """
    Convert one float sample to a signed 16-bit value.

    Clamps to [-1, 1], scales negatives by 32768 and the rest by 32767,
    then floors. NaN becomes 0.
    """
    if math.isnan(sample):
        return 0
    clamped: float = max(-1.0, min(1.0, float(sample)))
    value: float = clamped * 32768 if clamped < 0 else clamped * 32767
    return int(math.floor(value))


def _quantize_block(samples: np.ndarray) -> np.ndarray:
    """Vectorized ``quantize`` over an array of any shape."""
    # float64 keeps float32 * 32768 exact before flooring
    values: np.ndarray = np.nan_to_num(
        samples.astype(np.float64), nan=0.0, posinf=1.0, neginf=-1.0
    )
    clamped: np.ndarray = np.clip(values, -1.0, 1.0)
    scaled: np.ndarray = np.where(clamped < 0, clamped * 32768.0, clamped * 32767.0)
    return np.floor(scaled).astype("<i2")


def _write_header(
    writer: ByteWriter, num_chan: int, sample_rate: int, data_bytes: int
) -> None:
    total_bytes: int = data_bytes + WAV_HEADER_BYTES
    writer.write_ascii("RIFF")
    writer.write_uint32(total_bytes - 8)
    writer.write_ascii("WAVE")
    writer.write_ascii("fmt ")
    writer.write_uint32(FMT_CHUNK_BYTES)
    writer.write_uint16(PCM_FORMAT_TAG)
    writer.write_uint16(num_chan)
    writer.write_uint32(sample_rate)
    writer.write_uint32(sample_rate * num_chan * BYTES_PER_SAMPLE)  # byte rate
    writer.write_uint16(num_chan * BYTES_PER_SAMPLE)                # block align
    writer.write_uint16(BITS_PER_SAMPLE)
    writer.write_ascii("data")
    writer.write_uint32(data_bytes)


def encode_wav(buffer: SampleBuffer, start_frame: int, end_frame: int) -> WaveFile:
    """
    Encode frames [start_frame, end_frame) of ``buffer`` as PCM16 WAV.

    Args:
        buffer:      Decoded source audio.
        start_frame: First frame to include.
        end_frame:   One past the last frame to include.

    Returns:
        WaveFile holding exactly 44 + frames * channels * 2 bytes.

    Raises:
        FrameRangeError: The range is outside the buffer.
        EncodingError:   A computed size does not fit the WAV header fields.
    """
    buffer.check_frame_range(start_frame, end_frame)

    frame_len: int = end_frame - start_frame
    num_chan: int = buffer.channel_count
    if frame_len < 0:
        raise EncodingError(f"Negative frame length: {frame_len}.")

    data_bytes: int = frame_len * num_chan * BYTES_PER_SAMPLE
    total_bytes: int = data_bytes + WAV_HEADER_BYTES

    writer: ByteWriter = ByteWriter(total_bytes)
    _write_header(writer, num_chan, buffer.sample_rate, data_bytes)

    if num_chan == 1:
        pcm: np.ndarray = _quantize_block(
            buffer.channel_slice(0, start_frame, end_frame)
        )
    else:
        # (frames, channels) in C order is the interleaved WAV layout
        frames: np.ndarray = np.column_stack([
            buffer.channel_slice(c, start_frame, end_frame) for c in range(num_chan)
        ])
        pcm = _quantize_block(frames)

    writer.write_bytes(pcm.tobytes())

    logger.debug(
        "encoded wav frames=%d channels=%d rate=%d bytes=%d",
        frame_len, num_chan, buffer.sample_rate, total_bytes,
    )
    return WaveFile(writer.getvalue())
