import io
import struct

import numpy as np
import pytest
import soundfile as sf

from trimmer.buffer import SampleBuffer
from trimmer.errors import EncodingError, FrameRangeError
from trimmer.wav_encoder import (
    WAV_HEADER_BYTES,
    WAV_MIME_TYPE,
    ByteWriter,
    WaveFile,
    encode_wav,
    quantize,
)

HEADER_FORMAT: str = "<4sI4s4sIHHIIHH4sI"


def unpack_header(data: bytes) -> tuple:
    return struct.unpack_from(HEADER_FORMAT, data, 0)


def sample_at(data: bytes, offset: int) -> int:
    return struct.unpack_from("<h", data, offset)[0]


class TestQuantize:
    """Tests for the float → int16 sample rule."""

    def test_full_scale_positive(self) -> None:
        assert quantize(1.0) == 32767

    def test_full_scale_negative(self) -> None:
        assert quantize(-1.0) == -32768

    def test_zero(self) -> None:
        assert quantize(0.0) == 0

    def test_half_scale_floors(self) -> None:
        # 0.5 * 32767 = 16383.5 → 16383
        assert quantize(0.5) == 16383
        assert quantize(-0.5) == -16384

    def test_out_of_range_is_clamped(self) -> None:
        assert quantize(2.5) == 32767
        assert quantize(-7.0) == -32768

    def test_nan_becomes_zero(self) -> None:
        assert quantize(float("nan")) == 0

    def test_monotonic(self) -> None:
        values: list[int] = [quantize(float(v)) for v in np.linspace(-1.0, 1.0, 2001)]
        assert values == sorted(values)


class TestByteWriter:
    """Tests for the explicit write cursor."""

    def test_offset_advances_per_field(self) -> None:
        writer: ByteWriter = ByteWriter(10)
        writer.write_ascii("RIFF")
        assert writer.offset == 4
        writer.write_uint32(7)
        assert writer.offset == 8
        writer.write_uint16(1)
        assert writer.offset == 10
        assert writer.getvalue() == b"RIFF\x07\x00\x00\x00\x01\x00"

    def test_overrun_raises(self) -> None:
        writer: ByteWriter = ByteWriter(2)
        with pytest.raises(EncodingError):
            writer.write_uint32(1)

    def test_value_too_wide_raises(self) -> None:
        writer: ByteWriter = ByteWriter(2)
        with pytest.raises(EncodingError):
            writer.write_uint16(70000)

    def test_partially_filled_buffer_raises(self) -> None:
        writer: ByteWriter = ByteWriter(8)
        writer.write_ascii("data")
        with pytest.raises(EncodingError):
            writer.getvalue()

    def test_negative_size_raises(self) -> None:
        with pytest.raises(EncodingError):
            ByteWriter(-4)


class TestEncodeHeader:
    """Tests for the 44-byte RIFF/WAVE header."""

    def test_header_fields_mono(self) -> None:
        buffer: SampleBuffer = SampleBuffer(8000, [[0.0] * 10])
        data: bytes = encode_wav(buffer, 0, 10).data
        header: tuple = unpack_header(data)
        assert header == (
            b"RIFF", 44 + 20 - 8, b"WAVE", b"fmt ", 16, 1, 1,
            8000, 8000 * 2, 2, 16, b"data", 20,
        )

    def test_header_fields_stereo(self) -> None:
        buffer: SampleBuffer = SampleBuffer(44100, [[0.0] * 5, [0.0] * 5])
        data: bytes = encode_wav(buffer, 0, 5).data
        header: tuple = unpack_header(data)
        assert header[6] == 2                 # channels
        assert header[7] == 44100             # sample rate
        assert header[8] == 44100 * 2 * 2     # byte rate
        assert header[9] == 4                 # block align
        assert header[12] == 5 * 2 * 2        # data bytes

    @pytest.mark.parametrize("frames,channels,rate", [
        (0, 1, 8000),
        (1, 1, 22050),
        (100, 2, 44100),
        (37, 3, 48000),
    ])
    def test_sizes_match_frames_and_channels(self, frames: int, channels: int, rate: int) -> None:
        buffer: SampleBuffer = SampleBuffer(rate, [[0.1] * frames] * channels, frame_count=frames)
        data: bytes = encode_wav(buffer, 0, frames).data
        data_bytes: int = unpack_header(data)[12]
        assert data_bytes == frames * channels * 2
        assert len(data) == data_bytes + WAV_HEADER_BYTES
        assert unpack_header(data)[1] == len(data) - 8

    def test_mono_length(self) -> None:
        n: int = 1234
        buffer: SampleBuffer = SampleBuffer(16000, [np.zeros(n)])
        assert len(encode_wav(buffer, 0, n)) == 44 + n * 2


class TestEncodeSamples:
    """Tests for sample quantization and channel layout."""

    def test_mono_samples_in_frame_order(self) -> None:
        buffer: SampleBuffer = SampleBuffer(8000, [[0.0, 0.5, -0.5, 1.0]])
        data: bytes = encode_wav(buffer, 0, 4).data
        assert [sample_at(data, 44 + i * 2) for i in range(4)] == [0, 16383, -16384, 32767]

    def test_stereo_is_interleaved(self) -> None:
        left: list[float] = [0.25, -0.25, 1.0]
        right: list[float] = [-1.0, 0.5, 0.0]
        buffer: SampleBuffer = SampleBuffer(8000, [left, right])
        data: bytes = encode_wav(buffer, 0, 3).data
        for i in range(3):
            assert sample_at(data, 44 + i * 4) == quantize(left[i])
            assert sample_at(data, 44 + i * 4 + 2) == quantize(right[i])

    def test_three_channels_round_robin(self) -> None:
        buffer: SampleBuffer = SampleBuffer(8000, [[0.25] * 2, [0.5] * 2, [-0.5] * 2])
        data: bytes = encode_wav(buffer, 0, 2).data
        samples: list[int] = [sample_at(data, 44 + i * 2) for i in range(6)]
        assert samples == [8191, 16383, -16384] * 2

    def test_out_of_range_samples_are_clamped(self) -> None:
        buffer: SampleBuffer = SampleBuffer(8000, [[3.0, -3.0, float("nan"), float("inf")]])
        data: bytes = encode_wav(buffer, 0, 4).data
        assert [sample_at(data, 44 + i * 2) for i in range(4)] == [32767, -32768, 0, 32767]

    def test_sub_range_only(self) -> None:
        buffer: SampleBuffer = SampleBuffer(8000, [[0.0, 0.25, 0.5, 0.0]])
        data: bytes = encode_wav(buffer, 1, 3).data
        assert len(data) == 44 + 4
        assert [sample_at(data, 44), sample_at(data, 46)] == [8191, 16383]

    def test_short_channel_reads_as_silence(self) -> None:
        buffer: SampleBuffer = SampleBuffer(8000, [[0.5] * 4, [0.5] * 2], frame_count=4)
        data: bytes = encode_wav(buffer, 0, 4).data
        right: list[int] = [sample_at(data, 44 + i * 4 + 2) for i in range(4)]
        assert right == [16383, 16383, 0, 0]

    def test_matches_scalar_rule(self) -> None:
        rng = np.random.default_rng(7)
        values: np.ndarray = rng.uniform(-1.2, 1.2, 500).astype(np.float32)
        buffer: SampleBuffer = SampleBuffer(8000, [values])
        data: bytes = encode_wav(buffer, 0, 500).data
        expected: list[int] = [quantize(float(v)) for v in values]
        actual: list[int] = list(struct.unpack_from("<500h", data, 44))
        assert actual == expected

    def test_readable_by_soundfile(self) -> None:
        frames: int = 800
        left: np.ndarray = np.full(frames, 0.5, dtype=np.float32)
        right: np.ndarray = np.full(frames, -0.25, dtype=np.float32)
        wave: WaveFile = encode_wav(SampleBuffer(8000, [left, right]), 0, frames)
        decoded, sr = sf.read(io.BytesIO(wave.data), dtype="int16")
        assert sr == 8000
        assert decoded.shape == (frames, 2)
        assert int(decoded[0, 0]) == 16383
        assert int(decoded[0, 1]) == -8192


class TestEncodeContract:
    """Tests for range checking and the output wrapper."""

    def test_mime_type(self) -> None:
        wave: WaveFile = encode_wav(SampleBuffer(8000, [[0.0]]), 0, 1)
        assert wave.mime_type == WAV_MIME_TYPE == "audio/wav"

    def test_start_after_end_raises(self) -> None:
        with pytest.raises(FrameRangeError):
            encode_wav(SampleBuffer(8000, [[0.0] * 4]), 3, 1)

    def test_end_past_buffer_raises(self) -> None:
        with pytest.raises(FrameRangeError):
            encode_wav(SampleBuffer(8000, [[0.0] * 4]), 0, 5)

    def test_negative_start_raises(self) -> None:
        with pytest.raises(FrameRangeError):
            encode_wav(SampleBuffer(8000, [[0.0] * 4]), -1, 2)

    def test_empty_range_is_header_only(self) -> None:
        data: bytes = encode_wav(SampleBuffer(8000, [[0.5] * 4]), 2, 2).data
        assert len(data) == 44
        assert unpack_header(data)[12] == 0

    def test_does_not_mutate_buffer(self) -> None:
        buffer: SampleBuffer = SampleBuffer(8000, [[2.0, -2.0]])
        encode_wav(buffer, 0, 2)
        np.testing.assert_array_equal(buffer.channels[0], [2.0, -2.0])
