# trimmer/buffer.py
# Read-only view of decoded audio, one float32 array per channel.

from typing import Optional, Sequence, Tuple

import numpy as np

from trimmer.errors import FrameRangeError


class SampleBuffer:
    """
    Decoded multi-channel audio.

    Channels are stored separately (not interleaved) so that each one may be
    shorter than ``frame_count``. Reads past a channel's real length return
    silence instead of failing.
    """

    def __init__(
        self,
        sample_rate: int,
        channels: Sequence[Sequence[float]],
        frame_count: Optional[int] = None,
    ) -> None:
        if int(sample_rate) != sample_rate or sample_rate <= 0:
            raise ValueError(
                f"Sample rate must be a positive integer. Got: {sample_rate}."
            )
        if len(channels) == 0:
            raise ValueError("A sample buffer needs at least one channel.")

        arrays: list[np.ndarray] = []
        for data in channels:
            arr: np.ndarray = np.array(data, dtype=np.float32).reshape(-1)
            arrays.append(arr)

        if frame_count is None:
            frame_count = max(len(arr) for arr in arrays)
        if frame_count < 0:
            raise ValueError(f"Frame count must be >= 0. Got: {frame_count}.")

        # Anything past frame_count is not part of the buffer
        trimmed: list[np.ndarray] = []
        for arr in arrays:
            view: np.ndarray = arr[:frame_count]
            view.setflags(write=False)
            trimmed.append(view)

        self.sample_rate: int = int(sample_rate)
        self.frame_count: int = int(frame_count)
        self.channels: Tuple[np.ndarray, ...] = tuple(trimmed)

    @classmethod
    def from_interleaved(cls, samples: np.ndarray, sample_rate: int) -> "SampleBuffer":
        """Build a buffer from a (num_frames, channels) or 1-D array."""
        samples = np.asarray(samples, dtype=np.float32)
        if samples.ndim == 1:
            return cls(sample_rate, [samples])
        return cls(sample_rate, [samples[:, c] for c in range(samples.shape[1])])

    @property
    def channel_count(self) -> int:
        return len(self.channels)

    @property
    def duration_sec(self) -> float:
        return self.frame_count / self.sample_rate

    @property
    def duration_ms(self) -> float:
        return self.frame_count * 1000.0 / self.sample_rate

    def sample(self, channel: int, index: int) -> float:
        """
        Return sample ``index`` of ``channel``.

        Indices inside the nominal length but past the channel's real data
        read as 0.0.
        """
        if not 0 <= channel < self.channel_count:
            raise FrameRangeError(
                f"Channel {channel} out of range (buffer has {self.channel_count})."
            )
        if not 0 <= index < self.frame_count:
            raise FrameRangeError(
                f"Frame {index} out of range [0, {self.frame_count})."
            )
        data: np.ndarray = self.channels[channel]
        if index >= len(data):
            return 0.0
        return float(data[index])

    def channel_slice(self, channel: int, start: int, end: int) -> np.ndarray:
        """Frames [start, end) of one channel, zero-filled where data is missing."""
        self.check_frame_range(start, end)
        if not 0 <= channel < self.channel_count:
            raise FrameRangeError(
                f"Channel {channel} out of range (buffer has {self.channel_count})."
            )
        data: np.ndarray = self.channels[channel]
        out: np.ndarray = np.zeros(end - start, dtype=np.float32)
        available: int = max(0, min(end, len(data)) - start)
        if available > 0:
            out[:available] = data[start:start + available]
        return out

    def check_frame_range(self, start: int, end: int) -> None:
        """Raise FrameRangeError unless 0 <= start <= end <= frame_count."""
        if not 0 <= start <= end <= self.frame_count:
            raise FrameRangeError(
                f"Invalid frame range [{start}, {end}) for a buffer of "
                f"{self.frame_count} frames."
            )

    def __repr__(self) -> str:
        return (
            f"SampleBuffer(sample_rate={self.sample_rate}, "
            f"channels={self.channel_count}, frames={self.frame_count})"
        )
