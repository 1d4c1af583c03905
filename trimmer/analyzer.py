# trimmer/analyzer.py
# Volume and silence measurements used for advisory warnings only.
# Nothing here changes the buffer or forces a trim.

from dataclasses import dataclass
from typing import List, Optional

import numpy as np

from trimmer.buffer import SampleBuffer
from trimmer.utils import (
    EDGE_WINDOW_MS,
    MIN_TRIM_CUT_MS,
    QUIET_THRESHOLD,
    SILENCE_THRESHOLD,
    TRIM_PADDING_MS,
    WAVEFORM_POINTS,
    round_half_up,
)

# Shortest span a suggestion may collapse to
MIN_SUGGESTED_SPAN_MS: int = 100


@dataclass(frozen=True)
class VolumeInfo:
    average: float
    is_too_quiet: bool

    def to_dict(self) -> dict:
        return {"average": self.average, "isTooQuiet": self.is_too_quiet}


@dataclass(frozen=True)
class SilenceFlags:
    leading: bool
    trailing: bool

    @property
    def any(self) -> bool:
        return self.leading or self.trailing

    def to_dict(self) -> dict:
        return {"leading": self.leading, "trailing": self.trailing}


@dataclass(frozen=True)
class TrimSuggestion:
    """Non-silent span of a buffer, padded on both sides."""
    start_ms: int
    end_ms: int
    duration_ms: int

    @property
    def needs_trimming(self) -> bool:
        """True when the suggestion would cut more than MIN_TRIM_CUT_MS in total."""
        cut_ms: int = self.start_ms + (self.duration_ms - self.end_ms)
        return cut_ms > MIN_TRIM_CUT_MS

    def to_dict(self) -> dict:
        return {
            "startMs": self.start_ms,
            "endMs": self.end_ms,
            "durationMs": self.duration_ms,
            "needsTrimming": self.needs_trimming,
        }


def analyze_volume(
    buffer: SampleBuffer,
    start_frame: int = 0,
    end_frame: Optional[int] = None,
    quiet_threshold: float = QUIET_THRESHOLD,
) -> VolumeInfo:
    """
    Mean absolute amplitude over every channel and frame in [start, end).

    Args:
        buffer:          Source audio.
        start_frame:     First frame inspected.
        end_frame:       One past the last frame (default: end of buffer).
        quiet_threshold: Averages below this are flagged too quiet.

    Raises:
        FrameRangeError: The range is outside the buffer.
    """
    if end_frame is None:
        end_frame = buffer.frame_count
    buffer.check_frame_range(start_frame, end_frame)

    num_frames: int = end_frame - start_frame
    if num_frames == 0:
        return VolumeInfo(average=0.0, is_too_quiet=True)

    total: float = 0.0
    for c in range(buffer.channel_count):
        block: np.ndarray = buffer.channel_slice(c, start_frame, end_frame)
        total += float(np.sum(np.abs(block), dtype=np.float64))

    average: float = total / (num_frames * buffer.channel_count)
    return VolumeInfo(average=average, is_too_quiet=average < quiet_threshold)


def _ms_to_frames(ms: float, sample_rate: int) -> int:
    return round_half_up(ms / 1000.0 * sample_rate)


def detect_silence_edges(
    buffer: SampleBuffer,
    window_ms: float = EDGE_WINDOW_MS,
    silence_threshold: float = SILENCE_THRESHOLD,
) -> SilenceFlags:
    """
    Flag whether the first / last ``window_ms`` of the full buffer are silent.

    The window is clipped to the buffer length, so a short buffer is judged
    on all of its frames.
    """
    window: int = min(buffer.frame_count, _ms_to_frames(window_ms, buffer.sample_rate))
    end: int = buffer.frame_count

    leading: VolumeInfo = analyze_volume(buffer, 0, window, silence_threshold)
    trailing: VolumeInfo = analyze_volume(buffer, end - window, end, silence_threshold)
    return SilenceFlags(leading=leading.is_too_quiet, trailing=trailing.is_too_quiet)


def _peak_envelope(buffer: SampleBuffer) -> np.ndarray:
    """Per-frame peak absolute amplitude across channels."""
    peaks: np.ndarray = np.zeros(buffer.frame_count, dtype=np.float32)
    for c in range(buffer.channel_count):
        np.maximum(peaks, np.abs(buffer.channel_slice(c, 0, buffer.frame_count)), out=peaks)
    return peaks


def suggest_trim(
    buffer: SampleBuffer,
    threshold: float = SILENCE_THRESHOLD,
    padding_ms: float = TRIM_PADDING_MS,
) -> TrimSuggestion:
    """
    Suggest a trim that drops leading and trailing silence.

    Keeps ``padding_ms`` of audio before the first and after the last frame
    louder than ``threshold``. Returns the whole buffer when no frame is.
    """
    duration_ms: int = int(buffer.duration_ms)
    loud: np.ndarray = np.flatnonzero(_peak_envelope(buffer) > threshold)
    if loud.size == 0:
        return TrimSuggestion(start_ms=0, end_ms=duration_ms, duration_ms=duration_ms)

    pad: int = _ms_to_frames(padding_ms, buffer.sample_rate)
    start_frame: int = max(0, int(loud[0]) - pad)
    end_frame: int = min(buffer.frame_count - 1, int(loud[-1]) + pad)

    start_ms: int = min(round_half_up(start_frame * 1000.0 / buffer.sample_rate), duration_ms)
    end_ms: int = round_half_up(end_frame * 1000.0 / buffer.sample_rate)
    end_ms = min(max(end_ms, start_ms + MIN_SUGGESTED_SPAN_MS), duration_ms)
    return TrimSuggestion(start_ms=start_ms, end_ms=end_ms, duration_ms=duration_ms)


def waveform_envelope(buffer: SampleBuffer, points: int = WAVEFORM_POINTS) -> List[float]:
    """
    Block-averaged amplitude of the first channel, scaled to a peak of 1.0.

    Returns at most ``points`` values; an all-silent buffer stays all zeros.
    """
    if buffer.frame_count == 0 or points <= 0:
        return []
    data: np.ndarray = np.abs(buffer.channel_slice(0, 0, buffer.frame_count))
    blocks: list[np.ndarray] = np.array_split(data, min(points, buffer.frame_count))
    means: np.ndarray = np.array([float(np.mean(b)) for b in blocks])

    peak: float = float(np.max(means))
    if peak > 0:
        means = means / peak
    return [float(v) for v in means]
