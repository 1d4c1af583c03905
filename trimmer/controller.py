# trimmer/controller.py
# Owns the user-selected trim window and the save gate for one session.

import logging
import math
from dataclasses import dataclass
from enum import Enum
from threading import Lock
from typing import Callable, Optional, Tuple

from trimmer.analyzer import TrimSuggestion
from trimmer.buffer import SampleBuffer
from trimmer.errors import EncodingError, FrameRangeError
from trimmer.utils import MAX_TRIM_SECONDS, MIN_TRIM_SECONDS, round_half_up
from trimmer.wav_encoder import WaveFile, encode_wav

logger = logging.getLogger(__name__)

Encoder = Callable[[SampleBuffer, int, int], WaveFile]


class TrimState(str, Enum):
    EDITABLE = "editable"
    SAVING = "saving"
    CLOSED = "closed"


@dataclass(frozen=True)
class TrimRange:
    start_ms: int
    end_ms: int

    @property
    def duration_sec(self) -> float:
        return (self.end_ms - self.start_ms) / 1000.0


class TrimRangeController:
    """
    Trim window plus the Editable → Saving → Closed session lifecycle.

    The range may be dragged anywhere inside the source (out-of-bound values
    are clamped), but a save is only allowed while the selection is between
    ``min_sec`` and ``max_sec`` long and no other save is in flight.
    """

    def __init__(
        self,
        duration_ms: float,
        frame_count: Optional[int] = None,
        min_sec: float = MIN_TRIM_SECONDS,
        max_sec: float = MAX_TRIM_SECONDS,
    ) -> None:
        self.duration_ms: int = max(0, int(math.floor(duration_ms)))
        self.frame_count: Optional[int] = frame_count
        self.min_sec: float = min_sec
        self.max_sec: float = max_sec
        self._range: Optional[TrimRange] = TrimRange(0, self.duration_ms)
        self._state: TrimState = TrimState.EDITABLE
        self._lock: Lock = Lock()

    @classmethod
    def for_buffer(cls, buffer: SampleBuffer, **kwargs) -> "TrimRangeController":
        return cls(buffer.duration_ms, frame_count=buffer.frame_count, **kwargs)

    @property
    def state(self) -> TrimState:
        return self._state

    @property
    def range(self) -> Optional[TrimRange]:
        """Current selection; None once the session has closed."""
        return self._range

    def set_range(self, start_ms: float, end_ms: float) -> Optional[TrimRange]:
        """
        Clamp and store a new selection. Never raises.

        Both bounds are clamped to [0, duration_ms] and start is pulled down
        to end when it passes it. Ignored unless the session is editable.
        """
        with self._lock:
            if self._state is not TrimState.EDITABLE:
                logger.debug("set_range ignored in state=%s", self._state.value)
                return self._range
            start: int = self._clamp_ms(start_ms, self._range.start_ms)
            end: int = self._clamp_ms(end_ms, self._range.end_ms)
            start = min(start, end)
            self._range = TrimRange(start, end)
            return self._range

    def _clamp_ms(self, value: float, fallback: int) -> int:
        # NaN keeps the current bound; infinities clamp like any other value
        if math.isnan(value):
            return fallback
        return round_half_up(min(max(value, 0.0), float(self.duration_ms)))

    def apply_suggestion(self, suggestion: TrimSuggestion) -> Optional[TrimRange]:
        return self.set_range(suggestion.start_ms, suggestion.end_ms)

    def _range_savable(self) -> bool:
        if self._range is None:
            return False
        return self.min_sec <= self._range.duration_sec <= self.max_sec

    def is_savable(self) -> bool:
        """True iff the session is editable and the selection length is allowed."""
        return self._state is TrimState.EDITABLE and self._range_savable()

    def to_frame_range(self, sample_rate: int) -> Tuple[int, int]:
        """Convert the millisecond bounds to [start_frame, end_frame)."""
        selected: Optional[TrimRange] = self._range
        if selected is None:
            raise FrameRangeError("Trim session is closed; no range to convert.")
        return self._frames_for(selected, sample_rate)

    def _frames_for(self, selected: TrimRange, sample_rate: int) -> Tuple[int, int]:
        upper: int = (
            self.frame_count
            if self.frame_count is not None
            else round_half_up(self.duration_ms / 1000.0 * sample_rate)
        )
        start: int = round_half_up(selected.start_ms / 1000.0 * sample_rate)
        end: int = round_half_up(selected.end_ms / 1000.0 * sample_rate)
        # duration_ms is floored, so a selection reaching it covers the tail
        if selected.end_ms >= self.duration_ms:
            end = upper
        return min(max(start, 0), upper), min(max(end, 0), upper)

    def _enter_saving(self) -> bool:
        # Caller holds the lock
        if self._state is not TrimState.EDITABLE or not self._range_savable():
            return False
        self._state = TrimState.SAVING
        return True

    def begin_save(self) -> bool:
        """Enter SAVING if allowed. Returns False when the save must stay disabled."""
        with self._lock:
            return self._enter_saving()

    def save(self, buffer: SampleBuffer, encoder: Encoder = encode_wav) -> Optional[WaveFile]:
        """
        Encode the current selection of ``buffer``.

        Returns the WaveFile and closes the session on success. Returns None
        without encoding when saving is disabled, and None after encoding when
        the session was cancelled meanwhile. Encoder failures put the session
        back into EDITABLE with the selection intact and are re-raised, unless
        the session was cancelled first.
        """
        with self._lock:
            if not self._enter_saving():
                logger.debug("save rejected state=%s range=%s", self._state.value, self._range)
                return None
            # Snapshot under the lock; cancel() may clear the range at any time
            start_frame, end_frame = self._frames_for(self._range, buffer.sample_rate)

        try:
            wave: WaveFile = encoder(buffer, start_frame, end_frame)
        except (EncodingError, FrameRangeError):
            with self._lock:
                if self._state is TrimState.CLOSED:
                    logger.info("encode failed after cancel; nothing to report")
                    return None
                self._state = TrimState.EDITABLE
            logger.warning("encode failed frames=[%d, %d)", start_frame, end_frame)
            raise

        with self._lock:
            if self._state is TrimState.CLOSED:
                logger.info("session cancelled during encode; result discarded")
                return None
            self._state = TrimState.CLOSED
            self._range = None
        return wave

    def cancel(self) -> None:
        """Close the session. An encode already running finishes but is dropped."""
        with self._lock:
            self._state = TrimState.CLOSED
            self._range = None
