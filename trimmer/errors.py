# trimmer/errors.py
# Exception taxonomy for the trim-and-encode engine.


class TrimmerError(Exception):
    """Base error for the audio trimmer."""


class FrameRangeError(TrimmerError, ValueError):
    """Raised when a frame range falls outside [0, frame_count] or start > end."""


class EncodingError(TrimmerError):
    """Raised when the WAV encoder breaks one of its own size invariants."""


class DecodingError(TrimmerError):
    """Raised when an input file cannot be decoded into samples."""
