import math
import os

# Supported formats
SUPPORTED_INPUT_FORMATS: set[str] = {".mp3", ".wav", ".flac", ".ogg", ".aac", ".m4a"}
SUPPORTED_OUTPUT_FORMATS: set[str] = {".wav"}

# libsndfile reads these without going through ffmpeg
SOUNDFILE_NATIVE_FORMATS: set[str] = {".wav", ".flac", ".ogg"}

# Trim window accepted for saving, in seconds
MIN_TRIM_SECONDS: float = 8.0
MAX_TRIM_SECONDS: float = 40.0

# Longest source file the tools will decode
MAX_SOURCE_SECONDS: float = 600.0

# Volume analysis, all amplitudes as a fraction of full scale
QUIET_THRESHOLD: float = 0.02
SILENCE_THRESHOLD: float = 0.01
EDGE_WINDOW_MS: int = 500
TRIM_PADDING_MS: int = 200
MIN_TRIM_CUT_MS: int = 500
WAVEFORM_POINTS: int = 200

DEFAULT_PARAMS: dict[str, float] = {
    "quiet_threshold": QUIET_THRESHOLD,
    "silence_threshold": SILENCE_THRESHOLD,
    "edge_window_ms": EDGE_WINDOW_MS,
    "padding_ms": TRIM_PADDING_MS,
}


def format_time(seconds: float) -> str:
    """
    Render seconds as zero-padded MM:SS.

    Minutes are not wrapped into hours: 3600 → "60:00".
    """
    minutes: int = math.floor(seconds / 60)
    secs: int = math.floor(seconds % 60)
    return f"{minutes:02d}:{secs:02d}"


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves going up (2.5 → 3, -2.5 → -2)."""
    return int(math.floor(value + 0.5))


# Validation helpers
def validate_input_file(path: str) -> None:
    """Raise FileNotFoundError / ValueError if the input path is invalid."""
    if not os.path.exists(path):
        raise FileNotFoundError(
            f"Input file not found: '{path}'.\n" f"    → Check the path and try again."
        )
    if not os.path.isfile(path):
        raise ValueError(
            f"Input path is not a file: '{path}'.\n"
            f"    → Provide a path to an audio file, not a directory."
        )

    ext: str = os.path.splitext(path)[1].lower()
    if ext not in SUPPORTED_INPUT_FORMATS:
        raise ValueError(
            f"Unsupported input format: '{ext}'.\n"
            f"    Supported: {', '.join(sorted(SUPPORTED_INPUT_FORMATS))}\n"
            f"    → Example: python main.py voice.mp3 voice_trimmed.wav --start 2 --end 30"
        )


def validate_output_path(path: str) -> None:
    """Raise ValueError / FileNotFoundError if the output path is invalid."""
    ext: str = os.path.splitext(path)[1].lower()
    if ext not in SUPPORTED_OUTPUT_FORMATS:
        raise ValueError(
            f"Unsupported output format: '{ext}'.\n"
            f"    Trimmed audio is always written as 16-bit PCM WAV.\n"
            f"    → Example: python main.py voice.mp3 voice_trimmed.wav"
        )

    output_dir: str = os.path.dirname(os.path.abspath(path))
    if not os.path.exists(output_dir):
        raise FileNotFoundError(
            f"Output directory does not exist: '{output_dir}'.\n"
            f"    → Create the directory first, or choose an existing path."
        )


def validate_param_range(
    value: float, name: str, min_val: float, max_val: float
) -> None:
    """Raise ValueError if a float parameter is out of its valid range."""
    if not (min_val <= value <= max_val):
        raise ValueError(
            f"Parameter '{name}' must be between {min_val} and {max_val}. Got: {value}.\n"
            f"    → Adjust the value to be within the valid range."
        )

# Path helpers

def get_output_path(input_path: str, suffix: str = "_trimmed") -> str:
    """
    Auto-generate a WAV output path from an input path.

    Example: voice.mp3  →  voice_trimmed.wav
    Example: take2.wav, suffix='_cut'  →  take2_cut.wav
    """
    base: str
    base, _ = os.path.splitext(input_path)
    return f"{base}{suffix}.wav"
