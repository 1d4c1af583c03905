import logging
import os
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from application.ports.audio_decoder_port import IAudioDecoder
from application.ports.wave_sink_port import IWaveSink
from infrastructure.audio.pydub_audio_decoder import PydubAudioDecoder
from infrastructure.storage.file_wave_sink import FileWaveSink
from trimmer.analyzer import (
    SilenceFlags,
    TrimSuggestion,
    VolumeInfo,
    analyze_volume,
    detect_silence_edges,
    suggest_trim,
    waveform_envelope,
)
from trimmer.buffer import SampleBuffer
from trimmer.controller import TrimRange, TrimRangeController
from trimmer.utils import (
    EDGE_WINDOW_MS,
    MAX_SOURCE_SECONDS,
    QUIET_THRESHOLD,
    SILENCE_THRESHOLD,
    TRIM_PADDING_MS,
    format_time,
    validate_input_file,
    validate_output_path,
    validate_param_range,
)
from trimmer.wav_encoder import WaveFile, encode_wav

logger = logging.getLogger(__name__)


@dataclass
class AudioAnalysis:
    """Everything the advisory UI shows right after a file is loaded."""
    buffer: SampleBuffer
    volume: VolumeInfo
    silence: SilenceFlags
    suggestion: TrimSuggestion
    waveform: List[float] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "sampleRate": self.buffer.sample_rate,
            "channels": self.buffer.channel_count,
            "durationMs": int(self.buffer.duration_ms),
            "durationLabel": format_time(self.buffer.duration_sec),
            "volume": self.volume.to_dict(),
            "silence": self.silence.to_dict(),
            "suggestion": self.suggestion.to_dict(),
            "waveform": self.waveform,
        }


@dataclass
class TrimReport:
    """Outcome of a successful trim_to_wav run."""
    output_path: str
    trim_range: TrimRange
    volume: VolumeInfo
    silence: SilenceFlags
    size_bytes: int
    elapsed_sec: float


def load_audio(
    input_path: str,
    decoder: Optional[IAudioDecoder] = None,
    max_seconds: float = MAX_SOURCE_SECONDS,
) -> SampleBuffer:
    """Validate, decode and length-check a source file."""
    validate_input_file(input_path)
    buffer: SampleBuffer = (decoder or PydubAudioDecoder()).decode(input_path)

    # Refuse very long sources before any per-sample work
    if buffer.duration_sec > max_seconds:
        raise ValueError(
            f"Audio too long: {buffer.duration_sec:.0f}s (max {max_seconds:.0f}s).\n"
            f"    → Use a shorter audio file."
        )
    return buffer


def analyze_buffer(
    buffer: SampleBuffer,
    quiet_threshold: float = QUIET_THRESHOLD,
    silence_threshold: float = SILENCE_THRESHOLD,
    edge_window_ms: float = EDGE_WINDOW_MS,
    padding_ms: float = TRIM_PADDING_MS,
) -> AudioAnalysis:
    """Run every advisory measurement over the full buffer."""
    return AudioAnalysis(
        buffer=buffer,
        volume=analyze_volume(buffer, quiet_threshold=quiet_threshold),
        silence=detect_silence_edges(buffer, edge_window_ms, silence_threshold),
        suggestion=suggest_trim(buffer, silence_threshold, padding_ms),
        waveform=waveform_envelope(buffer),
    )


def analyze_file(
    input_path: str,
    quiet_threshold: float = QUIET_THRESHOLD,
    silence_threshold: float = SILENCE_THRESHOLD,
    decoder: Optional[IAudioDecoder] = None,
) -> AudioAnalysis:
    """Load a file and analyze it without trimming."""
    validate_param_range(quiet_threshold, "quiet_threshold", 0.0, 1.0)
    validate_param_range(silence_threshold, "silence_threshold", 0.0, 1.0)
    buffer: SampleBuffer = load_audio(input_path, decoder)
    return analyze_buffer(buffer, quiet_threshold, silence_threshold)


def trim_to_wav(
    input_path  : str,
    output_path : str,
    start_sec   : Optional[float] = None,
    end_sec     : Optional[float] = None,
    auto_trim   : bool = False,
    quiet_threshold   : float = QUIET_THRESHOLD,
    silence_threshold : float = SILENCE_THRESHOLD,
    progress_callback : Optional[Callable[[int, int, str], None]] = None,
    decoder : Optional[IAudioDecoder] = None,
    sink    : Optional[IWaveSink] = None,
) -> TrimReport:
    """
    Full pipeline: load audio → analyze → resolve range → encode → save.

    Args:
        input_path:  Source audio file (mp3/wav/flac/ogg/aac/m4a).
        output_path: Destination .wav file.
        start_sec:   Trim start in seconds (default: 0 or the suggestion).
        end_sec:     Trim end in seconds (default: end of file or the suggestion).
        auto_trim:   Start from the silence-based suggestion; explicit
                     start/end values still win.
        quiet_threshold:   Average amplitude below which audio is "too quiet".
        silence_threshold: Amplitude below which edges count as silent.
        progress_callback: Optional callback (step_idx, total_steps, step_name).
        decoder: IAudioDecoder to use instead of PydubAudioDecoder.
        sink:    IWaveSink to use instead of FileWaveSink.

    Raises:
        FileNotFoundError / ValueError: Invalid paths, parameters, or a trim
            length outside the allowed window.
        DecodingError: The input could not be decoded.
        EncodingError: The WAV could not be produced.
    """
    # ── Validate inputs ──────────────────────────────────────────
    validate_input_file(input_path)
    validate_output_path(output_path)
    validate_param_range(quiet_threshold, "quiet_threshold", 0.0, 1.0)
    validate_param_range(silence_threshold, "silence_threshold", 0.0, 1.0)

    steps: list[str] = [
        "Loading audio file",
        "Analyzing volume",
        "Resolving trim range",
        "Encoding WAV",
        "Writing output",
    ]
    total_steps = len(steps)

    def _report(step_idx: int) -> None:
        if progress_callback:
            progress_callback(step_idx, total_steps, steps[step_idx])

    start_time: float = time.time()

    # [1] Load audio
    _report(0)
    buffer: SampleBuffer = load_audio(input_path, decoder)

    # [2] Advisory analysis
    _report(1)
    volume: VolumeInfo = analyze_volume(buffer, quiet_threshold=quiet_threshold)
    silence: SilenceFlags = detect_silence_edges(buffer, silence_threshold=silence_threshold)
    if volume.is_too_quiet:
        logger.info("input is very quiet average=%.4f", volume.average)

    # [3] Range
    _report(2)
    controller: TrimRangeController = TrimRangeController.for_buffer(buffer)
    if auto_trim:
        controller.apply_suggestion(suggest_trim(buffer, silence_threshold))
    current: TrimRange = controller.range
    controller.set_range(
        current.start_ms if start_sec is None else start_sec * 1000.0,
        current.end_ms if end_sec is None else end_sec * 1000.0,
    )
    trim_range: TrimRange = controller.range

    if not controller.is_savable():
        raise ValueError(
            f"Trim length {trim_range.duration_sec:.1f}s is outside the allowed "
            f"{controller.min_sec:g}–{controller.max_sec:g}s window "
            f"({format_time(trim_range.start_ms / 1000)} → {format_time(trim_range.end_ms / 1000)}).\n"
            f"    → Adjust --start / --end so the selection is {controller.min_sec:g} to "
            f"{controller.max_sec:g} seconds long."
        )

    # [4] Encode
    _report(3)
    wave: Optional[WaveFile] = controller.save(buffer)
    if wave is None:
        raise ValueError("Trim session was closed before the audio was saved.")

    # [5] Hand off
    _report(4)
    saved_path: str = (sink or FileWaveSink()).save(wave, output_path)

    elapsed: float = time.time() - start_time
    logger.info(
        "trimmed %s → %s range=[%d, %d]ms bytes=%d",
        os.path.basename(input_path), saved_path,
        trim_range.start_ms, trim_range.end_ms, len(wave),
    )
    return TrimReport(
        output_path=saved_path,
        trim_range=trim_range,
        volume=volume,
        silence=silence,
        size_bytes=len(wave),
        elapsed_sec=elapsed,
    )


@dataclass
class ConversionReport:
    """Outcome of a successful convert_to_wav run."""
    output_path: str
    sample_rate: int
    channels: int
    duration_sec: float
    size_bytes: int
    elapsed_sec: float


def convert_to_wav(
    input_path  : str,
    output_path : str,
    progress_callback : Optional[Callable[[int, int, str], None]] = None,
    decoder : Optional[IAudioDecoder] = None,
    sink    : Optional[IWaveSink] = None,
) -> ConversionReport:
    """
    Re-encode a whole file as 16-bit PCM WAV.

    No trim window applies here: every frame is kept, at the source's own
    sample rate and channel count.

    Raises:
        FileNotFoundError / ValueError: Invalid paths or a source that is too long.
        DecodingError: The input could not be decoded.
        EncodingError: The WAV could not be produced.
    """
    validate_input_file(input_path)
    validate_output_path(output_path)

    steps: list[str] = ["Loading audio file", "Encoding WAV", "Writing output"]
    total_steps = len(steps)

    def _report(step_idx: int) -> None:
        if progress_callback:
            progress_callback(step_idx, total_steps, steps[step_idx])

    start_time: float = time.time()

    _report(0)
    buffer: SampleBuffer = load_audio(input_path, decoder)

    _report(1)
    wave: WaveFile = encode_wav(buffer, 0, buffer.frame_count)

    _report(2)
    saved_path: str = (sink or FileWaveSink()).save(wave, output_path)

    logger.info(
        "converted %s → %s frames=%d bytes=%d",
        os.path.basename(input_path), saved_path, buffer.frame_count, len(wave),
    )
    return ConversionReport(
        output_path=saved_path,
        sample_rate=buffer.sample_rate,
        channels=buffer.channel_count,
        duration_sec=buffer.duration_sec,
        size_bytes=len(wave),
        elapsed_sec=time.time() - start_time,
    )
