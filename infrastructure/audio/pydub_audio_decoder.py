# infrastructure/audio/pydub_audio_decoder.py
# Implementation of IAudioDecoder using soundfile, with pydub/ffmpeg for
# containers libsndfile cannot open.

import logging
import os
import tempfile

import numpy as np
import soundfile as sf
from pydub import AudioSegment
from pydub.exceptions import CouldntDecodeError

from application.ports.audio_decoder_port import IAudioDecoder
from trimmer.buffer import SampleBuffer
from trimmer.errors import DecodingError
from trimmer.utils import SOUNDFILE_NATIVE_FORMATS

logger = logging.getLogger(__name__)


class PydubAudioDecoder(IAudioDecoder):
    """Decode audio files to float32 samples, keeping every channel."""

    def decode(self, path: str) -> SampleBuffer:
        ext: str = os.path.splitext(path)[1].lower()
        try:
            if ext in SOUNDFILE_NATIVE_FORMATS:
                samples, sr = self._read_native(path)
            else:
                samples, sr = self._read_via_pydub(path)
        except (RuntimeError, OSError, CouldntDecodeError) as exc:
            raise DecodingError(f"Could not decode '{os.path.basename(path)}': {exc}") from exc

        buffer: SampleBuffer = SampleBuffer.from_interleaved(samples, sr)
        logger.debug("decoded %s into %r", os.path.basename(path), buffer)
        return buffer

    def _read_native(self, path: str) -> tuple[np.ndarray, int]:
        samples: np.ndarray
        sr: int
        samples, sr = sf.read(path, dtype="float32", always_2d=True)
        return samples, sr

    def _read_via_pydub(self, path: str) -> tuple[np.ndarray, int]:
        audio_segment: AudioSegment = AudioSegment.from_file(path)

        # Export to a temp WAV so soundfile can read it as numpy
        tmp_fd: int
        tmp_path: str
        tmp_fd, tmp_path = tempfile.mkstemp(suffix=".wav")
        os.close(tmp_fd)
        try:
            audio_segment.export(tmp_path, format="wav")
            return self._read_native(tmp_path)
        finally:
            os.unlink(tmp_path)
