# infrastructure/storage/file_wave_sink.py
# Implementation of IWaveSink that writes to the local filesystem.

import os

from application.ports.wave_sink_port import IWaveSink
from trimmer.wav_encoder import WaveFile


class FileWaveSink(IWaveSink):
    """Write WAV bytes to a file on disk."""

    def save(self, wave_file: WaveFile, destination: str) -> str:
        with open(destination, "wb") as fh:
            fh.write(wave_file.data)
        return os.path.realpath(destination)
