# application/ports/wave_sink_port.py
# Port interface for the collaborator that receives a finished WAV file.

from abc import ABC, abstractmethod

from trimmer.wav_encoder import WaveFile


class IWaveSink(ABC):
    """Abstract base class for WAV persistence / upload targets."""

    @abstractmethod
    def save(self, wave_file: WaveFile, destination: str) -> str:
        """
        Persist the encoded bytes.

        Args:
            wave_file:   Encoded WAV produced by the encoder.
            destination: Target location (path, key, ...).

        Returns:
            Resolved location the file was written to.
        """
        ...
