# application/ports/audio_decoder_port.py
# Port interface for turning an audio file into decoded samples.
# Domain layer — must not import infrastructure or adapter code.

from abc import ABC, abstractmethod

from trimmer.buffer import SampleBuffer


class IAudioDecoder(ABC):
    """Abstract base class for audio decoders."""

    @abstractmethod
    def decode(self, path: str) -> SampleBuffer:
        """
        Decode an audio file into float samples.

        Args:
            path: Source audio file.

        Returns:
            SampleBuffer with the file's native sample rate and channel count.

        Raises:
            DecodingError: The file could not be read.
        """
        ...
