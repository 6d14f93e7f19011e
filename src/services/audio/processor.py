"""Audio processing utilities for PCM data.

Converts raw PCM bytes to numpy arrays, measures signal level, and
encodes/decodes compressed containers through libsndfile.
"""

import io

import numpy as np
import soundfile as sf


class AudioProcessor:
    """Handles PCM audio data conversion and analysis.

    Provides utilities for converting raw PCM bytes to numpy arrays,
    encoding them into a container format, and measuring RMS energy.
    """

    def __init__(
        self,
        sample_rate: int = 16000,
        sample_width: int = 2,
        channels: int = 1,
    ) -> None:
        """Initialize the audio processor.

        Args:
            sample_rate: Audio sample rate in Hz (default: 16 kHz).
            sample_width: Bytes per sample (2 = 16-bit signed PCM).
            channels: Number of audio channels (1 = mono).
        """
        self.sample_rate = sample_rate
        self.sample_width = sample_width
        self.channels = channels

    def pcm_to_ndarray(self, pcm_data: bytes) -> np.ndarray:
        """Convert raw PCM bytes (16-bit signed) to float32 numpy array.

        Args:
            pcm_data: Raw PCM bytes (16-bit, mono).

        Returns:
            Float32 numpy array normalized to [-1.0, 1.0].

        Raises:
            ValueError: If data length is not aligned to sample frame size.
        """
        frame_size = self.sample_width * self.channels
        if len(pcm_data) % frame_size != 0:
            raise ValueError(
                f"PCM data length ({len(pcm_data)}) is not aligned to frame size ({frame_size})"
            )
        # Convert 16-bit signed integers to float32 in [-1.0, 1.0] range
        return np.frombuffer(pcm_data, dtype=np.int16).astype(np.float32) / 32768.0

    def encode(self, pcm_data: bytes, container: str, subtype: str) -> bytes:
        """Encode raw PCM bytes into a libsndfile container held in memory.

        Args:
            pcm_data: Raw PCM bytes (16-bit).
            container: libsndfile major format, e.g. "OGG" or "WAV".
            subtype: libsndfile subtype, e.g. "OPUS" or "PCM_16".

        Raises:
            ValueError: If pcm_data is empty.
        """
        if not pcm_data:
            raise ValueError("Cannot encode empty PCM data")
        samples = np.frombuffer(pcm_data, dtype=np.int16)
        if self.channels > 1:
            samples = samples.reshape(-1, self.channels)
        out = io.BytesIO()
        sf.write(out, samples, self.sample_rate, format=container, subtype=subtype)
        return out.getvalue()

    @staticmethod
    def decode(data: bytes) -> tuple[np.ndarray, int]:
        """Decode an encoded audio file (MP3, WAV, OGG, ...) to float32 samples."""
        samples, sample_rate = sf.read(io.BytesIO(data), dtype="float32")
        return samples, sample_rate

    @staticmethod
    def rms(audio: np.ndarray) -> float:
        """Root mean square energy of a float32 signal (0.0 for empty input)."""
        if len(audio) == 0:
            return 0.0
        return float(np.sqrt(np.mean(audio**2)))

    def is_silent(self, audio: np.ndarray, threshold: float = 0.01) -> bool:
        """Check if an audio segment is silence based on RMS energy.

        Args:
            audio: Float32 numpy array of audio samples.
            threshold: RMS energy below this value is considered silence.

        Returns:
            True if the audio is silence.
        """
        return self.rms(audio) < threshold
