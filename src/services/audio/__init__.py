"""
Audio module - Microphone capture, speech playback, and PCM utilities.
"""

from .capture import AudioEncoding, MicrophoneCapture, RecordingBuffer
from .playback import SpeakerPlayback
from .processor import AudioProcessor

__all__ = [
    "AudioEncoding",
    "AudioProcessor",
    "MicrophoneCapture",
    "RecordingBuffer",
    "SpeakerPlayback",
]
