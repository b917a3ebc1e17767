"""
RAPID Dispatch Console - Audio Package

- codec: s16le PCM / base64 decoding into normalized float buffers
- playback: dispatcher voice output devices
"""

from .codec import decode_base64_audio, decode_pcm16, encode_base64_audio, encode_pcm16
from .playback import AudioOutput, DummyAudioOutput, SoundDeviceAudioOutput

__all__ = [
    "decode_base64_audio",
    "decode_pcm16",
    "encode_base64_audio",
    "encode_pcm16",
    "AudioOutput",
    "DummyAudioOutput",
    "SoundDeviceAudioOutput",
]
