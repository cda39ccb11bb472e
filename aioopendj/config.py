"""Configuration for the Dj and its default collaborators."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from mashumaro.config import BaseConfig
from mashumaro.mixins.orjson import DataClassORJSONMixin

TS_PACKET_SIZE = 188
"""Size of one MPEG-TS packet in bytes."""


@dataclass
class AudioEncoding(DataClassORJSONMixin):
    """Encoding parameters used for every segment written into the channel."""

    codec: str = "aac"
    sample_rate: int = 44100
    """Sample rate in Hz."""
    bitrate: str = "160k"
    channels: int = 2
    """Number of audio channels (1=mono, 2=stereo)."""
    container: str = "mpegts"
    """Container of the intermediate stream; must survive concatenation."""

    def __post_init__(self) -> None:
        """Validate the encoding parameters."""
        if self.sample_rate <= 0:
            raise ValueError("sample_rate must be positive")
        if self.channels not in (1, 2):
            raise ValueError("channels must be 1 or 2")

    @property
    def channel_layout(self) -> str:
        """Return the ffmpeg channel layout name."""
        return "stereo" if self.channels == 2 else "mono"


@dataclass
class DjConfig(DataClassORJSONMixin):
    """Timing, buffering and binary settings of a Dj."""

    silence_seconds: float = 15.0
    """Length of one gap-filling silence segment."""
    max_empty_streak: int = 4
    """Silence segments emitted for an empty queue before the session ends."""
    track_padding_seconds: float = 5.0
    """Silence appended to every track to hide startup latency of the next one."""
    publisher_warmup_seconds: float = 5.0
    """Delay before the publisher connects, so the channel has buffered data."""
    channel_max_chunks: int = 16
    """Chunks the byte channel holds before writers block."""
    read_chunk_size: int = TS_PACKET_SIZE * 64
    """Bytes read from the transcoder per chunk."""
    ytdlp_path: str = "yt-dlp"
    ffmpeg_path: str = "ffmpeg"
    audio_format: str = "bestaudio"
    """yt-dlp format selector."""
    output_format: str = "flv"
    """Container the publisher remuxes into for the endpoint."""
    encoding: AudioEncoding = field(default_factory=AudioEncoding)

    class Config(BaseConfig):
        """Config for parsing json configuration."""

        forbid_extra_keys = True

    def __post_init__(self) -> None:
        """Validate the configuration values."""
        if self.silence_seconds <= 0:
            raise ValueError("silence_seconds must be positive")
        if self.max_empty_streak < 0:
            raise ValueError("max_empty_streak must not be negative")
        if self.track_padding_seconds < 0:
            raise ValueError("track_padding_seconds must not be negative")
        if self.publisher_warmup_seconds < 0:
            raise ValueError("publisher_warmup_seconds must not be negative")
        if self.channel_max_chunks <= 0:
            raise ValueError("channel_max_chunks must be positive")
        if self.read_chunk_size <= 0:
            raise ValueError("read_chunk_size must be positive")

    @classmethod
    def from_file(cls, path: str | Path) -> DjConfig:
        """Load a configuration from a JSON file."""
        return cls.from_json(Path(path).read_bytes())
