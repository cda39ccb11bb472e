"""External media tools used by the Dj: resolver, transcoder, output transport."""

from .resolver import MediaResolver, YtDlpResolver
from .transcoder import FFmpegTranscoder, Transcoder
from .transport import FFmpegRtmpTransport, OutputTransport
from .youtube import YouTubeMetadataClient, parse_iso8601_duration, video_id_from_url

__all__ = [
    "FFmpegRtmpTransport",
    "FFmpegTranscoder",
    "MediaResolver",
    "OutputTransport",
    "Transcoder",
    "YouTubeMetadataClient",
    "YtDlpResolver",
    "parse_iso8601_duration",
    "video_id_from_url",
]
