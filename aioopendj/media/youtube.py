"""Look up video metadata with the YouTube Data API."""

from __future__ import annotations

import logging
import re
from datetime import timedelta
from types import TracebackType
from urllib.parse import parse_qs, urlparse

from aiohttp import ClientSession, ClientTimeout

from aioopendj.errors import MediaNotFoundError
from aioopendj.models.core import Media

logger = logging.getLogger(__name__)

YOUTUBE_API_URL = "https://www.googleapis.com/youtube/v3/videos"
YOUTUBE_WATCH_URL = "https://www.youtube.com/watch?v="

_ISO8601_DURATION = re.compile(
    r"^P(?:(?P<days>\d+)D)?"
    r"(?:T(?:(?P<hours>\d+)H)?(?:(?P<minutes>\d+)M)?(?:(?P<seconds>\d+(?:\.\d+)?)S)?)?$"
)
_VIDEO_ID = re.compile(r"^[A-Za-z0-9_-]{11}$")


def parse_iso8601_duration(value: str) -> timedelta:
    """
    Parse an ISO 8601 duration as returned by the API, e.g. "PT4M13S".

    Raises:
        ValueError: If the value isn't a day/time duration.
    """
    match = _ISO8601_DURATION.match(value)
    if match is None or value in ("P", "PT"):
        raise ValueError(f"invalid ISO 8601 duration: {value!r}")
    parts = {name: float(number) for name, number in match.groupdict().items() if number}
    return timedelta(**parts)


def video_id_from_url(url: str) -> str | None:
    """Extract the video id from a watch, short, embed or youtu.be URL."""
    if _VIDEO_ID.match(url):
        return url
    parsed = urlparse(url)
    host = (parsed.hostname or "").removeprefix("www.").removeprefix("m.")
    candidate: str | None = None
    if host == "youtu.be":
        candidate = parsed.path.lstrip("/").split("/")[0]
    elif host in ("youtube.com", "music.youtube.com"):
        if parsed.path == "/watch":
            candidate = parse_qs(parsed.query).get("v", [None])[0]
        else:
            segments = parsed.path.strip("/").split("/")
            if len(segments) >= 2 and segments[0] in ("shorts", "embed", "live", "v"):
                candidate = segments[1]
    if candidate and _VIDEO_ID.match(candidate):
        return candidate
    return None


class YouTubeMetadataClient:
    """Fetch titles and durations of YouTube videos."""

    _client_session: ClientSession
    _owns_session: bool

    def __init__(
        self,
        api_key: str,
        client_session: ClientSession | None = None,
        *,
        api_url: str = YOUTUBE_API_URL,
    ) -> None:
        """
        Initialize the client.

        Args:
            api_key: YouTube Data API key.
            client_session: Optional ClientSession for the API requests.
                If None, a new session is created and closed by close().
            api_url: Videos endpoint, overridable for tests.
        """
        self._api_key = api_key
        self._api_url = api_url
        if client_session is None:
            self._client_session = ClientSession(timeout=ClientTimeout(total=30))
            self._owns_session = True
        else:
            self._client_session = client_session
            self._owns_session = False

    async def get_video(self, video_id: str) -> Media:
        """
        Return the metadata of a video.

        Raises:
            MediaNotFoundError: If no video with that id exists.
            ClientResponseError: If the API responds with an error status.
        """
        params = {"part": "id,snippet,contentDetails", "id": video_id, "key": self._api_key}
        logger.debug("Fetching metadata for video %s", video_id)
        async with self._client_session.get(self._api_url, params=params) as response:
            response.raise_for_status()
            body = await response.json()
        items = body.get("items") or []
        if not items:
            raise MediaNotFoundError(f"video {video_id} not found")
        item = items[0]
        duration = item.get("contentDetails", {}).get("duration")
        return Media(
            title=item.get("snippet", {}).get("title", ""),
            url=YOUTUBE_WATCH_URL + item.get("id", video_id),
            duration=parse_iso8601_duration(duration) if duration else timedelta(0),
        )

    async def describe(self, url: str) -> Media:
        """
        Return the metadata of the video a URL points to.

        Raises:
            MediaNotFoundError: If the URL isn't a YouTube video or the video doesn't exist.
        """
        video_id = video_id_from_url(url)
        if video_id is None:
            raise MediaNotFoundError(f"not a YouTube video URL: {url}")
        return await self.get_video(video_id)

    async def close(self) -> None:
        """Close the HTTP session if this client created it."""
        if self._owns_session and not self._client_session.closed:
            await self._client_session.close()

    async def __aenter__(self) -> YouTubeMetadataClient:
        """Enter the async context."""
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        """Close the client on exit."""
        await self.close()
