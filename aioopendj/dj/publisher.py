"""Consumer loop: relays the encoded stream to the endpoint."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from aioopendj.config import DjConfig

from .session import PlaybackSession

if TYPE_CHECKING:
    from aioopendj.media.transport import OutputTransport

logger = logging.getLogger(__name__)


class Publisher:
    """Forwards the session's byte channel to the output transport.

    Knows nothing about the queue. Connects after a short warm-up so the
    channel already holds data when the endpoint starts reading.
    """

    def __init__(self, transport: OutputTransport, config: DjConfig) -> None:
        """Initialize the publisher."""
        self._transport = transport
        self._config = config

    async def run(self, session: PlaybackSession) -> None:
        """Publish until the stream ends; the channel's reader side is closed on exit."""
        try:
            if self._config.publisher_warmup_seconds > 0:
                await asyncio.sleep(self._config.publisher_warmup_seconds)
            logger.info("Publishing to %s", session.endpoint)
            await self._transport.publish(session.channel, session.endpoint)
            logger.info("Stream to %s ended", session.endpoint)
        finally:
            session.channel.close_reader()
