"""
Client for the SponsorBlock skip-segment API, used to find the non-music
sections of a music video.
"""

import asyncio
import logging
import math
from typing import Any, List, Optional

import aiohttp
from pydantic import BaseModel, TypeAdapter, ValidationError, field_validator
from rich.markup import escape

from fintube_cli.exceptions import ParseError, RemoteServiceError
from fintube_cli.models.config import DEFAULT_SPONSORBLOCK_URL
from fintube_cli.models.job import Segment

log = logging.getLogger(__name__)

SEGMENT_CATEGORY = "music_offtopic"


class SkipSegmentPayload(BaseModel):
    """One element of the skipSegments response. Other fields are ignored."""

    segment: tuple[float, float]

    @field_validator("segment", mode="before")
    @classmethod
    def validate_segment(cls, v: Any) -> tuple[float, float]:
        if not isinstance(v, (list, tuple)) or len(v) != 2:
            raise ValueError(f"segment must be a [start, end] pair, got: {v!r}")
        if not all(
            isinstance(x, (int, float)) and not isinstance(x, bool) for x in v
        ):
            raise ValueError(f"segment bounds must be numbers, got: {v!r}")
        start, end = float(v[0]), float(v[1])
        if not (math.isfinite(start) and math.isfinite(end)):
            raise ValueError(f"segment bounds must be finite, got: {v!r}")
        if start < 0:
            raise ValueError(f"segment start cannot be negative, got: {v!r}")
        if start > end:
            raise ValueError(f"segment start {start} is after its end {end}")
        return start, end


_payload_adapter = TypeAdapter(List[SkipSegmentPayload])


def decode_segments(payload: Any) -> list[Segment]:
    """
    Decodes a skipSegments response body into discard segments.

    Field names are matched case-insensitively.

    Raises:
        ParseError: If the payload is not a list of objects that each carry a
            finite, non-negative [start, end] pair.
    """
    if not isinstance(payload, list):
        raise ParseError(
            f"Malformed skip-segment payload: expected a list, got {type(payload).__name__}"
        )

    normalized = []
    for index, item in enumerate(payload):
        if not isinstance(item, dict):
            raise ParseError(
                f"Malformed skip-segment payload: element {index} is not an object"
            )
        normalized.append({str(key).lower(): value for key, value in item.items()})

    try:
        items = _payload_adapter.validate_python(normalized)
    except ValidationError as e:
        raise ParseError(f"Malformed skip-segment payload:\n{e}") from e

    return [Segment(*item.segment) for item in items]


class SegmentFetcher:
    """Fetches the sections to discard for one content id."""

    def __init__(
        self,
        base_url: str = DEFAULT_SPONSORBLOCK_URL,
        timeout: float = 300.0,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        """
        Args:
            base_url: The skipSegments endpoint.
            timeout: Total request timeout in seconds.
            session: An existing session to reuse. When omitted, each fetch
                opens and closes its own session.
        """
        self.base_url = base_url
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._session = session

    async def fetch(self, content_id: str) -> Optional[list[Segment]]:
        """
        Requests the non-music segments of a content id.

        Returns:
            The discard segments, or None when the service answers with any
            status other than 200 (typically 404: nothing submitted).

        Raises:
            RemoteServiceError: If the service cannot be reached.
            ParseError: If a 200 response carries a malformed body.
        """
        try:
            if self._session is not None:
                return await self._fetch_with(self._session, content_id)
            async with aiohttp.ClientSession(timeout=self._timeout) as session:
                return await self._fetch_with(session, content_id)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            log.debug(
                f"Skip-segment request for {escape(content_id)} failed: "
                f"{escape(repr(e))}"
            )
            raise RemoteServiceError(
                f"Skip-segment service unreachable: {str(e) or type(e).__name__}"
            ) from e

    async def _fetch_with(
        self, session: aiohttp.ClientSession, content_id: str
    ) -> Optional[list[Segment]]:
        params = {"videoID": content_id, "category": SEGMENT_CATEGORY}
        async with session.get(self.base_url, params=params) as r:
            if r.status != 200:
                log.info(
                    f"No skip segments for {escape(content_id)} (status {r.status})."
                )
                return None
            try:
                payload = await r.json(content_type=None)
            except ValueError as e:
                raise ParseError(f"Skip-segment response is not valid JSON: {e}") from e

        segments = decode_segments(payload)
        log.debug(f"Fetched {len(segments)} skip segments for {escape(content_id)}.")
        return segments
