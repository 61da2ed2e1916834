"""Skip-segment client tests with an in-memory session."""

import asyncio
import json
from typing import Any

import aiohttp
import pytest

from fintube_cli.api.sponsorblock import SegmentFetcher, decode_segments
from fintube_cli.exceptions import ParseError, RemoteServiceError
from fintube_cli.models.job import Segment

URL = "https://sponsor.example/api/skipSegments"

_NO_BODY = object()


class FakeResponse:
    def __init__(self, status: int, payload: Any = _NO_BODY):
        self.status = status
        self._payload = payload

    async def __aenter__(self) -> "FakeResponse":
        return self

    async def __aexit__(self, *exc_info) -> None:
        return None

    async def json(self, content_type: Any = "application/json") -> Any:
        if self._payload is _NO_BODY:
            raise ValueError("Expecting value: line 1 column 1 (char 0)")
        return self._payload


class FakeSession:
    def __init__(
        self, response: FakeResponse | None = None, error: Exception | None = None
    ):
        self.response = response
        self.error = error
        self.requests: list[tuple[str, dict]] = []

    def get(self, url: str, params: dict | None = None) -> FakeResponse:
        self.requests.append((url, dict(params or {})))
        if self.error is not None:
            raise self.error
        return self.response


def fetch(session: FakeSession, content_id: str = "abcdefghijk"):
    fetcher = SegmentFetcher(URL, timeout=5, session=session)
    return asyncio.run(fetcher.fetch(content_id))


class TestDecodeSegments:
    def test_decodes_segments(self) -> None:
        payload = [
            {"segment": [0, 12.5], "UUID": "x", "category": "music_offtopic"},
            {"segment": [200.25, 215], "votes": 3},
        ]

        assert decode_segments(payload) == [Segment(0.0, 12.5), Segment(200.25, 215.0)]

    def test_field_names_are_case_insensitive(self) -> None:
        assert decode_segments([{"Segment": [1, 2]}]) == [Segment(1.0, 2.0)]

    def test_empty_list(self) -> None:
        assert decode_segments([]) == []

    @pytest.mark.parametrize(
        "payload",
        [
            {"segment": [1, 2]},
            "oops",
            [{"category": "music_offtopic"}],
            [{"segment": [1]}],
            [{"segment": [1, 2, 3]}],
            [{"segment": ["1", 2]}],
            [{"segment": [True, 2]}],
            [{"segment": [5, 2]}],
            [{"segment": [-5, 3]}],
            json.loads('[{"segment": [NaN, 5]}]'),
            json.loads('[{"segment": [0, Infinity]}]'),
            [[1, 2]],
        ],
    )
    def test_malformed_payloads(self, payload: Any) -> None:
        with pytest.raises(ParseError):
            decode_segments(payload)


class TestSegmentFetcher:
    def test_fetch_segments(self) -> None:
        session = FakeSession(FakeResponse(200, [{"segment": [5, 10]}]))

        assert fetch(session) == [Segment(5.0, 10.0)]
        assert session.requests == [
            (URL, {"videoID": "abcdefghijk", "category": "music_offtopic"})
        ]

    def test_not_found_means_no_segments(self) -> None:
        assert fetch(FakeSession(FakeResponse(404))) is None

    def test_any_other_status_means_no_segments(self) -> None:
        assert fetch(FakeSession(FakeResponse(500))) is None

    def test_invalid_json(self) -> None:
        with pytest.raises(ParseError, match="not valid JSON"):
            fetch(FakeSession(FakeResponse(200)))

    def test_malformed_body(self) -> None:
        with pytest.raises(ParseError):
            fetch(FakeSession(FakeResponse(200, {"error": "nope"})))

    def test_connection_error(self) -> None:
        session = FakeSession(error=aiohttp.ClientConnectionError("refused"))

        with pytest.raises(RemoteServiceError, match="unreachable"):
            fetch(session)

    def test_timeout(self) -> None:
        session = FakeSession(error=asyncio.TimeoutError())

        with pytest.raises(RemoteServiceError):
            fetch(session)
