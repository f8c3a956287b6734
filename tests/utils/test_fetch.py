"""Tests for the rate-limit-aware fetch helpers."""

from __future__ import annotations

import aiohttp
import pytest
from pydantic import BaseModel

import metachan.utils.fetch as fetch_module
from metachan.exceptions import (
    UpstreamExhaustedError,
    UpstreamParseError,
    UpstreamResponseError,
    UpstreamUnavailableError,
)
from metachan.utils.fetch import backoff_delay, fetch_final_url, fetch_json


class FakeResponse:
    """Minimal stand-in for an aiohttp response."""

    def __init__(self, status: int, body: str = "", url: str = "") -> None:
        self.status = status
        self.body = body
        self.url = url

    async def text(self) -> str:
        return self.body

    async def __aenter__(self) -> FakeResponse:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        return None


class FakeSession:
    """Replays a fixed sequence of responses (or exceptions)."""

    def __init__(self, responses: list[FakeResponse | Exception]) -> None:
        self.responses = list(responses)
        self.calls: list[dict] = []

    def request(self, method, url, **kwargs):
        self.calls.append({"method": method, "url": url, **kwargs})
        result = self.responses.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


class Payload(BaseModel):
    value: int


@pytest.fixture
def recorded_sleeps(monkeypatch: pytest.MonkeyPatch) -> list[float]:
    """Capture backoff sleeps instead of waiting."""
    sleeps: list[float] = []

    async def _fake_sleep(delay: float) -> None:
        sleeps.append(delay)

    monkeypatch.setattr(fetch_module.asyncio, "sleep", _fake_sleep)
    return sleeps


def test_backoff_delay_doubles_each_attempt() -> None:
    """The delay doubles from the initial delay on every rate-limited attempt."""
    assert backoff_delay(1) == pytest.approx(0.35)
    assert backoff_delay(2) == pytest.approx(0.7)
    assert backoff_delay(3) == pytest.approx(1.4)
    assert backoff_delay(4, initial_delay=1.0) == pytest.approx(8.0)


@pytest.mark.asyncio
async def test_fetch_json_retries_rate_limits_then_succeeds(recorded_sleeps) -> None:
    """Three 429 responses are retried with growing delays before the success."""
    session = FakeSession(
        [
            FakeResponse(429),
            FakeResponse(429),
            FakeResponse(429),
            FakeResponse(200, '{"value": 7}'),
        ]
    )

    result = await fetch_json(session, "https://api.test/item", Payload)  # type: ignore[arg-type]

    assert result == Payload(value=7)
    assert len(session.calls) == 4
    assert recorded_sleeps == pytest.approx([0.35, 0.7, 1.4])


@pytest.mark.asyncio
async def test_fetch_json_exhausts_after_max_retries(recorded_sleeps) -> None:
    """A provider that keeps answering 429 raises once every attempt is used."""
    session = FakeSession([FakeResponse(429) for _ in range(3)])

    with pytest.raises(UpstreamExhaustedError):
        await fetch_json(
            session,  # type: ignore[arg-type]
            "https://api.test/item",
            Payload,
            max_retries=3,
        )

    assert len(session.calls) == 3
    assert len(recorded_sleeps) == 2


@pytest.mark.asyncio
async def test_fetch_json_does_not_retry_server_errors(recorded_sleeps) -> None:
    """Non-429 error statuses are terminal."""
    session = FakeSession([FakeResponse(500, "oops")])

    with pytest.raises(UpstreamResponseError) as exc_info:
        await fetch_json(session, "https://api.test/item", Payload)  # type: ignore[arg-type]

    assert exc_info.value.status == 500
    assert exc_info.value.url == "https://api.test/item"
    assert len(session.calls) == 1
    assert recorded_sleeps == []


@pytest.mark.asyncio
async def test_fetch_json_rejects_invalid_json() -> None:
    """A body that is not JSON raises a parse error."""
    session = FakeSession([FakeResponse(200, "<html>")])

    with pytest.raises(UpstreamParseError):
        await fetch_json(session, "https://api.test/item", Payload)  # type: ignore[arg-type]


class UndecodableResponse(FakeResponse):
    """Response whose body is not valid in its declared charset."""

    async def text(self) -> str:
        return b'{"data":"\xff\xfe"}'.decode("utf-8")


@pytest.mark.asyncio
async def test_fetch_json_rejects_undecodable_body() -> None:
    """A body that cannot be decoded raises a parse error."""
    session = FakeSession([UndecodableResponse(200)])

    with pytest.raises(UpstreamParseError):
        await fetch_json(session, "https://api.test/item", Payload)  # type: ignore[arg-type]


@pytest.mark.asyncio
async def test_fetch_json_rejects_schema_mismatch() -> None:
    """A JSON body that does not match the model raises a parse error."""
    session = FakeSession([FakeResponse(200, '{"value": "not a number"}')])

    with pytest.raises(UpstreamParseError):
        await fetch_json(session, "https://api.test/item", Payload)  # type: ignore[arg-type]


@pytest.mark.asyncio
async def test_fetch_json_wraps_transport_errors() -> None:
    """Connection failures surface as an unavailable upstream."""
    session = FakeSession([aiohttp.ClientConnectionError("refused")])

    with pytest.raises(UpstreamUnavailableError):
        await fetch_json(session, "https://api.test/item", Payload)  # type: ignore[arg-type]


@pytest.mark.asyncio
async def test_fetch_json_forwards_request_options() -> None:
    """Method, params, headers and body are passed to the session."""
    session = FakeSession([FakeResponse(200, "[1, 2]")])

    result = await fetch_json(
        session,  # type: ignore[arg-type]
        "https://api.test/items",
        list[int],
        method="POST",
        params={"page": "1"},
        headers={"Authorization": "Bearer t"},
        json={"q": "x"},
    )

    assert result == [1, 2]
    call = session.calls[0]
    assert call["method"] == "POST"
    assert call["params"] == {"page": "1"}
    assert call["headers"] == {"Authorization": "Bearer t"}
    assert call["json"] == {"q": "x"}


@pytest.mark.asyncio
async def test_fetch_final_url_returns_redirect_target() -> None:
    """The URL of the final response is returned."""
    session = FakeSession(
        [FakeResponse(200, url="https://www.crunchyroll.com/series/GRDV0019R/x")]
    )

    final_url = await fetch_final_url(session, "https://crunchyroll.test/redirect")  # type: ignore[arg-type]

    assert final_url == "https://www.crunchyroll.com/series/GRDV0019R/x"
