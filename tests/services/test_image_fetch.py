"""Tests for fetching remote images into data URLs."""
import asyncio
import base64
import socket
from collections.abc import AsyncIterator, Iterator
from unittest.mock import AsyncMock, patch

import httpx
import pytest
import respx

from services.image_fetch import (
    USER_AGENT,
    FetchFailedError,
    ImageTooLargeError,
    NotAnImageError,
    fetch_image_as_data_url,
    is_data_image,
    resolve_host,
    validate_data_image,
)

ICON_URL = "https://example.com/icon.png"
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x01" * 64


@pytest.fixture(autouse=True)
def public_dns() -> Iterator[AsyncMock]:
    """Every hostname resolves to a public address."""
    with patch(
        "services.image_fetch.resolve_host",
        new_callable=AsyncMock,
        return_value=["93.184.216.34"],
    ) as mock_resolve:
        yield mock_resolve


async def _chunks(*parts: bytes, delay: float = 0) -> AsyncIterator[bytes]:
    for part in parts:
        if delay:
            await asyncio.sleep(delay)
        yield part


@respx.mock
async def test__fetch_image__returns_data_url() -> None:
    """A 2xx image response becomes data:<type>;base64,<payload>."""
    route = respx.get(ICON_URL).mock(
        return_value=httpx.Response(
            200, content=PNG_BYTES, headers={"Content-Type": "image/png; charset=binary"},
        ),
    )

    result = await fetch_image_as_data_url(ICON_URL)

    assert result == "data:image/png;base64," + base64.b64encode(PNG_BYTES).decode()
    assert route.calls.last.request.headers["User-Agent"] == USER_AGENT
    assert ICON_URL not in result


@respx.mock
async def test__fetch_image__non_2xx_fails() -> None:
    """404 and 500 are fetch failures."""
    respx.get(ICON_URL).mock(return_value=httpx.Response(404))

    with pytest.raises(FetchFailedError):
        await fetch_image_as_data_url(ICON_URL)


@pytest.mark.parametrize("content_type", ["text/html", "application/json", "", "imagery/png"])
@respx.mock
async def test__fetch_image__rejects_non_image_content_type(content_type: str) -> None:
    """Only image/* responses are accepted."""
    headers = {"Content-Type": content_type} if content_type else {}
    respx.get(ICON_URL).mock(return_value=httpx.Response(200, content=b"<html>", headers=headers))

    with pytest.raises(NotAnImageError):
        await fetch_image_as_data_url(ICON_URL)


@respx.mock
async def test__fetch_image__declared_length_over_cap() -> None:
    """A Content-Length over the cap fails before the body is read."""
    respx.get(ICON_URL).mock(
        return_value=httpx.Response(
            200,
            content=b"x" * 10,
            headers={"Content-Type": "image/png", "Content-Length": "5000"},
        ),
    )

    with pytest.raises(ImageTooLargeError, match="Content-Length"):
        await fetch_image_as_data_url(ICON_URL, max_bytes=1000)


@respx.mock
async def test__fetch_image__body_over_cap_without_content_length() -> None:
    """A chunked body with no Content-Length is still capped."""
    respx.get(ICON_URL).mock(
        return_value=httpx.Response(
            200,
            content=_chunks(b"x" * 600, b"x" * 600),
            headers={"Content-Type": "image/png"},
        ),
    )

    with pytest.raises(ImageTooLargeError):
        await fetch_image_as_data_url(ICON_URL, max_bytes=1000)


@respx.mock
async def test__fetch_image__body_over_cap_with_understated_length() -> None:
    """A Content-Length that lies low does not get past the cap."""
    respx.get(ICON_URL).mock(
        return_value=httpx.Response(
            200,
            content=b"x" * 2000,
            headers={"Content-Type": "image/png", "Content-Length": "10"},
        ),
    )

    with pytest.raises(ImageTooLargeError):
        await fetch_image_as_data_url(ICON_URL, max_bytes=1000)


@respx.mock
async def test__fetch_image__exactly_at_cap_is_accepted() -> None:
    """The cap is inclusive."""
    respx.get(ICON_URL).mock(
        return_value=httpx.Response(200, content=b"x" * 1000, headers={"Content-Type": "image/png"}),
    )

    result = await fetch_image_as_data_url(ICON_URL, max_bytes=1000)
    assert result.startswith("data:image/png;base64,")


@respx.mock
async def test__fetch_image__network_error_is_fetch_failed() -> None:
    """Transport errors are mapped, never leaked raw."""
    respx.get(ICON_URL).mock(side_effect=httpx.ConnectError("connection refused"))

    with pytest.raises(FetchFailedError):
        await fetch_image_as_data_url(ICON_URL)


@respx.mock
async def test__fetch_image__timeout_is_fetch_failed() -> None:
    """httpx timeouts are fetch failures."""
    respx.get(ICON_URL).mock(side_effect=httpx.ReadTimeout("too slow"))

    with pytest.raises(FetchFailedError, match="timed out"):
        await fetch_image_as_data_url(ICON_URL)


@respx.mock
async def test__fetch_image__slow_drip_body_hits_overall_timeout() -> None:
    """A server trickling bytes cannot hold the request past the total timeout."""
    respx.get(ICON_URL).mock(
        return_value=httpx.Response(
            200,
            content=_chunks(b"x", b"x", b"x", delay=0.2),
            headers={"Content-Type": "image/png"},
        ),
    )

    with pytest.raises(FetchFailedError, match="timed out"):
        await fetch_image_as_data_url(ICON_URL, timeout=0.1)


async def test__resolve_host__returns_unique_addresses() -> None:
    """All addresses from getaddrinfo are returned once each."""
    loop = asyncio.get_running_loop()
    addrinfo = [
        (socket.AF_INET, socket.SOCK_STREAM, 6, "", ("93.184.216.34", 0)),
        (socket.AF_INET, socket.SOCK_STREAM, 6, "", ("93.184.216.34", 0)),
        (socket.AF_INET6, socket.SOCK_STREAM, 6, "", ("2606:2800:220:1::", 0, 0, 0)),
    ]
    with patch.object(loop, "getaddrinfo", new=AsyncMock(return_value=addrinfo)):
        assert await resolve_host("example.com") == ["93.184.216.34", "2606:2800:220:1::"]


async def test__resolve_host__failure_is_fetch_failed() -> None:
    """Unresolvable names are fetch failures."""
    loop = asyncio.get_running_loop()
    with patch.object(
        loop, "getaddrinfo", new=AsyncMock(side_effect=socket.gaierror("no such host")),
    ):
        with pytest.raises(FetchFailedError, match="resolve"):
            await resolve_host("nonexistent.invalid")


def test__validate_data_image__accepts_valid_blob() -> None:
    """A base64 image data URL passes and is normalized."""
    payload = base64.b64encode(PNG_BYTES).decode()

    assert validate_data_image(f"DATA:IMAGE/PNG;base64,{payload}") == (
        f"data:image/png;base64,{payload}"
    )


@pytest.mark.parametrize("value", [
    "data:text/html;base64,PGh0bWw+",
    "data:image/png,rawbytes",
    "data:image/png;base64,@@not-base64@@",
    "https://example.com/icon.png",
])
def test__validate_data_image__rejects_bad_blobs(value: str) -> None:
    """Non-image, non-base64 or non-data values are refused."""
    with pytest.raises(NotAnImageError):
        validate_data_image(value)


def test__validate_data_image__size_cap() -> None:
    """Embedded blobs obey the same size cap as fetched images."""
    payload = base64.b64encode(b"x" * 2000).decode()

    with pytest.raises(ImageTooLargeError):
        validate_data_image(f"data:image/png;base64,{payload}", max_bytes=1000)


def test__is_data_image() -> None:
    """Embedded blobs are told apart from URLs, case-insensitively."""
    assert is_data_image("data:image/png;base64,AAAA")
    assert is_data_image("DATA:image/png;base64,AAAA")
    assert not is_data_image("https://example.com/icon.png")
