"""
Image fetch guard: turns client-supplied favicon URLs into embedded data URLs.

The URL is attacker-controlled and the request is made by the server, so every
call runs the full SSRF validation pipeline before any bytes are requested:

1. parse the URL
2. allow only http/https
3. reject denylisted hostnames (and their subdomains)
4. reject literal private/loopback/link-local IPs
5. resolve DNS and reject if ANY address is private (DNS rebinding)
6. GET with redirects disabled and a hard timeout
7-10. require 2xx, an image/* content type, and a body within the size cap
11. return `data:<media-type>;base64,<payload>`

Nothing is cached between calls since DNS answers can change at any time.
"""
import asyncio
import base64
import binascii
import ipaddress
import logging
import re
import socket
from urllib.parse import SplitResult, urlsplit

import httpx

logger = logging.getLogger(__name__)

USER_AGENT = 'Mozilla/5.0 (compatible; BookmarkManager/1.0)'
DEFAULT_TIMEOUT = 10.0
DEFAULT_MAX_BYTES = 5 * 1024 * 1024  # 5 MiB

ALLOWED_SCHEMES = ('http', 'https')

# Exact matches and suffixes (e.g. "evil.localhost") are both rejected
BLOCKED_HOSTNAMES = (
    'localhost',
    '127.0.0.1',
    '0.0.0.0',
    '::1',
    '169.254.169.254',  # AWS/Azure/GCP metadata
    'metadata.google.internal',  # GCP metadata
)

DATA_IMAGE_PREFIX = 'data:image/'
DATA_IMAGE_PATTERN = re.compile(
    r'^data:(image/[a-z0-9.+-]+);base64,(.*)$',
    re.IGNORECASE | re.DOTALL,
)


class ImageFetchError(Exception):
    """Base class for every reason an image URL is refused or fails to load."""

    pass


class InvalidImageUrlError(ImageFetchError):
    """Raised when the URL cannot be parsed or has no host."""

    pass


class UnsupportedSchemeError(ImageFetchError):
    """Raised for any scheme other than http or https."""

    pass


class BlockedHostError(ImageFetchError):
    """Raised when the host is denylisted or resolves to an internal address."""

    pass


class RedirectRejectedError(ImageFetchError):
    """Raised when the server answers with a redirect (never followed)."""

    pass


class FetchFailedError(ImageFetchError):
    """Raised on non-2xx responses, DNS failures, timeouts and network errors."""

    pass


class NotAnImageError(ImageFetchError):
    """Raised when the response is not an image/* content type."""

    pass


class ImageTooLargeError(ImageFetchError):
    """Raised when the declared or actual body size exceeds the cap."""

    pass


def is_private_ip(ip_str: str) -> bool:
    """
    Check if an IP address is private, loopback, or otherwise internal.

    Args:
        ip_str: IP address string (IPv4 or IPv6).

    Returns:
        True if the IP is private/internal, False if public.
    """
    try:
        ip = ipaddress.ip_address(ip_str)
    except ValueError:
        # If we can't parse it, block it to be safe
        return True

    # ::ffff:127.0.0.1 must be judged by its IPv4 meaning
    if isinstance(ip, ipaddress.IPv6Address) and ip.ipv4_mapped is not None:
        ip = ip.ipv4_mapped

    return (
        ip.is_private
        or ip.is_loopback
        or ip.is_link_local
        or ip.is_multicast
        or ip.is_reserved
        or ip.is_unspecified
    )


def is_blocked_hostname(hostname: str) -> bool:
    """Check a hostname against the denylist, including subdomains of each entry."""
    host = hostname.lower().rstrip('.')
    return any(host == blocked or host.endswith('.' + blocked) for blocked in BLOCKED_HOSTNAMES)


def is_data_image(value: str) -> bool:
    """Check if a value is already an embedded image blob."""
    return value[:len(DATA_IMAGE_PREFIX)].lower() == DATA_IMAGE_PREFIX


def _literal_ip(hostname: str) -> ipaddress.IPv4Address | ipaddress.IPv6Address | None:
    try:
        return ipaddress.ip_address(hostname)
    except ValueError:
        return None


def _parse(url: str) -> SplitResult:
    try:
        parts = urlsplit(url.strip())
        # Accessing .port validates it (raises ValueError when out of range)
        _ = parts.port
    except ValueError as e:
        raise InvalidImageUrlError(f"Unparsable URL: {url!r}") from e
    return parts


async def resolve_host(hostname: str, timeout: float = DEFAULT_TIMEOUT) -> list[str]:  # noqa: ASYNC109
    """
    Resolve a hostname to every address it currently points at.

    Runs getaddrinfo off the event loop, bounded by the timeout.

    Raises:
        FetchFailedError: If resolution fails or times out.
    """
    loop = asyncio.get_running_loop()
    try:
        # getaddrinfo returns list of (family, type, proto, canonname, sockaddr)
        # sockaddr is (ip, port) for IPv4 or (ip, port, flow, scope) for IPv6
        addrinfo = await asyncio.wait_for(
            loop.getaddrinfo(hostname, None, family=socket.AF_UNSPEC, type=socket.SOCK_STREAM),
            timeout=timeout,
        )
    except TimeoutError as e:
        raise FetchFailedError(f"DNS lookup timed out for {hostname}") from e
    except (socket.gaierror, UnicodeError) as e:
        raise FetchFailedError(f"Could not resolve hostname: {hostname}") from e

    return list(dict.fromkeys(sockaddr[0] for _, _, _, _, sockaddr in addrinfo))


async def validate_image_url(url: str, timeout: float = DEFAULT_TIMEOUT) -> str:  # noqa: ASYNC109
    """
    Run the pre-request validation steps (parse, scheme, denylist, IP checks).

    Args:
        url: Client-supplied image URL.
        timeout: Upper bound for the DNS lookup, in seconds.

    Returns:
        The stripped URL, safe to request at this moment.

    Raises:
        InvalidImageUrlError, UnsupportedSchemeError, BlockedHostError, FetchFailedError
    """
    parts = _parse(url)

    if parts.scheme.lower() not in ALLOWED_SCHEMES:
        raise UnsupportedSchemeError(f"Unsupported scheme: {parts.scheme or '(none)'}")

    hostname = parts.hostname
    if not hostname:
        raise InvalidImageUrlError(f"Invalid URL (no hostname): {url}")

    if is_blocked_hostname(hostname):
        raise BlockedHostError(f"Blocked request to denylisted host: {hostname}")

    if _literal_ip(hostname) is not None:
        if is_private_ip(hostname):
            raise BlockedHostError(f"Blocked request to private/internal address: {hostname}")
        return url.strip()

    # Rebinding defense: a public-looking name must not point anywhere internal
    for ip_str in await resolve_host(hostname, timeout=timeout):
        if is_private_ip(ip_str):
            raise BlockedHostError(
                f"Blocked request to private/internal address: {hostname} resolves to {ip_str}",
            )

    return url.strip()


def _media_type(content_type: str) -> str:
    return content_type.split(';', 1)[0].strip().lower()


def validate_data_image(value: str, max_bytes: int = DEFAULT_MAX_BYTES) -> str:
    """
    Check a client-supplied embedded image blob.

    Returns:
        The blob normalized to `data:<media-type>;base64,<payload>`.

    Raises:
        NotAnImageError: If it is not a base64 image data URL.
        ImageTooLargeError: If the decoded payload exceeds max_bytes.
    """
    match = DATA_IMAGE_PATTERN.match(value.strip())
    if match is None:
        raise NotAnImageError("Embedded favicon must be a base64 image data URL")

    media_type, payload = match.group(1).lower(), match.group(2).strip()
    try:
        raw = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise NotAnImageError("Embedded favicon is not valid base64") from e

    if len(raw) > max_bytes:
        raise ImageTooLargeError(f"Embedded image is {len(raw)} bytes (max {max_bytes})")

    return f"data:{media_type};base64,{payload}"


async def fetch_image_as_data_url(
    url: str,
    timeout: float = DEFAULT_TIMEOUT,  # noqa: ASYNC109
    max_bytes: int = DEFAULT_MAX_BYTES,
) -> str:
    """
    Fetch a remote image and return it as a self-contained data URL.

    Args:
        url:
            Client-supplied image URL.
        timeout:
            Upper bound in seconds for the whole fetch (DNS, connect, headers, body).
        max_bytes:
            Largest accepted image, checked against Content-Length and the real body.

    Returns:
        `data:<media-type>;base64,<payload>`.

    Raises:
        ImageFetchError: One of its subclasses, naming the failed check.
    """
    safe_url = await validate_image_url(url, timeout=timeout)

    try:
        async with asyncio.timeout(timeout):
            async with httpx.AsyncClient(
                follow_redirects=False,
                timeout=timeout,
                headers={'User-Agent': USER_AGENT},
            ) as client, client.stream('GET', safe_url) as response:
                if 300 <= response.status_code < 400:
                    # Following could land on a host that never went through validation
                    raise RedirectRejectedError(
                        f"Redirect rejected: HTTP {response.status_code} "
                        f"to {response.headers.get('location', '(no location)')}",
                    )

                if not response.is_success:
                    raise FetchFailedError(f"HTTP {response.status_code}")

                media_type = _media_type(response.headers.get('content-type', ''))
                if not media_type.startswith('image/'):
                    raise NotAnImageError(f"Non-image content type: {media_type or '(none)'}")

                declared = response.headers.get('content-length')
                if declared is not None and declared.strip().isdigit() and int(declared) > max_bytes:
                    raise ImageTooLargeError(
                        f"Declared Content-Length {declared} exceeds {max_bytes} bytes",
                    )

                # The header may be absent or lie, so count what actually arrives
                body = bytearray()
                async for chunk in response.aiter_bytes():
                    body.extend(chunk)
                    if len(body) > max_bytes:
                        raise ImageTooLargeError(f"Image body exceeds {max_bytes} bytes")
    except TimeoutError as e:
        raise FetchFailedError("Request timed out") from e
    except httpx.TimeoutException as e:
        raise FetchFailedError("Request timed out") from e
    except httpx.HTTPError as e:
        raise FetchFailedError(f"Request failed: {e}") from e

    encoded = base64.b64encode(bytes(body)).decode('ascii')
    logger.debug("Fetched %d byte %s image from %s", len(body), media_type, safe_url)
    return f"data:{media_type};base64,{encoded}"
