"""Target-page fetcher.

Fetches a page with a browser-like ``User-Agent`` and returns the raw body.
Every failure surfaces as a :class:`FetchError` subclass whose message names
the URL and the underlying cause.
"""

import asyncio
import ipaddress
import socket
from typing import Optional
from urllib.parse import urljoin, urlparse

import httpx

from metagen import config

MAX_CONTENT_SIZE = 10 * 1024 * 1024  # 10 MB
MAX_REDIRECTS = 10
ALLOWED_SCHEMES = {"http", "https"}


class FetchError(Exception):
    """Base class for failures while fetching a target page."""

    def __init__(self, url: str, message: str) -> None:
        super().__init__(message)
        self.url = url


class FetchTimeoutError(FetchError):
    def __init__(self, url: str) -> None:
        super().__init__(url, f"Failed to fetch {url}: timeout")


class FetchStatusError(FetchError):
    def __init__(self, url: str, status_code: int, reason: str = "") -> None:
        detail = f"HTTP {status_code} {reason}".strip()
        super().__init__(url, f"Failed to fetch {url}: {detail}")
        self.status_code = status_code


class FetchNetworkError(FetchError):
    def __init__(self, url: str, cause: str) -> None:
        super().__init__(url, f"Failed to fetch {url}: {cause}")


async def _is_private_address(hostname: str) -> bool:
    """Return True if *hostname* resolves to a private, loopback, or link-local address."""
    try:
        infos = await asyncio.get_running_loop().getaddrinfo(hostname, None)
    except socket.gaierror:
        return False

    for info in infos:
        # Strip IPv6 zone IDs (e.g. "::1%eth0" → "::1")
        raw_ip = info[4][0].split("%")[0]
        try:
            addr = ipaddress.ip_address(raw_ip)
        except ValueError:
            continue
        if addr.is_private or addr.is_loopback or addr.is_link_local or addr.is_reserved:
            return True
    return False


def check_url(url: str) -> None:
    """Raise ValueError unless *url* is an absolute http(s) URL that httpx can request."""
    parsed = urlparse(url)

    if parsed.scheme not in ALLOWED_SCHEMES:
        raise ValueError(f"Invalid URL '{url}': scheme must be http or https.")
    if not parsed.hostname:
        raise ValueError(f"Invalid URL '{url}': missing hostname.")
    try:
        httpx.URL(url)
        parsed.port  # non-numeric or out-of-range ports raise here
    except (httpx.InvalidURL, ValueError) as exc:
        raise ValueError(f"Invalid URL '{url}': {exc}")


async def _validate_target(url: str) -> None:
    """Raise ValueError if *url* fails scheme or SSRF validation."""
    check_url(url)
    if await _is_private_address(urlparse(url).hostname):
        raise ValueError(f"Requests to private/internal addresses are not allowed: {url}")


async def fetch_url(url: str, client: Optional[httpx.AsyncClient] = None) -> str:
    """Fetch *url* and return the response body as text.

    Redirects are followed manually so that every hop is validated before the
    next request is made.  ``FETCH_TIMEOUT`` bounds the whole fetch, redirects
    and body download included.  Pass *client* to reuse a connection pool (or
    a mock transport); otherwise a short-lived client is created.

    Raises:
        ValueError: if the URL or a redirect target fails validation.
        FetchTimeoutError: when the fetch exceeds ``FETCH_TIMEOUT``.
        FetchStatusError: on a non-2xx final response.
        FetchNetworkError: on other transport failures, oversize bodies or
            redirect loops.
    """
    await _validate_target(url)

    try:
        if client is None:
            async with httpx.AsyncClient(follow_redirects=False) as own_client:
                return await asyncio.wait_for(_fetch(own_client, url), config.FETCH_TIMEOUT)
        return await asyncio.wait_for(_fetch(client, url), config.FETCH_TIMEOUT)
    except asyncio.TimeoutError:
        raise FetchTimeoutError(url)


async def _fetch(client: httpx.AsyncClient, url: str) -> str:
    headers = {"User-Agent": config.USER_AGENT, "Accept": "text/html,application/xhtml+xml"}
    current_url = url
    try:
        for _ in range(MAX_REDIRECTS + 1):
            async with client.stream(
                "GET",
                current_url,
                headers=headers,
                timeout=config.FETCH_TIMEOUT,
                follow_redirects=False,
            ) as response:
                if response.is_redirect:
                    location = response.headers.get("location", "")
                    next_url = urljoin(current_url, location)
                    await _validate_target(next_url)
                    current_url = next_url
                    continue

                if not response.is_success:
                    raise FetchStatusError(url, response.status_code, response.reason_phrase)

                content_length = response.headers.get("content-length")
                if content_length and int(content_length) > MAX_CONTENT_SIZE:
                    raise FetchNetworkError(url, "response body exceeds the maximum allowed size")

                chunks = []
                total = 0
                async for chunk in response.aiter_bytes():
                    total += len(chunk)
                    if total > MAX_CONTENT_SIZE:
                        raise FetchNetworkError(url, "response body exceeds the maximum allowed size")
                    chunks.append(chunk)

                body = b"".join(chunks)
                try:
                    return body.decode(response.encoding or "utf-8", errors="replace")
                except LookupError:
                    # Unknown charset in the Content-Type header
                    return body.decode("utf-8", errors="replace")
    except httpx.TimeoutException:
        raise FetchTimeoutError(url)
    except httpx.InvalidURL as exc:
        raise FetchNetworkError(url, str(exc))
    except httpx.HTTPError as exc:
        raise FetchNetworkError(url, str(exc) or exc.__class__.__name__)

    raise FetchNetworkError(url, "too many redirects")
