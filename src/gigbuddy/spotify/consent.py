"""User consent step of the Spotify authorization-code flow.

A consent handler shows the authorization URL to the user and returns the
redirect URL Spotify sent them back to, or None if they gave up.
"""

import asyncio
import webbrowser
from typing import Protocol
from urllib.parse import urljoin, urlparse

from ..logging import get_logger

logger = get_logger(__name__)

SUCCESS_PAGE = (
    b"<html><body><h1>GigBuddy is connected to Spotify</h1>"
    b"<p>You can close this window.</p></body></html>"
)


class ConsentHandler(Protocol):
    """Presents the authorization URL and waits for the redirect."""

    async def __call__(self, authorize_url: str) -> str | None:
        ...


class LocalServerConsent:
    """Consent through the system browser and a loopback redirect listener.

    Listens on the host and port of the redirect URI for a single request
    to its path, then stops.
    """

    def __init__(self, redirect_uri: str, timeout: float = 300.0, open_browser: bool = True):
        """Initialize the handler.

        Args:
            redirect_uri: Loopback redirect URI registered with Spotify
            timeout: Seconds to wait before treating consent as abandoned
            open_browser: Open the URL automatically instead of only logging it
        """
        parsed = urlparse(redirect_uri)
        if parsed.scheme != "http" or not parsed.hostname:
            raise ValueError(f"Redirect URI must be a loopback http URL: {redirect_uri}")

        self.redirect_uri = redirect_uri
        self.host = parsed.hostname
        self.port = parsed.port or 80
        self.path = parsed.path or "/"
        self.timeout = timeout
        self.open_browser = open_browser

    async def __call__(self, authorize_url: str) -> str | None:
        loop = asyncio.get_running_loop()
        callback: asyncio.Future[str] = loop.create_future()

        async def handle(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
            try:
                request_line = await reader.readline()
                # Headers are irrelevant, drain them
                while True:
                    line = await reader.readline()
                    if line in (b"\r\n", b"\n", b""):
                        break

                parts = request_line.decode("latin-1").split()
                target = parts[1] if len(parts) >= 2 else ""

                if urlparse(target).path == self.path and not callback.done():
                    callback.set_result(urljoin(self.redirect_uri, target))
                    status, body = "200 OK", SUCCESS_PAGE
                else:
                    status, body = "404 Not Found", b""

                writer.write(
                    f"HTTP/1.1 {status}\r\n"
                    f"Content-Type: text/html; charset=utf-8\r\n"
                    f"Content-Length: {len(body)}\r\n"
                    f"Connection: close\r\n\r\n".encode("latin-1")
                    + body
                )
                await writer.drain()
            finally:
                writer.close()

        server = await asyncio.start_server(handle, self.host, self.port)
        async with server:
            logger.info("awaiting_spotify_consent", url=authorize_url, timeout=self.timeout)
            if self.open_browser:
                webbrowser.open(authorize_url)

            try:
                return await asyncio.wait_for(callback, self.timeout)
            except asyncio.TimeoutError:
                logger.warning("spotify_consent_timed_out", timeout=self.timeout)
                return None
