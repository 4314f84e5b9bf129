import asyncio
import time
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from url2img.core.errors import LaunchError, ServiceClosingError
from url2img.core.logging import get_logger
from url2img.services.browser_manager import BrowserHandleManager, browser_handle_manager
from url2img.services.options import normalize
from url2img.services.session import RenderSession, render_session


@dataclass(frozen=True)
class RenderResult:
    """Encoded image of a finished render."""
    data: bytes
    mime_type: str


class RenderingBroker:
    """Entry point for renders: validates, acquires the browser, runs a session.

    Errors from each step propagate unmodified, and a failed render is never
    retried here. ``drain_and_close()`` is terminal: once called the broker
    rejects new renders for good.
    """

    def __init__(self, handles: Optional[BrowserHandleManager] = None, session: Optional[RenderSession] = None):
        self.logger = get_logger("rendering_broker")
        self._handles = handles if handles is not None else browser_handle_manager
        self._session = session if session is not None else render_session

        self._closing = False
        self._in_flight = 0
        self._idle = asyncio.Event()
        self._idle.set()

        self._stats = {
            "total_requests": 0,
            "failed_requests": 0,
        }

    @property
    def is_closing(self) -> bool:
        return self._closing

    @property
    def in_flight(self) -> int:
        return self._in_flight

    async def render(self, raw: Mapping[str, Any]) -> RenderResult:
        """Render the URL described by a raw request body.

        Args:
            raw: The flattened request body (``url`` plus screenshot options)

        Returns:
            The image bytes and their mime type

        Raises:
            ServiceClosingError: If shutdown has started
            ValidationError: If the body is invalid; the browser is not touched
            LaunchError: If the shared browser could not be started
            RenderError: If the session failed (including NetworkError and NavigationTimeoutError)
        """
        if self._closing:
            raise ServiceClosingError()

        request = normalize(raw)

        self._stats["total_requests"] += 1
        self._in_flight += 1
        self._idle.clear()
        start_time = time.time()
        try:
            handle = await self._handles.ensure()
            image = await self._session.capture(handle, request.url, request.options)
        except Exception:
            self._stats["failed_requests"] += 1
            raise
        finally:
            self._in_flight -= 1
            if self._in_flight == 0:
                self._idle.set()

        self.logger.debug(f"Render of {request.url} finished in {time.time() - start_time:.2f}s")
        return RenderResult(data=image, mime_type=request.options.mime_type)

    async def prelaunch(self) -> None:
        """Launch the shared browser ahead of the first render."""
        try:
            await self._handles.ensure()
        except LaunchError as e:
            self.logger.warning(f"Browser prelaunch failed, the first render will retry: {e.message}")

    async def drain_and_close(self) -> None:
        """Stop accepting renders, wait for in-flight ones, then close the browser.

        In-flight renders are never cancelled; they run to completion and
        their callers receive their results before the browser goes away.
        """
        if not self._closing:
            self._closing = True
            self.logger.info(f"Rendering broker closing, waiting for {self._in_flight} in-flight render(s)")

        await self._idle.wait()
        await self._handles.close()
        self.logger.info("Rendering broker closed")

    def get_stats(self) -> Dict[str, Any]:
        """Get broker statistics."""
        return {
            "closing": self._closing,
            "in_flight": self._in_flight,
            **self._stats,
            "browser": self._handles.get_stats(),
        }


# Create a singleton instance
rendering_broker = RenderingBroker()
