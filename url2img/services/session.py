import asyncio
import time
from typing import Any, Dict, Optional

from playwright.async_api import (
    Browser,
    BrowserContext,
    Error as PlaywrightError,
    Page,
    TimeoutError as PlaywrightTimeoutError,
)

from url2img.core.config import settings
from url2img.core.errors import NavigationTimeoutError, NetworkError, RenderError
from url2img.core.logging import get_logger
from url2img.schemas.render import RenderOptions


# Wait for zero in-flight connections during a short quiet window
WAIT_UNTIL = "networkidle"


def is_network_error(error: Exception) -> bool:
    """Tell DNS/connection failures apart from other navigation errors.

    Chromium reports them as ``net::ERR_*``. ``ERR_ABORTED`` is excluded: it
    means the navigation was cancelled (e.g. the URL is a download), not that
    the host was unreachable.
    """
    message = str(error)
    return "net::ERR_" in message and "net::ERR_ABORTED" not in message


class PageSession:
    """Async context manager for one isolated browser context and its page.

    The context is closed exactly once when the block exits, whatever the
    outcome. A failure while closing is logged and never replaces the
    result or exception of the block.

    Example:
        ```python
        async with PageSession(browser, options) as page:
            await page.goto(url)
        # Context and page are closed here
        ```
    """

    def __init__(self, browser: Browser, options: RenderOptions, close_timeout: Optional[int] = None):
        self.browser = browser
        self.options = options
        self.close_timeout = close_timeout if close_timeout is not None else settings.page_close_timeout
        self.context: Optional[BrowserContext] = None
        self.page: Optional[Page] = None
        self.closed = False
        self.logger = get_logger("page_session")

    async def __aenter__(self) -> Page:
        """Open the context with the requested viewport and create its page."""
        self.context = await self.browser.new_context(
            viewport={"width": self.options.width, "height": self.options.height},
            device_scale_factor=self.options.device_scale_factor,
        )
        try:
            self.page = await self.context.new_page()
        except BaseException:
            await self.close()
            raise
        return self.page

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Exit the async context manager."""
        await self.close()
        return False

    async def close(self) -> None:
        """Close the context (and with it the page), at most once."""
        if self.context is None or self.closed:
            return
        self.closed = True

        try:
            await asyncio.wait_for(self.context.close(), timeout=self.close_timeout / 1000.0)
        except asyncio.TimeoutError:
            self.logger.warning(f"Timed out closing browser context after {self.close_timeout}ms")
        except Exception as e:
            self.logger.warning(f"Error closing browser context: {str(e)}")


class RenderSession:
    """Performs one isolated render against the shared browser."""

    def __init__(self, screenshot_timeout: Optional[int] = None, page_close_timeout: Optional[int] = None):
        self.logger = get_logger("render_session")
        self._screenshot_timeout = screenshot_timeout if screenshot_timeout is not None else settings.screenshot_timeout
        self._page_close_timeout = page_close_timeout if page_close_timeout is not None else settings.page_close_timeout

    async def capture(self, handle: Browser, url: str, options: RenderOptions) -> bytes:
        """Render ``url`` in a fresh page context and return the encoded image.

        Args:
            handle: The shared browser
            url: The URL to render
            options: Validated screenshot options

        Returns:
            The image bytes encoded as ``options.format``

        Raises:
            NavigationTimeoutError: If the page did not reach network idle in time
            NetworkError: If the host could not be resolved or connected to
            RenderError: For any other failure
        """
        start_time = time.time()
        self.logger.debug(f"Rendering {url} at {options.width}x{options.height} as {options.format}")

        try:
            async with PageSession(handle, options, close_timeout=self._page_close_timeout) as page:
                await self._navigate(page, url, options)
                image = await self._screenshot(page, options)
        except RenderError as e:
            self.logger.warning(f"Render of {url} failed: {e.message}")
            raise
        except Exception as e:
            self.logger.error(f"Unexpected error rendering {url}: {str(e)}")
            raise RenderError(url=url, original_exception=e) from e

        self.logger.info(f"Rendered {url} ({len(image)} bytes, {time.time() - start_time:.2f}s)")
        return image

    async def _navigate(self, page: Page, url: str, options: RenderOptions) -> None:
        """Navigate and classify navigation failures."""
        try:
            response = await page.goto(url, wait_until=WAIT_UNTIL, timeout=options.timeout_ms)
        except PlaywrightTimeoutError as e:
            raise NavigationTimeoutError(url=url, timeout_ms=options.timeout_ms, original_exception=e) from e
        except PlaywrightError as e:
            if is_network_error(e):
                raise NetworkError(url=url, original_exception=e) from e
            raise RenderError(url=url, original_exception=e) from e

        # Error pages are still rendered
        if response is not None and not response.ok:
            self.logger.warning(f"Navigation returned status {response.status} for {url}, rendering anyway")

    async def _screenshot(self, page: Page, options: RenderOptions) -> bytes:
        screenshot_args: Dict[str, Any] = {
            "type": options.format,
            "full_page": options.full_page,
            "timeout": self._screenshot_timeout,
        }
        if options.format == "jpeg":
            screenshot_args["quality"] = options.quality
        return await page.screenshot(**screenshot_args)


# Create a singleton instance
render_session = RenderSession()
