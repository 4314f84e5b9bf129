"""
Browser Handle Manager

Owns the one Chromium process shared by every render. The process is
launched lazily on first use, and concurrent first callers all wait on the
same launch instead of starting browsers of their own.
"""

import asyncio
import time
from typing import Any, Dict, List, Optional

from playwright.async_api import async_playwright, Browser, Playwright

from url2img.core.config import settings
from url2img.core.errors import LaunchError
from url2img.core.logging import get_logger


# Flags needed to run Chromium as an unprivileged user inside a container
CONTAINER_LAUNCH_ARGS: List[str] = [
    '--no-sandbox',  # No sandbox available in most containers
    '--disable-setuid-sandbox',  # Disable setuid sandbox
    '--disable-dev-shm-usage',  # /dev/shm is tiny in Docker
    '--disable-gpu',  # No GPU in headless containers
]


class BrowserHandleManager:
    """Manages the lifecycle of the shared browser handle.

    Only ``ensure()`` and ``close()`` change the handle. Sessions receive the
    running browser from ``ensure()`` and open their own contexts on it; they
    never replace or close it.
    """

    def __init__(self, executable_path: Optional[str] = None, launch_timeout: Optional[int] = None):
        """Initialize the manager.

        Args:
            executable_path: Chromium binary to launch, None for Playwright's bundled build
            launch_timeout: Launch timeout in milliseconds

        Note:
            If any parameter is None, it will be loaded from settings.
        """
        self.logger = get_logger("browser_manager")

        self._executable_path = executable_path if executable_path is not None else settings.get_executable_path()
        self._launch_timeout = launch_timeout if launch_timeout is not None else settings.browser_launch_timeout

        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._starting: Optional[asyncio.Task] = None
        self._lock = asyncio.Lock()

        self._stats = {
            "launches": 0,
            "launch_failures": 0,
            "disconnects": 0,
        }

    @property
    def is_running(self) -> bool:
        return self._browser is not None and self._browser.is_connected()

    def get_launch_args(self) -> Dict[str, Any]:
        """Get the launch arguments for the shared Chromium process."""
        launch_args = {
            "headless": True,
            "args": list(CONTAINER_LAUNCH_ARGS),
            "timeout": self._launch_timeout,
        }
        if self._executable_path:
            launch_args["executable_path"] = self._executable_path
        return launch_args

    async def ensure(self) -> Browser:
        """Return the running browser, launching it if there is none.

        Callers arriving while a launch is in flight await that same launch
        and share its outcome.

        Returns:
            The shared browser

        Raises:
            LaunchError: If the browser could not be started
        """
        async with self._lock:
            if self._browser is not None:
                if self._browser.is_connected():
                    return self._browser

                # The process died under us, drop it so it gets relaunched
                self._stats["disconnects"] += 1
                self.logger.warning("Shared browser is disconnected, launching a new one")
                self._browser = None

            if self._starting is None:
                self._starting = asyncio.create_task(self._start())
            starting = self._starting

        # Shielded so that one caller being cancelled does not abort the launch for the others
        return await asyncio.shield(starting)

    async def _start(self) -> Browser:
        """Start the Playwright driver if needed and launch Chromium."""
        start_time = time.time()
        launch_args = self.get_launch_args()
        try:
            if self._playwright is None:
                self._playwright = await async_playwright().start()

            browser = await self._playwright.chromium.launch(**launch_args)

            self._browser = browser
            self._stats["launches"] += 1
            self.logger.info(f"Launched shared browser in {time.time() - start_time:.2f}s (version {browser.version})")
            return browser
        except Exception as e:
            self._stats["launch_failures"] += 1
            self.logger.error(f"Failed to launch browser: {str(e)}")

            # Nothing survives a failed launch, the next ensure() starts from scratch
            await self._stop_playwright()
            raise LaunchError(
                context={
                    "executable_path": self._executable_path,
                    "duration": time.time() - start_time,
                },
                original_exception=e
            ) from e
        finally:
            self._starting = None

    async def _stop_playwright(self) -> None:
        playwright, self._playwright = self._playwright, None
        if playwright is None:
            return
        try:
            await playwright.stop()
        except Exception as e:
            self.logger.warning(f"Error stopping Playwright driver: {str(e)}")

    async def close(self) -> None:
        """Close the shared browser and stop the Playwright driver.

        Safe to call repeatedly; closing an absent handle does nothing.
        A later ensure() would launch a fresh browser.
        """
        async with self._lock:
            starting = self._starting

        if starting is not None:
            # Let an in-flight launch settle so its browser does not outlive us
            try:
                await starting
            except LaunchError:
                self.logger.debug("In-flight launch failed while closing, nothing to clean up")

        async with self._lock:
            browser, self._browser = self._browser, None

            if browser is None and self._playwright is None:
                self.logger.debug("Browser handle already closed")
                return

            if browser is not None:
                try:
                    await browser.close()
                except Exception as e:
                    self.logger.warning(f"Error closing shared browser: {str(e)}")

            await self._stop_playwright()

        self.logger.info("Shared browser closed")

    def get_stats(self) -> Dict[str, Any]:
        """Get browser handle statistics."""
        return {
            "running": self.is_running,
            "starting": self._starting is not None,
            **self._stats,
        }


# Global browser handle manager instance
browser_handle_manager = BrowserHandleManager()
