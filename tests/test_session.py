#!/usr/bin/env python3
"""
Unit tests for render sessions.

The key property: the page context is closed exactly once, whatever happens
during navigation or capture.
"""

import asyncio

import pytest
from playwright.async_api import Error as PlaywrightError, TimeoutError as PlaywrightTimeoutError

from url2img.core.errors import NavigationTimeoutError, NetworkError, RenderError
from url2img.services.options import normalize
from url2img.services.session import PageSession, RenderSession, is_network_error

from tests.utils.fake_browser import JPEG_BYTES, PNG_BYTES, make_browser, make_context, make_page

URL = "https://example.com"


def options_for(**raw):
    return normalize({"url": URL, **raw}).options


@pytest.fixture
def session():
    return RenderSession(screenshot_timeout=5000, page_close_timeout=1000)


@pytest.mark.asyncio
async def test_capture_png_viewport(session):
    page = make_page(PNG_BYTES)
    context = make_context(page)
    browser = make_browser(context)

    image = await session.capture(browser, URL, options_for())

    assert image == PNG_BYTES
    browser.new_context.assert_awaited_once_with(
        viewport={"width": 1920, "height": 1080},
        device_scale_factor=1.0,
    )
    page.goto.assert_awaited_once_with(URL, wait_until="networkidle", timeout=30000)
    page.screenshot.assert_awaited_once_with(type="png", full_page=False, timeout=5000)
    context.close.assert_awaited_once()


@pytest.mark.asyncio
async def test_capture_jpeg_full_page(session):
    page = make_page(JPEG_BYTES)
    context = make_context(page)
    browser = make_browser(context)

    image = await session.capture(browser, URL, options_for(format="jpeg", quality=40, fullPage=True))

    assert image == JPEG_BYTES
    page.screenshot.assert_awaited_once_with(type="jpeg", full_page=True, timeout=5000, quality=40)
    context.close.assert_awaited_once()


@pytest.mark.asyncio
async def test_png_capture_never_passes_quality(session):
    page = make_page()
    browser = make_browser(make_context(page))

    await session.capture(browser, URL, options_for(format="png", quality=50))

    assert "quality" not in page.screenshot.call_args.kwargs


@pytest.mark.asyncio
async def test_navigation_timeout_closes_context(session):
    page = make_page(goto_error=PlaywrightTimeoutError("Timeout 100ms exceeded."))
    context = make_context(page)
    browser = make_browser(context)

    with pytest.raises(NavigationTimeoutError) as exc_info:
        await session.capture(browser, URL, options_for(timeoutMs=100))

    assert exc_info.value.context["timeout_ms"] == 100
    assert exc_info.value.http_status == 500
    page.screenshot.assert_not_awaited()
    context.close.assert_awaited_once()


@pytest.mark.asyncio
async def test_unreachable_host_is_network_error(session):
    page = make_page(goto_error=PlaywrightError("net::ERR_NAME_NOT_RESOLVED at https://unreachable.invalid/"))
    context = make_context(page)

    with pytest.raises(NetworkError):
        await session.capture(make_browser(context), "https://unreachable.invalid/", options_for())

    context.close.assert_awaited_once()


@pytest.mark.asyncio
async def test_other_navigation_error_is_render_error(session):
    page = make_page(goto_error=PlaywrightError("net::ERR_ABORTED at https://example.com/file.zip"))
    context = make_context(page)

    with pytest.raises(RenderError) as exc_info:
        await session.capture(make_browser(context), URL, options_for())

    assert not isinstance(exc_info.value, NetworkError)
    context.close.assert_awaited_once()


@pytest.mark.asyncio
async def test_capture_error_wraps_cause(session):
    cause = RuntimeError("Target page, context or browser has been closed")
    page = make_page(screenshot_error=cause)
    context = make_context(page)

    with pytest.raises(RenderError) as exc_info:
        await session.capture(make_browser(context), URL, options_for())

    assert exc_info.value.original_exception is cause
    assert exc_info.value.__cause__ is cause
    context.close.assert_awaited_once()


@pytest.mark.asyncio
async def test_error_status_is_still_rendered(session):
    page = make_page(PNG_BYTES, status=404)
    context = make_context(page)

    image = await session.capture(make_browser(context), URL, options_for())

    assert image == PNG_BYTES
    context.close.assert_awaited_once()


@pytest.mark.asyncio
async def test_close_failure_does_not_mask_result(session):
    context = make_context(make_page(PNG_BYTES), close_error=Exception("Browser has been closed"))

    image = await session.capture(make_browser(context), URL, options_for())

    assert image == PNG_BYTES
    context.close.assert_awaited_once()


@pytest.mark.asyncio
async def test_close_failure_does_not_mask_error(session):
    page = make_page(goto_error=PlaywrightTimeoutError("Timeout 100ms exceeded."))
    context = make_context(page, close_error=Exception("Browser has been closed"))

    with pytest.raises(NavigationTimeoutError):
        await session.capture(make_browser(context), URL, options_for(timeoutMs=100))

    context.close.assert_awaited_once()


@pytest.mark.asyncio
async def test_new_page_failure_closes_context(session):
    context = make_context()
    context.new_page.side_effect = Exception("Target closed")

    with pytest.raises(RenderError):
        await session.capture(make_browser(context), URL, options_for())

    context.close.assert_awaited_once()


@pytest.mark.asyncio
async def test_cancelled_render_closes_context(session):
    navigation_started = asyncio.Event()

    async def hang(*args, **kwargs):
        navigation_started.set()
        await asyncio.sleep(3600)

    page = make_page()
    page.goto.side_effect = hang
    context = make_context(page)

    task = asyncio.create_task(session.capture(make_browser(context), URL, options_for()))
    await navigation_started.wait()
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task

    context.close.assert_awaited_once()


@pytest.mark.asyncio
async def test_page_session_closes_once():
    context = make_context()
    page_session = PageSession(make_browser(context), options_for(), close_timeout=1000)

    async with page_session:
        pass
    await page_session.close()

    assert page_session.closed is True
    context.close.assert_awaited_once()


def test_is_network_error():
    assert is_network_error(PlaywrightError("net::ERR_CONNECTION_REFUSED at http://localhost:1/"))
    assert not is_network_error(PlaywrightError("net::ERR_ABORTED at https://example.com/"))
    assert not is_network_error(RuntimeError("Protocol error"))
