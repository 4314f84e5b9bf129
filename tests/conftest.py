import os
import sys
import pytest
from fastapi.testclient import TestClient

# Add the project root directory to the Python path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

# Now we can import from the url2img package
from url2img.main import create_app
from url2img.services.broker import RenderingBroker
from url2img.services.session import RenderSession

from tests.utils.fake_browser import make_browser, make_context, make_handle_manager, make_page


@pytest.fixture
def page():
    """Page of the fake browser; reconfigure goto/screenshot per test."""
    return make_page()


@pytest.fixture
def browser_context(page):
    return make_context(page)


@pytest.fixture
def browser(browser_context):
    return make_browser(browser_context)


@pytest.fixture
def handles(browser):
    """Browser handle manager that serves the fake browser."""
    return make_handle_manager(browser)


@pytest.fixture
def broker(handles):
    """A real broker and render session driving the fake browser."""
    return RenderingBroker(handles=handles, session=RenderSession(screenshot_timeout=5000, page_close_timeout=1000))


@pytest.fixture
def client(broker):
    """Create a test client for an app backed by the fake browser."""
    with TestClient(create_app(broker)) as test_client:
        yield test_client
