import os

from pydantic import BaseModel, Field, ConfigDict
from dotenv import load_dotenv

# Load environment variables from .env file if it exists
load_dotenv()

VERSION = "1.0.0"


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "t")


class Settings(BaseModel):
    """Application settings."""

    # Server settings
    host: str = Field(
        default_factory=lambda: os.getenv("HOST", "0.0.0.0")
    )
    port: int = Field(
        default_factory=lambda: int(os.getenv("PORT", "3000"))
    )
    reload: bool = Field(
        default_factory=lambda: _env_flag("RELOAD", "false")
    )
    # Every worker process owns its own browser, keep this at 1 unless memory allows more
    workers: int = Field(
        default_factory=lambda: int(os.getenv("WORKERS", "1"))
    )
    api_prefix: str = ""

    # Browser Configuration
    chrome_bin: str = Field(
        default_factory=lambda: os.getenv("CHROME_BIN", "")
    )
    browser_launch_timeout: int = Field(
        default_factory=lambda: int(os.getenv("BROWSER_LAUNCH_TIMEOUT", "30000"))  # milliseconds
    )
    browser_prelaunch: bool = Field(
        default_factory=lambda: _env_flag("BROWSER_PRELAUNCH", "false")
    )

    # Render Session Configuration
    screenshot_timeout: int = Field(
        default_factory=lambda: int(os.getenv("SCREENSHOT_TIMEOUT", "30000"))  # milliseconds
    )
    page_close_timeout: int = Field(
        default_factory=lambda: int(os.getenv("PAGE_CLOSE_TIMEOUT", "5000"))  # milliseconds
    )

    # Logging Configuration
    log_request_body: bool = Field(
        default_factory=lambda: _env_flag("LOG_REQUEST_BODY", "false")
    )

    # Real IP Configuration for Proxy/Load Balancer Support
    trust_proxy_headers: bool = Field(
        default_factory=lambda: _env_flag("TRUST_PROXY_HEADERS", "true")
    )

    model_config = ConfigDict()

    def get_executable_path(self):
        """Return the configured Chromium binary, or None to use Playwright's bundled one."""
        return self.chrome_bin or None


# Create global settings instance
settings = Settings()
