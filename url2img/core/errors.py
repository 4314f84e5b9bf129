import traceback
from typing import Dict, Any, Optional


# Define common HTTP status codes to avoid dependency on FastAPI
HTTP_200_OK = 200
HTTP_400_BAD_REQUEST = 400
HTTP_500_INTERNAL_SERVER_ERROR = 500
HTTP_503_SERVICE_UNAVAILABLE = 503

# Body returned to clients for every server-side render failure
RENDER_FAILED_MESSAGE = "Failed to render URL"


class Url2ImgError(Exception):
    """Base exception class for the url2img service.

    Errors are classified where they originate (options validation, browser
    launch, render session) and travel unmodified to the HTTP layer, which
    turns them into a status code and a JSON body via ``to_dict()``.
    """
    public_message: Optional[str] = RENDER_FAILED_MESSAGE

    def __init__(self,
                 message: str,
                 error_code: str = "internal_error",
                 http_status: int = HTTP_500_INTERNAL_SERVER_ERROR,
                 context: Optional[Dict[str, Any]] = None,
                 original_exception: Optional[BaseException] = None):
        self.message = message
        self.error_code = error_code
        self.http_status = http_status
        self.context = context or {}
        self.original_exception = original_exception
        self.traceback = traceback.format_exc() if original_exception else None

        # Add original exception details to context if available
        if original_exception:
            self.context.update({
                "original_error_type": type(original_exception).__name__,
                "original_error": str(original_exception)
            })

        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert the error to the JSON body sent to clients."""
        return {"error": self.public_message or self.message}

    def log_context(self) -> Dict[str, Any]:
        """Details for the server log; never sent to clients."""
        return {
            "error_code": self.error_code,
            "message": self.message,
            **self.context,
        }


class ValidationError(Url2ImgError):
    """Error for invalid input parameters."""
    public_message = None

    def __init__(self, message: str, field: Optional[str] = None, context: Optional[Dict[str, Any]] = None):
        if field:
            context = context or {}
            context["field"] = field

        super().__init__(
            message=message,
            error_code="validation_error",
            http_status=HTTP_400_BAD_REQUEST,
            context=context
        )


class LaunchError(Url2ImgError):
    """Error when the shared browser process cannot be started."""
    def __init__(self, message: str = "Failed to launch browser", context: Optional[Dict[str, Any]] = None, original_exception: Optional[BaseException] = None):
        super().__init__(
            message=message,
            error_code="launch_error",
            context=context,
            original_exception=original_exception
        )


class RenderError(Url2ImgError):
    """Error while rendering a single URL.

    The shared browser stays usable after a render error; only the request
    that hit it fails.
    """
    def __init__(self, url: str, message: Optional[str] = None, error_code: str = "render_error",
                 context: Optional[Dict[str, Any]] = None, original_exception: Optional[BaseException] = None):
        self.url = url
        if message is None:
            message = f"Failed to render {url}"
            if original_exception:
                message += f": {original_exception}"

        context = context or {}
        context.setdefault("url", url)

        super().__init__(
            message=message,
            error_code=error_code,
            context=context,
            original_exception=original_exception
        )


class NetworkError(RenderError):
    """DNS or connection failure while navigating."""
    def __init__(self, url: str, context: Optional[Dict[str, Any]] = None, original_exception: Optional[BaseException] = None):
        message = f"Failed to navigate to {url}. A network error occurred, the site might be unreachable."
        if original_exception:
            message += f" Reason: {original_exception}"

        super().__init__(
            url=url,
            message=message,
            error_code="network_error",
            context=context,
            original_exception=original_exception
        )


class NavigationTimeoutError(RenderError):
    """Navigation did not reach network idle within the request timeout."""
    def __init__(self, url: str, timeout_ms: int, context: Optional[Dict[str, Any]] = None, original_exception: Optional[BaseException] = None):
        context = context or {}
        context["timeout_ms"] = timeout_ms

        super().__init__(
            url=url,
            message=f"Navigation to {url} timed out after {timeout_ms}ms",
            error_code="navigation_timeout",
            context=context,
            original_exception=original_exception
        )


class ServiceClosingError(Url2ImgError):
    """Error when a render arrives after shutdown has started."""
    public_message = "Service is shutting down"

    def __init__(self, context: Optional[Dict[str, Any]] = None):
        super().__init__(
            message="Rendering broker is shutting down and no longer accepts requests",
            error_code="service_closing",
            http_status=HTTP_503_SERVICE_UNAVAILABLE,
            context=context
        )


def get_error_response(error: Exception) -> Dict[str, Any]:
    """Convert any exception to the public JSON error body.

    Args:
        error: The exception to convert

    Returns:
        A dictionary suitable for API responses
    """
    if isinstance(error, Url2ImgError):
        return error.to_dict()

    return {"error": RENDER_FAILED_MESSAGE}
