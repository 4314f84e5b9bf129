from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from url2img.api.health import router as health_router
from url2img.api.render import router as render_router
from url2img.core.config import settings, VERSION
from url2img.core.errors import Url2ImgError, get_error_response
from url2img.core.logging import get_logger, setup_logging
from url2img.core.middleware import RequestLoggingMiddleware
from url2img.services.broker import RenderingBroker, rendering_broker


logger = get_logger("app")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifecycle manager for the FastAPI application.

    Uvicorn only runs the shutdown half after it has stopped accepting
    connections and open requests have finished, so by the time the broker
    drains, no new renders can reach it.
    """
    broker: RenderingBroker = app.state.broker

    logger.info(f"Starting url2img service {VERSION}")

    if settings.browser_prelaunch:
        await broker.prelaunch()

    yield

    logger.info("Shutting down url2img service")
    await broker.drain_and_close()
    logger.info("All resources cleaned up, service stopped")


def create_app(broker: Optional[RenderingBroker] = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        broker: Rendering broker serving this app, the process-wide one by default
    """
    app = FastAPI(
        title="url2img API",
        description="""
        # url2img API

        Render a web page to a PNG or JPEG image with a shared headless Chromium.

        ## Features

        * **Rendering**: Load any URL, wait for network idle and capture the viewport or full page
        * **Shared Browser**: One long-lived browser, an isolated context per request
        * **Graceful Shutdown**: In-flight renders complete before the browser is closed
        """,
        version=VERSION,
        lifespan=lifespan,
        openapi_tags=[
            {
                "name": "render",
                "description": "Operations for rendering URLs to images"
            },
            {
                "name": "health",
                "description": "Operations for checking the health and status of the service"
            }
        ],
    )
    app.state.broker = broker if broker is not None else rendering_broker

    # Add request logging middleware
    app.add_middleware(RequestLoggingMiddleware)

    @app.exception_handler(Url2ImgError)
    async def url2img_error_handler(request: Request, exc: Url2ImgError):
        request_id = getattr(request.state, 'request_id', 'unknown')

        error_log = logger.bind(request_id=request_id, **exc.log_context())
        if exc.http_status >= 500:
            error_log.error(f"{type(exc).__name__}: {exc.message}")
        else:
            error_log.info(f"Rejected request: {exc.message}")

        return JSONResponse(
            status_code=exc.http_status,
            content=exc.to_dict(),
            headers={"X-Request-ID": request_id}
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        request_id = getattr(request.state, 'request_id', 'unknown')
        logger.bind(request_id=request_id, error_type=type(exc).__name__).opt(exception=exc).error(
            f"Unhandled exception in {request.method} {request.url.path}"
        )

        return JSONResponse(
            status_code=500,
            content=get_error_response(exc),
            headers={"X-Request-ID": request_id}
        )

    # Include API routers
    app.include_router(render_router, prefix=settings.api_prefix)
    app.include_router(health_router, prefix=settings.api_prefix)

    return app


setup_logging()

app = create_app()
