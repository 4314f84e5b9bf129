import uvicorn

from url2img.core.config import settings

if __name__ == "__main__":
    # uvicorn handles SIGTERM/SIGINT: it stops accepting connections, lets open
    # requests finish, then runs the lifespan shutdown that drains the broker
    uvicorn.run(
        "url2img.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.reload,
        workers=settings.workers,
        log_config=None,
    )
