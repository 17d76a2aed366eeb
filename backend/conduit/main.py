"""
Conduit backend - main FastAPI application
"""

import logging
from contextlib import asynccontextmanager
from logging.handlers import RotatingFileHandler

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import get_settings
from .db import create_schema, engine
from .errors import ConduitError, PersistenceFailure
from .routes import articles, profiles, users

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

logger = logging.getLogger(__name__)


def setup_logging(settings) -> None:
    handlers = [logging.StreamHandler()]
    if settings.log_file:
        handlers.append(
            RotatingFileHandler(
                settings.log_file,
                maxBytes=10_000_000,  # 10MB per file
                backupCount=5,
                encoding="utf-8",
            )
        )
    formatter = logging.Formatter(LOG_FORMAT)
    for handler in handlers:
        handler.setFormatter(formatter)
    logging.basicConfig(level=settings.log_level.upper(), handlers=handlers)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Create tables on app start
    create_schema(engine)
    logger.info("Conduit backend starting up...")
    yield
    logger.info("Conduit backend shutting down...")


async def conduit_error_handler(request: Request, exc: ConduitError) -> JSONResponse:
    # persistence faults are logged where they happen, with their context
    if not isinstance(exc, PersistenceFailure):
        logger.debug("%s %s -> %s: %s", request.method, request.url.path, exc.status_code, exc.message)
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message}, headers=headers)


def create_app() -> FastAPI:
    settings = get_settings()
    setup_logging(settings)

    app = FastAPI(
        title="Conduit",
        description="RealWorld social blogging backend",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(ConduitError, conduit_error_handler)

    app.include_router(articles.router, prefix="/api", tags=["articles"])
    app.include_router(profiles.router, prefix="/api", tags=["profiles"])
    app.include_router(users.router, prefix="/api", tags=["users"])

    @app.get("/health")
    def health_check():
        return {"status": "healthy"}

    return app


app = create_app()


def main() -> None:
    import uvicorn

    uvicorn.run("conduit.main:app", host="0.0.0.0", port=8000)


# Run the FastAPI application
if __name__ == "__main__":
    main()
