from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from prodotask.db import Gateway
from prodotask.errors import CreationFailed, NotFound, TransactionAborted, ValidationFailed
from prodotask.routes import calendar, day, habits, notes, tasks, users
from prodotask.settings import get_settings

logger = logging.getLogger("prodotask")


def create_app(gateway: Gateway | None = None) -> FastAPI:
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.gateway = await (gateway or Gateway(settings.database_url)).open()
        try:
            yield
        finally:
            await app.state.gateway.close()

    app = FastAPI(title="ProdoTask API", version="0.1.0", lifespan=lifespan)
    if gateway is not None:
        app.state.gateway = gateway

    app.include_router(users.router)
    app.include_router(day.router)
    app.include_router(tasks.router)
    app.include_router(habits.router)
    app.include_router(notes.router)
    app.include_router(calendar.router)

    @app.exception_handler(NotFound)
    async def _not_found_handler(request: Request, exc: NotFound):
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(ValidationFailed)
    async def _validation_handler(request: Request, exc: ValidationFailed):
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(CreationFailed)
    @app.exception_handler(TransactionAborted)
    async def _persistence_handler(request: Request, exc: Exception):
        logger.error("Persistence failure on %s %s: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=500, content={"detail": "Internal error"})

    @app.exception_handler(Exception)
    async def _unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled exception: %s", exc)
        return JSONResponse(status_code=500, content={"detail": "Internal error"})

    @app.get("/health")
    async def health():
        return {"ok": True}

    return app


app = create_app()
