from __future__ import annotations

import logging
import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from notevault_api.config import load_settings
from notevault_api.dependencies import build_registry
from notevault_api.interface.api.routes import router


def create_app() -> FastAPI:
    settings = load_settings()
    sessions = build_registry(settings)
    logger = logging.getLogger("notevault.api")

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        yield
        await sessions.close_all()
        aclose = getattr(sessions.identity, "aclose", None)
        if aclose is not None:
            await aclose()

    app = FastAPI(title="Notevault API", version="0.1.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.sessions = sessions

    @app.middleware("http")
    async def request_id_and_logging(request: Request, call_next):
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        request.state.request_id = request_id
        start = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception:
            dt_ms = (time.perf_counter() - start) * 1000.0
            logger.exception("request_error", extra={"rid": request_id, "path": request.url.path, "ms": dt_ms})
            return JSONResponse(
                status_code=500,
                content={"detail": "internal_error", "request_id": request_id},
                headers={"X-Request-ID": request_id},
            )

        dt_ms = (time.perf_counter() - start) * 1000.0
        extra = {
            "rid": request_id,
            "method": request.method,
            "path": request.url.path,
            "status": response.status_code,
            "ms": dt_ms,
        }
        if settings.api_debug_log:
            extra["query"] = request.url.query
        logger.info("request", extra=extra)
        response.headers["X-Request-ID"] = request_id
        return response

    app.include_router(router)
    return app


app = create_app()
