from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.gzip import GZipMiddleware

from imagegem.config import get_settings
from imagegem.handlers import image_handler

settings = get_settings()
logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    yield
    logger.info("Shutting down")
    image_handler.get_fetcher().close()


app = FastAPI(
    title="Image Gem",
    description="On-demand image transformation gateway",
    lifespan=lifespan,
)

app.include_router(image_handler.router)

app.add_middleware(GZipMiddleware, minimum_size=1024)
if settings.cors_allowed_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allowed_origins,
        allow_methods=["GET"],
    )


@app.middleware("http")
async def security_headers(request: Request, call_next):
    resp = await call_next(request)
    resp.headers.setdefault("X-Content-Type-Options", "nosniff")
    resp.headers.setdefault("X-Frame-Options", "DENY")
    resp.headers.setdefault("X-XSS-Protection", "1; mode=block")
    return resp


@app.get("/healthz")
async def healthz():
    return {"status": "ok"}
