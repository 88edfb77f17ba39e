from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI
from fastapi.responses import HTMLResponse

from steady_etag.config import TaggerConfig, load_config
from steady_etag.logging_setup import configure_logging
from steady_etag.middleware.asgi import SteadyETagMiddleware

logger = logging.getLogger(__name__)


def apply_steady_etag(app: FastAPI, *, config: Optional[TaggerConfig] = None) -> TaggerConfig:
    """Install ``SteadyETagMiddleware`` on ``app``.

    Loads configuration from the environment when ``config`` is omitted and
    returns the configuration in effect.
    """
    cfg = config or load_config()
    app.add_middleware(SteadyETagMiddleware, config=cfg)
    logger.info(
        "steady_etag.installed",
        extra={
            "cache_control": cfg.cache_control,
            "no_digest_cache_control": cfg.no_digest_cache_control,
            "digest_statuses": list(cfg.digest_statuses),
        },
    )
    return cfg


def create_app(config: Optional[TaggerConfig] = None) -> FastAPI:
    """Application factory with the steady ETag middleware installed.

    Exposes a liveness route; host applications normally call
    ``apply_steady_etag`` on their own app instead.
    """
    configure_logging()
    app = FastAPI(title="steady-etag")
    apply_steady_etag(app, config=config)

    @app.get("/health")
    def health() -> dict:
        return {"status": "ok"}

    @app.get("/", response_class=HTMLResponse)
    def index() -> str:
        return "<!doctype html><title>steady-etag</title><p>ok</p>"

    return app


__all__ = ["apply_steady_etag", "create_app"]
