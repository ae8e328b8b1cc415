"""FastAPI surface for DrsHub."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from DrsHub import __version__
from DrsHub.config.settings import DrsHubSettings
from DrsHub.errors import BAD_REQUEST_STATUS, failure_response
from DrsHub.net.client import ResilientHttpClient, build_async_client
from DrsHub.services.secrets import SecretStore
from DrsHub.services.signing import UrlSigner

from .handlers import RequestHandlers

logger = logging.getLogger(__name__)


async def _json_body(request: Request) -> Any:
    try:
        return await request.json()
    except ValueError:
        return None


def _respond(result: Any) -> JSONResponse:
    status, payload = result
    return JSONResponse(status_code=status, content=payload)


def create_app(
    settings: Optional[DrsHubSettings] = None,
    *,
    http: Optional[ResilientHttpClient] = None,
    secrets: Optional[SecretStore] = None,
    signer: Optional[UrlSigner] = None,
) -> FastAPI:
    """Build the DrsHub application.

    ``http`` defaults to a pooled client built from ``settings``; it is closed
    on shutdown only when the app created it.
    """
    settings = settings or DrsHubSettings()
    owns_http = http is None
    if http is None:
        http = ResilientHttpClient(
            build_async_client(settings.http), settings.retry, config=settings.http
        )
    handlers = RequestHandlers(settings, http, secrets=secrets, signer=signer)

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        logger.info(f"DrsHub {__version__} starting (env={settings.env.value})")
        yield
        if owns_http:
            await http.aclose()

    app = FastAPI(title="DrsHub", version=__version__, lifespan=lifespan)
    app.state.handlers = handlers

    @app.get("/status")
    async def status() -> dict:
        return {"ok": True}

    @app.post("/api/v4/drs/resolve")
    async def resolve(request: Request) -> JSONResponse:
        body = await _json_body(request)
        if body is None:
            return JSONResponse(
                status_code=BAD_REQUEST_STATUS,
                content=failure_response(BAD_REQUEST_STATUS, "Request is invalid. Body is not JSON."),
            )
        return _respond(await handlers.resolve(body, request.headers))

    @app.post("/api/v4/gcs/getSignedUrl")
    async def signed_url(request: Request) -> JSONResponse:
        body = await _json_body(request)
        return _respond(await handlers.signed_url(body, request.headers))

    @app.post("/api/v4/bond/{provider}/oauthcode")
    async def oauth_code(provider: str, request: Request) -> JSONResponse:
        return _respond(
            await handlers.oauth_code(provider, request.query_params, request.headers)
        )

    return app


__all__ = ["create_app"]
