from __future__ import annotations

import logging
import time
from typing import Optional

import httpx
from fastapi import FastAPI, Query, Request
from fastapi.responses import JSONResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from tsi.config import Settings, get_settings
from tsi.errors import InspectError, route_error
from tsi.services.cache import EdgeCache, MemoryEdgeCache
from tsi.services.inspect import CACHE_MISS, CACHE_STALE, Inspector, iso_now

logger = logging.getLogger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, OPTIONS",
    "Access-Control-Allow-Headers": "*",
    "Access-Control-Expose-Headers": "x-tsi-cache, Retry-After",
}
JSON_MEDIA_TYPE = "application/json; charset=utf-8"

def json_response(body: dict, status: int = 200, headers: Optional[dict] = None) -> JSONResponse:
    all_headers = {**CORS_HEADERS, **(headers or {})}
    response = JSONResponse(body, status_code=status, headers=all_headers)
    response.headers["content-type"] = JSON_MEDIA_TYPE
    return response

def error_response(error: InspectError, cache_status: Optional[str] = None) -> JSONResponse:
    now = time.time()
    body = {
        "ok": False,
        "error": error.to_body(),
        "meta": {"ts": int(now * 1000), "generatedAt": iso_now(now), "cached": False},
    }
    headers = {}
    if cache_status:
        headers["x-tsi-cache"] = cache_status
    if error.retry_after:
        headers["Retry-After"] = str(error.retry_after)
    return json_response(body, status=error.status, headers=headers)

def client_ip(request: Request, trust_proxy_headers: bool = False) -> str:
    if not trust_proxy_headers:
        return request.client.host if request.client else "unknown"
    edge_ip = request.headers.get("cf-connecting-ip", "").strip()
    if edge_ip:
        return edge_ip
    forwarded = request.headers.get("x-forwarded-for", "").split(",")[0].strip()
    if forwarded:
        return forwarded
    return request.client.host if request.client else "unknown"

def create_app(
    settings: Optional[Settings] = None,
    cache: Optional[EdgeCache] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    settings = settings or get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    app = FastAPI(title="TSI - Token Safety Inspector", version="0.3")
    app.state.settings = settings
    app.state.cache = cache or MemoryEdgeCache()
    app.state.transport = transport

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        return error_response(route_error(exc.status_code))

    @app.exception_handler(InspectError)
    async def inspect_error(request: Request, exc: InspectError):
        return error_response(exc, cache_status=CACHE_MISS)

    @app.get("/api/hello")
    def hello():
        return json_response({"ok": True, "message": "hello"})

    @app.options("/api/hello")
    @app.options("/api/inspect")
    def preflight():
        return Response(status_code=204, headers=CORS_HEADERS)

    @app.get("/api/inspect")
    async def inspect(
        request: Request,
        chain: Optional[str] = Query(None, description="eth or bsc"),
        address: Optional[str] = Query(None, description="Token contract address"),
    ):
        async with httpx.AsyncClient(transport=app.state.transport) as client:
            inspector = Inspector(app.state.settings, app.state.cache, client)
            ip = client_ip(request, app.state.settings.trust_proxy_headers)
            outcome = await inspector.inspect(chain, address, ip)

        if outcome.cache_status == CACHE_STALE:
            cache_control = "no-store"
        else:
            cache_control = f"public, max-age={app.state.settings.cache_ttl}"
        return json_response(outcome.payload, headers={
            "Cache-Control": cache_control,
            "x-tsi-cache": outcome.cache_status,
        })

    return app

app = create_app()
