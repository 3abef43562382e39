"""Web App: FastAPI routes for info generation and search."""

from __future__ import annotations

from contextlib import asynccontextmanager
import logging
from typing import Any, Dict, Optional
from urllib.parse import urlencode

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse

from config import Settings, get_settings
from models import ReportStyle
from orchestrator import VERSION, GenerationService, match_resource_url, resolve_source
from storage import BaseCache, get_cache


logger = logging.getLogger(__name__)

# 不参与缓存键的查询参数
UNCACHED_PARAMS = {"apikey", "debug"}


def cache_key_for(request: Request) -> str:
    """path + query, without auth/debug params"""
    params = [(k, v) for k, v in request.query_params.multi_items() if k not in UNCACHED_PARAMS]
    query = urlencode(params)
    return f"{request.url.path}?{query}" if query else request.url.path


def _is_debug(request: Request) -> bool:
    return request.query_params.get("debug") == "1"


def _style(request: Request) -> str:
    return request.query_params.get("format") or ReportStyle.PLAIN.value


def create_app(
    storage: Optional[BaseCache] = None,
    settings: Optional[Settings] = None,
    service: Optional[GenerationService] = None,
) -> FastAPI:
    settings = settings or get_settings()
    service = service or GenerationService(settings=settings)
    if storage is None:
        storage = get_cache(
            settings.cache.provider,
            cache_dir=settings.cache.cache_dir,
            ttl=settings.cache.ttl,
            **({"max_size": settings.cache.max_size} if settings.cache.provider == "memory" else {}),
        )
    cache_ttl = settings.cache.ttl
    apikey = settings.service.apikey

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        yield
        await service.aclose()

    app = FastAPI(title="PT-Gen", version=VERSION, lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.service = service
    app.state.storage = storage

    @app.middleware("http")
    async def guard_and_cache(request: Request, call_next):
        if not request.url.path.startswith("/api/"):
            return await call_next(request)

        if apikey and request.query_params.get("apikey") != apikey:
            return JSONResponse({"error": "apikey required."}, status_code=403)

        if not cache_ttl:
            return await call_next(request)

        key = cache_key_for(request)
        cached = storage.get(key)
        if isinstance(cached, dict):
            logger.debug(f"Cache hit {key}")
            return JSONResponse(cached)
        if cached is not None:
            storage.delete(key)

        response = await call_next(request)
        body = getattr(request.state, "cacheable_body", None)
        if response.status_code == 200 and isinstance(body, dict) and not body.get("error"):
            storage.put(key, body, cache_ttl)
        return response

    def respond(request: Request, body: Dict[str, Any], status_code: int = 200) -> JSONResponse:
        # 中间件据此决定是否写缓存，无需重新读取响应体
        request.state.cacheable_body = body
        return JSONResponse(body, status_code=status_code)

    @app.get("/health")
    async def health() -> Dict[str, str]:
        return {"status": "ok"}

    @app.get("/")
    async def index(request: Request):
        params = request.query_params
        passthrough = {"apikey": params["apikey"]} if params.get("apikey") else {}
        if params.get("search"):
            query = {"q": params["search"], "source": params.get("source") or "douban", **passthrough}
            return RedirectResponse(f"/api/v1/search?{urlencode(query)}")
        if params.get("url"):
            return RedirectResponse(f"/api/v1/info?{urlencode({'url': params['url'], **passthrough})}")
        if params.get("site"):
            suffix = f"?{urlencode(passthrough)}" if passthrough else ""
            return RedirectResponse(f"/api/v1/info/{params['site']}/{params.get('sid', '')}{suffix}")
        return {"name": "PT-Gen", "version": VERSION}

    @app.get("/api/v1/search")
    async def search(request: Request):
        if settings.service.disable_search:
            return JSONResponse({"error": "this ptgen disallow search"}, status_code=403)

        keywords = request.query_params.get("q") or request.query_params.get("search")
        source = request.query_params.get("source") or "douban"
        if not keywords:
            return JSONResponse({"error": "Missing query parameter: q or search"}, status_code=400)
        if resolve_source(source) is None:
            return JSONResponse({"error": f"Unknown value of key 'source': {source}"}, status_code=400)

        body, status_code = await service.run_search(source, keywords, debug=_is_debug(request))
        return respond(request, body, status_code=status_code)

    async def site_info(request: Request, site: str, sid: str) -> JSONResponse:
        source = resolve_source(site)
        if source is None:
            return JSONResponse({"error": f"Unknown value of key 'site': {site}"}, status_code=400)
        result = await service.run(source, sid, style=_style(request), debug=_is_debug(request))
        return respond(request, service.make_response(result.to_body()), status_code=result.status_code)

    @app.get("/api/v1/info")
    async def info_by_url(request: Request):
        url = request.query_params.get("url")
        if not url:
            return JSONResponse({"error": "Missing url parameter"}, status_code=400)
        matched = match_resource_url(url)
        if matched is None:
            return JSONResponse({"error": "Unsupported URL or input unsupported resource url"}, status_code=400)
        source, sid = matched
        return await site_info(request, source.value, sid)

    @app.get("/api/v1/info/{site}/{sid}")
    async def info_by_site(request: Request, site: str, sid: str):
        return await site_info(request, site, sid)

    # 便捷别名，指向 v1
    @app.get("/api/search")
    async def search_alias(request: Request):
        return RedirectResponse(f"/api/v1/search?{request.url.query}")

    @app.get("/api/info")
    async def info_alias(request: Request):
        return RedirectResponse(f"/api/v1/info?{request.url.query}")

    @app.get("/api/info/{site}/{sid}")
    async def info_site_alias(request: Request, site: str, sid: str):
        query = f"?{request.url.query}" if request.url.query else ""
        return RedirectResponse(f"/api/v1/info/{site}/{sid}{query}")

    return app
