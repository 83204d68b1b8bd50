# summary_gateway/main.py - FastAPI app: settings, origin gate, summarize endpoint
import asyncio
import json
import logging
import threading
from typing import Optional

from fastapi import FastAPI, BackgroundTasks, Request
from fastapi.responses import JSONResponse, Response
from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool

from .cache_keys import derive_cache_key
from .db import make_engine, make_session_factory
from .normalize import normalize_text
from .origin_gate import Decision, OriginGate
from .schemas import ErrorOut, MessageOut, SummarizeIn, SummarizeOut
from .settings import Settings, require_env
from .storage import S3ObjectStore, SqlObjectStore, SummaryCache
from .summarizer import OutlineSummarizer, Summarize

logger = logging.getLogger(__name__)

SUMMARIZE_PATH = "/api/summarize"
ALL_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]

ERR_TEXT_REQUIRED = "text is required"
ERR_ORIGIN = "Origin not allowed"
ERR_METHOD = "Method Not Allowed"
ERR_GENERIC = "invalid request or summarize failed"


class BodyParseError(ValueError):
    """Request body is not JSON, is JSON null, or has non-string fields."""


def json_response(data, status: int = 200, headers: Optional[dict] = None) -> JSONResponse:
    return JSONResponse(
        content=data,
        status_code=status,
        headers=headers or {},
        media_type="application/json; charset=utf-8",
    )


# --- Collaborator construction (overridable in create_app) ---
def build_cache(settings: Settings) -> SummaryCache:
    backend = settings.resolved_cache_backend()
    store = None
    if backend == "sql":
        engine = make_engine(settings.database_url or require_env("DATABASE_URL"))
        store = SqlObjectStore(make_session_factory(engine), engine)
    elif backend == "s3":
        store = S3ObjectStore(
            settings.cache_bucket or require_env("SUMMARY_CACHE_BUCKET"),
            endpoint_url=settings.s3_endpoint_url,
            region=settings.s3_region,
        )
    return SummaryCache(store, settings.model_tag)


def build_summarizer(settings: Settings) -> Summarize:
    return OutlineSummarizer(
        settings.summarizer_base_url,
        settings.summarizer_api_key,
        settings.summarizer_model or settings.model_tag,
        timeout=settings.summarizer_timeout_s,
        max_retries=settings.summarizer_max_retries,
        max_tokens=settings.summarizer_max_tokens,
    )


async def parse_body(request: Request) -> SummarizeIn:
    raw = await request.body()
    try:
        data = json.loads(raw)
    except ValueError as e:
        raise BodyParseError(f"body is not valid JSON: {e}") from e
    if data is None:
        raise BodyParseError("body is JSON null")
    if not isinstance(data, dict):
        # arrays and scalars carry no fields; they end up as "text is required"
        return SummarizeIn()
    try:
        return SummarizeIn.model_validate(data)
    except ValidationError as e:
        raise BodyParseError(f"body fields have the wrong type: {e.error_count()} error(s)") from e


async def call_summarizer(summarizer: Summarize, text: str) -> str:
    if asyncio.iscoroutinefunction(summarizer):
        return await summarizer(text)
    return await run_in_threadpool(summarizer, text)


def error_response(message: str, status: int, headers: Optional[dict] = None) -> JSONResponse:
    return json_response(ErrorOut(error=message).model_dump(), status, headers)


ERROR_RESPONSES = {
    400: {"model": ErrorOut},
    403: {"model": ErrorOut},
    405: {"model": ErrorOut},
    500: {"model": ErrorOut},
}


def create_app(
    settings: Optional[Settings] = None,
    summarizer: Optional[Summarize] = None,
    cache: Optional[SummaryCache] = None,
) -> FastAPI:
    settings = settings or Settings.from_env()
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
    )
    cache = cache if cache is not None else build_cache(settings)
    summarizer = summarizer if summarizer is not None else build_summarizer(settings)
    gate = OriginGate(settings.allowed_origins)

    app = FastAPI(title="Summary Cache Gateway")
    app.state.settings = settings
    app.state.cache = cache
    app.state.summarizer = summarizer
    app.state.gate = gate

    # Terse error surface for clients; details stay in server logs
    @app.exception_handler(Exception)
    async def unhandled_exc_handler(request, exc):
        logger.error("[SUMMARIZE] unhandled error on %s %s", request.method, request.url.path,
                     exc_info=exc)
        return error_response(ERR_GENERIC, 500)

    # --- Startup: create cache table when the SQL store is in use ---
    @app.on_event("startup")
    def on_startup():
        logger.info("[STARTUP] cache backend=%s write_mode=%s origins=%d",
                    cache.backend_name, settings.cache_write_mode, len(gate.allowed_origins))
        if not isinstance(cache.store, SqlObjectStore):
            return
        try:
            cache.store.create_tables()
        except Exception as e:
            # the store still fails soft per request
            logger.warning("[STARTUP] could not create cache tables: %s", e)

    # --- Shutdown: release the summarizer's HTTP session ---
    @app.on_event("shutdown")
    def on_shutdown():
        close = getattr(summarizer, "close", None)
        if callable(close):
            close()
            logger.info("[SHUTDOWN] summarizer client closed")

    def schedule_cache_write(background: BackgroundTasks, key: str, text: str) -> None:
        if cache.store is None:
            return
        if settings.cache_write_mode == "thread":
            threading.Thread(target=cache.write, args=(key, text), daemon=True,
                             name="summary-cache-write").start()
        else:
            background.add_task(cache.write, key, text)

    @app.api_route(SUMMARIZE_PATH, methods=ALL_METHODS, response_model=SummarizeOut,
                   responses=ERROR_RESPONSES)
    async def summarize(request: Request, background: BackgroundTasks):
        cors = gate.evaluate(request.method, request.headers.get("origin"))

        if cors.is_preflight:
            if cors.decision is not Decision.ALLOW:
                return Response(status_code=403)
            return Response(status_code=204, headers=cors.cors_headers)

        # curl and server-to-server callers send no Origin; only gate browsers
        if cors.denied:
            logger.info("[CORS] rejected origin %r", request.headers.get("origin"))
            return error_response(ERR_ORIGIN, 403)

        headers = cors.cors_headers
        if request.method != "POST":
            return error_response(ERR_METHOD, 405, headers)

        try:
            body = await parse_body(request)
            text = normalize_text(body.raw_text())
            if not text:
                return error_response(ERR_TEXT_REQUIRED, 400, headers)

            key = derive_cache_key(text, body.raw_source_id(), settings.cache_prefix, settings.model_tag)
            cached = await run_in_threadpool(cache.read, key)
            if cached:
                return json_response(SummarizeOut(text=cached, cached=True).model_dump(), 200, headers)

            result = await call_summarizer(summarizer, text)
            schedule_cache_write(background, key, result)
            return json_response(SummarizeOut(text=result, cached=False).model_dump(), 200, headers)
        except Exception:
            logger.exception("[SUMMARIZE] summarize api error")
            return error_response(ERR_GENERIC, 500, headers)

    @app.api_route("/{full_path:path}", methods=ALL_METHODS, response_model=MessageOut,
                   include_in_schema=False)
    def fallback(full_path: str):
        return MessageOut(message="Hello World!")

    return app


app = create_app()
