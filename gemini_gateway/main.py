"""FastAPI entrypoint for OpenAI-compatible gateway to Gemini"""

from contextlib import asynccontextmanager
import logging
import sys

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from fastapi.exception_handlers import request_validation_exception_handler

from .routes_openai import router as openai_router
from .config import get_settings

# Configure logging
log_level = get_settings().LOG_LEVEL.upper()
logging.basicConfig(
    level=getattr(logging, log_level, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[
        logging.StreamHandler(sys.stdout)
    ]
)

logger = logging.getLogger(__name__)

LOGGED_PATHS = ("/chat/completions", "/embeddings")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # on startup
    logger.info("Starting OpenAI-compatible gateway for Gemini")
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug(f"Upstream API root: {get_settings().api_root}")

    # app.state.gemini_client is created lazily in routes
    yield
    # on shutdown
    logger.info("Shutting down gateway")
    client = getattr(app.state, "gemini_client", None)
    if client:
        try:
            await client.close()
            logger.info("HTTP client closed successfully")
        except Exception as e:
            logger.error(f"Error closing HTTP client: {e}")

app = FastAPI(
    title="OpenAI-compatible gateway for Gemini",
    version="0.1.0",
    description="Exposes OpenAI chat completions, embeddings and models endpoints backed by Gemini",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
    allow_credentials=False,
)


def _preview(raw: bytes) -> str:
    preview = raw.decode("utf-8", errors="replace")
    max_len = get_settings().LOG_REQUEST_BODY_MAX_LENGTH
    if len(preview) > max_len:
        preview = preview[:max_len] + "...(truncated)"
    return preview


# Debug middleware to log requests and responses for translated endpoints
@app.middleware("http")
async def log_request_response_middleware(request: Request, call_next):
    if request.method != "POST" or not request.url.path.endswith(LOGGED_PATHS):
        return await call_next(request)

    if logger.isEnabledFor(logging.DEBUG):
        # Redact sensitive headers
        headers = {k.lower(): v for k, v in request.headers.items()}
        if "authorization" in headers:
            token = headers["authorization"] or ""
            parts = token.split()
            headers["authorization"] = (parts[0] + " ****") if len(parts) > 1 else "****"

        body = await request.body()
        logger.debug(
            "Incoming POST %s - headers=%s body=%s",
            request.url.path,
            headers,
            _preview(body),
        )
    else:
        logger.info("Incoming POST %s", request.url.path)

    response = await call_next(request)

    # Streams are passed on untouched
    is_stream = (response.headers.get("content-type") or "").startswith("text/event-stream")
    if not logger.isEnabledFor(logging.DEBUG) or is_stream:
        logger.info("Response for POST %s - status=%s", request.url.path, response.status_code)
        return response

    response_body = b""
    async for chunk in response.body_iterator:
        response_body += chunk

    logger.debug(
        "Response for POST %s - status=%s body=%s",
        request.url.path,
        response.status_code,
        _preview(response_body),
    )

    # Recreate response with body
    return Response(
        content=response_body,
        status_code=response.status_code,
        headers=dict(response.headers),
        media_type=response.media_type,
    )

# Detailed 422 logging while delegating to default handler
@app.exception_handler(RequestValidationError)
async def handle_validation_exception(request: Request, exc: RequestValidationError):
    try:
        body_preview = _preview(await request.body())
    except Exception:
        body_preview = "<unavailable>"

    logger.warning(
        "422 validation error on %s %s: errors=%s body=%s",
        request.method,
        str(request.url),
        exc.errors(),
        body_preview,
    )
    return await request_validation_exception_handler(request, exc)

app.include_router(openai_router)

@app.get("/health")
async def health():
    return {"status": "ok"}

def main():
    """Entry point for the application"""
    import uvicorn
    settings = get_settings()
    uvicorn.run(app, host=settings.HOST, port=settings.PORT)

if __name__ == "__main__":
    main()
