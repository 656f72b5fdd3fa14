import time
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import ValidationError
from starlette.requests import Request
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from streamgate.api.endpoints import base, metadata, scrape
from streamgate.api.schemas import format_validation_error
from streamgate.core.exceptions import AuthError
from streamgate.core.logger import logger
from streamgate.core.models import settings
from streamgate.providers.manager import get_provider_engine
from streamgate.utils.http_client import http_client_manager


class AccessLogMiddleware:
    """
    Access log for plain and SSE responses.

    A scrape stream sends its headers at once and stays open while the engine
    runs, so streams are logged when they close, with time-to-headers and
    total duration reported separately.
    """

    def __init__(self, app: ASGIApp):
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        started = time.perf_counter()
        seen = {"status": 500, "headers_after": None, "streaming": False}

        async def send_and_record(message: Message):
            if message["type"] == "http.response.start":
                seen["status"] = message["status"]
                seen["headers_after"] = time.perf_counter() - started
                seen["streaming"] = any(
                    key == b"content-type" and value.startswith(b"text/event-stream")
                    for key, value in message.get("headers", [])
                )
            await send(message)

        try:
            await self.app(scope, receive, send_and_record)
        except Exception as e:
            logger.exception(f"Exception during request processing: {e}")
            raise
        finally:
            elapsed = time.perf_counter() - started
            line = f"{scope['method']} {scope['path']} - {seen['status']}"
            if seen["streaming"]:
                line += f" - stream {elapsed:.2f}s (headers {seen['headers_after']:.2f}s)"
            else:
                line += f" - {elapsed:.2f}s"
            logger.log("API", line)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await http_client_manager.get_session()
    get_provider_engine()

    try:
        yield
    finally:
        await http_client_manager.close()


app = FastAPI(
    title="streamgate",
    summary="Server-sent-events gateway in front of the provider engine.",
    lifespan=lifespan,
    redoc_url=None,
)


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(format_validation_error(exc), status_code=400)


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError):
    return JSONResponse({"errors": exc.error_codes}, status_code=401)


@app.exception_handler(Exception)
async def internal_error_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.url.path}: {exc}")
    return PlainTextResponse("An error has occurred!", status_code=500)


app.add_middleware(AccessLogMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(base.router)
app.include_router(metadata.router)
app.include_router(scrape.router)
