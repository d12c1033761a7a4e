from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
import logging
from pydantic import BaseModel, Field
from starlette.exceptions import HTTPException as StarletteHTTPException
import uvicorn

from app.gemini import GeminiClient
from chat.core.errors import ConfigurationError, NetworkError, UpstreamError
from config.settings import Settings, get_settings


logging.basicConfig(level=logging.INFO, format="[%(asctime)s] %(levelname)s - %(message)s")
logger = logging.getLogger("geminichat")

router = APIRouter(prefix="/api")


class ChatRequest(BaseModel):
    message: Optional[str] = Field(None, description="User's latest message")


def require_api_key(settings: Settings) -> None:
    if not settings.gemini_api_key:
        raise ConfigurationError("GEMINI_API_KEY is not set in environment or .env")


def get_gemini_client(request: Request) -> GeminiClient:
    client = getattr(request.app.state, "gemini", None)
    if client is None:
        client = GeminiClient(request.app.state.settings)
        request.app.state.gemini = client
    return client


@router.get("/health")
def health(request: Request) -> Dict[str, Any]:
    settings: Settings = request.app.state.settings
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(timespec="milliseconds"),
        "apiKey": settings.api_key_status,
    }


@router.post("/chat")
def chat(req: ChatRequest, gemini: GeminiClient = Depends(get_gemini_client)) -> Any:
    if not req.message:
        return JSONResponse(status_code=400, content={"error": "Message is required"})

    logger.info("Received message: %s chars", len(req.message))
    try:
        logger.info("Sending request to Gemini...")
        reply = gemini.generate(req.message)
    except UpstreamError as exc:
        logger.warning("Upstream failure (%s): %s", exc.status_code, exc.details)
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": str(exc), "details": exc.details},
        )
    except NetworkError as exc:
        logger.exception("Error in /api/chat: %s", exc)
        return JSONResponse(
            status_code=500,
            content={
                "error": "An error occurred while processing your request.",
                "details": str(exc),
            },
        )

    logger.info("Model responded with %s chars", len(reply))
    return {"message": reply}


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    # Refuse to serve degraded traffic without a credential.
    require_api_key(settings)
    logger.info("Environment: %s", settings.app_env)
    logger.info("API Key status: %s", settings.api_key_status)
    yield
    client = getattr(app.state, "gemini", None)
    if client is not None:
        client.close()


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    app = FastAPI(title="Gemini Chat Proxy", version="1.0.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.gemini = None

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        logger.info("%s %s", request.method, request.url.path)
        return await call_next(request)

    @app.exception_handler(RequestValidationError)
    async def invalid_body(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content={"error": "Message is required", "details": str(exc.errors())},
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        if exc.status_code in (404, 405):
            return JSONResponse(
                status_code=404,
                content={"status": "error", "message": "Route not found"},
            )
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})

    @app.exception_handler(Exception)
    async def unhandled(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error: %s", exc)
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    app.include_router(router)

    if settings.frontend_dir:
        frontend = Path(settings.frontend_dir)
        if frontend.is_dir():
            app.mount("/", StaticFiles(directory=str(frontend), html=True), name="frontend")
        else:
            logger.warning("FRONTEND_DIR %s does not exist; not serving it", frontend)

    return app


app = create_app()


def main() -> None:
    settings = get_settings()
    try:
        require_api_key(settings)
    except ConfigurationError as exc:
        logger.error("ERROR: %s", exc)
        raise SystemExit(1)
    logger.info("Server is running on http://localhost:%s", settings.port)
    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
