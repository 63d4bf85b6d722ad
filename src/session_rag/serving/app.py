"""FastAPI application exposing session-scoped document chat as a REST API."""

from __future__ import annotations

import logging
import re
import time
from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, AsyncIterator

from fastapi import APIRouter, Depends, FastAPI, File, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException as StarletteHTTPException

from session_rag.config import Settings, settings
from session_rag.errors import (
    ProviderError,
    SessionNotFound,
    SessionRAGError,
    UnsupportedFileType,
    ValidationError,
)
from session_rag.ingestion.loader import is_supported
from session_rag.serving.services import Services, build_services
from session_rag.sessions.resources import release_paths

logger = logging.getLogger(__name__)

# Routes that neither need nor allocate a session.
_SESSIONLESS_PATHS = frozenset({"/api/health", "/api/session/cleanup"})

_COPY_BUFFER = 1024 * 1024


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def _epoch_ms(value: datetime) -> int:
    return int(value.timestamp() * 1000)


# ── Request schemas ───────────────────────────────────────────────────
class ChatRequest(BaseModel):
    """Incoming question from the user."""

    question: str | None = None


# ── Dependencies ──────────────────────────────────────────────────────
def get_services(request: Request) -> Services:
    return request.app.state.services


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_session_id(request: Request) -> str:
    return request.state.session_id


# ── Uploads ───────────────────────────────────────────────────────────
def _safe_name(filename: str) -> str:
    return re.sub(r"[^a-zA-Z0-9.-]", "_", Path(filename).name)


def _human_size(size: int) -> str:
    if size >= 1024 * 1024:
        return f"{size / (1024 * 1024):g}MB"
    return f"{size} bytes"


def _save_upload(upload: UploadFile, dest: Path, max_size: int) -> Path:
    """Copy *upload* to *dest*, enforcing the per-file size limit."""
    written = 0
    with dest.open("wb") as fh:
        while True:
            chunk = upload.file.read(_COPY_BUFFER)
            if not chunk:
                break
            written += len(chunk)
            if written > max_size:
                raise ValidationError(f"File size exceeds the limit of {_human_size(max_size)}")
            fh.write(chunk)
    return dest


# ── Routes ────────────────────────────────────────────────────────────
router = APIRouter(prefix="/api")


@router.get("/health")
def health(services: Services = Depends(get_services)) -> dict[str, Any]:
    """Liveness probe."""
    return {
        "success": True,
        "message": "RAG Chatbot API is running",
        "data": {
            "activeSessions": services.store.count(),
            "timestamp": int(time.time() * 1000),
        },
    }


@router.post("/upload")
def upload(
    files: list[UploadFile] | None = File(default=None),
    session_id: str = Depends(get_session_id),
    services: Services = Depends(get_services),
    config: Settings = Depends(get_settings),
) -> dict[str, Any]:
    """Store the uploaded files and rebuild the session's index from them."""
    if not files:
        raise ValidationError("No files uploaded")
    if len(files) > config.max_files:
        raise ValidationError(f"Maximum {config.max_files} files allowed")
    for item in files:
        if not is_supported(item.filename or ""):
            raise UnsupportedFileType(Path(item.filename or "").suffix.lower())

    logger.info("Uploading %d files for session %s", len(files), session_id)
    config.upload_dir.mkdir(parents=True, exist_ok=True)
    stamp = int(time.time() * 1000)
    saved: list[Path] = []
    try:
        for position, item in enumerate(files):
            dest = config.upload_dir / f"{session_id}_{stamp}_{position}_{_safe_name(item.filename or '')}"
            saved.append(dest)
            _save_upload(item, dest, config.max_file_size)
        result = services.pipeline.ingest(session_id, saved)
    except Exception:
        # The session never took ownership of these files.
        release_paths(saved)
        raise

    return {
        "success": True,
        "message": f"Successfully processed {result.file_count} files",
        "data": {
            "fileCount": result.file_count,
            "documentCount": result.document_count,
            "chunkCount": result.chunk_count,
            "files": [item.filename for item in files],
        },
    }


@router.post("/chat")
def chat(
    body: ChatRequest,
    session_id: str = Depends(get_session_id),
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    """Answer a question from the session's documents."""
    logger.info("Chat request from session %s", session_id)
    turn = services.engine.chat(session_id, body.question)
    return {
        "success": True,
        "data": {
            "question": turn.question,
            "answer": turn.answer,
            "timestamp": _epoch_ms(turn.timestamp),
        },
    }


@router.get("/chat/history")
def chat_history(
    session_id: str = Depends(get_session_id),
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    history = [
        {"role": m.role, "content": m.content, "timestamp": _epoch_ms(m.timestamp)}
        for m in services.engine.history(session_id)
    ]
    return {"success": True, "data": {"history": history, "count": len(history)}}


@router.get("/session")
def session_info(
    session_id: str = Depends(get_session_id),
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    session = services.store.get(session_id)
    return {
        "success": True,
        "data": {
            "sessionId": session.session_id,
            "hasDocuments": session.has_documents,
            "uploadedFiles": [p.name for p in session.owned_paths],
            "chatHistoryCount": len(session.chat_history),
            "createdAt": _epoch_ms(session.created_at),
            "lastActivity": _epoch_ms(session.last_activity),
        },
    }


@router.delete("/session")
def clear_session(
    request: Request,
    session_id: str = Depends(get_session_id),
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    """Drop the session and its files, then hand out a fresh session."""
    result = services.store.clear(session_id)
    release_paths(result.owned_paths)
    if not result.cleared:
        raise SessionNotFound(session_id)

    new_session_id = services.store.create()
    request.state.session_id = new_session_id
    return {
        "success": True,
        "message": "Session cleared successfully",
        "data": {"newSessionId": new_session_id},
    }


@router.post("/session/cleanup")
async def cleanup_session(
    request: Request,
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    """Best-effort cleanup sent by a closing browser tab.

    Nobody observes the response, so this always answers 200.
    """
    try:
        payload = await request.json()
    except ValueError:
        payload = {}
    session_id = payload.get("sessionId") if isinstance(payload, dict) else None
    if not session_id:
        return {"success": True, "message": "No session to cleanup"}

    def _clear() -> bool:
        result = services.store.clear(str(session_id))
        release_paths(result.owned_paths)
        return result.cleared

    try:
        cleared = await run_in_threadpool(_clear)
    except Exception:
        logger.warning("Error cleaning up session %s", session_id, exc_info=True)
        return {"success": True, "message": "Cleanup completed with errors"}

    if not cleared:
        return {"success": True, "message": "Session not found or already cleaned"}
    return {"success": True, "message": "Session cleaned up successfully"}


# ── Application factory ───────────────────────────────────────────────
def _issue_session(response: Response, session_id: str, config: Settings) -> None:
    response.headers[config.session_header] = session_id
    response.set_cookie(
        config.session_cookie,
        session_id,
        max_age=int(config.session_ttl_seconds),
        httponly=True,
        secure=config.is_production,
        samesite="lax",
    )


def create_app(config: Settings | None = None, *, services: Services | None = None) -> FastAPI:
    """Build the API.

    Parameters
    ----------
    config:
        Settings to run with; the environment-derived defaults otherwise.
    services:
        Pre-built components (tests inject fakes here).  When omitted they
        are built from *config* at startup.
    """
    config = config or settings

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        svc = services or build_services(config)
        app.state.services = svc
        config.upload_dir.mkdir(parents=True, exist_ok=True)
        svc.start()
        logger.info("Session service started (%s)", config.environment)
        try:
            yield
        finally:
            svc.shutdown()

    app = FastAPI(
        title="Session RAG API",
        version="0.1.0",
        description="Chat with your uploaded documents inside a short-lived session.",
        lifespan=lifespan,
    )
    app.state.settings = config

    @app.middleware("http")
    async def session_middleware(request: Request, call_next):  # noqa: ANN001, ANN202
        if request.url.path in _SESSIONLESS_PATHS:
            return await call_next(request)

        store = request.app.state.services.store
        session_id = request.headers.get(config.session_header) or request.cookies.get(config.session_cookie)
        # A client-supplied id is honoured only while it names a live session.
        if not session_id or not store.exists(session_id):
            session_id = store.create()
        request.state.session_id = session_id

        response = await call_next(request)
        _issue_session(response, request.state.session_id, config)
        return response

    @app.exception_handler(SessionRAGError)
    async def handle_service_error(request: Request, exc: SessionRAGError) -> JSONResponse:
        message = exc.message
        if isinstance(exc, ProviderError) and config.is_production:
            message = exc.public_message
        if exc.status_code >= 500:
            logger.error("Request failed: %s", exc.message)
        return JSONResponse(status_code=exc.status_code, content={"success": False, "error": message})

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"success": False, "error": "Invalid request body"})

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        error = "Route not found" if exc.status_code == 404 else str(exc.detail)
        return JSONResponse(status_code=exc.status_code, content={"success": False, "error": error})

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error")
        error = "An unexpected error occurred" if config.is_production else str(exc)
        response = JSONResponse(status_code=500, content={"success": False, "error": error})
        # Runs outside the session middleware, which never sees this response.
        session_id = getattr(request.state, "session_id", None)
        if session_id:
            _issue_session(response, session_id, config)
        return response

    app.include_router(router)
    return app


app = create_app()


def main() -> None:
    """Run the API with uvicorn."""
    import uvicorn

    configure_logging(settings.log_level)
    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
