"""FastAPI application entrypoint.

This module builds the QuizCraft API: it configures logging and CORS,
creates the database tables, registers the domain error handler and the
request-id middleware, and mounts the per-resource routers:

- /auth        registration, login, token refresh
- /users       profile, dashboard stats, admin teacher management
- /categories  quiz categories
- /quizzes     quiz authoring, questions, access codes
- /students    guest student profiles and joining
- /results     submission, results and analytics
- /health
"""

from datetime import datetime, timezone
import json
import logging
import time
import uuid

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from .config import settings
from .database import create_db_and_tables
from .errors import QuizCraftError
from .routes import auth, categories, quizzes, results, students, users

app = FastAPI(title="QuizCraft API")
logger = logging.getLogger("quizcraft.api")
if not logger.handlers:
    logging.basicConfig(level=settings.LOG_LEVEL)

# Wide-open CORS lets the static frontend talk to a local API in dev.
if settings.ALLOW_DEV_CORS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

create_db_and_tables()


def _request_log(request: Request, req_id: str, started: float, status_code=None) -> str:
    entry = {
        "request_id": req_id,
        "path": request.url.path,
        "method": request.method,
        "duration_ms": round((time.perf_counter() - started) * 1000.0, 2),
        "client": request.client.host if request.client else "unknown",
    }
    if status_code is not None:
        entry["status_code"] = status_code
    return json.dumps(entry, ensure_ascii=True)


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    req_id = request.headers.get("X-Request-ID", uuid.uuid4().hex)
    request.state.request_id = req_id
    started = time.perf_counter()
    response: Response
    try:
        response = await call_next(request)
    except Exception:
        logger.exception("request_failed %s", _request_log(request, req_id, started))
        raise
    response.headers["X-Request-ID"] = req_id
    if request.url.path != "/health":
        logger.info("request_done %s", _request_log(request, req_id, started, response.status_code))
    return response


@app.exception_handler(QuizCraftError)
async def quizcraft_error_handler(request: Request, exc: QuizCraftError):
    """Map domain errors to `{"detail": message}` with their status code."""
    if exc.status_code >= 500:
        logger.error("domain error on %s: %s", request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


app.include_router(auth.router, prefix="/auth")
app.include_router(users.router, prefix="/users")
app.include_router(categories.router, prefix="/categories")
app.include_router(quizzes.router, prefix="/quizzes")
app.include_router(students.router, prefix="/students")
app.include_router(results.router, prefix="/results")


@app.get("/health")
def health():
    """Lightweight health check for uptime monitoring."""
    return {
        "status": "ok",
        "message": "QuizCraft API is running",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
