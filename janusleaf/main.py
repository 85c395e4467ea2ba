import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from janusleaf.analysis import routes as analysis_router
from janusleaf.auth import routes as auth_router
from janusleaf.auth.service import purge_refresh_tokens
from janusleaf.core import config
from janusleaf.core.database import create_tables
from janusleaf.core.dependency import get_mood_worker, get_quote_regenerator
from janusleaf.core.errors import AppError, VersionConflict
from janusleaf.core.scheduler import PeriodicJob
from janusleaf.inspiration import routes as inspiration_router
from janusleaf.journals import routes as journals_router

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="JanusLeaf API",
    version="1.0.0",
    description="Backend for JanusLeaf: journaling, AI mood scores and inspirational quotes.",
)

# CORS config
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routers
app.include_router(auth_router.router)
app.include_router(journals_router.router)
app.include_router(analysis_router.router)
app.include_router(inspiration_router.router)

jobs = []


@app.exception_handler(AppError)
def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    content = {"detail": exc.detail}
    if isinstance(exc, VersionConflict):
        content["expected_version"] = exc.expected
        content["current_version"] = exc.current
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.detail}")
    return JSONResponse(status_code=exc.status_code, content=content)


@app.get("/health", tags=["System"])
def health() -> dict:
    return {"status": "ok"}


@app.on_event("startup")
def startup():
    create_tables()
    if not config.JOBS_ENABLED:
        logger.info("Background jobs disabled")
        return

    worker = get_mood_worker()
    regenerator = get_quote_regenerator()
    jobs.append(PeriodicJob("mood-analysis", config.MOOD_POLL_INTERVAL_SECONDS, worker.process_ready))
    jobs.append(PeriodicJob("inspirational-quotes", config.QUOTE_POLL_INTERVAL_SECONDS, regenerator.process_due))
    jobs.append(PeriodicJob("refresh-token-purge", config.REFRESH_TOKEN_PURGE_INTERVAL_SECONDS, purge_refresh_tokens))
    for job in jobs:
        job.start()


@app.on_event("shutdown")
def shutdown():
    for job in jobs:
        job.stop(timeout=10)
    jobs.clear()
    # The read path schedules regenerations even when the jobs are off
    get_quote_regenerator().shutdown(wait=False)
