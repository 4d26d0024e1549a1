import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from review_engine.core.config import settings
from review_engine.core.errors import ReviewError
from review_engine.core.logging_middleware import LoggingMiddleware
from review_engine.db.init_db import init_db

from review_engine.routers.admin import router as admin_router
from review_engine.routers.progress import router as progress_router
from review_engine.routers.reviews import router as reviews_router
from review_engine.routers.submissions import router as submissions_router

logging.basicConfig(level=settings.log_level)

app = FastAPI(title="Review Engine")

# Middleware
app.add_middleware(LoggingMiddleware)


# every engine error becomes a typed JSON answer, never a 500
@app.exception_handler(ReviewError)
def review_error_handler(request: Request, exc: ReviewError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# Health check
@app.get("/health")
def health():
    return {"status": "ok"}


# Startup event
@app.on_event("startup")
def on_startup():
    init_db()


# Include routers
app.include_router(submissions_router, tags=["submissions"])
app.include_router(reviews_router, tags=["reviews"])
app.include_router(progress_router, tags=["progress"])
app.include_router(admin_router, prefix="/admin", tags=["admin"])
