"""Handwash Server - FastAPI Application Entry Point."""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from handwash.config import settings
from handwash.database import init_db
from handwash.errors import HandwashError
from handwash.services.alert_service import report_error
from handwash.services.notification_service import VapidCredentials


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize database, push credentials and the daily reminder worker."""
    init_db()
    app.state.vapid_credentials = VapidCredentials.from_settings(settings)

    from handwash.jobs.reminder_worker import ReminderWorker
    reminder_worker = ReminderWorker(app.state.vapid_credentials)
    reminder_worker.start()

    yield

    reminder_worker.stop()


app = FastAPI(
    title="Handwash",
    description="Family handwash tracker with daily push reminders",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- Error mapping ---

@app.exception_handler(HandwashError)
async def handwash_error_handler(request: Request, exc: HandwashError):
    if exc.status_code >= 500:
        report_error(f"{request.method} {request.url.path}", exc)
    return JSONResponse(status_code=exc.status_code, content={"ok": False, "message": exc.message})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(p) for p in first.get("loc", ()) if p not in ("body", "query"))
    message = f"{field}: {first.get('msg', 'invalid')}" if field else "invalid request"
    return JSONResponse(status_code=400, content={"ok": False, "message": message})


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"ok": False, "message": str(exc.detail)},
        headers=exc.headers,
    )


@app.exception_handler(Exception)
async def internal_error_handler(request: Request, exc: Exception):
    report_error(f"{request.method} {request.url.path}", exc)
    message = f"internal error: {exc}" if settings.debug else "internal error"
    return JSONResponse(status_code=500, content={"ok": False, "message": message})


# --- Register API routers ---
from handwash.api.me import router as me_router  # noqa: E402
from handwash.api.family import router as family_router  # noqa: E402
from handwash.api.handwash import router as handwash_router  # noqa: E402
from handwash.api.push import router as push_router  # noqa: E402

app.include_router(me_router)
app.include_router(family_router)
app.include_router(handwash_router)
app.include_router(push_router)


@app.get("/health")
def health():
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("handwash.main:app", host=settings.host, port=settings.port)
