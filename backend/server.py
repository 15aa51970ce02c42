from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from contextlib import asynccontextmanager
from database import database
from routes import auth, users, ac_units, dashboard, notification_preferences, reminders

import os
import logging
from pathlib import Path
from dotenv import load_dotenv
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

# Load environment variables
ROOT_DIR = Path(__file__).parent
load_dotenv(ROOT_DIR / '.env')

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

REMINDER_HOUR_UTC = int(os.getenv("REMINDER_HOUR_UTC", "9"))

scheduler = AsyncIOScheduler()

from job_runner import run_daily_reminders

# Lifespan context manager for startup/shutdown
@asynccontextmanager
async def lifespan(app: FastAPI):
    if os.getenv("PYTEST_RUNNING"):
        # Tests provide their own database and never run jobs
        yield
        return

    logger.info("Starting CoolTrack API")
    await database.connect()

    # Daily service reminders
    scheduler.add_job(
        run_daily_reminders,
        CronTrigger(hour=REMINDER_HOUR_UTC, minute=0),
        id="daily_reminders",
        name="Daily Service Reminders",
        replace_existing=True
    )
    scheduler.start()
    logger.info("Background job scheduler started")

    yield

    logger.info("Shutting down CoolTrack API")
    scheduler.shutdown(wait=False)
    await database.close()

app = FastAPI(
    title="CoolTrack API",
    description="AC unit service tracking and reminders",
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_credentials=True,
    allow_origins=os.environ.get('CORS_ORIGINS', 'http://localhost:5173').split(','),
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth.router)
app.include_router(users.router)
app.include_router(ac_units.router)
app.include_router(dashboard.router)
app.include_router(notification_preferences.router)
app.include_router(reminders.router)

@app.get("/api/health")
async def health_check():
    return {
        "status": "healthy",
        "environment": os.getenv("ENVIRONMENT", "development")
    }

def format_validation_errors(errors) -> str:
    """Render pydantic errors as "field: message; field: message"."""
    parts = []
    for error in errors:
        loc = [str(p) for p in error.get("loc", ()) if p not in ("body", "query", "path")]
        field = ".".join(loc) or "request"
        parts.append(f"{field}: {error.get('msg')}")
    return "; ".join(parts)

# Validation errors are client errors: 400 with a readable message
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    message = format_validation_errors(errors)
    logger.info(f"Validation failed path={request.url.path}: {message}")
    return JSONResponse(
        status_code=400,
        content={
            "detail": message,
            "errors": [{"loc": list(e.get("loc", ())), "msg": e.get("msg"), "type": e.get("type")} for e in errors],
        },
    )

# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"}
    )

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "server:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", "8001")),
        reload=os.getenv("ENVIRONMENT") == "development"
    )
