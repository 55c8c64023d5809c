from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import CORS_ORIGINS
from .database import create_tables
from .errors import register_exception_handlers
from .logging_config import get_logger, setup_logging
from .mailer import build_mailer
from .reminders import ReminderScheduler
from .routers import auth, tasks

setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    create_tables()
    logger.info("Task Tracker API started")
    yield
    # Pending reminders are in memory only and do not survive a restart.
    app.state.reminder_scheduler.shutdown()
    logger.info("Task Tracker API stopped")


# Create FastAPI app
app = FastAPI(
    title="Task Tracker API",
    description="Task tracking API with JWT auth and due-date email reminders",
    version="1.0.0",
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

app.state.mailer = build_mailer()
app.state.reminder_scheduler = ReminderScheduler(mailer=app.state.mailer)

# Include routers
app.include_router(auth.router, prefix="/api/auth", tags=["auth"])
app.include_router(tasks.router, prefix="/api", tags=["tasks"])

# Same routes without the /api prefix
app.include_router(auth.router, prefix="/auth", include_in_schema=False)
app.include_router(tasks.router, include_in_schema=False)


@app.get("/")
def read_root():
    return {"status": "OK", "message": "Task Tracker Backend is running."}


@app.get("/health")
def health_check():
    return {"status": "healthy"}
