import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from medschedule import config
from medschedule.database import Base, engine
from medschedule.models import appointment, schedule, user, working_hours  # noqa: F401 - register tables
from medschedule.routers import schedules, working_hours as working_hours_router
from medschedule.core.exceptions import register_exception_handlers
from medschedule.core.logging_config import setup_logging
from medschedule.core.scheduler import shutdown_scheduler, start_scheduler

setup_logging(config.LOG_LEVEL)
logger = logging.getLogger(__name__)

# Create database tables
Base.metadata.create_all(bind=engine)

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Start the scheduler
    if config.SCHEDULER_ENABLED:
        start_scheduler()
    yield
    shutdown_scheduler()

app = FastAPI(title="Doctor Schedule API", lifespan=lifespan)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

# Include routers
app.include_router(working_hours_router.router)
app.include_router(schedules.router)

@app.get("/")
async def root():
    return {"message": "Welcome to Doctor Schedule API"}
