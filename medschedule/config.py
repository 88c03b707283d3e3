import os

from dotenv import load_dotenv

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./medschedule.db")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Comma separated list, "*" allows every origin
CORS_ORIGINS = [origin.strip() for origin in os.getenv("CORS_ORIGINS", "*").split(",") if origin.strip()]

# Capacity stamped onto every auto-generated schedule
DEFAULT_MAX_APPOINTMENTS = int(os.getenv("DEFAULT_MAX_APPOINTMENTS", "10"))

# Rolling schedule extension job
SCHEDULER_ENABLED = os.getenv("SCHEDULER_ENABLED", "true").lower() == "true"
SCHEDULE_HORIZON_DAYS = int(os.getenv("SCHEDULE_HORIZON_DAYS", "28"))
SCHEDULE_EXTEND_HOUR = int(os.getenv("SCHEDULE_EXTEND_HOUR", "2"))

# Longest date range a single generation request may cover
MAX_GENERATION_DAYS = int(os.getenv("MAX_GENERATION_DAYS", "366"))
