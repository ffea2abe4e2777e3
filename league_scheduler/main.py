import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from league_scheduler.config import CORS_ORIGINS, LOG_LEVEL
from league_scheduler.database import init_db
from league_scheduler.routes import seasons

logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="League Scheduler API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(seasons.router, prefix="/api", tags=["seasons"])


@app.on_event("startup")
def on_startup():
    init_db()  # Use centralized init_db() which imports models and creates tables
    route_count = sum(1 for r in app.routes if getattr(r, "path", None))
    logger.info("League Scheduler API started: %s routes, log level %s", route_count, LOG_LEVEL)


@app.get("/api/health")
def health_check():
    """Liveness probe"""
    return {"app_name": "League Scheduler API", "status": "healthy"}
