from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from manager_schedule.config import get_settings
from manager_schedule.dependencies.services import (
    get_notification_client_cached,
    get_supabase_client_cached,
)
from manager_schedule.health import router as health_router
from manager_schedule.routes.schedule import router as schedule_router
from manager_schedule.routes.station_configs import router as station_configs_router
from manager_schedule.routes.waitlist import router as waitlist_router


def configure_logging() -> None:
    """Ensure application logs use the INFO level by default."""
    root_logger = logging.getLogger()
    if not root_logger.handlers:
        logging.basicConfig(
            level=logging.INFO,
            format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        )
    else:
        root_logger.setLevel(logging.INFO)

# Configure logging as soon as the module is loaded
configure_logging()

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manages application startup and shutdown events.
    """
    # --- Startup Logic ---
    settings = get_settings()

    settings_snapshot = settings.model_dump(
        exclude={"supabase_key", "notification_token"},
    )
    logger.info("Application settings on startup: %s", settings_snapshot)

    backend = get_supabase_client_cached()
    notifier = get_notification_client_cached()
    logger.info(
        "Application startup complete (mock backend: %s, mock notifications: %s).",
        backend.use_mock_data,
        notifier.use_mock_data,
    )

    try:
        yield  # The application is now running
    finally:
        # --- Shutdown Logic ---
        logger.info("Closing backend and notification clients.")
        await backend.close()
        await notifier.close()
        logger.info("Application shutdown complete.")


# --- Application Setup ---

settings = get_settings()
app = FastAPI(
    title=settings.app_name,
    lifespan=lifespan,
    redirect_slashes=False
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[str(origin).rstrip("/") for origin in settings.cors_origins],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# --- Include Routers ---

app.include_router(schedule_router, prefix="/schedule")
app.include_router(waitlist_router, prefix="/waitlist")
app.include_router(station_configs_router, prefix="/station-configs")
app.include_router(health_router)
