import logging
import os
import time

from fastapi import FastAPI
from sqlalchemy import text
from sqlalchemy.exc import OperationalError

from showbook.api.routes.routes import reclaimer, router
from showbook.infrastructure.db.session import engine
from showbook.infrastructure.db.models import Base

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO"),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def _wait_for_db() -> None:
    # Handles the common case where API starts before Postgres is ready.
    max_retries = int(os.getenv("DB_CONNECT_MAX_RETRIES", "30"))
    retry_delay_seconds = float(os.getenv("DB_CONNECT_RETRY_DELAY", "1.5"))

    for attempt in range(1, max_retries + 1):
        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            logger.info("Database is reachable.")
            return
        except OperationalError:
            if attempt == max_retries:
                logger.exception(
                    "Database not reachable after %s attempts. Check DATABASE_URL and Postgres status.",
                    max_retries,
                )
                raise
            logger.warning(
                "Database not ready (attempt %s/%s). Retrying in %.1f seconds...",
                attempt,
                max_retries,
                retry_delay_seconds,
            )
            time.sleep(retry_delay_seconds)


app = FastAPI(title="Showbook Seat Booking")

app.include_router(router)


@app.on_event("startup")
def on_startup() -> None:
    _wait_for_db()
    Base.metadata.create_all(bind=engine)
    # Reclaim bookings whose timers died with a previous process.
    reclaimer.sweep()
    reclaimer.start()


@app.on_event("shutdown")
def on_shutdown() -> None:
    reclaimer.stop()
