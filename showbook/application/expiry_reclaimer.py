import logging
import os
import threading
from datetime import datetime, timezone
from typing import Callable

from sqlalchemy.orm import Session

from showbook.application.booking_lifecycle import BookingLifecycle
from showbook.application.retry import run_in_transaction
from showbook.domain.state_machine import BookingStatus
from showbook.infrastructure.db.session import SessionFactory, SessionLocal
from showbook.infrastructure.repositories.booking_repository import BookingRepository

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

SWEEP_INTERVAL_SECONDS = float(os.getenv("EXPIRY_SWEEP_INTERVAL_SECONDS", "30"))

# Timers fire slightly late so the deadline check at fire time passes.
TIMER_SLACK_SECONDS = 0.5


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ExpiryReclaimer:
    """
    Moves pending bookings past their deadline to EXPIRED and frees their
    seats. Per-booking timers give prompt release; the periodic sweep
    catches whatever timers were lost to restarts or other instances.

    Timers are never cancelled. Whoever locks the booking row first and
    still sees PENDING wins; every later attempt is a no-op.
    """

    def __init__(
        self,
        session_factory: SessionFactory = SessionLocal,
        clock: Clock = utc_now,
        sweep_interval: float = SWEEP_INTERVAL_SECONDS,
    ):
        self.session_factory = session_factory
        self.clock = clock
        self.sweep_interval = sweep_interval
        self._stop_event = threading.Event()
        self._sweeper: threading.Thread | None = None

    def schedule(self, booking_id: str, expires_at: datetime) -> threading.Timer:
        delay = max((expires_at - self.clock()).total_seconds(), 0.0) + TIMER_SLACK_SECONDS
        timer = threading.Timer(delay, self._fire, args=(booking_id,))
        timer.daemon = True
        timer.start()
        logger.debug("Scheduled expiry of booking %s in %.1f seconds", booking_id, delay)
        return timer

    def _fire(self, booking_id: str) -> None:
        try:
            self.expire(booking_id)
        except Exception:
            # The sweep retries anything a timer failed to reclaim.
            logger.exception("Error expiring booking %s", booking_id)

    def expire(self, booking_id: str) -> bool:
        """
        Returns True if this call moved the booking to EXPIRED.
        """

        def work(session: Session) -> bool:
            booking = BookingRepository(session).lock_by_id(booking_id)
            if booking is None:
                logger.info("Booking %s not found for expiration", booking_id)
                return False
            if booking.status != BookingStatus.PENDING:
                return False
            if booking.expires_at > self.clock():
                return False

            BookingLifecycle(session).transition(booking, BookingStatus.EXPIRED)
            return True

        expired = run_in_transaction(work, session_factory=self.session_factory)
        if expired:
            logger.info("Booking %s expired", booking_id)
        return expired

    def expire_overdue_for_show(self, session: Session, show_id: str, now: datetime) -> int:
        """
        Reclaims overdue bookings of one show inside the caller's
        transaction. The caller must hold the show lock.
        """
        overdue = BookingRepository(session).find_overdue_pending(
            now, show_id=show_id, for_update=True
        )
        lifecycle = BookingLifecycle(session)
        for booking in overdue:
            lifecycle.transition(booking, BookingStatus.EXPIRED)
        return len(overdue)

    def sweep(self) -> int:
        def work(session: Session) -> list[str]:
            overdue = BookingRepository(session).find_overdue_pending(self.clock())
            return [booking.id for booking in overdue]

        count = 0
        for booking_id in run_in_transaction(work, session_factory=self.session_factory):
            if self.expire(booking_id):
                count += 1

        if count:
            logger.info("Expiry sweep reclaimed %s bookings", count)
        return count

    def _run(self) -> None:
        while not self._stop_event.wait(self.sweep_interval):
            try:
                self.sweep()
            except Exception:
                logger.exception("Expiry sweep failed")

    def start(self) -> None:
        if self._sweeper is not None and self._sweeper.is_alive():
            return
        self._stop_event.clear()
        self._sweeper = threading.Thread(
            target=self._run,
            name="expiry-sweeper",
            daemon=True,
        )
        self._sweeper.start()
        logger.info("Expiry sweeper started (interval %.1f seconds)", self.sweep_interval)

    def stop(self) -> None:
        self._stop_event.set()
        if self._sweeper is not None:
            self._sweeper.join(timeout=self.sweep_interval + 1)
            self._sweeper = None
