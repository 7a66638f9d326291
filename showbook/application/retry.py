import logging
import time
from typing import Callable, TypeVar

from sqlalchemy.orm import Session

from showbook.domain.exceptions import OperationFailedError, TransientContentionError
from showbook.infrastructure.db.errors import is_transient
from showbook.infrastructure.db.session import SessionFactory, SessionLocal, transaction_scope

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_ATTEMPTS = 3
RETRY_DELAY_SECONDS = 0.1


def run_in_transaction(
    work: Callable[[Session], T],
    *,
    session_factory: SessionFactory = SessionLocal,
    attempts: int = MAX_ATTEMPTS,
    delay: float = RETRY_DELAY_SECONDS,
) -> T:
    """
    Run ``work`` inside one transaction, retrying the whole unit on lost
    lock or unique-key races. Every other error leaves on the first attempt.
    """
    last_error: BaseException | None = None

    for attempt in range(1, attempts + 1):
        try:
            with transaction_scope(session_factory) as session:
                return work(session)
        except TransientContentionError as exc:
            last_error = exc
        except Exception as exc:
            if not is_transient(exc):
                raise
            last_error = exc

        if attempt < attempts:
            logger.warning(
                "Transient contention (attempt %s/%s): %s. Retrying in %.2f seconds...",
                attempt,
                attempts,
                last_error,
                delay,
            )
            time.sleep(delay)

    logger.error("Giving up after %s attempts: %s", attempts, last_error)
    raise OperationFailedError(
        f"Operation failed after {attempts} attempts due to contention. Please retry.",
        attempts=attempts,
    ) from last_error
