import logging
import time
from typing import Callable, Optional, TypeVar

from family_points.config import STORAGE_RETRY_ATTEMPTS, STORAGE_RETRY_DELAY_SECONDS
from family_points.domain.errors import StorageFailureError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def run_with_retry(
    operation: Callable[[], T],
    attempts: Optional[int] = None,
    delay: Optional[float] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Run ``operation`` and retry it on StorageFailureError.

    The operation must already carry its idempotency key (the event id is
    assigned before the first attempt), so a retry after an unknown outcome
    either finds the committed event or commits it once.
    """
    attempts = attempts or STORAGE_RETRY_ATTEMPTS
    delay = STORAGE_RETRY_DELAY_SECONDS if delay is None else delay
    for attempt in range(1, attempts + 1):
        try:
            return operation()
        except StorageFailureError:
            if attempt >= attempts:
                logger.error("Storage still failing after %d attempts, giving up", attempts)
                raise
            logger.warning("Storage failure on attempt %d/%d, retrying", attempt, attempts)
            sleep(delay * attempt)
    raise StorageFailureError()
