"""Exponential backoff for store writes that may succeed on a second try."""
import time
import logging
from functools import wraps

logger = logging.getLogger("noticeboard.retry")


class TransientError(Exception):
    """A store write failed in a way that may clear up (locked or busy file)."""
    pass


class PermanentError(Exception):
    """A store write failed in a way retrying cannot fix (corrupt store)."""
    pass


def backoff_delay(attempt: int, base_delay: float, max_delay: float) -> float:
    """Delay before the retry that follows `attempt` (1-based)."""
    return min(base_delay * (2 ** (attempt - 1)), max_delay)


def with_retry(max_attempts=3, base_delay=1, max_delay=60, retry_on=(TransientError,), on_failure=None):
    """Retry the decorated function while it raises one of `retry_on`.

    PermanentError is re-raised at once. When attempts run out the last
    error is raised.

    Args:
        max_attempts: Maximum attempts, including the first call
        base_delay: Delay in seconds after the first failure
        max_delay: Cap on any single delay
        retry_on: Exception types worth retrying
        on_failure: Optional callback(func_name, error, attempt) on each failure
    """
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            for attempt in range(1, max_attempts + 1):
                try:
                    return func(*args, **kwargs)
                except PermanentError:
                    raise
                except retry_on as e:
                    if on_failure is not None:
                        on_failure(func.__name__, e, attempt)
                    if attempt == max_attempts:
                        logger.error(
                            "Giving up on %s after %d attempts: %s",
                            func.__name__, max_attempts, e,
                        )
                        raise
                    delay = backoff_delay(attempt, base_delay, max_delay)
                    logger.warning(
                        "%s failed (attempt %d/%d): %s. Retrying in %.1fs",
                        func.__name__, attempt, max_attempts, e, delay,
                    )
                    time.sleep(delay)
        return wrapper
    return decorator
