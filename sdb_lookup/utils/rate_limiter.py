"""
rate_limiter.py - Rate limiting and retry utilities for service queries

This module keeps calls to the CDS and IRSA services polite (token bucket) and
retries transient failures with exponential backoff. When the retries run out
the caller gets a ServiceUnavailableError.
"""

import time
import logging
import threading
from functools import wraps
from typing import Callable, Tuple, Type

import requests

from sdb_lookup.exceptions import ServiceUnavailableError

# Set up logging
logger = logging.getLogger(__name__)

# Errors worth another attempt
TRANSIENT_ERRORS: Tuple[Type[BaseException], ...] = (
    requests.ConnectionError,
    requests.Timeout,
    ConnectionError,
    TimeoutError,
)

# HTTP status codes worth another attempt
RETRY_STATUS_CODES = {429, 500, 502, 503, 504}


class RateLimiter:
    """
    Rate limiter for API calls.

    This class implements a token bucket algorithm to limit the rate of API calls.
    """

    def __init__(self,
                 calls_per_second: float = 1.0,
                 burst: int = 5,
                 retry_after: float = 1):
        """
        Initialize the rate limiter.

        Args:
            calls_per_second: Maximum calls per second.
            burst: Maximum burst size (number of consecutive calls allowed).
            retry_after: Seconds to wait before checking for a token again.
        """
        self.calls_per_second = calls_per_second
        self.burst = burst
        self.retry_after = retry_after

        # Initialize token bucket
        self.tokens = burst
        self.last_refill = time.time()

        self.lock = threading.RLock()

    def __call__(self, func):
        """
        Decorator to rate limit a function.

        Args:
            func: Function to rate limit.

        Returns:
            Rate-limited function.
        """
        @wraps(func)
        def wrapper(*args, **kwargs):
            self.acquire()
            return func(*args, **kwargs)

        return wrapper

    def acquire(self) -> None:
        """
        Acquire a token from the bucket.

        This method blocks until a token is available.
        """
        while True:
            with self.lock:
                now = time.time()
                elapsed = now - self.last_refill
                self.last_refill = now

                self.tokens = min(self.burst, self.tokens + elapsed * self.calls_per_second)

                if self.tokens >= 1:
                    self.tokens -= 1
                    return

            logger.debug(f"Rate limit reached, waiting {self.retry_after} seconds")
            time.sleep(self.retry_after)


def is_transient(error: BaseException) -> bool:
    """Return True if an error from a service call is worth retrying."""
    if isinstance(error, requests.HTTPError):
        response = error.response
        return response is not None and response.status_code in RETRY_STATUS_CODES
    return isinstance(error, TRANSIENT_ERRORS)


def retry_with_backoff(max_retries: int = 3,
                       backoff_seconds: float = 2.0,
                       max_backoff_seconds: float = 60.0,
                       sleep: Callable[[float], None] = time.sleep):
    """
    Decorator retrying a service call on transient errors.

    The wait doubles after every failed attempt. Errors that are not transient
    propagate immediately. When all attempts fail with transient errors a
    ServiceUnavailableError is raised from the last one.

    Args:
        max_retries: Number of retries after the first attempt.
        backoff_seconds: Wait before the first retry.
        max_backoff_seconds: Upper bound on a single wait.
        sleep: Function used to wait (replaceable in tests).

    Returns:
        Decorator.
    """
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            wait = backoff_seconds
            for attempt in range(max_retries + 1):
                try:
                    return func(*args, **kwargs)
                except Exception as e:
                    if not is_transient(e):
                        raise
                    if attempt == max_retries:
                        logger.error(f"{func.__name__} failed after {attempt + 1} attempts: {e}")
                        raise ServiceUnavailableError(f"{func.__name__}: {e}") from e
                    logger.warning(f"{func.__name__} attempt {attempt + 1} failed ({e}), "
                                   f"retrying in {wait:.1f} seconds")
                    sleep(wait)
                    wait = min(wait * 2.0, max_backoff_seconds)
        return wrapper
    return decorator


# Common rate limiters for the services in use
cds_rate_limiter = RateLimiter(calls_per_second=2.0, burst=5)  # Sesame, SIMBAD and VizieR
irsa_rate_limiter = RateLimiter(calls_per_second=1.0, burst=2)
