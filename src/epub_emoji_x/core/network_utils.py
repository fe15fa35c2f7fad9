# epub_emoji_x/src/epub_emoji_x/core/network_utils.py
"""
Utilitaires réseau génériques (retry backoff, téléchargements HTTP).
"""

import logging
import random
import time
from functools import wraps
from typing import Callable

import requests

from ..config import (
    API_TIMEOUT,
    INITIAL_BACKOFF,
    JITTER,
    MAX_BACKOFF,
    MAX_RETRIES,
)

logger = logging.getLogger(__name__)

# Seules les erreurs transitoires méritent un nouvel essai (un 404 reste un 404)
TRANSIENT_EXCEPTIONS = (requests.ConnectionError, requests.Timeout)


def retry_backoff(
    max_retries: int = MAX_RETRIES,
    initial_backoff: float = INITIAL_BACKOFF,
    max_backoff: float = MAX_BACKOFF,
    jitter: float = JITTER,
    allowed_exceptions: tuple = TRANSIENT_EXCEPTIONS,
):
    """Decorator for retrying functions with exponential backoff + jitter."""

    def deco(func: Callable):
        @wraps(func)
        def wrapper(*args, **kwargs):
            backoff = initial_backoff
            for attempt in range(1, max_retries + 1):
                try:
                    logger.debug("Attempt %d for %s", attempt, func.__name__)
                    return func(*args, **kwargs)
                except allowed_exceptions as e:
                    if attempt == max_retries:
                        logger.warning("Max retries reached for %s: %s", func.__name__, e)
                        raise
                    sleep_time = backoff * (1 + random.uniform(-jitter, jitter))
                    sleep_time = max(0.0, min(max_backoff, sleep_time))
                    logger.warning(
                        "Error on attempt %d for %s: %s -- backing off %.2fs",
                        attempt,
                        func.__name__,
                        e,
                        sleep_time,
                    )
                    time.sleep(sleep_time)
                    backoff = min(max_backoff, backoff * 2)
                except Exception as e:
                    logger.debug("Non-retryable exception in %s: %s", func.__name__, e)
                    raise

        return wrapper

    return deco


@retry_backoff()
def http_download_bytes(url: str, timeout: float = API_TIMEOUT) -> bytes:
    """Télécharge des données binaires avec retry automatique (2xx uniquement)."""
    logger.debug("Downloading bytes from %s", url)
    r = requests.get(url, timeout=timeout)
    r.raise_for_status()
    return r.content
