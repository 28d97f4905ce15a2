"""
Core utility functions used across the application.
"""
from typing import Callable, Any, TypeVar
import time
import logging
from functools import wraps

import httpx
from botocore.exceptions import ClientError

from apps.core.exceptions import CallServiceError, NotFoundError, ProviderError

logger = logging.getLogger(__name__)

T = TypeVar('T')


def retry_on_exception(
    max_attempts: int = 3,
    backoff_base: float = 0.5,
    exceptions: tuple = (Exception,)
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """
    Retry decorator with exponential backoff for transient fetch failures.

    Used for downloading call artifacts (recordings, audio for analysis).
    Vendor API calls that change state are never wrapped: a retried
    ``make_call`` could dial twice.

    Args:
        max_attempts: Total number of attempts (default: 3)
        backoff_base: Base delay in seconds; delays are base, 2*base, 4*base...
        exceptions: Exception types that trigger a retry

    Returns:
        Decorated function that retries on the given exceptions
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> T:
            for attempt in range(1, max_attempts + 1):
                start_time = time.monotonic()
                try:
                    result = func(*args, **kwargs)
                except exceptions as e:
                    elapsed = time.monotonic() - start_time
                    if attempt == max_attempts:
                        logger.error(
                            f"[RETRY] {func.__name__} failed after {max_attempts} attempts "
                            f"(last attempt took {elapsed:.2f}s): {e}"
                        )
                        raise
                    delay = backoff_base * (2 ** (attempt - 1))
                    logger.warning(
                        f"[RETRY] {func.__name__} failed on attempt {attempt}/{max_attempts} "
                        f"(took {elapsed:.2f}s): {e}. Retrying in {delay}s"
                    )
                    time.sleep(delay)
                    continue

                if attempt > 1:
                    logger.info(f"[RETRY] {func.__name__} succeeded on attempt {attempt}")
                return result

        return wrapper
    return decorator


@retry_on_exception(max_attempts=3, backoff_base=0.5, exceptions=(httpx.TransportError,))
def _fetch(http: httpx.Client, url: str) -> bytes:
    response = http.get(url)
    response.raise_for_status()
    return response.content


def download_artifact(http: httpx.Client, url: str) -> bytes:
    """
    Download a recording or audio file, retrying transport failures.

    A 404 becomes ``NotFoundError``; any other failure, including transport
    errors that outlast the retries, becomes ``ProviderError``.
    """
    try:
        return _fetch(http, url)
    except httpx.HTTPStatusError as e:
        if e.response.status_code == 404:
            raise NotFoundError(f"Audio not found: {url}") from e
        raise ProviderError(
            f"Download failed with HTTP {e.response.status_code}: {url}", provider='http'
        ) from e
    except httpx.HTTPError as e:
        raise ProviderError(f"Download failed: {e}", provider='http') from e


def storage_error(error: ClientError, target: str) -> CallServiceError:
    """Translate a botocore error for ``target`` into the service taxonomy."""
    code = error.response.get('Error', {}).get('Code', '')
    if code in ('NoSuchKey', 'NoSuchBucket', '404', 'NotFound'):
        return NotFoundError(f"{target} not found in storage")
    logger.error(f"[STORAGE] S3 request failed - target={target} code={code}: {error}")
    return ProviderError(f"Storage request failed ({code or 'unknown'}): {target}", provider='s3')
