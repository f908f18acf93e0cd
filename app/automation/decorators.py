"""
Decorators and external-call utilities.
"""

import functools
import logging
import time
from concurrent.futures import Executor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Any, Callable, Dict, Optional

import requests

from .exceptions import DataFetchError


def retry_request(logger: logging.Logger, max_retries: int = 3, delay: int = 10) -> Callable:
    """
    Decorator to retry a function on RequestException.

    Args:
        logger: Logger instance for retry logging.
        max_retries: Maximum number of attempts.
        delay: Delay between retries in seconds.

    Returns:
        Decorated function with retry logic. Raises DataFetchError after the
        final failed attempt.
    """

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            attempts = kwargs.pop("max_retries", max_retries)
            for attempt in range(1, attempts + 1):
                try:
                    return func(*args, **kwargs)
                except requests.RequestException as e:
                    logger.error("Error in API request (attempt %s/%s): %s", attempt, attempts, e)

                    if attempt == attempts:
                        logger.error("Failed after %s attempts.", attempts)
                        raise DataFetchError(f"Request failed after {attempts} attempts: {e}") from e

                    time.sleep(delay)

        return wrapper

    return decorator


@retry_request(logging.getLogger("automation_engine"), max_retries=1, delay=5)
def make_api_request(
    method: str,
    url: str,
    headers: Dict[str, str],
    params: Optional[Dict[str, Any]] = None,
    json_body: Optional[Dict[str, Any]] = None,
    timeout: float = 10,
) -> Any:
    """
    Make an API request with retry functionality.

    Args:
        method: HTTP method.
        url: The URL for the API request.
        headers: Headers for the request.
        params: Query parameters for the request.
        json_body: JSON payload for the request.
        timeout: Socket timeout in seconds.

    Returns:
        Decoded JSON response.
    """
    response = requests.request(method, url, headers=headers, params=params, json=json_body, timeout=timeout)
    response.raise_for_status()
    return response.json()


def call_with_timeout(executor: Executor, timeout: float, description: str, func: Callable, *args: Any) -> Any:
    """
    Run a blocking external call with a bounded wait.

    A timeout or any exception from the call surfaces as DataFetchError. The
    worker thread of a timed-out call is abandoned, not interrupted.
    """
    future = executor.submit(func, *args)
    try:
        return future.result(timeout=timeout)
    except FutureTimeoutError as ex:
        future.cancel()
        raise DataFetchError(f"{description} timed out after {timeout}s") from ex
    except DataFetchError:
        raise
    except Exception as ex:
        raise DataFetchError(f"{description} failed: {ex}") from ex
