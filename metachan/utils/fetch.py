"""Rate-limit-aware HTTP fetch helpers.

Every provider request goes through `fetch_json` or `fetch_final_url`. Only an
explicit rate-limit response (HTTP 429) is retried, with exponential backoff and
no jitter; every other failure is terminal and surfaces as an `UpstreamError`
subclass.
"""

import asyncio
import json as jsonlib
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

import aiohttp
from pydantic import TypeAdapter, ValidationError

from metachan import log
from metachan.exceptions import (
    UpstreamExhaustedError,
    UpstreamParseError,
    UpstreamResponseError,
    UpstreamUnavailableError,
)

__all__ = ["backoff_delay", "fetch_final_url", "fetch_json"]

DEFAULT_MAX_RETRIES = 10
DEFAULT_INITIAL_DELAY = 0.35

RATE_LIMITED = 429


def backoff_delay(attempt: int, initial_delay: float = DEFAULT_INITIAL_DELAY) -> float:
    """Seconds to wait after the given (1-based) rate-limited attempt.

    Args:
        attempt (int): The attempt that was rate limited, starting at 1.
        initial_delay (float): Delay after the first rate-limited attempt.

    Returns:
        float: `initial_delay * 2 ** (attempt - 1)`
    """
    return initial_delay * 2 ** (attempt - 1)


async def _request_with_retry[T](
    session: aiohttp.ClientSession,
    method: str,
    url: str,
    handler: Callable[[aiohttp.ClientResponse], Awaitable[T]],
    *,
    params: Mapping[str, Any] | None = None,
    headers: Mapping[str, str] | None = None,
    json: Any = None,
    max_retries: int = DEFAULT_MAX_RETRIES,
    initial_delay: float = DEFAULT_INITIAL_DELAY,
) -> T:
    """Perform a request, retrying only while the provider answers 429.

    Args:
        session (aiohttp.ClientSession): Session used for the request.
        method (str): HTTP method.
        url (str): Request URL.
        handler (Callable): Coroutine turning a successful response into a value.
        params (Mapping[str, Any] | None): Query string parameters.
        headers (Mapping[str, str] | None): Extra request headers.
        json (Any): JSON request body.
        max_retries (int): Maximum number of attempts.
        initial_delay (float): Delay in seconds after the first rate-limited attempt.

    Returns:
        T: Whatever `handler` returns.

    Raises:
        UpstreamExhaustedError: If every attempt was rate limited.
        UpstreamResponseError: If the provider returned any other error status.
        UpstreamUnavailableError: If the provider could not be reached.
    """
    for attempt in range(1, max_retries + 1):
        log.debug(
            f"Fetching $$'{url}'$$ (attempt {attempt}/{max_retries})"
            + (f" $${{params: {dict(params)}}}$$" if params else "")
        )
        try:
            async with session.request(
                method, url, params=params, headers=headers, json=json
            ) as response:
                if response.status == RATE_LIMITED:
                    if attempt >= max_retries:
                        break
                    delay = backoff_delay(attempt, initial_delay)
                    log.warning(
                        f"Rate limited by $$'{url}'$$, retrying in {delay:.2f}s"
                    )
                    await asyncio.sleep(delay)
                    continue

                if response.status >= 400:
                    raise UpstreamResponseError(
                        f"Request to {url} failed with status {response.status}",
                        url=url,
                        status=response.status,
                    )

                return await handler(response)
        except (aiohttp.ClientError, TimeoutError) as e:
            raise UpstreamUnavailableError(
                f"Request to {url} failed: {e}", url=url
            ) from e

    raise UpstreamExhaustedError(
        f"Max retries exceeded for {url} after {max_retries} rate-limited attempts",
        url=url,
    )


async def fetch_json[T](
    session: aiohttp.ClientSession,
    url: str,
    model: type[T] | Any,
    *,
    method: str = "GET",
    params: Mapping[str, Any] | None = None,
    headers: Mapping[str, str] | None = None,
    json: Any = None,
    max_retries: int = DEFAULT_MAX_RETRIES,
    initial_delay: float = DEFAULT_INITIAL_DELAY,
) -> T:
    """Fetch a JSON document and validate it into `model`.

    Args:
        session (aiohttp.ClientSession): Session used for the request.
        url (str): Request URL.
        model (type[T] | Any): A pydantic model or any type `TypeAdapter` accepts.
        method (str): HTTP method. Defaults to "GET".
        params (Mapping[str, Any] | None): Query string parameters.
        headers (Mapping[str, str] | None): Extra request headers.
        json (Any): JSON request body.
        max_retries (int): Maximum number of attempts.
        initial_delay (float): Delay in seconds after the first rate-limited attempt.

    Returns:
        T: The validated response body.

    Raises:
        UpstreamParseError: If the body is not JSON or does not match `model`.
    """
    adapter = TypeAdapter(model)

    async def _parse(response: aiohttp.ClientResponse) -> T:
        try:
            payload = jsonlib.loads(await response.text())
        except ValueError as e:  # UnicodeDecodeError included
            raise UpstreamParseError(
                f"Response from {url} is not valid JSON: {e}", url=url
            ) from e

        try:
            return adapter.validate_python(payload)
        except ValidationError as e:
            log.error(
                f"Response from $$'{url}'$$ does not match the expected schema: {e}"
            )
            raise UpstreamParseError(
                f"Response from {url} does not match the expected schema", url=url
            ) from e

    return await _request_with_retry(
        session,
        method,
        url,
        _parse,
        params=params,
        headers=headers,
        json=json,
        max_retries=max_retries,
        initial_delay=initial_delay,
    )


async def fetch_final_url(
    session: aiohttp.ClientSession,
    url: str,
    *,
    headers: Mapping[str, str] | None = None,
    max_retries: int = DEFAULT_MAX_RETRIES,
    initial_delay: float = DEFAULT_INITIAL_DELAY,
) -> str:
    """Follow redirects for `url` and return the URL that was finally served.

    Args:
        session (aiohttp.ClientSession): Session used for the request.
        url (str): Request URL.
        headers (Mapping[str, str] | None): Extra request headers.
        max_retries (int): Maximum number of attempts.
        initial_delay (float): Delay in seconds after the first rate-limited attempt.

    Returns:
        str: The final URL after redirects.
    """

    async def _final_url(response: aiohttp.ClientResponse) -> str:
        return str(response.url)

    return await _request_with_retry(
        session,
        "GET",
        url,
        _final_url,
        headers=headers,
        max_retries=max_retries,
        initial_delay=initial_delay,
    )
