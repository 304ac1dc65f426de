"""Fetch page text through the Exa contents API, a few requests per second."""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any
from urllib.parse import urlparse

import requests

from llm_dump.config import EXA_BASE_URL, URL_POOL_SIZE, URL_RATE_LIMIT_DELAY, Item
from llm_dump.exceptions import EmptyContentError, InvalidURLError, UpstreamError
from llm_dump.logging import logger
from llm_dump.pool import BoundedPool

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator, Sequence


def validate_url(url: str) -> str:
    """Check that a URL is absolute and uses http or https.

    Args:
        url (str): the URL to check

    Raises:
        InvalidURLError: if the URL is malformed or uses another scheme

    Returns:
        str: the URL, unchanged
    """
    try:
        parsed = urlparse(url)
    except ValueError as e:
        raise InvalidURLError(url=url, message=f"Invalid URL: {e}.") from e
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise InvalidURLError(url=url)
    return url


def build_payload(url: str, *, live_crawl: bool) -> dict[str, Any]:
    """Build the contents request for one URL.

    Args:
        url (str): the page to extract
        live_crawl (bool): request a fresh crawl instead of the cached copy

    Returns:
        dict[str, Any]: the JSON body
    """
    return {
        "urls": [url],
        "text": True,
        "context": True,
        "livecrawl": "always" if live_crawl else "fallback",
    }


def fetch_url(url: str, api_key: str, *, live_crawl: bool = False, timeout: float = 15) -> Item:
    """Fetch the extracted text of one URL.

    Args:
        url (str): the page to fetch
        api_key (str): the content API key
        live_crawl (bool): request a fresh crawl
        timeout (float): request timeout in seconds

    Raises:
        InvalidURLError: if the URL is not an absolute http(s) URL
        UpstreamError: on network failure, timeout, non-200 status or non-JSON body
        EmptyContentError: if the `context` field is blank

    Returns:
        Item: the page content keyed by its URL
    """
    validate_url(url)
    try:
        resp = requests.post(
            EXA_BASE_URL,
            json=build_payload(url, live_crawl=live_crawl),
            headers={"Content-Type": "application/json", "x-api-key": api_key},
            timeout=timeout,
        )
    except requests.RequestException as e:
        raise UpstreamError(url=url, message=f"Failed to make request: {e}.") from e

    if resp.status_code != requests.codes.ok:
        raise UpstreamError(url=url, status=resp.status_code, message="API request failed.")

    try:
        data = resp.json()
    except ValueError as e:
        raise UpstreamError(url=url, status=resp.status_code, message="Failed to decode response.") from e

    context = data.get("context") if isinstance(data, dict) else None
    if not isinstance(context, str) or not context.strip():
        raise EmptyContentError(url=url)
    return Item(path=url, content=context)


def fetch_pool(
    urls: Sequence[str],
    api_key: str,
    *,
    live_crawl: bool = False,
    timeout: float = 15,
    delay: float = URL_RATE_LIMIT_DELAY,
    sleep: Callable[[float], None] = time.sleep,
) -> BoundedPool[str, Item]:
    """Prepare the rate-limited URL pool without starting it.

    Each of the workers starts `index * delay / size` late and then waits
    `delay` between its own requests, which keeps the aggregate close to
    `size / delay` requests per second.

    Args:
        urls (Sequence[str]): the URLs, in submission order
        api_key (str): the content API key
        live_crawl (bool): request fresh crawls
        timeout (float): per-request timeout in seconds
        delay (float): pause between two requests of one worker
        sleep (Callable[[float], None]): the sleep function

    Returns:
        BoundedPool[str, Item]: the pool
    """

    def work(url: str) -> Item:
        return fetch_url(url, api_key, live_crawl=live_crawl, timeout=timeout)

    return BoundedPool(
        work,
        urls,
        URL_POOL_SIZE,
        name="url",
        stagger=delay / URL_POOL_SIZE,
        interval=delay,
        sleep=sleep,
    )


def fetch_all(
    urls: Sequence[str],
    api_key: str,
    *,
    live_crawl: bool = False,
    timeout: float = 15,
    delay: float = URL_RATE_LIMIT_DELAY,
    sleep: Callable[[float], None] = time.sleep,
) -> Iterator[Item]:
    """Fetch every URL and yield the successful ones in submission order.

    A failing URL is logged and skipped; it does not stop the batch.
    """
    pool = fetch_pool(urls, api_key, live_crawl=live_crawl, timeout=timeout, delay=delay, sleep=sleep)
    yield from collect_items(pool)


def collect_items(pool: BoundedPool[str, Item]) -> Iterator[Item]:
    """Drain a URL pool in submission order, logging failed URLs."""
    for outcome in pool.in_order():
        if outcome.error is not None:
            logger.warning("error fetching URL", url=outcome.item, error=str(outcome.error))
            continue
        if outcome.value is not None:
            yield outcome.value
