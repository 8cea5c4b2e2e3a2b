"""Keep-warm pinger for serverless deployments.

Requests each configured URL once so the platform keeps an instance (and its
cached database connection) warm. Meant to be scheduled every few minutes,
for example from a cron service:

    python -m src.tools.keep_warm https://example.app/health?checkDb=true

Without arguments the URLs come from ``KEEP_WARM_CONFIG__URLS`` (a JSON
list). The exit code is non-zero when any ping failed.
"""

import argparse
import asyncio
import sys
import time
from collections.abc import Sequence
from datetime import UTC, datetime

import httpx
from loguru import logger
from pydantic import BaseModel

from src.core.config import get_settings
from src.core.logging import setup_logging


class PingResult(BaseModel):
    """Outcome of one ping."""

    url: str
    success: bool
    status_code: int | None = None
    duration_ms: float | None = None
    error: str | None = None


async def ping_url(client: httpx.AsyncClient, url: str) -> PingResult:
    """GET ``url`` and report whether it answered with a 2xx status.

    Transport errors and timeouts are reported in the result, not raised.
    """
    logger.info("Pinging: {}", url)
    started = time.perf_counter()
    try:
        response = await client.get(url)
    except httpx.HTTPError as e:
        logger.error("Error pinging {}: {}", url, type(e).__name__)
        return PingResult(url=url, success=False, error=type(e).__name__)

    duration_ms = round((time.perf_counter() - started) * 1000, 1)
    logger.info(
        "Status: {}, Time: {}ms",
        response.status_code,
        duration_ms,
        url=url,
        status_code=response.status_code,
        duration_ms=duration_ms,
    )
    return PingResult(
        url=url,
        success=response.is_success,
        status_code=response.status_code,
        duration_ms=duration_ms,
    )


async def ping_all(
    urls: Sequence[str],
    timeout: float,
    transport: httpx.AsyncBaseTransport | None = None,
) -> list[PingResult]:
    """Ping every URL in order.

    Args:
        urls: Endpoints to request.
        timeout: Per-request timeout in seconds.
        transport: Optional transport, used by tests to avoid the network.

    Returns:
        list[PingResult]: One result per URL, in input order.
    """
    logger.info("Ping started at {}", datetime.now(UTC).isoformat())
    results = []
    async with httpx.AsyncClient(
        timeout=timeout, transport=transport, follow_redirects=True
    ) as client:
        for url in urls:
            result = await ping_url(client, url)
            if result.success:
                logger.info("Successfully pinged: {}", url)
            else:
                logger.warning("Failed to ping: {}", url)
            results.append(result)
    logger.info("Ping completed")
    return results


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Ping serverless endpoints to keep instances warm"
    )
    parser.add_argument(
        "urls",
        nargs="*",
        help="URLs to ping (defaults to KEEP_WARM_CONFIG__URLS)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Per-request timeout in seconds",
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    """Run the pinger and return the process exit code."""
    settings = get_settings()
    setup_logging(settings)
    args = parse_args(argv)

    config = settings.keep_warm_config
    urls = args.urls or config.urls
    if not urls:
        logger.error(
            "No URLs to ping. Pass them as arguments or set KEEP_WARM_CONFIG__URLS"
        )
        return 2

    timeout = args.timeout or config.timeout_seconds
    results = asyncio.run(ping_all(urls, timeout))
    failed = [result.url for result in results if not result.success]
    if failed:
        logger.error("{} of {} pings failed", len(failed), len(results), failed=failed)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
