"""Shared async HTTP helpers used by the NuGet feed client.

Encapsulates retries, timeouts and DEBUG tracing so feed code avoids
duplicating try/except blocks. Transport failures never raise from here:
callers receive a status of 0 plus the last error text and decide how to
surface it.
"""
from __future__ import annotations

import asyncio
import json
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

import aiohttp

from minrt.constants import Constants
from minrt.common.logging_utils import Timer, extra_context, is_debug_enabled, safe_url

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 64 * 1024


@dataclass
class HttpResult:
    """Outcome of one logical GET (after retries)."""
    status: int
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


def default_headers(extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
    """Request headers every feed call sends."""
    headers = {"User-Agent": Constants.HTTP_USER_AGENT, "Accept": "*/*"}
    if extra:
        headers.update(extra)
    return headers


async def _backoff(attempt: int) -> None:
    await asyncio.sleep(Constants.HTTP_RETRY_BASE_DELAY_SEC * (2 ** attempt))


async def robust_get(
    session: aiohttp.ClientSession,
    url: str,
    *,
    headers: Optional[Dict[str, str]] = None,
    auth: Optional[aiohttp.BasicAuth] = None,
    retries: int = Constants.HTTP_RETRY_MAX,
) -> HttpResult:
    """GET ``url`` with retries on transport errors and 5xx responses."""
    safe_target = safe_url(url)
    last_error = None
    last_status = 0
    for attempt in range(retries):
        with Timer() as t:
            if is_debug_enabled(logger):
                logger.debug(
                    "HTTP request",
                    extra=extra_context(
                        event="http_request",
                        component="http_client",
                        action="GET",
                        target=safe_target,
                        attempt=attempt + 1,
                    ),
                )
            try:
                async with session.get(url, headers=default_headers(headers), auth=auth) as response:
                    body = await response.read()
                    status = response.status
                    response_headers = {k: v for k, v in response.headers.items()}
            except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
                last_error = str(exc) or type(exc).__name__
                if is_debug_enabled(logger):
                    logger.debug(
                        "HTTP request exception",
                        extra=extra_context(
                            event="http_exception",
                            component="http_client",
                            action="GET",
                            outcome="request_exception",
                            attempt=attempt + 1,
                            target=safe_target,
                        ),
                    )
                if attempt + 1 < retries:
                    await _backoff(attempt)
                continue

            if is_debug_enabled(logger):
                logger.debug(
                    "HTTP response",
                    extra=extra_context(
                        event="http_response",
                        component="http_client",
                        action="GET",
                        outcome="success" if status < 500 else "server_error",
                        status_code=status,
                        duration_ms=t.duration_ms(),
                        target=safe_target,
                    ),
                )
            if status >= 500:
                last_status = status
                last_error = f"HTTP {status}"
                if attempt + 1 < retries:
                    await _backoff(attempt)
                continue
            return HttpResult(status, response_headers, body)

    return HttpResult(
        last_status,
        error=f"Request failed after {retries} attempts: {last_error}",
    )


async def get_json(
    session: aiohttp.ClientSession,
    url: str,
    *,
    headers: Optional[Dict[str, str]] = None,
    auth: Optional[aiohttp.BasicAuth] = None,
) -> Tuple[HttpResult, Optional[Any]]:
    """GET ``url`` and parse a JSON body.

    Returns:
        Tuple of (result, parsed_json_or_none)
    """
    merged = {"Accept": "application/json"}
    if headers:
        merged.update(headers)
    result = await robust_get(session, url, headers=merged, auth=auth)
    if result.status == 200 and result.body:
        try:
            return result, json.loads(result.body.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            if is_debug_enabled(logger):
                logger.debug(
                    "JSON decode error",
                    extra=extra_context(
                        event="parse",
                        component="http_client",
                        action="get_json",
                        outcome="json_decode_error",
                        target=safe_url(url),
                    ),
                )
            result.error = f"invalid JSON: {exc}"
            return result, None
    return result, None


async def download_to_file(
    session: aiohttp.ClientSession,
    url: str,
    destination: str,
    *,
    auth: Optional[aiohttp.BasicAuth] = None,
    retries: int = Constants.HTTP_RETRY_MAX,
) -> HttpResult:
    """Stream ``url`` into ``destination``; the file only exists on success."""
    safe_target = safe_url(url)
    last_error = None
    last_status = 0
    for attempt in range(retries):
        try:
            async with session.get(url, headers=default_headers(), auth=auth) as response:
                status = response.status
                if status >= 500:
                    last_status = status
                    last_error = f"HTTP {status}"
                elif status != 200:
                    return HttpResult(status, error=f"HTTP {status}")
                else:
                    size = 0
                    with open(destination, "wb") as handle:
                        async for chunk in response.content.iter_chunked(_CHUNK_SIZE):
                            handle.write(chunk)
                            size += len(chunk)
                    logger.debug(
                        "Downloaded %s (%d bytes)",
                        safe_target,
                        size,
                        extra=extra_context(
                            event="download",
                            component="http_client",
                            outcome="success",
                            target=safe_target,
                        ),
                    )
                    return HttpResult(status)
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            last_error = str(exc) or type(exc).__name__
        except BaseException:
            _remove_quietly(destination)
            raise
        _remove_quietly(destination)
        if attempt + 1 < retries:
            await _backoff(attempt)
    return HttpResult(last_status, error=f"Download failed after {retries} attempts: {last_error}")


def _remove_quietly(path: str) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
