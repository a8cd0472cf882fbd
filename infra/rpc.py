# infra/rpc.py

from __future__ import annotations

import asyncio
import os
import random
import time
from typing import Any, List, Optional, Sequence

import aiohttp
from web3 import Web3

from feeoracle import config
from infra.metrics import METRICS

# Status codes worth another attempt
_RETRY_STATUSES = (429, 500, 502, 503, 504)


def _normalize_url(url: str) -> str:
    u = str(url).strip()
    if not u:
        return u
    if "://" not in u:
        u = "https://" + u
    return u


def _url_host(url: str) -> str:
    u = _normalize_url(url).lower()
    if "://" in u:
        u = u.split("://", 1)[1]
    return u.split("/", 1)[0]


def _split_urls(raw: Optional[str]) -> List[str]:
    if not raw:
        return []
    # Accept comma or newline separated lists.
    parts: List[str] = []
    for chunk in str(raw).replace("\n", ",").split(","):
        u = _normalize_url(chunk)
        if u:
            parts.append(u)
    return parts


def get_rpc_urls() -> List[str]:
    """Return RPC URL candidates in priority order.

    Order:
      1) env RPC_URLS (comma/newline list)
      2) env RPC_URL
      3) feeoracle.config.RPC_URLS
      4) feeoracle.config.RPC_URL
    """

    urls: List[str] = []
    urls.extend(_split_urls(os.getenv("RPC_URLS")))
    single = os.getenv("RPC_URL")
    if single:
        urls.append(_normalize_url(single))
    if not urls:
        urls.extend([_normalize_url(u) for u in (getattr(config, "RPC_URLS", []) or []) if str(u).strip()])
    if not urls:
        urls = [_normalize_url(config.RPC_URL)]

    # De-dupe while preserving order
    out: List[str] = []
    seen = set()
    for u in urls:
        if u in seen:
            continue
        seen.add(u)
        out.append(u)
    return out


def _normalize_rpc_error(msg: Optional[str]) -> str:
    text = str(msg or "").lower()
    if "timeout" in text:
        return "timeout"
    if "http_429" in text or "rate limit" in text:
        return "rate_limited"
    if "http_5" in text:
        return "http_5xx"
    if "decode" in text:
        return "decode_error"
    if "rpc" in text or "http_" in text:
        return "rpc_error"
    return "internal_error"


class AsyncRPC:
    """Async JSON-RPC client with:
    - persistent aiohttp session
    - per-call timeouts clamped to the configured range
    - retries + exponential backoff for timeouts / rate limits / 5xx
    """

    def __init__(
        self,
        url: Optional[str] = None,
        *,
        default_timeout_s: Optional[float] = None,
        max_retries: Optional[int] = None,
        backoff_base_s: Optional[float] = None,
    ):
        self.url = _normalize_url(url) if url else get_rpc_urls()[0]
        if default_timeout_s is None:
            default_timeout_s = float(getattr(config, "RPC_DEFAULT_TIMEOUT_S", 3.0))
        if max_retries is None:
            max_retries = int(getattr(config, "RPC_RETRY_COUNT", 1))
        if backoff_base_s is None:
            backoff_base_s = float(getattr(config, "RPC_BACKOFF_BASE_S", 0.35))
        self.default_timeout_s = float(default_timeout_s)
        self.max_retries = int(max_retries)
        self.backoff_base_s = float(backoff_base_s)
        self._id = 0
        self._session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session and not self._session.closed:
            return self._session
        connector = aiohttp.TCPConnector(limit=20, ttl_dns_cache=300)
        self._session = aiohttp.ClientSession(connector=connector)
        return self._session

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    async def __aenter__(self) -> "AsyncRPC":
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    def _clamp_timeout(self, timeout_s: Optional[float]) -> float:
        to_s = float(timeout_s) if timeout_s is not None else self.default_timeout_s
        min_t = float(getattr(config, "RPC_TIMEOUT_MIN_S", 2.0))
        max_t = float(getattr(config, "RPC_TIMEOUT_MAX_S", 8.0))
        if max_t < min_t:
            max_t = min_t
        return max(min_t, min(max_t, to_s))

    async def call(self, method: str, params: list, *, timeout_s: Optional[float] = None) -> Any:
        """Perform a JSON-RPC call, raising RuntimeError once retries are exhausted."""

        self._id += 1
        payload = {"jsonrpc": "2.0", "id": self._id, "method": method, "params": params}
        session = await self._get_session()
        to_s = self._clamp_timeout(timeout_s)
        host = _url_host(self.url)
        last_err: Optional[str] = None

        for attempt in range(self.max_retries + 1):
            t0 = time.perf_counter()
            METRICS.inc("rpc_requests_total", 1)
            METRICS.inc_reason("rpc_requests_by_method", method, 1)
            retryable = True
            try:
                async def _do():
                    async with session.post(self.url, json=payload) as resp:
                        if resp.status >= 400:
                            text = await resp.text()
                            raise aiohttp.ClientResponseError(
                                request_info=resp.request_info,
                                history=resp.history,
                                status=resp.status,
                                message=text,
                                headers=resp.headers,
                            )
                        return await resp.json()

                data = await asyncio.wait_for(_do(), timeout=to_s)
                dt_ms = (time.perf_counter() - t0) * 1000.0
                METRICS.observe("rpc_latency_ms", float(dt_ms))
                METRICS.observe(f"rpc_latency_ms:{host}", float(dt_ms))

                if isinstance(data, dict) and "error" in data:
                    # Node-side errors (bad params, unsupported tag) will not improve on retry.
                    last_err = f"rpc_error:{data['error']}"
                    retryable = False
                elif not isinstance(data, dict) or "result" not in data:
                    last_err = "decode_error: missing result"
                else:
                    return data["result"]

            except asyncio.TimeoutError:
                dt_ms = (time.perf_counter() - t0) * 1000.0
                METRICS.observe("rpc_latency_ms", float(dt_ms))
                last_err = f"timeout({to_s}s)"
            except aiohttp.ClientResponseError as e:
                dt_ms = (time.perf_counter() - t0) * 1000.0
                METRICS.observe("rpc_latency_ms", float(dt_ms))
                last_err = f"http_{e.status}"
                retryable = e.status in _RETRY_STATUSES
            except (aiohttp.ClientError, ValueError) as e:
                dt_ms = (time.perf_counter() - t0) * 1000.0
                METRICS.observe("rpc_latency_ms", float(dt_ms))
                last_err = f"{type(e).__name__}: {e}"

            if not retryable:
                break
            if attempt < self.max_retries:
                sleep_s = (self.backoff_base_s * (2 ** attempt)) + random.random() * 0.25
                if last_err and "http_429" in last_err:
                    sleep_s += float(getattr(config, "RPC_RATE_LIMIT_BACKOFF_S", 0.35))
                await asyncio.sleep(sleep_s)

        METRICS.inc_reason("rpc_fail_by_reason", _normalize_rpc_error(last_err), 1)
        raise RuntimeError(f"RPC call failed after retries: {last_err}")


# ------------------------
# Synchronous Web3 provider helper for Web3FeeHistorySource

def get_provider(rpc_urls: Optional[Sequence[str]] = None) -> Web3:
    """Return a connected Web3 provider.

    Tries each URL in order (env RPC_URLS="a,b,c", RPC_URL, then config).
    """

    urls = list(rpc_urls) if rpc_urls else get_rpc_urls()

    last_err: Optional[str] = None
    for url in urls:
        provider = Web3(Web3.HTTPProvider(_normalize_url(url)))
        try:
            if provider.is_connected():
                return provider
        except Exception as e:
            last_err = str(e)
            continue

    raise ConnectionError(f"Cannot connect to any RPC endpoint. Last error: {last_err}")
