from __future__ import annotations

"""
HTTP JSON-RPC client (async).

- httpx.AsyncClient transport, one connection pool per client.
- Retries transient transport failures and 429/502/503/504 with exponential
  backoff plus jitter. JSON-RPC error objects are never retried.

Example:
    async with AsyncRpcClient("http://localhost:8545") as rpc:
        receipt = await rpc.request("tx_getReceipt", ["0x..."])
"""

import asyncio
import json
import logging
import random
import time
from itertools import count
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Union

import httpx

from ..config import ClientConfig
from ..errors import JsonRpcCode, RpcError, from_jsonrpc_error

log = logging.getLogger(__name__)

JSON = Union[dict, list, str, int, float, bool, None]
Params = Union[Sequence[Any], Mapping[str, Any], None]

_RETRIABLE_STATUS = (429, 502, 503, 504)


class _Retriable(Exception):
    def __init__(self, status: int, body: str) -> None:
        super().__init__(f"HTTP {status}")
        self.status = status
        self.body = body


def _now_ms() -> int:
    return int(time.time() * 1000)


def _jitter_backoff(base: float, factor: float, attempt: int, jitter: float) -> float:
    # Exponential backoff with jitter in [0, jitter]
    return base * (factor ** max(attempt - 1, 0)) + random.random() * jitter


class AsyncRpcClient:
    """Asynchronous JSON-RPC 2.0 client over HTTP."""

    def __init__(
        self,
        url: str,
        *,
        timeout: float = 10.0,
        max_retries: int = 3,
        backoff_base: float = 0.15,
        backoff_factor: float = 1.8,
        backoff_jitter: float = 0.2,
        headers: Optional[Mapping[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.url = url
        self.timeout = timeout
        self.max_retries = max_retries
        self.backoff_base = backoff_base
        self.backoff_factor = backoff_factor
        self.backoff_jitter = backoff_jitter
        merged: Dict[str, str] = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if headers:
            merged.update(dict(headers))
        self._ids: Iterator[int] = count(start=_now_ms())
        self._client = httpx.AsyncClient(timeout=timeout, headers=merged, transport=transport)

    @classmethod
    def from_config(cls, config: ClientConfig, **kwargs: Any) -> "AsyncRpcClient":
        return cls(
            config.rpc_url,
            timeout=config.request_timeout,
            max_retries=config.max_retries,
            backoff_factor=config.backoff_factor,
            headers=config.http_headers(),
            **kwargs,
        )

    # --- context manager -------------------------------------------------

    async def __aenter__(self) -> "AsyncRpcClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:  # noqa: ANN001
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    # --- public API ------------------------------------------------------

    async def request(self, method: str, params: Params = None) -> JSON:
        """Perform a single JSON-RPC request and return `result` or raise RpcError."""
        payload = self._make_payload(method, params)
        return await self._send_with_retries(method, payload)

    # --- internals -------------------------------------------------------

    def _make_payload(self, method: str, params: Params) -> Dict[str, Any]:
        if params is None:
            params = []
        elif isinstance(params, Mapping):
            params = dict(params)
        elif isinstance(params, Sequence) and not isinstance(params, (str, bytes, bytearray)):
            params = list(params)
        else:
            params = [params]  # type: ignore[list-item]
        return {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}

    async def _send_with_retries(self, method: str, payload: Dict[str, Any]) -> JSON:
        last_exc: Optional[Exception] = None
        for attempt in range(1, self.max_retries + 2):  # N retries -> N+1 attempts
            try:
                return await self._send_once(method, payload)
            except (httpx.TimeoutException, httpx.TransportError, _Retriable) as e:
                last_exc = e
                if attempt > self.max_retries:
                    break
                delay = _jitter_backoff(self.backoff_base, self.backoff_factor, attempt, self.backoff_jitter)
                log.debug("rpc %s attempt %d failed (%s); retrying in %.2fs", method, attempt, e, delay)
                await asyncio.sleep(delay)
        status = last_exc.status if isinstance(last_exc, _Retriable) else None
        raise RpcError(
            code=JsonRpcCode.TRANSPORT_ERROR,
            message="RPC transport failed",
            method=method,
            data=str(last_exc),
            http_status=status,
        ) from last_exc

    async def _send_once(self, method: str, payload: Dict[str, Any]) -> JSON:
        body = json.dumps(payload, separators=(",", ":"), ensure_ascii=False)
        log.debug("rpc -> %s id=%s", method, payload["id"])
        r = await self._client.post(self.url, content=body)
        if r.status_code in _RETRIABLE_STATUS:
            raise _Retriable(r.status_code, r.text[:256])
        # Avoid raise_for_status() to keep the error body visible below
        try:
            resp = r.json()
        except ValueError as e:
            raise RpcError(
                code=JsonRpcCode.INTERNAL_ERROR,
                message="Non-JSON response from RPC",
                method=method,
                data=f"HTTP {r.status_code}: {r.text[:256]}",
                http_status=r.status_code,
            ) from e

        if not isinstance(resp, dict):
            raise RpcError(
                code=JsonRpcCode.INTERNAL_ERROR,
                message="Invalid JSON-RPC response type",
                method=method,
                data=type(resp).__name__,
                http_status=r.status_code,
            )
        if resp.get("error") is not None:
            raise from_jsonrpc_error(resp["error"], method=method, http_status=r.status_code)
        if "result" not in resp:
            raise RpcError(
                code=JsonRpcCode.INTERNAL_ERROR,
                message="Malformed JSON-RPC response",
                method=method,
                data=resp,
                http_status=r.status_code,
            )
        return resp["result"]


__all__ = ["AsyncRpcClient", "JSON", "Params"]
