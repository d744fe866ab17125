"""
Read-only chain access over HTTP JSON-RPC.

The aggregation services depend on the ``ChainReader`` protocol only; the
``RpcChainReader`` below is the production implementation. Every failure
(transport error, timeout, JSON-RPC error payload, malformed result) is
surfaced as a ``ReadError`` after trying each configured endpoint in
failover order. No retries happen beyond the failover walk; the next poll
tick is the retry.
"""

from __future__ import annotations

import itertools
from typing import Any, Optional, Protocol

import httpx

from config import settings
from models.activity import BlockRange, RawEvent
from services.contracts import decode_log, decode_result, encode_call, event_layout, read_field
from services.errors import ConfigurationError, ReadError
from utils.logger import chain_logger as logger


class ChainReader(Protocol):
    """Capabilities the dashboard core consumes from the provider layer."""

    async def get_current_height(self) -> int: ...

    async def get_logs_in_range(
        self, source_address: Optional[str], event_name: str, block_range: BlockRange
    ) -> list[RawEvent]: ...

    async def read_field(self, contract_address: Optional[str], field_name: str, *args: Any) -> Any: ...

    async def get_block_timestamp(self, block_number: int) -> int: ...


# ==================== HELPERS ====================


def _exception_text(exc: Exception) -> str:
    """Return a non-empty exception string for structured logging."""
    text = str(exc).strip()
    return text if text else repr(exc)


def _build_rpc_candidates(primary_url: str, fallbacks: tuple[str, ...] = ()) -> list[str]:
    """Build de-duplicated RPC endpoints in failover order."""
    urls: list[str] = []
    for raw_url in (primary_url, *fallbacks):
        url = (raw_url or "").strip()
        if url and url not in urls:
            urls.append(url)
    return urls


def _parse_hex_quantity(value: Any, *, method: str) -> int:
    if not isinstance(value, str):
        raise ReadError(
            f"Unexpected {method} result type: {type(value).__name__}", method=method
        )
    try:
        return int(value, 16)
    except ValueError:
        raise ReadError(f"Malformed {method} quantity: {value!r}", method=method) from None


def _require_address(address: Optional[str], *, what: str) -> str:
    if not address:
        raise ConfigurationError(f"{what} contract address is not configured")
    return address


# ==================== READER ====================


class RpcChainReader:
    """ChainReader backed by plain JSON-RPC over httpx with endpoint failover."""

    def __init__(
        self,
        rpc_url: Optional[str] = None,
        fallback_urls: tuple[str, ...] = (),
        timeout_seconds: Optional[float] = None,
    ):
        if rpc_url is None:
            candidates = settings.rpc_urls
            if not candidates:
                raise ConfigurationError("No RPC endpoint configured")
            rpc_url, fallback_urls = candidates[0], tuple(candidates[1:])
        self._rpc_url = rpc_url
        self._fallback_urls = tuple(fallback_urls)
        self._rpc_urls = _build_rpc_candidates(rpc_url, self._fallback_urls)
        self._configured_urls = tuple(self._rpc_urls)
        timeout = timeout_seconds if timeout_seconds is not None else settings.RPC_TIMEOUT_SECONDS
        self._timeout = httpx.Timeout(connect=min(5.0, timeout), read=timeout, write=timeout, pool=timeout)
        self._request_ids = itertools.count(1)

    @property
    def endpoint(self) -> str:
        return self._rpc_url

    # ==================== CAPABILITIES ====================

    async def get_current_height(self) -> int:
        result = await self._call("eth_blockNumber", [])
        return _parse_hex_quantity(result, method="eth_blockNumber")

    async def get_logs_in_range(
        self, source_address: Optional[str], event_name: str, block_range: BlockRange
    ) -> list[RawEvent]:
        address = _require_address(source_address, what=event_name)
        layout = event_layout(event_name)
        result = await self._call(
            "eth_getLogs",
            [
                {
                    "fromBlock": hex(block_range.from_block),
                    "toBlock": hex(block_range.to_block),
                    "address": address,
                    "topics": [layout.topic],
                }
            ],
            target=address,
        )
        if not isinstance(result, list):
            raise ReadError(
                f"Unexpected eth_getLogs result type: {type(result).__name__}",
                method="eth_getLogs",
                target=address,
            )

        events: list[RawEvent] = []
        skipped = 0
        for entry in result:
            decoded = decode_log(layout, entry) if isinstance(entry, dict) else None
            if decoded is None:
                skipped += 1
                continue
            events.append(decoded)
        if skipped:
            logger.warning(
                "Skipped undecodable logs",
                event=event_name,
                address=address,
                skipped=skipped,
            )
        return events

    async def read_field(self, contract_address: Optional[str], field_name: str, *args: Any) -> Any:
        address = _require_address(contract_address, what=field_name)
        field = read_field(field_name)
        result = await self._call(
            "eth_call",
            [{"to": address, "data": encode_call(field, args)}, "latest"],
            target=address,
        )
        if not isinstance(result, str) or result in ("", "0x"):
            raise ReadError(
                f"Empty eth_call result for {field.signature}",
                method="eth_call",
                target=address,
            )
        try:
            values = decode_result(field, result)
        except Exception as e:
            raise ReadError(
                f"Failed to decode {field.signature}: {_exception_text(e)}",
                method="eth_call",
                target=address,
            ) from e
        return values[0] if len(values) == 1 else values

    async def get_block_timestamp(self, block_number: int) -> int:
        result = await self._call("eth_getBlockByNumber", [hex(block_number), False])
        if not isinstance(result, dict):
            raise ReadError(
                f"Block {block_number} not found",
                method="eth_getBlockByNumber",
            )
        return _parse_hex_quantity(result.get("timestamp"), method="eth_getBlockByNumber")

    # ==================== TRANSPORT ====================

    async def _call(self, method: str, params: list, *, target: Optional[str] = None) -> Any:
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._request_ids),
            "method": method,
            "params": params,
        }
        response = await self._rpc_request(payload, method=method)
        if "error" in response:
            raise ReadError(
                f"RPC error for {method}: {response['error']}",
                method=method,
                target=target,
            )
        if "result" not in response:
            raise ReadError(f"RPC response for {method} has no result", method=method, target=target)
        return response["result"]

    async def _rpc_request(self, payload: dict, *, method: str) -> dict:
        """Send an HTTP JSON-RPC request with endpoint failover."""
        last_error: Optional[Exception] = None
        for endpoint in self._rpc_urls:
            try:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.post(endpoint, json=payload)
                    response.raise_for_status()
                    result = response.json()

                if not isinstance(result, dict):
                    logger.warning(
                        "Unexpected RPC response payload",
                        method=method,
                        endpoint=endpoint,
                        response_type=type(result).__name__,
                    )
                    last_error = ValueError("non-object JSON-RPC response")
                    continue

                if endpoint != self._rpc_url:
                    logger.warning(
                        "Chain reader RPC failover",
                        previous_endpoint=self._rpc_url,
                        active_endpoint=endpoint,
                    )
                    self._rpc_url = endpoint
                    self._rpc_urls = _build_rpc_candidates(endpoint, self._configured_urls)
                return result
            except Exception as e:
                last_error = e
                logger.warning(
                    "Chain reader RPC request failed",
                    method=method,
                    endpoint=endpoint,
                    error_type=type(e).__name__,
                    error=_exception_text(e),
                )

        logger.error(
            "Chain reader RPC failed across all endpoints",
            method=method,
            endpoints=self._rpc_urls,
            error_type=type(last_error).__name__ if last_error else None,
            error=_exception_text(last_error) if last_error else None,
        )
        raise ReadError(
            f"{method} failed on all endpoints: "
            f"{_exception_text(last_error) if last_error else 'no endpoints configured'}",
            method=method,
        )
