from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from tsi.config import Settings
from tsi.schemas import Chain, RpcCallResult, RpcError, RpcErrorCode

logger = logging.getLogger(__name__)

def _fail(code: RpcErrorCode, message: str, status: Optional[int] = None) -> RpcCallResult:
    return RpcCallResult(ok=False, error=RpcError(code=code, message=message, status=status))

def classify_rpc_error(status: int, message: str) -> RpcError:
    lowered = message.lower()
    if status == 429 or "rate limit" in lowered:
        return RpcError(code=RpcErrorCode.RATE_LIMITED, message="RPC rate limit reached.", status=status)
    if "revert" in lowered:
        return RpcError(code=RpcErrorCode.REVERTED, message="RPC call reverted.", status=status)
    return RpcError(code=RpcErrorCode.UPSTREAM_ERROR, message=f"RPC responded with status {status}.", status=status)

def normalize_rpc_payload(payload: Any) -> RpcCallResult:
    if not isinstance(payload, dict):
        return _fail(RpcErrorCode.INVALID_RESPONSE, "RPC response is not an object.")

    if "error" in payload:
        err = payload.get("error")
        message = err.get("message") if isinstance(err, dict) else None
        if not isinstance(message, str):
            message = "RPC error."
        lowered = message.lower()
        if "rate limit" in lowered:
            return _fail(RpcErrorCode.RATE_LIMITED, "RPC rate limit reached.")
        if "revert" in lowered:
            return _fail(RpcErrorCode.REVERTED, "RPC call reverted.")
        return _fail(RpcErrorCode.UPSTREAM_ERROR, message)

    result = payload.get("result")
    if not isinstance(result, str):
        return _fail(RpcErrorCode.INVALID_RESPONSE, "RPC response is missing a hex result.")
    return RpcCallResult(ok=True, result=result)

def build_eth_call(address: str, data: str) -> dict:
    return {
        "id": 1,
        "jsonrpc": "2.0",
        "method": "eth_call",
        "params": [{"to": address, "data": data}, "latest"],
    }

class RpcClient:
    def __init__(self, client: httpx.AsyncClient, settings: Settings):
        self.client = client
        self.settings = settings
        self.timeout = settings.rpc_timeout

    async def eth_call(self, chain: Chain, address: str, data: str) -> RpcCallResult:
        rpc_url = self.settings.rpc_url(chain)
        if not rpc_url:
            return _fail(RpcErrorCode.MISSING_RPC_URL, "RPC URL is not configured for this chain.")

        try:
            r = await self.client.post(rpc_url, json=build_eth_call(address, data), timeout=self.timeout)
        except httpx.TimeoutException:
            return _fail(RpcErrorCode.TIMEOUT, "RPC request timed out.")
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.warning("RPC request to %s failed: %s", chain.value, type(e).__name__)
            return _fail(RpcErrorCode.UPSTREAM_ERROR, "RPC request failed.")

        if not r.is_success:
            return RpcCallResult(ok=False, error=classify_rpc_error(r.status_code, f"{r.reason_phrase} {r.text[:200]}"))

        try:
            payload = r.json()
        except ValueError:
            return _fail(RpcErrorCode.INVALID_RESPONSE, "RPC response is not valid JSON.")
        return normalize_rpc_payload(payload)
