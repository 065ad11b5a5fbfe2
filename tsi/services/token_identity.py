from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional, Sequence, TypeVar, Union

from tsi.schemas import (
    Chain,
    RpcError,
    TokenIdentity,
    TokenIdentityEvidence,
)
from tsi.services.abi import SELECTORS, decode_string, decode_uint8
from tsi.services.cache import EdgeCache, get_cached_identity, put_cached_identity
from tsi.services.rpc import RpcClient

logger = logging.getLogger(__name__)

MAX_CONCURRENCY = 2
DECODE_FAILED = "decode_failed"

T = TypeVar("T")

@dataclass
class FieldOutcome:
    key: str
    value: Union[str, int, None]
    error: Union[RpcError, str, None] = None

async def run_with_concurrency(tasks: Sequence[Callable[[], Awaitable[T]]], limit: int) -> List[T]:
    """Run task factories with at most `limit` in flight; results keep task order."""
    results: List[Optional[T]] = [None] * len(tasks)
    next_index = 0

    async def worker() -> None:
        nonlocal next_index
        while next_index < len(tasks):
            current = next_index
            next_index += 1
            results[current] = await tasks[current]()

    await asyncio.gather(*(worker() for _ in range(min(limit, len(tasks)))))
    return results

def format_error_note(error: Union[RpcError, str, None]) -> str:
    if error is None:
        return "unknown"
    if error == DECODE_FAILED:
        return "invalid_response"
    return error.code.value

def build_notes(outcomes: Sequence[FieldOutcome]) -> Optional[str]:
    notes: List[str] = []
    for outcome in outcomes:
        if outcome.value is None:
            note = f"{outcome.key}:{format_error_note(outcome.error)}"
            if note not in notes:
                notes.append(note)
    return ", ".join(notes) or None

def build_status(name: Optional[str], symbol: Optional[str], decimals: Optional[int]) -> str:
    resolved = sum(1 for v in (name, symbol, decimals) if v is not None)
    if resolved == 3:
        return "ok"
    if resolved > 0:
        return "partial"
    return "failed"

def build_token_identity(outcomes: Sequence[FieldOutcome]) -> TokenIdentity:
    values = {o.key: o.value for o in outcomes}
    name, symbol, decimals = values.get("name"), values.get("symbol"), values.get("decimals")
    return TokenIdentity(
        name=name,
        symbol=symbol,
        decimals=decimals,
        evidence=TokenIdentityEvidence(
            status=build_status(name, symbol, decimals),
            notes=build_notes(outcomes),
        ),
    )

class TokenIdentityResolver:
    def __init__(self, rpc: RpcClient, cache: EdgeCache, cache_ttl: float):
        self.rpc = rpc
        self.cache = cache
        self.cache_ttl = cache_ttl

    async def _call_field(self, chain: Chain, address: str, key: str) -> FieldOutcome:
        result = await self.rpc.eth_call(chain, address, SELECTORS[key])
        if not result.ok:
            return FieldOutcome(key=key, value=None, error=result.error)
        decoded = decode_uint8(result.result) if key == "decimals" else decode_string(result.result)
        if decoded is None:
            return FieldOutcome(key=key, value=None, error=DECODE_FAILED)
        return FieldOutcome(key=key, value=decoded)

    async def resolve(self, chain: Chain, address: str) -> TokenIdentity:
        cached = await get_cached_identity(self.cache, chain, address)
        if cached is not None:
            logger.debug("Token identity cache hit for %s:%s", chain.value, address)
            return cached

        tasks = [
            lambda key=key: self._call_field(chain, address, key)
            for key in ("name", "symbol", "decimals")
        ]
        outcomes = await run_with_concurrency(tasks, MAX_CONCURRENCY)
        token = build_token_identity(outcomes)

        if token.evidence.status == "ok":
            await put_cached_identity(self.cache, chain, address, token, self.cache_ttl)
        else:
            logger.info("Token identity %s for %s:%s (%s)",
                        token.evidence.status, chain.value, address, token.evidence.notes)
        return token
