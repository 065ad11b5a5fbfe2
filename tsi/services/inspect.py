from __future__ import annotations

import copy
import logging
import re
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Tuple

import httpx

from tsi.config import Settings
from tsi.errors import (
    InputErrorCode,
    InspectError,
    get_blocking_error,
    input_error,
    internal_error,
    rate_limit_error,
)
from tsi.schemas import (
    Chain,
    InspectInput,
    InspectMeta,
    InspectReport,
    InspectResult,
)
from tsi.services.aggregate import summarize
from tsi.services.cache import (
    EdgeCache,
    check_rate_limit,
    get_cached_report,
    put_cached_report,
)
from tsi.services.checks import build_check_facts, run_checks
from tsi.services.explorer import ExplorerClient
from tsi.services.rpc import RpcClient
from tsi.services.token_identity import TokenIdentityResolver

logger = logging.getLogger(__name__)

ADDRESS_RE = re.compile(r"0x[0-9a-fA-F]{40}")

CACHE_HIT = "HIT"
CACHE_MISS = "MISS"
CACHE_STALE = "STALE"

@dataclass
class InspectOutcome:
    payload: dict
    cache_status: str

def validate_input(chain: Optional[str], address: Optional[str]) -> Tuple[Chain, str]:
    if not chain or not address:
        raise input_error(InputErrorCode.MISSING_PARAMS)
    try:
        parsed_chain = Chain(chain)
    except ValueError:
        raise input_error(InputErrorCode.INVALID_CHAIN)
    if not ADDRESS_RE.fullmatch(address):
        raise input_error(InputErrorCode.INVALID_ADDRESS)
    return parsed_chain, address.lower()

def iso_now(now: float) -> str:
    return datetime.fromtimestamp(now, tz=timezone.utc).isoformat().replace("+00:00", "Z")

def replay(payload: dict, now: float, stale: bool) -> dict:
    out = copy.deepcopy(payload)
    meta = out.setdefault("meta", {})
    meta["cached"] = True
    meta["stale"] = stale
    meta["ts"] = int(now * 1000)
    return out

class Inspector:
    def __init__(self, settings: Settings, cache: EdgeCache, client: httpx.AsyncClient):
        self.settings = settings
        self.cache = cache
        self.explorer = ExplorerClient(client, settings)
        self.identity = TokenIdentityResolver(RpcClient(client, settings), cache, settings.identity_cache_ttl)

    async def build_report(self, chain: Chain, address: str, now: float) -> InspectReport:
        facts = await self.explorer.fetch_facts(chain, address)
        blocking = get_blocking_error(facts)
        if blocking is not None:
            raise blocking

        token = await self.identity.resolve(chain, address)
        checks = run_checks(build_check_facts(chain, address, facts))
        summary = summarize(checks)
        return InspectReport(
            input=InspectInput(chain=chain, address=address),
            result=InspectResult(
                overall_risk=summary["overallRisk"],
                summary=summary["summary"],
                top_reasons=summary["topReasons"],
                token=token,
            ),
            checks=checks,
            meta=InspectMeta(generated_at=iso_now(now), cached=False, stale=False, ts=int(now * 1000)),
        )

    async def inspect(
        self, chain: Optional[str], address: Optional[str], client_ip: str, now: Optional[float] = None
    ) -> InspectOutcome:
        now = time.time() if now is None else now
        parsed_chain, address = validate_input(chain, address)

        decision = await check_rate_limit(
            self.cache, client_ip, self.settings.rate_limit_max, self.settings.rate_limit_window, now
        )
        if not decision.allowed:
            logger.info("Rate limit exceeded for %s (%s requests)", client_ip, decision.count)
            raise rate_limit_error(decision.retry_after)

        try:
            cached = await get_cached_report(self.cache, parsed_chain, address)
        except Exception:
            logger.warning("Report cache read failed for %s:%s", parsed_chain.value, address, exc_info=True)
            cached = None
        if cached is not None and cached.is_fresh(now, self.settings.cache_ttl):
            logger.debug("Cache hit for %s:%s", parsed_chain.value, address)
            return InspectOutcome(replay(cached.payload, now, stale=False), CACHE_HIT)

        try:
            report = await self.build_report(parsed_chain, address, now)
        except Exception as e:
            if cached is not None:
                logger.warning("Serving stale report for %s:%s after failure: %s",
                               parsed_chain.value, address, getattr(e, "code", type(e).__name__))
                return InspectOutcome(replay(cached.payload, now, stale=True), CACHE_STALE)
            if isinstance(e, InspectError):
                raise
            logger.exception("Unexpected failure inspecting %s:%s", parsed_chain.value, address)
            raise internal_error() from e

        payload = report.model_dump(mode="json", by_alias=True)
        try:
            await put_cached_report(
                self.cache, parsed_chain, address, payload, now,
                self.settings.cache_ttl + self.settings.stale_retention,
            )
        except Exception:
            logger.warning("Report cache write failed for %s:%s", parsed_chain.value, address, exc_info=True)
        return InspectOutcome(payload, CACHE_MISS)
