from __future__ import annotations

import asyncio
import json
import logging
import math
import re
from typing import Any, Dict, List, Optional, Tuple

import httpx

from tsi.config import Settings
from tsi.schemas import (
    Chain,
    CreationFacts,
    ExplorerError,
    ExplorerErrorCode,
    ExplorerFacts,
    ExplorerResult,
    FactsT,
    HolderFacts,
    SourceFacts,
)

logger = logging.getLogger(__name__)

CHAIN_IDS = {Chain.ETH: 1, Chain.BSC: 56}
TOP_HOLDERS = 10

_PLAN_RE = re.compile(r"upgrade|not available|\bpro\b|premium")
_NUMERIC_STRIP_RE = re.compile(r"[%\s,]")
_DIGITS_RE = re.compile(r"[0-9]+")

def _error(code: ExplorerErrorCode, message: str) -> ExplorerError:
    return ExplorerError(code=code, message=message)

async def _get_json(
    client: httpx.AsyncClient, url: str, params: dict, timeout: float
) -> Tuple[Any, Optional[ExplorerError]]:
    try:
        r = await client.get(url, params=params, timeout=timeout)
    except httpx.TimeoutException:
        return None, _error(ExplorerErrorCode.TIMEOUT, "Explorer request timed out.")
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        logger.warning("Explorer request failed: %s", type(e).__name__)
        return None, _error(ExplorerErrorCode.UPSTREAM_ERROR, "Explorer request failed.")

    if r.status_code == 429:
        return None, _error(ExplorerErrorCode.RATE_LIMITED, "Explorer rate limit reached.")
    if not r.is_success:
        return None, _error(
            ExplorerErrorCode.UPSTREAM_ERROR, f"Explorer responded with status {r.status_code}."
        )
    try:
        return r.json(), None
    except ValueError:
        return None, _error(ExplorerErrorCode.UPSTREAM_ERROR, "Explorer returned invalid JSON.")

def normalize_explorer_error(payload: dict) -> ExplorerError:
    lowered = str(payload.get("result") or payload.get("message") or "Unknown error").lower()

    if "rate limit" in lowered:
        return _error(ExplorerErrorCode.RATE_LIMITED, "Explorer rate limit reached.")
    if "missing api key" in lowered or "invalid api key" in lowered:
        return _error(ExplorerErrorCode.MISSING_API_KEY, "Explorer API key is missing.")
    if _PLAN_RE.search(lowered):
        return _error(
            ExplorerErrorCode.UNAVAILABLE_ON_FREE_PLAN,
            "Explorer feature is unavailable on the free plan.",
        )
    return _error(ExplorerErrorCode.UPSTREAM_ERROR, "Explorer returned an error response.")

def parse_explorer_result(payload: Any) -> Tuple[Any, Optional[ExplorerError]]:
    if not isinstance(payload, dict):
        return None, _error(
            ExplorerErrorCode.UPSTREAM_ERROR, "Explorer response was not an object (invalid schema)."
        )
    status = str(payload.get("status", ""))
    if status == "1":
        return payload.get("result"), None
    if status == "0":
        return None, normalize_explorer_error(payload)
    return None, _error(
        ExplorerErrorCode.UPSTREAM_ERROR, "Explorer response had an unexpected status."
    )

class ExplorerClient:
    def __init__(self, client: httpx.AsyncClient, settings: Settings):
        self.client = client
        self.api_key = settings.explorer_api_key
        self.base_url = settings.explorer_base_url
        self.timeout = settings.explorer_timeout

    def _precheck(self, chain: Chain) -> Optional[ExplorerError]:
        if not self.api_key:
            return _error(ExplorerErrorCode.MISSING_API_KEY, "Explorer API key is missing.")
        if chain not in CHAIN_IDS:
            return _error(ExplorerErrorCode.NOT_SUPPORTED, "Explorer does not support this chain.")
        return None

    async def _call(self, chain: Chain, params: dict) -> Tuple[Any, Optional[ExplorerError]]:
        query = {"chainid": str(CHAIN_IDS[chain]), **params, "apikey": self.api_key}
        payload, error = await _get_json(self.client, self.base_url, query, self.timeout)
        if error:
            return None, error
        return parse_explorer_result(payload)

    async def get_source_facts(self, chain: Chain, address: str) -> ExplorerResult[SourceFacts]:
        error = self._precheck(chain)
        if error:
            return ExplorerResult[SourceFacts](data=SourceFacts(), error=error)

        result, error = await self._call(
            chain, {"module": "contract", "action": "getsourcecode", "address": address}
        )
        if error:
            return ExplorerResult[SourceFacts](data=SourceFacts(), error=error)
        if not isinstance(result, list) or not result or not isinstance(result[0], dict):
            return ExplorerResult[SourceFacts](
                data=SourceFacts(),
                error=_error(ExplorerErrorCode.UPSTREAM_ERROR, "Explorer returned an empty result."),
            )

        entry = result[0]
        raw_source = entry.get("SourceCode") if isinstance(entry.get("SourceCode"), str) else ""
        proxy_flag = str(entry.get("Proxy", ""))
        return ExplorerResult[SourceFacts](data=SourceFacts(
            source_available=raw_source.strip() != "",
            is_proxy=True if proxy_flag == "1" else (False if proxy_flag == "0" else "unknown"),
            source_code=unwrap_source(raw_source),
            contract_name=str(entry.get("ContractName") or ""),
            implementation=str(entry.get("Implementation") or ""),
            abi_functions=parse_abi_functions(entry.get("ABI")),
        ))

    async def get_creation_facts(self, chain: Chain, address: str) -> ExplorerResult[CreationFacts]:
        error = self._precheck(chain)
        if error:
            return ExplorerResult[CreationFacts](data=CreationFacts(), error=error)

        result, error = await self._call(
            chain, {"module": "contract", "action": "getcontractcreation", "contractaddresses": address}
        )
        if error:
            return ExplorerResult[CreationFacts](data=CreationFacts(), error=error)
        if not isinstance(result, list) or not result or not isinstance(result[0], dict):
            return ExplorerResult[CreationFacts](
                data=CreationFacts(),
                error=_error(ExplorerErrorCode.UPSTREAM_ERROR, "Explorer returned an empty result."),
            )

        entry = result[0]
        creator = entry.get("contractCreator")
        tx_hash = entry.get("txHash")
        return ExplorerResult[CreationFacts](data=CreationFacts(
            creator_address=creator if isinstance(creator, str) and creator else "unknown",
            creation_tx_hash=tx_hash if isinstance(tx_hash, str) and tx_hash else "unknown",
        ))

    async def get_token_supply(self, chain: Chain, address: str) -> Tuple[Optional[int], Optional[ExplorerError]]:
        result, error = await self._call(
            chain, {"module": "stats", "action": "tokensupply", "contractaddress": address}
        )
        if error:
            return None, error
        supply = parse_int(result)
        if supply is None or supply <= 0:
            return None, _error(ExplorerErrorCode.UPSTREAM_ERROR, "Explorer returned an invalid total supply.")
        return supply, None

    async def get_holder_facts(self, chain: Chain, address: str) -> ExplorerResult[HolderFacts]:
        error = self._precheck(chain)
        if error:
            return ExplorerResult[HolderFacts](data=HolderFacts(), error=error)

        result, error = await self._call(chain, {
            "module": "token",
            "action": "tokenholderlist",
            "contractaddress": address,
            "page": "1",
            "offset": str(TOP_HOLDERS),
        })
        if error:
            return ExplorerResult[HolderFacts](data=HolderFacts(), error=error)
        if not isinstance(result, list) or not result:
            return ExplorerResult[HolderFacts](
                data=HolderFacts(),
                error=_error(ExplorerErrorCode.UPSTREAM_ERROR, "Explorer returned an empty holder list."),
            )

        def unusable(err: ExplorerError) -> ExplorerResult[HolderFacts]:
            return ExplorerResult[HolderFacts](data=HolderFacts(holder_list_available=True), error=err)

        entries = [e for e in result[:TOP_HOLDERS] if isinstance(e, dict)]
        if len(entries) < TOP_HOLDERS:
            return unusable(_error(
                ExplorerErrorCode.UPSTREAM_ERROR, "Explorer returned fewer than 10 holders."))

        total_supply: Optional[int] = None
        percents: List[float] = []
        for entry in entries:
            percent = find_percent(entry)
            if percent is None:
                if total_supply is None:
                    total_supply, error = await self.get_token_supply(chain, address)
                    if error:
                        return unusable(error)
                quantity = find_quantity(entry)
                if quantity is None:
                    return unusable(_error(
                        ExplorerErrorCode.UPSTREAM_ERROR, "Explorer holder list did not include balances."))
                percent = percent_of_supply(quantity, total_supply)
            if not 0 <= percent <= 100:
                return unusable(_error(
                    ExplorerErrorCode.UPSTREAM_ERROR, "Explorer returned an out-of-range holder percentage."))
            percents.append(percent)

        return ExplorerResult[HolderFacts](
            data=HolderFacts(holder_list_available=True, top_holder_percents=percents)
        )

    async def _guarded(self, group: str, coro, empty: FactsT, chain: Chain, address: str) -> ExplorerResult:
        try:
            return await coro
        except Exception:
            logger.exception("Explorer %s facts for %s:%s could not be read", group, chain.value, address)
            return ExplorerResult[type(empty)](
                data=empty,
                error=_error(ExplorerErrorCode.UPSTREAM_ERROR, "Explorer facts could not be read."),
            )

    async def fetch_facts(self, chain: Chain, address: str) -> ExplorerFacts:
        source, creation, holders = await asyncio.gather(
            self._guarded("source", self.get_source_facts(chain, address), SourceFacts(), chain, address),
            self._guarded("creation", self.get_creation_facts(chain, address), CreationFacts(), chain, address),
            self._guarded("holders", self.get_holder_facts(chain, address), HolderFacts(), chain, address),
        )
        for group, result in (("source", source), ("creation", creation), ("holders", holders)):
            if result.error:
                logger.warning("Explorer %s facts for %s:%s: %s", group, chain.value, address, result.error.code.value)
        return ExplorerFacts(source=source, creation=creation, holders=holders)

def unwrap_source(raw: str) -> str:
    """Flatten Etherscan standard-JSON input into one blob of source text."""
    text = raw.strip()
    if not text.startswith("{"):
        return raw
    if text.startswith("{{") and text.endswith("}}"):
        text = text[1:-1]
    try:
        doc = json.loads(text)
    except ValueError:
        return raw
    sources = doc.get("sources") if isinstance(doc, dict) else None
    if not isinstance(sources, dict):
        sources = doc if isinstance(doc, dict) else {}
    contents = [
        spec["content"] for spec in sources.values()
        if isinstance(spec, dict) and isinstance(spec.get("content"), str)
    ]
    return "\n".join(contents) if contents else raw

def parse_abi_functions(raw: Any) -> List[str]:
    if not isinstance(raw, str) or not raw.strip().startswith("["):
        return []
    try:
        abi = json.loads(raw)
    except ValueError:
        return []
    names: List[str] = []
    for item in abi:
        if not isinstance(item, dict) or item.get("type", "function") != "function":
            continue
        name = item.get("name")
        if isinstance(name, str) and name and name not in names:
            names.append(name)
    return names

def parse_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    try:
        if isinstance(value, (int, float)):
            parsed = float(value)
        elif isinstance(value, str):
            parsed = float(_NUMERIC_STRIP_RE.sub("", value))
        else:
            return None
    except (ValueError, OverflowError):
        return None
    return parsed if math.isfinite(parsed) else None

def parse_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else None
    if isinstance(value, str) and _DIGITS_RE.fullmatch(value):
        return int(value)
    return None

def find_percent(entry: Dict[str, Any]) -> Optional[float]:
    for key, value in entry.items():
        lowered = key.lower()
        if "percent" in lowered or "share" in lowered:
            parsed = parse_float(value)
            if parsed is not None:
                return parsed
    return None

def find_quantity(entry: Dict[str, Any]) -> Optional[int]:
    for key, value in entry.items():
        lowered = key.lower()
        if any(k in lowered for k in ("quantity", "balance", "amount", "value")):
            parsed = parse_int(value)
            if parsed is not None:
                return parsed
    return None

def percent_of_supply(quantity: int, total_supply: int) -> float:
    # exact integer math, round half up to 2 decimals
    hundredths = (quantity * 20000 + total_supply) // (2 * total_supply)
    return hundredths / 100
