from __future__ import annotations
from enum import Enum
from typing import Generic, List, Literal, Optional, TypeVar, Union
from pydantic import BaseModel, ConfigDict, Field

class Chain(str, Enum):
    ETH = "eth"
    BSC = "bsc"

class ExplorerErrorCode(str, Enum):
    MISSING_API_KEY = "missing_api_key"
    RATE_LIMITED = "rate_limited"
    UNAVAILABLE_ON_FREE_PLAN = "unavailable_on_free_plan"
    NOT_SUPPORTED = "not_supported"
    TIMEOUT = "timeout"
    UPSTREAM_ERROR = "upstream_error"

class RpcErrorCode(str, Enum):
    MISSING_RPC_URL = "missing_rpc_url"
    TIMEOUT = "timeout"
    RATE_LIMITED = "rate_limited"
    UPSTREAM_ERROR = "upstream_error"
    INVALID_RESPONSE = "invalid_response"
    REVERTED = "reverted"

ExplorerValue = Union[bool, Literal["unknown"]]
UNKNOWN = "unknown"

class ExplorerError(BaseModel):
    code: ExplorerErrorCode
    message: str
    upstream: str = "etherscan"

class SourceFacts(BaseModel):
    source_available: ExplorerValue = UNKNOWN
    is_proxy: ExplorerValue = UNKNOWN
    source_code: str = ""
    contract_name: str = ""
    implementation: str = ""
    abi_functions: List[str] = []

class CreationFacts(BaseModel):
    creator_address: str = UNKNOWN
    creation_tx_hash: str = UNKNOWN

class HolderFacts(BaseModel):
    holder_list_available: ExplorerValue = UNKNOWN
    top_holder_percents: List[float] = []

FactsT = TypeVar("FactsT", bound=BaseModel)

class ExplorerResult(BaseModel, Generic[FactsT]):
    data: FactsT
    error: Optional[ExplorerError] = None

class ExplorerFacts(BaseModel):
    source: ExplorerResult[SourceFacts]
    creation: ExplorerResult[CreationFacts]
    holders: ExplorerResult[HolderFacts]

class RpcError(BaseModel):
    code: RpcErrorCode
    message: str
    status: Optional[int] = None

class RpcCallResult(BaseModel):
    ok: bool
    result: Optional[str] = None
    error: Optional[RpcError] = None

TokenIdentityStatus = Literal["ok", "partial", "failed"]

class TokenIdentityEvidence(BaseModel):
    source: Literal["rpc_eth_call"] = "rpc_eth_call"
    status: TokenIdentityStatus
    notes: Optional[str] = None

class TokenIdentity(BaseModel):
    name: Optional[str] = None
    symbol: Optional[str] = None
    decimals: Optional[int] = None
    evidence: TokenIdentityEvidence

CheckResult = Literal["ok", "warn", "high", "unknown"]
OverallRisk = Literal["low", "medium", "high", "unknown"]

class RiskCheck(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    label: str
    result: CheckResult
    short: str
    detail: str
    evidence: List[str] = []
    how_to_verify: List[str] = Field(default_factory=list, alias="howToVerify")

class InspectInput(BaseModel):
    chain: Chain
    address: str

class InspectResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    overall_risk: OverallRisk = Field(alias="overallRisk")
    summary: str
    top_reasons: List[str] = Field(default_factory=list, alias="topReasons")
    token: Optional[TokenIdentity] = None

class InspectMeta(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    generated_at: str = Field(alias="generatedAt")
    cached: bool = False
    stale: bool = False
    ts: int

class InspectReport(BaseModel):
    ok: Literal[True] = True
    input: InspectInput
    result: InspectResult
    checks: List[RiskCheck]
    meta: InspectMeta
