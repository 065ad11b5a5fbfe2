from __future__ import annotations

from enum import Enum
from typing import Dict, Optional

from tsi.schemas import ExplorerError, ExplorerErrorCode, ExplorerFacts

class InputErrorCode(str, Enum):
    MISSING_PARAMS = "missing_params"
    INVALID_CHAIN = "invalid_chain"
    INVALID_ADDRESS = "invalid_address"

class InspectErrorCode(str, Enum):
    MISSING_PARAMS = "missing_params"
    INVALID_CHAIN = "invalid_chain"
    INVALID_ADDRESS = "invalid_address"
    MISSING_API_KEY = "missing_api_key"
    RATE_LIMITED = "rate_limited"
    TIMEOUT = "timeout"
    UPSTREAM_ERROR = "upstream_error"
    INVALID_RESPONSE = "invalid_response"
    INTERNAL_ERROR = "internal_error"
    NOT_FOUND = "not_found"
    METHOD_NOT_ALLOWED = "method_not_allowed"

RETRY_AFTER_SECONDS = 60

class InspectError(Exception):
    def __init__(
        self,
        code: InspectErrorCode,
        message: str,
        status: int,
        detail: Optional[Dict[str, str]] = None,
        retry_after: Optional[int] = None,
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.status = status
        self.detail = detail
        self.retry_after = retry_after

    def to_body(self) -> dict:
        error = {"code": self.code.value, "message": self.message}
        if self.detail:
            error["detail"] = dict(self.detail)
        return error

INPUT_ERROR_MESSAGES = {
    InputErrorCode.MISSING_PARAMS: "Missing required query parameters: chain and address.",
    InputErrorCode.INVALID_CHAIN: "Unsupported chain. Use one of: eth, bsc.",
    InputErrorCode.INVALID_ADDRESS: "Invalid address format. Expected 0x followed by 40 hex characters.",
}

def input_error(code: InputErrorCode) -> InspectError:
    return InspectError(InspectErrorCode(code.value), INPUT_ERROR_MESSAGES[code], 400)

def rate_limit_error(window: int = RETRY_AFTER_SECONDS) -> InspectError:
    return InspectError(
        InspectErrorCode.RATE_LIMITED,
        "Too many requests. Please wait before trying again.",
        429,
        detail={"hint": f"Retry after {window} seconds."},
        retry_after=window,
    )

INVALID_RESPONSE_KEYWORDS = ("invalid", "parse", "schema", "json")

# upstream symptom -> (public code, http status, message)
EXPLORER_ERROR_TABLE = {
    ExplorerErrorCode.MISSING_API_KEY: (
        InspectErrorCode.MISSING_API_KEY, 503, "Upstream API key is missing or rejected."),
    ExplorerErrorCode.RATE_LIMITED: (
        InspectErrorCode.RATE_LIMITED, 429, "Upstream provider rate limit reached."),
    ExplorerErrorCode.TIMEOUT: (
        InspectErrorCode.TIMEOUT, 504, "Upstream request timed out."),
}

BLOCKING_EXPLORER_CODES = frozenset({
    ExplorerErrorCode.MISSING_API_KEY,
    ExplorerErrorCode.RATE_LIMITED,
    ExplorerErrorCode.UPSTREAM_ERROR,
    ExplorerErrorCode.TIMEOUT,
})

def map_explorer_error(error: ExplorerError) -> InspectError:
    detail = {"provider": error.upstream} if error.upstream else {}

    if error.code in EXPLORER_ERROR_TABLE:
        code, status, message = EXPLORER_ERROR_TABLE[error.code]
        retry_after = None
        if code == InspectErrorCode.RATE_LIMITED:
            detail["hint"] = "Please try again later."
            retry_after = RETRY_AFTER_SECONDS
        return InspectError(code, message, status, detail=detail or None, retry_after=retry_after)

    lowered = error.message.lower()
    if any(keyword in lowered for keyword in INVALID_RESPONSE_KEYWORDS):
        return InspectError(
            InspectErrorCode.INVALID_RESPONSE,
            "Upstream returned an invalid response.",
            502,
            detail=detail or None,
        )

    return InspectError(
        InspectErrorCode.UPSTREAM_ERROR,
        "Upstream request failed.",
        502,
        detail=detail or None,
    )

def get_blocking_error(facts: ExplorerFacts) -> Optional[InspectError]:
    """Return the public error for the first blocking failure on a core fact group.

    Only source and creation facts are core; holder failures degrade a single check.
    """
    for error in (facts.source.error, facts.creation.error):
        if error is not None and error.code in BLOCKING_EXPLORER_CODES:
            return map_explorer_error(error)
    return None

def internal_error() -> InspectError:
    return InspectError(
        InspectErrorCode.INTERNAL_ERROR,
        "Unexpected error while generating the report.",
        500,
    )

def route_error(status: int) -> InspectError:
    if status == 405:
        return InspectError(InspectErrorCode.METHOD_NOT_ALLOWED, "Method not allowed", 405)
    return InspectError(InspectErrorCode.NOT_FOUND, "Not found", 404)
