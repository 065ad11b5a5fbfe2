import pytest

from tsi.errors import (
    InputErrorCode,
    InspectErrorCode,
    get_blocking_error,
    input_error,
    map_explorer_error,
)
from tsi.schemas import (
    CreationFacts,
    ExplorerError,
    ExplorerErrorCode,
    ExplorerFacts,
    ExplorerResult,
    HolderFacts,
    SourceFacts,
)

def explorer_error(code, message="Explorer request failed."):
    return ExplorerError(code=code, message=message)

def facts(source=None, creation=None, holders=None):
    return ExplorerFacts(
        source=ExplorerResult[SourceFacts](data=SourceFacts(), error=source),
        creation=ExplorerResult[CreationFacts](data=CreationFacts(), error=creation),
        holders=ExplorerResult[HolderFacts](data=HolderFacts(), error=holders),
    )

@pytest.mark.parametrize("code,public,status", [
    (ExplorerErrorCode.MISSING_API_KEY, InspectErrorCode.MISSING_API_KEY, 503),
    (ExplorerErrorCode.RATE_LIMITED, InspectErrorCode.RATE_LIMITED, 429),
    (ExplorerErrorCode.TIMEOUT, InspectErrorCode.TIMEOUT, 504),
    (ExplorerErrorCode.UPSTREAM_ERROR, InspectErrorCode.UPSTREAM_ERROR, 502),
])
def test_map_explorer_error(code, public, status):
    mapped = map_explorer_error(explorer_error(code))
    assert (mapped.code, mapped.status) == (public, status)
    assert mapped.detail["provider"] == "etherscan"

def test_rate_limited_carries_retry_after():
    assert map_explorer_error(explorer_error(ExplorerErrorCode.RATE_LIMITED)).retry_after == 60

def test_invalid_payload_maps_to_invalid_response():
    mapped = map_explorer_error(explorer_error(ExplorerErrorCode.UPSTREAM_ERROR, "Explorer returned invalid JSON."))
    assert (mapped.code, mapped.status) == (InspectErrorCode.INVALID_RESPONSE, 502)

def test_blocking_error_from_source_or_creation():
    timeout = explorer_error(ExplorerErrorCode.TIMEOUT)
    assert get_blocking_error(facts(source=timeout)).status == 504
    assert get_blocking_error(facts(creation=timeout)).status == 504

def test_holder_errors_never_block():
    assert get_blocking_error(facts(holders=explorer_error(ExplorerErrorCode.UPSTREAM_ERROR))) is None

def test_non_blocking_codes_do_not_block():
    plan = explorer_error(ExplorerErrorCode.UNAVAILABLE_ON_FREE_PLAN)
    assert get_blocking_error(facts(source=plan, creation=plan)) is None

def test_input_error_body():
    err = input_error(InputErrorCode.INVALID_ADDRESS)
    assert err.status == 400
    assert err.to_body()["code"] == "invalid_address"
    assert "detail" not in err.to_body()
