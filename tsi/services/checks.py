from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence

from tsi.schemas import Chain, ExplorerFacts, RiskCheck
from tsi.services import patterns as P
from tsi.services.abi_signals import AbiSignals, collect_abi_evidence, extract_abi_signals
from tsi.services.source_scan import (
    PreprocessResult,
    SignalMatch,
    SignalPattern,
    find_signals,
    format_evidence,
    preprocess,
)

EXPLORER_CODE_URLS = {
    Chain.ETH: "https://etherscan.io/address/{address}#code",
    Chain.BSC: "https://bscscan.com/address/{address}#code",
}

HIGH_THRESHOLDS = (50.0, 80.0, 90.0)
WARN_THRESHOLDS = (30.0, 60.0, 75.0)

@dataclass
class CheckFacts:
    chain: Chain
    address: str
    explorer: ExplorerFacts
    preprocessed: Optional[PreprocessResult] = None
    abi_signals: AbiSignals = field(default_factory=dict)

    @property
    def source_ready(self) -> bool:
        return self.explorer.source.data.source_available is True and self.preprocessed is not None

    def scan(self, patterns: Sequence[SignalPattern]) -> List[SignalMatch]:
        return find_signals(self.preprocessed.cleaned, patterns)

def build_check_facts(chain: Chain, address: str, explorer: ExplorerFacts) -> CheckFacts:
    source = explorer.source.data
    preprocessed = preprocess(source.source_code) if source.source_available is True else None
    return CheckFacts(
        chain=chain,
        address=address,
        explorer=explorer,
        preprocessed=preprocessed,
        abi_signals=extract_abi_signals(source.abi_functions),
    )

def source_unavailable_reason(facts: CheckFacts) -> str:
    source = facts.explorer.source
    if source.error is not None:
        return f"Source code unavailable: {source.error.message} ({source.error.code.value})"
    if source.data.source_available is False:
        return "Contract source code is not verified on the explorer."
    return "Source verification status is unknown."

def _check(check_id: str, label: str, result: str, short: str, detail: str,
           evidence: List[str], how_to_verify: List[str]) -> RiskCheck:
    return RiskCheck(id=check_id, label=label, result=result, short=short, detail=detail,
                     evidence=evidence, how_to_verify=how_to_verify)

def _abi_line(facts: CheckFacts, keys: Sequence[str]) -> List[str]:
    names = collect_abi_evidence(facts.abi_signals, keys)
    return [f"ABI exposes: {', '.join(names)}"] if names else []

def _unknown_source(facts: CheckFacts, check_id: str, label: str, how: List[str]) -> RiskCheck:
    reason = source_unavailable_reason(facts)
    return _check(check_id, label, "unknown", "Cannot scan: source not available.",
                  "Without verified source code this heuristic cannot be evaluated.",
                  [reason], how)

SELL_HOW = [
    "Search the verified source for blacklist, whitelist or trading-enabled checks inside transfer logic.",
    "Review recent sell transactions on the explorer for failed or reverted sells.",
]

def check_sell_restriction(facts: CheckFacts) -> RiskCheck:
    check_id, label = "sell_restriction", "Sell restrictions"
    if not facts.source_ready:
        return _unknown_source(facts, check_id, label, SELL_HOW)

    strong = facts.scan(P.SELL_RESTRICTION_STRONG)
    weak = facts.scan(P.SELL_RESTRICTION_WEAK)
    abi = _abi_line(facts, ("blacklist", "whitelist", "trading_toggle"))
    if strong:
        return _check(check_id, label, "high", "Code can block or gate selling.",
                      "The source contains blacklist, whitelist or trading-enabled controls that can stop holders from selling.",
                      format_evidence(strong, facts.preprocessed) + abi, SELL_HOW)
    if weak:
        return _check(check_id, label, "warn", "Sell limits or anti-bot logic present.",
                      "The source contains cooldowns, sell limits, sell taxes or anti-bot logic that can restrict sells.",
                      format_evidence(weak, facts.preprocessed) + abi, SELL_HOW)
    return _check(check_id, label, "ok", "No sell restriction patterns found.",
                  "No blacklist, whitelist, trading toggle or sell limit patterns were found in the source.",
                  format_evidence([], facts.preprocessed) + abi, SELL_HOW)

OWNER_HOW = [
    "Check owner() on the explorer's Read Contract tab and whether ownership was renounced.",
    "List the onlyOwner functions and what state they can change.",
]

def check_owner_privileges(facts: CheckFacts) -> RiskCheck:
    check_id, label = "owner_privileges", "Owner privileges"
    if not facts.source_ready:
        return _unknown_source(facts, check_id, label, OWNER_HOW)

    owner = facts.scan(P.OWNER_PATTERNS)
    strong = facts.scan(P.OWNER_CHANGE_STRONG)
    weak = facts.scan(P.OWNER_CHANGE_WEAK)
    abi = _abi_line(facts, ("owner_setter", "blacklist", "whitelist"))
    if owner and strong:
        return _check(check_id, label, "high", "Owner can blacklist or rewrite balances.",
                      "Owner-gated code can change who may trade or what balances are.",
                      format_evidence(owner + strong, facts.preprocessed) + abi, OWNER_HOW)
    if owner and weak:
        return _check(check_id, label, "warn", "Owner can change fees or limits.",
                      "Owner-gated setters can change fees, transaction limits or key wallets after launch.",
                      format_evidence(owner + weak, facts.preprocessed) + abi, OWNER_HOW)
    short = "Owner controls present but no risky setters found." if owner else "No owner-gated controls found."
    return _check(check_id, label, "ok", short,
                  "No owner-gated blacklist, fee or limit setters were found in the source.",
                  format_evidence(owner, facts.preprocessed) + abi, OWNER_HOW)

MINT_HOW = [
    "Look for external mint functions and who is allowed to call them.",
    "Compare totalSupply over time on the explorer for unexpected increases.",
]

def check_mint_capability(facts: CheckFacts) -> RiskCheck:
    check_id, label = "mint_capability", "Mint capability"
    if not facts.source_ready:
        return _unknown_source(facts, check_id, label, MINT_HOW)

    mint = facts.scan(P.MINT_PATTERNS)
    role = facts.scan(P.MINTER_ROLE_PATTERNS)
    abi = _abi_line(facts, ("mint", "minter_role"))
    if mint and role:
        return _check(check_id, label, "high", "Supply can be minted by privileged accounts.",
                      "The source has a mint function and a minter role that controls it.",
                      format_evidence(mint + role, facts.preprocessed) + abi, MINT_HOW)
    if mint or role:
        return _check(check_id, label, "warn", "Mint-related code present.",
                      "The source contains a mint function or minter role, so supply may be increased.",
                      format_evidence(mint + role, facts.preprocessed) + abi, MINT_HOW)
    return _check(check_id, label, "ok", "No mint function found.",
                  "No externally callable mint function or minter role was found in the source.",
                  format_evidence([], facts.preprocessed) + abi, MINT_HOW)

LIQUIDITY_HOW = [
    "Find the main liquidity pair and check who holds the LP tokens.",
    "Confirm any lock on the locker's own site and note the unlock date.",
]

def check_liquidity_lock(facts: CheckFacts) -> RiskCheck:
    return _check("liquidity_lock", "Liquidity lock", "unknown", "LP lock status not verified.",
                  "Liquidity lock status is not checked by this service.",
                  ["No data source used here can verify whether liquidity provider tokens are locked."],
                  LIQUIDITY_HOW)

HOLDER_HOW = [
    "Open the holders tab on the explorer and identify the top wallets.",
    "Exclude burn, liquidity pair and locker addresses before judging concentration.",
]

def concentration_level(top1: float, top5: float, top10: float) -> str:
    if top1 >= HIGH_THRESHOLDS[0] or top5 >= HIGH_THRESHOLDS[1] or top10 >= HIGH_THRESHOLDS[2]:
        return "high"
    if top1 >= WARN_THRESHOLDS[0] or top5 >= WARN_THRESHOLDS[1] or top10 >= WARN_THRESHOLDS[2]:
        return "warn"
    return "ok"

def check_holder_concentration(facts: CheckFacts) -> RiskCheck:
    check_id, label = "holder_concentration", "Holder concentration"
    holders = facts.explorer.holders
    percents = holders.data.top_holder_percents
    if len(percents) != 10:
        if holders.error is not None:
            reason = f"Holder data unavailable: {holders.error.message} ({holders.error.code.value})"
        else:
            reason = "Holder data unavailable: fewer than 10 top holders were returned."
        return _check(check_id, label, "unknown", "Holder data unavailable.",
                      "The top-10 holder list could not be obtained, so concentration was not computed.",
                      [reason], HOLDER_HOW)

    ranked = sorted(percents, reverse=True)
    top1, top5, top10 = ranked[0], sum(ranked[:5]), sum(ranked)
    result = concentration_level(top1, top5, top10)
    evidence = [
        f"Top 1 holder: {top1:.2f}%",
        f"Top 5 holders: {top5:.2f}%",
        f"Top 10 holders: {top10:.2f}%",
    ]
    shorts = {
        "high": "Supply is highly concentrated.",
        "warn": "Supply is moderately concentrated.",
        "ok": "Supply is reasonably distributed.",
    }
    return _check(check_id, label, result, shorts[result],
                  "Shares are taken from the explorer's top-10 holder list and may include pair or burn addresses.",
                  evidence, HOLDER_HOW)

VERIFY_HOW = [
    "Open the contract on the explorer and confirm the Code tab shows verified source.",
    "For proxies, also check that the implementation contract is verified.",
]

def explorer_url(chain: Chain, address: str) -> Optional[str]:
    template = EXPLORER_CODE_URLS.get(chain)
    return template.format(address=address) if template else None

def check_contract_verification(facts: CheckFacts) -> RiskCheck:
    check_id, label = "contract_verification", "Contract verification"
    source = facts.explorer.source
    creation = facts.explorer.creation.data
    evidence: List[str] = []
    url = explorer_url(facts.chain, facts.address)
    if url:
        evidence.append(f"Explorer: {url}")
    if source.data.contract_name:
        evidence.append(f"Contract name: {source.data.contract_name}")
    if source.data.is_proxy is True:
        impl = source.data.implementation or "unknown"
        evidence.append(f"Explorer flags this contract as a proxy (implementation: {impl}).")
    if creation.creator_address != "unknown":
        evidence.append(f"Creator: {creation.creator_address}")
    if creation.creation_tx_hash != "unknown":
        evidence.append(f"Creation tx: {creation.creation_tx_hash}")

    if source.data.source_available is True:
        return _check(check_id, label, "ok", "Source code is verified.",
                      "The explorer has verified source code for this contract.", evidence, VERIFY_HOW)
    if source.data.source_available is False:
        return _check(check_id, label, "warn", "Source code is not verified.",
                      "Unverified contracts cannot be reviewed; their behavior is opaque.", evidence, VERIFY_HOW)
    return _check(check_id, label, "unknown", "Verification status unknown.",
                  "The explorer could not confirm whether source is verified.",
                  [source_unavailable_reason(facts)] + evidence, VERIFY_HOW)

TRADING_HOW = [
    "Look for pause, stop-trading or enable-trading functions and who can call them.",
    "Check whether trading has already been enabled and whether it can be turned off again.",
]

def check_trading_enable_control(facts: CheckFacts) -> RiskCheck:
    check_id, label = "trading_enable_control", "Trading enable control"
    if not facts.source_ready:
        return _unknown_source(facts, check_id, label, TRADING_HOW)

    pause = facts.scan(P.TRADING_PAUSE_PATTERNS)
    toggle = facts.scan(P.TRADING_TOGGLE_PATTERNS)
    abi = _abi_line(facts, ("pause", "unpause", "trading_toggle"))
    if pause:
        return _check(check_id, label, "high", "Trading can be paused or stopped.",
                      "The source can pause, stop or resume trading at will.",
                      format_evidence(pause, facts.preprocessed) + abi, TRADING_HOW)
    if toggle:
        return _check(check_id, label, "warn", "Trading has an enable switch.",
                      "The source has a function that turns trading on, which may gate early buyers or sellers.",
                      format_evidence(toggle, facts.preprocessed) + abi, TRADING_HOW)
    return _check(check_id, label, "ok", "No trading switch found.",
                  "No pause, stop-trading or enable-trading functions were found in the source.",
                  format_evidence([], facts.preprocessed) + abi, TRADING_HOW)

EVALUATORS: List[Callable[[CheckFacts], RiskCheck]] = [
    check_sell_restriction,
    check_owner_privileges,
    check_mint_capability,
    check_liquidity_lock,
    check_holder_concentration,
    check_contract_verification,
    check_trading_enable_control,
]

def run_checks(facts: CheckFacts) -> List[RiskCheck]:
    return [evaluate(facts) for evaluate in EVALUATORS]
