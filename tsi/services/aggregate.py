from __future__ import annotations

from typing import List, Sequence

from tsi.schemas import RiskCheck

MAX_TOP_REASONS = 3

SUMMARIES = {
    "high": "At least one check found a high-risk signal. Review the evidence before interacting with this token.",
    "medium": "Some checks raised warnings. Review the flagged items before interacting with this token.",
    "low": "No risk signals were found in the data available. This is not a guarantee of safety.",
    "unknown": "Not enough data to classify risk. Some checks could not be completed.",
}

def overall_risk(checks: Sequence[RiskCheck]) -> str:
    results = [c.result for c in checks]
    if "high" in results:
        return "high"
    if "warn" in results:
        return "medium"
    if "ok" in results and "unknown" not in results:
        return "low"
    return "unknown"

def top_reasons(checks: Sequence[RiskCheck], limit: int = MAX_TOP_REASONS) -> List[str]:
    highs = [f"{c.label}: {c.short}" for c in checks if c.result == "high"]
    warns = [f"{c.label}: {c.short}" for c in checks if c.result == "warn"]
    return (highs + warns)[:limit]

def summarize(checks: Sequence[RiskCheck]) -> dict:
    risk = overall_risk(checks)
    return {"overallRisk": risk, "summary": SUMMARIES[risk], "topReasons": top_reasons(checks)}
