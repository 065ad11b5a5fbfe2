from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import List, Literal, Pattern, Sequence, Union

logger = logging.getLogger(__name__)

SignalStrength = Literal["strong", "weak"]

MAX_MATCH_LINES = 10
QUOTES = ('"', "'", "`")
NEWLINES = ("\n", "\r")

@dataclass(frozen=True)
class SignalPattern:
    name: str
    regex: Union[str, Pattern[str]]
    strength: SignalStrength

@dataclass
class RemovedCounts:
    comments: int = 0
    strings: int = 0

@dataclass
class PreprocessResult:
    cleaned: str
    removed_counts: RemovedCounts = field(default_factory=RemovedCounts)
    failed: bool = False

@dataclass(frozen=True)
class SignalMatch:
    name: str
    strength: SignalStrength
    regex: str
    match: str
    index: int

def _is_escaped(chars: Sequence[str], index: int) -> bool:
    slashes = 0
    cursor = index - 1
    while cursor >= 0 and chars[cursor] == "\\":
        slashes += 1
        cursor -= 1
    return slashes % 2 == 1

def _blank(chars: List[str], start: int, end: int) -> None:
    for i in range(start, end):
        if chars[i] not in NEWLINES:
            chars[i] = " "

def preprocess(text: str) -> PreprocessResult:
    """Blank out comments and quoted literals, keeping every offset in place."""
    try:
        chars = list(text)
        original = list(chars)
        comments = strings = 0
        i, n = 0, len(chars)

        while i < n:
            char = chars[i]
            nxt = chars[i + 1] if i + 1 < n else ""

            if char == "/" and nxt == "/":
                comments += 1
                start = i
                i += 2
                while i < n and chars[i] != "\n":
                    i += 1
                _blank(chars, start, i)
                continue

            if char == "/" and nxt == "*":
                comments += 1
                start = i
                i += 2
                while i < n:
                    if chars[i] == "*" and i + 1 < n and chars[i + 1] == "/":
                        i += 2
                        break
                    i += 1
                _blank(chars, start, i)
                continue

            if char in QUOTES and not _is_escaped(original, i):
                strings += 1
                start = i
                i += 1
                while i < n:
                    if chars[i] == char and not _is_escaped(original, i):
                        i += 1
                        break
                    i += 1
                _blank(chars, start, i)
                continue

            i += 1

        return PreprocessResult(
            cleaned="".join(chars),
            removed_counts=RemovedCounts(comments=comments, strings=strings),
        )
    except Exception:
        logger.warning("Source preprocessing failed; scanning raw text", exc_info=True)
        return PreprocessResult(cleaned=text, failed=True)

def _compile(regex: Union[str, Pattern[str]]) -> Pattern[str]:
    if isinstance(regex, str):
        return re.compile(regex, re.IGNORECASE)
    return re.compile(regex.pattern, regex.flags | re.IGNORECASE)

def find_signals(cleaned: str, patterns: Sequence[SignalPattern]) -> List[SignalMatch]:
    matches: List[SignalMatch] = []
    for pattern in patterns:
        try:
            compiled = _compile(pattern.regex)
            for m in compiled.finditer(cleaned):
                matches.append(SignalMatch(
                    name=pattern.name,
                    strength=pattern.strength,
                    regex=compiled.pattern,
                    match=m.group(0),
                    index=m.start(),
                ))
        except (re.error, TypeError) as e:
            logger.warning("Skipping signal pattern %s: %s", pattern.name, e)
            continue
    return matches

def format_evidence(matches: Sequence[SignalMatch], preprocessed: PreprocessResult) -> List[str]:
    if preprocessed.failed:
        lines = ["Preprocess: failed, scanned raw source text."]
    else:
        removed = preprocessed.removed_counts
        lines = [
            f"Preprocess: {removed.comments} comment(s) and {removed.strings} string literal(s) "
            "removed before scanning."
        ]
    for m in matches[:MAX_MATCH_LINES]:
        lines.append(f"Matched: {m.name} ({m.strength}) at offset {m.index}: \"{m.match.strip()}\"")
    if len(matches) > MAX_MATCH_LINES:
        lines.append(f"... and {len(matches) - MAX_MATCH_LINES} more match(es).")
    return lines
