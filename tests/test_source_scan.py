import re

from tsi.services.source_scan import (
    SignalPattern,
    find_signals,
    format_evidence,
    preprocess,
)

BLACKLIST = [SignalPattern(name="blacklist", regex=r"blacklist", strength="strong")]

def test_clean_input_is_unchanged():
    text = "contract A {\n    function f() public {}\n}\n"
    result = preprocess(text)
    assert result.cleaned == text
    assert result.removed_counts.comments == 0
    assert result.removed_counts.strings == 0
    assert not result.failed

def test_comment_does_not_trigger_signal():
    result = preprocess("// blacklist should not trigger here")
    assert find_signals(result.cleaned, BLACKLIST) == []

def test_code_triggers_signal_once():
    result = preprocess("function blacklistAddress(...)")
    matches = find_signals(result.cleaned, BLACKLIST)
    assert len(matches) == 1
    assert matches[0].match == "blacklist"
    assert matches[0].index == 9

def test_string_literals_are_blanked():
    text = 'string note = "blacklist appears in a string";\nchar c = \'x\';'
    result = preprocess(text)
    assert "blacklist" not in result.cleaned
    assert result.removed_counts.strings == 2
    assert len(result.cleaned) == len(text)

def test_block_comment_preserves_newlines_and_offsets():
    text = "a /* one\ntwo */ b"
    result = preprocess(text)
    assert result.cleaned == "a       \n       b"
    assert result.removed_counts.comments == 1

def test_block_comment_is_not_nested():
    result = preprocess("/* outer /* inner */ mint() */")
    assert "mint" in result.cleaned

def test_unterminated_block_comment_runs_to_end():
    result = preprocess("x /* never closed\nblacklist")
    assert "blacklist" not in result.cleaned
    assert result.cleaned.startswith("x ")

def test_escaped_quote_stays_inside_literal():
    text = 'x = "a \\" blacklist"; y'
    result = preprocess(text)
    assert "blacklist" not in result.cleaned
    assert result.cleaned.endswith("; y")

def test_double_backslash_closes_literal():
    text = 'x = "a \\\\"; blacklist'
    result = preprocess(text)
    assert result.cleaned.endswith("; blacklist")

def test_multibyte_characters_keep_offsets():
    text = '"żółw" blacklist'
    result = preprocess(text)
    matches = find_signals(result.cleaned, BLACKLIST)
    assert matches[0].index == text.index("blacklist")

def test_preprocess_failure_returns_input():
    result = preprocess(12345)
    assert result.failed
    assert result.cleaned == 12345

def test_matching_is_case_insensitive_and_global():
    matches = find_signals("BlackList one; blacklist two", BLACKLIST)
    assert [m.index for m in matches] == [0, 15]

def test_compiled_pattern_is_accepted():
    pattern = SignalPattern(name="owner", regex=re.compile(r"onlyowner"), strength="weak")
    matches = find_signals("modifier onlyOwner()", [pattern])
    assert matches[0].match == "onlyOwner"
    assert matches[0].strength == "weak"

def test_broken_pattern_is_skipped():
    patterns = [
        SignalPattern(name="broken", regex=r"(unclosed", strength="strong"),
        BLACKLIST[0],
    ]
    matches = find_signals("blacklist", patterns)
    assert [m.name for m in matches] == ["blacklist"]

def test_format_evidence_lines():
    pre = preprocess("// c\nblacklist")
    matches = find_signals(pre.cleaned, BLACKLIST)
    lines = format_evidence(matches, pre)
    assert lines[0].startswith("Preprocess: 1 comment(s)")
    assert lines[1] == 'Matched: blacklist (strong) at offset 5: "blacklist"'

def test_format_evidence_caps_match_lines():
    matches = find_signals("blacklist " * 15, BLACKLIST)
    lines = format_evidence(matches, preprocess(""))
    assert len(lines) == 12
    assert lines[-1] == "... and 5 more match(es)."

def test_format_evidence_reports_failed_preprocess():
    lines = format_evidence([], preprocess(None))
    assert lines == ["Preprocess: failed, scanned raw source text."]
