"""
Tests for embed length helpers.
"""

from utils.embed_safety import EMBED_LIMITS, join_lines_within, truncate_field


def test_truncate_field_short_text_untouched():
    assert truncate_field("hello") == "hello"


def test_truncate_field_marks_cut():
    text = "x" * 2000
    result = truncate_field(text)
    assert len(result) == EMBED_LIMITS["field_value"]
    assert result.endswith("...")


def test_join_lines_within_fits():
    assert join_lines_within(["a", "b", "c"]) == "a\nb\nc"


def test_join_lines_within_drops_overflow():
    lines = [f"line {i:02d}" for i in range(20)]

    result = join_lines_within(lines, max_len=50)

    assert len(result) <= 50
    assert result.splitlines()[0] == "line 00"
    assert result.splitlines()[-1].startswith("+")
    assert result.splitlines()[-1].endswith("more")
