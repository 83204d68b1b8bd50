import pytest

from summary_gateway.normalize import normalize_text


def test_crlf_and_surrounding_whitespace():
    assert normalize_text("Hello\r\nWorld  ") == "Hello\nWorld"


def test_empty_and_blank_inputs():
    assert normalize_text("") == ""
    assert normalize_text(" \r\n\t ") == ""


def test_lone_cr_is_kept_inside_text():
    assert normalize_text("a\rb") == "a\rb"


@pytest.mark.parametrize("raw", [
    "plain",
    "  padded  ",
    "a\r\nb\r\nc",
    "a\r\r\nb",
    "\r\n\r\nx\r\n",
    "line\n\r\n\rend",
    "中文\r\n段落 ",
])
def test_normalizing_twice_changes_nothing(raw):
    once = normalize_text(raw)
    assert normalize_text(once) == once
    assert "\r\n" not in once
