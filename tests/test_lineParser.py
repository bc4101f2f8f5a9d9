from __future__ import annotations

import pytest

from barlib.lineParser import (
    coerceValue,
    parseLine,
    serializeDirectives,
    serializeLine,
)
from barlib.pluginApi import Directive


@pytest.mark.parametrize(
    "line",
    [
        "Hello world",
        "",
        "   padded   ",
        "key=value but no pipe",
        'quotes "stay" as text',
    ],
)
def test_line_without_pipe_is_all_text(line: str) -> None:
    parsed = parseLine(line)
    assert parsed.text == line
    assert parsed.directives == []
    assert not parsed.degraded


def test_key_values_and_bare_keys() -> None:
    parsed = parseLine("CPU|color=red size=12 checked font=Menlo")
    keys = [d.key for d in parsed.directives]
    assert parsed.text == "CPU"
    assert keys == ["color", "size", "checked", "font"]

    byKey = parsed.asDict()
    assert byKey["color"].value == "red"
    assert byKey["size"].value == "12"
    assert byKey["checked"].value is True
    assert byKey["checked"].raw is None


def test_boolean_coercion_keeps_raw() -> None:
    byKey = parseLine("x|a=1 b=0 c=TRUE d=false e=yes param1=1").asDict()
    assert byKey["a"].value is True
    assert byKey["b"].value is False
    assert byKey["c"].value is True
    assert byKey["d"].value is False
    assert byKey["e"].value == "yes"
    assert byKey["param1"].raw == "1"
    assert byKey["param1"].asText() == "1"


def test_quoted_values_may_contain_spaces() -> None:
    parsed = parseLine("""Run|bash="/bin/echo hi" param1='a b' param2="say \\"x\\"" """)
    byKey = parsed.asDict()
    assert byKey["bash"].value == "/bin/echo hi"
    assert byKey["param1"].value == "a b"
    assert byKey["param2"].value == 'say "x"'
    assert not parsed.degraded


def test_escaped_pipe_is_text() -> None:
    parsed = parseLine(r"a\|b|color=red")
    assert parsed.text == "a|b"
    assert parsed.asDict()["color"].value == "red"


def test_only_first_pipe_splits() -> None:
    parsed = parseLine("T|href=https://x.test/?q=a|b")
    assert parsed.text == "T"
    assert parsed.asDict()["href"].value == "https://x.test/?q=a|b"


def test_unknown_keys_are_preserved() -> None:
    parsed = parseLine("T|frobnicate=7 x-future.flag")
    byKey = parsed.asDict()
    assert byKey["frobnicate"].value == "7"
    assert byKey["x-future.flag"].value is True
    assert not parsed.degraded


def test_bad_first_token_keeps_whole_line() -> None:
    parsed = parseLine("Price | $5")
    assert parsed.text == "Price | $5"
    assert parsed.directives == []
    assert parsed.degraded


def test_unterminated_quote_keeps_earlier_directives() -> None:
    parsed = parseLine('A|color=red href="abc')
    assert [d.key for d in parsed.directives] == ["color"]
    assert parsed.text == 'A| href="abc'
    assert parsed.degraded
    assert "unterminated" in parsed.reason


def test_empty_key_is_malformed() -> None:
    parsed = parseLine("A|=x")
    assert parsed.directives == []
    assert parsed.text == "A|=x"
    assert parsed.degraded


def test_empty_value_is_allowed() -> None:
    d = parseLine("A|image=").asDict()["image"]
    assert d.value == ""
    assert d.raw == ""


def test_coerce_value() -> None:
    assert coerceValue("true") is True
    assert coerceValue(" 0 ") is False
    assert coerceValue("red") == "red"


@pytest.mark.parametrize(
    "token",
    [
        "color=red",
        "refresh=1",
        "terminal=false",
        'bash="/usr/bin/say hello world"',
        "param1='single quoted'",
        "href=https://example.com/a?b=c",
        "checked",
        'font="Menlo \\"Bold\\""',
        'size=""',
    ],
)
def test_round_trip(token: str) -> None:
    first = parseLine("T|" + token).directives
    assert len(first) == 1

    again = parseLine("T|" + serializeDirectives(first)).directives
    assert [(d.key, d.value) for d in again] == [(d.key, d.value) for d in first]


def test_serialize_line_escapes_pipe() -> None:
    line = serializeLine("a|b", [Directive(key="color", value="red", raw="red")])
    assert line == r"a\|b|color=red"
    parsed = parseLine(line)
    assert parsed.text == "a|b"


@pytest.mark.parametrize("text", ["C:\\", "a\\|b", "back\\\\slash", "plain \\ text", "\\"])
def test_serialize_line_round_trips_backslashes(text: str) -> None:
    line = serializeLine(text, [Directive(key="k", value="v", raw="v")])
    parsed = parseLine(line)
    assert parsed.text == text
    assert [(d.key, d.value) for d in parsed.directives] == [("k", "v")]
    assert not parsed.degraded


def test_lone_backslash_in_output_is_kept() -> None:
    assert parseLine(r"C:\dir|color=red").text == r"C:\dir"
    assert parseLine(r"one\\two").text == "one\\two"
