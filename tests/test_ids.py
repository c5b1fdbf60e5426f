"""Tests for identifier encoding."""

import pytest

from tracetree.errors import InvalidArgument
from tracetree.ids import Identifier, IdEncoding, decode_id, encode_id

SPAN_HEX = "b7ad6b7169203331"
SPAN_B64 = "t61rcWkgMzE="


def test_hex_and_base64_agree():
    ident = Identifier.from_hex(SPAN_HEX)
    assert ident.base64 == SPAN_B64
    assert Identifier.from_base64(SPAN_B64) == ident


def test_parse_accepts_both_forms():
    assert Identifier.parse(SPAN_HEX).hex == SPAN_HEX
    assert Identifier.parse(SPAN_B64).hex == SPAN_HEX
    assert Identifier.parse(SPAN_HEX.upper()).hex == SPAN_HEX


def test_empty_identifier():
    assert Identifier.parse("").raw == b""
    assert Identifier().hex == ""
    assert Identifier().base64 == ""


@pytest.mark.parametrize("text", ["not an id!", "abc", "t61rcWkgMzE"])
def test_parse_rejects_garbage(text):
    with pytest.raises(InvalidArgument):
        Identifier.parse(text)


def test_encode_decode_pair():
    assert encode_id(SPAN_HEX, IdEncoding.HEX) == SPAN_HEX
    assert encode_id(SPAN_HEX, IdEncoding.BASE64) == SPAN_B64
    assert decode_id(SPAN_B64, IdEncoding.BASE64) == SPAN_HEX
    assert encode_id("", IdEncoding.BASE64) == ""
