"""Trace and span identifiers.

Identifiers are opaque byte strings.  The store keeps them as lowercase hex
text; the Tempo-compatible OTLP JSON encoding carries them as base64.  Parse
once at the edge with :meth:`Identifier.parse` and encode once on the way out.
"""

from __future__ import annotations

import base64
import binascii
import re
from dataclasses import dataclass
from enum import Enum

from tracetree.errors import InvalidArgument

_HEX_RE = re.compile(r"^(?:[0-9a-fA-F]{2})+$")


class IdEncoding(str, Enum):
    HEX = "hex"
    BASE64 = "base64"


@dataclass(frozen=True)
class Identifier:
    """Raw bytes of a trace or span id."""

    raw: bytes = b""

    @classmethod
    def from_hex(cls, text: str) -> Identifier:
        if not text:
            return cls()
        if not _HEX_RE.match(text):
            raise InvalidArgument(f"Not a hex identifier: {text!r}")
        return cls(bytes.fromhex(text))

    @classmethod
    def from_base64(cls, text: str) -> Identifier:
        if not text:
            return cls()
        try:
            return cls(base64.b64decode(text, validate=True))
        except (binascii.Error, ValueError) as exc:
            raise InvalidArgument(f"Not a base64 identifier: {text!r}") from exc

    @classmethod
    def parse(cls, text: str) -> Identifier:
        """Accept either encoding; hex wins when the text is valid as both."""
        if not text or _HEX_RE.match(text):
            return cls.from_hex(text)
        return cls.from_base64(text)

    @property
    def hex(self) -> str:
        return self.raw.hex()

    @property
    def base64(self) -> str:
        return base64.b64encode(self.raw).decode("ascii")

    def encode(self, encoding: IdEncoding) -> str:
        if encoding is IdEncoding.BASE64:
            return self.base64
        return self.hex

    def __str__(self) -> str:
        return self.hex


def encode_id(text: str, encoding: IdEncoding) -> str:
    """Re-encode a stored (hex) id for output."""
    if encoding is IdEncoding.HEX:
        return text
    return Identifier.from_hex(text).encode(encoding)


def decode_id(text: str, encoding: IdEncoding) -> str:
    """Inverse of :func:`encode_id`: back to the stored hex form."""
    if encoding is IdEncoding.HEX:
        return text
    return Identifier.from_base64(text).hex
