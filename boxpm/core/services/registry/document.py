"""
Registry document parser.

NUR index and module documents are a constrained subset of JSON:

    document := object
    object   := '{' [ member (',' member)* ] '}'
    member   := string ':' value
    value    := string | object | array | number | 'true' | 'false' | 'null'
    array    := '[' [ scalar (',' scalar)* ] ']'

Arrays hold scalars only; an object inside an array is rejected. Each
object is parsed over exactly its own brace span, so a field of one
version entry can never be attributed to its sibling.

Objects come back as ``dict`` in document order. Numbers, booleans and
null come back as their Python values.
"""

from __future__ import annotations

from typing import Any

MAX_DEPTH = 16

_ESCAPES = {
    '"': '"',
    "\\": "\\",
    "/": "/",
    "b": "\b",
    "f": "\f",
    "n": "\n",
    "r": "\r",
    "t": "\t",
}

_WHITESPACE = " \t\r\n"
_NUMBER_CHARS = "+-0123456789.eE"
_HEX_DIGITS = "0123456789abcdefABCDEF"


class DocumentError(ValueError):
    """Malformed registry document."""

    def __init__(self, message: str, position: int):
        super().__init__(f"{message} at offset {position}")
        self.position = position


class _Parser:
    def __init__(self, text: str):
        self.text = text
        self.pos = 0

    # ── Lexing helpers ──────────────────────────────────────────

    def _skip_ws(self) -> None:
        while self.pos < len(self.text) and self.text[self.pos] in _WHITESPACE:
            self.pos += 1

    def _peek(self) -> str:
        self._skip_ws()
        return self.text[self.pos] if self.pos < len(self.text) else ""

    def _expect(self, char: str) -> None:
        if self._peek() != char:
            found = self.text[self.pos] if self.pos < len(self.text) else "end of input"
            raise DocumentError(f"Expected '{char}', found {found!r}", self.pos)
        self.pos += 1

    # ── Grammar ─────────────────────────────────────────────────

    def document(self) -> dict[str, Any]:
        if self._peek() != "{":
            raise DocumentError("Document must be an object", self.pos)
        result = self.object(depth=1)
        if self._peek():
            raise DocumentError("Trailing content after document", self.pos)
        return result

    def object(self, depth: int) -> dict[str, Any]:
        if depth > MAX_DEPTH:
            raise DocumentError("Objects nested too deeply", self.pos)
        self._expect("{")
        members: dict[str, Any] = {}
        if self._peek() == "}":
            self.pos += 1
            return members
        while True:
            if self._peek() != '"':
                raise DocumentError("Expected a quoted key", self.pos)
            key = self.string()
            self._expect(":")
            members[key] = self.value(depth)
            nxt = self._peek()
            if nxt == ",":
                self.pos += 1
                continue
            if nxt == "}":
                self.pos += 1
                return members
            raise DocumentError("Expected ',' or '}'", self.pos)

    def array(self) -> list[Any]:
        self._expect("[")
        items: list[Any] = []
        if self._peek() == "]":
            self.pos += 1
            return items
        while True:
            if self._peek() in "{[":
                raise DocumentError("Arrays may only contain scalars", self.pos)
            items.append(self.scalar())
            nxt = self._peek()
            if nxt == ",":
                self.pos += 1
                continue
            if nxt == "]":
                self.pos += 1
                return items
            raise DocumentError("Expected ',' or ']'", self.pos)

    def value(self, depth: int) -> Any:
        char = self._peek()
        if char == "{":
            return self.object(depth + 1)
        if char == "[":
            return self.array()
        return self.scalar()

    def scalar(self) -> Any:
        char = self._peek()
        if char == '"':
            return self.string()
        for literal, result in (("true", True), ("false", False), ("null", None)):
            if self.text.startswith(literal, self.pos):
                self.pos += len(literal)
                return result
        if char and char in _NUMBER_CHARS:
            return self.number()
        if not char:
            raise DocumentError("Unexpected end of input", self.pos)
        raise DocumentError(f"Unexpected character {char!r}", self.pos)

    def number(self) -> int | float:
        start = self.pos
        while self.pos < len(self.text) and self.text[self.pos] in _NUMBER_CHARS:
            self.pos += 1
        token = self.text[start:self.pos]
        try:
            if any(c in token for c in ".eE"):
                return float(token)
            return int(token)
        except ValueError:
            raise DocumentError(f"Invalid number {token!r}", start) from None

    def string(self) -> str:
        start = self.pos
        self._expect('"')
        chunks: list[str] = []
        while True:
            if self.pos >= len(self.text):
                raise DocumentError("Unterminated string", start)
            char = self.text[self.pos]
            if char == '"':
                self.pos += 1
                return "".join(chunks)
            if char == "\\":
                chunks.append(self._escape())
                continue
            if char in "\r\n":
                raise DocumentError("Newline inside string", self.pos)
            chunks.append(char)
            self.pos += 1

    def _escape(self) -> str:
        esc_pos = self.pos
        self.pos += 1
        if self.pos >= len(self.text):
            raise DocumentError("Unterminated escape", esc_pos)
        code = self.text[self.pos]
        self.pos += 1
        if code in _ESCAPES:
            return _ESCAPES[code]
        if code == "u":
            return self._unicode_escape(esc_pos)
        raise DocumentError(f"Unknown escape '\\{code}'", esc_pos)

    def _hex4(self, esc_pos: int) -> int:
        hex_digits = self.text[self.pos:self.pos + 4]
        if len(hex_digits) != 4:
            raise DocumentError("Truncated \\u escape", esc_pos)
        if any(c not in _HEX_DIGITS for c in hex_digits):
            raise DocumentError(f"Invalid \\u escape {hex_digits!r}", esc_pos)
        self.pos += 4
        return int(hex_digits, 16)

    def _unicode_escape(self, esc_pos: int) -> str:
        codepoint = self._hex4(esc_pos)
        if 0xDC00 <= codepoint <= 0xDFFF:
            raise DocumentError("Unpaired low surrogate", esc_pos)
        if 0xD800 <= codepoint <= 0xDBFF:
            # A high surrogate needs a following \u low surrogate
            if not self.text.startswith("\\u", self.pos):
                raise DocumentError("Unpaired high surrogate", esc_pos)
            self.pos += 2
            low = self._hex4(esc_pos)
            if not 0xDC00 <= low <= 0xDFFF:
                raise DocumentError("Unpaired high surrogate", esc_pos)
            codepoint = 0x10000 + ((codepoint - 0xD800) << 10) + (low - 0xDC00)
        return chr(codepoint)


def parse_document(text: str) -> dict[str, Any]:
    """Parse a registry document into nested dicts.

    Raises:
        DocumentError: If ``text`` falls outside the supported grammar.
    """
    return _Parser(text).document()


def decode_document(data: bytes) -> dict[str, Any]:
    """Decode fetched bytes (UTF-8, optional BOM) and parse them."""
    try:
        text = data.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise DocumentError(f"Document is not UTF-8: {e.reason}", e.start) from None
    return _Parser(text).document()
