"""Tokenizer for the JSON text of glTF documents."""

from __future__ import annotations

import enum
import math
from collections.abc import Iterator
from dataclasses import dataclass, field

__all__ = ["TokenType", "Token", "Tokenizer", "TokenError", "tokenize"]


class TokenType(enum.Enum):
    NONE = enum.auto()
    NAME = enum.auto()
    INTEGER = enum.auto()
    FLOAT = enum.auto()
    TRUE = enum.auto()
    FALSE = enum.auto()
    STRING = enum.auto()
    COLON = enum.auto()
    COMMA = enum.auto()
    LBRACKET = enum.auto()
    RBRACKET = enum.auto()
    LBRACE = enum.auto()
    RBRACE = enum.auto()
    POUND = enum.auto()
    DPOUND = enum.auto()
    FORWARD_SLASH = enum.auto()
    ASTERISK = enum.auto()
    EOS = enum.auto()


class TokenError(ValueError):
    """Raised when the text cannot be split into tokens."""


_SKIPPED = "\n\r \t\v"
_INLINE_SPACE = " \t\v\f"
_PUNCTUATION = {
    ":": TokenType.COLON,
    ",": TokenType.COMMA,
    "{": TokenType.LBRACE,
    "}": TokenType.RBRACE,
    "[": TokenType.LBRACKET,
    "]": TokenType.RBRACKET,
    "/": TokenType.FORWARD_SLASH,
    "*": TokenType.ASTERISK,
}
_DIGIT_VALUES = {ch: i for i, ch in enumerate("0123456789")}
_DIGIT_VALUES.update({ch: 10 + i for i, ch in enumerate("abcdef")})
_DIGIT_VALUES.update({ch: 10 + i for i, ch in enumerate("ABCDEF")})
_NUMBER_START = set("+-0123456789")


def _is_letter(ch: str) -> bool:
    return ("a" <= ch <= "z") or ("A" <= ch <= "Z")


def _is_id_char(ch: str) -> bool:
    return ch == "_" or _is_letter(ch) or ("0" <= ch <= "9")


@dataclass(frozen=True)
class Token:
    """A slice of the source text with its type and numeric value."""

    type: TokenType
    start: int
    length: int
    value: int | float | None = None
    source: str = field(default="", repr=False, compare=False)

    def text(self) -> str:
        return self.source[self.start : self.start + self.length]

    def as_scalar(self) -> float:
        """The numeric value of an integer or float token as a float."""
        if self.type in (TokenType.INTEGER, TokenType.FLOAT):
            return float(self.value)
        raise TypeError(f"token {self.type.name} has no numeric value")

    def matches(self, name: str) -> bool:
        """True when the token's text is a prefix of ``name``."""
        return name.startswith(self.text())


class Tokenizer:
    """Produces tokens one at a time; ``token`` holds the current one."""

    def __init__(self, text: str) -> None:
        self.text = text
        self.token = Token(TokenType.NONE, 0, 0, source=text)

    def _char(self, index: int) -> str:
        return self.text[index] if index < len(self.text) else "\0"

    def _make(self, kind: TokenType, start: int, length: int, value=None) -> Token:
        return Token(kind, start, length, value, source=self.text)

    def next(self) -> Token:
        """Advance past the current token and return the next one."""
        previous = self.token
        pos = previous.start + previous.length
        if previous.type is TokenType.STRING:
            pos += 1
        while True:
            ch = self._char(pos)
            if ch == "\0":
                token = self._make(TokenType.EOS, pos, 0)
                break
            if ch in _SKIPPED:
                pos += 1
                continue
            if ch == "#":
                double = self._char(pos + 1) == "#"
                token = self._make(
                    TokenType.DPOUND if double else TokenType.POUND, pos, 2 if double else 1
                )
            elif ch in _NUMBER_START:
                token = self._number(pos)
            elif ch == "_" or _is_letter(ch):
                token = self._name(pos)
            elif ch == '"':
                token = self._string(pos)
            elif ch in _PUNCTUATION:
                token = self._make(_PUNCTUATION[ch], pos, 1)
            else:
                raise TokenError(f"unexpected character {ch!r} at offset {pos}")
            break
        self.token = token
        return token

    def __iter__(self) -> Iterator[Token]:
        while True:
            token = self.next()
            if token.type is TokenType.EOS:
                return
            yield token

    def _number(self, start: int) -> Token:
        char = self._char
        i = start
        ch = char(i)
        i += 1
        negative = ch == "-"
        if ch in "+-":
            ch = char(i)
            i += 1
        while ch in _INLINE_SPACE:
            ch = char(i)
            i += 1

        base = 10
        if ch == "0":
            ch = char(i)
            i += 1
            if ch in "xX":
                ch = char(i)
                i += 1
                base = 16
            elif ch in "bB":
                ch = char(i)
                i += 1
                base = 2
            elif "0" <= ch <= "9":
                base = 8

        value = 0
        while True:
            digit = _DIGIT_VALUES.get(ch, -1)
            if digit < 0 or digit >= base:
                break
            value = value * base + digit
            ch = char(i)
            i += 1
        i -= 1

        if char(i) != ".":
            return self._make(TokenType.INTEGER, start, i - start, -value if negative else value)

        result = float(value)
        i += 1
        pow10 = 0.1
        while 0 <= (digit := _DIGIT_VALUES.get(char(i), -1)) <= 9:
            result += digit * pow10
            pow10 *= 0.1
            i += 1

        if char(i) in "fF":
            i += 1

        if char(i) in "eE":
            i += 1
            divide = False
            if char(i) in "+-":
                divide = True
                i += 1
            exponent = 0
            while 0 <= (digit := _DIGIT_VALUES.get(char(i), -1)) <= 9:
                exponent = exponent * 10 + digit
                i += 1
            scale = 1.0
            for _ in range(exponent):
                scale *= 10.0
                if math.isinf(scale):
                    break
            result = result / scale if divide else result * scale

        return self._make(TokenType.FLOAT, start, i - start, -result if negative else result)

    def _name(self, start: int) -> Token:
        i = start
        while _is_id_char(self._char(i)):
            i += 1
        text = self.text[start:i]
        if "false".startswith(text):
            kind = TokenType.FALSE
        elif "true".startswith(text):
            kind = TokenType.TRUE
        else:
            kind = TokenType.NAME
        return self._make(kind, start, i - start)

    def _string(self, quote: int) -> Token:
        view = quote + 1
        i = view
        while True:
            if self._char(i) == "\\":
                i += 2
            ch = self._char(i)
            i += 1
            if ch == '"':
                break
            if i > len(self.text):
                raise TokenError(f"unterminated string starting at offset {quote}")
        while _is_id_char(self._char(i)):
            i += 1
        return self._make(TokenType.STRING, view, i - view - 1)


def tokenize(text: str) -> Iterator[Token]:
    """Yield every token of ``text`` up to, but not including, the end."""
    yield from Tokenizer(text)