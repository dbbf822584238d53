"""
Lexer (tokenizer) for the nginx-like configuration syntax.

Supports:
- Identifiers (block types, directive names, bare words)
- Quoted strings with escape sequences
- Numbers and durations (500ms, 2s, 1m, 1h); durations become milliseconds
- Braces and semicolons
- Single-line (#) and multi-line (/* */) comments
"""

from collections.abc import Iterator
from dataclasses import dataclass
from enum import Enum, auto


class TokenType(Enum):
    """Token types for the configuration syntax."""

    IDENTIFIER = auto()
    STRING = auto()
    NUMBER = auto()
    DURATION = auto()  # value in milliseconds
    BOOLEAN = auto()

    LBRACE = auto()
    RBRACE = auto()
    SEMICOLON = auto()

    INCLUDE = auto()
    EOF = auto()


@dataclass
class Token:
    """A single token from the lexer."""

    type: TokenType
    value: str | int | float | bool
    line: int
    column: int
    raw: str = ""

    def __repr__(self) -> str:
        return f"Token({self.type.name}, {self.value!r}, {self.line}:{self.column})"


class LexerError(Exception):
    """Exception raised for lexer errors."""

    def __init__(self, message: str, line: int, column: int):
        self.line = line
        self.column = column
        super().__init__(f"Line {line}, column {column}: {message}")


_PUNCTUATION = {
    "{": TokenType.LBRACE,
    "}": TokenType.RBRACE,
    ";": TokenType.SEMICOLON,
}

_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "\\": "\\"}


class Lexer:
    """
    Tokenizer for the configuration syntax.

    Example:
        defaults {
            update_interval 2s;
        }

        storage {
            path "/home";
            update_interval 10s;
        }
    """

    BOOLEAN_KEYWORDS = {"on": True, "off": False, "true": True, "false": False, "yes": True, "no": False}

    # Duration units in milliseconds
    DURATION_UNITS = {
        "ms": 1,
        "s": 1000,
        "m": 60_000,
        "h": 3_600_000,
    }

    def __init__(self, source: str, filename: str = "<string>"):
        self.source = source
        self.filename = filename
        self.pos = 0
        self.line = 1
        self.column = 1

    def _current(self) -> str:
        return self.source[self.pos] if self.pos < len(self.source) else ""

    def _peek(self) -> str:
        pos = self.pos + 1
        return self.source[pos] if pos < len(self.source) else ""

    def _advance(self) -> str:
        char = self._current()
        if not char:
            return ""
        self.pos += 1
        if char == "\n":
            self.line += 1
            self.column = 1
        else:
            self.column += 1
        return char

    def _skip_ignored(self) -> None:
        """Skip whitespace and comments."""
        while True:
            char = self._current()
            if char and char in " \t\r\n":
                self._advance()
            elif char == "#":
                while self._current() and self._current() != "\n":
                    self._advance()
            elif char == "/" and self._peek() == "*":
                line, column = self.line, self.column
                self._advance()
                self._advance()
                while not (self._current() == "*" and self._peek() == "/"):
                    if not self._current():
                        raise LexerError("Unterminated multi-line comment", line, column)
                    self._advance()
                self._advance()
                self._advance()
            else:
                return

    def _read_string(self) -> Token:
        line, column = self.line, self.column
        start = self.pos
        quote = self._advance()
        chars: list[str] = []

        while True:
            char = self._current()
            if not char or char == "\n":
                raise LexerError("Unterminated string literal", line, column)
            self._advance()
            if char == quote:
                break
            if char == "\\":
                escaped = self._advance()
                if not escaped:
                    raise LexerError("Unexpected end of string", self.line, self.column)
                chars.append(_ESCAPES.get(escaped, escaped))
            else:
                chars.append(char)

        return Token(TokenType.STRING, "".join(chars), line, column, self.source[start : self.pos])

    def _read_number(self) -> Token:
        line, column = self.line, self.column
        start = self.pos

        while self._current().isdigit() or (self._current() == "." and "." not in self.source[start : self.pos]):
            self._advance()
        number_end = self.pos
        while self._current().isalpha():
            self._advance()

        raw = self.source[start : self.pos]
        digits = self.source[start:number_end]
        unit = self.source[number_end : self.pos].lower()

        try:
            number = float(digits) if "." in digits else int(digits)
        except ValueError:
            raise LexerError(f"Invalid number: {digits}", line, column) from None

        if not unit:
            return Token(TokenType.NUMBER, number, line, column, raw)

        if unit not in self.DURATION_UNITS:
            raise LexerError(f"Unknown duration unit: {unit}", line, column)

        millis = number * self.DURATION_UNITS[unit]
        if isinstance(millis, float) and millis.is_integer():
            millis = int(millis)
        return Token(TokenType.DURATION, millis, line, column, raw)

    def _read_word(self) -> Token:
        line, column = self.line, self.column
        start = self.pos
        while self._current() and (self._current().isalnum() or self._current() in "_-"):
            self._advance()

        raw = self.source[start : self.pos]
        lowered = raw.lower()
        if lowered in self.BOOLEAN_KEYWORDS:
            return Token(TokenType.BOOLEAN, self.BOOLEAN_KEYWORDS[lowered], line, column, raw)
        if lowered == "include":
            return Token(TokenType.INCLUDE, raw, line, column, raw)
        return Token(TokenType.IDENTIFIER, raw, line, column, raw)

    def next_token(self) -> Token:
        """Get the next token from the source."""
        self._skip_ignored()

        char = self._current()
        if not char:
            return Token(TokenType.EOF, "", self.line, self.column)

        if char in _PUNCTUATION:
            line, column = self.line, self.column
            self._advance()
            return Token(_PUNCTUATION[char], char, line, column, char)
        if char in "\"'":
            return self._read_string()
        if char.isdigit():
            return self._read_number()
        if char.isalpha() or char == "_":
            return self._read_word()

        raise LexerError(f"Unexpected character: {char!r}", self.line, self.column)

    def __iter__(self) -> Iterator[Token]:
        while True:
            token = self.next_token()
            yield token
            if token.type is TokenType.EOF:
                return


def tokenize(source: str, filename: str = "<string>") -> list[Token]:
    """Tokenize a whole source string."""
    return list(Lexer(source, filename))
