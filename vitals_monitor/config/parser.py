"""
Recursive descent parser for the nginx-like configuration syntax.

Grammar:
    document    := (block | directive | include)*
    block       := IDENTIFIER [STRING] '{' (block | directive | include)* '}'
    directive   := IDENTIFIER value* ';'
    value       := STRING | NUMBER | DURATION | BOOLEAN | IDENTIFIER
    include     := 'include' STRING ';'
"""

import glob as glob_module
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .lexer import Lexer, Token, TokenType


class ParseError(Exception):
    """Exception raised for parser errors."""

    def __init__(self, message: str, token: Token | None = None):
        self.token = token
        if token:
            super().__init__(f"Line {token.line}, column {token.column}: {message}")
        else:
            super().__init__(message)


@dataclass
class Directive:
    """
    A directive with a name and values.

    Examples:
        show on;                 -> Directive("show", [True])
        update_interval 2s;      -> Directive("update_interval", [2000])
        path "/home";            -> Directive("path", ["/home"])
    """

    name: str
    values: list[Any] = field(default_factory=list)
    line: int = 0
    column: int = 0

    @property
    def value(self) -> Any:
        """First value or None."""
        return self.values[0] if self.values else None


@dataclass
class Block:
    """
    A block with a type, optional name, and contents.

    Examples:
        cpu { ... }             -> Block(type="cpu", name=None)
        storage "home" { ... }  -> Block(type="storage", name="home")
    """

    type: str
    name: str | None = None
    directives: list[Directive] = field(default_factory=list)
    blocks: list["Block"] = field(default_factory=list)
    line: int = 0
    column: int = 0

    def get_directive(self, name: str) -> Directive | None:
        """Last directive with the given name (later directives override earlier ones)."""
        for directive in reversed(self.directives):
            if directive.name == name:
                return directive
        return None

    def get_value(self, name: str, default: Any = None) -> Any:
        directive = self.get_directive(name)
        if directive is None or directive.value is None:
            return default
        return directive.value

    def get_block(self, type_name: str) -> "Block | None":
        for block in self.blocks:
            if block.type == type_name:
                return block
        return None


@dataclass
class ConfigDocument:
    """Root document: top-level blocks and directives."""

    blocks: list[Block] = field(default_factory=list)
    directives: list[Directive] = field(default_factory=list)
    filename: str = "<string>"

    def get_blocks(self, type_name: str) -> list[Block]:
        return [block for block in self.blocks if block.type == type_name]

    def get_block(self, type_name: str) -> Block | None:
        """Merged view of every top-level block of a type, later blocks winning."""
        matches = self.get_blocks(type_name)
        if not matches:
            return None
        if len(matches) == 1:
            return matches[0]

        merged = Block(type=type_name, name=matches[0].name, line=matches[0].line, column=matches[0].column)
        for block in matches:
            merged.directives.extend(block.directives)
            merged.blocks.extend(block.blocks)
        return merged

    def merge(self, other: "ConfigDocument") -> None:
        """Append another document (used for includes)."""
        self.blocks.extend(other.blocks)
        self.directives.extend(other.directives)


_VALUE_TOKENS = (
    TokenType.STRING,
    TokenType.NUMBER,
    TokenType.DURATION,
    TokenType.BOOLEAN,
    TokenType.IDENTIFIER,
)


class ConfigParser:
    """Recursive descent parser producing a ConfigDocument."""

    def __init__(
        self,
        source: str,
        filename: str = "<string>",
        base_path: Path | None = None,
        included_files: frozenset[str] = frozenset(),
    ):
        self.lexer = Lexer(source, filename)
        self.filename = filename
        self.base_path = base_path or Path.cwd()
        self.included_files = included_files
        self.current: Token = self.lexer.next_token()

    def _advance(self) -> Token:
        token = self.current
        self.current = self.lexer.next_token()
        return token

    def _check(self, token_type: TokenType) -> bool:
        return self.current.type is token_type

    def _expect(self, token_type: TokenType, message: str = "") -> Token:
        if not self._check(token_type):
            raise ParseError(
                message or f"Expected {token_type.name}, got {self.current.type.name}",
                self.current,
            )
        return self._advance()

    def parse(self) -> ConfigDocument:
        """Parse the entire document."""
        doc = ConfigDocument(filename=self.filename)
        while not self._check(TokenType.EOF):
            self._parse_item(doc.blocks, doc.directives, context="document")
        return doc

    def _parse_item(self, blocks: list[Block], directives: list[Directive], context: str) -> None:
        if self._check(TokenType.INCLUDE):
            included = self._parse_include()
            blocks.extend(included.blocks)
            directives.extend(included.directives)
        elif self._check(TokenType.IDENTIFIER):
            item = self._parse_block_or_directive()
            if isinstance(item, Block):
                blocks.append(item)
            else:
                directives.append(item)
        else:
            raise ParseError(
                f"Expected block, directive or include in {context}; got {self.current.type.name}",
                self.current,
            )

    def _parse_include(self) -> ConfigDocument:
        include_token = self._expect(TokenType.INCLUDE)
        path_token = self._expect(TokenType.STRING, "Expected file path after 'include'")
        self._expect(TokenType.SEMICOLON, "Expected ';' after include path")

        pattern = Path(str(path_token.value))
        if not pattern.is_absolute():
            pattern = self.base_path / pattern

        merged = ConfigDocument()
        for match in sorted(glob_module.glob(str(pattern))):
            path = Path(match)
            resolved = str(path.resolve())
            if resolved in self.included_files:
                raise ParseError(f"Circular include detected: {path}", include_token)

            parser = ConfigParser(
                source=path.read_text(),
                filename=str(path),
                base_path=path.parent,
                included_files=self.included_files | {resolved},
            )
            merged.merge(parser.parse())

        return merged

    def _parse_block_or_directive(self) -> Block | Directive:
        name_token = self._expect(TokenType.IDENTIFIER)
        name = str(name_token.value)

        values: list[Any] = []
        while self.current.type in _VALUE_TOKENS:
            values.append(self._advance().value)

        if self._check(TokenType.SEMICOLON):
            self._advance()
            return Directive(name=name, values=values, line=name_token.line, column=name_token.column)

        if not self._check(TokenType.LBRACE):
            raise ParseError(f"Expected '{{' or ';' after '{name}'", self.current)

        if len(values) > 1 or (values and not isinstance(values[0], str)):
            raise ParseError(f"Block '{name}' accepts at most one name before '{{'", self.current)

        self._advance()
        block = Block(
            type=name,
            name=values[0] if values else None,
            line=name_token.line,
            column=name_token.column,
        )
        while not self._check(TokenType.RBRACE):
            if self._check(TokenType.EOF):
                raise ParseError(f"Expected '}}' to close '{name}' block", self.current)
            self._parse_item(block.blocks, block.directives, context=f"'{name}' block")
        self._advance()
        return block


def parse_config(source: str, filename: str = "<string>", base_path: Path | None = None) -> ConfigDocument:
    """Parse a configuration string."""
    return ConfigParser(source, filename, base_path).parse()


def parse_config_file(path: str | Path) -> ConfigDocument:
    """Parse a configuration file; includes resolve relative to its directory."""
    path = Path(path)
    return ConfigParser(
        path.read_text(),
        str(path),
        path.parent,
        included_files=frozenset({str(path.resolve())}),
    ).parse()
