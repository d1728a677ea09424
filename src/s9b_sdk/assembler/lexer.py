"""
S9B Assembly Language Lexer
===========================

This module converts S9B source text into a flat list of tokens with
source spans. Rules are tried in a fixed priority order at each position
and the first one that matches wins:

    1.  block comment          /* ... */
    2.  line comment           // ...
    3.  string                 "text" with \\" \\n and \\hh escapes
    4.  label                  name:
    5.  reference              :name
    6.  number                 123, 0x7F, 0b101, 'c
    7.  location               a, sum, mem, stack, pc, out, ...
    8.  scope markers          #push, #pop
    9.  movement               =
    10. condition              ?[!][|][abcCZ]+
    11. action                 !done, !pause, !halt, !pop
    12. register action        +a, -b, !c, <d, >a (or +NAME inside macros)
    13. array delimiters       [ ] ~
    14. macro name             NAME
    15. macro argument parens  ( )
    16. macro definition       #define NAME P1 P2 { body }

Whitespace and commas are separators and are skipped.

Macro definitions are collected here rather than in the expander: the
header and body of a ``#define`` never reach the token stream, they are
stored in the root MacroScope returned alongside the tokens.

Error Handling
--------------
Every problem the lexer finds is appended to an ErrorCollector and
lexing continues, so one pass reports every bad character, unknown
location and unterminated construct. Only a rule that fails to advance
the cursor raises InternalError.

Example
-------
>>> from s9b_sdk.assembler.lexer import Lexer
>>> result = Lexer("a = 5").tokenize()
>>> [token.type.name for token in result.tokens]
['LOCATION', 'MOVEMENT', 'NUMBER']
"""

from dataclasses import dataclass, field
from typing import Optional
import re

from s9b_sdk.errors import (
    ErrorCollector,
    InternalError,
    LexError,
    Position,
    Span,
    find_similar,
    suggestion_hint,
)
from s9b_sdk.assembler.tokens import Token, TokenType
from s9b_sdk.assembler.macros import Macro, MacroScope
from s9b_sdk.cpu import ACTIONS, REGISTERS, VALID_LOCATIONS


# =============================================================================
# Patterns
# =============================================================================

LABEL_PATTERN = re.compile(r"\w+:")
REFERENCE_PATTERN = re.compile(r":\w+")
NUMBER_PATTERN = re.compile(r"0x[0-9a-fA-F]+|0b[01]+|[0-9]+|'.")
LOCATION_PATTERN = re.compile(r"[a-z]+")
CONDITION_PATTERN = re.compile(r"\?!?\|?[abcCZ]+")
ACTION_PATTERN = re.compile(r"![a-z]+")
REGISTER_ACTION_PATTERN = re.compile(r"[!+\-<>](?:[abcd]|[A-Z_][A-Z0-9_]*)")
MACRO_PATTERN = re.compile(r"[A-Z0-9_]+")
STRING_ESCAPE_PATTERN = re.compile(r'\\(["n]|[0-9a-fA-F]{2})')

# Single-character tokens
SINGLE_CHAR_TOKENS = {
    "=": TokenType.MOVEMENT,
    "[": TokenType.ARRAY_START,
    "]": TokenType.ARRAY_END,
    "~": TokenType.ARRAY_LENGTH,
    "(": TokenType.MACRO_ARG_START,
    ")": TokenType.MACRO_ARG_END,
}

# Separators skipped between tokens
SEPARATORS = " \t\r\n,"


# =============================================================================
# Lexer Result
# =============================================================================

@dataclass
class LexResult:
    """
    Output of the lexer.

    Attributes:
        tokens: Tokens outside macro definitions, in source order
        macros: Root macro scope holding every #define
        errors: Collector the lexer reported into
    """
    tokens: list[Token]
    macros: MacroScope
    errors: ErrorCollector = field(repr=False)


# =============================================================================
# Lexer Implementation
# =============================================================================

class Lexer:
    """
    Tokenizes S9B assembly source code.

    Usage:
        lexer = Lexer(source_text, "program.s9b")
        result = lexer.tokenize()
        tokens, macros = result.tokens, result.macros

    Attributes:
        source: The source code being tokenized
        filename: Name of the source file (for error reporting)
        errors: Collector receiving every lexical diagnostic
    """

    def __init__(
        self,
        source: str,
        filename: str = "<input>",
        errors: Optional[ErrorCollector] = None,
    ):
        """
        Initialize the lexer with source code.

        Args:
            source: The assembly source code to tokenize
            filename: Name of the source file (for error messages)
            errors: Collector to report into (a fresh one if omitted)
        """
        self.source = source
        self.filename = filename
        self.errors = errors if errors is not None else ErrorCollector()

        # Current position in source
        self._pos = 0
        self._line = 1
        self._column = 1

        # Start of the token being scanned
        self._start = Position(1, 1)

        # Macro definition state
        self._root_scope = MacroScope()
        self._in_define_header = False
        self._in_define_body = False
        self._define_start: Optional[Span] = None
        self._define_name = ""
        self._define_parameters: list[str] = []
        self._define_body: list[Token] = []

        self._tokens: list[Token] = []

    def tokenize(self) -> LexResult:
        """
        Tokenize the whole source.

        Returns:
            LexResult with the token list and the root macro scope

        Raises:
            InternalError: If a rule matched without consuming input
        """
        while not self._at_end():
            position = self._pos
            self._start = Position(self._line, self._column)

            if self._peek() in SEPARATORS:
                self._advance()
            else:
                self._scan_token()

            if self._pos == position:
                raise InternalError(
                    f"lexer made no progress at {self.filename}:{self._line}:{self._column}"
                )

        if self._in_define_header:
            self._report("unterminated #define header", self._define_start)
        if self._in_define_body:
            self._report("unterminated #define body", self._define_start)

        return LexResult(self._tokens, self._root_scope, self.errors)

    # =========================================================================
    # Character Access Methods
    # =========================================================================

    def _at_end(self) -> bool:
        """Check if we've reached the end of source."""
        return self._pos >= len(self.source)

    def _peek(self, offset: int = 0) -> str:
        """
        Look at character at current position + offset without advancing.

        Returns empty string if past end of source.
        """
        pos = self._pos + offset
        if pos >= len(self.source):
            return ""
        return self.source[pos]

    def _advance(self, count: int = 1) -> str:
        """
        Consume ``count`` characters and return them.

        Updates line and column tracking.
        """
        text = self.source[self._pos:self._pos + count]
        for char in text:
            if char == "\n":
                self._line += 1
                self._column = 1
            else:
                self._column += 1
        self._pos += len(text)
        return text

    def _starts_with(self, prefix: str) -> bool:
        return self.source.startswith(prefix, self._pos)

    def _match_pattern(self, pattern: re.Pattern) -> Optional[str]:
        """Consume and return the text matched by ``pattern`` here, if any."""
        match = pattern.match(self.source, self._pos)
        if match is None or not match.group(0):
            return None
        return self._advance(len(match.group(0)))

    # =========================================================================
    # Token Creation
    # =========================================================================

    def _span(self) -> Span:
        """Span from the start of the current token to the cursor."""
        return Span(
            self._start,
            Position(self._line, self._column),
            self.source,
            self.filename,
        )

    def _report(self, message: str, span: Optional[Span] = None, hint: Optional[str] = None) -> None:
        self.errors.add(LexError(message, span or self._span(), hint))

    def _push(self, token_type: TokenType, text: str) -> None:
        """
        Emit a token, routing it into a macro definition when inside one.

        Inside a #define header only macro names are allowed: the first is
        the macro name, the rest are its parameters.
        """
        if self._in_define_header:
            if token_type is not TokenType.MACRO:
                self._report("#define header can only contain the macro name and parameters")
            elif not self._define_name:
                self._define_name = text
            else:
                self._define_parameters.append(text)
            return

        token = Token(token_type, text, self._span())
        if self._in_define_body:
            self._define_body.append(token)
        else:
            self._tokens.append(token)

    # =========================================================================
    # Token Scanning
    # =========================================================================

    def _scan_token(self) -> None:
        """Scan the next token, trying each rule in priority order."""
        char = self._peek()

        # Comments
        if self._starts_with("/*"):
            self._scan_block_comment()
            return
        if self._starts_with("//"):
            while not self._at_end() and self._peek() != "\n":
                self._advance()
            return

        # String literal
        if char == '"':
            self._scan_string()
            return

        # Macro definition braces
        if char == "{" and self._in_define_header:
            self._advance()
            self._in_define_header = False
            self._in_define_body = True
            if not self._define_name:
                self._report("#define has no macro name", self._define_start)
            return
        if char == "}" and self._in_define_body:
            self._advance()
            self._finish_define()
            return

        if (text := self._match_pattern(LABEL_PATTERN)) is not None:
            self._push(TokenType.LABEL, text)
            return

        if (text := self._match_pattern(REFERENCE_PATTERN)) is not None:
            self._push(TokenType.REFERENCE, text)
            return

        if (text := self._match_pattern(NUMBER_PATTERN)) is not None:
            self._push(TokenType.NUMBER, text)
            return

        if (text := self._match_pattern(LOCATION_PATTERN)) is not None:
            if text in VALID_LOCATIONS or self._in_define_header:
                self._push(TokenType.LOCATION, text)
            else:
                self._report(
                    f"unknown location '{text}'",
                    hint=suggestion_hint(find_similar(text, VALID_LOCATIONS)),
                )
            return

        if self._starts_with("#push"):
            self._push(TokenType.SCOPE_PUSH, self._advance(5))
            return
        if self._starts_with("#pop"):
            self._push(TokenType.SCOPE_POP, self._advance(4))
            return

        if char == "=":
            self._push(TokenType.MOVEMENT, self._advance())
            return

        if (text := self._match_pattern(CONDITION_PATTERN)) is not None:
            self._push(TokenType.CONDITION, text)
            return

        if self._scan_action():
            return

        if (text := self._match_pattern(REGISTER_ACTION_PATTERN)) is not None:
            self._push(TokenType.REGISTER_ACTION, text)
            return

        if char in "[]~":
            self._push(SINGLE_CHAR_TOKENS[char], self._advance())
            return

        if (text := self._match_pattern(MACRO_PATTERN)) is not None:
            self._push(TokenType.MACRO, text)
            return

        if char in "()":
            self._push(SINGLE_CHAR_TOKENS[char], self._advance())
            return

        if self._starts_with("#define"):
            self._advance(len("#define"))
            self._start_define()
            return

        # Unknown character
        self._advance()
        self._report(f"unexpected character {char!r}")

    def _scan_block_comment(self) -> None:
        """Skip a /* ... */ comment; report it if it runs off the end."""
        self._advance(2)
        while not self._at_end():
            if self._starts_with("*/"):
                self._advance(2)
                return
            self._advance()
        self._report("unterminated block comment")

    def _scan_string(self) -> None:
        """
        Scan a double-quoted string literal.

        Escapes: \\" (quote), \\n (newline) and a backslash followed by two
        hex digits. Any other backslash is kept literally. The token text is
        the decoded value followed by a NUL terminator.
        """
        self._advance()  # consume opening "

        chars = []
        while not self._at_end():
            if (escape := self._match_pattern(STRING_ESCAPE_PATTERN)) is not None:
                code = escape[1:]
                if code == '"':
                    chars.append('"')
                elif code == "n":
                    chars.append("\n")
                else:
                    chars.append(chr(int(code, 16)))
            elif self._peek() == '"':
                self._advance()  # consume closing "
                self._push(TokenType.STRING, "".join(chars) + "\0")
                return
            else:
                chars.append(self._advance())

        self._report("unterminated string")

    def _scan_action(self) -> bool:
        """
        Scan ``!name`` as a control action.

        A name that is not an action but reads as a register action (``!a``
        inverts register a) is left for the register-action rule.
        """
        match = ACTION_PATTERN.match(self.source, self._pos)
        if match is None:
            return False

        name = match.group(0)[1:]
        if name not in ACTIONS:
            if len(name) == 1 and name in REGISTERS:
                return False
            self._advance(len(match.group(0)))
            self._report(
                f"unknown action '!{name}'",
                hint=suggestion_hint(find_similar(name, ACTIONS)),
            )
            return True

        self._push(TokenType.ACTION, self._advance(len(match.group(0))))
        return True

    # =========================================================================
    # Macro Definitions
    # =========================================================================

    def _start_define(self) -> None:
        if self._in_define_header or self._in_define_body:
            self._report("#define is not allowed inside a macro definition")
            return
        self._in_define_header = True
        self._define_start = self._span()
        self._define_name = ""
        self._define_parameters = []
        self._define_body = []

    def _finish_define(self) -> None:
        self._in_define_body = False
        if self._define_name:
            self._root_scope.define(Macro(
                name=self._define_name,
                parameters=tuple(self._define_parameters),
                body=tuple(self._define_body),
                span=self._define_start,
            ))
        self._define_name = ""
        self._define_parameters = []
        self._define_body = []


def tokenize(source: str, filename: str = "<input>", errors: Optional[ErrorCollector] = None) -> LexResult:
    """Convenience function to tokenize source text."""
    return Lexer(source, filename, errors).tokenize()


