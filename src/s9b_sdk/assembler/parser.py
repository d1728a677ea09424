"""
S9B Assembly Language Parser
============================

This module turns the expanded token stream into a list of statements and
resolves label references across nested label scope blocks.

Statement Types
---------------
1. **Movement**: move a value from a source to a destination location
   ```
   a = b            // register to register
   stack 4 = sum    // indexed destination, literal 4 follows the opcode
   pc = :loop       // bare literal, implicitly sourced from "$"
   ```

2. **Condition**: skip the next instruction unless the test holds
   ```
   ?b               // b is zero
   ?!|ab            // neither a nor b is zero  (inverted OR)
   ```

3. **Action**: control action (``!done``, ``!pause``, ``!halt``, ``!pop``)

4. **RegisterAction**: ``+a`` ``-b`` ``!c`` ``<d`` ``>a``

5. **Constant**: named data, a label followed directly by a string or array
   ```
   message: "hello" ~8
   table: [1 2 :message]
   ```

Statements live in an arena (``Program.statements``) and are referred to
by their index, their ``id``. Labels map namespace keys to ids.

Label Scopes
------------
``#push`` opens a nested label namespace and ``#pop`` closes it. Each
scope is identified by the path of scope ids from the root, so a label
``loop`` declared in the second block opened at the root is stored as
``0.2!loop``. A reference remembers the path it was written in and is
looked up there first, then in each enclosing scope in turn.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union

from s9b_sdk.errors import (
    ErrorCollector,
    LinkError,
    ParseError,
    Span,
    UndefinedLabelError,
    find_similar,
)
from s9b_sdk.assembler.tokens import Token, TokenType
from s9b_sdk.cpu import (
    DESTINATION_LOCATIONS,
    IMMEDIATE_SUFFIX,
    SOURCE_LOCATIONS,
)


# Separator between the scope path and the label name in label keys
SCOPE_SEPARATOR = "."
LABEL_SEPARATOR = "!"

# Default for the deepest allowed nesting of array literals
DEFAULT_MAX_LITERAL_DEPTH = 32

# Tokens that begin a literal
LITERAL_STARTS = (TokenType.NUMBER, TokenType.REFERENCE, TokenType.STRING, TokenType.ARRAY_START)


def label_key(prefix, name: str) -> str:
    """Namespace key for a label, such as ``0.2!loop``."""
    return SCOPE_SEPARATOR.join(str(part) for part in prefix) + LABEL_SEPARATOR + name


def display_label(key: str) -> str:
    """Human-readable form of a label key: root labels lose their prefix."""
    prefix, _, name = key.partition(LABEL_SEPARATOR)
    if prefix == "0":
        return name
    return key


# =============================================================================
# Literals
# =============================================================================

class ResolutionState(Enum):
    """Progress of a reference literal through symbol resolution."""
    UNRESOLVED = "unresolved"
    RESOLVED = "resolved"
    FAILED = "failed"


@dataclass
class NumberLiteral:
    """A numeric literal."""
    value: int
    span: Span


@dataclass
class TextLiteral:
    """A string literal, NUL-terminated and padded to any explicit length."""
    value: str
    span: Span


@dataclass
class ArrayLiteral:
    """An array of literals, padded with zeros to any explicit length."""
    elements: list["Literal"]
    span: Span


@dataclass
class ReferenceLiteral:
    """
    A reference to a labelled statement.

    Attributes:
        label: Referenced label name (without the leading colon)
        prefix: Scope path still to search; shrinks during resolution
        span: Source range of the reference
        state: Resolution progress
        target: Statement id once resolved
    """
    label: str
    prefix: list[int]
    span: Span
    state: ResolutionState = ResolutionState.UNRESOLVED
    target: Optional[int] = None

    @property
    def key(self) -> str:
        """Label key the next lookup will try."""
        return label_key(self.prefix, self.label)

    def resolve(self, statement_id: int) -> None:
        self.state = ResolutionState.RESOLVED
        self.target = statement_id

    def fail(self) -> None:
        self.state = ResolutionState.FAILED


Literal = Union[NumberLiteral, TextLiteral, ArrayLiteral, ReferenceLiteral]


# =============================================================================
# Statement Data Classes
# =============================================================================

@dataclass(kw_only=True)
class Statement:
    """
    Base class for all parsed statements.

    Attributes:
        id: Index of the statement in the program arena
        span: Source range for error reporting
        label: Label key attached to the statement, if any
    """
    id: int = -1
    span: Span
    label: Optional[str] = None


@dataclass(kw_only=True)
class Movement(Statement):
    """
    Movement statement.

    Location names carry a ``$`` suffix when a literal index follows them.
    A bare literal source uses the ``$`` location itself.
    """
    destination: str
    source: str
    destination_literal: Optional[Literal] = None
    source_literal: Optional[Literal] = None


@dataclass(kw_only=True)
class Condition(Statement):
    """Condition statement over targets Z, C, a, b, c."""
    invert: bool = False
    any_of: bool = False
    targets: tuple[str, ...] = ()


@dataclass(kw_only=True)
class Action(Statement):
    """Control action: done, pause, halt or pop."""
    name: str


@dataclass(kw_only=True)
class RegisterAction(Statement):
    """Register action such as ``+a``."""
    op: str
    register: str


@dataclass(kw_only=True)
class Constant(Statement):
    """Named data. Emits no instruction; its data is placed when referenced."""
    literal: Literal


@dataclass
class Program:
    """
    Parser output.

    Attributes:
        statements: Statement arena, ``statements[i].id == i``
        labels: Label key to statement id
        references: Every reference literal, in source order
    """
    statements: list[Statement] = field(default_factory=list)
    labels: dict[str, int] = field(default_factory=dict)
    references: list[ReferenceLiteral] = field(default_factory=list)

    def executable(self) -> list[Statement]:
        """Statements that emit code (everything but constants)."""
        return [stmt for stmt in self.statements if not isinstance(stmt, Constant)]

    def lookup(self, name: str) -> Optional[Statement]:
        """Find a statement by label key or by root label name."""
        key = name if LABEL_SEPARATOR in name else label_key([0], name)
        if key in self.labels:
            return self.statements[self.labels[key]]
        return None


# =============================================================================
# Parser Implementation
# =============================================================================

@dataclass
class _ScopeLevel:
    id: int
    last_child: int = 0


class Parser:
    """
    Parses expanded S9B tokens into a Program.

    Usage:
        parser = Parser(tokens, errors)
        program = parser.parse()

    Errors are reported into the collector; parsing continues after each
    one so every problem in the source is surfaced.
    """

    def __init__(
        self,
        tokens: list[Token],
        errors: Optional[ErrorCollector] = None,
        max_literal_depth: int = DEFAULT_MAX_LITERAL_DEPTH,
    ):
        """
        Initialize the parser.

        Args:
            tokens: Expanded tokens (no macro tokens left)
            errors: Collector to report into (a fresh one if omitted)
            max_literal_depth: Deepest allowed nesting of array literals
        """
        self._tokens = tokens
        self.errors = errors if errors is not None else ErrorCollector()
        self._max_depth = max_literal_depth
        self._pos = 0

        self._program = Program()
        self._scopes: list[_ScopeLevel] = [_ScopeLevel(0)]
        self._pending_label: Optional[tuple[str, Token]] = None

    def parse(self) -> Program:
        """
        Parse all tokens and resolve references.

        Returns:
            The Program with every reference resolved or marked failed
        """
        while not self._at_end():
            self._parse_statement()

        if self._pending_label is not None:
            key, token = self._pending_label
            self._error(f"label '{display_label(key)}' is not followed by a statement", token.span)
        if len(self._scopes) > 1:
            self._error("unclosed scope block, missing #pop", self._tokens[-1].span)

        resolve_references(self._program, self.errors)
        return self._program

    # =========================================================================
    # Token Navigation
    # =========================================================================

    def _at_end(self) -> bool:
        return self._pos >= len(self._tokens)

    def _current(self) -> Optional[Token]:
        if self._at_end():
            return None
        return self._tokens[self._pos]

    def _advance(self) -> Token:
        token = self._tokens[self._pos]
        self._pos += 1
        return token

    def _check(self, *types: TokenType) -> bool:
        token = self._current()
        return token is not None and token.type in types

    def _match(self, *types: TokenType) -> Optional[Token]:
        if self._check(*types):
            return self._advance()
        return None

    def _previous(self) -> Token:
        return self._tokens[self._pos - 1]

    def _error(self, message: str, span: Optional[Span], hint: Optional[str] = None) -> None:
        self.errors.add(ParseError(message, span, hint))

    def _expected(self, what: str) -> None:
        """Report a missing or unexpected token where ``what`` was required."""
        token = self._current()
        if token is not None:
            self._error(f"unexpected token '{token.text}', expected {what}", token.span)
        else:
            self._error(f"missing {what}", self._previous().span)

    # =========================================================================
    # Scopes and Labels
    # =========================================================================

    def _prefix(self) -> list[int]:
        """Scope path of the current label namespace."""
        return [level.id for level in self._scopes]

    def _push_scope(self) -> None:
        parent = self._scopes[-1]
        parent.last_child += 1
        self._scopes.append(_ScopeLevel(parent.last_child))

    def _pop_scope(self, token: Token) -> None:
        if len(self._scopes) > 1:
            self._scopes.pop()
        else:
            self._error("unpaired #pop", token.span)

    def _push_statement(self, statement: Statement) -> Statement:
        """Add a statement to the arena and attach any pending label."""
        statement.id = len(self._program.statements)
        self._program.statements.append(statement)

        if self._pending_label is not None:
            key, token = self._pending_label
            self._pending_label = None
            if key in self._program.labels:
                self._error(f"duplicate label '{display_label(key)}'", token.span)
            else:
                statement.label = key
                self._program.labels[key] = statement.id

        return statement

    # =========================================================================
    # Statements
    # =========================================================================

    def _parse_statement(self) -> None:
        token = self._advance()

        if token.type is TokenType.REGISTER_ACTION:
            self._push_statement(RegisterAction(
                op=token.text[0],
                register=token.text[1],
                span=token.span,
            ))
        elif token.type is TokenType.CONDITION:
            self._parse_condition(token)
        elif token.type is TokenType.ACTION:
            self._push_statement(Action(name=token.text[1:], span=token.span))
        elif token.type is TokenType.LABEL:
            if self._pending_label is not None:
                self._error("cannot label a label", self._pending_label[1].span)
            self._pending_label = (label_key(self._prefix(), token.text[:-1]), token)
        elif token.type is TokenType.LOCATION:
            self._parse_movement(token)
        elif token.type is TokenType.SCOPE_PUSH:
            self._push_scope()
        elif token.type is TokenType.SCOPE_POP:
            self._pop_scope(token)
        elif self._pending_label is not None and token.type in (TokenType.STRING, TokenType.ARRAY_START):
            self._pos -= 1
            literal = self._parse_literal()
            if literal is not None:
                self._push_statement(Constant(literal=literal, span=literal.span))
        else:
            self._error(f"unexpected token '{token.text}'", token.span)

    def _parse_condition(self, token: Token) -> None:
        invert = False
        any_of = False
        targets = []
        for char in token.text[1:]:
            if char == "!":
                invert = True
            elif char == "|":
                any_of = True
            elif char not in targets:
                targets.append(char)

        self._push_statement(Condition(
            invert=invert,
            any_of=any_of,
            targets=tuple(targets),
            span=token.span,
        ))

    def _parse_movement(self, destination_token: Token) -> None:
        """
        Parse ``destination [literal] = source [literal]``.

        The destination token has already been consumed.
        """
        destination = destination_token.text
        destination_literal = self._parse_literal()
        if destination_literal is None and not self._check(TokenType.MOVEMENT):
            self._expected("'=', literal or reference")
            return
        if destination_literal is not None:
            destination += IMMEDIATE_SUFFIX

        if not self._match(TokenType.MOVEMENT):
            self._expected("'='")
            return

        source_literal: Optional[Literal]
        if (source_token := self._match(TokenType.LOCATION)) is not None:
            source = source_token.text
            source_literal = self._parse_literal()
            if source_literal is not None:
                source += IMMEDIATE_SUFFIX
        else:
            source_token = self._current()
            source_literal = self._parse_literal()
            if source_literal is None:
                self._expected("location or literal")
                return
            source = IMMEDIATE_SUFFIX

        valid = self._check_location(destination, DESTINATION_LOCATIONS, "destination", destination_token)
        valid = self._check_location(source, SOURCE_LOCATIONS, "source", source_token) and valid
        if not valid:
            return

        self._push_statement(Movement(
            destination=destination,
            source=source,
            destination_literal=destination_literal,
            source_literal=source_literal,
            span=destination_token.span.to(self._previous().span),
        ))

    def _check_location(self, name: str, table: dict[str, int], role: str, token: Token) -> bool:
        """Validate a (possibly ``$``-suffixed) location name against its table."""
        if name in table:
            return True

        base = name.rstrip(IMMEDIATE_SUFFIX)
        if name.endswith(IMMEDIATE_SUFFIX) and base in table:
            self._error(f"{role} location '{base}' does not take a literal index", token.span)
        elif base + IMMEDIATE_SUFFIX in table:
            self._error(f"{role} location '{base}' requires a literal index", token.span)
        else:
            self._error(f"invalid {role} location '{base}'", token.span)
        return False

    # =========================================================================
    # Literals
    # =========================================================================

    def _parse_number(self, token: Token) -> int:
        """Value of a NUMBER token."""
        text = token.text
        if text.startswith("'"):
            return ord(text[1])
        if text.startswith("0x"):
            return int(text[2:], 16)
        if text.startswith("0b"):
            return int(text[2:], 2)
        return int(text)

    def _parse_length(self) -> Optional[tuple[int, Token]]:
        """Parse an optional ``~N`` explicit length suffix."""
        if not self._match(TokenType.ARRAY_LENGTH):
            return None
        number = self._match(TokenType.NUMBER)
        if number is None:
            self._expected("length after '~'")
            return None
        return self._parse_number(number), number

    def _parse_literal(self, depth: int = 0) -> Optional[Literal]:
        """
        Parse a literal at the current token, if there is one.

        Returns:
            The literal, or None (consuming nothing) if the current token
            does not start a literal
        """
        token = self._current()
        if token is None:
            return None

        if token.type is TokenType.NUMBER:
            self._advance()
            return NumberLiteral(self._parse_number(token), token.span)

        if token.type is TokenType.REFERENCE:
            self._advance()
            literal = ReferenceLiteral(token.text[1:], self._prefix(), token.span)
            self._program.references.append(literal)
            return literal

        if token.type is TokenType.STRING:
            self._advance()
            text = token.text
            if (length := self._parse_length()) is not None:
                wanted, length_token = length
                if wanted >= len(text):
                    text += "\0" * (wanted - len(text))
                else:
                    self._error("cannot set length smaller than the length of the string", length_token.span)
            return TextLiteral(text, token.span.to(self._previous().span))

        if token.type is TokenType.ARRAY_START:
            return self._parse_array(depth)

        return None

    def _parse_array(self, depth: int) -> Optional[ArrayLiteral]:
        start = self._advance()

        if depth >= self._max_depth:
            self._error(f"array literal nested deeper than {self._max_depth} levels", start.span)
            self._skip_array()
            return None

        elements: list[Literal] = []
        while not self._at_end() and not self._check(TokenType.ARRAY_END):
            if not self._check(*LITERAL_STARTS):
                token = self._advance()
                self._error("unexpected token inside array, expected only literals", token.span)
            elif (literal := self._parse_literal(depth + 1)) is not None:
                elements.append(literal)

        if self._at_end():
            self._error("missing array end ']'", self._previous().span)
            return None
        self._advance()  # consume ]

        if (length := self._parse_length()) is not None:
            wanted, length_token = length
            if wanted >= len(elements):
                elements.extend(
                    NumberLiteral(0, length_token.span) for _ in range(wanted - len(elements))
                )
            else:
                self._error("cannot set length smaller than the amount of elements", length_token.span)

        return ArrayLiteral(elements, start.span.to(self._previous().span))

    def _skip_array(self) -> None:
        """Skip to the bracket closing an array whose ``[`` was consumed."""
        depth = 1
        while not self._at_end() and depth > 0:
            token = self._advance()
            if token.type is TokenType.ARRAY_START:
                depth += 1
            elif token.type is TokenType.ARRAY_END:
                depth -= 1


# =============================================================================
# Reference Resolution
# =============================================================================

def resolve_references(program: Program, errors: ErrorCollector) -> None:
    """
    Resolve every unresolved reference in ``program`` against its labels.

    Resolution runs in passes. In each pass a pending reference is looked
    up under its current scope prefix; if the label is not there the
    innermost scope is dropped and the reference waits for the next pass,
    and once only the root is left a miss is reported as an undefined
    label. A pass that changes nothing reports every remaining reference
    as unresolvable and stops.
    """
    pending = [ref for ref in program.references if ref.state is ResolutionState.UNRESOLVED]
    label_names = sorted({key.partition(LABEL_SEPARATOR)[2] for key in program.labels})

    while pending:
        progress = False
        waiting = []

        for ref in pending:
            if ref.key in program.labels:
                ref.resolve(program.labels[ref.key])
                progress = True
            elif len(ref.prefix) > 1:
                ref.prefix.pop()
                waiting.append(ref)
                progress = True
            else:
                ref.fail()
                errors.add(UndefinedLabelError(
                    ref.label,
                    span=ref.span,
                    similar_labels=find_similar(ref.label, label_names),
                ))
                progress = True

        pending = waiting

        if not progress:
            for ref in pending:
                ref.fail()
                errors.add(LinkError(f"reference ':{ref.label}' unresolvable", ref.span))
            break


def parse_tokens(
    tokens: list[Token],
    errors: Optional[ErrorCollector] = None,
    max_literal_depth: int = DEFAULT_MAX_LITERAL_DEPTH,
) -> Program:
    """Convenience function to parse expanded tokens into a Program."""
    return Parser(tokens, errors, max_literal_depth).parse()
