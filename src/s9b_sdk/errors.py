"""
S9B SDK Error Hierarchy
=======================

This module defines the exception hierarchy for the entire S9B SDK.
All exceptions inherit from S9BError, allowing callers to catch all
SDK-related errors with a single except clause if desired.

Exception Hierarchy
-------------------
S9BError (base)
├── AssemblerError (source diagnostics, carry a Span)
│   ├── LexError - unexpected character, unterminated string/comment/define
│   ├── MacroError - unknown macro, arity mismatch, recursive expansion
│   ├── ParseError - unexpected/missing token, bad location, scope misuse
│   ├── LinkError - reference unresolvable, image too large
│   │   └── UndefinedLabelError - label not found in any enclosing scope
│   ├── TooManyErrors - diagnostic limit reached
│   └── AssemblyFailed - raised by the pipeline facade with the full report
├── InternalError - pipeline invariant violated (never user-facing)
├── ConfigError - invalid machine configuration
├── ImageError - unreadable or malformed program image
└── EmulatorError (interpreter faults)
    ├── CPUDecodeFault - invalid opcode fetched
    └── CPURangeError - memory access out of bounds

Design Philosophy
-----------------
The assembler pipeline is *accumulating*: the lexer, macro expander, parser
and linker append every recoverable problem to an ErrorCollector and keep
going, so a single compile reports everything. Only InternalError aborts,
because it means the pipeline itself is broken.

Error messages follow this format:
    filename:line:column: error: description
    source_line_text
        ^ (pointer to error location)
    hint: suggestion for fixing (when available)
"""

from dataclasses import dataclass, field
from typing import Optional


# =============================================================================
# Base Exception Class
# =============================================================================

class S9BError(Exception):
    """
    Base exception for all S9B SDK errors.

        try:
            assemble(source)
        except S9BError as e:
            print(f"Error: {e}")
    """
    pass


# =============================================================================
# Source Span Tracking
# =============================================================================

@dataclass(frozen=True)
class Position:
    """A 1-indexed line/column position in a source text."""
    line: int
    column: int

    def __str__(self) -> str:
        return f"{self.line}:{self.column}"


@dataclass(frozen=True)
class Span:
    """
    Half-open source range attached to every token and diagnostic.

    Attributes:
        start: First character of the range
        end: Position just past the last character
        source: The complete source text the range points into
        filename: Name of the source file (or "<input>" for string input)
    """
    start: Position
    end: Position
    source: str = field(default="", repr=False, compare=False)
    filename: str = "<input>"

    def __str__(self) -> str:
        """Format as 'filename:line:column' for error messages."""
        return f"{self.filename}:{self.start.line}:{self.start.column}"

    def to(self, other: "Span") -> "Span":
        """Return a span covering this span through the end of ``other``."""
        return Span(self.start, other.end, self.source, self.filename)

    @property
    def line_text(self) -> str:
        """The full text of the line the span starts on."""
        lines = self.source.split("\n")
        index = self.start.line - 1
        if 0 <= index < len(lines):
            return lines[index]
        return ""


# =============================================================================
# Assembler Exceptions
# =============================================================================

class AssemblerError(S9BError):
    """
    Base exception for all source-level diagnostics.

    Attributes:
        message: The error description
        span: Where in the source the error occurred (optional)
        hint: A suggestion for fixing the error (optional)
    """

    def __init__(
        self,
        message: str,
        span: Optional[Span] = None,
        hint: Optional[str] = None,
    ):
        self.message = message
        self.span = span
        self.hint = hint
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """
        Format the error message with location, source context, and hint.

        Example output:
            loop.s9b:4:5: error: unknown location 'sume'
                a = sume
                    ^
            hint: did you mean 'sum'?
        """
        parts = []

        if self.span:
            parts.append(f"{self.span}: error: {self.message}")
        else:
            parts.append(f"error: {self.message}")

        if self.span is not None and self.span.source:
            parts.append(f"    {self.span.line_text}")
            if self.span.start.column > 0:
                padding = " " * (4 + self.span.start.column - 1)
                parts.append(f"{padding}^")

        if self.hint:
            parts.append(f"hint: {self.hint}")

        return "\n".join(parts)


class LexError(AssemblerError):
    """
    Lexical error in S9B source.

    Examples:
        - Unexpected character
        - Unknown location or action name
        - Unterminated string, block comment or #define
    """
    pass


class MacroError(AssemblerError):
    """
    Error in macro expansion.

    Raised when:
    - A macro is called that is not visible from the call site
    - The wrong number of arguments is passed
    - A macro expands into itself (directly or transitively)
    - Argument parentheses are unbalanced or nested illegally
    """
    pass


class ParseError(AssemblerError):
    """
    Syntax error while building statements.

    Examples:
        - Missing "=" in a movement
        - Invalid source or destination location
        - "#pop" without a matching "#push"
        - Two labels in a row
        - Explicit length "~N" shorter than the literal
    """
    pass


class LinkError(AssemblerError):
    """Error resolving references or laying out the final image."""
    pass


class UndefinedLabelError(LinkError):
    """
    Reference to a label that exists in no enclosing scope.

    Similar label names are offered as a hint to catch typos.
    """

    def __init__(
        self,
        label: str,
        span: Optional[Span] = None,
        hint: Optional[str] = None,
        similar_labels: Optional[list[str]] = None,
    ):
        self.label = label
        self.similar_labels = similar_labels or []

        if not hint and self.similar_labels:
            suggestions = ", ".join(f"'{s}'" for s in self.similar_labels[:3])
            hint = f"did you mean {suggestions}?"

        super().__init__(
            f"referenced label '{label}' not found",
            span=span,
            hint=hint,
        )


# =============================================================================
# Non-diagnostic Exceptions
# =============================================================================

class InternalError(S9BError):
    """
    A pipeline invariant was violated.

    This is never caused by user source alone; it signals a bug in one of
    the assembler stages and aborts the compile immediately.
    """
    pass


class ConfigError(S9BError):
    """Invalid machine configuration (word width, memory size, limits)."""
    pass


class ImageError(S9BError):
    """A program image file could not be read or written."""
    pass


# =============================================================================
# Emulator Exceptions
# =============================================================================

class EmulatorError(S9BError):
    """Base exception for interpreter faults."""
    pass


class CPUDecodeFault(EmulatorError):
    """
    Invalid instruction fetched.

    The CPU stops, reports the fault and stays recoverable by reset.
    """

    def __init__(self, word: int, address: int, message: str = ""):
        self.word = word
        self.address = address
        if not message:
            message = f"invalid instruction {word} at address {address}"
        super().__init__(message)


class CPURangeError(EmulatorError):
    """Memory access outside the bounds of the memory component."""

    def __init__(self, address: int, size: int, message: str = ""):
        self.address = address
        self.size = size
        if not message:
            message = f"memory address {address} out of range (size {size})"
        super().__init__(message)


# =============================================================================
# Error Collection for Multiple Error Reporting
# =============================================================================

class ErrorCollector:
    """
    Collects multiple errors for batch reporting.

    Every assembler stage shares one collector so that a single compile
    surfaces all problems. Notes are informational messages (macro
    signatures, expansion previews) that never make the output invalid.

    Example:
        collector = ErrorCollector(max_errors=100)
        collector.add(ParseError("unpaired pop", span))
        if collector.has_errors():
            print(collector.report())
    """

    def __init__(self, max_errors: int = 100):
        """
        Initialize the error collector.

        Args:
            max_errors: Maximum errors to collect before raising TooManyErrors
        """
        self.errors: list[AssemblerError] = []
        self.notes: list[tuple[Optional[Span], str]] = []
        self.max_errors = max_errors

    def add(self, error: AssemblerError) -> None:
        """
        Add an error to the collection.

        Raises:
            TooManyErrors: If max_errors has been reached
        """
        self.errors.append(error)
        if len(self.errors) >= self.max_errors:
            raise TooManyErrors(f"Too many errors ({self.max_errors}), stopping")

    def add_note(self, message: str, span: Optional[Span] = None) -> None:
        """Add an informational note."""
        self.notes.append((span, message))

    def has_errors(self) -> bool:
        """Return True if any errors have been collected."""
        return len(self.errors) > 0

    def error_count(self) -> int:
        """Return the number of collected errors."""
        return len(self.errors)

    def report(self) -> str:
        """Format all errors for display, followed by a summary line."""
        lines = []

        for error in self.errors:
            lines.append(str(error))
            lines.append("")

        error_word = "error" if len(self.errors) == 1 else "errors"
        lines.append(f"{len(self.errors)} {error_word}")

        return "\n".join(lines)

    def clear(self) -> None:
        """Clear all collected errors and notes."""
        self.errors.clear()
        self.notes.clear()


class TooManyErrors(AssemblerError):
    """
    Raised when too many errors have been encountered.

    This prevents the assembler from running indefinitely when
    there are fundamental problems with the source code.
    """

    def __init__(self, message: str = "Too many errors"):
        super().__init__(message)


class AssemblyFailed(AssemblerError):
    """
    Raised when a compile recorded any diagnostic.

    No image is produced in that case. The exception carries every
    collected error and formats as the full report.
    """

    def __init__(self, errors: list[AssemblerError], report: str):
        self.errors = list(errors)
        self.report = report
        count = len(self.errors)
        super().__init__(f"assembly failed with {count} error{'' if count == 1 else 's'}")

    def __str__(self) -> str:
        return self.report


# =============================================================================
# Hint Helpers
# =============================================================================

def edit_distance(s1: str, s2: str) -> int:
    """Calculate Levenshtein edit distance between two strings."""
    if len(s1) < len(s2):
        s1, s2 = s2, s1

    distances = list(range(len(s2) + 1))
    for i, c1 in enumerate(s1):
        new_distances = [i + 1]
        for j, c2 in enumerate(s2):
            if c1 == c2:
                new_distances.append(distances[j])
            else:
                new_distances.append(1 + min((
                    distances[j],
                    distances[j + 1],
                    new_distances[-1]
                )))
        distances = new_distances

    return distances[-1]


def find_similar(name: str, candidates, limit: int = 4) -> list[str]:
    """
    Find candidate names close to ``name`` for "did you mean" hints.

    Candidates within an edit distance of two (one for names of two
    characters or fewer) are returned, closest first.
    """
    threshold = 1 if len(name) <= 2 else 2
    scored = []
    for candidate in candidates:
        if candidate == name:
            continue
        distance = edit_distance(name, candidate)
        if distance <= threshold:
            scored.append((distance, candidate))
    scored.sort()
    return [candidate for _, candidate in scored[:limit]]


def suggestion_hint(similar: list[str]) -> Optional[str]:
    """Format a hint from a list of similar names, or None if empty."""
    if not similar:
        return None
    return "did you mean " + ", ".join(f"'{name}'" for name in similar) + "?"
