"""
S9B Token Definitions
=====================

Token kinds and the immutable Token record shared by the lexer, the macro
expander and the parser.

Token Kinds
-----------
| Kind            | Example        | Text carried                    |
|-----------------|----------------|---------------------------------|
| LABEL           | loop:          | "loop:"                         |
| REFERENCE       | :loop          | ":loop"                         |
| LOCATION        | sum            | "sum"                           |
| NUMBER          | 0x1F, 'A       | source text of the number       |
| MOVEMENT        | =              | "="                             |
| STRING          | "hi\\n"        | decoded value plus trailing NUL |
| CONDITION       | ?!|ab          | "?!|ab"                         |
| ACTION          | !done          | "!done"                         |
| REGISTER_ACTION | +a             | "+a"                            |
| ARRAY_START     | [              | "["                             |
| ARRAY_END       | ]              | "]"                             |
| ARRAY_LENGTH    | ~              | "~"                             |
| MACRO           | CALL           | "CALL"                          |
| MACRO_ARG_START | (              | "("                             |
| MACRO_ARG_END   | )              | ")"                             |
| SCOPE_PUSH      | #push          | "#push"                         |
| SCOPE_POP       | #pop           | "#pop"                          |
"""

from dataclasses import dataclass
from enum import Enum

from s9b_sdk.errors import Span


class TokenType(Enum):
    """Lexical categories of S9B source."""

    # Naming
    LABEL = "label"
    REFERENCE = "reference"

    # Statements
    LOCATION = "location"
    MOVEMENT = "movement"
    CONDITION = "condition"
    ACTION = "action"
    REGISTER_ACTION = "registerAction"

    # Literals
    NUMBER = "number"
    STRING = "string"
    ARRAY_START = "arrayStart"
    ARRAY_END = "arrayEnd"
    ARRAY_LENGTH = "arrayLength"

    # Macros
    MACRO = "macro"
    MACRO_ARG_START = "macroArgStart"
    MACRO_ARG_END = "macroArgEnd"

    # Label scope blocks
    SCOPE_PUSH = "scopePush"
    SCOPE_POP = "scopePop"


@dataclass(frozen=True)
class Token:
    """
    A single lexical element.

    Tokens are never mutated: the macro expander builds new sequences and
    new tokens instead of rewriting the lexer's output.

    Attributes:
        type: The TokenType classification
        text: Token text (see the module table for what each kind carries)
        span: Source range the token came from
    """
    type: TokenType
    text: str
    span: Span

    def __repr__(self) -> str:
        return f"Token({self.type.name}, {self.text!r}, {self.span.start})"
