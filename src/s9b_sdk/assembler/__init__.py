"""
S9B Assembler
=============

This package compiles S9B source text into a program image for the S9B
interpreter.

Main Components
---------------
- **Assembler**: Main class that runs the pipeline and writes output files
- **Lexer**: Turns source into tokens and collects #define macros
- **MacroExpander**: Replaces macro calls with their hygienic expansion
- **Parser**: Builds statements, tracks #push/#pop label scopes and
  resolves label references
- **CodeGenerator**: Packs statements into words and links references,
  placing constant data lazily at the end of the image

Assembly Process
----------------
1. **Lexing**: tokens plus the root macro scope
2. **Macro expansion**: a new token list with every call expanded
3. **Parsing**: statements, the label table and resolved references
4. **Code generation**: instruction words first, then referenced data

Every stage records recoverable problems in a shared ErrorCollector. A
compile with any diagnostic raises AssemblyFailed and produces no image.

Example Usage
-------------
>>> from s9b_sdk.assembler import assemble
>>> assemble("a = 5  out = a  !halt").words
[502, 5, 429, 65]
"""

from s9b_sdk.assembler.assembler import Assembler, assemble, assemble_file
from s9b_sdk.assembler.tokens import Token, TokenType
from s9b_sdk.assembler.lexer import Lexer, LexResult, tokenize
from s9b_sdk.assembler.macros import Macro, MacroExpander, MacroScope, expand_macros
from s9b_sdk.assembler.parser import (
    Action,
    ArrayLiteral,
    Condition,
    Constant,
    Movement,
    NumberLiteral,
    Parser,
    Program,
    ReferenceLiteral,
    RegisterAction,
    ResolutionState,
    Statement,
    TextLiteral,
    display_label,
    label_key,
    parse_tokens,
    resolve_references,
)
from s9b_sdk.assembler.codegen import AssembledOutput, CodeGenerator, generate

__all__ = [
    # Main class and functions
    "Assembler",
    "assemble",
    "assemble_file",
    # Lexer
    "Lexer",
    "LexResult",
    "Token",
    "TokenType",
    "tokenize",
    # Macros
    "Macro",
    "MacroScope",
    "MacroExpander",
    "expand_macros",
    # Parser
    "Parser",
    "Program",
    "Statement",
    "Movement",
    "Condition",
    "Action",
    "RegisterAction",
    "Constant",
    "NumberLiteral",
    "TextLiteral",
    "ArrayLiteral",
    "ReferenceLiteral",
    "ResolutionState",
    "label_key",
    "display_label",
    "parse_tokens",
    "resolve_references",
    # Code generator
    "CodeGenerator",
    "AssembledOutput",
    "generate",
]
