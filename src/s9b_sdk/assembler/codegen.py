"""
S9B Code Generator
==================

This module packs parsed statements into machine words and links
references to addresses.

Emission
--------
Statements are walked once in source order. Each executable statement
emits its opcode word at the current end of the image and records that
address as its own. A movement with literal operands is followed by one
word per literal, source literal first and destination literal second,
which is the order the CPU loads them into M and N.

Linking
-------
Words that cannot be known yet (references and inline strings or arrays)
are emitted as placeholders and queued as ``(address, literal)`` work
items. The queue is then drained:

- A reference to an instruction is patched with that instruction's
  address.
- A reference to a Constant that has not been placed yet places the
  constant's data at the end of the image first. The address is recorded
  before the data is written, so later references (including references
  from inside the data itself) reuse the same copy.
- An inline string or array is placed at the end of the image and the
  placeholder is patched with its address.

Array data is flattened: strings inside arrays contribute their
characters and nested arrays their elements. References inside data
become new work items.

Image Layout
------------
```
0 .. n-1      instructions and their literal words, in source order
n ..          constant data, in the order it was first referenced
```
"""

from collections import deque
from dataclasses import dataclass, field
from typing import Optional
import logging

from s9b_sdk.config import MachineConfig
from s9b_sdk.errors import ErrorCollector, InternalError, LinkError
from s9b_sdk.assembler.parser import (
    Action,
    ArrayLiteral,
    Condition,
    Constant,
    Literal,
    Movement,
    NumberLiteral,
    Program,
    ReferenceLiteral,
    RegisterAction,
    ResolutionState,
    Statement,
    TextLiteral,
    display_label,
)
from s9b_sdk.cpu import (
    encode_action,
    encode_condition,
    encode_movement,
    encode_register_action,
    is_immediate,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Assembled Output
# =============================================================================

@dataclass
class AssembledOutput:
    """
    Result of code generation.

    Attributes:
        words: The image, each word masked to the configured width
        statement_addresses: Statement id to the address of its first word
        address_statements: Address to the statement id emitted there
        program: The program the image was built from
    """
    words: list[int]
    statement_addresses: dict[int, int] = field(default_factory=dict)
    address_statements: dict[int, int] = field(default_factory=dict)
    program: Program = field(default_factory=Program, repr=False)

    def __len__(self) -> int:
        return len(self.words)

    def address_of(self, label: str) -> Optional[int]:
        """Address of a labelled statement, by root label name or full key."""
        statement = self.program.lookup(label)
        if statement is None:
            return None
        return self.statement_addresses.get(statement.id)

    def symbols(self) -> dict[str, int]:
        """
        Label to address table for tooling.

        Root labels appear under their plain name, labels inside scope
        blocks under their full key (``0.1!loop``). Constants that were
        never referenced have no address and are left out.
        """
        table = {}
        for key, statement_id in self.program.labels.items():
            if statement_id in self.statement_addresses:
                table[display_label(key)] = self.statement_addresses[statement_id]
        return table


# =============================================================================
# Code Generator
# =============================================================================

class CodeGenerator:
    """
    Generates an S9B image from a resolved Program.

    Usage:
        generator = CodeGenerator(config, errors)
        output = generator.generate(program)

    The program must have been parsed without errors: an unresolved
    reference or a statement without its operands is an InternalError.
    """

    def __init__(
        self,
        config: Optional[MachineConfig] = None,
        errors: Optional[ErrorCollector] = None,
    ):
        self.config = config or MachineConfig()
        self.errors = errors if errors is not None else ErrorCollector(self.config.max_errors)

        self._words: list[int] = []
        self._statement_addresses: dict[int, int] = {}
        self._address_statements: dict[int, int] = {}
        self._work: deque[tuple[int, Literal]] = deque()
        self._program = Program()

    def generate(self, program: Program) -> AssembledOutput:
        """
        Emit and link the whole program.

        Returns:
            AssembledOutput for the program

        Raises:
            InternalError: If the program violates a pipeline invariant
        """
        self._words = []
        self._statement_addresses = {}
        self._address_statements = {}
        self._work = deque()
        self._program = program

        for statement in program.executable():
            self._emit_statement(statement)
        code_size = len(self._words)

        while self._work:
            address, literal = self._work.popleft()
            self._words[address] = self._link(literal)

        logger.debug(
            f"Generated {code_size} code words and {len(self._words) - code_size} data words "
            f"for {len(program.statements)} statements"
        )

        if len(self._words) > self.config.memory_size:
            self.errors.add(LinkError(
                f"program image of {len(self._words)} words exceeds the "
                f"{self.config.memory_size}-word memory"
            ))

        return AssembledOutput(
            words=list(self._words),
            statement_addresses=dict(self._statement_addresses),
            address_statements=dict(self._address_statements),
            program=program,
        )

    # =========================================================================
    # Emission
    # =========================================================================

    def _emit_word(self, value: int) -> int:
        """Append a word to the image and return its address."""
        self._words.append(value & self.config.mask)
        return len(self._words) - 1

    def _record_address(self, statement: Statement) -> int:
        address = len(self._words)
        if statement.id in self._statement_addresses:
            raise InternalError(f"statement {statement.id} emitted twice")
        self._statement_addresses[statement.id] = address
        self._address_statements[address] = statement.id
        return address

    def _emit_statement(self, statement: Statement) -> None:
        self._record_address(statement)

        if isinstance(statement, Movement):
            self._emit_word(encode_movement(statement.source, statement.destination))
            for location, literal in (
                (statement.source, statement.source_literal),
                (statement.destination, statement.destination_literal),
            ):
                if is_immediate(location):
                    if literal is None:
                        raise InternalError(
                            f"movement at {statement.span} has no literal for '{location}'"
                        )
                    self._emit_operand(literal)
        elif isinstance(statement, Condition):
            self._emit_word(encode_condition(statement.invert, statement.any_of, statement.targets))
        elif isinstance(statement, Action):
            self._emit_word(encode_action(statement.name))
        elif isinstance(statement, RegisterAction):
            self._emit_word(encode_register_action(statement.op, statement.register))
        else:
            raise InternalError(f"cannot encode statement {statement!r}")

    def _emit_operand(self, literal: Literal) -> None:
        """Emit the word for a literal operand, queueing it if not yet known."""
        if isinstance(literal, NumberLiteral):
            self._emit_word(literal.value)
        else:
            self._work.append((self._emit_word(0), literal))

    def _emit_data(self, literal: Literal) -> None:
        """Emit constant data at the end of the image, flattening arrays."""
        if isinstance(literal, NumberLiteral):
            self._emit_word(literal.value)
        elif isinstance(literal, TextLiteral):
            for char in literal.value:
                self._emit_word(ord(char))
        elif isinstance(literal, ArrayLiteral):
            for element in literal.elements:
                self._emit_data(element)
        elif isinstance(literal, ReferenceLiteral):
            self._work.append((self._emit_word(0), literal))
        else:
            raise InternalError(f"literal has no value: {literal!r}")

    # =========================================================================
    # Linking
    # =========================================================================

    def _link(self, literal: Literal) -> int:
        """Compute the final value of a queued placeholder."""
        if isinstance(literal, ReferenceLiteral):
            if literal.state is not ResolutionState.RESOLVED or literal.target is None:
                raise InternalError(f"reference ':{literal.label}' reached linking unresolved")
            target = self._program.statements[literal.target]
            if isinstance(target, Constant):
                return self._place_constant(target)
            if target.id not in self._statement_addresses:
                raise InternalError(f"statement {target.id} has no address")
            return self._statement_addresses[target.id]

        if isinstance(literal, (TextLiteral, ArrayLiteral)):
            address = len(self._words)
            self._emit_data(literal)
            return address

        raise InternalError(f"literal has no value: {literal!r}")

    def _place_constant(self, constant: Constant) -> int:
        """Place a constant's data once and return its address."""
        if constant.id in self._statement_addresses:
            return self._statement_addresses[constant.id]
        address = self._record_address(constant)
        logger.debug(f"Placing constant {constant.label} at {address}")
        self._emit_data(constant.literal)
        return address


def generate(program: Program, config: Optional[MachineConfig] = None) -> AssembledOutput:
    """Convenience function to generate code for a resolved Program."""
    return CodeGenerator(config).generate(program)
