"""
S9B Disassembler
================

Turns S9B image words back into source syntax. This is the inverse of
the assembler's code generation, minus labels, macros and scopes:

    1f6 005        a = 5
    1ad            out = a
    082            ?b
    1fc 00a        pc = 10
    049            -b
    042            !done

Immediate words are shown inline (``stack 1``, ``mem 7``, a bare number
for the ``$`` source). Words that do not decode (no type tag, an
unassigned action code or an invalid destination) are rendered as
``.word N`` and consume a single word, so constant data placed after the
code reads as a run of ``.word`` lines or accidental instructions.

Usage:
    disasm = S9BDisassembler()
    instructions = disasm.disassemble(words, start_address=0, count=10)

    for line in disassemble(words):
        print(line)

Copyright (c) 2025-2026 Hugo José Pinto & Contributors
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from s9b_sdk.cpu import (
    InstructionKind,
    decode_action,
    decode_condition,
    destination_name,
    instruction_kind,
    is_immediate,
    source_name,
)


# =============================================================================
# Data Structures
# =============================================================================

@dataclass
class DisassembledInstruction:
    """
    Represents a single disassembled S9B instruction.

    Attributes:
        address: Memory address of the first word
        words: The instruction word followed by its immediate words
        text: Source-syntax rendering (``.word N`` if undecodable)
        comment: Optional annotation (label of a jump target, decode problem)
        word_bits: Word width, sets the hex digit count
    """
    address: int
    words: tuple[int, ...]
    text: str
    comment: str = ""
    word_bits: int = 9

    @property
    def size(self) -> int:
        return len(self.words)

    def __str__(self) -> str:
        """Format as listing line: ADDRESS: WORDS  TEXT  // COMMENT"""
        digits = (self.word_bits + 3) // 4
        hex_words = " ".join(f"{word:0{digits}x}" for word in self.words).ljust(3 * (digits + 1))

        if self.comment:
            return f"{self.address:04d}: {hex_words} {self.text:<20} // {self.comment}"
        return f"{self.address:04d}: {hex_words} {self.text}"

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "address": self.address,
            "words": list(self.words),
            "text": self.text,
            "size": self.size,
            "comment": self.comment,
        }


# =============================================================================
# S9B Disassembler
# =============================================================================

class S9BDisassembler:
    """
    Disassembler for S9B images.

    Attributes:
        word_bits: Word width of the image
        _symbol_table: Optional address to label map used to annotate jumps
    """

    def __init__(self, symbol_table: Optional[Dict[int, str]] = None, word_bits: int = 9):
        """
        Initialize the disassembler.

        Args:
            symbol_table: Optional dict mapping addresses to label names
            word_bits: Word width of the image
        """
        self._symbol_table = dict(symbol_table or {})
        self.word_bits = word_bits

    def disassemble_one(self, words: Sequence[int], offset: int = 0) -> DisassembledInstruction:
        """
        Disassemble the instruction at ``offset``.

        Raises:
            ValueError: If offset is beyond the data
        """
        if offset >= len(words):
            raise ValueError(f"Offset {offset} beyond data length {len(words)}")

        word = words[offset]
        kind = instruction_kind(word)

        if kind is InstructionKind.MOVEMENT:
            return self._movement(words, offset)

        if kind is InstructionKind.CONDITION:
            invert, any_of, targets = decode_condition(word)
            if not targets:
                return self._data_word(offset, word, "condition without targets")
            text = "?" + ("!" if invert else "") + ("|" if any_of else "") + "".join(targets)
            return self._instruction(offset, (word,), text)

        if kind is InstructionKind.ACTION:
            decoded = decode_action(word)
            if decoded is None:
                return self._data_word(offset, word, "unassigned action")
            name, register = decoded
            text = f"{name}{register}" if register is not None else f"!{name}"
            return self._instruction(offset, (word,), text)

        return self._data_word(offset, word)

    def _movement(self, words: Sequence[int], offset: int) -> DisassembledInstruction:
        word = words[offset]
        source = source_name(word)
        destination = destination_name(word)
        if destination is None:
            return self._data_word(offset, word, "invalid destination")

        count = int(is_immediate(source)) + int(is_immediate(destination))
        if offset + count >= len(words):
            return DisassembledInstruction(
                address=offset,
                words=tuple(words[offset:]),
                text=f"{destination.rstrip('$')} = {source.rstrip('$') or '???'}",
                comment="incomplete instruction",
                word_bits=self.word_bits,
            )

        arguments = list(words[offset + 1:offset + 1 + count])
        source_text = self._location(source, arguments)
        destination_text = self._location(destination, arguments)

        comment = ""
        if destination == "pc" and source == "$":
            comment = self._symbol_table.get(words[offset + 1], "")

        return self._instruction(
            offset,
            tuple(words[offset:offset + 1 + count]),
            f"{destination_text} = {source_text}",
            comment,
        )

    @staticmethod
    def _location(name: str, arguments: list[int]) -> str:
        """Render a location, consuming its immediate word from ``arguments``."""
        if not is_immediate(name):
            return name
        argument = arguments.pop(0)
        if name == "$":
            return str(argument)
        return f"{name[:-1]} {argument}"

    def _instruction(
        self,
        offset: int,
        words: tuple[int, ...],
        text: str,
        comment: str = "",
    ) -> DisassembledInstruction:
        if not comment and offset in self._symbol_table:
            comment = f"{self._symbol_table[offset]}:"
        return DisassembledInstruction(offset, words, text, comment, self.word_bits)

    def _data_word(self, offset: int, word: int, comment: str = "") -> DisassembledInstruction:
        return DisassembledInstruction(offset, (word,), f".word {word}", comment, self.word_bits)

    def disassemble(
        self,
        words: Sequence[int],
        start_address: int = 0,
        count: Optional[int] = None,
    ) -> List[DisassembledInstruction]:
        """
        Disassemble multiple instructions.

        Args:
            words: Image words, index = address
            start_address: Address to start at
            count: Maximum number of instructions (None = to the end)

        Returns:
            List of DisassembledInstruction objects
        """
        result = []
        offset = start_address

        while offset < len(words):
            if count is not None and len(result) >= count:
                break
            instruction = self.disassemble_one(words, offset)
            result.append(instruction)
            offset += instruction.size

        return result

    def disassemble_to_text(
        self,
        words: Sequence[int],
        start_address: int = 0,
        count: Optional[int] = None,
    ) -> str:
        """Disassemble and return a multi-line listing."""
        return "\n".join(str(instr) for instr in self.disassemble(words, start_address, count))

    def add_symbol(self, address: int, name: str) -> None:
        """Add a label to the symbol table."""
        self._symbol_table[address] = name

    def add_symbols(self, symbols: Dict[int, str]) -> None:
        """Add multiple labels (address to name)."""
        self._symbol_table.update(symbols)


def disassemble(
    words: Sequence[int],
    start: int = 0,
    count: Optional[int] = None,
    word_bits: int = 9,
) -> List[DisassembledInstruction]:
    """Convenience function to disassemble image words."""
    return S9BDisassembler(word_bits=word_bits).disassemble(words, start, count)
