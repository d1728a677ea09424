"""
S9B Instruction Set Definitions
===============================

Encoding tables for the S9B instruction set, shared by the assembler (which
packs statements into words), the interpreter (which decodes them) and the
disassembler.

Word Layout (9-bit reference machine)
-------------------------------------
    8   7   6   5   4   3   2   1   0
    M   .   .   .   .   .   .   .   .     movement:  SSSS DDDD
    0   C   O   I   T   T   T   T   T     condition: Or, Invert, Targets
    0   0   A   .   .   .   .   .   .     action:    control code or OOO RR

Movement
    Bits 4-7 select the source location, bits 0-3 the destination location.
    Locations with a "$" suffix are immediate-indexed: the instruction is
    followed by one argument word (source first, then destination).

Condition
    Bit 6 combines the selected targets with OR instead of AND, bit 5
    inverts the result, bits 0-4 select targets Z, C, a, b, c.
    Register targets test for zero; C and Z test the ALU flags.

Action
    Control actions use a direct code. Register actions put the operation
    in bits 2-4 and the target register in bits 0-1.
"""

from enum import Enum


# =============================================================================
# Instruction Type Tags
# =============================================================================

class InstructionKind(Enum):
    """Instruction classes, in decode priority order."""
    MOVEMENT = "movement"
    CONDITION = "condition"
    ACTION = "action"


INST_MOVEMENT = 0b100000000
INST_CONDITION = 0b010000000
INST_ACTION = 0b001000000

INST_TYPE = {
    InstructionKind.MOVEMENT: INST_MOVEMENT,
    InstructionKind.CONDITION: INST_CONDITION,
    InstructionKind.ACTION: INST_ACTION,
}


# =============================================================================
# Movement Fields
# =============================================================================

SOURCE_FIELD = 0b11110000
DESTINATION_FIELD = 0b00001111

# Suffix marking an immediate-indexed location
IMMEDIATE_SUFFIX = "$"

SOURCE_LOCATIONS: dict[str, int] = {
    "zero": 0,
    "sum": 16,
    "sub": 32,
    "and": 48,
    "or": 64,
    "xor": 80,
    "mem$": 96,
    "mem": 112,
    "stack$": 128,
    "stack": 144,
    "a": 160,
    "b": 176,
    "c": 192,
    "d": 208,
    "stackptr$": 224,
    "$": 240,
}

DESTINATION_LOCATIONS: dict[str, int] = {
    "nul": 0,
    "mem$": 1,
    "mem": 2,
    "stack$": 3,
    "stack": 4,
    "push": 5,
    "a": 6,
    "b": 7,
    "c": 8,
    "d": 9,
    "m": 10,
    "n": 11,
    "pc": 12,
    "out": 13,
}

SOURCE_NAMES: dict[int, str] = {code: name for name, code in SOURCE_LOCATIONS.items()}
DESTINATION_NAMES: dict[int, str] = {code: name for name, code in DESTINATION_LOCATIONS.items()}

# Keywords the lexer accepts as locations (immediate suffix stripped)
VALID_LOCATIONS: tuple[str, ...] = tuple(sorted(
    ({name.rstrip(IMMEDIATE_SUFFIX) for name in SOURCE_LOCATIONS}
     | {name.rstrip(IMMEDIATE_SUFFIX) for name in DESTINATION_LOCATIONS})
    - {""}
))


# =============================================================================
# Condition Fields
# =============================================================================

CONDITION_OR = 0b001000000
CONDITION_INVERT = 0b000100000

CONDITION_TARGETS: dict[str, int] = {
    "Z": 0b000010000,
    "C": 0b000001000,
    "a": 0b000000100,
    "b": 0b000000010,
    "c": 0b000000001,
}


# =============================================================================
# Action Fields
# =============================================================================

ACTIONS: dict[str, int] = {
    "halt": 1,
    "done": 2,
    "pause": 3,
    "pop": 24,
}

ACTION_NAMES: dict[int, str] = {code: name for name, code in ACTIONS.items()}

REGISTER_ACTION_FIELD = 0b11100
REGISTER_TARGET_FIELD = 0b00011
ACTION_CODE_FIELD = INST_ACTION - 1

REGISTER_ACTIONS: dict[str, int] = {
    "+": 4,
    "-": 8,
    "!": 12,
    "<": 16,
    ">": 20,
}

REGISTER_ACTION_NAMES: dict[int, str] = {code: op for op, code in REGISTER_ACTIONS.items()}

REGISTERS: dict[str, int] = {
    "a": 0,
    "b": 1,
    "c": 2,
    "d": 3,
}

REGISTER_NAMES: dict[int, str] = {code: name for name, code in REGISTERS.items()}


# =============================================================================
# Encoding
# =============================================================================

def encode_movement(source: str, destination: str) -> int:
    """
    Encode a movement opcode word.

    Args:
        source: Source location name, "$"-suffixed when immediate-indexed
        destination: Destination location name, "$"-suffixed likewise

    Raises:
        KeyError: If either location is not in its table
    """
    return INST_MOVEMENT | SOURCE_LOCATIONS[source] | DESTINATION_LOCATIONS[destination]


def encode_condition(invert: bool, any_of: bool, targets: tuple[str, ...] | list[str]) -> int:
    """Encode a condition word over the given targets."""
    word = INST_CONDITION
    if any_of:
        word |= CONDITION_OR
    if invert:
        word |= CONDITION_INVERT
    for target in targets:
        word |= CONDITION_TARGETS[target]
    return word


def encode_action(name: str) -> int:
    """Encode a control action (done, pause, halt, pop)."""
    return INST_ACTION | ACTIONS[name]


def encode_register_action(op: str, register: str) -> int:
    """Encode a register action such as ``+a`` or ``>d``."""
    return INST_ACTION | REGISTER_ACTIONS[op] | REGISTERS[register]


# =============================================================================
# Decoding
# =============================================================================

def instruction_kind(word: int) -> InstructionKind | None:
    """
    Classify a word by its type tag.

    Tags are checked from the highest bit down, so the first set tag wins.
    Returns None for a word with no tag set.
    """
    if word & INST_MOVEMENT:
        return InstructionKind.MOVEMENT
    if word & INST_CONDITION:
        return InstructionKind.CONDITION
    if word & INST_ACTION:
        return InstructionKind.ACTION
    return None


def source_name(word: int) -> str:
    """Name of the source location of a movement word."""
    return SOURCE_NAMES[word & SOURCE_FIELD]


def destination_name(word: int) -> str | None:
    """Name of the destination location of a movement word, or None if invalid."""
    return DESTINATION_NAMES.get(word & DESTINATION_FIELD)


def is_immediate(location: str | None) -> bool:
    """True if a location name consumes an argument word."""
    return location is not None and location.endswith(IMMEDIATE_SUFFIX)


def immediate_count(word: int) -> int:
    """
    Number of argument words following an instruction word.

    Only movements carry arguments: one for an immediate-indexed source,
    one for an immediate-indexed destination.
    """
    if instruction_kind(word) is not InstructionKind.MOVEMENT:
        return 0
    count = 0
    if is_immediate(source_name(word)):
        count += 1
    if is_immediate(destination_name(word)):
        count += 1
    return count


def decode_condition(word: int) -> tuple[bool, bool, tuple[str, ...]]:
    """
    Decode a condition word.

    Returns:
        (invert, any_of, targets) with targets in table order
    """
    invert = bool(word & CONDITION_INVERT)
    any_of = bool(word & CONDITION_OR)
    targets = tuple(name for name, bit in CONDITION_TARGETS.items() if word & bit)
    return invert, any_of, targets


def decode_action(word: int) -> tuple[str, str | None] | None:
    """
    Decode an action word.

    Returns:
        (name, None) for a control action, (op, register) for a register
        action, or None if the action code is unassigned
    """
    code = word & ACTION_CODE_FIELD
    if code in ACTION_NAMES:
        return ACTION_NAMES[code], None

    op = REGISTER_ACTION_NAMES.get(code & REGISTER_ACTION_FIELD)
    if op is not None and code == code & (REGISTER_ACTION_FIELD | REGISTER_TARGET_FIELD):
        return op, REGISTER_NAMES[code & REGISTER_TARGET_FIELD]
    return None
