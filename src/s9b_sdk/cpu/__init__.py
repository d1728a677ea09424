"""
S9B SDK CPU Package
===================

This package contains the S9B instruction set definitions used by multiple
tools in the SDK: the assembler, the disassembler, and the emulator.

Modules:
    s9b: Location, condition and action tables plus helpers for
         instruction encoding/decoding.

Both the assembler (which encodes instructions) and the emulator and
disassembler (which decode them) use the same definitions, so the word
layout lives in exactly one place.

Usage:
    from s9b_sdk.cpu import (
        SOURCE_LOCATIONS,
        encode_movement,
        immediate_count,
    )
"""

# =============================================================================
# Public API Exports
# =============================================================================

from s9b_sdk.cpu.s9b import (
    # Type tags
    InstructionKind,
    INST_MOVEMENT,
    INST_CONDITION,
    INST_ACTION,
    INST_TYPE,
    # Movement
    SOURCE_FIELD,
    DESTINATION_FIELD,
    IMMEDIATE_SUFFIX,
    SOURCE_LOCATIONS,
    DESTINATION_LOCATIONS,
    SOURCE_NAMES,
    DESTINATION_NAMES,
    VALID_LOCATIONS,
    # Condition
    CONDITION_OR,
    CONDITION_INVERT,
    CONDITION_TARGETS,
    # Action
    ACTIONS,
    ACTION_NAMES,
    ACTION_CODE_FIELD,
    REGISTER_ACTION_FIELD,
    REGISTER_TARGET_FIELD,
    REGISTER_ACTIONS,
    REGISTER_ACTION_NAMES,
    REGISTERS,
    REGISTER_NAMES,
    # Encoding / decoding
    encode_movement,
    encode_condition,
    encode_action,
    encode_register_action,
    instruction_kind,
    source_name,
    destination_name,
    is_immediate,
    immediate_count,
    decode_condition,
    decode_action,
)

__all__ = [
    "InstructionKind",
    "INST_MOVEMENT",
    "INST_CONDITION",
    "INST_ACTION",
    "INST_TYPE",
    "SOURCE_FIELD",
    "DESTINATION_FIELD",
    "IMMEDIATE_SUFFIX",
    "SOURCE_LOCATIONS",
    "DESTINATION_LOCATIONS",
    "SOURCE_NAMES",
    "DESTINATION_NAMES",
    "VALID_LOCATIONS",
    "CONDITION_OR",
    "CONDITION_INVERT",
    "CONDITION_TARGETS",
    "ACTIONS",
    "ACTION_NAMES",
    "ACTION_CODE_FIELD",
    "REGISTER_ACTION_FIELD",
    "REGISTER_TARGET_FIELD",
    "REGISTER_ACTIONS",
    "REGISTER_ACTION_NAMES",
    "REGISTERS",
    "REGISTER_NAMES",
    "encode_movement",
    "encode_condition",
    "encode_action",
    "encode_register_action",
    "instruction_kind",
    "source_name",
    "destination_name",
    "is_immediate",
    "immediate_count",
    "decode_condition",
    "decode_action",
]
