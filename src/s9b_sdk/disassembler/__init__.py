"""
S9B SDK Disassembler Module
===========================

This module turns S9B image words back into source syntax, for listings,
the s9bdisasm tool and the emulator's debugging helpers.

Usage:
    from s9b_sdk.disassembler import S9BDisassembler, disassemble

    disasm = S9BDisassembler(symbol_table={10: "end"})
    print(disasm.disassemble_to_text(words))

Copyright (c) 2025-2026 Hugo José Pinto & Contributors
"""

from .s9b import S9BDisassembler, DisassembledInstruction, disassemble

__all__ = [
    "S9BDisassembler",
    "DisassembledInstruction",
    "disassemble",
]
