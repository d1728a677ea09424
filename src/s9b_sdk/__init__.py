"""
S9B SDK - Toolchain for the S9B Nine-Bit Machine
================================================

This package provides an assembler, an interpreter and a disassembler for
S9B, a small educational instruction set with 9-bit words. Every S9B
instruction is one of three kinds: a movement between two locations, a
condition that may skip the next instruction, or an action.

Main Components
---------------
- **assembler**: S9B assembler (s9basm)
    Lexer, hygienic macro expander, parser with nested label scopes and a
    bit-packing linker that places constant data lazily

- **emulator**: S9B interpreter (s9brun)
    A micro-step CPU state machine and a batch driver with breakpoints

- **disassembler**: image words back to source syntax (s9bdisasm)

- **image**: hex and binary program image files

Quick Start
-----------
Assemble and run a program:
    >>> from s9b_sdk import Emulator
    >>> emu = Emulator()
    >>> emu.load_source('''
    ...     a = 2
    ...     b = 3
    ...     out = sum
    ...     !done
    ... ''')
    >>> event = emu.run()
    >>> emu.outputs
    [5]

Or use the command-line tools:
    $ s9basm loop.s9b -o loop.hex -l loop.lst
    $ s9brun loop.hex
    $ s9bdisasm loop.hex

Version History
---------------
1.0.0 - Initial release with assembler, interpreter and disassembler
"""

__version__ = "1.0.0"
__author__ = "Hugo José Pinto & Contributors"

# =============================================================================
# Public API Exports
# =============================================================================
# These are the main classes and functions that users of the library will use.
# We import them here so they can be accessed directly from s9b_sdk.
# =============================================================================

from s9b_sdk.config import MachineConfig
from s9b_sdk.assembler import Assembler, AssembledOutput, assemble, assemble_file
from s9b_sdk.emulator import Emulator, S9BCPU, BreakEvent, BreakReason, MicroState
from s9b_sdk.disassembler import S9BDisassembler, disassemble
from s9b_sdk.image import read_image, write_image
from s9b_sdk.errors import (
    S9BError,
    Span,
    AssemblerError,
    LexError,
    MacroError,
    ParseError,
    LinkError,
    UndefinedLabelError,
    AssemblyFailed,
    InternalError,
    ConfigError,
    ImageError,
    EmulatorError,
    CPUDecodeFault,
    CPURangeError,
)

__all__ = [
    # Version info
    "__version__",
    "__author__",
    # Configuration
    "MachineConfig",
    # Assembler
    "Assembler",
    "AssembledOutput",
    "assemble",
    "assemble_file",
    # Emulator
    "Emulator",
    "S9BCPU",
    "BreakEvent",
    "BreakReason",
    "MicroState",
    # Disassembler
    "S9BDisassembler",
    "disassemble",
    # Images
    "read_image",
    "write_image",
    # Exception hierarchy
    "S9BError",
    "Span",
    "AssemblerError",
    "LexError",
    "MacroError",
    "ParseError",
    "LinkError",
    "UndefinedLabelError",
    "AssemblyFailed",
    "InternalError",
    "ConfigError",
    "ImageError",
    "EmulatorError",
    "CPUDecodeFault",
    "CPURangeError",
]
