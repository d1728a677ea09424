"""
S9B Emulator
============

A micro-step interpreter for the S9B machine plus a batch driver.

Quick Start
-----------

Basic usage::

    >>> from s9b_sdk.emulator import Emulator
    >>> emu = Emulator()
    >>> emu.load_source("a = 3  out = a  !done")
    >>> emu.run().reason
    <BreakReason.DONE: 2>
    >>> emu.outputs
    [3]

Micro-stepping::

    >>> from s9b_sdk.emulator import S9BCPU
    >>> cpu = S9BCPU()
    >>> cpu.load_program(words)
    >>> cpu.reset()
    >>> cpu.tick()
    ['[OUT] Reset']
    >>> cpu.state_name
    'fetch'

Module Structure
----------------

- `emulator.py`: Emulator batch driver (run, step, breakpoints, trace)
- `cpu.py`: S9BCPU micro-state machine
- `components.py`: registers, ALU combinators and memory
- `breakpoints.py`: PC breakpoints and break events

Copyright (c) 2025 Hugo José Pinto & Contributors
"""

# Main entry point
from .emulator import Emulator

# CPU
from .cpu import S9BCPU, MicroState, ComponentId, RESUMABLE_STATES

# Components
from .components import ActionRegister, Combinator, Component, Memory, Register

# Debugging support
from .breakpoints import (
    BreakpointManager,
    BreakEvent,
    BreakReason,
)

__all__ = [
    # Main API
    "Emulator",

    # CPU
    "S9BCPU",
    "MicroState",
    "ComponentId",
    "RESUMABLE_STATES",

    # Components
    "Component",
    "Register",
    "ActionRegister",
    "Combinator",
    "Memory",

    # Debugging
    "BreakpointManager",
    "BreakEvent",
    "BreakReason",
]
