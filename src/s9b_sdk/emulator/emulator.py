"""
S9B Emulator - Batch Driver
===========================

This module provides the `Emulator` class, which wraps an S9BCPU with the
conveniences needed to run whole programs from scripts, tests and the
command line:

- Program loading from source text, assembled output or raw words
- Execution control (step, run with a tick budget, resume)
- PC breakpoints via BreakpointManager
- A bounded trace of every tick's messages
- Memory and register inspection

The CPU itself only ever performs one micro-step per tick; the driver is
the caller that owns the loop.

Example usage:
    >>> from s9b_sdk.emulator import Emulator
    >>> emu = Emulator()
    >>> emu.load_source('''
    ...     a = 5
    ...     b = a
    ... loop:
    ...     ?b pc = :end
    ...     -b
    ...     out = b
    ...     pc = :loop
    ... end:
    ...     !done
    ... ''')
    >>> event = emu.run()
    >>> event.reason
    <BreakReason.DONE: 2>
    >>> emu.outputs
    [4, 3, 2, 1, 0]

Copyright (c) 2025 Hugo José Pinto & Contributors
"""

from collections import deque
from typing import Optional, Union, List
import logging

from s9b_sdk.config import MachineConfig
from s9b_sdk.assembler import Assembler
from s9b_sdk.assembler.codegen import AssembledOutput
from s9b_sdk.disassembler import disassemble

from .breakpoints import BreakpointManager, BreakEvent, BreakReason
from .cpu import MicroState, S9BCPU

logger = logging.getLogger(__name__)


class Emulator:
    """
    S9B emulator with breakpoint and trace support.

    Attributes:
        config: The MachineConfig used to initialize this instance
        cpu: The S9BCPU instance (accessible for micro-step control)
        breakpoints: The breakpoint manager
        program: The assembled output last loaded from source, if any
    """

    def __init__(self, config: Optional[MachineConfig] = None):
        """
        Initialize the emulator.

        Args:
            config: Machine configuration (defaults to the 9-bit machine)

        Raises:
            ConfigError: If the configuration is invalid
        """
        self.config = (config or MachineConfig()).validate()
        self.cpu = S9BCPU(self.config)
        self.breakpoints = BreakpointManager()
        self.program: Optional[AssembledOutput] = None

        self._trace: deque[str] = deque(maxlen=self.config.trace_limit)
        self._total_ticks = 0

    # =========================================================================
    # Program Loading
    # =========================================================================

    def load_source(self, source: str, filename: str = "<input>") -> AssembledOutput:
        """
        Assemble source text, load it and reset.

        Raises:
            AssemblyFailed: If the source does not assemble
        """
        output = Assembler(self.config).assemble_string(source, filename)
        self.load_program(output)
        return output

    def load_program(self, program: Union[AssembledOutput, List[int]]) -> None:
        """
        Load an assembled program or raw image words and reset.

        Raises:
            CPURangeError: If the image is larger than memory
        """
        self.program = program if isinstance(program, AssembledOutput) else None
        self.cpu.load_program(program)
        self.reset()

    def reset(self) -> None:
        """Reset the CPU (memory is kept) and clear the trace."""
        self.cpu.reset()
        self._trace.clear()
        self._total_ticks = 0
        logger.debug("Emulator reset")

    # =========================================================================
    # Execution Control
    # =========================================================================

    def step(self) -> List[str]:
        """
        Perform one CPU tick.

        Returns:
            The tick's trace messages
        """
        state = self.cpu.state_name
        messages = self.cpu.tick()
        if self.cpu.running or messages:
            self._total_ticks += 1
        for message in messages:
            self._trace.append(f"{self._total_ticks:6d} {state:20s} {message}")
        return messages

    def run(self, max_ticks: Optional[int] = None) -> BreakEvent:
        """
        Run until the program stops, a breakpoint is hit or the tick budget
        is spent.

        A breakpoint at the current PC does not fire on the first tick of a
        run, so calling run() again continues past it.

        Args:
            max_ticks: Tick budget (defaults to config.max_ticks)

        Returns:
            BreakEvent describing why execution stopped
        """
        limit = self.config.max_ticks if max_ticks is None else max_ticks

        for tick in range(limit):
            if not self.cpu.running:
                break
            if tick and self.cpu.state is MicroState.FETCH:
                event = self.breakpoints.check_fetch(self.cpu.pc)
                if event is not None:
                    logger.debug(f"Breakpoint at {self.cpu.pc}")
                    return event
            self.step()

        if self.cpu.running:
            return BreakEvent(
                BreakReason.MAX_TICKS,
                address=self.cpu.pc,
                message=f"Reached max ticks ({limit})",
            )
        return self._stop_event()

    def resume(self, max_ticks: Optional[int] = None) -> BreakEvent:
        """
        Resume after ``!done`` or ``!pause`` and run on.

        Returns:
            BreakEvent describing why execution stopped again
        """
        self.cpu.resume()
        return self.run(max_ticks)

    def _stop_event(self) -> BreakEvent:
        """Describe why the CPU is not running."""
        state = self.cpu.state
        address = self.cpu.pc
        if state is MicroState.DONE:
            return BreakEvent(BreakReason.DONE, address=address)
        if state is MicroState.PAUSE:
            return BreakEvent(BreakReason.PAUSED, address=address)
        if state is MicroState.HALTED and self.cpu.last_fault is not None:
            return BreakEvent(BreakReason.FAULT, address=address, message=str(self.cpu.last_fault))
        if state is MicroState.HALTED:
            return BreakEvent(BreakReason.HALTED, address=address)
        return BreakEvent(BreakReason.NONE)

    # =========================================================================
    # Breakpoint Management (delegates to BreakpointManager)
    # =========================================================================

    def add_breakpoint(self, address: int) -> None:
        """Add a PC breakpoint at the specified address."""
        self.breakpoints.add_breakpoint(address)

    def add_breakpoint_at_label(self, label: str) -> int:
        """
        Add a PC breakpoint at a label of the loaded program.

        Returns:
            The breakpoint address

        Raises:
            KeyError: If no program was loaded from source or the label is unknown
        """
        address = self.program.address_of(label) if self.program is not None else None
        if address is None:
            raise KeyError(f"unknown label '{label}'")
        self.breakpoints.add_breakpoint(address)
        return address

    def remove_breakpoint(self, address: int) -> None:
        """Remove a PC breakpoint at the specified address."""
        self.breakpoints.remove_breakpoint(address)

    def clear_breakpoints(self) -> None:
        """Remove all breakpoints."""
        self.breakpoints.clear_breakpoints()

    # =========================================================================
    # Inspection
    # =========================================================================

    @property
    def outputs(self) -> List[int]:
        """Values written to ``out`` since the last reset."""
        return list(self.cpu.outputs)

    @property
    def trace(self) -> List[str]:
        """The most recent trace lines (bounded by config.trace_limit)."""
        return list(self._trace)

    @property
    def total_ticks(self) -> int:
        return self._total_ticks

    @property
    def is_running(self) -> bool:
        return self.cpu.running

    @property
    def registers(self) -> dict:
        """
        Get current register values and flags.

        Returns:
            Dictionary with keys: a, b, c, d, m, n, pc, sp, zero, carry, skip, state
        """
        return {
            "a": self.cpu.register_value("a"),
            "b": self.cpu.register_value("b"),
            "c": self.cpu.register_value("c"),
            "d": self.cpu.register_value("d"),
            "m": self.cpu.register_value("m"),
            "n": self.cpu.register_value("n"),
            "pc": self.cpu.pc,
            "sp": self.cpu.sp,
            "zero": self.cpu.zero,
            "carry": self.cpu.carry,
            "skip": self.cpu.skip,
            "state": self.cpu.state_name,
        }

    def read_word(self, address: int) -> int:
        """
        Read a word from memory without marking an access.

        Raises:
            CPURangeError: If the address is outside memory
        """
        return self.cpu.memory.peek(address)

    def read_words(self, address: int, count: int) -> List[int]:
        """Read a range of memory words."""
        return self.cpu.memory.dump(address, count)

    def write_word(self, address: int, value: int) -> None:
        """
        Write a word to memory.

        Raises:
            CPURangeError: If the address is outside memory
        """
        self.cpu.memory.write(address, value)

    def disassemble_at(self, address: int, count: int = 10) -> List[str]:
        """
        Disassemble instructions from memory.

        Returns:
            Lines formatted as ``address: words  text``
        """
        words = self.cpu.memory.dump()
        return [str(instruction) for instruction in disassemble(words, address, count)]

    def __repr__(self) -> str:
        return (
            f"Emulator(state={self.cpu.state_name}, pc={self.cpu.pc}, "
            f"ticks={self._total_ticks}, outputs={len(self.cpu.outputs)})"
        )
