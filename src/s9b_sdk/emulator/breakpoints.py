"""
Breakpoints for the S9B Emulator
================================

PC breakpoints and the BreakEvent that reports why a run stopped.

A PC breakpoint stops execution when the CPU is about to fetch the
instruction at the breakpoint address, before that instruction runs.

Example usage:

    >>> from s9b_sdk.emulator import Emulator, BreakReason
    >>> emu = Emulator()
    >>> emu.load_source(source)
    >>> emu.breakpoints.add_breakpoint(4)
    >>> event = emu.run()
    >>> if event.reason == BreakReason.PC_BREAKPOINT:
    ...     print(f"Hit breakpoint at {event.address}")

Copyright (c) 2025 Hugo José Pinto & Contributors
"""

from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional, Set, List


class BreakReason(Enum):
    """
    Enumeration of reasons why execution stopped.

    Used in BreakEvent to indicate what triggered the break.
    """
    NONE = auto()           # Not started (never reset)
    DONE = auto()           # Program executed !done
    PAUSED = auto()         # Program executed !pause
    HALTED = auto()         # Program executed !halt
    FAULT = auto()          # Decode fault or memory range error
    PC_BREAKPOINT = auto()  # PC reached a breakpoint address
    MAX_TICKS = auto()      # Tick budget exhausted


@dataclass
class BreakEvent:
    """
    Information about why execution stopped.

    Attributes:
        reason: Why execution stopped
        address: PC at the time of the break (if applicable)
        message: Human-readable description
    """
    reason: BreakReason
    address: Optional[int] = None
    message: str = ""

    @property
    def resumable(self) -> bool:
        """True if the run can continue (pause, done, breakpoint or tick budget)."""
        return self.reason in (
            BreakReason.DONE,
            BreakReason.PAUSED,
            BreakReason.PC_BREAKPOINT,
            BreakReason.MAX_TICKS,
        )

    def __str__(self) -> str:
        """Return human-readable description."""
        if self.message:
            return self.message
        match self.reason:
            case BreakReason.DONE:
                return "Done"
            case BreakReason.PAUSED:
                return "Paused"
            case BreakReason.HALTED:
                return "Halted"
            case BreakReason.FAULT:
                return "Fault"
            case BreakReason.PC_BREAKPOINT:
                return f"Breakpoint at {self.address}" if self.address is not None else "Breakpoint"
            case BreakReason.MAX_TICKS:
                return "Maximum ticks reached"
            case _:
                return "Not running"


class BreakpointManager:
    """
    Manages PC breakpoints.

    The emulator calls check_fetch() before every fetch step; a hit is
    recorded as the last event.

    Example:
        >>> mgr = BreakpointManager()
        >>> mgr.add_breakpoint(12)
        >>> mgr.check_fetch(12).reason
        <BreakReason.PC_BREAKPOINT: 6>
    """

    def __init__(self):
        """Initialize empty breakpoint manager."""
        self._pc_breakpoints: Set[int] = set()

        # Last break event (for inspection after break)
        self._last_event: Optional[BreakEvent] = None

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def last_event(self) -> Optional[BreakEvent]:
        """Get the last breakpoint hit."""
        return self._last_event

    @property
    def breakpoint_count(self) -> int:
        """Number of active PC breakpoints."""
        return len(self._pc_breakpoints)

    # =========================================================================
    # PC Breakpoints
    # =========================================================================

    def add_breakpoint(self, address: int) -> None:
        """
        Add PC breakpoint at address.

        Execution will stop when PC reaches this address, before the
        instruction at that address is executed.
        """
        self._pc_breakpoints.add(address)

    def remove_breakpoint(self, address: int) -> None:
        """Remove PC breakpoint at address."""
        self._pc_breakpoints.discard(address)

    def has_breakpoint(self, address: int) -> bool:
        """Check if breakpoint exists at address."""
        return address in self._pc_breakpoints

    def clear_breakpoints(self) -> None:
        """Remove all PC breakpoints."""
        self._pc_breakpoints.clear()
        self._last_event = None

    def list_breakpoints(self) -> List[int]:
        """
        Get list of all breakpoint addresses.

        Returns:
            Sorted list of breakpoint addresses
        """
        return sorted(self._pc_breakpoints)

    # =========================================================================
    # Check Functions (called by the emulator)
    # =========================================================================

    def check_fetch(self, pc: int) -> Optional[BreakEvent]:
        """
        Check if we should break before fetching at ``pc``.

        Returns:
            The break event, or None to continue
        """
        if pc in self._pc_breakpoints:
            self._last_event = BreakEvent(
                BreakReason.PC_BREAKPOINT,
                address=pc,
                message=f"Breakpoint at {pc}",
            )
            return self._last_event
        return None
