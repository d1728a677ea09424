"""
S9B CPU Components
==================

The building blocks the S9B interpreter is wired from:

- Register: a plain storage cell (instruction buffer, M, N, memory buffer)
- ActionRegister: a register with the in-place operations used by register
  actions (a, b, c, d) and by the PC and stack pointer
- Combinator: a read-only view computing ``op(left, right)`` over two
  registers (the ALU outputs and the stack address adders)
- Memory: the word-addressed main memory

Every component remembers how it was last touched during the current tick
(``R`` read, ``W`` written, or the register action symbol), which trace
renderers use to highlight activity. ``update()`` clears the mark at the
start of each tick.

Copyright (c) 2025 Hugo José Pinto & Contributors
"""

from typing import Callable, Iterable, TYPE_CHECKING

from s9b_sdk.errors import CPURangeError, EmulatorError

if TYPE_CHECKING:
    from .cpu import ComponentId, S9BCPU


# Access marks
MARK_IDLE = " "
MARK_READ = "R"
MARK_WRITE = "W"


class Component:
    """
    Base class for CPU components.

    Attributes:
        label: Human-readable name
        word_size: Number of distinct word values
        mark: Last access during the current tick
    """

    def __init__(self, label: str, word_size: int):
        self.label = label
        self.word_size = word_size
        self.mark = MARK_IDLE

    @property
    def mask(self) -> int:
        return self.word_size - 1

    def update(self) -> None:
        """Start of tick: forget the last access."""
        self.mark = MARK_IDLE

    def reset(self) -> None:
        pass

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.label!r})"


class Register(Component):
    """A single word of storage."""

    def __init__(self, label: str, word_size: int):
        super().__init__(label, word_size)
        self._value = 0

    @property
    def value(self) -> int:
        """Current value, without marking a read."""
        return self._value

    def get_value(self) -> int:
        self.mark = MARK_READ
        return self._value

    def set_value(self, value: int) -> None:
        self.mark = MARK_WRITE
        self._value = value & self.mask

    def reset(self) -> None:
        self._value = 0


class ActionRegister(Register):
    """
    Register with in-place operations.

    All operations wrap into ``[0, word_size)``.
    """

    def increment(self) -> None:
        self._value = (self._value + 1) & self.mask
        self.mark = "+"

    def decrement(self) -> None:
        self._value = (self._value - 1) & self.mask
        self.mark = "-"

    def invert(self) -> None:
        self._value = ~self._value & self.mask
        self.mark = "!"

    def shift_left(self) -> None:
        self._value = (self._value << 1) & self.mask
        self.mark = "<"

    def shift_right(self) -> None:
        self._value = self._value >> 1
        self.mark = ">"

    def apply(self, op: str) -> None:
        """
        Apply a register action by its symbol (``+ - ! < >``).

        Raises:
            EmulatorError: If the symbol is not a register action
        """
        operations: dict[str, Callable[[], None]] = {
            "+": self.increment,
            "-": self.decrement,
            "!": self.invert,
            "<": self.shift_left,
            ">": self.shift_right,
        }
        if op not in operations:
            raise EmulatorError(f"unknown register action '{op}'")
        operations[op]()


class Combinator(Component):
    """
    Computed value over two registers.

    The operands are named by component id and looked up in the owning
    CPU on every evaluation, so the result always reflects the current
    register contents.

    Evaluating a combinator updates the CPU flags: carry is set if the raw
    result fell outside ``[0, word_size)`` (the result is then masked into
    range) and cleared otherwise; zero is set if the masked result is 0.
    """

    def __init__(
        self,
        label: str,
        word_size: int,
        left: "ComponentId",
        right: "ComponentId",
        operation: Callable[[int, int], int],
    ):
        super().__init__(label, word_size)
        self.left = left
        self.right = right
        self.operation = operation

    def evaluate(self, cpu: "S9BCPU") -> int:
        """Read both operands, compute the result and set carry and zero."""
        self.mark = MARK_READ
        result = self.operation(
            cpu.component(self.left).get_value(),
            cpu.component(self.right).get_value(),
        )

        cpu.carry = not 0 <= result < self.word_size
        result &= self.mask
        cpu.zero = result == 0
        return result

    def peek(self, cpu: "S9BCPU") -> int:
        """The masked result, without marking reads or touching flags."""
        return self.operation(
            cpu.component(self.left).value,
            cpu.component(self.right).value,
        ) & self.mask


class Memory(Component):
    """
    Word-addressed memory.

    Out-of-range accesses raise CPURangeError before anything is changed.
    """

    def __init__(self, label: str, word_size: int, size: int):
        super().__init__(label, word_size)
        self.size = size
        self._data = [0] * size
        self.last_address: int | None = None

    def _check(self, address: int) -> None:
        if not 0 <= address < self.size:
            raise CPURangeError(address, self.size)

    def read(self, address: int) -> int:
        self._check(address)
        self.mark = MARK_READ
        self.last_address = address
        return self._data[address]

    def write(self, address: int, value: int) -> None:
        self._check(address)
        self.mark = MARK_WRITE
        self.last_address = address
        self._data[address] = value & self.mask

    def peek(self, address: int) -> int:
        """Read without marking an access."""
        self._check(address)
        return self._data[address]

    def load(self, words: Iterable[int], address: int = 0) -> None:
        """
        Clear memory and copy ``words`` in starting at ``address``.

        Raises:
            CPURangeError: If the words do not fit
        """
        words = list(words)
        if words:
            self._check(address)
            self._check(address + len(words) - 1)
        self._data = [0] * self.size
        for offset, word in enumerate(words):
            self._data[address + offset] = word & self.mask

    def dump(self, address: int = 0, count: int | None = None) -> list[int]:
        """Copy of a memory range (to the end by default)."""
        end = self.size if count is None else min(self.size, address + count)
        return self._data[address:end]

    def update(self) -> None:
        super().update()
        self.last_address = None

    def reset(self) -> None:
        self._data = [0] * self.size
