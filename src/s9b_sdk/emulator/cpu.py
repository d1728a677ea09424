"""
S9B CPU Interpreter
===================

A micro-step interpreter for the S9B machine. Each call to ``tick()``
performs exactly one transition of the micro-state machine and returns
the trace messages for that step; the interpreter never loops, sleeps or
blocks on its own, the caller owns the cadence.

Micro-States
------------
```
reset ──> fetch ──> condition ──────────────────────────────> finish
            │  ├──> action ───────────────────────────────> finish
            │  │       └──> done / pause / halted (stops running)
            │  └──> movement ─┬─> inp_arg ─> inp_arg+1 ─┐
            │                 ├─> out_arg ─> out_arg+1 ─┤
            │                 └─────────────────────────┴─> movement/fetch
            │                        movement/move ─> (flush) ─> finish
            └──> skip2 ─> skip1 ─> finish           (pc writes go to fetch)
finish ──> fetch  (pc + 1)
```

A false condition sets the skip flag. The next fetch then consumes the
following instruction together with its immediate words without
executing it.

Flags
-----
- running: ticks do nothing while False
- skip: the next fetched instruction is skipped
- carry, zero: set by every combinator evaluation, including the stack
  address adders

Faults
------
An invalid instruction or an out-of-range memory access stops execution:
``running`` goes False, the state becomes ``halted``, an ``[ERR]`` message
is emitted and the exception is kept in ``last_fault``. ``reset()`` always
recovers.

Example:
    >>> from s9b_sdk.assembler import assemble
    >>> cpu = S9BCPU()
    >>> cpu.load_program(assemble("a = 7  out = a  !done"))
    >>> cpu.reset()
    >>> while cpu.running:
    ...     _ = cpu.tick()
    >>> cpu.outputs
    [7]

Copyright (c) 2025 Hugo José Pinto & Contributors
"""

from enum import Enum
from typing import Callable, Optional, Union
import logging

from s9b_sdk.config import MachineConfig
from s9b_sdk.errors import CPUDecodeFault, CPURangeError, EmulatorError
from s9b_sdk.assembler.codegen import AssembledOutput
from s9b_sdk.cpu import (
    InstructionKind,
    decode_action,
    decode_condition,
    destination_name,
    immediate_count,
    instruction_kind,
    is_immediate,
    source_name,
)

from .components import ActionRegister, Combinator, Component, Memory, Register

logger = logging.getLogger(__name__)


class MicroState(Enum):
    """Interpreter micro-states, valued by their trace names."""
    RESET = "reset"
    FETCH = "fetch"
    SKIP2 = "skip2"
    SKIP1 = "skip1"
    CONDITION = "condition"
    ACTION = "action"
    DONE = "done"
    PAUSE = "pause"
    HALTED = "halted"
    MOVEMENT = "movement"
    INPUT_ARGUMENT = "movement/inp_arg"
    INPUT_ARGUMENT_LOAD = "movement/inp_arg+1"
    OUTPUT_ARGUMENT = "movement/out_arg"
    OUTPUT_ARGUMENT_LOAD = "movement/out_arg+1"
    MOVEMENT_FETCH = "movement/fetch"
    MOVEMENT_MOVE = "movement/move"
    MOVEMENT_FLUSH = "movement/flush"
    FINISH = "finish"


# States a stopped CPU can be resumed from
RESUMABLE_STATES = (MicroState.DONE, MicroState.PAUSE)


class ComponentId(Enum):
    """Fixed component registry keys, valued by display label."""
    INSTRUCTION_BUFFER = "Instruction Buffer"
    A = "A Register"
    B = "B Register"
    C = "C Register"
    D = "D Register"
    ADDER = "Adder"
    SUBTRACTOR = "Subtractor"
    AND = "Bitwise AND"
    OR = "Bitwise OR"
    XOR = "Bitwise XOR"
    PC = "PC"
    M = "M Register"
    N = "N Register"
    STACK_POINTER = "Stack Register"
    STACK_READ_ADDRESS = "Stack Read Address"
    STACK_WRITE_ADDRESS = "Stack Write Address"
    MEMORY_BUFFER = "Memory Buffer"
    MEMORY = "Memory"


# Register-valued locations, by location name
REGISTER_IDS = {
    "a": ComponentId.A,
    "b": ComponentId.B,
    "c": ComponentId.C,
    "d": ComponentId.D,
    "m": ComponentId.M,
    "n": ComponentId.N,
}

# ALU sources, by location name
COMBINATOR_IDS = {
    "sum": ComponentId.ADDER,
    "sub": ComponentId.SUBTRACTOR,
    "and": ComponentId.AND,
    "or": ComponentId.OR,
    "xor": ComponentId.XOR,
}

# Sources that go through the memory buffer
MEMORY_SOURCES = ("mem", "mem$")
STACK_SOURCES = ("stack", "stack$")

# Destinations committed by the flush stage
MEMORY_DESTINATIONS = ("mem", "mem$")
FLUSH_DESTINATIONS = ("mem", "mem$", "stack", "stack$", "push")


class S9BCPU:
    """
    S9B micro-step interpreter.

    Attributes:
        config: Machine configuration (word width, memory size)
        state: Current MicroState
        running: Whether ticks advance the machine
        skip: Skip the next fetched instruction
        zero: Zero flag
        carry: Carry flag
        outputs: Every value written to ``out``, in order
        last_fault: The fault that stopped execution, if any
    """

    def __init__(self, config: Optional[MachineConfig] = None):
        """
        Build the component registry.

        Args:
            config: Machine configuration (defaults to the 9-bit machine)

        Raises:
            ConfigError: If the configuration is invalid
        """
        self.config = (config or MachineConfig()).validate()
        word_size = self.config.word_size

        self._components: dict[ComponentId, Component] = {
            ComponentId.INSTRUCTION_BUFFER: Register(ComponentId.INSTRUCTION_BUFFER.value, word_size),
            ComponentId.A: ActionRegister(ComponentId.A.value, word_size),
            ComponentId.B: ActionRegister(ComponentId.B.value, word_size),
            ComponentId.C: ActionRegister(ComponentId.C.value, word_size),
            ComponentId.D: ActionRegister(ComponentId.D.value, word_size),
            ComponentId.ADDER: Combinator(
                ComponentId.ADDER.value, word_size, ComponentId.A, ComponentId.B, lambda a, b: a + b
            ),
            ComponentId.SUBTRACTOR: Combinator(
                ComponentId.SUBTRACTOR.value, word_size, ComponentId.A, ComponentId.B, lambda a, b: a - b
            ),
            ComponentId.AND: Combinator(
                ComponentId.AND.value, word_size, ComponentId.A, ComponentId.B, lambda a, b: a & b
            ),
            ComponentId.OR: Combinator(
                ComponentId.OR.value, word_size, ComponentId.A, ComponentId.B, lambda a, b: a | b
            ),
            ComponentId.XOR: Combinator(
                ComponentId.XOR.value, word_size, ComponentId.A, ComponentId.B, lambda a, b: a ^ b
            ),
            ComponentId.PC: ActionRegister(ComponentId.PC.value, word_size),
            ComponentId.M: Register(ComponentId.M.value, word_size),
            ComponentId.N: Register(ComponentId.N.value, word_size),
            ComponentId.STACK_POINTER: ActionRegister(ComponentId.STACK_POINTER.value, word_size),
            ComponentId.STACK_READ_ADDRESS: Combinator(
                ComponentId.STACK_READ_ADDRESS.value, word_size,
                ComponentId.STACK_POINTER, ComponentId.M, lambda a, b: a + b,
            ),
            ComponentId.STACK_WRITE_ADDRESS: Combinator(
                ComponentId.STACK_WRITE_ADDRESS.value, word_size,
                ComponentId.STACK_POINTER, ComponentId.N, lambda a, b: a + b,
            ),
            ComponentId.MEMORY_BUFFER: Register(ComponentId.MEMORY_BUFFER.value, word_size),
            ComponentId.MEMORY: Memory(ComponentId.MEMORY.value, word_size, self.config.memory_size),
        }

        self._handlers: dict[MicroState, Callable[[list[str]], MicroState]] = {
            MicroState.RESET: self._reset,
            MicroState.FETCH: self._fetch,
            MicroState.SKIP2: self._skip2,
            MicroState.SKIP1: self._skip1,
            MicroState.CONDITION: self._condition,
            MicroState.ACTION: self._action,
            MicroState.DONE: self._resumed,
            MicroState.PAUSE: self._resumed,
            MicroState.HALTED: self._halted,
            MicroState.MOVEMENT: self._movement,
            MicroState.INPUT_ARGUMENT: self._input_argument,
            MicroState.INPUT_ARGUMENT_LOAD: self._input_argument_load,
            MicroState.OUTPUT_ARGUMENT: self._output_argument,
            MicroState.OUTPUT_ARGUMENT_LOAD: self._output_argument_load,
            MicroState.MOVEMENT_FETCH: self._movement_fetch,
            MicroState.MOVEMENT_MOVE: self._movement_move,
            MicroState.MOVEMENT_FLUSH: self._movement_flush,
            MicroState.FINISH: self._finish,
        }

        self.state = MicroState.RESET
        self.running = False
        self.skip = False
        self.zero = False
        self.carry = False
        self.outputs: list[int] = []
        self.last_fault: Optional[EmulatorError] = None

    # =========================================================================
    # Component Access
    # =========================================================================

    def component(self, component_id: ComponentId) -> Component:
        return self._components[component_id]

    @property
    def components(self) -> dict[ComponentId, Component]:
        return dict(self._components)

    def _register(self, component_id: ComponentId) -> ActionRegister:
        return self._components[component_id]  # type: ignore[return-value]

    def _combinator(self, component_id: ComponentId) -> Combinator:
        return self._components[component_id]  # type: ignore[return-value]

    @property
    def memory(self) -> Memory:
        return self._components[ComponentId.MEMORY]  # type: ignore[return-value]

    @property
    def pc(self) -> int:
        return self._register(ComponentId.PC).value

    @property
    def sp(self) -> int:
        return self._register(ComponentId.STACK_POINTER).value

    @property
    def state_name(self) -> str:
        return self.state.value

    def register_value(self, name: str) -> int:
        """Value of a register by location name (a, b, c, d, m, n)."""
        return self._register(REGISTER_IDS[name]).value

    def component_values(self) -> dict[str, int]:
        """
        Current value of every register and combinator, by display label.

        Reading values this way marks nothing and leaves the flags alone.
        """
        values = {}
        for component_id, component in self._components.items():
            if isinstance(component, Register):
                values[component.label] = component.value
            elif isinstance(component, Combinator):
                values[component.label] = component.peek(self)
        return values

    def component_marks(self) -> dict[str, str]:
        """How each component was touched during the last tick."""
        return {component.label: component.mark for component in self._components.values()}

    # =========================================================================
    # Control
    # =========================================================================

    def load_program(self, program: Union[AssembledOutput, list[int]]) -> None:
        """
        Clear memory and copy a program image in at address 0.

        Raises:
            CPURangeError: If the image is larger than memory
        """
        words = program.words if isinstance(program, AssembledOutput) else program
        self.memory.load(words)
        logger.debug(f"Loaded {len(words)} words")

    def reset(self) -> None:
        """
        Reset registers and flags and start running from the reset state.

        Memory is left untouched. The next tick performs the reset step.
        """
        for component in self._components.values():
            if not isinstance(component, Memory):
                component.reset()
        self.state = MicroState.RESET
        self.running = True
        self.skip = False
        self.zero = False
        self.carry = False
        self.outputs = []
        self.last_fault = None

    def resume(self) -> bool:
        """
        Continue after ``!done`` or ``!pause``.

        Returns:
            True if the CPU was resumable and is running again
        """
        if self.running or self.state not in RESUMABLE_STATES:
            return False
        self.running = True
        return True

    def tick(self) -> list[str]:
        """
        Perform one micro-step.

        Returns:
            Trace messages for the step (empty when not running)
        """
        for component in self._components.values():
            component.update()

        messages: list[str] = []
        if not self.running:
            return messages

        try:
            self.state = self._handlers[self.state](messages)
        except (CPUDecodeFault, CPURangeError) as fault:
            self._fault(fault, messages)
        return messages

    def _fault(self, fault: EmulatorError, messages: list[str]) -> None:
        logger.warning(f"CPU fault in {self.state_name}: {fault}")
        self.last_fault = fault
        self.running = False
        self.state = MicroState.HALTED
        messages.append(f"[ERR] {fault}")

    # =========================================================================
    # Micro-State Handlers
    # =========================================================================

    def _reset(self, messages: list[str]) -> MicroState:
        self._register(ComponentId.PC).set_value(0)
        self._register(ComponentId.STACK_POINTER).set_value(self.memory.size - 1)
        messages.append("[OUT] Reset")
        return MicroState.FETCH

    def _fetch(self, messages: list[str]) -> MicroState:
        address = self._register(ComponentId.PC).get_value()
        word = self.memory.read(address)
        self._register(ComponentId.INSTRUCTION_BUFFER).set_value(word)

        if self.skip:
            self.skip = False
            messages.append(f"[INT] Fetched inst {word} from {address}, skipped")
            return (MicroState.FINISH, MicroState.SKIP1, MicroState.SKIP2)[immediate_count(word)]

        kind = instruction_kind(word)
        if kind is None or (kind is InstructionKind.MOVEMENT and destination_name(word) is None):
            raise CPUDecodeFault(word, address)

        messages.append(f"[INT] Fetched inst {word} from {address}, is {kind.value}")
        return {
            InstructionKind.MOVEMENT: MicroState.MOVEMENT,
            InstructionKind.CONDITION: MicroState.CONDITION,
            InstructionKind.ACTION: MicroState.ACTION,
        }[kind]

    def _skip2(self, messages: list[str]) -> MicroState:
        self._register(ComponentId.PC).increment()
        return MicroState.SKIP1

    def _skip1(self, messages: list[str]) -> MicroState:
        self._register(ComponentId.PC).increment()
        return MicroState.FINISH

    def _condition(self, messages: list[str]) -> MicroState:
        invert, any_of, targets = decode_condition(
            self._register(ComponentId.INSTRUCTION_BUFFER).get_value()
        )
        results = [self._test(target) for target in targets]
        met = any(results) if any_of else all(results)
        if invert:
            met = not met

        if met:
            messages.append("[RUN] Condition met")
        else:
            messages.append("[RUN] Condition not met")
            self.skip = True
        return MicroState.FINISH

    def _test(self, target: str) -> bool:
        """Evaluate one condition target."""
        if target == "Z":
            return self.zero
        if target == "C":
            return self.carry
        return self._register(REGISTER_IDS[target]).get_value() == 0

    def _action(self, messages: list[str]) -> MicroState:
        word = self._register(ComponentId.INSTRUCTION_BUFFER).get_value()
        decoded = decode_action(word)
        if decoded is None:
            raise CPUDecodeFault(word, self.pc, f"invalid action {word} at address {self.pc}")

        name, register = decoded
        if register is not None:
            self._register(REGISTER_IDS[register]).apply(name)
            messages.append(f"[RUN] {name}{register}")
            return MicroState.FINISH

        if name == "pop":
            self._register(ComponentId.STACK_POINTER).increment()
            messages.append("[RUN] Popped stack")
            return MicroState.FINISH

        self.running = False
        if name == "done":
            messages.append("[OUT] Done")
            return MicroState.DONE
        if name == "pause":
            messages.append("[OUT] Paused")
            return MicroState.PAUSE
        messages.append("[OUT] Halted")
        return MicroState.HALTED

    def _resumed(self, messages: list[str]) -> MicroState:
        messages.append("[RUN] Resumed")
        return MicroState.FINISH

    def _halted(self, messages: list[str]) -> MicroState:
        self.running = False
        return MicroState.HALTED

    def _movement(self, messages: list[str]) -> MicroState:
        word = self._register(ComponentId.INSTRUCTION_BUFFER).get_value()
        if is_immediate(source_name(word)):
            return MicroState.INPUT_ARGUMENT
        if is_immediate(destination_name(word)):
            return MicroState.OUTPUT_ARGUMENT
        return MicroState.MOVEMENT_FETCH

    def _input_argument(self, messages: list[str]) -> MicroState:
        self._register(ComponentId.PC).increment()
        messages.append("[INT] Loading input argument")
        return MicroState.INPUT_ARGUMENT_LOAD

    def _input_argument_load(self, messages: list[str]) -> MicroState:
        value = self.memory.read(self._register(ComponentId.PC).get_value())
        self._register(ComponentId.M).set_value(value)
        messages.append(f"[INT] Loaded {value} into M")

        word = self._register(ComponentId.INSTRUCTION_BUFFER).get_value()
        if is_immediate(destination_name(word)):
            return MicroState.OUTPUT_ARGUMENT
        return MicroState.MOVEMENT_FETCH

    def _output_argument(self, messages: list[str]) -> MicroState:
        self._register(ComponentId.PC).increment()
        messages.append("[INT] Loading output argument")
        return MicroState.OUTPUT_ARGUMENT_LOAD

    def _output_argument_load(self, messages: list[str]) -> MicroState:
        value = self.memory.read(self._register(ComponentId.PC).get_value())
        self._register(ComponentId.N).set_value(value)
        messages.append(f"[INT] Loaded {value} into N")
        return MicroState.MOVEMENT_FETCH

    def _movement_fetch(self, messages: list[str]) -> MicroState:
        source = source_name(self._register(ComponentId.INSTRUCTION_BUFFER).get_value())

        if source in MEMORY_SOURCES:
            address = self._register(ComponentId.M).get_value()
        elif source in STACK_SOURCES:
            address = self._combinator(ComponentId.STACK_READ_ADDRESS).evaluate(self)
        else:
            return MicroState.MOVEMENT_MOVE

        value = self.memory.read(address)
        self._register(ComponentId.MEMORY_BUFFER).set_value(value)
        messages.append(f"[INT] Loaded value {value} from {address} to memory buffer")
        return MicroState.MOVEMENT_MOVE

    def _read_source(self, source: str) -> int:
        """Value of a movement source, after any memory fetch."""
        if source in MEMORY_SOURCES or source in STACK_SOURCES:
            return self._register(ComponentId.MEMORY_BUFFER).get_value()
        if source == "$":
            return self._register(ComponentId.M).get_value()
        if source == "stackptr$":
            return self._combinator(ComponentId.STACK_READ_ADDRESS).evaluate(self)
        if source in COMBINATOR_IDS:
            return self._combinator(COMBINATOR_IDS[source]).evaluate(self)
        if source in REGISTER_IDS:
            return self._register(REGISTER_IDS[source]).get_value()
        return 0  # zero

    def _movement_move(self, messages: list[str]) -> MicroState:
        word = self._register(ComponentId.INSTRUCTION_BUFFER).get_value()
        source = source_name(word)
        destination = destination_name(word)
        value = self._read_source(source)
        messages.append(f"[RUN] Moved {value} from {source} to {destination}")

        if destination in FLUSH_DESTINATIONS:
            self._register(ComponentId.MEMORY_BUFFER).set_value(value)
            if destination == "push":
                self._register(ComponentId.STACK_POINTER).decrement()
                self._register(ComponentId.N).set_value(0)
            return MicroState.MOVEMENT_FLUSH

        if destination == "pc":
            self._register(ComponentId.PC).set_value(value)
            return MicroState.FETCH

        if destination == "out":
            self.outputs.append(value)
            messages.append(f"[OUT] Output {value}")
        elif destination in REGISTER_IDS:
            self._register(REGISTER_IDS[destination]).set_value(value)
        # nul discards the value
        return MicroState.FINISH

    def _movement_flush(self, messages: list[str]) -> MicroState:
        destination = destination_name(self._register(ComponentId.INSTRUCTION_BUFFER).get_value())

        if destination in MEMORY_DESTINATIONS:
            address = self._register(ComponentId.N).get_value()
            where = f"{address}"
        else:
            address = self._combinator(ComponentId.STACK_WRITE_ADDRESS).evaluate(self)
            where = f"stack at {address}"

        value = self._register(ComponentId.MEMORY_BUFFER).get_value()
        self.memory.write(address, value)
        messages.append(f"[INT] Saved value {value} into {where}")
        return MicroState.FINISH

    def _finish(self, messages: list[str]) -> MicroState:
        self._register(ComponentId.PC).increment()
        return MicroState.FETCH

    def __repr__(self) -> str:
        return (
            f"S9BCPU(state={self.state_name}, pc={self.pc}, sp={self.sp}, "
            f"running={self.running}, skip={self.skip}, zero={self.zero}, carry={self.carry})"
        )
