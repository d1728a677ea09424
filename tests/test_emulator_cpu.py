"""
S9B CPU Unit Tests
==================

Tests for the micro-step interpreter, covering:
- The reset step and the micro-state sequence of a movement
- Conditions and skipping (including immediate words of skipped instructions)
- Register and control actions
- Memory and stack addressing
- Decode and range faults
- Stopping and resuming

Copyright (c) 2025 Hugo José Pinto & Contributors
"""

import pytest
from s9b_sdk.assembler import assemble
from s9b_sdk.config import MachineConfig
from s9b_sdk.emulator import S9BCPU, MicroState
from s9b_sdk.errors import CPUDecodeFault, CPURangeError


# =============================================================================
# Helpers
# =============================================================================

def boot(program, config: MachineConfig = None) -> S9BCPU:
    """Load source text or raw words and reset."""
    cpu = S9BCPU(config)
    cpu.load_program(assemble(program) if isinstance(program, str) else program)
    cpu.reset()
    return cpu


def run(cpu: S9BCPU, limit: int = 10_000) -> list[str]:
    """Tick until the CPU stops, collecting messages."""
    messages = []
    while cpu.running and limit:
        messages.extend(cpu.tick())
        limit -= 1
    return messages


def run_states(cpu: S9BCPU, limit: int = 10_000) -> list[MicroState]:
    """Tick until the CPU stops, collecting the state after each tick."""
    states = []
    while cpu.running and limit:
        cpu.tick()
        states.append(cpu.state)
        limit -= 1
    return states


def outputs(source: str) -> list[int]:
    cpu = boot(source)
    run(cpu)
    return cpu.outputs


# =============================================================================
# Reset and Sequencing
# =============================================================================

class TestReset:

    def test_new_cpu_is_idle(self):
        cpu = S9BCPU()
        assert cpu.state is MicroState.RESET
        assert not cpu.running
        assert cpu.tick() == []
        assert cpu.state is MicroState.RESET

    def test_reset_step(self):
        cpu = boot([66])
        assert cpu.state is MicroState.RESET
        assert cpu.tick() == ["[OUT] Reset"]
        assert cpu.state is MicroState.FETCH
        assert cpu.pc == 0
        assert cpu.sp == 255

    def test_stack_pointer_follows_memory_size(self):
        cpu = boot([66], MachineConfig(memory_size=16))
        cpu.tick()
        assert cpu.sp == 15

    def test_reset_keeps_memory(self):
        cpu = boot([66])
        cpu.memory.write(100, 7)
        cpu.reset()
        assert cpu.memory.peek(100) == 7

    def test_reset_clears_registers_and_flags(self):
        cpu = boot("a = 510 b = 5 nul = sum out = a !done")
        run(cpu)
        assert cpu.carry
        cpu.reset()
        assert cpu.register_value("a") == 0
        assert not cpu.carry
        assert cpu.outputs == []

    def test_load_program_too_large(self):
        cpu = S9BCPU(MachineConfig(memory_size=2))
        with pytest.raises(CPURangeError):
            cpu.load_program([66, 66, 66])

    def test_component_marks_after_reset_step(self):
        cpu = boot([66])
        cpu.tick()
        assert cpu.component_marks()["PC"] == "W"
        assert cpu.component_values()["Stack Register"] == 255


class TestMovementSequence:
    """The micro-states of a single movement with a source immediate."""

    def test_states(self):
        cpu = boot([502, 5, 66])
        states = [None] * 8
        for i in range(8):
            cpu.tick()
            states[i] = cpu.state
        assert states == [
            MicroState.FETCH,
            MicroState.MOVEMENT,
            MicroState.INPUT_ARGUMENT,
            MicroState.INPUT_ARGUMENT_LOAD,
            MicroState.MOVEMENT_FETCH,
            MicroState.MOVEMENT_MOVE,
            MicroState.FINISH,
            MicroState.FETCH,
        ]
        assert cpu.pc == 2
        assert cpu.register_value("a") == 5

    def test_messages(self):
        cpu = boot([502, 5, 66])
        messages = []
        for _ in range(7):
            messages.extend(cpu.tick())
        assert messages == [
            "[OUT] Reset",
            "[INT] Fetched inst 502 from 0, is movement",
            "[INT] Loading input argument",
            "[INT] Loaded 5 into M",
            "[RUN] Moved 5 from $ to a",
        ]

    def test_destination_immediate_loads_n(self):
        cpu = boot("mem 100 = 7 !done")
        messages = run(cpu)
        assert "[INT] Loaded 7 into M" in messages
        assert "[INT] Loaded 100 into N" in messages
        assert "[INT] Saved value 7 into 100" in messages

    def test_pc_write_goes_straight_to_fetch(self):
        cpu = boot("pc = 5 !halt !halt !halt !done")
        for _ in range(7):
            cpu.tick()
        assert cpu.state is MicroState.FETCH
        assert cpu.pc == 5


# =============================================================================
# Conditions and Skipping
# =============================================================================

class TestConditions:

    def test_met_condition_runs_next(self):
        assert outputs("?a out = 5 !done") == [5]

    def test_unmet_condition_skips_next(self):
        assert outputs("?!a out = 5 out = 6 !done") == [6]

    def test_messages(self):
        assert "[RUN] Condition met" in run(boot("?a !done"))
        assert "[RUN] Condition not met" in run(boot("?!a !done"))

    def test_all_targets(self):
        assert outputs("b = 1 ?ab out = 1 out = 2 !done") == [2]

    def test_any_target(self):
        assert outputs("b = 1 ?|ab out = 1 out = 2 !done") == [1, 2]

    def test_zero_flag(self):
        assert outputs("a = 511 b = 1 nul = sum ?Z out = 1 out = 2 !done") == [1, 2]

    def test_carry_flag(self):
        assert outputs("a = 1 b = 1 nul = sum ?C out = 1 out = 2 !done") == [2]
        assert outputs("a = 1 b = 1 nul = sum ?!C out = 1 out = 2 !done") == [1, 2]

    def test_skipped_invalid_word_is_not_decoded(self):
        cpu = boot([164, 0, 66])
        run(cpu)
        assert cpu.state is MicroState.DONE
        assert cpu.last_fault is None


class TestSkipWidth:
    """A skipped instruction consumes its immediate words."""

    def test_no_immediates(self):
        assert outputs("?!a +b out = b !done") == [0]

    def test_one_immediate(self):
        assert outputs("?!a out = 5 out = b !done") == [0]

    def test_two_immediates(self):
        # Executed, this would copy mem[3] (100) into mem[100]
        assert outputs("?!a mem 100 = mem 3 out = mem 100 !done") == [0]

    def test_two_immediate_states(self):
        cpu = boot("?!a mem 100 = mem 3 out = mem 100 !done")
        states = run_states(cpu)
        start = states.index(MicroState.SKIP2)
        assert states[start:start + 3] == [MicroState.SKIP2, MicroState.SKIP1, MicroState.FINISH]

    def test_one_immediate_states(self):
        cpu = boot("?!a out = 5 !done")
        states = run_states(cpu)
        assert MicroState.SKIP2 not in states
        start = states.index(MicroState.SKIP1)
        assert states[start + 1] is MicroState.FINISH

    def test_skip_flag_cleared(self):
        cpu = boot("?!a out = 5 out = 6 !done")
        run(cpu)
        assert not cpu.skip


# =============================================================================
# Actions
# =============================================================================

class TestActions:

    def test_register_actions(self):
        assert outputs("+a +a out = a !done") == [2]
        assert outputs("-b out = b !done") == [511]
        assert outputs("!c out = c !done") == [511]
        assert outputs("d = 3 <d out = d !done") == [6]

    def test_shift_right(self):
        assert outputs("a = 6 >a out = a !done") == [3]

    def test_register_action_message(self):
        assert "[RUN] +a" in run(boot("+a !done"))

    def test_done(self):
        cpu = boot("!done")
        messages = run(cpu)
        assert messages[-1] == "[OUT] Done"
        assert cpu.state is MicroState.DONE
        assert not cpu.running

    def test_halt(self):
        cpu = boot("!halt")
        assert run(cpu)[-1] == "[OUT] Halted"
        assert cpu.state is MicroState.HALTED
        assert cpu.last_fault is None
        assert not cpu.resume()

    def test_resume_after_done(self):
        cpu = boot("out = 1 !done out = 2 !done")
        run(cpu)
        assert cpu.outputs == [1]
        assert cpu.tick() == []
        assert cpu.resume()
        assert cpu.tick() == ["[RUN] Resumed"]
        assert cpu.state is MicroState.FINISH
        run(cpu)
        assert cpu.outputs == [1, 2]

    def test_resume_after_pause(self):
        cpu = boot("out = 1 !pause out = 2 !done")
        messages = run(cpu)
        assert messages[-1] == "[OUT] Paused"
        assert cpu.state is MicroState.PAUSE
        assert cpu.resume()
        run(cpu)
        assert cpu.outputs == [1, 2]

    def test_resume_while_running(self):
        cpu = boot("!done")
        assert not cpu.resume()


# =============================================================================
# Memory and Stack
# =============================================================================

class TestMemoryAccess:

    def test_immediate_memory(self):
        cpu = boot("mem 100 = 7 out = mem 100 !done")
        run(cpu)
        assert cpu.outputs == [7]
        assert cpu.memory.peek(100) == 7

    def test_indirect_memory(self):
        assert outputs("n = 100 mem = 42 m = 100 out = mem !done") == [42]

    def test_push_and_stack_reads(self):
        cpu = boot("push = 5 push = 6 out = stack 0 out = stack 1 !pop out = stack 0 !done")
        messages = run(cpu)
        assert cpu.outputs == [6, 5, 5]
        assert cpu.sp == 254
        assert cpu.memory.peek(254) == 5
        assert cpu.memory.peek(253) == 6
        assert "[INT] Saved value 5 into stack at 254" in messages
        assert "[RUN] Popped stack" in messages

    def test_stack_write(self):
        cpu = boot("push = 1 push = 2 stack 1 = 9 out = stack 1 !done")
        run(cpu)
        assert cpu.outputs == [9]
        assert cpu.memory.peek(254) == 9

    def test_stackptr(self):
        assert outputs("push = 5 a = stackptr 1 out = a !done") == [255]

    def test_every_register_source(self):
        assert outputs("c = 3 d = 9 out = c out = d !done") == [3, 9]

    def test_nul_discards(self):
        cpu = boot("a = 4 nul = a !done")
        run(cpu)
        assert cpu.outputs == []
        assert cpu.register_value("a") == 4

    def test_alu_sources(self):
        assert outputs("a = 12 b = 10 out = sum out = sub out = and out = or out = xor !done") == [
            22, 2, 8, 14, 6,
        ]

    def test_output_message(self):
        assert "[OUT] Output 3" in run(boot("out = 3 !done"))


# =============================================================================
# Faults
# =============================================================================

class TestFaults:

    def test_word_without_tag(self):
        cpu = boot([0])
        messages = run(cpu)
        assert messages[-1] == "[ERR] invalid instruction 0 at address 0"
        assert cpu.state is MicroState.HALTED
        assert not cpu.running
        assert isinstance(cpu.last_fault, CPUDecodeFault)

    def test_invalid_destination(self):
        cpu = boot([256 + 14])
        run(cpu)
        assert isinstance(cpu.last_fault, CPUDecodeFault)
        assert cpu.last_fault.word == 270

    @pytest.mark.parametrize("word", [64, 64 + 28])
    def test_unassigned_action(self, word):
        cpu = boot([word])
        messages = run(cpu)
        assert messages[-1] == f"[ERR] invalid action {word} at address 0"
        assert isinstance(cpu.last_fault, CPUDecodeFault)

    def test_read_out_of_range(self):
        cpu = boot("out = mem 300 !done")
        before = cpu.memory.dump()
        messages = run(cpu)
        assert messages[-1] == "[ERR] memory address 300 out of range (size 256)"
        assert isinstance(cpu.last_fault, CPURangeError)
        assert cpu.memory.dump() == before
        assert cpu.outputs == []

    def test_write_out_of_range_leaves_memory(self):
        cpu = boot("mem 300 = 5 !done")
        before = cpu.memory.dump()
        run(cpu)
        assert isinstance(cpu.last_fault, CPURangeError)
        assert cpu.memory.dump() == before
        assert cpu.pc == 2

    def test_fetch_out_of_range(self):
        cpu = boot("pc = 300")
        run(cpu)
        assert isinstance(cpu.last_fault, CPURangeError)
        assert cpu.last_fault.address == 300

    def test_fault_is_not_resumable(self):
        cpu = boot([0])
        run(cpu)
        assert not cpu.resume()
        assert cpu.tick() == []

    def test_reset_recovers(self):
        cpu = boot([0])
        run(cpu)
        cpu.memory.write(0, 66)
        cpu.reset()
        assert cpu.last_fault is None
        run(cpu)
        assert cpu.state is MicroState.DONE
