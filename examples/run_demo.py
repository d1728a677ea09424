#!/usr/bin/env python3
"""
S9B Emulator Demo
=================

This script demonstrates how to use the S9B SDK to:
1. Assemble a program and inspect its image
2. Run it to completion and read its output
3. Stop at a breakpoint and single-step through micro-states
4. Disassemble memory

Usage:
    pip install -e .
    python examples/run_demo.py

Copyright (c) 2025 Hugo José Pinto & Contributors
"""

from pathlib import Path

from s9b_sdk import Assembler, Emulator


EXAMPLES = Path(__file__).parent


def main():
    # ==========================================================================
    # 1. Assemble
    # ==========================================================================
    source = (EXAMPLES / "loop.s9b").read_text()

    print("Assembling loop.s9b...")
    asm = Assembler()
    output = asm.assemble_string(source, "loop.s9b")

    print(f"  {len(output)} words: {output.words}")
    print(f"  Symbols: {output.symbols()}")
    print()
    print(asm.get_listing())

    # ==========================================================================
    # 2. Run to completion
    # ==========================================================================
    print("\nRunning...")
    emu = Emulator()
    emu.load_program(output)
    event = emu.run()

    print(f"  Stopped: {event} after {emu.total_ticks} ticks")
    print(f"  Output: {emu.outputs}")

    # ==========================================================================
    # 3. Breakpoints and micro-steps
    # ==========================================================================
    # The CPU stops before fetching the instruction at a breakpoint address.
    # Each step() is one micro-state transition, not one instruction.
    print("\nBreaking at :loop...")
    emu.reset()
    emu.add_breakpoint_at_label("loop")
    event = emu.run()
    print(f"  {event}, registers: {emu.registers}")

    for _ in range(4):
        state = emu.cpu.state_name
        print(f"  {state:20s} {emu.step()}")

    emu.clear_breakpoints()

    # ==========================================================================
    # 4. Recursion through macros and label scopes
    # ==========================================================================
    print("\nRunning fibonacci.s9b...")
    emu.load_source((EXAMPLES / "fibonacci.s9b").read_text(), "fibonacci.s9b")
    event = emu.run()
    print(f"  {event}: fib(6) = {emu.outputs[0]}")

    # ==========================================================================
    # 5. Disassemble
    # ==========================================================================
    print("\nDisassembly of the first instructions:")
    for line in emu.disassemble_at(0, count=6):
        print(f"  {line}")


if __name__ == "__main__":
    main()
