"""
s9brun - S9B Interpreter Command-Line Interface
===============================================

Runs an S9B program and prints every value it writes to ``out``, one per
line. The input is either source text (assembled first) or a program
image written by s9basm.

Usage Examples
--------------
Run source directly:
    $ s9brun loop.s9b

Run an image:
    $ s9brun loop.hex

Show the micro-step trace:
    $ s9brun loop.s9b --trace

Stop at a label:
    $ s9brun loop.s9b --break loop

Exit Status
-----------
0 when the program reaches ``!done``, ``!pause`` or ``!halt`` (or a
breakpoint), 1 on a CPU fault or when the tick budget runs out.
"""

import sys
from pathlib import Path
from typing import Optional

import click

from s9b_sdk import __version__
from s9b_sdk.cli.errors import ExitCode, handle_cli_exception, setup_logging
from s9b_sdk.config import MachineConfig
from s9b_sdk.emulator import BreakReason, Emulator
from s9b_sdk.image import FORMATS, read_image


# =============================================================================
# CLI Definition
# =============================================================================

@click.command()
@click.argument(
    "input_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@click.option(
    "--max-ticks",
    type=click.IntRange(min=1),
    default=None,
    help="Tick budget before giving up (default: 100000)",
)
@click.option(
    "--memory-size",
    type=click.IntRange(min=1),
    default=None,
    help="Machine memory size in words (default: 256)",
)
@click.option(
    "--word-bits",
    type=click.IntRange(min=9),
    default=None,
    help="Machine word width in bits (default: 9)",
)
@click.option(
    "-b", "--break", "breaks",
    multiple=True,
    help="Stop at a label or address (can be repeated)",
)
@click.option(
    "-t", "--trace",
    is_flag=True,
    help="Print the micro-step trace after the run",
)
@click.option(
    "-v", "--verbose",
    is_flag=True,
    help="Verbose output",
)
@click.version_option(version=__version__, prog_name="s9brun")
def main(
    input_file: Path,
    max_ticks: Optional[int],
    memory_size: Optional[int],
    word_bits: Optional[int],
    breaks: tuple[str, ...],
    trace: bool,
    verbose: bool,
) -> None:
    """
    Run an S9B program and print its output words.

    INPUT_FILE is S9B source (.s9b) or a program image (.hex or .bin).
    """
    setup_logging(verbose)

    try:
        config = MachineConfig.from_env()
        if max_ticks is not None:
            config.max_ticks = max_ticks
        if memory_size is not None:
            config.memory_size = memory_size
        if word_bits is not None:
            config.word_bits = word_bits

        emu = Emulator(config)

        if input_file.suffix.lower().lstrip(".") in FORMATS:
            words = read_image(input_file)
            emu.load_program(words)
        else:
            words = emu.load_source(input_file.read_text(), str(input_file)).words

        if verbose:
            click.echo(f"Loaded {len(words)} words from {input_file}", err=True)

        for target in breaks:
            if target.isdigit() or target.lower().startswith("0x"):
                emu.add_breakpoint(int(target, 0))
            else:
                try:
                    emu.add_breakpoint_at_label(target)
                except KeyError as e:
                    raise click.BadParameter(e.args[0], param_hint="--break") from e

        event = emu.run()

        for value in emu.outputs:
            click.echo(value)

        if trace:
            for line in emu.trace:
                click.echo(line, err=True)

        if verbose:
            click.echo(f"Stopped after {emu.total_ticks} ticks: {event}", err=True)

        if event.reason in (BreakReason.FAULT, BreakReason.MAX_TICKS):
            click.echo(f"Error: {event}", err=True)
            sys.exit(ExitCode.BUILD_ERROR)

    except Exception as e:
        handle_cli_exception(e, verbose=verbose, error_type="Run")


if __name__ == "__main__":
    main()
