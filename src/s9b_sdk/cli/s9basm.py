"""
s9basm - S9B Assembler Command-Line Interface
=============================================

This module implements the command-line interface for the S9B assembler.

Usage Examples
--------------
Basic assembly:
    $ s9basm loop.s9b

With output file:
    $ s9basm loop.s9b -o loop.hex

Binary image:
    $ s9basm loop.s9b -f bin

Generate all output files:
    $ s9basm loop.s9b -o loop.hex -l loop.lst -s loop.sym

Verbose mode (pipeline logging and macro notes):
    $ s9basm -v loop.s9b
"""

from pathlib import Path
from typing import Optional

import click

from s9b_sdk import __version__
from s9b_sdk.assembler import Assembler
from s9b_sdk.cli.errors import handle_cli_exception, setup_logging
from s9b_sdk.config import MachineConfig
from s9b_sdk.image import FORMATS, infer_format


# =============================================================================
# CLI Definition
# =============================================================================

@click.command()
@click.argument(
    "input_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@click.option(
    "-o", "--output",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Output image file (default: input.hex)",
)
@click.option(
    "-f", "--format", "image_format",
    type=click.Choice(FORMATS),
    default=None,
    help="Image format (default: from the output suffix, else hex)",
)
@click.option(
    "-l", "--listing",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Generate listing file",
)
@click.option(
    "-s", "--symbols",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Generate symbol file",
)
@click.option(
    "--word-bits",
    type=click.IntRange(min=9),
    default=None,
    help="Machine word width in bits (default: 9)",
)
@click.option(
    "--memory-size",
    type=click.IntRange(min=1),
    default=None,
    help="Machine memory size in words (default: 256)",
)
@click.option(
    "-v", "--verbose",
    is_flag=True,
    help="Verbose output",
)
@click.version_option(version=__version__, prog_name="s9basm")
def main(
    input_file: Path,
    output: Optional[Path],
    image_format: Optional[str],
    listing: Optional[Path],
    symbols: Optional[Path],
    word_bits: Optional[int],
    memory_size: Optional[int],
    verbose: bool,
) -> None:
    """
    Assemble S9B source code into a program image.

    INPUT_FILE is the S9B source file (.s9b) to assemble.

    \b
    Examples:
        s9basm loop.s9b                 # Outputs loop.hex
        s9basm loop.s9b -o out.bin      # Binary image
        s9basm loop.s9b -l loop.lst     # With listing
    """
    setup_logging(verbose)

    try:
        config = MachineConfig.from_env()
        if word_bits is not None:
            config.word_bits = word_bits
        if memory_size is not None:
            config.memory_size = memory_size

        # Determine output format and filename
        if output is not None:
            output_format = image_format or infer_format(output)
            output_file = output
        else:
            output_format = image_format or "hex"
            output_file = input_file.with_suffix(f".{output_format}")

        asm = Assembler(config)

        if verbose:
            click.echo(f"Assembling {input_file}...")

        output_data = asm.assemble_file(input_file)

        if verbose:
            for span, note in asm.notes:
                location = f"{span}: " if span is not None else ""
                click.echo(f"{location}note: {note}")

        asm.write_image(output_file, output_format)
        if verbose:
            click.echo(f"Wrote {len(output_data)} words to {output_file}")

        # Write optional auxiliary files
        if listing:
            asm.write_listing(listing)
            if verbose:
                click.echo(f"Wrote listing to {listing}")

        if symbols:
            asm.write_symbols(symbols)
            if verbose:
                click.echo(f"Wrote symbols to {symbols}")

        # Print summary
        if verbose:
            click.echo(f"Assembly complete: {len(output_data)} words")
            click.echo(f"Defined {len(asm.get_symbols())} symbols")

    except Exception as e:
        handle_cli_exception(e, verbose=verbose, error_type="Assembly")


if __name__ == "__main__":
    main()
