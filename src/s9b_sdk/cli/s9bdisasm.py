"""
s9bdisasm - S9B Disassembler Command-Line Interface
===================================================

Renders a program image written by s9basm back into S9B source syntax.

Usage Examples
--------------
Disassemble an image:
    $ s9bdisasm loop.hex

Start at an address and limit the instruction count:
    $ s9bdisasm loop.hex --start 4 --count 3

Annotate jump targets with labels from a symbol file:
    $ s9basm loop.s9b -s loop.sym
    $ s9bdisasm loop.hex -s loop.sym

Output to file:
    $ s9bdisasm loop.hex -o loop.dis

Copyright (c) 2025-2026 Hugo José Pinto & Contributors
"""

from pathlib import Path
from typing import Optional

import click

from s9b_sdk import __version__
from s9b_sdk.cli.errors import handle_cli_exception, setup_logging
from s9b_sdk.disassembler import S9BDisassembler
from s9b_sdk.errors import ImageError
from s9b_sdk.image import FORMATS, read_image


def read_symbol_file(path: Path) -> dict[int, str]:
    """
    Read a symbol file written by ``s9basm -s``.

    Each non-comment line is ``name address``. When two labels share an
    address the first one wins.

    Raises:
        ImageError: If a line is malformed
    """
    symbols: dict[int, str] = {}
    for line_number, line in enumerate(path.read_text().splitlines(), start=1):
        content = line.split("#", 1)[0].strip()
        if not content:
            continue
        parts = content.split()
        if len(parts) != 2 or not parts[1].isdigit():
            raise ImageError(f"{path}:{line_number}: expected 'name address', got '{content}'")
        symbols.setdefault(int(parts[1]), parts[0])
    return symbols


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
    help="Output file (default: stdout)",
)
@click.option(
    "-f", "--format", "image_format",
    type=click.Choice(FORMATS),
    default=None,
    help="Image format (default: from the input suffix)",
)
@click.option(
    "--start",
    type=click.IntRange(min=0),
    default=0,
    help="Address to start at (default: 0)",
)
@click.option(
    "-c", "--count",
    type=click.IntRange(min=1),
    default=None,
    help="Maximum number of instructions to disassemble (default: all)",
)
@click.option(
    "-s", "--symbols",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Symbol file for label annotations",
)
@click.option(
    "--word-bits",
    type=click.IntRange(min=9),
    default=9,
    help="Word width of the image (default: 9)",
)
@click.option(
    "-v", "--verbose",
    is_flag=True,
    help="Verbose output",
)
@click.version_option(version=__version__, prog_name="s9bdisasm")
def main(
    input_file: Path,
    output: Optional[Path],
    image_format: Optional[str],
    start: int,
    count: Optional[int],
    symbols: Optional[Path],
    word_bits: int,
    verbose: bool,
) -> None:
    """
    Disassemble an S9B program image.

    INPUT_FILE is a .hex or .bin image written by s9basm.
    """
    setup_logging(verbose)

    try:
        words = read_image(input_file, image_format)

        if verbose:
            click.echo(f"Read {len(words)} words from {input_file}", err=True)

        disasm = S9BDisassembler(word_bits=word_bits)
        if symbols:
            disasm.add_symbols(read_symbol_file(symbols))

        text = disasm.disassemble_to_text(words, start, count)

        if output:
            output.write_text(text + "\n")
            if verbose:
                click.echo(f"Wrote disassembly to {output}", err=True)
        else:
            click.echo(text)

    except Exception as e:
        handle_cli_exception(e, verbose=verbose, error_type="Disassembly")


if __name__ == "__main__":
    main()
