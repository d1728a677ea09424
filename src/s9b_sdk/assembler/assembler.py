"""
S9B Assembler - Main Interface
==============================

This module provides the Assembler class, the primary interface for
compiling S9B source. It runs the four pipeline stages over one shared
ErrorCollector:

    source --Lexer--> tokens + macros --MacroExpander--> tokens
           --Parser--> Program --CodeGenerator--> AssembledOutput

Every stage keeps going after a recoverable problem, so a single compile
reports everything that is wrong with the source. If any diagnostic was
recorded no image is produced and AssemblyFailed is raised with the full
report. Compilation keeps no state between calls and is deterministic:
the same source always gives the same words.

Example Usage
-------------
>>> from s9b_sdk.assembler import Assembler
>>> asm = Assembler()
>>> output = asm.assemble_string('''
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
>>> output.address_of("end")
10
>>> asm.write_image("loop.hex")

Command-Line Usage
------------------
    $ s9basm loop.s9b -o loop.hex -l loop.lst -s loop.sym
"""

from pathlib import Path
from typing import Optional
import logging

from s9b_sdk.config import MachineConfig
from s9b_sdk.errors import (
    AssemblerError,
    AssemblyFailed,
    ErrorCollector,
    Span,
    TooManyErrors,
)
from s9b_sdk.image import write_image
from s9b_sdk.assembler.codegen import AssembledOutput, CodeGenerator
from s9b_sdk.assembler.lexer import Lexer
from s9b_sdk.assembler.macros import MacroExpander
from s9b_sdk.assembler.parser import Constant, Parser, display_label

logger = logging.getLogger(__name__)


class Assembler:
    """
    Main S9B assembler class.

    Attributes:
        config: Machine configuration (word width, memory size, limits)
    """

    def __init__(self, config: Optional[MachineConfig] = None):
        """
        Initialize the assembler.

        Args:
            config: Machine configuration (defaults to the 9-bit machine)

        Raises:
            ConfigError: If the configuration is invalid
        """
        self.config = (config or MachineConfig()).validate()
        self._errors = ErrorCollector(self.config.max_errors)
        self._output: Optional[AssembledOutput] = None

    # =========================================================================
    # Assembly Methods
    # =========================================================================

    def assemble_string(self, source: str, filename: str = "<input>") -> AssembledOutput:
        """
        Assemble source code from a string.

        Args:
            source: S9B source code
            filename: Virtual filename for error messages

        Returns:
            The assembled output

        Raises:
            AssemblyFailed: If any diagnostic was recorded
            InternalError: If a pipeline invariant was violated
        """
        self._errors = ErrorCollector(self.config.max_errors)
        self._output = None

        try:
            lexed = Lexer(source, filename, self._errors).tokenize()
            logger.debug(f"Lexed {len(lexed.tokens)} tokens, {len(lexed.macros.bindings)} macros")

            tokens = MacroExpander(self._errors).expand(lexed.tokens, lexed.macros)
            logger.debug(f"Expanded to {len(tokens)} tokens")

            program = Parser(tokens, self._errors, self.config.max_literal_depth).parse()
            logger.debug(
                f"Parsed {len(program.statements)} statements, {len(program.labels)} labels, "
                f"{len(program.references)} references"
            )

            if not self._errors.has_errors():
                output = CodeGenerator(self.config, self._errors).generate(program)
                if not self._errors.has_errors():
                    self._output = output
        except TooManyErrors:
            logger.debug(f"Stopped after {self._errors.error_count()} errors")

        if self._output is None:
            raise AssemblyFailed(self._errors.errors, self.get_error_report())

        logger.debug(f"Assembled {len(self._output.words)} words from {filename}")
        return self._output

    def assemble_file(self, filepath: str | Path) -> AssembledOutput:
        """
        Assemble source code from a file.

        Raises:
            AssemblyFailed: If any diagnostic was recorded
            FileNotFoundError: If source file not found
        """
        filepath = Path(filepath)
        logger.debug(f"Assembling {filepath}")
        return self.assemble_string(filepath.read_text(), str(filepath))

    # =========================================================================
    # Results
    # =========================================================================

    def get_output(self) -> AssembledOutput:
        """
        Get the output of the last successful assembly.

        Raises:
            AssemblerError: If nothing has been assembled successfully
        """
        if self._output is None:
            raise AssemblerError("no assembled output available")
        return self._output

    def get_words(self) -> list[int]:
        """Get the image words of the last assembly."""
        return list(self.get_output().words)

    def get_symbols(self) -> dict[str, int]:
        """Get the label to address table of the last assembly."""
        return self.get_output().symbols()

    @property
    def diagnostics(self) -> list[AssemblerError]:
        """Errors recorded by the last assembly."""
        return list(self._errors.errors)

    @property
    def notes(self) -> list[tuple[Optional[Span], str]]:
        """Informational notes (macro signatures and expansions)."""
        return list(self._errors.notes)

    def get_listing(self) -> str:
        """
        Get the assembly listing as a string.

        Returns:
            The listing showing addresses, generated words, and source lines,
            followed by the symbol table.
        """
        output = self.get_output()
        digits = (self.config.word_bits + 3) // 4

        starts = sorted(output.address_statements)
        ends = starts[1:] + [len(output.words)]

        lines = [
            "S9B Assembler Listing",
            "=" * 60,
            "",
            "Addr  Words         Line  Source",
            "-" * 60,
        ]
        for start, end in zip(starts, ends):
            statement = output.program.statements[output.address_statements[start]]
            words = " ".join(f"{word:0{digits}x}" for word in output.words[start:end])
            if isinstance(statement, Constant):
                source = f"{display_label(statement.label)}: <data>" if statement.label else "<data>"
            else:
                source = statement.span.line_text.strip()
            lines.append(f"{start:04d}  {words:12s}  {statement.span.start.line:4d}  {source}")

        lines.append("")
        lines.append("Symbol Table")
        lines.append("-" * 30)
        for name, address in sorted(output.symbols().items()):
            lines.append(f"{name:20s} = {address}")
        return "\n".join(lines)

    # =========================================================================
    # Output Methods
    # =========================================================================

    def write_image(self, filepath: str | Path, fmt: Optional[str] = None) -> None:
        """
        Write the image in "hex" or "bin" format.

        Args:
            filepath: Output file path
            fmt: Image format (inferred from the suffix if omitted)
        """
        write_image(filepath, self.get_words(), fmt, self.config.word_bits)
        logger.debug(f"Wrote image to {filepath}")

    def write_listing(self, filepath: str | Path) -> None:
        """Write the assembly listing file."""
        Path(filepath).write_text(self.get_listing() + "\n")

    def write_symbols(self, filepath: str | Path) -> None:
        """
        Write symbol table file.

        Format: name address (one per line)
        """
        with open(filepath, "w") as f:
            f.write("# Symbol table\n")
            f.write("# Generated by s9basm\n")
            for name, address in sorted(self.get_symbols().items()):
                f.write(f"{name} {address}\n")

    # =========================================================================
    # Error Handling
    # =========================================================================

    def has_errors(self) -> bool:
        """Check if the last assembly produced errors."""
        return self._errors.has_errors()

    def get_error_report(self) -> str:
        """Get formatted error report for the last assembly."""
        return self._errors.report()


# =============================================================================
# Convenience Functions
# =============================================================================

def assemble(source: str, filename: str = "<input>", config: Optional[MachineConfig] = None) -> AssembledOutput:
    """
    Convenience function to assemble source code.

    Raises:
        AssemblyFailed: If assembly fails
    """
    return Assembler(config).assemble_string(source, filename)


def assemble_file(filepath: str | Path, config: Optional[MachineConfig] = None) -> AssembledOutput:
    """
    Convenience function to assemble a file.

    Raises:
        AssemblyFailed: If assembly fails
    """
    return Assembler(config).assemble_file(filepath)
