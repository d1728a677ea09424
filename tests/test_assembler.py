"""
Tests for the Assembler class.

Exercises the full pipeline through the public facade: diagnostics
collection across stages, error reports, listings, symbol files and image
output.
"""

from pathlib import Path

import pytest
from s9b_sdk.assembler import Assembler, assemble, assemble_file
from s9b_sdk.config import MachineConfig
from s9b_sdk.errors import (
    AssemblerError,
    AssemblyFailed,
    ConfigError,
    LexError,
    MacroError,
    ParseError,
)
from s9b_sdk.image import read_image


LOOP = """\
    a = 5
    b = a
loop:
    ?b pc = :end
    -b
    out = b
    pc = :loop
end:
    !done
"""

EXAMPLES = Path(__file__).parent.parent / "examples"


class TestAssembleString:
    """Successful assembly through the facade."""

    def test_returns_output(self):
        asm = Assembler()
        output = asm.assemble_string(LOOP)
        assert output.words == [502, 5, 423, 130, 508, 10, 73, 445, 508, 3, 66]
        assert asm.get_words() == output.words
        assert asm.get_output() is output

    def test_symbols(self):
        asm = Assembler()
        asm.assemble_string(LOOP)
        assert asm.get_symbols() == {"loop": 3, "end": 10}

    def test_no_diagnostics(self):
        asm = Assembler()
        asm.assemble_string(LOOP)
        assert not asm.has_errors()
        assert asm.diagnostics == []

    def test_convenience_function(self):
        assert assemble("a = 5  out = a  !halt").words == [502, 5, 429, 65]

    def test_deterministic(self):
        source = (EXAMPLES / "fibonacci.s9b").read_text()
        first = Assembler().assemble_string(source)
        second = Assembler().assemble_string(source)
        assert first.words == second.words

    def test_reuse_assembler(self):
        asm = Assembler()
        asm.assemble_string("a = 1")
        output = asm.assemble_string("!done")
        assert output.words == [66]

    def test_notes_from_macros(self):
        asm = Assembler()
        asm.assemble_string("#define INC X { +X }\nINC(a)")
        messages = [message for _, message in asm.notes]
        assert "INC(X)" in messages
        assert "expands to +a" in messages

    def test_fibonacci_example_assembles(self):
        output = assemble_file(EXAMPLES / "fibonacci.s9b")
        assert output.address_of("fib") is not None
        assert "fib" in output.symbols()


class TestAssemblyErrors:
    """Diagnostics from every stage are collected in one compile."""

    def test_assembly_failed(self):
        asm = Assembler()
        with pytest.raises(AssemblyFailed):
            asm.assemble_string("a = sume")
        assert asm.has_errors()

    def test_errors_from_all_stages(self):
        asm = Assembler()
        with pytest.raises(AssemblyFailed) as exc_info:
            asm.assemble_string("@\nFOO\n#pop")
        kinds = [type(error) for error in exc_info.value.errors]
        assert kinds == [LexError, MacroError, ParseError]
        assert asm.diagnostics == exc_info.value.errors

    def test_report_format(self):
        with pytest.raises(AssemblyFailed) as exc_info:
            Assembler().assemble_string("a = 1\nb = sume", "prog.s9b")
        report = str(exc_info.value)
        assert "prog.s9b:2:5: error: unknown location 'sume'" in report
        assert "    b = sume" in report
        assert "hint: did you mean 'sum'" in report
        # "b =" is also left without a source
        assert "missing location or literal" in report
        assert report.endswith("2 errors")

    def test_report_counts_errors(self):
        with pytest.raises(AssemblyFailed) as exc_info:
            assemble("@ @ @")
        assert exc_info.value.report.endswith("3 errors")

    def test_single_error_summary(self):
        with pytest.raises(AssemblyFailed) as exc_info:
            assemble("#pop")
        assert exc_info.value.report.endswith("1 error")

    def test_max_errors_stops_early(self):
        asm = Assembler(MachineConfig(max_errors=2))
        with pytest.raises(AssemblyFailed) as exc_info:
            asm.assemble_string("@ @ @ @ @")
        assert len(exc_info.value.errors) == 2

    def test_no_output_after_failure(self):
        asm = Assembler()
        asm.assemble_string("!done")
        with pytest.raises(AssemblyFailed):
            asm.assemble_string("#pop")
        with pytest.raises(AssemblerError):
            asm.get_output()

    def test_codegen_skipped_after_errors(self):
        """A program with parse errors never reaches code generation."""
        with pytest.raises(AssemblyFailed) as exc_info:
            assemble("pc = :nowhere")
        assert len(exc_info.value.errors) == 1

    def test_invalid_config(self):
        with pytest.raises(ConfigError):
            Assembler(MachineConfig(word_bits=8))


class TestOutputFiles:
    """Listing, symbol and image files."""

    def test_listing(self):
        asm = Assembler()
        asm.assemble_string(LOOP)
        listing = asm.get_listing()
        assert listing.startswith("S9B Assembler Listing")
        lines = listing.splitlines()
        assert any(line.startswith("0000  1f6 005") and line.endswith("a = 5") for line in lines)
        assert any(line.startswith("0010  042") and line.endswith("!done") for line in lines)
        assert "Symbol Table" in listing
        assert any(line.startswith("loop") and line.endswith("= 3") for line in lines)

    def test_listing_shows_data(self):
        asm = Assembler()
        asm.assemble_string('a = :msg\n!done\nmsg: "hi"')
        lines = asm.get_listing().splitlines()
        assert any(line.startswith("0003  068 069 000") and line.endswith("msg: <data>") for line in lines)

    def test_listing_requires_output(self):
        with pytest.raises(AssemblerError):
            Assembler().get_listing()

    def test_write_listing(self, tmp_path):
        asm = Assembler()
        asm.assemble_string(LOOP)
        path = tmp_path / "loop.lst"
        asm.write_listing(path)
        assert path.read_text() == asm.get_listing() + "\n"

    def test_write_symbols(self, tmp_path):
        asm = Assembler()
        asm.assemble_string(LOOP)
        path = tmp_path / "loop.sym"
        asm.write_symbols(path)
        lines = path.read_text().splitlines()
        assert lines[0] == "# Symbol table"
        assert lines[2:] == ["end 10", "loop 3"]

    @pytest.mark.parametrize("suffix", ["hex", "bin"])
    def test_write_image(self, tmp_path, suffix):
        asm = Assembler()
        output = asm.assemble_string(LOOP)
        path = tmp_path / f"loop.{suffix}"
        asm.write_image(path)
        assert read_image(path) == output.words

    def test_assemble_file(self, tmp_path):
        path = tmp_path / "loop.s9b"
        path.write_text(LOOP)
        output = assemble_file(path)
        assert output.words[:2] == [502, 5]
        assert output.program.statements[0].span.filename == str(path)

    def test_assemble_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            assemble_file(tmp_path / "missing.s9b")
