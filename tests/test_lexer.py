# =============================================================================
# test_lexer.py - Lexer Unit Tests
# =============================================================================
# Tests for the S9B assembler lexer.
#
# Test coverage includes:
#   - Every token kind and the rule priority between them
#   - Number formats: decimal, hexadecimal (0x), binary (0b), char (')
#   - String literals with escape sequences
#   - Comments, separators and span tracking
#   - #define collection into the root macro scope
#   - Error conditions (lexing continues after each one)
# =============================================================================

import pytest
from s9b_sdk.assembler.lexer import Lexer, LexResult, tokenize
from s9b_sdk.assembler.tokens import TokenType
from s9b_sdk.errors import ErrorCollector, LexError


# =============================================================================
# Helper Functions
# =============================================================================

def lex(source: str) -> LexResult:
    return Lexer(source, "<test>").tokenize()


def kinds(source: str) -> list[TokenType]:
    result = lex(source)
    assert not result.errors.has_errors(), result.errors.report()
    return [token.type for token in result.tokens]


def texts(source: str) -> list[str]:
    return [token.text for token in lex(source).tokens]


# =============================================================================
# Basic Token Recognition Tests
# =============================================================================

class TestBasicTokens:
    """Test recognition of each token kind."""

    def test_empty_source(self):
        result = lex("")
        assert result.tokens == []
        assert not result.errors.has_errors()

    def test_separators_only(self):
        """Whitespace and commas are separators."""
        assert lex(" \t\r\n,,  ").tokens == []

    def test_simple_movement(self):
        assert kinds("a = 5") == [TokenType.LOCATION, TokenType.MOVEMENT, TokenType.NUMBER]

    def test_commas_separate_like_spaces(self):
        assert texts("a,=,5") == ["a", "=", "5"]

    def test_label(self):
        tokens = lex("loop:").tokens
        assert tokens[0].type == TokenType.LABEL
        assert tokens[0].text == "loop:"

    def test_reference(self):
        tokens = lex(":loop").tokens
        assert tokens[0].type == TokenType.REFERENCE
        assert tokens[0].text == ":loop"

    def test_mixed_case_label_and_reference(self):
        assert kinds("notZero: pc = :notZero") == [
            TokenType.LABEL,
            TokenType.LOCATION,
            TokenType.MOVEMENT,
            TokenType.REFERENCE,
        ]

    @pytest.mark.parametrize("name", [
        "zero", "sum", "sub", "and", "or", "xor", "mem", "stack", "stackptr",
        "a", "b", "c", "d", "m", "n", "nul", "push", "pc", "out",
    ])
    def test_locations(self, name):
        tokens = lex(name).tokens
        assert len(tokens) == 1
        assert tokens[0].type == TokenType.LOCATION
        assert tokens[0].text == name

    @pytest.mark.parametrize("text", ["?a", "?Z", "?C", "?!b", "?|ab", "?!|abc", "?ZCabc"])
    def test_conditions(self, text):
        tokens = lex(text).tokens
        assert [t.type for t in tokens] == [TokenType.CONDITION]
        assert tokens[0].text == text

    @pytest.mark.parametrize("text", ["!done", "!pause", "!halt", "!pop"])
    def test_actions(self, text):
        tokens = lex(text).tokens
        assert [t.type for t in tokens] == [TokenType.ACTION]
        assert tokens[0].text == text

    @pytest.mark.parametrize("text", ["+a", "-b", "!c", "<d", ">a"])
    def test_register_actions(self, text):
        tokens = lex(text).tokens
        assert [t.type for t in tokens] == [TokenType.REGISTER_ACTION]
        assert tokens[0].text == text

    def test_register_action_with_macro_operand(self):
        """+NAME is lexed as one register action for the macro expander."""
        tokens = lex("+REG").tokens
        assert [t.type for t in tokens] == [TokenType.REGISTER_ACTION]
        assert tokens[0].text == "+REG"

    def test_scope_markers(self):
        assert kinds("#push #pop") == [TokenType.SCOPE_PUSH, TokenType.SCOPE_POP]

    def test_array_tokens(self):
        assert kinds("[1 2] ~4") == [
            TokenType.ARRAY_START,
            TokenType.NUMBER,
            TokenType.NUMBER,
            TokenType.ARRAY_END,
            TokenType.ARRAY_LENGTH,
            TokenType.NUMBER,
        ]

    def test_macro_call_tokens(self):
        assert kinds("CALL(:fib)") == [
            TokenType.MACRO,
            TokenType.MACRO_ARG_START,
            TokenType.REFERENCE,
            TokenType.MACRO_ARG_END,
        ]

    def test_statements_without_separators(self):
        """Condition and movement may share a line."""
        assert texts("?b pc = :end") == ["?b", "pc", "=", ":end"]


# =============================================================================
# Number Format Tests
# =============================================================================

class TestNumbers:
    """Number tokens keep their source text; the parser evaluates them."""

    @pytest.mark.parametrize("text", ["0", "42", "0x1F", "0xff", "0b101", "'A"])
    def test_number_formats(self, text):
        tokens = lex(text).tokens
        assert [t.type for t in tokens] == [TokenType.NUMBER]
        assert tokens[0].text == text

    def test_char_literal_takes_one_character(self):
        assert texts("'ab") == ["'a", "b"]
        assert kinds("'ab") == [TokenType.NUMBER, TokenType.LOCATION]


# =============================================================================
# String Literal Tests
# =============================================================================

class TestStrings:
    """String tokens carry the decoded value plus a NUL terminator."""

    def test_simple_string(self):
        tokens = lex('"hi"').tokens
        assert tokens[0].type == TokenType.STRING
        assert tokens[0].text == "hi\0"

    def test_empty_string(self):
        assert lex('""').tokens[0].text == "\0"

    def test_escaped_quote(self):
        assert lex(r'"say \"hi\""').tokens[0].text == 'say "hi"\0'

    def test_newline_escape(self):
        assert lex(r'"a\nb"').tokens[0].text == "a\nb\0"

    def test_hex_escape(self):
        assert lex(r'"\41\42"').tokens[0].text == "AB\0"

    def test_unknown_escape_kept_literally(self):
        assert lex(r'"a\qb"').tokens[0].text == "a\\qb\0"

    def test_string_may_span_lines(self):
        assert lex('"a\nb"').tokens[0].text == "a\nb\0"

    def test_unterminated_string(self):
        result = lex('"abc')
        assert result.tokens == []
        assert result.errors.error_count() == 1
        assert "unterminated string" in result.errors.errors[0].message


# =============================================================================
# Comment Tests
# =============================================================================

class TestComments:
    """Test comment handling."""

    def test_line_comment(self):
        assert texts("a = 1 // set a\nb = 2") == ["a", "=", "1", "b", "=", "2"]

    def test_block_comment(self):
        assert texts("a /* anything = ! */ = 1") == ["a", "=", "1"]

    def test_block_comment_spanning_lines(self):
        assert texts("/* one\ntwo\n*/ !done") == ["!done"]

    def test_unterminated_block_comment(self):
        result = lex("a = 1 /* oops")
        assert result.errors.error_count() == 1
        assert "unterminated block comment" in result.errors.errors[0].message

    def test_comment_markers_inside_string(self):
        assert lex('"a // b"').tokens[0].text == "a // b\0"


# =============================================================================
# Span Tests
# =============================================================================

class TestSpans:
    """Tokens carry 1-indexed line/column spans into the source."""

    def test_positions(self):
        tokens = lex("a = 5\n  out = a").tokens
        out = tokens[3]
        assert out.text == "out"
        assert (out.span.start.line, out.span.start.column) == (2, 3)
        assert (out.span.end.line, out.span.end.column) == (2, 6)

    def test_span_carries_filename_and_line_text(self):
        tokens = Lexer("a = 5\nb = a", "prog.s9b").tokenize().tokens
        assert str(tokens[3].span) == "prog.s9b:2:1"
        assert tokens[3].span.line_text == "b = a"


# =============================================================================
# Macro Definition Tests
# =============================================================================

class TestDefine:
    """#define headers and bodies never reach the token stream."""

    def test_define_collected(self):
        result = lex("#define INC X { +X }\nINC(a)")
        assert [t.type for t in result.tokens] == [
            TokenType.MACRO,
            TokenType.MACRO_ARG_START,
            TokenType.LOCATION,
            TokenType.MACRO_ARG_END,
        ]
        macro = result.macros.lookup("INC")
        assert macro is not None
        assert macro.parameters == ("X",)
        assert [t.text for t in macro.body] == ["+X"]

    def test_define_without_parameters(self):
        result = lex("#define RETURN {\n    pc = stack 0\n}")
        assert result.tokens == []
        macro = result.macros.lookup("RETURN")
        assert macro.parameters == ()
        assert [t.text for t in macro.body] == ["pc", "=", "stack", "0"]

    def test_define_body_keeps_labels_and_scopes(self):
        result = lex("#define CALL ADDRESS {\n#push\npush = :ret\npc = ADDRESS\nret:\n!pop\n#pop\n}")
        body = result.macros.lookup("CALL").body
        assert body[0].type == TokenType.SCOPE_PUSH
        assert body[-1].type == TokenType.SCOPE_POP
        assert TokenType.LABEL in [t.type for t in body]

    def test_redefinition_replaces(self):
        result = lex("#define A { a = 1 }\n#define A { a = 2 }")
        assert [t.text for t in result.macros.lookup("A").body] == ["a", "=", "2"]

    @pytest.mark.parametrize("source", [
        "#define INC x { +a }",
        "#define INC a { +a }",
        "#define INC 5 { +a }",
    ])
    def test_header_rejects_non_names(self, source):
        result = lex(source)
        assert result.errors.error_count() == 1
        assert "#define header" in result.errors.errors[0].message
        assert result.errors.errors[0].hint is None

    def test_unterminated_header(self):
        result = lex("#define INC X")
        assert result.errors.error_count() == 1
        assert "unterminated #define header" in result.errors.errors[0].message

    def test_unterminated_body(self):
        result = lex("#define INC X { +X")
        assert result.errors.error_count() == 1
        assert "unterminated #define body" in result.errors.errors[0].message

    def test_nested_define_rejected(self):
        result = lex("#define A { #define B { } }")
        assert result.errors.has_errors()
        assert any("not allowed inside" in e.message for e in result.errors.errors)


# =============================================================================
# Error Condition Tests
# =============================================================================

class TestErrors:
    """Lexing records every error and keeps going."""

    def test_unknown_location_with_hint(self):
        result = lex("a = sume")
        assert result.errors.error_count() == 1
        error = result.errors.errors[0]
        assert isinstance(error, LexError)
        assert "unknown location 'sume'" in error.message
        assert "'sum'" in error.hint

    def test_unknown_action(self):
        result = lex("!dne")
        assert result.errors.error_count() == 1
        assert "unknown action '!dne'" in result.errors.errors[0].message
        assert "'done'" in result.errors.errors[0].hint

    def test_unexpected_character(self):
        result = lex("a = 1 @ b = 2")
        assert result.errors.error_count() == 1
        assert "unexpected character '@'" in result.errors.errors[0].message
        assert texts("a = 1 @ b = 2") == ["a", "=", "1", "b", "=", "2"]

    def test_all_errors_reported(self):
        result = lex("@ $ a = sume\n!dne")
        assert result.errors.error_count() == 4

    def test_error_message_has_location(self):
        result = Lexer("a = 1\n  @", "prog.s9b").tokenize()
        assert str(result.errors.errors[0]).startswith("prog.s9b:2:3: error:")

    def test_shared_collector(self):
        errors = ErrorCollector()
        result = tokenize("@", errors=errors)
        assert result.errors is errors
        assert errors.error_count() == 1
