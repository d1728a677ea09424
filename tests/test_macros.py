"""
Macro Expander Tests
====================

Tests for hygienic macro expansion:
- Parameter binding and argument grouping
- Nested calls as arguments
- Definition-site scoping (bodies never see the caller's parameters)
- Register parameters (+X)
- Arity, recursion and syntax errors
- Informational notes
"""

import pytest
from s9b_sdk.assembler import assemble
from s9b_sdk.assembler.lexer import Lexer
from s9b_sdk.assembler.macros import Macro, MacroExpander, MacroScope, expand_macros
from s9b_sdk.assembler.tokens import TokenType
from s9b_sdk.errors import ErrorCollector, MacroError


def expand(source: str):
    """Lex and expand ``source``, returning (tokens, errors)."""
    errors = ErrorCollector()
    lexed = Lexer(source, "<test>", errors).tokenize()
    tokens = MacroExpander(errors).expand(lexed.tokens, lexed.macros)
    return tokens, errors


def expand_texts(source: str) -> list[str]:
    tokens, errors = expand(source)
    assert not errors.has_errors(), errors.report()
    return [token.text for token in tokens]


INC = "#define INC X { +X }\n"

CALL = """
#define CALL ADDRESS {
    #push
    push = :return_point
    pc = ADDRESS
return_point:
    !pop
    #pop
}
"""


# =============================================================================
# Macro Scope Tests
# =============================================================================

class TestMacroScope:
    """Lookup through the scope chain."""

    def test_lookup_in_own_scope(self):
        scope = MacroScope()
        scope.define(Macro("A"))
        assert scope.lookup("A").name == "A"
        assert "A" in scope

    def test_lookup_falls_back_to_parent(self):
        root = MacroScope()
        root.define(Macro("A", ("X",)))
        child = root.child()
        assert child.lookup("A").parameters == ("X",)
        macro, owner = child.resolve("A")
        assert owner is root

    def test_inner_binding_shadows_outer(self):
        root = MacroScope()
        root.define(Macro("A", ("X",)))
        child = root.child()
        child.define(Macro("A"))
        assert child.lookup("A").parameters == ()
        assert root.lookup("A").parameters == ("X",)

    def test_missing_name(self):
        assert MacroScope().lookup("A") is None
        assert "A" not in MacroScope()

    def test_visible_names(self):
        root = MacroScope()
        root.define(Macro("A"))
        child = root.child()
        child.define(Macro("B"))
        assert child.visible_names() == {"A", "B"}
        assert root.visible_names() == {"A"}

    def test_signature(self):
        assert Macro("CALL", ("ADDRESS",)).signature == "CALL(ADDRESS)"
        assert Macro("RETURN").signature == "RETURN()"


# =============================================================================
# Basic Expansion Tests
# =============================================================================

class TestExpansion:
    """Macro calls are replaced by their bodies."""

    def test_no_macros_passes_through(self):
        assert expand_texts("a = 1 out = a !done") == ["a", "=", "1", "out", "=", "a", "!done"]

    def test_inc_expands_to_register_action(self):
        tokens, errors = expand(INC + "INC(a)")
        assert not errors.has_errors()
        assert [(t.type, t.text) for t in tokens] == [(TokenType.REGISTER_ACTION, "+a")]

    def test_inc_assembles_like_register_action(self):
        assert assemble(INC + "INC(a)").words == assemble("+a").words

    def test_zero_parameter_macro_without_parens(self):
        assert expand_texts("#define RETURN { pc = stack 0 }\nRETURN !done") == [
            "pc", "=", "stack", "0", "!done",
        ]

    def test_zero_parameter_macro_with_empty_parens(self):
        assert expand_texts("#define RETURN { pc = stack 0 }\nRETURN()") == ["pc", "=", "stack", "0"]

    def test_parameter_substituted_everywhere(self):
        source = "#define SET R V { R = V out = R }\nSET(b 7)"
        assert expand_texts(source) == ["b", "=", "7", "out", "=", "b"]

    def test_reference_argument(self):
        texts = expand_texts(CALL + "CALL(:fib)\nfib: !done")
        assert texts == [
            "#push", "push", "=", ":return_point", "pc", "=", ":fib",
            "return_point:", "!pop", "#pop", "fib:", "!done",
        ]

    def test_input_tokens_not_modified(self):
        errors = ErrorCollector()
        lexed = Lexer(INC + "INC(a) INC(b)", "<test>", errors).tokenize()
        before = list(lexed.tokens)
        expand_macros(lexed.tokens, lexed.macros, errors)
        assert lexed.tokens == before

    def test_expansion_is_repeatable(self):
        """Expanding the same macro many times gives the same tokens each time."""
        texts = expand_texts(INC + "INC(a) INC(a) INC(a)")
        assert texts == ["+a", "+a", "+a"]

    def test_expanded_tokens_keep_body_spans(self):
        tokens, _ = expand("#define R {\n  out = a\n}\nR")
        assert tokens[0].span.start.line == 2


# =============================================================================
# Argument Tests
# =============================================================================

class TestArguments:
    """Argument grouping and nested calls."""

    def test_each_token_is_an_argument(self):
        source = "#define TWO P Q { Q P }\nTWO(a b)"
        assert expand_texts(source) == ["b", "a"]

    def test_group_forms_one_argument(self):
        source = "#define TWO P Q { Q P }\nTWO((a = 1) (out = a))"
        assert expand_texts(source) == ["out", "=", "a", "a", "=", "1"]

    def test_nested_call_is_one_argument(self):
        source = INC + "#define TWO P Q { P Q }\nTWO(INC(a) !done)"
        assert expand_texts(source) == ["+a", "!done"]

    def test_arguments_expanded_in_caller_scope(self):
        source = INC + "#define TWICE Y { INC(Y) INC(Y) }\nTWICE(b)"
        assert expand_texts(source) == ["+b", "+b"]

    def test_register_parameter_through_two_levels(self):
        source = "#define BUMP R { +R -R }\n#define WRAP S { BUMP(S) }\nWRAP(c)"
        assert expand_texts(source) == ["+c", "-c"]


# =============================================================================
# Hygiene Tests
# =============================================================================

class TestHygiene:
    """Bodies resolve names where they were defined, not where they are called."""

    def test_body_cannot_see_caller_parameters(self):
        source = "#define INNER { +X }\n#define OUTER X { INNER }\nOUTER(a)"
        tokens, errors = expand(source)
        assert tokens == []
        assert errors.error_count() == 1
        assert "cannot find macro named 'X'" in errors.errors[0].message

    def test_parameter_shadows_global_macro(self):
        source = "#define X { b }\n#define USE X { +X }\nUSE(a)"
        assert expand_texts(source) == ["+a"]

    def test_labels_in_body_are_scoped_per_expansion(self):
        """CALL can be used twice because its label lives in a #push block."""
        output = assemble(CALL + "CALL(:f)\nCALL(:f)\n!done\nf: pc = stack 0")
        assert len(output.program.labels) == 3  # two return_point copies and f


# =============================================================================
# Error Tests
# =============================================================================

class TestErrors:
    """Every expansion problem is reported and expansion continues."""

    @pytest.mark.parametrize("call", ["INC(a b)", "INC()", "INC"])
    def test_arity_mismatch(self, call):
        tokens, errors = expand(INC + call)
        assert tokens == []
        assert errors.error_count() == 1
        error = errors.errors[0]
        assert isinstance(error, MacroError)
        assert "requires 1 arguments (X)" in error.message

    def test_arity_mismatch_keeps_surrounding_tokens(self):
        tokens, errors = expand(INC + "a = 1 INC(a b) !done")
        assert errors.error_count() == 1
        assert [t.text for t in tokens] == ["a", "=", "1", "!done"]

    def test_direct_recursion(self):
        tokens, errors = expand("#define A { A }\nA")
        assert tokens == []
        assert errors.error_count() == 1
        assert "recursive expansion of macro 'A'" in errors.errors[0].message

    def test_mutual_recursion_reports_chain(self):
        tokens, errors = expand("#define A { B }\n#define B { A }\nA")
        assert tokens == []
        assert errors.error_count() == 1
        assert "A -> B -> A" in errors.errors[0].message

    def test_unknown_macro(self):
        tokens, errors = expand("a = 1 FOO !done")
        assert [t.text for t in tokens] == ["a", "=", "1", "!done"]
        assert errors.error_count() == 1
        assert "cannot find macro named 'FOO'" in errors.errors[0].message

    def test_unknown_macro_hint(self):
        tokens, errors = expand(INC + "INK(a) !done")
        assert [t.text for t in tokens] == ["!done"]
        assert errors.error_count() == 1
        assert "'INC'" in errors.errors[0].hint

    def test_group_in_group(self):
        _, errors = expand("#define TWO P Q { P Q }\nTWO(((a) b) c)")
        assert any("group in a group" in e.message for e in errors.errors)

    def test_unterminated_argument_list(self):
        _, errors = expand(INC + "INC(a")
        assert any("unterminated argument list" in e.message for e in errors.errors)

    def test_parenthesis_outside_call(self):
        tokens, errors = expand("a = 1 )")
        assert [t.text for t in tokens] == ["a", "=", "1"]
        assert errors.error_count() == 1
        assert "outside a macro argument list" in errors.errors[0].message

    def test_register_parameter_needs_register(self):
        _, errors = expand(INC + "INC(5)")
        assert errors.error_count() == 1
        assert "needs a register argument" in errors.errors[0].message

    def test_register_operand_with_parameters(self):
        _, errors = expand("#define R X { a }\n#define G { +R }\nG")
        assert errors.error_count() == 1
        assert "takes arguments" in errors.errors[0].message


# =============================================================================
# Note Tests
# =============================================================================

class TestNotes:
    """Signature and expansion notes for tooling."""

    def test_signature_and_preview_notes(self):
        _, errors = expand(INC + "INC(a)")
        messages = [message for _, message in errors.notes]
        assert "INC(X)" in messages
        assert "expands to +a" in messages
        assert not errors.has_errors()

    def test_long_preview_truncated(self):
        _, errors = expand(CALL + "CALL(:f)\nf: !done")
        previews = [m for _, m in errors.notes if m.startswith("expands to ")]
        assert len(previews) == 1
        assert previews[0].endswith("...")
        assert len(previews[0]) == len("expands to ") + 50 + 3
