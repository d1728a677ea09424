"""
S9B Macro Expander
==================

This module implements hygienic macro expansion over the lexer's token
list. Expansion is a pure function: the input sequence is never modified,
a new list with every macro call replaced by its body is returned.

Macro Syntax
------------
```
#define INC X { +X }
#define CALL ADDRESS {
    #push
    push = :return_point
    pc = ADDRESS
return_point:
    !pop
    #pop
}

    INC(a)          // expands to  +a
    CALL(:fib)      // expands to the five-statement call sequence
```

Arguments
---------
Each token between the parentheses is one argument. A parenthesized group
``( ... )`` turns several tokens into a single argument, and a nested
macro call is a single argument made of its own expansion:

    F(a b)          two arguments: a, b
    F((a = b) c)    two arguments: "a = b", c
    F(INC(a) b)     two arguments: "+a", b

Arguments are expanded in the caller's context before they are bound.

Scoping
-------
Macros live in a chain of MacroScopes. A call binds its arguments as
zero-parameter macros in a new scope whose parent is the scope the macro
was *defined* in, so a macro body only sees its own parameters and the
macros visible where it was written, never the caller's parameters.

Register actions whose operand is a macro name (``+X``) are rewritten to
the register the name expands to, which is what lets a macro take a
register as a parameter.

Errors
------
All problems are reported to the shared ErrorCollector and expansion
continues:
- Unknown macro (the call and its arguments are dropped)
- Wrong number of arguments (the whole call is dropped)
- Recursive expansion (a macro already being expanded is called again)
- A group started inside a group, an unterminated argument list, or a
  parenthesis outside any call
"""

from dataclasses import dataclass
from typing import Optional, Sequence

from s9b_sdk.errors import ErrorCollector, MacroError, Span, find_similar, suggestion_hint
from s9b_sdk.assembler.tokens import Token, TokenType
from s9b_sdk.cpu import REGISTERS


# Longest expansion preview shown in notes
PREVIEW_LENGTH = 50


# =============================================================================
# Macro Definitions and Scopes
# =============================================================================

@dataclass(frozen=True)
class Macro:
    """
    An immutable macro definition.

    Attributes:
        name: Macro name (upper case)
        parameters: Ordered parameter names
        body: Token sequence the call is replaced with
        span: Where the macro was defined (None for bound arguments)
    """
    name: str
    parameters: tuple[str, ...] = ()
    body: tuple[Token, ...] = ()
    span: Optional[Span] = None

    @property
    def signature(self) -> str:
        """Signature such as ``CALL(ADDRESS)``."""
        return f"{self.name}({', '.join(self.parameters)})"


class MacroScope:
    """
    One level of the macro lookup chain.

    Lookups search this scope first and then each parent in turn.
    """

    def __init__(self, bindings: Optional[dict[str, Macro]] = None, parent: Optional["MacroScope"] = None):
        self.bindings: dict[str, Macro] = dict(bindings) if bindings else {}
        self.parent = parent

    def define(self, macro: Macro) -> None:
        """Bind a macro in this scope, replacing any earlier definition."""
        self.bindings[macro.name] = macro

    def lookup(self, name: str) -> Optional[Macro]:
        """Find a macro by name, innermost scope first."""
        found = self.resolve(name)
        return found[0] if found else None

    def resolve(self, name: str) -> Optional[tuple[Macro, "MacroScope"]]:
        """Find a macro and the scope that defines it."""
        scope: Optional[MacroScope] = self
        while scope is not None:
            if name in scope.bindings:
                return scope.bindings[name], scope
            scope = scope.parent
        return None

    def child(self) -> "MacroScope":
        """Create an empty scope nested in this one."""
        return MacroScope(parent=self)

    def visible_names(self) -> set[str]:
        """All macro names visible from this scope."""
        names: set[str] = set()
        scope: Optional[MacroScope] = self
        while scope is not None:
            names.update(scope.bindings)
            scope = scope.parent
        return names

    def __contains__(self, name: str) -> bool:
        return self.resolve(name) is not None

    def __repr__(self) -> str:
        depth = 0
        scope = self.parent
        while scope is not None:
            depth += 1
            scope = scope.parent
        return f"MacroScope({sorted(self.bindings)}, depth={depth})"


# =============================================================================
# Expander
# =============================================================================

class MacroExpander:
    """
    Expands macro calls in a token sequence.

    Usage:
        expander = MacroExpander(errors)
        expanded = expander.expand(lex_result.tokens, lex_result.macros)
    """

    def __init__(self, errors: Optional[ErrorCollector] = None):
        self.errors = errors if errors is not None else ErrorCollector()
        self._signature_notes: set[tuple[int, int]] = set()

    def expand(self, tokens: Sequence[Token], scope: MacroScope) -> list[Token]:
        """
        Expand every macro call in ``tokens``.

        Args:
            tokens: Token sequence from the lexer (left untouched)
            scope: Root macro scope

        Returns:
            A new token list containing no macro or argument tokens
        """
        return self._expand_sequence(tuple(tokens), scope, (), root=True)

    # =========================================================================
    # Sequence Expansion
    # =========================================================================

    def _expand_sequence(
        self,
        tokens: tuple[Token, ...],
        scope: MacroScope,
        call_stack: tuple[str, ...],
        root: bool = False,
    ) -> list[Token]:
        output: list[Token] = []
        index = 0

        while index < len(tokens):
            token = tokens[index]

            if token.type is TokenType.MACRO:
                expansion, index = self._expand_call(tokens, index, scope, call_stack, root)
                output.extend(expansion)
                continue

            if token.type is TokenType.REGISTER_ACTION and _has_macro_operand(token):
                output.extend(self._expand_register_action(token, scope, call_stack))
            elif token.type in (TokenType.MACRO_ARG_START, TokenType.MACRO_ARG_END):
                self._error(f"unexpected '{token.text}' outside a macro argument list", token.span)
            else:
                output.append(token)
            index += 1

        return output

    # =========================================================================
    # Calls
    # =========================================================================

    def _expand_call(
        self,
        tokens: tuple[Token, ...],
        index: int,
        scope: MacroScope,
        call_stack: tuple[str, ...],
        root: bool,
    ) -> tuple[list[Token], int]:
        """
        Expand the call starting at ``tokens[index]``.

        Returns:
            The expansion and the index of the first token after the call
        """
        call = tokens[index]
        name = call.text

        found = scope.resolve(name)
        arguments, next_index = self._collect_arguments(tokens, index, scope, call_stack)

        if found is None:
            hint = suggestion_hint(find_similar(name, sorted(scope.visible_names())))
            self._error(f"cannot find macro named '{name}'", call.span, hint)
            return [], next_index
        macro, definition_scope = found

        if name in call_stack:
            chain = " -> ".join(call_stack + (name,))
            self._error(f"recursive expansion of macro '{name}' ({chain})", call.span)
            return [], next_index

        if len(arguments) != len(macro.parameters):
            self._error(
                f"macro {name} requires {len(macro.parameters)} arguments "
                f"({', '.join(macro.parameters)}) but {len(arguments)} provided",
                call.span,
            )
            return [], next_index

        key = (call.span.start.line, call.span.start.column)
        if arguments and key not in self._signature_notes:
            self._signature_notes.add(key)
            self.errors.add_note(macro.signature, call.span)

        closure = definition_scope.child()
        for parameter, argument in zip(macro.parameters, arguments):
            closure.define(Macro(parameter, (), tuple(argument)))

        body = self._expand_sequence(macro.body, closure, call_stack + (name,))

        if root:
            preview = " ".join(token.text for token in body)
            if len(preview) > PREVIEW_LENGTH:
                preview = preview[:PREVIEW_LENGTH] + "..."
            self.errors.add_note(f"expands to {preview}", call.span)

        return body, next_index

    def _collect_arguments(
        self,
        tokens: tuple[Token, ...],
        index: int,
        scope: MacroScope,
        call_stack: tuple[str, ...],
    ) -> tuple[list[list[Token]], int]:
        """
        Collect the arguments of the call at ``tokens[index]``.

        Nested macro calls are expanded in the caller's scope as they are
        met, and each one forms a single argument.

        Returns:
            The argument token lists and the index just past the call
        """
        call = tokens[index]
        if index + 1 >= len(tokens) or tokens[index + 1].type is not TokenType.MACRO_ARG_START:
            return [], index + 1

        arguments: list[list[Token]] = []
        in_group = False

        def target() -> list[Token]:
            if not in_group:
                arguments.append([])
            return arguments[-1]

        position = index + 2
        while position < len(tokens):
            token = tokens[position]

            if token.type is TokenType.MACRO_ARG_START:
                if in_group:
                    self._error("cannot start a group in a group", token.span)
                else:
                    arguments.append([])
                    in_group = True
            elif token.type is TokenType.MACRO_ARG_END:
                if not in_group:
                    return arguments, position + 1
                in_group = False
            elif token.type is TokenType.MACRO:
                expansion, position = self._expand_call(tokens, position, scope, call_stack, False)
                target().extend(expansion)
                continue
            elif token.type is TokenType.REGISTER_ACTION and _has_macro_operand(token):
                target().extend(self._expand_register_action(token, scope, call_stack))
            else:
                target().append(token)
            position += 1

        self._error(f"unterminated argument list for macro '{call.text}'", call.span)
        return arguments, position

    # =========================================================================
    # Register Parameters
    # =========================================================================

    def _expand_register_action(
        self,
        token: Token,
        scope: MacroScope,
        call_stack: tuple[str, ...],
    ) -> list[Token]:
        """Rewrite ``+X`` to ``+a`` when X expands to a single register."""
        op, name = token.text[0], token.text[1:]

        found = scope.resolve(name)
        if found is None:
            self._error(f"cannot find macro named '{name}'", token.span)
            return []
        macro, definition_scope = found

        if macro.parameters:
            self._error(f"macro {name} takes arguments and cannot be used as a register", token.span)
            return []
        if name in call_stack:
            self._error(f"recursive expansion of macro '{name}'", token.span)
            return []

        body = self._expand_sequence(macro.body, definition_scope.child(), call_stack + (name,))
        if len(body) != 1 or body[0].type is not TokenType.LOCATION or body[0].text not in REGISTERS:
            self._error(
                f"register action '{token.text}' needs a register argument (a, b, c or d)",
                token.span,
            )
            return []

        return [Token(TokenType.REGISTER_ACTION, op + body[0].text, token.span)]

    def _error(self, message: str, span: Optional[Span], hint: Optional[str] = None) -> None:
        self.errors.add(MacroError(message, span, hint))


def _has_macro_operand(token: Token) -> bool:
    """True for register actions such as ``+X`` written inside a macro."""
    return token.text[1:] not in REGISTERS


def expand_macros(
    tokens: Sequence[Token],
    scope: MacroScope,
    errors: Optional[ErrorCollector] = None,
) -> list[Token]:
    """Convenience function to expand macros in a token sequence."""
    return MacroExpander(errors).expand(tokens, scope)
